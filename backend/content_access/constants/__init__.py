"""Shared enumerations for content access."""
