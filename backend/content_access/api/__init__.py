"""HTTP adapter for content access operations."""
