"""
Access decision primitives: result types, error taxonomy, typed usage
records, the TTL cache and clock helpers.

Resolution order: creator -> purchase -> direct claim -> delegated claim,
then per-type content validation.
"""
