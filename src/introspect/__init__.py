"""Schema introspection over synchronized records.

This package samples target records per facet and infers paired read
and input type descriptions for downstream API generation.
"""
