"""Target table layer.

This package maps records to DynamoDB items and merges queued batches
idempotently into the target table and its meta record.
"""
