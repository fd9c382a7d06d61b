"""Source reading and sync orchestration.

This package reads Firestore collections page by page, derives target
keys, and drives the resumable sync state machine.
"""
