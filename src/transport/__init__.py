"""Pending-write queue transport.

This package carries transformed pages from the reader to the merge
writer and probes queue depth for loop termination.
"""
