"""
Test suite for ceiba.

This package contains tests for all ceiba components:
- Unit tests for the declaration models, hashing, reconcilers, store adapter and CLI
- Integration tests against a real BigQuery project (opt-in)
"""
