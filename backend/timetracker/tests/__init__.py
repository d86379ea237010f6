"""
Test package for the multitenant time tracker backend application.

This package contains test suites for:
- Time entry listing, scope filtering and full-date windowing
- Aggregation and gap filling
- Single-entry create, update and delete
- Batch updates
"""
