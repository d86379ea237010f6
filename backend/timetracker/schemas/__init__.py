"""
Pydantic schemas for API request/response validation.

Provides data models for the time entry endpoints: listing, aggregation,
single-entry writes and batch updates.
"""
