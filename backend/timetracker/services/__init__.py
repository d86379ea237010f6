"""Time entry filtering, aggregation and mutation services."""
