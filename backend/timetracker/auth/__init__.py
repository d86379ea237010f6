"""Bearer token authentication and member permissions."""
