"""HTTP API application and routers."""
