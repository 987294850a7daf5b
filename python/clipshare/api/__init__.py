"""HTTP API layer: route modules and FastAPI dependencies."""
