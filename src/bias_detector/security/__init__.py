"""Bearer token verification and FastAPI identity dependencies."""
