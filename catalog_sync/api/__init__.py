"""HTTP surface: FastAPI app, authentication and routes."""
