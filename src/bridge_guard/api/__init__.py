"""FastAPI integration: dependencies, error handling and routes."""
