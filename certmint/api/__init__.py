"""HTTP API routers for certmint."""
