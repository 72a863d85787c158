"""API routers; versioned endpoints live in ``routes.v1``."""
