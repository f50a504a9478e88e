"""TenantGuard - row-level tenant isolation for a shared FastAPI/SQLAlchemy application."""

__version__ = "0.1.0"
