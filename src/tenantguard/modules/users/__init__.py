"""Users module - members of a tenant."""
