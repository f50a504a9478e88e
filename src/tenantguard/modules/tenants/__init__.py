"""Tenant directory, typed settings and lifecycle management."""
