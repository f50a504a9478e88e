"""CRM module - tenant-owned sample business entities."""
