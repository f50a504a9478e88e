"""Feature modules: tenant directory, users, and CRM sample entities."""
