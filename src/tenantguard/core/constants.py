"""Application-wide constants.

This module defines constants used throughout the application
to avoid magic numbers and ensure consistency.
"""

# Slug generation
MAX_SLUG_LENGTH = 63
MAX_SLUG_SUFFIX_ATTEMPTS = 1000

# String field lengths
MAX_EMAIL_LENGTH = 255
MAX_NAME_LENGTH = 255
MAX_PHONE_LENGTH = 50
MAX_DOMAIN_LENGTH = 255
MAX_SETTING_GROUP_LENGTH = 50
MAX_SETTING_KEY_LENGTH = 100
MAX_ACTION_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 255

# Password requirements
MIN_PASSWORD_LENGTH = 12
MAX_PASSWORD_LENGTH = 128
BCRYPT_ROUNDS = 12

# Pagination defaults
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

# Token settings
ACCESS_TOKEN_JTI_LENGTH = 32
IMPERSONATION_JTI_LENGTH = 24

# Secret key requirements
MIN_SECRET_KEY_LENGTH = 32
DEFAULT_INSECURE_SECRET = "change-me-in-production"

# Scope audit monitor
AUDIT_STATEMENT_MAX_LENGTH = 500
AUDIT_MEMORY_SINK_SIZE = 1000
UNSCOPED_STATEMENT_MARKER = "/* unscoped */"

# Cache keys
TENANT_CACHE_PREFIX = "tenantguard:"
