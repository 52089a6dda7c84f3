"""Application-wide constants.

This module defines constants used throughout the application
to avoid magic numbers and ensure consistency.
"""

# Slug and domain generation
MAX_SLUG_LENGTH = 63
MAX_DOMAIN_LENGTH = 253

# Hash lengths
SHA256_HEX_LENGTH = 64

# String field lengths
MAX_EMAIL_LENGTH = 255
MAX_NAME_LENGTH = 255
MAX_TENANT_NAME_LENGTH = 100
MAX_IPV6_LENGTH = 45
MAX_USER_AGENT_LENGTH = 512
MAX_ROLE_LENGTH = 20
MAX_STATUS_LENGTH = 20
MAX_DESCRIPTION_LENGTH = 500

# Password requirements
MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128
BCRYPT_ROUNDS = 12

# Pagination defaults
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

# Token settings
ACCESS_TOKEN_JTI_LENGTH = 32
REFRESH_TOKEN_BYTES = 32

# Secret key requirements
MIN_SECRET_KEY_LENGTH = 32
DEFAULT_INSECURE_SECRET = "change-me-in-production"

# Tenants
TRIAL_PERIOD_DAYS = 7
DEFAULT_TENANT_MAX_USERS = 25
DEFAULT_TENANT_MAX_ADMINS = 2
PERSONAL_TENANT_MAX_USERS = 5
PERSONAL_TENANT_MAX_ADMINS = 1

# MFA
MFA_BACKUP_CODE_COUNT = 10
MFA_BACKUP_CODE_LENGTH = 8
MFA_TOTP_VALID_WINDOW = 2
MFA_DEFAULT_MAX_ATTEMPTS = 5
MFA_DEFAULT_LOCKOUT_MINUTES = 30
MFA_DEFAULT_GRACE_PERIOD_DAYS = 7
MFA_CODE_TTL_SECONDS = 600
MFA_CODE_LENGTH = 6

# API keys
API_KEY_PREFIX = "ak_"
API_KEY_SECRET_BYTES = 32
API_KEY_ID_BYTES = 16
API_KEY_DISPLAY_PREFIX_LENGTH = 8

# Impersonation
IMPERSONATION_MAX_MINUTES = 120
IMPERSONATION_MAX_ACTIVE_SESSIONS = 5
IMPERSONATION_MIN_REASON_LENGTH = 10
IMPERSONATION_MAX_ACTIONS = 100
IMPERSONATION_MAX_RISK_SCORE = 100

# Notifications
MAX_NOTIFICATION_TITLE_LENGTH = 200
MAX_NOTIFICATION_MESSAGE_LENGTH = 1000
# Newest candidate notifications examined per inbox request
NOTIFICATION_SCAN_LIMIT = 500
TRIAL_WARNING_DAYS = 3
TRIAL_NOTICE_DAYS = 7
