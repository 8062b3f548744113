"""
Service-wide constants
"""

SERVICE_NAME = "ems-backend"

# Values of the "type" field in signed claims
TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_REFRESH = "refresh"
TOKEN_TYPE_PASSWORD_RESET = "password_reset"

# Claim field carrying the privilege snapshot
CLAIM_PRIVILEGE = "privilege"
