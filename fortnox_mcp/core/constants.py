"""Application-wide constants for the Fortnox MCP Server.

Upstream endpoints, quotas and limits live here so that providers, the API
client and tests agree on the same values.
"""

# ========================================
# Fortnox Endpoints
# ========================================

FORTNOX_API_BASE_URL = "https://api.fortnox.se"
FORTNOX_OAUTH_URL = "https://apps.fortnox.se/oauth-v1"
FORTNOX_TOKEN_URL = f"{FORTNOX_OAUTH_URL}/token"
FORTNOX_AUTHORIZE_URL = f"{FORTNOX_OAUTH_URL}/auth"

# Scopes requested during authorization
FORTNOX_DEFAULT_SCOPES = [
    "companyinformation",
    "customer",
    "invoice",
    "supplier",
    "bookkeeping",
]

# ========================================
# Rate Limiting
# ========================================

RATE_LIMIT_REQUESTS = 25  # Fortnox allows 25 requests...
RATE_LIMIT_WINDOW_SECONDS = 5.0  # ...per 5 second window

# ========================================
# Token Lifetimes
# ========================================

TOKEN_REFRESH_BUFFER_SECONDS = 5 * 60  # Refresh 5 minutes before expiry
ENV_TOKEN_DEFAULT_LIFETIME_SECONDS = 3600  # Assumed lifetime of a configured token

SESSION_ACCESS_TOKEN_EXPIRES_IN = 3600  # 1 hour
SESSION_REFRESH_TOKEN_EXPIRES_IN = 90 * 24 * 3600  # 90 days
SESSION_JWT_ALGORITHM = "HS256"

PENDING_AUTHORIZATION_MAX_AGE_SECONDS = 10 * 60

# Stored credentials outlive access tokens; refresh tokens last ~90 days
STORAGE_TTL_SECONDS = 90 * 24 * 3600
REDIS_KEY_PREFIX = "fortnox_tokens:"

# ========================================
# HTTP
# ========================================

REQUEST_TIMEOUT_DEFAULT = 30.0
REFRESH_TIMEOUT_DEFAULT = 15.0

# ========================================
# Response Limits
# ========================================

CHARACTER_LIMIT = 25000
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

# Paths reachable without a session token
PUBLIC_PATHS = ["/health", "/ping", "/healthz"]
OAUTH_PATH_PREFIX = "/oauth/"
