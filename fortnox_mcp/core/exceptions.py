"""Custom exceptions for the Fortnox MCP server."""


class MCPToolError(Exception):
    """Custom exception for MCP tool errors that should be returned as JSON-RPC errors."""

    def __init__(self, message: str, code: int = -32000):
        self.message = message
        self.code = code
        super().__init__(message)


# ========================================
# Base Exceptions
# ========================================


class FortnoxMCPError(Exception):
    """Base exception for all Fortnox MCP errors."""


# ========================================
# Configuration Exceptions
# ========================================


class ConfigurationError(FortnoxMCPError):
    """Configuration is invalid."""


class MissingConfigurationError(ConfigurationError):
    """Required configuration is absent. Fatal at startup."""

    def __init__(self, missing: list[str] | str):
        self.missing = [missing] if isinstance(missing, str) else list(missing)
        super().__init__(
            f"Missing required environment variables: {', '.join(self.missing)}",
        )


# ========================================
# Authorization Exceptions
# ========================================


class AuthError(FortnoxMCPError):
    """Base exception for authorization failures.

    Callers should surface these as "not authorized", never as a server error.
    """


class UnknownSubjectError(AuthError):
    """No stored credentials exist for the subject."""

    def __init__(self, subject_id: str | None = None):
        self.subject_id = subject_id
        if subject_id:
            message = f"Authentication required for subject {subject_id}"
        else:
            message = "Authentication required: no subject in request context"
        super().__init__(message)


class ExpiredCredentialError(AuthError):
    """A non-refreshable credential has expired."""


class RefreshFailedError(AuthError):
    """The authorization server rejected the refresh or returned an error."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class InvalidSessionTokenError(AuthError):
    """An inbound session token is missing, malformed, expired or revoked."""


# ========================================
# Request Exceptions
# ========================================


class InvalidRequestError(FortnoxMCPError):
    """A client request to the OAuth endpoints is malformed or not permitted."""


# ========================================
# Upstream Exceptions
# ========================================


class UpstreamError(FortnoxMCPError):
    """Base exception for retryable upstream failures."""

    retryable = True


class QuotaExceededError(UpstreamError):
    """Rate limit hit. Retry once the current window resets."""

    def __init__(self, retry_after: float, message: str | None = None):
        self.retry_after = max(0.0, retry_after)
        super().__init__(
            message
            or f"Rate limit exceeded. Retry in {self.retry_after:.2f}s",
        )


class UpstreamUnavailableError(UpstreamError):
    """Network failure, timeout or server error talking to Fortnox."""


class APIError(FortnoxMCPError):
    """Fortnox resource API returned a non-retryable error."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
