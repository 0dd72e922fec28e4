"""Exception taxonomy shared by the search service."""


class BiteBaseError(Exception):
    """Base class for every error raised by the service."""


class ConfigError(BiteBaseError, RuntimeError):
    """Raised when configuration values are missing or malformed."""


class InvalidParameterError(BiteBaseError, ValueError):
    """Malformed or out-of-range search input. Surfaced to callers as a 400."""


class InvalidCoordinateError(InvalidParameterError):
    """Latitude/longitude outside the WGS84 range or not numeric."""


class PersistedStoreError(BiteBaseError, RuntimeError):
    """Backend read or write failure in a persisted store."""


class ProviderUnavailableError(BiteBaseError, RuntimeError):
    """External places provider failed (network, auth, quota or timeout)."""
