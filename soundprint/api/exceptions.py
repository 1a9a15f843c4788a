"""
Soundprint Exceptions

Error types raised by the API clients and the resolution service.
"""


class SoundprintError(Exception):
    """Base class for Soundprint errors."""


class TransportError(SoundprintError):
    """Network failure (timeout, DNS, connection reset) that outlived all retries."""

    def __init__(self, service: str, attempts: int, cause: Exception):
        self.service = service
        self.attempts = attempts
        self.cause = cause
        super().__init__(
            f"{service} transport failure after {attempts} attempts: "
            f"{type(cause).__name__}: {cause}"
        )


class ProviderNotConfiguredError(SoundprintError):
    """A provider was used without the credentials it needs."""


class CatalogUnavailableError(SoundprintError):
    """The artist's track list could not be obtained."""

    def __init__(self, artist_id: str, reason: str):
        self.artist_id = artist_id
        self.reason = reason
        super().__init__(f"Track list unavailable for artist {artist_id}: {reason}")
