"""Error types shared by the functions.

Every error carries the HTTP status an HTTP function answers with.  The
storage-triggered function re-raises them instead so the platform records
the failed invocation.
"""


class SynapScribeError(Exception):
    """Base class for errors raised by the functions."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(SynapScribeError):
    """Client input is malformed."""

    status_code = 400


class AuthError(SynapScribeError):
    """Credential is missing, invalid or revoked, or sign-in was refused."""

    status_code = 401


class ProviderError(SynapScribeError):
    """A call to Firebase, Cloud Storage or Gemini failed."""


class EmptyResponseError(SynapScribeError):
    """The model answered without any candidate or content part."""


class EventDecodeError(SynapScribeError):
    """A storage event payload could not be decoded."""

    status_code = 400


class ConfigurationError(SynapScribeError):
    """A required environment variable is not set."""
