"""
Error taxonomy for the Clippings client.

Every failure a user action can hit is one of these; the action handler
turns it into a message and the session carries on.
"""


class ClippingsError(Exception):
    """Base class for errors surfaced to the operator"""

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return self.message


class ConfigurationError(ClippingsError):
    """The remote endpoint has not been configured"""


class TransportError(ClippingsError):
    """Network failure, timeout or non-2xx HTTP status"""


class ApplicationError(ClippingsError):
    """The remote endpoint reported an error for the call"""


class ValidationError(ClippingsError):
    """A client-side precondition failed; nothing was sent"""
