"""Domain-specific errors for kommanderctl."""


class KommanderError(Exception):
    """Base error for kommanderctl."""


class ProfileValidationError(KommanderError):
    """Raised when a profile file does not conform to schema or semantics."""


class ProfileLoadError(KommanderError):
    """Raised when loading profile sources fails."""


class ConfigError(KommanderError):
    """Raised when a driver configuration file is unreadable or invalid."""


class InvalidAddressError(KommanderError):
    """Raised when a target address does not match the websocket URI pattern."""


class CommandEncodingError(KommanderError):
    """Raised when an action or its options cannot be encoded for the active profile."""


class TransportError(KommanderError):
    """Base transport error."""


class TransportConnectError(TransportError):
    """Raised when the websocket connection cannot be established."""


class TransportSendError(TransportError):
    """Raised when writing a frame fails."""


class TransportClosedError(TransportError):
    """Raised when writing to a connection that is already closed."""


class MalformedNotificationError(KommanderError):
    """Raised when an inbound payload is not well-formed JSON."""


class ExtractionMissError(KommanderError):
    """Raised when a subscription path does not resolve against a payload."""
