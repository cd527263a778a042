class RemoteUnavailableError(Exception):
    """Raised when a remote stage endpoint cannot be located (not configured)."""


class StageError(Exception):
    """Base for failures that end the active stage as ``failed``."""


class RemoteRejectedError(StageError):
    """Raised when the remote service returned a declared error."""


class RemoteTransportError(StageError):
    """Raised when the remote call fails due to network/infrastructure issues."""


class ImageReadError(StageError):
    """Raised when the locally captured image cannot be read."""


class MalformedResponseError(StageError):
    """Raised when a remote response cannot be parsed into the expected shape.

    ``raw_response`` keeps the unparsed payload for diagnostics and retry.
    """

    def __init__(self, message: str, raw_response: str | None = None) -> None:
        super().__init__(message)
        self.raw_response = raw_response
