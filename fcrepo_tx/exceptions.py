# Repository client exceptions


class FcrepoClientError(Exception):
    """Base exception for all repository client errors."""

    def __init__(self, *args, uri: str | None = None, detail: str | None = None):
        super().__init__(*args)
        self.uri = uri
        # Use the first arg as detail if detail kwarg is not provided and args exist
        self.detail = detail or (args[0] if args else None)


class TransportError(FcrepoClientError):
    """Raised when no response was obtained (connection, TLS or timeout failure)."""

    pass


class UnexpectedStatusError(FcrepoClientError):
    """Raised when a response arrives with a status outside the expected success set."""

    def __init__(self, detail: str, status_code: int, body: bytes | None = None, uri: str | None = None):
        self.status_code = status_code
        self.body = body
        super().__init__(detail, uri=uri, detail=detail)

    @property
    def is_gone(self) -> bool:
        """Whether the status indicates the target no longer exists on the server."""
        return self.status_code in (404, 410)


class ProtocolError(FcrepoClientError):
    """Raised when a successful response is missing or has an inconsistent protocol header."""

    pass


class InvalidStateError(FcrepoClientError):
    """Raised when a session operation is not allowed from its current state."""

    pass


class ResourceOutsideRepositoryError(ValueError, FcrepoClientError):
    """Raised when a resource URI cannot be routed through a transaction because it is not under its repository root."""

    pass
