from __future__ import annotations


class CordiumError(Exception):
    """Base class for errors raised by the settings engine."""


class SchemaError(CordiumError):
    """The settings document is malformed."""

    def __init__(self, message: str, path: str = "") -> None:
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)


class NotFoundError(CordiumError):
    def __init__(self, page_id: str) -> None:
        self.page_id = page_id
        super().__init__(f"Page not found: {page_id}")


class UpdateError(CordiumError):
    """Base class for update check, download and install failures."""


class NetworkError(UpdateError):
    pass


class HttpError(NetworkError):
    def __init__(self, status: int, reason: str = "") -> None:
        self.status = int(status)
        self.reason = reason
        super().__init__(f"HTTP {self.status}" + (f" {reason}" if reason else ""))


class MetadataParseError(NetworkError):
    """Release metadata could not be understood."""


class PermissionDenied(UpdateError):
    pass


class InstallError(UpdateError):
    pass
