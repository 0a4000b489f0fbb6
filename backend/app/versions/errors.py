"""Version lifecycle errors, one class per failure kind the API layer maps."""


class VersionLifecycleError(Exception):
    """Base error for version lifecycle operations."""

    code = "version_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class VersionConflictError(VersionLifecycleError):
    """Current version moved on since the caller read it. Retry against the new one."""

    code = "conflict"


class VersionNotFoundError(VersionLifecycleError):
    """Document or version missing, or the requested transition has no target."""

    code = "not_found"


class VersionUnauthorizedError(VersionLifecycleError):
    """Acting user does not own the document."""

    code = "unauthorized"
