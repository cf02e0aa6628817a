"""Domain error taxonomy.

Every error raised by the services is one of four kinds:

- NotFoundError: the addressed entity does not exist
- ConflictError: the mutation would violate a store invariant
- InvalidInputError: the caller supplied something malformed
- anything else: storage/queue failure, propagated untouched

The API layer maps the kinds onto HTTP status codes (see api/errors.py).
"""


class DomainError(Exception):
    """Base class for all domain errors."""

    message = "domain error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)

    @property
    def detail(self) -> str:
        return str(self)


class NotFoundError(DomainError):
    message = "not found"


class ConflictError(DomainError):
    message = "conflict"


class InvalidInputError(DomainError):
    message = "invalid input"


class UnprocessableError(InvalidInputError):
    """Well-formed request whose body fails domain validation."""

    message = "unprocessable"


# Input
class InvalidCursor(InvalidInputError):
    message = "invalid cursor"


class InvalidSlug(UnprocessableError):
    message = "invalid slug"


class InvalidName(UnprocessableError):
    message = "invalid name"


class InvalidVersion(UnprocessableError):
    message = "invalid version"


class InvalidRole(UnprocessableError):
    message = "invalid role"


class EmptyMessage(UnprocessableError):
    message = "empty message"


# Tenants
class TenantNotFound(NotFoundError):
    message = "tenant not found"


class TenantSlugTaken(ConflictError):
    message = "tenant slug taken"


# Templates
class TemplateNotFound(NotFoundError):
    message = "template not found"


class TemplateSlugTaken(ConflictError):
    message = "template slug taken"


# Template versions
class VersionNotFound(NotFoundError):
    message = "version not found"


class VersionAlreadyPublished(ConflictError):
    message = "version already published"


# Sessions
class SessionNotFound(NotFoundError):
    message = "session not found"


class SessionClosed(ConflictError):
    message = "session closed"
