"""Domain exceptions raised by services."""


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid."""


class AuthenticationError(DomainError):
    """Raised when login credentials are invalid."""


class NotAuthenticatedError(DomainError):
    """Raised when an action needs a signed-in staff profile."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""


class NotFoundError(DomainError):
    """Raised when a referenced row does not exist."""


class ArchiveRequestNotFoundError(NotFoundError):
    """Raised when an archive request id is unknown."""


class EntityNotFoundError(NotFoundError):
    """Raised when the target of an archive action does not exist."""


class UserNotFoundError(NotFoundError):
    """Raised when a staff profile is unknown."""


class ConflictError(DomainError):
    """Raised when an action conflicts with current state."""


class ArchiveRequestPendingError(ConflictError):
    """Raised when an entity already has a pending archive request."""

    def __init__(self) -> None:
        super().__init__("An archive request is already pending for this item")


class ArchiveRequestResolvedError(ConflictError):
    """Raised when approving or denying a request that is no longer pending."""


class InvitationPendingError(ConflictError):
    """Raised when an open invitation already exists for the email."""

    def __init__(self) -> None:
        super().__init__("Invitation already sent to this email")


class InvalidInvitationError(DomainError):
    """Raised when a sign-up token is missing, expired or already used."""

    def __init__(self) -> None:
        super().__init__("Invalid or expired invitation")


class BackendError(DomainError):
    """Raised when the hosted backend reports a failure."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code
