from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


# ----- Authentication / tenant membership -----

class InvalidCredentials(ServiceError):
    def __init__(self, message: str = "Invalid login credentials") -> None:
        super().__init__(message, status.HTTP_401_UNAUTHORIZED)


class Unauthorized(ServiceError):
    """Valid identity that is not provisioned for the selected college."""

    def __init__(
        self,
        message: str = "Your email is not registered for this college. Please contact your administrator.",
    ) -> None:
        super().__init__(message, status.HTTP_403_FORBIDDEN)


class Mismatch(ServiceError):
    """Role row for the email points at a different identity than the one authenticated."""

    def __init__(self, message: str = "User authentication mismatch. Please contact support.") -> None:
        super().__init__(message, status.HTTP_403_FORBIDDEN)


# ----- Workflow validation -----

class ProfileNotFound(ServiceError):
    def __init__(self, message: str = "User profile not found") -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class MissingEmail(ServiceError):
    def __init__(self, message: str = "Application has no email address.") -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class ReasonRequired(ServiceError):
    def __init__(self, message: str = "Please provide a rejection reason.") -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class AdmissionNotFound(ServiceError):
    def __init__(self, message: str = "Pending application not found") -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class TransactionNotFound(ServiceError):
    def __init__(self, message: str = "Fee record not found") -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class InvalidReference(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class IdentityExists(ServiceError):
    def __init__(self, message: str = "A user with this email address has already been registered") -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class RoleConflict(ServiceError):
    def __init__(self, message: str = "User already holds another role in this college") -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


# ----- Infrastructure -----

class StoreError(ServiceError):
    """Any underlying data-store failure."""

    def __init__(self, message: str = "Data store operation failed") -> None:
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)


class TransportError(ServiceError):
    """Identity provider failure."""

    def __init__(self, message: str = "Identity provider unavailable") -> None:
        super().__init__(message, status.HTTP_502_BAD_GATEWAY)
