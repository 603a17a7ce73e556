"""
HTTP exceptions raised by services and routes.
Each carries a machine-readable code next to the human message.
"""
from typing import Optional
from fastapi import HTTPException, status


class AppException(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "BAD_REQUEST"
    message = "Bad request."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.message
        super().__init__(
            status_code=self.status_code,
            detail={"code": self.code, "message": self.message},
        )


class NotAuthenticated(AppException):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "NOT_AUTHENTICATED"
    message = "Authentication required."


class SessionExpired(AppException):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "SESSION_EXPIRED"
    message = "Session expired. Please log in again."


class InvalidCredentials(AppException):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "INVALID_CREDENTIALS"
    message = "Invalid email or password."


class EmailAlreadyExists(AppException):
    status_code = status.HTTP_409_CONFLICT
    code = "EMAIL_EXISTS"
    message = "A user with this email already exists."


class NotFound(AppException):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource"):
        super().__init__(f"{resource} not found.")


class NotParticipant(AppException):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"
    message = "You are not a participant of this room."


class InvalidDirectChat(AppException):
    code = "INVALID_OTHER_USER"
    message = "A direct chat needs another existing user."


class ServiceError(AppException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "SERVICE_ERROR"
    message = "Service temporarily unavailable. Please try again."
