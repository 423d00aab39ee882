"""Closed error taxonomy for task lifecycle operations.

Services raise LifecycleError with an ErrorKind; the API layer renders it.
Callers branch on the kind, never on message text.
"""

from __future__ import annotations

from enum import Enum


class ErrorCategory(str, Enum):
    CONCURRENCY_LOSS = "concurrency_loss"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"
    INVALID_TRANSITION = "invalid_transition"
    UNAUTHENTICATED = "unauthenticated"
    TRANSIENT = "transient"
    UNKNOWN = "unknown"


class ErrorKind(str, Enum):
    TASK_ALREADY_ACCEPTED = "TASK_ALREADY_ACCEPTED"
    CANNOT_ACCEPT_OWN_TASK = "CANNOT_ACCEPT_OWN_TASK"
    TASK_NOT_FOUND = "TASK_NOT_FOUND"
    TASK_CLOSED = "TASK_CLOSED"
    INVALID_STATE = "INVALID_STATE"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    REVIEW_ALREADY_SUBMITTED = "REVIEW_ALREADY_SUBMITTED"
    NOT_AUTHORIZED = "NOT_AUTHORIZED"
    USER_NOT_AUTHENTICATED = "USER_NOT_AUTHENTICATED"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    UNKNOWN = "UNKNOWN"

    @property
    def category(self) -> ErrorCategory:
        return CATEGORY[self]

    @property
    def http_status(self) -> int:
        return HTTP_STATUS[self]

    @property
    def message(self) -> str:
        return MESSAGES[self]

    @property
    def retryable(self) -> bool:
        return self is ErrorKind.STORE_UNAVAILABLE


CATEGORY: dict[ErrorKind, ErrorCategory] = {
    ErrorKind.TASK_ALREADY_ACCEPTED: ErrorCategory.CONCURRENCY_LOSS,
    ErrorKind.CANNOT_ACCEPT_OWN_TASK: ErrorCategory.AUTHORIZATION,
    ErrorKind.NOT_AUTHORIZED: ErrorCategory.AUTHORIZATION,
    ErrorKind.TASK_NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorKind.TASK_CLOSED: ErrorCategory.NOT_FOUND,
    ErrorKind.INVALID_STATE: ErrorCategory.INVALID_TRANSITION,
    ErrorKind.INVALID_TRANSITION: ErrorCategory.INVALID_TRANSITION,
    ErrorKind.REVIEW_ALREADY_SUBMITTED: ErrorCategory.INVALID_TRANSITION,
    ErrorKind.USER_NOT_AUTHENTICATED: ErrorCategory.UNAUTHENTICATED,
    ErrorKind.STORE_UNAVAILABLE: ErrorCategory.TRANSIENT,
    ErrorKind.UNKNOWN: ErrorCategory.UNKNOWN,
}

HTTP_STATUS: dict[ErrorKind, int] = {
    ErrorKind.TASK_ALREADY_ACCEPTED: 409,
    ErrorKind.CANNOT_ACCEPT_OWN_TASK: 403,
    ErrorKind.NOT_AUTHORIZED: 403,
    ErrorKind.TASK_NOT_FOUND: 404,
    ErrorKind.TASK_CLOSED: 409,
    ErrorKind.INVALID_STATE: 409,
    ErrorKind.INVALID_TRANSITION: 409,
    ErrorKind.REVIEW_ALREADY_SUBMITTED: 409,
    ErrorKind.USER_NOT_AUTHENTICATED: 401,
    ErrorKind.STORE_UNAVAILABLE: 503,
    ErrorKind.UNKNOWN: 500,
}

MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.TASK_ALREADY_ACCEPTED: "This task was just accepted by someone else. Browse other open tasks.",
    ErrorKind.CANNOT_ACCEPT_OWN_TASK: "You cannot accept your own task.",
    ErrorKind.NOT_AUTHORIZED: "You are not allowed to change this task.",
    ErrorKind.TASK_NOT_FOUND: "Task not found or no longer available.",
    ErrorKind.TASK_CLOSED: "This task is already completed or cancelled.",
    ErrorKind.INVALID_STATE: "This task's current status does not allow that.",
    ErrorKind.INVALID_TRANSITION: "That status update is not valid for the task's current status.",
    ErrorKind.REVIEW_ALREADY_SUBMITTED: "You have already reviewed this task.",
    ErrorKind.USER_NOT_AUTHENTICATED: "Please sign in to continue.",
    ErrorKind.STORE_UNAVAILABLE: "We couldn't reach the server. Refresh the task and try again.",
    ErrorKind.UNKNOWN: "Unable to complete the request. Refresh the task and try again.",
}


class LifecycleError(Exception):
    """Raised by lifecycle services; never partially applied."""

    def __init__(self, kind: ErrorKind, detail: str | None = None):
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind.value}: {detail or kind.message}")

    def to_payload(self) -> dict:
        return {
            "code": self.kind.value,
            "category": self.kind.category.value,
            "message": self.kind.message,
            "retryable": self.kind.retryable,
        }
