from pydantic import BaseModel

from taskmarket.core.errors import ErrorCategory, ErrorKind


class ErrorBody(BaseModel):
    code: ErrorKind
    category: ErrorCategory
    message: str
    retryable: bool


class ErrorResponse(BaseModel):
    error: ErrorBody
