"""HTTP-aware error types raised by services and routes."""

from fastapi import HTTPException, status


STORE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'


class NotFoundError(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ConflictError(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class ValidationFailure(HTTPException):
    def __init__(self, detail: str, details: list[str] | None = None):
        body = {'message': detail, 'details': details} if details else detail
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=body)
        self.message = detail
        self.details = details or []


class StoreUnavailableError(HTTPException):
    def __init__(self, detail: str = STORE_UNAVAILABLE_DETAIL):
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)
