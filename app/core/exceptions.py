from typing import Dict, List

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class QueryValidationError(ServiceError):
    """One or more query parameters failed validation. Carries field-level errors."""

    def __init__(self, errors: List[Dict[str, str]]) -> None:
        super().__init__("Invalid query parameters", status.HTTP_400_BAD_REQUEST)
        self.errors = errors


class PersistenceError(ServiceError):
    """A filter description could not be executed against the database."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)
