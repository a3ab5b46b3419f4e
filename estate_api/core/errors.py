"""
Application errors.

Services raise these; the exception handlers in main.py render them as
``{"success": false, "error": {"message": ..., "statusCode": ...}}``.
"""

from fastapi import status


class ApiError(Exception):
    """Base error carrying an HTTP status code."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {
            "success": False,
            "error": {
                "message": self.message,
                "statusCode": self.status_code,
            },
        }


class FlagNotFoundError(ApiError):
    """Referenced feature flag key does not exist."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, key: str):
        super().__init__(f"Feature flag '{key}' not found")
        self.key = key


class FlagConflictError(ApiError):
    """A feature flag with this key already exists."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, key: str):
        super().__init__(f"Feature flag '{key}' already exists")
        self.key = key


class FlagValidationError(ApiError):
    """Flag data failed validation before persistence."""

    status_code = status.HTTP_400_BAD_REQUEST


class FeatureDisabledError(ApiError):
    """A hard-gated route was hit while its flag is off for the caller."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, key: str):
        super().__init__(
            f"This feature is not available. Feature flag '{key}' is disabled."
        )
        self.key = key


class CanaryUnavailableError(ApiError):
    """
    Canary path refused the request.

    Rendered in the canary shape ``{error, message, canaryStatus}`` so
    load balancers and clients can tell it apart from a real outage.
    """

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, error: str, message: str, canary_status: str):
        super().__init__(message)
        self.error = error
        self.canary_status = canary_status

    def to_dict(self) -> dict:
        return {
            "error": self.error,
            "message": self.message,
            "canaryStatus": self.canary_status,
        }
