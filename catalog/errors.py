"""
Error types for the catalog client.

Nothing here is fatal: loaders turn gateway failures into an empty state,
realtime listeners are isolated, and admin mutations surface a message the
admin can act on.
"""

from typing import Optional


class CatalogError(Exception):
    """Base class for all catalog errors."""


class OfflineError(CatalogError):
    """Raised when an operation is attempted without network connectivity."""

    def __init__(self, message: str = "لا يوجد اتصال بالإنترنت"):
        super().__init__(message)


class GatewayError(CatalogError):
    """A backend call failed (query error, missing table, transport error)."""

    def __init__(
        self,
        operation: str,
        message: str,
        cause: Optional[BaseException] = None,
        code: Optional[str] = None,
    ):
        super().__init__(f"{operation}: {message}")
        self.operation = operation
        self.cause = cause
        self.code = code  # backend error code, e.g. "23505" for unique violations


class GatewayTimeoutError(GatewayError):
    """A backend call did not complete within the configured timeout."""


class MutationError(CatalogError):
    """An insert/update/delete issued by an admin action failed."""

    def __init__(
        self,
        user_message: str,
        retryable: bool = True,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(user_message)
        self.user_message = user_message
        self.retryable = retryable
        self.cause = cause


class DuplicateSlugError(MutationError):
    """The category slug collided with an existing one, even after a retry."""

    def __init__(self, slug: str, cause: Optional[BaseException] = None):
        super().__init__(
            f"الاسم المختصر '{slug}' مستخدم بالفعل، يرجى تغيير اسم الفئة",
            retryable=True,
            cause=cause,
        )
        self.slug = slug
