"""HTTP error taxonomy for API Gateway proxy handlers.

Every failure that is allowed to reach a client is an :class:`HttpError`: a
single exception type tagged with an :class:`ErrorKind`, the HTTP status for
that kind, and an ordered list of :class:`ErrorDetail` items. The set of kinds
is closed; the boundary handler maps anything else to an internal server
error that carries only a reference token.

Example:
    .. code-block:: python

        from lambda_rest.exceptions import forbidden_error, not_found_error

        if not record:
            raise not_found_error(f"Portfolio '{name}' does not exist", path="name")

        # Rendered by the boundary as:
        # 404 {"errors": [{"message": "...", "type": "NotFoundError", "path": "name"}]}
"""

from typing import Any, Dict, List, Optional, Sequence, Union
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError


class ErrorKind(str, Enum):
    """The closed set of error kinds a client can receive."""

    VALIDATION = "ValidationError"
    UNAUTHORIZED = "UnauthorizedError"
    FORBIDDEN = "ForbiddenError"
    NOT_FOUND = "NotFoundError"
    METHOD_NOT_ALLOWED = "MethodNotAllowedError"
    INTERNAL_SERVER_ERROR = "InternalServerError"

    @property
    def status(self) -> int:
        return _STATUS_BY_KIND[self]


_STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.METHOD_NOT_ALLOWED: 405,
    ErrorKind.INTERNAL_SERVER_ERROR: 500,
}


class ErrorDetail(BaseModel):
    """One item of an error response body.

    Attributes:
        message (str): Human readable description of the failure.
        type (str): Machine readable failure type.
        path (str): Dotted path to the offending input, empty when not applicable.
    """

    model_config = ConfigDict(frozen=True)

    message: str = Field(description="Human readable description of the failure")
    type: str = Field(description="Machine readable failure type")
    path: str = Field(default="", description="Dotted path to the offending input")


DetailsType = Sequence[Union[ErrorDetail, Dict[str, Any]]]


class HttpError(Exception):
    """A typed failure that maps to an HTTP status code.

    Use the module level constructors (``validation_error``, ``forbidden_error``,
    ...) rather than instantiating this class directly.

    Attributes:
        kind (ErrorKind): The semantic name of the failure.
        status (int): HTTP status code sent to the client.
        details (List[ErrorDetail]): Ordered detail items for the response body.
    """

    def __init__(self, kind: ErrorKind, details: Optional[DetailsType] = None):
        self.kind = ErrorKind(kind)
        self.status = self.kind.status
        if details:
            self.details = [ErrorDetail.model_validate(d) for d in details]
        else:
            self.details = [ErrorDetail(message=self.kind.value, type=self.kind.value)]
        super().__init__(self.kind.value)

    def to_body(self) -> Dict[str, Any]:
        """Return the response body ``{"errors": [...]}`` for this error."""
        return {"errors": [d.model_dump() for d in self.details]}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(kind={self.kind.value!r}, status={self.status})"


class ResponseAlreadySentError(RuntimeError):
    """Raised when a handler sends the same response twice.

    This is a programming defect in the handler, not a client facing failure,
    and is therefore not an :class:`HttpError`.
    """


def _single(kind: ErrorKind, message: Optional[str], path: str) -> List[ErrorDetail]:
    return [ErrorDetail(message=message or kind.value, type=kind.value, path=path)]


def validation_error(details: Optional[DetailsType] = None) -> HttpError:
    """400 Bad Request, one detail item per validation failure."""
    return HttpError(ErrorKind.VALIDATION, details)


def unauthorized_error(message: Optional[str] = None, path: str = "") -> HttpError:
    """401 Unauthorized, the caller's credential is missing or invalid."""
    return HttpError(ErrorKind.UNAUTHORIZED, _single(ErrorKind.UNAUTHORIZED, message, path))


def forbidden_error(message: Optional[str] = None, path: str = "") -> HttpError:
    """403 Forbidden, the caller is known but may not perform the action."""
    return HttpError(ErrorKind.FORBIDDEN, _single(ErrorKind.FORBIDDEN, message, path))


def not_found_error(message: Optional[str] = None, path: str = "") -> HttpError:
    """404 Not Found."""
    return HttpError(ErrorKind.NOT_FOUND, _single(ErrorKind.NOT_FOUND, message, path))


def method_not_allowed_error(message: Optional[str] = None, path: str = "") -> HttpError:
    """405 Method Not Allowed, the verb has no operation on this resource."""
    return HttpError(ErrorKind.METHOD_NOT_ALLOWED, _single(ErrorKind.METHOD_NOT_ALLOWED, message, path))


def internal_server_error(reference: str) -> HttpError:
    """500 Internal Server Error.

    The single detail item embeds only the log reference token so the
    client can quote it; the real failure stays in the logs.

    Args:
        reference (str): Opaque token that identifies the logged failure.
    """
    return HttpError(
        ErrorKind.INTERNAL_SERVER_ERROR,
        [
            ErrorDetail(
                message=f"Error log reference: {reference}",
                type="Internal Server Error",
                path="",
            )
        ],
    )


def details_from_pydantic(error: PydanticValidationError) -> List[ErrorDetail]:
    """Convert pydantic violations to error detail items, keeping their order.

    Args:
        error (PydanticValidationError): The failed validation.

    Returns:
        List[ErrorDetail]: One item per violation with ``loc`` joined by dots.
    """
    return [
        ErrorDetail(
            message=e.get("msg", ""),
            type=e.get("type", ErrorKind.VALIDATION.value),
            path=".".join(str(p) for p in e.get("loc", ())),
        )
        for e in error.errors()
    ]
