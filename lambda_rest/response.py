"""Response builder for AWS API Gateway proxy integration.

A :class:`Response` accumulates the status, headers, cookies and body of a
reply and emits it exactly once, as a :class:`ProxyResponse` payload, through
an optional callback. Sending twice is a defect in the calling handler and
raises :class:`~lambda_rest.exceptions.ResponseAlreadySentError`.

Example:
    .. code-block:: python

        response = Response()
        response.set_max_age(60).add_cookie("session", token, max_age=3600)
        response.set_body({"id": 123})
        payload = response.send()

        # {
        #     "statusCode": 200,
        #     "headers": {"cache-control": "max-age=60"},
        #     "multiValueHeaders": {"set-cookie": ["session=...; path=/; expires=...; Secure; HttpOnly"]},
        #     "body": '{"id":123}',
        #     "isBase64Encoded": False
        # }
"""

from typing import Any, Callable, Dict, List, Optional, Union
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from enum import Enum
from urllib.parse import quote
import json

from pydantic import BaseModel, ConfigDict, Field, field_validator

from . import log
from .constants import (
    HDR_CACHE_CONTROL,
    HDR_CONTENT_TYPE,
    HDR_LOCATION,
    HDR_SET_COOKIE,
    MIMETYPE_JSON,
)
from .exceptions import HttpError, ResponseAlreadySentError


class HttpStatus(int, Enum):
    """HTTP status codes used by the package."""

    # Success
    OK = 200
    CREATED = 201
    NO_CONTENT = 204

    # Redirection
    FOUND = 302

    # Client Error
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405

    # Server Error
    INTERNAL_SERVER_ERROR = 500


class CookieOptions(BaseModel):
    """Attributes of a ``Set-Cookie`` header.

    Both snake_case and the camelCase aliases (``maxAge``, ``httpOnly``) are
    accepted.

    Attributes:
        domain (Optional[str]): Cookie domain, omitted when not set.
        path (str): Cookie path, defaults to ``/``.
        expires (Optional[Union[str, datetime]]): Expiry as an HTTP date string
            or a datetime (naive datetimes are taken as UTC).
        max_age (Optional[int]): Lifetime in seconds, converted to an absolute
            ``expires`` when ``expires`` is not given.
        secure (bool): Add the ``Secure`` flag, defaults to True.
        http_only (bool): Add the ``HttpOnly`` flag, defaults to True.
    """

    model_config = ConfigDict(populate_by_name=True)

    domain: Optional[str] = Field(None, description="Domain the cookie applies to")
    path: str = Field("/", description="Path the cookie applies to")
    expires: Optional[Union[datetime, str]] = Field(None, description="Absolute expiry date")
    max_age: Optional[int] = Field(None, alias="maxAge", description="Lifetime in seconds")
    secure: bool = Field(True, description="Only send the cookie over HTTPS")
    http_only: bool = Field(True, alias="httpOnly", description="Hide the cookie from client scripts")


# Characters encodeURIComponent leaves untouched besides alphanumerics and -_.
_COOKIE_SAFE_CHARS = "!'()*~"


def _http_date(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


def serialize_cookie(name: str, value: str, options: Optional[CookieOptions] = None) -> str:
    """Build a ``Set-Cookie`` header value.

    Attributes are always written in the order
    ``name=value; [domain=...;] path=...; [expires=...;] [Secure;] [HttpOnly]``.
    The value is percent-encoded the same way browsers' ``encodeURIComponent``
    does, which :func:`~lambda_rest.request.parse_cookie_header` reverses.

    Args:
        name (str): Cookie name.
        value (str): Cookie value.
        options (Optional[CookieOptions]): Cookie attributes, defaults apply when omitted.

    Returns:
        str: The header value.

    Example:
        .. code-block:: python

            serialize_cookie("key", "value")
            # "key=value; path=/; Secure; HttpOnly"

            serialize_cookie("key", "value", CookieOptions(secure=False, http_only=False))
            # "key=value; path=/"
    """
    options = options or CookieOptions()

    parts = [f"{name}={quote(str(value), safe=_COOKIE_SAFE_CHARS)}"]

    if options.domain:
        parts.append(f"domain={options.domain}")

    parts.append(f"path={options.path}")

    expires = options.expires
    if expires is None and options.max_age is not None:
        expires = datetime.now(timezone.utc) + timedelta(seconds=options.max_age)

    if isinstance(expires, datetime):
        parts.append(f"expires={_http_date(expires)}")
    elif expires:
        parts.append(f"expires={expires}")

    if options.secure:
        parts.append("Secure")

    if options.http_only:
        parts.append("HttpOnly")

    return "; ".join(parts)


class ProxyResponse(BaseModel):
    """AWS API Gateway Lambda proxy integration response model.

    Ensures the payload handed back to API Gateway has the exact proxy
    integration shape. Cookies travel in ``multiValueHeaders`` so several
    ``set-cookie`` occurrences reach the client intact.

    .. code-block:: python

        {
            "statusCode": 200,
            "headers": {"content-type": "application/json"},
            "multiValueHeaders": {
                "set-cookie": ["session=abc123; path=/; Secure; HttpOnly", "csrf=xyz789; path=/; Secure"]
            },
            "body": '{"message":"Success"}',
            "isBase64Encoded": False
        }

    Attributes:
        statusCode (int): HTTP status code.
        headers (Dict[str, str]): Single-value headers.
        multiValueHeaders (Dict[str, List[str]]): Multi-value headers.
        body (str): Response body text, empty when there is none.
        isBase64Encoded (bool): Whether the body is base64 encoded.
    """

    statusCode: int = Field(..., description="HTTP status code required by AWS API Gateway")
    headers: Dict[str, str] = Field(default_factory=dict, description="Single-value HTTP headers")
    multiValueHeaders: Dict[str, List[str]] = Field(default_factory=dict, description="Multi-value HTTP headers")
    body: str = Field(default="", description="Response body content as string")
    isBase64Encoded: bool = Field(default=False, description="Whether body content is base64 encoded")

    @field_validator("statusCode", mode="before")
    @classmethod
    def validate_status_code(cls, v):
        """Validate that status code is a valid HTTP status code."""
        if not isinstance(v, int) or v < 100 or v > 599:
            raise ValueError(f"Invalid HTTP status code: {v}. Must be between 100-599")
        return int(v)

    @field_validator("body", mode="before")
    @classmethod
    def validate_body_is_string(cls, v):
        """Ensure body is always a string for AWS API Gateway compatibility."""
        if v is None:
            return ""
        if not isinstance(v, str):
            raise ValueError("Body must be a string for AWS API Gateway compatibility")
        return v


EmitCallback = Callable[[Dict[str, Any]], Any]


class Response:
    """Mutable builder for the single reply to an API Gateway invocation.

    Args:
        callback (Optional[EmitCallback]): Called once with the proxy payload
            when the response is sent.

    Attributes:
        status (int): HTTP status code, 200 until changed.
        headers (Dict[str, str]): Single-value headers with lower-case names.
            ``set-cookie`` holds the most recently added cookie.
        multi_value_headers (Dict[str, List[str]]): Every ``set-cookie`` value,
            in the order the cookies were added.
        body (Optional[str]): Body text, ``None`` when empty.
        is_base64_encoded (bool): Whether ``body`` holds base64 encoded bytes.
        sent (bool): True once :meth:`send` has run.
        payload (Optional[Dict[str, Any]]): The emitted payload once sent.
    """

    def __init__(self, callback: Optional[EmitCallback] = None):
        self.callback = callback
        self.status: int = HttpStatus.OK.value
        self.headers: Dict[str, str] = {}
        self.multi_value_headers: Dict[str, List[str]] = {}
        self.body: Optional[str] = None
        self.sent: bool = False
        self.is_base64_encoded: bool = False
        self.payload: Optional[Dict[str, Any]] = None

    def set_status(self, status: int) -> "Response":
        self.status = int(status)
        return self

    def set_header(self, name: str, value: Any) -> "Response":
        self.headers[name.lower()] = str(value)
        return self

    def set_body(self, value: Any) -> "Response":
        """Set the body, converting non-string values to text.

        ``None`` clears the body. Strings are kept as given, bytes are decoded
        as UTF-8, dicts, lists and booleans become compact JSON, pydantic
        models are dumped to JSON, and other values use ``str()``. The base64 flag is
        cleared.

        Example:
            .. code-block:: python

                response.set_body({"hello": "world"}).body  # '{"hello":"world"}'
                response.set_body(["a", "b", "c"]).body     # '["a","b","c"]'
                response.set_body(1234).body                # '1234'
        """
        self.is_base64_encoded = False
        if value is None:
            self.body = None
        elif isinstance(value, str):
            self.body = value
        elif isinstance(value, (bytes, bytearray)):
            self.body = bytes(value).decode("utf-8", errors="replace")
        elif isinstance(value, BaseModel):
            self.body = value.model_dump_json(by_alias=True)
        elif isinstance(value, (dict, list, tuple, bool)):
            self.body = json.dumps(value, separators=(",", ":"), default=str)
        else:
            self.body = str(value)
        return self

    def add_cookie(self, name: str, value: str, options: Optional[Union[CookieOptions, Dict[str, Any]]] = None, **kwargs) -> "Response":
        """Add a ``set-cookie`` header occurrence.

        Each call appends a new cookie; earlier cookies are never overwritten.

        Args:
            name (str): Cookie name.
            value (str): Cookie value.
            options (Optional[Union[CookieOptions, Dict[str, Any]]]): Cookie attributes.
            **kwargs: Cookie attributes given as keywords instead of ``options``.

        Returns:
            Response: Self for method chaining; ``headers["set-cookie"]`` holds
            the cookie just added.

        Example:
            .. code-block:: python

                response.add_cookie("key", "value").headers["set-cookie"]
                # "key=value; path=/; Secure; HttpOnly"

                response.add_cookie("key", "value", secure=False, http_only=False)
                # "key=value; path=/"
        """
        if options is None:
            options = CookieOptions.model_validate(kwargs)
        elif not isinstance(options, CookieOptions):
            options = CookieOptions.model_validate({**options, **kwargs})

        return self.append_set_cookie(serialize_cookie(name, value, options))

    def append_set_cookie(self, cookie: str) -> "Response":
        """Add an already serialized ``set-cookie`` value, a relayed upstream cookie for instance."""
        self.headers[HDR_SET_COOKIE] = cookie
        self.multi_value_headers.setdefault(HDR_SET_COOKIE, []).append(cookie)
        return self

    def set_max_age(self, seconds: int) -> "Response":
        """Set ``cache-control``: ``max-age=<seconds>`` when positive, else ``no-cache``."""
        seconds = int(seconds)
        if seconds > 0:
            self.headers[HDR_CACHE_CONTROL] = f"max-age={seconds}"
        else:
            self.headers[HDR_CACHE_CONTROL] = "no-cache"
        return self

    def redirect(self, url: str) -> Dict[str, Any]:
        """Send a 302 redirect to ``url`` with an empty body."""
        self.status = HttpStatus.FOUND.value
        self.headers[HDR_LOCATION] = url
        self.body = None
        return self.send()

    def to_proxy(self) -> ProxyResponse:
        """Assemble the outbound proxy response from the current state."""
        headers = {k: v for k, v in self.headers.items() if k != HDR_SET_COOKIE}
        multi_value_headers = {k: list(v) for k, v in self.multi_value_headers.items()}
        return ProxyResponse(
            statusCode=self.status,
            headers=headers,
            multiValueHeaders=multi_value_headers,
            body=self.body,
            isBase64Encoded=self.is_base64_encoded,
        )

    def send(self) -> Dict[str, Any]:
        """Emit the response. May only be called once.

        Returns:
            Dict[str, Any]: The proxy payload passed to the callback.

        Raises:
            ResponseAlreadySentError: If the response was already sent.
        """
        if self.sent:
            log.error("Response already sent", extra={"status": self.status})
            raise ResponseAlreadySentError("Response has already been sent")

        # An invalid status fails here and leaves the response unsent
        payload = self.to_proxy().model_dump()

        self.sent = True
        self.payload = payload

        if self.callback is not None:
            self.callback(self.payload)

        return self.payload

    def send_error(self, error: HttpError) -> Dict[str, Any]:
        """Render an :class:`HttpError` as a JSON error body and send it."""
        self.status = error.status
        self.headers[HDR_CONTENT_TYPE] = MIMETYPE_JSON
        self.set_body(error.to_body())
        return self.send()
