"""AWS API Gateway request abstraction.

This module wraps the proxy integration event that API Gateway sends to a
Lambda function. The event is validated into a :class:`ProxyEvent` snapshot
whose header, query string and path parameter keys are lower-cased once at
construction, and :class:`Request` exposes case-insensitive accessors,
body parsing, query string validation and cookie extraction on top of it.

Lookups of client supplied values prefer returning a default over raising.
The exceptions are explicit JSON body parsing and query string validation,
which raise a ``ValidationError`` (400) because the caller asked for a
structured value and the client broke that contract.

Example:
    Basic event processing::

        from lambda_rest.request import Request

        request = Request(event)

        request.get_method()                      # "GET"
        request.get_header("Content-Type")        # same as get_header("content-type")
        request.get_query_string_parameter("limit", "20")
        request.get_stage_variable("tableName")   # case sensitive

        payload = request.get_parsed_body()       # dict for JSON content types
"""

from typing import Annotated, Any, Dict, Mapping, Optional, Type, Union, TYPE_CHECKING
from types import MappingProxyType
from urllib.parse import SplitResult, unquote, urlsplit
import base64
import binascii
import copy
import json
import uuid

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    create_model,
    field_validator,
)
from pydantic import ValidationError as PydanticValidationError

from .constants import (
    HDR_CONTENT_TYPE,
    HDR_COOKIE,
    HDR_ORIGIN,
    HDR_X_CORRELATION_ID,
    JSON_MIMETYPES,
)
from .exceptions import ErrorDetail, details_from_pydantic, validation_error

if TYPE_CHECKING:
    from .security import User


QuerySchemaType = Union[Type[BaseModel], Mapping[str, Any]]

# Parameter map stored as a read-only view and dumped as a plain dict
ReadOnlyMap = Annotated[
    Dict[str, str],
    AfterValidator(MappingProxyType),
    PlainSerializer(dict, return_type=Dict[str, str]),
]


class ProxyEvent(BaseModel):
    """Normalized snapshot of an API Gateway proxy integration event.

    Header, query string and path parameter keys are lower-cased during
    validation. Stage variables keep their case: they are deployment
    configuration, not client input, and are looked up case-sensitively.
    Missing or null parameter maps become empty dictionaries.

    The snapshot is frozen and its parameter maps are read-only views, so
    it cannot change after the :class:`Request` is built.

    Attributes:
        httpMethod (str): HTTP method, upper-cased.
        resource (Optional[str]): Resource template (e.g. ``/users/{id}``).
        path (Optional[str]): Actual request path.
        headers (Dict[str, str]): Request headers with lower-case keys.
        queryStringParameters (Dict[str, str]): Query string with lower-case keys.
        pathParameters (Dict[str, str]): Path parameters with lower-case keys.
        stageVariables (Dict[str, str]): Stage variables, case preserved.
        requestContext (Dict[str, Any]): Gateway request context, passed through.
        body (Optional[str]): Raw request body text.
        isBase64Encoded (bool): Whether ``body`` is base64 encoded.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="allow")

    httpMethod: str = Field(default="", description="HTTP method for the request")
    resource: Optional[str] = Field(None, description="API resource path with parameter placeholders")
    path: Optional[str] = Field(None, description="Actual request path with resolved parameters")
    headers: ReadOnlyMap = Field(default_factory=dict, validate_default=True, description="HTTP headers, keys lower-cased")
    queryStringParameters: ReadOnlyMap = Field(default_factory=dict, validate_default=True, description="Query string, keys lower-cased")
    pathParameters: ReadOnlyMap = Field(default_factory=dict, validate_default=True, description="Path parameters, keys lower-cased")
    stageVariables: ReadOnlyMap = Field(default_factory=dict, validate_default=True, description="Stage variables, case preserved")
    requestContext: Dict[str, Any] = Field(default_factory=dict, description="API Gateway request context")
    body: Optional[str] = Field(None, description="Raw request body")
    isBase64Encoded: bool = Field(default=False, description="Whether the body is base64 encoded")

    @field_validator("headers", "queryStringParameters", "pathParameters", mode="before")
    @classmethod
    def lowercase_keys(cls, value: Any) -> Dict[str, str]:
        """Lower-case the keys of a case-insensitive parameter map.

        Null entries are dropped before lower-casing so that a ``None`` under
        one casing never hides a real value under another.
        """
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            return value
        return {str(k).lower(): str(v) for k, v in value.items() if v is not None}

    @field_validator("stageVariables", mode="before")
    @classmethod
    def stage_variables(cls, value: Any) -> Dict[str, str]:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            return value
        return {str(k): str(v) for k, v in value.items() if v is not None}

    @field_validator("requestContext", mode="before")
    @classmethod
    def request_context(cls, value: Any) -> Dict[str, Any]:
        return {} if value is None else value

    @field_validator("httpMethod", mode="before")
    @classmethod
    def uppercase_method(cls, value: Any) -> str:
        return str(value).upper() if value is not None else ""

    @field_validator("body", mode="before")
    @classmethod
    def body_text(cls, value: Any) -> Optional[str]:
        """Keep the body as text; local callers may hand in bytes or a dict."""
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, (bytes, bytearray)):
            return bytes(value).decode("utf-8", errors="replace")
        return json.dumps(value, separators=(",", ":"))


def parse_cookie_header(header: str) -> Dict[str, str]:
    """Parse a ``Cookie`` header into a name to decoded value mapping.

    Pairs without an ``=`` are skipped, the first occurrence of a name wins,
    surrounding double quotes are removed and values are percent-decoded.
    Malformed input yields an empty or partial mapping, never an error.

    Args:
        header (str): Raw cookie header value.

    Returns:
        Dict[str, str]: Parsed cookies.

    Example:
        .. code-block:: python

            parse_cookie_header("hello=world;value2=foo%20bar")
            # {"hello": "world", "value2": "foo bar"}
    """
    cookies: Dict[str, str] = {}
    if not header:
        return cookies

    for pair in header.split(";"):
        if "=" not in pair:
            continue
        name, value = pair.split("=", 1)
        name = name.strip()
        if not name or name in cookies:
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
            value = value[1:-1]
        cookies[name] = unquote(value)

    return cookies


class Request:
    """Case-insensitive view over an API Gateway proxy event.

    The constructor keeps an untouched deep copy of the event in
    :attr:`original_data` and builds the normalized :class:`ProxyEvent`
    snapshot used by every accessor.

    Args:
        event (Mapping[str, Any]): The Lambda event from API Gateway.

    Raises:
        HttpError: ``ValidationError`` if the event is not a proxy event shape.

    Attributes:
        user (Optional[User]): Identity resolved by the authorizer, set by the
            boundary handler before the request is dispatched.
    """

    def __init__(self, event: Mapping[str, Any]):
        if not isinstance(event, Mapping):
            raise validation_error(
                [ErrorDetail(message="Event is not a dictionary", type="ValidationError", path="")]
            )

        self._original_event: Dict[str, Any] = copy.deepcopy(dict(event))

        try:
            self._event = ProxyEvent.model_validate(self._original_event)
        except PydanticValidationError as e:
            raise validation_error(details_from_pydantic(e)) from e

        self._cookies: Optional[Dict[str, str]] = None
        self._correlation_id: Optional[str] = None

        self.user: Optional["User"] = None

    @property
    def event(self) -> ProxyEvent:
        """The normalized event snapshot."""
        return self._event

    @property
    def data(self) -> Dict[str, Any]:
        """Event data with the case-insensitive maps' keys lower-cased."""
        return self._event.model_dump()

    @property
    def original_data(self) -> Dict[str, Any]:
        """Raw event data as received from API Gateway."""
        return self._original_event

    @staticmethod
    def _get_value(values: Mapping[str, str], key: str, default: Any = "", lc_key: bool = True) -> Any:
        if lc_key:
            key = key.lower()
        value = values.get(key)
        return default if value is None else value

    def get_header(self, key: str, default: Any = "") -> Any:
        """Retrieve a header value, ignoring the case of ``key``.

        Args:
            key (str): Header name in any casing.
            default (Any): Returned verbatim when the header is absent.
        """
        return self._get_value(self._event.headers, key, default)

    def get_query_string_parameter(self, key: str, default: Any = "") -> Any:
        """Retrieve a query string parameter, ignoring the case of ``key``."""
        return self._get_value(self._event.queryStringParameters, key, default)

    def get_path_parameter(self, key: str, default: Any = "") -> Any:
        """Retrieve a path parameter, ignoring the case of ``key``."""
        return self._get_value(self._event.pathParameters, key, default)

    def get_stage_variable(self, key: str, default: Any = "") -> Any:
        """Retrieve a stage variable.

        Unlike the other accessors the lookup is case sensitive: ``tableName``
        and ``TABLENAME`` are different stage variables.
        """
        return self._get_value(self._event.stageVariables, key, default, lc_key=False)

    def get_method(self) -> str:
        """Return the HTTP verb of the request, upper-cased."""
        return self._event.httpMethod.upper()

    def get_content_type(self) -> str:
        return self.get_header(HDR_CONTENT_TYPE)

    def get_origin(self) -> str:
        """Return the value of the ``origin`` header or an empty string."""
        return self.get_header(HDR_ORIGIN)

    def _parse_origin(self) -> Optional[SplitResult]:
        origin = self.get_origin()
        if not origin:
            return None
        try:
            return urlsplit(origin)
        except ValueError:
            return None

    def get_origin_domain(self) -> str:
        """Return the host name of the request origin.

        Example:
            .. code-block:: python

                # origin: https://app.example.com:8080
                request.get_origin_domain()    # "app.example.com"
                request.get_origin_protocol()  # "https"
                request.get_origin_port()      # "8080"
        """
        url = self._parse_origin()
        if url is None:
            return ""
        try:
            return url.hostname or ""
        except ValueError:
            return ""

    def get_origin_protocol(self) -> str:
        """Return the scheme of the request origin without the trailing colon."""
        url = self._parse_origin()
        return url.scheme if url is not None else ""

    def get_origin_port(self) -> str:
        """Return the explicit port of the request origin as a string."""
        url = self._parse_origin()
        if url is None:
            return ""
        try:
            port = url.port
        except ValueError:
            return ""
        return str(port) if port is not None else ""

    def get_body(self) -> str:
        """Return the body text, decoding base64 encoded bodies.

        Returns:
            str: The body, or an empty string when the event has none. A body
            flagged as base64 that does not decode is returned as received.
        """
        body = self._event.body
        if body is None:
            return ""
        if self._event.isBase64Encoded:
            try:
                return base64.b64decode(body, validate=True).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError):
                return body
        return body

    def get_parsed_body(self, content_type: Optional[str] = None) -> Any:
        """Parse the body according to its media type.

        JSON media types (``application/json``, ``text/json``, ``text/x-json``
        and ``+json`` suffixes) are parsed with :meth:`get_body_as_json`.
        ``text/plain`` and any other type return the raw body text.

        Args:
            content_type (Optional[str]): Media type to use instead of the
                ``content-type`` header.

        Raises:
            HttpError: ``ValidationError`` when a JSON body is not a JSON object.
        """
        content_type = content_type or self.get_content_type()
        media_type = content_type.split(";", 1)[0].strip().lower()

        if media_type in JSON_MIMETYPES or media_type.endswith("+json"):
            return self.get_body_as_json()

        return self.get_body()

    def get_body_as_json(self) -> Dict[str, Any]:
        """Parse the body as a JSON object.

        Only objects are accepted; an empty body, malformed JSON, or a JSON
        scalar or array is rejected.

        Returns:
            Dict[str, Any]: The decoded object.

        Raises:
            HttpError: ``ValidationError`` with a single detail item.
        """
        try:
            data = json.loads(self.get_body())
        except ValueError:
            data = None

        if isinstance(data, dict):
            return data

        raise validation_error([ErrorDetail(message="Can not parse JSON string.", type="BadRequestError", path="")])

    @staticmethod
    def _compile_schema(schema: QuerySchemaType) -> Type[BaseModel]:
        if isinstance(schema, type) and issubclass(schema, BaseModel):
            return schema

        fields: Dict[str, Any] = {}
        for name, rule in schema.items():
            # A bare type is a required field, a tuple is (type, default or FieldInfo)
            fields[name.lower()] = rule if isinstance(rule, tuple) else (rule, ...)

        return create_model("QueryStringParameters", __config__=ConfigDict(extra="forbid"), **fields)

    def validate_query_string(self, schema: QuerySchemaType) -> None:
        """Validate the query string parameters against a declarative schema.

        Args:
            schema (QuerySchemaType): A pydantic model class, or a mapping of
                parameter name to pydantic field definition. Mapping schemas
                reject parameters they do not declare.

        Raises:
            HttpError: ``ValidationError`` whose details are the validator's
                violations, in the order it reported them.

        Example:
            .. code-block:: python

                request.validate_query_string({
                    "limit": (int, 20),
                    "sort": (Literal["asc", "desc"], "asc"),
                    "client": str,
                })
        """
        model = self._compile_schema(schema)
        try:
            model.model_validate(dict(self._event.queryStringParameters))
        except PydanticValidationError as e:
            raise validation_error(details_from_pydantic(e)) from e

    def get_cookies(self) -> Dict[str, str]:
        """Return the cookies sent with the request.

        The ``cookie`` header is parsed on first call and the result is kept
        for the life of the request. A missing or malformed header yields an
        empty mapping.
        """
        if self._cookies is None:
            self._cookies = parse_cookie_header(self.get_header(HDR_COOKIE).strip())
        return self._cookies

    def get_cookie(self, key: str, default: Any = "") -> Any:
        """Return a single cookie value, or ``default`` if it was not sent."""
        value = self.get_cookies().get(key)
        return default if value is None else value

    def get_correlation_id(self) -> str:
        """Return the correlation id for this request.

        Uses the ``x-correlation-id`` header when the caller supplied one,
        else the API Gateway request id, else a generated id. The value is
        stable for the life of the request.
        """
        if self._correlation_id is None:
            correlation_id = self.get_header(HDR_X_CORRELATION_ID)
            if not correlation_id:
                correlation_id = self._event.requestContext.get("requestId") or uuid.uuid4().hex
            self._correlation_id = str(correlation_id)
        return self._correlation_id
