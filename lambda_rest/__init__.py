"""Lambda REST Package.

The lambda_rest package wraps AWS API Gateway proxy integration events for
Lambda handlers. It gives handler code a normalized view of the inbound
request, a builder for the outbound response, a closed set of HTTP errors,
JWT based authorization, and a dispatcher that routes REST verbs to resource
operations.

Key Components:
    - **Request**: case-insensitive headers, query and path parameters, JSON
      bodies, cookies and origin parsing
    - **Response**: status, headers, cookies, redirects and a single send
    - **Errors**: ``HttpError`` tagged with one of six kinds and rendered as
      ``{"errors": [{"message", "type", "path"}]}``
    - **Security**: ``JwtAuthorizer`` for ``Authorization: Bearer`` tokens
    - **Dispatch**: ``RestDispatcher`` and the ``LambdaHandler`` entry point
    - **Proxy**: ``ProxyHandler`` relays requests to an upstream HTTP service

Architecture:

    .. code-block:: text

        API Gateway → LambdaHandler → Authorizer.authenticate
                                    → RestDispatcher → resource operation
                                    → Response.send → proxy payload

Modules:
    - **request.py**: ProxyEvent model and the Request view
    - **response.py**: ProxyResponse model, cookies and the Response builder
    - **exceptions.py**: HttpError, ErrorKind and error constructors
    - **security.py**: User, Authorizer, JwtAuthorizer
    - **handler.py**: RestDispatcher, LambdaHandler, noop_process
    - **cors.py**: CorsPolicy
    - **proxy.py**: ProxyHandler, ProxyError
    - **arn.py**: AmazonResourceName, SQSQueueARN
    - **constants.py**: header names and environment configuration
    - **log.py**: the package logger

Usage Examples:

    .. code-block:: python

        from lambda_rest import JwtAuthorizer, LambdaHandler, RestDispatcher

        handler = LambdaHandler(
            RestDispatcher(Portfolios()),
            authorizer=JwtAuthorizer(os.environ["JWT_SECRET_KEY"], {"id": "sub"}),
        )

        def lambda_handler(event, context):
            return handler(event, context)

Dependencies:
    - pydantic: Event, response and error models
    - PyJWT: Bearer token verification
    - aws-lambda-powertools: Structured logging
    - httpx: Upstream calls made by ProxyHandler
"""

__version__ = "0.1.0"

from .arn import AmazonResourceName, SQSQueueARN
from .cors import CorsPolicy
from .exceptions import (
    ErrorDetail,
    ErrorKind,
    HttpError,
    ResponseAlreadySentError,
    forbidden_error,
    internal_server_error,
    method_not_allowed_error,
    not_found_error,
    unauthorized_error,
    validation_error,
)
from .handler import (
    LambdaHandler,
    RestDispatcher,
    RestfulResource,
    get_error_response,
    noop_process,
)
from .proxy import ProxyError, ProxyHandler
from .request import ProxyEvent, Request
from .response import CookieOptions, ProxyResponse, Response
from .security import AllowAllAuthorizer, Authorizer, JwtAuthorizer, User

__all__ = [
    "__version__",
    "AmazonResourceName",
    "SQSQueueARN",
    "CorsPolicy",
    "ErrorDetail",
    "ErrorKind",
    "HttpError",
    "ResponseAlreadySentError",
    "forbidden_error",
    "internal_server_error",
    "method_not_allowed_error",
    "not_found_error",
    "unauthorized_error",
    "validation_error",
    "LambdaHandler",
    "RestDispatcher",
    "RestfulResource",
    "get_error_response",
    "noop_process",
    "ProxyError",
    "ProxyHandler",
    "ProxyEvent",
    "Request",
    "CookieOptions",
    "ProxyResponse",
    "Response",
    "AllowAllAuthorizer",
    "Authorizer",
    "JwtAuthorizer",
    "User",
]
