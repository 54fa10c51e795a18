"""Dispatch of API Gateway proxy events to handler operations.

This module provides the two outer layers of the package:

- :class:`RestDispatcher` routes a request to one operation of a
  :class:`RestfulResource` from the HTTP verb and whether the request targets
  a single resource or the collection.
- :class:`LambdaHandler` is the Lambda entry point. It builds the
  :class:`~lambda_rest.request.Request` and
  :class:`~lambda_rest.response.Response`, runs the authorizer, invokes the
  processor, and turns every failure into a JSON error response.

Routing table (anything else is ``405 Method Not Allowed``):

.. code-block:: text

    verb      single resource    collection
    GET       retrieve_single    search
    POST      -                  create
    PUT       update             -
    DELETE    delete             -
    OPTIONS   preflight          preflight

Example:
    .. code-block:: python

        class Portfolios:
            def is_single_resource(self, request):
                return bool(request.get_path_parameter("id"))

            def retrieve_single(self, request, response):
                response.set_body(load(request.get_path_parameter("id"))).send()

            def search(self, request, response):
                response.set_body(list_all()).send()

            def create(self, request, response): ...
            def update(self, request, response): ...
            def delete(self, request, response): ...

        handler = LambdaHandler(
            RestDispatcher(Portfolios()),
            authorizer=JwtAuthorizer(os.environ["JWT_SECRET_KEY"], {"id": "sub"}),
        )

        # Lambda entry point
        def lambda_handler(event, context):
            return handler(event, context)
"""

from typing import Any, Callable, Dict, Optional, Protocol, Tuple
import uuid

from . import log
from .cors import CorsPolicy
from .exceptions import HttpError, internal_server_error, method_not_allowed_error
from .request import Request
from .response import Response
from .security import AllowAllAuthorizer, Authorizer

Operation = Callable[[Request, Response], Any]

# (verb, is_single_resource) -> operation name
OPERATION_ROUTES: Dict[Tuple[str, bool], str] = {
    ("GET", True): "retrieve_single",
    ("GET", False): "search",
    ("POST", False): "create",
    ("PUT", True): "update",
    ("DELETE", True): "delete",
    ("OPTIONS", True): "preflight",
    ("OPTIONS", False): "preflight",
}


class RestfulResource(Protocol):
    """Capabilities a REST resource offers to :class:`RestDispatcher`.

    A resource may also define ``preflight(request, response)``; without it
    the dispatcher answers ``OPTIONS`` with an empty 200.
    """

    def is_single_resource(self, request: Request) -> bool:
        """True when the request targets one record rather than the collection."""
        ...

    def retrieve_single(self, request: Request, response: Response) -> Any: ...

    def search(self, request: Request, response: Response) -> Any: ...

    def create(self, request: Request, response: Response) -> Any: ...

    def update(self, request: Request, response: Response) -> Any: ...

    def delete(self, request: Request, response: Response) -> Any: ...


def resolve_operation(method: str, is_single_resource: bool) -> str:
    """Return the operation name for a verb and routing axis.

    Raises:
        HttpError: ``MethodNotAllowedError`` for an unmapped combination.
    """
    operation = OPERATION_ROUTES.get((method.upper(), bool(is_single_resource)))
    if operation is None:
        raise method_not_allowed_error()
    return operation


def noop_process(request: Request, response: Response) -> None:
    """Send an empty 200 response.

    Useful as a placeholder processor or for answering ``OPTIONS`` requests.
    """
    response.send()


class RestDispatcher:
    """Processor that routes requests to the operations of a REST resource.

    Args:
        resource (RestfulResource): The resource implementation.
        cors (Optional[CorsPolicy]): When set, the default preflight answer
            carries the policy's preflight headers.
    """

    def __init__(self, resource: RestfulResource, cors: Optional[CorsPolicy] = None):
        self.resource = resource
        self.cors = cors

    def get_operation(self, request: Request) -> Operation:
        """Select the operation that handles ``request``.

        Raises:
            HttpError: ``MethodNotAllowedError`` when the verb is not routed
                for this request or the resource lacks the operation.
        """
        is_single = self.resource.is_single_resource(request)
        name = resolve_operation(request.get_method(), is_single)

        operation = getattr(self.resource, name, None)
        if operation is None and name == "preflight":
            operation = self.preflight
        if operation is None:
            raise method_not_allowed_error()

        log.debug(
            "Dispatching request",
            extra={"method": request.get_method(), "single": is_single, "operation": name},
        )
        return operation

    def preflight(self, request: Request, response: Response) -> None:
        """Default ``OPTIONS`` answer: an empty 200 with the CORS preflight headers."""
        if self.cors is not None:
            self.cors.apply(request, response, preflight=True)
        response.send()

    def __call__(self, request: Request, response: Response) -> Any:
        return self.get_operation(request)(request, response)


def get_reference(context: Optional[Any] = None) -> str:
    """Return the token that ties a client error body to the logs.

    The Lambda request id is used when available because it already
    appears on every CloudWatch log line of the invocation.
    """
    request_id = getattr(context, "aws_request_id", None)
    return str(request_id) if request_id else uuid.uuid4().hex


def to_http_error(error: BaseException, reference: str) -> HttpError:
    """Map any failure onto the error taxonomy.

    Typed errors pass through; everything else becomes an
    ``InternalServerError`` that carries only ``reference``.
    """
    if isinstance(error, HttpError):
        return error
    return internal_server_error(reference)


def get_error_response(
    error: BaseException, reference: str, headers: Optional[Dict[str, str]] = None
) -> Dict[str, Any]:
    """Return the proxy payload for a failure.

    Args:
        error (BaseException): The failure to render.
        reference (str): Log reference for unexpected failures.
        headers (Optional[Dict[str, str]]): Extra headers, CORS for instance.

    Returns:
        Dict[str, Any]: ``{"statusCode": ..., "body": '{"errors": [...]}', ...}``
    """
    response = Response()
    for name, value in (headers or {}).items():
        response.set_header(name, value)
    return response.send_error(to_http_error(error, reference))


class LambdaHandler:
    """AWS Lambda entry point for API Gateway proxy integration.

    **Request Processing Flow:**

    1. **Event Validation**: wraps the event in a :class:`Request`
    2. **CORS**: writes the policy's headers on the response
    3. **Authentication**: ``authorizer.authenticate`` sets ``request.user``
    4. **Processing**: calls ``process(request, response)``
    5. **Sending**: sends the response if the processor did not

    The handler never raises. Typed errors are rendered with their status,
    any other failure becomes a 500 whose body holds only a log reference.

    Args:
        process (Operation): Called with the request and response, for
            example a :class:`RestDispatcher` or :func:`noop_process`.
        authorizer (Optional[Authorizer]): Defaults to :class:`AllowAllAuthorizer`.
        cors (Optional[CorsPolicy]): CORS headers added to every response.
    """

    def __init__(
        self,
        process: Operation,
        authorizer: Optional[Authorizer] = None,
        cors: Optional[CorsPolicy] = None,
    ):
        self.process = process
        self.authorizer = authorizer or AllowAllAuthorizer()
        self.cors = cors

    def __call__(self, event: Any, context: Optional[Any] = None) -> Dict[str, Any]:
        response = Response()
        request: Optional[Request] = None

        try:
            request = Request(event)

            correlation_id = request.get_correlation_id()
            log.info(
                "Processing request",
                extra={
                    "method": request.get_method(),
                    "path": request.event.path,
                    "correlation_id": correlation_id,
                },
            )

            if self.cors is not None:
                self.cors.apply(request, response)

            request.user = self.authorizer.authenticate(request)

            self.process(request, response)

            if not response.sent:
                response.send()

        except HttpError as e:
            log.warning(
                "Request failed",
                extra={"kind": e.kind.value, "status": e.status, "details": [d.model_dump() for d in e.details]},
            )
            return self._error_payload(request, response, e, get_reference(context))

        except Exception as e:
            reference = get_reference(context)
            log.exception("Unexpected error while processing request", extra={"reference": reference})
            return self._error_payload(request, response, e, reference)

        log.info("Request complete", extra={"status": response.status})
        return response.payload

    def _error_payload(
        self, request: Optional[Request], response: Response, error: BaseException, reference: str
    ) -> Dict[str, Any]:
        if response.sent and response.payload is not None:
            # The client already has its one response; the failure is only logged
            log.error("Error raised after the response was sent", extra={"reference": reference})
            return response.payload

        headers: Dict[str, str] = {}
        if self.cors is not None and request is not None:
            headers = self.cors.headers_for(request)
        return get_error_response(error, reference, headers)
