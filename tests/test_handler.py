import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import jwt
import pytest

from lambda_rest.cors import CorsPolicy
from lambda_rest.exceptions import ErrorKind, HttpError, not_found_error
from lambda_rest.handler import (
    LambdaHandler,
    RestDispatcher,
    get_error_response,
    noop_process,
    resolve_operation,
)
from lambda_rest.request import Request
from lambda_rest.response import Response
from lambda_rest.security import JwtAuthorizer

SECRET = "test-secret-key-with-enough-length-for-hs256"


class Portfolios:
    """Records the operation that was dispatched."""

    def __init__(self):
        self.calls = []

    def is_single_resource(self, request):
        return bool(request.get_path_parameter("id"))

    def _record(self, name, response):
        self.calls.append(name)
        response.set_body({"operation": name}).send()

    def retrieve_single(self, request, response):
        self._record("retrieve_single", response)

    def search(self, request, response):
        self._record("search", response)

    def create(self, request, response):
        self._record("create", response)

    def update(self, request, response):
        self._record("update", response)

    def delete(self, request, response):
        self._record("delete", response)


def _event(make_event, method, single):
    return make_event(httpMethod=method, pathParameters={"id": "acme"} if single else None)


@pytest.mark.parametrize(
    "method,single,operation",
    [
        ("GET", True, "retrieve_single"),
        ("GET", False, "search"),
        ("POST", False, "create"),
        ("PUT", True, "update"),
        ("DELETE", True, "delete"),
        ("get", False, "search"),
    ],
)
def test_dispatch(make_event, method, single, operation):
    resource = Portfolios()
    response = Response()

    RestDispatcher(resource)(Request(_event(make_event, method, single)), response)

    assert resource.calls == [operation]
    assert json.loads(response.payload["body"]) == {"operation": operation}


@pytest.mark.parametrize(
    "method,single",
    [("POST", True), ("PUT", False), ("DELETE", False), ("PATCH", True), ("PATCH", False), ("HEAD", False)],
)
def test_dispatch_method_not_allowed(make_event, method, single):
    resource = Portfolios()

    with pytest.raises(HttpError) as exc:
        RestDispatcher(resource)(Request(_event(make_event, method, single)), Response())

    assert exc.value.kind == ErrorKind.METHOD_NOT_ALLOWED
    assert exc.value.status == 405
    assert resource.calls == []


def test_dispatch_missing_operation(make_event):
    class ReadOnly:
        def is_single_resource(self, request):
            return False

        def search(self, request, response):
            response.send()

    with pytest.raises(HttpError) as exc:
        RestDispatcher(ReadOnly())(Request(make_event(httpMethod="POST")), Response())

    assert exc.value.status == 405


def test_is_single_resource_queried_once(make_event):
    resource = Portfolios()
    resource.is_single_resource = MagicMock(return_value=False)

    RestDispatcher(resource)(Request(make_event(httpMethod="GET")), Response())

    resource.is_single_resource.assert_called_once()


@pytest.mark.parametrize("single", [True, False])
def test_default_preflight(make_event, single):
    dispatcher = RestDispatcher(Portfolios(), cors=CorsPolicy(allow_origins="*", max_age=60))
    response = Response()

    dispatcher(Request(_event(make_event, "OPTIONS", single)), response)

    assert response.sent is True
    assert response.payload["statusCode"] == 200
    assert response.payload["body"] == ""
    assert response.payload["headers"]["access-control-allow-origin"] == "*"
    assert response.payload["headers"]["access-control-max-age"] == "60"


def test_resource_preflight(make_event):
    resource = Portfolios()
    resource.preflight = MagicMock()

    RestDispatcher(resource)(Request(make_event(httpMethod="OPTIONS")), Response())

    resource.preflight.assert_called_once()


def test_resolve_operation():
    assert resolve_operation("options", True) == "preflight"
    with pytest.raises(HttpError):
        resolve_operation("PATCH", True)


def test_noop_process(fake_event):
    response = Response()
    noop_process(Request(fake_event), response)

    assert response.payload["statusCode"] == 200
    assert response.payload["body"] == ""


def test_get_error_response():
    payload = get_error_response(not_found_error(), "ref")
    assert payload["statusCode"] == 404
    assert json.loads(payload["body"]) == {"errors": [{"message": "NotFoundError", "type": "NotFoundError", "path": ""}]}

    payload = get_error_response(KeyError("secret detail"), "ref-1", {"x-extra": "1"})
    assert payload["statusCode"] == 500
    assert "secret detail" not in payload["body"]
    assert json.loads(payload["body"])["errors"][0]["message"] == "Error log reference: ref-1"
    assert payload["headers"]["x-extra"] == "1"


class TestLambdaHandler:
    def test_dispatches_and_returns_payload(self, make_event):
        handler = LambdaHandler(RestDispatcher(Portfolios()))

        payload = handler(make_event(httpMethod="GET", pathParameters=None))

        assert payload["statusCode"] == 200
        assert json.loads(payload["body"]) == {"operation": "search"}

    def test_sends_unsent_response(self, fake_event):
        payload = LambdaHandler(lambda request, response: response.set_status(204))(fake_event)

        assert payload["statusCode"] == 204
        assert payload["body"] == ""

    def test_sets_user(self, make_event):
        seen = {}

        def process(request, response):
            seen["user"] = request.user

        token = jwt.encode({"sub": "user-1"}, SECRET, algorithm="HS256")
        handler = LambdaHandler(process, authorizer=JwtAuthorizer(SECRET, {"id": "sub"}))

        payload = handler(make_event(headers={"Authorization": f"Bearer {token}"}))

        assert payload["statusCode"] == 200
        assert seen["user"].id == "user-1"

    def test_anonymous_is_forbidden(self, make_event):
        process = MagicMock()
        handler = LambdaHandler(process, authorizer=JwtAuthorizer(SECRET))

        payload = handler(make_event(headers={}))

        assert payload["statusCode"] == 403
        assert json.loads(payload["body"])["errors"][0]["type"] == "ForbiddenError"
        process.assert_not_called()

    def test_bad_token_is_unauthorized(self, make_event):
        process = MagicMock()
        handler = LambdaHandler(process, authorizer=JwtAuthorizer(SECRET))

        payload = handler(make_event(headers={"Authorization": "Bearer broken"}))

        assert payload["statusCode"] == 401
        process.assert_not_called()

    def test_typed_error(self, fake_event):
        def process(request, response):
            raise not_found_error("No such portfolio", path="id")

        payload = LambdaHandler(process)(fake_event)

        assert payload["statusCode"] == 404
        assert payload["headers"]["content-type"] == "application/json"
        assert json.loads(payload["body"]) == {
            "errors": [{"message": "No such portfolio", "type": "NotFoundError", "path": "id"}]
        }

    def test_unexpected_error_returns_reference(self, fake_event):
        def process(request, response):
            raise RuntimeError("database password is hunter2")

        context = SimpleNamespace(aws_request_id="req-42")
        payload = LambdaHandler(process)(fake_event, context)

        assert payload["statusCode"] == 500
        assert "hunter2" not in payload["body"]
        assert json.loads(payload["body"]) == {
            "errors": [{"message": "Error log reference: req-42", "type": "Internal Server Error", "path": ""}]
        }

    def test_unexpected_error_without_context(self, fake_event):
        def process(request, response):
            raise ValueError("boom")

        payload = LambdaHandler(process)(fake_event)

        message = json.loads(payload["body"])["errors"][0]["message"]
        assert message.startswith("Error log reference: ")
        assert len(message) > len("Error log reference: ")

    def test_invalid_event(self):
        payload = LambdaHandler(noop_process)(["not", "an", "event"])

        assert payload["statusCode"] == 400

    def test_double_send_keeps_first_response(self, fake_event):
        callback_payloads = []

        def process(request, response):
            response.set_body("first").send()
            callback_payloads.append(response.payload)
            response.send()

        payload = LambdaHandler(process)(fake_event)

        assert payload["statusCode"] == 200
        assert payload["body"] == "first"
        assert callback_payloads == [payload]

    def test_error_after_send_keeps_first_response(self, fake_event):
        def process(request, response):
            response.set_status(201).send()
            raise not_found_error()

        payload = LambdaHandler(process)(fake_event)

        assert payload["statusCode"] == 201

    def test_error_discards_partial_response(self, fake_event):
        def process(request, response):
            response.add_cookie("session", "abc").set_header("x-partial", "1")
            raise not_found_error()

        payload = LambdaHandler(process)(fake_event)

        assert payload["statusCode"] == 404
        assert "x-partial" not in payload["headers"]
        assert payload["multiValueHeaders"] == {}

    def test_cors_on_success_and_error(self, make_event):
        cors = CorsPolicy(allow_origins=["https://app.example.com"])

        ok = LambdaHandler(noop_process, cors=cors)(make_event(headers={"Origin": "https://app.example.com"}))
        assert ok["headers"]["access-control-allow-origin"] == "https://app.example.com"

        def process(request, response):
            raise not_found_error()

        failed = LambdaHandler(process, cors=cors)(make_event(headers={"Origin": "https://app.example.com"}))
        assert failed["statusCode"] == 404
        assert failed["headers"]["access-control-allow-origin"] == "https://app.example.com"

    def test_preflight_passes_authorization(self, make_event):
        cors = CorsPolicy(allow_origins="*")
        handler = LambdaHandler(
            RestDispatcher(Portfolios(), cors=cors),
            authorizer=JwtAuthorizer(SECRET),
            cors=cors,
        )

        payload = handler(make_event(httpMethod="OPTIONS", headers={"Origin": "https://app.example.com"}))

        assert payload["statusCode"] == 200
        assert payload["headers"]["access-control-allow-methods"] == "GET, POST, PUT, DELETE, OPTIONS"

    @pytest.mark.parametrize(
        "process",
        [
            lambda request, response: response.set_status(700).send(),
            lambda request, response: response.set_status(42),
        ],
    )
    def test_invalid_status_becomes_internal_error(self, fake_event, process):
        context = SimpleNamespace(aws_request_id="req-7")

        payload = LambdaHandler(process)(fake_event, context)

        assert payload is not None
        assert payload["statusCode"] == 500
        assert json.loads(payload["body"])["errors"][0]["message"] == "Error log reference: req-7"
