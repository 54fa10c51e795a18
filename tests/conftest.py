import copy
import json

import pytest

FAKE_EVENT = {
    "resource": "/portfolios/{id}",
    "path": "/portfolios/acme",
    "httpMethod": "GET",
    "headers": {
        "UPPER": "CASE",
        "lower": "case",
        "miXed": "cAsE",
        "Content-Type": "application/json",
        "Origin": "https://app.example.com:8443",
        "Cookie": 'hello=world; value2="foo%20bar"; hello=ignored; broken',
    },
    "queryStringParameters": {"key1": "value", "HeLLo": "world", "FOO": "BAR"},
    "pathParameters": {"Id": "acme"},
    "stageVariables": {"key1": "value", "HeLLo": "world", "FOO": "BAR"},
    "requestContext": {"requestId": "c6af9ac6-7b61-11e6-9a41-93e8deadbeef", "stage": "prod"},
    "body": json.dumps({"test": "body", "nested": {"value": 1}}),
    "isBase64Encoded": False,
}


@pytest.fixture
def fake_event():
    """A fresh API Gateway proxy event per test."""
    return copy.deepcopy(FAKE_EVENT)


@pytest.fixture
def make_event(fake_event):
    """Return a builder that overrides top-level event fields."""

    def _make(**overrides):
        event = copy.deepcopy(fake_event)
        event.update(overrides)
        return event

    return _make
