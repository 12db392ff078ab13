"""Tests for response classification."""

import json

import pytest

from riftcall.exceptions import (
    ApiError,
    BadRequest,
    Forbidden,
    NotFound,
    RateLimited,
    RequestError,
    ServerError,
    Unauthorized,
    UnspecifiedClientError,
    UnsupportedMedia,
)
from riftcall.services.classifier import classify, error_for, server_message


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (503, ServerError),
        (500, ServerError),
        (502, ServerError),
        (429, RateLimited),
        (415, UnsupportedMedia),
        (404, NotFound),
        (403, Forbidden),
        (401, Unauthorized),
        (400, BadRequest),
        (498, UnspecifiedClientError),
        (200, None),
        (204, None),
    ],
)
def test_classify(status, expected):
    assert classify(status) is expected


def test_rate_limited_is_server_error():
    assert issubclass(RateLimited, ServerError)
    assert not issubclass(RateLimited, RequestError)


def test_client_errors_are_request_errors():
    for error_class in (BadRequest, Unauthorized, Forbidden, NotFound, UnsupportedMedia):
        assert issubclass(error_class, RequestError)
        assert issubclass(error_class, ApiError)


class TestErrorFor:

    def test_success_has_no_error(self):
        assert error_for(200, '{"id": 1}') is None

    def test_message_and_status(self):
        error = error_for(404)
        assert isinstance(error, NotFound)
        assert error.status_code == 404
        assert error.message == "Not Found."

    def test_includes_server_message(self):
        body = json.dumps({"status": {"message": "Data not found - summoner", "status_code": 404}})
        error = error_for(404, body)
        assert "Data not found - summoner" in error.message

    def test_unspecified_code_in_message(self):
        error = error_for(498)
        assert isinstance(error, UnspecifiedClientError)
        assert error.status_code == 498
        assert "498" in error.message


class TestServerMessage:

    @pytest.mark.parametrize("body", [None, "", "not json", "[1, 2]", '{"status": "x"}'])
    def test_missing(self, body):
        assert server_message(body) is None

    def test_present(self):
        assert server_message('{"status": {"message": "Forbidden"}}') == "Forbidden"
