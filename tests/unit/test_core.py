import json
import logging
import pytest
from datetime import timedelta

from bson import ObjectId

from messenger.core.errors import (
    ConflictException,
    ValidationException,
    duplicate_key_error,
    message_not_found_error,
    self_message_error,
)
from messenger.core.logging import StructuredFormatter, clear_request_context, set_request_context
from messenger.core.validators import Validator
from messenger.utils.auth import create_access_token, decode_access_token


class TestValidator:
    def test_validate_object_id(self):
        value = str(ObjectId())
        assert Validator.validate_object_id(value) == ObjectId(value)

    @pytest.mark.parametrize("value", ["", "123", None, 42])
    def test_invalid_object_id(self, value):
        with pytest.raises(ValidationException) as exc_info:
            Validator.validate_object_id(value, "message_id")
        assert exc_info.value.message == "Invalid message_id"

    @pytest.mark.parametrize(
        "limit, skip, expected",
        [
            (50, 0, (50, 0)),
            (0, 0, (1, 0)),
            (-10, -3, (1, 0)),
            (500, 10, (200, 10)),
            (None, None, (200, 0)),
        ],
    )
    def test_validate_pagination(self, limit, skip, expected):
        assert Validator.validate_pagination(limit, skip, 200) == expected

    def test_validate_string_length(self):
        assert Validator.validate_string_length("abc", "content", max_length=3) == "abc"
        with pytest.raises(ValidationException):
            Validator.validate_string_length("abcd", "content", max_length=3)


class TestErrors:
    def test_error_body_shape(self):
        body = message_not_found_error().to_dict()

        assert body["success"] is False
        assert body["error"] == "resource_not_found"
        assert body["message"] == "Message not found or unauthorized"
        assert body["status_code"] == 404

    def test_self_message_is_client_error(self):
        assert self_message_error().status_code == 400

    def test_duplicate_key_error_names_field(self):
        error = duplicate_key_error({"email": "test1@example.com"})

        assert isinstance(error, ConflictException)
        assert error.status_code == 409
        assert error.details == {"field": "email"}
        assert error.message == "email already exists"

    def test_duplicate_key_error_without_details(self):
        assert duplicate_key_error(None).message == "Duplicate entry detected"


class TestAccessToken:
    def test_round_trip(self):
        token = create_access_token({"sub": "user-1"})

        payload = decode_access_token(token)

        assert payload["sub"] == "user-1"
        assert payload["type"] == "access"

    def test_expired_token(self):
        token = create_access_token({"sub": "user-1"}, expires_delta=timedelta(seconds=-10))
        assert decode_access_token(token) is None

    def test_garbage_token(self):
        assert decode_access_token("not-a-jwt") is None


class TestStructuredFormatter:
    def test_includes_context_and_extra(self):
        set_request_context("req-1", user_id="user-1")
        try:
            record = logging.LogRecord("test", logging.INFO, __file__, 1, "hello", None, None)
            record.event_type = "queue"
            data = json.loads(StructuredFormatter().format(record))
        finally:
            clear_request_context()

        assert data["message"] == "hello"
        assert data["request_id"] == "req-1"
        assert data["user_id"] == "user-1"
        assert data["extra"]["event_type"] == "queue"
