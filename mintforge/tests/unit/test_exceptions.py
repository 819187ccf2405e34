"""
Unit tests for the MintForge exception taxonomy.
"""

import asyncio

import httpx
import pytest

from mintforge.error_types import ErrorType, ValidationReason, create_standard_error_response, is_retryable
from mintforge.exceptions import (
    CreationCancelled,
    GenerationFailure,
    LedgerFailure,
    MintForgeError,
    NotFoundFailure,
    PublishFailure,
    ValidationFailure,
    create_error_context,
    handle_exception,
)
from mintforge.utils.error_logging import log_and_raise


@pytest.mark.parametrize(
    ("error_class", "code"),
    [
        (GenerationFailure, "generation_failed"),
        (PublishFailure, "publish_failed"),
        (LedgerFailure, "ledger_failed"),
        (ValidationFailure, "validation_failed"),
        (NotFoundFailure, "not_found"),
        (CreationCancelled, "creation_cancelled"),
    ],
)
def test_codes_are_stable(error_class, code):
    assert error_class("boom").code == code


def test_reason_and_stage_recorded():
    error = ValidationFailure("bad", reason=ValidationReason.INVALID_ARCHETYPE, stage="roll_attributes")
    assert error.reason == "invalid_archetype"
    assert error.stage == "roll_attributes"
    assert error.details == {"reason": "invalid_archetype", "stage": "roll_attributes"}


def test_with_stage_returns_same_error():
    error = PublishFailure("pin failed")
    assert error.with_stage("publish_image") is error
    assert error.to_dict()["stage"] == "publish_image"


def test_to_dict_includes_context():
    context = create_error_context(owner="0xA", saga_id="saga-1", operation="create_character")
    payload = LedgerFailure("reverted", context, method="mint").to_dict()
    assert payload["code"] == "ledger_failed"
    assert payload["context"]["saga_id"] == "saga-1"
    assert payload["details"]["method"] == "mint"


def test_standard_response_marks_retryable():
    response = GenerationFailure("model down").to_response()
    assert response["error"]["type"] == "generation_failed"
    assert response["error"]["retryable"] is True
    assert create_standard_error_response(ErrorType.VALIDATION_FAILED, "bad")["error"]["retryable"] is False
    assert not is_retryable(ErrorType.NOT_FOUND)


def test_handle_exception_passes_taxonomy_through():
    error = NotFoundFailure("gone")
    assert handle_exception(error) is error


def test_handle_exception_uses_stage_default():
    converted = handle_exception(RuntimeError("socket closed"), default=PublishFailure)
    assert isinstance(converted, PublishFailure)
    assert converted.details["original_type"] == "RuntimeError"


def test_handle_exception_timeout():
    converted = handle_exception(asyncio.TimeoutError(), default=GenerationFailure)
    assert isinstance(converted, GenerationFailure)
    assert converted.details["timeout"] is True


def test_handle_exception_http_404():
    request = httpx.Request("GET", "https://signer.test/read/ownerOf")
    error = httpx.HTTPStatusError("missing", request=request, response=httpx.Response(404, request=request))
    assert isinstance(handle_exception(error), NotFoundFailure)


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (ValueError("bad"), ValidationFailure),
        (KeyError("missing"), NotFoundFailure),
        (ConnectionError("refused"), LedgerFailure),
        (RuntimeError("?"), MintForgeError),
    ],
)
def test_handle_exception_fallbacks(exc, expected):
    assert type(handle_exception(exc)) is expected


def test_log_and_raise():
    with pytest.raises(ValidationFailure) as exc_info:
        log_and_raise(
            ValidationFailure,
            "Unknown archetype",
            create_error_context(operation="create_character"),
            field="archetype",
            value="paladin",
            reason=ValidationReason.INVALID_ARCHETYPE,
        )
    assert exc_info.value.reason == "invalid_archetype"
    assert exc_info.value.field == "archetype"
