"""Tests for generation_service (provider call + outcome classification)."""

from unittest.mock import patch

import pytest
import requests

from app.errors import (
    GenerationFailedError,
    GenerationRejectedError,
    ProviderAtCapacityError,
)
from app.services import generation_service
from app.services.generation_service import GeneratedImage, strip_data_uri, to_data_uri
from tests.conftest import GENERATED_B64, SAMPLE_IMAGE, fake_response, gemini_image_reply


class TestDataUri:

    def test_strip_data_uri_prefix(self):
        assert strip_data_uri("data:image/jpeg;base64,AAAA") == "AAAA"
        assert strip_data_uri("data:image/webp;base64,BBBB") == "BBBB"

    def test_raw_base64_unchanged(self):
        assert strip_data_uri("AAAA") == "AAAA"

    def test_to_data_uri_uses_mime_type(self):
        assert to_data_uri(GeneratedImage("QUJD", "image/jpeg")) == "data:image/jpeg;base64,QUJD"


@patch("app.services.generation_service.requests.post")
class TestGenerateImage:

    def test_returns_first_inline_image(self, mock_post, app_ctx):
        mock_post.return_value = fake_response(200, gemini_image_reply())

        result = generation_service.generate_image(SAMPLE_IMAGE, "Executive")

        assert result == GeneratedImage(GENERATED_B64, "image/png")

    def test_request_shape(self, mock_post, app_ctx):
        mock_post.return_value = fake_response(200, gemini_image_reply())

        generation_service.generate_image(SAMPLE_IMAGE, "Lord")

        url = mock_post.call_args.args[0]
        kwargs = mock_post.call_args.kwargs
        assert url.endswith("/gemini-2.5-flash-image:generateContent")
        assert kwargs["headers"]["x-goog-api-key"] == "google_test_fake"
        assert kwargs["timeout"] == 60
        parts = kwargs["json"]["contents"][0]["parts"]
        assert "aristocrat" in parts[0]["text"]
        assert parts[1]["inline_data"]["data"] == SAMPLE_IMAGE.split(",", 1)[1]

    def test_snake_case_inline_data_accepted(self, mock_post, app_ctx):
        mock_post.return_value = fake_response(200, {"candidates": [{
            "content": {"parts": [{"inline_data": {"mime_type": "image/jpeg", "data": "QUJD"}}]},
            "finishReason": "STOP",
        }]})

        result = generation_service.generate_image(SAMPLE_IMAGE, "Urban")

        assert result == GeneratedImage("QUJD", "image/jpeg")

    def test_blocked_prompt_is_rejection(self, mock_post, app_ctx):
        mock_post.return_value = fake_response(200, {"promptFeedback": {"blockReason": "SAFETY"}})

        with pytest.raises(GenerationRejectedError) as exc:
            generation_service.generate_image(SAMPLE_IMAGE, "Executive")

        assert exc.value.reason == "SAFETY"
        assert "safety filter" in str(exc.value)

    def test_non_stop_finish_is_rejection(self, mock_post, app_ctx):
        mock_post.return_value = fake_response(200, {"candidates": [{
            "content": {"parts": []},
            "finishReason": "IMAGE_SAFETY",
        }]})

        with pytest.raises(GenerationRejectedError) as exc:
            generation_service.generate_image(SAMPLE_IMAGE, "Executive")

        assert exc.value.reason == "IMAGE_SAFETY"

    def test_text_only_reply_is_rejection(self, mock_post, app_ctx):
        mock_post.return_value = fake_response(200, {"candidates": [{
            "content": {"parts": [{"text": "I can't do that."}]},
            "finishReason": "STOP",
        }]})

        with pytest.raises(GenerationRejectedError) as exc:
            generation_service.generate_image(SAMPLE_IMAGE, "Executive")

        assert exc.value.reason == "NO_IMAGE"

    def test_no_candidates_is_rejection(self, mock_post, app_ctx):
        mock_post.return_value = fake_response(200, {"candidates": []})

        with pytest.raises(GenerationRejectedError):
            generation_service.generate_image(SAMPLE_IMAGE, "Executive")

    def test_non_json_success_body_is_rejection(self, mock_post, app_ctx):
        mock_post.return_value = fake_response(200, None, text="<html>")

        with pytest.raises(GenerationRejectedError):
            generation_service.generate_image(SAMPLE_IMAGE, "Executive")

    def test_429_is_capacity_with_configured_retry(self, mock_post, app_ctx):
        mock_post.return_value = fake_response(429, {"error": {
            "code": 429, "status": "RESOURCE_EXHAUSTED", "message": "Resource has been exhausted",
        }})

        with pytest.raises(ProviderAtCapacityError) as exc:
            generation_service.generate_image(SAMPLE_IMAGE, "Executive")

        assert exc.value.retry_after == 60

    def test_retry_after_header_wins(self, mock_post, app_ctx):
        mock_post.return_value = fake_response(
            503, {"error": {"status": "UNAVAILABLE", "message": "The model is overloaded."}},
            headers={"Retry-After": "17"},
        )

        with pytest.raises(ProviderAtCapacityError) as exc:
            generation_service.generate_image(SAMPLE_IMAGE, "Executive")

        assert exc.value.retry_after == 17

    def test_retry_delay_detail_used(self, mock_post, app_ctx):
        mock_post.return_value = fake_response(429, {"error": {
            "status": "RESOURCE_EXHAUSTED",
            "message": "Quota exceeded",
            "details": [{"@type": "type.googleapis.com/google.rpc.RetryInfo", "retryDelay": "33s"}],
        }})

        with pytest.raises(ProviderAtCapacityError) as exc:
            generation_service.generate_image(SAMPLE_IMAGE, "Executive")

        assert exc.value.retry_after == 33

    def test_quota_message_on_other_status_is_capacity(self, mock_post, app_ctx):
        mock_post.return_value = fake_response(400, {"error": {
            "status": "FAILED_PRECONDITION", "message": "You exceeded your current quota",
        }})

        with pytest.raises(ProviderAtCapacityError):
            generation_service.generate_image(SAMPLE_IMAGE, "Executive")

    def test_timeout_is_capacity(self, mock_post, app_ctx):
        mock_post.side_effect = requests.exceptions.Timeout("read timed out")

        with pytest.raises(ProviderAtCapacityError):
            generation_service.generate_image(SAMPLE_IMAGE, "Executive")

    def test_connection_error_is_failure(self, mock_post, app_ctx):
        mock_post.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(GenerationFailedError):
            generation_service.generate_image(SAMPLE_IMAGE, "Executive")

    def test_server_error_is_failure(self, mock_post, app_ctx):
        mock_post.return_value = fake_response(500, {"error": {
            "code": 500, "status": "INTERNAL", "message": "Internal error encountered.",
        }})

        with pytest.raises(GenerationFailedError):
            generation_service.generate_image(SAMPLE_IMAGE, "Executive")

    def test_string_error_body_is_failure(self, mock_post, app_ctx):
        mock_post.return_value = fake_response(400, {"error": "bad request"})

        with pytest.raises(GenerationFailedError) as exc:
            generation_service.generate_image(SAMPLE_IMAGE, "Executive")

        assert "bad request" in str(exc.value)

    def test_non_object_error_body_is_failure(self, mock_post, app_ctx):
        mock_post.return_value = fake_response(400, ["unexpected", "shape"])

        with pytest.raises(GenerationFailedError):
            generation_service.generate_image(SAMPLE_IMAGE, "Executive")

    def test_list_success_body_is_rejection(self, mock_post, app_ctx):
        mock_post.return_value = fake_response(200, [gemini_image_reply()])

        with pytest.raises(GenerationRejectedError) as exc:
            generation_service.generate_image(SAMPLE_IMAGE, "Executive")

        assert exc.value.reason == "NO_IMAGE"

    def test_malformed_candidate_is_rejection(self, mock_post, app_ctx):
        mock_post.return_value = fake_response(200, {"candidates": ["not-an-object"]})

        with pytest.raises(GenerationRejectedError) as exc:
            generation_service.generate_image(SAMPLE_IMAGE, "Executive")

        assert exc.value.reason == "NO_IMAGE"
