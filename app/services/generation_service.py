"""Generation service — calls the image model and classifies its answer.

Responsible for:
- Stripping data-URI prefixes from uploaded images
- Calling Gemini generateContent (REST) with the style prompt + photo
- Turning every non-image outcome into a ProviderError subclass:
    ProviderAtCapacityError   quota / rate limit / overload / timeout (503, retriable)
    GenerationRejectedError   safety block, non-STOP finish, no image in reply
    GenerationFailedError     anything else

Nothing here touches the ledger. A ProviderError always means "no debit".
"""

import logging
import re
from collections import namedtuple

import requests
from flask import current_app

from app.errors import (
    GenerationFailedError,
    GenerationRejectedError,
    ProviderAtCapacityError,
)
from app.styles import get_prompt

logger = logging.getLogger(__name__)

DATA_URI_RE = re.compile(r"^data:image/[\w.+-]+;base64,")
CAPACITY_MESSAGE_RE = re.compile(
    r"quota|rate[\s_-]?limit|resource[\s_-]?exhausted|too many requests|overloaded",
    re.IGNORECASE,
)
CAPACITY_STATUSES = {"RESOURCE_EXHAUSTED", "UNAVAILABLE"}
CAPACITY_HTTP_CODES = {429, 503}

REJECTION_MESSAGES = {
    "SAFETY": "This photo was blocked by the safety filter. Try a different photo.",
    "IMAGE_SAFETY": "This photo was blocked by the safety filter. Try a different photo.",
    "PROHIBITED_CONTENT": "This photo can't be processed. Try a different photo.",
    "BLOCKLIST": "This photo can't be processed. Try a different photo.",
    "RECITATION": "The result was too close to existing content. Please try again.",
    "NO_IMAGE": (
        "The style couldn't be applied to this photo. "
        "Try a clearer, well-lit photo of a face."
    ),
}
DEFAULT_REJECTION_MESSAGE = "We couldn't generate an image from this photo."

GeneratedImage = namedtuple("GeneratedImage", ["data", "mime_type"])


def strip_data_uri(image):
    """Remove a leading `data:image/<type>;base64,` prefix if present."""
    return DATA_URI_RE.sub("", image, count=1)


def to_data_uri(generated):
    return f"data:{generated.mime_type};base64,{generated.data}"


def _as_dict(value):
    return value if isinstance(value, dict) else {}


def rejection_message(reason):
    """User-facing text for a rejection reason."""
    return REJECTION_MESSAGES.get(reason, DEFAULT_REJECTION_MESSAGE)


def _retry_after(resp, error_body):
    """Seconds to wait, from Retry-After or a RetryInfo detail, else config."""
    header = resp.headers.get("Retry-After") if resp is not None else None
    if header and header.isdigit():
        return int(header)

    for detail in (error_body or {}).get("details") or []:
        delay = detail.get("retryDelay") if isinstance(detail, dict) else None
        if isinstance(delay, str) and delay.endswith("s"):
            try:
                return max(1, int(float(delay[:-1])))
            except ValueError:
                continue

    return current_app.config["PROVIDER_RETRY_AFTER"]


def _raise_for_error(resp):
    """Map a non-2xx provider response to the right ProviderError."""
    try:
        body = resp.json()
    except ValueError:
        body = None

    error = _as_dict(body).get("error")
    if isinstance(error, str):
        # Proxies in front of the API sometimes answer {"error": "<text>"}.
        error = {"message": error}
    error_body = _as_dict(error)

    message = str(error_body.get("message") or resp.text[:200])
    status = error_body.get("status")
    if not isinstance(status, str):
        status = ""

    if (
        resp.status_code in CAPACITY_HTTP_CODES
        or status in CAPACITY_STATUSES
        or CAPACITY_MESSAGE_RE.search(message or "")
    ):
        retry_after = _retry_after(resp, error_body)
        logger.warning(
            f"Generation provider at capacity ({resp.status_code} {status}): {message}"
        )
        raise ProviderAtCapacityError(message, retry_after=retry_after)

    logger.error(f"Generation provider error ({resp.status_code} {status}): {message}")
    raise GenerationFailedError(f"Provider returned {resp.status_code}: {message}")


def _extract_image(data):
    """Pull the first inline image out of a generateContent reply.

    Raises GenerationRejectedError for blocked prompts, non-STOP finish
    reasons and replies without an image.
    """
    if not isinstance(data, dict):
        raise GenerationRejectedError("NO_IMAGE", rejection_message("NO_IMAGE"))

    block_reason = _as_dict(data.get("promptFeedback")).get("blockReason")
    if block_reason:
        block_reason = str(block_reason)
        raise GenerationRejectedError(block_reason, rejection_message(block_reason))

    candidates = data.get("candidates")
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        raise GenerationRejectedError("NO_IMAGE", rejection_message("NO_IMAGE"))

    candidate = candidates[0]
    finish_reason = candidate.get("finishReason")
    if finish_reason and finish_reason != "STOP":
        finish_reason = str(finish_reason)
        raise GenerationRejectedError(finish_reason, rejection_message(finish_reason))

    parts = _as_dict(candidate.get("content")).get("parts")
    for part in parts if isinstance(parts, list) else []:
        inline = _as_dict(part).get("inlineData") or _as_dict(part).get("inline_data")
        if isinstance(inline, dict) and inline.get("data"):
            mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
            return GeneratedImage(data=inline["data"], mime_type=mime_type)

    raise GenerationRejectedError("NO_IMAGE", rejection_message("NO_IMAGE"))


def generate_image(image, style):
    """Generate a stylized image for a known style.

    `image` may be raw base64 or a data URI. Returns a GeneratedImage.
    Raises a ProviderError subclass on every other outcome.
    """
    config = current_app.config
    model = config["GENERATION_MODEL"]
    url = f"{config['GENERATION_API_URL'].rstrip('/')}/{model}:generateContent"

    payload = {
        "contents": [{
            "parts": [
                {"text": get_prompt(style)},
                {"inline_data": {
                    "mime_type": "image/jpeg",
                    "data": strip_data_uri(image),
                }},
            ],
        }],
        "generationConfig": {"responseModalities": ["IMAGE", "TEXT"]},
    }

    logger.info(f"Generating image with style: {style}")

    try:
        resp = requests.post(
            url,
            json=payload,
            headers={"x-goog-api-key": config["GOOGLE_API_KEY"]},
            timeout=config["GENERATION_TIMEOUT"],
        )
    except requests.exceptions.Timeout:
        logger.warning(f"Generation provider timed out after {config['GENERATION_TIMEOUT']}s")
        raise ProviderAtCapacityError(
            "Generation timed out", retry_after=config["PROVIDER_RETRY_AFTER"]
        )
    except requests.exceptions.RequestException as e:
        logger.error(f"Generation provider request failed: {e}")
        raise GenerationFailedError(str(e)) from e

    if not resp.ok:
        _raise_for_error(resp)

    try:
        data = resp.json()
    except ValueError:
        raise GenerationRejectedError("NO_IMAGE", rejection_message("NO_IMAGE"))

    return _extract_image(data)
