"""Studio API client with best-effort session refresh.

Used by scripts and by any Python caller of the generation API. Before
each generation it tries to refresh the Supabase session, bounded by
`refresh_timeout`. A failed or slow refresh never blocks the request:
the request goes out with the token we have and the server's own auth
check decides.

Usage:
    client = StudioClient(
        base_url="https://app.example.com",
        auth_url="https://xyz.supabase.co",
        anon_key="...",
        access_token=session["access_token"],
        refresh_token=session["refresh_token"],
    )
    result = client.generate(image_data_uri, "Executive")
    if result.ok:
        save(result.image); show_balance(result.credits)
"""

import logging
from collections import namedtuple

import requests

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_TIMEOUT = 10
DEFAULT_REQUEST_TIMEOUT = 120
# A camera frame encoded as a data URI is never this short.
MIN_IMAGE_LENGTH = 100

GenerationResult = namedtuple(
    "GenerationResult",
    ["ok", "image", "credits", "error_code", "message", "retry_after"],
)


def _success(image, credits):
    return GenerationResult(True, image, credits, None, None, None)


def _failure(code, message=None, retry_after=None):
    return GenerationResult(False, None, None, code, message, retry_after)


class StudioClient:
    """Thin client for POST /api/generate."""

    def __init__(self, base_url, auth_url, anon_key, access_token,
                 refresh_token=None, refresh_timeout=DEFAULT_REFRESH_TIMEOUT,
                 request_timeout=DEFAULT_REQUEST_TIMEOUT, http=None):
        self.base_url = base_url.rstrip("/")
        self.auth_url = auth_url.rstrip("/")
        self.anon_key = anon_key
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.refresh_timeout = refresh_timeout
        self.request_timeout = request_timeout
        self.http = http or requests.Session()

    @classmethod
    def from_config(cls, config, access_token, refresh_token=None, **kwargs):
        """Build a client pointed at this deployment (APP_BASE_URL / SUPABASE_*)."""
        return cls(
            base_url=config["APP_BASE_URL"],
            auth_url=config["SUPABASE_URL"],
            anon_key=config["SUPABASE_ANON_KEY"],
            access_token=access_token,
            refresh_token=refresh_token,
            refresh_timeout=config.get("SESSION_REFRESH_TIMEOUT", DEFAULT_REFRESH_TIMEOUT),
            **kwargs,
        )

    # ── Session ──

    def refresh_session(self):
        """Try to swap in fresh tokens. Returns True on success.

        Never raises: errors and timeouts are logged and reported as False.
        """
        if not self.refresh_token:
            return False

        try:
            resp = self.http.post(
                f"{self.auth_url}/auth/v1/token",
                params={"grant_type": "refresh_token"},
                json={"refresh_token": self.refresh_token},
                headers={"apikey": self.anon_key},
                timeout=self.refresh_timeout,
            )
        except requests.exceptions.Timeout:
            logger.warning(
                f"Session refresh timed out after {self.refresh_timeout}s, "
                f"proceeding with current token"
            )
            return False
        except requests.exceptions.RequestException as e:
            logger.warning(f"Session refresh failed, proceeding with current token: {e}")
            return False

        if resp.status_code != 200:
            logger.warning(f"Session refresh rejected ({resp.status_code})")
            return False

        try:
            data = resp.json()
        except ValueError:
            logger.warning("Session refresh returned a non-JSON body")
            return False

        if not data.get("access_token"):
            logger.warning("Session refresh response had no access_token")
            return False

        self.access_token = data["access_token"]
        self.refresh_token = data.get("refresh_token") or self.refresh_token
        return True

    # ── Generation ──

    def generate(self, image, style):
        """Generate a stylized image. Returns a GenerationResult.

        On success `credits` is the balance after the debit; treat it as
        authoritative instead of re-reading the profile.
        """
        if not image or image == "data:," or len(image) < MIN_IMAGE_LENGTH:
            return _failure("INVALID_IMAGE", "Invalid or empty image data")

        self.refresh_session()

        try:
            resp = self.http.post(
                f"{self.base_url}/api/generate",
                json={"image": image, "style": style},
                headers={"Authorization": f"Bearer {self.access_token}"},
                timeout=self.request_timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Generation request failed: {e}")
            return _failure("API_ERROR", str(e))

        try:
            data = resp.json()
        except ValueError:
            data = {}

        if resp.status_code == 402:
            return _failure("INSUFFICIENT_CREDITS", data.get("error") or "Insufficient credits")
        if resp.status_code == 401:
            return _failure("UNAUTHORIZED", data.get("error"))
        if resp.status_code == 503:
            return _failure(
                "PROVIDER_AT_CAPACITY",
                data.get("error"),
                retry_after=data.get("retryAfter"),
            )

        if data.get("success") and data.get("image"):
            return _success(data["image"], data.get("credits"))

        return _failure("API_ERROR", data.get("error") or "Generation failed")
