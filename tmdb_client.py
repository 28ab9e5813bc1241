# tmdb_client.py
import logging
from threading import Lock
from typing import Any, Dict, Optional

import requests

from app_types import ImagePayload
from errors import ConfigurationError, UpstreamError
from settings import Settings, mask_secret

logger = logging.getLogger("uvicorn.error")


def _clean_params(params: Optional[Dict[str, Any]]) -> Dict[str, str]:
    cleaned = {}
    for key, value in (params or {}).items():
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        cleaned[key] = str(value)
    return cleaned


class TmdbClient:
    """
    Retry-free wrapper around the media API and its image host.

    Every JSON call carries the API key as a query credential. Any non-2xx
    answer, timeout or network failure raises UpstreamError with the status
    and raw body so callers can decide their own response codes.
    """

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None) -> None:
        self.api_key = settings.tmdb_api_key
        self.api_base = settings.tmdb_api_base
        self.image_base = settings.tmdb_image_base
        self.timeout = settings.upstream_timeout_seconds
        self.session = session or requests.Session()
        self._calls_lock = Lock()
        self.upstream_calls = 0  # incremented every time we actually hit the provider

        logger.info(
            "TMDB client ready → key=%s base=%s timeout=%ss",
            mask_secret(self.api_key), self.api_base, self.timeout,
        )

    def _count_call(self) -> None:
        with self._calls_lock:
            self.upstream_calls += 1

    def _get(self, url: str, what: str, **kwargs) -> requests.Response:
        try:
            resp = self.session.get(url, timeout=self.timeout, **kwargs)
        except requests.Timeout as e:
            logger.error("Timeout on upstream fetch for %s: %s", what, e)
            raise UpstreamError(f"upstream timeout for {what}", status=504, body=str(e)) from e
        except requests.RequestException as e:
            logger.error("Network error on upstream fetch for %s: %s", what, e)
            raise UpstreamError(f"network error for {what}", status=502, body=str(e)) from e
        finally:
            self._count_call()

        logger.info("UPSTREAM CALLED → %s status=%s bytes≈%s", what, resp.status_code, len(resp.content))
        if not 200 <= resp.status_code < 300:
            logger.warning("Failed upstream response for %s: HTTP %s", what, resp.status_code)
            raise UpstreamError(
                f"TMDB request failed: {resp.status_code} {resp.reason or ''}".strip(),
                status=resp.status_code,
                body=resp.text,
            )
        return resp

    def fetch(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET ``endpoint`` from the media API and return the decoded JSON."""
        if not self.api_key:
            raise ConfigurationError("Missing TMDB_API_KEY in environment.")

        query = _clean_params(params)
        query["api_key"] = self.api_key
        resp = self._get(
            f"{self.api_base}{endpoint}",
            endpoint,
            params=query,
            headers={"Accept": "application/json"},
        )
        return resp.json()

    def fetch_image(self, image_path: str) -> ImagePayload:
        """GET ``/<size>/<file>`` from the image host."""
        resp = self._get(f"{self.image_base}{image_path}", image_path, headers={"Accept": "image/*"})
        return ImagePayload(
            data=resp.content,
            content_type=resp.headers.get("Content-Type") or "application/octet-stream",
        )
