"""
Shared fixtures: a scripted HTTP session that records every outbound call,
a controllable millisecond clock, and ready-made settings.
"""
import json
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from settings import Settings

B2_AUTH_URL = "https://api.backblazeb2.com/b2api/v2/b2_authorize_account"
B2_API_URL = "https://api001.backblazeb2.com"
B2_DOWNLOAD_URL = "https://f001.backblazeb2.com"
B2_UPLOAD_URL = "https://pod-000-1000-00.backblaze.com/b2api/v2/b2_upload_file/Y/c001"
BUCKET_NAME = "otaku-images"


def make_response(status: int = 200, json_body: Any = None, content: bytes = b"", headers: Optional[dict] = None) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    if json_body is not None:
        content = json.dumps(json_body).encode("utf-8")
        headers = {"Content-Type": "application/json", **(headers or {})}
    resp._content = content
    resp.headers = CaseInsensitiveDict(headers or {})
    resp.encoding = "utf-8"
    return resp


@dataclass
class Call:
    method: str
    url: str
    kwargs: Dict[str, Any]

    @property
    def params(self) -> Dict[str, Any]:
        return self.kwargs.get("params") or {}

    @property
    def headers(self) -> Dict[str, Any]:
        return self.kwargs.get("headers") or {}


@dataclass
class Route:
    method: str
    url_part: str
    responses: List[Any]
    params: Optional[Dict[str, Any]] = None
    hits: int = field(default=0)

    def matches(self, method: str, url: str, params: Dict[str, Any]) -> bool:
        if method != self.method or self.url_part not in url:
            return False
        return all(params.get(k) == v for k, v in (self.params or {}).items())


class ScriptedSession:
    """Stands in for requests.Session.

    Routes match on method, a URL substring and optionally a subset of the
    query params. Responses are served in order; the last one repeats. An
    exception instance in the list is raised instead of returned.
    """

    def __init__(self) -> None:
        self.calls: List[Call] = []
        self._routes: List[Route] = []
        self._lock = threading.Lock()

    def add(self, method: str, url_part: str, *responses: Any, params: Optional[dict] = None) -> None:
        self._routes.append(Route(method, url_part, list(responses), params))

    def request(self, method: str, url: str, **kwargs) -> requests.Response:
        with self._lock:
            self.calls.append(Call(method, url, kwargs))
            route = next(
                (r for r in self._routes if r.matches(method, url, kwargs.get("params") or {})),
                None,
            )
            if route is None:
                raise AssertionError(f"unexpected {method} {url} {kwargs.get('params')}")
            index = min(route.hits, len(route.responses) - 1)
            route.hits += 1
            answer = route.responses[index]
        if isinstance(answer, Exception):
            raise answer
        return answer

    def get(self, url: str, **kwargs) -> requests.Response:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs) -> requests.Response:
        return self.request("POST", url, **kwargs)

    def count(self, url_part: str = "", method: Optional[str] = None) -> int:
        return sum(
            1 for c in self.calls
            if url_part in c.url and (method is None or c.method == method)
        )


class FakeClock:
    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


def script_b2(session: ScriptedSession, buckets: Optional[list] = None, uploads: Optional[list] = None) -> None:
    """Happy-path answers for authorize, list buckets, upload URL and upload."""
    session.add("GET", "b2_authorize_account", make_response(json_body={
        "authorizationToken": "session-token",
        "apiUrl": B2_API_URL,
        "downloadUrl": B2_DOWNLOAD_URL,
        "accountId": "acct-1",
    }))
    session.add("POST", "b2_list_buckets", make_response(json_body={
        "buckets": buckets if buckets is not None else [
            {"bucketName": "other", "bucketId": "X"},
            {"bucketName": BUCKET_NAME, "bucketId": "Y"},
        ],
    }))
    session.add("POST", "b2_get_upload_url", make_response(json_body={
        "bucketId": "Y",
        "uploadUrl": B2_UPLOAD_URL,
        "authorizationToken": "upload-token",
    }))
    session.add("POST", "b2_upload_file", *(uploads or [make_response(json_body={"fileId": "f1"})]))


@pytest.fixture
def http():
    return ScriptedSession()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(tmdb_api_key="test-api-key", admin_token="secret-admin")


@pytest.fixture
def blob_settings():
    return Settings(
        tmdb_api_key="test-api-key",
        b2_key_id="key-id-123456",
        b2_application_key="app-key-abcdef",
        b2_bucket_name=BUCKET_NAME,
        admin_token="secret-admin",
    )
