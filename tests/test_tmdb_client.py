import pytest
import requests

from conftest import make_response
from errors import ConfigurationError, UpstreamError
from settings import Settings
from tmdb_client import TmdbClient


def test_fetch_appends_api_key_and_drops_empty_params(http, settings):
    http.add("GET", "/movie/603", make_response(json_body={"id": 603}))
    client = TmdbClient(settings, session=http)

    assert client.fetch("/movie/603", {"language": "ru-RU", "page": None, "query": "", "include_adult": False}) == {"id": 603}

    call = http.calls[0]
    assert call.url == "https://api.themoviedb.org/3/movie/603"
    assert call.params == {"language": "ru-RU", "include_adult": "false", "api_key": "test-api-key"}
    assert call.kwargs["timeout"] == settings.upstream_timeout_seconds
    assert client.upstream_calls == 1


def test_non_2xx_raises_with_status_and_body(http, settings):
    http.add("GET", "/movie/1", make_response(404, content=b'{"status_message":"not found"}'))
    client = TmdbClient(settings, session=http)

    with pytest.raises(UpstreamError) as info:
        client.fetch("/movie/1")

    assert info.value.status == 404
    assert info.value.not_found
    assert "not found" in info.value.body


def test_no_retries_on_server_error(http, settings):
    http.add("GET", "/movie/1", make_response(503, content=b"busy"))
    client = TmdbClient(settings, session=http)

    with pytest.raises(UpstreamError) as info:
        client.fetch("/movie/1")

    assert info.value.status == 503
    assert len(http.calls) == 1


def test_timeout_maps_to_504(http, settings):
    http.add("GET", "/movie/1", requests.Timeout("read timed out"))
    client = TmdbClient(settings, session=http)

    with pytest.raises(UpstreamError) as info:
        client.fetch("/movie/1")

    assert info.value.status == 504
    assert client.upstream_calls == 1


def test_network_error_maps_to_502(http, settings):
    http.add("GET", "/movie/1", requests.ConnectionError("refused"))

    with pytest.raises(UpstreamError) as info:
        TmdbClient(settings, session=http).fetch("/movie/1")

    assert info.value.status == 502


def test_missing_api_key_is_configuration_error(http):
    client = TmdbClient(Settings(), session=http)

    with pytest.raises(ConfigurationError) as info:
        client.fetch("/movie/1")

    assert info.value.status == 500
    assert http.calls == []


def test_fetch_image_returns_bytes_and_content_type(http, settings):
    http.add("GET", "/w500/abc.jpg", make_response(content=b"jpeg", headers={"Content-Type": "image/jpeg"}))
    http.add("GET", "/w92/raw.bin", make_response(content=b"raw"))
    client = TmdbClient(settings, session=http)

    image = client.fetch_image("/w500/abc.jpg")
    assert image.data == b"jpeg"
    assert image.content_type == "image/jpeg"
    assert http.calls[0].url == "https://image.tmdb.org/t/p/w500/abc.jpg"
    assert "api_key" not in http.calls[0].params

    assert client.fetch_image("/w92/raw.bin").content_type == "application/octet-stream"
