import pytest

from app_types import ResourceKind, TitleType
from cache_keys import (
    DETAIL_TTL_MS,
    TITLE_CARD_TTL_MS,
    derive_blob_name,
    derive_card_key,
    derive_detail_key,
    ttl_for,
)


@pytest.mark.parametrize("derive", [derive_detail_key, derive_card_key])
def test_same_inputs_same_key(derive):
    assert derive("movie", 603, "ru-RU") == derive("movie", 603, "ru-RU")


@pytest.mark.parametrize("derive", [derive_detail_key, derive_card_key])
@pytest.mark.parametrize("other", [("tv", 603, "ru-RU"), ("movie", 604, "ru-RU"), ("movie", 603, "en-US")])
def test_changing_any_input_changes_key(derive, other):
    assert derive("movie", 603, "ru-RU") != derive(*other)


def test_detail_and_card_keys_never_collide():
    assert derive_detail_key("tv", 1, "ru-RU") != derive_card_key("tv", 1, "ru-RU")


def test_enum_and_string_types_agree():
    assert derive_detail_key(TitleType.TV, 1, "en-US") == derive_detail_key("tv", 1, "en-US")


def test_ttl_table():
    assert ttl_for(ResourceKind.DETAIL) == DETAIL_TTL_MS == 600_000
    assert ttl_for(ResourceKind.TITLE_CARD) == TITLE_CARD_TTL_MS == 1_800_000


def test_blob_name():
    assert derive_blob_name("tmdb", "/w500/abc.jpg") == "tmdb/w500/abc.jpg"
    assert derive_blob_name("", "w500/abc.jpg") == "w500/abc.jpg"
