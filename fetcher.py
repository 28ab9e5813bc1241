# fetcher.py
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, Optional

from cache_keys import derive_card_key, derive_detail_key
from cache_store import MetadataCache
from errors import UpstreamError
from mapping import (
    map_cast,
    map_person_details,
    map_search_item,
    map_season_details,
    map_title_card,
    map_title_details,
    parse_title_ref,
)
from tmdb_client import TmdbClient

logger = logging.getLogger("uvicorn.error")

MAX_SEARCH_RESULTS = 20
MAX_CAST = 80
CARD_WORKERS = 8

DETAIL_APPEND = {
    "movie": "credits,images,videos,release_dates,recommendations",
    "tv": "credits,images,videos,content_ratings,recommendations",
}


class Catalog:
    """
    Read-through access to the media API.

    Detail records and title cards go through their own MetadataCache; on a
    HIT no upstream request is performed. Everything else is fetched fresh.
    """

    def __init__(
        self,
        client: TmdbClient,
        detail_cache: MetadataCache,
        card_cache: MetadataCache,
        fallback_language: str = "en-US",
    ) -> None:
        self.client = client
        self.detail_cache = detail_cache
        self.card_cache = card_cache
        self.fallback_language = fallback_language

    # -------------------------------------------------------
    # Uncached lookups
    # -------------------------------------------------------
    def search_titles(self, query: str, language: str, page: int) -> Dict[str, Any]:
        payload = self.client.fetch("/search/multi", {
            "query": query,
            "include_adult": False,
            "language": language,
            "page": page,
        })
        results = [m for m in map(map_search_item, payload.get("results") or []) if m]
        return {
            "page": payload.get("page"),
            "total_pages": payload.get("total_pages"),
            "total_results": payload.get("total_results"),
            "results": results[:MAX_SEARCH_RESULTS],
        }

    def get_season_details(self, tv_id: int, season_number: int, language: str) -> Dict[str, Any]:
        payload = self.client.fetch(f"/tv/{tv_id}/season/{season_number}", {"language": language})
        return map_season_details(payload)

    def get_title_cast(self, media_type: str, media_id: int, language: str) -> Dict[str, Any]:
        title = self.client.fetch(f"/{media_type}/{media_id}", {"language": language})
        credits_endpoint = "aggregate_credits" if media_type == "tv" else "credits"
        credits = self.client.fetch(f"/{media_type}/{media_id}/{credits_endpoint}", {"language": language})
        return {
            "id": media_id,
            "media_type": media_type,
            "title": title.get("title") if media_type == "movie" else title.get("name"),
            "cast": map_cast(media_type, credits)[:MAX_CAST],
        }

    # -------------------------------------------------------
    # Cached lookups
    # -------------------------------------------------------
    def get_title_details(self, media_type: str, media_id: int, language: str) -> Dict[str, Any]:
        key = derive_detail_key(media_type, media_id, language)
        entry = self.detail_cache.get(key)
        if entry:
            logger.info("CACHE HIT → key=%s", key)
            return {**entry.value, "cache": "memory"}

        logger.info("CACHE MISS → key=%s", key)
        payload = self.client.fetch(f"/{media_type}/{media_id}", {
            "language": language,
            "append_to_response": DETAIL_APPEND[media_type],
            "include_image_language": f"{language.split('-')[0]},en,null",
        })
        record = map_title_details(media_type, payload, region=language.split("-")[-1])
        self.detail_cache.put(key, record)
        return {**record, "cache": "none"}

    def get_title_card(self, ref: str, language: str) -> Optional[Dict[str, Any]]:
        parsed = parse_title_ref(ref)
        if not parsed:
            return None

        key = derive_card_key(parsed["type"], parsed["id"], language)
        entry = self.card_cache.get(key)
        if entry:
            return entry.value

        try:
            payload = self.client.fetch(f"/{parsed['type']}/{parsed['id']}", {"language": language})
        except UpstreamError as e:
            # One broken ref must not take the whole shelf down.
            logger.warning("Title card %s unavailable: HTTP %s", ref, e.status)
            return None

        card = map_title_card(ref, parsed["type"], parsed["id"], payload)
        self.card_cache.put(key, card)
        return card

    def get_title_cards(self, refs: Iterable[Any], language: str) -> Dict[str, Dict[str, Any]]:
        """Cards for shelf refs, keyed by ref. Invalid or failing refs are left out."""
        unique_refs = list(dict.fromkeys(str(ref or "").strip() for ref in refs or []))
        unique_refs = [ref for ref in unique_refs if ref]
        if not unique_refs:
            return {}

        with ThreadPoolExecutor(max_workers=min(CARD_WORKERS, len(unique_refs))) as pool:
            cards = list(pool.map(lambda ref: self.get_title_card(ref, language), unique_refs))
        return {card["ref"]: card for card in cards if card}

    # -------------------------------------------------------
    # Biography localization
    # -------------------------------------------------------
    def get_person_details(self, person_id: int, language: str) -> Dict[str, Any]:
        payload = self.client.fetch(f"/person/{person_id}", {
            "language": language,
            "append_to_response": "combined_credits,images,external_ids",
        })

        biography = payload.get("biography") or ""
        if not biography:
            logger.info("Empty %s biography for person %s, trying %s", language, person_id, self.fallback_language)
            try:
                fallback = self.client.fetch(f"/person/{person_id}", {"language": self.fallback_language})
                biography = fallback.get("biography") or ""
            except UpstreamError as e:
                # An empty biography is an acceptable answer; keep it.
                logger.warning("Biography fallback for person %s failed: HTTP %s", person_id, e.status)

        return map_person_details(payload, biography)
