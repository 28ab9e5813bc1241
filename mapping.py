"""
mapping.py
----------
Request parameter normalization and projections of raw media API payloads
into the records this service returns.

Projections never mutate their input and always build fresh dicts, so a
cached record is never shared with an upstream payload.
"""
import math
import re
import sys
from typing import Any, Dict, List, Optional

LANGUAGE_RE = re.compile(r"^[a-z]{2}-[A-Z]{2}$")
MAX_PAGE = 50
MAX_SEASON_NUMBER = 100
MAX_QUERY_LENGTH = 120
TITLE_REF_RE = re.compile(r"^(movie|tv)/(\d+)$")


# -----------------------------------------------------------
# Request parameters
# -----------------------------------------------------------
def normalize_language(value: Optional[str], default: str = "ru-RU") -> str:
    language = (value or default).strip()
    return language if LANGUAGE_RE.match(language) else default


def normalize_page(value: Any) -> int:
    try:
        page = float(value)
    except (TypeError, ValueError):
        return 1
    if math.isnan(page) or page < 1:
        return 1
    return int(min(page, MAX_PAGE))


def normalize_season_number(value: Any) -> Optional[int]:
    """Non-negative season number capped at 100, or None when invalid."""
    try:
        season = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(season) or season < 0:
        return None
    return int(min(season, MAX_SEASON_NUMBER))


def sanitize_query(query: Optional[str]) -> str:
    if not query:
        return ""
    return str(query).strip()[:MAX_QUERY_LENGTH]


def parse_title_ref(ref: Any) -> Optional[Dict[str, Any]]:
    match = TITLE_REF_RE.match(str(ref or "").strip())
    if not match:
        return None
    return {"type": match.group(1), "id": int(match.group(2))}


def proxied_image(path: Optional[str], size: str = "w780") -> Optional[str]:
    if not path:
        return None
    safe_path = path if path.startswith("/") else f"/{path}"
    return f"/api/image/{size}{safe_path}"


# -----------------------------------------------------------
# Helpers
# -----------------------------------------------------------
def _year(date: Optional[str]) -> Optional[str]:
    return (date or "")[:4] or None


def _title_fields(media_type: str, item: Dict[str, Any]) -> Dict[str, Any]:
    if media_type == "movie":
        return {
            "title": item.get("title"),
            "original_title": item.get("original_title"),
            "date": item.get("release_date"),
        }
    return {
        "title": item.get("name"),
        "original_title": item.get("original_name"),
        "date": item.get("first_air_date"),
    }


def _results(payload: Dict[str, Any], field: str) -> List[Dict[str, Any]]:
    return (payload.get(field) or {}).get("results") or []


# -----------------------------------------------------------
# Projections
# -----------------------------------------------------------
def map_search_item(item: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    media_type = item.get("media_type")
    if media_type == "person":
        known_for = []
        for credit in item.get("known_for") or []:
            name = credit.get("title") if credit.get("media_type") == "movie" else credit.get("name")
            if name:
                known_for.append(name)
        return {
            "id": item.get("id"),
            "media_type": "person",
            "title": item.get("name"),
            "original_title": item.get("original_name") or item.get("name"),
            "overview": item.get("known_for_department") or "",
            "year": None,
            "rating": None,
            "vote_count": None,
            "popularity": item.get("popularity"),
            "poster": proxied_image(item.get("profile_path"), "w300"),
            "backdrop": None,
            "genre_ids": [],
            "origin_countries": [],
            "known_for_department": item.get("known_for_department"),
            "known_for": known_for[:3],
        }
    if media_type not in ("movie", "tv"):
        return None

    fields = _title_fields(media_type, item)
    return {
        "id": item.get("id"),
        "media_type": media_type,
        "title": fields["title"],
        "original_title": fields["original_title"],
        "overview": item.get("overview"),
        "year": _year(fields["date"]),
        "rating": item.get("vote_average"),
        "vote_count": item.get("vote_count"),
        "popularity": item.get("popularity"),
        "poster": proxied_image(item.get("poster_path"), "w500"),
        "backdrop": proxied_image(item.get("backdrop_path"), "w780"),
        "genre_ids": item.get("genre_ids") or [],
        "origin_countries": item.get("origin_country") or [],
        "known_for_department": None,
        "known_for": [],
    }


def _certification(media_type: str, payload: Dict[str, Any], region: str) -> Optional[str]:
    field = "release_dates" if media_type == "movie" else "content_ratings"
    results = _results(payload, field)
    info = next((r for r in results if r.get("iso_3166_1") == region), None) or (results[0] if results else None)
    if not info:
        return None
    if media_type == "movie":
        dates = info.get("release_dates") or []
        return (dates[0].get("certification") if dates else None) or None
    return info.get("rating") or None


def _video_rank(video: Dict[str, Any]):
    return (bool(video.get("official")), video.get("size") or 0)


def map_title_details(media_type: str, payload: Dict[str, Any], region: str = "RU") -> Dict[str, Any]:
    fields = _title_fields(media_type, payload)
    is_movie = media_type == "movie"

    seasons = []
    if not is_movie:
        for season in payload.get("seasons") or []:
            seasons.append({
                "id": season.get("id"),
                "name": season.get("name"),
                "season_number": season.get("season_number"),
                "episode_count": season.get("episode_count"),
                "air_date": season.get("air_date"),
                "overview": season.get("overview"),
                "rating": season.get("vote_average"),
                "poster": proxied_image(season.get("poster_path"), "w342"),
            })

    videos = [v for v in _results(payload, "videos") if v.get("site") == "YouTube"]
    videos.sort(key=_video_rank, reverse=True)

    recommendations = []
    for item in _results(payload, "recommendations")[:12]:
        rec = _title_fields(media_type, item)
        recommendations.append({
            "id": item.get("id"),
            "media_type": media_type,
            "title": rec["title"],
            "year": _year(rec["date"]),
            "rating": item.get("vote_average"),
            "poster": proxied_image(item.get("poster_path"), "w342"),
        })

    return {
        "id": payload.get("id"),
        "media_type": media_type,
        "title": fields["title"],
        "original_title": fields["original_title"],
        "tagline": payload.get("tagline"),
        "overview": payload.get("overview"),
        "runtime": payload.get("runtime") if is_movie else None,
        "episode_run_time": [] if is_movie else payload.get("episode_run_time") or [],
        "seasons_count": None if is_movie else payload.get("number_of_seasons"),
        "episodes_count": None if is_movie else payload.get("number_of_episodes"),
        "seasons": seasons,
        "status": payload.get("status"),
        "release_date": fields["date"],
        "end_date": None if is_movie else payload.get("last_air_date"),
        "genres": payload.get("genres") or [],
        "countries": payload.get("production_countries") or [],
        "rating": payload.get("vote_average"),
        "vote_count": payload.get("vote_count"),
        "certification": _certification(media_type, payload, region),
        "poster": proxied_image(payload.get("poster_path"), "w780"),
        "backdrop": proxied_image(payload.get("backdrop_path"), "w1280"),
        "cast": [
            {
                "id": person.get("id"),
                "name": person.get("name"),
                "character": person.get("character"),
                "profile": proxied_image(person.get("profile_path"), "w185"),
            }
            for person in ((payload.get("credits") or {}).get("cast") or [])[:8]
        ],
        "popular_media": {
            "videos": [
                {
                    "id": video.get("id"),
                    "name": video.get("name"),
                    "type": video.get("type"),
                    "youtube_url": f"https://www.youtube.com/watch?v={video.get('key')}",
                }
                for video in videos[:6]
            ],
            "backdrops": [
                {
                    "image": proxied_image(image.get("file_path"), "w780"),
                    "width": image.get("width"),
                    "height": image.get("height"),
                }
                for image in ((payload.get("images") or {}).get("backdrops") or [])[:8]
            ],
        },
        "recommendations": recommendations,
    }


def map_season_details(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": payload.get("id"),
        "name": payload.get("name"),
        "season_number": payload.get("season_number"),
        "overview": payload.get("overview"),
        "air_date": payload.get("air_date"),
        "episode_count": payload.get("episode_count"),
        "poster": proxied_image(payload.get("poster_path"), "w500"),
        "episodes": [
            {
                "id": episode.get("id"),
                "episode_number": episode.get("episode_number"),
                "name": episode.get("name"),
                "air_date": episode.get("air_date"),
                "runtime": episode.get("runtime") if isinstance(episode.get("runtime"), int) else None,
                "overview": episode.get("overview"),
                "still": proxied_image(episode.get("still_path"), "w300"),
            }
            for episode in payload.get("episodes") or []
        ],
    }


def map_title_card(ref: str, media_type: str, media_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
    fields = _title_fields(media_type, payload)
    return {
        "ref": ref,
        "type": media_type,
        "id": media_id,
        "title": fields["title"] or ref,
        "year": _year(fields["date"]),
        "rating": payload.get("vote_average") or None,
        "poster": proxied_image(payload.get("poster_path"), "w500"),
        "href": f"/title/{media_type}/{media_id}",
    }


def map_cast(media_type: str, credits: Dict[str, Any]) -> List[Dict[str, Any]]:
    cast = []
    for person in credits.get("cast") or []:
        entry = {
            "id": person.get("id"),
            "name": person.get("name"),
            "profile": proxied_image(person.get("profile_path"), "w185"),
            "order": person["order"] if person.get("order") is not None else sys.maxsize,
        }
        if media_type == "tv":
            roles = person.get("roles") or []
            entry["character"] = (roles[0].get("character") if roles else None) or None
            entry["episodes"] = person.get("total_episode_count") or 0
        else:
            entry["character"] = person.get("character") or None
        cast.append(entry)

    if media_type == "tv":
        cast.sort(key=lambda p: (p["order"], -p["episodes"]))
    else:
        cast.sort(key=lambda p: p["order"])
    return cast


def map_person_details(payload: Dict[str, Any], biography: str) -> Dict[str, Any]:
    credits = []
    for item in (payload.get("combined_credits") or {}).get("cast") or []:
        media_type = item.get("media_type")
        if media_type not in ("movie", "tv"):
            continue
        fields = _title_fields(media_type, item)
        credits.append({
            "id": item.get("id"),
            "media_type": media_type,
            "title": fields["title"],
            "year": _year(fields["date"]),
            "character": item.get("character") or None,
            "popularity": item.get("popularity") or 0,
            "poster": proxied_image(item.get("poster_path"), "w342"),
        })
    credits.sort(key=lambda c: c["popularity"], reverse=True)

    also_known_as = payload.get("also_known_as") or []
    external_ids = payload.get("external_ids") or {}
    return {
        "id": payload.get("id"),
        "name": payload.get("name"),
        "original_name": also_known_as[0] if also_known_as else payload.get("name"),
        "biography": biography,
        "known_for_department": payload.get("known_for_department") or None,
        "birthday": payload.get("birthday") or None,
        "deathday": payload.get("deathday") or None,
        "place_of_birth": payload.get("place_of_birth") or None,
        "profile": proxied_image(payload.get("profile_path"), "w500"),
        "profiles": [
            proxied_image(image.get("file_path"), "w300")
            for image in ((payload.get("images") or {}).get("profiles") or [])[:10]
        ],
        "external": {
            "instagram": external_ids.get("instagram_id") or None,
            "twitter": external_ids.get("twitter_id") or None,
            "tiktok": external_ids.get("tiktok_id") or None,
            "youtube": external_ids.get("youtube_id") or None,
            "imdb": external_ids.get("imdb_id") or None,
        },
        "credits": credits[:24],
    }
