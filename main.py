import logging
from dataclasses import dataclass
from typing import List, Optional

import requests
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, Response

from app_types import ResourceKind, TitleType
from blob_store import BlobStore
from cache_keys import ttl_for
from cache_store import MetadataCache
from errors import CatalogError, InvalidRequestError
from fetcher import Catalog
from image_proxy import ImageProxy
from mapping import normalize_language, normalize_page, normalize_season_number, sanitize_query
from settings import Settings
from tmdb_client import TmdbClient

logger = logging.getLogger("uvicorn.error")

IMAGE_CACHE_CONTROL = "public, max-age=604800"


@dataclass
class Services:
    settings: Settings
    client: TmdbClient
    detail_cache: MetadataCache
    card_cache: MetadataCache
    blob_store: BlobStore
    images: ImageProxy
    catalog: Catalog


def build_services(settings: Settings, http: Optional[requests.Session] = None, clock=None) -> Services:
    """Construct the process-wide caches and clients once."""
    http = http or requests.Session()
    cache_kwargs = {"clock": clock} if clock else {}
    client = TmdbClient(settings, session=http)
    detail_cache = MetadataCache("detail", ttl_for(ResourceKind.DETAIL), **cache_kwargs)
    card_cache = MetadataCache("title_card", ttl_for(ResourceKind.TITLE_CARD), **cache_kwargs)
    blob_store = BlobStore(settings, session=http)
    return Services(
        settings=settings,
        client=client,
        detail_cache=detail_cache,
        card_cache=card_cache,
        blob_store=blob_store,
        images=ImageProxy(client, blob_store, blob_prefix=settings.b2_prefix),
        catalog=Catalog(client, detail_cache, card_cache, fallback_language=settings.fallback_language),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def _language(services: Services, value: Optional[str]) -> str:
    return normalize_language(value, default=services.settings.default_language)


def _positive_id(value: int, name: str = "id") -> int:
    if value <= 0:
        raise InvalidRequestError(f"{name} must be a positive number")
    return value


def _auth(services: Services, x_admin_token: Optional[str]):
    admin_token = services.settings.admin_token
    if not admin_token:
        raise HTTPException(status_code=500, detail="ADMIN_TOKEN not configured")
    if x_admin_token != admin_token:
        raise HTTPException(status_code=401, detail="Unauthorized")


async def catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
    logger.warning("%s %s → %s %s: %s", request.method, request.url.path, exc.status, exc.code, exc)
    if exc.body:
        logger.debug("upstream body: %.500s", exc.body)
    return JSONResponse(
        status_code=exc.status or status.HTTP_502_BAD_GATEWAY,
        content={"error": exc.code, "detail": exc.detail},
    )


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    services = services or build_services(settings or Settings.from_env())

    app = FastAPI(title="shelf-catalog")
    app.state.services = services
    app.add_exception_handler(CatalogError, catalog_error_handler)

    @app.get("/")
    def read_root():
        return JSONResponse(
            content={"status": "ok", "message": "Server is healthy"},
            status_code=status.HTTP_200_OK
        )

    @app.get("/health")
    def health(svc: Services = Depends(get_services)):
        """Lightweight health check."""
        return {
            "status": "ok",
            "service": "shelf-catalog",
            "blob_store": svc.blob_store.is_enabled(),
        }

    @app.get("/api/search")
    def search(
        query: Optional[str] = None,
        language: Optional[str] = None,
        page: Optional[str] = None,
        svc: Services = Depends(get_services),
    ):
        cleaned = sanitize_query(query)
        if not cleaned:
            raise InvalidRequestError("query is required")
        return svc.catalog.search_titles(cleaned, _language(svc, language), normalize_page(page))

    @app.get("/api/title-cards")
    def title_cards(
        ref: List[str] = Query(default=[]),
        language: Optional[str] = None,
        svc: Services = Depends(get_services),
    ):
        cards = svc.catalog.get_title_cards(ref, _language(svc, language))
        return {"count": len(cards), "cards": cards}

    @app.get("/api/title/tv/{tv_id}/season/{season_number}")
    def season_details(
        tv_id: int,
        season_number: str,
        language: Optional[str] = None,
        svc: Services = Depends(get_services),
    ):
        season = normalize_season_number(season_number)
        if season is None:
            raise InvalidRequestError("seasonNumber must be a non-negative integer")
        return svc.catalog.get_season_details(_positive_id(tv_id), season, _language(svc, language))

    @app.get("/api/title/{title_type}/{title_id}")
    def title_details(
        title_type: TitleType,
        title_id: int,
        language: Optional[str] = None,
        svc: Services = Depends(get_services),
    ):
        return svc.catalog.get_title_details(title_type.value, _positive_id(title_id), _language(svc, language))

    @app.get("/api/title/{title_type}/{title_id}/cast")
    def title_cast(
        title_type: TitleType,
        title_id: int,
        language: Optional[str] = None,
        svc: Services = Depends(get_services),
    ):
        return svc.catalog.get_title_cast(title_type.value, _positive_id(title_id), _language(svc, language))

    @app.get("/api/person/{person_id}")
    def person_details(person_id: int, language: Optional[str] = None, svc: Services = Depends(get_services)):
        return svc.catalog.get_person_details(_positive_id(person_id), _language(svc, language))

    @app.get("/api/image/{image_path:path}")
    def image(image_path: str, svc: Services = Depends(get_services)):
        proxied = svc.images.get_image(image_path.split("/"))
        return Response(
            content=proxied.data,
            media_type=proxied.content_type,
            headers={
                "Cache-Control": IMAGE_CACHE_CONTROL,
                "X-Image-Cache": proxied.tier.value,
            },
        )

    @app.post("/admin/cache/clear")
    def admin_cache_clear(x_admin_token: Optional[str] = Header(default=None), svc: Services = Depends(get_services)):
        _auth(svc, x_admin_token)
        svc.detail_cache.clear()
        svc.card_cache.clear()
        logger.info("Metadata caches cleared")
        return {"ok": True}

    @app.get("/admin/cache/stats")
    def admin_cache_stats(x_admin_token: Optional[str] = Header(default=None), svc: Services = Depends(get_services)):
        _auth(svc, x_admin_token)
        return {
            "detail": svc.detail_cache.stats(),
            "title_card": svc.card_cache.stats(),
            "blob_store": svc.blob_store.stats(),
            "upstream_calls": svc.client.upstream_calls,
        }

    return app


app = create_app()
