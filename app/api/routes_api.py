"""API routes returning JSON for HTMX or external tools."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, Response

from app.api.deps import get_embed, get_tmdb
from app.core.errors import InvalidParameterError
from app.models.media import MediaType, SeasonEpisodes
from app.services.embed import FORWARDED_MOVIE_PARAMS, EmbedService
from app.services.tmdb import TMDBService
from app.services.upstream import JsonBody

router = APIRouter()
logger = logging.getLogger(__name__)

SEARCH_CACHE_HINT = "public, max-age=60"
SEASON_CACHE_HINT = "public, max-age=60"


@router.get("/search")
async def api_search(
    tmdb: Annotated[TMDBService, Depends(get_tmdb)],
    q: str = Query("", description="Search query"),
    media_type: str = Query(
        "movie", alias="type", description="Media type: movie or tv"
    ),
    page: int = Query(1, description="Results page"),
):
    """Search TMDB for movies or TV series.

    A blank query short-circuits to an empty, uncached result list.
    """
    query = q.strip()
    if not query:
        return JSONResponse({"results": []}, headers={"Cache-Control": "no-store"})
    if page < 1:
        raise InvalidParameterError("page must be a positive integer")

    results = await tmdb.search(query, MediaType.parse(media_type), page)
    return JSONResponse(
        {"results": [r.model_dump(mode="json") for r in results]},
        headers={"Cache-Control": SEARCH_CACHE_HINT},
    )


@router.get("/movies")
async def api_movie_embed(
    request: Request,
    embed: Annotated[EmbedService, Depends(get_embed)],
    tmdb: str | None = Query(None, description="TMDB id of the movie"),
):
    """Proxy the embed document for a movie from the embed provider."""
    params = {
        key: request.query_params[key]
        for key in FORWARDED_MOVIE_PARAMS
        if key in request.query_params
    }
    result = await embed.fetch_movie(tmdb, params)

    if isinstance(result, JsonBody):
        return JSONResponse(result.data, status_code=result.status)
    return Response(
        content=result.content,
        status_code=result.status,
        media_type=result.content_type,
    )


@router.get("/tv/{tmdb_id}/season/{season}", response_model=SeasonEpisodes)
async def api_season(
    tmdb_id: int,
    season: int,
    tmdb: Annotated[TMDBService, Depends(get_tmdb)],
):
    """List the episodes of one season."""
    if season < 0:
        raise InvalidParameterError("season must be zero or a positive integer")

    result = await tmdb.get_season(tmdb_id, season)
    return JSONResponse(
        result.model_dump(mode="json"), headers={"Cache-Control": SEASON_CACHE_HINT}
    )


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "service": "streamsite"}
