"""UI routes returning HTML via Jinja2 templates."""

import logging
from pathlib import Path
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates
from jinja2 import pass_context

from app.api.deps import get_embed, get_tmdb
from app.core.errors import InvalidParameterError
from app.models.media import MediaType
from app.services.embed import EmbedService
from app.services.tmdb import TMDBService, filter_by_rating

router = APIRouter()
logger = logging.getLogger(__name__)

# Templates directory
BASE_DIR = Path(__file__).resolve().parent.parent
templates = Jinja2Templates(directory=BASE_DIR / "templates")

QUICK_PICKS = 6
RATING_CHOICES = (5, 6, 7, 8)


def image_url(base: str, path: str | None, size: str = "w500") -> str:
    """TMDB image CDN URL for a poster/still path; absolute URLs pass through."""
    if not path:
        return ""
    if path.startswith("http"):
        return path
    return f"{base.rstrip('/')}/{size}{path}"


@pass_context
def tmdb_image(context, path: str | None, size: str = "w500") -> str:
    settings = context["request"].app.state.settings
    return image_url(settings.image_base_url, path, size)


templates.env.filters["tmdb_image"] = tmdb_image


def _min_rating(value: str | None) -> float | None:
    """Parse the rating filter; blank or ``any`` disables it."""
    if value is None or value.strip().lower() in ("", "any"):
        return None
    try:
        return float(value)
    except ValueError as exc:
        raise InvalidParameterError(
            f"min_rating must be a number, got {value!r}", exc
        ) from exc


@router.get("/")
async def home(
    request: Request,
    tmdb: Annotated[TMDBService, Depends(get_tmdb)],
    tab: str = "movie",
    min_rating: str | None = None,
):
    """Render the home page with popular and top rated rows.

    All four listings must load for the page to render.
    """
    mt = MediaType.parse(tab)
    rating = _min_rating(min_rating)
    listings = await tmdb.get_home_listings()

    popular = listings.popular(mt)
    top_rated = listings.top_rated(mt)
    hero = (popular or top_rated or [None])[0]

    return templates.TemplateResponse(
        request=request,
        name="home.html",
        context={
            "page_title": "Home",
            "tab": mt.value,
            "min_rating": rating,
            "rating_choices": RATING_CHOICES,
            "hero": hero,
            "quick_picks": filter_by_rating(popular, rating)[:QUICK_PICKS],
            "popular": popular,
            "top_rated": top_rated,
        },
    )


@router.get("/search")
@router.get("/movies_and_tv")
async def search_page(
    request: Request,
    q: str = "",
    media_type: str = Query("movie", alias="type"),
    min_rating: str | None = None,
):
    """Render the search page; results load through the partial below."""
    return templates.TemplateResponse(
        request=request,
        name="search.html",
        context={
            "page_title": "Search Movies & TV",
            "query": q,
            "media_type": MediaType.parse(media_type).value,
            "min_rating": _min_rating(min_rating),
            "rating_choices": RATING_CHOICES,
        },
    )


@router.get("/search/results")
async def search_results(
    request: Request,
    tmdb: Annotated[TMDBService, Depends(get_tmdb)],
    q: str = "",
    media_type: str = Query("movie", alias="type"),
    min_rating: str | None = None,
):
    """Return the search results partial (debounced by HTMX on the client)."""
    mt = MediaType.parse(media_type)
    rating = _min_rating(min_rating)
    query = q.strip()

    results = await tmdb.search(query, mt) if query else []

    return templates.TemplateResponse(
        request=request,
        name="partials/search_results.html",
        context={
            "query": query,
            "media_type": mt.value,
            "results": filter_by_rating(results, rating),
        },
    )


@router.get("/title/{tmdb_id}")
async def title_page(
    request: Request,
    tmdb_id: int,
    tmdb: Annotated[TMDBService, Depends(get_tmdb)],
    embed: Annotated[EmbedService, Depends(get_embed)],
    media_type: str = Query("movie", alias="type"),
):
    """Render the details page for a movie or TV series."""
    mt = MediaType.parse(media_type)
    details = await tmdb.get_details(tmdb_id, mt)

    external_url = None
    if mt == MediaType.MOVIE and embed.configured:
        external_url = embed.movie_url(str(tmdb_id))

    directors = [c.name for c in details.crew if c.job == "Director"]

    return templates.TemplateResponse(
        request=request,
        name="title.html",
        context={
            "page_title": details.title,
            "details": details,
            "media_type": mt.value,
            "external_url": external_url,
            "directors": directors,
            "certification": details.certification_for("US"),
            "initial_season": details.seasons[0].season_number
            if details.seasons
            else None,
        },
    )


@router.get("/title/{tmdb_id}/season/{season}")
async def season_partial(
    request: Request,
    tmdb_id: int,
    season: int,
    tmdb: Annotated[TMDBService, Depends(get_tmdb)],
):
    """Return the episode list for one season.

    The season picker cancels superseded requests with hx-sync, so only the
    latest selection lands in the page.
    """
    result = await tmdb.get_season(tmdb_id, season)

    return templates.TemplateResponse(
        request=request,
        name="partials/episodes.html",
        context={
            "tmdb_id": tmdb_id,
            "season": season,
            "episodes": result.episodes,
        },
    )


@router.get("/watch/{tmdb_id}")
async def watch_page(
    request: Request,
    tmdb_id: int,
    embed: Annotated[EmbedService, Depends(get_embed)],
    media_type: str = Query("movie", alias="type"),
    season: Annotated[int | None, Query(ge=0)] = None,
    episode: Annotated[int | None, Query(ge=1)] = None,
    external: bool = False,
):
    """Render the player page, or redirect to the provider when external."""
    mt = MediaType.parse(media_type)

    if mt == MediaType.TV:
        if season is None or episode is None:
            raise InvalidParameterError("season and episode are required for TV")
        upstream_url = embed.episode_url(str(tmdb_id), season, episode)
        player_url = upstream_url
    else:
        upstream_url = embed.movie_url(str(tmdb_id))
        # Relative so the iframe keeps the page's scheme behind a TLS proxy
        player_url = f"/api/movies?tmdb={tmdb_id}"

    if external:
        logger.info("Redirecting %s %s to embed provider", mt.value, tmdb_id)
        return RedirectResponse(upstream_url, status_code=307)

    return templates.TemplateResponse(
        request=request,
        name="watch.html",
        context={
            "page_title": "Watch",
            "tmdb_id": tmdb_id,
            "media_type": mt.value,
            "season": season,
            "episode": episode,
            "player_url": player_url,
            "upstream_url": upstream_url,
        },
    )


@router.get("/anime")
async def anime_page(request: Request):
    """Render the anime landing page."""
    return templates.TemplateResponse(
        request=request,
        name="anime.html",
        context={"page_title": "Anime"},
    )
