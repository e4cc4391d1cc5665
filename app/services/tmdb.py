"""TMDB service for listings, search, title details and season episodes."""

import asyncio
import logging
import math
from typing import Any, Iterable, List, Optional
from urllib.parse import quote

from app.models.media import (
    CastMember,
    Certification,
    CrewMember,
    Episode,
    Genre,
    HomeListings,
    MediaDetails,
    MediaSummary,
    MediaType,
    SearchResult,
    SeasonEpisodes,
    SeasonSummary,
    Video,
)
from app.services.upstream import UpstreamClient

logger = logging.getLogger(__name__)

UNTITLED = "Untitled"

# Sub-resources requested together with the details call
MOVIE_APPENDS = ("credits", "videos", "similar", "release_dates")
TV_APPENDS = ("credits", "videos", "similar", "content_ratings")


def resolve_title(raw: dict, media_type: MediaType | None = None) -> str:
    """Pick a display title, preferring the field native to the media type."""
    fields = ["title", "name", "original_title", "original_name"]
    if media_type == MediaType.TV:
        fields.insert(0, "name")
    for field in fields:
        value = raw.get(field)
        if isinstance(value, str) and value.strip():
            return value
    return UNTITLED


def resolve_release_date(raw: dict) -> Optional[str]:
    return raw.get("release_date") or raw.get("first_air_date") or None


def resolve_year(raw: dict) -> Optional[int]:
    """Year from the first 4 characters of whichever date field is present."""
    date = resolve_release_date(raw)
    if not date:
        return None
    try:
        return int(str(date)[:4])
    except ValueError:
        return None


def round_rating(value: Any) -> float:
    """Round to one decimal place, halves away from zero (7.25 -> 7.3)."""
    try:
        number = float(value or 0.0)
    except (TypeError, ValueError):
        return 0.0
    return math.floor(number * 10 + 0.5) / 10


def _parse_summary(raw: dict, media_type: MediaType) -> MediaSummary:
    return MediaSummary(
        id=str(raw.get("id", "")),
        media_type=media_type,
        title=resolve_title(raw, media_type),
        release_date=resolve_release_date(raw),
        year=resolve_year(raw),
        poster_path=raw.get("poster_path"),
        rating=round_rating(raw.get("vote_average")),
    )


def _parse_search_result(raw: dict, media_type: MediaType) -> SearchResult:
    summary = _parse_summary(raw, media_type)
    popularity = raw.get("popularity")
    return SearchResult(
        **summary.model_dump(),
        popularity=popularity if isinstance(popularity, (int, float)) else None,
        genre_ids=[g for g in raw.get("genre_ids") or [] if isinstance(g, int)],
    )


def _results(data: Any) -> List[dict]:
    if not isinstance(data, dict):
        return []
    results = data.get("results")
    return [r for r in results if isinstance(r, dict)] if isinstance(results, list) else []


def _parse_certifications(info: dict, media_type: MediaType) -> List[Certification]:
    certifications = []
    if media_type == MediaType.MOVIE:
        for entry in _results(info.get("release_dates")):
            ratings = [
                d.get("certification")
                for d in entry.get("release_dates") or []
                if d.get("certification")
            ]
            if entry.get("iso_3166_1") and ratings:
                certifications.append(
                    Certification(country=entry["iso_3166_1"], certification=ratings[0])
                )
    else:
        for entry in _results(info.get("content_ratings")):
            if entry.get("iso_3166_1") and entry.get("rating"):
                certifications.append(
                    Certification(
                        country=entry["iso_3166_1"], certification=entry["rating"]
                    )
                )
    return certifications


def _parse_seasons(seasons: Iterable[dict]) -> List[SeasonSummary]:
    """Seasons that have episodes, in season order."""
    parsed = [
        SeasonSummary(
            season_number=s["season_number"],
            name=s.get("name") or f"Season {s['season_number']}",
            episode_count=s.get("episode_count") or 0,
        )
        for s in seasons
        if s.get("season_number") is not None and (s.get("episode_count") or 0) > 0
    ]
    return sorted(parsed, key=lambda s: s.season_number)


def parse_details(info: dict, media_type: MediaType) -> MediaDetails:
    """Build MediaDetails from a details response with appended sub-resources."""
    credits = info.get("credits") or {}
    summary = _parse_summary(info, media_type)

    return MediaDetails(
        **summary.model_dump(),
        overview=info.get("overview") or "",
        tagline=info.get("tagline") or "",
        runtime=info.get("runtime") or _first(info.get("episode_run_time")),
        vote_count=info.get("vote_count") or 0,
        popularity=info.get("popularity") or 0.0,
        imdb_id=info.get("imdb_id"),
        homepage=info.get("homepage") or None,
        genres=[
            Genre(id=g["id"], name=g["name"])
            for g in info.get("genres") or []
            if "id" in g and "name" in g
        ],
        cast=[
            CastMember(
                id=c["id"],
                name=c["name"],
                character=c.get("character") or "",
                profile_path=c.get("profile_path"),
            )
            for c in credits.get("cast") or []
            if "id" in c and "name" in c
        ],
        crew=[
            CrewMember(
                id=c["id"],
                name=c["name"],
                job=c.get("job") or "",
                department=c.get("department") or "",
                profile_path=c.get("profile_path"),
            )
            for c in credits.get("crew") or []
            if "id" in c and "name" in c
        ],
        videos=[
            Video(
                id=str(v["id"]),
                key=v["key"],
                name=v.get("name") or "",
                site=v.get("site") or "",
                type=v.get("type") or "",
                official=bool(v.get("official")),
            )
            for v in _results(info.get("videos"))
            if "id" in v and "key" in v
        ],
        similar=[_parse_summary(s, media_type) for s in _results(info.get("similar"))],
        certifications=_parse_certifications(info, media_type),
        seasons=_parse_seasons(info.get("seasons") or [])
        if media_type == MediaType.TV
        else [],
    )


def _first(values: Any) -> Optional[int]:
    if isinstance(values, list) and values:
        return values[0]
    return None


def parse_season(data: dict) -> SeasonEpisodes:
    episodes = data.get("episodes")
    return SeasonEpisodes(
        name=data.get("name"),
        season_number=data.get("season_number"),
        episodes=[
            Episode(
                id=ep.get("id") or 0,
                name=ep.get("name") or f"Episode {ep['episode_number']}",
                overview=ep.get("overview") or "",
                episode_number=ep["episode_number"],
                still_path=ep.get("still_path"),
                runtime=ep.get("runtime"),
                air_date=ep.get("air_date"),
            )
            for ep in (episodes if isinstance(episodes, list) else [])
            if isinstance(ep, dict) and ep.get("episode_number") is not None
        ],
    )


def filter_by_rating(
    items: List[MediaSummary], min_rating: Optional[float]
) -> List[MediaSummary]:
    """Keep items rated at least ``min_rating``; ``None`` keeps everything."""
    if min_rating is None:
        return list(items)
    return [item for item in items if item.rating >= min_rating]


class TMDBService:
    """Typed wrappers over the TMDB endpoints used by the pages and API."""

    def __init__(self, client: UpstreamClient, language: str = "en-US"):
        self.client = client
        self.language = language

    async def _list(
        self, media_type: MediaType, category: str, page: int = 1
    ) -> List[MediaSummary]:
        data = await self.client.get_json(
            f"/{media_type.value}/{category}",
            {"language": self.language, "page": page},
        )
        return [_parse_summary(r, media_type) for r in _results(data)]

    async def get_popular(
        self, media_type: MediaType, page: int = 1
    ) -> List[MediaSummary]:
        """Popular movies or TV series."""
        return await self._list(media_type, "popular", page)

    async def get_top_rated(
        self, media_type: MediaType, page: int = 1
    ) -> List[MediaSummary]:
        """Top rated movies or TV series."""
        return await self._list(media_type, "top_rated", page)

    async def get_home_listings(self) -> HomeListings:
        """Fetch the four home rows concurrently; any failure fails them all.

        The first failure cancels the remaining fetches and is re-raised as is.
        """
        try:
            async with asyncio.TaskGroup() as tg:
                popular_movies = tg.create_task(self.get_popular(MediaType.MOVIE))
                top_movies = tg.create_task(self.get_top_rated(MediaType.MOVIE))
                popular_tv = tg.create_task(self.get_popular(MediaType.TV))
                top_tv = tg.create_task(self.get_top_rated(MediaType.TV))
        except ExceptionGroup as group:
            raise group.exceptions[0] from None
        return HomeListings(
            popular_movies=popular_movies.result(),
            top_movies=top_movies.result(),
            popular_tv=popular_tv.result(),
            top_tv=top_tv.result(),
        )

    async def search(
        self, query: str, media_type: MediaType = MediaType.MOVIE, page: int = 1
    ) -> List[SearchResult]:
        """Search TMDB; a blank query never reaches the upstream."""
        query = (query or "").strip()
        if not query:
            return []

        data = await self.client.get_json(
            f"/search/{media_type.value}",
            {
                "language": self.language,
                "query": query,
                "page": page,
                "include_adult": "false",
            },
        )
        results = [_parse_search_result(r, media_type) for r in _results(data)]
        logger.debug("Search '%s' (%s) returned %d results", query, media_type.value, len(results))
        return results

    async def get_details(self, tmdb_id: str | int, media_type: MediaType) -> MediaDetails:
        """Title details with credits, videos, similar titles and certifications."""
        appends = TV_APPENDS if media_type == MediaType.TV else MOVIE_APPENDS
        info = await self.client.get_json(
            f"/{media_type.value}/{quote(str(tmdb_id), safe='')}",
            {"language": self.language, "append_to_response": ",".join(appends)},
        )
        return parse_details(info if isinstance(info, dict) else {}, media_type)

    async def get_season(self, tmdb_id: str | int, season_number: int) -> SeasonEpisodes:
        """Episodes for one season of a TV series."""
        data = await self.client.get_json(
            f"/tv/{quote(str(tmdb_id), safe='')}/season/{season_number}",
            {"language": self.language},
        )
        return parse_season(data if isinstance(data, dict) else {})
