"""Embed provider: playable video documents for movies and TV episodes."""

import logging
from typing import Mapping
from urllib.parse import quote

from app.core.errors import InvalidParameterError
from app.services.upstream import HTML_ACCEPT, UpstreamClient, UpstreamResult

logger = logging.getLogger(__name__)

# Query params the movie embed proxy forwards upstream
FORWARDED_MOVIE_PARAMS = ("ds_lang", "sub_url", "autoplay", "imdb")


def _segment(value) -> str:
    return quote(str(value), safe="")


class EmbedService:
    """Builds embed URLs and proxies movie embed documents."""

    def __init__(self, client: UpstreamClient, default_lang: str = "en"):
        self.client = client
        self.default_lang = default_lang

    @property
    def configured(self) -> bool:
        return self.client.configured

    @staticmethod
    def movie_path(tmdb_id: str) -> str:
        return f"/embed/movie/{_segment(tmdb_id)}"

    @staticmethod
    def episode_path(tmdb_id: str, season: int, episode: int) -> str:
        return f"/embed/tv/{_segment(tmdb_id)}/{_segment(season)}/{_segment(episode)}"

    def movie_url(self, tmdb_id: str) -> str:
        """Absolute provider URL for a movie embed."""
        return self.client.build_url(self.movie_path(tmdb_id))

    def episode_url(self, tmdb_id: str, season: int, episode: int) -> str:
        """Absolute provider URL for a TV episode embed."""
        return self.client.build_url(
            self.episode_path(tmdb_id, season, episode), {"ds_lang": self.default_lang}
        )

    async def fetch_movie(
        self, tmdb_id: str | None, params: Mapping[str, str] | None = None
    ) -> UpstreamResult:
        """Fetch the movie embed document, forwarding only the allowed params."""
        if not tmdb_id or not tmdb_id.strip():
            raise InvalidParameterError("tmdb query param is required")

        params = params or {}
        forward = {key: params[key] for key in FORWARDED_MOVIE_PARAMS if params.get(key)}
        logger.debug("Proxying movie embed for %s with %s", tmdb_id, sorted(forward))
        return await self.client.fetch(
            self.movie_path(tmdb_id.strip()), forward, accept=HTML_ACCEPT
        )
