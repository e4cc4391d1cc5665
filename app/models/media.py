"""Media models projected from TMDB responses."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class MediaType(str, Enum):
    """Media type for listings, search and details."""

    MOVIE = "movie"
    TV = "tv"

    @classmethod
    def parse(cls, value: str | None) -> "MediaType":
        """Anything other than ``tv`` is treated as a movie."""
        if value and value.strip().lower() == "tv":
            return cls.TV
        return cls.MOVIE


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class MediaSummary(_Frozen):
    """A movie or TV series as shown in listing grids."""

    id: str
    media_type: MediaType
    title: str
    release_date: Optional[str] = None
    year: Optional[int] = None
    poster_path: Optional[str] = None
    rating: float = 0.0


class SearchResult(MediaSummary):
    """A single search hit: a listing summary plus popularity and genre ids."""

    popularity: Optional[float] = None
    genre_ids: List[int] = []


class Genre(_Frozen):
    id: int
    name: str


class CastMember(_Frozen):
    id: int
    name: str
    character: str = ""
    profile_path: Optional[str] = None


class CrewMember(_Frozen):
    id: int
    name: str
    job: str = ""
    department: str = ""
    profile_path: Optional[str] = None


class Video(_Frozen):
    """A trailer, teaser or clip attached to a title."""

    id: str
    key: str
    name: str = ""
    site: str = ""
    type: str = ""
    official: bool = False


class Certification(_Frozen):
    """Age rating for one country (e.g. US: PG-13)."""

    country: str
    certification: str


class SeasonSummary(_Frozen):
    season_number: int
    name: str
    episode_count: int = 0


class MediaDetails(MediaSummary):
    """Full title details merged from appended sub-resources."""

    overview: str = ""
    tagline: str = ""
    runtime: Optional[int] = None
    vote_count: int = 0
    popularity: float = 0.0
    imdb_id: Optional[str] = None
    homepage: Optional[str] = None
    genres: List[Genre] = []
    cast: List[CastMember] = []
    crew: List[CrewMember] = []
    videos: List[Video] = []
    similar: List[MediaSummary] = []
    certifications: List[Certification] = []
    seasons: List[SeasonSummary] = []

    @property
    def trailer(self) -> Optional[Video]:
        """The first YouTube trailer, preferring official ones."""
        trailers = [v for v in self.videos if v.site == "YouTube" and v.type == "Trailer"]
        official = [v for v in trailers if v.official]
        return (official or trailers or [None])[0]

    def certification_for(self, country: str = "US") -> Optional[str]:
        for cert in self.certifications:
            if cert.country == country:
                return cert.certification
        return None


class Episode(_Frozen):
    """An episode in a TV season."""

    id: int
    name: str
    overview: str = ""
    episode_number: int
    still_path: Optional[str] = None
    runtime: Optional[int] = None
    air_date: Optional[str] = None


class SeasonEpisodes(_Frozen):
    """A season of a TV series with its ordered episodes."""

    name: Optional[str] = None
    season_number: Optional[int] = None
    episodes: List[Episode] = []


class HomeListings(_Frozen):
    """The four listing rows shown on the home page."""

    popular_movies: List[MediaSummary] = []
    top_movies: List[MediaSummary] = []
    popular_tv: List[MediaSummary] = []
    top_tv: List[MediaSummary] = []

    def popular(self, media_type: MediaType) -> List[MediaSummary]:
        return self.popular_tv if media_type == MediaType.TV else self.popular_movies

    def top_rated(self, media_type: MediaType) -> List[MediaSummary]:
        return self.top_tv if media_type == MediaType.TV else self.top_movies
