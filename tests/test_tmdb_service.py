import asyncio
from urllib.parse import parse_qs, urlparse

import pytest

from app.core.errors import UpstreamError
from app.models.media import MediaType
from app.services.tmdb import (
    TMDBService,
    filter_by_rating,
    parse_details,
    resolve_title,
    resolve_year,
    round_rating,
)
from app.services.upstream import UpstreamClient
from tests.conftest import FakeResponse, FakeSession


def make_service(session: FakeSession) -> TMDBService:
    client = UpstreamClient(
        "TMDB", "https://tmdb.test/3/", bearer="t", require_auth=True, session=session
    )
    return TMDBService(client, language="en-US")


def query_of(call: dict) -> dict:
    return {k: v[0] for k, v in parse_qs(urlparse(call["url"]).query).items()}


MOVIE_DETAILS = {
    "id": 27205,
    "title": "Inception",
    "original_title": "Inception",
    "release_date": "2010-07-15",
    "poster_path": "/inception.jpg",
    "vote_average": 8.369,
    "vote_count": 35000,
    "popularity": 99.6,
    "overview": "A thief who steals corporate secrets.",
    "tagline": "Your mind is the scene of the crime.",
    "runtime": 148,
    "imdb_id": "tt1375666",
    "genres": [{"id": 28, "name": "Action"}, {"id": 878, "name": "Science Fiction"}],
    "credits": {
        "cast": [{"id": 6193, "name": "Leonardo DiCaprio", "character": "Cobb"}],
        "crew": [{"id": 525, "name": "Christopher Nolan", "job": "Director", "department": "Directing"}],
    },
    "videos": {
        "results": [
            {"id": "a", "key": "teaser", "name": "Teaser", "site": "YouTube", "type": "Teaser"},
            {"id": "b", "key": "YoHD9XEInc0", "name": "Trailer", "site": "YouTube", "type": "Trailer", "official": True},
        ]
    },
    "similar": {"results": [{"id": 157336, "title": "Interstellar", "vote_average": 8.4, "release_date": "2014-11-05"}]},
    "release_dates": {
        "results": [
            {"iso_3166_1": "US", "release_dates": [{"certification": ""}, {"certification": "PG-13"}]},
            {"iso_3166_1": "DE", "release_dates": [{"certification": "12"}]},
        ]
    },
}


@pytest.mark.asyncio
async def test_listing_item_mapping():
    session = FakeSession()
    session.add(
        "/movie/popular",
        FakeResponse(json={"results": [{"id": 1, "title": "A", "vote_average": 7.25, "release_date": "2020-05-01"}]}),
    )

    [item] = await make_service(session).get_popular(MediaType.MOVIE)

    assert item.id == "1"
    assert item.title == "A"
    assert item.rating == 7.3
    assert item.year == 2020
    assert item.media_type == MediaType.MOVIE


@pytest.mark.parametrize(
    "value, expected",
    [(7.25, 7.3), (7.24, 7.2), (8.369, 8.4), (0, 0.0), (None, 0.0), ("bad", 0.0), (10, 10.0)],
)
def test_round_rating(value, expected):
    assert round_rating(value) == expected


def test_resolve_title_preferences():
    assert resolve_title({"title": "Movie", "name": "Show"}, MediaType.MOVIE) == "Movie"
    assert resolve_title({"title": "Movie", "name": "Show"}, MediaType.TV) == "Show"
    assert resolve_title({"name": "Show"}, MediaType.MOVIE) == "Show"
    assert resolve_title({"original_name": "Dark"}, MediaType.TV) == "Dark"
    assert resolve_title({"title": "", "name": None}) == "Untitled"
    assert resolve_title({}) == "Untitled"


def test_resolve_year():
    assert resolve_year({"release_date": "1999-03-31"}) == 1999
    assert resolve_year({"first_air_date": "2008-01-20"}) == 2008
    assert resolve_year({"release_date": ""}) is None
    assert resolve_year({"release_date": "soon"}) is None
    assert resolve_year({}) is None


def test_details_without_title_or_name_is_untitled():
    details = parse_details({"id": 5, "overview": "?"}, MediaType.MOVIE)
    assert details.title == "Untitled"
    assert details.year is None


def test_parse_movie_details():
    details = parse_details(MOVIE_DETAILS, MediaType.MOVIE)

    assert details.id == "27205"
    assert details.title == "Inception"
    assert details.year == 2010
    assert details.rating == 8.4
    assert details.runtime == 148
    assert [g.name for g in details.genres] == ["Action", "Science Fiction"]
    assert details.cast[0].character == "Cobb"
    assert details.crew[0].job == "Director"
    assert details.trailer.key == "YoHD9XEInc0"
    assert details.similar[0].title == "Interstellar"
    assert details.certification_for("US") == "PG-13"
    assert details.certification_for("DE") == "12"
    assert details.certification_for("FR") is None
    assert details.seasons == []


def test_parse_tv_details_seasons_and_ratings():
    info = {
        "id": 1399,
        "name": "Game of Thrones",
        "first_air_date": "2011-04-17",
        "episode_run_time": [60],
        "content_ratings": {"results": [{"iso_3166_1": "US", "rating": "TV-MA"}]},
        "seasons": [
            {"season_number": 2, "name": "Season 2", "episode_count": 10},
            {"season_number": 0, "name": "Specials", "episode_count": 0},
            {"season_number": 1, "name": "Season 1", "episode_count": 10},
        ],
    }
    details = parse_details(info, MediaType.TV)

    assert details.title == "Game of Thrones"
    assert details.year == 2011
    assert details.runtime == 60
    assert details.certification_for("US") == "TV-MA"
    assert [s.season_number for s in details.seasons] == [1, 2]


@pytest.mark.asyncio
async def test_details_appends_sub_resources_in_one_call():
    session = FakeSession()
    session.add("/movie/27205", FakeResponse(json=MOVIE_DETAILS))

    details = await make_service(session).get_details(27205, MediaType.MOVIE)

    assert details.title == "Inception"
    assert len(session.calls) == 1
    params = query_of(session.calls[0])
    assert params["append_to_response"] == "credits,videos,similar,release_dates"
    assert params["language"] == "en-US"


@pytest.mark.asyncio
async def test_tv_details_request_content_ratings():
    session = FakeSession()
    session.add("/tv/1399", FakeResponse(json={"id": 1399, "name": "GoT"}))

    await make_service(session).get_details("1399", MediaType.TV)

    assert session.calls[0]["url"].startswith("https://tmdb.test/3/tv/1399?")
    assert query_of(session.calls[0])["append_to_response"] == "credits,videos,similar,content_ratings"


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["", "   "])
async def test_blank_search_makes_no_upstream_call(query):
    session = FakeSession()
    assert await make_service(session).search(query) == []
    assert session.calls == []


@pytest.mark.asyncio
async def test_search_builds_query_and_maps_results():
    session = FakeSession()
    session.add(
        "/search/tv",
        FakeResponse(json={"results": [{"id": 1396, "name": "Breaking Bad", "first_air_date": "2008-01-20", "vote_average": 8.9}]}),
    )

    results = await make_service(session).search(" breaking ", MediaType.TV, page=2)

    assert [r.title for r in results] == ["Breaking Bad"]
    assert results[0].media_type == MediaType.TV
    params = query_of(session.calls[0])
    assert params == {"language": "en-US", "query": "breaking", "page": "2", "include_adult": "false"}


@pytest.mark.asyncio
async def test_get_season_maps_episodes():
    session = FakeSession()
    session.add(
        "/tv/1396/season/1",
        FakeResponse(
            json={
                "name": "Season 1",
                "season_number": 1,
                "episodes": [
                    {"id": 62085, "name": "Pilot", "episode_number": 1, "runtime": 58, "still_path": "/p.jpg"},
                    {"id": 62086, "name": "", "episode_number": 2, "air_date": "2008-01-27"},
                ],
            }
        ),
    )

    season = await make_service(session).get_season(1396, 1)

    assert season.name == "Season 1"
    assert [e.episode_number for e in season.episodes] == [1, 2]
    assert season.episodes[0].runtime == 58
    assert season.episodes[1].name == "Episode 2"


@pytest.mark.asyncio
async def test_home_listings_fetch_all_four_rows():
    session = FakeSession()
    for path in ("/movie/popular", "/movie/top_rated", "/tv/popular", "/tv/top_rated"):
        session.add(path, FakeResponse(json={"results": [{"id": 1, "title": path, "name": path}]}))

    listings = await make_service(session).get_home_listings()

    assert len(session.calls) == 4
    assert listings.popular_movies[0].title == "/movie/popular"
    assert listings.top_tv[0].title == "/tv/top_rated"
    assert listings.popular(MediaType.TV) == listings.popular_tv


@pytest.mark.asyncio
async def test_home_listings_fail_when_any_row_fails():
    session = FakeSession()
    session.add("/movie/popular", FakeResponse(json={"results": []}))
    session.add("/movie/top_rated", FakeResponse(json={"results": []}))
    session.add("/tv/popular", FakeResponse(json={"results": []}))
    session.add("/tv/top_rated", FakeResponse(503, text="maintenance"))

    with pytest.raises(UpstreamError) as excinfo:
        await make_service(session).get_home_listings()
    assert excinfo.value.upstream_status == 503


@pytest.mark.asyncio
async def test_home_listings_failure_cancels_other_rows():
    cancelled = []

    class SlowSession(FakeSession):
        async def get(self, url, headers=None, timeout=None, **kwargs):
            if "/tv/top_rated" in url:
                return FakeResponse(500, text="boom")
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                cancelled.append(url)
                raise
            return FakeResponse(json={"results": []})

    with pytest.raises(UpstreamError) as excinfo:
        await make_service(SlowSession()).get_home_listings()

    assert excinfo.value.upstream_status == 500
    assert len(cancelled) == 3


@pytest.mark.asyncio
async def test_search_results_carry_popularity_and_genres():
    session = FakeSession()
    session.add(
        "/search/movie",
        FakeResponse(json={"results": [{"id": 949, "title": "Heat", "popularity": 41.6, "genre_ids": [80, 18, "x"]}]}),
    )

    [result] = await make_service(session).search("heat")

    assert result.popularity == 41.6
    assert result.genre_ids == [80, 18]


def test_filter_by_rating():
    items = parse_details(MOVIE_DETAILS, MediaType.MOVIE).similar
    assert filter_by_rating(items, None) == items
    assert filter_by_rating(items, 8.0) == items
    assert filter_by_rating(items, 9.0) == []
