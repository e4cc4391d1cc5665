"""FastAPI dependencies resolving the services built at startup."""

from fastapi import Request

from app.core.config import Settings
from app.services.embed import EmbedService
from app.services.tmdb import TMDBService


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_tmdb(request: Request) -> TMDBService:
    return request.app.state.tmdb


def get_embed(request: Request) -> EmbedService:
    return request.app.state.embed
