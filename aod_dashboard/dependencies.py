"""FastAPI dependencies resolving the clients owned by the running app."""

from __future__ import annotations

from fastapi import Request

from .app.config import Settings
from .services.gemini import GeminiClient
from .services.google_clients import GoogleServices


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_google_services(request: Request) -> GoogleServices:
    return request.app.state.google


def get_gemini_client(request: Request) -> GeminiClient:
    return request.app.state.gemini
