from typing import Optional

from fastapi import Request

from .config import Settings
from .errors import ErrorState
from .importer import WordSourceImporter
from .repository import WordSourceStore
from .sessions import SessionRegistry


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> WordSourceStore:
    return request.app.state.store


def get_importer(request: Request) -> WordSourceImporter:
    return request.app.state.importer


def get_errors(request: Request) -> ErrorState:
    return request.app.state.errors


def get_sessions(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def get_session_id(request: Request) -> Optional[str]:
    return request.cookies.get(request.app.state.settings.SESSION_COOKIE_NAME)
