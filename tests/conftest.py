import json
import os
import sys

import httpx
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src")))

from kotoba.config import Settings
from kotoba.models import new_source, new_word
from kotoba.repository import WordSourceStore


def make_source(name="Sample", pairs=None, levels=None, description="test words"):
    """Builds a word source from (word, pronunciation) pairs."""
    if pairs is None:
        pairs = [("山", "やま"), ("川", "かわ"), ("空", "そら"), ("海", "うみ"), ("森", "もり")]
    words = [
        new_word(
            word=w,
            pronunciation=p,
            meaning=f"meaning of {w}",
            example=f"{w}を見ました。",
            level=(levels[i] if levels else "N5"),
            category=None,
        )
        for i, (w, p) in enumerate(pairs)
    ]
    return new_source(name, description, words)


def source_json(name="Remote N5", pairs=(("猫", "ねこ"), ("犬", "いぬ"))):
    return json.dumps(
        {
            "name": name,
            "description": "remote words",
            "words": [
                {
                    "word": w,
                    "pronunciation": p,
                    "meaning": "m",
                    "example": "e",
                    "level": "N5",
                    "category": None,
                }
                for w, p in pairs
            ],
            "version": "1.0",
            "createdDate": "2025-10-29T12:00:00Z",
        },
        ensure_ascii=False,
    ).encode("utf-8")


@pytest.fixture
def sample_source():
    return make_source()


@pytest.fixture
def store(tmp_path):
    store = WordSourceStore(tmp_path / "data" / "word_sources.json")
    yield store
    store.close()


@pytest.fixture
def app_settings(tmp_path):
    s = Settings()
    s.LOG_DIR = str(tmp_path / "log")
    s.DB_DIR = str(tmp_path / "db")
    s.DATA_DIR = str(tmp_path / "data")
    s.EXPORT_DIR = str(tmp_path / "exports")
    return s


def remote_handler(request: httpx.Request) -> httpx.Response:
    """Fake word source server used by the API tests."""
    path = request.url.path
    if path == "/n5.json":
        return httpx.Response(200, content=source_json())
    if path == "/default.json":
        return httpx.Response(200, content=source_json(name="默认单词表"))
    if path == "/empty.json":
        return httpx.Response(200, content=b"")
    if path == "/broken.json":
        return httpx.Response(200, content=b"{not json")
    return httpx.Response(404, content=b"not found")


@pytest.fixture
def client(app_settings):
    from fastapi.testclient import TestClient

    from kotoba.app import create_app

    app = create_app(app_settings, transport=httpx.MockTransport(remote_handler))
    with TestClient(app) as c:
        yield c
