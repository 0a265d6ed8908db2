"""
Tests for the in-memory quiz session registry.
"""

from datetime import datetime, timedelta

from kotoba.quiz import QuizSession
from kotoba.sessions import SessionRegistry


class TestSessionRegistry:
    def test_create_and_get(self, sample_source):
        registry = SessionRegistry(timeout_minutes=5)
        session_id = registry.create(QuizSession(sample_source), sample_source.id)

        active = registry.get(session_id)
        assert active is not None
        assert active.source_id == sample_source.id
        assert active.quiz.source is sample_source

    def test_unknown_or_missing_id(self):
        registry = SessionRegistry()
        assert registry.get(None) is None
        assert registry.get("nope") is None

    def test_idle_session_expires(self, sample_source):
        registry = SessionRegistry(timeout_minutes=5)
        session_id = registry.create(QuizSession(sample_source), sample_source.id)
        registry.get(session_id).last_seen = datetime.now() - timedelta(minutes=10)

        assert registry.get(session_id) is None
        assert len(registry) == 0

    def test_discard(self, sample_source):
        registry = SessionRegistry()
        session_id = registry.create(QuizSession(sample_source), sample_source.id)

        assert registry.discard(session_id) is True
        assert registry.discard(session_id) is False
        assert registry.get(session_id) is None
