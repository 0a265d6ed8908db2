"""
Tests for the quiz session state machine and option generation.
"""

import random

import pytest

from conftest import make_source
from kotoba.errors import EmptySourceError, InvalidTransitionError
from kotoba.models import WordSource, utcnow
from kotoba.quiz import (
    COMMON_READINGS,
    QuizPhase,
    QuizSession,
    ReadingOptionGenerator,
    grade_for,
)


def empty_source():
    return WordSource(
        name="empty", description="", words=(), version="1.0", created_date=utcnow()
    )


def run_through(session, answers):
    for answer in answers:
        session.select_answer(answer)
        session.advance()
    return session.summary


class TestOptionGeneration:
    """ReadingOptionGenerator picks unique choices including the answer."""

    def test_five_word_source_options(self, sample_source):
        generator = ReadingOptionGenerator(rng=random.Random(7))
        for word in sample_source.words:
            options = generator.generate(word, sample_source.words)

            assert options.count(word.pronunciation) == 1
            assert len(options) == 4
            assert len(set(options)) == len(options)
            source_readings = {w.pronunciation for w in sample_source.words}
            assert set(options) <= source_readings

    def test_falls_back_to_common_readings(self):
        source = make_source(pairs=[("山", "やま"), ("川", "かわ")])
        generator = ReadingOptionGenerator(rng=random.Random(1))

        options = generator.generate(source.words[0], source.words)

        assert len(options) == 4
        assert {"やま", "かわ"} <= set(options)
        assert len(set(options) - {"やま", "かわ"} - set(COMMON_READINGS)) == 0

    def test_never_fabricates_beyond_pools(self):
        source = make_source(pairs=[("山", "やま"), ("川", "かわ")])
        generator = ReadingOptionGenerator(fallback_pool=[], rng=random.Random(1))
        assert sorted(generator.generate(source.words[0], source.words)) == ["かわ", "やま"]

    def test_shared_readings_are_not_duplicated(self):
        source = make_source(pairs=[("橋", "はし"), ("箸", "はし"), ("端", "はし")])
        generator = ReadingOptionGenerator(fallback_pool=["かみ"], rng=random.Random(3))
        options = generator.generate(source.words[0], source.words)
        assert sorted(options) == sorted(["はし", "かみ"])

    def test_fallback_skips_values_already_selected(self):
        source = make_source(pairs=[("学校", "がっこう")])
        generator = ReadingOptionGenerator(
            fallback_pool=["がっこう", "えいご"], rng=random.Random(0)
        )
        assert sorted(generator.generate(source.words[0], source.words)) == ["えいご", "がっこう"]


class TestQuizSession:
    """State transitions, scoring and summary."""

    def test_empty_source_is_rejected(self):
        with pytest.raises(EmptySourceError):
            QuizSession(empty_source())

    def test_initial_state(self, sample_source):
        session = QuizSession(sample_source, rng=random.Random(0))
        state = session.state

        assert state.phase is QuizPhase.PRESENTING
        assert state.index == 0
        assert state.total == 5
        assert state.word.word == "山"
        assert "やま" in state.options
        assert state.selected is None
        assert state.correct_answer is None
        assert state.progress == 0.0

    def test_correct_answer_scores_and_reveals(self, sample_source):
        session = QuizSession(sample_source, rng=random.Random(0))
        record = session.select_answer("やま")

        assert record.is_correct
        state = session.state
        assert state.phase is QuizPhase.REVEALED
        assert state.is_correct is True
        assert state.score == 1
        assert state.studied == 1

    def test_wrong_answer_is_revealed_not_retried(self, sample_source):
        session = QuizSession(sample_source, rng=random.Random(0))
        session.select_answer("かわ")

        state = session.state
        assert state.phase is QuizPhase.REVEALED
        assert state.is_correct is False
        assert state.correct_answer == "やま"
        assert state.score == 0

    def test_double_answer_is_rejected_without_double_count(self, sample_source):
        session = QuizSession(sample_source, rng=random.Random(0))
        session.select_answer("やま")

        with pytest.raises(InvalidTransitionError):
            session.select_answer("やま")
        assert session.score == 1
        assert session.index == 0

    def test_advance_before_answer_is_rejected(self, sample_source):
        session = QuizSession(sample_source, rng=random.Random(0))
        with pytest.raises(InvalidTransitionError):
            session.advance()
        assert session.index == 0
        assert session.phase is QuizPhase.PRESENTING

    def test_advance_moves_to_next_word_with_new_options(self, sample_source):
        session = QuizSession(sample_source, rng=random.Random(0))
        session.select_answer("やま")
        state = session.advance()

        assert state.phase is QuizPhase.PRESENTING
        assert state.index == 1
        assert state.word.word == "川"
        assert "かわ" in state.options
        assert state.selected is None
        assert state.progress == pytest.approx(0.2)

    def test_all_correct_is_excellent(self, sample_source):
        session = QuizSession(sample_source, rng=random.Random(0))
        summary = run_through(session, [w.pronunciation for w in sample_source.words])

        assert session.phase is QuizPhase.FINISHED
        assert summary.score == summary.total == 5
        assert summary.studied == 5
        assert summary.grade == "excellent"
        assert summary.percent == 100

    def test_example_three_word_run(self):
        source = make_source(pairs=[("A", "a1"), ("B", "b1"), ("C", "c1")])
        session = QuizSession(source, rng=random.Random(0))

        summary = run_through(session, ["a1", "x", "c1"])

        assert summary.score == 2
        assert summary.total == 3
        assert summary.studied == 2
        assert summary.accuracy == pytest.approx(0.667, abs=1e-3)
        assert summary.grade == "pass"
        assert [a.is_correct for a in session.answers] == [True, False, True]

    def test_finished_is_terminal(self, sample_source):
        session = QuizSession(sample_source, rng=random.Random(0))
        run_through(session, [w.pronunciation for w in sample_source.words])

        with pytest.raises(InvalidTransitionError):
            session.select_answer("やま")
        with pytest.raises(InvalidTransitionError):
            session.advance()
        assert session.score == 5

    def test_restart_clears_progress(self, sample_source):
        session = QuizSession(sample_source, rng=random.Random(0))
        run_through(session, [w.pronunciation for w in sample_source.words])

        state = session.restart()

        assert state.phase is QuizPhase.PRESENTING
        assert state.index == 0
        assert state.score == 0
        assert state.studied == 0
        assert state.summary is None
        assert session.answers == []

    def test_studied_counts_distinct_words(self):
        source = make_source(pairs=[("A", "a1"), ("B", "b1")])
        session = QuizSession(source, rng=random.Random(0))
        session.select_answer("a1")
        session.advance()
        session.select_answer("b1")
        session.advance()
        assert session.summary.studied == 2


class TestGrades:
    @pytest.mark.parametrize(
        "accuracy, grade",
        [
            (1.0, "excellent"),
            (0.9, "excellent"),
            (0.89, "good"),
            (0.8, "good"),
            (0.79, "pass"),
            (0.6, "pass"),
            (0.59, "needs work"),
            (0.0, "needs work"),
        ],
    )
    def test_grade_buckets(self, accuracy, grade):
        assert grade_for(accuracy) == grade
