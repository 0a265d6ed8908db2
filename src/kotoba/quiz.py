"""Multiple-choice reading quiz over the words of one word source.

A session moves through three phases::

    PRESENTING(i) --select_answer--> REVEALED(i) --advance--> PRESENTING(i+1)
                                                   \\--(last)--> FINISHED

``restart`` returns to ``PRESENTING(0)`` with the score cleared. Any other
call out of order raises :class:`InvalidTransitionError` and leaves the
session untouched.
"""

import logging
import random
from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional, Sequence, Set

from pydantic import BaseModel, ConfigDict, computed_field

from .errors import EmptySourceError, InvalidTransitionError
from .models import Word, WordSource

logger = logging.getLogger(__name__)

COMMON_READINGS = [
    "こんにちは", "ありがとう", "すみません", "おはよう",
    "さようなら", "はじめまして", "よろしく", "げんき",
    "べんきょう", "しごと", "ともだち", "がっこう",
    "せんせい", "がくせい", "にほんご", "えいご",
]


# --- Models ---
class QuizPhase(str, Enum):
    PRESENTING = "presenting"
    REVEALED = "revealed"
    FINISHED = "finished"


class AnswerRecord(BaseModel):
    word: str
    user_answer: str
    correct_answer: str
    is_correct: bool


class QuizSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int
    total: int
    studied: int
    accuracy: float
    grade: str

    @computed_field
    @property
    def percent(self) -> int:
        return int(self.accuracy * 100)


class QuizState(BaseModel):
    model_config = ConfigDict(frozen=True)

    phase: QuizPhase
    index: int
    total: int
    word: Word
    options: List[str]
    selected: Optional[str] = None
    is_correct: Optional[bool] = None
    correct_answer: Optional[str] = None
    score: int
    studied: int
    progress: float
    is_last: bool
    summary: Optional[QuizSummary] = None


def grade_for(accuracy: float) -> str:
    if accuracy >= 0.9:
        return "excellent"
    if accuracy >= 0.8:
        return "good"
    if accuracy >= 0.6:
        return "pass"
    return "needs work"


# --- Strategy Pattern: Option Generators ---
class OptionGenerator(ABC):
    """Abstract Base Class for building the choices shown for one word."""

    @abstractmethod
    def generate(self, word: Word, words: Sequence[Word]) -> List[str]:
        pass


class ReadingOptionGenerator(OptionGenerator):
    """Correct pronunciation plus distractors from the same source.

    Distractors come from the other words first and from ``fallback_pool``
    only when the source cannot fill ``option_count`` on its own. Options
    are always unique, so small sources may get fewer choices.
    """

    def __init__(
        self,
        option_count: int = 4,
        fallback_pool: Sequence[str] = COMMON_READINGS,
        rng: Optional[random.Random] = None,
    ):
        self.option_count = option_count
        self.fallback_pool = list(fallback_pool)
        self.rng = rng or random.Random()

    def generate(self, word: Word, words: Sequence[Word]) -> List[str]:
        options = [word.pronunciation]

        others = [w.pronunciation for w in words if w.id != word.id]
        self.rng.shuffle(others)
        for reading in others:
            if len(options) >= self.option_count:
                break
            if reading not in options:
                options.append(reading)

        if len(options) < self.option_count:
            pool = list(self.fallback_pool)
            self.rng.shuffle(pool)
            for reading in pool:
                if len(options) >= self.option_count:
                    break
                if reading not in options:
                    options.append(reading)

        self.rng.shuffle(options)
        return options


# --- Session ---
class QuizSession:
    def __init__(
        self,
        source: WordSource,
        option_generator: Optional[OptionGenerator] = None,
        rng: Optional[random.Random] = None,
    ):
        if not source.words:
            raise EmptySourceError(f"Word source '{source.name}' has no words")
        self.source = source
        self.words = source.words
        self.option_generator = option_generator or ReadingOptionGenerator(rng=rng)
        self._reset()
        logger.info(f"Quiz started on '{source.name}' ({len(self.words)} words)")

    def _reset(self) -> None:
        self._index = 0
        self._score = 0
        self._studied: Set[str] = set()
        self._selected: Optional[str] = None
        self._summary: Optional[QuizSummary] = None
        self.answers: List[AnswerRecord] = []
        self._options = self.option_generator.generate(self.current_word, self.words)

    # --- Accessors ---
    @property
    def phase(self) -> QuizPhase:
        if self._summary is not None:
            return QuizPhase.FINISHED
        if self._selected is not None:
            return QuizPhase.REVEALED
        return QuizPhase.PRESENTING

    @property
    def index(self) -> int:
        return self._index

    @property
    def total(self) -> int:
        return len(self.words)

    @property
    def score(self) -> int:
        return self._score

    @property
    def studied_count(self) -> int:
        return len(self._studied)

    @property
    def current_word(self) -> Word:
        return self.words[self._index]

    @property
    def options(self) -> List[str]:
        return list(self._options)

    @property
    def is_last_word(self) -> bool:
        return self._index >= self.total - 1

    @property
    def progress(self) -> float:
        return self._index / self.total

    @property
    def summary(self) -> Optional[QuizSummary]:
        return self._summary

    @property
    def state(self) -> QuizState:
        revealed = self._selected is not None
        word = self.current_word
        return QuizState(
            phase=self.phase,
            index=self._index,
            total=self.total,
            word=word,
            options=self.options,
            selected=self._selected,
            is_correct=(self._selected == word.pronunciation) if revealed else None,
            correct_answer=word.pronunciation if revealed else None,
            score=self._score,
            studied=self.studied_count,
            progress=self.progress,
            is_last=self.is_last_word,
            summary=self._summary,
        )

    # --- Transitions ---
    def select_answer(self, candidate: str) -> AnswerRecord:
        if self.phase is not QuizPhase.PRESENTING:
            raise InvalidTransitionError(
                f"Cannot answer while the quiz is {self.phase.value}"
            )
        word = self.current_word
        is_correct = candidate == word.pronunciation
        if is_correct:
            self._score += 1
            self._studied.add(word.id)
        self._selected = candidate

        record = AnswerRecord(
            word=word.word,
            user_answer=candidate,
            correct_answer=word.pronunciation,
            is_correct=is_correct,
        )
        self.answers.append(record)
        return record

    def advance(self) -> QuizState:
        if self.phase is not QuizPhase.REVEALED:
            raise InvalidTransitionError(
                f"Cannot advance while the quiz is {self.phase.value}"
            )
        if self.is_last_word:
            self._summary = self._build_summary()
            logger.info(
                f"Quiz on '{self.source.name}' finished: "
                f"{self._score}/{self.total} ({self._summary.grade})"
            )
            return self.state

        self._index += 1
        self._selected = None
        self._options = self.option_generator.generate(self.current_word, self.words)
        return self.state

    def restart(self) -> QuizState:
        self._reset()
        return self.state

    def _build_summary(self) -> QuizSummary:
        accuracy = self._score / self.total if self.total else 0.0
        return QuizSummary(
            score=self._score,
            total=self.total,
            studied=self.studied_count,
            accuracy=accuracy,
            grade=grade_for(accuracy),
        )
