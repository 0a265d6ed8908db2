import json
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    ValidationError,
    field_validator,
)

from .errors import DecodeError

LEVELS = ("N5", "N4", "N3", "N2", "N1")
DEFAULT_LEVEL = "N5"
DEFAULT_VERSION = "1.0"


_ISO8601_DATETIME = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?(Z|[+-]\d{2}:\d{2})$"
)


def new_id() -> str:
    """Process-local identifier for words and sources; never serialized."""
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


# --- Models ---
class Word(BaseModel):
    model_config = ConfigDict(frozen=True)

    _id: str = PrivateAttr(default_factory=new_id)

    word: str
    pronunciation: str
    meaning: str
    example: str
    level: str
    category: Optional[str] = None

    @property
    def id(self) -> str:
        return self._id


class WordSource(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    _id: str = PrivateAttr(default_factory=new_id)

    name: str
    description: str
    words: Tuple[Word, ...]
    version: str
    created_date: datetime = Field(alias="createdDate")

    @property
    def id(self) -> str:
        return self._id

    @field_validator("created_date", mode="before")
    @classmethod
    def _iso8601_string(cls, value: Any) -> Any:
        if isinstance(value, datetime):
            return value
        if isinstance(value, str) and _ISO8601_DATETIME.match(value):
            return value
        raise ValueError("expected an ISO-8601 date-time string with a time zone")

    @field_validator("created_date")
    @classmethod
    def _second_precision_utc(cls, value: datetime) -> datetime:
        # ISO-8601 on the wire is second precision with an explicit zone.
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).replace(microsecond=0)


# --- Wire format ---
def source_to_dict(source: WordSource) -> Dict[str, Any]:
    return source.model_dump(mode="json", by_alias=True)


def encode_sources(sources: Sequence[WordSource]) -> bytes:
    payload = [source_to_dict(s) for s in sources]
    return json.dumps(payload, ensure_ascii=False, indent=2).encode("utf-8")


def _parse_json(data: bytes) -> Any:
    try:
        return json.loads(data)
    except (UnicodeDecodeError, ValueError) as e:
        raise DecodeError(f"Invalid JSON: {e}") from e


def _validate_source(obj: Any) -> WordSource:
    if not isinstance(obj, dict):
        raise DecodeError(
            f"Expected a word source object, got {type(obj).__name__}"
        )
    try:
        return WordSource.model_validate(obj)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'value'}: {err['msg']}"
            for err in e.errors()
        )
        raise DecodeError(f"Invalid word source: {problems}") from e


def decode_source(data: bytes) -> WordSource:
    """Decodes a single WordSource JSON object."""
    return _validate_source(_parse_json(data))


def decode_sources(data: bytes) -> List[WordSource]:
    """Decodes the persisted JSON array of WordSource objects."""
    obj = _parse_json(data)
    if not isinstance(obj, list):
        raise DecodeError(
            f"Expected a JSON array of word sources, got {type(obj).__name__}"
        )
    return [_validate_source(item) for item in obj]


# --- Manual creation ---
def new_word(
    word: str,
    pronunciation: str,
    meaning: str,
    example: str = "",
    level: str = DEFAULT_LEVEL,
    category: Optional[str] = None,
) -> Word:
    missing = [
        label
        for label, value in (
            ("word", word),
            ("pronunciation", pronunciation),
            ("meaning", meaning),
        )
        if not value.strip()
    ]
    if missing:
        raise DecodeError(f"Missing required word fields: {', '.join(missing)}")
    category = category.strip() if category else None
    return Word(
        word=word,
        pronunciation=pronunciation,
        meaning=meaning,
        example=example,
        level=level or DEFAULT_LEVEL,
        category=category or None,
    )


def new_source(
    name: str,
    description: str,
    words: Sequence[Word],
    version: str = DEFAULT_VERSION,
    created_date: Optional[datetime] = None,
) -> WordSource:
    if not name.strip():
        raise DecodeError("Word source name is required")
    if not words:
        raise DecodeError("A word source needs at least one word")
    return WordSource(
        name=name,
        description=description,
        words=tuple(words),
        version=version,
        created_date=created_date or utcnow(),
    )
