"""
callsum Data Model.

This module provides:
- AudioArtifact: finalized audio payload handed from capture to processing
- LevelFrame: snapshot vector of normalized energy levels
- Sentiment: closed set of sentiment labels
- CallResult: immutable output of a successfully completed run

INVARIANTS:
- All types are frozen (immutable once produced)
- Durations are whole seconds, never negative
- LevelFrame magnitudes lie in [0, 1]
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping

from callsum.schema import check_call_result


# =============================================================================
# AudioArtifact
# =============================================================================


@dataclass(frozen=True)
class AudioArtifact:
    """
    Opaque audio payload with its content tag and measured duration.

    Attributes:
        data: Encoded audio bytes
        content_type: MIME tag, e.g. "audio/wav"
        duration: Measured duration in whole seconds
        name: Optional origin name (uploaded file name)
    """
    data: bytes
    content_type: str
    duration: int
    name: str | None = None

    def __post_init__(self):
        if self.duration < 0:
            raise ValueError(f"duration must be >= 0, got {self.duration}")

    @property
    def size(self) -> int:
        return len(self.data)


# =============================================================================
# LevelFrame
# =============================================================================


@dataclass(frozen=True)
class LevelFrame:
    """Ordered, fixed-size vector of magnitudes in [0, 1]."""
    levels: tuple[float, ...]

    @classmethod
    def zeros(cls, bins: int) -> "LevelFrame":
        return cls(tuple(0.0 for _ in range(bins)))

    @property
    def is_silent(self) -> bool:
        return not any(self.levels)

    def __len__(self) -> int:
        return len(self.levels)

    def __iter__(self):
        return iter(self.levels)


# =============================================================================
# CallResult
# =============================================================================


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


# Field names a stage payload may contribute to a CallResult
RESULT_FIELDS = (
    "id",
    "title",
    "date",
    "duration",
    "participants",
    "transcript",
    "summary",
    "key_points",
    "action_items",
    "sentiment",
)


@dataclass(frozen=True)
class CallResult:
    """
    Structured output of one completed pipeline run.

    Sequence fields are stored as tuples so the record cannot be mutated
    after it has been handed to the ResultStore.
    """
    id: str
    title: str
    date: str
    duration: int
    participants: tuple[str, ...] = field(default_factory=tuple)
    transcript: str = ""
    summary: str = ""
    key_points: tuple[str, ...] = field(default_factory=tuple)
    action_items: tuple[str, ...] = field(default_factory=tuple)
    sentiment: Sentiment = Sentiment.NEUTRAL

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON shape of call_result.schema.json."""
        return {
            "id": self.id,
            "title": self.title,
            "date": self.date,
            "duration": self.duration,
            "participants": list(self.participants),
            "transcript": self.transcript,
            "summary": self.summary,
            "key_points": list(self.key_points),
            "action_items": list(self.action_items),
            "sentiment": Sentiment(self.sentiment).value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CallResult":
        """
        Build a validated CallResult from a JSON-shaped mapping.

        Raises:
            SchemaValidationError: If data violates the CallResult schema.
        """
        document = to_json_shape(data)
        check_call_result(document)
        return cls(
            id=document["id"],
            title=document["title"],
            date=document["date"],
            duration=document["duration"],
            participants=tuple(document["participants"]),
            transcript=document["transcript"],
            summary=document["summary"],
            key_points=tuple(document["key_points"]),
            action_items=tuple(document["action_items"]),
            sentiment=Sentiment(document["sentiment"]),
        )


def to_json_shape(data: Mapping[str, Any]) -> dict[str, Any]:
    """
    Normalize Python values to their JSON Schema counterparts.

    Tuples and other non-string iterables become lists, enums become their
    values; anything else is passed through for the schema to judge.
    """
    shaped: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, Iterable) and not isinstance(value, (str, bytes, Mapping)):
            value = [v.value if isinstance(v, Enum) else v for v in value]
        shaped[key] = value
    return shaped
