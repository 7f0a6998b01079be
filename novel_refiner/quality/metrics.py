"""Per-chapter quality snapshots and their bounded history."""

import math
import time
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Union

import pandas as pd
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_MAX_HISTORY = 500


def _as_score(value: Any) -> Optional[float]:
    """Coerce a raw score to float; anything non-numeric counts as absent."""
    if value is None or isinstance(value, bool):
        return None
    try:
        score = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(score):
        return None
    return score


class RawQualityScores(BaseModel):
    """Scores as produced by a scoring function.

    Accepts both snake_case and the camelCase names used by score files
    (``aiFlavor``, ``coolPointDensity``). Missing or non-numeric values are
    kept as ``None`` rather than rejected.
    """

    model_config = ConfigDict(populate_by_name=True)

    overall: Optional[float] = None
    ai_flavor: Optional[float] = Field(default=None, alias="aiFlavor")
    cool_point_density: Optional[float] = Field(default=None, alias="coolPointDensity")
    pacing: Optional[float] = None
    consistency: Optional[float] = None
    repetition: Optional[float] = None

    @field_validator("*", mode="before")
    @classmethod
    def coerce_score(cls, value: Any) -> Optional[float]:
        return _as_score(value)


class QualityMetrics(BaseModel):
    """Immutable, timestamped quality snapshot for one chapter.

    Scores are on a 0-100 scale except ``cool_point_density`` (a ratio).
    """

    model_config = ConfigDict(frozen=True)

    chapter_number: int
    timestamp: float
    overall_score: Optional[float] = None
    ai_flavor_score: Optional[float] = None
    cool_point_density: Optional[float] = None
    pacing_score: Optional[float] = None
    consistency_score: Optional[float] = None
    repetition_score: Optional[float] = None


ScoreInput = Union[RawQualityScores, Mapping[str, Any]]
ScoringFunction = Callable[[str], ScoreInput]


def create_quality_metrics(
    chapter_number: int,
    scores: ScoreInput,
    timestamp: Optional[float] = None,
) -> QualityMetrics:
    """Convert raw scores into a snapshot stamped with ``timestamp`` (default: now)."""
    raw = scores if isinstance(scores, RawQualityScores) else RawQualityScores.model_validate(dict(scores))
    return QualityMetrics(
        chapter_number=chapter_number,
        timestamp=time.time() if timestamp is None else timestamp,
        overall_score=raw.overall,
        ai_flavor_score=raw.ai_flavor,
        cool_point_density=raw.cool_point_density,
        pacing_score=raw.pacing,
        consistency_score=raw.consistency,
        repetition_score=raw.repetition,
    )


def score_chapter(chapter_number: int, content: str, scorer: ScoringFunction) -> QualityMetrics:
    """Run a scoring function over chapter text and wrap the result."""
    return create_quality_metrics(chapter_number, scorer(content))


def load_scores(path: Path) -> list[tuple[int, RawQualityScores]]:
    """
    Read raw scores from a ``.csv`` or ``.jsonl`` file.

    Each row needs a ``chapter`` (or ``chapter_number``) column; score columns
    may use either naming style. Rows keep file order.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".csv":
        df = pd.read_csv(path)
    elif suffix in (".jsonl", ".json"):
        df = pd.read_json(path, lines=suffix == ".jsonl")
    else:
        raise ValueError(f"Unsupported score file: {path}")

    chapter_column = next((c for c in ("chapter", "chapter_number", "chapterNumber") if c in df.columns), None)
    if chapter_column is None:
        raise ValueError(f"{path.name} has no chapter column")

    rows = []
    for record in df.to_dict(orient="records"):
        chapter = record.pop(chapter_column)
        rows.append((int(chapter), RawQualityScores.model_validate(record)))
    logger.info(f"Loaded scores for {len(rows)} chapters from {path}")
    return rows


class QualityMetricsRecorder:
    """Append-only metrics history capped at ``max_history`` snapshots."""

    def __init__(self, max_history: int = DEFAULT_MAX_HISTORY, history: Optional[list[QualityMetrics]] = None):
        if max_history <= 0:
            raise ValueError("max_history must be positive")
        self.max_history = max_history
        self._history: list[QualityMetrics] = list(history or [])[-max_history:]

    def record(self, metrics: QualityMetrics) -> None:
        self._history.append(metrics)
        overflow = len(self._history) - self.max_history
        if overflow > 0:
            del self._history[:overflow]
            logger.debug(f"Metrics history capped at {self.max_history}, dropped {overflow} oldest")

    @property
    def history(self) -> list[QualityMetrics]:
        return list(self._history)

    def latest(self) -> Optional[QualityMetrics]:
        return self._history[-1] if self._history else None

    def window(self, size: int) -> list[QualityMetrics]:
        if size <= 0:
            return []
        return self._history[-size:]

    def prune_before(self, timestamp: float) -> int:
        """Drop snapshots strictly older than ``timestamp``. Returns how many were dropped."""
        kept = [m for m in self._history if m.timestamp >= timestamp]
        dropped = len(self._history) - len(kept)
        self._history = kept
        return dropped

    def clear(self) -> None:
        self._history = []

    def __len__(self) -> int:
        return len(self._history)
