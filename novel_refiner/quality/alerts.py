"""Quality alerts derived from the rolling history of chapter metrics.

Alerts are never stored as standalone state: each detector is a pure function
of the metrics history and the thresholds. The engine keeps an alert log of
everything it has raised, while "active" alerts are always re-derived from
the current history, so an improving trend retires old alerts on its own.
"""

from enum import Enum
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from .metrics import DEFAULT_MAX_HISTORY, QualityMetrics, QualityMetricsRecorder


class AlertType(str, Enum):
    LOW_SCORE = "low-score"
    AI_FLAVOR = "ai-flavor"
    COOL_POINT = "cool-point"
    PACING = "pacing"
    CONSISTENCY = "consistency"
    REPETITION = "repetition"

    def __str__(self) -> str:
        return self.value


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    def __str__(self) -> str:
        return self.value


class AlertThresholds(BaseModel):
    """Detector thresholds. ``None`` switches the matching detector off."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    low_score_threshold: Optional[float] = 60
    consecutive_low_score_count: int = Field(default=3, ge=1)
    ai_flavor_threshold: Optional[float] = 70
    cool_point_min_density: Optional[float] = 0.5
    cool_point_window: int = Field(default=5, ge=1)
    pacing_threshold: Optional[float] = 50
    consistency_threshold: Optional[float] = 70
    repetition_threshold: Optional[float] = 30


class QualityAlert(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    type: AlertType
    severity: Severity
    title: str
    description: str
    affected_chapters: list[int]
    metrics: dict[str, float] = Field(default_factory=dict)
    suggestions: list[str] = Field(default_factory=list)
    priority: int = Field(ge=1, le=10)
    timestamp: float

    @property
    def key(self) -> tuple:
        return (str(self.type), tuple(self.affected_chapters), str(self.severity))


class AlertStats(BaseModel):
    total: int
    by_type: dict[str, int]
    by_severity: dict[str, int]
    active_count: int


SUGGESTIONS: dict[AlertType, list[str]] = {
    AlertType.LOW_SCORE: [
        "Pause drafting and review the preceding chapters to locate the problem",
        "Check whether the plot drags or lacks conflict",
        "Add payoffs and hooks to win the reader back",
        "Consider adjusting pacing or style",
    ],
    AlertType.AI_FLAVOR: [
        "Cut over-decoration and stacked adjectives",
        "Use more natural dialogue and description",
        "Avoid stock phrasing typical of generated text",
        "Give characters individual ways of speaking",
        "Prefer short sentences over nested long ones",
    ],
    AlertType.COOL_POINT: [
        "Add satisfying payoffs: reversals, rewards, recognition",
        "Speed up the plot and trim setup",
        "Let the protagonist show strength or earn acknowledgement",
        "Plant small climaxes and minor conflicts",
        "Aim for at least one clear payoff every 3-5 chapters",
    ],
    AlertType.PACING: [
        "Check for excessive setup or description",
        "Move the plot forward faster",
        "Add conflict and turning points",
        "Trim unnecessary detail",
    ],
    AlertType.CONSISTENCY: [
        "Check that characters behave consistently with earlier chapters",
        "Confirm world-building rules do not contradict each other",
        "Verify the timeline",
        "Keep a running record of established facts",
    ],
    AlertType.REPETITION: [
        "Avoid reusing the same words and sentence patterns",
        "Reduce formulaic plot beats",
        "Vary scenes and dialogue",
        "Swap high-frequency words for synonyms",
    ],
}


def _present(value: Optional[float]) -> bool:
    return value is not None


def _alert(
    alert_type: AlertType,
    severity: Severity,
    priority: int,
    title: str,
    description: str,
    chapters: list[int],
    metrics: dict[str, float],
    history: Sequence[QualityMetrics],
) -> QualityAlert:
    return QualityAlert(
        type=alert_type,
        severity=severity,
        priority=10 if severity == Severity.CRITICAL else priority,
        title=title,
        description=description,
        affected_chapters=chapters,
        metrics=metrics,
        suggestions=list(SUGGESTIONS[alert_type]),
        timestamp=history[-1].timestamp,
    )


def detect_low_score(history: Sequence[QualityMetrics], thresholds: AlertThresholds) -> Optional[QualityAlert]:
    """Trailing run of consecutive chapters scoring below the threshold."""
    threshold = thresholds.low_score_threshold
    if threshold is None or not history:
        return None

    run: list[QualityMetrics] = []
    for metrics in reversed(history):
        if not _present(metrics.overall_score) or metrics.overall_score >= threshold:
            break
        run.append(metrics)
    run.reverse()

    if len(run) < thresholds.consecutive_low_score_count:
        return None

    average = sum(m.overall_score for m in run) / len(run)
    gap = threshold - average
    if gap >= 10:
        severity, priority = Severity.CRITICAL, 10
    elif gap > 5:
        severity, priority = Severity.HIGH, 8
    else:
        severity, priority = Severity.MEDIUM, 6

    return _alert(
        AlertType.LOW_SCORE, severity, priority,
        "Consecutive low scores",
        f"The last {len(run)} chapters average {average:.1f}, below the threshold of {threshold:g}",
        [m.chapter_number for m in run],
        {"average_score": average, "threshold": threshold, "consecutive_count": float(len(run))},
        history,
    )


def detect_ai_flavor(history: Sequence[QualityMetrics], thresholds: AlertThresholds) -> Optional[QualityAlert]:
    threshold = thresholds.ai_flavor_threshold
    latest = history[-1] if history else None
    if threshold is None or latest is None or not _present(latest.ai_flavor_score):
        return None
    score = latest.ai_flavor_score
    if score <= threshold:
        return None

    if score - threshold >= 20:
        severity, priority = Severity.HIGH, 9
    else:
        severity, priority = Severity.MEDIUM, 7
    return _alert(
        AlertType.AI_FLAVOR, severity, priority,
        "AI flavor above threshold",
        f"Chapter {latest.chapter_number} scored {score:g} for AI flavor, above {threshold:g}",
        [latest.chapter_number],
        {"ai_flavor_score": score, "threshold": threshold},
        history,
    )


def detect_cool_point(history: Sequence[QualityMetrics], thresholds: AlertThresholds) -> Optional[QualityAlert]:
    """Average payoff density over the trailing window stays too low."""
    min_density = thresholds.cool_point_min_density
    if min_density is None:
        return None
    window = [m for m in history[-thresholds.cool_point_window:] if _present(m.cool_point_density)]
    if len(window) < min(3, thresholds.cool_point_window):
        return None

    average = sum(m.cool_point_density for m in window) / len(window)
    if average >= min_density:
        return None
    return _alert(
        AlertType.COOL_POINT, Severity.HIGH, 8,
        "Payoff density too low",
        f"The last {len(window)} chapters average a payoff density of {average:.2f}, below {min_density:g}",
        [m.chapter_number for m in window],
        {"average_density": average, "min_density": min_density},
        history,
    )


def detect_pacing(history: Sequence[QualityMetrics], thresholds: AlertThresholds) -> Optional[QualityAlert]:
    threshold = thresholds.pacing_threshold
    latest = history[-1] if history else None
    if threshold is None or latest is None or not _present(latest.pacing_score):
        return None
    if latest.pacing_score >= threshold:
        return None
    return _alert(
        AlertType.PACING, Severity.MEDIUM, 5,
        "Pacing problem",
        f"Chapter {latest.chapter_number} scored {latest.pacing_score:g} for pacing, below {threshold:g}",
        [latest.chapter_number],
        {"pacing_score": latest.pacing_score, "threshold": threshold},
        history,
    )


def detect_consistency(history: Sequence[QualityMetrics], thresholds: AlertThresholds) -> Optional[QualityAlert]:
    threshold = thresholds.consistency_threshold
    latest = history[-1] if history else None
    if threshold is None or latest is None or not _present(latest.consistency_score):
        return None
    score = latest.consistency_score
    if score >= threshold:
        return None

    if threshold - score >= 10:
        severity, priority = Severity.HIGH, 9
    else:
        severity, priority = Severity.MEDIUM, 7
    return _alert(
        AlertType.CONSISTENCY, severity, priority,
        "Consistency problem",
        f"Chapter {latest.chapter_number} scored {score:g} for consistency, below {threshold:g}",
        [latest.chapter_number],
        {"consistency_score": score, "threshold": threshold},
        history,
    )


def detect_repetition(history: Sequence[QualityMetrics], thresholds: AlertThresholds) -> Optional[QualityAlert]:
    threshold = thresholds.repetition_threshold
    latest = history[-1] if history else None
    if threshold is None or latest is None or not _present(latest.repetition_score):
        return None
    if latest.repetition_score <= threshold:
        return None
    return _alert(
        AlertType.REPETITION, Severity.MEDIUM, 4,
        "Repetitive content",
        f"Chapter {latest.chapter_number} scored {latest.repetition_score:g} for repetition, above {threshold:g}",
        [latest.chapter_number],
        {"repetition_score": latest.repetition_score, "threshold": threshold},
        history,
    )


Detector = Callable[[Sequence[QualityMetrics], AlertThresholds], Optional[QualityAlert]]

DETECTORS: list[Detector] = [
    detect_low_score,
    detect_ai_flavor,
    detect_cool_point,
    detect_pacing,
    detect_consistency,
    detect_repetition,
]


def evaluate_history(history: Sequence[QualityMetrics], thresholds: AlertThresholds) -> list[QualityAlert]:
    """Run every detector over the history, in detection order."""
    alerts = []
    for detector in DETECTORS:
        alert = detector(history, thresholds)
        if alert is not None:
            alerts.append(alert)
    return alerts


def _by_priority(alerts: list[QualityAlert]) -> list[QualityAlert]:
    # sorted() is stable, so equal priorities keep detection order
    return sorted(alerts, key=lambda a: a.priority, reverse=True)


class AlertEngineState(BaseModel):
    """Serializable snapshot of an engine, for callers that persist it."""

    thresholds: AlertThresholds = Field(default_factory=AlertThresholds)
    metrics_history: list[QualityMetrics] = Field(default_factory=list)
    alert_history: list[QualityAlert] = Field(default_factory=list)
    max_history: int = Field(default=DEFAULT_MAX_HISTORY, gt=0)


class QualityAlertEngine:
    """Feeds metrics into a bounded history and raises alerts on every new snapshot."""

    def __init__(
        self,
        thresholds: Optional[Union[AlertThresholds, Mapping[str, Any]]] = None,
        max_history: int = DEFAULT_MAX_HISTORY,
    ):
        if isinstance(thresholds, AlertThresholds):
            self._thresholds = thresholds.model_copy()
        else:
            self._thresholds = AlertThresholds(**dict(thresholds or {}))
        self.recorder = QualityMetricsRecorder(max_history=max_history)
        self._alert_history: list[QualityAlert] = []

    @classmethod
    def from_state(cls, state: AlertEngineState) -> "QualityAlertEngine":
        engine = cls(state.thresholds, max_history=state.max_history)
        engine.recorder = QualityMetricsRecorder(state.max_history, state.metrics_history)
        engine._alert_history = list(state.alert_history)
        return engine

    @property
    def state(self) -> AlertEngineState:
        return AlertEngineState(
            thresholds=self._thresholds.model_copy(),
            metrics_history=self.recorder.history,
            alert_history=list(self._alert_history),
            max_history=self.recorder.max_history,
        )

    @property
    def thresholds(self) -> AlertThresholds:
        return self._thresholds.model_copy()

    @property
    def metrics_history(self) -> list[QualityMetrics]:
        return self.recorder.history

    @property
    def alert_history(self) -> list[QualityAlert]:
        return list(self._alert_history)

    def _log_alerts(self, alerts: list[QualityAlert], announce: bool = True) -> None:
        known = {a.key for a in self._alert_history}
        for alert in alerts:
            if alert.key in known:
                continue
            known.add(alert.key)
            self._alert_history.append(alert)
            if not announce:
                continue
            logger.warning(
                f"[{alert.severity}] {alert.title} (chapters {', '.join(map(str, alert.affected_chapters))})"
            )

    def add_metrics(self, metrics: QualityMetrics) -> list[QualityAlert]:
        """Record a snapshot and return the alerts the updated history supports."""
        self.recorder.record(metrics)
        alerts = evaluate_history(self.recorder.history, self._thresholds)
        self._log_alerts(alerts)
        logger.debug(f"Chapter {metrics.chapter_number}: {len(alerts)} alerts")
        return alerts

    def get_alerts(
        self,
        type: Optional[Union[AlertType, str]] = None,
        severity: Optional[Union[Severity, str]] = None,
        min_priority: Optional[int] = None,
    ) -> list[QualityAlert]:
        alerts = self._alert_history
        if type is not None:
            alerts = [a for a in alerts if a.type == AlertType(type)]
        if severity is not None:
            alerts = [a for a in alerts if a.severity == Severity(severity)]
        if min_priority is not None:
            alerts = [a for a in alerts if a.priority >= min_priority]
        return _by_priority(list(alerts))

    def get_active_alerts(self) -> list[QualityAlert]:
        return _by_priority(evaluate_history(self.recorder.history, self._thresholds))

    def get_alert_stats(self) -> AlertStats:
        by_type: dict[str, int] = {}
        by_severity: dict[str, int] = {}
        for alert in self._alert_history:
            by_type[str(alert.type)] = by_type.get(str(alert.type), 0) + 1
            by_severity[str(alert.severity)] = by_severity.get(str(alert.severity), 0) + 1
        return AlertStats(
            total=len(self._alert_history),
            by_type={t.value: by_type[t.value] for t in AlertType if t.value in by_type},
            by_severity={s.value: by_severity[s.value] for s in Severity if s.value in by_severity},
            active_count=len(self.get_active_alerts()),
        )

    def update_thresholds(self, partial: Optional[Mapping[str, Any]] = None, **changes: Any) -> AlertThresholds:
        """Merge new threshold values; fields not mentioned keep their current value."""
        merged = {**self._thresholds.model_dump(), **dict(partial or {}), **changes}
        self._thresholds = AlertThresholds(**merged)
        logger.info(f"Alert thresholds updated: {self._thresholds.model_dump()}")
        return self.thresholds

    def clear_history(self, since: Optional[float] = None) -> None:
        """Forget history.

        Without ``since`` both logs are emptied. With a timestamp, snapshots
        older than it are dropped and the alert log is rebuilt by replaying
        detection over what remains.
        """
        if since is None:
            self.recorder.clear()
            self._alert_history = []
            return

        dropped = self.recorder.prune_before(since)
        remaining = self.recorder.history
        self._alert_history = []
        for end in range(1, len(remaining) + 1):
            self._log_alerts(evaluate_history(remaining[:end], self._thresholds), announce=False)
        logger.info(f"Pruned {dropped} snapshots older than {since}; {len(self._alert_history)} alerts remain")

    def generate_report(self) -> str:
        from .report import generate_alert_report

        return generate_alert_report(self)
