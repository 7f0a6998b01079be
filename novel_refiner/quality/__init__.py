from .metrics import (
    QualityMetrics,
    QualityMetricsRecorder,
    RawQualityScores,
    ScoringFunction,
    create_quality_metrics,
    load_scores,
    score_chapter,
)
from .alerts import (
    AlertEngineState,
    AlertStats,
    AlertThresholds,
    AlertType,
    QualityAlert,
    QualityAlertEngine,
    Severity,
    evaluate_history,
)
from .report import generate_alert_report

__all__ = [
    "QualityMetrics", "QualityMetricsRecorder", "RawQualityScores", "ScoringFunction",
    "create_quality_metrics", "load_scores", "score_chapter",
    "AlertEngineState", "AlertStats", "AlertThresholds", "AlertType",
    "QualityAlert", "QualityAlertEngine", "Severity", "evaluate_history",
    "generate_alert_report",
]
