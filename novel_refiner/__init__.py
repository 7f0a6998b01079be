"""Batch chapter refinement with quality trend alerts."""

__version__ = "0.1.0"

from .refinement import (
    RefinementPipeline,
    RefinementStage,
    RefinementTask,
    create_pipeline,
    generate_report,
    run_pipeline,
)
from .quality import (
    AlertThresholds,
    QualityAlert,
    QualityAlertEngine,
    QualityMetrics,
    create_quality_metrics,
    generate_alert_report,
)

__all__ = [
    "RefinementPipeline", "RefinementStage", "RefinementTask",
    "create_pipeline", "generate_report", "run_pipeline",
    "AlertThresholds", "QualityAlert", "QualityAlertEngine", "QualityMetrics",
    "create_quality_metrics", "generate_alert_report",
]
