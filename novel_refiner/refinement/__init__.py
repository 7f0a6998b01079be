from .stages import (
    DEFAULT_CATALOG,
    DEFAULT_STAGES,
    PipelineError,
    RefinementPromptConfig,
    RefinementStage,
    StageCatalog,
    StageDefinition,
    UnknownStageError,
    build_stage_prompt,
    get_stage_name,
)
from .models import (
    ChapterInput,
    PipelineProgress,
    PipelineStatus,
    RefinementPipeline,
    RefinementResult,
    RefinementTask,
    TaskStatus,
)
from .pipeline import (
    StageMismatchError,
    complete_task_stage,
    create_pipeline,
    create_task,
    export_results,
    get_next_task,
    mark_processing,
    pause_pipeline,
    replace_task,
    resume_pipeline,
    retry_failed_tasks,
    stop_pipeline,
    update_pipeline_progress,
    update_task_status,
)
from .report import generate_report
from .runner import PipelineControl, RefinementOptions, run_pipeline

__all__ = [
    "DEFAULT_CATALOG", "DEFAULT_STAGES", "PipelineError", "RefinementPromptConfig",
    "RefinementStage", "StageCatalog", "StageDefinition", "UnknownStageError",
    "build_stage_prompt", "get_stage_name",
    "ChapterInput", "PipelineProgress", "PipelineStatus", "RefinementPipeline",
    "RefinementResult", "RefinementTask", "TaskStatus",
    "StageMismatchError", "complete_task_stage", "create_pipeline", "create_task",
    "export_results", "get_next_task", "mark_processing", "pause_pipeline",
    "replace_task", "resume_pipeline", "retry_failed_tasks", "stop_pipeline",
    "update_pipeline_progress", "update_task_status",
    "generate_report",
    "PipelineControl", "RefinementOptions", "run_pipeline",
]
