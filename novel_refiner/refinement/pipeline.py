"""Batch refinement pipeline: task bookkeeping for multi-stage chapter rewrites.

Every function here is pure with respect to its inputs: tasks and pipelines
are never mutated, an updated copy is returned instead. A driver (see
``runner.py``) owns the only live reference and feeds results back in.
"""

import time
import uuid
from typing import Iterable, Mapping, Optional, Union

from loguru import logger

from .models import (
    ChapterInput,
    PipelineProgress,
    PipelineStatus,
    RefinementPipeline,
    RefinementResult,
    RefinementTask,
    TaskStatus,
)
from .stages import (
    DEFAULT_CATALOG,
    DEFAULT_STAGES,
    PipelineError,
    StageCatalog,
    StageLike,
    stage_id,
)

ChapterLike = Union[ChapterInput, Mapping[str, str]]


class StageMismatchError(PipelineError, ValueError):
    """Raised when a stage result is applied to a task that is not on that stage."""


def _now() -> float:
    return time.time()


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def create_task(
    chapter_id: str,
    chapter_title: str,
    content: str,
    stages: list[str],
) -> RefinementTask:
    return RefinementTask(
        id=_new_id("task"),
        chapter_id=chapter_id,
        chapter_title=chapter_title,
        original_content=content,
        current_content=content,
        current_stage=stages[0],
    )


def _validate_stages(stages: list[str], catalog: StageCatalog) -> None:
    if not stages:
        raise ValueError("A pipeline needs at least one stage")
    if len(set(stages)) != len(stages):
        raise ValueError(f"Duplicate stages in sequence: {stages}")
    unknown = [s for s in stages if s not in catalog]
    if unknown:
        raise ValueError(f"Unknown stages: {', '.join(unknown)}")


def create_pipeline(
    chapters: Iterable[ChapterLike],
    stages: Optional[Iterable[StageLike]] = None,
    catalog: Optional[StageCatalog] = None,
) -> RefinementPipeline:
    """Create a pipeline with one pending task per chapter.

    Args:
        chapters: Chapters as ``ChapterInput`` or mappings with id/title/content.
        stages: Ordered stage ids. Defaults to all four built-in stages.
        catalog: Catalog used to validate the stage ids.

    Returns:
        An idle pipeline. An empty chapter list is allowed and yields no tasks.
    """
    stage_ids = [stage_id(s) for s in stages] if stages is not None else list(DEFAULT_STAGES)
    _validate_stages(stage_ids, catalog or DEFAULT_CATALOG)

    tasks = []
    for chapter in chapters:
        chapter = ChapterInput.model_validate(chapter)
        tasks.append(create_task(chapter.id, chapter.title, chapter.content, stage_ids))

    pipeline = RefinementPipeline(id=_new_id("pipeline"), tasks=tasks, stages=stage_ids)
    logger.info(f"Created pipeline {pipeline.id}: {len(tasks)} tasks x {len(stage_ids)} stages")
    return update_pipeline_progress(pipeline)


def get_next_task(pipeline: RefinementPipeline) -> Optional[RefinementTask]:
    """Return the first pending or paused task at or after the resume cursor."""
    for task in pipeline.tasks[pipeline.current_task_index:]:
        if task.status in (TaskStatus.PENDING, TaskStatus.PAUSED):
            return task
    return None


def update_task_status(
    task: RefinementTask,
    status: Union[TaskStatus, str],
    error: Optional[str] = None,
) -> RefinementTask:
    status = TaskStatus(status)
    now = _now()
    start_time = task.start_time
    if status == TaskStatus.PROCESSING and start_time is None:
        start_time = now
    end_time = task.end_time
    if status in (TaskStatus.COMPLETED, TaskStatus.FAILED):
        end_time = now

    logger.debug(f"Task {task.id} ({task.chapter_title}): {task.status} -> {status.value}")
    return task.model_copy(update={
        "status": status,
        "error": error if status == TaskStatus.FAILED else None,
        "start_time": start_time,
        "end_time": end_time,
    })


def mark_processing(task: RefinementTask) -> RefinementTask:
    return update_task_status(task, TaskStatus.PROCESSING)


def complete_task_stage(
    task: RefinementTask,
    refined_content: str,
    pipeline: RefinementPipeline,
    stage: Optional[StageLike] = None,
) -> RefinementTask:
    """Record the output of the task's current stage and advance it.

    Args:
        task: The task whose current stage just finished.
        refined_content: Text produced by the stage.
        pipeline: Pipeline providing the stage sequence.
        stage: The stage that was actually executed; checked against the task.

    Returns:
        The task moved to its next stage (status pending), or completed when
        no stage is left.

    Raises:
        StageMismatchError: If the task is not actually waiting on that stage.
    """
    if task.status == TaskStatus.COMPLETED:
        raise StageMismatchError(f"Task {task.id} is already completed")
    if stage is not None and stage_id(stage) != task.current_stage:
        raise StageMismatchError(
            f"Task {task.id} is on stage {task.current_stage!r}, got result for {stage_id(stage)!r}"
        )
    done = len(task.completed_stages)
    if done >= len(pipeline.stages) or pipeline.stages[done] != task.current_stage:
        raise StageMismatchError(
            f"Task {task.id} stage {task.current_stage!r} is not its outstanding stage in {pipeline.stages}"
        )

    completed_stages = [*task.completed_stages, task.current_stage]
    next_index = done + 1
    if next_index < len(pipeline.stages):
        return task.model_copy(update={
            "current_content": refined_content,
            "completed_stages": completed_stages,
            "current_stage": pipeline.stages[next_index],
            "status": TaskStatus.PENDING,
            "error": None,
        })

    logger.info(f"Task {task.id} ({task.chapter_title}) completed all {len(completed_stages)} stages")
    return task.model_copy(update={
        "current_content": refined_content,
        "completed_stages": completed_stages,
        "status": TaskStatus.COMPLETED,
        "error": None,
        "end_time": _now(),
    })


def update_pipeline_progress(pipeline: RefinementPipeline) -> RefinementPipeline:
    """Recompute progress from the tasks."""
    total = len(pipeline.tasks) * len(pipeline.stages)
    completed = sum(len(task.completed_stages) for task in pipeline.tasks)
    failed = pipeline.count(TaskStatus.FAILED)
    percentage = round(completed / total * 100) if total > 0 else 0

    return pipeline.model_copy(update={
        "progress": PipelineProgress(
            total=total,
            completed=completed,
            failed=failed,
            percentage=percentage,
        ),
    })


def _first_open_index(tasks: list[RefinementTask]) -> int:
    for index, task in enumerate(tasks):
        if task.status != TaskStatus.COMPLETED:
            return index
    return len(tasks)


def _with_tasks(pipeline: RefinementPipeline, tasks: list[RefinementTask], **changes) -> RefinementPipeline:
    updated = pipeline.model_copy(update={
        "tasks": tasks,
        "current_task_index": _first_open_index(tasks),
        **changes,
    })
    return update_pipeline_progress(updated)


def replace_task(pipeline: RefinementPipeline, task: RefinementTask) -> RefinementPipeline:
    """Swap an updated task into the pipeline (matched by id)."""
    pipeline.get_task(task.id)
    tasks = [task if t.id == task.id else t for t in pipeline.tasks]
    return _with_tasks(pipeline, tasks)


def start_pipeline(pipeline: RefinementPipeline) -> RefinementPipeline:
    logger.info(f"Pipeline {pipeline.id} running")
    return pipeline.model_copy(update={
        "status": PipelineStatus.RUNNING,
        "start_time": pipeline.start_time if pipeline.start_time is not None else _now(),
        "end_time": None,
    })


def finish_pipeline(pipeline: RefinementPipeline) -> RefinementPipeline:
    logger.info(
        f"Pipeline {pipeline.id} finished: {pipeline.count(TaskStatus.COMPLETED)} completed, "
        f"{pipeline.count(TaskStatus.FAILED)} failed"
    )
    return update_pipeline_progress(pipeline.model_copy(update={
        "status": PipelineStatus.COMPLETED,
        "end_time": _now(),
    }))


def fail_pipeline(pipeline: RefinementPipeline) -> RefinementPipeline:
    logger.error(f"Pipeline {pipeline.id} halted after a failed task")
    return update_pipeline_progress(pipeline.model_copy(update={
        "status": PipelineStatus.FAILED,
        "end_time": _now(),
    }))


def pause_pipeline(pipeline: RefinementPipeline) -> RefinementPipeline:
    """Pause the pipeline; in-flight tasks are marked paused.

    The caller is responsible for abandoning any outstanding completion call.
    """
    tasks = [
        t.model_copy(update={"status": TaskStatus.PAUSED}) if t.status == TaskStatus.PROCESSING else t
        for t in pipeline.tasks
    ]
    logger.info(f"Pipeline {pipeline.id} paused")
    return _with_tasks(pipeline, tasks, status=PipelineStatus.PAUSED)


def resume_pipeline(pipeline: RefinementPipeline) -> RefinementPipeline:
    tasks = [
        t.model_copy(update={"status": TaskStatus.PENDING}) if t.status == TaskStatus.PAUSED else t
        for t in pipeline.tasks
    ]
    logger.info(f"Pipeline {pipeline.id} resumed")
    return _with_tasks(pipeline, tasks, status=PipelineStatus.RUNNING)


def stop_pipeline(pipeline: RefinementPipeline) -> RefinementPipeline:
    """Stop for good. Unfinished tasks are left paused so they stay inspectable."""
    tasks = [
        t.model_copy(update={"status": TaskStatus.PAUSED})
        if t.status in (TaskStatus.PROCESSING, TaskStatus.PENDING)
        else t
        for t in pipeline.tasks
    ]
    logger.info(f"Pipeline {pipeline.id} stopped")
    return _with_tasks(pipeline, tasks, status=PipelineStatus.COMPLETED, end_time=_now())


def retry_failed_tasks(pipeline: RefinementPipeline) -> RefinementPipeline:
    """Reset failed tasks to pending; they re-attempt the stage they failed on.

    A finished or failed pipeline with retried tasks is reopened as paused so
    a driver will pick it up again.
    """
    tasks = [
        t.model_copy(update={"status": TaskStatus.PENDING, "error": None})
        if t.status == TaskStatus.FAILED
        else t
        for t in pipeline.tasks
    ]
    retried = pipeline.count(TaskStatus.FAILED)
    if not retried:
        return _with_tasks(pipeline, tasks)

    logger.info(f"Retrying {retried} failed tasks in pipeline {pipeline.id}")
    changes = {}
    if pipeline.status in (PipelineStatus.COMPLETED, PipelineStatus.FAILED):
        changes = {"status": PipelineStatus.PAUSED, "end_time": None}
    return _with_tasks(pipeline, tasks, **changes)


def export_results(pipeline: RefinementPipeline) -> list[RefinementResult]:
    """Return export records for completed tasks only, in task order."""
    return [
        RefinementResult(
            chapter_id=task.chapter_id,
            chapter_title=task.chapter_title,
            original_content=task.original_content,
            refined_content=task.current_content,
            completed_stages=list(task.completed_stages),
        )
        for task in pipeline.tasks
        if task.status == TaskStatus.COMPLETED
    ]
