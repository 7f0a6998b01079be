"""Async driver that pushes a pipeline's tasks through a text-completion service."""

import asyncio
from typing import AsyncIterator, Callable, Optional

from loguru import logger
from pydantic import BaseModel, Field

from .models import PipelineStatus, RefinementPipeline, RefinementTask, TaskStatus
from .pipeline import (
    complete_task_stage,
    fail_pipeline,
    finish_pipeline,
    get_next_task,
    mark_processing,
    pause_pipeline,
    replace_task,
    start_pipeline,
    stop_pipeline,
    update_task_status,
)
from .stages import DEFAULT_STAGES, RefinementPromptConfig, StageCatalog, build_stage_prompt

CompletionFn = Callable[[str], AsyncIterator[str]]
UpdateCallback = Callable[[RefinementPipeline], None]
ChunkCallback = Callable[[RefinementTask, str], None]


class RefinementOptions(BaseModel):
    stages: list[str] = Field(default_factory=lambda: list(DEFAULT_STAGES))
    # Move on to the next task automatically once one finishes
    auto_continue: bool = True
    delay_between_tasks: float = Field(default=0.0, ge=0)
    continue_on_error: bool = True


class PipelineControl:
    """Pause/stop requests from outside the driver, honoured between chunks."""

    def __init__(self):
        self.pause_requested = False
        self.stop_requested = False

    def request_pause(self) -> None:
        self.pause_requested = True

    def request_stop(self) -> None:
        self.stop_requested = True

    @property
    def interrupted(self) -> bool:
        return self.pause_requested or self.stop_requested


async def _collect(
    stream: AsyncIterator[str],
    task: RefinementTask,
    control: PipelineControl,
    on_chunk: Optional[ChunkCallback],
) -> Optional[str]:
    """Accumulate streamed chunks. Returns None when the stream was abandoned."""
    chunks = []
    try:
        async for chunk in stream:
            if control.interrupted:
                return None
            chunks.append(chunk)
            if on_chunk:
                on_chunk(task, chunk)
    finally:
        aclose = getattr(stream, "aclose", None)
        if aclose is not None:
            await aclose()
    if control.interrupted:
        return None
    return "".join(chunks)


async def run_pipeline(
    pipeline: RefinementPipeline,
    complete: CompletionFn,
    options: Optional[RefinementOptions] = None,
    prompts: Optional[RefinementPromptConfig] = None,
    catalog: Optional[StageCatalog] = None,
    control: Optional[PipelineControl] = None,
    on_update: Optional[UpdateCallback] = None,
    on_chunk: Optional[ChunkCallback] = None,
) -> RefinementPipeline:
    """Run tasks one at a time, one stage at a time, until nothing is left.

    Args:
        pipeline: Pipeline to run (idle, paused or partially processed).
        complete: Completion collaborator; called with a prompt, yields text chunks.
        options: Driver behaviour (continue_on_error, auto_continue, delay).
            ``options.stages`` is ignored here; the pipeline's own stages apply.
        prompts: Optional prompt overrides for the built-in stages.
        catalog: Stage catalog for custom stages.
        control: Pause/stop switch checked between chunks and stages.
        on_update: Called with the new pipeline value after each transition.
        on_chunk: Called with every streamed chunk for live display.

    Returns:
        The final pipeline value. If the surrounding asyncio task is cancelled
        the pipeline is paused, reported through ``on_update`` and the
        cancellation propagates. A pipeline that is already ``completed``
        (finished or stopped) is returned untouched; pass it through
        ``resume_pipeline`` or ``retry_failed_tasks`` to run it again.
    """
    if pipeline.status == PipelineStatus.COMPLETED:
        logger.info(f"Pipeline {pipeline.id} is already completed; nothing to run")
        return pipeline

    options = options or RefinementOptions()
    control = control or PipelineControl()

    def publish(value: RefinementPipeline) -> RefinementPipeline:
        if on_update:
            on_update(value)
        return value

    pipeline = publish(start_pipeline(pipeline))
    previous_task_id = None

    while True:
        if control.stop_requested:
            pipeline = stop_pipeline(pipeline)
            break
        if control.pause_requested:
            pipeline = pause_pipeline(pipeline)
            break

        task = get_next_task(pipeline)
        if task is None:
            pipeline = finish_pipeline(pipeline)
            break

        if previous_task_id is not None and task.id != previous_task_id:
            if not options.auto_continue:
                pipeline = pause_pipeline(pipeline)
                break
            if options.delay_between_tasks:
                await asyncio.sleep(options.delay_between_tasks)
        previous_task_id = task.id

        if task.status == TaskStatus.PAUSED:
            task = update_task_status(task, TaskStatus.PENDING)
        task = mark_processing(task)
        pipeline = publish(replace_task(pipeline, task))

        stage = task.current_stage
        prompt = build_stage_prompt(stage, task.current_content, prompts, catalog)
        logger.info(f"Refining '{task.chapter_title}' ({stage})")

        try:
            refined = await _collect(complete(prompt), task, control, on_chunk)
        except asyncio.CancelledError:
            publish(pause_pipeline(pipeline))
            raise
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error(f"Stage {stage} failed for '{task.chapter_title}': {message}")
            pipeline = publish(replace_task(pipeline, update_task_status(task, TaskStatus.FAILED, message)))
            if not options.continue_on_error:
                pipeline = fail_pipeline(pipeline)
                break
            continue

        if refined is None:
            logger.info(f"Abandoned stage {stage} for '{task.chapter_title}'")
            continue

        task = complete_task_stage(task, refined, pipeline, stage=stage)
        pipeline = publish(replace_task(pipeline, task))

    return publish(pipeline)
