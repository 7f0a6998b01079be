"""Markdown reporting for refinement pipelines."""

from datetime import datetime, timezone
from typing import Optional

from .models import RefinementPipeline, TaskStatus
from .stages import StageCatalog, get_stage_name


def format_timestamp(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _duration(start: Optional[float], end: float) -> int:
    return round(end - (start if start is not None else end))


def generate_report(pipeline: RefinementPipeline, catalog: Optional[StageCatalog] = None) -> str:
    """Render a deterministic Markdown summary of the pipeline state."""

    def name(stage: str) -> str:
        return get_stage_name(stage, catalog)

    progress = pipeline.progress
    lines = [
        "# Refinement Pipeline Report",
        "",
        f"**Pipeline ID:** {pipeline.id}",
        f"**Status:** {pipeline.status}",
        f"**Progress:** {progress.completed}/{progress.total} ({progress.percentage}%)",
    ]
    if pipeline.start_time is not None:
        lines.append(f"**Started:** {format_timestamp(pipeline.start_time)}")
    if pipeline.end_time is not None:
        lines.append(f"**Finished:** {format_timestamp(pipeline.end_time)}")
        lines.append(f"**Duration:** {_duration(pipeline.start_time, pipeline.end_time)}s")

    lines += ["", "## Stages"]
    for i, stage in enumerate(pipeline.stages, 1):
        lines.append(f"{i}. {name(stage)}")

    lines += ["", "## Tasks", ""]
    if not pipeline.tasks:
        lines += ["No tasks.", ""]

    for i, task in enumerate(pipeline.tasks, 1):
        lines.append(f"### {i}. {task.chapter_title or task.chapter_id} [{task.status}]")
        lines.append("")
        lines.append(f"- **Status:** {task.status}")
        lines.append(f"- **Current stage:** {name(task.current_stage)}")
        completed = ", ".join(name(s) for s in task.completed_stages) or "none"
        lines.append(f"- **Completed stages:** {completed}")
        if task.error:
            lines.append(f"- **Error:** {task.error}")
        if task.start_time is not None:
            lines.append(f"- **Started:** {format_timestamp(task.start_time)}")
        if task.end_time is not None:
            lines.append(f"- **Finished:** {format_timestamp(task.end_time)}")
            lines.append(f"- **Duration:** {_duration(task.start_time, task.end_time)}s")
        lines.append("")

    lines += [
        "## Summary",
        "",
        f"- **Total tasks:** {len(pipeline.tasks)}",
        f"- **Completed:** {pipeline.count(TaskStatus.COMPLETED)}",
        f"- **Processing:** {pipeline.count(TaskStatus.PROCESSING)}",
        f"- **Pending:** {pipeline.count(TaskStatus.PENDING)}",
        f"- **Paused:** {pipeline.count(TaskStatus.PAUSED)}",
        f"- **Failed:** {pipeline.count(TaskStatus.FAILED)}",
    ]
    return "\n".join(lines)
