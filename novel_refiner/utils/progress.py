from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn, TimeRemainingColumn
from typing import Optional

from ..refinement.models import RefinementPipeline, RefinementTask

def create_progress(transient: bool = False) -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeRemainingColumn(),
        transient=transient,
    )

class PipelineProgressBar:
    """Mirrors pipeline progress (completed stages / total stages) onto a rich bar.

    Pass ``update`` as the runner's ``on_update`` callback.
    """

    def __init__(self, progress: Progress, description: str = "Refining"):
        self.progress = progress
        self.description = description
        self.task_id = progress.add_task(description, total=None)
        self._chars = 0
        self._current: Optional[str] = None

    def update(self, pipeline: RefinementPipeline):
        processing = next((t for t in pipeline.tasks if t.status == "processing"), None)
        if processing is not None and processing.id != self._current:
            self._current = processing.id
            self._chars = 0
        description = self.description
        if processing is not None:
            description = f"{self.description}: {processing.chapter_title} ({processing.current_stage})"
        self.progress.update(
            self.task_id,
            total=pipeline.progress.total or None,
            completed=pipeline.progress.completed,
            description=description,
        )

    def chunk(self, task: RefinementTask, chunk: str):
        self._chars += len(chunk)
        self.progress.update(
            self.task_id,
            description=f"{self.description}: {task.chapter_title} ({task.current_stage}, {self._chars} chars)",
        )
