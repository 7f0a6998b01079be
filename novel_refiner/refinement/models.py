"""Data models for batch chapter refinement."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TaskStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    PAUSED = "paused"

    def __str__(self) -> str:
        return self.value


class PipelineStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


class ChapterInput(BaseModel):
    """A raw chapter handed to the pipeline."""

    id: str
    title: str = ""
    content: str = ""

    @field_validator("id")
    @classmethod
    def id_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("chapter id must not be empty")
        return value


class RefinementTask(BaseModel):
    """Per-chapter unit of work moving through the stage sequence."""

    model_config = ConfigDict(use_enum_values=True)

    id: str
    chapter_id: str
    chapter_title: str
    original_content: str
    current_content: str
    current_stage: str
    completed_stages: list[str] = Field(default_factory=list)
    status: TaskStatus = TaskStatus.PENDING
    error: Optional[str] = None
    start_time: Optional[float] = None
    end_time: Optional[float] = None

    @property
    def duration(self) -> Optional[float]:
        if self.start_time is None or self.end_time is None:
            return None
        return self.end_time - self.start_time


class PipelineProgress(BaseModel):
    total: int = 0
    completed: int = 0
    failed: int = 0
    percentage: int = 0


class RefinementPipeline(BaseModel):
    """An ordered batch of tasks sharing one stage sequence."""

    model_config = ConfigDict(use_enum_values=True)

    id: str
    tasks: list[RefinementTask] = Field(default_factory=list)
    stages: list[str]
    current_task_index: int = 0
    status: PipelineStatus = PipelineStatus.IDLE
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    progress: PipelineProgress = Field(default_factory=PipelineProgress)

    def get_task(self, task_id: str) -> RefinementTask:
        for task in self.tasks:
            if task.id == task_id:
                return task
        raise KeyError(task_id)

    def count(self, status: TaskStatus) -> int:
        return sum(1 for task in self.tasks if task.status == status)


class RefinementResult(BaseModel):
    """Export record for a fully refined chapter."""

    chapter_id: str
    chapter_title: str
    original_content: str
    refined_content: str
    completed_stages: list[str]
