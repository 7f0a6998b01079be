from .logger import setup_logger
from .progress import PipelineProgressBar, create_progress

__all__ = ["setup_logger", "PipelineProgressBar", "create_progress"]
