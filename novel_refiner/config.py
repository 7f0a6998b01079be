from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field
import yaml

from .quality.alerts import AlertThresholds
from .refinement.runner import RefinementOptions
from .refinement.stages import RefinementPromptConfig

class CompletionConfig(BaseModel):
    # None falls back to the OPENAI_API_KEY environment variable
    api_key: Optional[str] = Field(default=None)
    base_url: Optional[str] = Field(default=None)
    model: str = Field(default="gpt-4o-mini")
    temperature: float = Field(default=0.7, ge=0, le=2)
    max_tokens: int = Field(default=4096, gt=0)
    timeout: float = Field(default=120.0, gt=0)
    system_prompt: str = Field(
        default="You are a senior fiction editor. Return only the revised chapter text."
    )

class Config(BaseModel):
    completion: CompletionConfig = Field(default_factory=CompletionConfig)
    refinement: RefinementOptions = Field(default_factory=RefinementOptions)
    prompts: RefinementPromptConfig = Field(default_factory=RefinementPromptConfig)
    alerts: AlertThresholds = Field(default_factory=AlertThresholds)
    log_level: str = Field(default="INFO")
    log_file: Optional[Path] = Field(default=None)

    @classmethod
    def from_yaml(cls, path: Path) -> "Config":
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    def to_yaml(self, path: Path):
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(self.model_dump(mode="json"), f, default_flow_style=False, allow_unicode=True)
