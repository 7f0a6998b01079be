"""Refinement stages: identifiers, human labels and prompt templates."""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Union

from pydantic import BaseModel


class PipelineError(Exception):
    """Base class for refinement pipeline errors."""


class UnknownStageError(PipelineError, KeyError):
    """Raised when a stage id is not registered in the catalog."""


class RefinementStage(str, Enum):
    REMOVE_AI_FLAVOR = "remove-ai-flavor"
    ENHANCE_TENSION = "enhance-tension"
    IMPROVE_CHARACTER = "improve-character"
    ADD_TECHNIQUES = "add-techniques"

    def __str__(self) -> str:
        return self.value


StageLike = Union[RefinementStage, str]

DEFAULT_STAGES: list[str] = [stage.value for stage in RefinementStage]


REMOVE_AI_FLAVOR_PROMPT = """Remove the "AI flavor" from the following text so that it reads naturally:

[Requirements]
1. Strip out piled-up adjectives and over-decoration
2. Simplify convoluted sentence structures
3. Cut vague hedges such as "as if", "seemed" and "somehow"
4. Avoid excessive inner monologue
5. Prefer plain, spoken, down-to-earth phrasing

[Original]
{content}

[Refined]"""

ENHANCE_TENSION_PROMPT = """Strengthen the dramatic tension of the following text:

[Requirements]
1. Sharpen conflict and opposition
2. Add suspense and a sense of the unknown
3. Tighten the pace and cut redundancy
4. Bring the key turning points to the front
5. Heighten the emotional swings

[Original]
{content}

[Refined]"""

IMPROVE_CHARACTER_PROMPT = """Improve the characterization in the following text:

[Requirements]
1. Give each voice distinct, personal dialogue
2. Reveal personality through action
3. Keep every character consistent with who they are
4. Add interaction and chemistry between characters
5. Make behaviour motivated and logical

[Original]
{content}

[Refined]"""

ADD_TECHNIQUES_PROMPT = """Add literary techniques to the following text:

[Requirements]
1. Use metaphor and personification where they fit
2. Add contrast and reversal
3. Plant foreshadowing and callbacks
4. Use parallelism to build momentum
5. Mind rhythm and cadence

[Original]
{content}

[Refined]"""


class RefinementPromptConfig(BaseModel):
    """Prompt templates for the built-in stages. `{content}` marks the chapter text."""

    remove_ai_flavor: str = REMOVE_AI_FLAVOR_PROMPT
    enhance_tension: str = ENHANCE_TENSION_PROMPT
    improve_character: str = IMPROVE_CHARACTER_PROMPT
    add_techniques: str = ADD_TECHNIQUES_PROMPT

    def template_for(self, stage: StageLike) -> Optional[str]:
        field_name = stage_id(stage).replace("-", "_")
        if field_name not in type(self).model_fields:
            return None
        return getattr(self, field_name)


@dataclass(frozen=True)
class StageDefinition:
    id: str
    label: str
    template: str


def stage_id(stage: StageLike) -> str:
    """Normalize a stage enum member or plain string to its id."""
    if isinstance(stage, Enum):
        return stage.value
    return str(stage)


class StageCatalog:
    """Registry mapping stage ids to labels and prompt templates."""

    def __init__(self, definitions: Iterable[StageDefinition] = ()):
        self._definitions: dict[str, StageDefinition] = {}
        for definition in definitions:
            self.register(definition)

    @classmethod
    def default(cls, prompts: Optional[RefinementPromptConfig] = None) -> "StageCatalog":
        prompts = prompts or RefinementPromptConfig()
        return cls([
            StageDefinition(RefinementStage.REMOVE_AI_FLAVOR.value, "Remove AI flavor", prompts.remove_ai_flavor),
            StageDefinition(RefinementStage.ENHANCE_TENSION.value, "Enhance tension", prompts.enhance_tension),
            StageDefinition(RefinementStage.IMPROVE_CHARACTER.value, "Improve characters", prompts.improve_character),
            StageDefinition(RefinementStage.ADD_TECHNIQUES.value, "Add literary techniques", prompts.add_techniques),
        ])

    def register(self, definition: StageDefinition) -> None:
        if not definition.id:
            raise ValueError("Stage id must not be empty")
        self._definitions[definition.id] = definition

    def get(self, stage: StageLike) -> StageDefinition:
        key = stage_id(stage)
        try:
            return self._definitions[key]
        except KeyError:
            raise UnknownStageError(key) from None

    def label(self, stage: StageLike) -> str:
        return self.get(stage).label

    def build_prompt(self, stage: StageLike, content: str) -> str:
        return self.get(stage).template.replace("{content}", content)

    @property
    def ids(self) -> list[str]:
        return list(self._definitions)

    def __contains__(self, stage: object) -> bool:
        if not isinstance(stage, (str, Enum)):
            return False
        return stage_id(stage) in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)


DEFAULT_CATALOG = StageCatalog.default()


def build_stage_prompt(
    stage: StageLike,
    content: str,
    prompts: Optional[RefinementPromptConfig] = None,
    catalog: Optional[StageCatalog] = None,
) -> str:
    """Substitute chapter content into the template for ``stage``.

    Custom ``prompts`` override the built-in templates; stages without a
    prompt field (custom catalog entries) fall back to the catalog template.
    """
    if prompts is not None:
        template = prompts.template_for(stage)
        if template is not None:
            return template.replace("{content}", content)
    return (catalog or DEFAULT_CATALOG).build_prompt(stage, content)


def get_stage_name(stage: StageLike, catalog: Optional[StageCatalog] = None) -> str:
    return (catalog or DEFAULT_CATALOG).label(stage)
