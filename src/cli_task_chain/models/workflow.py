"""Workflow chain data models.

A chain is an ordered, linear sequence of stages. Stage ``i`` is triggered by
its ``keyword``, dispatches its ``instruction`` and names the keyword that
triggers stage ``i + 1`` in ``next_keyword``; only the terminal stage has no
``next_keyword``. Chains are immutable: placeholder substitution always
returns a new chain.
"""

import re
from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from cli_task_chain.constants import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_DELAY,
    DEFAULT_TIMEOUT,
    PLACEHOLDER_INSTANCE_ID,
)

PLACEHOLDER_PATTERN = r"\{\{(\w+)\}\}"


def substitute_placeholders(text: str, replacements: Dict[str, str]) -> str:
    """Replace ``{{NAME}}`` placeholders; unknown placeholders are left as-is."""

    def _replace(match: re.Match) -> str:
        return replacements.get(match.group(1), match.group(0))

    return re.sub(PLACEHOLDER_PATTERN, _replace, text)


class Stage(BaseModel):
    """One step of a chain."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    keyword: str = Field(..., min_length=1, description="Signal that triggers this stage")
    instruction: str = Field(..., min_length=1, description="Instruction sent when triggered")
    next_keyword: Optional[str] = Field(
        None, alias="nextKeyword", description="Keyword awaited after this stage"
    )


def linkage_errors(stages: Sequence[Stage]) -> List[str]:
    """Return the structural problems of a stage sequence (empty when valid)."""
    errors = []
    if not stages:
        return ["Chains array cannot be empty"]

    seen = set()
    for index, stage in enumerate(stages):
        if stage.keyword in seen:
            errors.append(f"Chain {index} reuses keyword '{stage.keyword}'")
        seen.add(stage.keyword)

        is_last = index == len(stages) - 1
        if is_last:
            if stage.next_keyword:
                errors.append(
                    f"Chain {index} is the last chain but has nextKeyword '{stage.next_keyword}'"
                )
            continue
        if not stage.next_keyword:
            errors.append(f"Chain {index} missing nextKeyword (required except on last chain)")
        elif stage.next_keyword != stages[index + 1].keyword:
            errors.append(
                f"Chain {index} nextKeyword '{stage.next_keyword}' does not match "
                f"keyword '{stages[index + 1].keyword}' of chain {index + 1}"
            )
    return errors


class WorkflowChain(BaseModel):
    """Validated, immutable chain of stages."""

    model_config = ConfigDict(frozen=True)

    stages: Tuple[Stage, ...]

    @model_validator(mode="after")
    def _check_linkage(self) -> "WorkflowChain":
        errors = linkage_errors(self.stages)
        if errors:
            raise ValueError("; ".join(errors))
        return self

    def __len__(self) -> int:
        return len(self.stages)

    def __getitem__(self, index: int) -> Stage:
        return self.stages[index]

    @property
    def first_keyword(self) -> str:
        return self.stages[0].keyword

    def index_of(self, keyword: str) -> Optional[int]:
        for index, stage in enumerate(self.stages):
            if stage.keyword == keyword:
                return index
        return None

    def with_placeholders(self, replacements: Dict[str, str]) -> "WorkflowChain":
        """Derived copy with placeholders substituted in every instruction."""
        return WorkflowChain(
            stages=tuple(
                stage.model_copy(
                    update={
                        "instruction": substitute_placeholders(stage.instruction, replacements)
                    }
                )
                for stage in self.stages
            )
        )


class WorkflowOptions(BaseModel):
    """Monitor options. All durations are in seconds."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    poll_interval: float = Field(DEFAULT_POLL_INTERVAL, gt=0, alias="pollInterval")
    timeout: float = Field(DEFAULT_TIMEOUT, gt=0)
    retry_attempts: int = Field(DEFAULT_RETRY_ATTEMPTS, ge=1, alias="retryAttempts")
    retry_delay: float = Field(DEFAULT_RETRY_DELAY, ge=0, alias="retryDelay")


class TaskConfig(BaseModel):
    """A task run through a chain: the task config wire format."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    instance_id: str = Field(PLACEHOLDER_INSTANCE_ID, alias="instanceId")
    task_description: str = Field(..., min_length=1, alias="taskDescription")
    chains: Tuple[Stage, ...]
    initial_prompt: str = Field(..., min_length=1, alias="initialPrompt")
    options: WorkflowOptions = Field(default_factory=WorkflowOptions)

    @model_validator(mode="after")
    def _check_linkage(self) -> "TaskConfig":
        errors = linkage_errors(self.chains)
        if errors:
            raise ValueError("; ".join(errors))
        return self

    @property
    def chain(self) -> WorkflowChain:
        return WorkflowChain(stages=self.chains)

    def with_task(self, task: Optional[str] = None) -> "TaskConfig":
        """Copy with ``{{TASK}}`` substituted in the initial prompt and instructions."""
        replacements = {"TASK": task if task is not None else self.task_description}
        return self.model_copy(
            update={
                "chains": self.chain.with_placeholders(replacements).stages,
                "initial_prompt": substitute_placeholders(self.initial_prompt, replacements),
            }
        )

    def to_wire(self) -> Dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class WorkflowPreset(BaseModel):
    """A reusable workflow loaded from a preset file."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    description: str
    chains: Tuple[Stage, ...]
    initial_prompt: str = Field(..., alias="initialPrompt")
    options: WorkflowOptions
