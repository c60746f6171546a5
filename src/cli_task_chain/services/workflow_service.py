"""Workflow preset and task config loading."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import ValidationError

from cli_task_chain.constants import (
    BUNDLED_WORKFLOWS_DIR,
    CUSTOM_STAGES_TIMEOUT,
    PLACEHOLDER_INSTANCE_ID,
    TASK_PLACEHOLDER,
    USER_WORKFLOWS_DIR,
)
from cli_task_chain.exceptions import ConfigurationError
from cli_task_chain.models.workflow import (
    Stage,
    TaskConfig,
    WorkflowOptions,
    WorkflowPreset,
    linkage_errors,
    substitute_placeholders,
)

logger = logging.getLogger(__name__)

REQUIRED_WORKFLOW_FIELDS = ("name", "description", "chains", "initialPrompt", "options")
STARTED_KEYWORD = "STARTED"


def replace_template_placeholders(text: str, replacements: Dict[str, str]) -> str:
    """Replace ``{{NAME}}`` placeholders in text."""
    return substitute_placeholders(text, replacements)


def _workflow_dirs() -> List[Path]:
    # User presets shadow bundled presets of the same name
    return [USER_WORKFLOWS_DIR, BUNDLED_WORKFLOWS_DIR]


def _validation_messages(error: ValidationError) -> List[str]:
    messages = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"])
        message = detail["msg"].removeprefix("Value error, ")
        messages.append(f"{location}: {message}" if location else message)
    return messages


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigurationError(f"Config file not found: {path}")
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in config file {path}: {e}")


def validate_workflow(workflow: Any) -> List[str]:
    """Validate a raw workflow preset; returns a list of problems (empty when valid)."""
    if not isinstance(workflow, dict):
        return ["Workflow must be a JSON object"]

    errors = []
    for field_name in REQUIRED_WORKFLOW_FIELDS:
        if not workflow.get(field_name):
            errors.append(f"Missing required field: {field_name}")

    chains = workflow.get("chains")
    if isinstance(chains, list):
        if not chains:
            errors.append("Chains array cannot be empty")
        stages = []
        for index, chain in enumerate(chains):
            if not isinstance(chain, dict):
                errors.append(f"Chain {index} must be an object")
                continue
            if not chain.get("keyword"):
                errors.append(f"Chain {index} missing required field: keyword")
            if not chain.get("instruction"):
                errors.append(f"Chain {index} missing required field: instruction")
            try:
                stages.append(Stage.model_validate(chain))
            except ValidationError:
                pass
        if stages and len(stages) == len(chains):
            errors.extend(error for error in linkage_errors(stages) if error not in errors)
    elif chains is not None:
        errors.append("Chains must be an array")

    options = workflow.get("options")
    if options is not None and not isinstance(options, dict):
        errors.append("Options must be an object")
    elif options:
        try:
            WorkflowOptions.model_validate(options)
        except ValidationError as e:
            errors.extend(f"options.{message}" for message in _validation_messages(e))

    initial_prompt = workflow.get("initialPrompt")
    if initial_prompt and f"{{{{{TASK_PLACEHOLDER}}}}}" not in initial_prompt:
        errors.append("initialPrompt should include {{TASK}} placeholder")

    return errors


def list_available_workflows() -> List[str]:
    """Names of all workflow presets, without the .json extension."""
    names = set()
    for directory in _workflow_dirs():
        if not directory.is_dir():
            continue
        for path in directory.glob("*.json"):
            if not path.name.startswith("."):
                names.add(path.stem)
    return sorted(names)


def load_workflow(name: str) -> WorkflowPreset:
    """Load and validate a workflow preset by name."""
    for directory in _workflow_dirs():
        path = directory / f"{name}.json"
        if path.is_file():
            break
    else:
        available = ", ".join(list_available_workflows()) or "none"
        raise ConfigurationError(f"Workflow '{name}' not found. Available workflows: {available}")

    data = _read_json(path)
    errors = validate_workflow(data)
    if errors:
        raise ConfigurationError(f"Invalid workflow '{name}'", errors)
    logger.info(f"Loaded workflow preset '{name}' from {path}")
    return WorkflowPreset.model_validate(data)


def build_workflow_from_preset(
    preset_name: str, task: str, instance_id: Optional[str] = None
) -> TaskConfig:
    """Task config for ``task`` run through a preset, placeholders substituted."""
    preset = load_workflow(preset_name)
    config = TaskConfig(
        instance_id=instance_id or PLACEHOLDER_INSTANCE_ID,
        task_description=task,
        chains=preset.chains,
        initial_prompt=preset.initial_prompt,
        options=preset.options,
    )
    return config.with_task(task)


def build_custom_stages_config(
    task: str, stages: Sequence[str], instance_id: Optional[str] = None
) -> TaskConfig:
    """Task config for an ad hoc list of stage names.

    The initial prompt asks for an implementation ending with ``STARTED``;
    each stage then ends with ``<STAGE>_DONE`` and a closing stage
    acknowledges the last one.
    """
    stage_names = [stage.strip() for stage in stages if stage.strip()]
    if not stage_names:
        raise ConfigurationError("At least one stage name is required")

    chains = []
    keyword = STARTED_KEYWORD
    for stage_name in stage_names:
        next_keyword = f"{stage_name.upper()}_DONE"
        chains.append(
            Stage(
                keyword=keyword,
                instruction=(
                    f"Complete the {stage_name} phase for '{{{{TASK}}}}'. "
                    f"Be thorough and complete. End by saying {next_keyword}"
                ),
                next_keyword=next_keyword,
            )
        )
        keyword = next_keyword
    chains.append(
        Stage(
            keyword=keyword,
            instruction=(
                "Excellent work! You have successfully completed all stages "
                "for '{{TASK}}'. Well done!"
            ),
        )
    )

    config = parse_task_config(
        {
            "instanceId": instance_id or PLACEHOLDER_INSTANCE_ID,
            "taskDescription": task,
            "chains": [stage.model_dump(by_alias=True, exclude_none=True) for stage in chains],
            "initialPrompt": (
                "Please execute the following task: '{{TASK}}'. Start by implementing a "
                "solution. When you have completed the initial implementation, end by "
                f"saying {STARTED_KEYWORD}"
            ),
            "options": {"timeout": CUSTOM_STAGES_TIMEOUT},
        }
    )
    return config.with_task(task)


def parse_task_config(data: Any) -> TaskConfig:
    """Validate a task config document."""
    if not isinstance(data, dict):
        raise ConfigurationError("Task config must be a JSON object")
    try:
        return TaskConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError("Invalid task config", _validation_messages(e))


def load_task_config(path: Union[str, Path]) -> TaskConfig:
    """Load a task config file (task_chain_launcher format)."""
    config = parse_task_config(_read_json(Path(path)))
    logger.info(f"Loaded task config from {path}: {len(config.chains)} stages")
    return config


def save_task_config(config: TaskConfig, path: Union[str, Path]) -> Path:
    path = Path(path)
    path.write_text(json.dumps(config.to_wire(), indent=2) + "\n", encoding="utf-8")
    return path
