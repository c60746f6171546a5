"""Unit tests for workflow chain models."""

import pytest
from pydantic import ValidationError

from cli_task_chain.constants import PLACEHOLDER_INSTANCE_ID
from cli_task_chain.models.workflow import (
    Stage,
    TaskConfig,
    WorkflowChain,
    WorkflowOptions,
    linkage_errors,
    substitute_placeholders,
)


def _stages():
    return (
        Stage(keyword="A_DONE", instruction="do B for {{TASK}}", next_keyword="B_DONE"),
        Stage(keyword="B_DONE", instruction="do C", next_keyword="C_DONE"),
        Stage(keyword="C_DONE", instruction="wrap up {{TASK}}"),
    )


class TestSubstitutePlaceholders:
    def test_known_placeholder(self):
        assert substitute_placeholders("fix {{TASK}} now", {"TASK": "bug"}) == "fix bug now"

    def test_unknown_placeholder_left_alone(self):
        assert substitute_placeholders("{{OTHER}} {{TASK}}", {"TASK": "x"}) == "{{OTHER}} x"

    def test_every_occurrence(self):
        assert substitute_placeholders("{{TASK}}/{{TASK}}", {"TASK": "t"}) == "t/t"


class TestLinkage:
    def test_valid_chain(self):
        assert linkage_errors(_stages()) == []

    def test_empty_chain(self):
        assert linkage_errors([]) == ["Chains array cannot be empty"]

    def test_missing_next_keyword(self):
        stages = (Stage(keyword="A", instruction="a"), Stage(keyword="B", instruction="b"))
        assert linkage_errors(stages) == [
            "Chain 0 missing nextKeyword (required except on last chain)"
        ]

    def test_next_keyword_mismatch(self):
        stages = (
            Stage(keyword="A", instruction="a", next_keyword="X"),
            Stage(keyword="B", instruction="b"),
        )
        errors = linkage_errors(stages)
        assert len(errors) == 1
        assert "does not match" in errors[0]

    def test_last_stage_with_next_keyword(self):
        stages = (Stage(keyword="A", instruction="a", next_keyword="B"),)
        assert "last chain" in linkage_errors(stages)[0]

    def test_duplicate_keyword(self):
        stages = (
            Stage(keyword="A", instruction="a", next_keyword="A"),
            Stage(keyword="A", instruction="b"),
        )
        assert any("reuses keyword" in error for error in linkage_errors(stages))


class TestWorkflowChain:
    def test_invalid_chain_rejected(self):
        with pytest.raises(ValidationError):
            WorkflowChain(stages=())

    def test_access(self):
        chain = WorkflowChain(stages=_stages())
        assert len(chain) == 3
        assert chain.first_keyword == "A_DONE"
        assert chain[1].keyword == "B_DONE"
        assert chain.index_of("C_DONE") == 2
        assert chain.index_of("NOPE") is None

    def test_with_placeholders_returns_new_chain(self):
        chain = WorkflowChain(stages=_stages())
        derived = chain.with_placeholders({"TASK": "login"})
        assert derived[0].instruction == "do B for login"
        assert derived[2].instruction == "wrap up login"
        assert chain[0].instruction == "do B for {{TASK}}"

    def test_stages_are_immutable(self):
        stage = _stages()[0]
        with pytest.raises(ValidationError):
            stage.keyword = "OTHER"


class TestWorkflowOptions:
    def test_defaults(self):
        options = WorkflowOptions()
        assert options.poll_interval > 0
        assert options.retry_attempts >= 1

    def test_wire_aliases(self):
        options = WorkflowOptions.model_validate(
            {"pollInterval": 1, "timeout": 30, "retryAttempts": 5, "retryDelay": 0}
        )
        assert (options.poll_interval, options.timeout) == (1, 30)
        assert (options.retry_attempts, options.retry_delay) == (5, 0)

    @pytest.mark.parametrize(
        "options", [{"pollInterval": 0}, {"retryAttempts": 0}, {"retryDelay": -1}, {"timeout": 0}]
    )
    def test_invalid_values(self, options):
        with pytest.raises(ValidationError):
            WorkflowOptions.model_validate(options)


class TestTaskConfig:
    def _wire(self, **overrides):
        data = {
            "taskDescription": "add login",
            "chains": [stage.model_dump(by_alias=True, exclude_none=True) for stage in _stages()],
            "initialPrompt": "Implement {{TASK}} then print A_DONE",
        }
        data.update(overrides)
        return data

    def test_parse_wire_format(self):
        config = TaskConfig.model_validate(self._wire(instanceId="auto_1"))
        assert config.instance_id == "auto_1"
        assert config.chains[0].next_keyword == "B_DONE"
        assert config.options == WorkflowOptions()

    def test_default_instance_id(self):
        config = TaskConfig.model_validate(self._wire())
        assert config.instance_id == PLACEHOLDER_INSTANCE_ID

    def test_broken_linkage_rejected(self):
        chains = self._wire()["chains"]
        chains[0]["nextKeyword"] = "WRONG"
        with pytest.raises(ValidationError):
            TaskConfig.model_validate(self._wire(chains=chains))

    def test_with_task_substitutes(self):
        config = TaskConfig.model_validate(self._wire()).with_task()
        assert config.initial_prompt == "Implement add login then print A_DONE"
        assert config.chains[0].instruction == "do B for add login"

    def test_to_wire_round_trip(self):
        config = TaskConfig.model_validate(self._wire(instanceId="auto_1"))
        wire = config.to_wire()
        assert wire["instanceId"] == "auto_1"
        assert "nextKeyword" not in wire["chains"][2]
        assert wire["options"]["retryAttempts"] == config.options.retry_attempts
        assert TaskConfig.model_validate(wire) == config
