"""
Unit tests for agentpipes.core.config and agentpipes.langbase.config.

Covers: merge_config, ConfigResolver validation per field, pipe name
        derivation, PipeAgentConfig defaults and json_mode.
"""
from __future__ import annotations

import pytest
from pydantic import BaseModel

from agentpipes.core.config import merge_config
from agentpipes.core.exceptions import AgentDefinitionError
from agentpipes.langbase.agent import PipeAgent
from agentpipes.langbase.config import ConfigResolver, PipeAgentConfig, pipe_name_for
from agentpipes.settings import DEFAULT_MODEL


class Answer(BaseModel):
    text: str


# ─────────────────────────────────────────────────────────────────────────────
# 1. merge_config
# ─────────────────────────────────────────────────────────────────────────────

class TestMergeConfig:

    def test_no_config(self):
        assert merge_config(inner_config_cls=None, parent_config_kwargs=None) == {}

    def test_inner_overrides_parent(self):
        class Config:
            model = "anthropic:claude"
            max_steps = 2

        merged = merge_config(inner_config_cls=Config,
                              parent_config_kwargs={"model": "openai:gpt-4o", "json": True})
        assert merged == {"model": "anthropic:claude", "max_steps": 2, "json": True}

    def test_skips_private_and_callables_keeps_classes(self):
        class Config:
            _hidden = 1
            output_model = Answer

            def helper(self):
                return 1

            @property
            def prop(self):
                return 2

        assert merge_config(inner_config_cls=Config, parent_config_kwargs=None) == {"output_model": Answer}

    def test_parent_not_mutated(self):
        parent = {"model": "openai:gpt-4o"}

        class Config:
            model = "openai:gpt-4o-mini"

        merge_config(inner_config_cls=Config, parent_config_kwargs=parent)
        assert parent == {"model": "openai:gpt-4o"}


# ─────────────────────────────────────────────────────────────────────────────
# 2. Pipe names
# ─────────────────────────────────────────────────────────────────────────────

class TestPipeName:

    @pytest.mark.parametrize("cls_name, expected", [
        ("Summarizer", "summarizer"),
        ("SummaryAgent", "summary-agent"),
        ("HTTPRouter", "http-router"),
        ("support_agent", "support-agent"),
        ("Agent2Go", "agent2-go"),
    ])
    def test_pipe_name_for(self, cls_name, expected):
        assert pipe_name_for(cls_name) == expected

    def test_explicit_name(self):
        class Support(PipeAgent):
            """You answer support questions."""

            class Config:
                name = "support-v2"

        assert Support.pipe_name() == "support-v2"


# ─────────────────────────────────────────────────────────────────────────────
# 3. Validation
# ─────────────────────────────────────────────────────────────────────────────

def _resolve(**attrs):
    cls = type("Probe", (), {"Config": type("Config", (), attrs)})
    return ConfigResolver.resolve(cls)


class TestValidation:

    def test_defaults(self):
        config = PipeAgentConfig()
        assert config.model == DEFAULT_MODEL
        assert config.max_steps == 5
        assert config.upsert is True
        assert config.json_mode is False

    def test_json_mode_from_output_model(self):
        assert PipeAgentConfig(output_model=Answer).json_mode is True
        assert PipeAgentConfig(json=True).json_mode is True

    def test_valid_config(self):
        kwargs = _resolve(model="openai:gpt-4o", temperature=0.2, max_tokens=512,
                          memory=["docs", "faq"], output_model=Answer, tool_timeout=5)
        assert kwargs["name"] == "probe"
        assert kwargs["memory"] == ("docs", "faq")
        assert kwargs["output_model"] is Answer

    @pytest.mark.parametrize("attrs, fragment", [
        ({"model": "gpt-4o"}, "'<provider>:<model>'"),
        ({"model": ""}, "cannot be empty"),
        ({"model": " openai:gpt-4o"}, "whitespace"),
        ({"model": 4}, "must be a string"),
        ({"name": "Bad Name"}, "lowercase"),
        ({"temperature": 3.0}, "between 0.0 and 2.0"),
        ({"temperature": float("nan")}, "finite"),
        ({"temperature": True}, "float, int, or None"),
        ({"max_tokens": 0}, "max_tokens' must be > 0"),
        ({"json": "yes"}, "'json' must be a bool"),
        ({"output_model": Answer(text="x")}, "Pydantic model class"),
        ({"memory": "docs"}, "tuple or list"),
        ({"memory": ["docs", ""]}, "non-empty strings"),
        ({"upsert": 1}, "'upsert' must be a bool"),
        ({"max_steps": 0}, "max_steps' must be > 0"),
        ({"max_parallel_tools": 1.5}, "max_parallel_tools' must be an int"),
        ({"tool_timeout": -1}, "tool_timeout' must be > 0"),
        ({"colour": "blue"}, "Unknown attribute 'colour'"),
    ])
    def test_invalid_field(self, attrs, fragment):
        with pytest.raises(AgentDefinitionError, match="Probe") as exc_info:
            _resolve(**attrs)
        assert fragment in str(exc_info.value)

    def test_all_errors_reported_together(self):
        with pytest.raises(AgentDefinitionError, match="3 definition errors"):
            _resolve(model="x", max_steps=0, json=None)

    def test_invalid_config_fails_at_class_definition(self):
        with pytest.raises(AgentDefinitionError, match="Broken"):
            class Broken(PipeAgent):
                """Prompt."""

                class Config:
                    max_steps = -1
