from pathlib import Path

import pytest
from pydantic import ValidationError

from resumegpt.spec.models import ChatConfig, ModelConfig

REPO_CONFIG = Path(__file__).resolve().parents[1] / "config" / "chat.yml"


def test_repo_config_loads():
    config = ChatConfig.from_yaml(REPO_CONFIG)
    assert config.model.retry_budget == 1
    assert config.context_turns <= config.max_history_turns
    assert config.default_template == "classic"


def test_defaults():
    config = ChatConfig()
    assert config.model.model_name == "gpt-4o-mini"
    assert config.model.timeout_seconds == 45
    assert config.max_message_length == 10_000


@pytest.mark.parametrize("overrides", [
    {"temperature": 3},
    {"top_p": 0},
    {"timeout_seconds": 0},
    {"retry_budget": -1},
])
def test_model_config_ranges(overrides):
    with pytest.raises(ValidationError):
        ModelConfig(**overrides)


def test_context_window_cannot_exceed_history():
    with pytest.raises(ValidationError):
        ChatConfig(max_history_turns=10, context_turns=20)


def test_unknown_template_rejected():
    with pytest.raises(ValidationError):
        ChatConfig(default_template="fancy")


def test_from_yaml_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        ChatConfig.from_yaml(tmp_path / "missing.yml")

    empty = tmp_path / "empty.yml"
    empty.write_text("")
    with pytest.raises(ValueError):
        ChatConfig.from_yaml(empty)

    broken = tmp_path / "broken.yml"
    broken.write_text("model: [unclosed")
    with pytest.raises(ValueError):
        ChatConfig.from_yaml(broken)

    custom = tmp_path / "custom.yml"
    custom.write_text("model:\n  retry_budget: 2\ncontext_turns: 5\n")
    assert ChatConfig.from_yaml(custom).model.retry_budget == 2


def test_live_session_bound_must_be_positive():
    assert ChatConfig().max_live_sessions == 500
    with pytest.raises(ValidationError):
        ChatConfig(max_live_sessions=0)
