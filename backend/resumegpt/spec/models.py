from pathlib import Path
import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

TEMPLATES = ("classic", "modern", "minimal")


class ModelConfig(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_name: str = "gpt-4o-mini"
    temperature: float = 0.6
    top_p: float = 0.9
    max_output_tokens: int = 2048
    timeout_seconds: float = 45.0
    retry_budget: int = 1

    @field_validator("temperature")
    def check_temperature_range(cls, v):
        if not (0 <= v <= 2):
            raise ValueError("temperature must be between 0 and 2")
        return v

    @field_validator("top_p")
    def check_top_p_range(cls, v):
        if not (0 < v <= 1):
            raise ValueError("top_p must be in (0, 1]")
        return v

    @field_validator("max_output_tokens", "timeout_seconds")
    @classmethod
    def validate_positive(cls, v, info):
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive, got {v}")
        return v

    @field_validator("retry_budget")
    def validate_retry_budget(cls, v):
        if v < 0:
            raise ValueError(f"retry_budget cannot be negative, got {v}")
        return v


class ChatConfig(BaseModel):
    model: ModelConfig = Field(default_factory=ModelConfig)

    max_history_turns: int = 100
    context_turns: int = 30
    max_message_length: int = 10_000
    max_document_size: int = 100_000
    max_live_sessions: int = 500

    data_path: str = "data/sessions"
    log_path: str = "logs/resumegpt.jsonl"
    default_template: str = "classic"
    latex_timeout_seconds: float = 30.0

    @field_validator(
        "max_history_turns", "context_turns", "max_message_length",
        "max_document_size", "max_live_sessions", "latex_timeout_seconds",
    )
    @classmethod
    def validate_positive(cls, v, info):
        """Ensure limits are positive."""
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive, got {v}")
        return v

    @field_validator("default_template")
    @classmethod
    def validate_template(cls, v):
        if v not in TEMPLATES:
            raise ValueError(f"default_template must be one of {TEMPLATES}, got {v!r}")
        return v

    @model_validator(mode='after')
    def validate_context_vs_history(self) -> 'ChatConfig':
        """Ensure the prompt window never exceeds what is kept."""
        if self.context_turns > self.max_history_turns:
            raise ValueError(
                f"context_turns ({self.context_turns}) cannot exceed "
                f"max_history_turns ({self.max_history_turns})"
            )
        return self

    @classmethod
    def from_yaml(cls, path: str) -> 'ChatConfig':
        """Load and validate ChatConfig from a YAML file."""
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Chat config file not found: {path}")

        try:
            with open(path, "r") as f:
                cfg_dict = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Failed to parse YAML from {path}: {e}") from e

        if not cfg_dict:
            raise ValueError(f"Empty configuration file: {path}")

        return cls(**cfg_dict)
