"""
Configuration system using Pydantic for type-safe settings management.

Settings are read from ``codeos.yml`` at the project root. A missing file is
not an error: every section has defaults, and the built-in ``build`` workflow
(planner, builder, verifier, reviewer) is always available.
"""

from __future__ import annotations

import os
import re
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from codeos.engine.types import StepSpec, WorkflowDefinition
from codeos.enums import RoleName
from codeos.exceptions import ConfigurationError

CONFIG_FILENAME = "codeos.yml"


class StepConfig(BaseModel):
    """One step of a configured workflow."""

    role: RoleName = Field(..., description="Role executed by the step")
    name: str | None = Field(default=None, description="Display name (defaults to '<Role> Step')")
    description: str | None = Field(default=None, description="Step description")

    def to_spec(self) -> StepSpec:
        return StepSpec(
            role=self.role,
            name=self.name or f"{self.role.display_name} Step",
            description=self.description or f"Execute {self.role.value} role",
        )


class WorkflowConfig(BaseModel):
    """A named, ordered list of steps."""

    steps: list[StepConfig] = Field(..., min_length=1, description="Steps in execution order")

    def to_definition(self, name: str) -> WorkflowDefinition:
        return WorkflowDefinition(name=name, steps=tuple(step.to_spec() for step in self.steps))


DEFAULT_WORKFLOWS: dict[str, WorkflowDefinition] = {
    "build": WorkflowDefinition(
        name="build",
        steps=(
            StepSpec(
                role=RoleName.PLANNER,
                name="Plan Generation",
                description="Generate implementation plan from blueprint",
            ),
            StepSpec(
                role=RoleName.BUILDER,
                name="Code Generation",
                description="Generate unified diffs and tests",
            ),
            StepSpec(
                role=RoleName.VERIFIER,
                name="Verification",
                description="Apply patches and run verification gates",
            ),
            StepSpec(
                role=RoleName.REVIEWER,
                name="Review Summary",
                description="Generate PR summary and checklist",
            ),
        ),
    )
}


class EngineConfig(BaseModel):
    """Run engine behaviour."""

    state_directory: str = Field(default=".codeos/run", description="Directory for run state, relative to the root")
    retries: int = Field(default=1, ge=0, le=10, description="Retries per step after the first attempt")
    retry_base_delay: float = Field(default=1.0, ge=0.0, description="Backoff unit in seconds")


class RoleCommandConfig(BaseModel):
    """Shell command backing a role."""

    command: str | None = Field(default=None, description="Shell command run in the project root")
    output_dir: str = Field(..., description="Directory under .codeos/ receiving the command output")
    timeout: float | None = Field(default=None, gt=0, description="Command timeout in seconds")


class RolesConfig(BaseModel):
    """Commands for the planner, builder and reviewer roles.

    The verifier is driven by the top-level ``gates`` section.
    """

    planner: RoleCommandConfig = Field(default_factory=lambda: RoleCommandConfig(output_dir="plan"))
    builder: RoleCommandConfig = Field(default_factory=lambda: RoleCommandConfig(output_dir="patches"))
    reviewer: RoleCommandConfig = Field(default_factory=lambda: RoleCommandConfig(output_dir="review"))
    gate_timeout: float | None = Field(default=None, gt=0, description="Timeout per verifier gate")


class CodeOSSettings(BaseSettings):
    """Main codeos settings.

    Combines all configuration sections and provides loading from YAML with
    environment variable interpolation.
    """

    model_config = SettingsConfigDict(
        env_prefix="CODEOS_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    workflow: str = Field(default="build", description="Workflow run when none is named")
    workflows: dict[str, WorkflowConfig] = Field(default_factory=dict)
    gates: dict[str, str] = Field(default_factory=dict, description="Verifier gate name -> command")
    engine: EngineConfig = Field(default_factory=EngineConfig)
    roles: RolesConfig = Field(default_factory=RolesConfig)
    redact_keys: list[str] = Field(
        default_factory=list, description="Extra environment variables whose values are redacted from role output"
    )
    log_level: str = Field(default="INFO", description="Minimum log level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    def state_dir(self, project_root: Path) -> Path:
        """Absolute run state directory for a project."""
        path = Path(self.engine.state_directory)
        return path if path.is_absolute() else project_root / path

    def workflow_names(self) -> list[str]:
        return sorted(set(DEFAULT_WORKFLOWS) | set(self.workflows))

    def get_workflow(self, name: str | None = None) -> WorkflowDefinition:
        """Resolve a workflow by name.

        Configured workflows take precedence over built-in ones of the same
        name.

        Raises:
            ConfigurationError: If no workflow has that name.
        """
        name = name or self.workflow
        if name in self.workflows:
            return self.workflows[name].to_definition(name)
        if name in DEFAULT_WORKFLOWS:
            return DEFAULT_WORKFLOWS[name]
        raise ConfigurationError(
            f"Workflow '{name}' not found. Available: {', '.join(self.workflow_names())}"
        )

    @classmethod
    def load(cls, project_root: Path) -> CodeOSSettings:
        """Load ``codeos.yml`` from a project root, or defaults if it is absent."""
        config_path = project_root / CONFIG_FILENAME
        if not config_path.exists():
            return cls()
        return cls.from_yaml(str(config_path))

    @classmethod
    def from_yaml(cls, config_path: str) -> CodeOSSettings:
        """Load settings from YAML file with environment variable interpolation.

        Supports ${VAR_NAME} syntax for environment variable substitution.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            CodeOSSettings instance

        Raises:
            ConfigurationError: If config file is invalid or missing required fields
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(config_file, encoding="utf-8") as f:
                yaml_content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigurationError(f"Cannot read configuration file: {config_path}") from e

        try:
            yaml_content = cls._interpolate_env_vars(yaml_content)
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment variable reference in config: {e}") from e

        try:
            config_dict = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {config_path}: {e}") from e

        if config_dict is None:
            config_dict = {}
        if not isinstance(config_dict, dict):
            raise ConfigurationError("Configuration must be a YAML object, not a list or scalar")

        try:
            return cls(**config_dict)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid {CONFIG_FILENAME}: {e}") from e

    @staticmethod
    def _interpolate_env_vars(content: str) -> str:
        """Interpolate ${VAR_NAME} placeholders with environment variables.

        Supports two syntaxes:
        - ${VAR_NAME} - Required environment variable (raises if not set)
        - ${VAR_NAME:-default} - Optional with default value

        YAML comment lines (starting with #) are preserved unchanged.

        Raises:
            ValueError: If a required environment variable is not set
        """
        pattern = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")

        def replace_var(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default_value = match.group(2)
            value = os.getenv(var_name)

            if value is not None:
                return value
            elif default_value is not None:
                return default_value
            else:
                raise ValueError(f"Environment variable {var_name} is not set")

        def process_line(line: str) -> str:
            stripped = line.lstrip()
            if stripped.startswith("#"):
                return line
            return pattern.sub(replace_var, line)

        return "\n".join(process_line(line) for line in content.split("\n"))
