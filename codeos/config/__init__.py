"""Configuration system for codeos.

This package provides type-safe configuration management using Pydantic,
loaded from ``codeos.yml`` at the project root.

Key Components:
    - CodeOSSettings: Main configuration container with YAML loading support
    - WorkflowConfig / StepConfig: Named workflows and their steps
    - EngineConfig: State directory and retry behaviour
    - RolesConfig: Commands backing the planner, builder and reviewer roles
    - find_project_root: Locate the project a command operates on

Example:
    >>> from codeos.config import CodeOSSettings
    >>> settings = CodeOSSettings.load(Path("."))
    >>> definition = settings.get_workflow("build")
"""

from codeos.config.project import find_project_root
from codeos.config.settings import CodeOSSettings

__all__ = ["CodeOSSettings", "find_project_root"]
