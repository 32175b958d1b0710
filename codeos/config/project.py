"""Project root discovery."""

import os
from pathlib import Path

from codeos.config.settings import CONFIG_FILENAME

ROOT_ENV_VAR = "CODEOS_ROOT"


def find_project_root(start: Path | None = None) -> Path:
    """Locate the project root for a working directory.

    Resolution order:
        1. ``$CODEOS_ROOT`` if it names an existing path
        2. The topmost ancestor containing ``codeos.yml``
        3. The topmost ancestor containing ``.git``
        4. ``start`` itself

    Topmost rather than nearest: a sub-package of a monorepo resolves to the
    repository root.
    """
    override = os.environ.get(ROOT_ENV_VAR)
    if override and Path(override).exists():
        return Path(override).resolve()

    start = (start or Path.cwd()).resolve()
    topmost_config: Path | None = None
    topmost_git: Path | None = None

    for directory in (start, *start.parents):
        if (directory / CONFIG_FILENAME).exists():
            topmost_config = directory
        if (directory / ".git").exists():
            topmost_git = directory

    return topmost_config or topmost_git or start
