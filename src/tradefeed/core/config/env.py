"""Environment loading helpers.

tradefeed reads ``.env`` files so the gateway URL and token can live next
to the application that embeds the engine.

We intentionally do *not* let .env override variables that are already
present in the process environment (e.g. exported in the shell).

Precedence implemented here:
  os.environ (pre-existing) > .env.local > .env
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable

from dotenv import dotenv_values


def _read_env(path: Path) -> dict[str, str]:
    if not path.exists():
        return {}
    values = dotenv_values(path)
    out: dict[str, str] = {}
    for k, v in values.items():
        if k is None or v is None:
            continue
        out[str(k)] = str(v)
    return out


def load_env_files(
    *,
    project_dir: Path | None = None,
    env_paths: Iterable[Path] | None = None,
) -> list[str]:
    """Load environment variables from .env files without overriding the OS.

    Args:
        project_dir: base directory for the default env paths (defaults to cwd)
        env_paths: explicit env file paths, earliest wins

    Returns:
        Names of the variables that were set.
    """
    if project_dir is None:
        project_dir = Path.cwd()

    if env_paths is None:
        env_paths = [project_dir / ".env.local", project_dir / ".env"]

    set_keys: list[str] = []
    for p in env_paths:
        for k, v in _read_env(Path(p)).items():
            if k not in os.environ:
                os.environ[k] = v
                set_keys.append(k)
    return set_keys
