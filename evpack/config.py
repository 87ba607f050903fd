"""
Configuration.

Optional TOML file, looked up as: explicit path, `$EVPACK_CONFIG`, then
`./.evpack.toml`. Missing file means defaults.

    [seal]
    output_root = "pack"
    workers = 4

    [witness]
    path = "~/.epistemic/witness.jsonl"
    enabled = true
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .ledger import WITNESS_ENV, witness_ledger_path

CONFIG_ENV = "EVPACK_CONFIG"
DEFAULT_CONFIG_NAME = ".evpack.toml"


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class PackConfig:
    output_root: Path = Path("pack")
    workers: int = 1
    witness_path: Path | None = None
    witness_enabled: bool = True


def _coerce_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _config_path(path: Path | None) -> Path | None:
    if path is not None:
        return path
    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        return Path(env_path)
    default = Path.cwd() / DEFAULT_CONFIG_NAME
    return default if default.is_file() else None


def load_config(path: Path | None = None) -> PackConfig:
    config_path = _config_path(path)
    data: dict[str, Any] = {}
    if config_path is not None:
        try:
            data = tomllib.loads(config_path.read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise ConfigError(f"Config file not found: {config_path}") from e
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigError(f"Cannot load config {config_path}: {e}") from e

    seal = _coerce_dict(data.get("seal"))
    witness = _coerce_dict(data.get("witness"))

    output_root = seal.get("output_root", "pack")
    if not isinstance(output_root, str) or not output_root.strip():
        raise ConfigError("seal.output_root must be a non-empty string")

    workers = seal.get("workers", 1)
    if isinstance(workers, bool) or not isinstance(workers, int) or workers < 1:
        raise ConfigError("seal.workers must be a positive integer")

    enabled = witness.get("enabled", True)
    if not isinstance(enabled, bool):
        raise ConfigError("witness.enabled must be a boolean")

    # EPISTEMIC_WITNESS overrides witness.path.
    witness_path: Path | None
    if os.environ.get(WITNESS_ENV):
        witness_path = witness_ledger_path()
    elif isinstance(witness.get("path"), str) and witness["path"].strip():
        witness_path = Path(witness["path"]).expanduser()
    else:
        witness_path = None

    return PackConfig(
        output_root=Path(output_root).expanduser(),
        workers=workers,
        witness_path=witness_path,
        witness_enabled=enabled,
    )
