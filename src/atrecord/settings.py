from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from .records import DEFAULT_LANGS


@dataclass(frozen=True)
class RecordSettings:
    default_langs: tuple[str, ...] = DEFAULT_LANGS
    verbose: bool = False


@lru_cache(maxsize=1)
def _load_dotenv() -> None:
    from dotenv import find_dotenv, load_dotenv

    env_path = find_dotenv(usecwd=True)
    if env_path:
        load_dotenv(env_path, override=False)


def get_config_path(custom_path: str | None = None) -> str:
    if custom_path:
        return custom_path
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
    return os.path.join(xdg_config_home, "atrecord", "config.yaml")


def read_config(custom_path: str | None = None) -> dict[str, Any]:
    import yaml

    config_path = get_config_path(custom_path)
    try:
        with open(config_path, "r", encoding="utf-8") as file:
            loaded = yaml.safe_load(file)
    except FileNotFoundError:
        return {}
    except yaml.YAMLError as exc:
        logging.getLogger(__name__).warning(
            "Ignoring invalid config %s: %s", config_path, exc
        )
        return {}
    return loaded if isinstance(loaded, dict) else {}


def _parse_bool(value: Any, *, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    cleaned = str(value if value is not None else "").strip().lower()
    if not cleaned:
        return default
    return cleaned not in {"0", "false", "no", "off"}


def _parse_langs(value: Any, *, default: tuple[str, ...]) -> tuple[str, ...]:
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = [str(item) for item in value]
    else:
        return default
    langs = tuple(item.strip() for item in items if item.strip())
    return langs or default


def build_settings(
    overrides: dict[str, Any] | None = None,
    *,
    config_path: str | None = None,
) -> RecordSettings:
    """
    Resolve settings from defaults, the YAML config file, the environment
    (including a ``.env`` file) and ``overrides``, later sources winning.

    Values that cannot be parsed fall back to the previous layer.
    """
    config = read_config(config_path)
    default_langs = _parse_langs(config.get("default_langs"), default=DEFAULT_LANGS)
    verbose = _parse_bool(config.get("verbose"), default=False)

    _load_dotenv()
    default_langs = _parse_langs(
        os.environ.get("ATRECORD_DEFAULT_LANGS", ""), default=default_langs
    )
    verbose = _parse_bool(os.environ.get("ATRECORD_VERBOSE", ""), default=verbose)

    if overrides:
        default_langs = _parse_langs(
            overrides.get("default_langs"), default=default_langs
        )
        verbose = _parse_bool(overrides.get("verbose"), default=verbose)

    return RecordSettings(default_langs=default_langs, verbose=verbose)
