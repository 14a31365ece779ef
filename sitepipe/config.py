from __future__ import annotations

import json
import time
import tomllib as toml
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .errors import ConfigError
from .log import get_logger
from .utils import parse_bool, parse_int

logger = get_logger(__name__)

DEFAULT_ENV = "production"
CURRENT_VERSION = "1.8"
DOCS_VERSIONS = ("1.7", "1.8", "1.9")
FEED_LIMIT = 20


@dataclass(frozen=True)
class SiteConfig:
    root: Path
    env: str = DEFAULT_ENV
    root_url: str = ""
    build_dir: str = "build"
    src_dir: str = "src"
    layouts_dir: str = "layouts"
    docs_dir: str = "dcos-docs"
    current_version: str = CURRENT_VERSION
    docs_versions: tuple[str, ...] = DOCS_VERSIONS
    css_timestamp: int = field(default_factory=lambda: int(time.time() * 1000))
    feed_limit: int = FEED_LIMIT
    host: str = "127.0.0.1"
    port: int = 3000
    debounce_ms: int = 200
    live_reload: bool = False

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def build_path(self) -> Path:
        return self.root / self.build_dir

    @property
    def src_path(self) -> Path:
        return self.root / self.src_dir

    @property
    def layouts_path(self) -> Path:
        return self.root / self.layouts_dir

    @property
    def docs_path(self) -> Path:
        return self.root / self.docs_dir


def load_config(path: Path) -> dict:
    if not path.exists():
        return {}
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix == ".toml":
        try:
            data = toml.loads(text)
        except toml.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in config file {path}: {exc}") from exc
    elif suffix in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in config file {path}: {exc}") from exc
        if data is None:
            return {}
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config must be a mapping: {path}")
    return data


def load_env_profile(path: Path, env: str | None) -> tuple[str, dict]:
    """Pick the profile for ``env`` out of an environment-keyed JSON file.

    Unknown or unset names fall back to production; an unreadable file
    gives an empty production profile.
    """
    name = env or DEFAULT_ENV
    try:
        profiles = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        logger.warning("config.env_missing", path=str(path))
        return DEFAULT_ENV, {}
    except json.JSONDecodeError as exc:
        logger.warning("config.env_invalid", path=str(path), error=str(exc))
        return DEFAULT_ENV, {}
    if not isinstance(profiles, dict):
        logger.warning("config.env_invalid", path=str(path), error="not a mapping")
        return DEFAULT_ENV, {}
    if name not in profiles:
        if env:
            logger.warning("config.env_unknown", env=env, fallback=DEFAULT_ENV)
        name = DEFAULT_ENV
    profile = profiles.get(name) or {}
    if not isinstance(profile, dict):
        return name, {}
    return name, profile


def build_config(
    root: Path,
    config_path: Path | None = None,
    env: str | None = None,
    env_file: str = "env.json",
    **overrides: object,
) -> SiteConfig:
    root = root.resolve()
    if config_path is None:
        config_path = root / "site.toml"
    elif not config_path.is_absolute():
        config_path = root / config_path
    data = load_config(config_path)

    def cfg_str(key: str, default: str) -> str:
        value = data.get(key)
        return default if value is None else str(value)

    env_name, profile = load_env_profile(root / cfg_str("env_file", env_file), env)
    versions = data.get("docs_versions") or list(DOCS_VERSIONS)
    values = {
        "root": root,
        "env": env_name,
        "root_url": str(profile.get("root_url", "")),
        "build_dir": cfg_str("build_dir", "build"),
        "src_dir": cfg_str("src_dir", "src"),
        "layouts_dir": cfg_str("layouts_dir", "layouts"),
        "docs_dir": cfg_str("docs_dir", "dcos-docs"),
        "current_version": cfg_str("current_version", CURRENT_VERSION),
        "docs_versions": tuple(str(v) for v in versions),
        "feed_limit": parse_int(data.get("feed_limit"), FEED_LIMIT),
        "host": cfg_str("host", "127.0.0.1"),
        "port": parse_int(data.get("port"), 3000),
        "debounce_ms": parse_int(data.get("debounce_ms"), 200),
        "live_reload": parse_bool(data.get("live_reload")),
    }
    values.update(overrides)
    return SiteConfig(**values)
