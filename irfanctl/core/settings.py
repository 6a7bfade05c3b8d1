"""Configuration loading for irfanctl.

Values come from ``$XDG_CONFIG_HOME/irfanctl/config.yaml`` (or an explicit
path), validated against the packaged JSON schema. Every field has a default,
so a missing default file is not an error.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields, replace
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from irfanctl.core.errors import ConfigError

LOGGER = logging.getLogger(__name__)

DEFAULT_BAUD_RATE = 230400
DEFAULT_DEBOUNCE_MS = 500
DEFAULT_MEDIUM_THRESHOLD = 50
DEFAULT_HIGH_THRESHOLD = 75
DEFAULT_RECONNECT_INTERVAL_MS = 5000
# The device accepts 512 samples per command; serial links have been seen to
# drop data well below that.
DEFAULT_MAX_FRAGMENT_SAMPLES = 512 // 8
DEFAULT_PACING_MS = 100

_PATH_FIELDS = {"signals_file", "state_file"}


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys.

    YAML 1.1 booleans are not resolved implicitly, so ``on`` stays a string key
    and ``true``/``false`` come back as strings.
    """


UniqueKeyLoader.yaml_implicit_resolvers = {
    key: list(value) for key, value in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

for first_char, mappings in list(UniqueKeyLoader.yaml_implicit_resolvers.items()):
    UniqueKeyLoader.yaml_implicit_resolvers[first_char] = [
        (tag, regexp)
        for tag, regexp in mappings
        if tag != "tag:yaml.org,2002:bool"
    ]


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ConfigError(f"Duplicate key '{key}' in configuration")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class SpeedTiers:
    medium: int = DEFAULT_MEDIUM_THRESHOLD
    high: int = DEFAULT_HIGH_THRESHOLD


@dataclass(frozen=True)
class Settings:
    port: str | None = None
    baud_rate: int = DEFAULT_BAUD_RATE
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    medium_threshold: int = DEFAULT_MEDIUM_THRESHOLD
    high_threshold: int = DEFAULT_HIGH_THRESHOLD
    reconnect_interval_ms: int = DEFAULT_RECONNECT_INTERVAL_MS
    max_fragment_samples: int = DEFAULT_MAX_FRAGMENT_SAMPLES
    pacing_ms: int = DEFAULT_PACING_MS
    signals_file: Path | None = None
    state_file: Path | None = None

    def __post_init__(self) -> None:
        if not 0 < self.medium_threshold < self.high_threshold <= 100:
            raise ConfigError(
                "Speed thresholds must satisfy 0 < medium_threshold < high_threshold <= 100 "
                f"(got {self.medium_threshold}/{self.high_threshold})"
            )

    @property
    def speed_tiers(self) -> SpeedTiers:
        return SpeedTiers(medium=self.medium_threshold, high=self.high_threshold)

    def with_overrides(self, **overrides: Any) -> Settings:
        """Return a copy with every non-None override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes) if changes else self


def default_config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "irfanctl" / "config.yaml"


def _load_schema_validator() -> Any:
    schema_text = resources.files("irfanctl.schemas").joinpath("config.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Could not read config file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at root")
    return loaded


def settings_from_mapping(doc: dict[str, Any], *, source: str = "<mapping>") -> Settings:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    known = {f.name for f in fields(Settings)}
    values: dict[str, Any] = {}
    for key, value in doc.items():
        if key not in known:
            continue
        values[key] = Path(value).expanduser() if key in _PATH_FIELDS else value
    return Settings(**values)


def load_settings(path: Path | None = None) -> Settings:
    if path is None:
        path = default_config_path()
        if not path.is_file():
            LOGGER.debug("No config file at %s, using defaults", path)
            return Settings()
    doc = _read_yaml(path)
    return settings_from_mapping(doc, source=str(path))
