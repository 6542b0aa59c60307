from __future__ import annotations

import dataclasses
import enum
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from .errors import ConfigError


# --------------------------- Policies --------------------------------------- #


class ScoringPolicy(str, enum.Enum):
    MAX_PAIRWISE = "max-pairwise"
    MEAN_PAIRWISE = "mean-pairwise"
    OVERLAP_RATIO = "overlap-ratio"

    @classmethod
    def parse(cls, value: "str | ScoringPolicy") -> "ScoringPolicy":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(p.value for p in cls)
            raise ConfigError(f"Unknown scoring policy {value!r} (expected one of: {choices})") from None


DEFAULT_POLICY = ScoringPolicy.MAX_PAIRWISE
INDEX_METHODS = ("doubling", "naive")
OUTPUT_FORMATS = ("csv", "json")


def _list_value(data: Mapping[str, Any], key: str) -> list:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ConfigError(f"{key} must be a list, got {type(value).__name__} {value!r}")
    return list(value)


def _flag_value(data: Mapping[str, Any], key: str, default: bool) -> bool:
    value = data.get(key, default)
    # YAML gives real booleans for true/false; a quoted "false" is a string
    if not isinstance(value, bool):
        raise ConfigError(f"{key} must be true or false, got {value!r}")
    return value


# --------------------------- Configuration --------------------------------- #


@dataclasses.dataclass(frozen=True)
class Config:
    user_agent: str = "SiteScoreBot/1.0 (+https://example.com/bot)"
    concurrency: int = 5
    delay: float = 0.0  # seconds between requests (base)
    timeout: float = 20.0  # seconds per request
    max_attempts: int = 3
    backoff_factor: float = 0.5
    allowed_statuses: tuple[int, ...] = ()  # non-2xx statuses accepted as success
    policy: ScoringPolicy = DEFAULT_POLICY
    min_match_length: int = 8
    evidence_limit: int = 5
    strip_non_alnum: bool = False
    drop_page_chrome: bool = True
    index_method: str = "doubling"
    output: Optional[str] = None  # None writes to stdout
    output_format: str = "csv"
    log_file: Optional[str] = None
    sites: tuple[str, ...] = ()

    @staticmethod
    def from_yaml(path: Path) -> "Config":
        try:
            with path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        return Config.from_mapping(data)

    @staticmethod
    def from_mapping(data: Mapping[str, Any]) -> "Config":
        known = {f.name for f in dataclasses.fields(Config)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown config key(s): {', '.join(unknown)}")
        defaults = Config()
        try:
            cfg = Config(
                user_agent=str(data.get("user_agent", defaults.user_agent)),
                concurrency=int(data.get("concurrency", defaults.concurrency)),
                delay=float(data.get("delay", defaults.delay)),
                timeout=float(data.get("timeout", defaults.timeout)),
                max_attempts=int(data.get("max_attempts", defaults.max_attempts)),
                backoff_factor=float(data.get("backoff_factor", defaults.backoff_factor)),
                allowed_statuses=tuple(int(s) for s in _list_value(data, "allowed_statuses")),
                policy=ScoringPolicy.parse(data.get("policy", defaults.policy)),
                min_match_length=int(data.get("min_match_length", defaults.min_match_length)),
                evidence_limit=int(data.get("evidence_limit", defaults.evidence_limit)),
                strip_non_alnum=_flag_value(data, "strip_non_alnum", defaults.strip_non_alnum),
                drop_page_chrome=_flag_value(data, "drop_page_chrome", defaults.drop_page_chrome),
                index_method=str(data.get("index_method", defaults.index_method)),
                output=data.get("output", defaults.output),
                output_format=str(data.get("output_format", defaults.output_format)).lower(),
                log_file=data.get("log_file", defaults.log_file),
                sites=tuple(str(s) for s in _list_value(data, "sites")),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid config value: {e}") from e
        return cfg.validate()

    def replace(self, **changes: Any) -> "Config":
        if "policy" in changes:
            changes["policy"] = ScoringPolicy.parse(changes["policy"])
        return dataclasses.replace(self, **changes).validate()

    def validate(self) -> "Config":
        """Return self, or raise ConfigError describing the first invalid field."""
        if self.concurrency < 1:
            raise ConfigError(f"concurrency must be >= 1, got {self.concurrency}")
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be > 0, got {self.timeout}")
        if self.delay < 0:
            raise ConfigError(f"delay must be >= 0, got {self.delay}")
        if self.max_attempts < 1:
            raise ConfigError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.backoff_factor < 0:
            raise ConfigError(f"backoff_factor must be >= 0, got {self.backoff_factor}")
        if self.min_match_length < 1:
            raise ConfigError(f"min_match_length must be >= 1, got {self.min_match_length}")
        if self.evidence_limit < 0:
            raise ConfigError(f"evidence_limit must be >= 0, got {self.evidence_limit}")
        if not isinstance(self.policy, ScoringPolicy):
            raise ConfigError(f"policy must be a ScoringPolicy, got {self.policy!r}")
        if self.index_method not in INDEX_METHODS:
            raise ConfigError(f"index_method must be one of {INDEX_METHODS}, got {self.index_method!r}")
        if self.output_format not in OUTPUT_FORMATS:
            raise ConfigError(f"output_format must be one of {OUTPUT_FORMATS}, got {self.output_format!r}")
        for status in self.allowed_statuses:
            if not 100 <= status <= 599:
                raise ConfigError(f"allowed_statuses contains invalid HTTP status {status}")
        return self
