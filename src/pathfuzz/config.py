"""
Configuration loading and validation for PathFuzz.

A run is described by one immutable FuzzConfig (pydantic). Values come
from an optional TOML file and from CLI flags; CLI values win field by
field.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple, Union

import toml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .core.matcher import DEFAULT_STATUS_CODES
from .errors import ConfigError

EXPORT_SUFFIXES = (".json", ".csv")

Pair = Tuple[str, str]


def parse_matcher(value: Union[str, int, Any]) -> FrozenSet[int]:
    """
    Parse a comma-separated status-code list such as ``"200,301,302"``.

    Raises:
        ValueError: On empty lists, non-integers or codes outside 100-599
    """
    if isinstance(value, int):
        tokens = [str(value)]
    elif isinstance(value, str):
        tokens = [t.strip() for t in value.split(",") if t.strip()]
    else:
        tokens = [str(t).strip() for t in value]

    if not tokens:
        raise ValueError("matcher needs at least one status code")

    codes = set()
    for token in tokens:
        if not token.isdigit():
            raise ValueError(f"invalid status code {token!r} in matcher")
        code = int(token)
        if not 100 <= code <= 599:
            raise ValueError(f"status code {code} out of range 100-599")
        codes.add(code)
    return frozenset(codes)


def _parse_pairs(value: Any) -> Tuple[Pair, ...]:
    """Accept [[k, v], ...], ["k:v", ...] or {k: v}"""
    if value is None:
        return ()
    if isinstance(value, Mapping):
        return tuple((str(k), str(v)) for k, v in value.items())

    pairs = []
    for item in value:
        if isinstance(item, str):
            key, sep, val = item.partition(":")
            if not sep:
                raise ValueError(f"expected 'key:value', got {item!r}")
            pairs.append((key.strip(), val.strip()))
        elif len(item) == 2:
            pairs.append((str(item[0]), str(item[1])))
        else:
            raise ValueError(f"expected a [key, value] pair, got {item!r}")
    return tuple(pairs)


class FuzzConfig(BaseModel):
    """Configuration for one fuzzing run (or one analyze invocation)."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    url: Optional[str] = Field(None, description="URL template, FUZZ marks the substituted part.")
    wordlist: Optional[str] = Field(None, description="Wordlist file.")
    threads: int = Field(40, ge=1, description="Concurrent workers.")
    timeout: float = Field(10.0, gt=0, description="Per-request timeout (seconds).")
    matcher: FrozenSet[int] = Field(DEFAULT_STATUS_CODES, description="Accepted status codes.")
    headers: Tuple[Pair, ...] = Field((), description="Extra request headers.")
    cookies: Tuple[Pair, ...] = Field((), description="Cookies sent with every request.")
    auth_token: Optional[str] = Field(None, description="Bearer token.")
    proxy: Optional[str] = Field(None, description="HTTP(S) proxy URL.")
    rate_limit: int = Field(0, ge=0, description="Milliseconds between dispatches (0 = off).")
    retries: int = Field(2, ge=0, description="Retries for timeouts and connection errors.")
    backoff_base: float = Field(0.5, ge=0, description="First retry backoff (seconds).")
    backoff_cap: float = Field(10.0, ge=0, description="Maximum retry backoff (seconds).")
    export: Optional[str] = Field(None, description="Export file (.json or .csv).")
    export_errors: bool = Field(False, description="Include errored probes in the export.")
    mutate: bool = Field(False, description="Enable mutation-based fuzzing.")
    mutations_per_seed: int = Field(8, ge=1, description="Variants generated per seed.")
    mutation_seed: Optional[int] = Field(None, description="Seed for reproducible mutations.")
    anomaly_threshold: Optional[float] = Field(
        None, gt=0, description="Relative body-length deviation flagged as anomalous."
    )
    payloads: Optional[str] = Field(None, description="Additional payloads file.")
    crawl: bool = Field(False, description="Follow links on accepted pages.")
    max_depth: int = Field(2, ge=0, description="Maximum crawl depth.")
    max_pages: int = Field(1000, ge=1, description="Maximum crawl pages per run.")
    max_pending: int = Field(10000, ge=1, description="Crawl queue size before backpressure.")
    openapi: Optional[str] = Field(None, description="OpenAPI document path or URL.")
    analyze: Optional[str] = Field(None, description="Analyze a previous export instead of fuzzing.")

    @field_validator("matcher", mode="before")
    @classmethod
    def _parse_matcher(cls, v: Any) -> Any:
        return DEFAULT_STATUS_CODES if v is None else parse_matcher(v)

    @field_validator("headers", "cookies", mode="before")
    @classmethod
    def _split_pairs(cls, v: Any) -> Any:
        return _parse_pairs(v)

    @field_validator("url", mode="before")
    @classmethod
    def _check_url(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return None
            if not v.lower().startswith(("http://", "https://")):
                raise ValueError("url must start with http:// or https://")
        return v

    @field_validator("export")
    @classmethod
    def _check_export(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and Path(v).suffix.lower() not in EXPORT_SUFFIXES:
            raise ValueError("unknown export format, supported: .json, .csv")
        return v

    @model_validator(mode="after")
    def _check_target(self) -> "FuzzConfig":
        if self.analyze is None and self.url is None:
            raise ValueError("url is required unless analyzing an export")
        return self

    @property
    def rate_limited(self) -> bool:
        return self.rate_limit > 0


def load_config_file(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read a TOML config file into a plain dict.

    Raises:
        ConfigError: If the file is missing or not valid TOML
    """
    path = Path(path).expanduser()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = toml.load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read config {path}: {e.strerror or e}") from e
    except toml.TomlDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e
    return data


def resolve_config(
    file_values: Optional[Mapping[str, Any]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> FuzzConfig:
    """
    Merge config-file values with CLI overrides and validate.

    ``None`` overrides are ignored so unset flags never clobber file values.

    Raises:
        ConfigError: With every validation problem in the message
    """
    merged: Dict[str, Any] = dict(file_values or {})
    for key, value in (overrides or {}).items():
        if value is not None:
            merged[key] = value

    try:
        return FuzzConfig(**merged)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigError(f"Invalid configuration: {problems}", {"errors": e.errors()}) from e
