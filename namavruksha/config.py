"""Configuration helpers for the Namavruksha stats and reader components."""

from __future__ import annotations

import configparser
import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping

import tomllib

from env_loader import load_dotenv_once

ENV_PREFIX = "NAMAVRUKSHA_"


def _coerce(value: Any) -> Any:
    """Best-effort conversion of string literals into native Python types."""

    if isinstance(value, str):
        text = value.strip()
        if text.lower() in {"true", "false"}:
            return text.lower() == "true"
        try:
            if "." in text:
                return float(text)
            return int(text)
        except ValueError:
            return text
    return value


def _merge_dict(base: MutableMapping[str, Any], updates: Mapping[str, Any]) -> MutableMapping[str, Any]:
    for key, value in updates.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), MutableMapping):
            _merge_dict(base[key], value)  # type: ignore[index]
        else:
            base[key] = value
    return base


@dataclass
class ReaderConfig:
    search_batch_size: int = 5
    toc_scan_pages: int = 15
    toc_min_lines: int = 3
    zoom_min: float = 0.2
    zoom_max: float = 3.0
    line_tolerance: float = 6.0

    def validate(self) -> None:
        if self.search_batch_size <= 0:
            raise ValueError("search_batch_size must be positive")
        if self.toc_scan_pages < 0:
            raise ValueError("toc_scan_pages must be non-negative")
        if self.toc_min_lines < 1:
            raise ValueError("toc_min_lines must be >= 1")
        if not (0 < self.zoom_min <= self.zoom_max):
            raise ValueError("zoom range must satisfy 0 < zoom_min <= zoom_max")
        if self.line_tolerance < 0:
            raise ValueError("line_tolerance must be non-negative")


@dataclass
class BlobStoreConfig:
    endpoint: str = "https://cloud.appwrite.io/v1"
    project_id: str = ""
    bucket_id: str = ""
    timeout_s: float = 60.0

    def validate(self) -> None:
        if not self.endpoint:
            raise ValueError("blob_store.endpoint is required")
        if self.timeout_s <= 0:
            raise ValueError("blob_store.timeout_s must be positive")


@dataclass
class EmailConfig:
    api_key: str = ""
    endpoint: str = "https://api.brevo.com/v3/smtp/email"
    sender_email: str = "noreply@namavruksha.org"
    sender_name: str = "Namavruksha"
    timeout_s: float = 15.0

    def validate(self) -> None:
        if self.timeout_s <= 0:
            raise ValueError("email.timeout_s must be positive")


@dataclass
class Config:
    """Runtime configuration for aggregation, reading sessions and collaborators."""

    store_path: str = ".namavruksha/store.json"
    timezone: str = "Asia/Kolkata"
    reader: ReaderConfig = field(default_factory=ReaderConfig)
    blob_store: BlobStoreConfig = field(default_factory=BlobStoreConfig)
    email: EmailConfig = field(default_factory=EmailConfig)

    @classmethod
    def from_sources(
        cls,
        *,
        json_path: str | None = None,
        toml_path: str | None = None,
        overrides: Mapping[str, Any] | None = None,
        use_env: bool = False,
    ) -> "Config":
        base_dict: Dict[str, Any] = cls().to_dict()
        if use_env:
            _merge_dict(base_dict, _env_payload())
        if json_path:
            payload = json.loads(Path(json_path).read_text())
            if not isinstance(payload, Mapping):
                raise ValueError("Config JSON must be an object")
            _merge_dict(base_dict, payload)
        if toml_path:
            toml_payload = _load_toml_or_ini(Path(toml_path))
            _merge_dict(base_dict, toml_payload)
        if overrides:
            _merge_dict(base_dict, overrides)
        config = cls.from_dict(base_dict)
        config._validate()
        return config

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Config":
        defaults = cls()
        kwargs: Dict[str, Any] = {}
        for field_name in ["store_path", "timezone"]:
            if field_name in payload:
                kwargs[field_name] = str(payload[field_name])
        config = cls(**kwargs)
        config.reader = ReaderConfig(**_section(payload, "reader", defaults.reader))
        config.blob_store = BlobStoreConfig(**_section(payload, "blob_store", defaults.blob_store))
        config.email = EmailConfig(**_section(payload, "email", defaults.email))
        return config

    def _validate(self) -> None:
        if not self.store_path:
            raise ValueError("store_path must not be empty")
        self.reader.validate()
        self.blob_store.validate()
        self.email.validate()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _section(payload: Mapping[str, Any], name: str, defaults: Any) -> Dict[str, Any]:
    raw = payload.get(name, {})
    if not isinstance(raw, Mapping):
        raw = {}
    result: Dict[str, Any] = {}
    for key, default in asdict(defaults).items():
        value = raw.get(key, default)
        # Keys and endpoints stay strings even when they look numeric.
        result[key] = str(value) if isinstance(default, str) else _coerce(value)
    return result


def _env_payload() -> Dict[str, Any]:
    """Collect ``NAMAVRUKSHA_SECTION__KEY`` style variables into a nested mapping."""

    load_dotenv_once()
    payload: Dict[str, Any] = {}
    for name, value in os.environ.items():
        if not name.startswith(ENV_PREFIX):
            continue
        parts = name[len(ENV_PREFIX):].lower().split("__")
        target = payload
        for part in parts[:-1]:
            target = target.setdefault(part, {})
        target[parts[-1]] = value
    return payload


def _load_toml_or_ini(path: Path) -> Dict[str, Any]:
    suffix = path.suffix.lower()
    if suffix == ".toml":
        return json.loads(json.dumps(tomllib.loads(path.read_text())))
    parser = configparser.ConfigParser()
    parser.read(path)
    result: Dict[str, Any] = {}
    for section in parser.sections():
        section_payload: Dict[str, Any] = {}
        for key, value in parser.items(section):
            section_payload[key] = _coerce(value)
        result[section] = section_payload
    return result


def load_config(path: str | None = None, overrides: Mapping[str, Any] | None = None) -> Config:
    """Load configuration from an optional JSON/TOML file plus environment overrides."""

    if path is None:
        return Config.from_sources(overrides=overrides, use_env=True)
    if path.lower().endswith(".json"):
        return Config.from_sources(json_path=path, overrides=overrides, use_env=True)
    return Config.from_sources(toml_path=path, overrides=overrides, use_env=True)
