"""Configuration management for the users CRUD service."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

DEFAULT_API_KEY = "your_api_key"
SUPPORTED_DRIVERS = ("postgresql", "sqlite")


def _resolve_path(raw: object, base_path: Path | None) -> Path:
    candidate = Path(str(raw)).expanduser()
    if candidate.is_absolute() or base_path is None:
        return candidate.resolve(strict=False)
    return (base_path / candidate).resolve(strict=False)


@dataclass(frozen=True)
class StoreSettings:
    """Connection parameters for the relational user store."""

    driver: str = "postgresql"
    host: str = "localhost"
    port: int = 5432
    user: str = "postgres"
    password: Optional[str] = None
    database: str = "users"
    sslmode: str = "disable"
    path: Optional[Path] = None
    pool_size: int = 5
    acquire_timeout: float = 10.0

    def __post_init__(self) -> None:
        if self.driver not in SUPPORTED_DRIVERS:
            raise ValueError(
                f"Unsupported store driver '{self.driver}' (expected one of: {', '.join(SUPPORTED_DRIVERS)})"
            )
        if not 1 <= self.port <= 65535:
            raise ValueError("Store port must be between 1 and 65535")
        if self.pool_size < 1:
            raise ValueError("Store pool size must be at least 1")
        if self.acquire_timeout <= 0:
            raise ValueError("Store acquire timeout must be positive")
        if self.driver == "sqlite" and self.path is None:
            raise ValueError("The sqlite driver requires a database path")

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "StoreSettings":
        """Create :class:`StoreSettings` from raw dictionary data."""
        defaults = StoreSettings()
        raw_path = data.get("path")
        try:
            port = int(data.get("port", defaults.port))  # type: ignore[arg-type]
            pool_size = int(data.get("pool_size", defaults.pool_size))  # type: ignore[arg-type]
            acquire_timeout = float(data.get("acquire_timeout", defaults.acquire_timeout))  # type: ignore[arg-type]
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid numeric store setting: {exc}") from exc

        return StoreSettings(
            driver=str(data.get("driver", defaults.driver)).strip().lower(),
            host=str(data.get("host", defaults.host)),
            port=port,
            user=str(data.get("user", defaults.user)),
            password=str(data["password"]) if data.get("password") is not None else None,
            database=str(data.get("database", defaults.database)),
            sslmode=str(data.get("sslmode", defaults.sslmode)),
            path=_resolve_path(raw_path, base_path) if raw_path else None,
            pool_size=pool_size,
            acquire_timeout=acquire_timeout,
        )


@dataclass(frozen=True)
class ServiceSettings:
    """Process-wide settings, read once at start-up."""

    store: StoreSettings = field(default_factory=StoreSettings)
    api_key: str = DEFAULT_API_KEY


_ENV_STORE_FIELDS: Dict[str, str] = {
    "USERS_DB_DRIVER": "driver",
    "USERS_DB_HOST": "host",
    "USERS_DB_PORT": "port",
    "USERS_DB_USER": "user",
    "USERS_DB_PASSWORD": "password",
    "USERS_DB_NAME": "database",
    "USERS_DB_SSLMODE": "sslmode",
    "USERS_DB_PATH": "path",
    "USERS_DB_POOL_SIZE": "pool_size",
    "USERS_DB_ACQUIRE_TIMEOUT": "acquire_timeout",
}


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (Path(__file__).resolve().parent.parent / "config" / "users.yaml").resolve(strict=False)


def load_settings(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ServiceSettings:
    """Load settings from an optional YAML file, then apply environment overrides."""
    env = os.environ if environ is None else environ

    raw: Dict[str, object] = {}
    config_dir: Path | None = None
    if config_path is not None and config_path.exists():
        with config_path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file {config_path} must contain a mapping")
        raw = loaded
        config_dir = config_path.parent

    store_raw = raw.get("store") or {}
    if not isinstance(store_raw, dict):
        raise ValueError("The 'store' configuration section must be a mapping")
    store_data: Dict[str, object] = dict(store_raw)

    for variable, key in _ENV_STORE_FIELDS.items():
        value = env.get(variable)
        if value is not None and value.strip():
            store_data[key] = value.strip()

    api_key = str(env.get("USERS_API_KEY") or raw.get("api_key") or DEFAULT_API_KEY).strip()
    if not api_key:
        raise ValueError("API key must not be empty")

    return ServiceSettings(store=StoreSettings.from_dict(store_data, base_path=config_dir), api_key=api_key)


__all__ = [
    "DEFAULT_API_KEY",
    "ServiceSettings",
    "StoreSettings",
    "load_settings",
    "resolve_config_path",
]
