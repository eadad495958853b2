from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_optional(name: str) -> str | None:
    value = os.getenv(name, "").strip()
    return value or None


@dataclass(frozen=True)
class AppConfig:
    host: str = os.getenv("PUD_HOST", "0.0.0.0")
    port: int = int(os.getenv("PUD_PORT", "8080"))
    static_dir: Path = Path(os.getenv("PUD_STATIC_DIR", "./frontend"))
    kubeconfig_path: str | None = _env_optional("PUD_KUBECONFIG")
    kube_context: str | None = _env_optional("PUD_KUBE_CONTEXT")
    in_cluster: bool = _env_flag("PUD_IN_CLUSTER", "true")
    request_timeout_seconds: int = int(os.getenv("PUD_REQUEST_TIMEOUT_SECONDS", "10"))
    max_workers: int = int(os.getenv("PUD_MAX_WORKERS", "1"))
    log_level: str = os.getenv("PUD_LOG_LEVEL", "INFO")


def validate_config(config: AppConfig) -> None:
    if not 1 <= config.port <= 65535:
        raise ValueError("port must be between 1 and 65535")
    if config.request_timeout_seconds <= 0:
        raise ValueError("request_timeout_seconds must be positive")
    if config.max_workers <= 0:
        raise ValueError("max_workers must be positive")
