"""Environment-driven settings."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

DEFAULT_LABEL_DOMAIN = "estafette.io"
PARAMS_ENV_VAR = "ESTAFETTE_EXTENSION_CUSTOM_PROPERTIES"


def log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()


def label_domain() -> str:
    """Prefix for the pipeline identity labels injected during defaulting."""
    return os.getenv("GKEDEPLOY_LABEL_DOMAIN", DEFAULT_LABEL_DOMAIN).strip() or DEFAULT_LABEL_DOMAIN


def registry_timeout_seconds() -> float:
    return float(os.getenv("GKEDEPLOY_REGISTRY_TIMEOUT", "10"))


def digest_workers() -> int:
    return max(1, int(os.getenv("GKEDEPLOY_DIGEST_WORKERS", "4")))


def params_file() -> Optional[Path]:
    env_path = os.getenv("GKEDEPLOY_PARAMS_FILE")
    if env_path:
        return Path(env_path)
    return None


def api_token() -> str:
    return os.getenv("GKEDEPLOY_API_TOKEN", "").strip()
