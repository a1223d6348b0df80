"""Command line entrypoint run as a pipeline stage.

Reads the stage properties, resolves and validates them, pins sidecar
images to digests and prints the resolved properties as JSON on stdout.
Logs go to stderr.
"""
from __future__ import annotations

import json
import os
import sys
from typing import Any, Dict, Optional

import structlog
from pydantic import ValidationError

from gkedeploy import config
from gkedeploy.exceptions import DigestResolutionError, ParamsLoadError
from gkedeploy.observability.metrics import record_validation
from gkedeploy.params import (
    DeploymentIntent,
    ResolutionHints,
    replace_sidecar_tags_with_digest,
    set_defaults,
    validate_required_properties,
)
from gkedeploy.params.digests import DigestLookup
from gkedeploy.registry import RegistryClient

structlog.configure(
    wrapper_class=structlog.make_filtering_bound_logger(config.log_level().lower()),
    logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
)
logger = structlog.get_logger()


def load_params() -> Dict[str, Any]:
    """Read the stage properties from the params file or the environment."""
    path = config.params_file()
    if path is not None:
        source = str(path)
        try:
            raw = path.read_text()
        except OSError as e:
            raise ParamsLoadError(f"Reading {path} failed: {e}", source=source) from e
    else:
        source = config.PARAMS_ENV_VAR
        raw = os.getenv(config.PARAMS_ENV_VAR, "")

    if not raw.strip():
        raise ParamsLoadError(f"No stage properties found in {source}", source=source)
    try:
        params = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ParamsLoadError(f"Stage properties in {source} are not valid json: {e}", source=source) from e
    if not isinstance(params, dict):
        raise ParamsLoadError(f"Stage properties in {source} must be a json object", source=source)
    return params


def main(lookup: Optional[DigestLookup] = None) -> int:
    try:
        intent = DeploymentIntent.model_validate(load_params())
    except ParamsLoadError as e:
        logger.error("params.load_failed", source=e.source, error=str(e))
        return 1
    except ValidationError as e:
        logger.error("params.invalid", error=str(e))
        return 1

    hints = ResolutionHints.from_env()
    set_defaults(intent, hints)

    valid, errors, warnings = validate_required_properties(intent)
    record_validation(valid, len(warnings))
    for warning in warnings:
        logger.warning("params.warning", key=warning.key, message=warning.message)
    if not valid:
        for error in errors:
            logger.error("params.error", key=error.key, message=error.message)
        return 1

    try:
        replace_sidecar_tags_with_digest(
            intent.sidecars, lookup or RegistryClient(), max_workers=config.digest_workers()
        )
    except DigestResolutionError as e:
        logger.error("digests.failed", image=e.image, error=str(e.cause))
        return 1

    logger.info("params.resolved", app=intent.app, kind=intent.kind, sidecars=len(intent.sidecars))
    print(json.dumps(intent.model_dump(by_alias=True), indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    sys.exit(main())
