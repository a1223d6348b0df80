"""Parameter resolve/validate endpoints."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Header
from pydantic import ValidationError

from gkedeploy import config, schemas
from gkedeploy.exceptions import DigestResolutionError
from gkedeploy.observability.metrics import record_validation
from gkedeploy.params import (
    DeploymentIntent,
    replace_sidecar_tags_with_digest,
    set_defaults,
    validate_required_properties,
)
from gkedeploy.params.digests import DigestLookup
from gkedeploy.registry import RegistryClient

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_auth(authorization: Optional[str]):
    token = config.api_token()
    if not token:
        return
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing authorization token")
    if authorization.strip() != f"Bearer {token}":
        raise HTTPException(status_code=403, detail="Invalid authorization token")


def get_digest_lookup() -> DigestLookup:
    return RegistryClient()


def _parse_intent(params: Dict[str, Any]) -> DeploymentIntent:
    try:
        return DeploymentIntent.model_validate(params)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))


def _report(intent: DeploymentIntent) -> schemas.ValidationReport:
    valid, errors, warnings = validate_required_properties(intent)
    record_validation(valid, len(warnings))
    return schemas.ValidationReport(valid=valid, errors=errors, warnings=warnings)


@router.post(
    "/params/resolve",
    response_model=schemas.ResolveResponse,
    responses={502: {"model": schemas.ErrorResponse}},
)
def resolve_params(
    payload: schemas.ResolveRequest,
    authorization: Optional[str] = Header(default=None),
    lookup: DigestLookup = Depends(get_digest_lookup),
):
    """Default, normalize and validate stage parameters.

    With `pin_digests` set, sidecar images of a valid result are pinned to
    registry digests; a failing lookup fails the whole request.
    """
    _require_auth(authorization)
    intent = set_defaults(_parse_intent(payload.params), payload.hints)
    report = _report(intent)

    if payload.pin_digests and report.valid:
        try:
            replace_sidecar_tags_with_digest(intent.sidecars, lookup, max_workers=config.digest_workers())
        except DigestResolutionError as e:
            logger.warning(f"Digest resolution failed for app '{intent.app}': {e}")
            raise HTTPException(status_code=502, detail=str(e))

    return schemas.ResolveResponse(params=intent.model_dump(by_alias=True), report=report)


@router.post("/params/validate", response_model=schemas.ValidationReport)
def validate_params(
    payload: schemas.ValidateRequest,
    authorization: Optional[str] = Header(default=None),
):
    """Validate stage parameters exactly as given."""
    _require_auth(authorization)
    return _report(_parse_intent(payload.params))
