"""Pydantic schemas (DTOs) for the gkedeploy API"""
from datetime import datetime
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from gkedeploy.params.hints import ResolutionHints
from gkedeploy.params.validation import PropertyIssue


# Health Schemas
class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    uptime_seconds: int
    now: datetime
    label_domain: str
    digest_workers: int


# Params Schemas
class ResolveRequest(BaseModel):
    """Stage properties plus the pipeline hints to resolve them with."""
    params: Dict[str, Any] = Field(default_factory=dict)
    hints: ResolutionHints = Field(default_factory=ResolutionHints)
    pin_digests: bool = False


class ValidateRequest(BaseModel):
    """Stage properties to validate as they are, without defaulting."""
    params: Dict[str, Any] = Field(default_factory=dict)


class ValidationReport(BaseModel):
    """Outcome of required-property validation."""
    valid: bool
    errors: List[PropertyIssue] = Field(default_factory=list)
    warnings: List[PropertyIssue] = Field(default_factory=list)


class ResolveResponse(BaseModel):
    """Resolved stage properties, keyed like the input, plus the validation report."""
    params: Dict[str, Any]
    report: ValidationReport


class ErrorResponse(BaseModel):
    """Error detail returned for failed requests."""
    detail: str
