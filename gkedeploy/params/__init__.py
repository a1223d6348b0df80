"""Defaulting, normalization, validation and digest pinning of stage parameters."""
from gkedeploy.params.defaults import set_defaults
from gkedeploy.params.digests import replace_sidecar_tags_with_digest
from gkedeploy.params.hints import ResolutionHints
from gkedeploy.params.models import DeploymentIntent, SidecarSpec
from gkedeploy.params.validation import PropertyIssue, validate_required_properties

__all__ = [
    "DeploymentIntent",
    "PropertyIssue",
    "ResolutionHints",
    "SidecarSpec",
    "replace_sidecar_tags_with_digest",
    "set_defaults",
    "validate_required_properties",
]
