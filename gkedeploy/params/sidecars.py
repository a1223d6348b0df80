"""Sidecar normalization and per-sidecar defaults.

Stages may still declare the deprecated singular `sidecar` property next to
(or instead of) the `sidecars` list. Normalization folds it into the list
once, clears it, and remembers whether it was the only source of sidecar
information so the validator can warn about it.
"""
import logging

from gkedeploy.params.models import DeploymentIntent, Kind, SidecarSpec, SidecarType
from gkedeploy.params.resources import set_cpu_defaults, set_memory_defaults

logger = logging.getLogger(__name__)

# estafette/openresty-sidecar:1.5.8.2
DEFAULT_OPENRESTY_IMAGE = (
    "estafette/openresty-sidecar@sha256:2aa9f2c8c3f506e0f6cc70871701b5ac81aa0f12e8574c7b8213e4d0379d2ddd"
)
DEFAULT_CLOUDSQLPROXY_IMAGE = "gcr.io/cloudsql-docker/gce-proxy:1.16"
DEFAULT_ESP_IMAGE = "gcr.io/endpoints-release/endpoints-runtime:1"

DEFAULT_SIDECAR_CPU_REQUEST = "10m"
DEFAULT_SIDECAR_MEMORY_REQUEST = "10Mi"
DEFAULT_SIDECAR_MEMORY_LIMIT = "50Mi"
DEFAULT_SQL_PROXY_PORT = 5432
DEFAULT_SQL_PROXY_TERMINATION_TIMEOUT_SECONDS = 60


def normalize_sidecars(intent: DeploymentIntent) -> None:
    """Fold the singular sidecar property into the sidecar list.

    - empty list: a typed singular entry becomes the only list entry
    - non-empty list: the singular entry only counts as the http proxy
      candidate; an openresty entry is prepended when the list has none,
      anything else is dropped rather than duplicated
    """
    legacy = intent.sidecar
    intent.sidecar = None

    # unknown types are kept so validation can report them
    if legacy is None or not legacy.type:
        return

    if not intent.sidecars:
        intent.sidecars = [legacy]
        intent.legacy_sidecar_used = True
        return

    if legacy.is_openresty() and intent.openresty_sidecar() is None:
        intent.sidecars.insert(0, legacy)
    else:
        logger.debug(f"Ignoring singular sidecar of type '{legacy.type}', sidecars list takes precedence")


def should_inject_http_proxy(intent: DeploymentIntent) -> bool:
    return (
        intent.kind == Kind.DEPLOYMENT.value
        and intent.inject_http_proxy_sidecar is not False
        and intent.openresty_sidecar() is None
    )


def set_sidecar_defaults(sidecar: SidecarSpec, intent: DeploymentIntent) -> None:
    """Apply type-specific defaults to one sidecar entry."""
    if sidecar.is_openresty():
        if not sidecar.image:
            sidecar.image = DEFAULT_OPENRESTY_IMAGE
        if not sidecar.health_check_path:
            sidecar.health_check_path = intent.container.readiness.path

    elif sidecar.type == SidecarType.CLOUDSQLPROXY.value:
        if not sidecar.image:
            sidecar.image = DEFAULT_CLOUDSQLPROXY_IMAGE
        if sidecar.sql_proxy_port <= 0:
            sidecar.sql_proxy_port = DEFAULT_SQL_PROXY_PORT
        if sidecar.sql_proxy_termination_timeout_seconds <= 0:
            sidecar.sql_proxy_termination_timeout_seconds = DEFAULT_SQL_PROXY_TERMINATION_TIMEOUT_SECONDS

    elif sidecar.type == SidecarType.ESP.value:
        if not sidecar.image:
            sidecar.image = DEFAULT_ESP_IMAGE

    set_cpu_defaults(sidecar.cpu, DEFAULT_SIDECAR_CPU_REQUEST)
    set_memory_defaults(sidecar.memory, DEFAULT_SIDECAR_MEMORY_REQUEST, DEFAULT_SIDECAR_MEMORY_LIMIT)


def resolve_sidecars(intent: DeploymentIntent) -> None:
    """Normalize, inject the http proxy when required, then default every entry.

    Expects the container readiness path to be resolved already.
    """
    normalize_sidecars(intent)

    if should_inject_http_proxy(intent):
        logger.debug(f"Injecting openresty sidecar for app '{intent.app}'")
        intent.sidecars.append(SidecarSpec(type=SidecarType.OPENRESTY.value))

    for sidecar in intent.sidecars:
        set_sidecar_defaults(sidecar, intent)
