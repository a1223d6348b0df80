"""Convention-based defaults for a deployment intent.

set_defaults() never fails: every field ends up with a deterministic value
derived from what the stage declared, the pipeline hints, or a built-in
default. Running it on an already resolved intent changes nothing.
"""
from __future__ import annotations

import base64
import logging
from typing import List, Optional

from gkedeploy import config
from gkedeploy.params.hints import ResolutionHints
from gkedeploy.params.models import Action, DeploymentIntent, Kind, ProbeSpec, Visibility
from gkedeploy.params.resources import set_cpu_defaults, set_memory_defaults
from gkedeploy.params.sidecars import resolve_sidecars

logger = logging.getLogger(__name__)

DEFAULT_CONTAINER_PORT = 5000
DEFAULT_CPU_REQUEST = "100m"
DEFAULT_MEMORY_REQUEST = "128Mi"
DEFAULT_MEMORY_LIMIT = "128Mi"
DEFAULT_IMAGE_PULL_POLICY = "IfNotPresent"

SAFETY_PROM_QUERY_TEMPLATE = "sum(rate(nginx_http_requests_total{{app='{app}'}}[5m])) by (app)"

# Cloudflare edge ranges; requests from these may carry a trusted client ip header.
CLOUDFLARE_IP_RANGES: List[str] = [
    "103.21.244.0/22",
    "103.22.200.0/22",
    "103.31.4.0/22",
    "104.16.0.0/12",
    "108.162.192.0/18",
    "131.0.72.0/22",
    "141.101.64.0/18",
    "162.158.0.0/15",
    "172.64.0.0/13",
    "173.245.48.0/20",
    "188.114.96.0/20",
    "190.93.240.0/20",
    "197.234.240.0/22",
    "198.41.128.0/17",
]

JOB_KINDS = (Kind.JOB.value, Kind.CRONJOB.value)


def set_defaults(intent: DeploymentIntent, hints: Optional[ResolutionHints] = None) -> DeploymentIntent:
    """Fill empty fields of `intent` in place and return it.

    Args:
        intent: Deployment intent as declared on the stage
        hints: Values supplied by the pipeline runtime (repository identity,
            app label, build version, release action, discovered labels)

    Returns:
        The same, now fully resolved, intent
    """
    hints = hints or ResolutionHints()

    _set_control_defaults(intent, hints)
    _set_app_defaults(intent, hints)
    _set_container_defaults(intent)
    _set_scaling_defaults(intent)
    _set_network_defaults(intent)
    _set_rollout_defaults(intent)
    _set_kind_defaults(intent)

    resolve_sidecars(intent)

    logger.debug(
        f"Resolved parameters for app '{intent.app}' "
        f"(kind={intent.kind}, visibility={intent.visibility}, sidecars={len(intent.sidecars)})"
    )
    return intent


def _set_control_defaults(intent: DeploymentIntent, hints: ResolutionHints) -> None:
    # a release action chosen in the pipeline ui (e.g. a rollback) always wins
    if hints.release_action:
        intent.action = hints.release_action
    elif not intent.action:
        intent.action = Action.DEPLOY_SIMPLE.value

    if not intent.kind:
        intent.kind = Kind.DEPLOYMENT.value

    if hints.build_version:
        intent.build_version = hints.build_version

    if not intent.credentials and hints.release_name:
        intent.credentials = f"gke-{hints.release_name}"

    if intent.disable_service_account_key_rotation is None:
        intent.disable_service_account_key_rotation = True


def _set_app_defaults(intent: DeploymentIntent, hints: ResolutionHints) -> None:
    if not intent.app:
        intent.app = hints.app_label or hints.git_name

    if not intent.google_cloud_credentials_app:
        intent.google_cloud_credentials_app = intent.app

    if not intent.labels and hints.labels:
        intent.labels = dict(hints.labels)
    if intent.app:
        intent.labels["app"] = intent.app
    intent.labels.update(pipeline_labels(hints))

    if not intent.visibility:
        intent.visibility = Visibility.PRIVATE.value


def pipeline_labels(hints: ResolutionHints) -> dict:
    """Labels identifying the pipeline that deployed the workload.

    The plain label joins host, owner and name with hyphens to stay a valid
    label value; the base64 variant keeps the slash-separated original.
    """
    domain = config.label_domain()
    plain = f"{hints.git_source}-{hints.git_owner}-{hints.git_name}"
    full = f"{hints.git_source}/{hints.git_owner}/{hints.git_name}"
    return {
        f"{domain}/pipeline": plain,
        f"{domain}/pipeline-base64": base64.b64encode(full.encode("utf-8")).decode("ascii"),
    }


def _set_container_defaults(intent: DeploymentIntent) -> None:
    container = intent.container

    if not container.name:
        container.name = intent.app
    if not container.tag:
        container.tag = intent.build_version
    if not container.image_pull_policy:
        container.image_pull_policy = DEFAULT_IMAGE_PULL_POLICY

    set_cpu_defaults(container.cpu, DEFAULT_CPU_REQUEST)
    set_memory_defaults(container.memory, DEFAULT_MEMORY_REQUEST, DEFAULT_MEMORY_LIMIT)

    if container.port <= 0:
        container.port = DEFAULT_CONTAINER_PORT

    _set_probe_defaults(container.liveness, "/liveness", initial_delay=30, port=container.port)
    _set_probe_defaults(container.readiness, "/readiness", initial_delay=0, port=container.port)

    if container.liveness.enabled is None:
        container.liveness.enabled = True
    if container.readiness.enabled is None:
        container.readiness.enabled = intent.kind != Kind.HEADLESS_DEPLOYMENT.value

    metrics = container.metrics
    if metrics.scrape is None:
        metrics.scrape = True
    if not metrics.path:
        metrics.path = "/metrics"
    if metrics.port <= 0:
        metrics.port = container.port

    lifecycle = container.lifecycle
    if lifecycle.prestop_sleep is None:
        lifecycle.prestop_sleep = True
    if lifecycle.prestop_sleep_seconds is None:
        lifecycle.prestop_sleep_seconds = 20

    for additional_port in container.additional_ports:
        if not additional_port.protocol:
            additional_port.protocol = "TCP"
        if not additional_port.visibility:
            additional_port.visibility = intent.visibility

    if intent.probe_service is None:
        intent.probe_service = True


def _set_probe_defaults(probe: ProbeSpec, path: str, initial_delay: int, port: int) -> None:
    if not probe.path:
        probe.path = path
    if probe.port <= 0:
        probe.port = port
    if probe.initial_delay_seconds <= 0:
        probe.initial_delay_seconds = initial_delay
    if probe.timeout_seconds <= 0:
        probe.timeout_seconds = 1
    if probe.period_seconds <= 0:
        probe.period_seconds = 10
    if probe.failure_threshold <= 0:
        probe.failure_threshold = 3
    if probe.success_threshold <= 0:
        probe.success_threshold = 1


def _set_scaling_defaults(intent: DeploymentIntent) -> None:
    autoscale = intent.autoscale
    if autoscale.enabled is None:
        autoscale.enabled = True
    if autoscale.min_replicas <= 0:
        autoscale.min_replicas = 3
    if autoscale.max_replicas <= 0:
        autoscale.max_replicas = 100
    if autoscale.cpu_percentage <= 0:
        autoscale.cpu_percentage = 80

    safety = autoscale.safety
    if safety.enabled is None:
        safety.enabled = False
    if not safety.prom_query:
        safety.prom_query = SAFETY_PROM_QUERY_TEMPLATE.format(app=intent.app)
    if not safety.ratio:
        safety.ratio = "1"
    if not safety.scale_down_ratio:
        safety.scale_down_ratio = "1"

    if intent.vpa.enabled is None:
        intent.vpa.enabled = False
    if not intent.vpa.update_mode:
        intent.vpa.update_mode = "Off"


def _set_network_defaults(intent: DeploymentIntent) -> None:
    request = intent.request
    if not request.timeout:
        request.timeout = "60s"
    if not request.max_body_size:
        request.max_body_size = "128m"
    if not request.proxy_buffer_size:
        request.proxy_buffer_size = "4k"
    if intent.visibility == Visibility.APIGEE.value and request.verify_depth <= 0:
        request.verify_depth = 3

    if not intent.basepath:
        intent.basepath = "/"
    if not intent.trusted_ip_ranges:
        intent.trusted_ip_ranges = list(CLOUDFLARE_IP_RANGES)
    if intent.inject_http_proxy_sidecar is None:
        intent.inject_http_proxy_sidecar = True


def _set_rollout_defaults(intent: DeploymentIntent) -> None:
    if not intent.strategy_type:
        intent.strategy_type = "RollingUpdate"

    rolling_update = intent.rolling_update
    if not rolling_update.max_surge:
        rolling_update.max_surge = "25%"
    if not rolling_update.max_unavailable:
        rolling_update.max_unavailable = "0"
    if not rolling_update.timeout:
        rolling_update.timeout = "5m"

    if not intent.configs.mount_path:
        intent.configs.mount_path = "/configs"
    if not intent.secrets.mount_path:
        intent.secrets.mount_path = "/secrets"


def _set_kind_defaults(intent: DeploymentIntent) -> None:
    if intent.kind == Kind.CRONJOB.value and not intent.concurrency_policy:
        intent.concurrency_policy = "Allow"

    if intent.kind in JOB_KINDS:
        if not intent.restart_policy:
            intent.restart_policy = "OnFailure"
        if intent.completions <= 0:
            intent.completions = 1
        if intent.parallelism <= 0:
            intent.parallelism = 1
        # an explicit 0 means "never retry" and has to survive
        if intent.backoff_limit is None:
            intent.backoff_limit = 6

    if intent.kind == Kind.STATEFULSET.value:
        if not intent.pod_management_policy:
            intent.pod_management_policy = "Parallel"
        if not intent.storage_class:
            intent.storage_class = "standard"
        if not intent.storage_size:
            intent.storage_size = "1Gi"
        if not intent.storage_mount_path:
            intent.storage_mount_path = "/data"
