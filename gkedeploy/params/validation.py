"""Required-property validation for a resolved deployment intent.

Every rule is evaluated; errors and warnings are collected rather than
raised so a stage author sees every problem in one run. Each issue carries
the configuration key to change.
"""
from __future__ import annotations

import re
from typing import List, Tuple

from pydantic import BaseModel

from gkedeploy.params.models import (
    DeploymentIntent,
    Kind,
    LoadBalanceAlgorithm,
    SidecarSpec,
    SidecarType,
    Visibility,
    known_values,
)

MAX_HOST_LENGTH = 253
MAX_HOST_LABEL_LENGTH = 63
_HOST_LABEL_PATTERN = re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$")

HOSTED_KINDS = (Kind.DEPLOYMENT.value, Kind.STATEFULSET.value)
CONCURRENCY_POLICIES = ("Allow", "Forbid", "Replace")
POD_MANAGEMENT_POLICIES = ("OrderedReady", "Parallel")


class PropertyIssue(BaseModel):
    """A single validation error or warning."""
    key: str
    message: str

    def __str__(self) -> str:
        return self.message


class _Collector:
    """Accumulates issues instead of failing on the first one."""

    def __init__(self):
        self.errors: List[PropertyIssue] = []
        self.warnings: List[PropertyIssue] = []

    def ensure(self, condition: bool, key: str, message: str) -> None:
        if not condition:
            self.errors.append(PropertyIssue(key=key, message=message))

    def warn(self, key: str, message: str) -> None:
        self.warnings.append(PropertyIssue(key=key, message=message))


def is_valid_host(host: str) -> bool:
    """Check a host name against dns length and character rules, ignoring case."""
    host = host.lower()
    if not host or len(host) > MAX_HOST_LENGTH:
        return False
    for label in host.split("."):
        if len(label) > MAX_HOST_LABEL_LENGTH or not _HOST_LABEL_PATTERN.match(label):
            return False
    return True


def validate_required_properties(
    intent: DeploymentIntent,
) -> Tuple[bool, List[PropertyIssue], List[PropertyIssue]]:
    """Validate a resolved intent without modifying it.

    Returns:
        Tuple of (valid, errors, warnings); valid is True when errors is empty
    """
    check = _Collector()

    _validate_app(intent, check)
    _validate_visibility(intent, check)
    _validate_hosts(intent, check)
    _validate_autoscale(intent, check)
    _validate_container(intent, check)
    _validate_sidecars(intent, check)
    _validate_rollout(intent, check)
    _validate_kind_specifics(intent, check)

    return len(check.errors) == 0, check.errors, check.warnings


def _validate_app(intent: DeploymentIntent, check: _Collector) -> None:
    check.ensure(
        intent.app != "", "app",
        "Application name is required; either define an app label or use app property on this stage",
    )
    check.ensure(
        intent.namespace != "", "namespace",
        "Namespace is required; either use credentials with a defaultNamespace "
        "or set it via namespace property on this stage",
    )
    check.ensure(
        intent.kind in known_values(Kind), "kind",
        f"Kind '{intent.kind}' is not supported; set it via kind property on this stage; "
        f"allowed values are {', '.join(known_values(Kind))}",
    )
    check.ensure(
        intent.basepath != "", "basepath",
        "Basepath property is required; set it via basepath property on this stage",
    )


def _validate_visibility(intent: DeploymentIntent, check: _Collector) -> None:
    visibility = intent.visibility
    check.ensure(
        visibility in known_values(Visibility), "visibility",
        "Visibility property is required; set it via visibility property on this stage; "
        f"allowed values are {', '.join(known_values(Visibility))}",
    )

    if visibility == Visibility.PUBLIC.value:
        check.warn(
            "visibility",
            "Visibility 'public' exposes the application to the entire internet; "
            "consider public-whitelist, iap, esp or apigee for the visibility property on this stage",
        )
    elif visibility == Visibility.IAP.value:
        check.ensure(
            intent.iap_oauth_client_id != "", "iapOauthClientID",
            "With visibility 'iap' property iapOauthClientID is required; "
            "set it via iapOauthClientID property on this stage",
        )
        check.ensure(
            intent.iap_oauth_client_secret != "", "iapOauthClientSecret",
            "With visibility 'iap' property iapOauthClientSecret is required; "
            "set it via iapOauthClientSecret property on this stage",
        )
    elif visibility == Visibility.ESP.value:
        check.ensure(
            intent.esp_endpoints_project_id != "", "espEndpointsProjectID",
            "With visibility 'esp' property espEndpointsProjectID is required; "
            "provide id of the 'endpoints' project",
        )
    elif visibility == Visibility.APIGEE.value:
        check.ensure(
            intent.apigee_auth_secret != "", "apigeeAuthSecret",
            "With visibility 'apigee' property apigeeAuthSecret is required; "
            "set it via apigeeAuthSecret property on this stage",
        )

    algorithm = intent.request.load_balance_algorithm
    check.ensure(
        algorithm == "" or algorithm in known_values(LoadBalanceAlgorithm), "request.loadbalance",
        f"Load balance algorithm '{algorithm}' is not supported; set it via request.loadbalance property "
        f"on this stage; allowed values are {', '.join(known_values(LoadBalanceAlgorithm))} or empty",
    )


def _validate_hosts(intent: DeploymentIntent, check: _Collector) -> None:
    if intent.kind in HOSTED_KINDS:
        check.ensure(
            len(intent.hosts) > 0, "hosts",
            "At least one host is required; set it via hosts array property on this stage",
        )

    for key, hosts in (("hosts", intent.hosts), ("internalhosts", intent.internal_hosts)):
        for host in hosts:
            check.ensure(
                is_valid_host(host), key,
                f"Host '{host}' is not a valid dns name; labels can have at most "
                f"{MAX_HOST_LABEL_LENGTH} letters, digits or hyphens and the host at most "
                f"{MAX_HOST_LENGTH} characters; fix it in the {key} array property on this stage",
            )


def _validate_autoscale(intent: DeploymentIntent, check: _Collector) -> None:
    autoscale = intent.autoscale
    check.ensure(
        autoscale.min_replicas > 0, "autoscale.min",
        "Autoscaling min replicas must be larger than zero; set it via autoscale.min property on this stage",
    )
    check.ensure(
        autoscale.max_replicas > 0, "autoscale.max",
        "Autoscaling max replicas must be larger than zero; set it via autoscale.max property on this stage",
    )
    check.ensure(
        autoscale.cpu_percentage > 0, "autoscale.cpu",
        "Autoscaling cpu percentage must be larger than zero; set it via autoscale.cpu property on this stage",
    )


def _validate_container(intent: DeploymentIntent, check: _Collector) -> None:
    container = intent.container

    check.ensure(
        container.repository != "", "container.repository",
        "Image repository is required; set it via container.repository property on this stage",
    )
    check.ensure(
        container.name != "", "container.name",
        "Image name is required; set it via container.name property on this stage",
    )
    check.ensure(
        container.tag != "", "container.tag",
        "Image tag is required; set it via container.tag property on this stage",
    )
    check.ensure(
        container.port > 0, "container.port",
        "Container port must be larger than zero; set it via container.port property on this stage",
    )

    # cpu limit is optional
    check.ensure(
        container.cpu.request != "", "container.cpu.request",
        "Cpu request is required; set it via container.cpu.request property on this stage",
    )
    check.ensure(
        container.memory.request != "", "container.memory.request",
        "Memory request is required; set it via container.memory.request property on this stage",
    )
    check.ensure(
        container.memory.limit != "", "container.memory.limit",
        "Memory limit is required; set it via container.memory.limit property on this stage",
    )

    liveness = container.liveness
    check.ensure(
        liveness.path != "", "container.liveness.path",
        "Liveness path is required; set it via container.liveness.path property on this stage",
    )
    check.ensure(
        liveness.port > 0, "container.liveness.port",
        "Liveness port must be larger than zero; set it via container.liveness.port property on this stage",
    )
    check.ensure(
        liveness.initial_delay_seconds > 0, "container.liveness.delay",
        "Liveness initial delay must be larger than zero; set it via container.liveness.delay property on this stage",
    )
    check.ensure(
        liveness.timeout_seconds > 0, "container.liveness.timeout",
        "Liveness timeout must be larger than zero; set it via container.liveness.timeout property on this stage",
    )

    readiness = container.readiness
    check.ensure(
        readiness.path != "", "container.readiness.path",
        "Readiness path is required; set it via container.readiness.path property on this stage",
    )
    check.ensure(
        readiness.port > 0, "container.readiness.port",
        "Readiness port must be larger than zero; set it via container.readiness.port property on this stage",
    )
    check.ensure(
        readiness.timeout_seconds > 0, "container.readiness.timeout",
        "Readiness timeout must be larger than zero; set it via container.readiness.timeout property on this stage",
    )

    metrics = container.metrics
    check.ensure(
        metrics.scrape is not None, "container.metrics.scrape",
        "Metrics scrape is required; set it via container.metrics.scrape property on this stage",
    )
    if metrics.scrape:
        check.ensure(
            metrics.path != "", "container.metrics.path",
            "Metrics path is required; set it via container.metrics.path property on this stage",
        )
        check.ensure(
            metrics.port > 0, "container.metrics.port",
            "Metrics port must be larger than zero; set it via container.metrics.port property on this stage",
        )


def _validate_sidecars(intent: DeploymentIntent, check: _Collector) -> None:
    for index, sidecar in enumerate(intent.sidecars):
        _validate_sidecar(sidecar, f"sidecars[{index}]", check)

    legacy = intent.sidecar
    if legacy is not None and legacy.type:
        _validate_sidecar(legacy, "sidecar", check)

    if intent.legacy_sidecar_used or (legacy is not None and legacy.type and not intent.sidecars):
        check.warn(
            "sidecar",
            "The sidecar property is deprecated; move its contents into the sidecars array property on this stage",
        )


def _validate_sidecar(sidecar: SidecarSpec, key: str, check: _Collector) -> None:
    check.ensure(
        sidecar.has_type(), f"{key}.type",
        f"Sidecar type '{sidecar.type}' is not supported; set it via {key}.type property on this stage; "
        f"allowed values are {', '.join(known_values(SidecarType))}",
    )
    if sidecar.type != SidecarType.ISTIO.value:
        check.ensure(
            sidecar.image != "", f"{key}.image",
            f"Sidecar image is required; set it via {key}.image property on this stage",
        )
    check.ensure(
        sidecar.cpu.request != "", f"{key}.cpu.request",
        f"Sidecar cpu request is required; set it via {key}.cpu.request property on this stage",
    )
    check.ensure(
        sidecar.memory.request != "", f"{key}.memory.request",
        f"Sidecar memory request is required; set it via {key}.memory.request property on this stage",
    )
    check.ensure(
        sidecar.memory.limit != "", f"{key}.memory.limit",
        f"Sidecar memory limit is required; set it via {key}.memory.limit property on this stage",
    )

    if sidecar.type == SidecarType.CLOUDSQLPROXY.value:
        check.ensure(
            sidecar.db_instance_connection_name != "", f"{key}.dbinstanceconnectionname",
            f"The name of the database instance is required for the cloudsqlproxy sidecar; "
            f"set it via {key}.dbinstanceconnectionname property on this stage",
        )
        check.ensure(
            sidecar.sql_proxy_port > 0, f"{key}.sqlproxyport",
            f"The port of the cloudsqlproxy sidecar must be larger than zero; "
            f"set it via {key}.sqlproxyport property on this stage",
        )


def _validate_rollout(intent: DeploymentIntent, check: _Collector) -> None:
    check.ensure(
        intent.rolling_update.max_surge != "", "rollingupdate.maxsurge",
        "Rolling update max surge is required; set it via rollingupdate.maxsurge property on this stage",
    )
    check.ensure(
        intent.rolling_update.max_unavailable != "", "rollingupdate.maxunavailable",
        "Rolling update max unavailable is required; set it via rollingupdate.maxunavailable property on this stage",
    )


def _validate_kind_specifics(intent: DeploymentIntent, check: _Collector) -> None:
    if intent.kind == Kind.CRONJOB.value:
        check.ensure(
            intent.schedule != "", "schedule",
            "Schedule is required for a cronjob; set it via schedule property on this stage",
        )
        check.ensure(
            intent.concurrency_policy in CONCURRENCY_POLICIES, "concurrencypolicy",
            "Concurrency policy is invalid for a cronjob; set it via concurrencypolicy property on this stage; "
            f"allowed values are {', '.join(CONCURRENCY_POLICIES)}",
        )

    if intent.kind == Kind.STATEFULSET.value:
        check.ensure(
            intent.pod_management_policy in POD_MANAGEMENT_POLICIES, "podManagementpolicy",
            "Pod management policy is invalid for a statefulset; set it via podManagementpolicy property "
            f"on this stage; allowed values are {', '.join(POD_MANAGEMENT_POLICIES)}",
        )
        check.ensure(
            intent.storage_class != "", "storageclass",
            "Storage class is required for a statefulset; set it via storageclass property on this stage",
        )
        check.ensure(
            intent.storage_size != "", "storagesize",
            "Storage size is required for a statefulset; set it via storagesize property on this stage",
        )
