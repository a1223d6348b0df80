"""Pydantic models for the deployment intent declared on a pipeline stage.

Field aliases match the stage's custom property keys; attribute names are
snake_case. Enumerated settings are kept as plain strings on the models so
that unknown values survive defaulting untouched and are reported by the
validator instead. The str-enums below hold the known values.
"""
from __future__ import annotations

import enum
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, BeforeValidator, Field


class Kind(str, enum.Enum):
    """Workload controller family."""
    DEPLOYMENT = "deployment"
    HEADLESS_DEPLOYMENT = "headless-deployment"
    STATEFULSET = "statefulset"
    JOB = "job"
    CRONJOB = "cronjob"
    CONFIG = "config"
    UNKNOWN = ""


class Visibility(str, enum.Enum):
    """Network exposure mode."""
    PRIVATE = "private"
    PUBLIC = "public"
    PUBLIC_WHITELIST = "public-whitelist"
    APIGEE = "apigee"
    ESP = "esp"
    IAP = "iap"
    UNKNOWN = ""


class SidecarType(str, enum.Enum):
    """Auxiliary container flavours."""
    OPENRESTY = "openresty"
    ISTIO = "istio"
    ESP = "esp"
    CLOUDSQLPROXY = "cloudsqlproxy"
    UNKNOWN = ""


class Action(str, enum.Enum):
    """Release action performed by the stage."""
    DEPLOY_SIMPLE = "deploy-simple"
    DEPLOY_CANARY = "deploy-canary"
    DEPLOY_STABLE = "deploy-stable"
    ROLLBACK_CANARY = "rollback-canary"
    RESTART_CANARY = "restart-canary"
    RESTART_STABLE = "restart-stable"
    RESTART_SIMPLE = "restart-simple"
    UNKNOWN = ""


class LoadBalanceAlgorithm(str, enum.Enum):
    """Upstream balancing in the http proxy sidecar; empty means platform default."""
    ROUND_ROBIN = "round_robin"
    EWMA = "ewma"


def known_values(enum_cls) -> List[str]:
    """Non-empty values of a str-enum."""
    return [member.value for member in enum_cls if member.value]


# Input coercion: stage properties arrive as loosely typed JSON.

def _as_text(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


def _blank_to_zero(value: Any) -> Any:
    if value is None:
        return 0
    if isinstance(value, str) and not value.strip():
        return 0
    return value


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _blank_to_false(value: Any) -> Any:
    if value is None or (isinstance(value, str) and not value.strip()):
        return False
    return value


def _none_to_list(value: Any) -> Any:
    return [] if value is None else value


def _none_to_dict(value: Any) -> Any:
    return {} if value is None else value


Text = Annotated[str, BeforeValidator(_as_text)]
Number = Annotated[int, BeforeValidator(_blank_to_zero)]
OptionalNumber = Annotated[Optional[int], BeforeValidator(_blank_to_none)]
TriState = Annotated[Optional[bool], BeforeValidator(_blank_to_none)]
Flag = Annotated[bool, BeforeValidator(_blank_to_false)]
TextList = Annotated[List[str], BeforeValidator(_none_to_list)]
TextMap = Annotated[Dict[str, str], BeforeValidator(_none_to_dict)]


class ParamsModel(BaseModel):
    """Base for all stage parameter models."""

    class Config:
        populate_by_name = True


class ResourceSpec(ParamsModel):
    """Request/limit pair for cpu or memory."""
    request: Text = ""
    limit: Text = ""


class ProbeSpec(ParamsModel):
    enabled: TriState = None
    path: Text = ""
    port: Number = 0
    initial_delay_seconds: Number = Field(0, alias="delay")
    timeout_seconds: Number = Field(0, alias="timeout")
    period_seconds: Number = Field(0, alias="period")
    failure_threshold: Number = Field(0, alias="failureThreshold")
    success_threshold: Number = Field(0, alias="successThreshold")


class MetricsSpec(ParamsModel):
    scrape: TriState = None
    path: Text = ""
    port: Number = 0


class LifecycleSpec(ParamsModel):
    prestop_sleep: TriState = Field(None, alias="prestopsleep")
    prestop_sleep_seconds: OptionalNumber = Field(None, alias="prestopsleepseconds")


class AdditionalPortSpec(ParamsModel):
    name: Text = ""
    port: Number = 0
    protocol: Text = ""
    visibility: Text = ""


class ContainerSpec(ParamsModel):
    """Main application container."""
    repository: Text = ""
    name: Text = ""
    tag: Text = ""
    image_pull_policy: Text = Field("", alias="imagePullPolicy")
    port: Number = 0
    env: Annotated[Dict[str, Any], BeforeValidator(_none_to_dict)] = Field(default_factory=dict)
    cpu: ResourceSpec = Field(default_factory=ResourceSpec)
    memory: ResourceSpec = Field(default_factory=ResourceSpec)
    liveness: ProbeSpec = Field(default_factory=ProbeSpec)
    readiness: ProbeSpec = Field(default_factory=ProbeSpec)
    metrics: MetricsSpec = Field(default_factory=MetricsSpec)
    lifecycle: LifecycleSpec = Field(default_factory=LifecycleSpec)
    additional_ports: Annotated[List[AdditionalPortSpec], BeforeValidator(_none_to_list)] = Field(
        default_factory=list, alias="additionalports"
    )


class SafetySpec(ParamsModel):
    """Request-rate based guard against scaling down under load."""
    enabled: TriState = None
    prom_query: Text = Field("", alias="promquery")
    ratio: Text = ""
    scale_down_ratio: Text = Field("", alias="scaledownratio")


class AutoscaleSpec(ParamsModel):
    enabled: TriState = None
    min_replicas: Number = Field(0, alias="min")
    max_replicas: Number = Field(0, alias="max")
    cpu_percentage: Number = Field(0, alias="cpu")
    safety: SafetySpec = Field(default_factory=SafetySpec)


class VPASpec(ParamsModel):
    enabled: TriState = None
    update_mode: Text = Field("", alias="updateMode")


class RequestSpec(ParamsModel):
    timeout: Text = ""
    max_body_size: Text = Field("", alias="maxbodysize")
    proxy_buffer_size: Text = Field("", alias="proxybuffersize")
    load_balance_algorithm: Text = Field("", alias="loadbalance")
    verify_depth: Number = Field(0, alias="verifydepth")


class RollingUpdateSpec(ParamsModel):
    max_surge: Text = Field("", alias="maxsurge")
    max_unavailable: Text = Field("", alias="maxunavailable")
    timeout: Text = ""


class ConfigsSpec(ParamsModel):
    files: TextList = Field(default_factory=list)
    data: Annotated[Dict[str, Any], BeforeValidator(_none_to_dict)] = Field(default_factory=dict)
    mount_path: Text = Field("", alias="mountpath")


class SecretsSpec(ParamsModel):
    keys: Annotated[Dict[str, Any], BeforeValidator(_none_to_dict)] = Field(default_factory=dict)
    mount_path: Text = Field("", alias="mountpath")


class SidecarSpec(ParamsModel):
    """One auxiliary container; type-specific fields are ignored by other types."""
    type: Text = ""
    image: Text = ""
    cpu: ResourceSpec = Field(default_factory=ResourceSpec)
    memory: ResourceSpec = Field(default_factory=ResourceSpec)
    health_check_path: Text = Field("", alias="healthcheckpath")
    db_instance_connection_name: Text = Field("", alias="dbinstanceconnectionname")
    sql_proxy_port: Number = Field(0, alias="sqlproxyport")
    sql_proxy_termination_timeout_seconds: Number = Field(0, alias="sqlproxyterminationtimeoutseconds")

    def has_type(self) -> bool:
        """True when the type is one of the known sidecar types."""
        return self.type in known_values(SidecarType)

    def is_openresty(self) -> bool:
        return self.type == SidecarType.OPENRESTY.value


class DeploymentIntent(ParamsModel):
    """Root aggregate: everything a stage declares about one deployment."""

    # control
    action: Text = ""
    credentials: Text = ""
    build_version: Text = Field("", alias="buildVersion")

    # app
    app: Text = ""
    namespace: Text = ""
    kind: Text = ""
    labels: TextMap = Field(default_factory=dict)
    visibility: Text = ""
    hosts: TextList = Field(default_factory=list)
    internal_hosts: TextList = Field(default_factory=list, alias="internalhosts")
    basepath: Text = ""
    trusted_ip_ranges: TextList = Field(default_factory=list, alias="trustedips")

    # scaling
    autoscale: AutoscaleSpec = Field(default_factory=AutoscaleSpec)
    vpa: VPASpec = Field(default_factory=VPASpec)
    request: RequestSpec = Field(default_factory=RequestSpec)

    # containers
    container: ContainerSpec = Field(default_factory=ContainerSpec)
    sidecar: Optional[SidecarSpec] = None
    sidecars: Annotated[List[SidecarSpec], BeforeValidator(_none_to_list)] = Field(default_factory=list)
    inject_http_proxy_sidecar: TriState = Field(None, alias="injecthttpproxysidecar")
    # set when the deprecated singular sidecar was the only sidecar source
    legacy_sidecar_used: Flag = Field(False, alias="legacysidecarused")

    # rollout
    strategy_type: Text = Field("", alias="strategytype")
    rolling_update: RollingUpdateSpec = Field(default_factory=RollingUpdateSpec, alias="rollingupdate")

    # job and cronjob
    schedule: Text = ""
    concurrency_policy: Text = Field("", alias="concurrencypolicy")
    restart_policy: Text = Field("", alias="restartPolicy")
    completions: Number = 0
    parallelism: Number = 0
    backoff_limit: OptionalNumber = Field(None, alias="backoffLimit")

    # statefulset
    pod_management_policy: Text = Field("", alias="podManagementpolicy")
    storage_class: Text = Field("", alias="storageclass")
    storage_size: Text = Field("", alias="storagesize")
    storage_mount_path: Text = Field("", alias="storagemountpath")

    configs: ConfigsSpec = Field(default_factory=ConfigsSpec)
    secrets: SecretsSpec = Field(default_factory=SecretsSpec)
    probe_service: TriState = Field(None, alias="probeservice")

    # identity and auth
    disable_service_account_key_rotation: TriState = Field(None, alias="disableServiceAccountKeyRotation")
    google_cloud_credentials_app: Text = Field("", alias="googleCloudCredentialsApp")
    iap_oauth_client_id: Text = Field("", alias="iapOauthClientID")
    iap_oauth_client_secret: Text = Field("", alias="iapOauthClientSecret")
    esp_endpoints_project_id: Text = Field("", alias="espEndpointsProjectID")
    apigee_auth_secret: Text = Field("", alias="apigeeAuthSecret")

    def openresty_sidecar(self) -> Optional[SidecarSpec]:
        """First openresty entry in the sidecar list, if any."""
        for sidecar in self.sidecars:
            if sidecar.is_openresty():
                return sidecar
        return None
