import copy
import os
import sys
from pathlib import Path

from fastapi.testclient import TestClient
from jsonschema import validate

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from gkedeploy.api import params  # noqa: E402
from gkedeploy.exceptions import RegistryLookupError  # noqa: E402
from gkedeploy.main import app  # noqa: E402
from gkedeploy.params import DeploymentIntent  # noqa: E402

STAGE_PARAMS = {
    "namespace": "mynamespace",
    "hosts": ["gke.estafette.io"],
    "container": {"repository": "estafette"},
    "sidecars": [{"type": "openresty", "image": "estafette/openresty-sidecar:1.13.6.1-alpine"}],
}
HINTS = {"git_source": "github.com", "git_owner": "estafette", "git_name": "myapp", "build_version": "1.0.0"}


def _pinning_lookup(repository, tag):
    return "abc123"


def _failing_lookup(repository, tag):
    raise RegistryLookupError(repository, tag, "registry responded with status 404", status_code=404)


def _client(lookup=_pinning_lookup):
    os.environ["GKEDEPLOY_API_TOKEN"] = ""
    app.dependency_overrides[params.get_digest_lookup] = lambda: lookup
    return TestClient(app)


def test_health():
    client = _client()
    resp = client.get("/api/v1/health", headers={"X-Correlation-Id": "corr-1"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.json()["label_domain"] == "estafette.io"
    assert resp.json()["digest_workers"] >= 1
    assert resp.headers["X-Correlation-Id"] == "corr-1"


def test_resolve_returns_resolved_params_and_report():
    client = _client()
    resp = client.post("/api/v1/params/resolve", json={"params": STAGE_PARAMS, "hints": HINTS})
    assert resp.status_code == 200
    body = resp.json()

    resolved = body["params"]
    assert resolved["app"] == "myapp"
    assert resolved["container"]["tag"] == "1.0.0"
    assert resolved["container"]["cpu"]["request"] == "100m"
    assert resolved["sidecars"][0]["image"] == "estafette/openresty-sidecar:1.13.6.1-alpine"
    assert resolved["legacysidecarused"] is False
    validate(instance=resolved, schema=DeploymentIntent.model_json_schema(by_alias=True))

    assert body["report"] == {"valid": True, "errors": [], "warnings": []}


def test_resolve_pins_sidecar_digests():
    client = _client()
    resp = client.post(
        "/api/v1/params/resolve",
        json={"params": STAGE_PARAMS, "hints": HINTS, "pin_digests": True}
    )
    assert resp.status_code == 200
    assert resp.json()["params"]["sidecars"][0]["image"] == "estafette/openresty-sidecar@sha256:abc123"


def test_resolve_reports_errors_without_pinning():
    client = _client(lookup=_failing_lookup)
    stage_params = copy.deepcopy(STAGE_PARAMS)
    del stage_params["namespace"]

    resp = client.post(
        "/api/v1/params/resolve",
        json={"params": stage_params, "hints": HINTS, "pin_digests": True}
    )
    assert resp.status_code == 200
    report = resp.json()["report"]
    assert report["valid"] is False
    assert [error["key"] for error in report["errors"]] == ["namespace"]


def test_resolve_digest_failure_is_bad_gateway():
    client = _client(lookup=_failing_lookup)
    resp = client.post(
        "/api/v1/params/resolve",
        json={"params": STAGE_PARAMS, "hints": HINTS, "pin_digests": True}
    )
    assert resp.status_code == 502
    assert "estafette/openresty-sidecar:1.13.6.1-alpine" in resp.json()["detail"]


def test_validate_does_not_apply_defaults():
    client = _client()
    resp = client.post("/api/v1/params/validate", json={"params": {"visibility": "public"}})
    assert resp.status_code == 200
    report = resp.json()
    assert report["valid"] is False
    keys = [error["key"] for error in report["errors"]]
    assert "app" in keys
    assert "kind" in keys
    assert [warning["key"] for warning in report["warnings"]] == ["visibility"]


def test_resolved_legacy_sidecar_still_warns_on_validate():
    client = _client()
    stage_params = copy.deepcopy(STAGE_PARAMS)
    stage_params["sidecar"] = stage_params.pop("sidecars")[0]

    resolved = client.post("/api/v1/params/resolve", json={"params": stage_params, "hints": HINTS}).json()
    assert resolved["params"]["legacysidecarused"] is True
    assert [warning["key"] for warning in resolved["report"]["warnings"]] == ["sidecar"]

    resp = client.post("/api/v1/params/validate", json={"params": resolved["params"]})
    assert resp.status_code == 200
    assert [warning["key"] for warning in resp.json()["warnings"]] == ["sidecar"]


def test_malformed_params_are_rejected():
    client = _client()
    resp = client.post("/api/v1/params/validate", json={"params": {"autoscale": {"min": "three"}}})
    assert resp.status_code == 422


def test_auth_required_when_token_set():
    client = _client()
    os.environ["GKEDEPLOY_API_TOKEN"] = "secret-token"
    try:
        resp = client.post("/api/v1/params/validate", json={"params": {}})
        assert resp.status_code == 401

        resp = client.post(
            "/api/v1/params/validate",
            headers={"Authorization": "Bearer wrong"},
            json={"params": {}}
        )
        assert resp.status_code == 403

        resp = client.post(
            "/api/v1/params/validate",
            headers={"Authorization": "Bearer secret-token"},
            json={"params": {}}
        )
        assert resp.status_code == 200
    finally:
        os.environ["GKEDEPLOY_API_TOKEN"] = ""


def test_metrics_endpoint():
    client = _client()
    client.post("/api/v1/params/validate", json={"params": {}})
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert 'gkedeploy_validations_total{outcome="invalid"}' in resp.text


if __name__ == "__main__":
    test_health()
    test_resolve_returns_resolved_params_and_report()
    test_resolve_pins_sidecar_digests()
    test_resolve_reports_errors_without_pinning()
    test_resolve_digest_failure_is_bad_gateway()
    test_validate_does_not_apply_defaults()
    test_resolved_legacy_sidecar_still_warns_on_validate()
    test_malformed_params_are_rejected()
    test_auth_required_when_token_set()
    test_metrics_endpoint()
    print("ok - test_params_api")
