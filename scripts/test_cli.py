import contextlib
import io
import json
import os
import sys
import tempfile
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from gkedeploy import cli  # noqa: E402
from gkedeploy.exceptions import ParamsLoadError, RegistryLookupError  # noqa: E402

STAGE_PARAMS = {
    "namespace": "mynamespace",
    "hosts": ["gke.estafette.io"],
    "container": {"repository": "estafette"},
}
PIPELINE_ENV = {
    "ESTAFETTE_GIT_SOURCE": "github.com",
    "ESTAFETTE_GIT_OWNER": "estafette",
    "ESTAFETTE_GIT_NAME": "myapp",
    "ESTAFETTE_BUILD_VERSION": "1.0.0",
    "GKEDEPLOY_PARAMS_FILE": None,
}


@contextlib.contextmanager
def _env(values):
    previous = {key: os.environ.get(key) for key in values}
    try:
        for key, value in values.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value
        yield
    finally:
        for key, value in previous.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value


def _run(params, lookup=None, extra_env=None):
    values = dict(PIPELINE_ENV)
    values["ESTAFETTE_EXTENSION_CUSTOM_PROPERTIES"] = params if isinstance(params, str) else json.dumps(params)
    values.update(extra_env or {})

    stdout = io.StringIO()
    with _env(values), contextlib.redirect_stdout(stdout):
        code = cli.main(lookup=lookup or (lambda repository, tag: "abc123"))
    return code, stdout.getvalue()


def test_resolves_and_prints_params():
    code, output = _run(STAGE_PARAMS)
    assert code == 0

    resolved = json.loads(output)
    assert resolved["app"] == "myapp"
    assert resolved["container"]["tag"] == "1.0.0"
    assert resolved["labels"]["estafette.io/pipeline"] == "github.com-estafette-myapp"
    assert [sidecar["type"] for sidecar in resolved["sidecars"]] == ["openresty"]


def test_floating_sidecar_images_are_pinned():
    params = dict(STAGE_PARAMS, sidecars=[{"type": "esp", "image": "gcr.io/endpoints-release/endpoints-runtime:1"}])
    code, output = _run(params)
    assert code == 0

    images = [sidecar["image"] for sidecar in json.loads(output)["sidecars"]]
    assert images[0] == "gcr.io/endpoints-release/endpoints-runtime@sha256:abc123"
    assert "@sha256:" in images[1]


def test_invalid_params_exit_non_zero():
    params = dict(STAGE_PARAMS, namespace="")
    code, output = _run(params)
    assert code == 1
    assert output == ""


def test_digest_failure_exits_non_zero():
    def failing(repository, tag):
        raise RegistryLookupError(repository, tag, "registry responded with status 500", status_code=500)

    params = dict(STAGE_PARAMS, sidecars=[{"type": "esp", "image": "gcr.io/endpoints-release/endpoints-runtime:1"}])
    code, output = _run(params, lookup=failing)
    assert code == 1
    assert output == ""


def test_unreadable_params_exit_non_zero():
    assert _run("{not json")[0] == 1
    assert _run("[]")[0] == 1
    assert _run("")[0] == 1
    assert _run({"autoscale": {"min": "three"}})[0] == 1


def test_params_file_takes_precedence():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "params.json"
        path.write_text(json.dumps(dict(STAGE_PARAMS, app="fromfile")))

        code, output = _run("{not json", extra_env={"GKEDEPLOY_PARAMS_FILE": str(path)})
        assert code == 0
        assert json.loads(output)["app"] == "fromfile"

        with _env({"GKEDEPLOY_PARAMS_FILE": str(Path(tmpdir) / "missing.json")}):
            try:
                cli.load_params()
                assert False, "expected ParamsLoadError"
            except ParamsLoadError as e:
                assert e.source.endswith("missing.json")


if __name__ == "__main__":
    test_resolves_and_prints_params()
    test_floating_sidecar_images_are_pinned()
    test_invalid_params_exit_non_zero()
    test_digest_failure_exits_non_zero()
    test_unreadable_params_exit_non_zero()
    test_params_file_takes_precedence()
    print("ok - test_cli")
