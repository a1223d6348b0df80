import sys
import threading
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from gkedeploy.exceptions import DigestResolutionError, RegistryLookupError  # noqa: E402
from gkedeploy.params import SidecarSpec, replace_sidecar_tags_with_digest  # noqa: E402
from gkedeploy.params.digests import split_image  # noqa: E402

PINNED = "estafette/openresty-sidecar@sha256:2aa9f2c8c3f506e0f6cc70871701b5ac81aa0f12e8574c7b8213e4d0379d2ddd"


class FakeLookup:
    def __init__(self, digests=None, failing=()):
        self.digests = digests or {}
        self.failing = set(failing)
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, repository, tag):
        with self._lock:
            self.calls.append((repository, tag))
        if repository in self.failing:
            raise RegistryLookupError(repository, tag, "registry responded with status 404", status_code=404)
        return self.digests.get((repository, tag), "abc123")


def test_split_image():
    assert split_image("repo:tag") == ("repo", "tag")
    assert split_image("nginx") == ("nginx", "latest")
    assert split_image("gcr.io/cloudsql-docker/gce-proxy:1.16") == ("gcr.io/cloudsql-docker/gce-proxy", "1.16")
    assert split_image("localhost:5000/team/app") == ("localhost:5000/team/app", "latest")
    assert split_image("localhost:5000/team/app:1.2") == ("localhost:5000/team/app", "1.2")


def test_tag_is_replaced_with_digest():
    sidecars = [SidecarSpec(type="openresty", image="repo:tag")]
    lookup = FakeLookup()

    replace_sidecar_tags_with_digest(sidecars, lookup)

    assert sidecars[0].image == "repo@sha256:abc123"
    assert lookup.calls == [("repo", "tag")]


def test_pinned_image_is_never_looked_up():
    sidecars = [SidecarSpec(type="openresty", image=PINNED), SidecarSpec(type="istio")]
    lookup = FakeLookup()

    replace_sidecar_tags_with_digest(sidecars, lookup)

    assert sidecars[0].image == PINNED
    assert sidecars[1].image == ""
    assert lookup.calls == []


def test_digest_prefix_is_normalized():
    sidecars = [SidecarSpec(type="esp", image="gcr.io/endpoints-release/endpoints-runtime:1")]
    lookup = FakeLookup({("gcr.io/endpoints-release/endpoints-runtime", "1"): "sha256:def456"})

    replace_sidecar_tags_with_digest(sidecars, lookup)

    assert sidecars[0].image == "gcr.io/endpoints-release/endpoints-runtime@sha256:def456"


def test_every_sidecar_is_pinned_and_shared_images_looked_up_once():
    sidecars = [
        SidecarSpec(type="openresty", image="estafette/openresty-sidecar:1.13.6.1-alpine"),
        SidecarSpec(type="cloudsqlproxy", image="gcr.io/cloudsql-docker/gce-proxy:1.16"),
        SidecarSpec(type="cloudsqlproxy", image="gcr.io/cloudsql-docker/gce-proxy:1.16"),
        SidecarSpec(type="esp", image="localhost:5000/esp"),
    ]
    lookup = FakeLookup({
        ("estafette/openresty-sidecar", "1.13.6.1-alpine"): "aaa",
        ("gcr.io/cloudsql-docker/gce-proxy", "1.16"): "bbb",
        ("localhost:5000/esp", "latest"): "ccc",
    })

    replace_sidecar_tags_with_digest(sidecars, lookup, max_workers=3)

    assert [sidecar.image for sidecar in sidecars] == [
        "estafette/openresty-sidecar@sha256:aaa",
        "gcr.io/cloudsql-docker/gce-proxy@sha256:bbb",
        "gcr.io/cloudsql-docker/gce-proxy@sha256:bbb",
        "localhost:5000/esp@sha256:ccc",
    ]
    assert sorted(lookup.calls) == sorted([
        ("estafette/openresty-sidecar", "1.13.6.1-alpine"),
        ("gcr.io/cloudsql-docker/gce-proxy", "1.16"),
        ("localhost:5000/esp", "latest"),
    ])


def test_failed_lookup_leaves_every_sidecar_untouched():
    sidecars = [
        SidecarSpec(type="openresty", image="estafette/openresty-sidecar:1.13.6.1-alpine"),
        SidecarSpec(type="cloudsqlproxy", image="gcr.io/cloudsql-docker/gce-proxy:missing"),
    ]
    lookup = FakeLookup(failing={"gcr.io/cloudsql-docker/gce-proxy"})

    try:
        replace_sidecar_tags_with_digest(sidecars, lookup)
        assert False, "expected DigestResolutionError"
    except DigestResolutionError as e:
        assert e.image == "gcr.io/cloudsql-docker/gce-proxy:missing"
        assert isinstance(e.cause, RegistryLookupError)

    assert sidecars[0].image == "estafette/openresty-sidecar:1.13.6.1-alpine"
    assert sidecars[1].image == "gcr.io/cloudsql-docker/gce-proxy:missing"


def test_empty_digest_is_a_failure():
    sidecars = [SidecarSpec(type="esp", image="repo:tag")]
    try:
        replace_sidecar_tags_with_digest(sidecars, lambda repository, tag: "")
        assert False, "expected DigestResolutionError"
    except DigestResolutionError:
        pass
    assert sidecars[0].image == "repo:tag"


if __name__ == "__main__":
    test_split_image()
    test_tag_is_replaced_with_digest()
    test_pinned_image_is_never_looked_up()
    test_digest_prefix_is_normalized()
    test_every_sidecar_is_pinned_and_shared_images_looked_up_once()
    test_failed_lookup_leaves_every_sidecar_untouched()
    test_empty_digest_is_a_failure()
    print("ok - test_digests")
