"""Pin sidecar images to content digests.

All lookups run before any sidecar is touched, so a failing lookup leaves
every sidecar exactly as it was.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Tuple

from gkedeploy.exceptions import DigestResolutionError
from gkedeploy.observability.metrics import record_digest_lookup
from gkedeploy.params.models import SidecarSpec

logger = logging.getLogger(__name__)

DIGEST_SEPARATOR = "@sha256:"
DEFAULT_TAG = "latest"

# lookup(repository, tag) -> digest hex
DigestLookup = Callable[[str, str], str]


def is_pinned(image: str) -> bool:
    return DIGEST_SEPARATOR in image


def split_image(image: str) -> Tuple[str, str]:
    """Split an image reference into repository and tag.

    A colon only separates the tag when it comes after the last slash, so
    registries with a port ("localhost:5000/app") keep their port.
    """
    last_slash = image.rfind("/")
    last_colon = image.rfind(":")
    if last_colon > last_slash:
        return image[:last_colon], image[last_colon + 1:]
    return image, DEFAULT_TAG


def _normalize_digest(digest: str) -> str:
    digest = digest.strip()
    if digest.startswith("sha256:"):
        digest = digest[len("sha256:"):]
    return digest


def replace_sidecar_tags_with_digest(
    sidecars: List[SidecarSpec],
    lookup: DigestLookup,
    max_workers: int = 4,
) -> List[SidecarSpec]:
    """Rewrite every floating sidecar image to `repository@sha256:<digest>`.

    Pinned and empty images pass through and are never looked up. Distinct
    images are looked up once each, concurrently.

    Raises:
        DigestResolutionError: if any lookup fails; no sidecar is modified
    """
    pending: Dict[str, Tuple[str, str]] = {}
    for sidecar in sidecars:
        if not sidecar.image or is_pinned(sidecar.image):
            continue
        pending.setdefault(sidecar.image, split_image(sidecar.image))

    if not pending:
        return sidecars

    def resolve(image: str) -> Tuple[str, str]:
        repository, tag = pending[image]
        try:
            digest = _normalize_digest(lookup(repository, tag))
            if not digest:
                raise ValueError("registry returned an empty digest")
        except Exception as exc:
            record_digest_lookup("error")
            raise DigestResolutionError(image, exc) from exc
        record_digest_lookup("success")
        return image, f"{repository}{DIGEST_SEPARATOR}{digest}"

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(pending)))) as executor:
        futures = [executor.submit(resolve, image) for image in pending]
        pinned = dict(future.result() for future in futures)

    for sidecar in sidecars:
        if sidecar.image in pinned:
            logger.info(f"Pinned sidecar image {sidecar.image} to {pinned[sidecar.image]}")
            sidecar.image = pinned[sidecar.image]

    return sidecars
