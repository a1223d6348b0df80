"""Docker Registry HTTP API v2 client used to resolve tags to digests."""
import logging
import re
from typing import Dict, Optional, Tuple

import requests

from gkedeploy import config
from gkedeploy.exceptions import RegistryLookupError

logger = logging.getLogger(__name__)

DOCKER_HUB_HOST = "registry-1.docker.io"
DOCKER_HUB_ALIASES = ("docker.io", "index.docker.io", DOCKER_HUB_HOST)

MANIFEST_ACCEPT = ", ".join([
    "application/vnd.docker.distribution.manifest.list.v2+json",
    "application/vnd.oci.image.index.v1+json",
    "application/vnd.docker.distribution.manifest.v2+json",
    "application/vnd.oci.image.manifest.v1+json",
])

_CHALLENGE_PARAM = re.compile(r'(\w+)="([^"]*)"')


def split_registry(repository: str) -> Tuple[str, str]:
    """Split a repository into registry host and path within the registry.

    The first component is a host only when it contains a dot or a port, or
    is localhost; otherwise the image lives on Docker Hub.
    """
    first, _, rest = repository.partition("/")
    if rest and ("." in first or ":" in first or first == "localhost"):
        host, path = first, rest
    else:
        host, path = DOCKER_HUB_HOST, repository

    if host in DOCKER_HUB_ALIASES:
        host = DOCKER_HUB_HOST
        if "/" not in path:
            path = f"library/{path}"
    return host, path


def parse_bearer_challenge(header: str) -> Optional[Dict[str, str]]:
    """Parse a `WWW-Authenticate: Bearer realm=...,service=...,scope=...` header."""
    if not header or not header.lower().startswith("bearer "):
        return None
    return dict(_CHALLENGE_PARAM.findall(header))


class RegistryClient:
    """Resolves image tags to manifest digests with anonymous pull access."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: Optional[float] = None,
                 scheme: str = "https"):
        self.session = session or requests.Session()
        self.timeout = timeout if timeout is not None else config.registry_timeout_seconds()
        self.scheme = scheme

    def __call__(self, repository: str, tag: str) -> str:
        return self.lookup(repository, tag)

    def lookup(self, repository: str, tag: str) -> str:
        """Return the hex digest of the manifest `repository:tag` points at.

        Raises:
            RegistryLookupError: on any transport or http failure
        """
        host, path = split_registry(repository)
        url = f"{self.scheme}://{host}/v2/{path}/manifests/{tag}"
        headers = {"Accept": MANIFEST_ACCEPT}

        try:
            response = self.session.head(url, headers=headers, timeout=self.timeout)
            if response.status_code == 401:
                token = self._fetch_token(repository, tag, response.headers.get("WWW-Authenticate", ""))
                headers["Authorization"] = f"Bearer {token}"
                response = self.session.head(url, headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise RegistryLookupError(repository, tag, str(e)) from e

        if response.status_code != 200:
            raise RegistryLookupError(
                repository, tag, f"registry responded with status {response.status_code}",
                status_code=response.status_code,
            )

        digest = response.headers.get("Docker-Content-Digest", "")
        if not digest.startswith("sha256:"):
            raise RegistryLookupError(repository, tag, f"unexpected digest '{digest}'")

        logger.debug(f"Resolved {repository}:{tag} to {digest}")
        return digest[len("sha256:"):]

    def _fetch_token(self, repository: str, tag: str, challenge_header: str) -> str:
        challenge = parse_bearer_challenge(challenge_header)
        if not challenge or "realm" not in challenge:
            raise RegistryLookupError(repository, tag, "registry requires unsupported authentication",
                                      status_code=401)

        params = {key: value for key, value in challenge.items() if key in ("service", "scope")}
        response = self.session.get(challenge["realm"], params=params, timeout=self.timeout)
        if response.status_code != 200:
            raise RegistryLookupError(
                repository, tag, f"token endpoint responded with status {response.status_code}",
                status_code=response.status_code,
            )

        body = response.json()
        token = body.get("token") or body.get("access_token")
        if not token:
            raise RegistryLookupError(repository, tag, "token endpoint returned no token")
        return token
