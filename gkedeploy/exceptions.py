"""Domain exceptions for gkedeploy"""
from typing import Optional


class ParamsLoadError(Exception):
    """Raised when the stage properties cannot be read or parsed."""

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source


class RegistryLookupError(Exception):
    """Raised by a registry client when a tag cannot be resolved to a digest."""

    def __init__(self, repository: str, tag: str, reason: str, status_code: Optional[int] = None):
        super().__init__(f"Resolving digest for {repository}:{tag} failed: {reason}")
        self.repository = repository
        self.tag = tag
        self.reason = reason
        self.status_code = status_code


class DigestResolutionError(Exception):
    """Raised when any sidecar image cannot be pinned; no sidecar is modified."""

    def __init__(self, image: str, cause: Exception):
        super().__init__(f"Pinning sidecar image '{image}' to a digest failed: {cause}")
        self.image = image
        self.cause = cause
