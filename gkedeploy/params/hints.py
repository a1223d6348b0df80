"""Values supplied by the pipeline runtime rather than by the stage author."""
from __future__ import annotations

import os
from typing import Dict, Mapping, Optional

from pydantic import BaseModel, Field

LABEL_ENV_PREFIX = "ESTAFETTE_LABEL_"


class ResolutionHints(BaseModel):
    """External hints used as fallbacks while defaulting a deployment intent."""
    git_source: str = ""
    git_owner: str = ""
    git_name: str = ""
    app_label: str = ""
    build_version: str = ""
    release_name: str = ""
    release_action: str = ""
    release_id: str = ""
    labels: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ResolutionHints":
        """Build hints from the variables the pipeline runtime injects.

        Every ESTAFETTE_LABEL_<NAME> variable becomes label <name>; the app
        label doubles as the fallback application name.
        """
        env = os.environ if environ is None else environ

        labels: Dict[str, str] = {}
        for key, value in env.items():
            if key.startswith(LABEL_ENV_PREFIX) and len(key) > len(LABEL_ENV_PREFIX):
                labels[key[len(LABEL_ENV_PREFIX):].lower()] = value

        return cls(
            git_source=env.get("ESTAFETTE_GIT_SOURCE", ""),
            git_owner=env.get("ESTAFETTE_GIT_OWNER", ""),
            git_name=env.get("ESTAFETTE_GIT_NAME", ""),
            app_label=env.get("ESTAFETTE_LABEL_APP", ""),
            build_version=env.get("ESTAFETTE_BUILD_VERSION", ""),
            release_name=env.get("ESTAFETTE_RELEASE_NAME", ""),
            release_action=env.get("ESTAFETTE_RELEASE_ACTION", ""),
            release_id=env.get("ESTAFETTE_RELEASE_ID", ""),
            labels=labels,
        )
