from __future__ import annotations

import os
from importlib import metadata


DISTRIBUTION_NAME = "capacity-engine"
_DEFAULT_APP_VERSION = "0.1.0"


def get_app_version() -> str:
    env_override = (os.getenv("CE_APP_VERSION") or "").strip()
    if env_override:
        return env_override
    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        # running from a source checkout without an install
        return _DEFAULT_APP_VERSION


__all__ = ["get_app_version", "DISTRIBUTION_NAME"]
