# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import os
from importlib import metadata

DISTRIBUTION = "status-list-issuer"


def _installed_version() -> str:
    try:
        return metadata.version(DISTRIBUTION)
    except metadata.PackageNotFoundError:
        return "no version"


def get_version() -> str:
    """Version as set by the build (VERSION, COMMIT_HASH, COMMIT_TIMESTAMP), else the installed one"""
    version = os.getenv("VERSION") or _installed_version()
    commit_hash = os.getenv("COMMIT_HASH", "no hash")
    commit_time = os.getenv("COMMIT_TIMESTAMP", "no timestamp")
    return f"{version} ({commit_hash} {commit_time})"
