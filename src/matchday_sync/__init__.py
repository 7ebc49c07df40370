# SPDX-License-Identifier: MIT
"""matchday-sync - Keep a local store and cache consistent with the fantasy-football API."""

from importlib.metadata import PackageNotFoundError, version


__all__: list[str] = ["__version__"]

# Get version from installed package metadata
__version__: str
try:
    __version__ = version("matchday-sync")
except PackageNotFoundError:
    # Package is not installed, use development fallback
    __version__ = "development"
