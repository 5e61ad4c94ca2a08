"""Release checking, package download and install hand-off."""

from .versioning import is_newer, strip_version_prefix

__all__ = ["is_newer", "strip_version_prefix"]
