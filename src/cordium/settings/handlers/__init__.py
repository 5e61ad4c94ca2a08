"""Setting handlers keyed by item id."""

from .base import SettingHandler
from .build_number import BuildNumberHandler
from .registry import HandlerRegistry
from .update_app import UpdateAppHandler


def build_default_registry(context) -> HandlerRegistry:
    return HandlerRegistry([UpdateAppHandler(context), BuildNumberHandler()])


__all__ = [
    "BuildNumberHandler",
    "HandlerRegistry",
    "SettingHandler",
    "UpdateAppHandler",
    "build_default_registry",
]
