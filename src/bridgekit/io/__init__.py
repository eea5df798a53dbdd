"""Settings I/O."""

from bridgekit.io.settings import (
    BridgeSettings,
    load_settings,
    resolve_settings,
    save_settings,
    settings_from_yaml,
    settings_to_yaml,
)

__all__ = [
    "BridgeSettings",
    "load_settings",
    "resolve_settings",
    "save_settings",
    "settings_from_yaml",
    "settings_to_yaml",
]
