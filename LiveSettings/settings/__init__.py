"""
Settings package: schema-bound persistent settings.

This package provides:

- :mod:`LiveSettings.settings.lib` – Schema definition and the open/close lifecycle of live settings.
- :mod:`LiveSettings.settings.schema` – Schema declarations, the schema registry and key path resolution.
- :mod:`LiveSettings.settings.store` – The flat key-value store persisted to a JSON file.
- :mod:`LiveSettings.settings.proxy` – Live objects reading and writing through the store.
- :mod:`LiveSettings.settings.migration` – One-time key renames between settings versions.
- :mod:`LiveSettings.settings.notifier` – Per-key change notification.
"""
