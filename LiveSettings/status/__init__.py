"""
Status package: status codes and the exceptions raised by the settings core.

- :mod:`LiveSettings.status.status` – :class:`Status` enum, user-facing messages and status exceptions.
"""
