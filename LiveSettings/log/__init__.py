"""
Logging subsystem for LiveSettings.

Modules:

- :mod:`LiveSettings.log.log` – Root logger setup, Qt message bridge and the in-memory log tank.
"""
