"""
LiveSettings: schema-bound persistent settings with live objects and change notification.

This package provides:

- :mod:`LiveSettings.settings` – Schema registry, key-value store, live objects, migrations and change notification.
- :mod:`LiveSettings.status` – Status codes and the exceptions raised by the settings core.
- :mod:`LiveSettings.log` – Logging setup with an in-memory log tank.
- :mod:`LiveSettings.signals` – Application-wide Qt signals.
- :mod:`LiveSettings.cli` – Command-line inspection of settings files.

Use :func:`LiveSettings.settings.lib.define_schema` to declare a settings shape and
:func:`LiveSettings.settings.lib.open` to get the live root object.
"""

import sys

# Fail on Python < 3.11
if not (sys.version_info.major == 3 and sys.version_info.minor >= 11):
    raise RuntimeError('LiveSettings requires Python 3.11 or higher.')

__version__ = '0.1.0'
__author__ = 'Gergely Wootsch'
__license__ = 'GPL-3.0'
__copyright__ = 'Copyright (C) 2025 Gergely Wootsch'
__description__ = 'LiveSettings: schema-bound persistent settings with live objects and change notification.'
__url__ = 'https://github.com/wgergely/LiveSettings'
__email__ = 'hello+LiveSettings@gergely-wootsch.com'

from .log import log

log.setup_logging(log_level=log.level_from_env())
