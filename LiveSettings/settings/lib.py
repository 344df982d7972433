"""Settings library: schema definition and the open/close lifecycle of live settings.

Provides:
    - define_schema: register a settings schema with the default registry.
    - open: bind a schema to a settings file, run pending key migrations and return the
      live root object.
    - close / flush: persist and release the settings file behind a live root object.
    - default_settings_path: per-user location of a settings file.

Example::

    from LiveSettings.settings import lib

    lib.define_schema('WindowState', {
        'Left': {'type': int, 'default': -1},
        'Top': {'type': int, 'default': -1},
    })
    lib.define_schema('View', {
        'FontScale': {'type': float, 'default': 100.0},
        'ShowComments': {'type': bool, 'default': False},
        'MainWindowState': {'section': 'WindowState'},
    })
    app_schema = lib.define_schema('App', {'View': {'section': 'View'}})

    settings = lib.open(app_schema, path, renames=[('window.left', 'View.MainWindowState.Left')])
    settings.View.FontScale = 125.0
    lib.close(settings)

The root object is also a context manager that closes the file on exit::

    with lib.open(app_schema, path) as settings:
        settings.View.ShowComments = True
"""
import logging
import pathlib
from typing import Any, Optional, Union

from PySide6 import QtCore

from . import migration
from . import schema as schema_lib
from .notifier import ChangeNotifier
from .proxy import SettingsProxy, create_live_object
from .store import KeyValueStore
from ..signals import signals

app_name: str = 'LiveSettings'

SETTINGS_FILE_NAME: str = 'settings.json'
MIGRATION_MARKER_KEY: str = migration.MIGRATION_MARKER_KEY

#: Seconds without changes before pending values are written in the background.
DEFAULT_SAVE_DELAY: float = 1.0


def default_settings_path(name: str = app_name, file_name: str = SETTINGS_FILE_NAME) -> pathlib.Path:
    """Return the per-user settings file path for an application, creating its folder.

    Args:
        name: Application name used as the folder name.
        file_name: Name of the settings file.

    Returns:
        pathlib.Path: Path to the settings file.
    """
    p = QtCore.QStandardPaths.writableLocation(QtCore.QStandardPaths.GenericConfigLocation)
    config_dir = pathlib.Path(p) / name
    if not config_dir.exists():
        logging.debug(f'Creating settings directory: {config_dir}')
        config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir / file_name


def define_schema(name: str, properties: Any, doc: str = '',
                  registry: Optional[schema_lib.SchemaRegistry] = None) -> schema_lib.SettingsSchema:
    """Register a settings schema.

    Called once per settings root and once per nested section type, before any live object
    is requested. See :meth:`LiveSettings.settings.schema.SchemaRegistry.define`.

    Raises:
        status.CyclicSchemaException: The schema reachably contains itself.
        status.NoDefaultValueException: A scalar has no default and is not optional.
        status.SchemaInvalidException: The definition is malformed.
    """
    registry = registry if registry is not None else schema_lib.registry
    return registry.define(name, properties, doc=doc)


def open(schema: Union[schema_lib.SettingsSchema, str],
         backing_location: Union[str, pathlib.Path],
         renames: Optional[migration.Renames] = None,
         marker_key: str = MIGRATION_MARKER_KEY,
         read_only: bool = False,
         save_delay: Optional[float] = DEFAULT_SAVE_DELAY,
         notifier: Optional[ChangeNotifier] = None,
         registry: Optional[schema_lib.SchemaRegistry] = None) -> SettingsProxy:
    """Open a settings file and return the live root object for ``schema``.

    The schema is fully resolved before the file is touched, so schema errors stop
    initialization without side effects.

    Args:
        schema: A schema or the name it was registered under.
        backing_location: Path of the settings file. Its folder must exist.
        renames: Optional ``(old_key, new_key)`` pairs applied once per file.
        marker_key: Store key recording that ``renames`` ran.
        read_only: Never write the file. Pending migrations are skipped.
        save_delay: Background save interval in seconds, ``None`` to save only on flush/close.
        notifier: Share a notifier between several files. A new one is created by default.
        registry: Registry used to look up ``schema`` by name.

    Returns:
        SettingsProxy: The live root object. Use it in a ``with`` block to close the file on exit.

    Raises:
        status.StoreUnavailableException: If the file cannot be opened for reading and writing.
        status.SchemaInvalidException: If the schema is unknown or cannot be resolved.
    """
    registry = registry if registry is not None else schema_lib.registry
    schema = registry.schema(schema)
    defaults = schema.registry.defaults(schema)

    if renames is not None:
        renames = migration.normalize_renames(renames)

    notifier = notifier if notifier is not None else ChangeNotifier()
    notifier.register_defaults(defaults)

    store = KeyValueStore(backing_location, read_only=read_only, save_delay=save_delay, notifier=notifier)
    logging.debug(f'Opened "{store.path}" for schema "{schema.name}" ({len(defaults)} keys)')

    if renames is not None:
        if read_only:
            if not migration.is_applied(store, marker_key):
                logging.warning(f'"{store.path}" is read-only, skipping migration "{marker_key}".')
        else:
            try:
                migration.apply_once(store, renames, marker_key)
            except Exception:
                store.close()
                raise

    root = create_live_object(schema, '', store, notifier)
    signals.storeOpened.emit(str(store.path))
    return root


def flush(root: SettingsProxy) -> bool:
    """Write pending changes of the file behind ``root``. See :meth:`KeyValueStore.flush`."""
    return SettingsProxy.settings_store.fget(root).flush()


def close(root: SettingsProxy) -> bool:
    """Flush and release the file behind ``root``. Safe to call more than once.

    Returns:
        bool: False if it was already closed.
    """
    return SettingsProxy.settings_store.fget(root).close()
