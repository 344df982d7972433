"""Flat key-value settings store persisted to a JSON file.

The file holds one JSON object mapping dotted keys to scalar values (string, integer,
float or boolean). Values are kept in memory and written back by :meth:`KeyValueStore.flush`,
either explicitly, after a quiet period when ``save_delay`` is set, or on
:meth:`KeyValueStore.close`.

Writes go to a temporary file first; the previous file is kept with a ``.bak`` suffix.
A file that cannot be parsed is moved aside with a ``.broken`` suffix and the backup is
restored once.
"""
import enum
import json
import logging
import os
import pathlib
import shutil
import threading
from typing import Any, Callable, Dict, List, Optional, Union

from PySide6 import QtCore

from . import schema
from ..signals import signals
from ..status import status

BACKUP_SUFFIX: str = '.bak'
BROKEN_SUFFIX: str = '.broken'
TEMP_SUFFIX: str = '.tmp'

TRUE_STRINGS = ('true', '1', 'yes', 'on')
FALSE_STRINGS = ('false', '0', 'no', 'off')

SUPPORTED_TYPES = (bool, int, float, str)


def is_supported_value(value: Any) -> bool:
    """Return True if value can be stored as-is."""
    return isinstance(value, SUPPORTED_TYPES)


def coerce(value: Any, value_type: Union[type, str], key: str = '') -> Any:
    """Convert a stored value to the requested scalar type.

    Args:
        value: The stored value.
        value_type: ``str``, ``int``, ``float``, ``bool`` or a type name.
        key: Key used in the error message.

    Returns:
        The value as ``value_type``.

    Raises:
        status.TypeMismatchException: If the value cannot be converted.
    """
    _type = schema.scalar_type(value_type)

    if isinstance(value, _type) and not (isinstance(value, bool) and _type is not bool):
        return value

    if _type is bool:
        if isinstance(value, int) and not isinstance(value, bool) and value in (0, 1):
            return bool(value)
        if isinstance(value, str):
            v = value.strip().lower()
            if v in TRUE_STRINGS:
                return True
            if v in FALSE_STRINGS:
                return False
    elif _type is int and not isinstance(value, bool):
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                pass
    elif _type is float and not isinstance(value, bool):
        if isinstance(value, int):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                pass

    raise status.TypeMismatchException(
        f'"{key}" holds {value!r}, which cannot be read as {schema.SCALAR_TYPE_NAMES[_type]}.'
    )


class SaveTimer(QtCore.QObject):
    """Single-shot timer that debounces background saves.

    The timer lives in the thread that created it, normally the Qt main thread, and its
    callback always runs there. :meth:`restart` and :meth:`stop` can be called from any
    thread; calls from other threads are queued to the owning thread.

    Args:
        callback: Called when the interval passes without another restart.
    """
    restartRequested = QtCore.Signal(int)  # Interval in msec
    stopRequested = QtCore.Signal()

    def __init__(self, callback: Callable[[], None], parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent)

        self._timer = QtCore.QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.timeout.connect(callback)

        self.restartRequested.connect(self._restart)
        self.stopRequested.connect(self._stop)

    @QtCore.Slot(int)
    def _restart(self, msec: int) -> None:
        self._timer.start(msec)

    @QtCore.Slot()
    def _stop(self) -> None:
        self._timer.stop()

    def is_active(self) -> bool:
        return self._timer.isActive()

    def restart(self, seconds: float) -> None:
        """(Re)start the countdown."""
        self.restartRequested.emit(max(0, int(seconds * 1000)))

    def stop(self) -> None:
        self.stopRequested.emit()


class KeyValueStore:
    """Persists flat string-keyed scalar values to a JSON file.

    All operations are serialized by a single re-entrant lock. Change notifications are
    published after the lock is released, once per effective change.

    Args:
        path: The settings file. Its folder must exist.
        read_only: Open without ever writing the file back.
        save_delay: Seconds of inactivity after which pending changes are flushed by a
            :class:`SaveTimer` in the thread that created the store. The flush needs a running
            Qt event loop there; without one, changes are written by flush or close only.
            ``None`` disables delayed saving.
        notifier: A :class:`~LiveSettings.settings.notifier.ChangeNotifier` that is told
            about every change, whether it came from a live object or from the store itself.

    Raises:
        status.StoreUnavailableException: If the file cannot be opened for reading and writing.
    """

    def __init__(self, path: Union[str, pathlib.Path], read_only: bool = False,
                 save_delay: Optional[float] = None, notifier=None) -> None:
        self._path: pathlib.Path = pathlib.Path(path).absolute()
        self._read_only: bool = read_only
        self._save_delay: Optional[float] = save_delay
        self.notifier = notifier

        self._lock = threading.RLock()
        self._data: Dict[str, Any] = {}
        self._dirty: bool = False
        self._closed: bool = False
        self._save_timer: Optional[SaveTimer] = SaveTimer(self._delayed_flush) if save_delay is not None else None

        self.had_problem: bool = False

        self._verify_location()
        self.load()

    def __repr__(self) -> str:
        return f'<KeyValueStore path={str(self._path)!r}, keys={len(self._data)}, dirty={self._dirty}>'

    def __enter__(self) -> 'KeyValueStore':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __contains__(self, key: str) -> bool:
        with self._lock:
            self._check_open()
            return key in self._data

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    @property
    def path(self) -> pathlib.Path:
        return self._path

    @property
    def backup_path(self) -> pathlib.Path:
        return self._path.with_name(self._path.name + BACKUP_SUFFIX)

    @property
    def broken_path(self) -> pathlib.Path:
        return self._path.with_name(self._path.name + BROKEN_SUFFIX)

    @property
    def read_only(self) -> bool:
        return self._read_only

    @property
    def save_delay(self) -> Optional[float]:
        return self._save_delay

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def closed(self) -> bool:
        return self._closed

    def _verify_location(self) -> None:
        """Check that the settings file can be opened.

        Raises:
            status.StoreUnavailableException: Missing folder, a folder in place of the file,
                or insufficient permissions.
        """
        folder = self._path.parent
        if not folder.is_dir():
            raise status.StoreUnavailableException(f'Folder does not exist: {folder}')
        if self._path.exists() and not self._path.is_file():
            raise status.StoreUnavailableException(f'Not a file: {self._path}')
        if self._path.exists() and not os.access(self._path, os.R_OK):
            raise status.StoreUnavailableException(f'File is not readable: {self._path}')
        if self._read_only:
            return
        if not os.access(folder, os.W_OK):
            raise status.StoreUnavailableException(f'Folder is not writable: {folder}')
        if self._path.exists() and not os.access(self._path, os.W_OK):
            raise status.StoreUnavailableException(f'File is not writable: {self._path}')

    def _check_open(self) -> None:
        if self._closed:
            raise status.StoreClosedException(str(self._path))

    def _check_writable(self) -> None:
        self._check_open()
        if self._read_only:
            raise status.StoreReadOnlyException(str(self._path))

    @staticmethod
    def _read(path: pathlib.Path) -> Dict[str, Any]:
        """Read and validate a settings file.

        Raises:
            ValueError: The content is not a JSON object of scalar values.
        """
        with path.open('r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f'Root of {path.name} must be an object, got {type(data).__name__}.')
        for k, v in data.items():
            if not k:
                raise ValueError(f'{path.name} contains an empty key.')
            if not is_supported_value(v):
                raise ValueError(f'Value of "{k}" has unsupported type {type(v).__name__}.')
        return data

    def load(self) -> Dict[str, Any]:
        """(Re)load the settings file into memory, discarding unsaved changes.

        A missing file yields an empty store. A broken file is moved aside and the backup
        file, if any, is used instead.

        Returns:
            dict: A copy of the loaded data.

        Raises:
            status.StoreUnavailableException: If the file exists but cannot be read.
        """
        with self._lock:
            self._check_open()
            self._data = {}
            self._dirty = False

            if not self._path.exists():
                logging.debug(f'No settings file at "{self._path}", starting empty.')
                return {}

            logging.debug(f'Loading settings from "{self._path}"')
            try:
                self._data = self._read(self._path)
                return dict(self._data)
            except (ValueError, UnicodeDecodeError) as ex:
                self._handle_broken_file(ex)
            except OSError as ex:
                raise status.StoreUnavailableException(f'{self._path}: {ex}') from ex

            if not self.backup_path.exists():
                return {}

            logging.info(f'Restoring backup settings file "{self.backup_path}"')
            try:
                self._data = self._read(self.backup_path)
            except (ValueError, UnicodeDecodeError, OSError) as ex:
                logging.warning(f'Backup settings file is unusable too, starting empty: {ex}')
                self._data = {}
                return {}

            if not self._read_only:
                shutil.copy(self.backup_path, self._path)
            return dict(self._data)

    def _handle_broken_file(self, ex: Exception) -> None:
        """Move an unreadable settings file aside and report it."""
        logging.warning(f'Settings file "{self._path}" is broken: {ex}')
        self.had_problem = True
        self._data = {}

        if not self._read_only:
            try:
                if self.broken_path.exists():
                    self.broken_path.unlink()
                self._path.rename(self.broken_path)
                logging.debug(f'Broken settings file renamed to "{self.broken_path}"')
            except OSError as rename_ex:
                logging.warning(f'Could not rename broken settings file: {rename_ex}')

        signals.storeLoadFailed.emit(str(self._path), str(ex))

    def get(self, key: str, value_type: Union[type, str, None] = None) -> Any:
        """Get a stored value.

        Args:
            key: The dotted key.
            value_type: Convert the value to this scalar type. ``None`` returns it as stored.

        Returns:
            The value, or ``None`` if the key holds no value.

        Raises:
            status.TypeMismatchException: If a value is stored but cannot be converted.
        """
        with self._lock:
            self._check_open()
            if key not in self._data:
                return None
            value = self._data[key]

        if value_type is None:
            return value
        return coerce(value, value_type, key)

    def keys(self) -> List[str]:
        """Return the stored keys, sorted."""
        with self._lock:
            self._check_open()
            return sorted(self._data)

    def as_dict(self) -> Dict[str, Any]:
        """Return a copy of all stored values."""
        with self._lock:
            self._check_open()
            return dict(self._data)

    def set(self, key: str, value: Any) -> bool:
        """Store a value. ``None`` removes the key.

        Returns:
            bool: True if the stored value changed.

        Raises:
            status.TypeMismatchException: If the value is not a supported scalar.
            status.StoreReadOnlyException: If the store is read-only.
        """
        if value is None:
            return self.remove(key)

        if isinstance(value, enum.Enum):
            value = value.value
        if not isinstance(key, str) or not key:
            raise KeyError(f'Invalid settings key: {key!r}')
        if not is_supported_value(value):
            raise status.TypeMismatchException(
                f'Cannot store {type(value).__name__} under "{key}", must be one of string, integer, float, boolean.'
            )

        with self._lock:
            self._check_writable()
            if key in self._data:
                current = self._data[key]
                if type(current) is type(value) and current == value:
                    return False
            self._data[key] = value
            self._mark_dirty()

        self._publish(key, value)
        return True

    def remove(self, key: str) -> bool:
        """Remove a key. Returns False if it held no value."""
        with self._lock:
            self._check_writable()
            if key not in self._data:
                return False
            del self._data[key]
            self._mark_dirty()

        self._publish(key, None)
        return True

    def rename(self, old_key: str, new_key: str) -> bool:
        """Move a value to a new key.

        Nothing happens if ``old_key`` holds no value or ``new_key`` already holds one, so
        existing values are never overwritten.

        Returns:
            bool: True if the value was moved.
        """
        with self._lock:
            self._check_writable()
            if old_key not in self._data or new_key in self._data or old_key == new_key:
                return False
            value = self._data.pop(old_key)
            self._data[new_key] = value
            self._mark_dirty()

        logging.debug(f'Renamed "{old_key}" to "{new_key}"')
        self._publish(old_key, None)
        self._publish(new_key, value)
        return True

    def clear(self) -> None:
        """Remove every key."""
        for key in self.keys():
            self.remove(key)

    def _publish(self, key: str, value: Any) -> None:
        if self.notifier is not None:
            self.notifier.publish(key, value)

    def _mark_dirty(self) -> None:
        self._dirty = True
        self._schedule_save()

    def _schedule_save(self) -> None:
        if self._save_timer is not None:
            self._save_timer.restart(self._save_delay)

    def _cancel_timer(self) -> None:
        if self._save_timer is not None:
            self._save_timer.stop()

    def _delayed_flush(self) -> None:
        try:
            self.flush()
        except status.FlushFailedException as ex:
            # The changes stay pending until the next change or close
            logging.warning(f'Delayed save failed: {ex}')

    def flush(self) -> bool:
        """Write pending changes to disk and wait until they are written.

        Returns:
            bool: True if the file was written, False if there was nothing to write.

        Raises:
            status.FlushFailedException: If writing failed. The changes stay pending.
        """
        with self._lock:
            self._cancel_timer()
            if self._closed or self._read_only or not self._dirty:
                return False

            tmp_path = self._path.with_name(self._path.name + TEMP_SUFFIX)
            try:
                with tmp_path.open('w', encoding='utf-8') as f:
                    json.dump(self._data, f, indent=4, ensure_ascii=False, sort_keys=True)
                if self._path.exists():
                    shutil.copy2(self._path, self.backup_path)
                os.replace(tmp_path, self._path)
            except OSError as ex:
                try:
                    tmp_path.unlink(missing_ok=True)
                except OSError as cleanup_ex:
                    logging.debug(f'Could not remove "{tmp_path}": {cleanup_ex}')
                raise status.FlushFailedException(f'{self._path}: {ex}') from ex

            self._dirty = False
            logging.debug(f'Saved {len(self._data)} settings to "{self._path}"')

        signals.storeFlushed.emit(str(self._path))
        return True

    def close(self) -> bool:
        """Flush pending changes and release the store. Safe to call more than once.

        Returns:
            bool: False if the store was already closed.

        Raises:
            status.FlushFailedException: If the final flush failed. The store is closed anyway.
        """
        with self._lock:
            if self._closed:
                return False
            try:
                self.flush()
            finally:
                self._cancel_timer()
                self._closed = True
                logging.debug(f'Closed settings store "{self._path}"')

        signals.storeClosed.emit(str(self._path))
        return True
