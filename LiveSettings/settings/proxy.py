"""Live settings objects bound to a key-value store.

A :class:`SettingsProxy` exposes the properties of a schema as attributes. Reading a scalar
looks the value up in the store every time and falls back to the property default; writing
one checks the type, stores the value and notifies subscribers. Reading a section returns a
new proxy scoped to the section's key prefix. Proxies hold no values of their own, so two
proxies over the same store always agree.

.. code-block:: python

    root = create_live_object(app_schema, '', store, notifier)
    root.View.FontScale = 125.0
    root['View.FontScale']  # 125.0

Schema property names take precedence over the helper methods below when they collide;
item access always reaches the property. Used as a context manager, a proxy closes its
store on exit.
"""
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from . import schema as schema_lib
from .schema import ScalarProperty, SectionProperty, SettingsSchema
from ..status import status


class SettingsProxy:
    """Live object for one schema at one key prefix.

    Args:
        schema: The schema whose properties are exposed.
        store: The backing :class:`~LiveSettings.settings.store.KeyValueStore`.
        prefix: Key prefix of this object, empty for the root.
        notifier: Notifier used for subscriptions. Defaults to the store's notifier.
    """

    def __init__(self, schema: SettingsSchema, store, prefix: str = '', notifier=None) -> None:
        object.__setattr__(self, '_schema', schema)
        object.__setattr__(self, '_store', store)
        object.__setattr__(self, '_prefix', prefix)
        object.__setattr__(self, '_notifier', notifier if notifier is not None else store.notifier)

    def __getattribute__(self, name: str) -> Any:
        if not name.startswith('_'):
            _schema = object.__getattribute__(self, '_schema')
            if name in _schema:
                return object.__getattribute__(self, '_get_property')(name)
        return object.__getattribute__(self, name)

    def __getattr__(self, name: str) -> Any:
        raise AttributeError(f'"{self._schema.name}" has no property "{name}"')

    def __setattr__(self, name: str, value: Any) -> None:
        if name in self._schema:
            self._set_property(name, value)
            return
        raise AttributeError(f'"{self._schema.name}" has no property "{name}"')

    def __delattr__(self, name: str) -> None:
        if name not in self._schema:
            raise AttributeError(f'"{self._schema.name}" has no property "{name}"')
        SettingsProxy.reset(self, name)

    def __getitem__(self, path: str) -> Any:
        proxy, name = self._locate(path)
        return proxy._get_property(name)

    def __setitem__(self, path: str, value: Any) -> None:
        proxy, name = self._locate(path)
        proxy._set_property(name, value)

    def __delitem__(self, path: str) -> None:
        proxy, name = self._locate(path)
        SettingsProxy.reset(proxy, name)

    def __contains__(self, name: str) -> bool:
        return name in self._schema

    def __iter__(self) -> Iterator[str]:
        return iter(self._schema)

    def __dir__(self) -> List[str]:
        return sorted(set(super().__dir__()) | set(self._schema))

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, SettingsProxy):
            return NotImplemented
        return (
                self._schema is other._schema and
                self._prefix == other._prefix and
                self._store is other._store
        )

    def __hash__(self) -> int:
        return hash((self._schema.name, self._prefix, id(self._store)))

    def __repr__(self) -> str:
        return f'<SettingsProxy schema={self._schema.name!r}, prefix={self._prefix!r}>'

    def __enter__(self) -> 'SettingsProxy':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Close the backing store, flushing pending changes."""
        self._store.close()

    @property
    def settings_schema(self) -> SettingsSchema:
        return self._schema

    @property
    def settings_store(self):
        return self._store

    @property
    def settings_prefix(self) -> str:
        return self._prefix

    def _get_property(self, name: str) -> Any:
        prop = self._schema[name]
        key = schema_lib.join_key(self._prefix, name)

        if isinstance(prop, SectionProperty):
            return SettingsProxy(self._schema.child(name), self._store, key, self._notifier)

        value = self._store.get(key, prop.type)
        if value is None:
            return prop.default
        return value

    def _set_property(self, name: str, value: Any) -> None:
        prop = self._schema[name]
        key = schema_lib.join_key(self._prefix, name)

        if isinstance(prop, SectionProperty):
            raise AttributeError(f'Cannot assign to the section "{key}".')

        if value is not None:
            if not schema_lib.is_instance_of(value, prop.type):
                raise status.TypeMismatchException(
                    f'"{key}" must be {prop.type_name}, got {type(value).__name__}.'
                )
            if prop.type is float:
                value = float(value)

        changed = self._store.set(key, value)
        if changed and self._notifier is not None and self._notifier is not self._store.notifier:
            self._notifier.publish(key, value)

    def _locate(self, path: str) -> Tuple['SettingsProxy', str]:
        """Walk a dotted relative path to the proxy owning its last segment.

        Raises:
            KeyError: If a segment is not a property, or an inner segment is not a section.
        """
        if not isinstance(path, str) or not path:
            raise KeyError(path)

        segments = path.split(schema_lib.KEY_SEPARATOR)
        proxy = self
        for segment in segments[:-1]:
            prop = proxy._schema[segment] if segment in proxy._schema else None
            if not isinstance(prop, SectionProperty):
                raise KeyError(f'"{path}" is not a path in "{self._schema.name}".')
            proxy = proxy._get_property(segment)

        if segments[-1] not in proxy._schema:
            raise KeyError(f'"{path}" is not a path in "{self._schema.name}".')
        return proxy, segments[-1]

    def _leaf(self, path: str) -> Tuple['SettingsProxy', str, ScalarProperty]:
        proxy, name = self._locate(path)
        prop = proxy._schema[name]
        if not isinstance(prop, ScalarProperty):
            raise KeyError(f'"{path}" is a section, not a value.')
        return proxy, name, prop

    def key_path(self, path: str = '') -> str:
        """Return the full key path of a relative property path, or of this object."""
        if not path:
            return self._prefix
        proxy, name = self._locate(path)
        return schema_lib.join_key(proxy._prefix, name)

    def keys(self) -> List[str]:
        """Return the key paths of every scalar leaf under this object."""
        return list(self._schema.registry.resolve(self._schema, self._prefix).values())

    def is_set(self, path: str) -> bool:
        """Return True if the store holds a value for the leaf ``path``."""
        proxy, name, _ = self._leaf(path)
        return schema_lib.join_key(proxy._prefix, name) in self._store

    def reset(self, path: Optional[str] = None) -> None:
        """Remove stored values so defaults show again.

        Args:
            path: A relative property path. ``None`` resets every leaf under this object.
        """
        if path is None:
            keys = SettingsProxy.keys(self)
        else:
            proxy, name = self._locate(path)
            prop = proxy._schema[name]
            if isinstance(prop, SectionProperty):
                keys = SettingsProxy.keys(proxy._get_property(name))
            else:
                keys = [schema_lib.join_key(proxy._prefix, name)]

        for key in keys:
            self._store.remove(key)

    def to_dict(self) -> Dict[str, Any]:
        """Return a nested snapshot of the current values, defaults included."""
        data: Dict[str, Any] = {}
        for name, prop in self._schema.items():
            value = self._get_property(name)
            data[name] = SettingsProxy.to_dict(value) if isinstance(prop, SectionProperty) else value
        return data

    def subscribe(self, path: str, callback: Callable[[str, Any], None]):
        """Subscribe to changes of the leaf at the relative ``path``.

        Returns:
            Subscription: The handle.

        Raises:
            RuntimeError: If there is no notifier.
            KeyError: If ``path`` is not a scalar leaf.
        """
        if self._notifier is None:
            raise RuntimeError('This settings object has no notifier.')
        proxy, name, _ = self._leaf(path)
        return self._notifier.subscribe(schema_lib.join_key(proxy._prefix, name), callback)

    def subscribe_all(self, callback: Callable[[str, Any], None]) -> list:
        """Subscribe ``callback`` to every leaf currently under this object.

        Returns:
            list[Subscription]: One handle per leaf.
        """
        if self._notifier is None:
            raise RuntimeError('This settings object has no notifier.')
        return [self._notifier.subscribe(key, callback) for key in SettingsProxy.keys(self)]


def create_live_object(schema: SettingsSchema, key_prefix: str, store, notifier=None) -> SettingsProxy:
    """Build the live object for ``schema`` at ``key_prefix``.

    Resolves every key path first, so a section referencing an undefined schema fails here
    rather than on first access.

    Raises:
        status.SchemaInvalidException: If the schema cannot be resolved.
    """
    schema.registry.resolve(schema, key_prefix)
    return SettingsProxy(schema, store, key_prefix, notifier)
