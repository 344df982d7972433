"""Settings schema declarations and key path resolution.

A schema is a named, ordered table of properties. A property is either a typed scalar
with an optional default, or a section that nests another schema. Schemas are
registered once with a :class:`SchemaRegistry` and are immutable afterwards.

Properties can be declared with descriptor objects or with plain dicts::

    registry.define('WindowState', {
        'Left': {'type': int, 'default': -1},
        'Maximized': {'type': 'boolean', 'default': False},
    })
    registry.define('View', {
        'FontScale': {'type': float, 'default': 100.0},
        'MainWindowState': {'section': 'WindowState'},
    })

Every scalar leaf has a dotted key path built from the section chain, e.g.
``View.MainWindowState.Left``.
"""
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from ..status import status

KEY_SEPARATOR: str = '.'

#: Property names are identifiers; a leading underscore is reserved for store-internal keys.
PROPERTY_NAME_PATTERN = re.compile(r'[A-Za-z][A-Za-z0-9_]*')

SCALAR_TYPES: Dict[str, type] = {
    'string': str,
    'str': str,
    'integer': int,
    'int': int,
    'float': float,
    'boolean': bool,
    'bool': bool,
}

SCALAR_TYPE_NAMES: Dict[type, str] = {
    str: 'string',
    int: 'integer',
    float: 'float',
    bool: 'boolean',
}


def scalar_type(value: Union[str, type]) -> type:
    """Normalize a scalar type given as a Python type or a type name.

    Args:
        value: One of ``str``, ``int``, ``float``, ``bool`` or a name from :data:`SCALAR_TYPES`.

    Returns:
        type: The Python type.

    Raises:
        status.SchemaInvalidException: If the type is not a supported scalar type.
    """
    if isinstance(value, str):
        _type = SCALAR_TYPES.get(value.lower())
    elif isinstance(value, type) and value in SCALAR_TYPE_NAMES:
        _type = value
    else:
        _type = None

    if _type is None:
        raise status.SchemaInvalidException(
            f'Unsupported property type "{value}", must be one of {sorted(SCALAR_TYPE_NAMES.values())}.'
        )
    return _type


def is_instance_of(value: Any, _type: type) -> bool:
    """Check a value against a scalar type without treating bools as numbers.

    Ints satisfy ``float``; bools satisfy only ``bool``.
    """
    if isinstance(value, bool):
        return _type is bool
    if _type is float:
        return isinstance(value, (int, float))
    return isinstance(value, _type)


def join_key(*segments: str) -> str:
    """Join key path segments, skipping empty ones."""
    return KEY_SEPARATOR.join(s for s in segments if s)


@dataclass(frozen=True)
class ScalarProperty:
    """A typed leaf property.

    Attributes:
        type: The Python scalar type (str, int, float or bool).
        default: The value returned while nothing is stored. ``None`` means no default.
        optional: Reads return ``None`` while nothing is stored and there is no default.
        doc: Optional description.
    """
    type: type
    default: Any = None
    optional: bool = False
    doc: str = ''

    @property
    def type_name(self) -> str:
        return SCALAR_TYPE_NAMES[self.type]


@dataclass(frozen=True)
class SectionProperty:
    """A property nesting another schema under its own key prefix.

    Attributes:
        schema: The child :class:`SettingsSchema` or the name it is registered under.
        doc: Optional description.
    """
    schema: Union['SettingsSchema', str]
    doc: str = ''

    @property
    def schema_name(self) -> str:
        if isinstance(self.schema, SettingsSchema):
            return self.schema.name
        return self.schema


PropertyDescriptor = Union[ScalarProperty, SectionProperty]


class SettingsSchema:
    """A named, ordered, immutable mapping of property names to descriptors.

    Instances are created by :meth:`SchemaRegistry.define`; section references given by
    name are looked up through the owning registry.
    """

    def __init__(self, name: str, properties: Dict[str, PropertyDescriptor], registry: 'SchemaRegistry',
                 doc: str = '') -> None:
        self._name = name
        self._properties = dict(properties)
        self._registry = registry
        self.doc = doc

    def __repr__(self) -> str:
        return f'<SettingsSchema name={self._name!r}, properties={list(self._properties)!r}>'

    def __contains__(self, name: str) -> bool:
        return name in self._properties

    def __iter__(self) -> Iterator[str]:
        return iter(self._properties)

    def __len__(self) -> int:
        return len(self._properties)

    def __getitem__(self, name: str) -> PropertyDescriptor:
        return self._properties[name]

    @property
    def name(self) -> str:
        return self._name

    @property
    def registry(self) -> 'SchemaRegistry':
        return self._registry

    def items(self) -> List[Tuple[str, PropertyDescriptor]]:
        return list(self._properties.items())

    def child(self, name: str) -> 'SettingsSchema':
        """Return the schema nested by the section property ``name``.

        Raises:
            KeyError: If there is no such property.
            TypeError: If the property is a scalar.
            status.SchemaInvalidException: If the section references an unknown schema.
        """
        prop = self._properties[name]
        if not isinstance(prop, SectionProperty):
            raise TypeError(f'"{self._name}.{name}" is not a section.')
        if isinstance(prop.schema, SettingsSchema):
            return prop.schema
        if prop.schema not in self._registry:
            raise status.SchemaInvalidException(
                f'"{self._name}.{name}" references the unknown schema "{prop.schema}".'
            )
        return self._registry[prop.schema]


def _parse_property(schema_name: str, name: str, decl: Any) -> PropertyDescriptor:
    """Convert a dict or a descriptor into a validated descriptor."""
    if not isinstance(name, str) or not PROPERTY_NAME_PATTERN.fullmatch(name):
        raise status.SchemaInvalidException(
            f'Invalid property name "{name}" in "{schema_name}", must match {PROPERTY_NAME_PATTERN.pattern}.'
        )

    if isinstance(decl, SettingsSchema):
        return SectionProperty(schema=decl)

    if isinstance(decl, dict):
        if 'section' in decl:
            decl = SectionProperty(schema=decl['section'], doc=decl.get('doc', ''))
        elif 'type' in decl:
            decl = ScalarProperty(
                type=scalar_type(decl['type']),
                default=decl.get('default'),
                optional=bool(decl.get('optional', False)),
                doc=decl.get('doc', ''),
            )
        else:
            raise status.SchemaInvalidException(
                f'Property "{schema_name}.{name}" must declare either "type" or "section".'
            )

    if isinstance(decl, SectionProperty):
        if not isinstance(decl.schema, (SettingsSchema, str)) or not decl.schema:
            raise status.SchemaInvalidException(
                f'Section "{schema_name}.{name}" must reference a schema or a schema name.'
            )
        return decl

    if not isinstance(decl, ScalarProperty):
        raise status.SchemaInvalidException(
            f'Property "{schema_name}.{name}" has an unsupported declaration: {decl!r}'
        )

    _type = scalar_type(decl.type)
    default = decl.default
    if default is None:
        if not decl.optional:
            raise status.NoDefaultValueException(
                f'"{schema_name}.{name}" needs a default value or must be marked optional.'
            )
    elif not is_instance_of(default, _type):
        raise status.SchemaInvalidException(
            f'Default of "{schema_name}.{name}" must be {SCALAR_TYPE_NAMES[_type]}, got {type(default).__name__}.'
        )
    elif _type is float:
        default = float(default)

    return ScalarProperty(type=_type, default=default, optional=decl.optional, doc=decl.doc)


class SchemaRegistry:
    """Registers settings schemas by name and resolves their key paths.

    Section references may name schemas that are defined later. Every definition checks
    the schemas reachable so far for cycles, so a cyclic set of schemas fails when its
    last member is defined.
    """

    def __init__(self) -> None:
        self._schemas: Dict[str, SettingsSchema] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._schemas

    def __getitem__(self, name: str) -> SettingsSchema:
        return self._schemas[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._schemas)

    def get(self, name: str) -> Optional[SettingsSchema]:
        return self._schemas.get(name)

    def clear(self) -> None:
        self._schemas.clear()

    def define(self, name: str, properties: Any, doc: str = '') -> SettingsSchema:
        """Register a schema.

        Args:
            name: Unique schema name.
            properties: An ordered mapping or a sequence of ``(name, decl)`` pairs. A declaration is a
                :class:`ScalarProperty`, a :class:`SectionProperty`, a :class:`SettingsSchema`
                (shorthand for a section) or a dict as shown in the module docstring.
            doc: Optional description.

        Returns:
            SettingsSchema: The registered schema.

        Raises:
            status.SchemaInvalidException: Malformed names, types or defaults, duplicate property
                names, or a conflicting redefinition.
            status.NoDefaultValueException: A scalar without default that is not optional.
            status.CyclicSchemaException: The schema reachably contains itself.
        """
        if not isinstance(name, str) or not name:
            raise status.SchemaInvalidException('Schema name must be a non-empty string.')

        pairs = properties.items() if isinstance(properties, dict) else properties
        parsed: Dict[str, PropertyDescriptor] = {}
        for prop_name, decl in pairs:
            if prop_name in parsed:
                raise status.SchemaInvalidException(f'Duplicate property "{prop_name}" in "{name}".')
            parsed[prop_name] = _parse_property(name, prop_name, decl)

        if not parsed:
            raise status.SchemaInvalidException(f'Schema "{name}" has no properties.')

        existing = self._schemas.get(name)
        if existing is not None:
            if existing.items() == list(parsed.items()):
                logging.debug(f'Schema "{name}" is already defined.')
                return existing
            raise status.SchemaInvalidException(f'Schema "{name}" is already defined differently.')

        schema = SettingsSchema(name, parsed, self, doc=doc)
        self._schemas[name] = schema

        try:
            self._check_cycles(schema)
        except status.CyclicSchemaException:
            del self._schemas[name]
            raise

        logging.debug(f'Defined schema "{name}" with {len(parsed)} properties.')
        return schema

    def _check_cycles(self, schema: SettingsSchema) -> None:
        """Depth-first walk over defined sections looking for a schema on its own path."""

        def _walk(current: SettingsSchema, chain: List[str]) -> None:
            for prop_name, prop in current.items():
                if not isinstance(prop, SectionProperty):
                    continue
                if isinstance(prop.schema, SettingsSchema):
                    child = prop.schema
                else:
                    child = self._schemas.get(prop.schema)
                    if child is None:
                        # Forward reference, checked again when it gets defined
                        continue
                if child.name in chain:
                    cycle = ' -> '.join(chain + [child.name])
                    raise status.CyclicSchemaException(f'Cycle: {cycle}')
                _walk(child, chain + [child.name])

        _walk(schema, [schema.name])

    def resolve(self, schema: Union[SettingsSchema, str], prefix: str = '') -> Dict[Tuple[str, ...], str]:
        """Map every scalar leaf's traversal path to its key path.

        Traversal is depth-first in declaration order.

        Args:
            schema: The schema or its registered name.
            prefix: Optional key prefix prepended to every key path.

        Returns:
            dict: ``{('View', 'FontScale'): 'View.FontScale', ...}``

        Raises:
            status.SchemaInvalidException: If a section references an undefined schema.
        """
        return {path: key for path, key, _ in self._walk_leaves(self.schema(schema), prefix)}

    def leaves(self, schema: Union[SettingsSchema, str], prefix: str = '') -> Iterator[Tuple[str, ScalarProperty]]:
        """Yield ``(key_path, ScalarProperty)`` for every scalar leaf."""
        for _, key, prop in self._walk_leaves(self.schema(schema), prefix):
            yield key, prop

    def defaults(self, schema: Union[SettingsSchema, str], prefix: str = '') -> Dict[str, Any]:
        """Return ``{key_path: default}`` for every scalar leaf."""
        return {key: prop.default for key, prop in self.leaves(schema, prefix)}

    def schema(self, schema: Union[SettingsSchema, str]) -> SettingsSchema:
        """Look up a schema given by name, or pass a schema object through.

        Raises:
            status.SchemaInvalidException: If the name is not registered.
        """
        if isinstance(schema, SettingsSchema):
            return schema
        if schema not in self._schemas:
            raise status.SchemaInvalidException(f'Unknown schema "{schema}".')
        return self._schemas[schema]

    def _walk_leaves(self, schema: SettingsSchema, prefix: str, path: Tuple[str, ...] = ()):
        for name, prop in schema.items():
            key = join_key(prefix, name)
            if isinstance(prop, SectionProperty):
                yield from self._walk_leaves(schema.child(name), key, path + (name,))
            else:
                yield path + (name,), key, prop


#: Default registry used by :func:`LiveSettings.settings.lib.define_schema`.
registry: SchemaRegistry = SchemaRegistry()
