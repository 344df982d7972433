"""One-time key renames between settings versions.

A migration is an ordered list of ``(old_key, new_key)`` renames guarded by a marker key in
the store itself. :func:`apply_once` runs the renames only while the marker is absent and
sets it afterwards, so re-running it never touches the store again, even if keys are later
removed. Renames never overwrite a value that already exists under the new key.

Renames run in the declared order, which matters for chains such as ``A -> B`` followed
by ``B -> C``. The list is not reordered or checked for cycles.
"""
import logging
from typing import Iterable, List, Mapping, Tuple, Union

from ..signals import signals

#: Reserved key holding the migration-applied flag. The leading underscore keeps it out of
#: the key space of schema properties.
MIGRATION_MARKER_KEY: str = '_migration.applied'

Renames = Union[Mapping[str, str], Iterable[Tuple[str, str]]]


def normalize_renames(renames: Renames) -> List[Tuple[str, str]]:
    """Materialize renames into a list of ``(old_key, new_key)`` pairs.

    Raises:
        ValueError: If an entry is not a pair of non-empty strings.
    """
    pairs = renames.items() if isinstance(renames, Mapping) else renames
    result: List[Tuple[str, str]] = []
    for pair in pairs:
        try:
            old_key, new_key = pair
        except (TypeError, ValueError) as ex:
            raise ValueError(f'Rename entries must be (old_key, new_key) pairs, got {pair!r}') from ex
        if not isinstance(old_key, str) or not isinstance(new_key, str) or not old_key or not new_key:
            raise ValueError(f'Rename keys must be non-empty strings, got {pair!r}')
        result.append((old_key, new_key))
    return result


def is_applied(store, marker_key: str = MIGRATION_MARKER_KEY) -> bool:
    """Return True if the migration guarded by ``marker_key`` has run on ``store``."""
    return marker_key in store


def apply_once(store, renames: Renames, marker_key: str = MIGRATION_MARKER_KEY) -> bool:
    """Apply renames unless the marker says they already ran.

    Args:
        store: The :class:`~LiveSettings.settings.store.KeyValueStore`.
        renames: Ordered ``(old_key, new_key)`` pairs or a mapping.
        marker_key: Store key of the migration-applied flag.

    Returns:
        bool: True if the renames ran now, False if the marker was already set.
    """
    if is_applied(store, marker_key):
        logging.debug(f'Migration "{marker_key}" already applied.')
        return False

    pairs = normalize_renames(renames)
    moved = 0
    for old_key, new_key in pairs:
        if store.rename(old_key, new_key):
            moved += 1
            logging.info(f'Migrated "{old_key}" to "{new_key}"')
        else:
            logging.debug(f'Skipped migrating "{old_key}" to "{new_key}"')

    store.set(marker_key, True)
    logging.info(f'Migration "{marker_key}" applied: {moved} of {len(pairs)} keys moved.')

    signals.migrationApplied.emit(marker_key)
    return True


class MigrationEngine:
    """A reusable rename list bound to its marker key.

    Args:
        renames: Ordered ``(old_key, new_key)`` pairs or a mapping.
        marker_key: Store key of the migration-applied flag.
    """

    def __init__(self, renames: Renames, marker_key: str = MIGRATION_MARKER_KEY) -> None:
        self.renames: List[Tuple[str, str]] = normalize_renames(renames)
        self.marker_key: str = marker_key

    def __repr__(self) -> str:
        return f'<MigrationEngine marker_key={self.marker_key!r}, renames={len(self.renames)}>'

    def is_applied(self, store) -> bool:
        return is_applied(store, self.marker_key)

    def apply(self, store) -> bool:
        """See :func:`apply_once`."""
        return apply_once(store, self.renames, self.marker_key)
