# tests/test_migration.py
"""
Unit tests for LiveSettings.settings.migration

Run:
    python -m unittest tests.test_migration
"""
from LiveSettings.settings import migration
from LiveSettings.settings.migration import MIGRATION_MARKER_KEY, MigrationEngine
from LiveSettings.signals import signals
from tests.base import BaseTestCase, Recorder, read_json


class NormalizeRenamesTests(BaseTestCase):

    def test_pairs_and_mapping(self):
        self.assertEqual(
            migration.normalize_renames([('a', 'b'), ['c', 'd']]),
            [('a', 'b'), ('c', 'd')],
        )
        self.assertEqual(migration.normalize_renames({'a': 'b'}), [('a', 'b')])
        self.assertEqual(migration.normalize_renames([]), [])

    def test_invalid_entries(self):
        for renames in ([('a',)], [('a', 'b', 'c')], [('a', '')], [(1, 'b')], [None]):
            with self.assertRaises(ValueError, msg=repr(renames)):
                migration.normalize_renames(renames)


class ApplyOnceTests(BaseTestCase):

    def test_moves_values_and_sets_marker(self):
        store = self.make_store({'window.left': 42})

        self.assertTrue(migration.apply_once(store, [('window.left', 'View.MainWindowState.Left')]))
        self.assertEqual(store.get('View.MainWindowState.Left'), 42)
        self.assertIsNone(store.get('window.left'))
        self.assertIs(store.get(MIGRATION_MARKER_KEY), True)
        self.assertTrue(migration.is_applied(store))

    def test_second_run_changes_nothing(self):
        store = self.make_store({'window.left': 42})
        migration.apply_once(store, [('window.left', 'View.MainWindowState.Left')])
        store.flush()
        before = read_json(self.settings_path)

        # A value reappearing under the old key is left alone
        store.set('window.left', 7)
        store.flush()
        self.assertFalse(migration.apply_once(store, [('window.left', 'View.MainWindowState.Left')]))
        self.assertEqual(store.get('window.left'), 7)
        self.assertEqual(store.get('View.MainWindowState.Left'), 42)
        self.assertFalse(store.dirty)
        before['window.left'] = 7
        self.assertEqual(read_json(self.settings_path), before)

    def test_never_overwrites_new_key(self):
        store = self.make_store({'old.font': 90.0, 'View.FontScale': 120.0})
        migration.apply_once(store, {'old.font': 'View.FontScale'})
        self.assertEqual(store.get('View.FontScale'), 120.0)
        self.assertEqual(store.get('old.font'), 90.0)

    def test_missing_old_keys_still_set_marker(self):
        store = self.make_store()
        self.assertTrue(migration.apply_once(store, [('a', 'b')]))
        self.assertEqual(store.keys(), [MIGRATION_MARKER_KEY])

    def test_renames_run_in_order(self):
        store = self.make_store({'A': 1})
        migration.apply_once(store, [('A', 'B'), ('B', 'C')])
        self.assertEqual(store.as_dict(), {'C': 1, MIGRATION_MARKER_KEY: True})

    def test_custom_marker(self):
        store = self.make_store({'A': 1})
        migration.apply_once(store, [('A', 'B')], marker_key='_migration.v2')
        self.assertIn('_migration.v2', store)
        self.assertNotIn(MIGRATION_MARKER_KEY, store)
        self.assertTrue(migration.apply_once(store, [('B', 'C')]))
        self.assertEqual(store.get('C'), 1)

    def test_notifies_subscribers(self):
        store = self.make_store({'window.left': 42})
        recorder = Recorder()
        self.notifier.subscribe('View.MainWindowState.Left', recorder)
        migrated = []

        def _slot(marker: str) -> None:
            migrated.append(marker)

        signals.migrationApplied.connect(_slot)
        try:
            migration.apply_once(store, [('window.left', 'View.MainWindowState.Left')])
        finally:
            signals.migrationApplied.disconnect(_slot)

        self.assertEqual(recorder.calls, [('View.MainWindowState.Left', 42)])
        self.assertEqual(migrated, [MIGRATION_MARKER_KEY])


class MigrationEngineTests(BaseTestCase):

    def test_engine(self):
        engine = MigrationEngine([('window.left', 'View.MainWindowState.Left')])
        store = self.make_store({'window.left': 1})

        self.assertFalse(engine.is_applied(store))
        self.assertTrue(engine.apply(store))
        self.assertTrue(engine.is_applied(store))
        self.assertFalse(engine.apply(store))
        self.assertIn('renames=1', repr(engine))

    def test_engine_validates_up_front(self):
        with self.assertRaises(ValueError):
            MigrationEngine([('only-one',)])
