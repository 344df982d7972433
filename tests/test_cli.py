# tests/test_cli.py
"""
Tests for the livesettings command line interface.

Run:
    python -m unittest tests.test_cli
"""
import json

from click.testing import CliRunner

from LiveSettings import __version__
from LiveSettings.cli import main
from LiveSettings.settings.migration import MIGRATION_MARKER_KEY
from tests.base import BaseTestCase, read_json, write_json


class CliTests(BaseTestCase):

    def setUp(self) -> None:
        super().setUp()
        self.runner = CliRunner()
        self.path = str(self.settings_path)

    def invoke(self, *args):
        return self.runner.invoke(main, list(args))

    def test_version(self):
        result = self.invoke('--version')
        self.assertEqual(result.exit_code, 0)
        self.assertIn(__version__, result.output)

    def test_keys(self):
        write_json(self.settings_path, {'View.FontScale': 100.0, 'AppCulture': 'de'})
        result = self.invoke('keys', self.path)
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(result.output.splitlines(), ['AppCulture', 'View.FontScale'])

    def test_keys_missing_folder(self):
        result = self.invoke('keys', str(self.temp_dir / 'nope' / 'settings.json'))
        self.assertEqual(result.exit_code, 1)
        self.assertIn('Error', result.output)

    def test_get(self):
        write_json(self.settings_path, {'View.FontScale': 100.0, 'Wizard.WindowLeft': '12'})

        result = self.invoke('get', self.path, 'View.FontScale')
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(result.output.strip(), '100.0')

        result = self.invoke('get', self.path, 'Wizard.WindowLeft', '--type', 'integer')
        self.assertEqual(result.output.strip(), '12')

        result = self.invoke('get', self.path, 'View.FontScale', '-t', 'boolean')
        self.assertEqual(result.exit_code, 1)

        result = self.invoke('get', self.path, 'Missing')
        self.assertEqual(result.exit_code, 1)
        self.assertIn('not set', result.output)

    def test_set(self):
        result = self.invoke('set', self.path, 'View.FontScale', '125', '--type', 'float')
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(read_json(self.settings_path), {'View.FontScale': 125.0})

        result = self.invoke('set', self.path, 'View.FontScale', '125', '-t', 'float')
        self.assertIn('unchanged', result.output)

        result = self.invoke('set', self.path, 'View.ShowComments', 'yes', '-t', 'boolean')
        self.assertEqual(read_json(self.settings_path)['View.ShowComments'], True)

        result = self.invoke('set', self.path, 'AppCulture', 'de')
        self.assertEqual(read_json(self.settings_path)['AppCulture'], 'de')

        result = self.invoke('set', self.path, 'Wizard.WindowLeft', 'left', '-t', 'integer')
        self.assertEqual(result.exit_code, 1)
        self.assertNotIn('Wizard.WindowLeft', read_json(self.settings_path))

    def test_remove(self):
        write_json(self.settings_path, {'A': 1, 'B': 2})
        result = self.invoke('remove', self.path, 'A')
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(read_json(self.settings_path), {'B': 2})

        result = self.invoke('remove', self.path, 'A')
        self.assertEqual(result.exit_code, 1)

    def test_rename(self):
        write_json(self.settings_path, {'window.left': 42, 'View.MainWindowState.Top': 1, 'window.top': 2})
        result = self.invoke('rename', self.path, 'window.left', 'View.MainWindowState.Left')
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(read_json(self.settings_path)['View.MainWindowState.Left'], 42)

        result = self.invoke('rename', self.path, 'window.top', 'View.MainWindowState.Top')
        self.assertEqual(result.exit_code, 1)
        self.assertEqual(read_json(self.settings_path)['window.top'], 2)

    def test_migrate(self):
        write_json(self.settings_path, {'window.left': 42})
        args = ('migrate', self.path, '--rename', 'window.left=View.MainWindowState.Left')

        result = self.invoke(*args)
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn('applied', result.output)
        data = read_json(self.settings_path)
        self.assertEqual(data, {'View.MainWindowState.Left': 42, MIGRATION_MARKER_KEY: True})

        result = self.invoke(*args)
        self.assertIn('already applied', result.output)

    def test_migrate_rejects_malformed_rename(self):
        result = self.invoke('migrate', self.path, '-r', 'no-separator')
        self.assertEqual(result.exit_code, 2)
        self.assertFalse(self.settings_path.exists())

    def test_dump(self):
        write_json(self.settings_path, {'View.FontScale': 100.0, 'View.ShowComments': False, 'AppCulture': 'de'})

        result = self.invoke('dump', self.path)
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(json.loads(result.output), read_json(self.settings_path))

        result = self.invoke('dump', self.path, '--types')
        data = json.loads(result.output)
        self.assertEqual(data['View.ShowComments'], {'type': 'boolean', 'value': False})
        self.assertEqual(data['View.FontScale']['type'], 'float')

    def test_dump_does_not_modify_broken_file(self):
        self.settings_path.write_text('{broken', encoding='utf-8')
        result = self.invoke('dump', self.path)
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(json.loads(result.output), {})
        self.assertEqual(self.settings_path.read_text(encoding='utf-8'), '{broken')
