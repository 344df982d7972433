# tests/test_schema.py
"""
Unit tests for LiveSettings.settings.schema
(covers property parsing, registration, cycle detection and key path resolution).

Run:
    python -m unittest tests.test_schema
"""
from LiveSettings.settings import schema
from LiveSettings.settings.schema import ScalarProperty, SectionProperty
from LiveSettings.status import status
from tests.base import BaseTestCase, define_app_schema


class ScalarTypeTests(BaseTestCase):

    def test_accepts_types_and_names(self):
        self.assertIs(schema.scalar_type(int), int)
        self.assertIs(schema.scalar_type('integer'), int)
        self.assertIs(schema.scalar_type('Boolean'), bool)
        self.assertIs(schema.scalar_type('str'), str)
        self.assertIs(schema.scalar_type(float), float)

    def test_rejects_unsupported(self):
        for value in (list, dict, 'date', None, [1]):
            with self.assertRaises(status.SchemaInvalidException):
                schema.scalar_type(value)

    def test_is_instance_of_keeps_bools_apart(self):
        self.assertTrue(schema.is_instance_of(1, float))
        self.assertTrue(schema.is_instance_of(True, bool))
        self.assertFalse(schema.is_instance_of(True, int))
        self.assertFalse(schema.is_instance_of(True, float))
        self.assertFalse(schema.is_instance_of(1.5, int))
        self.assertFalse(schema.is_instance_of('1', int))

    def test_join_key(self):
        self.assertEqual(schema.join_key('', 'View', 'FontScale'), 'View.FontScale')
        self.assertEqual(schema.join_key('Wizard'), 'Wizard')


class DefineTests(BaseTestCase):

    def test_define_dict_and_descriptors(self):
        s = self.registry.define('View', [
            ('FontScale', ScalarProperty(type=float, default=100)),
            ('ShowComments', {'type': 'boolean', 'default': False, 'doc': 'Show comment column'}),
        ], doc='View options')

        self.assertEqual(s.name, 'View')
        self.assertEqual(list(s), ['FontScale', 'ShowComments'])
        self.assertEqual(len(s), 2)
        self.assertEqual(s['FontScale'].default, 100.0)
        self.assertIsInstance(s['FontScale'].default, float)
        self.assertEqual(s['ShowComments'].doc, 'Show comment column')
        self.assertEqual(s['ShowComments'].type_name, 'boolean')
        self.assertIs(self.registry['View'], s)
        self.assertIn('View', self.registry)

    def test_missing_default_raises(self):
        with self.assertRaises(status.NoDefaultValueException):
            self.registry.define('Bad', {'Value': {'type': int}})
        self.assertNotIn('Bad', self.registry)

    def test_optional_without_default(self):
        s = self.registry.define('App', {'LastStartedAppVersion': {'type': str, 'optional': True}})
        self.assertIsNone(s['LastStartedAppVersion'].default)
        self.assertTrue(s['LastStartedAppVersion'].optional)

    def test_default_type_mismatch_raises(self):
        with self.assertRaises(status.SchemaInvalidException):
            self.registry.define('Bad', {'Value': {'type': int, 'default': '1'}})
        with self.assertRaises(status.SchemaInvalidException):
            self.registry.define('Bad', {'Value': {'type': int, 'default': True}})

    def test_invalid_property_names(self):
        for name in ('', '_hidden', 'has.dot', '1st', 'white space'):
            with self.assertRaises(status.SchemaInvalidException, msg=name):
                self.registry.define('Bad', {name: {'type': int, 'default': 0}})

    def test_property_without_type_or_section(self):
        with self.assertRaises(status.SchemaInvalidException):
            self.registry.define('Bad', {'Value': {'default': 0}})

    def test_duplicate_property(self):
        with self.assertRaises(status.SchemaInvalidException):
            self.registry.define('Bad', [
                ('Value', {'type': int, 'default': 0}),
                ('Value', {'type': int, 'default': 1}),
            ])

    def test_empty_schema(self):
        with self.assertRaises(status.SchemaInvalidException):
            self.registry.define('Empty', {})

    def test_redefinition(self):
        first = self.registry.define('File', {'AskSaveUpgrade': {'type': bool, 'default': True}})
        again = self.registry.define('File', {'AskSaveUpgrade': {'type': bool, 'default': True}})
        self.assertIs(first, again)

        with self.assertRaises(status.SchemaInvalidException):
            self.registry.define('File', {'AskSaveUpgrade': {'type': bool, 'default': False}})

    def test_section_by_object_and_name(self):
        state = self.registry.define('WindowState', {'Left': {'type': int, 'default': -1}})
        view = self.registry.define('View', {
            'MainWindowState': state,
            'OtherState': {'section': 'WindowState'},
        })
        self.assertIsInstance(view['MainWindowState'], SectionProperty)
        self.assertIs(view.child('MainWindowState'), state)
        self.assertIs(view.child('OtherState'), state)
        self.assertEqual(view['OtherState'].schema_name, 'WindowState')

    def test_child_errors(self):
        view = self.registry.define('View', {
            'FontScale': {'type': float, 'default': 100.0},
            'MainWindowState': {'section': 'NotYetDefined'},
        })
        with self.assertRaises(TypeError):
            view.child('FontScale')
        with self.assertRaises(KeyError):
            view.child('Missing')
        with self.assertRaises(status.SchemaInvalidException):
            view.child('MainWindowState')


class CycleTests(BaseTestCase):

    def test_self_reference(self):
        with self.assertRaises(status.CyclicSchemaException):
            self.registry.define('Node', {'Child': {'section': 'Node'}})
        self.assertNotIn('Node', self.registry)

    def test_indirect_cycle_fails_on_last_definition(self):
        self.registry.define('A', {'B': {'section': 'B'}})
        with self.assertRaises(status.CyclicSchemaException):
            self.registry.define('B', {'A': {'section': 'A'}})
        self.assertNotIn('B', self.registry)
        self.assertIn('A', self.registry)

    def test_longer_cycle(self):
        self.registry.define('A', {'Next': {'section': 'B'}})
        self.registry.define('B', {'Next': {'section': 'C'}})
        with self.assertRaises(status.CyclicSchemaException):
            self.registry.define('C', {'Next': {'section': 'A'}})

    def test_shared_section_is_not_a_cycle(self):
        define_app_schema(self.registry)
        self.assertIn('App', self.registry)


class ResolveTests(BaseTestCase):

    def test_resolve_nested_key_paths(self):
        app = define_app_schema(self.registry)
        resolved = self.registry.resolve(app)

        self.assertEqual(resolved[('View', 'FontScale')], 'View.FontScale')
        self.assertEqual(
            resolved[('View', 'MainWindowState', 'Left')],
            'View.MainWindowState.Left',
        )
        self.assertEqual(resolved[('Wizard', 'WindowState', 'Left')], 'Wizard.WindowState.Left')
        self.assertEqual(resolved[('LastStartedAppVersion',)], 'LastStartedAppVersion')

        # Depth first, declaration order
        keys = list(resolved.values())
        self.assertEqual(keys[:3], ['LastStartedAppVersion', 'AppCulture', 'File.AskSaveUpgrade'])
        self.assertLess(keys.index('View.FontScale'), keys.index('View.MainWindowState.Left'))
        self.assertEqual(len(keys), len(set(keys)))

    def test_resolve_with_prefix_and_by_name(self):
        define_app_schema(self.registry)
        resolved = self.registry.resolve('View', 'Editor')
        self.assertIn('Editor.FontScale', resolved.values())
        self.assertIn('Editor.MainWindowState.Width', resolved.values())

    def test_resolve_unknown_schema(self):
        with self.assertRaises(status.SchemaInvalidException):
            self.registry.resolve('Missing')

    def test_resolve_dangling_section(self):
        self.registry.define('View', {'State': {'section': 'WindowState'}})
        with self.assertRaises(status.SchemaInvalidException):
            self.registry.resolve('View')

    def test_defaults(self):
        app = define_app_schema(self.registry)
        defaults = self.registry.defaults(app)
        self.assertEqual(defaults['View.FontScale'], 100.0)
        self.assertEqual(defaults['Wizard.WindowLeft'], -2147483648)
        self.assertEqual(defaults['Wizard.SourceCode'], 'C#')
        self.assertIsNone(defaults['LastStartedAppVersion'])

    def test_leaves(self):
        app = define_app_schema(self.registry)
        leaves = dict(self.registry.leaves(app))
        self.assertIs(leaves['View.ShowComments'].type, bool)
        self.assertTrue(all(isinstance(p, ScalarProperty) for p in leaves.values()))
