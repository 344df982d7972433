"""LiveSettings CLI – inspect and edit settings files without a schema."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import click

from LiveSettings import __version__
from LiveSettings.log import log
from LiveSettings.settings import migration, schema
from LiveSettings.settings.store import KeyValueStore, coerce
from LiveSettings.status import status

TYPE_CHOICE = click.Choice(['string', 'integer', 'float', 'boolean'], case_sensitive=False)
LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def _open(path: str, read_only: bool = False) -> KeyValueStore:
    try:
        return KeyValueStore(Path(path), read_only=read_only)
    except status.StoreUnavailableException as ex:
        raise click.ClickException(str(ex)) from ex


@click.group()
@click.version_option(__version__, prog_name='livesettings')
@click.option('--log-level', default='WARNING', type=click.Choice(LOG_LEVELS, case_sensitive=False),
              help='Logging level (default: WARNING)')
def main(log_level: str):
    """LiveSettings – inspect and edit flat settings files."""
    log.set_logging_level(logging.getLevelName(log_level.upper()))


# ── keys ──────────────────────────────────────────────────────────────

@main.command()
@click.argument('settings_file', type=click.Path())
def keys(settings_file: str):
    """List the keys stored in a settings file."""
    with _open(settings_file, read_only=True) as store:
        for key in store.keys():
            click.echo(key)


# ── get ───────────────────────────────────────────────────────────────

@main.command()
@click.argument('settings_file', type=click.Path())
@click.argument('key')
@click.option('--type', '-t', 'value_type', default=None, type=TYPE_CHOICE, help='Read the value as this type')
def get(settings_file: str, key: str, value_type: str | None):
    """Print the value stored under KEY."""
    with _open(settings_file, read_only=True) as store:
        try:
            value = store.get(key, value_type)
        except status.TypeMismatchException as ex:
            raise click.ClickException(str(ex)) from ex

    if value is None:
        raise click.ClickException(f'"{key}" is not set.')
    click.echo(json.dumps(value, ensure_ascii=False))


# ── set ───────────────────────────────────────────────────────────────

@main.command(name='set')
@click.argument('settings_file', type=click.Path())
@click.argument('key')
@click.argument('value')
@click.option('--type', '-t', 'value_type', default='string', type=TYPE_CHOICE, help='Value type (default: string)')
def set_(settings_file: str, key: str, value: str, value_type: str):
    """Store VALUE under KEY."""
    try:
        typed = coerce(value, value_type, key)
    except status.TypeMismatchException as ex:
        raise click.ClickException(str(ex)) from ex

    with _open(settings_file) as store:
        changed = store.set(key, typed)
    click.echo(f'{key} = {json.dumps(typed, ensure_ascii=False)}' if changed else f'{key} unchanged')


# ── remove ────────────────────────────────────────────────────────────

@main.command()
@click.argument('settings_file', type=click.Path())
@click.argument('key')
def remove(settings_file: str, key: str):
    """Remove KEY from a settings file."""
    with _open(settings_file) as store:
        removed = store.remove(key)
    if not removed:
        raise click.ClickException(f'"{key}" is not set.')
    click.echo(f'Removed {key}')


# ── rename ────────────────────────────────────────────────────────────

@main.command()
@click.argument('settings_file', type=click.Path())
@click.argument('old_key')
@click.argument('new_key')
def rename(settings_file: str, old_key: str, new_key: str):
    """Move the value of OLD_KEY to NEW_KEY unless NEW_KEY is already set."""
    with _open(settings_file) as store:
        moved = store.rename(old_key, new_key)
    if not moved:
        raise click.ClickException(f'Could not rename "{old_key}" to "{new_key}".')
    click.echo(f'{old_key} → {new_key}')


# ── migrate ───────────────────────────────────────────────────────────

@main.command()
@click.argument('settings_file', type=click.Path())
@click.option('--rename', '-r', 'renames', multiple=True, required=True, metavar='OLD=NEW',
              help='Key rename, may be repeated; applied in order')
@click.option('--marker', '-m', default=migration.MIGRATION_MARKER_KEY, show_default=True,
              help='Key recording that the migration ran')
def migrate(settings_file: str, renames: tuple[str, ...], marker: str):
    """Apply key renames once, guarded by a marker key."""
    pairs = []
    for item in renames:
        old_key, sep, new_key = item.partition('=')
        if not sep or not old_key or not new_key:
            raise click.BadParameter(f'Expected OLD=NEW, got "{item}"', param_hint='--rename')
        pairs.append((old_key, new_key))

    with _open(settings_file) as store:
        applied = migration.apply_once(store, pairs, marker)
    click.echo(f'Migration "{marker}" applied' if applied else f'Migration "{marker}" was already applied')


# ── dump ──────────────────────────────────────────────────────────────

@main.command()
@click.argument('settings_file', type=click.Path())
@click.option('--types', is_flag=True, help='Include the type of each value')
def dump(settings_file: str, types: bool):
    """Print all stored values as JSON."""
    with _open(settings_file, read_only=True) as store:
        data = store.as_dict()

    if types:
        data = {
            k: {'type': schema.SCALAR_TYPE_NAMES[type(v)], 'value': v}
            for k, v in data.items()
        }
    click.echo(json.dumps(data, indent=2, ensure_ascii=False, sort_keys=True))


if __name__ == '__main__':
    main()
