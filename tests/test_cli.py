# tests/test_cli.py
import json

import pytest

from translatable.cli import build_parser, main


@pytest.fixture
def run_cli(settings, engine):
    def _run(*argv):
        return main(list(argv), settings=settings, engine=engine)

    return _run


def test_cache_writes_snapshot(run_cli, settings, products, capsys):
    assert run_cli("cache") == 0

    assert json.loads(settings.cache_file.read_text(encoding="utf-8")) == {
        "product_translations": ["name", "description"]
    }
    assert "product_translations: name, description" in capsys.readouterr().out


def test_cache_without_translation_tables(run_cli, settings, capsys):
    assert run_cli("cache") == 0

    assert "No translation tables found (*_translations)." in capsys.readouterr().out
    assert json.loads(settings.cache_file.read_text(encoding="utf-8")) == {}


def test_clear_removes_snapshot(run_cli, settings, products, capsys):
    run_cli("cache")

    assert run_cli("clear") == 0
    assert not settings.cache_file.exists()
    assert "Translatable cache cleared." in capsys.readouterr().out


def test_clear_without_snapshot(run_cli, capsys):
    assert run_cli("clear") == 0
    assert "does not exist" in capsys.readouterr().out


def test_make_migration_infers_create(run_cli, settings, capsys):
    assert run_cli("make-migration", "create_categories_table") == 0

    files = list(settings.migrations_dir.glob("*_create_categories_table.py"))
    assert len(files) == 1
    assert 'schema.create("categories", definition)' in files[0].read_text(encoding="utf-8")
    assert "Created Migration:" in capsys.readouterr().out


def test_make_migration_with_explicit_table(run_cli, settings):
    assert run_cli("make-migration", "add_flags", "--table", "posts") == 0

    files = list(settings.migrations_dir.glob("*_add_flags.py"))
    assert 'schema.table("posts", definition)' in files[0].read_text(encoding="utf-8")


def test_make_migration_with_explicit_create(run_cli, settings):
    assert run_cli("make-migration", "create_test_items_table", "--create", "test_items") == 0

    files = list(settings.migrations_dir.glob("*_create_test_items_table.py"))
    assert 'schema.create("test_items", definition)' in files[0].read_text(encoding="utf-8")


def test_make_migration_without_table_fails(run_cli, settings, capsys):
    assert run_cli("make-migration", "update_prices") == 1

    assert "Could not determine table name" in capsys.readouterr().err
    assert not settings.migrations_dir.exists()


def test_table_and_create_are_exclusive():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["make-migration", "x", "--table", "a", "--create", "b"])


def test_migrate(run_cli, settings, engine, capsys):
    run_cli("make-migration", "create_products_table")

    assert run_cli("migrate") == 0
    out = capsys.readouterr().out
    assert "Migrated:" in out
    assert settings.cache_file.exists()

    assert run_cli("migrate") == 0
    assert "Nothing to migrate." in capsys.readouterr().out


def test_migrate_failure_exits_non_zero(run_cli, settings, capsys):
    settings.migrations_dir.mkdir(parents=True)
    (settings.migrations_dir / "2024_01_01_000000_broken.py").write_text(
        "def up(schema):\n    raise RuntimeError('boom')\n", encoding="utf-8"
    )

    assert run_cli("migrate") == 1
    assert "boom" in capsys.readouterr().err


def test_no_command_prints_help(run_cli, capsys):
    assert run_cli() == 1
    assert "usage:" in capsys.readouterr().out
