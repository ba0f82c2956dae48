import subprocess

import pytest

from conftest import FakeConnection
from sakila_notes import cli, load_sakila


@pytest.fixture(autouse=True)
def _no_config_side_effects(monkeypatch):
    monkeypatch.setattr(cli, 'validate_config', lambda: True)


def test_parser_requires_a_command():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])


def test_parser_run_options():
    args = cli.build_parser().parse_args(
        ['run', '--key', 'rolling_sum', '--key', 'prev_next_week', '--record'])
    assert args.keys == ['rolling_sum', 'prev_next_week']
    assert args.record
    assert not args.save


def test_list_chapter(capsys):
    assert cli.main(['list', '--chapter', '16']) == 0
    out = capsys.readouterr().out
    assert 'Ch. 16: Analytic Functions' in out
    assert 'rolling_sum' in out
    assert 'customer_vw' not in out


def test_show(capsys):
    assert cli.main(['show', 'update_join_view_multi_table']) == 0
    out = capsys.readouterr().out
    assert 'UPDATE customer_details' in out
    assert 'Expected error: 1393' in out


def test_show_unknown_key(capsys):
    assert cli.main(['show', 'nope']) == 1
    assert 'not found' in capsys.readouterr().out


def test_export(tmp_path, capsys):
    assert cli.main(['export', '--output', str(tmp_path)]) == 0
    assert (tmp_path / 'ch16_analytic_functions.sql').exists()
    assert 'Wrote' in capsys.readouterr().out


def test_run_selects_chapter(monkeypatch):
    seen = {}

    class StubRunner:
        def __init__(self, keys, record=False):
            seen['keys'] = keys
            seen['record'] = record

        def run(self, save=False):
            seen['save'] = save
            return 0

    monkeypatch.setattr(cli, 'ExerciseRunner', StubRunner)
    assert cli.main(['run', '--chapter', '14', '--save']) == 0
    assert seen['keys'][0] == 'customer_vw'
    assert 'rolling_sum' not in seen['keys']
    assert seen['save'] is True


def test_run_unknown_key(capsys):
    assert cli.main(['run', '--key', 'nope']) == 1
    assert 'not found' in capsys.readouterr().out


def test_views_status(monkeypatch, capsys):
    conn = FakeConnection()

    class StubConnection:
        def __enter__(self):
            return conn

        def __exit__(self, *exc):
            return False

    monkeypatch.setattr(cli, 'DatabaseConnection', StubConnection)
    assert cli.main(['views', 'status']) == 0
    out = capsys.readouterr().out
    assert 'film_stats' in out
    assert 'Installed' in out


def test_load_failure_exit_code(monkeypatch, capsys):
    class StubLoader:
        def run(self, skip_download=False, skip_schema=False):
            raise FileNotFoundError("No mysql or mariadb command-line client found in PATH")

    monkeypatch.setattr(cli, 'SakilaLoader', StubLoader)
    assert cli.main(['load', '--skip-download']) == 1
    assert 'command-line client' in capsys.readouterr().out


def test_load_client_timeout_exit_code(tmp_path, monkeypatch, capsys):
    schema = tmp_path / 'sakila-schema.sql'
    schema.write_text('CREATE SCHEMA sakila;')
    loader = load_sakila.SakilaLoader(data_dir=tmp_path, db_config={'database': 'sakila'})
    monkeypatch.setattr(loader, 'extract', lambda: (schema, schema))
    monkeypatch.setattr(loader, 'detect_client', lambda: '/usr/bin/mysql')

    def fake_run(cmd, **kwargs):
        raise subprocess.TimeoutExpired(cmd, kwargs['timeout'])

    monkeypatch.setattr(load_sakila.subprocess, 'run', fake_run)
    monkeypatch.setattr(cli, 'SakilaLoader', lambda: loader)

    assert cli.main(['load', '--skip-download']) == 1
    assert 'did not finish within' in capsys.readouterr().out


def test_load_unwritable_data_dir_exit_code(monkeypatch, capsys):
    class StubLoader:
        def run(self, skip_download=False, skip_schema=False):
            raise PermissionError(13, 'Permission denied', 'data/sakila-db.tar.gz')

    monkeypatch.setattr(cli, 'SakilaLoader', StubLoader)
    assert cli.main(['load']) == 1
    assert 'Permission denied' in capsys.readouterr().out


def test_read_only_commands_create_no_directories(monkeypatch, capsys):
    def fail():
        raise AssertionError("list and show must not touch the filesystem")

    monkeypatch.setattr(cli, 'validate_config', fail)
    assert cli.main(['list']) == 0
    assert cli.main(['show', 'rolling_sum']) == 0
