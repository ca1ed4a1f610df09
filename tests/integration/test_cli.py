"""
Integration tests for the command line interface.

Tests cover:
- migrate/validate/info/baseline through main()
- Exit codes
- Option overrides
"""

import json
import logging

import pytest

from waypoint.__main__ import main
from waypoint.config import URL_ENV_VAR


@pytest.fixture(autouse=True)
def reset_waypoint_logger(monkeypatch):
    """Drop handlers main() attaches to the package logger."""
    monkeypatch.delenv(URL_ENV_VAR, raising=False)
    logger = logging.getLogger('waypoint')
    level = logger.level
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(level)


@pytest.fixture
def project(tmp_path):
    """Project directory with a migrations folder and a JSON config."""
    migrations = tmp_path / 'migrations'
    migrations.mkdir()
    (migrations / 'V1__create_quotes.sql').write_text(
        "CREATE TABLE quotes (id INTEGER PRIMARY KEY, body TEXT);\n"
    )
    (migrations / 'V2__seed.sql').write_text(
        "INSERT INTO quotes (body) VALUES ('first');\n"
    )

    config = tmp_path / 'waypoint.json'
    config.write_text(json.dumps({
        'url': str(tmp_path / 'app.db'),
        'locations': ['migrations'],
        'installed_by': 'ci',
    }))
    return tmp_path


class TestCli:
    """Test main()."""

    def test_migrate_then_info(self, project, capsys):
        config = str(project / 'waypoint.json')

        assert main([config, 'migrate']) == 0
        assert main([config, 'info']) == 0

        out = capsys.readouterr().out
        assert '| 1       | create quotes |' in out
        assert out.count('Success') == 2

    def test_validate_ok(self, project):
        config = str(project / 'waypoint.json')

        assert main([config, 'migrate']) == 0
        assert main([config, 'validate']) == 0

    def test_validate_detects_drift(self, project):
        config = str(project / 'waypoint.json')
        assert main([config, 'migrate']) == 0

        (project / 'migrations' / 'V2__seed.sql').write_text(
            "INSERT INTO quotes (body) VALUES ('changed');\n"
        )

        assert main([config, 'validate']) == 1
        assert main([config, 'migrate']) == 1

    def test_target_option(self, project, capsys):
        config = str(project / 'waypoint.json')

        assert main(['--target', '1', config, 'migrate']) == 0
        assert main([config, 'info']) == 0

        out = capsys.readouterr().out
        assert 'Success' in out
        assert 'Pending' in out

    def test_failed_migration_exit_code(self, project):
        (project / 'migrations' / 'V3__broken.sql').write_text(
            "INSERT INTO no_such_table VALUES (1);\n"
        )

        assert main([str(project / 'waypoint.json'), 'migrate']) == 1

    def test_baseline(self, tmp_path, capsys):
        config = tmp_path / 'waypoint.yaml'
        config.write_text(
            f"url: {tmp_path / 'legacy.db'}\n"
            "locations: []\n"
            "baseline_version: '4'\n"
        )

        assert main([str(config), 'baseline']) == 0
        assert main([str(config), 'baseline']) == 1
        assert main([str(config), 'info']) == 0
        assert 'Baseline' in capsys.readouterr().out

    def test_missing_config(self, tmp_path, capsys):
        assert main([str(tmp_path / 'absent.json'), 'migrate']) == 1
        assert 'Unable to load configuration' in capsys.readouterr().err

    def test_invalid_target(self, project, capsys):
        assert main(['--target', 'abc', str(project / 'waypoint.json'), 'info']) == 1
        assert 'Invalid option' in capsys.readouterr().err

    def test_unknown_command(self, project):
        with pytest.raises(SystemExit):
            main([str(project / 'waypoint.json'), 'repair'])

    def test_unknown_database_dialect(self, tmp_path, caplog):
        config = tmp_path / 'waypoint.json'
        config.write_text(json.dumps({'url': 'nosuchdb://host/db', 'locations': []}))

        assert main([str(config), 'info']) == 1
        assert any(r.getMessage().startswith('Database error:') for r in caplog.records)

    def test_unreachable_database(self, tmp_path, caplog):
        config = tmp_path / 'waypoint.json'
        config.write_text(json.dumps({
            'url': f"sqlite:///{tmp_path / 'no_such_dir' / 'app.db'}",
            'locations': [],
        }))

        assert main([str(config), 'migrate']) == 1
        assert any(r.getMessage().startswith('Database error:') for r in caplog.records)
