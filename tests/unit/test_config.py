"""
Unit tests for configuration loading.

Tests cover:
- Defaults and validation
- JSON and YAML files
- Environment override of the database URL
- Callback import paths
- Logger setup
"""

import io
import json
import logging

import pytest

from waypoint import LATEST, MigrationVersion, WaypointConfig, configure_logger, load_config
from waypoint.config import URL_ENV_VAR, normalize_url


class RecordingHook:
    """Importable callback used by the callback loading tests."""

    def before_migrate(self, session):
        pass


class TestNormalizeUrl:
    """Test database URL handling."""

    def test_url_unchanged(self):
        assert normalize_url('postgresql://u@h/db') == 'postgresql://u@h/db'

    def test_memory(self):
        assert normalize_url(':memory:') == 'sqlite://'

    def test_file_path(self, tmp_path):
        url = normalize_url(str(tmp_path / 'app.db'))

        assert url.startswith('sqlite:///')
        assert url.endswith('/app.db')


class TestWaypointConfig:
    """Test config defaults and validation."""

    def test_defaults(self):
        config = WaypointConfig()

        assert config.target_version is LATEST
        assert config.out_of_order is False
        assert config.pending_or_future is False
        assert config.level == logging.INFO
        assert config.locations == ['db/migrations']

    def test_target_version(self):
        assert WaypointConfig(target='2.1').target_version == MigrationVersion('2.1')

    def test_invalid_target_rejected(self):
        with pytest.raises(ValueError, match="Invalid migration version"):
            WaypointConfig(target='two')

    def test_invalid_log_level_rejected(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            WaypointConfig(log_level='chatty')

    def test_single_location_string(self):
        assert WaypointConfig(locations='sql').locations == ['sql']

    def test_unknown_keys_rejected(self):
        with pytest.raises(ValueError, match="database"):
            WaypointConfig.from_dict({'database': 'x.db'})

    def test_installed_by_explicit(self):
        assert WaypointConfig(installed_by='deploy').user == 'deploy'

    def test_load_callbacks(self):
        config = WaypointConfig(callbacks=[f'{__name__}:RecordingHook'])

        (hook,) = config.load_callbacks()

        assert isinstance(hook, RecordingHook)

    def test_malformed_callback_path(self):
        with pytest.raises(ValueError, match="module:attribute"):
            WaypointConfig(callbacks=['no_colon_here']).load_callbacks()


class TestLoadConfig:
    """Test loading config files."""

    def test_json(self, tmp_path, monkeypatch):
        monkeypatch.delenv(URL_ENV_VAR, raising=False)
        path = tmp_path / 'waypoint.json'
        path.write_text(json.dumps({
            'url': 'sqlite:///app.db',
            'locations': ['sql'],
            'target': '3',
            'out_of_order': True,
        }))

        config = load_config(str(path))

        assert config.url == 'sqlite:///app.db'
        assert config.locations == [str(tmp_path / 'sql')]
        assert config.target_version == MigrationVersion('3')
        assert config.out_of_order is True

    def test_yaml(self, tmp_path, monkeypatch):
        monkeypatch.delenv(URL_ENV_VAR, raising=False)
        path = tmp_path / 'waypoint.yaml'
        path.write_text(
            "url: sqlite:///app.db\n"
            "locations: migrations\n"
            "pending_or_future: true\n"
            "log_level: debug\n"
        )

        config = load_config(str(path))

        assert config.locations == [str(tmp_path / 'migrations')]
        assert config.pending_or_future is True
        assert config.level == logging.DEBUG

    def test_absolute_location_kept(self, tmp_path, monkeypatch):
        monkeypatch.delenv(URL_ENV_VAR, raising=False)
        absolute = tmp_path / 'elsewhere'
        path = tmp_path / 'waypoint.json'
        path.write_text(json.dumps({'locations': [str(absolute)]}))

        assert load_config(str(path)).locations == [str(absolute)]

    def test_env_overrides_url(self, tmp_path, monkeypatch):
        monkeypatch.setenv(URL_ENV_VAR, 'sqlite:///override.db')
        path = tmp_path / 'waypoint.json'
        path.write_text(json.dumps({'url': 'sqlite:///app.db'}))

        assert load_config(str(path)).url == 'sqlite:///override.db'

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / 'broken.yml'
        path.write_text("url: [unclosed\n")

        with pytest.raises(ValueError, match="Invalid YAML"):
            load_config(str(path))

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / 'list.json'
        path.write_text("[1, 2]")

        with pytest.raises(ValueError, match="must be a mapping"):
            load_config(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            load_config(str(tmp_path / 'absent.json'))


class TestConfigureLogger:
    """Test logger setup."""

    def test_stream_handler_format(self):
        stream = io.StringIO()
        logger = configure_logger('waypoint.test_config', log_file=stream,
                                  log_level=logging.DEBUG)
        try:
            logger.info('Validated 3 migrations')
        finally:
            for handler in list(logger.handlers):
                logger.removeHandler(handler)

        output = stream.getvalue()
        assert '[waypoint.test_config] [INFO] Validated 3 migrations' in output

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / 'waypoint.log'
        logger = configure_logger('waypoint.test_config_file', log_file=str(log_file))
        try:
            logger.warning('careful')
        finally:
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)

        assert 'careful' in log_file.read_text()
