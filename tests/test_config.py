"""
Tests for settings loading.
"""
import pytest
import sys
import os
import yaml

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from raceday.config import get_default_settings, load_settings


class TestLoadSettings:
    """Tests for load_settings."""

    def test_defaults(self):
        settings = load_settings(environ={})
        defaults = get_default_settings()
        assert settings.data_dir == defaults['data_dir']
        assert settings.lock_timeout == 10
        assert settings.log_level == 'INFO'
        assert settings.group_stage_tracks == []

    def test_missing_file_uses_defaults(self, tmp_path):
        settings = load_settings(str(tmp_path / 'missing.yaml'), environ={})
        assert settings.lock_timeout == 10

    def test_file_overrides_defaults(self, tmp_path):
        path = tmp_path / 'settings.yaml'
        path.write_text(yaml.dump({'lock_timeout': 3, 'bracket_tracks': ['Spa', 'Monza'], 'log_level': 'debug'}))
        settings = load_settings(str(path), environ={})
        assert settings.lock_timeout == 3
        assert settings.bracket_tracks == ['Spa', 'Monza']
        assert settings.log_level == 'DEBUG'
        assert settings.group_stage_tracks == []

    def test_environment_overrides_file(self, tmp_path):
        path = tmp_path / 'settings.yaml'
        path.write_text(yaml.dump({'data_dir': '/from/file', 'lock_timeout': 3}))
        environ = {'RACEDAY_DATA_DIR': str(tmp_path), 'RACEDAY_LOCK_TIMEOUT': '2.5', 'RACEDAY_LOG_LEVEL': 'warning'}
        settings = load_settings(str(path), environ=environ)
        assert settings.data_dir == str(tmp_path)
        assert settings.lock_timeout == 2.5
        assert settings.log_level == 'WARNING'

    def test_unknown_keys_warn(self, tmp_path, caplog):
        path = tmp_path / 'settings.yaml'
        path.write_text(yaml.dump({'colour': 'red'}))
        with caplog.at_level('WARNING', logger='raceday.config'):
            load_settings(str(path), environ={})
        assert 'colour' in caplog.text

    @pytest.mark.parametrize("data", [
        {'lock_timeout': 'soon'},
        {'lock_timeout': True},
        {'log_level': 'LOUD'},
        {'bracket_tracks': 'Spa'},
        {'data_dir': 5},
    ])
    def test_wrong_types(self, tmp_path, data):
        path = tmp_path / 'settings.yaml'
        path.write_text(yaml.dump(data))
        with pytest.raises(ValueError):
            load_settings(str(path), environ={})

    def test_bad_environment_value(self):
        with pytest.raises(ValueError):
            load_settings(environ={'RACEDAY_LOCK_TIMEOUT': 'never'})

    def test_file_must_be_mapping(self, tmp_path):
        path = tmp_path / 'settings.yaml'
        path.write_text(yaml.dump(['a', 'b']))
        with pytest.raises(ValueError):
            load_settings(str(path), environ={})
