"""
Engine settings: defaults, overridden by a YAML file, overridden by environment.
"""
import logging
import os

import yaml

logger = logging.getLogger(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

ENV_OVERRIDES = {
    'RACEDAY_DATA_DIR': ('data_dir', str),
    'RACEDAY_LOCK_TIMEOUT': ('lock_timeout', float),
    'RACEDAY_LOG_LEVEL': ('log_level', str),
}


def get_default_settings():
    """Return default settings."""
    return {
        'data_dir': os.path.join(BASE_DIR, 'data'),
        'lock_timeout': 10,
        'log_level': 'INFO',
        'group_stage_tracks': [],
        'bracket_tracks': [],
    }


class Settings:
    def __init__(self, data_dir, lock_timeout, log_level, group_stage_tracks=None, bracket_tracks=None):
        self.data_dir = data_dir
        self.lock_timeout = lock_timeout
        self.log_level = log_level
        self.group_stage_tracks = list(group_stage_tracks or [])
        self.bracket_tracks = list(bracket_tracks or [])

    def __repr__(self):
        return (f"Settings(data_dir={self.data_dir}, lock_timeout={self.lock_timeout}, "
                f"log_level={self.log_level}, group_stage_tracks={self.group_stage_tracks}, "
                f"bracket_tracks={self.bracket_tracks})")


def _validate(values):
    if not isinstance(values['data_dir'], str):
        raise ValueError(f"data_dir must be a string, got {values['data_dir']!r}")
    if isinstance(values['lock_timeout'], bool) or not isinstance(values['lock_timeout'], (int, float)):
        raise ValueError(f"lock_timeout must be a number, got {values['lock_timeout']!r}")
    if logging.getLevelName(str(values['log_level']).upper()) not in range(0, 51):
        raise ValueError(f"Unknown log_level: {values['log_level']!r}")
    for key in ('group_stage_tracks', 'bracket_tracks'):
        tracks = values[key]
        if not isinstance(tracks, list) or not all(isinstance(t, str) for t in tracks):
            raise ValueError(f"{key} must be a list of track names, got {tracks!r}")


def load_settings(path=None, environ=None) -> Settings:
    """Load settings from a YAML file, merging with defaults, then apply environment overrides."""
    environ = os.environ if environ is None else environ
    values = get_default_settings()

    if path and os.path.exists(path):
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Settings file {path} must contain a mapping")
        for key, value in data.items():
            if key not in values:
                logger.warning("Ignoring unknown setting %r in %s", key, path)
                continue
            values[key] = value
    elif path:
        logger.warning("Settings file %s not found, using defaults", path)

    for env_key, (key, cast) in ENV_OVERRIDES.items():
        if env_key in environ:
            try:
                values[key] = cast(environ[env_key])
            except ValueError:
                raise ValueError(f"Invalid value for {env_key}: {environ[env_key]!r}") from None

    _validate(values)
    values['log_level'] = str(values['log_level']).upper()
    return Settings(**values)
