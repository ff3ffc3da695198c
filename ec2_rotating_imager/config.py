import os
from dataclasses import dataclass, fields
from typing import Mapping, Optional

LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


class ConfigError(Exception):
    """Raised when configuration is invalid."""
    pass


@dataclass
class Config:
    copies: int = 3
    region: str = 'us-west-2'
    tag_key: str = 'Backup'
    tag_value: str = 'true'
    no_reboot: bool = True
    dry_run: bool = False
    log_level: str = 'INFO'

    def __post_init__(self):
        if isinstance(self.copies, bool) or not isinstance(self.copies, int):
            raise ConfigError(f"copies must be an integer, got {self.copies!r}")
        if self.copies < 1:
            raise ConfigError(f"copies must be at least 1, got {self.copies}")
        if not self.region:
            raise ConfigError("region must not be empty")
        if not self.tag_key:
            raise ConfigError("tag_key must not be empty")
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got '{self.log_level}'")

    @property
    def tag_filters(self):
        return [{'Name': f'tag:{self.tag_key}', 'Values': [self.tag_value]}]


# field name -> environment variable
ENVIRONMENT = {
    'copies': 'COPIES',
    'region': 'AWS_REGION',
    'tag_key': 'BACKUP_TAG_KEY',
    'tag_value': 'BACKUP_TAG_VALUE',
    'no_reboot': 'NO_REBOOT',
    'dry_run': 'DRY_RUN',
    'log_level': 'LOG_LEVEL',
}


def _parse_int(name, value):
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}")


def _parse_bool(value):
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == 'true'


def load_config(environ: Optional[Mapping[str, str]] = None,
                overrides: Optional[Mapping] = None) -> Config:
    """Build a Config from environment variables.

    ``overrides`` (typically the Lambda event) take precedence over the
    environment; keys are Config field names. Unknown keys are ignored.
    """
    if environ is None:
        environ = os.environ

    raw = {}
    for name, var in ENVIRONMENT.items():
        if environ.get(var) not in (None, ''):
            raw[name] = environ[var]
    known = {f.name for f in fields(Config)}
    for name, value in (overrides or {}).items():
        if name in known and value is not None:
            raw[name] = value

    if 'copies' in raw:
        raw['copies'] = _parse_int('copies', raw['copies'])
    for name in ('no_reboot', 'dry_run'):
        if name in raw:
            raw[name] = _parse_bool(raw[name])
    if 'log_level' in raw:
        raw['log_level'] = str(raw['log_level']).upper()

    return Config(**raw)
