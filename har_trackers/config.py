"""Defaults for the HAR tracker parser.

Set your parameters here, or override them with a JSON config file
(``--config``) and command line flags.
"""
import json
import os
from dataclasses import dataclass, fields
from typing import Optional

from har_trackers.models import ConfigurationError

# DNS
DNS_LIFETIME = 10.0  # Seconds allowed for one SOA/PTR lookup
SOA_CACHE_FILE = os.path.join('data', 'cache', 'soa_cache.pickle')
SOA_CACHE_MAXSIZE = 100000
SOA_CACHE_TTL = 7 * 86400  # A week, zone administrators rarely change
SOA_CACHE_SAVE_EVERY = 100

# Public Suffix List
PSL_URL = "https://publicsuffix.org/list/public_suffix_list.dat"
PSL_CACHE_FILE = os.path.join('data', 'public_suffix_list.dat')
PSL_MAX_AGE_DAYS = 7

# Image probing
IMAGE_CONNECT_TIMEOUT = 10.0
IMAGE_READ_TIMEOUT = 10.0
IMAGE_MAX_HEADER_BYTES = 64 * 1024

# Progress
PROGRESS_INTERVAL = 300  # Show the status every 5 minutes

# Layout of the working directory
LOGS_SUBDIR = 'logs'
RESULTS_SUBDIR = 'results'
LOG_FILENAME = 'log_parser.txt'
HAR_EXTENSION = '.har'


def load_config(config_file):
    """Load configuration from a JSON file."""
    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"cannot read the config file {config_file}: {e}") from e


@dataclass
class ParserConfig:
    directory: str
    ghostery_file: Optional[str] = None
    debug: bool = False
    show_trackers: bool = False
    psl_file: Optional[str] = None
    use_cache: bool = True
    soa_cache_file: str = SOA_CACHE_FILE
    dns_lifetime: float = DNS_LIFETIME
    image_connect_timeout: float = IMAGE_CONNECT_TIMEOUT
    image_read_timeout: float = IMAGE_READ_TIMEOUT
    progress_interval: float = PROGRESS_INTERVAL

    def __post_init__(self):
        # Values may come from a JSON file, check them before any lookup uses them
        for name in ('dns_lifetime', 'image_connect_timeout', 'image_read_timeout', 'progress_interval'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive number of seconds, got {value!r}")
            setattr(self, name, float(value))
        for name in ('debug', 'show_trackers', 'use_cache'):
            if not isinstance(getattr(self, name), bool):
                raise ConfigurationError(f"{name} must be true or false, got {getattr(self, name)!r}")
        for name in ('ghostery_file', 'psl_file', 'soa_cache_file'):
            value = getattr(self, name)
            if value is not None and not isinstance(value, str):
                raise ConfigurationError(f"{name} must be a path, got {value!r}")

    @property
    def logs_dir(self):
        return os.path.join(self.directory, LOGS_SUBDIR)

    @property
    def results_dir(self):
        return os.path.join(self.directory, RESULTS_SUBDIR)

    @property
    def log_file(self):
        return os.path.join(self.logs_dir, LOG_FILENAME)

    @classmethod
    def from_sources(cls, directory, config_file=None, **overrides):
        """Build a config from the defaults, an optional JSON file and explicit overrides.

        Overrides set to None are ignored so unset command line flags keep the
        file or default value.
        """
        known = {f.name for f in fields(cls)}
        values = {}

        if config_file:
            file_values = load_config(config_file)
            unknown = set(file_values) - known
            if unknown:
                raise ConfigurationError(f"unknown keys in {config_file}: {', '.join(sorted(unknown))}")
            values.update(file_values)

        values.update({key: value for key, value in overrides.items() if value is not None})
        values['directory'] = directory
        return cls(**values)
