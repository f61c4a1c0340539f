# 2026-10-14  local_npm_core/config.py

import argparse
import os
import re
from dataclasses import dataclass
from typing import Optional


VERSION = '1.0.0'


def _env_flag(name: str) -> bool:
    return os.getenv(name, '') not in ('', '0', 'no', 'off', 'false')


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw else default


@dataclass
class Settings(object):
    port:               int = 5080
    remote:             str = 'https://registry.npmjs.org'
    remote_skim:        str = 'https://replicate.npmjs.com'
    secondary_mirror:   str = 'http://127.0.0.1:16984/skimdb'
    url:                str = 'http://127.0.0.1:5080'
    directory:          str = './'
    log_level:          str = 'error'
    replicate:          bool = True
    connect_timeout:    float = 10.0
    read_timeout:       float = 60.0
    # Replication handshake retry: the delay starts at `backoff_base_ms` and
    # is multiplied by `backoff_factor` after each consecutive failure.
    backoff_base_ms:    float = 1000.0
    backoff_factor:     float = 1.1
    cache_size_warning: int = (2 ** 30) * 10  # 10 GiB

    @staticmethod
    def from_env() -> 'Settings':
        """Defaults, overridden by `LOCAL_NPM_*` environment variables."""
        defaults = Settings()
        return Settings(
            port=int(os.getenv('LOCAL_NPM_PORT', defaults.port)),
            remote=os.getenv('LOCAL_NPM_REMOTE', defaults.remote),
            remote_skim=os.getenv(
                'LOCAL_NPM_REMOTE_SKIM', defaults.remote_skim
            ),
            secondary_mirror=os.getenv(
                'LOCAL_NPM_SECONDARY_MIRROR', defaults.secondary_mirror
            ),
            url=os.getenv('LOCAL_NPM_URL', defaults.url),
            directory=os.getenv('LOCAL_NPM_DIRECTORY', defaults.directory),
            log_level=os.getenv('LOCAL_NPM_LOG_LEVEL', defaults.log_level),
            replicate=not _env_flag('LOCAL_NPM_NO_REPLICATE'),
            connect_timeout=_env_float(
                'LOCAL_NPM_CONNECT_TIMEOUT', defaults.connect_timeout
            ),
            read_timeout=_env_float(
                'LOCAL_NPM_READ_TIMEOUT', defaults.read_timeout
            ),
        )

    @staticmethod
    def from_args(argv: Optional[list[str]] = None) -> 'Settings':
        """Environment settings, overridden by command line flags."""
        env = Settings.from_env()
        parser = argparse.ArgumentParser(
            prog='local-npm',
            description='Local caching proxy for the npm registry.'
        )
        parser.add_argument(
            '-p', '--port', type=int, default=env.port,
            help='The port to run local-npm on'
        )
        parser.add_argument(
            '-l', '--log-level', default=env.log_level,
            help='error, warn, info, sync, hit, miss or debug'
        )
        parser.add_argument(
            '-r', '--remote', default=env.remote,
            help='The registry to fall back to for metadata and tarballs'
        )
        parser.add_argument(
            '-rs', '--remote-skim', default=env.remote_skim,
            help='The remote change feed to replicate metadata from'
        )
        parser.add_argument(
            '-s', '--secondary-mirror', default=env.secondary_mirror,
            help='CouchDB-compatible database that receives the replication'
        )
        parser.add_argument(
            '-u', '--url', default=env.url,
            help='The access url that local-npm will be hosted on'
        )
        parser.add_argument(
            '-d', '--directory', default=env.directory,
            help='Directory to store data'
        )
        parser.add_argument(
            '--no-replicate', dest='replicate', action='store_false',
            default=env.replicate,
            help='Do not replicate the change feed into the secondary mirror'
        )
        args = parser.parse_args(argv)
        return Settings(
            port=args.port,
            remote=args.remote,
            remote_skim=args.remote_skim,
            secondary_mirror=args.secondary_mirror,
            url=args.url,
            directory=args.directory,
            log_level=args.log_level,
            replicate=args.replicate,
            connect_timeout=env.connect_timeout,
            read_timeout=env.read_timeout,
        )

    @property
    def url_base(self) -> str:
        """
        The advertised base URL, with the default port swapped for the
        configured one.
            url='http://127.0.0.1:5080', port=8080 -> 'http://127.0.0.1:8080'
        """
        return re.sub(r':5080$', f":{self.port}", self.url.rstrip('/'))

    @property
    def timeout(self) -> tuple[float, float]:
        return (self.connect_timeout, self.read_timeout)
