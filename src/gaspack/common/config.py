'''Build configuration supporting a JSON5 file and command-line overrides'''

import argparse
import copy
import logging
import shlex
from pathlib import Path
from typing import Any, Dict, List, Optional

import json5

from ..errors import ConfigError

logger = logging.getLogger(__name__)

__all__ = ['CONFIG_FILENAME', 'Config', 'init_config']

CONFIG_FILENAME = 'gaspack.json5'


class Config:
    '''Build configuration

    Lookup order: command-line overrides, config file values, defaults.
    Relative paths resolve against the directory holding the config file.
    '''

    # Default configuration values
    _defaults = {
        'ui_entry': 'src/client/main.jsx',
        'ui_root': 'src/client',
        'ui_extensions': ['html', 'js', 'jsx', 'ts', 'tsx'],
        'style_entry': 'src/client/index.css',
        'shell': 'src/client/index.html',
        'server_entry': 'src/server/main.js',
        'manifest': 'appsscript.json',
        'out_dir': 'dist',
        'esbuild': ['npx', '--no-install', 'esbuild'],
        'tailwindcss': ['npx', '--no-install', 'tailwindcss'],
        'browser_target': 'es2018',
        'host_target': 'es2019',
        'bundler_args': [],
    }

    def __init__(self, base_dir: Optional[Path] = None):
        self._config = copy.deepcopy(self._defaults)
        self._cli_overrides = {}
        self.base_dir = Path(base_dir) if base_dir is not None else Path.cwd()
        self.source: Optional[Path] = None

    def load_file(self, filepath: str | Path) -> bool:
        '''Load configuration from a JSON5 file, False if it does not exist'''
        filepath = Path(filepath)
        if not filepath.exists():
            return False

        try:
            with open(filepath, 'r', encoding = 'utf-8') as f:
                data = json5.loads(f.read())

        except (OSError, ValueError) as e:
            raise ConfigError(f'cannot load config from {filepath}: {e}') from e

        if not isinstance(data, dict):
            raise ConfigError(f'{filepath}: top level must be an object')

        for key in data:
            if key not in self._defaults:
                logger.warning('%s: unknown config key %r', filepath, key)

        self._config.update(data)
        self.base_dir = filepath.resolve().parent
        self.source = filepath
        return True

    def load_defaults(self, directory: Optional[Path] = None):
        '''Load gaspack.json5 from a directory (the working directory by default)'''
        directory = Path(directory) if directory is not None else Path.cwd()
        self.base_dir = directory
        self.load_file(directory / CONFIG_FILENAME)

    def parse_args(self, args: list[str] = None):
        '''Parse command-line arguments and override config'''
        parser = argparse.ArgumentParser(
            description = 'gaspack configuration',
            add_help = False
        )

        parser.add_argument(
            '--config',
            type = str,
            help = 'Path to config file'
        )

        parser.add_argument(
            '--out-dir',
            type = str,
            help = 'Output directory'
        )

        parser.add_argument(
            '--esbuild',
            type = str,
            help = 'esbuild command line'
        )

        parser.add_argument(
            '--tailwindcss',
            type = str,
            help = 'tailwindcss command line'
        )

        # Parse known args, ignore unknown
        parsed, _ = parser.parse_known_args(args)

        if parsed.config:
            if not self.load_file(parsed.config):
                raise ConfigError(f'config file not found: {parsed.config}')

        # Apply command-line overrides
        if parsed.out_dir:
            self._cli_overrides['out_dir'] = str(Path(parsed.out_dir).resolve())

        if parsed.esbuild:
            self._cli_overrides['esbuild'] = parsed.esbuild

        if parsed.tailwindcss:
            self._cli_overrides['tailwindcss'] = parsed.tailwindcss

    def get(self, key: str, default: Any = None) -> Any:
        '''Get configuration value'''
        if key in self._cli_overrides:
            return self._cli_overrides[key]

        if key in self._config:
            return self._config[key]

        return default

    def path(self, key: str) -> Optional[Path]:
        '''Configured path, resolved against base_dir'''
        value = self.get(key)
        if value is None:
            return None

        path = Path(value)
        if not path.is_absolute():
            path = self.base_dir / path

        return path

    def command(self, key: str) -> List[str]:
        '''Configured tool command as an argument list'''
        value = self.get(key)
        if isinstance(value, str):
            return shlex.split(value)

        return [str(v) for v in value]

    @property
    def ui_entry(self) -> Path:
        return self.path('ui_entry')

    @property
    def ui_root(self) -> Path:
        return self.path('ui_root')

    @property
    def ui_extensions(self) -> List[str]:
        return [ext.lstrip('.') for ext in self.get('ui_extensions')]

    @property
    def style_entry(self) -> Path:
        return self.path('style_entry')

    @property
    def shell(self) -> Optional[Path]:
        return self.path('shell')

    @property
    def server_entry(self) -> Path:
        return self.path('server_entry')

    @property
    def manifest(self) -> Path:
        return self.path('manifest')

    @property
    def out_dir(self) -> Path:
        return self.path('out_dir')

    @property
    def esbuild(self) -> List[str]:
        return self.command('esbuild')

    @property
    def tailwindcss(self) -> List[str]:
        return self.command('tailwindcss')

    @property
    def browser_target(self) -> str:
        return self.get('browser_target')

    @property
    def host_target(self) -> str:
        return self.get('host_target')

    @property
    def bundler_args(self) -> List[str]:
        return [str(arg) for arg in self.get('bundler_args')]

    def as_dict(self) -> Dict[str, Any]:
        '''Effective configuration, for display'''
        return {key: self.get(key) for key in self._defaults}


def has_config_argument(args: Optional[List[str]]) -> bool:
    return any(arg == '--config' or arg.startswith('--config=') for arg in args or [])


def init_config(args: list[str] = None) -> Config:
    '''Initialize configuration system

    An explicit --config replaces ./gaspack.json5 instead of layering over it.
    '''
    config = Config()
    if not has_config_argument(args):
        config.load_defaults()

    if args is not None:
        config.parse_args(args)

    return config
