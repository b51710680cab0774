'''Bundler adapter

Collapses an entry module and everything it statically imports into a single
text bundle by driving the esbuild CLI.

    browser      -> self-executing IIFE, minified, no exposed globals
    host-script  -> ESM output whose trailing `export {...}` is turned into
                    globals by ModuleStripPass
'''

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from .errors import BundleError
from .model import Bundle, BundleFormat, BundleTarget, SourceUnit
from .toolchain import ToolError, ToolResult, run_tool

logger = logging.getLogger(__name__)


class BundlerAdapter:
    '''Runs esbuild for one source unit at a time'''

    def __init__(
        self,
        command: Sequence[str],
        browser_target: str = 'es2018',
        host_target: str = 'es2019',
        extra_args: Sequence[str] = (),
        cwd: Optional[Path] = None,
        runner: Callable[..., ToolResult] = run_tool,
    ):
        self.command = list(command)
        self.browser_target = browser_target
        self.host_target = host_target
        self.extra_args = list(extra_args)
        self.cwd = cwd
        self.runner = runner

    @classmethod
    def from_config(cls, config, runner: Callable[..., ToolResult] = run_tool) -> 'BundlerAdapter':
        return cls(
            config.esbuild,
            browser_target = config.browser_target,
            host_target = config.host_target,
            extra_args = config.bundler_args,
            cwd = config.base_dir,
            runner = runner,
        )

    @staticmethod
    def output_format(target: BundleTarget) -> BundleFormat:
        return BundleFormat.IIFE if target == BundleTarget.BROWSER else BundleFormat.ESM

    def arguments(self, unit: SourceUnit) -> List[str]:
        '''esbuild arguments for a unit, bundle goes to stdout'''
        args = [
            str(unit.entry),
            '--bundle',
            '--charset=utf8',
            '--legal-comments=none',
            '--log-level=error',
        ]

        if unit.target == BundleTarget.BROWSER:
            args += [
                '--format=iife',
                '--platform=browser',
                '--minify',
                f'--target={self.browser_target}',
                '--define:process.env.NODE_ENV="production"',
            ]

        elif unit.target == BundleTarget.HOST_SCRIPT:
            args += [
                '--format=esm',
                '--platform=neutral',
                '--main-fields=module,main',
                f'--target={self.host_target}',
            ]

        else:
            raise ValueError(f'unknown bundle target: {unit.target!r}')

        return args + self.extra_args

    def bundle(self, unit: SourceUnit) -> Bundle:
        '''Bundle a single unit, raising BundleError on any failure'''
        if not unit.entry.is_file():
            raise BundleError(f'entry module not found: {unit.entry}', entry = unit.entry)

        try:
            result = self.runner(self.command, self.arguments(unit), cwd = self.cwd)

        except ToolError as e:
            raise BundleError(f'cannot bundle {unit.entry}: {e}', entry = unit.entry) from e

        if not result.ok:
            raise BundleError(
                f'bundler failed for {unit.entry} (exit status {result.returncode})',
                entry = unit.entry,
                stderr = result.stderr,
            )

        if not result.stdout.strip():
            raise BundleError(f'bundler produced an empty bundle for {unit.entry}', entry = unit.entry)

        logger.info('bundled %s (%s): %d chars', unit.entry.name, unit.target, len(result.stdout))
        return Bundle(unit, result.stdout, self.output_format(unit.target))

    def bundle_all(self, units: Sequence[SourceUnit]) -> List[Bundle]:
        '''Bundle independent units concurrently

        Results come back in unit order. The first failing unit (in that order)
        is re-raised once every bundler run has finished.
        '''
        if not units:
            return []

        with ThreadPoolExecutor(max_workers = len(units)) as pool:
            futures = [pool.submit(self.bundle, unit) for unit in units]

        return [future.result() for future in futures]
