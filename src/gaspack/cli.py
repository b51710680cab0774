#!/usr/bin/env python3
"""
gaspack command line interface

Builds the deployment output set, or runs a single rewrite pass on a file for
inspection.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .common.config import init_config
from .errors import GasPackError, StageFailure
from .model import OUTPUT_NAMES
from .orchestrator import BuildPipeline
from .passes import EscapePass, ModuleStripPass, TemplateDowngradePass


def setup_logging(verbose: bool = False, quiet: bool = False):
    level = logging.INFO
    if verbose:
        level = logging.DEBUG

    elif quiet:
        level = logging.WARNING

    logging.basicConfig(
        level = level,
        format = '%(levelname)s %(name)s: %(message)s',
        stream = sys.stderr,
    )


def run_build(argv: List[str]):
    """Run the whole pipeline"""
    config = init_config(argv)
    output = BuildPipeline(config).run()

    print(f'build complete: {output.directory}')
    for name in OUTPUT_NAMES:
        print(f'  {name:<16} {len(output.files[name]):>8} bytes')


def read_source(filename: str) -> str:
    try:
        return Path(filename).read_text(encoding = 'utf-8')

    except (OSError, UnicodeDecodeError) as e:
        raise GasPackError(f'cannot read {filename}: {e}') from e


def run_pass(pass_obj, filename: str):
    """Run one pass on a file and print the result"""
    result = pass_obj.run(read_source(filename))
    sys.stdout.write(result)


def run_escape(filename: str, check: bool = False) -> int:
    escape = EscapePass()

    if check:
        violations = escape.verify(read_source(filename))
        for violation in violations:
            print(f'{filename}: {violation}')

        return 1 if violations else 0

    run_pass(escape, filename)
    return 0


def show_info(argv: List[str]):
    """Print the version and the resolved configuration"""
    config = init_config(argv)

    print(f'gaspack {__version__}')
    print(f'config file: {config.source or "(none)"}')
    print(f'base directory: {config.base_dir}')
    print(json.dumps(config.as_dict(), indent = 2))


def add_config_arguments(parser: argparse.ArgumentParser):
    parser.add_argument('--config', help = 'Path to config file (default: ./gaspack.json5)')
    parser.add_argument('--out-dir', help = 'Output directory')
    parser.add_argument('--esbuild', help = 'esbuild command line')
    parser.add_argument('--tailwindcss', help = 'tailwindcss command line')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog = 'gaspack',
        description = 'Build a browser UI and a server script into a flat Apps Script deployment'
    )

    parser.add_argument('--version', action = 'version', version = f'%(prog)s {__version__}')

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument('-v', '--verbose', action = 'store_true', help = 'Log tool command lines and pass details')
    verbosity.add_argument('-q', '--quiet', action = 'store_true', help = 'Log warnings and errors only')

    subparsers = parser.add_subparsers(dest = 'command', help = 'Available commands')

    # build
    build_parser = subparsers.add_parser('build', help = 'Build the output set')
    add_config_arguments(build_parser)

    # single passes
    downgrade_parser = subparsers.add_parser('downgrade', help = 'Downgrade template literals in a script')
    downgrade_parser.add_argument('file', help = 'Script file')

    strip_parser = subparsers.add_parser('strip', help = 'Strip module syntax from a host script')
    strip_parser.add_argument('file', help = 'Script file')

    escape_parser = subparsers.add_parser('escape', help = 'Escape embedding hazards in a script')
    escape_parser.add_argument('file', help = 'Script file')
    escape_parser.add_argument('--check', action = 'store_true', help = 'Report remaining hazards instead of rewriting')

    # info
    info_parser = subparsers.add_parser('info', help = 'Show version and resolved configuration')
    add_config_arguments(info_parser)

    return parser


def config_argv(args) -> List[str]:
    '''Config overrides in the form Config.parse_args accepts'''
    argv = []
    for option in ('config', 'out_dir', 'esbuild', 'tailwindcss'):
        value = getattr(args, option, None)
        if value:
            argv += [f'--{option.replace("_", "-")}', value]

    return argv


def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.quiet)

    status = 0
    try:
        if args.command == 'build':
            run_build(config_argv(args))

        elif args.command == 'downgrade':
            run_pass(TemplateDowngradePass(), args.file)

        elif args.command == 'strip':
            run_pass(ModuleStripPass(), args.file)

        elif args.command == 'escape':
            status = run_escape(args.file, args.check)

        elif args.command == 'info':
            show_info(config_argv(args))

        else:
            parser.print_help()

    except StageFailure as e:
        print(e, file = sys.stderr)
        sys.exit(1)

    except GasPackError as e:
        print(f'error: {e}', file = sys.stderr)
        sys.exit(1)

    if status:
        sys.exit(status)


if __name__ == '__main__':
    main()
