'''Style extractor

Runs the tailwindcss (v3) CLI over the UI source tree. Tailwind scans string
and attribute literals for class tokens and emits rules only for the ones it
finds, so the result is exactly the CSS the UI uses, minified.
'''

import logging
import re
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from .errors import StyleBuildError
from .model import StylesheetArtifact
from .toolchain import ToolError, ToolResult, run_tool

logger = logging.getLogger(__name__)

SKIPPED_DIRS = {'node_modules', '.git'}

STYLE_CLOSE = re.compile(r'</(style)', re.IGNORECASE)


def ui_sources(root: Path, extensions: Sequence[str]) -> List[Path]:
    '''UI files covered by the content globs'''
    suffixes = {f'.{ext.lstrip(".")}' for ext in extensions}
    files = []
    for path in sorted(Path(root).rglob('*')):
        if SKIPPED_DIRS.intersection(path.relative_to(root).parts):
            continue

        if path.is_file() and path.suffix in suffixes:
            files.append(path)

    return files


def content_globs(root: Path, extensions: Sequence[str]) -> List[str]:
    exts = [ext.lstrip('.') for ext in extensions]
    if len(exts) == 1:
        return [f'{Path(root).as_posix()}/**/*.{exts[0]}']

    return [f'{Path(root).as_posix()}/**/*.{{{",".join(exts)}}}']


def guard_style_close(css: str) -> str:
    '''Keep inlined CSS from closing its <style> block'''
    return STYLE_CLOSE.sub(r'<\\/\1', css)


class StyleExtractor:
    '''Builds the stylesheet artifact with the tailwindcss CLI'''

    def __init__(
        self,
        command: Sequence[str],
        cwd: Optional[Path] = None,
        runner: Callable[..., ToolResult] = run_tool,
    ):
        self.command = list(command)
        self.cwd = cwd
        self.runner = runner

    @classmethod
    def from_config(cls, config, runner: Callable[..., ToolResult] = run_tool) -> 'StyleExtractor':
        return cls(config.tailwindcss, cwd = config.base_dir, runner = runner)

    @staticmethod
    def arguments(entry: Path, content: Sequence[str]) -> List[str]:
        return ['-i', str(entry), '--content', ','.join(content), '--minify']

    def extract(self, entry: Path, content: Sequence[str]) -> StylesheetArtifact:
        '''Build minified CSS for the class tokens found by the content globs'''
        if not entry.is_file():
            raise StyleBuildError(f'stylesheet entry not found: {entry}', entry = entry)

        if not content:
            raise StyleBuildError(f'no content globs given for {entry}', entry = entry)

        try:
            result = self.runner(self.command, self.arguments(entry, content), cwd = self.cwd)

        except ToolError as e:
            raise StyleBuildError(f'cannot build {entry}: {e}', entry = entry) from e

        if not result.ok:
            raise StyleBuildError(
                f'CSS build failed for {entry} (exit status {result.returncode})',
                entry = entry,
                stderr = result.stderr,
            )

        css = guard_style_close(result.stdout.strip())
        logger.info('extracted %d chars of CSS from %s', len(css), entry.name)
        return StylesheetArtifact(entry, css)

    def extract_tree(self, entry: Path, root: Path, extensions: Sequence[str]) -> StylesheetArtifact:
        '''Extract CSS for every UI source under root'''
        sources = ui_sources(root, extensions) if Path(root).is_dir() else []
        if not sources:
            raise StyleBuildError(f'no UI sources under {root} ({", ".join(extensions)})', entry = entry)

        logger.debug('scanning %d UI sources under %s', len(sources), root)
        return self.extract(entry, content_globs(root, extensions))
