'''Artifact Assembler

Composes the processed scripts, the stylesheet and the shell document into the
fixed output set and commits it all-or-nothing:

1. every artifact is written to a staging directory next to its target
2. each existing target is moved aside into a backup directory, then the
   staged file is renamed into place
3. on any failure (including an interrupt) committed files are rolled back
   from the backups and new files are removed

Files in the output directory that are not part of the output set are never
touched.
'''

import json
import logging
import os
import re
import shutil
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .errors import WriteError
from .model import (
    HOST_SCRIPT_NAME,
    MANIFEST_NAME,
    OUTPUT_NAMES,
    SCRIPT_WRAPPER_NAME,
    SHELL_NAME,
    OutputSet,
    StylesheetArtifact,
)

logger = logging.getLogger(__name__)

# Host-side include of the script wrapper; include() is defined by the server script
INCLUDE_DIRECTIVE = "<?!= include('%s'); ?>" % Path(SCRIPT_WRAPPER_NAME).stem

DEFAULT_SHELL = '''<!DOCTYPE html>
<html>
  <head>
    <base target="_top">
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
  </head>
  <body>
    <div id="root"></div>
  </body>
</html>
'''

MODULE_SCRIPT_TAG = re.compile(
    r'<script\b[^>]*\btype\s*=\s*["\']?module["\']?[^>]*>\s*</script\s*>', re.IGNORECASE
)
STYLESHEET_LINK = re.compile(r'<link\b[^>]*\brel\s*=\s*["\']?stylesheet["\']?[^>]*>', re.IGNORECASE)
REMOTE_HREF = re.compile(r'\bhref\s*=\s*["\']?(?:https?:)?//', re.IGNORECASE)
HEAD_CLOSE = re.compile(r'</head\s*>', re.IGNORECASE)
BODY_CLOSE = re.compile(r'</body\s*>', re.IGNORECASE)
SCRIPT_CLOSE = re.compile(r'</script', re.IGNORECASE)


def render_shell(shell: str, css: str) -> str:
    '''Shell document with the CSS inlined and the script wrapper included'''
    style = f'<style>{css}</style>'

    # Local stylesheet links and module script tags point at files the host does not serve
    shell = STYLESHEET_LINK.sub(lambda m: m.group(0) if REMOTE_HREF.search(m.group(0)) else '', shell)

    if HEAD_CLOSE.search(shell):
        shell = HEAD_CLOSE.sub(lambda m: f'{style}\n  {m.group(0)}', shell, count = 1)

    else:
        shell = style + '\n' + shell

    shell, replaced = MODULE_SCRIPT_TAG.subn(lambda m: INCLUDE_DIRECTIVE, shell, count = 1)
    shell = MODULE_SCRIPT_TAG.sub('', shell)

    if not replaced:
        if BODY_CLOSE.search(shell):
            shell = BODY_CLOSE.sub(lambda m: f'{INCLUDE_DIRECTIVE}\n  {m.group(0)}', shell, count = 1)

        else:
            shell = shell + '\n' + INCLUDE_DIRECTIVE + '\n'

    return shell


def render_script_wrapper(script: str) -> str:
    return f'<script>\n{script}\n</script>\n'


class ArtifactAssembler:
    '''Writes the output set to a directory, all four artifacts or none'''

    def __init__(self, out_dir: Path, shell_path: Optional[Path] = None):
        self.out_dir = Path(out_dir)
        self.shell_path = shell_path

    # -- rendering -------------------------------------------------------

    def load_shell(self) -> str:
        if self.shell_path is None or not self.shell_path.is_file():
            logger.info('no shell document found, using the built-in shell')
            return DEFAULT_SHELL

        try:
            return self.shell_path.read_text(encoding = 'utf-8')

        except (OSError, UnicodeDecodeError) as e:
            raise WriteError(f'cannot read shell document {self.shell_path}: {e}') from e

    @staticmethod
    def load_manifest(manifest_path: Path) -> bytes:
        '''Manifest bytes, verbatim, after checking they hold a JSON object'''
        try:
            data = Path(manifest_path).read_bytes()

        except OSError as e:
            raise WriteError(f'cannot read manifest {manifest_path}: {e}') from e

        try:
            manifest = json.loads(data.decode('utf-8'))

        except ValueError as e:
            raise WriteError(f'manifest {manifest_path} is not valid JSON: {e}') from e

        if not isinstance(manifest, dict):
            raise WriteError(f'manifest {manifest_path} must hold a JSON object')

        return data

    def render(self, script: str, stylesheet: StylesheetArtifact, host_script: str, manifest_path: Path) -> OutputSet:
        wrapper = render_script_wrapper(script)
        closes = len(SCRIPT_CLOSE.findall(wrapper))
        if closes != 1:
            raise WriteError(f'{SCRIPT_WRAPPER_NAME} would contain {closes - 1} unescaped </script sequences')

        files = {
            SHELL_NAME: render_shell(self.load_shell(), stylesheet.css).encode('utf-8'),
            SCRIPT_WRAPPER_NAME: wrapper.encode('utf-8'),
            HOST_SCRIPT_NAME: host_script.encode('utf-8'),
            MANIFEST_NAME: self.load_manifest(manifest_path),
        }

        return OutputSet(self.out_dir, files)

    # -- writing ---------------------------------------------------------

    def assemble(self, script: str, stylesheet: StylesheetArtifact, host_script: str, manifest_path: Path) -> OutputSet:
        '''Render and commit the output set'''
        output = self.render(script, stylesheet, host_script, manifest_path)
        self.write(output)
        return output

    def write(self, output: OutputSet):
        '''Commit an output set all-or-nothing'''
        if not output.is_complete():
            missing = sorted(set(OUTPUT_NAMES) - set(output.files))
            raise WriteError(f'incomplete output set, missing {", ".join(missing)}')

        created = not self.out_dir.exists()
        staging = backup = None

        try:
            try:
                self.out_dir.mkdir(parents = True, exist_ok = True)
                staging = Path(tempfile.mkdtemp(prefix = '.gaspack-staging-', dir = self.out_dir))
                backup = Path(tempfile.mkdtemp(prefix = '.gaspack-backup-', dir = self.out_dir))

            except OSError as e:
                raise WriteError(f'cannot prepare output directory {self.out_dir}: {e}') from e

            self._stage(output.files, staging)
            self._commit(output.files, staging, backup)

        except BaseException:
            self._discard(staging, backup)
            if created and self.out_dir.is_dir() and not any(self.out_dir.iterdir()):
                self.out_dir.rmdir()

            raise

        self._discard(staging, backup)

        for name in OUTPUT_NAMES:
            logger.info('wrote %s (%d bytes)', self.out_dir / name, len(output.files[name]))

    @staticmethod
    def _discard(*directories: Optional[Path]):
        for directory in directories:
            if directory is not None:
                shutil.rmtree(directory, ignore_errors = True)

    def _stage(self, files: Dict[str, bytes], staging: Path):
        try:
            for name in OUTPUT_NAMES:
                with open(staging / name, 'wb') as f:
                    f.write(files[name])
                    f.flush()
                    os.fsync(f.fileno())

        except OSError as e:
            raise WriteError(f'cannot write {name} to {staging}: {e}') from e

    def _commit(self, files: Dict[str, bytes], staging: Path, backup: Path):
        # (name, had_previous) for every target the loop has reached
        committed: List[Tuple[str, bool]] = []

        try:
            for name in OUTPUT_NAMES:
                target = self.out_dir / name
                had_previous = target.exists()
                committed.append((name, had_previous))
                if had_previous:
                    os.replace(target, backup / name)

                os.replace(staging / name, target)

        except BaseException as e:
            self._rollback(committed, backup)
            if isinstance(e, OSError):
                raise WriteError(f'cannot commit {name} to {self.out_dir}: {e}') from e

            raise

    def _rollback(self, committed: List[Tuple[str, bool]], backup: Path):
        for name, had_previous in reversed(committed):
            target = self.out_dir / name
            try:
                if had_previous:
                    # the move aside may not have happened
                    if (backup / name).exists():
                        os.replace(backup / name, target)

                elif target.exists():
                    target.unlink()

            except OSError as e:
                logger.error('rollback of %s failed: %s', target, e)
