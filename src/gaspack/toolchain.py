'''External tool runner

The bundler and the CSS engine are node tools driven through their command
lines. Output is captured from stdout, diagnostics from stderr.
'''

import logging
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)


class ToolError(Exception):
    '''The tool could not be started or produced unreadable output'''


@dataclass
class ToolResult:
    argv: List[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def run_tool(command: Sequence[str], args: Sequence[str], cwd: Optional[Path] = None) -> ToolResult:
    '''Run command + args and capture its output as UTF-8 text'''
    argv = [str(part) for part in command] + [str(arg) for arg in args]
    logger.debug('running %s (cwd=%s)', shlex.join(argv), cwd or '.')

    try:
        proc = subprocess.run(argv, cwd = cwd, capture_output = True)

    except FileNotFoundError as e:
        raise ToolError(f'executable not found: {argv[0]}') from e

    except OSError as e:
        raise ToolError(f'cannot run {argv[0]}: {e}') from e

    try:
        stdout = proc.stdout.decode('utf-8')

    except UnicodeDecodeError as e:
        raise ToolError(f'{argv[0]} produced output that is not UTF-8: {e}') from e

    stderr = proc.stderr.decode('utf-8', errors = 'replace')
    logger.debug('%s exited with %d (%d bytes of output)', argv[0], proc.returncode, len(proc.stdout))

    return ToolResult(argv, proc.returncode, stdout, stderr)
