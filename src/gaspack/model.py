'''Pipeline data model - source units, bundles and the output set'''

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict

from .common.enum import StrEnum2


class BundleTarget(StrEnum2):
    '''Runtime a source unit is bundled for'''
    BROWSER = 'browser'
    HOST_SCRIPT = 'host-script'


class BundleFormat(StrEnum2):
    IIFE = 'iife'       # self-executing browser unit
    ESM = 'esm'         # module output, flattened to globals by the module strip pass


# Fixed artifact names expected by the host
SHELL_NAME = 'index.html'
SCRIPT_WRAPPER_NAME = 'js.html'
HOST_SCRIPT_NAME = 'Code.js'
MANIFEST_NAME = 'appsscript.json'

OUTPUT_NAMES = (SHELL_NAME, SCRIPT_WRAPPER_NAME, HOST_SCRIPT_NAME, MANIFEST_NAME)


@dataclass(frozen = True)
class SourceUnit:
    '''Entry file plus its transitive import graph'''
    entry: Path
    target: BundleTarget

    def __str__(self):
        return f'{self.target}:{self.entry}'


@dataclass
class Bundle:
    '''A source unit collapsed into a single text blob'''
    unit: SourceUnit
    text: str
    format: BundleFormat

    @property
    def target(self) -> BundleTarget:
        return self.unit.target

    def __str__(self):
        return f'{self.unit.target} bundle of {self.unit.entry}'


@dataclass
class StylesheetArtifact:
    '''Minified CSS scoped to the classes used by the UI sources'''
    entry: Path
    css: str


@dataclass
class OutputSet:
    '''The four artifacts written to the output directory'''
    directory: Path
    files: Dict[str, bytes] = field(default_factory = dict)

    def is_complete(self) -> bool:
        return set(self.files) == set(OUTPUT_NAMES)
