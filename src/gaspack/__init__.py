"""
gaspack - build a browser UI and a server script into the flat file set a
managed script host accepts (index.html, js.html, Code.js, appsscript.json)
"""

__version__ = "0.1.0"

from .errors import (
    GasPackError,
    BundleError,
    StyleBuildError,
    TransformError,
    WriteError,
    StageFailure,
    ConfigError,
)
from .model import BundleTarget, BundleFormat, SourceUnit, Bundle, StylesheetArtifact, OutputSet
from .orchestrator import Stage, BuildPipeline, build

__all__ = [
    '__version__',
    'GasPackError',
    'BundleError',
    'StyleBuildError',
    'TransformError',
    'WriteError',
    'StageFailure',
    'ConfigError',
    'BundleTarget',
    'BundleFormat',
    'SourceUnit',
    'Bundle',
    'StylesheetArtifact',
    'OutputSet',
    'Stage',
    'BuildPipeline',
    'build',
]
