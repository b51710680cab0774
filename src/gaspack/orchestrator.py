'''Build pipeline orchestration

Runs the stages in dependency order:

    IDLE -> BUNDLING -> TRANSFORMING -> ASSEMBLING -> DONE
                  \\            \\              \\
                   +------------+--------------+--> FAILED

Bundling collapses both entry modules (concurrently) and extracts the CSS,
Transforming runs the rewrite passes, Assembling commits the output set.
The first failure stops the run; nothing is retried, all failures are
deterministic. The output directory is only written during ASSEMBLING, and
that write is all-or-nothing.
'''

import logging
from typing import List, Optional

from .assembler import ArtifactAssembler
from .bundler import BundlerAdapter
from .common.enum import IntEnum2
from .errors import BundleError, StageFailure, StyleBuildError, TransformError, WriteError
from .model import Bundle, BundleTarget, OutputSet, SourceUnit, StylesheetArtifact
from .passes import EscapePass, ModuleStripPass, Pipeline, TemplateDowngradePass
from .styles import StyleExtractor

logger = logging.getLogger(__name__)


class Stage(IntEnum2):
    IDLE            = 0
    BUNDLING        = 1
    TRANSFORMING    = 2
    ASSEMBLING      = 3
    DONE            = 4
    FAILED          = 5


class BuildPipeline:
    '''One run of the source-to-deployment pipeline'''

    def __init__(
        self,
        config,
        bundler: Optional[BundlerAdapter] = None,
        styles: Optional[StyleExtractor] = None,
        assembler: Optional[ArtifactAssembler] = None,
    ):
        self.config = config
        self.bundler = bundler or BundlerAdapter.from_config(config)
        self.styles = styles or StyleExtractor.from_config(config)
        self.assembler = assembler or ArtifactAssembler(config.out_dir, config.shell)

        self.module_strip = ModuleStripPass()
        self.browser_passes = Pipeline([TemplateDowngradePass(), EscapePass()])
        self.host_passes = Pipeline([self.module_strip])

        self.state = Stage.IDLE
        self.history: List[Stage] = [Stage.IDLE]

    def _enter(self, stage: Stage):
        self.state = stage
        self.history.append(stage)
        logger.info('== %s', stage.name.lower())

    def _fail(self, subject, cause: BaseException) -> StageFailure:
        stage = self.state
        self._enter(Stage.FAILED)
        failure = StageFailure(stage.name.lower(), subject, cause)
        logger.error('%s', failure)
        return failure

    def run(self) -> OutputSet:
        '''Run every stage, raising StageFailure on the first failure'''
        if self.state != Stage.IDLE:
            raise RuntimeError(f'pipeline already ran (state {self.state})')

        try:
            browser, host, stylesheet = self._bundle()
            script, host_script = self._transform(browser, host)
            output = self._assemble(script, stylesheet, host_script)

        except StageFailure:
            raise

        except BaseException:
            # Unexpected errors and interrupts still end the run
            if self.state != Stage.FAILED:
                self._enter(Stage.FAILED)

            raise

        self._enter(Stage.DONE)
        return output

    def _bundle(self):
        self._enter(Stage.BUNDLING)
        units = [
            SourceUnit(self.config.ui_entry, BundleTarget.BROWSER),
            SourceUnit(self.config.server_entry, BundleTarget.HOST_SCRIPT),
        ]

        try:
            browser, host = self.bundler.bundle_all(units)

        except BundleError as e:
            raise self._fail(e.entry or 'bundle', e) from e

        try:
            stylesheet = self.styles.extract_tree(
                self.config.style_entry,
                self.config.ui_root,
                self.config.ui_extensions,
            )

        except StyleBuildError as e:
            raise self._fail(e.entry or self.config.style_entry, e) from e

        return browser, host, stylesheet

    def _transform(self, browser: Bundle, host: Bundle):
        self._enter(Stage.TRANSFORMING)

        try:
            script = self.browser_passes.run(browser.text)

        except TransformError as e:
            raise self._fail(browser, e) from e

        try:
            host_script = self.host_passes.run(host.text)

        except TransformError as e:
            raise self._fail(host, e) from e

        return script, host_script

    def _assemble(self, script: str, stylesheet: StylesheetArtifact, host_script: str) -> OutputSet:
        self._enter(Stage.ASSEMBLING)

        try:
            return self.assembler.assemble(script, stylesheet, host_script, self.config.manifest)

        except WriteError as e:
            raise self._fail(self.assembler.out_dir, e) from e


def build(config) -> OutputSet:
    return BuildPipeline(config).run()
