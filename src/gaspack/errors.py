'''Error taxonomy

Every stage raises one of these and lets it propagate to the orchestrator.
'''

from typing import Optional


class GasPackError(Exception):
    '''Base class for all pipeline errors'''


class BundleError(GasPackError):
    '''Unresolved import, source syntax error or bundler failure'''

    def __init__(self, message: str, entry = None, stderr: str = ''):
        super().__init__(message)
        self.entry = entry
        self.stderr = stderr

    def __str__(self):
        text = super().__str__()
        if self.stderr:
            text = f'{text}\n{self.stderr.rstrip()}'
        return text


class StyleBuildError(GasPackError):
    '''Malformed stylesheet or CSS engine failure'''

    def __init__(self, message: str, entry = None, stderr: str = ''):
        super().__init__(message)
        self.entry = entry
        self.stderr = stderr

    def __str__(self):
        text = super().__str__()
        if self.stderr:
            text = f'{text}\n{self.stderr.rstrip()}'
        return text


class TransformError(GasPackError):
    '''A rewrite pass received input it cannot parse'''

    def __init__(self, message: str, text: Optional[str] = None, offset: Optional[int] = None):
        super().__init__(message)
        self.offset = offset
        self.line = None
        self.column = None

        if text is not None and offset is not None:
            self.line, self.column = line_column(text, offset)

    def __str__(self):
        text = super().__str__()
        if self.line is not None:
            text = f'{text} (line {self.line}, column {self.column})'
        return text


class WriteError(GasPackError):
    '''Filesystem failure while assembling the output set'''


class StageFailure(GasPackError):
    '''A stage failure as reported by the orchestrator'''

    def __init__(self, stage, subject, cause: BaseException):
        super().__init__(f'build failed in {stage} ({subject}): {cause}')
        self.stage = stage
        self.subject = subject
        self.cause = cause


def line_column(text: str, offset: int):
    '''1-based line and column of an offset'''
    line = text.count('\n', 0, offset) + 1
    column = offset - (text.rfind('\n', 0, offset) + 1) + 1
    return line, column


class ConfigError(GasPackError):
    '''Unreadable or malformed configuration file'''
