'''JavaScript source handling'''

from .lexer import Token, TokenKind, TemplatePart, Lexer, tokenize, significant
from .literals import EscapeError, cook_template, normalize_raw, js_string

__all__ = [
    'Token',
    'TokenKind',
    'TemplatePart',
    'Lexer',
    'tokenize',
    'significant',
    'EscapeError',
    'cook_template',
    'normalize_raw',
    'js_string',
]
