'''JavaScript Lexer - lossless tokenizer for bundled scripts

Splits source text into tokens whose texts concatenate back to the input
exactly. The rewrite passes only touch the tokens they care about and copy
everything else through, so untouched code is byte-identical.

The lexer tracks just enough context to resolve the two ambiguities of the
lexical grammar that matter for rewriting:

- `/` starts a regular expression or is a division operator
- `}` closes a block or resumes a template literal

Template literals are split the way the grammar does it:

    `abc`          FULL
    `abc${         HEAD
    }abc${         MIDDLE
    }abc`          TAIL

All parts of one literal share a template_id.
'''

from dataclasses import dataclass
from typing import List, Optional

from ..common.enum import IntEnum2
from ..errors import TransformError


class TokenKind(IntEnum2):
    WHITESPACE  = 0
    COMMENT     = 1
    STRING      = 2
    TEMPLATE    = 3
    REGEX       = 4
    NUMBER      = 5
    IDENTIFIER  = 6
    PUNCTUATOR  = 7


class TemplatePart(IntEnum2):
    FULL    = 0
    HEAD    = 1
    MIDDLE  = 2
    TAIL    = 3


@dataclass
class Token:
    kind: TokenKind
    text: str
    start: int
    depth: int = 0                          # bracket/substitution nesting at token start
    part: Optional[TemplatePart] = None
    template_id: int = -1
    tagged: bool = False                    # template literal preceded by a tag expression

    @property
    def end(self) -> int:
        return self.start + len(self.text)

    @property
    def is_significant(self) -> bool:
        return self.kind not in (TokenKind.WHITESPACE, TokenKind.COMMENT)

    @property
    def template_chunk(self) -> str:
        '''Raw characters of a template part, without its delimiters'''
        if self.part in (TemplatePart.FULL, TemplatePart.TAIL):
            return self.text[1:-1]

        return self.text[1:-2]

    def __repr__(self):
        return f'Token({self.kind}, {self.text!r}, {self.start})'


LINE_TERMINATORS = '\n\r\u2028\u2029'

WHITESPACE_CHARS = ' \t\v\f\u00a0\ufeff' + LINE_TERMINATORS

# Keywords after which an expression (and so a regex literal) may start
EXPRESSION_KEYWORDS = frozenset({
    'await', 'case', 'delete', 'do', 'else', 'extends', 'in', 'instanceof',
    'new', 'of', 'return', 'throw', 'typeof', 'void', 'yield',
})

# Keywords whose parenthesized head is followed by a statement
PAREN_STATEMENT_KEYWORDS = frozenset({'if', 'while', 'for', 'with'})

# Tokens after which `{` opens a block rather than an object literal
BLOCK_OPENERS = frozenset({')', ';', '{', '}', '=>', 'else', 'do', 'try', 'finally'})

PUNCTUATORS = sorted([
    '>>>=', '...', '===', '!==', '**=', '<<=', '>>=', '>>>', '&&=', '||=', '??=',
    '=>', '==', '!=', '<=', '>=', '&&', '||', '??', '?.', '++', '--',
    '+=', '-=', '*=', '%=', '&=', '|=', '^=', '**', '<<', '>>',
    '{', '}', '(', ')', '[', ']', ';', ',', '<', '>', '+', '-', '*', '%',
    '&', '|', '^', '!', '~', '?', ':', '=', '.', '@',
], key = len, reverse = True)

CLOSERS = {')': '(', ']': '[', '}': '{'}


def is_identifier_start(ch: str) -> bool:
    if ch.isascii():
        return ch.isalpha() or ch in '$_\\'

    return ch.isidentifier()


def is_identifier_part(ch: str) -> bool:
    if ch.isascii():
        return ch.isalnum() or ch in '$_\\'

    return ch in '\u200c\u200d' or ('a' + ch).isidentifier()


class _Bracket:
    '''Open bracket on the nesting stack'''
    __slots__ = ('char', 'template_id', 'regex_after', 'is_block')

    def __init__(self, char: str, template_id: int = -1, regex_after: bool = False, is_block: bool = False):
        self.char = char
        self.template_id = template_id
        self.regex_after = regex_after     # `(` of if/while/for/with
        self.is_block = is_block           # `{` of a block statement


class Lexer:
    '''Tokenizes JavaScript source text'''

    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.tokens: List[Token] = []
        self.stack: List[_Bracket] = []
        self.regex_allowed = True
        self.prev: Optional[Token] = None
        self.before_prev: Optional[Token] = None
        self.statement_colon = False       # last `:` ended a case clause or a label
        self.case_depth: Optional[int] = None
        self.case_ternaries = 0
        self.next_template_id = 0

    def error(self, message: str, offset: Optional[int] = None) -> TransformError:
        return TransformError(message, self.text, self.pos if offset is None else offset)

    def tokenize(self) -> List[Token]:
        text = self.text

        if text.startswith('#!'):
            self._scan_line_comment()

        while self.pos < len(text):
            ch = text[self.pos]

            if ch in WHITESPACE_CHARS or ch.isspace():
                self._scan_whitespace()

            elif ch == '/' and text.startswith('//', self.pos):
                self._scan_line_comment()

            elif ch == '/' and text.startswith('/*', self.pos):
                self._scan_block_comment()

            elif ch == '/' and self.regex_allowed:
                self._scan_regex()

            elif ch in '\'"':
                self._scan_string(ch)

            elif ch == '`':
                self._scan_template(self.pos, opening = True)

            elif ch == '}' and self.stack and self.stack[-1].char == '${':
                self._scan_template(self.pos, opening = False)

            elif ch.isdigit() or (ch == '.' and text[self.pos + 1:self.pos + 2].isdigit()):
                self._scan_number()

            elif ch == '#' or is_identifier_start(ch):
                self._scan_identifier()

            else:
                self._scan_punctuator()

        if self.stack:
            opener = self.stack[-1]
            if opener.char == '${':
                raise self.error('unterminated template literal')

            raise self.error(f'unbalanced {opener.char!r}')

        return self.tokens

    # -- token emission --------------------------------------------------

    def _emit(self, kind: TokenKind, start: int, **extra) -> Token:
        depth = extra.pop('depth', len(self.stack))
        token = Token(kind, self.text[start:self.pos], start, depth, **extra)
        self.tokens.append(token)

        if token.is_significant:
            self.before_prev = self.prev
            self.prev = token

        return token

    # -- scanners --------------------------------------------------------

    def _scan_whitespace(self):
        start = self.pos
        text = self.text
        while self.pos < len(text) and (text[self.pos] in WHITESPACE_CHARS or text[self.pos].isspace()):
            self.pos += 1

        self._emit(TokenKind.WHITESPACE, start)

    def _scan_line_comment(self):
        start = self.pos
        text = self.text
        while self.pos < len(text) and text[self.pos] not in LINE_TERMINATORS:
            self.pos += 1

        self._emit(TokenKind.COMMENT, start)

    def _scan_block_comment(self):
        start = self.pos
        end = self.text.find('*/', self.pos + 2)
        if end < 0:
            raise self.error('unterminated comment', start)

        self.pos = end + 2
        self._emit(TokenKind.COMMENT, start)

    def _skip_escape(self):
        '''Skip a backslash and the character it escapes'''
        self.pos += 1
        if self.text.startswith('\r\n', self.pos):
            self.pos += 2

        else:
            self.pos += 1

    def _scan_string(self, quote: str):
        start = self.pos
        text = self.text
        self.pos += 1

        while True:
            if self.pos >= len(text):
                raise self.error('unterminated string literal', start)

            ch = text[self.pos]
            if ch == '\\':
                self._skip_escape()

            elif ch == quote:
                self.pos += 1
                break

            elif ch in '\n\r':
                raise self.error('unterminated string literal', start)

            else:
                self.pos += 1

        self._emit(TokenKind.STRING, start)
        self.regex_allowed = False

    def _scan_template(self, start: int, opening: bool):
        '''Scan one template part, starting at ` or at the } closing a substitution'''
        text = self.text

        if opening:
            template_id = self.next_template_id
            self.next_template_id += 1
            tagged = self._is_tag(self.prev)

        else:
            template_id = self.stack.pop().template_id
            tagged = False

        self.pos = start + 1
        while True:
            if self.pos >= len(text):
                raise self.error('unterminated template literal', start)

            ch = text[self.pos]
            if ch == '\\':
                self._skip_escape()

            elif ch == '`':
                self.pos += 1
                part = TemplatePart.FULL if opening else TemplatePart.TAIL
                self._emit(TokenKind.TEMPLATE, start, part = part, template_id = template_id, tagged = tagged)
                self.regex_allowed = False
                return

            elif ch == '$' and text.startswith('${', self.pos):
                self.pos += 2
                part = TemplatePart.HEAD if opening else TemplatePart.MIDDLE
                self._emit(TokenKind.TEMPLATE, start, part = part, template_id = template_id, tagged = tagged)
                self.stack.append(_Bracket('${', template_id))
                self.regex_allowed = True
                return

            else:
                self.pos += 1

    def _scan_regex(self):
        start = self.pos
        text = self.text
        in_class = False
        self.pos += 1

        while True:
            if self.pos >= len(text) or text[self.pos] in LINE_TERMINATORS:
                raise self.error('unterminated regular expression', start)

            ch = text[self.pos]
            if ch == '\\':
                self.pos += 2
                continue

            if ch == '[':
                in_class = True

            elif ch == ']':
                in_class = False

            elif ch == '/' and not in_class:
                self.pos += 1
                break

            self.pos += 1

        # Flags
        while self.pos < len(text) and is_identifier_part(text[self.pos]):
            self.pos += 1

        self._emit(TokenKind.REGEX, start)
        self.regex_allowed = False

    def _scan_number(self):
        start = self.pos
        text = self.text
        while self.pos < len(text) and (text[self.pos].isalnum() or text[self.pos] in '._'):
            self.pos += 1

        self._emit(TokenKind.NUMBER, start)
        self.regex_allowed = False

    def _scan_identifier(self):
        start = self.pos
        text = self.text
        if text[self.pos] == '#':
            self.pos += 1

        while self.pos < len(text) and is_identifier_part(text[self.pos]):
            if text[self.pos] == '\\':
                self._scan_unicode_escape()

            else:
                self.pos += 1

        if self.pos == start or text[start:self.pos] == '#':
            raise self.error(f'unexpected character {text[start]!r}', start)

        token = self._emit(TokenKind.IDENTIFIER, start)
        if self._prev_is_property():
            self.regex_allowed = False
            return

        self.regex_allowed = token.text in EXPRESSION_KEYWORDS
        if token.text == 'case':
            self.case_depth = len(self.stack)
            self.case_ternaries = 0

    def _scan_unicode_escape(self):
        '''\\uXXXX or \\u{X...} inside an identifier'''
        text = self.text
        if not text.startswith('\\u', self.pos):
            raise self.error('invalid escape in identifier')

        if text.startswith('\\u{', self.pos):
            end = text.find('}', self.pos)
            if end < 0:
                raise self.error('invalid escape in identifier')

            self.pos = end + 1

        else:
            self.pos += 6

    def _scan_punctuator(self):
        start = self.pos
        text = self.text

        for punct in PUNCTUATORS:
            if text.startswith(punct, self.pos):
                # `?.5` is a conditional followed by a number
                if punct == '?.' and text[self.pos + 2:self.pos + 3].isdigit():
                    continue

                break

        else:
            # `/` and `/=` only reach here as division
            if text.startswith('/=', self.pos):
                punct = '/='

            elif text[self.pos] == '/':
                punct = '/'

            else:
                raise self.error(f'unexpected character {text[self.pos]!r}')

        prev = self.prev
        self.pos += len(punct)

        if punct in ('(', '[', '{'):
            bracket = _Bracket(punct)
            if punct == '(':
                bracket.regex_after = (
                    prev is not None
                    and prev.kind == TokenKind.IDENTIFIER
                    and prev.text in PAREN_STATEMENT_KEYWORDS
                    and not self._prev_is_property()
                )

            elif punct == '{':
                bracket.is_block = self._opens_block(prev)

            self._emit(TokenKind.PUNCTUATOR, start)
            self.stack.append(bracket)
            self.regex_allowed = True
            return

        if punct in CLOSERS:
            if not self.stack or self.stack[-1].char != CLOSERS[punct]:
                raise self.error(f'unbalanced {punct!r}', start)

            bracket = self.stack.pop()
            self._emit(TokenKind.PUNCTUATOR, start)

            if punct == ')':
                self.regex_allowed = bracket.regex_after

            elif punct == '}':
                self.regex_allowed = bracket.is_block

            else:
                self.regex_allowed = False

            return

        if punct == '?' and self.case_depth == len(self.stack):
            self.case_ternaries += 1

        elif punct == ':':
            self.statement_colon = self._ends_clause()

        self._emit(TokenKind.PUNCTUATOR, start)
        self.regex_allowed = punct not in ('++', '--')

    # -- context ---------------------------------------------------------

    def _opens_block(self, prev: Optional[Token]) -> bool:
        if prev is None:
            return True

        # `case 1: {`, `label: {`
        if prev.kind == TokenKind.PUNCTUATOR and prev.text == ':':
            return self.statement_colon

        # `a.do {` names a property, not a keyword
        if prev.kind == TokenKind.IDENTIFIER and self._prev_is_property():
            return True

        if prev.kind in (TokenKind.PUNCTUATOR, TokenKind.IDENTIFIER) and prev.text in BLOCK_OPENERS:
            return True

        # `{` where an expression cannot start continues a statement (class bodies, etc.)
        if prev.kind == TokenKind.IDENTIFIER and prev.text not in EXPRESSION_KEYWORDS:
            return True

        return False

    def _prev_is_property(self) -> bool:
        '''Whether the previous token is a property name after `.` or `?.`'''
        before = self.before_prev
        return (
            self.prev is not None
            and self.prev.kind == TokenKind.IDENTIFIER
            and before is not None
            and before.kind == TokenKind.PUNCTUATOR
            and before.text in ('.', '?.')
        )

    def _ends_clause(self) -> bool:
        '''Whether a `:` about to be scanned ends a case clause or a label

        Colons of object literals and conditionals are part of an expression.
        '''
        depth = len(self.stack)
        if self.stack and not (self.stack[-1].char == '{' and self.stack[-1].is_block):
            return False

        if self.case_depth == depth:
            if self.case_ternaries:
                self.case_ternaries -= 1
                return False

            self.case_depth = None
            return True

        prev = self.prev
        if prev is None or prev.kind != TokenKind.IDENTIFIER or self._prev_is_property():
            return False

        if prev.text == 'default':
            return True

        # A label starts a statement
        before = self.before_prev
        return before is None or (before.kind == TokenKind.PUNCTUATOR and before.text in (';', '{', '}', ':'))

    def _is_tag(self, prev: Optional[Token]) -> bool:
        '''Whether a template literal after prev is a tagged template

        A template is tagged when it follows a complete member or call
        expression, i.e. exactly where an operand cannot start.
        '''
        if prev is None or self.regex_allowed:
            return False

        if prev.kind == TokenKind.IDENTIFIER:
            return True

        if prev.kind == TokenKind.PUNCTUATOR:
            return prev.text in (')', ']', '}')

        return prev.kind == TokenKind.TEMPLATE


def tokenize(text: str) -> List[Token]:
    '''Tokenize JavaScript text, raising TransformError if it cannot be scanned'''
    return Lexer(text).tokenize()


def significant(tokens: List[Token]) -> List[Token]:
    return [tok for tok in tokens if tok.is_significant]
