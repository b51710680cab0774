'''Escape Pass

Rewrite substrings that survive JavaScript parsing but are corrupted when the
script is embedded in an HTML document served through the host's template
engine. Each rule is an exact (pattern, replacement) pair whose replacement
evaluates to the same value in the token kinds the rule applies to:

    </script   ->  <\\/script           strings, templates, regexes, comments
    ://        ->  :\\u002F\\u002F      strings, templates, regexes

The URL-scheme rule is limited to literals: in a comment the replacement would
be visible text, and outside literals `://` can only be a `:` followed by a
line comment.

Neither replacement contains its pattern, so the pass is idempotent.
'''

import logging
from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Tuple

from ..js.lexer import Token, TokenKind, tokenize
from .pipeline import Pass

logger = logging.getLogger(__name__)

LITERAL_KINDS = frozenset({TokenKind.STRING, TokenKind.TEMPLATE, TokenKind.REGEX})


@dataclass(frozen = True)
class EscapeRule:
    '''One (pattern, safe-replacement) pair'''
    name: str
    pattern: str
    replacement: str
    kinds: FrozenSet[TokenKind]
    ignore_case: bool = False

    def find(self, text: str, pos: int = 0) -> int:
        '''Offset of the next match at or after pos, -1 if none'''
        if not self.ignore_case:
            return text.find(self.pattern, pos)

        # The first pattern character must not be a letter
        first = self.pattern[0]
        size = len(self.pattern)
        while True:
            pos = text.find(first, pos)
            if pos < 0 or text[pos:pos + size].lower() == self.pattern:
                return pos

            pos += 1

    def render(self, matched: str) -> str:
        '''Replacement for a match, keeping the letter case of the matched text'''
        if not self.ignore_case:
            return self.replacement

        # Pattern and replacement share a suffix, take it from the match
        shared = 0
        while (shared < len(self.pattern)
               and self.pattern[-1 - shared] == self.replacement[-1 - shared]):
            shared += 1

        return self.replacement[:len(self.replacement) - shared] + matched[len(matched) - shared:]

    def apply(self, text: str) -> Tuple[str, int]:
        '''Replace every match, returning the new text and the match count'''
        out = []
        count = 0
        pos = 0
        size = len(self.pattern)

        while True:
            match = self.find(text, pos)
            if match < 0:
                break

            out.append(text[pos:match])
            out.append(self.render(text[match:match + size]))
            pos = match + size
            count += 1

        if not count:
            return text, 0

        out.append(text[pos:])
        return ''.join(out), count


SCRIPT_CLOSE = EscapeRule(
    'script-close',
    '</script',
    '<\\/script',
    LITERAL_KINDS | {TokenKind.COMMENT},
    ignore_case = True,
)

URL_SCHEME = EscapeRule(
    'url-scheme',
    '://',
    ':\\u002F\\u002F',
    LITERAL_KINDS,
)

ESCAPE_RULES = (SCRIPT_CLOSE, URL_SCHEME)


@dataclass
class Violation:
    rule: str
    offset: int

    def __str__(self):
        return f'{self.rule} at offset {self.offset}'


class EscapePass(Pass):
    '''Replace corrosive substrings with equivalent safe encodings'''

    name = 'escape'

    def __init__(self, rules = ESCAPE_RULES):
        self.rules = tuple(rules)
        self.counts = {}

    def run(self, text: str) -> str:
        tokens = tokenize(text)
        self.counts = {rule.name: 0 for rule in self.rules}

        out = []
        prev: Optional[Token] = None
        for tok in tokens:
            piece = tok.text

            for rule in self.rules:
                if tok.kind in rule.kinds:
                    piece, count = rule.apply(piece)
                    self.counts[rule.name] += count

            # `a</script/.test(b)` splits the close tag between an operator and a regex
            if (prev is not None and tok.kind == TokenKind.REGEX
                    and prev.kind == TokenKind.PUNCTUATOR and prev.text.endswith('<')
                    and tok.text[:len('/script')].lower() == '/script'):
                out.append(' ')
                self.counts[SCRIPT_CLOSE.name] = self.counts.get(SCRIPT_CLOSE.name, 0) + 1

            out.append(piece)
            prev = tok

        for name, count in self.counts.items():
            if count:
                logger.debug('escaped %d occurrences (%s)', count, name)

        return ''.join(out)

    def verify(self, text: str) -> List[Violation]:
        '''Corrosive occurrences left in text'''
        violations = []

        pos = SCRIPT_CLOSE.find(text)
        while pos >= 0:
            violations.append(Violation(SCRIPT_CLOSE.name, pos))
            pos = SCRIPT_CLOSE.find(text, pos + 1)

        for tok in tokenize(text):
            if tok.kind in URL_SCHEME.kinds:
                pos = URL_SCHEME.find(tok.text)
                while pos >= 0:
                    violations.append(Violation(URL_SCHEME.name, tok.start + pos))
                    pos = URL_SCHEME.find(tok.text, pos + 1)

        return violations


def escape_script(text: str) -> str:
    return EscapePass().run(text)
