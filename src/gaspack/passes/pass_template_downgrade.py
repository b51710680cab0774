'''Template Downgrade Pass

Rewrite template literals into plain string literals and `concat` calls, so the
bundle contains no template delimiters for the host's templating layer to
mangle.

    `a`                 ->  "a"
    `a${x}b${y}`        ->  "a".concat((x),"b").concat((y))
    tag`a${x}b`         ->  tag(<template object>,(x))

One `concat` call per substitution applies ToString to each value right after
evaluating it, before the next substitution is evaluated, which is the order
a template literal uses.
'''

import logging
from typing import Dict, List, Tuple

from ..errors import TransformError
from ..js.lexer import Token, TokenKind, TemplatePart, tokenize
from ..js.literals import EscapeError, cook_template, js_string, normalize_raw
from .pipeline import Pass

logger = logging.getLogger(__name__)

# A string-literal expression statement could become a directive
DIRECTIVES = frozenset({'use strict', 'use asm'})


class TemplateDowngradePass(Pass):
    '''Replace template literals with equivalent string concatenation'''

    name = 'template-downgrade'

    def __init__(self):
        self.text = ''
        self.tokens: List[Token] = []
        self.parts: Dict[int, List[int]] = {}
        self.rewritten = 0

    def run(self, text: str) -> str:
        self.text = text
        self.tokens = tokenize(text)
        self.rewritten = 0

        self.parts = {}
        for index, tok in enumerate(self.tokens):
            if tok.kind == TokenKind.TEMPLATE:
                self.parts.setdefault(tok.template_id, []).append(index)

        if not self.parts:
            return text

        result = self._rewrite(0, len(self.tokens))
        logger.debug('downgraded %d template literals', self.rewritten)
        return result

    def _rewrite(self, start: int, end: int) -> str:
        '''Rewrite tokens[start:end], which holds complete template literals only'''
        out = []
        i = start
        while i < end:
            tok = self.tokens[i]
            if tok.kind == TokenKind.TEMPLATE and tok.part in (TemplatePart.FULL, TemplatePart.HEAD):
                text, i = self._rewrite_template(i)
                out.append(text)

            else:
                out.append(tok.text)
                i += 1

        return ''.join(out)

    def _rewrite_template(self, index: int) -> Tuple[str, int]:
        '''Rewrite the template literal starting at index, return text and next index'''
        head = self.tokens[index]
        indices = self.parts[head.template_id]

        chunks = [self.tokens[k] for k in indices]
        exprs = []
        for left, right in zip(indices, indices[1:]):
            expr = self._rewrite(left + 1, right)
            if not any(tok.is_significant for tok in self.tokens[left + 1:right]):
                raise TransformError('empty template substitution', self.text, self.tokens[left].end)

            exprs.append(expr)

        self.rewritten += 1
        if head.tagged:
            text = self._tagged(chunks, exprs)

        else:
            text = self._untagged(chunks, exprs)

        return text, indices[-1] + 1

    def _cook(self, chunk: Token) -> str:
        try:
            return cook_template(chunk.template_chunk)

        except EscapeError as e:
            raise TransformError(f'cannot downgrade template literal: {e}', self.text, chunk.start + 1 + e.index) from e

    def _untagged(self, chunks: List[Token], exprs: List[str]) -> str:
        first = self._cook(chunks[0])

        if not exprs:
            literal = js_string(first)
            if first in DIRECTIVES:
                return f'({literal})'

            return literal

        out = [js_string(first)]
        for expr, chunk in zip(exprs, chunks[1:]):
            cooked = self._cook(chunk)
            if cooked:
                out.append(f'.concat(({expr}),{js_string(cooked)})')

            else:
                out.append(f'.concat(({expr}))')

        return ''.join(out)

    @staticmethod
    def _tagged(chunks: List[Token], exprs: List[str]) -> str:
        '''Call arguments for a tagged template: frozen strings array with raw'''
        cooked = []
        raw = []
        for chunk in chunks:
            try:
                cooked.append(js_string(cook_template(chunk.template_chunk)))

            except EscapeError:
                # Tagged templates allow invalid escapes, the cooked value is undefined
                cooked.append('void 0')

            raw.append(js_string(normalize_raw(chunk.template_chunk)))

        strings = (
            f'Object.freeze(Object.defineProperty([{",".join(cooked)}],"raw",'
            f'{{value:Object.freeze([{",".join(raw)}])}}))'
        )
        args = [strings] + [f'({expr})' for expr in exprs]
        return f'({",".join(args)})'
