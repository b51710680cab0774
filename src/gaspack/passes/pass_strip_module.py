'''Module Strip Pass

The host runs every script file as flat global code: there is no module
system, and a function is reachable only as a global binding. This pass removes
the import/export syntax left in a bundled host script and keeps every exported
binding as a top-level declaration:

    export function f() {}          ->  function f() {}
    export const x = 1;             ->  const x = 1;
    export default function f() {}  ->  function f() {}
    export { f, g as apiGet };      ->  function apiGet() { return g.apply(this, arguments); }

Only module syntax at the top level is touched. Forms that would leave a
dangling binding (imports with bindings, re-exports, import.meta, import())
are errors, not silent removals.
'''

import logging
from typing import List, Optional, Set, Tuple

from ..errors import TransformError
from ..js.lexer import Token, TokenKind, tokenize
from .pipeline import Pass

logger = logging.getLogger(__name__)

DECLARATION_KEYWORDS = frozenset({'function', 'class', 'const', 'let', 'var', 'async'})

STATEMENT_BOUNDARIES = frozenset({';', '}', '{'})


class ModuleStripPass(Pass):
    '''Turn module exports into plain global declarations'''

    name = 'module-strip'

    def __init__(self):
        self.text = ''
        self.tokens: List[Token] = []
        self.functions: Set[str] = set()
        self.exported_names: List[str] = []

    def run(self, text: str) -> str:
        self.text = text
        self.tokens = tokenize(text)
        self.exported_names = []

        if not any(tok.kind == TokenKind.IDENTIFIER and tok.text in ('import', 'export') for tok in self.tokens):
            return text

        self.functions = self._top_level_functions()

        out = []
        i = 0
        while i < len(self.tokens):
            tok = self.tokens[i]

            if tok.kind == TokenKind.IDENTIFIER and not self._is_property(i):
                if tok.text == 'import':
                    replacement, i = self._strip_import(i)
                    out.append(replacement)
                    continue

                if tok.text == 'export' and tok.depth == 0:
                    replacement, i = self._strip_export(i)
                    out.append(replacement)
                    continue

            out.append(tok.text)
            i += 1

        if self.exported_names:
            logger.info('exposed %d globals: %s', len(self.exported_names), ', '.join(self.exported_names))

        return ''.join(out)

    # -- token navigation ------------------------------------------------

    def error(self, message: str, tok: Token) -> TransformError:
        return TransformError(message, self.text, tok.start)

    def _next(self, i: int) -> int:
        '''Index of the next significant token after i, len(tokens) at the end'''
        i += 1
        while i < len(self.tokens) and not self.tokens[i].is_significant:
            i += 1

        return i

    def _prev(self, i: int) -> Optional[Token]:
        i -= 1
        while i >= 0 and not self.tokens[i].is_significant:
            i -= 1

        return self.tokens[i] if i >= 0 else None

    def _at(self, i: int) -> Optional[Token]:
        return self.tokens[i] if i < len(self.tokens) else None

    def _is_property(self, i: int) -> bool:
        '''`x.import`, `x?.export`: a property name, not a keyword'''
        prev = self._prev(i)
        return prev is not None and prev.kind == TokenKind.PUNCTUATOR and prev.text in ('.', '?.')

    def _is_method_head(self, j: int) -> bool:
        '''Whether the parameter list opening at j is followed by a method body'''
        opening = self.tokens[j]
        k = self._next(j)
        while k < len(self.tokens):
            tok = self.tokens[k]
            if tok.kind == TokenKind.PUNCTUATOR and tok.text == ')' and tok.depth == opening.depth:
                return self._expect_text(self._next(k), '{')

            k = self._next(k)

        return False

    def _expect_text(self, i: int, *texts: str) -> bool:
        tok = self._at(i)
        return tok is not None and tok.text in texts

    def _end_of_statement(self, i: int) -> int:
        '''Index after an optional `;` following token i'''
        j = self._next(i)
        if self._expect_text(j, ';'):
            return j + 1

        return i + 1

    def _starts_statement(self, before: Optional[Token], tok: Token) -> bool:
        if before is None or before.text in STATEMENT_BOUNDARIES | {'export', 'default'}:
            return True

        # A line break ends the previous statement unless it ended in an operator
        if '\n' in self.text[before.end:tok.start]:
            return before.kind != TokenKind.PUNCTUATOR or before.text in (')', ']')

        return False

    def _top_level_functions(self) -> Set[str]:
        '''Names of function declarations at the top level'''
        names = set()
        sig = [tok for tok in self.tokens if tok.is_significant]

        for pos, tok in enumerate(sig):
            if tok.depth != 0 or tok.kind != TokenKind.IDENTIFIER or tok.text != 'function':
                continue

            lead = tok
            before = sig[pos - 1] if pos > 0 else None
            if before is not None and before.text == 'async':
                lead = before
                before = sig[pos - 2] if pos > 1 else None

            if not self._starts_statement(before, lead):
                continue

            rest = sig[pos + 1:pos + 3]
            if rest and rest[0].text == '*':
                rest = rest[1:]

            if rest and rest[0].kind == TokenKind.IDENTIFIER:
                names.add(rest[0].text)

        return names

    # -- import ----------------------------------------------------------

    def _strip_import(self, i: int) -> Tuple[str, int]:
        tok = self.tokens[i]
        j = self._next(i)
        following = self._at(j)

        if following is not None and following.text == '(':
            if self._is_method_head(j):
                return tok.text, i + 1

            raise self.error('dynamic import() has no module loader in a host script', tok)

        if following is not None and following.text == '.':
            raise self.error('import.meta is not available in a host script', tok)

        if tok.depth != 0:
            # `{import: x}` uses it as a property key
            if following is not None and following.text == ':':
                return tok.text, i + 1

            raise self.error('unexpected import', tok)

        if following is not None and following.kind == TokenKind.STRING:
            logger.warning('dropping side-effect import %s', following.text)
            return '', self._end_of_statement(j)

        # Find the module specifier for the message
        k = j
        while k < len(self.tokens) and not (self.tokens[k].kind == TokenKind.STRING and self.tokens[k].depth == 0):
            k += 1

        source = self.tokens[k].text if k < len(self.tokens) else '?'
        raise self.error(f'import from {source} is unresolved; bundle it or remove it', tok)

    # -- export ----------------------------------------------------------

    def _strip_export(self, i: int) -> Tuple[str, int]:
        tok = self.tokens[i]
        j = self._next(i)
        following = self._at(j)

        if following is None:
            raise self.error('incomplete export', tok)

        if following.kind == TokenKind.IDENTIFIER and following.text in DECLARATION_KEYWORDS:
            self._record_declaration(j)
            return '', j

        if following.text == 'default':
            return self._strip_default_export(i, j)

        if following.text == '{':
            return self._strip_export_list(i, j)

        if following.text == '*':
            raise self.error('re-export from another module is unresolved', tok)

        raise self.error(f'unsupported export form: export {following.text}', tok)

    def _declared_name(self, j: int) -> Optional[str]:
        '''Binding name of the declaration starting at token j'''
        k = j
        if self.tokens[k].text == 'async':
            k = self._next(k)

        k = self._next(k)
        if self._expect_text(k, '*'):
            k = self._next(k)

        name = self._at(k)
        if name is None or name.kind != TokenKind.IDENTIFIER or name.text in ('extends',):
            return None

        return name.text

    def _record_declaration(self, j: int):
        name = self._declared_name(j)
        if name is not None:
            self.exported_names.append(name)

    def _strip_default_export(self, i: int, j: int) -> Tuple[str, int]:
        k = self._next(j)
        decl = self._at(k)

        if decl is not None and decl.text in ('function', 'class', 'async'):
            is_async_function = decl.text != 'async' or self._expect_text(self._next(k), 'function')
            name = self._declared_name(k) if is_async_function else None
            if name is not None:
                self.exported_names.append(name)
                return '', k

        raise self.error('anonymous default export has no global name; export a named declaration', self.tokens[i])

    def _strip_export_list(self, i: int, j: int) -> Tuple[str, int]:
        specifiers, close = self._parse_specifiers(j)

        after = self._next(close)
        if self._expect_text(after, 'from'):
            raise self.error('re-export from another module is unresolved', self.tokens[i])

        aliases = []
        for local, exported in specifiers:
            if exported == 'default':
                continue

            self.exported_names.append(exported)
            if exported != local:
                aliases.append(self._alias(local, exported, self.tokens[i]))

        return '\n'.join(aliases), self._end_of_statement(close)

    def _parse_specifiers(self, j: int) -> Tuple[List[Tuple[str, str]], int]:
        '''Parse `{ a, b as c }` starting at the `{` token, return pairs and the `}` index'''
        specifiers = []
        k = self._next(j)

        while True:
            tok = self._at(k)
            if tok is None:
                raise self.error('unterminated export list', self.tokens[j])

            if tok.text == '}':
                return specifiers, k

            if tok.kind != TokenKind.IDENTIFIER:
                raise self.error(f'unsupported export name {tok.text}', tok)

            local = exported = tok.text
            k = self._next(k)

            if self._expect_text(k, 'as'):
                k = self._next(k)
                name = self._at(k)
                if name is None or name.kind != TokenKind.IDENTIFIER:
                    raise self.error('unsupported export name', name or tok)

                exported = name.text
                k = self._next(k)

            specifiers.append((local, exported))

            if self._expect_text(k, ','):
                k = self._next(k)

            elif not self._expect_text(k, '}'):
                raise self.error('malformed export list', self._at(k) or tok)

    def _alias(self, local: str, exported: str, tok: Token) -> str:
        '''Global declaration exposing local under the exported name'''
        if exported in self.functions:
            raise self.error(f'export name {exported} collides with a top-level function', tok)

        if local in self.functions:
            return f'function {exported}() {{ return {local}.apply(this, arguments); }}'

        return f'var {exported} = {local};'


def strip_module_syntax(text: str) -> str:
    return ModuleStripPass().run(text)
