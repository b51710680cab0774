'''
Test the template downgrade pass
'''

import json
import shutil
import subprocess
import unittest

from gaspack.errors import TransformError
from gaspack.passes import TemplateDowngradePass


def downgrade(text):
    return TemplateDowngradePass().run(text)


TEMPLATE_OBJECT = 'Object.freeze(Object.defineProperty([{cooked}],"raw",{{value:Object.freeze([{raw}])}}))'


class TestUntagged(unittest.TestCase):
    '''Untagged templates become string literals and concat calls'''

    def test_without_substitutions(self):
        self.assertEqual(downgrade('x = `hello`;'), 'x = "hello";')

    def test_substitutions(self):
        self.assertEqual(downgrade('`a${x}b${y}`'), '"a".concat((x),"b").concat((y))')

    def test_empty_chunks_omitted(self):
        self.assertEqual(downgrade('`${x}`'), '"".concat((x))')
        self.assertEqual(downgrade('`${x}${y}!`'), '"".concat((x)).concat((y),"!")')

    def test_comma_expression_is_parenthesized(self):
        self.assertEqual(downgrade('`${a, b}`'), '"".concat((a, b))')

    def test_nested(self):
        self.assertEqual(downgrade('`a${`b${c}`}`'), '"a".concat(("b".concat((c))))')

    def test_object_literal_in_substitution(self):
        self.assertEqual(downgrade('`${ {a: 1}.a }`'), '"".concat(( {a: 1}.a ))')

    def test_quotes_and_line_breaks(self):
        self.assertEqual(downgrade('`say "hi"\nnext`'), '"say \\"hi\\"\\nnext"')
        self.assertEqual(downgrade('`crlf\r\nline`'), '"crlf\\nline"')

    def test_escapes(self):
        self.assertEqual(downgrade('`tab\\there`'), '"tab\\there"')
        self.assertEqual(downgrade('`a\\`b\\${c}`'), '"a`b${c}"')
        self.assertEqual(downgrade('`\\u{1F600}`'), '"\U0001F600"')
        self.assertEqual(downgrade('`\\u2028`'), '"\\u2028"')

    def test_directive_prologue(self):
        self.assertEqual(downgrade('`use strict`;'), '("use strict");')

    def test_surrounding_code_untouched(self):
        source = 'const a = 1 / 2, re = /`/g; // `comment`\nf(`v${a}`);'
        self.assertEqual(
            downgrade(source),
            'const a = 1 / 2, re = /`/g; // `comment`\nf("v".concat((a)));'
        )

    def test_keyword_property_before_division(self):
        source = 'var a={return:8},y=a.return/2;var s="</script>";var u=`${y}`;'
        self.assertEqual(
            downgrade(source),
            'var a={return:8},y=a.return/2;var s="</script>";var u="".concat((y));'
        )

    def test_after_block_in_case_clause(self):
        self.assertEqual(
            downgrade('switch(1){case 1:{let a=1}`t${x}`;}'),
            'switch(1){case 1:{let a=1}"t".concat((x));}'
        )

    def test_no_templates(self):
        source = 'var s = "${not a template}"; /* `x` */'
        self.assertEqual(downgrade(source), source)

    def test_idempotent(self):
        once = downgrade('x = `a${b}` + tag`c`;')
        self.assertEqual(downgrade(once), once)
        self.assertNotIn('`', once)

    def test_rewritten_count(self):
        downgrader = TemplateDowngradePass()
        downgrader.run('`a` + `b${`c`}`')
        self.assertEqual(downgrader.rewritten, 3)


class TestTagged(unittest.TestCase):
    '''Tagged templates become calls with a frozen strings array'''

    def test_tagged(self):
        strings = TEMPLATE_OBJECT.format(cooked = '"a","b"', raw = '"a","b"')
        self.assertEqual(downgrade('tag`a${x}b`'), f'tag({strings},(x))')

    def test_member_tag(self):
        strings = TEMPLATE_OBJECT.format(cooked = '"\\n"', raw = '"\\\\n"')
        self.assertEqual(downgrade('String.raw`\\n`'), f'String.raw({strings})')

    def test_invalid_escape_cooks_to_undefined(self):
        strings = TEMPLATE_OBJECT.format(cooked = 'void 0', raw = '"\\\\unicode"')
        self.assertEqual(downgrade('latex`\\unicode`'), f'latex({strings})')


class TestErrors(unittest.TestCase):

    def test_invalid_escape_in_untagged(self):
        with self.assertRaises(TransformError) as ctx:
            downgrade('x = 1;\ny = `bad \\unicode`;')

        self.assertEqual(ctx.exception.line, 2)

    def test_legacy_octal(self):
        with self.assertRaises(TransformError):
            downgrade('`\\01`')

    def test_empty_substitution(self):
        with self.assertRaises(TransformError):
            downgrade('`${}`')

    def test_unterminated(self):
        with self.assertRaises(TransformError):
            downgrade('x = `abc')


PRELUDE = r'''
var log = [];
var o = { toString: function () { log.push("o"); return "O"; } };
var n = 42, s = "str", u;
function tag(strings) {
    var values = Array.prototype.slice.call(arguments, 1);
    return [strings.slice(), strings.raw.slice(), Object.isFrozen(strings), Object.isFrozen(strings.raw), values];
}
'''

RUNTIME_CASES = [
    r'`plain`',
    r'`a${n}b${s}c`',
    r'`${u}|${null}|${[1, 2]}|${{}}`',
    r'`${o}${(log.push("x"), 1)}${o}`',
    '`multi\nline\\ttab`',
    r'`\u{1F600} \x41 \u00e9 \0`',
    r'`nested ${`inner ${n + 1}`} done`',
    r'tag`a${n}b${s}`',
    r'tag`\unicode and \n`',
    r'String.raw`C:\path\${n}`',
]


@unittest.skipUnless(shutil.which('node'), 'node is not installed')
class TestRuntimeEquivalence(unittest.TestCase):
    '''Downgraded expressions evaluate to the same values under node'''

    def evaluate(self, expressions):
        script = PRELUDE + 'var out = [' + ',\n'.join(expressions) + '];\nconsole.log(JSON.stringify([out, log]));\n'
        proc = subprocess.run(['node', '-e', script], capture_output = True, text = True, timeout = 60)
        self.assertEqual(proc.returncode, 0, proc.stderr)
        return json.loads(proc.stdout)

    def test_equivalence(self):
        original = self.evaluate(RUNTIME_CASES)
        downgraded = self.evaluate([downgrade(case) for case in RUNTIME_CASES])

        for case, expected, actual in zip(RUNTIME_CASES, original[0], downgraded[0]):
            with self.subTest(case = case):
                self.assertEqual(actual, expected)

        self.assertEqual(downgraded[1], original[1])


if __name__ == '__main__':
    unittest.main()
