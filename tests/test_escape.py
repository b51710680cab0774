'''
Test the escape pass
'''

import json
import shutil
import subprocess
import unittest
from html.parser import HTMLParser

from gaspack.assembler import render_script_wrapper
from gaspack.js.lexer import TokenKind
from gaspack.passes import ESCAPE_RULES, EscapePass, EscapeRule, escape_script
from gaspack.passes.pass_escape import SCRIPT_CLOSE, URL_SCHEME


class TestEscapeRule(unittest.TestCase):

    def test_apply(self):
        self.assertEqual(URL_SCHEME.apply('a://b://c'), ('a:\\u002F\\u002Fb:\\u002F\\u002Fc', 2))
        self.assertEqual(URL_SCHEME.apply('nothing here'), ('nothing here', 0))

    def test_case_preserved(self):
        cases = [
            ('</script>', '<\\/script>'),
            ('</SCRIPT>', '<\\/SCRIPT>'),
            ('</ScRiPt >', '<\\/ScRiPt >'),
        ]

        for text, expected in cases:
            with self.subTest(text = text):
                self.assertEqual(SCRIPT_CLOSE.apply(text)[0], expected)

    def test_custom_rule(self):
        rule = EscapeRule('html-comment', '<!--', '\\x3C!--', frozenset({TokenKind.STRING}))
        escape = EscapePass([rule])

        self.assertEqual(escape.run('s = "<!--"; // <!--'), 's = "\\x3C!--"; // <!--')
        self.assertEqual(escape.counts, {'html-comment': 1})

    def test_default_rules(self):
        self.assertEqual([rule.name for rule in ESCAPE_RULES], ['script-close', 'url-scheme'])


class TestScriptClose(unittest.TestCase):

    def test_token_kinds(self):
        cases = [
            ('s = "</script>";', 's = "<\\/script>";'),
            ("s = '</Script>';", "s = '<\\/Script>';"),
            ('s = `</script>${x}</script>`;', 's = `<\\/script>${x}<\\/script>`;'),
            ('// </script> in a comment', '// <\\/script> in a comment'),
            ('/* </script> */', '/* <\\/script> */'),
            ('r = /a<\\/script|<\\/style/;', 'r = /a<\\/script|<\\/style/;'),
        ]

        for source, expected in cases:
            with self.subTest(source = source):
                self.assertEqual(escape_script(source), expected)

    def test_split_between_operator_and_regex(self):
        escape = EscapePass()

        self.assertEqual(escape.run('a</script/.test(b)'), 'a< /script/.test(b)')
        self.assertEqual(escape.counts['script-close'], 1)

    def test_counts(self):
        escape = EscapePass()
        escape.run('x = ["</script>", "</script>"]; // </script>')
        self.assertEqual(escape.counts, {'script-close': 3, 'url-scheme': 0})


class TestUrlScheme(unittest.TestCase):

    def test_literals(self):
        cases = [
            ('u = "https://example.com";', 'u = "https:\\u002F\\u002Fexample.com";'),
            ("u = 'ftp://x';", "u = 'ftp:\\u002F\\u002Fx';"),
            ('u = `http://${host}/`;', 'u = `http:\\u002F\\u002F${host}/`;'),
        ]

        for source, expected in cases:
            with self.subTest(source = source):
                self.assertEqual(escape_script(source), expected)

    def test_comments_untouched(self):
        source = '// docs: https://example.com\nf(); /* see http://x */'
        self.assertEqual(escape_script(source), source)


class TestEscapePass(unittest.TestCase):

    def test_no_hazards(self):
        source = 'var a = 1 / 2; function f(x) { return x < y; }'
        self.assertEqual(escape_script(source), source)

    def test_idempotent(self):
        source = 's = "</script>"; u = "https://a"; // </SCRIPT>\nt = a</script/.test(b);'
        once = escape_script(source)
        self.assertEqual(escape_script(once), once)

    def test_verify(self):
        escape = EscapePass()
        source = 's = "</script>"; u = "https://a"; // http://b'

        violations = escape.verify(source)
        self.assertEqual([(v.rule, v.offset) for v in violations], [('script-close', 5), ('url-scheme', 27)])
        self.assertEqual(escape.verify(escape.run(source)), [])

EMBEDDED_SOURCE = (
    'var out = [];\n'
    'out.push("</script><p>injected</p>");\n'
    "out.push('</SCRIPT>' + `</Script ${1 + 1}>`);\n"
    'out.push("https://example.com/a");\n'
    'out.push(2 </script/.test("x/script") ? 1 : 0);\n'
    '// a comment mentioning </script>\n'
    'JSON.stringify(out)'
)


class ScriptCollector(HTMLParser):
    '''Collects the data of every script element in a document'''

    def __init__(self):
        super().__init__()
        self.scripts = []
        self.closed = 0
        self.in_script = False

    def handle_starttag(self, tag, attrs):
        if tag == 'script':
            self.in_script = True
            self.scripts.append('')

    def handle_endtag(self, tag):
        if tag == 'script':
            self.in_script = False
            self.closed += 1

    def handle_data(self, data):
        if self.in_script:
            self.scripts[-1] += data


class TestEmbedding(unittest.TestCase):
    '''Escaped scripts survive being parsed out of a script element'''

    def extract(self, script):
        collector = ScriptCollector()
        collector.feed(render_script_wrapper(script))
        collector.close()
        return collector

    def test_script_ends_at_wrapper_close_tag(self):
        escaped = escape_script(EMBEDDED_SOURCE)
        collector = self.extract(escaped)

        self.assertEqual(collector.closed, 1)
        self.assertEqual(collector.scripts, ['\n' + escaped + '\n'])

    def test_unescaped_script_ends_early(self):
        collector = self.extract(EMBEDDED_SOURCE)
        self.assertNotEqual(collector.scripts[0], '\n' + EMBEDDED_SOURCE + '\n')

    @unittest.skipUnless(shutil.which('node'), 'node is not installed')
    def test_extracted_script_evaluates_like_source(self):
        [extracted] = self.extract(escape_script(EMBEDDED_SOURCE)).scripts

        def evaluate(script):
            result = subprocess.run(
                ['node', '-p', script],
                capture_output = True, text = True, check = True, timeout = 30,
            )
            return json.loads(result.stdout)

        self.assertEqual(evaluate(extracted), evaluate(EMBEDDED_SOURCE))
        self.assertEqual(evaluate(EMBEDDED_SOURCE)[3], 0)


if __name__ == '__main__':
    unittest.main()
