'''
Test the style extractor
'''

import shutil
import tempfile
import unittest
from pathlib import Path

from gaspack.errors import StyleBuildError
from gaspack.styles import StyleExtractor, content_globs, guard_style_close, ui_sources
from gaspack.toolchain import ToolResult


class FakeRunner:

    def __init__(self, stdout = '', returncode = 0, stderr = ''):
        self.calls = []
        self.result = (returncode, stdout, stderr)

    def __call__(self, command, args, cwd = None):
        self.calls.append((list(command), list(args), cwd))
        returncode, stdout, stderr = self.result
        return ToolResult(list(command) + list(args), returncode, stdout, stderr)


class StylesTestCase(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = Path(self.tmp.name)
        self.ui_root = self.root / 'client'
        (self.ui_root / 'components').mkdir(parents = True)
        (self.ui_root / 'node_modules' / 'lib').mkdir(parents = True)

        self.entry = self.ui_root / 'index.css'
        self.entry.write_text('@tailwind base;\n@tailwind utilities;\n')
        (self.ui_root / 'main.jsx').write_text('<div className="p-4 text-red-500" />')
        (self.ui_root / 'components' / 'Button.tsx').write_text('<button className="rounded" />')
        (self.ui_root / 'node_modules' / 'lib' / 'index.js').write_text('"hidden"')
        (self.ui_root / 'notes.md').write_text('not scanned')

    def tearDown(self):
        self.tmp.cleanup()


class TestSources(StylesTestCase):

    def test_ui_sources(self):
        sources = ui_sources(self.ui_root, ['js', 'jsx', 'tsx'])
        self.assertEqual(
            [p.relative_to(self.ui_root).as_posix() for p in sources],
            ['components/Button.tsx', 'main.jsx'],
        )

    def test_content_globs(self):
        root = Path('/app/src/client')
        self.assertEqual(content_globs(root, ['html', 'jsx']), ['/app/src/client/**/*.{html,jsx}'])
        self.assertEqual(content_globs(root, ['.jsx']), ['/app/src/client/**/*.jsx'])

    def test_guard_style_close(self):
        self.assertEqual(guard_style_close('a{content:"</style>"}'), 'a{content:"<\\/style>"}')
        self.assertEqual(guard_style_close('b{content:"</STYLE"}'), 'b{content:"<\\/STYLE"}')
        self.assertEqual(guard_style_close('.c{top:0}'), '.c{top:0}')


class TestExtract(StylesTestCase):

    def test_arguments(self):
        self.assertEqual(
            StyleExtractor.arguments(Path('in.css'), ['a/**/*.jsx', 'b/*.html']),
            ['-i', 'in.css', '--content', 'a/**/*.jsx,b/*.html', '--minify'],
        )

    def test_extract_tree(self):
        runner = FakeRunner(stdout = '.p-4{padding:1rem}\n')
        extractor = StyleExtractor(['tailwindcss'], cwd = self.root, runner = runner)

        stylesheet = extractor.extract_tree(self.entry, self.ui_root, ['jsx', 'tsx'])

        self.assertEqual(stylesheet.css, '.p-4{padding:1rem}')
        self.assertEqual(stylesheet.entry, self.entry)

        command, args, cwd = runner.calls[0]
        self.assertEqual(command, ['tailwindcss'])
        self.assertIn(f'{self.ui_root.as_posix()}/**/*.{{jsx,tsx}}', args)
        self.assertEqual(cwd, self.root)

    def test_css_is_guarded(self):
        runner = FakeRunner(stdout = '.x::after{content:"</style>"}')
        stylesheet = StyleExtractor(['tailwindcss'], runner = runner).extract(self.entry, ['*.jsx'])
        self.assertNotIn('</style', stylesheet.css)

    def test_errors(self):
        extractor = StyleExtractor(['tailwindcss'], runner = FakeRunner(returncode = 1, stderr = 'CssSyntaxError'))

        with self.assertRaises(StyleBuildError) as ctx:
            extractor.extract(self.entry, ['*.jsx'])

        self.assertIn('CssSyntaxError', str(ctx.exception))

        with self.assertRaises(StyleBuildError):
            extractor.extract(self.root / 'missing.css', ['*.jsx'])

        with self.assertRaises(StyleBuildError):
            extractor.extract_tree(self.entry, self.ui_root, ['vue'])

        with self.assertRaises(StyleBuildError):
            extractor.extract_tree(self.entry, self.root / 'nowhere', ['jsx'])


@unittest.skipUnless(shutil.which('tailwindcss'), 'tailwindcss is not installed')
class TestTailwind(StylesTestCase):
    '''Extract used classes with the real tailwindcss CLI'''

    def test_only_used_classes(self):
        (self.ui_root / 'main.jsx').write_text('<h1 className="text-2xl text-red-500" />')

        extractor = StyleExtractor(['tailwindcss'], cwd = self.root)
        stylesheet = extractor.extract_tree(self.entry, self.ui_root, ['jsx', 'tsx'])

        self.assertIn('.text-2xl{', stylesheet.css)
        self.assertIn('.text-red-500{', stylesheet.css)
        self.assertIn('.rounded{', stylesheet.css)
        self.assertNotIn('.text-3xl', stylesheet.css)


if __name__ == '__main__':
    unittest.main()
