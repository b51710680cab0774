'''Script rewrite passes'''

from .pipeline import Pass, Pipeline
from .pass_template_downgrade import TemplateDowngradePass
from .pass_strip_module import ModuleStripPass, strip_module_syntax
from .pass_escape import EscapePass, EscapeRule, ESCAPE_RULES, escape_script

__all__ = [
    'Pass',
    'Pipeline',
    'TemplateDowngradePass',
    'ModuleStripPass',
    'strip_module_syntax',
    'EscapePass',
    'EscapeRule',
    'ESCAPE_RULES',
    'escape_script',
]
