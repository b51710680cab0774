'''Pass manager for text rewrite passes'''

import logging
from typing import List

logger = logging.getLogger(__name__)


class Pass:
    '''Pass base class - rewrites script text into script text'''

    name = 'pass'

    def run(self, text: str) -> str:
        '''Execute the pass'''
        raise NotImplementedError(f'{self.__class__.__name__}.run() not implemented')

    def __str__(self):
        return self.name


class Pipeline:
    '''Pass Pipeline'''

    def __init__(self, passes: List[Pass] = None):
        '''Initialize pipeline'''
        self.passes = passes or []

    def add_pass(self, pass_obj: Pass) -> 'Pipeline':
        '''Add a pass to the pipeline'''
        self.passes.append(pass_obj)
        return self

    def run(self, text: str) -> str:
        '''Run all passes in order, each one on the previous one's output'''
        result = text
        for pass_obj in self.passes:
            logger.debug('running %s on %d chars', pass_obj, len(result))
            result = pass_obj.run(result)

        return result
