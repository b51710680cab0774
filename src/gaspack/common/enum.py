__all__ = ['IntEnum2', 'StrEnum2']

from enum import Enum, IntEnum


class IntEnum2(IntEnum):
    '''Ordered enum that prints as its member name'''

    def __str__(self):
        return self.name

    def __repr__(self):
        return self.__str__()


class StrEnum2(str, Enum):
    '''String enum that prints as its value (used on command lines and in logs)'''

    def __str__(self):
        return self.value

    def __repr__(self):
        return f'{self.__class__.__name__}.{self.name}'
