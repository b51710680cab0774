'''String literal helpers - template cooking and JS string encoding

cook_template() computes the string value ("cooked" value) of a template chunk
from its raw source characters. js_string() renders any value as a
double-quoted literal that evaluates back to exactly that value.

Values are Python strings holding UTF-16 semantics the way the source spells
them: a \\uD83D escape stays a lone surrogate, an astral character written
literally stays one code point. js_string() round-trips both.
'''

from typing import Optional

HEX_DIGITS = '0123456789abcdefABCDEF'

SIMPLE_ESCAPES = {
    'n': '\n',
    't': '\t',
    'r': '\r',
    'b': '\b',
    'f': '\f',
    'v': '\v',
}

LINE_CONTINUATIONS = '\n\u2028\u2029'

ENCODE_ESCAPES = {
    '"': '\\"',
    '\\': '\\\\',
    '\n': '\\n',
    '\r': '\\r',
    '\t': '\\t',
    '\b': '\\b',
    '\f': '\\f',
    '\v': '\\v',
}


class EscapeError(ValueError):
    '''Invalid escape sequence in a template chunk'''

    def __init__(self, message: str, index: int):
        super().__init__(message)
        self.index = index


def normalize_raw(raw: str) -> str:
    '''Template raw value: CR and CRLF become LF'''
    return raw.replace('\r\n', '\n').replace('\r', '\n')


def _read_hex(raw: str, start: int, count: int) -> Optional[int]:
    digits = raw[start:start + count]
    if len(digits) != count or any(d not in HEX_DIGITS for d in digits):
        return None

    return int(digits, 16)


def cook_template(raw: str) -> str:
    '''Cooked value of a template chunk, raising EscapeError on invalid escapes'''
    out = []
    i = 0
    n = len(raw)

    while i < n:
        ch = raw[i]

        if ch == '\r':
            out.append('\n')
            i += 2 if raw.startswith('\r\n', i) else 1
            continue

        if ch != '\\':
            out.append(ch)
            i += 1
            continue

        start = i
        i += 1
        if i >= n:
            raise EscapeError('trailing backslash', start)

        esc = raw[i]
        i += 1

        if esc in SIMPLE_ESCAPES:
            out.append(SIMPLE_ESCAPES[esc])

        elif esc == '0':
            if i < n and raw[i].isdigit():
                raise EscapeError('octal escape sequences are not allowed in templates', start)

            out.append('\0')

        elif esc in '123456789':
            raise EscapeError(f'invalid escape \\{esc} in template', start)

        elif esc == 'x':
            value = _read_hex(raw, i, 2)
            if value is None:
                raise EscapeError('invalid hexadecimal escape sequence', start)

            out.append(chr(value))
            i += 2

        elif esc == 'u':
            if raw.startswith('{', i):
                end = raw.find('}', i)
                digits = raw[i + 1:end] if end > 0 else ''
                if not digits or any(d not in HEX_DIGITS for d in digits) or int(digits, 16) > 0x10FFFF:
                    raise EscapeError('invalid Unicode escape sequence', start)

                out.append(chr(int(digits, 16)))
                i = end + 1

            else:
                value = _read_hex(raw, i, 4)
                if value is None:
                    raise EscapeError('invalid Unicode escape sequence', start)

                out.append(chr(value))
                i += 4

        elif esc == '\r':
            # Line continuation
            if raw.startswith('\n', i):
                i += 1

        elif esc in LINE_CONTINUATIONS:
            pass

        else:
            out.append(esc)

    return ''.join(out)


def js_string(value: str) -> str:
    '''Double-quoted JavaScript string literal for value'''
    out = ['"']
    for ch in value:
        code = ord(ch)

        if ch in ENCODE_ESCAPES:
            out.append(ENCODE_ESCAPES[ch])

        elif code < 0x20 or code == 0x7F:
            out.append(f'\\x{code:02X}')

        elif code in (0x2028, 0x2029) or 0xD800 <= code <= 0xDFFF:
            out.append(f'\\u{code:04X}')

        else:
            out.append(ch)

    out.append('"')
    return ''.join(out)
