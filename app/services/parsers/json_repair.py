"""
Best-effort repair of JavaScript object literals embedded in pages so they can
be parsed as JSON.

Handles the two malformations seen in inline state blobs: trailing commas
before a closing bracket and bare ``undefined`` values. Text inside
double-quoted string literals is never modified.
"""
import json
from typing import Any

_IDENTIFIER_CHARS = set('abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_$')
_UNDEFINED = 'undefined'


def _is_identifier_char(ch: str) -> bool:
    return ch in _IDENTIFIER_CHARS


def repair_json(text: str) -> str:
    """Return ``text`` with trailing commas removed and ``undefined`` replaced by ``null``"""
    out = []
    i = 0
    n = len(text)
    in_string = False
    escaped = False

    while i < n:
        ch = text[i]

        if in_string:
            out.append(ch)
            if escaped:
                escaped = False
            elif ch == '\\':
                escaped = True
            elif ch == '"':
                in_string = False
            i += 1
            continue

        if ch == '"':
            in_string = True
            out.append(ch)
            i += 1
            continue

        if ch == ',':
            j = i + 1
            while j < n and text[j].isspace():
                j += 1
            if j < n and text[j] in '}]':
                # Trailing comma: drop it, keep the whitespace
                i += 1
                continue
            out.append(ch)
            i += 1
            continue

        if (ch == 'u' and text.startswith(_UNDEFINED, i)
                and (i == 0 or not _is_identifier_char(text[i - 1]))):
            end = i + len(_UNDEFINED)
            if end >= n or not _is_identifier_char(text[end]):
                out.append('null')
                i = end
                continue

        out.append(ch)
        i += 1

    return ''.join(out)


def loads_lenient(text: str) -> Any:
    """Parse JSON after the repair pass; raises ValueError when still invalid"""
    return json.loads(repair_json(text))
