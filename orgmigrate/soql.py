"""Helpers for composing and slicing generated SOQL statements.

These only understand the statements this package generates (and the
hand-written WHERE fragments operators add to them); they are not a
general SOQL parser.
"""

import re
from typing import Any, Iterable, Iterator, List, Optional, Sequence, TypeVar

SELECT_ALL = "all"

_FROM = re.compile(r"\bFROM\b", re.IGNORECASE)
_WHERE = re.compile(r"\bWHERE\b", re.IGNORECASE)
_TAIL = re.compile(r"\b(?:GROUP\s+BY|ORDER\s+BY|LIMIT|OFFSET)\b", re.IGNORECASE)
_LIMIT = re.compile(r"\bLIMIT\s+\d+", re.IGNORECASE)
_SELECT = re.compile(r"^\s*SELECT\s+", re.IGNORECASE)
_AND = re.compile(r"\s+AND\s+", re.IGNORECASE)
_OBJECT = re.compile(r"\bFROM\s+([A-Za-z0-9_]+)", re.IGNORECASE)

T = TypeVar("T")


def _top_level_mask(text: str) -> List[bool]:
    """True for every character outside parentheses and string literals."""
    mask = []
    depth = 0
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            mask.append(False)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == "'":
                in_string = False
            continue
        if ch == "'":
            in_string = True
            mask.append(False)
        elif ch == "(":
            depth += 1
            mask.append(False)
        elif ch == ")":
            depth = max(depth - 1, 0)
            mask.append(False)
        else:
            mask.append(depth == 0)
    return mask


def _find_top_level(pattern: "re.Pattern", text: str, start: int = 0) -> Optional["re.Match"]:
    mask = _top_level_mask(text)
    for match in pattern.finditer(text, start):
        if mask[match.start()]:
            return match
    return None


def _split_top_level(pattern: "re.Pattern", text: str) -> List[str]:
    mask = _top_level_mask(text)
    pieces = []
    last = 0
    for match in pattern.finditer(text):
        if mask[match.start()]:
            pieces.append(text[last:match.start()])
            last = match.end()
    pieces.append(text[last:])
    return [piece.strip() for piece in pieces if piece.strip()]


def quote(value: str) -> str:
    """Quote a string literal."""
    escaped = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def literal(value: Any) -> str:
    """Render a store value as a literal; numbers and booleans stay unquoted."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    return quote(value)


def in_list(field_name: str, values: Iterable[str]) -> str:
    return f"{field_name} IN ({', '.join(quote(v) for v in values)})"


def object_from_query(query: str) -> Optional[str]:
    match = _find_top_level(_OBJECT, query)
    return match.group(1) if match else None


def select_fields(query: str) -> List[str]:
    """Field list of the SELECT clause."""
    select = _SELECT.match(query)
    from_match = _find_top_level(_FROM, query)
    if not select or not from_match:
        return []
    clause = query[select.end():from_match.start()]
    return _split_top_level(re.compile(r","), clause)


def replace_select_fields(query: str, fields: Sequence[str]) -> str:
    """Swap the SELECT field list, keeping FROM and everything after it verbatim."""
    from_match = _find_top_level(_FROM, query)
    if not _SELECT.match(query) or not from_match:
        raise ValueError(f"Not a SELECT statement: {query!r}")
    return f"SELECT {', '.join(fields)} {query[from_match.start():].strip()}"


def where_clause(query: str) -> Optional[str]:
    from_match = _find_top_level(_FROM, query)
    if not from_match:
        return None
    where = _find_top_level(_WHERE, query, from_match.end())
    if not where:
        return None
    tail = _find_top_level(_TAIL, query, where.end())
    end = tail.start() if tail else len(query)
    clause = query[where.end():end].strip()
    return clause or None


def limit_clause(query: str) -> Optional[str]:
    match = _find_top_level(_LIMIT, query)
    return match.group(0) if match else None


def split_conditions(clause: str) -> List[str]:
    """Split a WHERE clause on its top-level AND operators."""
    if not clause:
        return []
    return _split_top_level(_AND, clause)


def split_user_filter(clause: str) -> List[str]:
    """Split an operator supplied filter on every AND, as written."""
    if not clause:
        return []
    return [piece.strip() for piece in _AND.split(clause.strip()) if piece.strip()]


def chunked(values: Sequence[T], size: int) -> Iterator[List[T]]:
    for start in range(0, len(values), size):
        yield list(values[start:start + size])
