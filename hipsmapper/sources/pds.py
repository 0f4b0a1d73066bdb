"""
Minimal reader for PDS3 labels (``.LBL`` files).

A label is a sequence of ``KEY = VALUE`` statements, nested with
``GROUP``/``END_GROUP`` and ``OBJECT``/``END_OBJECT``, terminated by
``END``. Values may be quoted strings, parenthesised lists, numbers with
a ``<unit>`` suffix or bare symbols, and may span several lines.
"""

import re
from pathlib import Path
from typing import Any, Iterator, Optional, Union

from loguru import logger

Label = dict[str, Any]

_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_ASSIGNMENT = re.compile(r"^([A-Za-z0-9_:^]+)\s*=\s*(.*)$", re.DOTALL)
_UNIT = re.compile(r"^(.*?)\s*<([^>]*)>$", re.DOTALL)
_BLOCKS = {"GROUP": "END_GROUP", "OBJECT": "END_OBJECT"}


class LabelSyntaxError(ValueError):
    pass


def _is_complete(statement: str) -> bool:
    depth = 0
    in_quote = False
    for character in statement:
        if character == '"':
            in_quote = not in_quote
        elif in_quote:
            continue
        elif character in "({":
            depth += 1
        elif character in ")}":
            depth -= 1
    return not in_quote and depth <= 0 and not statement.rstrip().endswith("=")


def _statements(text: str) -> Iterator[str]:
    buffer = ""
    for line in _COMMENT.sub("", text).splitlines():
        if not buffer and not line.strip():
            continue
        buffer = f"{buffer}\n{line}" if buffer else line
        if _is_complete(buffer):
            yield buffer.strip()
            buffer = ""
    if buffer.strip():
        raise LabelSyntaxError(f"Unterminated statement: {buffer.strip()[:60]!r}")


def _split_list(body: str) -> list[str]:
    items = []
    depth = 0
    in_quote = False
    current = ""
    for character in body:
        if character == '"':
            in_quote = not in_quote
        elif not in_quote and character in "({":
            depth += 1
        elif not in_quote and character in ")}":
            depth -= 1
        elif not in_quote and depth == 0 and character == ",":
            items.append(current)
            current = ""
            continue
        current += character
    if current.strip():
        items.append(current)
    return items


def parse_value(raw: str) -> Any:
    """Convert the text of a value to str, int, float or list.

    Units are dropped: ``"0.5 <rad>"`` gives ``0.5``.
    """
    raw = raw.strip()
    if raw.startswith('"'):
        if not raw.endswith('"') or len(raw) < 2:
            raise LabelSyntaxError(f"Unterminated string: {raw[:60]!r}")
        return " ".join(raw[1:-1].split())
    if raw and raw[0] in "({":
        if raw[-1:] not in ")}":
            raise LabelSyntaxError(f"Unterminated list: {raw[:60]!r}")
        return [parse_value(item) for item in _split_list(raw[1:-1])]
    if raw.startswith("'") and raw.endswith("'") and len(raw) >= 2:
        return raw[1:-1]

    unit = _UNIT.match(raw)
    if unit is not None:
        raw = unit.group(1).strip()
    for cast in (int, float):
        try:
            return cast(raw)
        except ValueError:
            pass
    return raw


def parse_label(text: str) -> Label:
    root: Label = {}
    # (block keyword, block dictionary)
    stack: list[tuple[Optional[str], Label]] = [(None, root)]

    for statement in _statements(text):
        if statement == "END":
            break
        keyword = statement.split("=", 1)[0].strip()
        if keyword in _BLOCKS.values():
            opened = stack[-1][0]
            if opened is None or _BLOCKS[opened] != keyword:
                raise LabelSyntaxError(f"Unexpected {keyword}")
            stack.pop()
            continue

        match = _ASSIGNMENT.match(statement)
        if match is None:
            raise LabelSyntaxError(f"Not an assignment: {statement[:60]!r}")
        key, raw = match.group(1), match.group(2)

        if key in _BLOCKS:
            name = str(parse_value(raw))
            block: Label = {}
            stack[-1][1][name] = block
            stack.append((key, block))
        else:
            stack[-1][1][key] = parse_value(raw)

    if len(stack) > 1:
        raise LabelSyntaxError(f"Unclosed {stack[-1][0]}")
    return root


def read_label(path: Union[str, Path]) -> Label:
    logger.debug(f"Reading PDS label {path}")
    text = Path(path).read_text(encoding="latin-1")
    return parse_label(text)


def find_last(label: Label, key: str) -> Any:
    """Value of the last occurrence of ``key`` anywhere in the label."""
    found = None
    for name, value in label.items():
        if isinstance(value, dict):
            nested = find_last(value, key)
            if nested is not None:
                found = nested
        elif name == key:
            found = value
    return found


def label_path_for(image_path: Path) -> Optional[Path]:
    """The ``.LBL`` (or ``.lbl``) file next to an image, if any."""
    for suffix in (".LBL", ".lbl"):
        candidate = image_path.with_suffix(suffix)
        if candidate.exists():
            return candidate
    return None
