"""Repair and parse JSON fragments that are still being streamed."""

from __future__ import annotations

import dataclasses
import enum
import json
from typing import Any, Literal

from . import errors as errors_
from . import schema as schema_

ParseState = Literal[
    "undefined-input", "successful-parse", "repaired-parse", "failed-parse"
]


class _State(enum.Enum):
    ROOT = enum.auto()
    FINISH = enum.auto()
    INSIDE_STRING = enum.auto()
    INSIDE_STRING_ESCAPE = enum.auto()
    INSIDE_STRING_UNICODE_ESCAPE = enum.auto()
    INSIDE_LITERAL = enum.auto()
    INSIDE_NUMBER = enum.auto()
    INSIDE_OBJECT_START = enum.auto()
    INSIDE_OBJECT_KEY = enum.auto()
    INSIDE_OBJECT_KEY_ESCAPE = enum.auto()
    INSIDE_OBJECT_AFTER_KEY = enum.auto()
    INSIDE_OBJECT_BEFORE_VALUE = enum.auto()
    INSIDE_OBJECT_AFTER_VALUE = enum.auto()
    INSIDE_OBJECT_AFTER_COMMA = enum.auto()
    INSIDE_ARRAY_START = enum.auto()
    INSIDE_ARRAY_AFTER_VALUE = enum.auto()
    INSIDE_ARRAY_AFTER_COMMA = enum.auto()


_OBJECT_STATES = frozenset(
    {
        _State.INSIDE_OBJECT_START,
        _State.INSIDE_OBJECT_KEY,
        _State.INSIDE_OBJECT_AFTER_KEY,
        _State.INSIDE_OBJECT_BEFORE_VALUE,
        _State.INSIDE_OBJECT_AFTER_VALUE,
        _State.INSIDE_OBJECT_AFTER_COMMA,
    }
)
_ARRAY_STATES = frozenset(
    {
        _State.INSIDE_ARRAY_START,
        _State.INSIDE_ARRAY_AFTER_VALUE,
        _State.INSIDE_ARRAY_AFTER_COMMA,
    }
)
_LITERALS = ("true", "false", "null")
_DIGITS = frozenset("0123456789")
_NUMBER_MARKERS = frozenset("eE-+.")
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


class _Repairer:
    """Pushdown automaton over the JSON grammar.

    The stack always describes the path from the start symbol to the cursor;
    ``last_valid_index`` is the last position up to which the text can be cut
    and closed into a valid document.
    """

    def __init__(self, text: str) -> None:
        self.text = text
        self.stack: list[_State] = [_State.ROOT]
        self.last_valid_index = -1
        self.literal_start = 0
        self.unicode_digits = 0

    def _swap(self, state: _State) -> None:
        self.stack[-1] = state

    def _value_start(self, char: str, i: int, swap_state: _State) -> None:
        match char:
            case '"':
                self.last_valid_index = i
                self._swap(swap_state)
                self.stack.append(_State.INSIDE_STRING)
            case "f" | "t" | "n":
                self.last_valid_index = i
                self.literal_start = i
                self._swap(swap_state)
                self.stack.append(_State.INSIDE_LITERAL)
            case "-":
                self._swap(swap_state)
                self.stack.append(_State.INSIDE_NUMBER)
            case "{":
                self.last_valid_index = i
                self._swap(swap_state)
                self.stack.append(_State.INSIDE_OBJECT_START)
            case "[":
                self.last_valid_index = i
                self._swap(swap_state)
                self.stack.append(_State.INSIDE_ARRAY_START)
            case _ if char in _DIGITS:
                self.last_valid_index = i
                self._swap(swap_state)
                self.stack.append(_State.INSIDE_NUMBER)

    def _after_object_value(self, char: str, i: int) -> None:
        if char == ",":
            self._swap(_State.INSIDE_OBJECT_AFTER_COMMA)
        elif char == "}":
            self.last_valid_index = i
            self.stack.pop()

    def _after_array_value(self, char: str, i: int) -> None:
        if char == ",":
            self._swap(_State.INSIDE_ARRAY_AFTER_COMMA)
        elif char == "]":
            self.last_valid_index = i
            self.stack.pop()

    def _end_value(self, char: str, i: int) -> None:
        """Hand the character that terminated a number or literal to its parent."""
        self.stack.pop()
        match self.stack[-1]:
            case _State.INSIDE_OBJECT_AFTER_VALUE:
                self._after_object_value(char, i)
            case _State.INSIDE_ARRAY_AFTER_VALUE:
                self._after_array_value(char, i)

    def feed(self, char: str, i: int) -> None:
        match self.stack[-1]:
            case _State.ROOT:
                self._value_start(char, i, _State.FINISH)

            case _State.FINISH:
                pass

            case _State.INSIDE_OBJECT_START:
                if char == '"':
                    self._swap(_State.INSIDE_OBJECT_KEY)
                elif char == "}":
                    self.last_valid_index = i
                    self.stack.pop()

            case _State.INSIDE_OBJECT_AFTER_COMMA:
                if char == '"':
                    self._swap(_State.INSIDE_OBJECT_KEY)

            case _State.INSIDE_OBJECT_KEY:
                if char == '"':
                    self._swap(_State.INSIDE_OBJECT_AFTER_KEY)
                elif char == "\\":
                    self.stack.append(_State.INSIDE_OBJECT_KEY_ESCAPE)

            case _State.INSIDE_OBJECT_KEY_ESCAPE:
                self.stack.pop()

            case _State.INSIDE_OBJECT_AFTER_KEY:
                if char == ":":
                    self._swap(_State.INSIDE_OBJECT_BEFORE_VALUE)

            case _State.INSIDE_OBJECT_BEFORE_VALUE:
                self._value_start(char, i, _State.INSIDE_OBJECT_AFTER_VALUE)

            case _State.INSIDE_OBJECT_AFTER_VALUE:
                self._after_object_value(char, i)

            case _State.INSIDE_STRING:
                if char == '"':
                    self.stack.pop()
                    self.last_valid_index = i
                elif char == "\\":
                    self.stack.append(_State.INSIDE_STRING_ESCAPE)
                else:
                    self.last_valid_index = i

            case _State.INSIDE_STRING_ESCAPE:
                if char == "u":
                    self.unicode_digits = 0
                    self._swap(_State.INSIDE_STRING_UNICODE_ESCAPE)
                else:
                    self.stack.pop()
                    self.last_valid_index = i

            case _State.INSIDE_STRING_UNICODE_ESCAPE:
                if char in _HEX_DIGITS:
                    self.unicode_digits += 1
                    if self.unicode_digits == 4:
                        self.stack.pop()
                        self.last_valid_index = i
                else:
                    self.stack.pop()

            case _State.INSIDE_ARRAY_START:
                if char == "]":
                    self.last_valid_index = i
                    self.stack.pop()
                else:
                    self._value_start(char, i, _State.INSIDE_ARRAY_AFTER_VALUE)

            case _State.INSIDE_ARRAY_AFTER_VALUE:
                self._after_array_value(char, i)

            case _State.INSIDE_ARRAY_AFTER_COMMA:
                self._value_start(char, i, _State.INSIDE_ARRAY_AFTER_VALUE)

            case _State.INSIDE_NUMBER:
                if char in _DIGITS:
                    self.last_valid_index = i
                elif char in _NUMBER_MARKERS:
                    pass
                else:
                    self._end_value(char, i)

            case _State.INSIDE_LITERAL:
                partial = self.text[self.literal_start : i + 1]
                if any(literal.startswith(partial) for literal in _LITERALS):
                    self.last_valid_index = i
                else:
                    self._end_value(char, i)

    def close(self) -> str:
        result = self.text[: self.last_valid_index + 1]
        for state in reversed(self.stack):
            if state is _State.INSIDE_STRING:
                result += '"'
            elif state in _OBJECT_STATES:
                result += "}"
            elif state in _ARRAY_STATES:
                result += "]"
            elif state is _State.INSIDE_LITERAL:
                partial = self.text[self.literal_start :]
                for literal in _LITERALS:
                    if literal.startswith(partial):
                        result += literal[len(partial) :]
                        break
        return result


def fix_json(text: str) -> str:
    """Close a truncated JSON fragment.

    Returns an empty string when the fragment holds no usable value prefix.
    """
    repairer = _Repairer(text)
    for i, char in enumerate(text):
        repairer.feed(char, i)
    return repairer.close()


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Invalid JSON constant: {name}")


def _loads(text: str) -> Any:
    return json.loads(text, parse_constant=_reject_constant)


def _is_valid(text: str) -> bool:
    try:
        _loads(text)
    except ValueError:
        return False
    return True


def repair_json(text: str) -> str:
    """Return parseable JSON for any input.

    Valid documents are returned unchanged. Fragments are closed with
    ``fix_json``; anything that still does not parse becomes ``"null"``.
    """
    if _is_valid(text):
        return text
    fixed = fix_json(text)
    if fixed and _is_valid(fixed):
        return fixed
    return "null"


@dataclasses.dataclass(frozen=True)
class PartialParseResult:
    value: Any
    state: ParseState


def safe_parse_json(text: str, schema: Any = None) -> schema_.ValidationResult[Any]:
    try:
        value = _loads(text)
    except ValueError as exc:
        return schema_.ValidationResult.fail(errors_.JSONParseError(text=text, cause=exc))
    if schema is None:
        return schema_.ValidationResult.ok(value)
    return schema_.safe_validate_types(value, schema)


def parse_partial_json(text: str | None) -> PartialParseResult:
    if not text:
        return PartialParseResult(value=None, state="undefined-input")

    result = safe_parse_json(text)
    if result.success:
        return PartialParseResult(value=result.value, state="successful-parse")

    result = safe_parse_json(fix_json(text))
    if result.success:
        return PartialParseResult(value=result.value, state="repaired-parse")

    return PartialParseResult(value=None, state="failed-parse")
