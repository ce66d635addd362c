"""Syntax-aware insertions that wire generated artifacts into a host source file.

Only two shapes are understood: the import section at the top of the file and
an array literal nested in the object argument of an ``@NgModule`` or
``@Component`` decorator. Both are located from a token stream (strings,
template literals and comments are skipped correctly), never by line matching.
"""

from __future__ import annotations

import json
import logging
import posixpath
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Sequence, Tuple

from .staging import ProjectTree, StagingError

TELEMETRY_LOGGER = logging.getLogger("prototyper.telemetry")

DESCRIPTOR_DECORATORS = ("NgModule", "Component")
_MODULE_DECORATOR = "NgModule"
_SCRIPT_SUFFIXES = (".ts",)
_INDENT_RE = re.compile(r"[ \t]*")


class PatchError(RuntimeError):
    """Raised when an insertion cannot be planned or applied."""

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = dict(details or {})


class PatchGrammarMismatch(PatchError):
    """Raised when the host file lacks the descriptor/array structure we can patch."""


class InsertionKind(str, Enum):
    """Where the generated symbol is registered inside the descriptor."""

    IMPORT = "import"
    COMPOSED = "composed"

    @property
    def array_property(self) -> str:
        return "imports" if self is InsertionKind.COMPOSED else "declarations"


@dataclass(frozen=True, slots=True)
class PatchRequest:
    """One host-file integration for the primary artifact."""

    target_file: str
    symbol_name: str
    import_path: str
    insertion_kind: InsertionKind = InsertionKind.IMPORT


@dataclass(frozen=True, slots=True)
class InsertionEdit:
    """Text inserted at an offset of the original (unpatched) source."""

    position: int
    text: str


@dataclass(slots=True)
class PatchResult:
    """Outcome of patching a host file."""

    path: str
    insertion_kind: InsertionKind
    edits: Tuple[InsertionEdit, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(self.edits)


@dataclass(frozen=True, slots=True)
class _Token:
    kind: str  # "ident", "string", "template" or "punct"
    start: int
    end: int
    value: str


@dataclass(frozen=True, slots=True)
class _ImportStatement:
    start: int
    end: int
    names: frozenset[str]
    module: str
    quote: str


@dataclass(slots=True)
class _Descriptor:
    name: str
    open_index: int
    close_index: int
    properties: dict[str, tuple[int, int]] = field(default_factory=dict)


def _serialise_event_value(value: Any) -> Any:
    """Convert telemetry payload values into JSON-friendly representations."""
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Path):
        return value.as_posix()
    if isinstance(value, InsertionEdit):
        return {"position": value.position, "text": value.text}
    if isinstance(value, (list, tuple, set)):
        return [_serialise_event_value(item) for item in value]
    if isinstance(value, Mapping):
        return {str(key): _serialise_event_value(child) for key, child in value.items()}
    return str(value)


def _emit_patch_event(event: str, **fields: Any) -> None:
    """Log structured telemetry events when patching host files."""
    payload = {"event": event, "timestamp": datetime.now(timezone.utc).isoformat()}
    for key, value in fields.items():
        payload[key] = _serialise_event_value(value)
    TELEMETRY_LOGGER.info(json.dumps(payload, separators=(",", ":"), ensure_ascii=True))


def _is_ident_char(char: str) -> bool:
    return char.isalnum() or char in "_$"


def _skip_string(text: str, index: int, quote: str) -> int:
    cursor = index + 1
    while cursor < len(text):
        char = text[cursor]
        if char == "\\":
            cursor += 2
            continue
        if char == quote:
            return cursor + 1
        if char == "\n":
            return cursor
        cursor += 1
    return len(text)


def _skip_template(text: str, index: int) -> int:
    cursor = index + 1
    while cursor < len(text):
        char = text[cursor]
        if char == "\\":
            cursor += 2
            continue
        if char == "`":
            return cursor + 1
        if text.startswith("${", cursor):
            cursor = _skip_braced(text, cursor + 2)
            continue
        cursor += 1
    return len(text)


def _skip_braced(text: str, index: int) -> int:
    depth = 1
    cursor = index
    while cursor < len(text):
        char = text[cursor]
        if char in "'\"":
            cursor = _skip_string(text, cursor, char)
            continue
        if char == "`":
            cursor = _skip_template(text, cursor)
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return cursor + 1
        cursor += 1
    return len(text)


def tokenize(text: str) -> list[_Token]:
    """Split TypeScript-like source into identifier, literal and punctuation tokens."""
    tokens: list[_Token] = []
    index = 0
    length = len(text)
    while index < length:
        char = text[index]
        if char.isspace():
            index += 1
            continue
        if text.startswith("//", index):
            newline = text.find("\n", index)
            index = length if newline == -1 else newline
            continue
        if text.startswith("/*", index):
            closing = text.find("*/", index + 2)
            index = length if closing == -1 else closing + 2
            continue
        if char in "'\"":
            end = _skip_string(text, index, char)
            tokens.append(_Token("string", index, end, text[index:end]))
            index = end
            continue
        if char == "`":
            end = _skip_template(text, index)
            tokens.append(_Token("template", index, end, text[index:end]))
            index = end
            continue
        if _is_ident_char(char):
            end = index + 1
            while end < length and _is_ident_char(text[end]):
                end += 1
            tokens.append(_Token("ident", index, end, text[index:end]))
            index = end
            continue
        tokens.append(_Token("punct", index, index + 1, char))
        index += 1
    return tokens


def _is_punct(token: _Token | None, value: str) -> bool:
    return token is not None and token.kind == "punct" and token.value == value


def _string_value(token: _Token) -> str:
    return token.value[1:-1] if len(token.value) >= 2 else ""


def _match_bracket(tokens: Sequence[_Token], open_index: int) -> int | None:
    """Return the index of the bracket closing ``tokens[open_index]``."""
    pairs = {"(": ")", "[": "]", "{": "}"}
    stack: list[str] = []
    for index in range(open_index, len(tokens)):
        token = tokens[index]
        if token.kind != "punct":
            continue
        if token.value in pairs:
            stack.append(pairs[token.value])
        elif token.value in ")]}":
            if not stack or stack[-1] != token.value:
                return None
            stack.pop()
            if not stack:
                return index
    return None


def _split_entries(tokens: Sequence[_Token], open_index: int, close_index: int) -> list[tuple[int, int]]:
    """Return ``(first, last)`` token indices of each comma-separated entry inside a bracket pair."""
    entries: list[tuple[int, int]] = []
    depth = 0
    first: int | None = None
    for index in range(open_index + 1, close_index):
        token = tokens[index]
        if token.kind == "punct" and token.value in "([{":
            depth += 1
        elif token.kind == "punct" and token.value in ")]}":
            depth -= 1
        elif depth == 0 and _is_punct(token, ","):
            if first is not None:
                entries.append((first, index - 1))
            first = None
            continue
        if first is None:
            first = index
    if first is not None:
        entries.append((first, close_index - 1))
    return entries


def _read_import(tokens: Sequence[_Token], index: int) -> tuple[_ImportStatement | None, int]:
    names: set[str] = set()
    cursor = index + 1
    while cursor < len(tokens):
        token = tokens[cursor]
        if token.kind == "string":
            end = token.end
            cursor += 1
            if cursor < len(tokens) and _is_punct(tokens[cursor], ";"):
                end = tokens[cursor].end
                cursor += 1
            statement = _ImportStatement(
                start=tokens[index].start,
                end=end,
                names=frozenset(names),
                module=_string_value(token),
                quote=token.value[0],
            )
            return statement, cursor
        if _is_punct(token, "{"):
            closing = _match_bracket(tokens, cursor)
            if closing is None:
                return None, cursor + 1
            for first, last in _split_entries(tokens, cursor, closing):
                idents = [tokens[i].value for i in range(first, last + 1) if tokens[i].kind == "ident"]
                idents = [name for name in idents if name != "type"]
                if idents:
                    names.add(idents[-1])
            cursor = closing + 1
            continue
        if token.kind == "ident":
            if token.value not in {"from", "type", "as"}:
                names.add(token.value)
            cursor += 1
            continue
        if token.kind == "punct" and token.value in "*,":
            cursor += 1
            continue
        return None, cursor
    return None, cursor


def collect_imports(tokens: Sequence[_Token]) -> list[_ImportStatement]:
    """Return the top-level static import statements in source order."""
    statements: list[_ImportStatement] = []
    depth = 0
    index = 0
    while index < len(tokens):
        token = tokens[index]
        if token.kind == "punct" and token.value in "([{":
            depth += 1
        elif token.kind == "punct" and token.value in ")]}":
            depth = max(depth - 1, 0)
        elif depth == 0 and token.kind == "ident" and token.value == "import":
            follower = tokens[index + 1] if index + 1 < len(tokens) else None
            if follower is None or (follower.kind == "punct" and follower.value in "(."):
                index += 1
                continue
            statement, index = _read_import(tokens, index)
            if statement is not None:
                statements.append(statement)
            continue
        index += 1
    return statements


def _find_descriptor(tokens: Sequence[_Token]) -> _Descriptor | None:
    for index, token in enumerate(tokens[:-3]):
        if not _is_punct(token, "@"):
            continue
        name = tokens[index + 1]
        if name.kind != "ident" or name.value not in DESCRIPTOR_DECORATORS:
            continue
        if not (_is_punct(tokens[index + 2], "(") and _is_punct(tokens[index + 3], "{")):
            continue
        closing = _match_bracket(tokens, index + 3)
        if closing is None:
            continue
        descriptor = _Descriptor(name=name.value, open_index=index + 3, close_index=closing)
        for first, last in _split_entries(tokens, descriptor.open_index, closing):
            key = tokens[first]
            if first + 1 > last or not _is_punct(tokens[first + 1], ":"):
                continue
            if key.kind == "ident":
                descriptor.properties[key.value] = (first, last)
            elif key.kind == "string":
                descriptor.properties[_string_value(key)] = (first, last)
        return descriptor
    return None


def _line_indent(source: str, position: int) -> str:
    line_start = source.rfind("\n", 0, position) + 1
    match = _INDENT_RE.match(source, line_start)
    return match.group(0) if match else ""


def _append_entry(
    source: str,
    tokens: Sequence[_Token],
    open_index: int,
    close_index: int,
    entry_text: str,
) -> InsertionEdit:
    """Plan an insertion of ``entry_text`` after the last entry of a bracketed list."""
    entries = _split_entries(tokens, open_index, close_index)
    if not entries:
        return InsertionEdit(position=tokens[close_index].start, text=entry_text)
    first, last = entries[-1]
    last_token = tokens[last]
    if "\n" in source[tokens[open_index].end : last_token.end]:
        indent = _line_indent(source, tokens[first].start)
        return InsertionEdit(position=last_token.end, text=f",\n{indent}{entry_text}")
    return InsertionEdit(position=last_token.end, text=f", {entry_text}")


def is_standalone(script: str | None) -> bool:
    """Return True when generated script declares ``standalone: true``."""
    if not script:
        return False
    tokens = tokenize(script)
    for index, token in enumerate(tokens[:-2]):
        if token.kind == "ident" and token.value == "standalone":
            if _is_punct(tokens[index + 1], ":") and tokens[index + 2].value == "true":
                return True
    return False


def insertion_kind_for(script: str | None) -> InsertionKind:
    return InsertionKind.COMPOSED if is_standalone(script) else InsertionKind.IMPORT


def relative_import_path(host_file: str, target_file: str) -> str:
    """Return the module specifier ``host_file`` uses to import ``target_file``."""
    target = target_file
    for suffix in _SCRIPT_SUFFIXES:
        if target.endswith(suffix):
            target = target[: -len(suffix)]
            break
    host_dir = posixpath.dirname(host_file.lstrip("/")) or "."
    relative = posixpath.relpath(target.lstrip("/"), host_dir)
    if not relative.startswith("."):
        relative = f"./{relative}"
    return relative


def plan_insertions(source: str, request: PatchRequest) -> list[InsertionEdit]:
    """Compute edits against one snapshot of ``source``; duplicates are never re-added."""
    tokens = tokenize(source)
    descriptor = _find_descriptor(tokens)
    if descriptor is None:
        raise PatchGrammarMismatch(
            f"No @NgModule or @Component descriptor found in {request.target_file}",
            details={"target": request.target_file},
        )

    symbol = request.symbol_name
    prop = request.insertion_kind.array_property
    edits: list[InsertionEdit] = []

    imports = collect_imports(tokens)
    if not any(symbol in statement.names for statement in imports):
        quote = imports[-1].quote if imports else "'"
        line = f"import {{ {symbol} }} from {quote}{request.import_path}{quote};"
        if imports:
            newline = source.find("\n", imports[-1].end)
            position = len(source) if newline == -1 else newline
            edits.append(InsertionEdit(position=position, text=f"\n{line}"))
        else:
            edits.append(InsertionEdit(position=0, text=f"{line}\n"))

    span = descriptor.properties.get(prop)
    if span is None:
        if descriptor.name != _MODULE_DECORATOR:
            raise PatchGrammarMismatch(
                f"@{descriptor.name} in {request.target_file} has no '{prop}' array",
                details={"target": request.target_file, "property": prop},
            )
        edits.append(
            _append_entry(
                source,
                tokens,
                descriptor.open_index,
                descriptor.close_index,
                f"{prop}: [{symbol}]",
            )
        )
        return edits

    value_index = span[0] + 2
    if not _is_punct(tokens[value_index], "["):
        raise PatchGrammarMismatch(
            f"'{prop}' in {request.target_file} is not an array literal",
            details={"target": request.target_file, "property": prop},
        )
    array_close = _match_bracket(tokens, value_index)
    if array_close is None:
        raise PatchGrammarMismatch(
            f"Unterminated '{prop}' array in {request.target_file}",
            details={"target": request.target_file, "property": prop},
        )
    elements = {
        tokens[first].value
        for first, _ in _split_entries(tokens, value_index, array_close)
        if tokens[first].kind == "ident"
    }
    if symbol not in elements:
        edits.append(_append_entry(source, tokens, value_index, array_close, symbol))
    return edits


def apply_edits(source: str, edits: Sequence[InsertionEdit]) -> str:
    """Apply edits computed against ``source`` in descending position order."""
    for edit in edits:
        if not 0 <= edit.position <= len(source):
            raise PatchError(
                f"Insertion offset {edit.position} is outside the source (length {len(source)})",
                details={"position": edit.position},
            )
    ordered = sorted(enumerate(edits), key=lambda item: (item[1].position, item[0]), reverse=True)
    patched = source
    for _, edit in ordered:
        patched = patched[: edit.position] + edit.text + patched[edit.position :]
    return patched


def patch_source(source: str, request: PatchRequest) -> str:
    """Return ``source`` with the request's import and array entry inserted."""
    return apply_edits(source, plan_insertions(source, request))


def patch_host_file(tree: ProjectTree, request: PatchRequest) -> PatchResult:
    """Read the host file once, apply the planned edits and write it back once."""
    try:
        source = tree.read(request.target_file)
    except StagingError as error:
        _emit_patch_event("patch_skipped", reason="unreadable", target=request.target_file, message=str(error))
        raise PatchError(
            f"Could not read host file {request.target_file}: {error}",
            details={"target": request.target_file},
        ) from error
    try:
        edits = plan_insertions(source, request)
    except PatchGrammarMismatch as error:
        _emit_patch_event(
            "patch_skipped",
            reason="grammar-mismatch",
            target=request.target_file,
            message=str(error),
        )
        raise

    result = PatchResult(
        path=request.target_file,
        insertion_kind=request.insertion_kind,
        edits=tuple(edits),
    )
    if not edits:
        _emit_patch_event("patch_skipped", reason="already-present", target=request.target_file)
        return result

    _emit_patch_event(
        "patch_planned",
        target=request.target_file,
        symbol=request.symbol_name,
        insertion_kind=request.insertion_kind,
        edits=edits,
    )
    tree.write(request.target_file, apply_edits(source, edits))
    _emit_patch_event("patch_applied", target=request.target_file, edit_count=len(edits))
    return result


__all__ = [
    "DESCRIPTOR_DECORATORS",
    "InsertionEdit",
    "InsertionKind",
    "PatchError",
    "PatchGrammarMismatch",
    "PatchRequest",
    "PatchResult",
    "apply_edits",
    "collect_imports",
    "insertion_kind_for",
    "is_standalone",
    "patch_host_file",
    "patch_source",
    "plan_insertions",
    "relative_import_path",
    "tokenize",
]
