"""Source header parsers: which module a file declares and what it requires.

Each language gets a :class:`HeaderParser` that turns file contents into a
:class:`~opskit.models.ModuleHeader` and knows how that language marks a
runnable program.  The graph builder only talks to this interface, so tests
can hand it any parser they like.

- **Clojure** reads the leading ``(ns ...)`` form with a tiny reader that
  understands just enough syntax (collections, strings, comments, metadata,
  reader conditionals, discards) to walk ``:require`` / ``:use`` libspecs.
- **Python** uses the built-in ``ast`` module and collects ``import``
  statements.
"""

from __future__ import annotations

import ast
import re
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Type

from .models import ModuleHeader


class HeaderParseError(ValueError):
    """The file has no usable module declaration."""


class HeaderParser(ABC):
    """Abstract base class for header parsers."""

    extension: str = ""

    @abstractmethod
    def parse(self, source: str, path: str = "", root: str = "") -> ModuleHeader:
        """Extract the declared module and its dependencies from *source*."""
        ...

    @abstractmethod
    def has_entry_point(self, source: str) -> bool:
        """Return True if *source* defines a program entry point."""
        ...


def _unique(names: List[str], exclude: str) -> List[str]:
    seen = set()
    result = []
    for name in names:
        if name and name != exclude and name not in seen:
            seen.add(name)
            result.append(name)
    return result


# ===================================================================
# Clojure
# ===================================================================

class Symbol(str):
    pass


class Keyword(str):
    pass


class StringLit(str):
    pass


class Form:
    """A reader collection: ``list``, ``vector``, ``map``, ``set`` or ``cond``."""

    __slots__ = ("kind", "items")

    def __init__(self, kind: str, items: List[object]) -> None:
        self.kind = kind
        self.items = items

    def head(self) -> Optional[object]:
        return self.items[0] if self.items else None

    def __repr__(self) -> str:
        return f"Form({self.kind!r}, {self.items!r})"


_DELIMITERS = set("()[]{}\";,")
_CLOSERS = {")": "list", "]": "vector", "}": "map"}


class _Reader:
    """Reads Clojure forms one at a time from a string."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def at_end(self) -> bool:
        self._skip_ignorable()
        return self.pos >= len(self.text)

    def _skip_ignorable(self) -> None:
        text = self.text
        while self.pos < len(text):
            ch = text[self.pos]
            if ch.isspace() or ch == ",":
                self.pos += 1
            elif ch == ";" or text.startswith("#!", self.pos):
                end = text.find("\n", self.pos)
                self.pos = len(text) if end == -1 else end + 1
            elif text.startswith("#_", self.pos):
                self.pos += 2
                self.read()
            else:
                return

    def read(self) -> object:
        self._skip_ignorable()
        text = self.text
        if self.pos >= len(text):
            raise HeaderParseError("unexpected end of input")
        ch = text[self.pos]

        if ch == "(":
            return self._read_coll(")", "list")
        if ch == "[":
            return self._read_coll("]", "vector")
        if ch == "{":
            return self._read_coll("}", "map")
        if ch in _CLOSERS:
            raise HeaderParseError(f"unexpected '{ch}' at offset {self.pos}")
        if ch == '"':
            return StringLit(self._read_string())
        if ch == "^":
            self.pos += 1
            self.read()  # metadata
            return self.read()
        if ch in "'`@":
            self.pos += 1
            return self.read()
        if ch == "~":
            self.pos += 2 if text.startswith("~@", self.pos) else 1
            return self.read()
        if ch == "\\":
            start = self.pos
            self.pos += 2
            self._consume_token_chars()
            return Symbol(text[start:self.pos])
        if ch == "#":
            return self._read_dispatch()

        token = self._read_token()
        if token.startswith(":"):
            return Keyword(token)
        return Symbol(token)

    def _read_dispatch(self) -> object:
        text = self.text
        nxt = text[self.pos + 1:self.pos + 2]
        if nxt == "{":
            self.pos += 1
            return self._read_coll("}", "set")
        if nxt == "?":
            self.pos += 2
            if text.startswith("@", self.pos):
                self.pos += 1
            self._skip_ignorable()
            if not text.startswith("(", self.pos):
                raise HeaderParseError(f"malformed reader conditional at offset {self.pos}")
            form = self._read_coll(")", "list")
            return Form("cond", form.items)
        if nxt == '"':
            self.pos += 1
            return StringLit(self._read_string())
        if nxt == "(":
            self.pos += 1
            return self._read_coll(")", "list")
        if nxt in ("'", "="):
            self.pos += 2
            return self.read()
        if nxt == ":":
            self.pos += 1
            self._read_token()
            return self.read()
        # Tagged literal such as #inst "..." reads as its value.
        self.pos += 1
        self._read_token()
        return self.read()

    def _read_coll(self, closer: str, kind: str) -> Form:
        start = self.pos
        self.pos += 1
        items: List[object] = []
        while True:
            self._skip_ignorable()
            if self.pos >= len(self.text):
                raise HeaderParseError(f"unbalanced '{self.text[start]}' opened at offset {start}")
            if self.text[self.pos] == closer:
                self.pos += 1
                return Form(kind, items)
            items.append(self.read())

    def _read_string(self) -> str:
        text = self.text
        start = self.pos
        self.pos += 1
        chars = []
        while self.pos < len(text):
            ch = text[self.pos]
            if ch == "\\":
                chars.append(text[self.pos:self.pos + 2])
                self.pos += 2
                continue
            if ch == '"':
                self.pos += 1
                return "".join(chars)
            chars.append(ch)
            self.pos += 1
        raise HeaderParseError(f"unterminated string starting at offset {start}")

    def _consume_token_chars(self) -> None:
        text = self.text
        while self.pos < len(text) and not text[self.pos].isspace() and text[self.pos] not in _DELIMITERS:
            self.pos += 1

    def _read_token(self) -> str:
        start = self.pos
        self._consume_token_chars()
        if self.pos == start:
            raise HeaderParseError(f"unexpected '{self.text[start]}' at offset {start}")
        return self.text[start:self.pos]


def read_forms(text: str) -> List[object]:
    """Read every top-level form in *text*."""
    reader = _Reader(text)
    forms = []
    while not reader.at_end():
        forms.append(reader.read())
    return forms


def _join(prefix: str, name: str) -> str:
    return f"{prefix}.{name}" if prefix else name


def libspec_names(spec: object, prefix: str = "") -> List[str]:
    """Namespace names referenced by one ``:require`` / ``:use`` libspec.

    Handles plain symbols, ``[ns.name :as alias]`` vectors, prefix lists
    like ``(clojure [set :as s] string)`` and reader conditionals.
    """
    if isinstance(spec, Symbol):
        return [_join(prefix, spec)]
    if not isinstance(spec, Form) or not spec.items:
        return []
    if spec.kind == "cond":
        names: List[str] = []
        for item in spec.items:
            if not isinstance(item, Keyword):
                names.extend(libspec_names(item, prefix))
        return names
    if spec.kind not in ("vector", "list"):
        return []

    head, rest = spec.items[0], spec.items[1:]
    if not isinstance(head, Symbol):
        return []
    if rest and not isinstance(rest[0], Keyword):
        names = []
        for child in rest:
            names.extend(libspec_names(child, _join(prefix, head)))
        return names
    return [_join(prefix, head)]


class ClojureNsParser(HeaderParser):
    """Reads the ``ns`` declaration at the top of a Clojure file."""

    extension = ".clj"

    DEPENDENCY_CLAUSES = (":require", ":use")
    DEFINERS = ("defn", "defn-")

    def parse(self, source: str, path: str = "", root: str = "") -> ModuleHeader:
        ns_form = self._find_ns_form(source)
        items = ns_form.items
        if len(items) < 2 or not isinstance(items[1], Symbol):
            raise HeaderParseError("ns declaration has no namespace name")
        module_id = str(items[1])

        requires: List[str] = []
        for clause in items[2:]:
            if isinstance(clause, Form) and clause.kind == "list":
                head = clause.head()
                if isinstance(head, Keyword) and head in self.DEPENDENCY_CLAUSES:
                    for spec in clause.items[1:]:
                        requires.extend(libspec_names(spec))
        return ModuleHeader(module_id=module_id, requires=_unique(requires, module_id))

    def has_entry_point(self, source: str) -> bool:
        """True if a top-level ``defn``/``defn-`` form defines ``-main``.

        Commented-out and ``#_``-discarded definitions do not count.  A
        reader error ends the scan with whatever was found before it.
        """
        reader = _Reader(source)
        try:
            while not reader.at_end():
                form = reader.read()
                if not isinstance(form, Form) or form.kind != "list" or len(form.items) < 2:
                    continue
                head, name = form.items[0], form.items[1]
                if not (isinstance(head, Symbol) and isinstance(name, Symbol)):
                    continue
                if head in self.DEFINERS and name == "-main":
                    return True
        except HeaderParseError:
            return False
        return False

    @staticmethod
    def _find_ns_form(source: str) -> Form:
        reader = _Reader(source)
        while not reader.at_end():
            form = reader.read()
            head = form.head() if isinstance(form, Form) else None
            if isinstance(head, Symbol) and head == "ns" and form.kind == "list":
                return form
        raise HeaderParseError("no ns declaration found")


# ===================================================================
# Python
# ===================================================================

class PythonImportParser(HeaderParser):
    """Module identity from the file path, dependencies from imports."""

    extension = ".py"

    ENTRY_POINT = re.compile(
        r"^if\s+(?:__name__\s*==\s*[\"']__main__[\"']|[\"']__main__[\"']\s*==\s*__name__)\s*:",
        re.MULTILINE,
    )

    def parse(self, source: str, path: str = "", root: str = "") -> ModuleHeader:
        parts = self.module_parts(path, root)
        is_package = path.endswith("/__init__.py") or path == "__init__.py"
        if is_package:
            parts = parts[:-1]
        if not parts:
            raise HeaderParseError(f"cannot derive a module name for '{path}'")
        module_id = ".".join(parts)

        try:
            tree = ast.parse(source, filename=path or "<source>")
        except SyntaxError as exc:
            raise HeaderParseError(f"syntax error: {exc}") from exc

        package = parts if is_package else parts[:-1]
        requires: List[str] = []
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                requires.extend(alias.name for alias in node.names)
            elif isinstance(node, ast.ImportFrom):
                base = self._resolve_from(node, package)
                if base is None:
                    continue
                if base:
                    requires.append(base)
                for alias in node.names:
                    if alias.name != "*":
                        requires.append(_join(base, alias.name))
        return ModuleHeader(module_id=module_id, requires=_unique(requires, module_id))

    def has_entry_point(self, source: str) -> bool:
        return self.ENTRY_POINT.search(source) is not None

    @staticmethod
    def module_parts(path: str, root: str) -> List[str]:
        rel = path
        root = root.strip("/")
        if root and root != "." and rel.startswith(root + "/"):
            rel = rel[len(root) + 1:]
        if rel.endswith(".py"):
            rel = rel[: -len(".py")]
        return [p for p in rel.split("/") if p]

    @staticmethod
    def _resolve_from(node: ast.ImportFrom, package: List[str]) -> Optional[str]:
        if not node.level:
            return node.module or ""
        if node.level - 1 > len(package):
            return None
        anchor = package[: len(package) - (node.level - 1)]
        if node.module:
            anchor = anchor + [node.module]
        return ".".join(anchor)


PARSERS: Dict[str, Type[HeaderParser]] = {
    "clojure": ClojureNsParser,
    "python": PythonImportParser,
}


def get_parser(language: str) -> HeaderParser:
    try:
        return PARSERS[language]()
    except KeyError:
        raise ValueError(f"No header parser for language '{language}'") from None
