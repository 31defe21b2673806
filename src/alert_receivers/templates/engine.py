"""Go text/template compatible template engine.

Alert templates are shared with Go based alerting tools, so notification
text is written in Go template syntax (``{{ len .Alerts.Firing }}``). This
module implements the subset of that language the alerting templates use:

- text and ``{{ pipeline }}`` actions, ``{{-``/``-}}`` trim markers, comments
- ``if``/``else if``/``else``, ``range``, ``with``, ``define``, ``template``, ``block``
- variables (``$x := ...``, ``$x = ...``, ``$``), field chains, method calls
- pipelines with ``|`` and parenthesised sub-pipelines

Field references are resolved against mappings by key and against objects
whose type lists the name in ``_template_fields``, where ``GeneratorURL``
maps to the ``generator_url`` attribute.
A reference to an undefined field renders as the empty string.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any
from urllib.parse import quote_plus

LEFT_DELIM = "{{"
RIGHT_DELIM = "}}"

_MISSING = object()
_SPACE = " \t\r\n"
_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_NUMBER_RE = re.compile(r"[+-]?(?:0[xX][0-9a-fA-F]+|\d+(?:\.\d*)?(?:[eE][+-]?\d+)?|\.\d+)")
_CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_VERB_RE = re.compile(r"%([-+# 0]*)(\d+)?(?:\.(\d+))?([a-zA-Z%])")
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", '"': '"', "'": "'", "0": "\0"}
_KEYWORDS = frozenset({"if", "else", "end", "range", "with", "define", "template", "block"})
MAX_EXEC_DEPTH = 64


class TemplateError(Exception):
    """Raised for malformed templates and failed template execution."""


# ============================================================================
# Lexer
# ============================================================================


@dataclass(frozen=True)
class Token:
    kind: str
    value: Any
    pos: int


class _Lexer:
    """Split template source into text and action tokens."""

    def __init__(self, source: str) -> None:
        self.source = source
        self.pos = 0
        self.tokens: list[Token] = []

    def lex(self) -> list[Token]:
        src = self.source
        trim_next = False
        while self.pos < len(src):
            start = src.find(LEFT_DELIM, self.pos)
            text = src[self.pos :] if start < 0 else src[self.pos : start]
            if trim_next:
                text = text.lstrip(_SPACE)
            if start < 0:
                if text:
                    self._emit("text", text, self.pos)
                break

            inner = start + len(LEFT_DELIM)
            if src.startswith("-", inner) and src[inner + 1 : inner + 2] in tuple(_SPACE):
                text = text.rstrip(_SPACE)
                inner += 2
            if text:
                self._emit("text", text, self.pos)

            self.pos = inner
            trim_next = self._lex_action()
        return self.tokens

    def _emit(self, kind: str, value: Any, pos: int) -> None:
        self.tokens.append(Token(kind, value, pos))

    def _close_at(self, i: int) -> tuple[int, bool] | None:
        """Return (end, trim) when a right delimiter starts at i."""
        src = self.source
        if src.startswith(RIGHT_DELIM, i):
            return i + len(RIGHT_DELIM), False
        if src[i : i + 1] in tuple(_SPACE) and src.startswith("-" + RIGHT_DELIM, i + 1):
            return i + 1 + len("-" + RIGHT_DELIM), True
        return None

    def _lex_action(self) -> bool:
        src = self.source
        i = self.pos
        while i < len(src) and src[i] in _SPACE and self._close_at(i) is None:
            i += 1
        if src.startswith("/*", i):
            end = src.find("*/", i + 2)
            if end < 0:
                raise TemplateError(f"unclosed comment at offset {i}")
            i = end + 2
            while i < len(src) and src[i] in _SPACE and self._close_at(i) is None:
                i += 1
            closed = self._close_at(i)
            if closed is None:
                raise TemplateError(f"comment ends before closing delimiter at offset {i}")
            self.pos = closed[0]
            return closed[1]

        self._emit("open", None, self.pos)
        prev = ""
        while True:
            if i >= len(src):
                raise TemplateError(f"unclosed action at offset {self.pos}")
            closed = self._close_at(i)
            if closed is not None:
                self._emit("close", None, i)
                self.pos = closed[0]
                return closed[1]
            c = src[i]
            if c in _SPACE:
                i += 1
                prev = c
                continue
            if c == '"':
                i = self._lex_quote(i)
            elif c == "`":
                end = src.find("`", i + 1)
                if end < 0:
                    raise TemplateError(f"unterminated raw string at offset {i}")
                self._emit("string", src[i + 1 : end], i)
                i = end + 1
            elif c == "|":
                self._emit("pipe", c, i)
                i += 1
            elif c == "(":
                self._emit("lparen", c, i)
                i += 1
            elif c == ")":
                self._emit("rparen", c, i)
                i += 1
            elif c == ",":
                self._emit("comma", c, i)
                i += 1
            elif src.startswith(":=", i):
                self._emit("declare", ":=", i)
                i += 2
            elif c == "=":
                self._emit("assign", "=", i)
                i += 1
            elif c == "." and _IDENT_RE.match(src, i + 1):
                names, end = self._lex_fields(i)
                self._emit("chain" if prev == ")" else "field", names, i)
                i = end
            elif c == ".":
                self._emit("dot", c, i)
                i += 1
            elif c == "$":
                m = _IDENT_RE.match(src, i + 1)
                name = "$" + (m.group() if m else "")
                end = m.end() if m else i + 1
                var_fields: tuple[str, ...] = ()
                if src.startswith(".", end) and _IDENT_RE.match(src, end + 1):
                    var_fields, end = self._lex_fields(end)
                self._emit("variable", (name, var_fields), i)
                i = end
            elif (m := _NUMBER_RE.match(src, i)) and (c.isdigit() or c in "+-."):
                self._emit("number", _parse_number(m.group()), i)
                i = m.end()
            elif m := _IDENT_RE.match(src, i):
                word = m.group()
                if word in ("true", "false"):
                    self._emit("bool", word == "true", i)
                elif word == "nil":
                    self._emit("nil", None, i)
                else:
                    self._emit("ident", word, i)
                i = m.end()
            else:
                raise TemplateError(f"unexpected {c!r} in action at offset {i}")
            prev = src[i - 1]

    def _lex_fields(self, i: int) -> tuple[tuple[str, ...], int]:
        names = []
        src = self.source
        while src.startswith(".", i) and (m := _IDENT_RE.match(src, i + 1)):
            names.append(m.group())
            i = m.end()
        return tuple(names), i

    def _lex_quote(self, i: int) -> int:
        src = self.source
        out = []
        j = i + 1
        while j < len(src):
            c = src[j]
            if c == '"':
                self._emit("string", "".join(out), i)
                return j + 1
            if c == "\n":
                break
            if c == "\\" and j + 1 < len(src):
                esc = src[j + 1]
                if esc not in _ESCAPES:
                    raise TemplateError(f"unknown escape sequence \\{esc} at offset {j}")
                out.append(_ESCAPES[esc])
                j += 2
                continue
            out.append(c)
            j += 1
        raise TemplateError(f"unterminated quoted string at offset {i}")


def _parse_number(text: str) -> int | float:
    if text.lstrip("+-").lower().startswith("0x"):
        return int(text, 16)
    try:
        return int(text)
    except ValueError:
        return float(text)


# ============================================================================
# Parse tree
# ============================================================================


@dataclass
class Pipeline:
    commands: list[list[Any]]
    decl: list[str] = field(default_factory=list)
    is_assign: bool = False


@dataclass
class TextNode:
    text: str


@dataclass
class ActionNode:
    pipe: Pipeline


@dataclass
class BranchNode:
    """An if, with or range node."""

    kind: str
    pipe: Pipeline
    body: list[Any]
    else_body: list[Any] = field(default_factory=list)


@dataclass
class TemplateNode:
    name: str
    pipe: Pipeline | None


@dataclass(frozen=True)
class FieldNode:
    names: tuple[str, ...]


@dataclass(frozen=True)
class VariableNode:
    name: str
    names: tuple[str, ...] = ()


@dataclass(frozen=True)
class ChainNode:
    pipe: Pipeline
    names: tuple[str, ...]


@dataclass(frozen=True)
class IdentifierNode:
    name: str


@dataclass(frozen=True)
class LiteralNode:
    value: Any


@dataclass(frozen=True)
class DotNode:
    pass


class _Parser:
    """Recursive descent parser producing a node list and named definitions."""

    def __init__(self, tokens: list[Token], funcs: Mapping[str, Callable[..., Any]]) -> None:
        self.tokens = tokens
        self.funcs = funcs
        self.i = 0
        self.defines: dict[str, list[Any]] = {}

    def parse(self) -> list[Any]:
        nodes, _ = self._parse_list(nested=False)
        return nodes

    def _peek(self, offset: int = 0) -> Token | None:
        j = self.i + offset
        return self.tokens[j] if j < len(self.tokens) else None

    def _next(self) -> Token:
        tok = self._peek()
        if tok is None:
            raise TemplateError("unexpected end of template")
        self.i += 1
        return tok

    def _expect(self, kind: str) -> Token:
        tok = self._next()
        if tok.kind != kind:
            raise TemplateError(f"expected {kind}, found {tok.kind} at offset {tok.pos}")
        return tok

    def _parse_list(self, nested: bool) -> tuple[list[Any], str | None]:
        nodes: list[Any] = []
        while (tok := self._peek()) is not None:
            self.i += 1
            if tok.kind == "text":
                nodes.append(TextNode(tok.value))
                continue
            head = self._peek()
            if head is not None and head.kind == "ident" and head.value in ("end", "else"):
                if not nested:
                    raise TemplateError(f"unexpected {{{{{head.value}}}}} at offset {head.pos}")
                self.i += 1
                return nodes, head.value
            node = self._parse_action()
            if node is not None:
                nodes.append(node)
        if nested:
            raise TemplateError("unexpected EOF, missing {{end}}")
        return nodes, None

    def _parse_action(self) -> Any:
        head = self._peek()
        if head is not None and head.kind == "ident" and head.value in _KEYWORDS:
            self.i += 1
            if head.value in ("if", "with", "range"):
                return self._parse_branch(head.value)
            if head.value == "define":
                name = self._expect("string").value
                self._expect("close")
                self.defines[name] = self._parse_end_body()
                return None
            if head.value == "template":
                name = self._expect("string").value
                pipe = None
                if self._peek() is not None and self._peek().kind != "close":
                    pipe = self._parse_pipeline(allow_decl=False)
                self._expect("close")
                return TemplateNode(name, pipe)
            if head.value == "block":
                name = self._expect("string").value
                pipe = self._parse_pipeline(allow_decl=False)
                self._expect("close")
                self.defines[name] = self._parse_end_body()
                return TemplateNode(name, pipe)
        pipe = self._parse_pipeline(allow_decl=True)
        self._expect("close")
        return ActionNode(pipe)

    def _parse_end_body(self) -> list[Any]:
        body, term = self._parse_list(nested=True)
        if term != "end":
            raise TemplateError("unexpected {{else}} in definition")
        self._expect("close")
        return body

    def _parse_branch(self, kind: str) -> BranchNode:
        pipe = self._parse_pipeline(allow_decl=True, ranged=kind == "range")
        self._expect("close")
        body, term = self._parse_list(nested=True)
        node = BranchNode(kind, pipe, body)
        if term == "else":
            nxt = self._peek()
            chained = nxt is not None and nxt.kind == "ident" and nxt.value == kind
            if chained and kind in ("if", "with"):
                # {{else if}} shares the closing {{end}} of the outer branch.
                self.i += 1
                node.else_body = [self._parse_branch(kind)]
                return node
            self._expect("close")
            node.else_body, term = self._parse_list(nested=True)
            if term != "end":
                raise TemplateError("expected {{end}} after {{else}} body")
        self._expect("close")
        return node

    def _parse_pipeline(self, allow_decl: bool, ranged: bool = False) -> Pipeline:
        pipe = Pipeline(commands=[])
        tok = self._peek()
        if allow_decl and tok is not None and tok.kind == "variable" and not tok.value[1]:
            after = self._peek(1)
            if after is not None and after.kind in ("declare", "assign"):
                pipe.decl = [tok.value[0]]
                pipe.is_assign = after.kind == "assign"
                self.i += 2
            elif ranged and after is not None and after.kind == "comma":
                second, op = self._peek(2), self._peek(3)
                if (
                    second is None
                    or second.kind != "variable"
                    or op is None
                    or op.kind != "declare"
                ):
                    raise TemplateError(f"malformed range declaration at offset {tok.pos}")
                pipe.decl = [tok.value[0], second.value[0]]
                self.i += 4

        while True:
            pipe.commands.append(self._parse_command())
            tok = self._peek()
            if tok is not None and tok.kind == "pipe":
                self.i += 1
                continue
            break
        return pipe

    def _parse_command(self) -> list[Any]:
        args: list[Any] = []
        while (tok := self._peek()) is not None and tok.kind not in ("close", "rparen", "pipe"):
            args.append(self._parse_operand())
        if not args:
            pos = tok.pos if tok is not None else len(self.tokens)
            raise TemplateError(f"missing value for command at offset {pos}")
        return args

    def _parse_operand(self) -> Any:
        tok = self._next()
        if tok.kind == "field":
            return FieldNode(tok.value)
        if tok.kind == "variable":
            return VariableNode(*tok.value)
        if tok.kind == "dot":
            return DotNode()
        if tok.kind in ("string", "number", "bool", "nil"):
            return LiteralNode(tok.value)
        if tok.kind == "ident":
            if tok.value not in self.funcs:
                raise TemplateError(f'function "{tok.value}" not defined')
            return IdentifierNode(tok.value)
        if tok.kind == "lparen":
            pipe = self._parse_pipeline(allow_decl=False)
            self._expect("rparen")
            nxt = self._peek()
            if nxt is not None and nxt.kind == "chain":
                self.i += 1
                return ChainNode(pipe, nxt.value)
            return pipe
        raise TemplateError(f"unexpected {tok.kind} in operand at offset {tok.pos}")


# ============================================================================
# Value helpers
# ============================================================================


def attribute_name(name: str) -> str:
    """Map an exported Go-style field name to a Python attribute name."""
    return _CAMEL_RE.sub("_", name).lower()


def format_float(value: float) -> str:
    """Format a float the way Go's %v verb does."""
    if value != value:
        return "NaN"
    if value in (float("inf"), float("-inf")):
        return "+Inf" if value > 0 else "-Inf"
    if value == 0:
        return "0"
    sign, digits, exponent = Decimal(repr(value)).normalize().as_tuple()
    mantissa = "".join(str(d) for d in digits)
    exp = len(mantissa) + exponent - 1
    prefix = "-" if sign else ""
    if exp < -4 or exp >= 6:
        frac = f".{mantissa[1:]}" if len(mantissa) > 1 else ""
        return f"{prefix}{mantissa[0]}{frac}e{'-' if exp < 0 else '+'}{abs(exp):02d}"
    return prefix + format(Decimal(mantissa).scaleb(exponent), "f")


def to_text(value: Any) -> str:
    """Render a value as template output."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return format_float(value)
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(to_text(v) for v in value) + "]"
    if isinstance(value, dict):
        return "map[" + " ".join(f"{k}:{to_text(value[k])}" for k in sorted(value)) + "]"
    return str(value)


def is_true(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (bool, int, float, str, list, tuple, Mapping)):
        return bool(value)
    try:
        return len(value) > 0
    except TypeError:
        return True


def _lookup(receiver: Any, name: str) -> Any:
    """Resolve one field name against a value.

    Only names listed in the receiver type's ``_template_fields`` are read as
    attributes; anything else is a key lookup on mappings or missing.
    """
    if receiver is None:
        return _MISSING
    exported = getattr(type(receiver), "_template_fields", ())
    if name in exported:
        return getattr(receiver, attribute_name(name), _MISSING)
    if isinstance(receiver, Mapping):
        return receiver.get(name, _MISSING)
    return _MISSING


# ============================================================================
# Builtin functions
# ============================================================================


def _eq(arg1: Any, *args: Any) -> bool:
    if not args:
        raise TemplateError("missing argument for comparison")
    return any(arg1 == a for a in args)


def _ordered(op: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def compare(a: Any, b: Any) -> bool:
        try:
            return op(a, b)
        except TypeError as e:
            raise TemplateError(f"incompatible types for comparison: {a!r}, {b!r}") from e

    return compare


def _and(*args: Any) -> Any:
    for arg in args:
        if not is_true(arg):
            return arg
    return args[-1]


def _or(*args: Any) -> Any:
    for arg in args:
        if is_true(arg):
            return arg
    return args[-1]


def _len(item: Any) -> int:
    if item is None:
        return 0
    try:
        return len(item)
    except TypeError as e:
        raise TemplateError(f"len of type {type(item).__name__}") from e


def _index(item: Any, *indices: Any) -> Any:
    for idx in indices:
        try:
            item = item[idx]
        except (KeyError, IndexError, TypeError):
            return None
    return item


def _print(*args: Any) -> str:
    out = []
    for i, arg in enumerate(args):
        if i > 0 and not isinstance(arg, str) and not isinstance(args[i - 1], str):
            out.append(" ")
        out.append(to_text(arg))
    return "".join(out)


def _printf(fmt: str, *args: Any) -> str:
    remaining = list(args)

    def verb(m: re.Match[str]) -> str:
        flags, width, precision, kind = m.groups()
        if kind == "%":
            return "%"
        if not remaining:
            return f"%!{kind}(MISSING)"
        arg = remaining.pop(0)
        spec = f"{'<' if '-' in flags else ''}{'0' if '0' in flags and '-' not in flags else ''}{width or ''}"
        if kind in ("v", "s"):
            return format(to_text(arg), spec)
        if kind == "q":
            return format(json.dumps(to_text(arg), ensure_ascii=False), spec)
        if kind == "t":
            return format(to_text(bool(arg)), spec)
        if kind == "d":
            return format(int(arg), spec + "d")
        if kind in ("f", "e", "g"):
            prec = f".{precision}" if precision is not None else ("" if kind == "g" else ".6")
            return format(float(arg), spec + prec + kind)
        if kind in ("x", "X"):
            if isinstance(arg, str):
                hexed = arg.encode().hex()
                return hexed.upper() if kind == "X" else hexed
            return format(int(arg), spec + kind)
        return f"%!{kind}({to_text(arg)})"

    out = _VERB_RE.sub(verb, fmt)
    if remaining:
        out += "%!(EXTRA " + ", ".join(to_text(a) for a in remaining) + ")"
    return out


def _title(text: str) -> str:
    return re.sub(r"(?:^|(?<=[^\w]))(\w)", lambda m: m.group(1).upper(), text)


def _join(sep: str, items: Any) -> str:
    return sep.join(to_text(item) for item in (items or []))


def _re_replace_all(pattern: str, repl: str, text: str) -> str:
    py_repl = re.sub(r"\$\{(\w+)\}|\$(\w+)", lambda m: rf"\g<{m.group(1) or m.group(2)}>", repl)
    return re.sub(pattern, py_repl, text)


BUILTIN_FUNCS: dict[str, Callable[..., Any]] = {
    "and": _and,
    "or": _or,
    "not": lambda arg: not is_true(arg),
    "eq": _eq,
    "ne": lambda a, b: a != b,
    "lt": _ordered(lambda a, b: a < b),
    "le": _ordered(lambda a, b: a <= b),
    "gt": _ordered(lambda a, b: a > b),
    "ge": _ordered(lambda a, b: a >= b),
    "len": _len,
    "index": _index,
    "print": _print,
    "printf": _printf,
    "urlquery": lambda *args: quote_plus(_print(*args)),
    # Alerting helpers
    "toUpper": lambda s: to_text(s).upper(),
    "toLower": lambda s: to_text(s).lower(),
    "title": lambda s: _title(to_text(s)),
    "trimSpace": lambda s: to_text(s).strip(),
    "join": _join,
    "match": lambda pattern, text: re.search(pattern, to_text(text)) is not None,
    "reReplaceAll": _re_replace_all,
    "safeHtml": lambda s: s,
    "stringSlice": lambda *s: list(s),
}


# ============================================================================
# Execution
# ============================================================================


class _State:
    """Execution state for one template invocation."""

    def __init__(
        self,
        templates: Templates,
        defines: Mapping[str, list[Any]],
        dot: Any,
        depth: int = 0,
    ) -> None:
        self.templates = templates
        self.defines = defines
        self.depth = depth
        self.out: list[str] = []
        self.vars: list[tuple[str, Any]] = [("$", dot)]

    def walk(self, dot: Any, nodes: list[Any]) -> None:
        for node in nodes:
            if isinstance(node, TextNode):
                self.out.append(node.text)
            elif isinstance(node, ActionNode):
                value = self.eval_pipeline(dot, node.pipe)
                if not node.pipe.decl:
                    self.out.append(to_text(value))
            elif isinstance(node, BranchNode):
                self.walk_branch(dot, node)
            elif isinstance(node, TemplateNode):
                self.walk_template(dot, node)

    def walk_branch(self, dot: Any, node: BranchNode) -> None:
        mark = len(self.vars)
        try:
            if node.kind == "range":
                self.walk_range(dot, node)
                return
            value = self.eval_pipeline(dot, node.pipe)
            if is_true(value):
                self.walk(value if node.kind == "with" else dot, node.body)
            else:
                self.walk(dot, node.else_body)
        finally:
            del self.vars[mark:]

    def walk_range(self, dot: Any, node: BranchNode) -> None:
        value = self.eval_commands(dot, node.pipe)
        if value is None:
            items: list[tuple[Any, Any]] = []
        elif isinstance(value, Mapping):
            items = [(k, value[k]) for k in sorted(value)]
        elif isinstance(value, int) and not isinstance(value, bool):
            items = [(i, i) for i in range(value)]
        elif isinstance(value, (str, bytes)):
            raise TemplateError(f"range can't iterate over {value!r}")
        else:
            try:
                items = list(enumerate(value))
            except TypeError as e:
                raise TemplateError(f"range can't iterate over {value!r}") from e

        if not items:
            self.walk(dot, node.else_body)
            return
        for key, elem in items:
            mark = len(self.vars)
            if len(node.pipe.decl) == 1:
                self.vars.append((node.pipe.decl[0], elem))
            elif len(node.pipe.decl) == 2:
                self.vars.append((node.pipe.decl[0], key))
                self.vars.append((node.pipe.decl[1], elem))
            self.walk(elem, node.body)
            del self.vars[mark:]

    def walk_template(self, dot: Any, node: TemplateNode) -> None:
        body = self.defines.get(node.name)
        if body is None:
            raise TemplateError(f'no such template "{node.name}"')
        if self.depth >= MAX_EXEC_DEPTH:
            raise TemplateError("exceeded maximum template depth")
        new_dot = self.eval_pipeline(dot, node.pipe) if node.pipe is not None else None
        state = _State(self.templates, self.defines, new_dot, self.depth + 1)
        state.out = self.out
        state.walk(new_dot, body)

    def eval_pipeline(self, dot: Any, pipe: Pipeline) -> Any:
        value = self.eval_commands(dot, pipe)
        if pipe.decl:
            name = pipe.decl[0]
            if pipe.is_assign:
                self.set_var(name, value)
            else:
                self.vars.append((name, value))
        return value

    def eval_commands(self, dot: Any, pipe: Pipeline) -> Any:
        value: Any = None
        for i, cmd in enumerate(pipe.commands):
            final = (value,) if i > 0 else ()
            value = self.eval_command(dot, cmd, final)
        return value

    def eval_command(self, dot: Any, cmd: list[Any], final: tuple[Any, ...]) -> Any:
        head, rest = cmd[0], cmd[1:]
        if isinstance(head, IdentifierNode):
            args = [self.eval_arg(dot, a) for a in rest] + list(final)
            try:
                return self.templates.funcs[head.name](*args)
            except TemplateError:
                raise
            except (TypeError, ValueError, re.error) as e:
                raise TemplateError(f'error calling {head.name}: {e}') from e

        args = [self.eval_arg(dot, a) for a in rest] + list(final)
        if isinstance(head, FieldNode):
            return self.eval_chain(dot, head.names, args)
        if isinstance(head, ChainNode):
            return self.eval_chain(self.eval_pipeline(dot, head.pipe), head.names, args)
        if isinstance(head, VariableNode) and head.names:
            return self.eval_chain(self.get_var(head.name), head.names, args)
        if args:
            raise TemplateError("can't give argument to non-function")
        return self.eval_arg(dot, head)

    def eval_arg(self, dot: Any, node: Any) -> Any:
        if isinstance(node, DotNode):
            return dot
        if isinstance(node, LiteralNode):
            return node.value
        if isinstance(node, FieldNode):
            return self.eval_chain(dot, node.names, [])
        if isinstance(node, VariableNode):
            return self.eval_chain(self.get_var(node.name), node.names, [])
        if isinstance(node, ChainNode):
            return self.eval_chain(self.eval_pipeline(dot, node.pipe), node.names, [])
        if isinstance(node, Pipeline):
            return self.eval_pipeline(dot, node)
        if isinstance(node, IdentifierNode):
            return self.eval_command(dot, [node], ())
        raise TemplateError(f"can't evaluate {node!r}")

    def eval_chain(self, receiver: Any, names: tuple[str, ...], args: list[Any]) -> Any:
        for i, name in enumerate(names):
            last = i == len(names) - 1
            member = _lookup(receiver, name)
            if member is _MISSING:
                # Undefined fields render empty instead of failing the render.
                return None
            if callable(member) and not isinstance(member, type):
                try:
                    receiver = member(*(args if last else []))
                except TypeError as e:
                    raise TemplateError(f"error calling {name}: {e}") from e
            elif last and args:
                raise TemplateError(f"{name} is not a method but has arguments")
            else:
                receiver = member
        return receiver

    def get_var(self, name: str) -> Any:
        for var_name, value in reversed(self.vars):
            if var_name == name:
                return value
        raise TemplateError(f"undefined variable: {name}")

    def set_var(self, name: str, value: Any) -> None:
        for i in range(len(self.vars) - 1, -1, -1):
            if self.vars[i][0] == name:
                self.vars[i] = (name, value)
                return
        raise TemplateError(f"undefined variable: {name}")


class Templates:
    """A set of named template definitions plus a function map.

    Example:
        ```python
        templates = Templates()
        templates.parse('{{ define "greet" }}Hello {{ .Name }}{{ end }}')
        templates.execute_text('{{ template "greet" . }}', {"Name": "world"})
        ```
    """

    def __init__(self, funcs: Mapping[str, Callable[..., Any]] | None = None) -> None:
        self.funcs: dict[str, Callable[..., Any]] = dict(BUILTIN_FUNCS)
        if funcs:
            self.funcs.update(funcs)
        self.defines: dict[str, list[Any]] = {}

    def _parse(self, text: str) -> tuple[list[Any], dict[str, list[Any]]]:
        parser = _Parser(_Lexer(text).lex(), self.funcs)
        root = parser.parse()
        return root, parser.defines

    def parse(self, text: str) -> None:
        """Parse text and register the templates it defines."""
        self.defines.update(self._parse(text)[1])

    def lookup(self, name: str) -> bool:
        return name in self.defines

    def execute(self, name: str, data: Any) -> str:
        """Execute a registered template by name."""
        return self.execute_text(f'{{{{ template "{name}" . }}}}', data)

    def execute_text(self, text: str, data: Any) -> str:
        """Parse and execute a template string against data.

        Definitions made inside text are visible only to this execution.

        Raises:
            TemplateError: If text is malformed or fails to execute.
        """
        root, local_defines = self._parse(text)
        state = _State(self, {**self.defines, **local_defines}, data)
        state.walk(data, root)
        return "".join(state.out)
