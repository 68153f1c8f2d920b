"""Expression DSL parser for condition and effect documents."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from rulekit._errors import DocumentError
from rulekit._nodes import (
    ExpressionTree,
    Logic,
    LogicalNode,
    OperationNode,
    PredicateNode,
)


class ExpressionParser:
    """
    Parser for human-readable condition and effect documents.

    Conditions support two equivalent syntaxes:
        Symbol style:  is_truthy(path="user.active") & ~is_null(path="user.email")
        Word style:    is_truthy(path="user.active") AND NOT is_null(path="user.email")

    Operators (by precedence, lowest to highest):
        |, OR       - At least one must pass
        ^, XOR      - Exactly one must pass
        &, AND      - All must pass
        ~, NOT, !   - Invert result

    Grouping:
        ( )                 - Override precedence
        all(a, b, ...)      - AND of the list
        any(a, b, ...)      - OR of the list
        one(a, b, ...)      - XOR of the list
        not(a, b, ...)      - NOT of the list's AND (NAND)

    Calls:
        name                        - Predicate/operation without arguments
        name(key=value, ...)        - Keyword arguments (``key: value`` also works)

    Literals:
        42, -1.5, "text", 'text', true, false, null,
        [1, 2, 3], {"key": "value", other: 1}

    A condition document may hold several top-level expressions separated by
    ``,`` or ``;``; they are combined with AND. An effect document is a
    sequence of calls, optionally separated by ``,`` or ``;``. Newlines are
    ignored and ``#`` starts a comment.

    Examples:
        always
        greater_than(path="cart.total", value=100) & is_truthy(path="user.vip")
        any(equals_string(path="country", value="NL"), equals_string(path="country", value="BE"))
        not(is_truthy(path="a"), is_truthy(path="b"))

        # Effects
        add(path="cart.discount", value=10)
        set(path="cart.flags", value=["vip"])
    """

    # Token types
    AND = "AND"
    OR = "OR"
    XOR = "XOR"
    NOT = "NOT"
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    LBRACKET = "LBRACKET"
    RBRACKET = "RBRACKET"
    LBRACE = "LBRACE"
    RBRACE = "RBRACE"
    COMMA = "COMMA"
    SEMI = "SEMI"
    EQUALS = "EQUALS"
    COLON = "COLON"
    IDENT = "IDENT"
    NUMBER = "NUMBER"
    STRING = "STRING"
    BOOL = "BOOL"
    NULL = "NULL"
    EOF = "EOF"

    # Group keywords, only when followed by '('
    GROUPS = {"all": Logic.AND, "any": Logic.OR, "one": Logic.XOR}

    _SINGLE = {
        "&": AND,
        "|": OR,
        "^": XOR,
        "~": NOT,
        "!": NOT,
        "(": LPAREN,
        ")": RPAREN,
        "[": LBRACKET,
        "]": RBRACKET,
        "{": LBRACE,
        "}": RBRACE,
        ",": COMMA,
        ";": SEMI,
        "=": EQUALS,
        ":": COLON,
    }

    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.tokens: list[tuple[str, Any, int]] = []
        self.token_pos = 0
        self._tokenize()

    def _tokenize(self) -> None:
        """Convert text into (type, value, position) tokens."""
        while self.pos < len(self.text):
            ch = self.text[self.pos]

            # Skip whitespace and newlines
            if ch in " \t\n\r":
                self.pos += 1
                continue

            # Skip comments
            if ch == "#":
                while self.pos < len(self.text) and self.text[self.pos] != "\n":
                    self.pos += 1
                continue

            start = self.pos
            if ch in self._SINGLE:
                self.tokens.append((self._SINGLE[ch], ch, start))
                self.pos += 1

            elif ch in "\"'":
                self.tokens.append((self.STRING, self._read_string(ch), start))

            elif ch.isdigit() or (
                ch == "-"
                and self.pos + 1 < len(self.text)
                and (self.text[self.pos + 1].isdigit() or self.text[self.pos + 1] == ".")
            ):
                self.tokens.append((self.NUMBER, self._read_number(), start))

            elif ch.isalpha() or ch == "_":
                ident = self._read_ident()
                upper = ident.upper()
                if upper == "AND":
                    self.tokens.append((self.AND, ident, start))
                elif upper == "OR":
                    self.tokens.append((self.OR, ident, start))
                elif upper == "XOR":
                    self.tokens.append((self.XOR, ident, start))
                elif upper == "NOT":
                    self.tokens.append((self.NOT, ident, start))
                elif ident.lower() in ("true", "false"):
                    self.tokens.append((self.BOOL, ident.lower() == "true", start))
                elif ident.lower() == "null":
                    self.tokens.append((self.NULL, None, start))
                else:
                    self.tokens.append((self.IDENT, ident, start))

            else:
                raise DocumentError(f"Unexpected character {ch!r}", start)

        self.tokens.append((self.EOF, None, self.pos))

    def _read_string(self, quote: str) -> str:
        """Read a quoted string with escape sequence processing."""
        start = self.pos
        self.pos += 1  # skip opening quote
        result = []
        while self.pos < len(self.text) and self.text[self.pos] != quote:
            if self.text[self.pos] == "\\" and self.pos + 1 < len(self.text):
                next_ch = self.text[self.pos + 1]
                escape_map = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\"}
                if next_ch in escape_map:
                    result.append(escape_map[next_ch])
                else:
                    # \' \" and anything else stand for the escaped char
                    result.append(next_ch)
                self.pos += 2
            else:
                result.append(self.text[self.pos])
                self.pos += 1
        if self.pos >= len(self.text):
            raise DocumentError("Unterminated string literal", start)
        self.pos += 1  # skip closing quote
        return "".join(result)

    def _read_number(self) -> int | float:
        """Read an integer, decimal or exponent number."""
        start = self.pos
        if self.text[self.pos] == "-":
            self.pos += 1
        while self.pos < len(self.text) and (
            self.text[self.pos].isdigit() or self.text[self.pos] in ".eE"
        ):
            if self.text[self.pos] in "eE" and self.pos + 1 < len(self.text):
                if self.text[self.pos + 1] in "+-":
                    self.pos += 1
            self.pos += 1
        text = self.text[start : self.pos]
        try:
            if any(c in text for c in ".eE"):
                return float(text)
            return int(text)
        except ValueError:
            raise DocumentError(f"Invalid number {text!r}", start) from None

    def _read_ident(self) -> str:
        """Read an identifier."""
        start = self.pos
        while self.pos < len(self.text) and (
            self.text[self.pos].isalnum() or self.text[self.pos] == "_"
        ):
            self.pos += 1
        return self.text[start : self.pos]

    def _peek(self, offset: int = 0) -> tuple[str, Any, int]:
        """Look at a token without consuming it."""
        index = min(self.token_pos + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def _consume(self) -> tuple[str, Any, int]:
        """Consume and return current token."""
        token = self.tokens[self.token_pos]
        if token[0] != self.EOF:
            self.token_pos += 1
        return token

    def _expect(self, token_type: str) -> tuple[str, Any, int]:
        """Consume token and verify its type."""
        token = self._consume()
        if token[0] != token_type:
            raise DocumentError(f"Expected {token_type}, got {token[0]}", token[2])
        return token

    def _error(self, message: str) -> DocumentError:
        token = self._peek()
        return DocumentError(f"{message}: {token[0]} {token[1]!r}", token[2])

    # -------------------------------------------------------------------------
    # Conditions
    # -------------------------------------------------------------------------

    def parse_condition(self) -> ExpressionTree:
        """
        Parse a condition document into an expression tree.

        Grammar:
            document = (expr ((',' | ';') expr)*)?
            expr     = or_expr
            or_expr  = xor_expr (('|' | 'OR') xor_expr)*
            xor_expr = and_expr (('^' | 'XOR') and_expr)*
            and_expr = not_expr (('&' | 'AND') not_expr)*
            not_expr = ('~' | '!' | 'NOT') ('(' expr (',' expr)* ')' | not_expr)
                     | primary
            primary  = group | call | '(' expr ')'
            group    = ('all' | 'any' | 'one') '(' (expr (',' expr)*)? ')'
            call     = IDENT ('(' kwargs? ')')?
        """
        items: list[ExpressionTree] = []
        while self._peek()[0] != self.EOF:
            items.append(self._parse_or())
            if self._peek()[0] in (self.COMMA, self.SEMI):
                self._consume()
            elif self._peek()[0] != self.EOF:
                raise self._error("Unexpected token")

        if not items:
            raise DocumentError("Empty condition document", 0)
        if len(items) == 1:
            return items[0]
        return LogicalNode(Logic.AND, tuple(items))

    def _parse_chain(self, op: str, kind: Logic, parse_next) -> ExpressionTree:
        items = [parse_next()]
        while self._peek()[0] == op:
            self._consume()
            items.append(parse_next())
        if len(items) == 1:
            return items[0]
        return LogicalNode(kind, tuple(items))

    def _parse_or(self) -> ExpressionTree:
        """Parse OR expression."""
        return self._parse_chain(self.OR, Logic.OR, self._parse_xor)

    def _parse_xor(self) -> ExpressionTree:
        """Parse XOR expression (n-ary: exactly one operand is true)."""
        return self._parse_chain(self.XOR, Logic.XOR, self._parse_and)

    def _parse_and(self) -> ExpressionTree:
        """Parse AND expression."""
        return self._parse_chain(self.AND, Logic.AND, self._parse_not)

    def _parse_not(self) -> ExpressionTree:
        """Parse NOT expression (highest precedence)."""
        if self._peek()[0] == self.NOT:
            self._consume()
            if self._peek()[0] == self.LPAREN:
                self._consume()
                children = self._parse_expr_list()
                return LogicalNode(Logic.NOT, tuple(children))
            inner = self._parse_not()  # Allow chained NOT
            return LogicalNode(Logic.NOT, (inner,))
        return self._parse_primary()

    def _parse_expr_list(self) -> list[ExpressionTree]:
        """Parse comma separated expressions up to and including ')'."""
        items: list[ExpressionTree] = []
        if self._peek()[0] == self.RPAREN:
            self._consume()
            return items
        items.append(self._parse_or())
        while self._peek()[0] == self.COMMA:
            self._consume()
            items.append(self._parse_or())
        self._expect(self.RPAREN)
        return items

    def _parse_primary(self) -> ExpressionTree:
        """Parse a group, a predicate call or a parenthesised expression."""
        token = self._peek()

        if token[0] == self.LPAREN:
            self._consume()
            expr = self._parse_or()
            self._expect(self.RPAREN)
            return expr

        if token[0] == self.IDENT:
            name = token[1]
            if name in self.GROUPS and self._peek(1)[0] == self.LPAREN:
                self._consume()  # group keyword
                self._consume()  # (
                return LogicalNode(self.GROUPS[name], tuple(self._parse_expr_list()))
            name, args = self._parse_call()
            return PredicateNode(name, args)

        raise self._error("Unexpected token")

    # -------------------------------------------------------------------------
    # Effects
    # -------------------------------------------------------------------------

    def parse_effects(self) -> tuple[OperationNode, ...]:
        """
        Parse an effect document into an ordered tuple of operations.

        Grammar:
            document = (call (',' | ';')?)*
        """
        operations: list[OperationNode] = []
        while self._peek()[0] != self.EOF:
            if self._peek()[0] != self.IDENT:
                raise self._error("Expected an operation")
            name, args = self._parse_call()
            operations.append(OperationNode(name, args))
            if self._peek()[0] in (self.COMMA, self.SEMI):
                self._consume()
        return tuple(operations)

    # -------------------------------------------------------------------------
    # Calls and literals
    # -------------------------------------------------------------------------

    def _parse_call(self) -> tuple[str, dict[str, Any]]:
        name = self._expect(self.IDENT)[1]
        args: dict[str, Any] = {}
        if self._peek()[0] != self.LPAREN:
            return name, args

        self._consume()  # (
        while self._peek()[0] != self.RPAREN:
            key_token = self._expect(self.IDENT)
            if self._peek()[0] not in (self.EQUALS, self.COLON):
                raise self._error(f"Expected '=' after argument '{key_token[1]}'")
            self._consume()
            if key_token[1] in args:
                raise DocumentError(
                    f"Duplicate argument '{key_token[1]}' for '{name}'", key_token[2]
                )
            args[key_token[1]] = self._parse_literal()
            if self._peek()[0] == self.COMMA:
                self._consume()
            elif self._peek()[0] != self.RPAREN:
                raise self._error("Expected ',' or ')'")
        self._consume()  # )
        return name, args

    def _parse_literal(self) -> Any:
        """Parse a single literal value."""
        token = self._peek()

        if token[0] in (self.NUMBER, self.STRING, self.BOOL, self.NULL):
            return self._consume()[1]

        if token[0] == self.LBRACKET:
            self._consume()
            items = []
            while self._peek()[0] != self.RBRACKET:
                items.append(self._parse_literal())
                if self._peek()[0] == self.COMMA:
                    self._consume()
                elif self._peek()[0] != self.RBRACKET:
                    raise self._error("Expected ',' or ']'")
            self._consume()
            return items

        if token[0] == self.LBRACE:
            self._consume()
            obj: dict[str, Any] = {}
            while self._peek()[0] != self.RBRACE:
                key_token = self._consume()
                if key_token[0] not in (self.STRING, self.IDENT):
                    raise DocumentError(f"Invalid object key: {key_token[1]!r}", key_token[2])
                self._expect(self.COLON)
                obj[key_token[1]] = self._parse_literal()
                if self._peek()[0] == self.COMMA:
                    self._consume()
                elif self._peek()[0] != self.RBRACE:
                    raise self._error("Expected ',' or '}'")
            self._consume()
            return obj

        raise self._error("Invalid literal")


def parse_condition(text: str) -> ExpressionTree:
    """
    Parse a condition document.

    Example:
        >>> parse_condition("always & ~never")
        AND(PredicateNode(always), NOT(PredicateNode(never)))
    """
    return ExpressionParser(text).parse_condition()


def parse_effects(text: str) -> tuple[OperationNode, ...]:
    """
    Parse an effect document.

    Example:
        >>> parse_effects('add(path="x", value=4)')
        (OperationNode(add(path='x', value=4)),)
    """
    return ExpressionParser(text).parse_effects()


# =============================================================================
# Structured (dict) documents
# =============================================================================


_LOGIC_KEYS = {kind.value: kind for kind in Logic}


def load_condition(
    source: str | Mapping[str, Any] | Sequence[Any] | ExpressionTree,
) -> ExpressionTree:
    """
    Build a condition tree from DSL text, a config structure or an existing node.

    Config structures mirror the DSL and are what JSON/YAML rule files hold:
        "always"
        {"and": ["always", {"is_truthy": {"path": "user.active"}}]}
        {"not": [{"equals_string": {"path": "role", "value": "guest"}}]}
        ["always", "never"]        # a list is an implicit AND

    A config string is a single predicate name, not a DSL expression;
    pass DSL text at the top level only.
    """
    if isinstance(source, (LogicalNode, PredicateNode)):
        return source
    if isinstance(source, str):
        return parse_condition(source)
    if isinstance(source, (Mapping, Sequence)):
        return _build_condition(source)
    raise DocumentError(f"Invalid condition document: {source!r}")


def _build_condition(node: Any) -> ExpressionTree:
    if isinstance(node, (LogicalNode, PredicateNode)):
        return node
    if isinstance(node, str):
        return PredicateNode(node)
    if isinstance(node, Sequence):
        # A bare list is an implicit AND group
        return LogicalNode(Logic.AND, tuple(_build_condition(n) for n in node))
    if isinstance(node, Mapping):
        if len(node) != 1:
            raise DocumentError(f"Config node must have exactly one key: {node!r}")
        key, value = next(iter(node.items()))
        if key in _LOGIC_KEYS:
            children = value if isinstance(value, Sequence) and not isinstance(value, str) else [value]
            return LogicalNode(_LOGIC_KEYS[key], tuple(_build_condition(c) for c in children))
        if value is None:
            value = {}
        if not isinstance(value, Mapping):
            raise DocumentError(f"Arguments of '{key}' must be a mapping, got {value!r}")
        return PredicateNode(key, value)
    raise DocumentError(f"Invalid config node: {node!r}")


def load_effects(
    source: str | Sequence[Any] | OperationNode,
) -> tuple[OperationNode, ...]:
    """
    Build an operation sequence from DSL text or a list of config entries.

    Config entries are operation names or single-key mappings:
        ["unset_flag", {"add": {"path": "total", "value": 5}}]
    """
    if isinstance(source, OperationNode):
        return (source,)
    if isinstance(source, str):
        return parse_effects(source)
    if isinstance(source, Sequence):
        return tuple(_build_operation(entry) for entry in source)
    raise DocumentError(f"Invalid effect document: {source!r}")


def _build_operation(entry: Any) -> OperationNode:
    if isinstance(entry, OperationNode):
        return entry
    if isinstance(entry, str):
        return OperationNode(entry)
    if isinstance(entry, Mapping) and len(entry) == 1:
        name, args = next(iter(entry.items()))
        if args is None:
            args = {}
        if not isinstance(args, Mapping):
            raise DocumentError(f"Arguments of '{name}' must be a mapping, got {args!r}")
        return OperationNode(name, args)
    raise DocumentError(f"Invalid operation entry: {entry!r}")
