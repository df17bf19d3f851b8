"""Recursive-descent parser producing normalized expression trees.

Grammar, lowest precedence first::

    assignment := additive ('=' additive)?
    additive   := multiplicative (('+' | '-') multiplicative)*
    multiplicative := power (('*' | '/') power)*
    power      := unary ('^' power)?
    unary      := ('+' | '-') unary | primary
    primary    := NUMBER
                | NAME '(' assignment (',' assignment)? ')'
                | NAME '[' NUMBER ']'
                | NAME
                | '(' assignment ')'
                | '[' assignment (',' assignment)* ']'

Every node is built through the smart constructors in :mod:`expr_jax.rewrite`.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import ParseError, UnknownOperatorError
from .expressions import Expr, NamedConst, Variable, const
from .lexer import Token, tokenize
from .operations import CONSTANTS, is_binary, is_unary
from .rewrite import add, array, assign, binary, divide, multiply, negate, power, subtract, unary

__all__ = ["ParseError", "parse"]

_ADDITIVE = {"+": add, "-": subtract}
_MULTIPLICATIVE = {"*": multiply, "/": divide}


@dataclass
class _Parser:
    tokens: list[Token]
    index: int = 0

    def parse_expression_only(self) -> Expr:
        expr = self._parse_assignment()
        self._expect("EOF")
        return expr

    def _peek(self) -> Token:
        return self.tokens[self.index]

    def _advance(self) -> Token:
        tok = self.tokens[self.index]
        self.index += 1
        return tok

    def _expect(self, kind: str) -> Token:
        tok = self._peek()
        if tok.kind != kind:
            self._error(tok, expected=(kind,))
        return self._advance()

    def _error(self, tok: Token | None = None, *, message: str | None = None, expected: tuple[str, ...] = ()) -> None:
        token = tok if tok is not None else self._peek()
        detail = message if message is not None else "Unexpected token"
        normalized_expected = tuple(dict.fromkeys(expected))
        if token.kind == "EOF":
            found = "EOF"
        else:
            found = f"{token.kind}({token.text})"
        raise ParseError(detail, token.pos, token.end, expected=normalized_expected, found=found)

    def _match_op(self, ops) -> Token | None:
        tok = self._peek()
        if tok.kind == "OP" and tok.text in ops:
            return self._advance()
        return None

    def _parse_assignment(self) -> Expr:
        left = self._parse_additive()
        if self._peek().kind == "ASSIGN":
            self._advance()
            right = self._parse_additive()
            return assign(left, right)
        return left

    def _parse_additive(self) -> Expr:
        expr = self._parse_multiplicative()
        while (tok := self._match_op(_ADDITIVE)) is not None:
            expr = _ADDITIVE[tok.text](expr, self._parse_multiplicative())
        return expr

    def _parse_multiplicative(self) -> Expr:
        expr = self._parse_power()
        while (tok := self._match_op(_MULTIPLICATIVE)) is not None:
            expr = _MULTIPLICATIVE[tok.text](expr, self._parse_power())
        return expr

    def _parse_power(self) -> Expr:
        expr = self._parse_unary()
        while self._match_op({"^"}) is not None:
            expr = power(expr, self._parse_unary())
        return expr

    def _parse_unary(self) -> Expr:
        tok = self._match_op({"+", "-"})
        if tok is None:
            return self._parse_primary()
        operand = self._parse_unary()
        return negate(operand) if tok.text == "-" else operand

    def _parse_primary(self) -> Expr:
        tok = self._peek()
        if tok.kind == "NUMBER":
            self._advance()
            return const(float(tok.text))
        if tok.kind == "NAME":
            self._advance()
            nxt = self._peek()
            if nxt.kind == "LPAREN":
                return self._parse_call(tok)
            if nxt.kind == "LBRACK":
                return self._parse_index(tok)
            constant = CONSTANTS.get(tok.text)
            if constant is not None:
                return NamedConst(constant.identifier, constant.value)
            return Variable(tok.text)
        if tok.kind == "LPAREN":
            self._advance()
            expr = self._parse_assignment()
            self._expect("RPAREN")
            return expr
        if tok.kind == "LBRACK":
            self._advance()
            items = [self._parse_assignment()]
            while self._peek().kind == "COMMA":
                self._advance()
                items.append(self._parse_assignment())
            self._expect("RBRACK")
            return array(items)
        self._error(tok, expected=("NUMBER", "NAME", "LPAREN", "LBRACK"))
        raise AssertionError("unreachable")

    def _parse_call(self, name: Token) -> Expr:
        self._expect("LPAREN")
        args = [self._parse_assignment()]
        while self._peek().kind == "COMMA":
            self._advance()
            args.append(self._parse_assignment())
        closing = self._expect("RPAREN")
        if len(args) == 1:
            if not is_unary(name.text):
                raise UnknownOperatorError(name.text, "function")
            return unary(name.text, args[0])
        if len(args) == 2:
            if not is_binary(name.text):
                raise UnknownOperatorError(name.text, "function")
            return binary(name.text, args[0], args[1])
        raise ParseError(
            f"Function {name.text!r} called with {len(args)} arguments",
            name.pos,
            closing.end,
            expected=("1 or 2 arguments",),
        )

    def _parse_index(self, name: Token) -> Expr:
        self._expect("LBRACK")
        tok = self._expect("NUMBER")
        if not tok.text.isdigit():
            self._error(tok, message="Array index must be a non-negative integer")
        self._expect("RBRACK")
        return Variable(f"{name.text}_{int(tok.text)}")


def parse(source: str) -> Expr:
    """Parse one expression (or equation) from ``source``."""
    return _Parser(tokenize(source)).parse_expression_only()
