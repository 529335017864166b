"""
License Expression Parser (string -> LicenseExpression tree).

Grammar (keywords are case-sensitive):

    expr     := orExpr
    orExpr   := andExpr ( "OR" andExpr )*
    andExpr  := withExpr ( "AND" withExpr )*
    withExpr := atom ( "WITH" exceptionId )?
    atom     := "(" expr ")" | licenseId | "LicenseRef-" localId
              | "DocumentRef-" docId ":LicenseRef-" localId
              | "NOASSERTION" | "NONE"

Precedence: WITH > AND > OR, all left-associative.

Syntax Notes:
    - Tokens are split on whitespace and parentheses
    - Identifiers use alphanumerics, ".", "-" and "+"
    - Listed license IDs are NOT checked against any catalogue
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from bomstore.errors import MalformedExpression
from bomstore.expressions import (
    LicenseExpression,
    SimpleLicense,
    LicenseRef,
    Conjunction,
    Disjunction,
    WithException,
    NoAssertion,
    NoneLicense,
    NOASSERTION,
    NONE,
    render,
)


_IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9.\-+]+$")
_LICENSE_REF_RE = re.compile(r"^LicenseRef-([A-Za-z0-9.\-+]+)$")
_EXTERNAL_LICENSE_REF_RE = re.compile(
    r"^(DocumentRef-[A-Za-z0-9.\-+]+):LicenseRef-([A-Za-z0-9.\-+]+)$"
)

AND = "AND"
OR = "OR"
WITH = "WITH"
_KEYWORDS = {AND, OR, WITH}


@dataclass(frozen=True)
class Token:
    """A token and the character offset where it starts."""
    text: str
    offset: int


def _tokenize(text: str) -> List[Token]:
    """Split on whitespace and parentheses, keeping offsets."""
    tokens: List[Token] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch.isspace():
            i += 1
            continue
        if ch in "()":
            tokens.append(Token(ch, i))
            i += 1
            continue
        start = i
        while i < n and not text[i].isspace() and text[i] not in "()":
            i += 1
        tokens.append(Token(text[start:i], start))
    return tokens


def _check_balance(tokens: List[Token]) -> None:
    """Reject unbalanced parentheses before parsing starts."""
    open_stack: List[Token] = []
    for token in tokens:
        if token.text == "(":
            open_stack.append(token)
        elif token.text == ")":
            if not open_stack:
                raise MalformedExpression("Unbalanced parenthesis", token.text, token.offset)
            open_stack.pop()
    if open_stack:
        unclosed = open_stack[-1]
        raise MalformedExpression("Unbalanced parenthesis", unclosed.text, unclosed.offset)


def _missing_operand(tokens: List[Token], pos: int) -> MalformedExpression:
    if pos < len(tokens):
        tok = tokens[pos]
    else:
        tok = tokens[pos - 1]
    return MalformedExpression("Missing operand", tok.text, tok.offset)


def _parse_or_expression(tokens: List[Token], pos: int) -> Tuple[LicenseExpression, int]:
    """Parse OR expression (lowest precedence)."""
    left, pos = _parse_and_expression(tokens, pos)

    while pos < len(tokens) and tokens[pos].text == OR:
        pos += 1
        right, pos = _parse_and_expression(tokens, pos)
        left = Disjunction(left, right)

    return left, pos


def _parse_and_expression(tokens: List[Token], pos: int) -> Tuple[LicenseExpression, int]:
    """Parse AND expression."""
    left, pos = _parse_with_expression(tokens, pos)

    while pos < len(tokens) and tokens[pos].text == AND:
        pos += 1
        right, pos = _parse_with_expression(tokens, pos)
        left = Conjunction(left, right)

    return left, pos


def _parse_with_expression(tokens: List[Token], pos: int) -> Tuple[LicenseExpression, int]:
    """Parse an atom with an optional WITH suffix (tightest binding)."""
    atom_token = tokens[pos] if pos < len(tokens) else None
    license, pos = _parse_atom(tokens, pos)

    if pos < len(tokens) and tokens[pos].text == WITH:
        with_token = tokens[pos]
        if isinstance(license, (NoAssertion, NoneLicense)):
            raise MalformedExpression(
                "NOASSERTION and NONE cannot take an exception", atom_token.text, atom_token.offset
            )
        pos += 1
        if pos >= len(tokens):
            raise MalformedExpression("Missing exception identifier", with_token.text, with_token.offset)
        exc = tokens[pos]
        if exc.text in _KEYWORDS or exc.text in "()" or not _IDENTIFIER_RE.match(exc.text):
            raise MalformedExpression("Invalid exception identifier", exc.text, exc.offset)
        return WithException(license, exc.text), pos + 1

    return license, pos


def _parse_atom(tokens: List[Token], pos: int) -> Tuple[LicenseExpression, int]:
    """Parse an atom (identifier, license ref, special literal, or parenthesized)."""
    if pos >= len(tokens):
        raise _missing_operand(tokens, pos)

    token = tokens[pos]

    # Parenthesized expression
    if token.text == "(":
        expr, pos = _parse_or_expression(tokens, pos + 1)
        if pos >= len(tokens) or tokens[pos].text != ")":
            raise MalformedExpression("Unbalanced parenthesis", token.text, token.offset)
        return expr, pos + 1

    if token.text == ")" or token.text in _KEYWORDS:
        raise _missing_operand(tokens, pos)

    if token.text == NOASSERTION:
        return NoAssertion(), pos + 1
    if token.text == NONE:
        return NoneLicense(), pos + 1

    m = _EXTERNAL_LICENSE_REF_RE.match(token.text)
    if m:
        return LicenseRef(m.group(2), document_ref=m.group(1)), pos + 1

    m = _LICENSE_REF_RE.match(token.text)
    if m:
        return LicenseRef(m.group(1)), pos + 1

    if token.text == "LicenseRef-" or not _IDENTIFIER_RE.match(token.text):
        raise MalformedExpression("Invalid license identifier", token.text, token.offset)

    return SimpleLicense(token.text), pos + 1


def parse(text: Optional[str]) -> LicenseExpression:
    """
    Parse a license expression string into a tree.

    Args:
        text: License expression, e.g. "Apache-2.0 OR MIT AND GPL-2.0"

    Returns:
        LicenseExpression tree

    Raises:
        MalformedExpression: empty input, unbalanced parentheses, missing
            operand, invalid identifier, or trailing tokens that do not fit
            the grammar. Carries the offending substring and its offset.
    """
    if text is None or not text.strip():
        raise MalformedExpression("Empty license expression", text or "", 0)

    tokens = _tokenize(text)
    _check_balance(tokens)

    expr, pos = _parse_or_expression(tokens, 0)

    if pos < len(tokens):
        extra = tokens[pos]
        raise MalformedExpression("Unexpected token", extra.text, extra.offset)

    return expr


def canonicalize(text: str) -> str:
    """Parse and re-render, normalizing whitespace and redundant parentheses."""
    return render(parse(text))


__all__ = [
    "parse",
    "canonicalize",
    "Token",
]
