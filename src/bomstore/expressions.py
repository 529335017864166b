"""
License Expression Trees

A license expression such as

    GPL-2.0 WITH Classpath-exception-2.0 OR MIT

is represented as an immutable tree, never as a raw string.
Trees are value objects: they are NOT store-resident and
compare by structure.

ARCHITECTURAL RULE:
    Nodes hold structure only.
    Parsing lives in license_parser.
    Recognition of listed license IDs is not done anywhere in this layer.
"""

from abc import ABC
from dataclasses import dataclass
from typing import List, Optional


class LicenseExpression(ABC):
    """
    Base class for all license expression nodes.

    Intentionally minimal. It exists to give the node hierarchy a
    common type.
    """
    pass


@dataclass(frozen=True)
class SimpleLicense(LicenseExpression):
    """
    A license identifier, e.g. "MIT" or "Apache-2.0".

    The identifier is opaque: "GPL-2.0+" is a SimpleLicense
    with license_id "GPL-2.0+".
    """

    license_id: str


@dataclass(frozen=True)
class LicenseRef(LicenseExpression):
    """
    A free-form license reference, "LicenseRef-<local_id>".

    Properties:
        local_id: The part after "LicenseRef-"
        document_ref: Optional "DocumentRef-..." prefix when the license
            is declared in another document
    """

    local_id: str
    document_ref: Optional[str] = None

    @property
    def license_ref_id(self) -> str:
        return f"LicenseRef-{self.local_id}"


@dataclass(frozen=True)
class Conjunction(LicenseExpression):
    """left AND right"""

    left: LicenseExpression
    right: LicenseExpression


@dataclass(frozen=True)
class Disjunction(LicenseExpression):
    """left OR right"""

    left: LicenseExpression
    right: LicenseExpression


@dataclass(frozen=True)
class WithException(LicenseExpression):
    """
    A license with an exception suffix.

    Example:
        GPL-2.0 WITH Classpath-exception-2.0

    Becomes:
        WithException(
            license=SimpleLicense("GPL-2.0"),
            exception_id="Classpath-exception-2.0"
        )
    """

    license: LicenseExpression
    exception_id: str


@dataclass(frozen=True)
class NoAssertion(LicenseExpression):
    """The NOASSERTION literal: no license asserted."""
    pass


@dataclass(frozen=True)
class NoneLicense(LicenseExpression):
    """The NONE literal: explicitly no license."""
    pass


NOASSERTION = "NOASSERTION"
NONE = "NONE"

# Binding strength, higher binds tighter
_PRECEDENCE_OR = 1
_PRECEDENCE_AND = 2
_PRECEDENCE_WITH = 3
_PRECEDENCE_ATOM = 4


def _precedence(expr: LicenseExpression) -> int:
    if isinstance(expr, Disjunction):
        return _PRECEDENCE_OR
    if isinstance(expr, Conjunction):
        return _PRECEDENCE_AND
    if isinstance(expr, WithException):
        return _PRECEDENCE_WITH
    return _PRECEDENCE_ATOM


def _wrap(expr: LicenseExpression, needs_parens: bool) -> str:
    text = render(expr)
    return f"({text})" if needs_parens else text


def render(expr: LicenseExpression) -> str:
    """
    Render a tree as its canonical expression string.

    Only the parentheses needed to preserve the tree shape are emitted,
    so parse(render(tree)) == tree.
    """
    if isinstance(expr, SimpleLicense):
        return expr.license_id
    if isinstance(expr, LicenseRef):
        if expr.document_ref:
            return f"{expr.document_ref}:{expr.license_ref_id}"
        return expr.license_ref_id
    if isinstance(expr, NoAssertion):
        return NOASSERTION
    if isinstance(expr, NoneLicense):
        return NONE
    if isinstance(expr, (Conjunction, Disjunction)):
        prec = _precedence(expr)
        op = "AND" if isinstance(expr, Conjunction) else "OR"
        # Left-associative: a same-precedence right operand needs parentheses
        left = _wrap(expr.left, _precedence(expr.left) < prec)
        right = _wrap(expr.right, _precedence(expr.right) <= prec)
        return f"{left} {op} {right}"
    if isinstance(expr, WithException):
        inner = _wrap(expr.license, _precedence(expr.license) < _PRECEDENCE_ATOM)
        return f"{inner} WITH {expr.exception_id}"
    raise TypeError(f"Unsupported LicenseExpression type: {type(expr)}")


def _walk(expr: LicenseExpression, out: List[LicenseExpression]) -> None:
    out.append(expr)
    if isinstance(expr, (Conjunction, Disjunction)):
        _walk(expr.left, out)
        _walk(expr.right, out)
    elif isinstance(expr, WithException):
        _walk(expr.license, out)


def license_ids(expr: LicenseExpression) -> List[str]:
    """All SimpleLicense IDs in the tree, left to right."""
    nodes: List[LicenseExpression] = []
    _walk(expr, nodes)
    return [n.license_id for n in nodes if isinstance(n, SimpleLicense)]


def license_refs(expr: LicenseExpression) -> List[LicenseRef]:
    """All LicenseRef nodes in the tree, left to right."""
    nodes: List[LicenseExpression] = []
    _walk(expr, nodes)
    return [n for n in nodes if isinstance(n, LicenseRef)]
