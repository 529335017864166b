"""
Tests for the license expression parser.

These tests verify:
    - Operator precedence (WITH > AND > OR) and left associativity
    - Parenthesized grouping
    - LicenseRef and DocumentRef forms
    - Malformed input is rejected with the offending substring and offset
"""

import pytest
from bomstore.errors import MalformedExpression
from bomstore.expressions import (
    SimpleLicense,
    LicenseRef,
    Conjunction,
    Disjunction,
    WithException,
    NoAssertion,
    NoneLicense,
    render,
)
from bomstore.license_parser import parse, canonicalize


class TestPrecedence:
    """Test operator binding."""

    def test_and_binds_tighter_than_or(self):
        assert parse("Apache-2.0 OR MIT AND GPL-2.0") == Disjunction(
            SimpleLicense("Apache-2.0"),
            Conjunction(SimpleLicense("MIT"), SimpleLicense("GPL-2.0")),
        )

    def test_with_binds_tightest(self):
        assert parse("GPL-2.0 WITH Classpath-exception-2.0 OR MIT") == Disjunction(
            WithException(SimpleLicense("GPL-2.0"), "Classpath-exception-2.0"),
            SimpleLicense("MIT"),
        )

    def test_operators_are_left_associative(self):
        assert parse("A OR B OR C") == Disjunction(
            Disjunction(SimpleLicense("A"), SimpleLicense("B")),
            SimpleLicense("C"),
        )

    def test_parentheses_override_precedence(self):
        assert parse("(MIT OR Apache-2.0) AND GPL-2.0") == Conjunction(
            Disjunction(SimpleLicense("MIT"), SimpleLicense("Apache-2.0")),
            SimpleLicense("GPL-2.0"),
        )

    def test_with_on_parenthesized_expression(self):
        assert parse("(GPL-2.0 OR MIT) WITH Classpath-exception-2.0") == WithException(
            Disjunction(SimpleLicense("GPL-2.0"), SimpleLicense("MIT")),
            "Classpath-exception-2.0",
        )


class TestAtoms:
    """Test the leaves of the grammar."""

    def test_simple_license(self):
        assert parse("MIT") == SimpleLicense("MIT")

    def test_plus_suffix_is_part_of_id(self):
        assert parse("GPL-2.0+") == SimpleLicense("GPL-2.0+")

    def test_special_literals(self):
        assert parse("NOASSERTION") == NoAssertion()
        assert parse("NONE") == NoneLicense()

    def test_license_ref(self):
        assert parse("LicenseRef-my.license") == LicenseRef("my.license")

    def test_external_license_ref(self):
        assert parse("DocumentRef-other:LicenseRef-x") == LicenseRef("x", document_ref="DocumentRef-other")

    def test_whitespace_is_insignificant(self):
        assert parse("  MIT   AND\t(BSD-3-Clause)  ") == Conjunction(
            SimpleLicense("MIT"), SimpleLicense("BSD-3-Clause")
        )

    def test_unknown_ids_are_accepted(self):
        """No license catalogue is consulted."""
        assert parse("Not-A-Real-License") == SimpleLicense("Not-A-Real-License")


class TestMalformed:
    """Test error reporting."""

    def test_unclosed_parenthesis(self):
        with pytest.raises(MalformedExpression) as exc_info:
            parse("(MIT OR")
        assert exc_info.value.reason == "Unbalanced parenthesis"
        assert exc_info.value.substring == "("
        assert exc_info.value.offset == 0

    def test_stray_closing_parenthesis(self):
        with pytest.raises(MalformedExpression) as exc_info:
            parse("MIT)")
        assert exc_info.value.substring == ")"
        assert exc_info.value.offset == 3

    def test_empty_input(self):
        with pytest.raises(MalformedExpression) as exc_info:
            parse("   ")
        assert exc_info.value.reason == "Empty license expression"

    def test_missing_right_operand(self):
        with pytest.raises(MalformedExpression) as exc_info:
            parse("MIT AND")
        assert exc_info.value.reason == "Missing operand"
        assert exc_info.value.substring == "AND"
        assert exc_info.value.offset == 4

    def test_missing_left_operand(self):
        with pytest.raises(MalformedExpression) as exc_info:
            parse("OR MIT")
        assert exc_info.value.reason == "Missing operand"
        assert exc_info.value.offset == 0

    def test_empty_parentheses(self):
        with pytest.raises(MalformedExpression) as exc_info:
            parse("()")
        assert exc_info.value.substring == ")"

    def test_missing_exception(self):
        with pytest.raises(MalformedExpression) as exc_info:
            parse("GPL-2.0 WITH")
        assert exc_info.value.reason == "Missing exception identifier"

    def test_with_on_noassertion(self):
        with pytest.raises(MalformedExpression):
            parse("NOASSERTION WITH Classpath-exception-2.0")

    def test_invalid_identifier(self):
        with pytest.raises(MalformedExpression) as exc_info:
            parse("MIT OR GPL/2.0")
        assert exc_info.value.reason == "Invalid license identifier"
        assert exc_info.value.substring == "GPL/2.0"
        assert exc_info.value.offset == 7

    def test_adjacent_licenses(self):
        with pytest.raises(MalformedExpression) as exc_info:
            parse("MIT Apache-2.0")
        assert exc_info.value.reason == "Unexpected token"
        assert exc_info.value.substring == "Apache-2.0"

    def test_lowercase_operator_is_not_a_keyword(self):
        with pytest.raises(MalformedExpression):
            parse("MIT or Apache-2.0")

    def test_message_names_substring_and_offset(self):
        with pytest.raises(MalformedExpression, match="at offset 0"):
            parse("(MIT OR")


class TestCanonicalize:
    """Test canonical form."""

    def test_redundant_parentheses_removed(self):
        assert canonicalize("((MIT))") == "MIT"
        assert canonicalize("(MIT AND BSD-3-Clause) OR Apache-2.0") == "MIT AND BSD-3-Clause OR Apache-2.0"

    def test_whitespace_normalized(self):
        assert canonicalize("MIT    OR\nApache-2.0") == "MIT OR Apache-2.0"

    def test_render_parse_is_stable(self):
        """Rendering and re-parsing gives back the same tree."""
        for text in [
            "A AND (B AND C)",
            "(A OR B) AND C",
            "(A OR B) WITH X-exception",
            "A WITH X-exception AND B",
            "DocumentRef-d:LicenseRef-1 OR NONE",
        ]:
            tree = parse(text)
            assert parse(render(tree)) == tree
