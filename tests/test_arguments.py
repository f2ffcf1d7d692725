"""Tests for argument resolution."""

import pytest

from commandwire.arguments import pop_token, resolve, resolve_structured, resolve_text
from commandwire.commands import ArgType, Parameter
from commandwire.exceptions import ArgumentError, ArgumentErrorReason, ErrorKind

NUMBER = Parameter("number", ArgType.INTEGER)
U32 = Parameter("number", ArgType.INTEGER, min_value=0, max_value=2**32 - 1)


class TestPopToken:

    def test_plain_words(self):
        assert pop_token("  one two three") == ("one", "two three")

    def test_quoted_token(self):
        assert pop_token('"hello world" rest') == ("hello world", " rest")

    def test_curly_quotes(self):
        assert pop_token("“hi there” x") == ("hi there", " x")

    def test_unterminated_quote_is_a_word(self):
        assert pop_token('"oops more') == ('"oops', "more")

    def test_blank(self):
        assert pop_token("   ") == (None, "")


class TestResolveText:

    def test_positional_order_and_types(self):
        params = [
            Parameter("name", ArgType.STRING),
            Parameter("count", ArgType.INTEGER),
            Parameter("ratio", ArgType.NUMBER),
            Parameter("loud", ArgType.BOOLEAN),
        ]
        assert resolve_text(params, "bob 3 0.5 yes") == ["bob", 3, 0.5, True]

    def test_integer_accepts_sign(self):
        assert resolve_text([NUMBER], "-12") == [-12]
        assert resolve_text([NUMBER], "+7") == [7]

    @pytest.mark.parametrize("token", ["abc", "1.5", "5_000", "0x10", "1e3"])
    def test_integer_type_mismatch(self, token):
        with pytest.raises(ArgumentError) as exc_info:
            resolve_text([NUMBER], token)
        err = exc_info.value
        assert err.reason == ArgumentErrorReason.TYPE_MISMATCH
        assert err.parameter == "number"
        assert err.value == token
        assert err.kind == ErrorKind.CHECK_OR_ARGUMENT

    def test_oversized_integer_is_a_mismatch(self):
        token = "9" * 5000
        with pytest.raises(ArgumentError) as exc_info:
            resolve_text([U32], token)
        assert exc_info.value.reason == ArgumentErrorReason.TYPE_MISMATCH
        assert exc_info.value.value == token

    @pytest.mark.parametrize("token", ["nan", "inf", "-inf"])
    def test_number_rejects_non_finite(self, token):
        with pytest.raises(ArgumentError):
            resolve_text([Parameter("x", ArgType.NUMBER)], token)

    def test_boolean_words(self):
        flag = [Parameter("flag", ArgType.BOOLEAN)]
        assert resolve_text(flag, "ON") == [True]
        assert resolve_text(flag, "no") == [False]
        with pytest.raises(ArgumentError):
            resolve_text(flag, "maybe")

    def test_missing_required(self):
        with pytest.raises(ArgumentError) as exc_info:
            resolve_text([NUMBER], "   ")
        assert exc_info.value.reason == ArgumentErrorReason.MISSING
        assert "Missing required argument `number`" in str(exc_info.value)

    def test_trailing_input(self):
        with pytest.raises(ArgumentError) as exc_info:
            resolve_text([NUMBER], "5 6 7")
        err = exc_info.value
        assert err.reason == ArgumentErrorReason.TRAILING_INPUT
        assert err.parameter is None
        assert err.value == "6 7"

    def test_no_parameters_rejects_any_text(self):
        assert resolve_text([], "  ") == []
        with pytest.raises(ArgumentError):
            resolve_text([], "extra")

    def test_optional_default(self):
        params = [NUMBER, Parameter("note", ArgType.STRING, required=False, default="none")]
        assert resolve_text(params, "5") == [5, "none"]
        assert resolve_text(params, '5 "a note"') == [5, "a note"]

    def test_rest_consumes_remaining(self):
        params = [NUMBER, Parameter("text", ArgType.STRING, rest=True)]
        assert resolve_text(params, "3  the quick   fox ") == [3, "the quick   fox"]

    def test_bounds(self):
        assert resolve_text([U32], "4294967295") == [4294967295]
        with pytest.raises(ArgumentError) as exc_info:
            resolve_text([U32], "4294967296")
        assert exc_info.value.reason == ArgumentErrorReason.OUT_OF_RANGE
        with pytest.raises(ArgumentError) as exc_info:
            resolve_text([U32], "-1")
        assert exc_info.value.reason == ArgumentErrorReason.OUT_OF_RANGE


class TestResolveStructured:

    def test_typed_values(self):
        params = [NUMBER, Parameter("ratio", ArgType.NUMBER)]
        assert resolve_structured(params, {"number": 5, "ratio": 2}) == [5, 2.0]

    def test_order_follows_spec_not_mapping(self):
        params = [Parameter("a", ArgType.STRING), Parameter("b", ArgType.STRING)]
        assert resolve_structured(params, {"b": "2", "a": "1"}) == ["1", "2"]

    def test_string_values_are_parsed(self):
        assert resolve_structured([NUMBER], {"number": "5"}) == [5]

    def test_oversized_integer_string(self):
        with pytest.raises(ArgumentError) as exc_info:
            resolve_structured([U32], {"number": "9" * 5000})
        assert exc_info.value.reason == ArgumentErrorReason.TYPE_MISMATCH

    def test_bool_is_not_an_integer(self):
        with pytest.raises(ArgumentError) as exc_info:
            resolve_structured([NUMBER], {"number": True})
        assert exc_info.value.reason == ArgumentErrorReason.TYPE_MISMATCH

    def test_unknown_parameter(self):
        with pytest.raises(ArgumentError) as exc_info:
            resolve_structured([NUMBER], {"number": 1, "extra": 2})
        assert exc_info.value.reason == ArgumentErrorReason.UNKNOWN_PARAMETER
        assert exc_info.value.parameter == "extra"

    def test_missing_and_none(self):
        with pytest.raises(ArgumentError) as exc_info:
            resolve_structured([NUMBER], {})
        assert exc_info.value.reason == ArgumentErrorReason.MISSING
        with pytest.raises(ArgumentError):
            resolve_structured([NUMBER], {"number": None})

    def test_optional_default(self):
        params = [Parameter("n", ArgType.INTEGER, required=False, default=9)]
        assert resolve_structured(params, {}) == [9]

    def test_bounds(self):
        with pytest.raises(ArgumentError) as exc_info:
            resolve_structured([U32], {"number": 2**32})
        assert exc_info.value.reason == ArgumentErrorReason.OUT_OF_RANGE


class TestResolve:

    def test_dispatches_on_payload_type(self):
        assert resolve([NUMBER], "5") == [5]
        assert resolve([NUMBER], {"number": 5}) == [5]
