"""
Fixed-point Amount Tests.
"""

import pytest

from p24_client import Amount, FormatError, Funds


# ============================================================
# AMOUNT PARSING
# ============================================================

class TestAmountParse:
    """Tests for Amount.parse."""

    @pytest.mark.parametrize("text,cents", [
        ("123.45", 12345),
        ("-12", -1200),
        ("12.02", 1202),
        ("33.2", 3320),
        ("0.05", 5),
        ("+7.1", 710),
        ("1.", 100),
        ("0", 0),
    ])
    def test_parse(self, text, cents):
        """Test parsing valid amounts."""
        assert Amount.parse(text) == Amount(cents)

    def test_parse_truncates(self):
        """Test that extra fractional digits are truncated, not rounded."""
        assert Amount.parse("123.6789") == Amount.parse("123.67")
        assert Amount.parse("-0.999") == Amount(-99)

    def test_parse_bytes(self):
        """Test parsing from bytes."""
        assert Amount.parse(b"19.37") == Amount(1937)

    @pytest.mark.parametrize("text", ["", "abc", "1,5", "1.2.3", "--1", " 1", "1e5"])
    def test_parse_invalid_raises(self, text):
        """Test that malformed text raises FormatError."""
        with pytest.raises(FormatError):
            Amount.parse(text)

    def test_format_error_is_value_error(self):
        """Test FormatError can be caught as ValueError."""
        with pytest.raises(ValueError):
            Amount.parse("x")


# ============================================================
# AMOUNT FORMATTING
# ============================================================

class TestAmountFormat:
    """Tests for Amount.format."""

    @pytest.mark.parametrize("cents,text", [
        (100, "1"),
        (-250, "-2.5"),
        (5, "0.05"),
        (0, "0"),
        (1000, "10"),
        (12345, "123.45"),
        (-5, "-0.05"),
    ])
    def test_format(self, cents, text):
        """Test text form of amounts."""
        assert Amount(cents).format() == text
        assert str(Amount(cents)) == text

    @pytest.mark.parametrize("cents", [0, 1, -1, 99, 100, 101, -250, 123456789])
    def test_parse_inverts_format(self, cents):
        """Test that formatted amounts parse back to themselves."""
        amount = Amount(cents)
        assert Amount.parse(amount.format()) == amount

    def test_to_float(self):
        """Test float conversion."""
        assert Amount(1937).to_float() == pytest.approx(19.37)


class TestAmountArithmetic:
    """Tests for Amount arithmetic."""

    def test_add_and_subtract(self):
        """Test integer arithmetic."""
        assert Amount(150) + Amount(275) == Amount(425)
        assert Amount(150) - Amount(275) == Amount(-125)
        assert -Amount(5) == Amount(-5)

    def test_ordering_and_truthiness(self):
        """Test comparison and bool."""
        assert Amount(1) < Amount(2)
        assert not Amount()
        assert Amount(1)


# ============================================================
# FUNDS
# ============================================================

class TestFunds:
    """Tests for Funds."""

    def test_parse(self):
        """Test parsing amount with currency."""
        funds = Funds.parse("23.12 UAH")

        assert funds.amount == Amount(2312)
        assert funds.currency == "UAH"

    def test_parse_empty_currency(self):
        """Test that the currency may be empty."""
        funds = Funds.parse("0.05 ")

        assert funds.amount == Amount(5)
        assert funds.currency == ""

    @pytest.mark.parametrize("text", ["23.12", "23.12 UAH extra", "", "x UAH"])
    def test_parse_invalid_raises(self, text):
        """Test that malformed funds raise FormatError."""
        with pytest.raises(FormatError):
            Funds.parse(text)

    def test_format(self):
        """Test text form."""
        assert Funds(Amount(-1200), "USD").format() == "-12 USD"
        assert str(Funds(Amount(5))) == "0.05 "
