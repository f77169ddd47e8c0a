"""Decimal-aware token amounts.

User input is parsed straight into the token's smallest unit with integer
arithmetic, so "0.1" USDC is exactly 100000 and never 99999.99... Rendering
goes the other way through Decimal with a local context wide enough to hold
every digit.
"""

import re
from dataclasses import dataclass
from decimal import Decimal, localcontext

from pulse.exceptions import InvalidAmount
from pulse.models import TokenDescriptor

_AMOUNT_RE = re.compile(r"^(?P<whole>[0-9]*)(?:\.(?P<frac>[0-9]*))?$")


def normalize_amount(value: str, decimal_places: int) -> int:
    """Parse a user-entered decimal string into smallest-unit integer form.

    Accepts plain digits with an optional fractional part ("1", "1.5",
    ".5", "2."). Trailing zeros past decimal_places carry no value and are
    accepted ("1.500" with 2 places is 150).

    Args:
        value: The amount as typed by the user.
        decimal_places: The token's decimal precision.

    Returns:
        The amount in the token's smallest unit.

    Raises:
        InvalidAmount: On empty, non-numeric, signed, exponent-form input, or
            when significant digits exceed decimal_places.
    """
    if not isinstance(value, str):
        raise InvalidAmount("amount must be a decimal string", amount=value)

    text = value.strip()
    if text.startswith("-"):
        raise InvalidAmount("amount cannot be negative", amount=value)

    match = _AMOUNT_RE.match(text)
    if match is None:
        raise InvalidAmount("amount is not a decimal number", amount=value)

    whole = match.group("whole") or ""
    frac = (match.group("frac") or "").rstrip("0")
    if not whole and not match.group("frac"):
        raise InvalidAmount("amount is empty", amount=value)

    if len(frac) > decimal_places:
        raise InvalidAmount(
            "amount has more decimal places than the token supports",
            amount=value,
            decimal_places=decimal_places,
        )

    return int(whole or "0") * 10**decimal_places + int(frac.ljust(decimal_places, "0") or "0")


def to_decimal(amount: int, decimal_places: int) -> Decimal:
    """Exact Decimal value of a smallest-unit amount, without trailing zeros.

    1500000 with 6 places is Decimal("1.5"); 10**19 with 18 places is
    Decimal("10"), never Decimal("1E+1").
    """
    digits = len(str(abs(amount))) + decimal_places + 1
    with localcontext() as ctx:
        ctx.prec = max(28, digits)
        value = Decimal(amount).scaleb(-decimal_places).normalize()
        if value.as_tuple().exponent > 0:
            value = value.quantize(Decimal(1))
        return value


def format_amount(amount: int, decimal_places: int) -> str:
    """Render a smallest-unit amount as a plain decimal string.

    Trailing fractional zeros are dropped, so normalize_amount(format_amount(x))
    returns x for every x.
    """
    sign = "-" if amount < 0 else ""
    whole, frac = divmod(abs(amount), 10**decimal_places)
    frac_text = str(frac).rjust(decimal_places, "0").rstrip("0") if decimal_places else ""
    if frac_text:
        return f"{sign}{whole}.{frac_text}"
    return f"{sign}{whole}"


@dataclass(frozen=True)
class TokenAmount:
    """An integer amount tied to the token whose smallest unit it is counted in."""

    value: int
    token: TokenDescriptor

    @classmethod
    def parse(cls, text: str, token: TokenDescriptor) -> "TokenAmount":
        return cls(normalize_amount(text, token.decimal_places), token)

    def to_decimal(self) -> Decimal:
        return to_decimal(self.value, self.token.decimal_places)

    def __str__(self) -> str:
        return f"{format_amount(self.value, self.token.decimal_places)} {self.token.symbol}"

    def rebase(self, decimal_places: int) -> "TokenAmount":
        """Re-express the amount with a different precision.

        Upscaling is exact. Downscaling floors, which only ever understates a
        balance.
        """
        shift = decimal_places - self.token.decimal_places
        if shift >= 0:
            value = self.value * 10**shift
        else:
            value = self.value // 10**-shift
        token = TokenDescriptor(
            symbol=self.token.symbol,
            decimal_places=decimal_places,
            is_native=self.token.is_native,
            name=self.token.name,
        )
        return TokenAmount(value, token)

    def _check_comparable(self, other: "TokenAmount") -> None:
        if self.token.symbol != other.token.symbol:
            raise ValueError(
                f"cannot compare {self.token.symbol} amount with {other.token.symbol} amount"
            )
        if self.token.decimal_places != other.token.decimal_places:
            raise ValueError(
                f"{self.token.symbol} amounts use different precisions "
                f"({self.token.decimal_places} vs {other.token.decimal_places}); rebase first"
            )

    def __lt__(self, other: "TokenAmount") -> bool:
        self._check_comparable(other)
        return self.value < other.value

    def __le__(self, other: "TokenAmount") -> bool:
        self._check_comparable(other)
        return self.value <= other.value

    def __gt__(self, other: "TokenAmount") -> bool:
        self._check_comparable(other)
        return self.value > other.value

    def __ge__(self, other: "TokenAmount") -> bool:
        self._check_comparable(other)
        return self.value >= other.value
