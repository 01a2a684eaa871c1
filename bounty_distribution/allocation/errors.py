"""Custom exceptions for allocation module."""

from bounty_distribution.errors import ValidationError


class InvalidAmountError(ValidationError):
    """
    Raised when a bounty amount cannot be used.

    This can happen when:
    - Amount is zero or negative
    - Amount is not a number
    - Amount has more fractional digits than the token supports
    """

    pass


class InvalidPercentageTableError(ValidationError):
    """
    Raised when shares cannot be allocated.

    This can happen when:
    - Units do not sum to the percentage scale
    - Shares and recipient bindings cover different contributors
    """

    pass
