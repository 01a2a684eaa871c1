"""Custom exceptions for contributions module."""

from bounty_distribution.errors import BountyDistributionError, ValidationError


class NoContributionDataError(ValidationError):
    """
    Raised when there is no activity to normalize.

    This can happen when:
    - Contributor list is empty
    - Every contributor has a weighted score of zero
    """

    pass


class InvalidActivityError(ValidationError):
    """
    Raised when contributor activity input is malformed.

    This can happen when:
    - An activity count is negative or not an integer
    - The same contributor id appears twice
    - Weights are negative or all zero
    """

    pass


# --- Contribution source errors ---


class ContributionSourceError(BountyDistributionError):
    """
    Raised when contributor data cannot be fetched.

    This can happen when:
    - Connection error
    - HTTP error status
    - Invalid JSON response or unexpected payload shape
    """

    pass


class ContributionSourceAuthError(ContributionSourceError):
    """
    Raised when the contribution source rejects the access token.

    HTTP 401/403: token missing, expired or without repository access.
    """

    pass
