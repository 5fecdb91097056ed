"""Errors raised by the reconciliation engine."""


class SplitbotError(Exception):
    """Base class for splitbot errors."""

    pass


class ConfigurationError(SplitbotError):
    """Repository or application configuration is unusable."""

    pass


class InvariantViolation(SplitbotError):
    """Pull request data contradicts itself (e.g. both managed and review)."""

    pass


class NoParentFound(SplitbotError):
    """No managed pull request references the review (yet).

    Recoverable: the platform's timeline index can lag behind a freshly
    created cross-reference.
    """

    def __init__(self, number: int) -> None:
        super().__init__(f"[PR-{number}] invalid state: no managed parent found")
        self.number = number
