from __future__ import annotations


class KalmanError(Exception):
    """Base class for every failure raised by the estimators."""


class InvalidInput(KalmanError, ValueError):
    """
    A required argument was missing (None) or not a number.
    Raised before any state is touched, so the estimator stays usable.
    """

    def __init__(self, message: str, position: int | None = None, name: str | None = None) -> None:
        super().__init__(message)
        self.position = position
        self.name = name


class SingularMatrix(KalmanError, ArithmeticError):
    """Innovation covariance could not be inverted."""

    def __init__(self, message: str, determinant: float | None = None) -> None:
        super().__init__(message)
        self.determinant = determinant


class IncompatibleState(KalmanError, TypeError):
    """Snapshot does not belong to the estimator variant it is restored into."""
