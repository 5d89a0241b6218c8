"""Exceptions and warnings raised by niche analysis."""

from typing import Optional


class NicheError(Exception):
    """Base class for niche analysis errors."""

    pass


class NicheInputError(NicheError, ValueError):
    """Exception raised when inputs violate a precondition."""

    def __init__(self, message: str, fov: Optional[str] = None):
        self.fov = fov
        if fov is not None:
            message = f"[fov={fov}] {message}"
        super().__init__(message)


class InsufficientCellsError(NicheInputError):
    """Exception raised when a frame holds too few cells for the requested k."""

    def __init__(self, n_cells: int, required: int, what: str = "cells", fov: Optional[str] = None):
        self.n_cells = n_cells
        self.required = required
        super().__init__(
            f"Need at least {required} {what}, found {n_cells}",
            fov=fov,
        )


class EmptyLabelSetError(NicheInputError):
    """Exception raised when no group labels are provided."""

    pass


class DimensionMismatchError(NicheInputError):
    """Exception raised when inputs have inconsistent shapes."""

    pass


class NicheConvergenceWarning(UserWarning):
    """Warning issued when niche clustering stops at its iteration budget."""

    pass
