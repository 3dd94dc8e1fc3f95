"""
===============================================================================
PORKCHOP PLANNER - Error Taxonomy
===============================================================================
Per-cell and per-point infeasibility (non-positive time of flight, Lambert
non-convergence, unreachable periapsis) is *data*, not an exception: it shows
up as NaN in the grids and as ``is_valid=False`` in TransferDetails.

The classes below cover the remaining failure modes:

    NumericDegeneracyError  -- closed-form geometry undefined for the input
    ResultNotReadyError     -- grid result requested outside the DONE state
    SolverJobError          -- the background grid fill raised
===============================================================================
"""


class PorkchopError(Exception):
    """Base class for all planner errors."""


class NumericDegeneracyError(PorkchopError, ArithmeticError):
    """
    Raised when the periapsis-direction geometry has no solution: the
    hyperbola is not open (e <= 1), the plane normal is parallel to the
    asymptote, or the asymptote cone does not intersect the plane.
    """


class ResultNotReadyError(PorkchopError, RuntimeError):
    """Raised when a result is read while no finished job is available."""


class SolverJobError(PorkchopError, RuntimeError):
    """Raised by ``collect()`` when the background job terminated with an error."""
