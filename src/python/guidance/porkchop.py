"""
===============================================================================
PORKCHOP PLANNER - Porkchop Grid Solver
===============================================================================
Sweeps departure time and time of flight, solves a zero-revolution Lambert
problem per cell, and prices both legs with the patched-conic cost model.

Grid layout:
    rows    i = 0 .. n_departures-1   departure time, increasing
    columns j = 0 .. n_tof-1          time of flight, increasing

    t_dep(i) = earliest_departure + i * (latest_departure - earliest_departure) / (n_departures - 1)
    tof(j)   = min_tof + j * (max_tof - min_tof) / (n_tof - 1)
    t_arr    = t_dep(i) + tof(j)

Using time of flight rather than absolute arrival date keeps every column in
a physically meaningful flight-time band, at the cost of recomputing the
destination's state for every cell.  Departure states depend only on the
row and are computed once per solve.

Cells with tof <= 0, Lambert failures and unreachable periapses are NaN in
all grids where they apply.  total = departure + arrival, element-wise, so
a NaN on either leg makes the total NaN.

Minima are a separate reduction over the finished grids (np.nanargmin on the
row-major layout), so ties resolve to the first cell in (i, j) scan order.
===============================================================================
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

from core.constants import HALF_PI
from dynamics.endpoints import Endpoint, EphemerisProvider, GravitatingBody, check_endpoint
from dynamics.lambert import BoundaryValueSolver
from guidance.escape_geometry import leg_delta_v

logger = logging.getLogger(__name__)


# =============================================================================
# REQUEST
# =============================================================================

@dataclass(frozen=True)
class PorkchopRequest:
    """
    Everything needed to fill one porkchop grid.

    Attributes
    ----------
    origin, destination : Endpoint
        Must orbit the same primary (equal reference mu).
    earliest_departure, latest_departure : float
        Departure window (s).
    min_tof, max_tof : float
        Time-of-flight band (s).
    departure_altitude : float
        Parking-orbit altitude above the origin's surface (m).
    departure_min_inclination : float
        Lowest acceptable parking-orbit inclination (rad), in [0, pi/2].
    arrival_altitude : float
        Capture periapsis altitude above the destination's surface (m).
    circularize : bool
        Capture into a circular orbit (True) or only target periapsis.
    n_departures, n_tof : int
        Grid resolution, at least 2 each.
    """
    origin: Endpoint
    destination: Endpoint
    earliest_departure: float
    latest_departure: float
    min_tof: float
    max_tof: float
    departure_altitude: float = 0.0
    departure_min_inclination: float = 0.0
    arrival_altitude: float = 0.0
    circularize: bool = True
    n_departures: int = 100
    n_tof: int = 100

    def __post_init__(self):
        check_endpoint(self.origin)
        check_endpoint(self.destination)
        if self.latest_departure < self.earliest_departure:
            raise ValueError("latest_departure must not precede earliest_departure")
        if self.max_tof < self.min_tof:
            raise ValueError("max_tof must not be smaller than min_tof")
        if self.n_departures < 2 or self.n_tof < 2:
            raise ValueError(
                f"Grid needs at least 2x2 cells, got {self.n_departures}x{self.n_tof}"
            )
        if self.departure_altitude < 0.0 or self.arrival_altitude < 0.0:
            raise ValueError("Altitudes must be non-negative")
        if not 0.0 <= self.departure_min_inclination <= HALF_PI:
            raise ValueError("departure_min_inclination must lie in [0, pi/2]")
        if self.origin.orbit.reference_mu != self.destination.orbit.reference_mu:
            raise ValueError(
                f"{self.origin.name} and {self.destination.name} do not orbit the same primary"
            )

    # -------------------------------------------------------------------------
    # Derived quantities
    # -------------------------------------------------------------------------

    @property
    def transfer_mu(self) -> float:
        return self.origin.orbit.reference_mu

    @property
    def departure_periapsis_radius(self) -> float:
        if isinstance(self.origin, GravitatingBody):
            return self.origin.radius + self.departure_altitude
        return 0.0

    @property
    def arrival_periapsis_radius(self) -> float:
        if isinstance(self.destination, GravitatingBody):
            return self.destination.radius + self.arrival_altitude
        return 0.0

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.n_departures, self.n_tof)

    # -------------------------------------------------------------------------
    # Axes
    # -------------------------------------------------------------------------

    @property
    def departure_step(self) -> float:
        return (self.latest_departure - self.earliest_departure) / (self.n_departures - 1)

    @property
    def tof_step(self) -> float:
        return (self.max_tof - self.min_tof) / (self.n_tof - 1)

    def departure_time(self, i: int) -> float:
        return self.earliest_departure + i * self.departure_step

    def time_of_flight(self, j: int) -> float:
        return self.min_tof + j * self.tof_step

    def departure_axis(self) -> np.ndarray:
        return self.earliest_departure + np.arange(self.n_departures) * self.departure_step

    def tof_axis(self) -> np.ndarray:
        return self.min_tof + np.arange(self.n_tof) * self.tof_step

    def times_for(self, i: int, j: int) -> Tuple[float, float]:
        """(departure time, arrival time) of grid cell (i, j)."""
        t_dep = self.departure_time(i)
        return t_dep, t_dep + self.time_of_flight(j)


# =============================================================================
# RESULT
# =============================================================================

@dataclass(frozen=True)
class GridMinimum:
    """Smallest finite value of one grid and its (i, j) cell."""
    value: float
    point: Optional[Tuple[int, int]]

    @property
    def is_valid(self) -> bool:
        return self.point is not None


def grid_minimum(grid: np.ndarray) -> GridMinimum:
    """
    Reduce a grid to its minimum finite cell.

    np.nanargmin returns the first occurrence in row-major order, which is
    the (i ascending, j ascending) scan order.  An all-NaN grid has no
    minimum.
    """
    if np.all(np.isnan(grid)):
        return GridMinimum(value=np.nan, point=None)
    flat = int(np.nanargmin(grid))
    i, j = np.unravel_index(flat, grid.shape)
    return GridMinimum(value=float(grid[i, j]), point=(int(i), int(j)))


@dataclass(frozen=True)
class PorkchopResult:
    """
    Immutable snapshot of a finished grid.  The arrays are read-only.
    """
    request: PorkchopRequest
    departure_dv: np.ndarray
    arrival_dv: np.ndarray
    total_dv: np.ndarray
    min_departure: GridMinimum
    min_arrival: GridMinimum
    min_total: GridMinimum
    elapsed: float = field(default=0.0, compare=False)

    def times_for(self, i: int, j: int) -> Tuple[float, float]:
        return self.request.times_for(i, j)

    @property
    def departure_times(self) -> np.ndarray:
        return self.request.departure_axis()

    @property
    def times_of_flight(self) -> np.ndarray:
        return self.request.tof_axis()


def _freeze(grid: np.ndarray) -> np.ndarray:
    grid.setflags(write=False)
    return grid


def build_result(request, departure_dv, arrival_dv, total_dv, elapsed=0.0) -> PorkchopResult:
    """Reduce the three grids to their minima and wrap them read-only."""
    return PorkchopResult(
        request=request,
        departure_dv=_freeze(departure_dv),
        arrival_dv=_freeze(arrival_dv),
        total_dv=_freeze(total_dv),
        min_departure=grid_minimum(departure_dv),
        min_arrival=grid_minimum(arrival_dv),
        min_total=grid_minimum(total_dv),
        elapsed=elapsed,
    )


# =============================================================================
# GRID FILL
# =============================================================================

def fill_porkchop_grid(
    request: PorkchopRequest,
    ephemeris: EphemerisProvider,
    lambert: BoundaryValueSolver,
    cancel_event=None,
) -> Optional[PorkchopResult]:
    """
    Fill the three delta-V grids for ``request``.

    Parameters
    ----------
    request : PorkchopRequest
    ephemeris : EphemerisProvider
        State vectors of both endpoints.
    lambert : BoundaryValueSolver
        Always called with revolutions=0.
    cancel_event : threading.Event, optional
        Checked once per row; when set the fill stops and returns None.

    Returns
    -------
    PorkchopResult, or None if cancelled.
    """
    n_dep, n_tof = request.shape
    logger.info(
        "Porkchop %s -> %s: %d x %d grid",
        request.origin.name, request.destination.name, n_dep, n_tof,
    )
    start = time.perf_counter()

    dep_times = request.departure_axis()
    tofs = request.tof_axis()
    mu = request.transfer_mu
    dep_rp = request.departure_periapsis_radius
    arr_rp = request.arrival_periapsis_radius

    # Departure side depends only on the row
    dep_pos = np.empty((n_dep, 3))
    dep_vel = np.empty((n_dep, 3))
    for i, t_dep in enumerate(dep_times):
        dep_pos[i], dep_vel[i] = ephemeris.state_vectors_at(request.origin, t_dep)

    departure_dv = np.full((n_dep, n_tof), np.nan)
    arrival_dv = np.full((n_dep, n_tof), np.nan)

    dep_c3 = np.empty(n_tof)
    arr_c3 = np.empty(n_tof)
    for i in range(n_dep):
        if cancel_event is not None and cancel_event.is_set():
            logger.info("Porkchop fill cancelled at row %d of %d", i, n_dep)
            return None

        dep_c3.fill(np.nan)
        arr_c3.fill(np.nan)
        for j, tof in enumerate(tofs):
            if tof <= 0.0:
                continue
            arr_pos, arr_vel = ephemeris.state_vectors_at(
                request.destination, dep_times[i] + tof)
            v1, v2 = lambert.solve(mu, dep_pos[i], dep_vel[i], arr_pos, tof, 0)
            if not (np.all(np.isfinite(v1)) and np.all(np.isfinite(v2))):
                continue
            dv1 = v1 - dep_vel[i]
            dv2 = v2 - arr_vel
            dep_c3[j] = np.dot(dv1, dv1)
            arr_c3[j] = np.dot(dv2, dv2)

        departure_dv[i] = leg_delta_v(request.origin, dep_c3, dep_rp, True)
        arrival_dv[i] = leg_delta_v(
            request.destination, arr_c3, arr_rp, request.circularize)
        logger.debug("Porkchop row %d/%d done", i + 1, n_dep)

    total_dv = departure_dv + arrival_dv
    elapsed = time.perf_counter() - start

    result = build_result(request, departure_dv, arrival_dv, total_dv, elapsed)
    logger.info(
        "Porkchop finished in %.2f s: min departure %.1f m/s, "
        "min arrival %.1f m/s, min total %.1f m/s at %s",
        elapsed, result.min_departure.value, result.min_arrival.value,
        result.min_total.value, result.min_total.point,
    )
    return result
