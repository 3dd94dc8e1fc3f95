"""
===============================================================================
PORKCHOP PLANNER - Background Porkchop Solver
===============================================================================
Runs the grid fill on a worker thread so the caller (typically a UI loop)
stays responsive and polls for completion.

State machine:

        IDLE --generate_porkchop()--> WORKING --job ends--> DONE
         ^                               |                    |
         |                           cancel()                 |
         |                               v                    |
         +-------- worker stops --- CANCELLING                |
         +----------------------- collect() ------------------+

    - At most one job is in flight.  A request while WORKING, CANCELLING
      or DONE (a finished result still waiting) is logged and refused; the
      call returns False and nothing changes.
    - A cancelled worker finishes its current row, discards its arrays and
      only then returns the controller to IDLE, so the ephemeris and the
      Lambert solver are never driven by two fills at once.
    - The worker writes only into its own arrays.  It publishes a frozen
      PorkchopResult with read-only arrays under the lock, in the same
      critical section that moves the state to DONE.  collect() is the only
      way to reach the grids and refuses outside DONE, so no caller can
      observe a half-filled grid.
    - times_for() and calculate_details() do not touch grid state and may
      be called at any time after the first accepted request.
===============================================================================
"""

import logging
import threading
from enum import IntEnum
from typing import Optional, Tuple

from core.errors import ResultNotReadyError, SolverJobError
from dynamics.endpoints import Endpoint, EphemerisProvider, KeplerianEphemeris
from dynamics.lambert import BoundaryValueSolver, UniversalVariableLambert
from guidance.porkchop import PorkchopRequest, PorkchopResult, fill_porkchop_grid
from guidance.transfer_details import TransferDetailCalculator, TransferDetails

logger = logging.getLogger(__name__)


class SolverState(IntEnum):
    IDLE = 0
    WORKING = 1
    DONE = 2
    CANCELLING = 3


class PorkchopSolver:
    """
    Background porkchop solver with a fixed grid resolution.

    Parameters
    ----------
    n_departures, n_tof : int
        Grid size used for every request.
    ephemeris : EphemerisProvider, optional
        Defaults to KeplerianEphemeris().
    lambert : BoundaryValueSolver, optional
        Defaults to UniversalVariableLambert().

    Typical usage:
        solver = PorkchopSolver(200, 200)
        solver.generate_porkchop(earth, mars, t0, t1, tof0, tof1,
                                 200e3, 0.0, 300e3, True)
        while solver.is_running():
            ...                      # draw a frame
        result = solver.collect()
    """

    def __init__(
        self,
        n_departures: int,
        n_tof: int,
        ephemeris: Optional[EphemerisProvider] = None,
        lambert: Optional[BoundaryValueSolver] = None,
    ):
        if n_departures < 2 or n_tof < 2:
            raise ValueError(f"Grid needs at least 2x2 cells, got {n_departures}x{n_tof}")
        self.n_departures = n_departures
        self.n_tof = n_tof
        self.ephemeris = ephemeris if ephemeris is not None else KeplerianEphemeris()
        self.lambert = lambert if lambert is not None else UniversalVariableLambert()

        self._lock = threading.Lock()
        self._finished = threading.Event()
        self._finished.set()
        self._state = SolverState.IDLE
        self._request: Optional[PorkchopRequest] = None
        self._calculator: Optional[TransferDetailCalculator] = None
        self._result: Optional[PorkchopResult] = None
        self._error: Optional[BaseException] = None
        self._cancel: Optional[threading.Event] = None
        self._worker: Optional[threading.Thread] = None

    def __repr__(self) -> str:
        return (
            f"PorkchopSolver({self.n_departures}x{self.n_tof}, "
            f"state={self.state.name})"
        )

    # -------------------------------------------------------------------------
    # State queries
    # -------------------------------------------------------------------------

    @property
    def state(self) -> SolverState:
        with self._lock:
            return self._state

    def is_running(self) -> bool:
        return self.state == SolverState.WORKING

    def result_ready(self) -> bool:
        return self.state == SolverState.DONE

    @property
    def request(self) -> Optional[PorkchopRequest]:
        """Most recently accepted request."""
        with self._lock:
            return self._request

    # -------------------------------------------------------------------------
    # Job control
    # -------------------------------------------------------------------------

    def generate_porkchop(
        self,
        origin: Endpoint,
        destination: Endpoint,
        earliest_departure: float,
        latest_departure: float,
        min_tof: float,
        max_tof: float,
        departure_altitude: float,
        departure_min_inclination: float,
        arrival_altitude: float,
        circularize: bool,
    ) -> bool:
        """
        Start a grid fill in the background.

        Returns
        -------
        bool
            True if the job was started, False if it was refused because a
            job is running or still stopping, or a finished result has not
            been collected.

        Raises
        ------
        ValueError
            If the request parameters are invalid (nothing is started).
        """
        with self._lock:
            if self._state != SolverState.IDLE:
                logger.error(
                    "Porkchop request %s -> %s refused: solver is %s",
                    origin.name, destination.name, self._state.name,
                )
                return False
            request = PorkchopRequest(
                origin=origin,
                destination=destination,
                earliest_departure=earliest_departure,
                latest_departure=latest_departure,
                min_tof=min_tof,
                max_tof=max_tof,
                departure_altitude=departure_altitude,
                departure_min_inclination=departure_min_inclination,
                arrival_altitude=arrival_altitude,
                circularize=circularize,
                n_departures=self.n_departures,
                n_tof=self.n_tof,
            )
            cancel = threading.Event()
            finished = threading.Event()
            self._request = request
            self._calculator = TransferDetailCalculator(request, self.ephemeris, self.lambert)
            self._result = None
            self._error = None
            self._cancel = cancel
            self._finished = finished
            self._state = SolverState.WORKING
            self._worker = threading.Thread(
                target=self._run, args=(request, cancel, finished),
                name="porkchop-solver", daemon=True,
            )
            self._worker.start()
        return True

    def _run(
        self, request: PorkchopRequest,
        cancel: threading.Event, finished: threading.Event,
    ) -> None:
        result = None
        error = None
        try:
            result = fill_porkchop_grid(request, self.ephemeris, self.lambert, cancel)
        except Exception as exc:
            logger.exception("Porkchop job failed")
            error = exc

        with self._lock:
            if cancel.is_set():
                # Output of a cancelled job is dropped
                self._state = SolverState.IDLE
                logger.info("Cancelled porkchop job stopped")
            else:
                self._result = result
                self._error = error
                self._state = SolverState.DONE
            finished.set()

    def cancel(self) -> bool:
        """
        Ask a running job to stop at its next row.  The controller stays in
        CANCELLING until the worker has stopped, then returns to IDLE and the
        job's output is discarded.

        Returns True if a running job was cancelled.
        """
        with self._lock:
            if self._state != SolverState.WORKING:
                return False
            self._cancel.set()
            self._state = SolverState.CANCELLING
            logger.info("Porkchop job cancelling")
            return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the current job has finished, or has been cancelled and
        its worker has stopped.  Returns False on timeout.
        """
        return self._finished.wait(timeout)

    def collect(self) -> PorkchopResult:
        """
        Take the finished result and return the solver to IDLE.

        Raises
        ------
        ResultNotReadyError
            If no finished job is waiting.
        SolverJobError
            If the job raised; the original exception is chained.
        """
        with self._lock:
            if self._state != SolverState.DONE:
                raise ResultNotReadyError(
                    f"No porkchop result available (solver is {self._state.name})"
                )
            result, error = self._result, self._error
            self._result = None
            self._error = None
            self._state = SolverState.IDLE

        if error is not None:
            raise SolverJobError("Porkchop job failed") from error
        return result

    # -------------------------------------------------------------------------
    # Synchronous queries
    # -------------------------------------------------------------------------

    def _latest(self) -> Tuple[PorkchopRequest, TransferDetailCalculator]:
        with self._lock:
            if self._request is None:
                raise ResultNotReadyError("No porkchop request has been made yet")
            return self._request, self._calculator

    def times_for(self, i: int, j: int) -> Tuple[float, float]:
        """(departure, arrival) time of cell (i, j) of the latest request."""
        request, _ = self._latest()
        return request.times_for(i, j)

    def calculate_details(self, t_dep: float, t_arr: float) -> TransferDetails:
        """Full-precision transfer details using the latest request."""
        _, calculator = self._latest()
        return calculator.calculate(t_dep, t_arr)
