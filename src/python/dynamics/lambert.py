"""
===============================================================================
PORKCHOP PLANNER - Lambert Boundary-Value Solver
===============================================================================
Given two position vectors and a time of flight, find the conic arc that
connects them and the velocities at both ends.

The planner only asks for direct (zero-revolution) transfers and detects
failure by checking that the returned velocities are finite, so a solver
signals "no solution" with NaN vectors rather than by raising.

The default ``UniversalVariableLambert`` follows Curtis Algorithm 5.2.  The
time of flight is monotonic in the universal variable z on the zero-revolution
branch, so instead of a bare Newton iteration the root is bracketed and found
with scipy's Brent solver, which cannot wander off the branch.

At a transfer angle of exactly 180 deg the Lagrange coefficient g vanishes
and the universal form breaks down.  The plane is then taken from the
departure body's angular momentum: both radii fix the semi-latus rectum,

    p = 2*r1*r2 / (r1 + r2),   e*cos(nu1) = (r2 - r1) / (r1 + r2)

and the remaining free parameter s = e*sin(nu1) is solved for the time of
flight, again with Brent's method.

References
----------
    [1] Curtis, "Orbital Mechanics for Engineering Students", 4th ed., Alg. 5.2
    [2] Vallado, "Fundamentals of Astrodynamics and Applications", Alg. 58
===============================================================================
"""

import logging
from abc import ABC, abstractmethod
from typing import Tuple

import numpy as np
from scipy.optimize import brentq

from core.constants import PI, TWO_PI
from dynamics.orbital_mechanics import OrbitalMechanics

logger = logging.getLogger(__name__)

# Upper end of the zero-revolution branch, z < (2*pi)^2
_Z_MAX = TWO_PI ** 2 * (1.0 - 1e-6)
_NAN3 = np.full(3, np.nan)
# |sin(transfer angle)| below which a near-180 deg arc uses the half-turn form
_HALF_TURN_SIN = 1e-8
# |e - 1| inside which the half-turn arc is timed as a parabola
_PARABOLIC_BAND = 1e-8


def stumpff_c(z: float) -> float:
    """Stumpff function C(z)."""
    if z > 1e-3:
        sz = np.sqrt(z)
        return (1.0 - np.cos(sz)) / z
    if z < -1e-3:
        sz = np.sqrt(-z)
        return (np.cosh(sz) - 1.0) / (-z)
    return 1.0 / 2.0 - z / 24.0 + z * z / 720.0 - z ** 3 / 40320.0


def stumpff_s(z: float) -> float:
    """Stumpff function S(z)."""
    if z > 1e-3:
        sz = np.sqrt(z)
        return (sz - np.sin(sz)) / (z * sz)
    if z < -1e-3:
        sz = np.sqrt(-z)
        return (np.sinh(sz) - sz) / ((-z) * sz)
    return 1.0 / 6.0 - z / 120.0 + z * z / 5040.0 - z ** 3 / 362880.0


class BoundaryValueSolver(ABC):
    """Interface for two-point boundary-value (Lambert) solvers."""

    @abstractmethod
    def solve(
        self, mu: float, r1: np.ndarray, v1_body: np.ndarray,
        r2: np.ndarray, tof: float, revolutions: int = 0,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Parameters
        ----------
        mu : float
            Gravitational parameter of the common primary (m^3/s^2).
        r1, r2 : np.ndarray
            Departure and arrival positions (m).
        v1_body : np.ndarray
            Velocity of the departure body (m/s); its angular momentum
            r1 x v1_body fixes the prograde sense of the transfer.
        tof : float
            Time of flight (s).
        revolutions : int
            Number of complete revolutions.

        Returns
        -------
        (v1, v2) : transfer velocities at r1 and r2, NaN if no solution.
        """


class UniversalVariableLambert(BoundaryValueSolver):
    """Zero-revolution universal-variable Lambert solver."""

    def __init__(self, xtol: float = 1e-12, maxiter: int = 200):
        self.xtol = xtol
        self.maxiter = maxiter

    def solve(self, mu, r1, v1_body, r2, tof, revolutions=0):
        if revolutions != 0:
            raise ValueError("Only zero-revolution transfers are supported")

        r1 = np.asarray(r1, dtype=np.float64)
        r2 = np.asarray(r2, dtype=np.float64)
        r1_mag = np.linalg.norm(r1)
        r2_mag = np.linalg.norm(r2)
        if tof <= 0.0 or mu <= 0.0 or r1_mag == 0.0 or r2_mag == 0.0:
            return _NAN3.copy(), _NAN3.copy()

        # --- Transfer angle, prograde relative to the departure orbit ---
        h_body = np.cross(r1, np.asarray(v1_body, dtype=np.float64))
        if not np.any(h_body):
            h_body = np.array([0.0, 0.0, 1.0])
        cos_dnu = np.clip(np.dot(r1, r2) / (r1_mag * r2_mag), -1.0, 1.0)
        dnu = np.arccos(cos_dnu)
        if np.dot(np.cross(r1, r2), h_body) < 0.0:
            dnu = TWO_PI - dnu

        denom = 1.0 - cos_dnu
        if denom < 1e-14:
            logger.debug("Lambert: zero transfer angle, no unique solution")
            return _NAN3.copy(), _NAN3.copy()
        if cos_dnu < 0.0 and abs(np.sin(dnu)) < _HALF_TURN_SIN:
            return self._solve_half_turn(mu, r1, r1_mag, r2, r2_mag, h_body, tof)
        A = np.sin(dnu) * np.sqrt(r1_mag * r2_mag / denom)

        sqrt_mu = np.sqrt(mu)

        def y_of(z):
            return r1_mag + r2_mag + A * (z * stumpff_s(z) - 1.0) / np.sqrt(stumpff_c(z))

        def tof_error(z):
            y = y_of(z)
            if y <= 0.0:
                # Below the y = 0 boundary the arc does not exist; the flight
                # time there tends to zero, so continue F(z) at -tof.
                return -tof
            C = stumpff_c(z)
            chi = np.sqrt(y / C)
            return (chi ** 3 * stumpff_s(z) + A * np.sqrt(y)) / sqrt_mu - tof

        # --- Bracket the root on the zero-revolution branch ---
        z_hi = _Z_MAX
        if not tof_error(z_hi) > 0.0:
            logger.debug("Lambert: time of flight %.6g s beyond branch limit", tof)
            return _NAN3.copy(), _NAN3.copy()

        z_lo = -TWO_PI ** 2
        for _ in range(12):
            if tof_error(z_lo) < 0.0:
                break
            z_lo *= 2.0
        else:
            logger.debug("Lambert: could not bracket z for tof %.6g s", tof)
            return _NAN3.copy(), _NAN3.copy()

        z, info = brentq(tof_error, z_lo, z_hi, xtol=self.xtol,
                         maxiter=self.maxiter, full_output=True, disp=False)
        if not info.converged:
            logger.debug("Lambert: no convergence after %d iterations", info.iterations)
            return _NAN3.copy(), _NAN3.copy()

        # --- Lagrange coefficients ---
        y = y_of(z)
        if y <= 0.0:
            return _NAN3.copy(), _NAN3.copy()
        f = 1.0 - y / r1_mag
        g = A * np.sqrt(y / mu)
        g_dot = 1.0 - y / r2_mag

        v1 = (r2 - f * r1) / g
        v2 = (g_dot * r2 - r1) / g
        return v1, v2

    def _solve_half_turn(self, mu, r1, r1_mag, r2, r2_mag, h_body, tof):
        """Opposed radii: solve in the plane normal to the departure orbit's h."""
        r1_hat = r1 / r1_mag
        r2_hat = r2 / r2_mag
        h = h_body - np.dot(h_body, r1_hat) * r1_hat
        h_mag = np.linalg.norm(h)
        if h_mag < 1e-12 * np.linalg.norm(h_body):
            logger.debug("Lambert: half-turn plane undefined, departure h along r1")
            return _NAN3.copy(), _NAN3.copy()
        h_hat = h / h_mag

        p = 2.0 * r1_mag * r2_mag / (r1_mag + r2_mag)
        ec = (r2_mag - r1_mag) / (r1_mag + r2_mag)

        def flight_time(s):
            e = np.hypot(ec, s)
            nu1 = np.arctan2(s, ec)
            nu2 = nu1 + PI
            if s < 0.0 and abs(e - 1.0) < _PARABOLIC_BAND:
                # Barker's equation
                d1, d2 = np.tan(0.5 * nu1), np.tan(0.5 * nu2)
                return 0.5 * np.sqrt(p ** 3 / mu) * ((d2 - d1) + (d2 ** 3 - d1 ** 3) / 3.0)
            dM = (OrbitalMechanics.mean_anomaly_from_true(nu2, e)
                  - OrbitalMechanics.mean_anomaly_from_true(nu1, e))
            a = p / (1.0 - e * e)
            if e < 1.0:
                return np.mod(dM, TWO_PI) / np.sqrt(mu / a ** 3)
            return dM / np.sqrt(mu / (-a) ** 3)

        # s = e*sin(nu1); s -> sqrt(1 - ec^2) from below is the parabolic limit
        # through apoapsis, s -> -inf the straight-line limit.
        s_hi = np.sqrt(1.0 - ec * ec) * (1.0 - 1e-6)
        if not flight_time(s_hi) > tof:
            logger.debug("Lambert: half-turn time of flight %.6g s beyond branch limit", tof)
            return _NAN3.copy(), _NAN3.copy()

        s_lo = -1.0
        for _ in range(60):
            if flight_time(s_lo) < tof:
                break
            s_lo *= 2.0
        else:
            logger.debug("Lambert: could not bracket half-turn for tof %.6g s", tof)
            return _NAN3.copy(), _NAN3.copy()

        s, info = brentq(lambda x: flight_time(x) - tof, s_lo, s_hi, xtol=self.xtol,
                         maxiter=self.maxiter, full_output=True, disp=False)
        if not info.converged:
            logger.debug("Lambert: half-turn no convergence after %d iterations",
                         info.iterations)
            return _NAN3.copy(), _NAN3.copy()

        k = np.sqrt(mu / p)
        h_spec = np.sqrt(mu * p)
        v1 = k * s * r1_hat + h_spec / r1_mag * np.cross(h_hat, r1_hat)
        v2 = -k * s * r2_hat + h_spec / r2_mag * np.cross(h_hat, r2_hat)
        return v1, v2
