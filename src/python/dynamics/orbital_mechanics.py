"""
===============================================================================
PORKCHOP PLANNER - Orbital Mechanics
===============================================================================
Two-body orbit geometry used by the transfer planner.

This module provides:

    1. **Orbit reference** -- The KeplerianOrbit dataclass: fixed classical
       elements about a reference body, plus the "state vectors at time t"
       query that the ephemeris provider is built on.

    2. **Kepler's equation** -- Elliptic and hyperbolic forms, solved with
       scipy's Newton iteration.

    3. **Element conversions** -- Keplerian <-> Cartesian.

    4. **Orbit utilities** -- orbital period, sphere of influence,
       Hohmann transfer, Hohmann transfer time, synodic period.

All vectors are in SI units (m, m/s, s) and expressed in an inertial frame
centred on the reference body.

References
----------
    [1] Vallado, "Fundamentals of Astrodynamics and Applications", 4th ed.
    [2] Curtis, "Orbital Mechanics for Engineering Students", 4th ed.
    [3] Bate, Mueller & White, "Fundamentals of Astrodynamics", Dover.

===============================================================================
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from scipy.optimize import newton

from core.constants import PI, TWO_PI


# =============================================================================
# ORBIT UTILITY FUNCTIONS
# =============================================================================

class OrbitalMechanics:
    """
    Stateless collection of two-body formulas.

    Everything is a static method so callers can use the class as a
    namespace (``OrbitalMechanics.orbital_period(a, mu)``) without
    constructing anything.
    """

    # =====================================================================
    # KEPLER'S EQUATION
    # =====================================================================

    @staticmethod
    def eccentric_anomaly(mean_anomaly: float, e: float) -> float:
        """
        Solve Kepler's equation  M = E - e*sin(E)  for an elliptic orbit.

        The Newton iteration starts from E0 = M for moderate eccentricity
        and from E0 = pi for e >= 0.8, where the derivative 1 - e*cos(E)
        becomes small near periapsis.

        Parameters
        ----------
        mean_anomaly : float
            Mean anomaly (rad), any range.
        e : float
            Eccentricity, 0 <= e < 1.

        Returns
        -------
        float
            Eccentric anomaly (rad) for M wrapped to [-pi, pi).
        """
        M = float(np.remainder(mean_anomaly + PI, TWO_PI) - PI)
        if e < 1e-12:
            return M
        E0 = M if e < 0.8 else PI * np.sign(M if M != 0.0 else 1.0)
        return float(newton(
            lambda E: E - e * np.sin(E) - M,
            E0,
            fprime=lambda E: 1.0 - e * np.cos(E),
            tol=1e-13,
            maxiter=100,
        ))

    @staticmethod
    def hyperbolic_anomaly(mean_anomaly: float, e: float) -> float:
        """
        Solve the hyperbolic Kepler equation  M = e*sinh(H) - H  (e > 1).

        The starting guess H0 = sign(M) * ln(2|M|/e + 1.8) is within a few
        percent of the root for all M.
        """
        M = float(mean_anomaly)
        H0 = np.sign(M) * np.log(2.0 * abs(M) / e + 1.8)
        return float(newton(
            lambda H: e * np.sinh(H) - H - M,
            H0,
            fprime=lambda H: e * np.cosh(H) - 1.0,
            tol=1e-13,
            maxiter=100,
        ))

    @staticmethod
    def true_anomaly_from_mean(mean_anomaly: float, e: float) -> float:
        """
        Convert mean anomaly to true anomaly for elliptic or hyperbolic
        orbits.

        Elliptic:    tan(nu/2) = sqrt((1+e)/(1-e)) * tan(E/2)
        Hyperbolic:  tan(nu/2) = sqrt((e+1)/(e-1)) * tanh(H/2)
        """
        if e < 1.0:
            E = OrbitalMechanics.eccentric_anomaly(mean_anomaly, e)
            return 2.0 * np.arctan2(np.sqrt(1.0 + e) * np.sin(0.5 * E),
                                    np.sqrt(1.0 - e) * np.cos(0.5 * E))
        if e > 1.0:
            H = OrbitalMechanics.hyperbolic_anomaly(mean_anomaly, e)
            return 2.0 * np.arctan(np.sqrt((e + 1.0) / (e - 1.0)) * np.tanh(0.5 * H))
        raise ValueError("Parabolic orbits (e = 1) are not supported.")

    @staticmethod
    def mean_anomaly_from_true(nu: float, e: float) -> float:
        """Inverse of :meth:`true_anomaly_from_mean`."""
        if e < 1.0:
            E = 2.0 * np.arctan2(np.sqrt(1.0 - e) * np.sin(0.5 * nu),
                                 np.sqrt(1.0 + e) * np.cos(0.5 * nu))
            return E - e * np.sin(E)
        if e > 1.0:
            H = 2.0 * np.arctanh(np.sqrt((e - 1.0) / (e + 1.0)) * np.tan(0.5 * nu))
            return e * np.sinh(H) - H
        raise ValueError("Parabolic orbits (e = 1) are not supported.")

    # =====================================================================
    # KEPLERIAN <-> CARTESIAN CONVERSIONS
    # =====================================================================

    @staticmethod
    def keplerian_to_cartesian(
        a: float, e: float, i: float,
        RAAN: float, omega: float, nu: float,
        mu: float,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Convert classical Keplerian orbital elements to Cartesian
        position and velocity vectors.

        The procedure is:
            1. Compute the position and velocity in the perifocal (PQW)
               frame using the orbit equation and angular momentum.
            2. Rotate from PQW to the inertial frame using the 3-1-3 Euler
               rotation defined by (RAAN, inclination, argument of
               periapsis).

        Perifocal frame quantities:

            p = a * (1 - e^2)                        (semi-latus rectum)
            r = p / (1 + e*cos(nu))                  (orbital radius)
            r_pqw = r * [cos(nu), sin(nu), 0]
            v_pqw = sqrt(mu/p) * [-sin(nu), e+cos(nu), 0]

        Parameters
        ----------
        a : float
            Semi-major axis (m).  Negative for hyperbolic orbits.
        e : float
            Eccentricity.
        i : float
            Inclination (rad).
        RAAN : float
            Right Ascension of the Ascending Node (rad).
        omega : float
            Argument of periapsis (rad).
        nu : float
            True anomaly (rad).
        mu : float
            Gravitational parameter (m^3/s^2).

        Returns
        -------
        r : np.ndarray
            3-element position vector (m).
        v : np.ndarray
            3-element velocity vector (m/s).

        References
        ----------
        Vallado (2013), Algorithm 10.
        """
        p = a * (1.0 - e * e)
        if abs(p) < 1e-10:
            raise ValueError("Semi-latus rectum is near zero; degenerate orbit.")

        cos_nu = np.cos(nu)
        sin_nu = np.sin(nu)
        r_mag = p / (1.0 + e * cos_nu)

        r_pqw = r_mag * np.array([cos_nu, sin_nu, 0.0], dtype=np.float64)
        v_pqw = np.sqrt(mu / p) * np.array([-sin_nu, e + cos_nu, 0.0],
                                            dtype=np.float64)

        cos_O = np.cos(RAAN)
        sin_O = np.sin(RAAN)
        cos_i = np.cos(i)
        sin_i = np.sin(i)
        cos_w = np.cos(omega)
        sin_w = np.sin(omega)

        R = np.array([
            [cos_O * cos_w - sin_O * sin_w * cos_i,
             -cos_O * sin_w - sin_O * cos_w * cos_i,
             sin_O * sin_i],
            [sin_O * cos_w + cos_O * sin_w * cos_i,
             -sin_O * sin_w + cos_O * cos_w * cos_i,
             -cos_O * sin_i],
            [sin_w * sin_i,
             cos_w * sin_i,
             cos_i],
        ], dtype=np.float64)

        return R @ r_pqw, R @ v_pqw

    @staticmethod
    def cartesian_to_keplerian(
        r_vec: np.ndarray, v_vec: np.ndarray, mu: float
    ) -> Tuple[float, float, float, float, float, float]:
        """
        Osculating elements (a, e, i, RAAN, omega, nu) of the state (r, v).

        The node line n = z x h and the in-plane axis h_hat x n span the
        orbit plane; omega and the argument of latitude are both measured in
        that basis with arctan2, and nu is their difference.  An equatorial
        orbit takes its node line along +x (RAAN = 0), and a circular one
        takes omega = 0.

        Raises
        ------
        ValueError
            For a rectilinear state (no orbit plane) or a parabolic one.
        """
        r = np.asarray(r_vec, dtype=np.float64)
        v = np.asarray(v_vec, dtype=np.float64)
        r_mag = np.linalg.norm(r)
        h = np.cross(r, v)
        h_mag = np.linalg.norm(h)
        if r_mag == 0.0 or h_mag == 0.0:
            raise ValueError("Rectilinear state has no orbit plane.")
        h_hat = h / h_mag

        energy = 0.5 * np.dot(v, v) - mu / r_mag
        if abs(energy) < 1e-12 * mu / r_mag:
            raise ValueError("Parabolic state (zero specific energy) is not supported.")
        a = -mu / (2.0 * energy)
        e_vec = np.cross(v, h) / mu - r / r_mag
        e = np.linalg.norm(e_vec)

        node = np.array([-h_hat[1], h_hat[0], 0.0])
        node_mag = np.linalg.norm(node)
        node = node / node_mag if node_mag > 1e-12 else np.array([1.0, 0.0, 0.0])
        in_plane = np.cross(h_hat, node)

        def angle_from_node(vec):
            return np.arctan2(np.dot(vec, in_plane), np.dot(vec, node)) % TWO_PI

        inc = np.arctan2(np.hypot(h_hat[0], h_hat[1]), h_hat[2])
        raan = np.arctan2(node[1], node[0]) % TWO_PI
        omega = angle_from_node(e_vec) if e > 1e-12 else 0.0
        nu = (angle_from_node(r) - omega) % TWO_PI

        return (float(a), float(e), float(inc), float(raan), float(omega), float(nu))

    # =====================================================================
    # TRANSFER ESTIMATES
    # =====================================================================

    @staticmethod
    def hohmann_transfer(
        r1: float, r2: float, mu: float
    ) -> Tuple[float, float, float]:
        """
        Hohmann transfer between two circular coplanar orbits.

            a_t = (r1 + r2) / 2
            dv1 = sqrt(mu * (2/r1 - 1/a_t)) - sqrt(mu/r1)
            dv2 = sqrt(mu/r2) - sqrt(mu * (2/r2 - 1/a_t))
            tof = pi * sqrt(a_t^3 / mu)

        Returns
        -------
        (delta_v1, delta_v2, tof) : magnitudes in m/s and the transfer
        time in seconds.
        """
        a_t = (r1 + r2) / 2.0

        v_circ_1 = np.sqrt(mu / r1)
        v_circ_2 = np.sqrt(mu / r2)

        v_transfer_1 = np.sqrt(mu * (2.0 / r1 - 1.0 / a_t))
        v_transfer_2 = np.sqrt(mu * (2.0 / r2 - 1.0 / a_t))

        delta_v1 = abs(v_transfer_1 - v_circ_1)
        delta_v2 = abs(v_circ_2 - v_transfer_2)

        return delta_v1, delta_v2, OrbitalMechanics.hohmann_time(mu, r1, r2)

    @staticmethod
    def hohmann_time(mu: float, sma1: float, sma2: float) -> float:
        """Half the period of the ellipse spanning sma1 and sma2 (s)."""
        a = 0.5 * (sma1 + sma2)
        return PI * np.sqrt(a ** 3 / mu)

    @staticmethod
    def synodic_period(p1: float, p2: float) -> float:
        """
        Time between successive identical alignments of two orbiting
        bodies with periods p1 and p2:

            T_syn = | 1 / (1/p1 - 1/p2) |

        Equal periods never re-align and return ``inf``.
        """
        rate = 1.0 / p1 - 1.0 / p2
        if rate == 0.0:
            return np.inf
        return abs(1.0 / rate)

    # =====================================================================
    # ORBIT UTILITY FUNCTIONS
    # =====================================================================

    @staticmethod
    def orbital_period(a: float, mu: float) -> float:
        """
        Kepler's third law,  T = 2*pi * sqrt(a^3 / mu).

        Raises
        ------
        ValueError
            If a <= 0 (open orbit has no finite period).
        """
        if a <= 0:
            raise ValueError(
                f"Orbital period is undefined for a <= 0 (got a = {a:.4e} m). "
                "Open (hyperbolic/parabolic) orbits have infinite period."
            )
        return TWO_PI * np.sqrt(a ** 3 / mu)

    @staticmethod
    def sphere_of_influence(
        r_body: float, m_body: float, m_central: float
    ) -> float:
        """
        Laplace sphere-of-influence radius,

            r_SOI = r_body * (m_body / m_central)^(2/5)

        The mass ratio can equally be given as a ratio of gravitational
        parameters.
        """
        return r_body * (m_body / m_central) ** (2.0 / 5.0)


# =============================================================================
# ORBIT REFERENCE
# =============================================================================

@dataclass(frozen=True)
class KeplerianOrbit:
    """
    Fixed osculating elements about a reference body.

    Attributes
    ----------
    reference_mu : float
        Gravitational parameter of the body being orbited (m^3/s^2).
    semi_major_axis : float
        Semi-major axis (m); negative for hyperbolic orbits.
    eccentricity : float
        Eccentricity (!= 1).
    inclination, lan, argument_of_periapsis : float
        Orientation angles (rad).
    mean_anomaly_at_epoch : float
        Mean anomaly (rad) at ``epoch``.
    epoch : float
        Reference time (s).
    """
    reference_mu: float
    semi_major_axis: float
    eccentricity: float = 0.0
    inclination: float = 0.0
    lan: float = 0.0
    argument_of_periapsis: float = 0.0
    mean_anomaly_at_epoch: float = 0.0
    epoch: float = 0.0

    def __post_init__(self):
        if self.reference_mu <= 0.0:
            raise ValueError(f"reference_mu must be positive, got {self.reference_mu}")
        if self.eccentricity < 0.0 or abs(self.eccentricity - 1.0) < 1e-12:
            raise ValueError(f"Unsupported eccentricity {self.eccentricity}")
        if (self.eccentricity < 1.0) != (self.semi_major_axis > 0.0):
            raise ValueError(
                "semi_major_axis must be positive for elliptic orbits and "
                "negative for hyperbolic ones"
            )

    @classmethod
    def from_state_vectors(
        cls, r: np.ndarray, v: np.ndarray, time: float, reference_mu: float,
    ) -> 'KeplerianOrbit':
        """Build the osculating orbit of a state (r, v) observed at ``time``."""
        a, e, inc, raan, omega, nu = OrbitalMechanics.cartesian_to_keplerian(
            r, v, reference_mu)
        return cls(
            reference_mu=reference_mu,
            semi_major_axis=a,
            eccentricity=e,
            inclination=inc,
            lan=raan,
            argument_of_periapsis=omega,
            mean_anomaly_at_epoch=float(OrbitalMechanics.mean_anomaly_from_true(nu, e)),
            epoch=time,
        )

    @property
    def is_closed(self) -> bool:
        return self.eccentricity < 1.0

    @property
    def period(self) -> float:
        """Orbital period (s); ``inf`` for hyperbolic orbits."""
        if not self.is_closed:
            return np.inf
        return OrbitalMechanics.orbital_period(self.semi_major_axis, self.reference_mu)

    @property
    def semi_latus_rectum(self) -> float:
        return self.semi_major_axis * (1.0 - self.eccentricity ** 2)

    def mean_motion(self, mu: Optional[float] = None) -> float:
        mu = self.reference_mu if mu is None else mu
        return np.sqrt(mu / abs(self.semi_major_axis) ** 3)

    def true_anomaly_at(self, time: float, mu: Optional[float] = None) -> float:
        """True anomaly (rad) at ``time``, propagating from the epoch."""
        M = self.mean_anomaly_at_epoch + self.mean_motion(mu) * (time - self.epoch)
        return OrbitalMechanics.true_anomaly_from_mean(M, self.eccentricity)

    def state_vectors_at(
        self, time: float, mu: Optional[float] = None,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Position and velocity at ``time`` relative to the reference body.

        ``mu`` overrides the gravitational parameter used for both the mean
        motion and the velocity magnitude, leaving the geometry unchanged.
        """
        mu = self.reference_mu if mu is None else mu
        nu = self.true_anomaly_at(time, mu)
        return OrbitalMechanics.keplerian_to_cartesian(
            self.semi_major_axis, self.eccentricity, self.inclination,
            self.lan, self.argument_of_periapsis, nu, mu,
        )
