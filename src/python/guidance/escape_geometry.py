"""
===============================================================================
PORKCHOP PLANNER - Escape and Capture Geometry
===============================================================================
Patched-conic formulas that turn a hyperbolic excess velocity into burn
parameters at a gravitating endpoint.

    Cost evaluation:
        pe_vel_sq = 2*mu/rp + C3 - 2*mu/r_soi     (energy at periapsis,
                                                    SOI-corrected)
        v_start   = sqrt(mu/rp)    circular parking / capture orbit
                  = sqrt(2*mu/rp)  only clip periapsis (parabolic start)
        dv        = sqrt(pe_vel_sq) - v_start

    Asymptote:
        RA   = atan2(vy, vx)
        decl = asin(vz / |v|)

    Parking orbit:
        The lowest inclination (not below a floor) whose plane contains the
        outgoing asymptote, and its ascending node.

    Periapsis direction:
        Unit vector in the parking plane that sits at the true anomaly of
        the asymptote, -nu_inf, from the asymptote direction.

Sign conventions and units:
    - All distances in meters, velocities in m/s, angles in radians
    - Gravitational parameters (mu) in m^3/s^2
    - An infinite sphere of influence removes the SOI correction
===============================================================================
"""

from typing import Tuple

import numpy as np

from core.constants import HALF_PI, TWO_PI
from core.errors import NumericDegeneracyError
from dynamics.endpoints import FreeBody, GravitatingBody

# Relative size below which a negative discriminant is treated as round-off
_DISC_ROUNDOFF = 1e-12
# Minimum |asymptote x normal| before the periapsis geometry is degenerate
_MIN_PLANE_ANGLE = 1e-9


# =============================================================================
# COST EVALUATOR
# =============================================================================

def delta_v_from_c3(mu, soi, c3, periapsis_radius, circularize=True):
    """
    Injection (or capture) delta-V at periapsis for a given C3.

    Works element-wise on numpy arrays.  A combination where periapsis
    cannot be reached (negative pe_vel_sq) or where the burn would not be
    positive comes back as NaN; nothing is raised.

    Parameters
    ----------
    mu : float
        Gravitational parameter of the endpoint body (m^3/s^2).
    soi : float
        Sphere-of-influence radius (m); ``np.inf`` drops the correction.
    c3 : float or np.ndarray
        Characteristic energy |v_inf|^2 (m^2/s^2).
    periapsis_radius : float
        Periapsis radius of the parking/capture orbit (m).
    circularize : bool
        True: start from (or end in) a circular orbit at periapsis.
        False: only the periapsis is targeted.

    Returns
    -------
    float or np.ndarray
        Delta-V (m/s).
    """
    with np.errstate(invalid='ignore'):
        pe_vel_sq = 2.0 * mu / periapsis_radius + c3 - 2.0 * mu / soi
        if circularize:
            v_start = np.sqrt(mu / periapsis_radius)
        else:
            v_start = np.sqrt(2.0 * mu / periapsis_radius)
        dv = np.sqrt(pe_vel_sq) - v_start
        return np.where(dv > 0.0, dv, np.nan)[()]


def leg_delta_v(endpoint, c3, periapsis_radius, circularize=True):
    """Delta-V for one leg, dispatched on the endpoint type."""
    if isinstance(endpoint, GravitatingBody):
        return delta_v_from_c3(
            endpoint.gravitational_parameter, endpoint.sphere_of_influence,
            c3, periapsis_radius, circularize,
        )
    if isinstance(endpoint, FreeBody):
        return np.sqrt(c3)
    raise TypeError(
        f"Expected GravitatingBody or FreeBody, got {type(endpoint).__name__}"
    )


# =============================================================================
# ASYMPTOTE AND PARKING ORBIT
# =============================================================================

def asymptote_ra_decl(v_inf: np.ndarray) -> Tuple[float, float]:
    """
    Right ascension and declination (rad) of an excess-velocity vector.

    A zero vector has no direction and maps to (0, 0), as arctan2(0, 0) does.
    """
    v = np.asarray(v_inf, dtype=np.float64)
    speed = np.linalg.norm(v)
    if speed == 0.0:
        return 0.0, 0.0
    ra = np.arctan2(v[1], v[0])
    decl = np.arcsin(np.clip(v[2] / speed, -1.0, 1.0))
    return float(ra), float(decl)


def inclination_and_lan_for_asymptote(
    min_inclination: float, declination: float, right_ascension: float,
) -> Tuple[float, float]:
    """
    Parking orbit (inclination, LAN) whose plane contains the asymptote.

    If the asymptote is closer to the equator than ``min_inclination`` the
    inclination is held at the floor and the node is moved so the plane
    still passes through the asymptote:

        sin(RA - LAN) = tan(decl) / tan(i_min)

    Otherwise the inclination equals |decl| and the asymptote sits at the
    top (or bottom) of the orbit, 90 deg from the node.

    Returns
    -------
    (inclination, lan) with lan in [0, 2*pi).
    """
    if abs(declination) < min_inclination:
        inclination = min_inclination
        lan = right_ascension - np.arcsin(np.tan(declination) / np.tan(min_inclination))
    else:
        inclination = abs(declination)
        lan = right_ascension - HALF_PI * np.sign(declination)
    return float(inclination), float(np.remainder(lan, TWO_PI))


def plane_normal(inclination: float, lan: float) -> np.ndarray:
    """Unit angular-momentum direction of an orbit with the given i and LAN."""
    si = np.sin(inclination)
    return np.array([si * np.sin(lan), -si * np.cos(lan), np.cos(inclination)])


def true_anomaly_at_infinity(mu: float, c3: float, periapsis_radius: float) -> float:
    """
    Asymptotic true anomaly of the hyperbola with the given C3 and
    periapsis:  e = 1 + rp*C3/mu,  cos(nu_inf) = -1/e.

    Raises
    ------
    NumericDegeneracyError
        If the trajectory is not an open hyperbola.
    """
    e = 1.0 + periapsis_radius * c3 / mu
    if not e > 1.0:
        raise NumericDegeneracyError(
            f"Eccentricity {e:.6g} is not hyperbolic; true anomaly at infinity undefined"
        )
    return float(np.arccos(-1.0 / e))


# =============================================================================
# PERIAPSIS DIRECTION
# =============================================================================

def _solve_unit_vector(
    a_hat: np.ndarray, normal: np.ndarray, cos_nu: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Both unit vectors v with  v . a_hat = cos_nu  and  v . normal = 0.

    With d = a_hat x normal and k the index of its largest component, the
    two linear equations give the other components in terms of x = v[k]:

        v = (x * d + cos_nu * w) / d[k]

    where w[k] = 0, w[p] = normal[q], w[q] = -normal[p]  (k, p, q cyclic).
    |v| = 1 then leaves a quadratic a*x^2 + b*x + c = 0, solved without
    loss of significance:  q = -(b + sign(b)*sqrt(disc)) / 2,
    x1 = q/a,  x2 = c/q.
    """
    d = np.cross(a_hat, normal)
    k = int(np.argmax(np.abs(d)))
    if abs(d[k]) < _MIN_PLANE_ANGLE:
        raise NumericDegeneracyError(
            "Parking-plane normal is parallel to the asymptote"
        )
    p, q_idx = (k + 1) % 3, (k + 2) % 3

    w = np.zeros(3)
    w[p] = normal[q_idx]
    w[q_idx] = -normal[p]

    g = d / d[k]
    h = cos_nu * w / d[k]

    a = np.dot(g, g)
    b = 2.0 * np.dot(g, h)
    c = np.dot(h, h) - 1.0

    disc = b * b - 4.0 * a * c
    if disc < 0.0:
        if disc < -_DISC_ROUNDOFF * (b * b + abs(4.0 * a * c)):
            raise NumericDegeneracyError(
                f"Asymptote cone does not meet the parking plane (discriminant {disc:.3e})"
            )
        disc = 0.0

    q = -0.5 * (b + np.copysign(np.sqrt(disc), b))
    if q == 0.0:
        # b == 0 and disc == 0: double root at x = 0
        x1 = x2 = 0.0
    else:
        x1 = q / a
        x2 = c / q
    return g * x1 + h, g * x2 + h


def periapsis_direction(
    mu: float, v_inf: np.ndarray, periapsis_radius: float,
    inclination: float, lan: float,
) -> np.ndarray:
    """
    Unit vector from the body centre to the periapsis of the escape
    hyperbola.

    The hyperbola lies in the plane given by (inclination, lan) and has
    the eccentricity implied by C3 = |v_inf|^2 and ``periapsis_radius``.
    Of the two in-plane directions at angle nu_inf from the asymptote,
    the one with (v x a_hat) . n > 0 is prograde about the plane normal n.

    Raises
    ------
    NumericDegeneracyError
        Non-hyperbolic energy, plane normal parallel to the asymptote, or an
        asymptote that does not lie in (or near) the plane.
    """
    v_inf = np.asarray(v_inf, dtype=np.float64)
    speed = np.linalg.norm(v_inf)
    if speed == 0.0:
        raise NumericDegeneracyError("Zero excess velocity has no asymptote")
    a_hat = v_inf / speed
    cos_nu = np.cos(true_anomaly_at_infinity(mu, speed * speed, periapsis_radius))
    normal = plane_normal(inclination, lan)

    v1, v2 = _solve_unit_vector(a_hat, normal, cos_nu)
    if np.dot(np.cross(v1, a_hat), normal) > 0.0:
        chosen = v1
    else:
        chosen = v2
    return chosen / np.linalg.norm(chosen)
