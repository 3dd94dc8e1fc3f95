"""
===============================================================================
PORKCHOP PLANNER - Search Window Suggestion
===============================================================================
Default departure window and time-of-flight band for a pair of endpoints,
sized from the synodic period and the Hohmann transfer time.

    departure range = 2 * T_syn, clamped to [max(P_origin, 1 day), 2 * P_origin]
    hohmann         = pi * sqrt(((a1 + a2)/2)^3 / mu)
    transfer range  = min(1.5 * hohmann, 2 * P_destination)
    min TOF         = max(0.5 * hohmann, hohmann - P_destination)
    max TOF         = min TOF + transfer range
===============================================================================
"""

import logging
from typing import Tuple

from core.constants import SECONDS_PER_DAY
from dynamics.endpoints import Endpoint, check_endpoint
from dynamics.orbital_mechanics import OrbitalMechanics

logger = logging.getLogger(__name__)

synodic_period = OrbitalMechanics.synodic_period
hohmann_time = OrbitalMechanics.hohmann_time


def _clamp(value: float, lower: float, upper: float) -> float:
    # Lower bound wins when the bounds cross
    if value < lower:
        return lower
    if value > upper:
        return upper
    return value


def suggest_window(
    origin: Endpoint, destination: Endpoint, start_time: float,
) -> Tuple[float, float, float, float]:
    """
    Suggest a search window starting at ``start_time``.

    Both endpoints must be on closed orbits about the same primary.

    Returns
    -------
    (earliest_departure, latest_departure, min_tof, max_tof) in seconds.
    """
    check_endpoint(origin)
    check_endpoint(destination)
    orbit1, orbit2 = origin.orbit, destination.orbit
    if not (orbit1.is_closed and orbit2.is_closed):
        raise ValueError("Window suggestion needs closed orbits for both endpoints")

    p1, p2 = orbit1.period, orbit2.period
    departure_range = _clamp(
        2.0 * synodic_period(p1, p2),
        max(p1, SECONDS_PER_DAY),
        2.0 * p1,
    )

    hohmann = hohmann_time(
        orbit1.reference_mu, orbit1.semi_major_axis, orbit2.semi_major_axis)
    transfer_range = min(1.5 * hohmann, 2.0 * p2)
    min_tof = max(0.5 * hohmann, hohmann - p2)
    max_tof = min_tof + transfer_range

    logger.debug(
        "Suggested window for %s -> %s: departure range %.0f s, TOF %.0f..%.0f s",
        origin.name, destination.name, departure_range, min_tof, max_tof,
    )
    return start_time, start_time + departure_range, min_tof, max_tof
