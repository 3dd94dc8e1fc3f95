"""
===============================================================================
PORKCHOP PLANNER - Transfer Detail Calculator
===============================================================================
Re-solves a single (departure, arrival) pair at full precision, independent
of the grid, and derives the quantities needed to fly it: parking-orbit
inclination and node, asymptote direction, periapsis burn direction, C3 and
delta-V per leg, and the distance between the two bodies at arrival.
===============================================================================
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from core.constants import RAD2DEG, SECONDS_PER_DAY, SECONDS_PER_HOUR, SHORT_TRANSFER_THRESHOLD
from core.errors import NumericDegeneracyError
from dynamics.endpoints import Endpoint, EphemerisProvider, GravitatingBody
from dynamics.lambert import BoundaryValueSolver
from guidance.escape_geometry import (
    asymptote_ra_decl,
    inclination_and_lan_for_asymptote,
    leg_delta_v,
    periapsis_direction,
)
from guidance.porkchop import PorkchopRequest

logger = logging.getLogger(__name__)


def _format_duration(seconds: float, short: bool) -> str:
    if short:
        return f"{seconds / SECONDS_PER_HOUR:.1f} h"
    return f"{seconds / SECONDS_PER_DAY:.1f} d"


def _si(value: float, unit: str) -> str:
    """Format with a k/M/G prefix, e.g. 1.23 km."""
    for factor, prefix in ((1e9, 'G'), (1e6, 'M'), (1e3, 'k')):
        if abs(value) >= factor:
            return f"{value / factor:.2f} {prefix}{unit}"
    return f"{value:.2f} {unit}"


@dataclass(frozen=True)
class TransferDetails:
    """
    Burn parameters of one transfer.  Invalid transfers carry only the
    endpoints and times; every other number is NaN.
    """
    is_valid: bool
    origin: Optional[Endpoint]
    destination: Optional[Endpoint]
    departure_time: float
    arrival_time: float

    # Departure
    departure_periapsis: float = np.nan
    departure_inclination: float = np.nan
    departure_lan: float = np.nan
    departure_v_inf: Optional[np.ndarray] = None
    departure_pe_direction: Optional[np.ndarray] = None
    departure_asymptote_ra: float = np.nan
    departure_asymptote_decl: float = np.nan
    departure_c3: float = np.nan
    departure_delta_v: float = np.nan

    # Arrival
    arrival_periapsis: float = np.nan
    arrival_distance: float = np.nan
    arrival_v_inf: Optional[np.ndarray] = None
    arrival_asymptote_ra: float = np.nan
    arrival_asymptote_decl: float = np.nan
    arrival_c3: float = np.nan
    arrival_delta_v: float = np.nan

    # Transfer
    time_of_flight: float = np.nan
    total_delta_v: float = np.nan
    degeneracy: Optional[str] = None

    @classmethod
    def invalid(cls, origin, destination, departure_time, arrival_time) -> 'TransferDetails':
        return cls(
            is_valid=False, origin=origin, destination=destination,
            departure_time=departure_time, arrival_time=arrival_time,
            time_of_flight=arrival_time - departure_time,
        )

    @property
    def is_short(self) -> bool:
        """Transfers under 25 days are reported in hours."""
        return self.time_of_flight < SHORT_TRANSFER_THRESHOLD

    def description(self) -> str:
        """Multi-line human-readable summary."""
        if not self.is_valid:
            return "No valid transfer for the selected times"
        short = self.is_short
        lines = [
            f"Transfer: {_format_duration(self.time_of_flight, short)}",
            f"Departure: t = {_format_duration(self.departure_time, short)}",
            f"    Altitude: {_si(self.departure_periapsis, 'm')}",
            f"    Inclination: {self.departure_inclination * RAD2DEG:.2f} deg",
            f"    LAN: {self.departure_lan * RAD2DEG:.2f} deg",
            f"    C3: {self.departure_c3 / 1e6:.2f} km^2/s^2",
            f"    dV: {_si(self.departure_delta_v, 'm/s')}",
            f"Arrival: t = {_format_duration(self.arrival_time, short)}",
            f"    Altitude: {_si(self.arrival_periapsis, 'm')}",
            f"    Distance between bodies: {_si(self.arrival_distance, 'm')}",
            f"    C3: {self.arrival_c3 / 1e6:.2f} km^2/s^2",
            f"    dV: {_si(self.arrival_delta_v, 'm/s')}",
            f"Total dV: {_si(self.total_delta_v, 'm/s')}",
        ]
        if self.degeneracy is not None:
            lines.append(f"Warning: {self.degeneracy}")
        return "\n".join(lines)


class TransferDetailCalculator:
    """
    Computes TransferDetails for arbitrary times using the endpoints and
    constraints of a PorkchopRequest.

    Typical usage:
        calc = TransferDetailCalculator(request, KeplerianEphemeris(),
                                        UniversalVariableLambert())
        details = calc.calculate(*result.times_for(*result.min_total.point))
    """

    def __init__(
        self,
        request: PorkchopRequest,
        ephemeris: EphemerisProvider,
        lambert: BoundaryValueSolver,
    ):
        self.request = request
        self.ephemeris = ephemeris
        self.lambert = lambert

    def calculate(self, t_dep: float, t_arr: float) -> TransferDetails:
        req = self.request
        origin, destination = req.origin, req.destination
        if t_arr <= t_dep:
            return TransferDetails.invalid(origin, destination, t_dep, t_arr)

        dep_pos, dep_body_vel = self.ephemeris.state_vectors_at(origin, t_dep)
        arr_pos, arr_body_vel = self.ephemeris.state_vectors_at(destination, t_arr)
        tof = t_arr - t_dep
        v1, v2 = self.lambert.solve(req.transfer_mu, dep_pos, dep_body_vel, arr_pos, tof, 0)

        dep_v_inf = v1 - dep_body_vel
        arr_v_inf = v2 - arr_body_vel
        dep_c3 = float(np.dot(dep_v_inf, dep_v_inf))
        arr_c3 = float(np.dot(arr_v_inf, arr_v_inf))

        dep_rp = req.departure_periapsis_radius
        arr_rp = req.arrival_periapsis_radius
        dep_dv = float(leg_delta_v(origin, dep_c3, dep_rp, True))
        arr_dv = float(leg_delta_v(destination, arr_c3, arr_rp, req.circularize))
        if not (np.isfinite(dep_dv) and np.isfinite(arr_dv)):
            logger.debug("No feasible transfer for t_dep=%.1f, t_arr=%.1f", t_dep, t_arr)
            return TransferDetails.invalid(origin, destination, t_dep, t_arr)

        origin_pos_at_arrival, _ = self.ephemeris.state_vectors_at(origin, t_arr)
        arr_distance = float(np.linalg.norm(origin_pos_at_arrival - arr_pos))

        dep_ra, dep_decl = asymptote_ra_decl(dep_v_inf)
        arr_ra, arr_decl = asymptote_ra_decl(arr_v_inf)
        dep_inc, dep_lan = inclination_and_lan_for_asymptote(
            req.departure_min_inclination, dep_decl, dep_ra)

        pe_direction = None
        degeneracy = None
        if isinstance(origin, GravitatingBody):
            dep_altitude = dep_rp - origin.radius
            try:
                pe_direction = periapsis_direction(
                    origin.gravitational_parameter, dep_v_inf, dep_rp, dep_inc, dep_lan)
            except NumericDegeneracyError as exc:
                logger.warning(
                    "Periapsis direction undefined for %s departure at t=%.1f: %s",
                    origin.name, t_dep, exc,
                )
                degeneracy = str(exc)
        else:
            dep_altitude = 0.0

        if isinstance(destination, GravitatingBody):
            arr_altitude = arr_rp - destination.radius
        else:
            arr_altitude = 0.0

        return TransferDetails(
            is_valid=True,
            origin=origin,
            destination=destination,
            departure_time=t_dep,
            arrival_time=t_arr,
            departure_periapsis=dep_altitude,
            departure_inclination=dep_inc,
            departure_lan=dep_lan,
            departure_v_inf=dep_v_inf,
            departure_pe_direction=pe_direction,
            departure_asymptote_ra=dep_ra,
            departure_asymptote_decl=dep_decl,
            departure_c3=dep_c3,
            departure_delta_v=dep_dv,
            arrival_periapsis=arr_altitude,
            arrival_distance=arr_distance,
            arrival_v_inf=arr_v_inf,
            arrival_asymptote_ra=arr_ra,
            arrival_asymptote_decl=arr_decl,
            arrival_c3=arr_c3,
            arrival_delta_v=arr_dv,
            time_of_flight=tof,
            total_delta_v=dep_dv + arr_dv,
            degeneracy=degeneracy,
        )
