"""
===============================================================================
PORKCHOP PLANNER - Physical and Astronomical Constants
===============================================================================
Central repository for the constants used by the transfer planner. SI units
throughout (meters, seconds, radians, m^3/s^2).

Body values come from IAU 2012 / IERS standards where applicable and are used
by the sample scenarios and the test-suite; the solver itself never looks a
body up by name.
===============================================================================
"""

import numpy as np


# =============================================================================
# MATHEMATICAL CONSTANTS
# =============================================================================
PI = np.pi
TWO_PI = 2.0 * np.pi
HALF_PI = 0.5 * np.pi
DEG2RAD = PI / 180.0
RAD2DEG = 180.0 / PI

# =============================================================================
# TIME
# =============================================================================
SECONDS_PER_HOUR = 3600.0
SECONDS_PER_DAY = 86400.0
SECONDS_PER_YEAR = 365.25 * SECONDS_PER_DAY

# Transfers shorter than this are reported with hour resolution
SHORT_TRANSFER_THRESHOLD = 25.0 * SECONDS_PER_DAY

AU = 1.495978707e11                    # Astronomical Unit in meters

# =============================================================================
# SUN PARAMETERS
# =============================================================================
SUN_MU = 1.32712440018e20             # m^3/s^2
SUN_RADIUS = 6.957e8                  # m

# =============================================================================
# EARTH PARAMETERS
# =============================================================================
EARTH_MU = 3.986004418e14              # Gravitational parameter (m^3/s^2)
EARTH_RADIUS = 6371000.0               # Mean radius (m)
EARTH_SMA = 1.00000261 * AU            # Heliocentric semi-major axis (m)
EARTH_ECCENTRICITY = 0.01671123
EARTH_SOI_RADIUS = 9.24e8              # Sphere of Influence radius (m)

# =============================================================================
# MOON PARAMETERS
# =============================================================================
MOON_MU = 4.9048695e12                 # m^3/s^2
MOON_RADIUS = 1737400.0                # Mean radius (m)
MOON_SMA = 384400000.0                 # Semi-major axis of lunar orbit (m)
MOON_ECCENTRICITY = 0.0549             # Orbital eccentricity
MOON_INCLINATION = 5.145 * DEG2RAD     # Inclination to ecliptic (rad)
MOON_SOI_RADIUS = 6.61e7               # ~66,100 km

# =============================================================================
# MARS PARAMETERS
# =============================================================================
MARS_MU = 4.282837e13                  # m^3/s^2
MARS_RADIUS = 3389500.0                # Mean radius (m)
MARS_SMA = 1.52371034 * AU             # Heliocentric semi-major axis (m)
MARS_ECCENTRICITY = 0.0933941
MARS_INCLINATION = 1.84969142 * DEG2RAD
MARS_SOI_RADIUS = 5.77e8               # ~577,000 km

# =============================================================================
# JUPITER PARAMETERS
# =============================================================================
JUPITER_MU = 1.26686534e17            # m^3/s^2
JUPITER_RADIUS = 69911000.0           # Mean equatorial radius (m)
JUPITER_SMA = 778.57e9                # Semi-major axis from Sun (m)
JUPITER_ECCENTRICITY = 0.0489         # Orbital eccentricity
JUPITER_INCLINATION = 1.303 * DEG2RAD  # Inclination to ecliptic
JUPITER_SOI_RADIUS = 4.82e10          # ~48.2 million km


_BODY_TABLE = {
    'sun': (SUN_MU, SUN_RADIUS, np.inf),
    'earth': (EARTH_MU, EARTH_RADIUS, EARTH_SOI_RADIUS),
    'moon': (MOON_MU, MOON_RADIUS, MOON_SOI_RADIUS),
    'mars': (MARS_MU, MARS_RADIUS, MARS_SOI_RADIUS),
    'jupiter': (JUPITER_MU, JUPITER_RADIUS, JUPITER_SOI_RADIUS),
}


def _lookup(body_name: str) -> tuple:
    key = body_name.lower()
    if key not in _BODY_TABLE:
        raise ValueError(f"Unknown body: {body_name}. Valid: {list(_BODY_TABLE.keys())}")
    return _BODY_TABLE[key]


def get_body_mu(body_name: str) -> float:
    """
    Look up gravitational parameter by body name.

    Args:
        body_name: One of 'sun', 'earth', 'moon', 'mars', 'jupiter'

    Returns:
        Gravitational parameter mu in m^3/s^2

    Raises:
        ValueError: If body_name is not recognized
    """
    return _lookup(body_name)[0]


def get_body_radius(body_name: str) -> float:
    """
    Look up mean radius by body name.

    Args:
        body_name: One of 'sun', 'earth', 'moon', 'mars', 'jupiter'

    Returns:
        Mean radius in meters
    """
    return _lookup(body_name)[1]


def get_body_soi(body_name: str) -> float:
    """Sphere-of-influence radius in meters (infinite for the Sun)."""
    return _lookup(body_name)[2]


def has_body(body_name: str) -> bool:
    """True if the constants table knows ``body_name``."""
    return body_name.lower() in _BODY_TABLE
