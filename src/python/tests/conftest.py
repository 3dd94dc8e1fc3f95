"""
Shared fixtures: endpoints on simple orbits.
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import pytest

from core.constants import (
    DEG2RAD, EARTH_ECCENTRICITY, EARTH_MU, EARTH_RADIUS, EARTH_SMA, EARTH_SOI_RADIUS,
    MARS_ECCENTRICITY, MARS_INCLINATION, MARS_MU, MARS_RADIUS, MARS_SMA, MARS_SOI_RADIUS,
    SUN_MU,
)
from dynamics.endpoints import FreeBody, GravitatingBody
from dynamics.orbital_mechanics import KeplerianOrbit


def circular_free_body(name, radius, mu=EARTH_MU, mean_anomaly=0.0):
    """Vessel on a circular equatorial orbit."""
    return FreeBody(
        name=name,
        orbit=KeplerianOrbit(reference_mu=mu, semi_major_axis=radius,
                             mean_anomaly_at_epoch=mean_anomaly),
    )


@pytest.fixture
def earth():
    return GravitatingBody(
        name="Earth",
        gravitational_parameter=EARTH_MU,
        radius=EARTH_RADIUS,
        sphere_of_influence=EARTH_SOI_RADIUS,
        orbit=KeplerianOrbit(
            reference_mu=SUN_MU,
            semi_major_axis=EARTH_SMA,
            eccentricity=EARTH_ECCENTRICITY,
            argument_of_periapsis=102.93768 * DEG2RAD,
            mean_anomaly_at_epoch=357.51716 * DEG2RAD,
        ),
    )


@pytest.fixture
def mars():
    return GravitatingBody(
        name="Mars",
        gravitational_parameter=MARS_MU,
        radius=MARS_RADIUS,
        sphere_of_influence=MARS_SOI_RADIUS,
        orbit=KeplerianOrbit(
            reference_mu=SUN_MU,
            semi_major_axis=MARS_SMA,
            eccentricity=MARS_ECCENTRICITY,
            inclination=MARS_INCLINATION,
            lan=49.55954 * DEG2RAD,
            argument_of_periapsis=286.49683 * DEG2RAD,
            mean_anomaly_at_epoch=19.39020 * DEG2RAD,
        ),
    )


@pytest.fixture
def leo_vessel():
    return circular_free_body("LEO vessel", 6.6e6)


@pytest.fixture
def high_vessel():
    return circular_free_body("High vessel", 2.3e7, mean_anomaly=np.pi / 2)
