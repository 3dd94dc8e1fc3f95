"""
===============================================================================
PORKCHOP PLANNER - Transfer Endpoints and Ephemeris
===============================================================================
An endpoint is either

    GravitatingBody -- a planet or moon with its own gravity well, so the
                       transfer cost is an injection/capture burn at a chosen
                       periapsis; or
    FreeBody        -- a vessel or any point mass without a gravity well,
                       where the cost is simply matching velocity.

``Endpoint`` is the union of both. Code that needs to distinguish them uses
an isinstance chain that raises TypeError for anything else.

The ephemeris provider turns (endpoint, time) into state vectors relative to
the endpoint orbit's reference body. ``KeplerianEphemeris`` propagates the
endpoint's fixed elements; callers with a better ephemeris subclass
``EphemerisProvider``.
===============================================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Tuple, Union

import numpy as np

from dynamics.orbital_mechanics import KeplerianOrbit


# =============================================================================
# ENDPOINT TYPES
# =============================================================================

@dataclass(frozen=True)
class GravitatingBody:
    """A celestial body: has mass, a surface and a sphere of influence."""
    name: str
    gravitational_parameter: float
    radius: float
    sphere_of_influence: float
    orbit: KeplerianOrbit

    def __post_init__(self):
        if self.gravitational_parameter <= 0.0:
            raise ValueError(f"{self.name}: gravitational_parameter must be positive")
        if self.radius <= 0.0:
            raise ValueError(f"{self.name}: radius must be positive")
        if not self.sphere_of_influence > 0.0:
            raise ValueError(f"{self.name}: sphere_of_influence must be positive")


@dataclass(frozen=True)
class FreeBody:
    """A vessel (or any massless point) following ``orbit``."""
    name: str
    orbit: KeplerianOrbit


Endpoint = Union[GravitatingBody, FreeBody]


def check_endpoint(endpoint) -> Endpoint:
    """Return ``endpoint`` unchanged, or raise TypeError if it is not one."""
    if isinstance(endpoint, (GravitatingBody, FreeBody)):
        return endpoint
    raise TypeError(
        f"Expected GravitatingBody or FreeBody, got {type(endpoint).__name__}"
    )


# =============================================================================
# EPHEMERIS PROVIDERS
# =============================================================================

class EphemerisProvider(ABC):
    """Source of endpoint state vectors."""

    @abstractmethod
    def state_vectors_at(
        self, endpoint: Endpoint, time: float,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Position (m) and velocity (m/s) of ``endpoint`` at ``time`` (s),
        in an inertial frame centred on its orbit's reference body.
        """


class KeplerianEphemeris(EphemerisProvider):
    """
    Two-body propagation of each endpoint's fixed orbital elements.

    Parameters
    ----------
    include_body_mu : bool
        When True, a gravitating endpoint is propagated with
        mu_ref + mu_body instead of mu_ref.  This is the reduced-mass form of
        the two-body problem and matters for massive moons; free bodies are
        unaffected.
    """

    def __init__(self, include_body_mu: bool = False):
        self.include_body_mu = include_body_mu

    def state_vectors_at(self, endpoint, time):
        endpoint = check_endpoint(endpoint)
        orbit = endpoint.orbit
        mu = orbit.reference_mu
        if self.include_body_mu and isinstance(endpoint, GravitatingBody):
            mu += endpoint.gravitational_parameter
        return orbit.state_vectors_at(time, mu)
