"""
===============================================================================
PORKCHOP PLANNER - Orbital Mechanics Test Suite
===============================================================================
Kepler's equation (elliptic and hyperbolic), Keplerian-Cartesian round trip,
propagation of KeplerianOrbit, Hohmann transfer, synodic period.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import pytest
from numpy.testing import assert_allclose

from core.constants import (
    EARTH_MU, EARTH_RADIUS, EARTH_SMA, MARS_SMA, SECONDS_PER_DAY, SUN_MU,
)
from dynamics.orbital_mechanics import KeplerianOrbit, OrbitalMechanics


# =============================================================================
# Test: Kepler's equation
# =============================================================================

class TestKeplerEquation:

    @pytest.mark.parametrize("e", [0.0, 0.1, 0.5, 0.9, 0.99])
    @pytest.mark.parametrize("M", [-3.0, -1.0, 0.0, 0.3, 2.5])
    def test_elliptic_residual(self, e, M):
        E = OrbitalMechanics.eccentric_anomaly(M, e)
        assert_allclose(E - e * np.sin(E), M, atol=1e-11)

    @pytest.mark.parametrize("e", [1.05, 1.5, 3.0])
    @pytest.mark.parametrize("M", [-20.0, -0.5, 0.0, 0.5, 20.0])
    def test_hyperbolic_residual(self, e, M):
        H = OrbitalMechanics.hyperbolic_anomaly(M, e)
        assert_allclose(e * np.sinh(H) - H, M, atol=1e-9)

    @pytest.mark.parametrize("e", [0.2, 0.7, 1.3, 2.0])
    def test_true_mean_inverse(self, e):
        """mean -> true -> mean recovers the mean anomaly."""
        for M in (-1.2, -0.1, 0.4, 1.1):
            nu = OrbitalMechanics.true_anomaly_from_mean(M, e)
            assert_allclose(OrbitalMechanics.mean_anomaly_from_true(nu, e), M, atol=1e-10)

    def test_parabolic_rejected(self):
        with pytest.raises(ValueError):
            OrbitalMechanics.true_anomaly_from_mean(0.5, 1.0)


# =============================================================================
# Test: Keplerian-Cartesian round-trip
# =============================================================================

class TestKeplerianCartesianRoundTrip:

    def test_keplerian_cartesian_roundtrip(self):
        """Convert Keplerian -> Cartesian -> Keplerian and check values match."""
        a_orig = EARTH_RADIUS + 500e3
        e_orig = 0.01
        i_orig = np.radians(51.6)
        raan_orig = np.radians(30.0)
        omega_orig = np.radians(45.0)
        nu_orig = np.radians(60.0)

        r, v = OrbitalMechanics.keplerian_to_cartesian(
            a_orig, e_orig, i_orig, raan_orig, omega_orig, nu_orig, EARTH_MU)
        a, e, inc, raan, omega, nu = OrbitalMechanics.cartesian_to_keplerian(r, v, EARTH_MU)

        assert_allclose(a, a_orig, rtol=1e-10)
        assert_allclose(e, e_orig, atol=1e-12)
        assert_allclose(inc, i_orig, atol=1e-12)
        assert_allclose(raan, raan_orig, atol=1e-10)
        assert_allclose(omega, omega_orig, atol=1e-9)
        assert_allclose(nu, nu_orig, atol=1e-9)

    def test_hyperbolic_roundtrip(self):
        a_orig = -2.0e7
        e_orig = 1.4
        r, v = OrbitalMechanics.keplerian_to_cartesian(
            a_orig, e_orig, np.radians(20.0), np.radians(10.0),
            np.radians(80.0), np.radians(30.0), EARTH_MU)
        a, e, *_ = OrbitalMechanics.cartesian_to_keplerian(r, v, EARTH_MU)
        assert_allclose(a, a_orig, rtol=1e-9)
        assert_allclose(e, e_orig, rtol=1e-9)

    @pytest.mark.parametrize("inc", [0.0, np.pi])
    def test_equatorial_state_reproduced(self, inc):
        """Prograde and retrograde equatorial orbits keep their periapsis."""
        r, v = OrbitalMechanics.keplerian_to_cartesian(
            9.0e6, 0.2, inc, 0.0, np.radians(70.0), np.radians(200.0), EARTH_MU)
        elements = OrbitalMechanics.cartesian_to_keplerian(r, v, EARTH_MU)
        assert elements[3] == 0.0
        r2, v2 = OrbitalMechanics.keplerian_to_cartesian(*elements, EARTH_MU)
        assert_allclose(r2, r, rtol=1e-10, atol=1e-4)
        assert_allclose(v2, v, rtol=1e-10, atol=1e-7)

    def test_circular_orbit_has_zero_omega(self):
        speed = np.sqrt(EARTH_MU / 7.0e6)
        r = np.array([0.0, 7.0e6, 0.0])
        v = np.array([-speed * np.cos(0.4), 0.0, speed * np.sin(0.4)])
        a, e, inc, raan, omega, nu = OrbitalMechanics.cartesian_to_keplerian(r, v, EARTH_MU)
        assert e < 1e-10
        assert omega == 0.0
        assert_allclose(inc, 0.4, atol=1e-12)
        assert_allclose(raan, np.pi / 2, atol=1e-12)
        assert_allclose(nu, 0.0, atol=1e-12)

    def test_rectilinear_state_rejected(self):
        with pytest.raises(ValueError):
            OrbitalMechanics.cartesian_to_keplerian([7.0e6, 0, 0], [1000.0, 0, 0], EARTH_MU)


# =============================================================================
# Test: KeplerianOrbit propagation
# =============================================================================

class TestKeplerianOrbit:

    def test_circular_speed_and_radius(self):
        orbit = KeplerianOrbit(reference_mu=EARTH_MU, semi_major_axis=7.0e6)
        for t in np.linspace(0.0, orbit.period, 7):
            r, v = orbit.state_vectors_at(t)
            assert_allclose(np.linalg.norm(r), 7.0e6, rtol=1e-12)
            assert_allclose(np.linalg.norm(v), np.sqrt(EARTH_MU / 7.0e6), rtol=1e-12)

    def test_returns_after_one_period(self):
        orbit = KeplerianOrbit(
            reference_mu=SUN_MU, semi_major_axis=MARS_SMA, eccentricity=0.3,
            inclination=0.2, lan=1.0, argument_of_periapsis=2.0,
            mean_anomaly_at_epoch=0.7, epoch=1.0e6,
        )
        r0, v0 = orbit.state_vectors_at(5.0e6)
        r1, v1 = orbit.state_vectors_at(5.0e6 + orbit.period)
        assert_allclose(r1, r0, rtol=1e-9, atol=1.0)
        assert_allclose(v1, v0, rtol=1e-9, atol=1e-6)

    def test_energy_conserved_on_hyperbola(self):
        orbit = KeplerianOrbit(reference_mu=EARTH_MU, semi_major_axis=-3.0e7,
                               eccentricity=1.2, inclination=0.4)
        expected = -EARTH_MU / (2.0 * orbit.semi_major_axis)
        for t in (-5.0e4, 0.0, 2.0e4, 1.0e5):
            r, v = orbit.state_vectors_at(t)
            energy = 0.5 * np.dot(v, v) - EARTH_MU / np.linalg.norm(r)
            assert_allclose(energy, expected, rtol=1e-9)
        assert orbit.period == np.inf

    def test_mu_override_scales_velocity_at_epoch(self):
        orbit = KeplerianOrbit(reference_mu=SUN_MU, semi_major_axis=EARTH_SMA,
                               eccentricity=0.0167, mean_anomaly_at_epoch=1.0)
        r1, v1 = orbit.state_vectors_at(0.0)
        r2, v2 = orbit.state_vectors_at(0.0, mu=2.0 * SUN_MU)
        assert_allclose(r2, r1, rtol=1e-12)
        assert_allclose(v2, v1 * np.sqrt(2.0), rtol=1e-12)

    def test_from_state_vectors_reproduces_trajectory(self):
        orbit = KeplerianOrbit(
            reference_mu=EARTH_MU, semi_major_axis=1.2e7, eccentricity=0.25,
            inclination=0.9, lan=0.3, argument_of_periapsis=1.7,
        )
        r, v = orbit.state_vectors_at(3600.0)
        copy = KeplerianOrbit.from_state_vectors(r, v, 3600.0, EARTH_MU)
        for t in (3600.0, 7200.0, 20000.0):
            assert_allclose(copy.state_vectors_at(t)[0], orbit.state_vectors_at(t)[0],
                            rtol=1e-8, atol=1e-2)

    @pytest.mark.parametrize("a, e", [(7e6, 1.0), (-7e6, 0.5), (7e6, 1.5), (7e6, -0.1)])
    def test_invalid_elements(self, a, e):
        with pytest.raises(ValueError):
            KeplerianOrbit(reference_mu=EARTH_MU, semi_major_axis=a, eccentricity=e)


# =============================================================================
# Test: Transfer estimates
# =============================================================================

class TestTransferEstimates:

    def test_hohmann_leo_geo(self):
        """Hohmann transfer from LEO to GEO: ~2.46 + ~1.48 km/s."""
        dv1, dv2, tof = OrbitalMechanics.hohmann_transfer(
            EARTH_RADIUS + 200e3, 42164e3, EARTH_MU)
        assert 2300.0 < dv1 < 2600.0
        assert 1400.0 < dv2 < 1600.0
        assert 5.0 * 3600.0 < tof < 5.5 * 3600.0

    def test_hohmann_time_is_half_transfer_period(self):
        a1, a2 = 6.6e6, 2.3e7
        t = OrbitalMechanics.hohmann_time(EARTH_MU, a1, a2)
        assert_allclose(t, 0.5 * OrbitalMechanics.orbital_period(0.5 * (a1 + a2), EARTH_MU))

    def test_earth_mars_synodic_period(self):
        p_earth = OrbitalMechanics.orbital_period(EARTH_SMA, SUN_MU)
        p_mars = OrbitalMechanics.orbital_period(MARS_SMA, SUN_MU)
        syn = OrbitalMechanics.synodic_period(p_earth, p_mars)
        assert 775.0 < syn / SECONDS_PER_DAY < 785.0
        assert OrbitalMechanics.synodic_period(p_mars, p_earth) == syn

    def test_equal_periods_never_realign(self):
        assert OrbitalMechanics.synodic_period(100.0, 100.0) == np.inf

    def test_orbital_period_rejects_open_orbit(self):
        with pytest.raises(ValueError):
            OrbitalMechanics.orbital_period(-1.0e7, EARTH_MU)

    def test_sphere_of_influence_earth(self):
        """Laplace SOI of Earth is about 0.93 million km."""
        r_soi = OrbitalMechanics.sphere_of_influence(EARTH_SMA, EARTH_MU, SUN_MU)
        assert 9.0e8 < r_soi < 9.4e8

