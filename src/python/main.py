#!/usr/bin/env python3
"""
===============================================================================
PORKCHOP PLANNER - MAIN ENTRY POINT
===============================================================================
Computes a porkchop grid for the transfer described in a YAML scenario,
then reports the three grid minima and the burn details of the cheapest
transfer.

USAGE:
    python main.py                                  # default scenario
    python main.py --config config/porkchop_config.yaml
    python main.py --resolution 50                  # coarser grid
    python main.py --log-level DEBUG                # per-row progress

If the scenario has no ``window`` section, a departure window and
time-of-flight band are derived from the synodic period and the Hohmann
transfer time of the two endpoints.

DEPENDENCIES:
    numpy, scipy, pyyaml
    Install: pip install numpy scipy pyyaml

===============================================================================
"""

import sys
import argparse
import time
import logging
from pathlib import Path

import numpy as np
import yaml

# ---------------------------------------------------------------------------
# Path setup: ensure all project modules are importable
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from core.constants import (
    DEG2RAD, SECONDS_PER_DAY, get_body_mu, get_body_radius, get_body_soi, has_body,
)
from dynamics.endpoints import FreeBody, GravitatingBody, KeplerianEphemeris
from dynamics.orbital_mechanics import KeplerianOrbit, OrbitalMechanics
from guidance.window import suggest_window
from performance.background_solver import PorkchopSolver

logger = logging.getLogger('PORKCHOP_MAIN')

# Seconds between progress polls of the background solver
POLL_INTERVAL = 0.25


def load_config(config_path: str = None) -> dict:
    """
    Load a transfer scenario from YAML.

    Args:
        config_path: Path to YAML config. Defaults to config/porkchop_config.yaml

    Returns:
        Dictionary of scenario parameters
    """
    if config_path is None:
        config_path = str(PROJECT_ROOT.parent.parent / 'config' / 'porkchop_config.yaml')

    logger.info(f"Loading scenario from: {config_path}")
    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)
    logger.info(f"Scenario: {config['scenario']['name']}")
    return config


def build_orbit(orbit_cfg: dict, reference_mu: float) -> KeplerianOrbit:
    """
    Orbit from the scenario: Keplerian elements (angles in degrees), or a
    ``state_vector`` with ``position`` (m), ``velocity`` (m/s) and ``epoch``
    (s) that is converted to its osculating elements.
    """
    state = orbit_cfg.get('state_vector')
    if state is not None:
        return KeplerianOrbit.from_state_vectors(
            np.array(state['position'], dtype=np.float64),
            np.array(state['velocity'], dtype=np.float64),
            float(state.get('epoch', 0.0)),
            reference_mu,
        )
    return KeplerianOrbit(
        reference_mu=reference_mu,
        semi_major_axis=float(orbit_cfg['semi_major_axis']),
        eccentricity=float(orbit_cfg.get('eccentricity', 0.0)),
        inclination=float(orbit_cfg.get('inclination_deg', 0.0)) * DEG2RAD,
        lan=float(orbit_cfg.get('lan_deg', 0.0)) * DEG2RAD,
        argument_of_periapsis=float(orbit_cfg.get('argument_of_periapsis_deg', 0.0)) * DEG2RAD,
        mean_anomaly_at_epoch=float(orbit_cfg.get('mean_anomaly_deg', 0.0)) * DEG2RAD,
        epoch=float(orbit_cfg.get('epoch', 0.0)),
    )


def build_endpoint(endpoint_cfg: dict, reference_mu: float):
    """
    Build a GravitatingBody or FreeBody.

    A ``body`` key looks mu, radius and SOI up in the constants table;
    explicit ``gravitational_parameter`` / ``radius`` / ``sphere_of_influence``
    keys override it.  A body missing from the table needs explicit mu and
    radius; its SOI defaults to the Laplace radius of its orbit.  Entries of
    ``type: vessel`` become free bodies.
    """
    name = endpoint_cfg['name']
    orbit = build_orbit(endpoint_cfg['orbit'], reference_mu)
    kind = endpoint_cfg.get('type', 'body')
    if kind == 'vessel':
        return FreeBody(name=name, orbit=orbit)
    if kind != 'body':
        raise ValueError(f"{name}: unknown endpoint type '{kind}'")

    body = endpoint_cfg.get('body', name)
    if 'gravitational_parameter' in endpoint_cfg:
        mu = float(endpoint_cfg['gravitational_parameter'])
    else:
        mu = get_body_mu(body)
    radius = float(endpoint_cfg['radius']) if 'radius' in endpoint_cfg else get_body_radius(body)

    if 'sphere_of_influence' in endpoint_cfg:
        soi = float(endpoint_cfg['sphere_of_influence'])
    elif has_body(body):
        soi = get_body_soi(body)
    else:
        soi = OrbitalMechanics.sphere_of_influence(orbit.semi_major_axis, mu, reference_mu)
        logger.info(f"{name}: sphere of influence computed as {soi / 1e3:.0f} km")

    return GravitatingBody(
        name=name,
        gravitational_parameter=mu,
        radius=radius,
        sphere_of_influence=soi,
        orbit=orbit,
    )


def resolve_window(config: dict, origin, destination) -> tuple:
    """Departure window and TOF band in seconds, suggested when absent."""
    start_time = float(config['scenario'].get('start_time', 0.0))
    window = config.get('window')
    if not window:
        window = suggest_window(origin, destination, start_time)
        logger.info("No window in scenario, using suggested window")
        return window
    return (
        start_time + float(window['earliest_departure_days']) * SECONDS_PER_DAY,
        start_time + float(window['latest_departure_days']) * SECONDS_PER_DAY,
        float(window['min_tof_days']) * SECONDS_PER_DAY,
        float(window['max_tof_days']) * SECONDS_PER_DAY,
    )


def run_scenario(config: dict, resolution: int = None) -> int:
    """Run one porkchop solve and log the results. Returns an exit code."""
    scenario = config['scenario']
    reference_mu = get_body_mu(scenario['primary'])
    origin = build_endpoint(config['origin'], reference_mu)
    destination = build_endpoint(config['destination'], reference_mu)
    earliest, latest, min_tof, max_tof = resolve_window(config, origin, destination)

    n = resolution if resolution is not None else int(scenario.get('resolution', 100))
    solver = PorkchopSolver(
        n, n, ephemeris=KeplerianEphemeris(bool(scenario.get('include_body_mu', False))))

    departure = config.get('departure', {})
    arrival = config.get('arrival', {})
    logger.info(
        "Departure window %.1f..%.1f d, TOF %.1f..%.1f d",
        earliest / SECONDS_PER_DAY, latest / SECONDS_PER_DAY,
        min_tof / SECONDS_PER_DAY, max_tof / SECONDS_PER_DAY,
    )
    solver.generate_porkchop(
        origin, destination, earliest, latest, min_tof, max_tof,
        float(departure.get('altitude_km', 0.0)) * 1e3,
        float(departure.get('min_inclination_deg', 0.0)) * DEG2RAD,
        float(arrival.get('altitude_km', 0.0)) * 1e3,
        bool(arrival.get('circularize', True)),
    )

    t_start = time.time()
    while solver.is_running():
        time.sleep(POLL_INTERVAL)
    logger.info(f"Solver finished after {time.time() - t_start:.1f} s")

    result = solver.collect()
    departures, tofs = result.departure_times, result.times_of_flight
    logger.info(
        "Grid %dx%d: departures %.1f..%.1f d, TOF %.1f..%.1f d, %d feasible cells",
        departures.size, tofs.size,
        departures[0] / SECONDS_PER_DAY, departures[-1] / SECONDS_PER_DAY,
        tofs[0] / SECONDS_PER_DAY, tofs[-1] / SECONDS_PER_DAY,
        int(np.count_nonzero(np.isfinite(result.total_dv))),
    )
    for label, minimum in (("departure", result.min_departure),
                           ("arrival", result.min_arrival),
                           ("total", result.min_total)):
        if minimum.is_valid:
            t_dep, t_arr = result.times_for(*minimum.point)
            logger.info(
                f"Minimum {label} dV: {minimum.value:.1f} m/s at cell {minimum.point} "
                f"(depart {t_dep / SECONDS_PER_DAY:.2f} d, arrive {t_arr / SECONDS_PER_DAY:.2f} d)"
            )
        else:
            logger.warning(f"No feasible transfer for the {label} leg in this window")

    if not result.min_total.is_valid:
        return 1

    details = solver.calculate_details(*result.times_for(*result.min_total.point))
    print(details.description())
    return 0 if details.is_valid else 1


def main():
    """
    Main entry point. Parses command line arguments and runs the scenario.
    """
    parser = argparse.ArgumentParser(
        description='Porkchop transfer planner',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                               Default scenario
  python main.py --config my_scenario.yaml     Custom scenario
  python main.py --resolution 50               50x50 grid
        """
    )
    parser.add_argument('--config', type=str, default=None,
                        help='Path to scenario YAML')
    parser.add_argument('--resolution', type=int, default=None,
                        help='Grid points per axis (overrides the scenario)')
    parser.add_argument('--log-level', type=str, default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level (default: INFO)')

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    config = load_config(args.config)
    sys.exit(run_scenario(config, args.resolution))


if __name__ == '__main__':
    main()
