"""Satellite clock correction and orbit propagation from broadcast ephemeris."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from pseudolite_nav.models import GpsEphemeris
from pseudolite_nav.utils.gps_time import SECONDS_IN_WEEK

LIGHT_SPEED_MPS = 299_792_458.0
MU_GPS = 3.986005e14
OMEGA_EARTH = 7.2921151467e-5
RELATIVISTIC_F = -4.442807633e-10

_CLOCK_TOLERANCE_S = 1.0e-8
_KEPLER_TOLERANCE_RAD = 1.0e-12
_MAX_ITERATIONS = 100


@dataclass(frozen=True)
class SatClockCorrection:
    """Satellite clock correction and the orbit terms it was computed with."""

    correction_s: float
    eccentric_anomaly_rad: float
    tk_s: float

    @property
    def correction_m(self) -> float:
        return self.correction_s * LIGHT_SPEED_MPS


@dataclass(frozen=True)
class SatPositionVelocity:
    """Satellite ECEF position and velocity."""

    pos_ecef_m: np.ndarray
    vel_ecef_mps: np.ndarray


def time_from_epoch_s(tow_s: float, week: int, epoch_tow_s: float, epoch_week: int) -> float:
    """Seconds elapsed from an ephemeris epoch, kept within half a week."""

    dt = (week - epoch_week) * SECONDS_IN_WEEK + (tow_s - epoch_tow_s)
    if dt > SECONDS_IN_WEEK / 2:
        dt -= SECONDS_IN_WEEK
    elif dt < -SECONDS_IN_WEEK / 2:
        dt += SECONDS_IN_WEEK
    return dt


def eccentric_anomaly_rad(mean_anomaly_rad: float, e: float) -> float:
    """Solve Kepler's equation with Newton-Raphson."""

    ek = mean_anomaly_rad
    for _ in range(_MAX_ITERATIONS):
        delta = (ek - e * np.sin(ek) - mean_anomaly_rad) / (1.0 - e * np.cos(ek))
        ek -= delta
        if abs(delta) < _KEPLER_TOLERANCE_RAD:
            break
    return float(ek)


def _corrected_mean_motion(eph: GpsEphemeris) -> float:
    a = eph.sqrt_a**2
    return float(np.sqrt(MU_GPS / a**3) + eph.delta_n)


def satellite_clock_correction(eph: GpsEphemeris, tow_s: float, week: int) -> SatClockCorrection:
    """Iteratively compute the satellite clock correction at a transmit time.

    The polynomial term uses the time from toc; the relativistic term needs the
    eccentric anomaly at the clock-corrected time, so the two are iterated until
    the correction changes by less than 1e-8 s. The group delay TGD is removed
    for L1 users.
    """

    tc = time_from_epoch_s(tow_s, week, eph.toc, eph.week)
    poly_s = eph.af0 + eph.af1 * tc + eph.af2 * tc * tc - eph.tgd
    n = _corrected_mean_motion(eph)
    correction_s = poly_s
    ek = eph.m0
    tk = 0.0
    for _ in range(_MAX_ITERATIONS):
        tk = time_from_epoch_s(tow_s + correction_s, week, eph.toe, eph.week)
        ek = eccentric_anomaly_rad(eph.m0 + n * tk, eph.e)
        relativistic_s = RELATIVISTIC_F * eph.e * eph.sqrt_a * np.sin(ek)
        updated = float(poly_s + relativistic_s)
        change = abs(updated - correction_s)
        correction_s = updated
        if change <= _CLOCK_TOLERANCE_S:
            break
    return SatClockCorrection(correction_s=correction_s, eccentric_anomaly_rad=ek, tk_s=tk)


def satellite_position_velocity(
    eph: GpsEphemeris,
    tow_s: float,
    week: int,
    user_ecef_m: np.ndarray | None = None,
) -> SatPositionVelocity:
    """Compute satellite ECEF position/velocity at a GPS time of transmission.

    When a user position is given the result is rotated by the Earth rotation
    during the signal travel time, i.e. expressed in the ECEF frame at reception.
    """

    clock = satellite_clock_correction(eph, tow_s, week)
    tk = clock.tk_s
    ek = clock.eccentric_anomaly_rad
    e = eph.e
    a = eph.sqrt_a**2
    n = _corrected_mean_motion(eph)

    sin_e = np.sin(ek)
    cos_e = np.cos(ek)
    one_minus = 1.0 - e * cos_e
    nu = np.arctan2(np.sqrt(1.0 - e * e) * sin_e, cos_e - e)
    phi = nu + eph.omega
    sin_2phi = np.sin(2.0 * phi)
    cos_2phi = np.cos(2.0 * phi)

    u = phi + eph.cus * sin_2phi + eph.cuc * cos_2phi
    r = a * one_minus + eph.crs * sin_2phi + eph.crc * cos_2phi
    inc = eph.i0 + eph.i_dot * tk + eph.cis * sin_2phi + eph.cic * cos_2phi

    x_orb = r * np.cos(u)
    y_orb = r * np.sin(u)
    omega_k = eph.omega0 + (eph.omega_dot - OMEGA_EARTH) * tk - OMEGA_EARTH * eph.toe
    sin_om = np.sin(omega_k)
    cos_om = np.cos(omega_k)
    sin_i = np.sin(inc)
    cos_i = np.cos(inc)

    pos = np.array(
        [
            x_orb * cos_om - y_orb * cos_i * sin_om,
            x_orb * sin_om + y_orb * cos_i * cos_om,
            y_orb * sin_i,
        ],
        dtype=float,
    )

    e_dot = n / one_minus
    nu_dot = np.sqrt(1.0 - e * e) * e_dot / one_minus
    u_dot = nu_dot * (1.0 + 2.0 * (eph.cus * cos_2phi - eph.cuc * sin_2phi))
    r_dot = a * e * sin_e * e_dot + 2.0 * nu_dot * (eph.crs * cos_2phi - eph.crc * sin_2phi)
    i_dot = eph.i_dot + 2.0 * nu_dot * (eph.cis * cos_2phi - eph.cic * sin_2phi)
    x_orb_dot = r_dot * np.cos(u) - r * u_dot * np.sin(u)
    y_orb_dot = r_dot * np.sin(u) + r * u_dot * np.cos(u)
    omega_k_dot = eph.omega_dot - OMEGA_EARTH

    vel = np.array(
        [
            x_orb_dot * cos_om - y_orb_dot * cos_i * sin_om + y_orb * sin_i * sin_om * i_dot - pos[1] * omega_k_dot,
            x_orb_dot * sin_om + y_orb_dot * cos_i * cos_om - y_orb * sin_i * cos_om * i_dot + pos[0] * omega_k_dot,
            y_orb_dot * sin_i + y_orb * cos_i * i_dot,
        ],
        dtype=float,
    )

    if user_ecef_m is not None:
        travel_s = float(np.linalg.norm(pos - np.asarray(user_ecef_m, dtype=float)[:3])) / LIGHT_SPEED_MPS
        rot = _earth_rotation(OMEGA_EARTH * travel_s)
        pos = rot @ pos
        vel = rot @ vel
    return SatPositionVelocity(pos_ecef_m=pos, vel_ecef_mps=vel)


def _earth_rotation(angle_rad: float) -> np.ndarray:
    cos_a = np.cos(angle_rad)
    sin_a = np.sin(angle_rad)
    return np.array(
        [
            [cos_a, sin_a, 0.0],
            [-sin_a, cos_a, 0.0],
            [0.0, 0.0, 1.0],
        ],
        dtype=float,
    )
