import logging

import numpy as np
from poliastro.iod import izzo
from scipy.optimize import brentq, newton

import astropy.units as u

logger = logging.getLogger(__name__)


class LambertError(ValueError):
    """The Lambert targeter found no conic for the requested geometry."""


def _safe_lambert(mu, r0, r1, tof):
    try:
        return izzo.lambert(mu, r0, r1, tof)
    except Exception as err:
        logger.debug("[lambert] low path failed (%s), trying high path", err)

    try:
        return izzo.lambert(mu, r0, r1, tof, lowpath=False)
    except Exception as err:
        raise LambertError(f"no Lambert solution for tof={tof}") from err


def lambert_leg(r0, r1, tof, mu):
    """
    Solve the Lambert arc between r0->r1 in time tof under mu
    with Izzo's algorithm from poliastro.

    r0, r1 : array_like, shape (3,)    [km]
    tof     : float                   [s]
    mu      : float                   [km^3/s^2]

    Returns
    -------
    v0, v1  : ndarray, shape (3,)      [km/s]
    """
    if tof <= 0:
        raise ValueError("lambert_leg called with non-pos tof")

    v0, v1 = _safe_lambert(mu * u.km**3 / u.s**2,
                           np.asarray(r0, dtype=float)[:3] * u.km,
                           np.asarray(r1, dtype=float)[:3] * u.km,
                           tof * u.s)

    v0 = v0.to(u.km/u.s).value
    v1 = v1.to(u.km/u.s).value
    if not (np.all(np.isfinite(v0)) and np.all(np.isfinite(v1))):
        raise LambertError(f"non-finite Lambert solution for tof={tof}")
    return v0, v1


def _stumpff_c(z):
    z = np.atleast_1d(np.asarray(z, dtype=float))
    out = np.full_like(z, 0.5)
    pos, neg = z > 1e-12, z < -1e-12
    sp = np.sqrt(z[pos])
    out[pos] = (1.0 - np.cos(sp)) / z[pos]
    sn = np.sqrt(-z[neg])
    out[neg] = (np.cosh(sn) - 1.0) / (-z[neg])
    return out


def _stumpff_s(z):
    z = np.atleast_1d(np.asarray(z, dtype=float))
    out = np.full_like(z, 1.0/6.0)
    pos, neg = z > 1e-12, z < -1e-12
    sp = np.sqrt(z[pos])
    out[pos] = (sp - np.sin(sp)) / sp**3
    sn = np.sqrt(-z[neg])
    out[neg] = (np.sinh(sn) - sn) / sn**3
    return out


def kepler_propagate(r0, v0, dt, mu, rtol=1e-12, maxiter=100):
    """
    Two-body propagation with universal variables (Curtis, alg. 3.4),
    vectorised over dt.

    r0, v0 : array_like, shape (3,)   initial state [km, km/s]
    dt     : float or array_like, shape (n,)   time offsets [s], may be < 0
    mu     : float                              [km^3/s^2]

    Returns
    -------
    states : ndarray, shape (6,) for scalar dt, (n, 6) otherwise
    """
    r0 = np.asarray(r0, dtype=float)
    v0 = np.asarray(v0, dtype=float)
    scalar = np.ndim(dt) == 0
    dt = np.atleast_1d(np.asarray(dt, dtype=float))

    r0n = np.linalg.norm(r0)
    vr0 = np.dot(r0, v0) / r0n
    alpha = 2.0 / r0n - np.dot(v0, v0) / mu
    smu = np.sqrt(mu)

    def F(chi):
        z = alpha * chi**2
        return (r0n * vr0 / smu * chi**2 * _stumpff_c(z)
                + (1.0 - alpha * r0n) * chi**3 * _stumpff_s(z)
                + r0n * chi - smu * dt)

    def dF(chi):
        z = alpha * chi**2
        return (r0n * vr0 / smu * chi * (1.0 - z * _stumpff_s(z))
                + (1.0 - alpha * r0n) * chi**2 * _stumpff_c(z)
                + r0n)

    chi0 = smu * abs(alpha) * dt if abs(alpha) > 1e-14 else smu * dt / r0n
    chi = newton(F, chi0, fprime=dF, tol=rtol * (1.0 + np.max(np.abs(chi0))), maxiter=maxiter)
    chi = np.asarray(chi, dtype=float)

    z = alpha * chi**2
    C, S = _stumpff_c(z), _stumpff_s(z)
    f = 1.0 - chi**2 / r0n * C
    g = dt - chi**3 * S / smu
    r = np.outer(f, r0) + np.outer(g, v0)
    rn = np.linalg.norm(r, axis=1)
    fdot = smu / (rn * r0n) * (z * S - 1.0) * chi
    gdot = 1.0 - chi**2 / rn * C
    v = np.outer(fdot, r0) + np.outer(gdot, v0)

    states = np.hstack((r, v))
    return states[0] if scalar else states


def _solve_for_e_out(a_in, a_out, delta, e_lo):
    """
    Solve the bending equation for the outgoing eccentricity,

      f(e) = (1 + (a_out/a_in)*(e - 1)) * sin( delta - arcsin(1/e) ) - 1,

    bracketed from below by e_lo, the eccentricity at the minimum
    pericentre (f(e_lo) <= 0 whenever delta is reachable there).
    """
    k = a_out / a_in

    def f(e):
        return (1.0 + k*(e - 1.0)) * np.sin(delta - np.arcsin(1.0/e)) - 1.0

    if f(e_lo) >= 0.0:
        return e_lo
    e_hi = 2.0 * e_lo
    while f(e_hi) < 0.0:
        e_hi *= 2.0
        if e_hi > 1e15:
            return np.inf
    return brentq(f, e_lo, e_hi, xtol=1e-12, rtol=1e-14, maxiter=200)


def gravity_assist_delta_v(v_in, v_out, v_planet, mu_p, rp_min):
    """
    Delta-V of a powered gravity assist, applied at pericentre.

    Parameters
    ----------
    v_in, v_out : np.ndarray, km s-1   heliocentric velocity before/after the flyby
    v_planet    : np.ndarray, km s-1   heliocentric planet velocity
    mu_p        : float,      km^3 s-2 planet GM
    rp_min      : float,      km       minimum pericentre radius

    Returns
    -------
    (delta_v, pericenter) : (float, float)
    """
    v_inf_in = np.asarray(v_in)[:3] - np.asarray(v_planet)[:3]
    v_inf_out = np.asarray(v_out)[:3] - np.asarray(v_planet)[:3]

    vin2 = np.dot(v_inf_in, v_inf_in)
    vout2 = np.dot(v_inf_out, v_inf_out)
    vin, vout = np.sqrt(vin2), np.sqrt(vout2)
    if vin == 0.0 or vout == 0.0:
        raise ValueError("gravity assist needs non-zero excess velocities")

    a_in = -mu_p / vin2
    a_out = -mu_p / vout2

    # turn angle (δ) against the largest turn reachable at rp_min
    cos_delta = np.clip(np.dot(v_inf_in, v_inf_out) / (vin * vout), -1.0, 1.0)
    delta = np.arccos(cos_delta)
    e_in_min = 1.0 + rp_min * vin2 / mu_p
    e_out_min = 1.0 + rp_min * vout2 / mu_p
    delta_max = np.arcsin(1.0/e_in_min) + np.arcsin(1.0/e_out_min)

    bending_dv = 0.0
    if delta >= delta_max:
        rp = rp_min
        bending_dv = 2.0 * min(vin, vout) * np.sin((delta - delta_max) / 2.0)
    elif delta < 1e-12:
        rp = np.inf
    else:
        e_out = _solve_for_e_out(a_in, a_out, delta, e_out_min)
        rp = -a_out * (e_out - 1.0)

    if np.isfinite(rp):
        velocity_dv = abs(np.sqrt(vout2 + 2.0*mu_p/rp) - np.sqrt(vin2 + 2.0*mu_p/rp))
    else:
        velocity_dv = abs(vout - vin)
    return velocity_dv + bending_dv, rp


def escape_delta_v(mu_p, sma, ecc, v_inf):
    """Impulse at pericentre of a bound orbit (sma, ecc) to leave with excess speed v_inf."""
    rp = sma * (1.0 - ecc)
    return np.sqrt(2.0*mu_p/rp + v_inf**2) - np.sqrt(mu_p*(1.0 + ecc)/rp)


def capture_delta_v(mu_p, sma, ecc, v_inf):
    """Impulse at pericentre to capture into (sma, ecc) from excess speed v_inf."""
    return escape_delta_v(mu_p, sma, ecc, v_inf)
