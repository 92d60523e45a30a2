DAY = 86_400.0
JULIAN_CENTURY_DAYS = 36_525.0
AU = 1.495978707e8                  # km

# barycentres where de440 carries no planet centre
NAIF_ID = {
    "Sun":     10,
    "Mercury": 199,
    "Venus":   299,
    "Earth":   399,
    "Mars":    4,
    "Jupiter": 5,
    "Saturn":  6,
    "Uranus":  7,
    "Neptune": 8,
}

MU = {
    "Sun":     1.32712440018e11,    # km^3/s^2
    "Mercury": 2.2032e4,
    "Venus":   3.2486e5,
    "Earth":   3.986004418e5,
    "Mars":    4.2828314258e4,
    "Jupiter": 1.26686534e8,
    "Saturn":  3.7931187e7,
    "Uranus":  5.794548e6,
    "Neptune": 6.836527e6
}

R_BODY = {
  "Mercury": 2439.7,
  "Venus":   6051.8,
  "Earth":   6378.1,
  "Mars":    3396.2,
  "Jupiter": 71492,
  "Saturn":  60268,
  "Uranus":  25559,
  "Neptune": 24764
}

A_ORBIT = {
  "Mercury": 0.387098 * AU,
  "Venus":   0.723332 * AU,
  "Earth":   1.000000 * AU,
  "Mars":    1.523679 * AU,
  "Jupiter": 5.20440  * AU,
  "Saturn":  9.5826   * AU,
  "Uranus": 19.2184   * AU,
  "Neptune":30.11     * AU
}

# 200 km altitude over the terrestrial planets, cloud tops plus margin for the giants
MIN_PERICENTER_RADIUS = {
    **{body: R_BODY[body] + 200.0 for body in ("Mercury", "Venus", "Earth", "Mars")},
    "Jupiter": 72000.0,
    "Saturn":  61000.0,
    "Uranus":  26000.0,
    "Neptune": 25000.0
}


def default_minimum_pericenter_radii(body_order):
    """Minimum flyby pericentre radius [km] for every body of a transfer."""
    try:
        return [MIN_PERICENTER_RADIUS[body] for body in body_order]
    except KeyError as err:
        raise ValueError(f"no default minimum pericenter radius for {err.args[0]!r}") from None


def sphere_of_influence(body: str, central_body: str = "Sun", distance: float = None) -> float:
    """
    Laplace sphere of influence radius [km] at the given distance [km]
    from the central body; the mean orbit radius when distance is None.
    """
    distance = A_ORBIT[body] if distance is None else distance
    return distance * (MU[body] / MU[central_body])**(2.0/5.0)
