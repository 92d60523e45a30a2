import pytest

from mga_prop.constants import (A_ORBIT, AU, MIN_PERICENTER_RADIUS, MU, R_BODY,
                                default_minimum_pericenter_radii,
                                sphere_of_influence)


def test_default_minimum_pericenter_radii():
    radii = default_minimum_pericenter_radii(["Earth", "Venus", "Venus", "Earth", "Jupiter"])
    assert radii == pytest.approx([6578.1, 6251.8, 6251.8, 6578.1, 72000.0])


def test_default_minimum_pericenter_radii_unknown_body():
    with pytest.raises(ValueError, match="Pluto"):
        default_minimum_pericenter_radii(["Earth", "Pluto"])


def test_sphere_of_influence():
    """Earth's SOI is the textbook ~925,000 km, Jupiter's ~48 million km."""
    assert sphere_of_influence("Earth") == pytest.approx(9.25e5, rel=0.01)
    assert sphere_of_influence("Jupiter") == pytest.approx(4.82e7, rel=0.01)
    assert sphere_of_influence("Earth") == pytest.approx(A_ORBIT["Earth"] * (MU["Earth"] / MU["Sun"])**0.4)
    assert A_ORBIT["Earth"] == AU


def test_minimum_pericenter_above_surface():
    for body, rp_min in MIN_PERICENTER_RADIUS.items():
        assert R_BODY[body] < rp_min < 1.1 * R_BODY[body]


def test_sphere_of_influence_at_distance():
    ratio = (MU["Venus"] / MU["Sun"])**0.4
    assert sphere_of_influence("Venus", "Sun", 1.08e8) == pytest.approx(1.08e8 * ratio)
    assert sphere_of_influence("Venus", "Sun", 2 * A_ORBIT["Venus"]) == pytest.approx(
        2 * sphere_of_influence("Venus"))
