from __future__ import annotations

import math

import pytest

from binocularlab.core.optics import (
    DEFAULT_EYE_FOV_DEG,
    MIN_TARGET_DISTANCE_M,
    derive_geometry,
    field_of_view_deg,
    geometry_for,
    screen_disparity_deg,
)
from binocularlab.params import OpticalParameters


def test_standard_human_configuration():
    g = derive_geometry(64.0, 2.5)
    assert g.half_baseline_m == pytest.approx(0.032)
    assert g.convergence_angle_rad == pytest.approx(0.012799, abs=1e-6)
    assert g.convergence_deg == pytest.approx(0.7333, abs=1e-4)
    assert g.vergence_deg == pytest.approx(1.4667, abs=1e-3)
    assert g.baseline_m == pytest.approx(0.064)


@pytest.mark.parametrize("ipd_mm", [0.0, 1.0, 64.0, 300.0, 20000.0])
@pytest.mark.parametrize("distance_m", [0.5, 2.5, 17.0, 1000.0])
def test_convergence_matches_closed_form(ipd_mm: float, distance_m: float):
    g = derive_geometry(ipd_mm, distance_m)
    assert g.convergence_angle_rad == pytest.approx(math.atan((ipd_mm / 2000.0) / distance_m), rel=1e-12, abs=1e-15)


def test_zero_ipd_is_a_valid_cyclops_rig():
    for distance in (0.5, 2.5, 1000.0):
        g = derive_geometry(0.0, distance)
        assert g.half_baseline_m == 0.0
        assert g.convergence_angle_rad == 0.0
        assert g.vergence_deg == 0.0


def test_distance_is_clamped_instead_of_dividing_by_zero():
    g = derive_geometry(64.0, 0.0)
    assert g.target_distance_m == MIN_TARGET_DISTANCE_M
    assert math.isfinite(g.convergence_angle_rad)
    assert g.convergence_angle_rad < 0.5 * math.pi

    g_neg = derive_geometry(64.0, -3.0)
    assert g_neg == g


def test_very_large_distance_gives_near_zero_convergence():
    g = derive_geometry(64.0, 1e12)
    assert 0.0 < g.convergence_angle_rad < 1e-12


def test_derive_geometry_is_idempotent():
    a = derive_geometry(63.5, 3.25, 85.0)
    b = derive_geometry(63.5, 3.25, 85.0)
    assert a == b
    assert a.convergence_angle_rad.hex() == b.convergence_angle_rad.hex()


def test_field_of_view_from_focal_length():
    assert field_of_view_deg(None) == DEFAULT_EYE_FOV_DEG
    assert field_of_view_deg(50.0) == pytest.approx(2.0 * math.degrees(math.atan(12.0 / 50.0)))
    assert field_of_view_deg(200.0) < field_of_view_deg(50.0) < field_of_view_deg(15.0)


def test_geometry_for_params_uses_focal_length_when_asked():
    params = OpticalParameters(ipd_mm=64.0, target_distance_m=2.5, focal_length_mm=100.0)
    assert geometry_for(params).field_of_view_deg == pytest.approx(field_of_view_deg(100.0))
    assert geometry_for(params, use_focal_length=False).field_of_view_deg == DEFAULT_EYE_FOV_DEG


def test_disparity_sign_and_zero_at_target():
    g = derive_geometry(64.0, 2.5)
    assert screen_disparity_deg(g, 2.5) == pytest.approx(0.0, abs=1e-12)
    assert screen_disparity_deg(g, 1.0) > 0.0
    assert screen_disparity_deg(g, 10.0) < 0.0
    assert screen_disparity_deg(derive_geometry(0.0, 2.5), 1.0) == 0.0
