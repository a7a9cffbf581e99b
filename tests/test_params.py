from __future__ import annotations

import json
from pathlib import Path

import pytest

from binocularlab.params import (
    MAX_DISTANCE_M,
    MAX_IPD_MM,
    MIN_DISTANCE_M,
    MIN_FOCAL_MM,
    ControlState,
    OpticalParameters,
    ParamsValidationError,
    SceneOptions,
    clamp_params,
    control_state_to_dict,
    load_control_state,
    parse_control_state,
    replace_optics,
    replace_scene,
)


def _doc(**overrides):
    doc = control_state_to_dict(ControlState())
    for section, values in overrides.items():
        doc[section].update(values)
    return doc


def test_defaults_match_the_standard_setup():
    state = ControlState()
    assert state.optics == OpticalParameters(ipd_mm=64.0, target_distance_m=2.5, focal_length_mm=50.0, object_scale=0.5)
    assert state.scene == SceneOptions(object_type="torus", wireframe=False, is_paused=False, view_mode="SBS", camera_size=0.15)


def test_clamp_maps_out_of_range_values_onto_bounds():
    state = ControlState(
        optics=OpticalParameters(ipd_mm=-5.0, target_distance_m=5000.0, focal_length_mm=1.0, object_scale=10.0),
        scene=SceneOptions(camera_size=0.0),
    )
    clamped = clamp_params(state)
    assert clamped.optics.ipd_mm == 0.0
    assert clamped.optics.target_distance_m == MAX_DISTANCE_M
    assert clamped.optics.focal_length_mm == MIN_FOCAL_MM
    assert clamped.optics.object_scale == 3.0
    assert clamped.scene.camera_size == 0.05


def test_clamp_keeps_in_range_values():
    state = replace_optics(ControlState(), ipd_mm=MAX_IPD_MM, target_distance_m=MIN_DISTANCE_M)
    assert clamp_params(state) == state


def test_roundtrip_through_dict():
    state = replace_scene(replace_optics(ControlState(), ipd_mm=6500.0), view_mode="ANAGLYPH", wireframe=True)
    assert parse_control_state(control_state_to_dict(state)) == state


def test_parse_does_not_enforce_ranges():
    state = parse_control_state(_doc(optics={"ipd_mm": 99999.0}))
    assert state.optics.ipd_mm == 99999.0


def test_parse_fills_missing_fields_with_defaults():
    state = parse_control_state({"schema_version": "binocularlab.params.v0", "optics": {"ipd_mm": 70}})
    assert state.optics.ipd_mm == 70.0
    assert state.optics.target_distance_m == 2.5
    assert state.scene == SceneOptions()


@pytest.mark.parametrize(
    "doc",
    [
        {"schema_version": "binocularlab.params.v1"},
        {"schema_version": "binocularlab.params.v0", "optics": []},
        {"schema_version": "binocularlab.params.v0", "optics": {"ipd_mm": "64"}},
        {"schema_version": "binocularlab.params.v0", "optics": {"ipd_mm": True}},
        {"schema_version": "binocularlab.params.v0", "optics": {"target_distance_m": float("nan")}},
        {"schema_version": "binocularlab.params.v0", "scene": {"object_type": "teapot"}},
        {"schema_version": "binocularlab.params.v0", "scene": {"view_mode": "VR"}},
        {"schema_version": "binocularlab.params.v0", "scene": {"wireframe": "yes"}},
    ],
)
def test_parse_rejects_malformed_documents(doc):
    with pytest.raises(ParamsValidationError):
        parse_control_state(doc)


def test_load_from_file(tmp_path: Path):
    p = tmp_path / "params.json"
    p.write_text(json.dumps(_doc(scene={"object_type": "dna"})), encoding="utf-8")
    assert load_control_state(p).scene.object_type == "dna"
