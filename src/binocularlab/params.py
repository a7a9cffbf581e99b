from __future__ import annotations

import json
import math
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

SCHEMA_VERSION = "binocularlab.params.v0"

OBJECT_TYPES = ("cube", "sphere", "torus", "dna")
VIEW_MODES = ("SBS", "OVERLAY", "ANAGLYPH")

# Documented bounds enforced by the controls layer (never by the core).
MIN_IPD_MM = 0.0  # cyclops
MAX_IPD_MM = 20000.0  # hammerhead
MIN_DISTANCE_M = 0.5
MAX_DISTANCE_M = 1000.0
MIN_FOCAL_MM = 15.0
MAX_FOCAL_MM = 2000.0
MIN_OBJECT_SCALE = 0.1
MAX_OBJECT_SCALE = 3.0
MIN_CAMERA_SIZE = 0.05
MAX_CAMERA_SIZE = 1.0


class ParamsValidationError(ValueError):
    pass


@dataclass(frozen=True)
class OpticalParameters:
    ipd_mm: float = 64.0
    target_distance_m: float = 2.5
    focal_length_mm: float = 50.0
    object_scale: float = 0.5


@dataclass(frozen=True)
class SceneOptions:
    object_type: str = "torus"
    wireframe: bool = False
    is_paused: bool = False
    view_mode: str = "SBS"
    camera_size: float = 0.15


@dataclass(frozen=True)
class ControlState:
    """Snapshot delivered by the controls collaborator on every change."""

    optics: OpticalParameters = field(default_factory=OpticalParameters)
    scene: SceneOptions = field(default_factory=SceneOptions)


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise ParamsValidationError(msg)


def _clamp(value: float, lo: float, hi: float) -> float:
    return float(max(lo, min(hi, value)))


def clamp_params(state: ControlState) -> ControlState:
    """
    Clamp every numeric control to its documented bounds.

    This mirrors what the slider/numeric-input widgets do when an edit is committed.
    The geometry core accepts anything numerically valid and does not call this.
    """
    o = state.optics
    optics = OpticalParameters(
        ipd_mm=_clamp(o.ipd_mm, MIN_IPD_MM, MAX_IPD_MM),
        target_distance_m=_clamp(o.target_distance_m, MIN_DISTANCE_M, MAX_DISTANCE_M),
        focal_length_mm=_clamp(o.focal_length_mm, MIN_FOCAL_MM, MAX_FOCAL_MM),
        object_scale=_clamp(o.object_scale, MIN_OBJECT_SCALE, MAX_OBJECT_SCALE),
    )
    scene = replace(state.scene, camera_size=_clamp(state.scene.camera_size, MIN_CAMERA_SIZE, MAX_CAMERA_SIZE))
    return ControlState(optics=optics, scene=scene)


def replace_optics(state: ControlState, **changes: Any) -> ControlState:
    return ControlState(optics=replace(state.optics, **changes), scene=state.scene)


def replace_scene(state: ControlState, **changes: Any) -> ControlState:
    return ControlState(optics=state.optics, scene=replace(state.scene, **changes))


def _number(section: dict[str, Any], key: str, default: float, where: str) -> float:
    raw = section.get(key, default)
    _require(
        isinstance(raw, (int, float)) and not isinstance(raw, bool),
        f"{where}.{key} must be a number",
    )
    value = float(raw)
    _require(math.isfinite(value), f"{where}.{key} must be finite")
    return value


def _flag(section: dict[str, Any], key: str, default: bool, where: str) -> bool:
    raw = section.get(key, default)
    _require(isinstance(raw, bool), f"{where}.{key} must be true or false")
    return bool(raw)


def load_control_state(path: Path) -> ControlState:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return parse_control_state(data)


def parse_control_state(data: dict[str, Any]) -> ControlState:
    """
    Parse a params document. Types and enums are checked; numeric ranges are not
    (use `clamp_params` for that).
    """
    _require(isinstance(data, dict), "params document must be a JSON object")
    schema_version = data.get("schema_version")
    _require(schema_version == SCHEMA_VERSION, f"schema_version must be {SCHEMA_VERSION}")

    optics_raw = data.get("optics", {})
    scene_raw = data.get("scene", {})
    _require(isinstance(optics_raw, dict), "optics must be an object")
    _require(isinstance(scene_raw, dict), "scene must be an object")

    d_optics = OpticalParameters()
    ipd = _number(optics_raw, "ipd_mm", d_optics.ipd_mm, "optics")
    dist = _number(optics_raw, "target_distance_m", d_optics.target_distance_m, "optics")
    focal = _number(optics_raw, "focal_length_mm", d_optics.focal_length_mm, "optics")
    scale = _number(optics_raw, "object_scale", d_optics.object_scale, "optics")

    d_scene = SceneOptions()
    object_type = scene_raw.get("object_type", d_scene.object_type)
    _require(object_type in OBJECT_TYPES, f"scene.object_type must be one of {', '.join(OBJECT_TYPES)}")
    view_mode = scene_raw.get("view_mode", d_scene.view_mode)
    _require(view_mode in VIEW_MODES, f"scene.view_mode must be one of {', '.join(VIEW_MODES)}")

    return ControlState(
        optics=OpticalParameters(ipd_mm=ipd, target_distance_m=dist, focal_length_mm=focal, object_scale=scale),
        scene=SceneOptions(
            object_type=str(object_type),
            wireframe=_flag(scene_raw, "wireframe", d_scene.wireframe, "scene"),
            is_paused=_flag(scene_raw, "is_paused", d_scene.is_paused, "scene"),
            view_mode=str(view_mode),
            camera_size=_number(scene_raw, "camera_size", d_scene.camera_size, "scene"),
        ),
    )


def control_state_to_dict(state: ControlState) -> dict[str, Any]:
    o = state.optics
    s = state.scene
    return {
        "schema_version": SCHEMA_VERSION,
        "optics": {
            "ipd_mm": float(o.ipd_mm),
            "target_distance_m": float(o.target_distance_m),
            "focal_length_mm": float(o.focal_length_mm),
            "object_scale": float(o.object_scale),
        },
        "scene": {
            "object_type": s.object_type,
            "wireframe": bool(s.wireframe),
            "is_paused": bool(s.is_paused),
            "view_mode": s.view_mode,
            "camera_size": float(s.camera_size),
        },
    }
