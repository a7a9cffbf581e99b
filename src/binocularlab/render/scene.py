from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from binocularlab.core.clock import RotationState
from binocularlab.core.rig import CameraPose, CameraRig
from binocularlab.params import OpticalParameters, SceneOptions
from binocularlab.render.shapes import PointCloud, box, concat, ground_grid, segment, sphere, subject_shape

RGB = tuple[float, float, float]


def hex_color(value: str) -> RGB:
    value = value.lstrip("#")
    if len(value) != 6:
        raise ValueError(f"expected #rrggbb, got {value!r}")
    return tuple(int(value[i : i + 2], 16) / 255.0 for i in (0, 2, 4))  # type: ignore[return-value]


SUBJECT_COLOR = hex_color("#6366f1")
GRID_COLOR = hex_color("#334155")
EYE_BACKGROUND = hex_color("#0f172a")
OBSERVER_BACKGROUND = hex_color("#1e293b")
LEFT_EYE_COLOR = hex_color("#22d3ee")
RIGHT_EYE_COLOR = hex_color("#f87171")
CAMERA_BODY_COLOR = hex_color("#334155")
LIGHT_POSITION = (10.0, 10.0, 10.0)


@dataclass(frozen=True)
class SceneObject:
    name: str
    cloud: PointCloud
    color: RGB
    position: tuple[float, float, float] = (0.0, 0.0, 0.0)
    scale: float = 1.0
    spins: bool = False
    lit: bool = True
    point_radius_px: int = 1

    def world_cloud(self, rotation: RotationState | None = None) -> PointCloud:
        R = None
        if self.spins and rotation is not None:
            from scipy.spatial.transform import Rotation as Rot  # type: ignore

            R = Rot.from_euler("XYZ", [rotation.pitch, rotation.yaw, 0.0]).as_matrix()
        return self.cloud.transformed(R=R, t=np.asarray(self.position, dtype=np.float64), scale=self.scale)


@dataclass(frozen=True)
class Scene:
    """The shared scene: built once, drawn through every camera."""

    objects: tuple[SceneObject, ...]
    eye_background: RGB = EYE_BACKGROUND
    observer_background: RGB = OBSERVER_BACKGROUND
    light_position: tuple[float, float, float] = LIGHT_POSITION
    options: SceneOptions = field(default_factory=SceneOptions)

    @property
    def subject(self) -> SceneObject:
        for obj in self.objects:
            if obj.spins:
                return obj
        raise LookupError("scene has no subject object")


def build_scene(options: SceneOptions, optics: OpticalParameters) -> Scene:
    wire = bool(options.wireframe)
    objects = (
        SceneObject(
            name="subject",
            cloud=subject_shape(options.object_type, wireframe=wire),
            color=SUBJECT_COLOR,
            scale=float(optics.object_scale),
            spins=True,
        ),
        # Parallax references behind the subject.
        SceneObject("ref_red_sphere", sphere(1.0, n=48, wireframe=wire), hex_color("#ef4444"), (-5.0, 0.0, -10.0)),
        SceneObject("ref_green_sphere", sphere(2.0, n=64, wireframe=wire), hex_color("#10b981"), (6.0, 3.0, -15.0)),
        SceneObject("ref_amber_cube", box((1.0, 1.0, 1.0), n=24, wireframe=wire), hex_color("#fbbf24"), (0.0, -2.0, -5.0)),
        SceneObject("ground_grid", ground_grid(20.0, 1.0, -2.0), GRID_COLOR, lit=False),
    )
    return Scene(objects=objects, options=options)


def _camera_body(pose: CameraPose, size: float) -> PointCloud:
    body = box((0.4, 0.3, 0.6), n=10)
    lens_axis = segment((0.0, 0.0, 0.0), (0.0, 0.0, -0.7), 12)
    cloud = concat([body, lens_axis])
    return cloud.transformed(R=pose.rotation(), t=np.asarray(pose.position), scale=size)


def rig_markers(rig: CameraRig, camera_size: float, target_distance_m: float) -> tuple[SceneObject, ...]:
    """
    Observer-only helpers for the current rig: an eye camera body per eye, each
    eye's line of sight (dashed look, 1.2x the target distance) and the line to the
    fixation target at the origin.
    """
    markers = []
    for label, pose, color in (("left", rig.left, LEFT_EYE_COLOR), ("right", rig.right, RIGHT_EYE_COLOR)):
        origin = np.asarray(pose.position, dtype=np.float64)
        sight_end = origin + pose.forward() * 1.2 * float(target_distance_m)
        sight = segment(origin, sight_end, 96)
        sight = PointCloud(points=sight.points[::2], normals=sight.normals[::2])
        markers.append(SceneObject(f"{label}_body", _camera_body(pose, 2.0 * float(camera_size)), CAMERA_BODY_COLOR))
        markers.append(SceneObject(f"{label}_sight", sight, color, lit=False))
        markers.append(SceneObject(f"{label}_target", segment(origin, (0.0, 0.0, 0.0), 64), color, lit=False))
    return tuple(markers)
