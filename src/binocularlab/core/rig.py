from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum

import numpy as np

from binocularlab.core.optics import DerivedGeometry
from binocularlab.params import OpticalParameters

OBSERVER_HEIGHT_M = 8.0
OBSERVER_SETBACK_M = 5.0
OBSERVER_FOV_DEG = 50.0

# Orbit limits of the observer view (distance to its target, in metres).
ORBIT_MIN_DISTANCE_M = 2.0
ORBIT_MAX_DISTANCE_M = 20.0
_MAX_ELEVATION = 0.5 * math.pi - 1e-3


class CameraRef(str, Enum):
    LEFT = "left"
    RIGHT = "right"
    OBSERVER = "observer"


@dataclass(frozen=True)
class CameraPose:
    """
    Pose of one logical camera.

    Convention: right-handed world, +Y up; a camera with zero yaw/pitch looks
    down -Z. `yaw` rotates about +Y, then `pitch` about the camera's X axis.
    """

    position: tuple[float, float, float]
    yaw: float = 0.0
    pitch: float = 0.0
    fov_deg: float = 45.0

    def rotation(self) -> np.ndarray:
        """Camera-to-world rotation matrix (3,3)."""
        from scipy.spatial.transform import Rotation as Rot  # type: ignore

        return Rot.from_euler("YXZ", [self.yaw, self.pitch, 0.0]).as_matrix()

    def forward(self) -> np.ndarray:
        return self.rotation() @ np.array([0.0, 0.0, -1.0], dtype=np.float64)

    def world_to_camera(self, xyz_world: np.ndarray) -> np.ndarray:
        """Express (N,3) world points in the camera frame (camera looks down -Z)."""
        xyz_world = np.asarray(xyz_world, dtype=np.float64).reshape(-1, 3)
        origin = np.asarray(self.position, dtype=np.float64)
        return (xyz_world - origin[None, :]) @ self.rotation()


@dataclass(frozen=True)
class CameraRig:
    left: CameraPose
    right: CameraPose
    observer: CameraPose

    def __getitem__(self, ref: CameraRef) -> CameraPose:
        return getattr(self, CameraRef(ref).value)

    def with_observer(self, observer: CameraPose) -> "CameraRig":
        return replace(self, observer=observer)


def look_at(
    position: tuple[float, float, float],
    target: tuple[float, float, float] = (0.0, 0.0, 0.0),
    fov_deg: float = OBSERVER_FOV_DEG,
) -> CameraPose:
    p = np.asarray(position, dtype=np.float64)
    d = np.asarray(target, dtype=np.float64) - p
    n = float(np.linalg.norm(d))
    if n < 1e-12:
        return CameraPose(position=tuple(float(v) for v in p), fov_deg=float(fov_deg))
    d /= n
    yaw = math.atan2(-d[0], -d[2])
    pitch = math.asin(float(np.clip(d[1], -1.0, 1.0)))
    return CameraPose(position=(float(p[0]), float(p[1]), float(p[2])), yaw=yaw, pitch=pitch, fov_deg=float(fov_deg))


def observer_pose(target_distance_m: float) -> CameraPose:
    position = (0.0, OBSERVER_HEIGHT_M, float(target_distance_m) + OBSERVER_SETBACK_M)
    # The camera sits on the X = 0 plane, so yaw stays zero and only pitch aims at the origin.
    return look_at(position, (0.0, 0.0, 0.0), OBSERVER_FOV_DEG)


def build_rig(params: OpticalParameters, geometry: DerivedGeometry) -> CameraRig:
    """
    Place the eye cameras and the observer.

    Left and right eyes sit at (-/+ half_baseline, 0, target_distance) and are yawed
    inward by -/+ convergence so both lines of sight cross at the world origin.
    """
    h = float(geometry.half_baseline_m)
    z = float(params.target_distance_m)
    a = float(geometry.convergence_angle_rad)
    fov = float(geometry.field_of_view_deg)

    left = CameraPose(position=(-h, 0.0, z), yaw=-a, pitch=0.0, fov_deg=fov)
    right = CameraPose(position=(h, 0.0, z), yaw=a, pitch=0.0, fov_deg=fov)
    return CameraRig(left=left, right=right, observer=observer_pose(z))


def orbit_observer(
    pose: CameraPose,
    d_azimuth: float = 0.0,
    d_elevation: float = 0.0,
    zoom: float = 1.0,
    target: tuple[float, float, float] = (0.0, 0.0, 0.0),
) -> CameraPose:
    """
    Orbit a camera around `target`: azimuth about +Y, elevation towards +Y, and a
    multiplicative zoom on the distance. The distance is clamped to the orbit limits.
    """
    t = np.asarray(target, dtype=np.float64)
    offset = np.asarray(pose.position, dtype=np.float64) - t
    radius = float(np.linalg.norm(offset))
    if radius < 1e-12:
        offset = np.array([0.0, 0.0, 1.0], dtype=np.float64)
        radius = 1.0

    azimuth = math.atan2(offset[0], offset[2]) + float(d_azimuth)
    elevation = math.asin(float(np.clip(offset[1] / radius, -1.0, 1.0))) + float(d_elevation)
    elevation = float(np.clip(elevation, -_MAX_ELEVATION, _MAX_ELEVATION))
    radius = float(np.clip(radius * float(zoom), ORBIT_MIN_DISTANCE_M, ORBIT_MAX_DISTANCE_M))

    position = t + radius * np.array(
        [math.cos(elevation) * math.sin(azimuth), math.sin(elevation), math.cos(elevation) * math.cos(azimuth)],
        dtype=np.float64,
    )
    return look_at((float(position[0]), float(position[1]), float(position[2])), target, pose.fov_deg)
