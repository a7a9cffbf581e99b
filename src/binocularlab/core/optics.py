from __future__ import annotations

import math
from dataclasses import dataclass
from functools import lru_cache

from binocularlab.params import OpticalParameters

# Keeps atan(h / d) finite when a caller hands over a zero or negative distance.
MIN_TARGET_DISTANCE_M = 1e-6

# Vertical FOV used for the eye cameras when no focal length is supplied.
DEFAULT_EYE_FOV_DEG = 45.0

# 35 mm full-frame sensor height; FOV is vertical, as for a perspective camera.
SENSOR_HEIGHT_MM = 24.0


@dataclass(frozen=True)
class DerivedGeometry:
    """
    Geometry derived from the optical parameters.

    Convention: `convergence_angle_rad` is the inward yaw of *one* eye, so the
    total vergence between the two lines of sight is twice that.
    """

    half_baseline_m: float
    convergence_angle_rad: float
    field_of_view_deg: float
    target_distance_m: float

    @property
    def baseline_m(self) -> float:
        return 2.0 * self.half_baseline_m

    @property
    def convergence_deg(self) -> float:
        return math.degrees(self.convergence_angle_rad)

    @property
    def vergence_deg(self) -> float:
        return 2.0 * math.degrees(self.convergence_angle_rad)


def field_of_view_deg(focal_length_mm: float | None) -> float:
    if focal_length_mm is None or not focal_length_mm > 0.0:
        return DEFAULT_EYE_FOV_DEG
    return math.degrees(2.0 * math.atan((0.5 * SENSOR_HEIGHT_MM) / float(focal_length_mm)))


@lru_cache(maxsize=256)
def derive_geometry(
    ipd_mm: float,
    target_distance_m: float,
    focal_length_mm: float | None = None,
) -> DerivedGeometry:
    """
    Map (IPD, target distance[, focal length]) to rig geometry.

    Never raises for numerically valid input: the distance is clamped to a small
    positive floor and `ipd_mm == 0` yields a zero convergence angle (both eyes
    coincide and look straight ahead).
    """
    half_baseline_m = (float(ipd_mm) / 1000.0) / 2.0
    distance = max(float(target_distance_m), MIN_TARGET_DISTANCE_M)
    convergence = math.atan(half_baseline_m / distance)
    return DerivedGeometry(
        half_baseline_m=half_baseline_m,
        convergence_angle_rad=convergence,
        field_of_view_deg=field_of_view_deg(focal_length_mm),
        target_distance_m=distance,
    )


def geometry_for(params: OpticalParameters, use_focal_length: bool = True) -> DerivedGeometry:
    focal = float(params.focal_length_mm) if use_focal_length else None
    return derive_geometry(float(params.ipd_mm), float(params.target_distance_m), focal)


def screen_disparity_deg(geometry: DerivedGeometry, depth_m: float) -> float:
    """
    Angular disparity (degrees) of a point straight ahead at `depth_m`, relative
    to the fixation target. Positive values are crossed (nearer than the target).
    """
    depth = max(float(depth_m), MIN_TARGET_DISTANCE_M)
    point_vergence = 2.0 * math.atan(geometry.half_baseline_m / depth)
    return math.degrees(point_vergence - 2.0 * geometry.convergence_angle_rad)
