from __future__ import annotations

import math

import numpy as np

from binocularlab.core.clock import RotationState
from binocularlab.core.rig import CameraPose
from binocularlab.render.scene import RGB, SceneObject

NEAR_M = 0.05
FAR_M = 200.0
AMBIENT = 0.35


def focal_px(fov_deg: float, height_px: int) -> float:
    """Pinhole focal length in pixels for a vertical field of view."""
    return 0.5 * float(height_px) / math.tan(math.radians(float(fov_deg)) * 0.5)


def project_points(
    pose: CameraPose,
    xyz_world: np.ndarray,
    width: int,
    height: int,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Pinhole projection of (N,3) world points for an image of (width, height).

    Returns (uv_px, depth_m, valid). Pixel centers follow the usual convention:
    u grows to the right, v grows downwards, principal point at the image center.
    """
    p_cam = pose.world_to_camera(xyz_world)
    depth = -p_cam[:, 2]
    f = focal_px(pose.fov_deg, height)
    uv = np.full((p_cam.shape[0], 2), np.nan, dtype=np.float64)
    valid = (depth > NEAR_M) & (depth < FAR_M)
    if np.any(valid):
        uv[valid, 0] = 0.5 * (width - 1) + f * p_cam[valid, 0] / depth[valid]
        uv[valid, 1] = 0.5 * (height - 1) - f * p_cam[valid, 1] / depth[valid]
        valid &= (uv[:, 0] > -0.5) & (uv[:, 0] < width - 0.5) & (uv[:, 1] > -0.5) & (uv[:, 1] < height - 0.5)
    return uv, depth, valid


def _disc_offsets(radius: int) -> np.ndarray:
    r = max(0, int(radius))
    g = np.arange(-r, r + 1)
    dx, dy = np.meshgrid(g, g, indexing="ij")
    keep = dx * dx + dy * dy <= r * r
    return np.stack([dx[keep], dy[keep]], axis=-1)


def splat(
    layer: np.ndarray,
    zbuf: np.ndarray,
    uv: np.ndarray,
    depth: np.ndarray,
    colors: np.ndarray,
    radius_px: int = 1,
) -> None:
    """
    Z-buffered point splatting into `layer` (H,W,3) float and `zbuf` (H,W), in place.
    Each point covers a disc of `radius_px` pixels.
    """
    h, w = zbuf.shape
    if uv.shape[0] == 0:
        return
    base = np.rint(uv).astype(np.int64)
    offsets = _disc_offsets(radius_px)
    px = (base[:, None, :] + offsets[None, :, :]).reshape(-1, 2)
    d = np.repeat(depth, offsets.shape[0])
    c = np.repeat(colors, offsets.shape[0], axis=0)
    inside = (px[:, 0] >= 0) & (px[:, 0] < w) & (px[:, 1] >= 0) & (px[:, 1] < h)
    px, d, c = px[inside], d[inside], c[inside]
    if px.shape[0] == 0:
        return

    flat = px[:, 1] * w + px[:, 0]
    zflat = zbuf.reshape(-1)
    np.minimum.at(zflat, flat, d)
    win = d <= zflat[flat]
    layer.reshape(-1, 3)[flat[win]] = c[win]


def shade(obj: SceneObject, points: np.ndarray, normals: np.ndarray, light_position) -> np.ndarray:
    base = np.asarray(obj.color, dtype=np.float64).reshape(1, 3)
    if not obj.lit:
        return np.repeat(base, points.shape[0], axis=0)
    to_light = np.asarray(light_position, dtype=np.float64).reshape(1, 3) - points
    to_light /= np.maximum(np.linalg.norm(to_light, axis=-1, keepdims=True), 1e-12)
    # Two-sided Lambert; points without a normal get the ambient+half term.
    lambert = np.abs(np.sum(normals * to_light, axis=-1))
    has_normal = np.linalg.norm(normals, axis=-1) > 0.5
    lambert = np.where(has_normal, lambert, 0.5)
    intensity = AMBIENT + (1.0 - AMBIENT) * lambert
    return np.clip(base * intensity[:, None], 0.0, 1.0)


def render_layer(
    objects: tuple[SceneObject, ...],
    pose: CameraPose,
    size: tuple[int, int],
    background: RGB,
    rotation: RotationState | None = None,
    light_position=(10.0, 10.0, 10.0),
) -> np.ndarray:
    """Render `objects` seen from `pose` into a fresh (H,W,3) float32 layer in [0,1]."""
    w, h = int(size[0]), int(size[1])
    layer = np.empty((h, w, 3), dtype=np.float32)
    layer[...] = np.asarray(background, dtype=np.float32)
    if w == 0 or h == 0:
        return layer
    zbuf = np.full((h, w), np.inf, dtype=np.float64)

    for obj in objects:
        cloud = obj.world_cloud(rotation)
        if len(cloud) == 0:
            continue
        uv, depth, valid = project_points(pose, cloud.points, w, h)
        if not np.any(valid):
            continue
        colors = shade(obj, cloud.points[valid], cloud.normals[valid], light_position)
        splat(layer, zbuf, uv[valid], depth[valid], colors.astype(np.float32), obj.point_radius_px)
    return layer
