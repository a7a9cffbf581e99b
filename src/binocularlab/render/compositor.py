from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
from PIL import Image

from binocularlab.core.clock import RotationState
from binocularlab.core.rig import CameraPose, CameraRef, CameraRig
from binocularlab.core.viewports import BlendMode, Tint, ViewportSpec
from binocularlab.render.rasterizer import render_layer
from binocularlab.render.scene import LEFT_EYE_COLOR, RIGHT_EYE_COLOR, Scene, SceneObject

logger = logging.getLogger(__name__)

LABEL_COLORS = {
    CameraRef.LEFT: LEFT_EYE_COLOR,
    CameraRef.RIGHT: RIGHT_EYE_COLOR,
    CameraRef.OBSERVER: (0.98, 0.75, 0.14),
}
LABEL_TEXT = {CameraRef.LEFT: "L", CameraRef.RIGHT: "R", CameraRef.OBSERVER: "GOD VIEW"}


def blend_into(dst: np.ndarray, src: np.ndarray, blend: BlendMode, opacity: float = 1.0) -> np.ndarray:
    """Blend `src` onto `dst` (broadcastable, floats in [0,1]); returns the new pixels."""
    a = float(np.clip(opacity, 0.0, 1.0))
    if blend is BlendMode.ADDITIVE:
        out = dst + a * src
    elif blend is BlendMode.MULTIPLY:
        out = dst * ((1.0 - a) + a * src)
    elif blend is BlendMode.SCREEN:
        out = dst + a * src * (1.0 - dst)
    else:
        out = (1.0 - a) * dst + a * src
    return np.clip(out, 0.0, 1.0).astype(np.float32, copy=False)


def apply_tint(layer: np.ndarray, tint: Tint | None) -> np.ndarray:
    """
    Full-frame tint plane in front of the camera's scene content.

    additive: layer + opacity*color; multiply: layer * lerp(1, color, opacity).
    """
    if tint is None or tint.opacity <= 0.0:
        return layer
    color = np.asarray(tint.color, dtype=np.float32).reshape(1, 1, 3)
    return blend_into(layer, color, tint.blend, tint.opacity)


def to_u8(frame: np.ndarray) -> np.ndarray:
    return np.clip(frame * 255.0 + 0.5, 0.0, 255.0).astype(np.uint8)


def save_frame(path: Path, frame_u8: np.ndarray) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(np.ascontiguousarray(frame_u8, dtype=np.uint8)).save(path)
    return path


def draw_labels(frame_u8: np.ndarray, viewports: tuple[ViewportSpec, ...]) -> np.ndarray:
    """
    Caption each viewport and draw the side-by-side divider. Requires OpenCV.
    """
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise RuntimeError("Viewport labels require opencv-python (cv2).") from e

    out = np.ascontiguousarray(frame_u8)
    seen: set[tuple[int, int]] = set()
    for vp in viewports:
        r = vp.region
        if r.area == 0:
            continue
        color = tuple(int(255 * c) for c in LABEL_COLORS[vp.camera])
        # Stacked eye viewports share an origin; shift the second caption to the right edge.
        anchor = (r.x, r.y)
        x = r.x + 8 if anchor not in seen else r.x + r.width - 24
        seen.add(anchor)
        cv2.putText(out, LABEL_TEXT[vp.camera], (x, r.y + 20), cv2.FONT_HERSHEY_SIMPLEX, 0.5, color, 1, cv2.LINE_AA)
        if vp.camera is CameraRef.RIGHT and vp.region.x > 0:
            cv2.line(out, (r.x, r.y), (r.x, r.y + r.height - 1), (51, 65, 85), 1)
        if vp.camera is CameraRef.OBSERVER:
            cv2.line(out, (r.x, r.y), (r.x + r.width - 1, r.y), (51, 65, 85), 1)
    return out


class SceneComposer:
    """
    Draws the shared scene through every viewport of the current layout.

    The scene is built once by the caller; per frame only the subject rotation and
    the observer-only rig markers change.
    """

    def __init__(self, scene: Scene) -> None:
        self.scene = scene

    def render_viewport(
        self,
        spec: ViewportSpec,
        pose: CameraPose,
        rotation: RotationState | None = None,
        markers: tuple[SceneObject, ...] = (),
    ) -> np.ndarray:
        """Render one camera into a layer of the viewport's size, tint applied."""
        r = spec.region
        if spec.camera is CameraRef.OBSERVER:
            objects = self.scene.objects + tuple(markers)
            background = self.scene.observer_background
        else:
            objects = self.scene.objects
            background = self.scene.eye_background
        layer = render_layer(
            objects,
            pose,
            (r.width, r.height),
            background,
            rotation=rotation,
            light_position=self.scene.light_position,
        )
        return apply_tint(layer, spec.tint)

    def render_frame(
        self,
        rig: CameraRig,
        viewports: tuple[ViewportSpec, ...],
        size: tuple[int, int],
        rotation: RotationState | None = None,
        markers: tuple[SceneObject, ...] = (),
    ) -> np.ndarray:
        """Composite every viewport, lowest z_order first, into an (H,W,3) uint8 frame."""
        w, h = int(size[0]), int(size[1])
        frame = np.zeros((h, w, 3), dtype=np.float32)
        for spec in sorted(viewports, key=lambda v: v.z_order):
            r = spec.region
            if r.area == 0:
                continue
            layer = self.render_viewport(spec, rig[spec.camera], rotation, markers)
            dst = frame[r.y : r.y + r.height, r.x : r.x + r.width]
            if spec.blend is BlendMode.NORMAL and spec.opacity >= 1.0:
                dst[...] = layer[: dst.shape[0], : dst.shape[1]]
            else:
                dst[...] = blend_into(dst, layer[: dst.shape[0], : dst.shape[1]], spec.blend, spec.opacity)
        logger.debug("Composited %d viewports into %dx%d frame", len(viewports), w, h)
        return to_u8(frame)
