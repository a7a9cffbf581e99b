from __future__ import annotations

import logging
from typing import Any

import numpy as np

from binocularlab.core.clock import AnimationClock, RotationState
from binocularlab.core.optics import DerivedGeometry, geometry_for
from binocularlab.core.rig import CameraRig, build_rig, orbit_observer
from binocularlab.core.viewports import CompositingConfig, ViewMode, ViewportRouter, ViewportSpec
from binocularlab.params import ControlState, replace_optics, replace_scene
from binocularlab.render.compositor import SceneComposer, draw_labels
from binocularlab.render.scene import build_scene, rig_markers

logger = logging.getLogger(__name__)

_OPTICS_FIELDS = ("ipd_mm", "target_distance_m", "focal_length_mm", "object_scale")
_SCENE_FIELDS = ("object_type", "wireframe", "is_paused", "view_mode", "camera_size")


class BinocularSession:
    """
    Host-side state for one simulation.

    Every parameter change recomputes geometry and rig synchronously; the viewport
    list changes only with the view mode or the container size. `step(dt)` is one
    display frame: clock tick, then render.
    """

    def __init__(
        self,
        state: ControlState | None = None,
        size: tuple[int, int] = (960, 720),
        config: CompositingConfig = CompositingConfig(),
        labels: bool = False,
    ) -> None:
        self._state = state if state is not None else ControlState()
        self.labels = bool(labels)
        self.clock = AnimationClock()
        self.router = ViewportRouter(self._state.scene.view_mode, size, config)
        self._observer_override = None
        self._recompute_geometry()
        self._rebuild_scene()

    @property
    def state(self) -> ControlState:
        return self._state

    @property
    def geometry(self) -> DerivedGeometry:
        return self._geometry

    @property
    def rig(self) -> CameraRig:
        return self._rig

    @property
    def viewports(self) -> tuple[ViewportSpec, ...]:
        return self.router.viewports

    @property
    def rotation(self) -> RotationState:
        return self.clock.state

    @property
    def view_mode(self) -> ViewMode:
        return self.router.mode

    def update(self, state: ControlState) -> None:
        """
        Apply a new control snapshot (as delivered by the controls collaborator).

        Everything that can fail is resolved before the session changes, so an
        invalid snapshot leaves the previous one in place.
        """
        mode = ViewMode.parse(state.scene.view_mode)
        previous = self._state
        composer = None
        if (
            state.scene.object_type != previous.scene.object_type
            or state.scene.wireframe != previous.scene.wireframe
            or state.optics.object_scale != previous.optics.object_scale
        ):
            composer = SceneComposer(build_scene(state.scene, state.optics))

        self._state = state
        if state.optics != previous.optics:
            logger.debug("Optics changed: %s", state.optics)
            self._recompute_geometry()
        if mode is not self.router.mode:
            self.router.select_mode(mode)
        if composer is not None:
            self.composer = composer

    def set_params(self, **changes: Any) -> None:
        optics = {k: v for k, v in changes.items() if k in _OPTICS_FIELDS}
        scene = {k: v for k, v in changes.items() if k in _SCENE_FIELDS}
        unknown = set(changes) - set(optics) - set(scene)
        if unknown:
            raise TypeError(f"Unknown parameter(s): {', '.join(sorted(unknown))}")
        state = self._state
        if optics:
            state = replace_optics(state, **optics)
        if scene:
            if "view_mode" in scene:
                scene["view_mode"] = ViewMode.parse(scene["view_mode"]).value
            state = replace_scene(state, **scene)
        self.update(state)

    def resize(self, size: tuple[int, int]) -> None:
        self.router.resize(size)

    def orbit(self, d_azimuth: float = 0.0, d_elevation: float = 0.0, zoom: float = 1.0) -> None:
        """User orbit of the observer view. The eye cameras are not affected."""
        self._observer_override = orbit_observer(self._rig.observer, d_azimuth, d_elevation, zoom)
        self._rig = self._rig.with_observer(self._observer_override)

    def step(self, dt: float) -> np.ndarray:
        rotation = self.clock.tick(dt, paused=self._state.scene.is_paused)
        return self.render(rotation)

    def render(self, rotation: RotationState | None = None) -> np.ndarray:
        rotation = rotation if rotation is not None else self.clock.state
        markers = rig_markers(self._rig, self._state.scene.camera_size, self._state.optics.target_distance_m)
        frame = self.composer.render_frame(self._rig, self.router.viewports, self.router.size, rotation, markers)
        if self.labels:
            frame = draw_labels(frame, self.router.viewports)
        return frame

    def _recompute_geometry(self) -> None:
        self._geometry = geometry_for(self._state.optics)
        rig = build_rig(self._state.optics, self._geometry)
        if self._observer_override is not None:
            rig = rig.with_observer(self._observer_override)
        self._rig = rig

    def _rebuild_scene(self) -> None:
        self.composer = SceneComposer(build_scene(self._state.scene, self._state.optics))
