from binocularlab import params
from binocularlab.api import BinocularSession, NarrativeClient, NarrativeError, NarrativeRequest, analyze
from binocularlab.core.clock import AnimationClock, RotationState
from binocularlab.core.optics import DerivedGeometry, derive_geometry
from binocularlab.core.rig import CameraPose, CameraRef, CameraRig, build_rig
from binocularlab.core.viewports import BlendMode, ViewMode, ViewportRouter, ViewportSpec, build_viewports

__all__ = [
    "params",
    "AnimationClock",
    "BinocularSession",
    "BlendMode",
    "CameraPose",
    "CameraRef",
    "CameraRig",
    "DerivedGeometry",
    "NarrativeClient",
    "NarrativeError",
    "NarrativeRequest",
    "RotationState",
    "ViewMode",
    "ViewportRouter",
    "ViewportSpec",
    "analyze",
    "build_rig",
    "build_viewports",
    "derive_geometry",
]
