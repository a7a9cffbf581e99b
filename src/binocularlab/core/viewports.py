from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from binocularlab.core.rig import CameraRef

RGB = tuple[float, float, float]

CYAN: RGB = (0.0, 1.0, 1.0)
RED: RGB = (1.0, 0.0, 0.0)

# Fraction of the container height given to the stereo area; the observer strip gets the rest.
STEREO_HEIGHT_FRACTION = 2.0 / 3.0


class ViewMode(str, Enum):
    SIDE_BY_SIDE = "SBS"
    OVERLAY = "OVERLAY"
    ANAGLYPH = "ANAGLYPH"

    @classmethod
    def parse(cls, value: "str | ViewMode") -> "ViewMode":
        if isinstance(value, ViewMode):
            return value
        key = str(value).strip().upper()
        for mode in cls:
            if key in (mode.value, mode.name):
                return mode
        raise ValueError(f"Unknown view mode: {value!r} (expected one of {', '.join(m.value for m in cls)})")


class BlendMode(str, Enum):
    NORMAL = "normal"
    ADDITIVE = "additive"
    MULTIPLY = "multiply"
    SCREEN = "screen"


@dataclass(frozen=True)
class Rect:
    """Screen rectangle in pixels, origin at the top-left corner."""

    x: int
    y: int
    width: int
    height: int

    @property
    def area(self) -> int:
        return max(0, self.width) * max(0, self.height)

    def intersection(self, other: "Rect") -> "Rect":
        x0 = max(self.x, other.x)
        y0 = max(self.y, other.y)
        x1 = min(self.x + self.width, other.x + other.width)
        y1 = min(self.y + self.height, other.y + other.height)
        return Rect(x0, y0, max(0, x1 - x0), max(0, y1 - y0))

    def overlap_fraction(self, other: "Rect") -> float:
        """Shared area over the smaller of the two areas (0 when either is empty)."""
        smaller = min(self.area, other.area)
        if smaller == 0:
            return 0.0
        return self.intersection(other).area / smaller


@dataclass(frozen=True)
class Tint:
    color: RGB
    opacity: float
    blend: BlendMode


@dataclass(frozen=True)
class ViewportSpec:
    camera: CameraRef
    region: Rect
    blend: BlendMode = BlendMode.NORMAL
    opacity: float = 1.0
    tint: Tint | None = None
    z_order: int = 0


@dataclass(frozen=True)
class CompositingConfig:
    """
    Tint and opacity constants for the stacked modes. These are picked for the look
    of the result, not derived from optics.
    """

    overlay_right_opacity: float = 0.5
    overlay_tint_opacity: float = 0.1
    anaglyph_tint_opacity: float = 1.0
    # Full strength so the cyan channel recombines with the red one.
    anaglyph_right_opacity: float = 1.0
    overlay_left_tint: RGB = CYAN
    overlay_right_tint: RGB = RED
    anaglyph_left_tint: RGB = RED
    anaglyph_right_tint: RGB = CYAN


def _split_container(size: tuple[int, int]) -> tuple[Rect, Rect]:
    w, h = int(size[0]), int(size[1])
    if w < 0 or h < 0:
        raise ValueError(f"container size must be non-negative, got {size}")
    stereo_h = int(round(h * STEREO_HEIGHT_FRACTION))
    return Rect(0, 0, w, stereo_h), Rect(0, stereo_h, w, h - stereo_h)


def build_viewports(
    mode: "ViewMode | str",
    container_size: tuple[int, int],
    config: CompositingConfig = CompositingConfig(),
) -> tuple[ViewportSpec, ...]:
    """
    Layout and blend state for every logical camera, ordered by z_order.

    Pure function of (mode, container_size, config). The observer always owns the
    bottom strip, opaque and untinted; only the eye viewports depend on `mode`.
    """
    mode = ViewMode.parse(mode)
    stereo, strip = _split_container(container_size)
    observer = ViewportSpec(camera=CameraRef.OBSERVER, region=strip, z_order=0)

    if mode is ViewMode.SIDE_BY_SIDE:
        half = stereo.width // 2
        left = ViewportSpec(camera=CameraRef.LEFT, region=Rect(0, 0, half, stereo.height), z_order=1)
        right = ViewportSpec(
            camera=CameraRef.RIGHT,
            region=Rect(half, 0, stereo.width - half, stereo.height),
            z_order=1,
        )
        return (observer, left, right)

    if mode is ViewMode.OVERLAY:
        left_tint = Tint(config.overlay_left_tint, config.overlay_tint_opacity, BlendMode.ADDITIVE)
        right_tint = Tint(config.overlay_right_tint, config.overlay_tint_opacity, BlendMode.ADDITIVE)
        right_opacity = config.overlay_right_opacity
    else:
        left_tint = Tint(config.anaglyph_left_tint, config.anaglyph_tint_opacity, BlendMode.MULTIPLY)
        right_tint = Tint(config.anaglyph_right_tint, config.anaglyph_tint_opacity, BlendMode.MULTIPLY)
        right_opacity = config.anaglyph_right_opacity

    # Left lands on the cleared stereo area first; the right eye is screened over it.
    left = ViewportSpec(
        camera=CameraRef.LEFT,
        region=stereo,
        blend=BlendMode.SCREEN,
        opacity=1.0,
        tint=left_tint,
        z_order=1,
    )
    right = ViewportSpec(
        camera=CameraRef.RIGHT,
        region=stereo,
        blend=BlendMode.SCREEN,
        opacity=right_opacity,
        tint=right_tint,
        z_order=2,
    )
    return (observer, left, right)


def stereo_viewports(viewports: tuple[ViewportSpec, ...]) -> tuple[ViewportSpec, ...]:
    return tuple(v for v in viewports if v.camera is not CameraRef.OBSERVER)


class ViewportRouter:
    """
    Holds the active view mode and container size and the viewport list derived
    from them. The list is rebuilt only when one of the two inputs changes.
    """

    def __init__(
        self,
        mode: "ViewMode | str" = ViewMode.SIDE_BY_SIDE,
        size: tuple[int, int] = (1280, 720),
        config: CompositingConfig = CompositingConfig(),
    ) -> None:
        self._mode = ViewMode.parse(mode)
        self._size = (int(size[0]), int(size[1]))
        self._config = config
        self._viewports = build_viewports(self._mode, self._size, self._config)
        self.rebuilds = 1

    @property
    def mode(self) -> ViewMode:
        return self._mode

    @property
    def size(self) -> tuple[int, int]:
        return self._size

    @property
    def config(self) -> CompositingConfig:
        return self._config

    @property
    def viewports(self) -> tuple[ViewportSpec, ...]:
        return self._viewports

    def select_mode(self, mode: "ViewMode | str") -> tuple[ViewportSpec, ...]:
        mode = ViewMode.parse(mode)
        if mode is not self._mode:
            self._mode = mode
            self._rebuild()
        return self._viewports

    def resize(self, size: tuple[int, int]) -> tuple[ViewportSpec, ...]:
        size = (int(size[0]), int(size[1]))
        if size != self._size:
            self._size = size
            self._rebuild()
        return self._viewports

    def _rebuild(self) -> None:
        self._viewports = build_viewports(self._mode, self._size, self._config)
        self.rebuilds += 1
