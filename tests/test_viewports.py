from __future__ import annotations

import pytest

from binocularlab.core.rig import CameraRef
from binocularlab.core.viewports import (
    CYAN,
    RED,
    BlendMode,
    CompositingConfig,
    Rect,
    ViewMode,
    ViewportRouter,
    build_viewports,
    stereo_viewports,
)

SIZE = (1200, 900)


def _by_camera(viewports):
    return {v.camera: v for v in viewports}


def test_side_by_side_layout():
    vps = build_viewports(ViewMode.SIDE_BY_SIDE, SIZE)
    cams = _by_camera(vps)
    assert len(vps) == 3
    assert cams[CameraRef.LEFT].region == Rect(0, 0, 600, 600)
    assert cams[CameraRef.RIGHT].region == Rect(600, 0, 600, 600)
    assert cams[CameraRef.LEFT].region.overlap_fraction(cams[CameraRef.RIGHT].region) == 0.0
    for cam in (CameraRef.LEFT, CameraRef.RIGHT):
        assert cams[cam].tint is None
        assert cams[cam].blend is BlendMode.NORMAL
        assert cams[cam].opacity == 1.0


def test_side_by_side_odd_width_covers_every_column():
    vps = _by_camera(build_viewports("SBS", (1001, 600)))
    left, right = vps[CameraRef.LEFT].region, vps[CameraRef.RIGHT].region
    assert left.width + right.width == 1001
    assert right.x == left.x + left.width


@pytest.mark.parametrize("mode", [ViewMode.OVERLAY, ViewMode.ANAGLYPH])
def test_stacked_modes_share_the_full_stereo_area(mode: ViewMode):
    vps = build_viewports(mode, SIZE)
    stereo = stereo_viewports(vps)
    assert len(stereo) == 2
    left, right = _by_camera(stereo)[CameraRef.LEFT], _by_camera(stereo)[CameraRef.RIGHT]
    assert left.region == right.region == Rect(0, 0, 1200, 600)
    assert left.region.overlap_fraction(right.region) == 1.0
    assert right.z_order > left.z_order
    assert left.tint is not None and right.tint is not None


def test_overlay_tints_and_opacity():
    cams = _by_camera(build_viewports(ViewMode.OVERLAY, SIZE))
    left, right = cams[CameraRef.LEFT], cams[CameraRef.RIGHT]
    assert left.tint.color == CYAN
    assert right.tint.color == RED
    assert left.tint.blend is BlendMode.ADDITIVE and right.tint.blend is BlendMode.ADDITIVE
    assert 0.0 < right.opacity < 1.0
    assert left.opacity == 1.0


def test_anaglyph_uses_complementary_multiplicative_tints():
    cams = _by_camera(build_viewports(ViewMode.ANAGLYPH, SIZE))
    left, right = cams[CameraRef.LEFT], cams[CameraRef.RIGHT]
    assert left.tint.color == RED
    assert right.tint.color == CYAN
    assert left.tint.blend is BlendMode.MULTIPLY and right.tint.blend is BlendMode.MULTIPLY
    assert left.tint.opacity == 1.0 and right.tint.opacity == 1.0
    assert right.opacity == 1.0


@pytest.mark.parametrize("mode", list(ViewMode))
def test_observer_strip_is_fixed_in_every_mode(mode: ViewMode):
    vps = build_viewports(mode, SIZE)
    observers = [v for v in vps if v.camera is CameraRef.OBSERVER]
    assert len(observers) == 1
    obs = observers[0]
    assert obs.region == Rect(0, 600, 1200, 300)
    assert obs.tint is None
    assert obs.blend is BlendMode.NORMAL
    assert obs.opacity == 1.0
    for v in stereo_viewports(vps):
        assert v.region.intersection(obs.region).area == 0


def test_compositing_constants_are_configurable():
    cfg = CompositingConfig(overlay_right_opacity=0.25, overlay_tint_opacity=0.3, anaglyph_right_opacity=0.5)
    cams = _by_camera(build_viewports(ViewMode.OVERLAY, SIZE, cfg))
    assert cams[CameraRef.RIGHT].opacity == 0.25
    assert cams[CameraRef.LEFT].tint.opacity == 0.3
    cams = _by_camera(build_viewports(ViewMode.ANAGLYPH, SIZE, cfg))
    assert cams[CameraRef.RIGHT].opacity == 0.5
    assert cams[CameraRef.LEFT].opacity == 1.0


@pytest.mark.parametrize("mode", [ViewMode.OVERLAY, ViewMode.ANAGLYPH])
def test_stacked_eyes_are_screened(mode: ViewMode):
    for spec in stereo_viewports(build_viewports(mode, SIZE)):
        assert spec.blend is BlendMode.SCREEN


def test_build_viewports_is_pure():
    assert build_viewports("ANAGLYPH", SIZE) == build_viewports(ViewMode.ANAGLYPH, SIZE)


def test_view_mode_parse():
    assert ViewMode.parse("sbs") is ViewMode.SIDE_BY_SIDE
    assert ViewMode.parse("anaglyph") is ViewMode.ANAGLYPH
    assert ViewMode.parse("SIDE_BY_SIDE") is ViewMode.SIDE_BY_SIDE
    assert ViewMode.parse(ViewMode.OVERLAY) is ViewMode.OVERLAY
    with pytest.raises(ValueError):
        ViewMode.parse("stereo-3d")


def test_negative_container_size_is_rejected():
    with pytest.raises(ValueError):
        build_viewports(ViewMode.OVERLAY, (-1, 10))


def test_router_rebuilds_only_on_change():
    router = ViewportRouter(ViewMode.SIDE_BY_SIDE, SIZE)
    first = router.viewports
    assert router.rebuilds == 1

    assert router.select_mode("SBS") is first
    assert router.resize(SIZE) is first
    assert router.rebuilds == 1

    router.select_mode(ViewMode.ANAGLYPH)
    assert router.mode is ViewMode.ANAGLYPH
    assert router.rebuilds == 2
    assert router.viewports == build_viewports(ViewMode.ANAGLYPH, SIZE)

    router.resize((640, 480))
    assert router.size == (640, 480)
    assert router.rebuilds == 3
    assert router.viewports == build_viewports(ViewMode.ANAGLYPH, (640, 480))


def test_rect_overlap_helpers():
    a = Rect(0, 0, 10, 10)
    b = Rect(5, 5, 10, 10)
    assert a.intersection(b) == Rect(5, 5, 5, 5)
    assert a.overlap_fraction(b) == pytest.approx(0.25)
    assert a.overlap_fraction(Rect(20, 20, 0, 0)) == 0.0
