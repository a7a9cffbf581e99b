from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict
from pathlib import Path

from binocularlab.api.narrative import (
    GEMINI_MODEL,
    SYSTEM_INSTRUCTION,
    SYSTEM_INSTRUCTION_ZH,
    NarrativeRequest,
    analyze,
    build_prompt,
    gemini_backend,
)
from binocularlab.api.session import BinocularSession
from binocularlab.core.optics import geometry_for, screen_disparity_deg
from binocularlab.core.rig import build_rig
from binocularlab.params import (
    OBJECT_TYPES,
    VIEW_MODES,
    ControlState,
    OpticalParameters,
    SceneOptions,
    clamp_params,
    control_state_to_dict,
    load_control_state,
    replace_scene,
)
from binocularlab.render.compositor import save_frame


def _add_state_args(p: argparse.ArgumentParser) -> None:
    d_optics = OpticalParameters()
    p.add_argument("--params", type=Path, default=None, help="Params JSON (binocularlab.params.v0); flags override it.")
    p.add_argument("--ipd-mm", type=float, default=None, help=f"Interpupillary distance in mm (default {d_optics.ipd_mm:g}).")
    p.add_argument(
        "--distance-m",
        type=float,
        default=None,
        help=f"Target distance in m (default {d_optics.target_distance_m:g}).",
    )
    p.add_argument(
        "--focal-mm",
        type=float,
        default=None,
        help=f"Focal length in mm (default {d_optics.focal_length_mm:g}).",
    )
    p.add_argument("--object-scale", type=float, default=None)
    p.add_argument("--object", type=str, default=None, choices=list(OBJECT_TYPES))
    p.add_argument("--mode", type=str, default=None, choices=list(VIEW_MODES))
    p.add_argument("--wireframe", action=argparse.BooleanOptionalAction, default=None)
    p.add_argument("--camera-size", type=float, default=None)
    p.add_argument("--no-clamp", action="store_true", help="Do not clamp values to the documented control bounds.")


def _state_from_args(args: argparse.Namespace) -> ControlState:
    state = load_control_state(args.params) if args.params is not None else ControlState()
    o = state.optics
    s = state.scene
    optics = OpticalParameters(
        ipd_mm=args.ipd_mm if args.ipd_mm is not None else o.ipd_mm,
        target_distance_m=args.distance_m if args.distance_m is not None else o.target_distance_m,
        focal_length_mm=args.focal_mm if args.focal_mm is not None else o.focal_length_mm,
        object_scale=args.object_scale if args.object_scale is not None else o.object_scale,
    )
    scene = SceneOptions(
        object_type=args.object if args.object is not None else s.object_type,
        wireframe=args.wireframe if args.wireframe is not None else s.wireframe,
        is_paused=s.is_paused,
        view_mode=args.mode if args.mode is not None else s.view_mode,
        camera_size=args.camera_size if args.camera_size is not None else s.camera_size,
    )
    state = ControlState(optics=optics, scene=scene)
    return state if args.no_clamp else clamp_params(state)


def _geometry_report(state: ControlState) -> dict:
    geom = geometry_for(state.optics)
    rig = build_rig(state.optics, geom)
    return {
        "params": control_state_to_dict(state),
        "geometry": {
            "half_baseline_m": geom.half_baseline_m,
            "convergence_angle_rad": geom.convergence_angle_rad,
            "convergence_deg": geom.convergence_deg,
            "vergence_deg": geom.vergence_deg,
            "field_of_view_deg": geom.field_of_view_deg,
            "disparity_deg_at_half_distance": screen_disparity_deg(geom, 0.5 * state.optics.target_distance_m),
        },
        "rig": {name: asdict(getattr(rig, name)) for name in ("left", "right", "observer")},
    }


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="binocularlab")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    sub = parser.add_subparsers(dest="cmd", required=True)

    geo = sub.add_parser("geometry", help="Print derived geometry and camera poses as JSON.")
    _add_state_args(geo)

    render = sub.add_parser("render", help="Render one composited frame to PNG.")
    _add_state_args(render)
    render.add_argument("--out", type=Path, required=True)
    render.add_argument("--width", type=int, default=960)
    render.add_argument("--height", type=int, default=720)
    render.add_argument("--time", type=float, default=0.0, help="Animation time in seconds.")
    render.add_argument("--labels", action="store_true", help="Caption viewports (needs opencv-python).")

    seq = sub.add_parser("render-sequence", help="Render an animated sequence of PNG frames.")
    _add_state_args(seq)
    seq.add_argument("--out", type=Path, required=True, help="Output directory.")
    seq.add_argument("--frames", type=int, default=30)
    seq.add_argument("--fps", type=float, default=30.0)
    seq.add_argument("--width", type=int, default=960)
    seq.add_argument("--height", type=int, default=720)
    seq.add_argument("--paused", action="store_true")
    seq.add_argument("--labels", action="store_true", help="Caption viewports (needs opencv-python).")

    prompt = sub.add_parser("narrative-prompt", help="Print the prompt sent to the narrative service.")
    _add_state_args(prompt)

    narr = sub.add_parser("narrative", help="Ask the Gemini backend to explain the configuration (needs API_KEY).")
    _add_state_args(narr)
    narr.add_argument("--lang", type=str, default="en", choices=["en", "zh"])
    narr.add_argument("--model", type=str, default=GEMINI_MODEL)

    val = sub.add_parser("validate-params", help="Validate a params JSON file.")
    val.add_argument("params_path", type=Path)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.cmd == "geometry":
        print(json.dumps(_geometry_report(_state_from_args(args)), indent=2))
        return 0

    if args.cmd == "render":
        session = BinocularSession(_state_from_args(args), size=(args.width, args.height), labels=args.labels)
        frame = session.step(max(0.0, float(args.time)))
        save_frame(args.out, frame)
        print(f"Wrote {args.out}")
        return 0

    if args.cmd == "render-sequence":
        state = _state_from_args(args)
        if args.paused:
            state = replace_scene(state, is_paused=True)
        if args.fps <= 0:
            raise ValueError("--fps must be > 0")
        session = BinocularSession(state, size=(args.width, args.height), labels=args.labels)
        out_dir: Path = args.out
        out_dir.mkdir(parents=True, exist_ok=True)
        dt = 1.0 / float(args.fps)
        with (out_dir / "frames.jsonl").open("w", encoding="utf-8") as f:
            for frame_id in range(int(args.frames)):
                frame = session.render() if frame_id == 0 else session.step(dt)
                name = f"{frame_id:06d}.png"
                save_frame(out_dir / name, frame)
                rot = session.rotation
                f.write(json.dumps({"frame_id": frame_id, "image": name, "yaw": rot.yaw, "pitch": rot.pitch}) + "\n")
        (out_dir / "params.json").write_text(json.dumps(control_state_to_dict(state), indent=2), encoding="utf-8")
        print(f"Wrote {out_dir}")
        return 0

    if args.cmd == "narrative-prompt":
        print(build_prompt(NarrativeRequest.from_params(_state_from_args(args).optics)))
        return 0

    if args.cmd == "narrative":
        request = NarrativeRequest.from_params(_state_from_args(args).optics)
        backend = gemini_backend(model=args.model)
        system = SYSTEM_INSTRUCTION_ZH if args.lang == "zh" else SYSTEM_INSTRUCTION
        result = analyze(request, backend, system)
        print(json.dumps(asdict(result), indent=2, ensure_ascii=False))
        return 0

    if args.cmd == "validate-params":
        state = load_control_state(args.params_path)
        clamped = clamp_params(state)
        if clamped != state:
            print(f"{args.params_path}: valid (some values are outside control bounds and would be clamped)")
        else:
            print(f"{args.params_path}: valid")
        return 0

    raise AssertionError(f"Unhandled cmd: {args.cmd}")
