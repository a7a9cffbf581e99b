from __future__ import annotations

import json
import logging
import os
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable

from binocularlab.params import OpticalParameters

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = (
    "You are a professor of optics, computer vision and ophthalmology. "
    "Explain binocular vision concepts based on the user's simulation settings. "
    "Keep explanations concise and educational, focusing on the physics of stereopsis, "
    "disparity and depth perception. Avoid markdown code blocks unless needed for formulas. "
    "Use bold for key terms."
)

SYSTEM_INSTRUCTION_ZH = (
    "你是一位光学、计算机视觉和眼科领域的专家教授。\n"
    "你的目标是根据用户的模拟设置解释双目视觉概念。\n"
    "请保持解释简明扼要，具有教育意义，并侧重于立体视觉、视差和深度感知的物理原理。\n"
    "除非必要（例如数学公式），否则避免使用 markdown 代码块。使用粗体突出关键术语。\n"
    "请使用中文回答。"
)

GEMINI_MODEL = "gemini-2.5-flash"
API_KEY_ENV = "API_KEY"

RESPONSE_FIELDS = ("title", "explanation", "depthImplications", "technicalNote")

# generate(prompt, system_instruction) -> raw response text (a JSON object).
GenerateFn = Callable[[str, str], str]


class NarrativeError(RuntimeError):
    pass


@dataclass(frozen=True)
class NarrativeRequest:
    ipd_mm: float
    focal_length_mm: float
    target_distance_m: float

    @classmethod
    def from_params(cls, optics: OpticalParameters) -> "NarrativeRequest":
        return cls(
            ipd_mm=float(optics.ipd_mm),
            focal_length_mm=float(optics.focal_length_mm),
            target_distance_m=float(optics.target_distance_m),
        )


@dataclass(frozen=True)
class NarrativeResult:
    title: str
    explanation: str
    depth_implications: str
    technical_note: str


def _fmt(x: float) -> str:
    return f"{x:g}"


def build_prompt(request: NarrativeRequest) -> str:
    return (
        "Analyze the following binocular vision simulation setup:\n"
        f"- Interpupillary Distance (Baseline): {_fmt(request.ipd_mm)} mm\n"
        f"- Focal Length: {_fmt(request.focal_length_mm)} mm\n"
        f"- Target Object Distance: {_fmt(request.target_distance_m)} meters\n"
        "\n"
        "Please provide:\n"
        '1. A short title for this configuration state (e.g., "Hyper-Stereo Vision", "Standard Human Vision").\n'
        "2. An explanation of how the current baseline affects depth perception (stereopsis).\n"
        "3. The implications for depth resolution (e.g., is the disparity large or small?).\n"
        "4. A technical note on potential visual comfort or computer vision application.\n"
        "\n"
        f"Answer with a single JSON object with the string fields: {', '.join(RESPONSE_FIELDS)}."
    )


def parse_narrative_response(text: str | None) -> NarrativeResult:
    if not text or not str(text).strip():
        raise NarrativeError("Empty response from the narrative service")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise NarrativeError(f"Narrative response is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise NarrativeError("Narrative response must be a JSON object")
    missing = [k for k in RESPONSE_FIELDS if not isinstance(data.get(k), str)]
    if missing:
        raise NarrativeError(f"Narrative response missing string field(s): {', '.join(missing)}")
    return NarrativeResult(
        title=data["title"],
        explanation=data["explanation"],
        depth_implications=data["depthImplications"],
        technical_note=data["technicalNote"],
    )


def analyze(
    request: NarrativeRequest,
    generate: GenerateFn | None,
    system_instruction: str = SYSTEM_INSTRUCTION,
) -> NarrativeResult:
    """
    Ask the text-generation backend for an explanation of `request`.

    Any failure (no backend configured, backend error, unusable response) is raised
    as one NarrativeError; there are no retries.
    """
    if generate is None:
        raise NarrativeError("No narrative backend configured (missing API credential?)")
    prompt = build_prompt(request)
    try:
        text = generate(prompt, system_instruction)
    except NarrativeError:
        raise
    except Exception as e:
        logger.error("Narrative request failed: %s", e)
        raise NarrativeError(f"Narrative service failed: {e}") from e
    return parse_narrative_response(text)


def gemini_backend(
    api_key: str | None = None,
    model: str = GEMINI_MODEL,
    client=None,
) -> GenerateFn:
    """
    Text-generation backend on Google's Gemini API (`google-genai`).

    The key falls back to the `API_KEY` environment variable. Responses are requested
    as JSON constrained to the four narrative fields. `client` replaces the
    `genai.Client` (any object with `models.generate_content`).
    """
    if client is None:
        key = api_key if api_key is not None else os.environ.get(API_KEY_ENV, "")
        if not key:
            raise NarrativeError(f"Gemini API key is missing; set {API_KEY_ENV} or pass api_key.")
    try:
        from google import genai  # type: ignore
        from google.genai import types  # type: ignore
    except Exception as e:  # pragma: no cover
        raise RuntimeError("The Gemini backend requires google-genai (pip install binocularlab[narrative]).") from e

    if client is None:
        client = genai.Client(api_key=key)
    schema = types.Schema(
        type=types.Type.OBJECT,
        properties={name: types.Schema(type=types.Type.STRING) for name in RESPONSE_FIELDS},
        required=list(RESPONSE_FIELDS),
    )

    def generate(prompt: str, system_instruction: str) -> str:
        response = client.models.generate_content(
            model=model,
            contents=prompt,
            config=types.GenerateContentConfig(
                system_instruction=system_instruction,
                response_mime_type="application/json",
                response_schema=schema,
            ),
        )
        return response.text

    return generate


class NarrativeClient:
    """
    Fire-and-forget submission of narrative requests off the render loop.

    Callbacks run on the worker thread and receive only text results; they must not
    touch rig or viewport state. Earlier in-flight requests are not cancelled.
    """

    def __init__(
        self,
        generate: GenerateFn | None,
        executor: Executor | None = None,
        system_instruction: str = SYSTEM_INSTRUCTION,
    ) -> None:
        self.generate = generate
        self.system_instruction = system_instruction
        self._owns_executor = executor is None
        self._executor = executor if executor is not None else ThreadPoolExecutor(max_workers=1)

    def submit(
        self,
        request: NarrativeRequest,
        on_result: Callable[[NarrativeResult], None] | None = None,
        on_error: Callable[[NarrativeError], None] | None = None,
    ) -> Future:
        def _run() -> NarrativeResult | None:
            try:
                result = analyze(request, self.generate, self.system_instruction)
            except NarrativeError as e:
                if on_error is None:
                    raise
                on_error(e)
                return None
            if on_result is not None:
                on_result(result)
            return result

        return self._executor.submit(_run)

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def __enter__(self) -> "NarrativeClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
