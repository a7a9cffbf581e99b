from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor
from types import SimpleNamespace

import pytest

from binocularlab.api.narrative import (
    SYSTEM_INSTRUCTION,
    SYSTEM_INSTRUCTION_ZH,
    NarrativeClient,
    NarrativeError,
    NarrativeRequest,
    NarrativeResult,
    analyze,
    build_prompt,
    gemini_backend,
    parse_narrative_response,
)
from binocularlab.params import OpticalParameters

GOOD = {
    "title": "Standard Human Vision",
    "explanation": "A 64 mm baseline gives comfortable stereopsis.",
    "depthImplications": "Disparity is small at 2.5 m.",
    "technicalNote": "Matches typical HMD settings.",
}


def _request() -> NarrativeRequest:
    return NarrativeRequest.from_params(OpticalParameters(ipd_mm=64.0, target_distance_m=2.5, focal_length_mm=50.0))


def test_prompt_mentions_every_parameter():
    prompt = build_prompt(_request())
    assert "64 mm" in prompt
    assert "50 mm" in prompt
    assert "2.5 meters" in prompt
    for field in ("title", "explanation", "depthImplications", "technicalNote"):
        assert field in prompt


def test_parse_good_response():
    result = parse_narrative_response(json.dumps(GOOD))
    assert result == NarrativeResult(
        title=GOOD["title"],
        explanation=GOOD["explanation"],
        depth_implications=GOOD["depthImplications"],
        technical_note=GOOD["technicalNote"],
    )


@pytest.mark.parametrize(
    "text",
    [None, "", "   ", "not json", "[1, 2]", json.dumps({k: v for k, v in GOOD.items() if k != "technicalNote"})],
)
def test_parse_rejects_unusable_responses(text):
    with pytest.raises(NarrativeError):
        parse_narrative_response(text)


def test_analyze_passes_prompt_and_system_instruction():
    seen = {}

    def generate(prompt: str, system: str) -> str:
        seen["prompt"] = prompt
        seen["system"] = system
        return json.dumps(GOOD)

    result = analyze(_request(), generate)
    assert result.title == GOOD["title"]
    assert seen["system"] == SYSTEM_INSTRUCTION
    assert seen["prompt"] == build_prompt(_request())


def test_missing_backend_is_a_single_error():
    with pytest.raises(NarrativeError, match="backend"):
        analyze(_request(), None)


def test_backend_failure_is_wrapped():
    def generate(prompt: str, system: str) -> str:
        raise ConnectionError("network down")

    with pytest.raises(NarrativeError) as excinfo:
        analyze(_request(), generate)
    assert isinstance(excinfo.value.__cause__, ConnectionError)


def test_client_delivers_results_and_errors():
    results = []
    errors = []
    with ThreadPoolExecutor(max_workers=1) as pool:
        good = NarrativeClient(lambda p, s: json.dumps(GOOD), executor=pool)
        bad = NarrativeClient(lambda p, s: "{}", executor=pool)
        f1 = good.submit(_request(), on_result=results.append, on_error=errors.append)
        f2 = bad.submit(_request(), on_result=results.append, on_error=errors.append)
        assert f1.result(timeout=5).title == GOOD["title"]
        assert f2.result(timeout=5) is None
    assert len(results) == 1
    assert len(errors) == 1
    assert isinstance(errors[0], NarrativeError)


def test_client_without_error_callback_surfaces_through_future():
    with NarrativeClient(None) as client:
        future = client.submit(_request())
        with pytest.raises(NarrativeError):
            future.result(timeout=5)


def test_system_instruction_can_be_switched_to_chinese():
    seen = []

    def generate(prompt: str, system: str) -> str:
        seen.append(system)
        return json.dumps(GOOD)

    analyze(_request(), generate, SYSTEM_INSTRUCTION_ZH)
    with NarrativeClient(generate, system_instruction=SYSTEM_INSTRUCTION_ZH) as client:
        client.submit(_request()).result(timeout=5)
    assert seen == [SYSTEM_INSTRUCTION_ZH, SYSTEM_INSTRUCTION_ZH]
    assert "中文" in SYSTEM_INSTRUCTION_ZH


def test_gemini_backend_requires_a_key(monkeypatch):
    monkeypatch.delenv("API_KEY", raising=False)
    with pytest.raises(NarrativeError, match="API_KEY"):
        gemini_backend()
    with pytest.raises(NarrativeError):
        gemini_backend(api_key="")


class _FakeModels:
    def __init__(self, text):
        self.text = text
        self.calls = []

    def generate_content(self, model, contents, config):
        self.calls.append((model, contents, config))
        return SimpleNamespace(text=self.text)


def test_gemini_backend_requests_structured_json():
    pytest.importorskip("google.genai")
    models = _FakeModels(json.dumps(GOOD))
    backend = gemini_backend(model="gemini-test", client=SimpleNamespace(models=models))

    result = analyze(_request(), backend)
    assert result.title == GOOD["title"]

    model, contents, config = models.calls[0]
    assert model == "gemini-test"
    assert contents == build_prompt(_request())
    assert config.system_instruction == SYSTEM_INSTRUCTION
    assert config.response_mime_type == "application/json"
    assert sorted(config.response_schema.required) == sorted(GOOD)
    assert set(config.response_schema.properties) == set(GOOD)


def test_gemini_empty_response_is_a_narrative_error():
    pytest.importorskip("google.genai")
    backend = gemini_backend(client=SimpleNamespace(models=_FakeModels(None)))
    with pytest.raises(NarrativeError, match="Empty"):
        analyze(_request(), backend)
