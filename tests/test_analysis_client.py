import httpx
import pytest
from openai import APIConnectionError, RateLimitError

from app import analysis_client as A
from app.prompting import ANALYSIS_PROMPT

PNG = "data:image/png;base64,iVBORw0KGgo="
_REQ = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def _rate_limited():
    return RateLimitError("rate limited", response=httpx.Response(429, request=_REQ), body=None)


def test_normalize_dataurl():
    assert A.normalize_dataurl("iVBORw0KGgo=") == PNG
    assert A.normalize_dataurl(PNG) == PNG
    assert A.normalize_dataurl("") == ""


def test_missing_image_is_400(fake_openai):
    fake_openai("unused")
    with pytest.raises(A.AnalysisError) as ei:
        A.analyze_drawing("   ")
    assert ei.value.status_code == 400
    assert ei.value.message == "No image data provided"


def test_missing_key_is_configuration_error(no_api_key):
    with pytest.raises(A.AnalysisError) as ei:
        A.analyze_drawing(PNG)
    assert ei.value.status_code == 500
    assert ei.value.message == "Server configuration error"


def test_sends_fixed_prompt_and_image(fake_openai):
    calls = fake_openai("Primary Emotion: Happy")
    text, dbg = A.analyze_drawing("iVBORw0KGgo=")

    assert text == "Primary Emotion: Happy"
    assert dbg["attempts"] == 1
    content = calls.calls[0]["messages"][0]["content"]
    assert content[0] == {"type": "text", "text": ANALYSIS_PROMPT}
    assert content[1] == {"type": "image_url", "image_url": {"url": PNG}}


def test_model_from_environment(fake_openai, monkeypatch):
    monkeypatch.setenv("OPENAI_MODEL", "vision-test-model")
    calls = fake_openai("ok")
    A.analyze_drawing(PNG)
    assert calls.calls[0]["model"] == "vision-test-model"


def test_transient_errors_are_retried(fake_openai):
    calls = fake_openai(APIConnectionError(request=_REQ), "Secondary Emotion: Curious")
    text, dbg = A.analyze_drawing(PNG)
    assert text == "Secondary Emotion: Curious"
    assert dbg["attempts"] == 2
    assert len(calls.calls) == 2


def test_exhausted_retries_keep_upstream_status(fake_openai):
    calls = fake_openai(_rate_limited())
    with pytest.raises(A.AnalysisError) as ei:
        A.analyze_drawing(PNG)
    assert ei.value.status_code == 429
    assert ei.value.message == "Error analyzing drawing"
    assert len(calls.calls) == A.MAX_RETRIES + 1


def test_unexpected_failure_is_502_without_retry(fake_openai):
    calls = fake_openai(RuntimeError("boom"))
    with pytest.raises(A.AnalysisError) as ei:
        A.analyze_drawing(PNG)
    assert ei.value.status_code == 502
    assert len(calls.calls) == 1


def test_empty_reply_is_an_error(fake_openai):
    fake_openai("")
    with pytest.raises(A.AnalysisError) as ei:
        A.analyze_drawing(PNG)
    assert ei.value.status_code == 502


@pytest.mark.parametrize(
    "text, expected",
    [
        (None, {"primary": "creativity", "secondary": "joy"}),
        ("", {"primary": "creativity", "secondary": "joy"}),
        ("1. Primary Emotion: Happy\n2. Secondary Emotion: Excited", {"primary": "happy", "secondary": "excited"}),
        ("**Primary Emotion:** Calm", {"primary": "calm", "secondary": "joy"}),
        ("primary emotion  Proud", {"primary": "proud", "secondary": "joy"}),
    ],
)
def test_extract_emotions(text, expected):
    assert A.extract_emotions(text) == expected
