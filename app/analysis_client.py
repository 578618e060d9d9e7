# app/analysis_client.py
# -*- coding: utf-8 -*-
from __future__ import annotations
import os, re, time
from typing import Any, Dict, Optional, Tuple
from openai import OpenAI, APIStatusError, APIConnectionError, RateLimitError

from app.prompting import build_analysis_messages

DEFAULT_MODEL = "gpt-4o-mini"
MAX_RETRIES = 2  # Maximum number of retry attempts per request
RETRY_BACKOFF = 0.8  # Seconds; doubled per attempt
FALLBACK_MESSAGE = "Sorry, there was an error analyzing your drawing. Please try again."


class AnalysisError(Exception):
    """Failure of the analysis proxy; rendered to clients as {"error": message}."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


# ---------------------------------------- Client helpers ---------------------------------------- #
def _get_client() -> OpenAI:
    api_key  = (os.getenv("OPENAI_API_KEY") or "").strip()
    base_url = (os.getenv("OPENAI_BASE_URL") or "").strip() or None  # Recommended to include /v1
    if not api_key:
        print("[analysis] OPENAI_API_KEY missing. Set it in .env.")
        raise AnalysisError(500, "Server configuration error")
    # HTTPS_PROXY/HTTP_PROXY are picked up by httpx from the environment.
    return OpenAI(api_key=api_key, base_url=base_url)

def current_model() -> str:
    return (os.getenv("OPENAI_MODEL") or "").strip() or DEFAULT_MODEL

def _max_tokens() -> int:
    try:
        return int(os.getenv("ANALYSIS_MAX_TOKENS", "1024"))
    except ValueError:
        return 1024

def normalize_dataurl(image_data: str, image_mime: str = "image/png") -> str:
    """Return a data URL whether the input is bare base64 or already prefixed."""
    if not image_data:
        return ""
    if image_data.startswith("data:"):
        return image_data  # Already a data URL
    return f"data:{image_mime};base64,{image_data}"

def _status_of(exc: Optional[Exception]) -> int:
    status = getattr(exc, "status_code", None)
    if isinstance(status, int) and status >= 400:
        return status
    return 502

def analyze_drawing(image_data: str, model: Optional[str] = None) -> Tuple[str, Dict[str, Any]]:
    """
    Send the drawing to the vision model with the fixed art-therapy prompt.
    Returns (analysis_text, debug_info); raises AnalysisError on any failure.
    """
    dataurl = normalize_dataurl((image_data or "").strip())
    if not dataurl:
        raise AnalysisError(400, "No image data provided")

    client = _get_client()  # Fresh client per call so .env changes apply without restart
    messages = build_analysis_messages(dataurl)
    model_name = model or current_model()
    max_tokens = _max_tokens()

    last_err: Optional[Exception] = None
    for attempt in range(MAX_RETRIES + 1):
        try:
            resp = client.chat.completions.create(
                model=model_name,
                messages=messages,
                max_tokens=max_tokens,
            )
            content = (resp.choices[0].message.content or "").strip()
            if not content:
                raise ValueError("empty analysis in model response")
            debug = {
                "raw_text": content,
                "model": model_name,
                "max_tokens": max_tokens,
                "attempts": attempt + 1,
                "response_id": getattr(resp, "id", None),
            }
            return content, debug
        except (APIConnectionError, RateLimitError, APIStatusError) as e:
            last_err = e
            if attempt < MAX_RETRIES:
                time.sleep(RETRY_BACKOFF * (2 ** attempt))
                continue
        except Exception as e:
            last_err = e
            break

    print(f"[analysis] upstream failed: {last_err!r}")
    raise AnalysisError(_status_of(last_err), "Error analyzing drawing")


# ---------------------------------------- Dashboard helpers ---------------------------------------- #
_PRIMARY = re.compile(r"Primary Emotion[:\s*]+(\w+)", re.IGNORECASE)
_SECONDARY = re.compile(r"Secondary Emotion[:\s*]+(\w+)", re.IGNORECASE)

def extract_emotions(analysis: Optional[str]) -> Dict[str, str]:
    """Pull the primary/secondary emotion words out of an analysis text."""
    if not analysis:
        return {"primary": "creativity", "secondary": "joy"}
    primary = _PRIMARY.search(analysis)
    secondary = _SECONDARY.search(analysis)
    return {
        "primary": primary.group(1).lower() if primary else "creativity",
        "secondary": secondary.group(1).lower() if secondary else "joy",
    }
