# -*- coding: utf-8 -*-
from __future__ import annotations
from typing import Any, Dict, List

# ============ Drawing analysis (single fixed prompt) ============
ANALYSIS_PROMPT = (
    "You are an expert child psychologist specializing in art therapy.\n"
    "Analyze this child's drawing and provide insights about their emotional state, "
    "creativity level, and potential areas of focus for parents or therapists.\n"
    "\n"
    "Please structure your analysis with these sections:\n"
    "1. Primary Emotion (single word)\n"
    "2. Secondary Emotion (single word)\n"
    "3. Stroke Intensity (Light/Medium/Heavy)\n"
    "4. Colors Analysis (what the color choices might indicate)\n"
    "5. Detailed Analysis (2-3 sentences about the drawing's psychological implications)\n"
    "6. Suggested Actions (3 brief recommendations for parents/therapists)\n"
    "\n"
    "Keep your analysis positive, supportive, and focused on growth opportunities."
)


def build_analysis_messages(image_dataurl: str) -> List[Dict[str, Any]]:
    """One user turn: the fixed prompt followed by the drawing as an image_url part."""
    return [
        {
            "role": "user",
            "content": [
                {"type": "text", "text": ANALYSIS_PROMPT},
                {"type": "image_url", "image_url": {"url": image_dataurl}},
            ],
        }
    ]
