"""Keyword vocabulary shared by the complexity estimator and the task planner.

Matching is case-insensitive and whole-word, so "authentication" does not
count as "auth" and "profile" does not count as "file".
"""

import re
from typing import Dict, List, Pattern

from contracts import DetectedFeatures


FEATURE_PATTERNS: Dict[str, Pattern[str]] = {
    "authentication": re.compile(
        r"\b(auth|login|signup|sign.?up|sign.?in|password|oauth|jwt|session)\b", re.IGNORECASE
    ),
    "database": re.compile(
        r"\b(database|db|storage|persist|crud|sql|postgres|mysql|mongo|supabase|firebase)\b",
        re.IGNORECASE,
    ),
    "payments": re.compile(
        r"\b(payment|stripe|checkout|subscription|billing|purchase|cart|e.?commerce)\b",
        re.IGNORECASE,
    ),
    "file_upload": re.compile(
        r"\b(upload|file|image|media|attachment|storage|s3|blob)\b", re.IGNORECASE
    ),
    "realtime": re.compile(
        r"\b(realtime|real.?time|websocket|live|streaming|notification|chat)\b", re.IGNORECASE
    ),
    "dashboard": re.compile(
        r"\b(dashboard|analytics|charts?|metrics|reporting)\b", re.IGNORECASE
    ),
}

API_INTEGRATION_PATTERN = re.compile(
    r"\b(api|integration|third.?party|external|webhook)\b", re.IGNORECASE
)

FORM_PATTERN = re.compile(r"\b(form|input|submit|validation)\b", re.IGNORECASE)

PAGE_PATTERN = re.compile(
    r"\b(page|screen|view|route|dashboard|home|landing|profile|settings)\b", re.IGNORECASE
)


def detect_features(text: str) -> DetectedFeatures:
    """Detect feature flags and counts in a requirements document."""
    flags = {name: bool(pattern.search(text)) for name, pattern in FEATURE_PATTERNS.items()}
    return DetectedFeatures(
        **flags,
        api_integration_count=len(API_INTEGRATION_PATTERN.findall(text)),
        form_count=len(FORM_PATTERN.findall(text)),
    )


def distinct_page_words(text: str) -> List[str]:
    """Distinct page/route vocabulary words in order of first appearance."""
    seen: List[str] = []
    for match in PAGE_PATTERN.finditer(text):
        word = match.group(0).lower()
        if word not in seen:
            seen.append(word)
    return seen
