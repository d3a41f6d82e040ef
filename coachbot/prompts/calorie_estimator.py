"""
Plate Calorie Estimator
=======================

Builds the calorie prompt from a meal photo and/or caption, asks the model
for JSON, and parses the reply leniently into a CalorieEstimate.

PARSING RULES:
- The first balanced {...} block in the reply is taken, prose around it is ignored
- Each numeric field is coerced on its own; anything unusable becomes 0
- A result whose numbers are all 0 counts as no result (None)
- The parser never raises: None is the only failure signal
"""

import json
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Optional

from ..infrastructure.llm import OpenRouterClient
from .base import ensure_enabled, require_text
from .templates import CALORIE_PROMPT_TEMPLATE, CALORIE_SYSTEM_PROMPT, NO_CAPTION_LINE

logger = logging.getLogger(__name__)

NUMERIC_FIELDS = ("kcal_low", "kcal_high", "protein_g", "carbs_g", "fat_g")

# flat field -> (totals key, bound); bound None means midpoint of low/high
_TOTALS_FALLBACK = {
    "kcal_low": ("kcal", "low"),
    "kcal_high": ("kcal", "high"),
    "protein_g": ("p", None),
    "carbs_g": ("c", None),
    "fat_g": ("f", None),
}

_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_LEADING_NUMBER = re.compile(r"-?(?:\d+\.?\d*|\.\d+)")


@dataclass(frozen=True)
class CalorieEstimate:
    """Calorie range and macros for one meal. All numbers are finite."""
    kcal_low: float = 0.0
    kcal_high: float = 0.0
    protein_g: float = 0.0
    carbs_g: float = 0.0
    fat_g: float = 0.0
    notes: str = ""


def build_calorie_prompt(caption: Optional[str] = None, has_image: bool = False) -> str:
    """
    Fill the calorie template.

    The caption may be left out only when a photo comes with it; a
    text-only estimate needs a description of the meal.
    """
    if has_image:
        caption_line = (caption or "").strip() or NO_CAPTION_LINE
    else:
        caption_line = require_text(caption, "Caption is required to build a calorie estimate prompt.")
    return CALORIE_PROMPT_TEMPLATE.format(caption=caption_line)


def _first_json_object(text: str) -> Optional[str]:
    """Return the first top-level balanced {...} block, honoring string literals."""
    in_str = False
    escaped = False
    depth = 0
    start = None

    for i, ch in enumerate(text):
        if in_str:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_str = False
            continue

        if ch == '"':
            # quotes only matter inside an object
            in_str = depth > 0
        elif ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def _coerce_number(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0

    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return 0.0
        return number if math.isfinite(number) else 0.0

    if isinstance(value, str):
        match = _LEADING_NUMBER.match(_NON_NUMERIC.sub("", value))
        if not match:
            return 0.0
        number = float(match.group(0))
        return number if math.isfinite(number) else 0.0

    return 0.0


def _from_totals(totals: dict, field_name: str) -> float:
    key, bound = _TOTALS_FALLBACK[field_name]
    block = totals.get(key)
    if not isinstance(block, dict):
        return _coerce_number(block)

    if bound:
        return _coerce_number(block.get(bound))

    low = _coerce_number(block.get("low"))
    high = _coerce_number(block.get("high"))
    if low and high:
        return (low + high) / 2
    return low or high


def _coerce_notes(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        value = [*(value.get("assumptions") or []), *(value.get("uncertainty") or [])]
    if isinstance(value, list):
        return "; ".join(str(item).strip() for item in value if isinstance(item, str) and item.strip())
    return ""


def parse_calorie_estimate(text: Optional[str]) -> Optional[CalorieEstimate]:
    """
    Parse a model reply into a CalorieEstimate.

    Accepts the flat shape {"kcal_low", "kcal_high", "protein_g", "carbs_g",
    "fat_g", "notes"} and, for fields missing there, the nested "totals"
    block the calorie prompt asks for.

    Returns:
        CalorieEstimate, or None when nothing usable was found.
    """
    candidate = _first_json_object(text or "")
    if candidate is None:
        return None

    try:
        data = json.loads(candidate)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None

    totals = data.get("totals")
    if not isinstance(totals, dict):
        totals = {}

    values = {}
    for field_name in NUMERIC_FIELDS:
        if field_name in data:
            values[field_name] = _coerce_number(data[field_name])
        else:
            values[field_name] = _from_totals(totals, field_name)

    # An all-zero estimate is treated as a failed parse
    if all(value == 0 for value in values.values()):
        return None

    return CalorieEstimate(notes=_coerce_notes(data.get("notes")), **values)


def format_calorie_estimate(estimate: CalorieEstimate) -> str:
    """Short WhatsApp reply for an estimate."""
    lines = [
        f"🍽️ Estimated: {estimate.kcal_low:.0f}–{estimate.kcal_high:.0f} kcal",
        f"Protein ~{estimate.protein_g:.0f} g | Carbs ~{estimate.carbs_g:.0f} g | Fat ~{estimate.fat_g:.0f} g",
    ]
    if estimate.notes:
        lines.append(f"Notes: {estimate.notes}")
    return "\n".join(lines)


def estimate_plate_calories(
    client: OpenRouterClient,
    caption: Optional[str] = None,
    image_base64: Optional[str] = None,
    mime_type: Optional[str] = None,
) -> Optional[CalorieEstimate]:
    """
    Estimate calories for a meal photo, a meal description, or both.

    Raises:
        InputRequiredError: neither an image nor a caption was given.
        OpenRouterDisabledError: no API key configured.
    """
    has_image = bool(image_base64)
    prompt = build_calorie_prompt(caption, has_image=has_image)
    ensure_enabled(client)

    if has_image:
        raw = client.describe_image(
            base64_data=image_base64,
            mime_type=mime_type,
            instruction=prompt,
            system=CALORIE_SYSTEM_PROMPT,
        )
    else:
        raw = client.generate_text(prompt, CALORIE_SYSTEM_PROMPT)

    estimate = parse_calorie_estimate(raw)
    if estimate is None:
        logger.warning(f"Could not parse a calorie estimate from reply: {raw[:120]!r}")
    return estimate
