from .base import InputRequiredError
from .calorie_estimator import (
    CalorieEstimate,
    build_calorie_prompt,
    estimate_plate_calories,
    format_calorie_estimate,
    parse_calorie_estimate,
)
from .chat_summary import (
    NOTHING_TO_SUMMARIZE,
    build_chat_summary_prompt,
    build_transcript,
    summarize_recent_chat,
)
from .qna import build_qna_prompt, generate_qna_response
from .science_brief import build_science_brief_prompt, generate_science_brief
from .templates import COMMANDS

__all__ = [
    "COMMANDS",
    "CalorieEstimate",
    "InputRequiredError",
    "NOTHING_TO_SUMMARIZE",
    "build_calorie_prompt",
    "build_chat_summary_prompt",
    "build_qna_prompt",
    "build_science_brief_prompt",
    "build_transcript",
    "estimate_plate_calories",
    "format_calorie_estimate",
    "generate_qna_response",
    "generate_science_brief",
    "parse_calorie_estimate",
    "summarize_recent_chat",
]
