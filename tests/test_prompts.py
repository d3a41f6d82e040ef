"""Tests for the prompt builders and the text generation flows."""

import re

import pytest

from conftest import FakeClient
from coachbot.infrastructure.llm import OpenRouterDisabledError
from coachbot.prompts import (
    InputRequiredError,
    build_calorie_prompt,
    build_chat_summary_prompt,
    build_qna_prompt,
    build_science_brief_prompt,
    generate_qna_response,
    generate_science_brief,
)
from coachbot.prompts.templates import NO_CAPTION_LINE, QNA_SYSTEM_PROMPT, SCIENCE_SYSTEM_PROMPT

PLACEHOLDER = re.compile(r"\{[a-z_]+\}")

BUILDERS = [
    build_qna_prompt,
    build_science_brief_prompt,
    build_calorie_prompt,
    build_chat_summary_prompt,
]


@pytest.mark.parametrize("builder", BUILDERS)
def test_builder_inserts_trimmed_input_without_placeholders(builder):
    prompt = builder("   How much protein after a workout? {curly} \n")

    assert "How much protein after a workout? {curly}" in prompt
    assert "   How much protein" not in prompt
    # user text may contain braces; template placeholders may not survive
    assert not PLACEHOLDER.findall(prompt.replace("{curly}", ""))


@pytest.mark.parametrize("builder", BUILDERS)
@pytest.mark.parametrize("blank", ["", "   ", "\n\t", None])
def test_builder_rejects_blank_required_input(builder, blank):
    with pytest.raises(InputRequiredError):
        builder(blank)


def test_input_required_error_is_a_value_error():
    assert issubclass(InputRequiredError, ValueError)


def test_qna_context_absent_renders_empty_section():
    prompt = build_qna_prompt("Is creatine safe?")
    assert "Context:" not in prompt
    assert prompt.startswith("User: Is creatine safe?\n\nReply with:")


def test_qna_blank_context_renders_empty_section():
    assert build_qna_prompt("Is creatine safe?", "   ") == build_qna_prompt("Is creatine safe?")


def test_qna_context_present():
    prompt = build_qna_prompt("Is creatine safe?", "  I have kidney issues ")
    assert "Context: I have kidney issues\n" in prompt


def test_science_brief_sections_and_context():
    prompt = build_science_brief_prompt("Cold plunges", "recovery after lifting")
    assert prompt.startswith("Topic: Cold plunges\nContext: recovery after lifting")
    for section in ("Evidence:", "Uncertainties:", "Practical:"):
        assert section in prompt

    assert "Context:" not in build_science_brief_prompt("Cold plunges")


def test_calorie_prompt_keeps_json_schema_braces():
    prompt = build_calorie_prompt("dal, rice and curd")
    assert "Caption: dal, rice and curd" in prompt
    assert '"totals": {' in prompt
    assert '"kcal": { "low": int, "high": int }' in prompt


def test_calorie_prompt_with_image_allows_missing_caption():
    prompt = build_calorie_prompt(None, has_image=True)
    assert f"Caption: {NO_CAPTION_LINE}" in prompt


def test_calorie_prompt_with_image_keeps_caption():
    prompt = build_calorie_prompt(" lunch ", has_image=True)
    assert "Caption: lunch\n" in prompt


def test_generate_qna_response_uses_system_prompt():
    client = FakeClient(text_reply="Eat 20-40 g protein.")

    result = generate_qna_response(client, "  post-workout protein?  ", context="vegetarian")

    assert result == "Eat 20-40 g protein."
    assert len(client.text_calls) == 1
    call = client.text_calls[0]
    assert call["system"] == QNA_SYSTEM_PROMPT
    assert "User: post-workout protein?" in call["prompt"]
    assert "Context: vegetarian" in call["prompt"]


def test_generate_science_brief_uses_system_prompt():
    client = FakeClient(text_reply="Evidence: ...")

    assert generate_science_brief(client, "creatine") == "Evidence: ..."
    assert client.text_calls[0]["system"] == SCIENCE_SYSTEM_PROMPT


@pytest.mark.parametrize("generate", [generate_qna_response, generate_science_brief])
def test_blank_input_fails_before_any_api_call(generate):
    client = FakeClient()

    with pytest.raises(InputRequiredError):
        generate(client, "   ")

    assert client.text_calls == []


@pytest.mark.parametrize("generate", [generate_qna_response, generate_science_brief])
def test_disabled_client_fails_without_api_call(generate):
    client = FakeClient(enabled=False)

    with pytest.raises(OpenRouterDisabledError):
        generate(client, "creatine")

    assert client.text_calls == []
