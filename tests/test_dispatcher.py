"""Tests for command parsing and message routing."""

import logging
import time

import pytest
import requests

from conftest import FakeClient, PNG_BASE64, make_message
from coachbot.bot import MessageDispatcher, parse_command
from coachbot.bot.dispatcher import (
    APOLOGY_REPLY,
    DISABLED_REPLY,
    FAILURE_REACTION,
    HELP_REPLY,
    NO_ESTIMATE_REPLY,
    PENDING_REACTION,
    SUCCESS_REACTION,
    USAGE,
)
from coachbot.infrastructure.storage import MediaStore
from coachbot.infrastructure.whatsapp import ChatMessage, MediaPayload
from coachbot.prompts import NOTHING_TO_SUMMARIZE
from coachbot.prompts.templates import CALORIE_SYSTEM_PROMPT, QNA_SYSTEM_PROMPT, SUMMARY_SYSTEM_PROMPT

CHAT_ID = "4917612345678@c.us"
FLAT_REPLY = '{"kcal_low":300,"kcal_high":450,"protein_g":25,"carbs_g":40,"fat_g":12,"notes":"x"}'


@pytest.fixture
def media_store(tmp_path):
    return MediaStore(tmp_path / "downloads")


def make_dispatcher(provider, client, media_store):
    return MessageDispatcher(
        provider, client, media_store=media_store, summary_lookback_hours=24, summary_max_messages=50
    )


@pytest.mark.parametrize("body, expected", [
    ("/ask what is zone 2?", ("qna", "what is zone 2?")),
    ("/ASK   Shouting works too ", ("qna", "Shouting works too")),
    ("!ask legacy style", ("qna", "legacy style")),
    ("/science creatine", ("science", "creatine")),
    ("/summary", ("summary", "")),
    ("/calories\n2 eggs and toast", ("calories", "2 eggs and toast")),
    ("/help", ("help", "")),
    ("/ask", ("qna", "")),
    ("/askme anything", (None, "/askme anything")),
    ("hello there", (None, "hello there")),
    ("", (None, "")),
    (None, (None, "")),
])
def test_parse_command(body, expected):
    assert parse_command(body) == expected


def test_ask_reacts_and_sends_answer(provider, media_store):
    client = FakeClient(text_reply="Aim for 1.6 g/kg.")
    message = make_message("/ask how much protein?")

    make_dispatcher(provider, client, media_store).handle(message)

    assert provider.sent == [(CHAT_ID, "Aim for 1.6 g/kg.")]
    assert provider.reactions == [(message.id, PENDING_REACTION), (message.id, SUCCESS_REACTION)]
    assert client.text_calls[0]["system"] == QNA_SYSTEM_PROMPT
    assert "User: how much protein?" in client.text_calls[0]["prompt"]


@pytest.mark.parametrize("body, usage_key", [
    ("/ask", "qna"),
    ("/ask    ", "qna"),
    ("/science", "science"),
    ("/calories", "calories"),
])
def test_missing_argument_gets_usage_reply(provider, client, media_store, body, usage_key):
    message = make_message(body)

    make_dispatcher(provider, client, media_store).handle(message)

    assert provider.replies == [(message.id, USAGE[usage_key])]
    assert provider.reactions == []
    assert client.text_calls == []


def test_disabled_client_gets_configuration_reply(provider, media_store):
    client = FakeClient(enabled=False)
    message = make_message("/science sauna")

    make_dispatcher(provider, client, media_store).handle(message)

    assert provider.replies == [(message.id, DISABLED_REPLY)]
    assert provider.reactions == []
    assert provider.sent == []


def test_remote_failure_gets_warning_reaction_and_apology(provider, media_store, caplog):
    client = FakeClient(error=requests.HTTPError("502 Bad Gateway"))
    message = make_message("/ask is fasting good?")

    with caplog.at_level(logging.ERROR):
        make_dispatcher(provider, client, media_store).handle(message)

    assert provider.reactions == [(message.id, PENDING_REACTION), (message.id, FAILURE_REACTION)]
    assert provider.replies == [(message.id, APOLOGY_REPLY)]
    assert provider.sent == []
    assert "502 Bad Gateway" in caplog.text


def test_plain_text_is_ignored(provider, client, media_store):
    make_dispatcher(provider, client, media_store).handle(make_message("good morning"))

    assert provider.sent == provider.replies == provider.reactions == []
    assert client.text_calls == []


def test_own_messages_are_ignored(provider, client, media_store):
    make_dispatcher(provider, client, media_store).handle(make_message("/ask hi", from_me=True))

    assert provider.sent == provider.replies == provider.reactions == []


def test_help_lists_commands(provider, client, media_store):
    message = make_message("/help")

    make_dispatcher(provider, client, media_store).handle(message)

    assert provider.replies == [(message.id, HELP_REPLY)]
    assert "/calories" in HELP_REPLY


def test_text_calorie_estimate_is_formatted(provider, media_store):
    client = FakeClient(text_reply=FLAT_REPLY)

    make_dispatcher(provider, client, media_store).handle(make_message("/calories pizza slice"))

    (chat_id, text), = provider.sent
    assert chat_id == CHAT_ID
    assert "300–450 kcal" in text
    assert client.text_calls[0]["system"] == CALORIE_SYSTEM_PROMPT


def test_unusable_calorie_reply_asks_for_more_detail(provider, media_store):
    client = FakeClient(text_reply="No idea, sorry.")

    make_dispatcher(provider, client, media_store).handle(make_message("/calories something"))

    assert provider.sent == [(CHAT_ID, NO_ESTIMATE_REPLY)]


def test_summary_uses_recent_chat_history(provider, media_store):
    client = FakeClient(text_reply="Overview: planning a run.")
    provider.history[CHAT_ID] = [ChatMessage(body="Run tomorrow at 7?", timestamp=None, from_me=False)]

    make_dispatcher(provider, client, media_store).handle(make_message("/summary"))

    assert provider.sent == [(CHAT_ID, "Overview: planning a run.")]
    call = client.text_calls[0]
    assert call["system"] == SUMMARY_SYSTEM_PROMPT
    assert "Them: Run tomorrow at 7?" in call["prompt"]


def test_summary_of_empty_chat(provider, client, media_store):
    make_dispatcher(provider, client, media_store).handle(make_message("/summary"))

    assert provider.sent == [(CHAT_ID, NOTHING_TO_SUMMARIZE)]
    assert client.text_calls == []


def test_image_without_command_is_saved_and_captioned(provider, media_store):
    client = FakeClient(image_reply="A bowl of oats with berries.")
    message = make_message(has_media=True)
    provider.media[message.id] = MediaPayload(data=PNG_BASE64, mimetype="image/png")

    make_dispatcher(provider, client, media_store).handle(message)

    saved = list(media_store.downloads_dir.iterdir())
    assert len(saved) == 1 and saved[0].suffix == ".png"
    assert provider.sent == [(CHAT_ID, "🖼️ Caption: A bowl of oats with berries.")]
    assert client.image_calls[0]["base64_data"] == PNG_BASE64


def test_caption_failure_is_swallowed_but_file_is_kept(provider, media_store):
    client = FakeClient(error=requests.ConnectionError("offline"))
    message = make_message(has_media=True)
    provider.media[message.id] = MediaPayload(data=PNG_BASE64, mimetype="image/png")

    make_dispatcher(provider, client, media_store).handle(message)

    assert len(list(media_store.downloads_dir.iterdir())) == 1
    assert provider.sent == provider.replies == []


def test_image_with_disabled_client_is_only_saved(provider, media_store):
    client = FakeClient(enabled=False)
    message = make_message(has_media=True)
    provider.media[message.id] = MediaPayload(data=PNG_BASE64, mimetype="image/png")

    make_dispatcher(provider, client, media_store).handle(message)

    assert len(list(media_store.downloads_dir.iterdir())) == 1
    assert provider.sent == provider.replies == []


def test_non_image_attachment_is_only_saved(provider, client, media_store):
    message = make_message(has_media=True)
    provider.media[message.id] = MediaPayload(data=PNG_BASE64, mimetype="application/pdf", filename="plan")

    make_dispatcher(provider, client, media_store).handle(message)

    assert [p.name for p in media_store.downloads_dir.iterdir()] == ["plan.pdf"]
    assert client.image_calls == []


def test_photo_with_calories_caption_estimates_from_image(provider, media_store):
    client = FakeClient(image_reply=FLAT_REPLY)
    message = make_message("/calories", has_media=True)
    provider.media[message.id] = MediaPayload(data=PNG_BASE64, mimetype="image/png")

    make_dispatcher(provider, client, media_store).handle(message)

    call = client.image_calls[0]
    assert call["system"] == CALORIE_SYSTEM_PROMPT
    assert call["mime_type"] == "image/png"
    assert "300–450 kcal" in provider.sent[0][1]
    assert provider.reactions[-1] == (message.id, SUCCESS_REACTION)
    assert len(list(media_store.downloads_dir.iterdir())) == 1


def test_attachment_with_other_command_still_routes(provider, media_store):
    client = FakeClient(text_reply="answer")
    message = make_message("/ask what is in this?", has_media=True)
    provider.media[message.id] = MediaPayload(data=PNG_BASE64, mimetype="image/png")

    make_dispatcher(provider, client, media_store).handle(message)

    assert provider.sent == [(CHAT_ID, "answer")]
    assert client.image_calls == []
    assert len(list(media_store.downloads_dir.iterdir())) == 1


def test_missing_payload_is_logged(provider, client, media_store, caplog):
    message = make_message(has_media=True)

    with caplog.at_level(logging.WARNING):
        make_dispatcher(provider, client, media_store).handle(message)

    assert "no payload downloaded" in caplog.text
    assert client.image_calls == []


def test_download_error_does_not_escape(provider, client, media_store, caplog):
    provider.download_error = RuntimeError("blob fetch failed")
    message = make_message(has_media=True)

    with caplog.at_level(logging.ERROR):
        make_dispatcher(provider, client, media_store).handle(message)

    assert "blob fetch failed" in caplog.text
    assert not media_store.downloads_dir.exists()


@pytest.mark.parametrize("lookback_hours, max_messages", [(0, 50), (24, 0)])
def test_explicit_zero_summary_window_is_honored(provider, media_store, lookback_hours, max_messages):
    client = FakeClient(text_reply="should not be used")
    recent = int(time.time()) - 60
    provider.history[CHAT_ID] = [ChatMessage(body="Run tomorrow at 7?", timestamp=recent)]
    dispatcher = MessageDispatcher(
        provider,
        client,
        media_store=media_store,
        summary_lookback_hours=lookback_hours,
        summary_max_messages=max_messages,
    )

    dispatcher.handle(make_message("/summary"))

    assert provider.sent == [(CHAT_ID, NOTHING_TO_SUMMARIZE)]
    assert client.text_calls == []
