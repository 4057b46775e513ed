"""Tests for reply directives and the outbound service."""

import pytest

from fakes import FakeMessageLog, FakeMessengerClient
from messenger_bot.errors import TransportError
from messenger_bot.messaging.outbound import (
    ButtonTemplate,
    Element,
    ListTemplate,
    LoginButton,
    LogoutButton,
    MessagingType,
    PostbackButton,
    QuickReplies,
    QuickReplyOption,
    UrlButton,
    render_message,
)
from messenger_bot.services.outbound_service import OutboundService


def test_text_reply_is_a_response():
    body = render_message("123", "hello")
    assert body == {
        "messaging_type": "RESPONSE",
        "recipient": {"id": "123"},
        "message": {"text": "hello"},
    }


def test_broadcast_tag():
    body = render_message("123", "news", MessagingType.NON_PROMOTIONAL_SUBSCRIPTION)
    assert body["messaging_type"] == "NON_PROMOTIONAL_SUBSCRIPTION"


def test_quick_replies():
    body = render_message("1", QuickReplies("Pick", [QuickReplyOption("Yes", "nickname_ask_yes")]))
    assert body["message"] == {
        "text": "Pick",
        "quick_replies": [{"content_type": "text", "title": "Yes", "payload": "nickname_ask_yes"}],
    }


def test_button_template_wire_format():
    template = ButtonTemplate(
        "Menu",
        [LoginButton("https://bot/register"), LogoutButton(), PostbackButton("Info", "info")],
    )
    payload = render_message("1", template)["message"]["attachment"]
    assert payload["type"] == "template"
    assert payload["payload"] == {
        "template_type": "button",
        "text": "Menu",
        "buttons": [
            {"type": "account_link", "url": "https://bot/register"},
            {"type": "account_unlink"},
            {"type": "postback", "title": "Info", "payload": "info"},
        ],
    }


@pytest.mark.parametrize("count", [0, 4])
def test_button_template_rejects_bad_button_count(count):
    with pytest.raises(ValueError):
        ButtonTemplate("text", [LogoutButton()] * count)


def test_list_template():
    template = ListTemplate(
        [Element("One", subtitle="first"), Element("Two", default_action=UrlButton("https://x", "x"))],
        big_top=False,
    )
    payload = render_message("1", template)["message"]["attachment"]["payload"]
    assert payload["template_type"] == "list"
    assert payload["top_element_style"] == "compact"
    assert payload["elements"][1]["default_action"] == {"type": "web_url", "url": "https://x"}


def test_list_template_needs_two_elements():
    with pytest.raises(ValueError):
        ListTemplate([Element("Only")])


@pytest.mark.asyncio
async def test_deliver_persists_with_platform_id():
    client, log = FakeMessengerClient(), FakeMessageLog()
    outbound = OutboundService(client, log, page_id="page-1")

    message_id = await outbound.deliver("42", "hi")

    assert message_id == "mid.1"
    assert log.messages["mid.1"].recipient == "42"
    assert log.messages["mid.1"].sender == "page-1"
    assert log.messages["mid.1"].text == "hi"


@pytest.mark.asyncio
async def test_deliver_generates_local_id_when_platform_returns_none():
    client, log = FakeMessengerClient(), FakeMessageLog()
    client.return_ids = False
    outbound = OutboundService(client, log)

    message_id = await outbound.deliver("42", ButtonTemplate("Click", [LogoutButton()]))

    assert message_id.startswith("local-")
    assert log.messages[message_id].text == "Click"


@pytest.mark.asyncio
async def test_deliver_raises_and_reply_swallows_transport_errors():
    client, log = FakeMessengerClient(), FakeMessageLog()
    client.fail_for.add("42")
    outbound = OutboundService(client, log)

    with pytest.raises(TransportError):
        await outbound.deliver("42", "hi")
    assert await outbound.reply("42", "hi") is None
    assert log.messages == {}


@pytest.mark.asyncio
async def test_deliver_returns_id_when_persisting_fails():
    client, log = FakeMessengerClient(), FakeMessageLog()

    async def broken_upsert(**fields):
        raise RuntimeError("database is gone")

    log.upsert_message = broken_upsert
    outbound = OutboundService(client, log)

    assert await outbound.deliver("42", "hi") == "mid.1"
    assert [recipient for recipient, _, _ in client.sent] == ["42"]
