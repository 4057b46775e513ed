"""End-to-end tests: webhook entry -> dispatcher -> conversation -> outbound."""

import itertools

import pytest

from database.models import ConversationState as S
from messenger_bot.messaging.outbound import (
    ButtonTemplate,
    LoginButton,
    LogoutButton,
    MessagingType,
    QuickReplies,
    SenderAction,
    TextReply,
)

_clock = itertools.count(1760688000000, 1000)


def _item(sender="psid-1", **kind):
    return {"sender": {"id": sender}, "recipient": {"id": "page-1"}, "timestamp": next(_clock), **kind}


def text(body, sender="psid-1", mid=None):
    return {"messaging": [_item(sender, message={"mid": mid or f"m-{next(_clock)}", "text": body})]}


def postback(payload, sender="psid-1"):
    return {"messaging": [_item(sender, postback={"title": payload, "payload": payload})]}


def quick_reply(payload, sender="psid-1"):
    return {"messaging": [_item(sender, message={"mid": f"q-{next(_clock)}", "text": payload, "quick_reply": {"payload": payload}})]}


def last_reply(client, recipient="psid-1"):
    return client.sent_to(recipient)[-1]


@pytest.fixture
def member(users):
    return users.add("psid-1", first_name="Jan", locale="pl_PL")


@pytest.fixture
def admin(users):
    return users.add("psid-admin", first_name="Ada", is_admin=True, is_registered=True)


@pytest.mark.asyncio
async def test_login_keyword_replies_with_login_button(dispatcher, client, config):
    assert await dispatcher.process_entry(text("login"))

    reply = last_reply(client)
    assert isinstance(reply, ButtonTemplate)
    assert len(reply.buttons) == 1
    assert isinstance(reply.buttons[0], LoginButton)
    assert reply.buttons[0].url == "https://bot.example.com/usos/register"
    assert reply.buttons[0].url.endswith(config.register_path)


@pytest.mark.asyncio
async def test_logout_keyword_is_trimmed_and_case_insensitive(dispatcher, client, member):
    await dispatcher.process_entry(text("  LogOut "))

    reply = last_reply(client)
    assert isinstance(reply, ButtonTemplate)
    assert reply.buttons == [LogoutButton()]


@pytest.mark.asyncio
async def test_admin_also_gets_login_button(dispatcher, client, admin):
    await dispatcher.process_entry(text("login", sender="psid-admin"))
    assert isinstance(last_reply(client, "psid-admin").buttons[0], LoginButton)


@pytest.mark.asyncio
async def test_unknown_sender_is_created_from_profile(dispatcher, client, users):
    client.profiles["psid-9"] = {"first_name": "Ola", "last_name": "K", "gender": "female", "locale": "pl_PL"}

    await dispatcher.process_entry(text("hej", sender="psid-9"))

    created = await users.get_by_facebook_id("psid-9")
    assert created.first_name == "Ola"
    assert created.state == S.NO_STATE
    assert last_reply(client, "psid-9").text.startswith("Sorry, I don't understand")


@pytest.mark.asyncio
async def test_inbound_text_is_persisted_and_marked_seen(dispatcher, container, client, member):
    await dispatcher.process_entry(text("hello", mid="m-in-1"))

    row = container.message_log_service.messages["m-in-1"]
    assert (row.sender, row.recipient, row.text) == ("psid-1", "page-1", "hello")
    assert ("psid-1", SenderAction.MARK_SEEN) in client.actions


@pytest.mark.asyncio
async def test_replies_are_persisted_as_responses(dispatcher, container, client, member):
    await dispatcher.process_entry(text("login"))

    recipient, directive, messaging_type = client.sent[-1]
    assert messaging_type == MessagingType.RESPONSE
    stored = [m for m in container.message_log_service.messages.values() if m.recipient == "psid-1"]
    assert stored[-1].text == directive.text


@pytest.mark.asyncio
async def test_get_started_unregistered(dispatcher, client, member):
    await dispatcher.process_entry(postback("get_started"))

    welcome, prompt = client.sent_to("psid-1")[-2:]
    assert welcome.text == "Hi Jan, thanks for clicking get started!"
    assert isinstance(prompt, ButtonTemplate)
    assert isinstance(prompt.buttons[0], LoginButton)


@pytest.mark.asyncio
async def test_get_started_registered_shows_menu(dispatcher, client, users):
    users.add("psid-1", first_name="Jan", is_registered=True)
    await dispatcher.process_entry(postback("get_started"))

    menu = last_reply(client)
    assert isinstance(menu, ButtonTemplate)
    assert len(menu.buttons) == 3
    assert isinstance(menu.buttons[2], LogoutButton)


@pytest.mark.asyncio
async def test_nickname_dialogue_saves_normalized_nickname(dispatcher, client, users, member):
    await dispatcher.process_entry(postback("menu_nickname"))
    assert users.users[member.id].state == S.ASK_NICKNAME
    ask = last_reply(client)
    assert isinstance(ask, QuickReplies)
    assert [o.payload for o in ask.options] == ["nickname_ask_yes", "nickname_ask_no"]

    await dispatcher.process_entry(quick_reply("nickname_ask_yes"))
    assert users.users[member.id].state == S.INPUT_NICKNAME

    await dispatcher.process_entry(text("  Big   Jan "))
    saved = users.users[member.id]
    assert saved.nickname == "Big Jan"
    assert saved.state == S.NO_STATE


@pytest.mark.asyncio
async def test_invalid_nickname_reprompts_without_writing(dispatcher, client, users, member):
    await dispatcher.process_entry(postback("menu_nickname"))
    await dispatcher.process_entry(quick_reply("nickname_ask_yes"))
    writes_before = list(users.writes)

    await dispatcher.process_entry(text("Jan!!!"))

    assert users.users[member.id].state == S.INPUT_NICKNAME
    assert users.users[member.id].nickname is None
    assert users.writes == writes_before
    reprompt = last_reply(client)
    assert isinstance(reprompt, QuickReplies)
    assert reprompt.options[0].payload == "nickname_cancel"


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", ["nickname_ask_no", "nickname_cancel"])
async def test_declining_keeps_nickname(dispatcher, users, payload):
    user = users.add("psid-1", first_name="Jan", nickname="Kuba")
    await dispatcher.process_entry(postback("menu_nickname"))
    await dispatcher.process_entry(quick_reply(payload))

    assert users.users[user.id].state == S.NO_STATE
    assert users.users[user.id].nickname == "Kuba"


@pytest.mark.asyncio
async def test_delete_nickname(dispatcher, client, users):
    user = users.add("psid-1", first_name="Jan", nickname="Kuba")
    await dispatcher.process_entry(postback("menu_nickname"))
    assert [o.payload for o in last_reply(client).options][-1] == "nickname_delete"

    await dispatcher.process_entry(quick_reply("nickname_delete"))

    assert users.users[user.id].nickname is None
    assert users.users[user.id].state == S.NO_STATE


@pytest.mark.asyncio
async def test_feedback_is_truncated_and_acknowledged(dispatcher, container, client, users, member):
    await dispatcher.process_entry(postback("menu_feedback"))
    assert users.users[member.id].state == S.FEEDBACK

    await dispatcher.process_entry(text("x" * 600))

    (ticket_id, (user_id, stored)), = container.feedback_service.tickets.items()
    assert user_id == member.id
    assert len(stored) == 500
    assert f"#{ticket_id}" in last_reply(client).text
    assert users.users[member.id].state == S.NO_STATE


@pytest.mark.asyncio
async def test_feedback_cancel(dispatcher, container, users, member):
    await dispatcher.process_entry(postback("menu_feedback"))
    await dispatcher.process_entry(quick_reply("feedback_cancel"))

    assert users.users[member.id].state == S.NO_STATE
    assert container.feedback_service.tickets == {}


@pytest.mark.asyncio
async def test_unknown_payload_gets_fallback_and_keeps_state(dispatcher, client, users, member):
    await dispatcher.process_entry(postback("nickname_ask_yes"))

    assert users.users[member.id].state == S.NO_STATE
    assert last_reply(client).text.startswith("Sorry, I don't understand")


@pytest.mark.asyncio
async def test_non_text_message_gets_fixed_reply(dispatcher, client, member):
    entry = {"messaging": [_item(message={"mid": "m-img", "attachments": [{"type": "image"}]})]}
    await dispatcher.process_entry(entry)
    assert last_reply(client).text == "Sorry, I can only read text messages."


@pytest.mark.asyncio
async def test_malformed_entry_is_dropped(dispatcher, client):
    assert await dispatcher.process_entry({"messaging": [{"sender": {"id": "x"}}]}) is False
    assert client.sent == []


@pytest.mark.asyncio
async def test_postbacks_are_logged_as_events(dispatcher, container, member):
    await dispatcher.process_entry(postback("info"))
    (event,) = container.message_log_service.events.values()
    assert event.payload == "info"


@pytest.mark.asyncio
async def test_account_linked_consumes_flow(dispatcher, container, client, member):
    flow = await container.login_flow_service.start(
        user_id=member.id, linking_token="lt", callback_url="https://m.me/cb?x=1", oauth_token="t", oauth_secret="s"
    )
    entry = {"messaging": [_item(account_linking={"status": "linked", "authorization_code": flow.messenger_auth_code})]}

    await dispatcher.process_entry(entry)

    assert container.login_flow_service.consumed == [flow]
    assert "linked successfully" in last_reply(client).text
    assert container.message_log_service.events == {}


@pytest.mark.asyncio
async def test_account_unlinked_clears_registration(dispatcher, container, client, users):
    user = users.add("psid-1", first_name="Jan", is_registered=True)
    users.tokens[user.id] = ("k", "s")

    await dispatcher.process_entry({"messaging": [_item(account_linking={"status": "unlinked"})]})

    assert users.users[user.id].is_registered is False
    assert user.id not in users.tokens
    assert "unlinked" in last_reply(client).text
    assert container.message_log_service.events == {}


@pytest.mark.asyncio
async def test_admin_help(dispatcher, client, admin):
    await dispatcher.process_entry(text("HELP $date", sender="psid-admin"))
    assert last_reply(client, "psid-admin").text.startswith("$date")

    await dispatcher.process_entry(text("help whatever", sender="psid-admin"))
    assert last_reply(client, "psid-admin").text.startswith("Admin help")


@pytest.mark.asyncio
async def test_admin_invalid_broadcast_is_rejected(dispatcher, container, client, admin):
    await dispatcher.process_entry(text("hello everyone", sender="psid-admin"))

    assert last_reply(client, "psid-admin").text.startswith("❌ Broadcast needs a target")
    assert container.broadcast_service.pending == 0


@pytest.mark.asyncio
async def test_admin_broadcast_excludes_admin(dispatcher, container, client, users, admin):
    users.add("psid-2", first_name="Jan")
    users.add("psid-3", first_name="Ola")

    await dispatcher.process_entry(text("@all Hello $user", sender="psid-admin"))
    assert last_reply(client, "psid-admin").text == "📣 Broadcast to all started."

    for task in list(container.broadcast_service._tasks):
        await task

    broadcast = [(r, d.text) for r, d, t in client.sent if t == MessagingType.NON_PROMOTIONAL_SUBSCRIPTION]
    assert broadcast == [("psid-2", "Hello Jan"), ("psid-3", "Hello Ola")]
    assert isinstance(last_reply(client, "psid-admin"), TextReply)
    assert last_reply(client, "psid-admin").text.endswith("Hello Ada")


@pytest.mark.asyncio
async def test_non_admin_broadcast_attempt_is_unsupported(dispatcher, container, client, member):
    await dispatcher.process_entry(text("@all spam"))

    assert container.broadcast_service.pending == 0
    assert last_reply(client).text.startswith("Sorry, I don't understand")
