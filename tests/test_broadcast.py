"""Tests for the paced broadcast fan-out."""

import asyncio
from datetime import datetime

import pytest

from messenger_bot.messaging.outbound import MessagingType
from messenger_bot.messaging.templates import parse_broadcast
from messenger_bot.services.broadcast_service import BroadcastService

NOW = datetime(2026, 10, 17, 12, 0)


@pytest.fixture
def people(users):
    admin = users.add("admin", first_name="Ada", gender="female", locale="en_US", is_admin=True)
    jan = users.add("jan", first_name="Jan", gender="male", locale="pl_PL", is_registered=True)
    ola = users.add("ola", first_name="Ola", nickname="Oleńka", gender="female", locale="pl_PL")
    tom = users.add("tom", first_name="Tom", gender="male", locale="en_GB", usos_course=5)
    return admin, jan, ola, tom


@pytest.mark.asyncio
async def test_admin_is_excluded_from_all(container, people, client):
    admin = people[0]
    service = container.broadcast_service

    result = await service.run(parse_broadcast("@all Hello $user"), admin=admin, now=NOW)

    total_matching = len(await container.user_service.find_by_target(parse_broadcast("@all x").target))
    assert result.total == total_matching - 1
    assert result.sent == 3
    assert result.failed == 0
    broadcast_recipients = [r for r, _, t in client.sent if t == MessagingType.NON_PROMOTIONAL_SUBSCRIPTION]
    assert broadcast_recipients == ["jan", "ola", "tom"]


@pytest.mark.asyncio
async def test_messages_are_rendered_per_recipient(container, people, client):
    admin = people[0]
    await container.broadcast_service.run(parse_broadcast("@all Hi $user, $target.capital"), admin=admin, now=NOW)

    texts = {r: d.text for r, d, t in client.sent if t == MessagingType.NON_PROMOTIONAL_SUBSCRIPTION}
    assert texts == {"jan": "Hi Jan, Wszyscy", "ola": "Hi Oleńka, Wszyscy", "tom": "Hi Tom, All"}


@pytest.mark.asyncio
async def test_admin_gets_count_and_preview(container, people, client):
    admin = people[0]
    await container.broadcast_service.run(parse_broadcast("@male Hey $user"), admin=admin, now=NOW)

    admin_replies = [d.text for d in client.sent_to("admin")]
    assert admin_replies[0] == "📣 Broadcast delivered to 2 of 2 users."
    assert admin_replies[1].endswith("Hey Ada")
    assert all(t == MessagingType.RESPONSE for r, _, t in client.sent if r == "admin")


@pytest.mark.asyncio
async def test_failed_recipient_is_skipped(container, people, client):
    client.fail_for.add("ola")
    result = await container.broadcast_service.run(parse_broadcast("@all hi"), admin=people[0], now=NOW)

    assert (result.total, result.sent, result.failed) == (3, 2, 1)
    assert [r for r, _, t in client.sent if t == MessagingType.NON_PROMOTIONAL_SUBSCRIPTION] == ["jan", "tom"]


@pytest.mark.asyncio
async def test_sent_messages_are_persisted(container, people):
    await container.broadcast_service.run(parse_broadcast("@course:5 Course news"), now=NOW)

    rows = list(container.message_log_service.messages.values())
    assert [(row.recipient, row.text) for row in rows] == [("tom", "Course news")]


@pytest.mark.asyncio
async def test_target_query_failure_aborts(container, people, client):
    container.user_service.fail_queries = True
    with pytest.raises(RuntimeError):
        await container.broadcast_service.run(parse_broadcast("@all hi"), admin=people[0])
    assert client.sent == []


@pytest.mark.asyncio
async def test_sends_are_paced(container, people, monkeypatch):
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    service = BroadcastService(container.user_service, container.outbound_service, send_interval=0.25)

    await service.run(parse_broadcast("@all hi"), admin=people[0], now=NOW)

    assert sleeps == [0.25, 0.25]


@pytest.mark.asyncio
async def test_start_runs_in_background(container, people, client):
    task = container.broadcast_service.start(parse_broadcast("@female hi"), admin=people[0])
    assert container.broadcast_service.pending == 1

    result = await task

    assert result.sent == 1
    assert container.broadcast_service.pending == 0


@pytest.mark.asyncio
async def test_background_failure_is_logged_not_raised(container, people):
    container.user_service.fail_queries = True
    result = await container.broadcast_service.start(parse_broadcast("@all hi"), admin=people[0])
    assert result is None


@pytest.mark.asyncio
async def test_persist_failure_does_not_stop_broadcast(container, people, client, monkeypatch):
    log = container.message_log_service
    upsert_message = log.upsert_message

    async def flaky_upsert(**fields):
        if fields["recipient"] == "jan":
            raise RuntimeError("database is gone")
        await upsert_message(**fields)

    monkeypatch.setattr(log, "upsert_message", flaky_upsert)

    result = await container.broadcast_service.run(parse_broadcast("@all hi"), admin=people[0], now=NOW)

    assert (result.total, result.sent, result.failed) == (3, 3, 0)
    assert [r for r, _, t in client.sent if t == MessagingType.NON_PROMOTIONAL_SUBSCRIPTION] == ["jan", "ola", "tom"]
    assert sorted(row.recipient for row in log.messages.values() if row.recipient != "admin") == ["ola", "tom"]
    admin_replies = [d.text for d in client.sent_to("admin")]
    assert admin_replies[0] == "📣 Broadcast delivered to 3 of 3 users."
    assert admin_replies[1].endswith("hi")


@pytest.mark.asyncio
async def test_unexpected_error_is_counted_and_skipped(container, people, client, monkeypatch):
    outbound = container.outbound_service
    deliver = outbound.deliver

    async def broken_deliver(recipient_id, reply, messaging_type=MessagingType.RESPONSE):
        if recipient_id == "ola":
            raise RuntimeError("boom")
        return await deliver(recipient_id, reply, messaging_type)

    monkeypatch.setattr(outbound, "deliver", broken_deliver)

    result = await container.broadcast_service.run(parse_broadcast("@all hi"), admin=people[0], now=NOW)

    assert (result.total, result.sent, result.failed) == (3, 2, 1)
    assert [r for r, _, t in client.sent if t == MessagingType.NON_PROMOTIONAL_SUBSCRIPTION] == ["jan", "tom"]
