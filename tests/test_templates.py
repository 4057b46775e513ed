"""Tests for broadcast target parsing and placeholder substitution."""

from datetime import datetime

import pytest

from database.models import UserProfile
from messenger_bot.messaging.templates import (
    BroadcastTarget,
    TargetKind,
    parse_broadcast,
    parse_target,
)

NOW = datetime(2026, 10, 17, 9, 5)  # a Saturday


def _user(**fields):
    values = dict(id=7, facebook_id="psid-7", first_name="Jakub", last_name="Nowak", gender="male", locale="en_US")
    values.update(fields)
    return UserProfile(**values)


def test_all_target_has_no_bound_values():
    template = parse_broadcast("@all hello")
    assert template.target == BroadcastTarget(TargetKind.ALL, ())
    assert template.body == "hello"


def test_user_target_binds_integer():
    template = parse_broadcast("@user:42 hi")
    assert template.target.kind == TargetKind.USER
    assert template.target.params == (42,)
    assert isinstance(template.target.params[0], int)


@pytest.mark.parametrize(
    "token, kind, params",
    [
        ("male", TargetKind.MALE, ("male",)),
        ("FEMALE", TargetKind.FEMALE, ("female",)),
        ("registered", TargetKind.REGISTERED, (True,)),
        ("course:1234", TargetKind.COURSE, (1234,)),
        ("lang:pl", TargetKind.LOCALE, ("pl%",)),
        ("locale:EN", TargetKind.LOCALE, ("en%",)),
    ],
)
def test_target_tokens(token, kind, params):
    target = parse_target(token)
    assert target.kind == kind
    assert target.params == params


@pytest.mark.parametrize(
    "text",
    ["", "hello", "@", "@nobody hi", "@user:abc hi", "@user: hi", "@lang:pol hi", "user:42 hi", "@@all hi", "@all:1 x"],
)
def test_unrecognized_targets_yield_none(text):
    assert parse_broadcast(text) is None


@pytest.mark.parametrize("text", ["@all", "@ALL  Hi", "  @male x", "@course:0 y", "#all z", "@user:-1 q", "@x.y-z"])
def test_target_parsing_is_total(text):
    result = parse_broadcast(text)
    assert result is None or isinstance(result.target, BroadcastTarget)


def test_body_keeps_original_casing():
    template = parse_broadcast("@ALL Hello World, Zażółć GĘŚLĄ")
    assert template.target.kind == TargetKind.ALL
    assert template.body == "Hello World, Zażółć GĘŚLĄ"


def test_text_without_placeholders_is_unchanged():
    body = "Price: $5, 100% OFF! Mixed CASE stays. $ alone too."
    template = parse_broadcast("@all " + body)
    assert template.render(_user(), now=NOW) == body


def test_unknown_placeholders_are_left_verbatim():
    template = parse_broadcast("@all $unknown $user.password $date.century")
    assert template.render(_user(), now=NOW) == "$unknown $user.password $date.century"


def test_user_placeholders():
    template = parse_broadcast("@all Hi $user. $USER.Full_Name / $user.first_name / $user.id")
    assert template.render(_user(), now=NOW) == "Hi Jakub. Jakub Nowak / Jakub / 7"
    assert template.render(_user(nickname="Kuba"), now=NOW).startswith("Hi Kuba.")


def test_missing_user_field_renders_empty():
    template = parse_broadcast("@all [$user.nickname]")
    assert template.render(_user(), now=NOW) == "[]"


def test_date_placeholders_english():
    template = parse_broadcast(
        "@all $date|$date.time|$date.day|$date.weekday|$date.weekday_short|$date.month|$date.month_short|$date.month_num|$date.year"
    )
    assert template.render(_user(), now=NOW) == "Oct 17, 2026|09:05|17|Saturday|Sat|October|Oct|10|2026"


def test_date_placeholders_polish():
    template = parse_broadcast("@all $date, $date.weekday, $date.month")
    assert template.render(_user(locale="pl_PL"), now=NOW) == "17 paź 2026, sobota, październik"


def test_date_unknown_locale_falls_back_to_english():
    template = parse_broadcast("@all $date.weekday")
    assert template.render(_user(locale="de_DE"), now=NOW) == "Saturday"


@pytest.mark.parametrize(
    "command, locale, plain, capital",
    [
        ("@male", "en_US", "men", "Men"),
        ("@male", "pl_PL", "panowie", "Panowie"),
        ("@female", "fr_FR", "women", "Women"),
        ("@all", "pl_PL", "wszyscy", "Wszyscy"),
        ("@lang:en", "en_GB", "english language", "English language"),
        ("@registered", None, "registered", "Registered"),
    ],
)
def test_target_placeholders(command, locale, plain, capital):
    template = parse_broadcast(f"{command} $target|$target.capital")
    rendered = template.render(_user(locale=locale), now=NOW)
    lower, upper = rendered.split("|")
    assert lower == plain
    assert lower == lower.lower()
    assert upper == capital
    assert upper[0].isupper()


def test_target_placeholder_without_localization_is_left():
    template = parse_broadcast("@user:7 For $target")
    assert template.render(_user(), now=NOW) == "For $target"


def test_account_flags_and_course():
    template = parse_broadcast("@all $user.is_registered/$user.is_admin/[$user.usos_course]")
    assert template.render(_user(), now=NOW) == "false/false/[]"
    assert template.render(_user(is_registered=True, usos_course=1234), now=NOW) == "true/false/[1234]"
