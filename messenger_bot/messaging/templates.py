"""
Broadcast templates: `@target body with $placeholders`.

    @all Hello $user, today is $date.weekday!
    @lang:pl Cześć $user.first_name
    @user:42 Test for $target

The target token is case-insensitive. Placeholders are matched case-insensitively
and substituted per recipient; all other text keeps its original casing.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from database.models import UserProfile
from messenger_bot.messaging import i18n

_TARGET_RE = re.compile(r"^@([a-z\d:.-]+)", re.IGNORECASE | re.ASCII)
_TARGET_USER_RE = re.compile(r"^user:(\d+)$")
_TARGET_COURSE_RE = re.compile(r"^course:(\d+)$")
_TARGET_LOCALE_RE = re.compile(r"^(?:lang|locale):([a-z]{2})$")
# A dot is only part of the placeholder when a field name follows it.
_PLACEHOLDER_RE = re.compile(r"\$([a-z]+)(?:\.([a-z_]+))?", re.IGNORECASE | re.ASCII)

USER_FIELDS = (
    "id", "first_name", "last_name", "nickname", "gender", "locale", "facebook_id",
    "is_registered", "is_admin", "usos_course",
)


class TargetKind(str, enum.Enum):
    ALL = "all"
    MALE = "male"
    FEMALE = "female"
    REGISTERED = "registered"
    USER = "user"
    COURSE = "course"
    LOCALE = "locale"


@dataclass(frozen=True)
class BroadcastTarget:
    """A predicate over the users table plus its bound values."""

    kind: TargetKind
    params: tuple = ()

    @property
    def label(self) -> str:
        if not self.params:
            return self.kind.value
        return f"{self.kind.value}:{self.params[0]}"


def parse_target(token: str) -> Optional[BroadcastTarget]:
    """Resolve a target token (without the leading `@`); None if unrecognized."""
    token = (token or "").strip().lower()

    if token == "all":
        return BroadcastTarget(TargetKind.ALL)
    if token in ("male", "female"):
        return BroadcastTarget(TargetKind(token), (token,))
    if token == "registered":
        return BroadcastTarget(TargetKind.REGISTERED, (True,))

    match = _TARGET_USER_RE.match(token)
    if match:
        return BroadcastTarget(TargetKind.USER, (int(match.group(1)),))

    match = _TARGET_COURSE_RE.match(token)
    if match:
        return BroadcastTarget(TargetKind.COURSE, (int(match.group(1)),))

    match = _TARGET_LOCALE_RE.match(token)
    if match:
        return BroadcastTarget(TargetKind.LOCALE, (f"{match.group(1)}%",))

    return None


@dataclass(frozen=True)
class BroadcastTemplate:
    target: BroadcastTarget
    body: str

    def render(self, user: UserProfile, now: Optional[datetime] = None) -> str:
        """Instantiate the body for one recipient."""
        moment = now or datetime.now()
        language = i18n.language_of(user.locale)

        def substitute(match: re.Match) -> str:
            name = match.group(1).lower()
            field = (match.group(2) or "").lower()
            resolver = _RESOLVERS.get(name)
            value = resolver(self, user, field, moment, language) if resolver else None
            return match.group(0) if value is None else value

        return _PLACEHOLDER_RE.sub(substitute, self.body)


def parse_broadcast(text: str) -> Optional[BroadcastTemplate]:
    """
    Split admin text into a target and a body.

    Returns None when the `@target` prefix is missing or unrecognized; callers
    must reject the command rather than send to nobody.
    """
    if not text:
        return None

    match = _TARGET_RE.match(text.lstrip())
    if not match:
        return None

    target = parse_target(match.group(1))
    if target is None:
        return None

    body = text.lstrip()[match.end():].lstrip()
    return BroadcastTemplate(target=target, body=body)


def _resolve_user(template, user: UserProfile, field: str, moment, language) -> Optional[str]:
    if field in ("", "name"):
        return user.display_name
    if field == "full_name":
        return user.full_name
    if field in USER_FIELDS:
        value = getattr(user, field)
        if isinstance(value, bool):
            return "true" if value else "false"
        return "" if value is None else str(value)
    return None


def _resolve_date(template, user, field: str, moment: datetime, language: str) -> Optional[str]:
    return i18n.format_date_field(moment, field, language)


def _resolve_target(template: BroadcastTemplate, user, field: str, moment, language: str) -> Optional[str]:
    name = i18n.target_name(template.target.kind.value, language)
    if name is None:
        return None
    if field == "":
        return name
    if field == "capital":
        return name[:1].upper() + name[1:]
    return None


_RESOLVERS: dict[str, Callable[..., Optional[str]]] = {
    "user": _resolve_user,
    "date": _resolve_date,
    "target": _resolve_target,
}
