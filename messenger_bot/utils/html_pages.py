"""Small HTML pages served by the web endpoints."""
from datetime import datetime
from html import escape
from typing import Iterable, Optional

from messenger_bot.utils.datetime_utils import format_age


def _page(title: str, body: str) -> str:
    return (
        "<!doctype html><html><head>"
        f"<title>{escape(title)}</title>"
        '<meta name="viewport" content="width=device-width, initial-scale=1.0">'
        f"</head><body>{body}</body></html>"
    )


def studia3_session_row(session, now: datetime) -> str:
    name = escape(str(session.program_name))
    if session.alive:
        age = (now - session.last_login).total_seconds() if session.last_login else 0
        return f"<p>{name}: <b>session alive</b> for {escape(format_age(age))}</p>"

    return (
        '<form action="" method="POST">'
        f"<p>{name} "
        f'<input name="program_id" type="hidden" value="{int(session.program_id)}">'
        '<input name="username" placeholder="Login" type="text">'
        '<input name="password" placeholder="Password" type="password">'
        ' <button type="submit">Login</button>'
        "</p></form>"
    )


def studia3_login_page(sessions: Iterable, now: datetime, status: Optional[str] = None) -> str:
    """Session overview: alive sessions show their age, dead ones a login form."""
    body = ""
    if status:
        body += f"<p><i>{escape(status)}</i></p>"
    rows = [studia3_session_row(session, now) for session in sessions]
    body += "".join(rows) or "<p>No programmes configured.</p>"
    return _page("Studia3 Login", body)
