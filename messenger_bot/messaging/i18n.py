"""Localized names used by broadcast templates (English fallback)."""

from __future__ import annotations

from datetime import datetime

DEFAULT_LANGUAGE = "en"

_DAY_NAMES = {
    "en": (
        ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"),
        ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"),
    ),
    "pl": (
        ("pon", "wt", "śr", "czw", "pt", "sob", "niedz"),
        ("poniedziałek", "wtorek", "środa", "czwartek", "piątek", "sobota", "niedziela"),
    ),
}

_MONTH_NAMES = {
    "en": (
        ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"),
        (
            "January", "February", "March", "April", "May", "June",
            "July", "August", "September", "October", "November", "December",
        ),
    ),
    "pl": (
        ("sty", "lut", "mar", "kwi", "maj", "cze", "lip", "sie", "wrz", "paź", "lis", "gru"),
        (
            "styczeń", "luty", "marzec", "kwiecień", "maj", "czerwiec",
            "lipiec", "sierpień", "wrzesień", "październik", "listopad", "grudzień",
        ),
    ),
}

TARGET_NAMES = {
    "en": {
        "all": "all",
        "male": "men",
        "female": "women",
        "registered": "registered",
        "locale": "English language",
    },
    "pl": {
        "all": "wszyscy",
        "male": "panowie",
        "female": "panie",
        "registered": "zarejestrowani",
        "locale": "język polski",
    },
}


def language_of(locale: str | None) -> str:
    """First two characters of a platform locale (`pl_PL` -> `pl`)."""
    return (locale or DEFAULT_LANGUAGE)[:2].lower()


def _table(tables: dict, language: str):
    return tables.get(language) or tables[DEFAULT_LANGUAGE]


def day_name(moment: datetime, language: str, *, short: bool = False) -> str:
    short_names, long_names = _table(_DAY_NAMES, language)
    return (short_names if short else long_names)[moment.weekday()]


def month_name(moment: datetime, language: str, *, short: bool = False) -> str:
    short_names, long_names = _table(_MONTH_NAMES, language)
    return (short_names if short else long_names)[moment.month - 1]


def medium_date(moment: datetime, language: str) -> str:
    """`Oct 17, 2026` in English, `17 paź 2026` in Polish."""
    if language == "pl":
        return f"{moment.day} {month_name(moment, language, short=True)} {moment.year}"
    return f"{month_name(moment, language, short=True)} {moment.day}, {moment.year}"


def format_date_field(moment: datetime, field: str, language: str) -> str | None:
    """Value for `$date` / `$date.<field>`, or None for an unknown field."""
    if field == "":
        return medium_date(moment, language)
    if field == "time":
        return moment.strftime("%H:%M")
    if field == "day":
        return str(moment.day)
    if field == "weekday":
        return day_name(moment, language)
    if field == "weekday_short":
        return day_name(moment, language, short=True)
    if field == "month":
        return month_name(moment, language)
    if field == "month_short":
        return month_name(moment, language, short=True)
    if field == "month_num":
        return str(moment.month)
    if field == "year":
        return str(moment.year)
    return None


def target_name(kind: str, language: str) -> str | None:
    """Lower-case localized name of a broadcast target category."""
    if language not in TARGET_NAMES:
        language = DEFAULT_LANGUAGE
    name = TARGET_NAMES[language].get(kind)
    return name.lower() if name is not None else None
