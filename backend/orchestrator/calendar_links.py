"""Add-to-calendar links for a finalized event (Google, Outlook, iCalendar)."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import quote, urlencode

from backend.orchestrator.types import CalendarUrls

GOOGLE_RENDER_URL = "https://calendar.google.com/calendar/render"
OUTLOOK_COMPOSE_URL = "https://outlook.live.com/calendar/0/deeplink/compose"
ICS_PRODID = "-//Scheduling Assistant//EN"


def _utc_compact(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def _utc_iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def escape_ics_text(text: str) -> str:
    return (
        text.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


def google_calendar_url(title: str, start: datetime, end: datetime, location: str, details: str) -> str:
    params = {
        "action": "TEMPLATE",
        "text": title,
        "dates": f"{_utc_compact(start)}/{_utc_compact(end)}",
        "location": location,
        "details": details,
    }
    return f"{GOOGLE_RENDER_URL}?{urlencode(params)}"


def outlook_calendar_url(title: str, start: datetime, end: datetime, location: str, details: str) -> str:
    params = {
        "subject": title,
        "startdt": _utc_iso(start),
        "enddt": _utc_iso(end),
        "location": location,
        "body": details,
        "path": "/calendar/action/compose",
        "rru": "addevent",
    }
    return f"{OUTLOOK_COMPOSE_URL}?{urlencode(params)}"


def build_ics(
    uid: str,
    title: str,
    start: datetime,
    end: datetime,
    location: str,
    details: str,
    *,
    stamp: datetime,
) -> str:
    lines: List[Optional[str]] = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{ICS_PRODID}",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        "BEGIN:VEVENT",
        f"UID:{uid}",
        f"DTSTAMP:{_utc_compact(stamp)}",
        f"DTSTART:{_utc_compact(start)}",
        f"DTEND:{_utc_compact(end)}",
        f"SUMMARY:{escape_ics_text(title)}",
        f"DESCRIPTION:{escape_ics_text(details)}" if details else None,
        f"LOCATION:{escape_ics_text(location)}",
        "STATUS:TENTATIVE",
        "SEQUENCE:0",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return "\r\n".join(line for line in lines if line)


def build_calendar_urls(
    uid: str,
    title: str,
    start: datetime,
    end: datetime,
    location: str,
    details: str,
    *,
    stamp: datetime,
) -> CalendarUrls:
    """Links for the buffer-inclusive calendar block."""
    ics = build_ics(uid, title, start, end, location, details, stamp=stamp)
    return CalendarUrls(
        google=google_calendar_url(title, start, end, location, details),
        outlook=outlook_calendar_url(title, start, end, location, details),
        ics=f"data:text/calendar;charset=utf-8,{quote(ics)}",
    )
