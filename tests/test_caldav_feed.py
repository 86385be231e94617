"""Tests for the CalDAV feed against a stubbed server."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import httpx
import pytest

from caltrigger.errors import FeedUnavailableError
from caltrigger.feed import caldav
from caltrigger.feed.caldav import (
    CalDavFeed,
    build_calendar_query,
    extract_calendar_data,
    format_caldav_time,
    parse_events,
)
from caltrigger.settings.store import CalDavSettings

UTC = timezone.utc
WINDOW_START = datetime(2024, 1, 1, 0, 0, tzinfo=UTC)
WINDOW_END = datetime(2024, 1, 3, 0, 0, tzinfo=UTC)

ICS = """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//caltrigger tests//EN
BEGIN:VEVENT
UID:lamp-1
SUMMARY:Lamp On
DESCRIPTION:start { lamp on } end { lamp off } modified by { Movie Night }
DTSTART:20240101T200000Z
DTEND:20240101T230000Z
END:VEVENT
BEGIN:VEVENT
UID:movie-1
SUMMARY:Movie Night
DTSTART:20240101T200000Z
DTEND:20240101T230000Z
END:VEVENT
BEGIN:VEVENT
UID:daily-1
SUMMARY:Heating
DESCRIPTION:heating on
DTSTART:20240102T060000Z
DURATION:PT1H
RECURRENCE-ID:20240102T060000Z
END:VEVENT
BEGIN:VEVENT
UID:cancelled-1
SUMMARY:Cancelled
DESCRIPTION:never
STATUS:CANCELLED
DTSTART:20240102T080000Z
DTEND:20240102T090000Z
END:VEVENT
END:VCALENDAR
"""

ALL_DAY_ICS = """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//caltrigger tests//EN
BEGIN:VEVENT
UID:holiday-1
SUMMARY:Holiday
DTSTART;VALUE=DATE:20240103
END:VEVENT
END:VCALENDAR
"""


def multistatus(*calendars: str) -> str:
    responses = "".join(
        f"""
  <D:response>
    <D:href>/calendars/home/event-{index}.ics</D:href>
    <D:propstat>
      <D:prop><C:calendar-data>{data}</C:calendar-data></D:prop>
      <D:status>HTTP/1.1 200 OK</D:status>
    </D:propstat>
  </D:response>"""
        for index, data in enumerate(calendars)
    )
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        '<D:multistatus xmlns:D="DAV:" xmlns:C="urn:ietf:params:xml:ns:caldav">'
        f"{responses}\n</D:multistatus>"
    )


@pytest.fixture
def settings():
    return CalDavSettings(
        host="cal.example.org",
        url="/calendars/home/",
        username="alice",
    )


class TestCalendarQuery:
    """Tests for REPORT body construction."""

    def test_time_format(self):
        """Test timestamps are rendered in UTC basic format."""
        local = datetime(2024, 1, 1, 21, 0, tzinfo=ZoneInfo("Europe/Berlin"))

        assert format_caldav_time(local) == "20240101T200000Z"

    def test_query_contains_window_and_status_filter(self):
        """Test the query selects the window and excludes cancelled events."""
        body = build_calendar_query(WINDOW_START, WINDOW_END)

        assert 'start="20240101T000000Z"' in body
        assert 'end="20240103T000000Z"' in body
        assert "CANCELLED" in body
        assert 'negate-condition="yes"' in body


class TestParseEvents:
    """Tests for iCalendar to CalendarEvent conversion."""

    def test_events_are_converted(self):
        """Test titles, descriptions and times are taken over."""
        events = {event.uid: event for event in parse_events(ICS, ZoneInfo("UTC"))}

        lamp = events["lamp-1"]
        assert lamp.title == "Lamp On"
        assert lamp.description == "start { lamp on } end { lamp off } modified by { Movie Night }"
        assert lamp.start_time == datetime(2024, 1, 1, 20, 0, tzinfo=UTC)
        assert lamp.end_time == datetime(2024, 1, 1, 23, 0, tzinfo=UTC)

        movie = events["movie-1"]
        assert movie.description is None
        assert movie.is_marker

    def test_recurrence_instance_uid(self):
        """Test expanded occurrences get a per-instance uid."""
        events = {event.uid: event for event in parse_events(ICS, ZoneInfo("UTC"))}

        heating = events["daily-1#20240102T060000Z"]
        assert heating.end_time - heating.start_time == timedelta(hours=1)

    def test_cancelled_events_dropped(self):
        """Test cancelled events are ignored even if the server returns them."""
        uids = [event.uid for event in parse_events(ICS, ZoneInfo("UTC"))]

        assert "cancelled-1" not in uids
        assert len(uids) == 3

    def test_all_day_event_uses_configured_timezone(self):
        """Test date-only events span one day in the configured timezone."""
        berlin = ZoneInfo("Europe/Berlin")

        (holiday,) = parse_events(ALL_DAY_ICS, berlin)

        assert holiday.start_time == datetime(2024, 1, 3, tzinfo=berlin)
        assert holiday.end_time == datetime(2024, 1, 4, tzinfo=berlin)

    def test_malformed_xml(self):
        """Test an unparsable multistatus body is a feed failure."""
        with pytest.raises(FeedUnavailableError):
            extract_calendar_data(b"<not-xml")


class TestCalDavFeed:
    """Tests for fetching through httpx."""

    async def test_fetch_events(self, settings):
        """Test a REPORT request is sent and its multistatus decoded."""
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(207, text=multistatus(ICS, ALL_DAY_ICS))

        feed = CalDavFeed(settings, "secret", transport=httpx.MockTransport(handler))

        events = await feed.fetch_events(WINDOW_START, WINDOW_END)

        assert {event.uid for event in events} == {
            "lamp-1", "movie-1", "daily-1#20240102T060000Z", "holiday-1",
        }
        request = requests[0]
        assert request.method == "REPORT"
        assert request.url.scheme == "https"
        assert request.url.host == "cal.example.org"
        assert request.url.path == "/calendars/home/"
        assert request.headers["Depth"] == "1"
        assert request.headers["Authorization"].startswith("Basic ")
        assert b"20240101T000000Z" in request.content

    async def test_empty_calendar(self, settings):
        """Test a multistatus without responses yields no events."""
        feed = CalDavFeed(
            settings, "secret",
            transport=httpx.MockTransport(lambda request: httpx.Response(207, text=multistatus())),
        )

        assert await feed.fetch_events(WINDOW_START, WINDOW_END) == []

    @pytest.mark.parametrize("status_code", [200, 401, 404, 500])
    async def test_unexpected_status(self, settings, status_code):
        """Test any status other than multistatus is a feed failure."""
        feed = CalDavFeed(
            settings, "secret",
            transport=httpx.MockTransport(lambda request: httpx.Response(status_code)),
        )

        with pytest.raises(FeedUnavailableError, match=str(status_code)):
            await feed.fetch_events(WINDOW_START, WINDOW_END)

    async def test_undecodable_event_is_feed_failure(self, settings, monkeypatch):
        """Test any error while decoding calendar data becomes a feed failure."""
        def broken_parse(ical_text, tz):
            raise KeyError("DTSTART")

        monkeypatch.setattr(caldav, "parse_events", broken_parse)
        feed = CalDavFeed(
            settings, "secret",
            transport=httpx.MockTransport(lambda request: httpx.Response(207, text=multistatus(ICS))),
        )

        with pytest.raises(FeedUnavailableError, match="Cannot decode calendar data"):
            await feed.fetch_events(WINDOW_START, WINDOW_END)

    async def test_connection_error(self, settings):
        """Test transport failures are feed failures."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        feed = CalDavFeed(settings, "secret", transport=httpx.MockTransport(handler))

        with pytest.raises(FeedUnavailableError, match="connection refused"):
            await feed.fetch_events(WINDOW_START, WINDOW_END)
