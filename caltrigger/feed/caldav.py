"""
CalDAV event feed.

Queries a CalDAV calendar collection for the events in a time window using a
`calendar-query` REPORT and converts the returned iCalendar data into
CalendarEvent instances.

The query asks the server to expand recurring events, so every occurrence
arrives as its own VEVENT carrying a RECURRENCE-ID. Cancelled events are
filtered by the server and, for servers ignoring the filter, again here.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional
from xml.etree import ElementTree
from zoneinfo import ZoneInfo

import httpx
from icalendar import Calendar

from caltrigger.errors import FeedUnavailableError
from caltrigger.events.models import CalendarEvent
from caltrigger.logger import UnifiedLogger
from caltrigger.settings.store import CalDavSettings

# Create module logger
logger = UnifiedLogger(tag="caldav-feed")

DAV_NS = "DAV:"
CALDAV_NS = "urn:ietf:params:xml:ns:caldav"

CALENDAR_QUERY_TEMPLATE = """<?xml version="1.0" encoding="utf-8"?>
<C:calendar-query xmlns:D="DAV:" xmlns:C="urn:ietf:params:xml:ns:caldav">
  <D:prop>
    <C:calendar-data>
      <C:expand start="{start}" end="{end}"/>
    </C:calendar-data>
  </D:prop>
  <C:filter>
    <C:comp-filter name="VCALENDAR">
      <C:comp-filter name="VEVENT">
        <C:time-range start="{start}" end="{end}"/>
        <C:prop-filter name="STATUS">
          <C:text-match negate-condition="yes">CANCELLED</C:text-match>
        </C:prop-filter>
      </C:comp-filter>
    </C:comp-filter>
  </C:filter>
</C:calendar-query>
"""


def format_caldav_time(value: datetime) -> str:
    """Format an aware datetime as a CalDAV UTC timestamp (YYYYMMDDTHHMMSSZ)."""
    return value.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def build_calendar_query(window_start: datetime, window_end: datetime) -> str:
    """Build the REPORT body selecting non-cancelled events in the window."""
    return CALENDAR_QUERY_TEMPLATE.format(
        start=format_caldav_time(window_start),
        end=format_caldav_time(window_end),
    )


def extract_calendar_data(body: bytes) -> List[str]:
    """Pull every calendar-data payload out of a multistatus response.

    Raises:
        FeedUnavailableError: If the body is not valid XML
    """
    try:
        root = ElementTree.fromstring(body)
    except ElementTree.ParseError as e:
        raise FeedUnavailableError(f"Malformed multistatus response: {e}") from e

    payloads = []
    for element in root.iter(f"{{{CALDAV_NS}}}calendar-data"):
        if element.text and element.text.strip():
            payloads.append(element.text)
    return payloads


def _to_instant(value, tz: ZoneInfo) -> datetime:
    """Convert an iCalendar date or datetime into an aware datetime."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=tz)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=tz)
    raise ValueError(f"Unsupported date value: {value!r}")


def parse_events(ical_text: str, tz: ZoneInfo) -> List[CalendarEvent]:
    """Convert the VEVENTs of one iCalendar document into CalendarEvents.

    Raises:
        FeedUnavailableError: If the document cannot be parsed
    """
    try:
        calendar = Calendar.from_ical(ical_text)
    except ValueError as e:
        raise FeedUnavailableError(f"Malformed calendar data: {e}") from e

    events = []
    for component in calendar.walk("VEVENT"):
        if str(component.get("STATUS", "")).upper() == "CANCELLED":
            continue

        dtstart = component.get("DTSTART")
        if dtstart is None:
            logger.warning("Skipping event without DTSTART", uid=str(component.get("UID", "")))
            continue

        start_time = _to_instant(dtstart.dt, tz)
        dtend = component.get("DTEND")
        duration = component.get("DURATION")
        if dtend is not None:
            end_time = _to_instant(dtend.dt, tz)
        elif duration is not None:
            end_time = start_time + duration.dt
        elif isinstance(dtstart.dt, datetime):
            end_time = start_time
        else:
            end_time = start_time + timedelta(days=1)

        uid = str(component.get("UID", ""))
        recurrence_id = component.get("RECURRENCE-ID")
        if recurrence_id is not None:
            uid = f"{uid}#{format_caldav_time(_to_instant(recurrence_id.dt, tz))}"

        description = component.get("DESCRIPTION")
        event = CalendarEvent(
            uid=uid,
            title=str(component.get("SUMMARY", "")),
            description=str(description) if description is not None else None,
            start_time=start_time,
            end_time=end_time,
        )
        logger.debug(
            f"Got CalDAV entry <{event.title}>",
            command=event.description,
            start=event.start_time.isoformat(),
            end=event.end_time.isoformat(),
        )
        events.append(event)

    return events


class CalDavFeed:
    """Fetches events from a CalDAV calendar collection.

    Args:
        settings: CalDAV connection settings
        password: Password for HTTP basic authentication
        transport: Optional httpx transport (used to stub the server)
    """

    def __init__(
        self,
        settings: CalDavSettings,
        password: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self._password = password
        self._transport = transport
        self._timezone = ZoneInfo(settings.timezone)

    def _create_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            auth=httpx.BasicAuth(self.settings.username, self._password),
            verify=self.settings.strict_tls if self.settings.tls else True,
            timeout=self.settings.request_timeout,
            transport=self._transport,
        )

    async def fetch_events(self, window_start: datetime, window_end: datetime) -> List[CalendarEvent]:
        """Return all non-cancelled events overlapping [window_start, window_end].

        Raises:
            FeedUnavailableError: On connection, HTTP status, or parse failures
        """
        logger.debug(
            "Getting CalDAV entries with filter",
            filter=f"VEVENT [{format_caldav_time(window_start)};{format_caldav_time(window_end)}] : STATUS!=CANCELLED",
        )

        body = build_calendar_query(window_start, window_end)
        async with logger.async_span("fetch_events", url=self.settings.base_url):
            try:
                async with self._create_client() as client:
                    response = await client.request(
                        "REPORT",
                        self.settings.base_url,
                        content=body.encode("utf-8"),
                        headers={"Depth": "1", "Content-Type": "application/xml; charset=utf-8"},
                    )
            except httpx.HTTPError as e:
                raise FeedUnavailableError(f"CalDAV request to {self.settings.base_url} failed: {e}") from e

            if response.status_code != 207:
                raise FeedUnavailableError(
                    f"CalDAV server answered {response.status_code} for {self.settings.base_url}"
                )

            events: List[CalendarEvent] = []
            for payload in extract_calendar_data(response.content):
                try:
                    events.extend(parse_events(payload, self._timezone))
                except FeedUnavailableError:
                    raise
                except Exception as e:
                    raise FeedUnavailableError(f"Cannot decode calendar data: {e}") from e
            return events
