"""
Calendar feed package.

- `caltrigger.feed.caldav` queries a CalDAV collection for upcoming events
"""

__all__: list[str] = []
