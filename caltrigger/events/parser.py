"""
Event content parser.

Extracts start commands, end commands, and the "modified by" suppression
reference from the free text stored in a calendar event's description.

Supported layouts:
- 'start { <commands> } end { <commands> }' - commands for start and end time
- '<commands>' - anything else is taken as start commands
- either of the above followed by 'modified by { <marker title> }'

Parsing never fails; unrecognised text simply ends up as start commands.
"""

import re
from typing import Optional

from caltrigger.events.models import ParsedContent
from caltrigger.logger import UnifiedLogger

# Create module logger
logger = UnifiedLogger(tag="content-parser")


# Everything before 'modified by' is kept as the command text, the braces hold
# the title of the marker events that suppress this event.
EXTRACT_MODIFIEDBY_CONTENT = re.compile(r"(.*?)modified by\s*?\{(.*?)\}.*", re.DOTALL)

EXTRACT_STARTEND_CONTENT = re.compile(r"start\s*?\{(.*?)\}\s*end\s*?\{(.*?)\}\s*", re.DOTALL)


def parse_event_content(content: Optional[str]) -> ParsedContent:
    """Extract start, end and modified-by commands from event content.

    The modified-by clause is stripped first, so start/end extraction only
    sees the text in front of it.

    Args:
        content: Raw event description (None is treated as empty)

    Returns:
        ParsedContent with trimmed commands; fields are empty when absent
    """
    parsed = ParsedContent()
    content = content or ""

    modified_by_match = EXTRACT_MODIFIEDBY_CONTENT.search(content)
    if modified_by_match:
        command_content = modified_by_match.group(1)
        parsed.suppression_marker_name = modified_by_match.group(2).strip()
    else:
        command_content = content

    start_end_match = EXTRACT_STARTEND_CONTENT.search(command_content)
    if start_end_match:
        parsed.start_commands = start_end_match.group(1).strip()
        parsed.end_commands = start_end_match.group(2).strip()
    else:
        parsed.start_commands = command_content.strip()
        logger.debug(
            "Event content has no start/end blocks, using whole content as start commands",
            content=command_content,
        )

    return parsed
