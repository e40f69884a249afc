"""Formatting helpers for video metadata and transcript headers.

Deterministic helpers only; nothing here calls an external service.
"""

import re
from datetime import datetime

from .schemas import VideoDetails

ISO_DURATION_PATTERN = re.compile(r"PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?")


def format_video_url(video_id: str) -> str:
    """Format the canonical YouTube watch URL for a video.

    Examples:
        >>> format_video_url("dQw4w9WgXcQ")
        'https://www.youtube.com/watch?v=dQw4w9WgXcQ'
    """
    return f"https://www.youtube.com/watch?v={video_id}"


def parse_iso_duration(iso_duration: str | None) -> int | None:
    """Parse an ISO-8601 duration such as `PT1H2M5S` into seconds.

    Returns:
        Total seconds, or None when the value is missing or malformed.
    """
    if not iso_duration:
        return None
    match = ISO_DURATION_PATTERN.fullmatch(iso_duration.strip())
    if not match:
        return None
    hours, minutes, seconds = (int(group or 0) for group in match.groups())
    return hours * 3600 + minutes * 60 + seconds


def format_duration(seconds: int | None) -> str:
    """Format seconds as H:MM:SS or M:SS for video duration display.

    Args:
        seconds: Duration in seconds.

    Returns:
        Formatted duration string, or "Unknown" when missing.

    Examples:
        >>> format_duration(125)
        '2:05'
        >>> format_duration(3725)
        '1:02:05'
    """
    if seconds is None:
        return "Unknown"
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60

    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_iso_duration(iso_duration: str | None) -> str:
    """Format an ISO-8601 duration for display.

    Examples:
        >>> format_iso_duration("PT1H2M5S")
        '1:02:05'
    """
    return format_duration(parse_iso_duration(iso_duration))


def format_count(count: int | None) -> str:
    """Format a view or like count compactly.

    Examples:
        >>> format_count(1500)
        '1.5K'
        >>> format_count(2_300_000)
        '2.3M'
        >>> format_count(None)
        'Unknown'
    """
    if count is None:
        return "Unknown"
    if count >= 1_000_000:
        return f"{count / 1_000_000:.1f}M"
    if count >= 1000:
        return f"{count / 1000:.1f}K"
    return str(count)


def format_published_date(published_at: str | None) -> str:
    """Format a publish timestamp as YYYY-MM-DD.

    Unparseable values are returned unchanged.
    """
    if not published_at:
        return "Unknown"
    try:
        return datetime.fromisoformat(published_at.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return published_at


def truncate(text: str, limit: int) -> str:
    """Truncate text to `limit` characters, appending "..." when cut."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def build_video_document(
    transcript: str,
    details: VideoDetails,
    method_label: str,
    max_description_chars: int = 500,
) -> str:
    """Prepend an enriched metadata header to a transcript.

    Args:
        transcript: Plain transcript text.
        details: Video metadata.
        method_label: How the transcript was obtained, e.g. "captions".
        max_description_chars: Description truncation limit.

    Returns:
        Header lines, a blank line, then the labelled transcript.
    """
    lines = [
        f"Video Title: {details.title}",
        f"Channel: {details.channel_title}",
        f"Published: {format_published_date(details.published_at)}",
        f"Duration: {format_duration(details.duration_seconds)}",
        f"Views: {format_count(details.view_count)}",
        f"Likes: {format_count(details.like_count)}",
    ]
    if details.description:
        lines.append(f"Description: {truncate(details.description, max_description_chars)}")

    header = "\n".join(lines)
    return f"{header}\n\nTranscript (via {method_label}):\n{transcript}"
