"""YouTube service for fetching captions, video metadata and channel listings via Supadata API."""

import asyncio
import re
from collections.abc import Callable
from typing import Any

from supadata import Supadata

from src.utils.logging import get_logger

from .config import KnowledgeBaseConfig
from .errors import ExternalServiceError, NoTranscriptAvailableError, NotFoundError
from .formatting import parse_iso_duration
from .schemas import CaptionSegment, ChannelInfo, VideoDetails

logger = get_logger(__name__)

VIDEO_ID_PATTERNS = [
    re.compile(r"youtube\.com/watch\?(?:[^#]*&)?v=([A-Za-z0-9_-]{11})"),
    re.compile(r"youtu\.be/([A-Za-z0-9_-]{11})"),
    re.compile(r"youtube\.com/embed/([A-Za-z0-9_-]{11})"),
    re.compile(r"youtube\.com/v/([A-Za-z0-9_-]{11})"),
    re.compile(r"youtube\.com/shorts/([A-Za-z0-9_-]{11})"),
]

CHANNEL_ID_PATTERN = re.compile(r"youtube\.com/channel/(UC[A-Za-z0-9_-]{22})")


def extract_video_id(url: str) -> str | None:
    """Extract the YouTube video ID from a URL.

    Handles:
    - https://www.youtube.com/watch?v=VIDEO_ID
    - https://youtu.be/VIDEO_ID
    - https://www.youtube.com/embed/VIDEO_ID
    - https://www.youtube.com/v/VIDEO_ID
    - https://www.youtube.com/shorts/VIDEO_ID

    Args:
        url: YouTube URL.

    Returns:
        Video ID string, or None if no supported form matches.

    Examples:
        >>> extract_video_id("https://youtu.be/dQw4w9WgXcQ?t=42")
        'dQw4w9WgXcQ'
    """
    url = url.strip()
    for pattern in VIDEO_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def is_channel_id(identifier: str) -> bool:
    """Return True if `identifier` is a raw channel id (UC + 22 characters)."""
    return identifier.startswith("UC") and len(identifier) == 24


def normalize_channel_input(channel_input: str) -> str:
    """Reduce a channel URL to its channel id when it embeds one.

    Handles and other URLs are passed through unchanged; Supadata resolves them.
    """
    channel_input = channel_input.strip()
    match = CHANNEL_ID_PATTERN.search(channel_input)
    if match:
        return match.group(1)
    return channel_input


def _is_unavailable(error: Exception) -> bool:
    error_str = str(error).lower()
    return "transcript-unavailable" in error_str or "206" in error_str


def _is_not_found(error: Exception) -> bool:
    error_str = str(error).lower()
    return "not-found" in error_str or "not found" in error_str or "404" in error_str


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read a field from an SDK object or a plain dict."""
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


class YouTubeService:
    """Service for fetching YouTube data via Supadata API.

    The Supadata SDK is synchronous, so every call runs in a worker thread to
    keep the event loop free while a request is in flight.
    """

    def __init__(self, config: KnowledgeBaseConfig, client: Supadata | None = None):
        """Initialize YouTube service with configuration.

        Args:
            config: Configuration object with Supadata API key and settings.
            client: Optional pre-built Supadata client, mainly for tests.
        """
        self.config = config
        self.client = client or Supadata(api_key=config.supadata_api_key)
        logger.info("youtube_service_initialized", api_key_present=bool(config.supadata_api_key))

    async def _call(self, method: Callable[..., Any], **kwargs: Any) -> Any:
        """Run a Supadata SDK call in a worker thread, bounded by the request timeout.

        Raises:
            ExternalServiceError: If the call does not finish in time.
        """
        timeout = self.config.request_timeout_seconds
        try:
            return await asyncio.wait_for(asyncio.to_thread(method, **kwargs), timeout)
        except TimeoutError as e:
            logger.warning("supadata_request_timeout", timeout_seconds=timeout)
            raise ExternalServiceError(
                "supadata", f"request timed out after {timeout:g}s"
            ) from e

    async def fetch_captions(self, video_id: str) -> list[CaptionSegment]:
        """Fetch the caption track for a video.

        Args:
            video_id: YouTube video ID.

        Returns:
            Caption segments in playback order.

        Raises:
            NoTranscriptAvailableError: If captions are absent or disabled.
            ExternalServiceError: If the API request fails for another reason.
        """
        logger.info("fetching_captions", video_id=video_id)

        try:
            response = await self._call(
                self.client.youtube.transcript,
                video_id=video_id,
                text=False,  # Segments with timing instead of plain text
            )
        except ExternalServiceError:
            raise
        except Exception as e:
            if _is_unavailable(e):
                logger.warning("captions_unavailable", video_id=video_id)
                raise NoTranscriptAvailableError(video_id) from e

            logger.exception(
                "captions_fetch_error",
                video_id=video_id,
                error_type=type(e).__name__,
            )
            raise ExternalServiceError("supadata", str(e)) from e

        # Supadata offsets and durations are in milliseconds
        segments = [
            CaptionSegment(
                text=seg.text,
                start=float(seg.offset) / 1000,
                duration=float(seg.duration) / 1000,
            )
            for seg in (response.content or [])
            if seg.text and seg.text.strip()
        ]
        if not segments:
            logger.warning("captions_empty", video_id=video_id)
            raise NoTranscriptAvailableError(video_id)

        logger.info(
            "captions_fetched",
            video_id=video_id,
            segments=len(segments),
            lang=getattr(response, "lang", None),
        )
        return segments

    async def fetch_video_metadata(self, video_id: str) -> VideoDetails:
        """Fetch title, channel, publish date, duration and counts for a video.

        Args:
            video_id: YouTube video ID.

        Returns:
            VideoDetails with missing fields left at their defaults.

        Raises:
            NotFoundError: If the video does not exist.
            ExternalServiceError: If the API request fails for another reason.
        """
        try:
            video = await self._call(self.client.youtube.video, id=video_id)
        except ExternalServiceError:
            raise
        except Exception as e:
            if _is_not_found(e):
                raise NotFoundError("video", video_id) from e
            logger.exception(
                "video_metadata_fetch_error",
                video_id=video_id,
                error_type=type(e).__name__,
            )
            raise ExternalServiceError("supadata", str(e)) from e

        channel = _field(video, "channel") or {}
        duration = _field(video, "duration")
        if isinstance(duration, str):
            duration = parse_iso_duration(duration)
        uploaded = _field(video, "uploaded_date")

        details = VideoDetails(
            video_id=video_id,
            title=_field(video, "title") or "Unknown Title",
            description=_field(video, "description") or "",
            channel_title=_field(channel, "name") or "Unknown Channel",
            published_at=uploaded.isoformat() if hasattr(uploaded, "isoformat") else uploaded,
            duration_seconds=duration,
            view_count=_field(video, "view_count"),
            like_count=_field(video, "like_count"),
        )
        logger.info("video_metadata_fetched", video_id=video_id, title=details.title)
        return details

    async def resolve_channel(self, identifier: str) -> ChannelInfo:
        """Resolve a channel URL, handle or raw id to a channel id and title.

        Args:
            identifier: Channel URL, `@handle`, or `UC...` channel id.

        Returns:
            ChannelInfo with the resolved id and display title.

        Raises:
            NotFoundError: If no channel matches.
            ExternalServiceError: If the API request fails for another reason.
        """
        identifier = normalize_channel_input(identifier)
        logger.info("resolving_channel", identifier=identifier, raw_id=is_channel_id(identifier))

        try:
            channel = await self._call(self.client.youtube.channel, id=identifier)
        except ExternalServiceError:
            raise
        except Exception as e:
            if _is_not_found(e):
                raise NotFoundError("channel", identifier) from e
            logger.exception(
                "channel_resolve_error",
                identifier=identifier,
                error_type=type(e).__name__,
            )
            raise ExternalServiceError("supadata", str(e)) from e

        channel_id = _field(channel, "id") or (identifier if is_channel_id(identifier) else None)
        if not channel_id:
            raise NotFoundError("channel", identifier)

        info = ChannelInfo(id=channel_id, title=_field(channel, "name") or "Unknown Channel")
        logger.info("channel_resolved", channel_id=info.id, title=info.title)
        return info

    async def list_channel_videos(self, channel_id: str, max_results: int) -> list[str]:
        """List a channel's most recent video ids, newest first.

        Shorts and live streams are excluded.

        Args:
            channel_id: YouTube channel ID.
            max_results: Maximum number of ids to return.

        Returns:
            Video ids capped at max_results.

        Raises:
            ExternalServiceError: If the API request fails.
        """
        logger.info("fetching_channel_videos", channel_id=channel_id, max_results=max_results)

        try:
            response = await self._call(
                self.client.youtube.channel.videos,
                id=channel_id,
                type="video",  # Exclude shorts and live streams
                limit=max_results,
            )
        except ExternalServiceError:
            raise
        except Exception as e:
            logger.exception(
                "channel_fetch_failed",
                channel_id=channel_id,
                error_type=type(e).__name__,
            )
            raise ExternalServiceError("supadata", str(e)) from e

        video_ids = list(response.video_ids or [])[:max_results]
        logger.info("videos_fetched", channel_id=channel_id, count=len(video_ids))
        return video_ids
