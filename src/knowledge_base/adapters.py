"""Ingestion adapters: normalize each source kind into text plus metadata.

Every adapter returns a `NormalizedSource`. Fetching (captions, audio,
metadata) happens before these functions are called, so a failed fetch never
reaches the chunking and insert step.
"""

import uuid

from .errors import InputValidationError
from .formatting import build_video_document, format_video_url
from .schemas import (
    CaptionSegment,
    DocumentMetadata,
    NormalizedSource,
    VideoDetails,
    YouTubeMetadata,
)
from .text_extraction import extract_text
from .youtube_service import extract_video_id

METHOD_LABELS = {
    "caption": "captions",
    "whisper": "Whisper AI",
    "manual": "manual entry",
}


def default_video_title(video_id: str) -> str:
    return f"YouTube Video: {video_id}"


def require_video_id(url: str | None) -> str:
    """Extract a video id from `url` or raise.

    Raises:
        InputValidationError: If the URL is missing or not a YouTube video URL.
    """
    if not url or not url.strip():
        raise InputValidationError("YouTube URL is required")
    video_id = extract_video_id(url)
    if not video_id:
        raise InputValidationError("Invalid YouTube URL format")
    return video_id


def document_source(text: str, metadata: DocumentMetadata) -> NormalizedSource:
    """Wrap already-extracted document text."""
    return NormalizedSource(text=text, metadata=metadata)


def file_source(
    content: bytes,
    media_type: str,
    filename: str,
    file_id: str | None = None,
) -> NormalizedSource:
    """Normalize an uploaded file.

    The file gets a fresh id which becomes the chunk source; the URL points at
    the download route for the stored upload.

    Raises:
        UnsupportedMediaTypeError: If the media type is not allowed.
        InputValidationError: If the file is empty or corrupt.
    """
    if not content:
        raise InputValidationError("No file uploaded")

    file_id = file_id or str(uuid.uuid4())
    text = extract_text(content, media_type, filename)
    return NormalizedSource(
        text=text,
        metadata=DocumentMetadata(
            source=file_id,
            title=filename,
            url=f"/api/files/{file_id}",
            media_type=media_type,
        ),
    )


def transcript_source(
    video_id: str,
    transcript: str,
    method: str,
    details: VideoDetails | None = None,
    title: str | None = None,
    max_description_chars: int = 500,
) -> NormalizedSource:
    """Normalize a video transcript, prepending the metadata header when known.

    Args:
        video_id: YouTube video ID, used as the chunk source.
        transcript: Plain transcript text.
        method: "caption", "whisper" or "manual".
        details: Optional enrichment metadata.
        title: Explicit title, overriding the metadata title.
        max_description_chars: Description truncation limit for the header.
    """
    if details is not None:
        text = build_video_document(
            transcript,
            details,
            METHOD_LABELS.get(method, method),
            max_description_chars,
        )
    else:
        text = transcript

    resolved_title = title or (details.title if details else None) or default_video_title(video_id)
    return NormalizedSource(
        text=text,
        metadata=YouTubeMetadata(
            source=video_id,
            title=resolved_title,
            url=format_video_url(video_id),
            video_id=video_id,
            channel_title=details.channel_title if details else None,
            transcription_method=method,
        ),
    )


def caption_source(
    video_id: str,
    segments: list[CaptionSegment],
    details: VideoDetails | None = None,
    max_description_chars: int = 500,
) -> NormalizedSource:
    """Concatenate caption segments and normalize them as a transcript."""
    transcript = " ".join(segment.text.strip() for segment in segments)
    return transcript_source(
        video_id,
        transcript,
        "caption",
        details=details,
        max_description_chars=max_description_chars,
    )


def manual_source(url: str, transcript_text: str | None, title: str | None = None) -> NormalizedSource:
    """Normalize a caller-supplied transcript.

    Raises:
        InputValidationError: If the URL is invalid or the text is empty.
    """
    video_id = require_video_id(url)
    if not transcript_text or not transcript_text.strip():
        raise InputValidationError("Transcript text is required")
    return transcript_source(video_id, transcript_text.strip(), "manual", title=title)
