"""Error taxonomy for ingestion and retrieval."""


class KnowledgeBaseError(Exception):
    """Base class for all knowledge base errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InputValidationError(KnowledgeBaseError):
    """Malformed caller input: missing URL, empty message, bad file."""


class UnsupportedMediaTypeError(InputValidationError):
    """Uploaded file has a media type outside the allowed set."""

    def __init__(self, media_type: str):
        super().__init__(
            f"Invalid file type '{media_type}'. Only PDF, TXT, DOC, and DOCX files are allowed."
        )
        self.media_type = media_type


class NoTranscriptAvailableError(KnowledgeBaseError):
    """The video has no caption track, or captions are disabled."""

    def __init__(self, video_id: str):
        super().__init__(f"No transcript available for video {video_id}")
        self.video_id = video_id


class TranscriptionFailedError(KnowledgeBaseError):
    """Speech-to-text produced no text (silent audio or empty response)."""

    def __init__(self, video_id: str):
        super().__init__(f"No speech detected or transcription failed for video {video_id}")
        self.video_id = video_id


class ExternalServiceError(KnowledgeBaseError):
    """A call to an embedding, LLM, YouTube, or audio service failed."""

    def __init__(self, service: str, message: str, status_code: int | None = None):
        super().__init__(f"{service} error: {message}")
        self.service = service
        self.status_code = status_code


class AudioDownloadError(ExternalServiceError):
    """Downloading a video's audio track failed."""

    def __init__(self, message: str):
        super().__init__("yt-dlp", message)


class NotFoundError(KnowledgeBaseError):
    """A lookup target (video, channel) does not exist."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(f"{resource} '{identifier}' not found")
        self.resource = resource
        self.identifier = identifier


class EmbeddingDimensionError(KnowledgeBaseError):
    """A vector's length differs from the index dimensionality."""

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Embedding dimension mismatch: index holds {expected}-d vectors, got {actual}-d"
        )
        self.expected = expected
        self.actual = actual
