"""Audio download service backed by yt-dlp."""

import asyncio
import shutil
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import yt_dlp

from src.utils.logging import get_logger

from .config import KnowledgeBaseConfig
from .errors import AudioDownloadError

logger = get_logger(__name__)

# OpenAI transcription upload limit
MAX_AUDIO_BYTES = 25 * 1024 * 1024

# Audio-only formats that the transcription API accepts without re-encoding
AUDIO_FORMAT = "bestaudio[ext=m4a]/bestaudio/best"


class AudioService:
    """Downloads a video's audio track into a scoped temporary directory."""

    def __init__(self, config: KnowledgeBaseConfig):
        self.config = config

    def _download(self, url: str, output_dir: Path) -> Path:
        ydl_opts = {
            "format": AUDIO_FORMAT,
            "outtmpl": str(output_dir / "%(id)s.%(ext)s"),
            "quiet": True,
            "no_warnings": True,
            "noplaylist": True,
            "socket_timeout": self.config.request_timeout_seconds,
        }
        try:
            with yt_dlp.YoutubeDL(ydl_opts) as ydl:
                ydl.download([url])
        except yt_dlp.utils.DownloadError as e:
            raise AudioDownloadError(str(e)) from e

        files = [f for f in output_dir.iterdir() if f.is_file() and f.stat().st_size > 0]
        if not files:
            raise AudioDownloadError(f"yt-dlp produced no audio file for {url}")
        return files[0]

    @asynccontextmanager
    async def download_audio(self, url: str) -> AsyncIterator[Path]:
        """Download the best audio-only track and yield its path.

        The temporary directory holding the file is removed when the context
        exits, whether the body succeeded or raised.

        Args:
            url: Video URL.

        Yields:
            Path to the downloaded audio file.

        Raises:
            AudioDownloadError: If the download fails or the file exceeds 25 MB.

        Examples:
            >>> async with audio_service.download_audio(url) as audio_path:
            ...     text = await speech_service.transcribe_audio(audio_path)
        """
        base_dir = self.config.audio_download_dir or None
        if base_dir:
            Path(base_dir).mkdir(parents=True, exist_ok=True)
        tmp_dir = Path(tempfile.mkdtemp(prefix="yt_audio_", dir=base_dir))

        try:
            logger.info("audio_download_started", url=url)
            audio_path = await asyncio.to_thread(self._download, url, tmp_dir)

            size = audio_path.stat().st_size
            if size > MAX_AUDIO_BYTES:
                raise AudioDownloadError(
                    f"Audio file is {size / (1024 * 1024):.1f} MB; the transcription limit is 25 MB"
                )

            logger.info("audio_download_completed", url=url, size_bytes=size)
            yield audio_path
        finally:
            shutil.rmtree(tmp_dir, ignore_errors=True)
            logger.debug("audio_cleanup_completed", path=str(tmp_dir))
