"""Command-line interface for ingesting sources and querying an ephemeral knowledge base."""

import argparse
import asyncio
import mimetypes
from pathlib import Path

from src.utils.logging import get_logger

from .config import get_config
from .errors import KnowledgeBaseError
from .pipeline import KnowledgeBase
from .schemas import IngestionStrategy

logger = get_logger(__name__)

# mimetypes has no entry for .docx on some platforms
EXTENSION_MEDIA_TYPES = {
    ".txt": "text/plain",
    ".md": "text/plain",
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


def guess_media_type(path: Path) -> str:
    """Guess a file's media type from its extension."""
    media_type = EXTENSION_MEDIA_TYPES.get(path.suffix.lower())
    if media_type:
        return media_type
    guessed, _ = mimetypes.guess_type(path.name)
    return guessed or "application/octet-stream"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Knowledge Base - Ingest documents and videos, then query them",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Ingest a document and ask a question
  python -m src.knowledge_base.cli --file notes.txt --query "which servo should I use"

  # Ingest a video via captions
  python -m src.knowledge_base.cli --video-url https://youtu.be/VIDEO_ID --query "PID tuning"

  # Transcribe a channel's five latest videos with Whisper
  python -m src.knowledge_base.cli --channel @SomeChannel --max-videos 5 --query "motor drivers"

The index lives in memory and is discarded when the command exits.
        """,
    )

    parser.add_argument(
        "--file",
        action="append",
        default=[],
        type=Path,
        help="Document to ingest (PDF, TXT, DOC, DOCX); repeatable",
    )
    parser.add_argument(
        "--video-url",
        action="append",
        default=[],
        help="YouTube video URL to ingest; repeatable",
    )
    parser.add_argument(
        "--strategy",
        choices=[s.value for s in IngestionStrategy if s is not IngestionStrategy.MANUAL],
        default=IngestionStrategy.CAPTION.value,
        help="How to obtain video transcripts (default: caption)",
    )
    parser.add_argument(
        "--channel",
        help="YouTube channel URL, handle or id to transcribe",
    )
    parser.add_argument(
        "--max-videos",
        type=int,
        help="Maximum channel videos to process",
    )
    parser.add_argument(
        "--query",
        action="append",
        default=[],
        help="Question to answer from the ingested sources; repeatable",
    )
    parser.add_argument(
        "--top-k",
        type=int,
        help="Number of chunks to retrieve per query",
    )
    return parser


async def ingest_inputs(kb: KnowledgeBase, args: argparse.Namespace) -> int:
    """Ingest every input named on the command line.

    Returns:
        Number of inputs that failed.
    """
    failures = 0

    for path in args.file:
        try:
            result = await kb.ingest_file(path.read_bytes(), guess_media_type(path), path.name)
            print(f"✅ {path.name}: {result.chunks_created} chunks")
        except (OSError, KnowledgeBaseError) as e:
            logger.warning("cli_file_failed", path=str(path), error_type=type(e).__name__)
            print(f"❌ {path.name}: {e}")
            failures += 1

    for url in args.video_url:
        try:
            result = await kb.ingest_video(url, args.strategy)
            print(f"✅ {result.title}: {result.chunks_created} chunks")
        except KnowledgeBaseError as e:
            logger.warning("cli_video_failed", url=url, error_type=type(e).__name__)
            print(f"❌ {url}: {e.message}")
            failures += 1

    if args.channel:
        try:
            batch = await kb.ingest_channel(args.channel, args.max_videos, skip_existing=True)
        except KnowledgeBaseError as e:
            logger.warning("cli_channel_failed", channel=args.channel, error_type=type(e).__name__)
            print(f"❌ {args.channel}: {e.message}")
            failures += 1
        else:
            print(f"\nChannel: {batch.channel_title} ({batch.channel_id})")
            print(f"Videos found: {batch.total_videos_found}")
            print(f"Processed: {batch.videos_processed}")
            print(f"Failed: {batch.videos_failed}")
            print(f"Total chunks: {batch.total_chunks}")
            for outcome in batch.processed_videos:
                marker = "✅" if outcome.status == "success" else "❌"
                detail = f"{outcome.chunks} chunks" if outcome.status == "success" else outcome.error
                print(f"  {marker} {outcome.title}: {detail}")
            failures += batch.videos_failed

    return failures


async def answer_queries(kb: KnowledgeBase, queries: list[str], top_k: int | None) -> None:
    for query in queries:
        result = await kb.retrieve(query, top_k)
        print(f"\nQuery: {query}")
        if not result.chunks:
            print("  No relevant content found.")
            continue
        for i, (chunk, citation) in enumerate(zip(result.chunks, result.citations, strict=True), 1):
            label = citation.title or citation.source
            print(f"  {i}. [{citation.type}] {label} (chunk {citation.chunk_index})")
            if citation.url:
                print(f"     {citation.url}")
            print(f"     {chunk.content[:200]}")


async def main(argv: list[str] | None = None) -> int:
    """CLI entry point for the knowledge base.

    Builds an in-memory knowledge base, ingests the given inputs, prints a
    summary, then prints ranked citations for each query.

    Returns:
        Process exit code: 0 when every input ingested, 1 otherwise.
    """
    args = build_parser().parse_args(argv)
    config = get_config()
    if args.top_k:
        config.top_k = args.top_k

    logger.info(
        "cli_started",
        files=len(args.file),
        videos=len(args.video_url),
        channel=args.channel,
        queries=len(args.query),
    )

    print("\n" + "=" * 60)
    print("Knowledge Base")
    print("=" * 60)
    print(f"Embedding provider: {config.embedding_provider}")
    print(f"Embedding model: {config.embedding_model}")
    print(f"Chunk size: {config.max_chunk_size} chars, overlap {config.chunk_overlap}")
    print("=" * 60 + "\n")

    kb = KnowledgeBase(config)

    try:
        failures = await ingest_inputs(kb, args)
        stats = kb.stats()
        print(f"\nIndexed chunks: {stats.total_chunks}")
        await answer_queries(kb, args.query, args.top_k)
    except KnowledgeBaseError as e:
        logger.exception("cli_failed", error_type=type(e).__name__)
        print(f"\n❌ {e.message}")
        return 1

    logger.info("cli_completed", failures=failures, total_chunks=stats.total_chunks)
    return 1 if failures else 0


def run() -> None:
    """Console script entry point."""
    raise SystemExit(asyncio.run(main()))


if __name__ == "__main__":
    run()
