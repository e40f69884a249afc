"""Knowledge base for the robot building assistant.

This package ingests uploaded documents and YouTube video transcripts,
splits them into overlapping chunks, embeds them, and keeps them in an
in-memory vector index that answers cosine-similarity queries for chat.
"""
