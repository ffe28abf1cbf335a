"""Unit tests for the chapter reader.

Tests use pytest with asyncio support; the speech capability is replaced by an
in-memory fake and audio libraries are mocked via monkeypatch.
"""
