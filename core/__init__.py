"""Core components of the chapter reader.

This package contains the read-aloud engine with its pure playback state machine,
and the speech capabilities the engine drives.
"""
