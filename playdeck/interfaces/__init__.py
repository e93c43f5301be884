"""Outer interfaces of the playback engine."""
