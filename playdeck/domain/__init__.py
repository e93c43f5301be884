"""Domain services of the playback engine."""
