"""Tax roll archive: public search and transcription workflow service."""

__version__ = "0.1.0"
