"""dltrust — download trust and provenance verification."""

__version__ = "0.1.0"
