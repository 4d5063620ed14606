"""
Static data shipped with the package.

``checksums.json`` is the default pinned checksum database.  Entries
holding a ``placeholder`` value are treated as not pinned.
"""

from __future__ import annotations

from pathlib import Path

DATA_DIR = Path(__file__).parent

DEFAULT_CHECKSUMS_DB = DATA_DIR / "checksums.json"
