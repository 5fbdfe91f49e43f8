"""
USB Ingest - rule-driven batch copying of files off removable media.

Features:
- Ordered glob rules routing files to destination folders
- Exclusion patterns applied while scanning
- Duplicate handling (skip, overwrite, rename) with optional content hashing
- Streaming copies with an ordered progress trace
- Optional date-based reorganisation, copy history and post-copy actions
"""

__version__ = "1.0.0"
