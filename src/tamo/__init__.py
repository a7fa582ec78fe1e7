"""tamo: ordered tasks interlinked with memos, kept in one local JSON file.

Layout:
    .tamo/
    └── data.json        # {"version": 1, "tasks": [...], "memos": [...]}

Core modules: model (records + Store), ordering (fractional order keys),
integrity (id resolution + guarded removal), ingest (Markdown -> task + memos).
"""

__version__ = "0.1.0"
