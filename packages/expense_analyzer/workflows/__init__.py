"""High-level workflows composing parsing, staging and the store."""

from .import_flow import ImportOutcome, import_files, review_and_commit

__all__ = ["ImportOutcome", "import_files", "review_and_commit"]
