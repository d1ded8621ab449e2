"""Editable location grid engine.

Client-held, optimistically mutated table of location records with inline
editing, paste import and undo, synchronized to a tenant-scoped store.
"""

__version__ = "0.1.0"
