"""Typed exceptions for note operations."""


class NoteNotFoundError(Exception):
    """
    No note with this ID belongs to the caller.

    Raised both for missing notes and for notes owned by someone else, so
    callers cannot discover other users' note IDs.
    """

    def __init__(self, note_id=None):
        self.note_id = note_id
        super().__init__("Note not found")
