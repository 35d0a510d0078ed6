"""
Mastery engine error taxonomy.

All of these originate at the I/O boundary or at input validation; the
pure core never raises them.
"""


class MasteryError(Exception):
    """Base class for mastery engine errors."""
    pass


class StructureMissing(MasteryError):
    """The lesson has no atomic decomposition. Turned into a tagged no-op."""

    def __init__(self, lesson_id: str):
        super().__init__(f"No atomic structure for lesson {lesson_id}")
        self.lesson_id = lesson_id


class InvalidInput(MasteryError):
    """Score outside 0-100, unknown element id, or malformed payload. Nothing is mutated."""
    pass


class RecordConflict(MasteryError):
    """Another writer updated the record since it was read."""
    pass


class TransientFailure(MasteryError):
    """Conflicts persisted after all retries. Safe to retry from scratch."""
    pass


class PersistenceFailure(MasteryError):
    """Storage unavailable or timed out. The update was not applied."""
    pass
