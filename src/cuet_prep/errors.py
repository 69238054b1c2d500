"""Exception types shared across the selection pipeline."""


class CuetPrepError(Exception):
    """Base class for errors raised by this package."""


class StorageError(CuetPrepError):
    """The key-value store could not be read or written."""


class GenerationError(CuetPrepError):
    """A question source failed or returned nothing usable."""


class InvalidQuestionError(CuetPrepError):
    """A question failed the structural acceptance checks."""

    def __init__(self, question_id: str, reasons: list[str]):
        self.question_id = question_id
        self.reasons = reasons
        super().__init__(f"{question_id}: {'; '.join(reasons)}")
