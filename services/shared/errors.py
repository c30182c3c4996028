"""Typed errors surfaced by the receivables audit pipeline.

Only structural failures are raised. Row-level and value-level defects are
degraded to defaults and recorded as anomalies by the analyzer instead.
"""


class AuditError(Exception):
    """Base class for fatal audit pipeline errors.

    The message is meant to be shown to the end user as-is.
    """


class FormatError(AuditError):
    """Uploaded file has no header row or no data rows."""

    def __init__(self, message: str = "File is empty or the header row is missing") -> None:
        super().__init__(message)


class SchemaError(AuditError):
    """A required column could not be located in the header row.

    Attributes:
        concept: Human-readable name of the missing concept (e.g. 'customer name')
        synonyms: Header keywords that were searched for
    """

    def __init__(self, concept: str, synonyms: tuple[str, ...] = ()) -> None:
        self.concept = concept
        self.synonyms = synonyms
        message = f"Required column not found: {concept}"
        if synonyms:
            message += f" (looked for headers containing: {', '.join(synonyms)})"
        super().__init__(message)
