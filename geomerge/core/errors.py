"""Error kinds raised and handled while reconciling rows."""


class ReconciliationError(Exception):
    """Base class for reconciliation errors."""


class RowParseError(ReconciliationError):
    """An input row can not be decoded (column count, name, location)."""

    def __init__(self, message: str, fields=None):
        super().__init__(message)
        self.fields = fields


class ExternalServiceError(ReconciliationError):
    """The search service failed to answer a query."""


class PersistenceConflict(ReconciliationError):
    """The store rejected a write (constraint violation)."""


class ClassificationAmbiguity(ReconciliationError):
    """
    An unmerged place then an unmerged sub-place matched the same row.

    Not raised: the resolver hands it to its ambiguity callback, the engine
    counts it and records it as a warning of the run summary.
    """

    def __init__(self, place, sub_place):
        super().__init__(
            f"place {place.name}/{place.feature_id} then sub-place {sub_place.name}/{sub_place.feature_id}"
        )
        self.place = place
        self.sub_place = sub_place
