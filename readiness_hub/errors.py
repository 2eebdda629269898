from typing import Optional


class ReadinessHubError(Exception):
    """Base for faults raised at the ingestion, telemetry and store boundaries."""


class ValidationFault(ReadinessHubError):
    """A malformed ingestion record. ``index`` is the record's position in the batch."""

    def __init__(self, message: str, index: Optional[int] = None, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.index = index
        self.field = field

    def to_dict(self):
        return {"index": self.index, "field": self.field, "message": self.message}


class DataUnavailableFault(ReadinessHubError):
    """A telemetry fetch came back empty, partial or failed."""

    def __init__(self, source: str, detail: str = ""):
        super().__init__(f"{source}_unavailable{':' + detail if detail else ''}")
        self.source = source
        self.detail = detail


class PersistenceFault(ReadinessHubError):
    """A store write failed. The computed result is still handed back to the caller."""

    def __init__(self, operation: str, detail: str = ""):
        super().__init__(f"{operation}_failed{':' + detail if detail else ''}")
        self.operation = operation
        self.detail = detail
