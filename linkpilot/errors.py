from typing import Optional


class LinkImportError(Exception):
    """Base class for everything the import pipeline raises."""


class InvalidUrl(LinkImportError):
    def __init__(self, raw: str, message: str = "Invalid URL format"):
        self.raw = raw
        super().__init__(message)


class UnsupportedFileType(LinkImportError):
    def __init__(self, filename: str):
        self.filename = filename
        super().__init__("Please upload a .csv or .txt file")


class DuplicateConflict(LinkImportError):
    """The store already holds a bookmark for this URL. Not a real failure."""


class TransportError(LinkImportError):
    pass


class ApplicationError(LinkImportError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class LogPersistenceError(LinkImportError):
    pass


class InvalidTransition(LinkImportError):
    def __init__(self, record_id: str, current: str, target: str):
        self.record_id = record_id
        self.current = current
        self.target = target
        super().__init__(f"Record {record_id} cannot move from {current} to {target}")
