from __future__ import annotations


class TimeflowError(Exception):
    """Base class for user-facing failures. The message is shown as-is."""


class ValidationError(TimeflowError):
    pass


class InvalidStateError(TimeflowError):
    pass


class LockedEntryError(TimeflowError):
    def __init__(self, entry_id: str) -> None:
        super().__init__(f"Entry {entry_id} is locked by a sent report and cannot be changed")
        self.entry_id = entry_id


class NoRecipientsError(TimeflowError):
    def __init__(self) -> None:
        super().__init__("No recipients configured for email or SMS delivery")


class ImportFormatError(TimeflowError):
    pass
