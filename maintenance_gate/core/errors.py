"""Maintenance gate errors"""


class MaintenanceError(Exception):
    """Base class for maintenance gate failures"""


class RevisionConflict(MaintenanceError):
    """The stored revision moved on since it was read"""

    def __init__(self, expected_revision: int, actual_revision=None):
        self.expected_revision = expected_revision
        self.actual_revision = actual_revision
        detail = f"Maintenance state changed concurrently (expected revision {expected_revision}"
        if actual_revision is not None:
            detail += f", found {actual_revision}"
        super().__init__(detail + ")")


class PayloadValidationError(MaintenanceError):
    """The submitted message or data is out of bounds"""

    def __init__(self, field: str, detail: str):
        self.field = field
        self.detail = detail
        super().__init__(f"{field}: {detail}")


class StoreUnavailable(MaintenanceError):
    """The state store could not be reached"""
