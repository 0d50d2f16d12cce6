"""
Typed errors raised by the timesheet cycle engine.

Every error carries a machine-readable ``code`` and the HTTP status the API
answers with. Callers catch by type, never by message.

    CycleError
    +-- NotConfiguredError
    +-- CycleNotFoundError
    +-- CycleLockedError
    +-- DateOutsideCycleError
    +-- InvalidHoursError
    +-- EvidenceRequiredError
    +-- EvidenceNotFoundError
    +-- EvidenceEncodingError
    +-- DispatchError
"""
from datetime import date


class CycleError(Exception):
    code: str = "CYCLE_ERROR"
    status_code: int = 400


class NotConfiguredError(CycleError):
    code = "NOT_CONFIGURED"
    status_code = 409

    def __init__(self):
        super().__init__("Timesheet start date and frequency have not been configured")


class CycleNotFoundError(CycleError):
    code = "CYCLE_NOT_FOUND"
    status_code = 404

    def __init__(self, cycle_id: str):
        self.cycle_id = cycle_id
        super().__init__(f"Cycle '{cycle_id}' not found")


class CycleLockedError(CycleError):
    code = "CYCLE_LOCKED"
    status_code = 409

    def __init__(self, cycle_id: str):
        self.cycle_id = cycle_id
        super().__init__(f"Cycle '{cycle_id}' has been submitted and cannot be edited")


class DateOutsideCycleError(CycleError):
    code = "DATE_OUTSIDE_CYCLE"
    status_code = 422

    def __init__(self, cycle_id: str, day: date):
        self.cycle_id = cycle_id
        self.day = day
        super().__init__(f"{day.isoformat()} is outside cycle '{cycle_id}'")


class InvalidHoursError(CycleError):
    code = "INVALID_HOURS"
    status_code = 422

    def __init__(self, value: float):
        self.value = value
        super().__init__(f"Hours must be between 0 and 24, got {value}")


class EvidenceRequiredError(CycleError):
    code = "EVIDENCE_REQUIRED"
    status_code = 422

    def __init__(self, cycle_id: str):
        self.cycle_id = cycle_id
        super().__init__("At least one evidence attachment required")


class EvidenceNotFoundError(CycleError):
    code = "EVIDENCE_NOT_FOUND"
    status_code = 404

    def __init__(self, cycle_id: str, index: int):
        self.cycle_id = cycle_id
        self.index = index
        super().__init__(f"Cycle '{cycle_id}' has no evidence at position {index}")


class EvidenceEncodingError(CycleError):
    code = "EVIDENCE_UNREADABLE"
    status_code = 422

    def __init__(self, filename: str):
        self.filename = filename
        super().__init__(f"Evidence '{filename}' is not a readable image")


class DispatchError(CycleError):
    code = "DISPATCH_FAILED"
    status_code = 502

    def __init__(self, cycle_id: str, reason: str = "submission could not be delivered"):
        self.cycle_id = cycle_id
        super().__init__(f"Cycle '{cycle_id}' was not submitted: {reason}")
