from typing import Any


class PayrollError(ValueError):
    """Base for every domain failure raised by the ledger and payroll services.

    ``kind`` is the stable machine-readable name returned to clients,
    ``status_code`` the HTTP status the routers map it to and ``context``
    any extra detail that should be rendered next to the message.
    """

    kind = "PayrollError"
    status_code = 400

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        payload = {"detail": self.message, "kind": self.kind}
        payload.update(self.context)
        return payload


class ValidationError(PayrollError):
    kind = "ValidationError"
    status_code = 422


class NotFound(PayrollError):
    kind = "NotFound"
    status_code = 404


class AlreadyClockedIn(PayrollError):
    kind = "AlreadyClockedIn"


class NoOpenEntry(PayrollError):
    kind = "NoOpenEntry"


class AlreadyDecided(PayrollError):
    kind = "AlreadyDecided"


class InvalidOrder(PayrollError):
    kind = "InvalidOrder"


class LockedByPayroll(PayrollError):
    kind = "LockedByPayroll"


class InvalidRunState(PayrollError):
    kind = "InvalidRunState"


class Conflict(PayrollError):
    kind = "Conflict"
    status_code = 409


class PeriodNotComplete(PayrollError):
    kind = "PeriodNotComplete"
    status_code = 422


class NoEligibleEntries(PayrollError):
    kind = "NoEligibleEntries"
    status_code = 500


class StoreError(PayrollError):
    kind = "StoreError"
    status_code = 500
