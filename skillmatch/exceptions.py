"""Shared exceptions for the skillmatch assignment engine."""


class ConfigError(Exception):
    """Raised when skillmatch.yaml is invalid or missing."""

    def __init__(self, message: str, suggestion: str = ""):
        self.message = message
        self.suggestion = suggestion
        full = message
        if suggestion:
            full += f"\n  Try: {suggestion}"
        super().__init__(full)


class ValidationError(Exception):
    """Raised when caller-supplied input is out of range or of an unknown kind."""

    def __init__(self, message: str, suggestion: str = ""):
        self.message = message
        self.suggestion = suggestion
        full = message
        if suggestion:
            full += f"\n  Try: {suggestion}"
        super().__init__(full)


class ItemNotFound(Exception):
    """Raised when a work item id does not exist in the store."""

    def __init__(self, work_item_id: str, suggestion: str = ""):
        self.work_item_id = work_item_id
        self.suggestion = suggestion or "Check the work item id, or import it with 'skillmatch import'."
        msg = f"Work item '{work_item_id}' not found"
        msg += f"\n  Try: {self.suggestion}"
        super().__init__(msg)


class EmptyPoolError(Exception):
    """Raised when neither the delivery group nor the org unit has members."""

    def __init__(self, pool_id: str, org_id: str, suggestion: str = ""):
        self.pool_id = pool_id
        self.org_id = org_id
        self.suggestion = suggestion or "Add members to the pool or to the organization."
        msg = f"No eligible workers in pool '{pool_id}' or organization '{org_id}'"
        msg += f"\n  Try: {self.suggestion}"
        super().__init__(msg)


class NoDevelopersAvailable(Exception):
    """Raised when ranking is asked to pick a winner from no candidates."""

    def __init__(self, work_item_id: str, suggestion: str = ""):
        self.work_item_id = work_item_id
        self.suggestion = suggestion
        msg = f"No developers available for assignment of '{work_item_id}'"
        if suggestion:
            msg += f"\n  Try: {suggestion}"
        super().__init__(msg)


class StoreError(Exception):
    """Raised by a storage client when the backend is unreachable or misbehaving.

    Transient by nature; StoreAccess retries it once.
    """

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Store operation '{operation}' failed: {reason}")


class AssignmentUnavailable(Exception):
    """Raised when a store read keeps failing after the single retry."""

    def __init__(self, operation: str, reason: str, suggestion: str = ""):
        self.operation = operation
        self.reason = reason
        self.suggestion = suggestion or "The read phase is safe to retry; call assign again shortly."
        msg = f"Assignment unavailable: '{operation}' failed ({reason})"
        msg += f"\n  Try: {self.suggestion}"
        super().__init__(msg)


class AuditWriteFailed(Exception):
    """Raised when a computed decision could not be persisted.

    The decision itself is still valid and is attached for reconciliation.
    """

    def __init__(self, work_item_id: str, reason: str, decision=None, suggestion: str = ""):
        self.work_item_id = work_item_id
        self.reason = reason
        self.decision = decision
        self.suggestion = suggestion or "Re-record the decision with 'skillmatch assign --record' once the store is back."
        msg = f"Audit write failed for '{work_item_id}': {reason}"
        msg += f"\n  Try: {self.suggestion}"
        super().__init__(msg)
