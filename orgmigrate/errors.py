"""Structured errors raised by the migration subsystems."""

from typing import Any, Dict


class MigrationError(Exception):
    """Base error carrying a machine-readable kind and a message."""

    kind = "migration_error"

    def __init__(self, message: str, kind: str = None):
        super().__init__(message)
        self.message = message
        if kind:
            self.kind = kind

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class ConfigurationError(MigrationError):
    """Unresolvable external id, missing plan file or invalid configuration."""

    kind = "configuration_error"


class StoreQueryError(MigrationError):
    """The store rejected a query or could not be reached."""

    kind = "store_query_error"

    def __init__(self, message: str, error_code: str = None, status_code: int = None):
        super().__init__(message)
        self.error_code = error_code
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.error_code:
            data["error_code"] = self.error_code
        if self.status_code is not None:
            data["status_code"] = self.status_code
        return data


class AmbiguousIdentityError(MigrationError):
    """Newly created records could not be identified with certainty."""

    kind = "ambiguous_identity"


class IntegrityGuardError(MigrationError):
    """A transactional object was about to be planned with live data."""

    kind = "integrity_guard"


class BackupError(MigrationError):
    """No meaningful backup could be taken."""

    kind = "backup_error"


class ReconciliationError(MigrationError):
    """None of the created objects could be reconciled."""

    kind = "reconciliation_error"
