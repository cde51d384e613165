"""Custom exception hierarchy."""

from typing import Any, Dict, Iterable, List, Optional


class AppError(Exception):
    """Base exception for application errors."""

    status_code = 500
    title = "Application Error"
    default_code = "application_error"

    def __init__(self, message: str, code: Optional[str] = None, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.original_error = original_error

    def extra(self) -> Dict[str, Any]:
        """Machine-readable fields added to the error body."""
        return {}


class ValidationError(AppError):
    """Raised when a required field is missing or invalid."""

    status_code = 400
    title = "Validation Error"
    default_code = "validation_error"


class PageRequiredError(ValidationError):
    default_code = "page_id_required"

    def __init__(self):
        super().__init__("page_id is required")


class MissingFieldsError(ValidationError):
    """Raised with every missing required field, not just the first."""

    default_code = "missing_required_fields"

    def __init__(self, missing_fields: Iterable[str]):
        self.missing_fields: List[str] = list(missing_fields)
        super().__init__(f"Missing required fields: {', '.join(self.missing_fields)}")

    def extra(self) -> Dict[str, Any]:
        return {"missing_fields": self.missing_fields}


class NameRequiredError(ValidationError):
    default_code = "name_required"

    def __init__(self):
        super().__init__("A name is required to search")


class InvalidDecisionError(ValidationError):
    default_code = "decision_must_be_approved_or_rejected"

    def __init__(self, decision: Any):
        super().__init__(f"Decision must be 'approved' or 'rejected', got {decision!r}")


class NoFieldsProvidedError(ValidationError):
    default_code = "no_fields_provided"

    def __init__(self, table: str):
        super().__init__(f"No writable fields provided for {table}")


class ImportFileError(ValidationError):
    """Raised when a bulk import upload cannot be read at all."""

    default_code = "invalid_file"


class ConflictError(AppError):
    """Raised when a payload disagrees with an authoritative record."""

    status_code = 400
    title = "Conflict"
    default_code = "conflict"

    def __init__(self, message: str, expected: Any = None, code: Optional[str] = None):
        super().__init__(message, code=code)
        self.expected = expected

    def extra(self) -> Dict[str, Any]:
        return {"expected": self.expected}


class CountyMismatchError(ConflictError):
    default_code = "county_mismatch"

    def __init__(self, page_county_id: Optional[int]):
        super().__init__(
            f"county_id must match the page county ({page_county_id})",
            expected=page_county_id,
        )


class DistrictMismatchError(ConflictError):
    default_code = "district_mismatch"

    def __init__(self, page_district_id: Optional[int]):
        super().__init__(
            f"district_id must match the page district ({page_district_id})",
            expected=page_district_id,
        )


class InvalidTransitionError(AppError):
    """Raised when a status transition is not allowed by the active policy."""

    status_code = 409
    title = "Invalid Status Transition"
    default_code = "invalid_status_transition"

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move entry from '{current}' to '{target}'")
        self.current = current
        self.target = target

    def extra(self) -> Dict[str, Any]:
        return {"current_status": self.current, "target_status": self.target}


class NotFoundError(AppError):
    """Raised when a referenced entity does not exist."""

    status_code = 404
    title = "Not Found"
    default_code = "not_found"


class PageNotFoundError(NotFoundError):
    default_code = "page_not_found"

    def __init__(self, page_id: Any):
        super().__init__(f"Page {page_id} not found")


class EntryNotFoundError(NotFoundError):
    def __init__(self, entry_id: Any):
        super().__init__(f"Entry {entry_id} not found")


class UnknownTableError(NotFoundError):
    default_code = "unknown_table"

    def __init__(self, table: str):
        super().__init__(f"Unknown table: {table}")


class ForbiddenError(AppError):
    """Raised when the caller's role is not in the allow-list."""

    status_code = 403
    title = "Forbidden"
    default_code = "forbidden"

    def __init__(self, required_roles: Iterable[str]):
        self.required_roles = list(required_roles)
        super().__init__(f"This endpoint requires one of: {', '.join(self.required_roles)}")

    def extra(self) -> Dict[str, Any]:
        return {"required_roles": self.required_roles}


class InternalError(AppError):
    """Raised when the store fails unexpectedly."""

    status_code = 500
    title = "Internal Server Error"
    default_code = "internal_server_error"
