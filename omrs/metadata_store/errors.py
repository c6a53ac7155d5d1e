"""
Error types for the metadata store.

This module defines every exception the lifecycle engine raises:
- RepositoryError: Base exception
- NotKnownError / TypeDefNotKnownError: Instance or type is not known
- StatusNotSupportedError: Requested status is not allowed
- FunctionNotSupportedError: Soft delete / undo not available (expected outcome)
- TypeConformanceError: Properties or relationship ends do not match the type
- InvalidTransitionError: Lifecycle move is illegal from the current state
- ConcurrentModificationError: Another mutation committed first
- InvalidInstanceError: Malformed instance supplied by the caller

Each error carries a code from RepositoryErrorCode, whose entries hold
the message id, message template, system action and user action.

Invariants:
    - All errors inherit from RepositoryError
    - details always include the GUID the call addressed, when there is one
    - The engine never retries on behalf of the caller
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional


class RepositoryErrorCode(Enum):
    """Catalogue of repository error codes.

    Each member is (message_id, message_template, system_action, user_action).
    Templates use positional ``{0}``-style placeholders.
    """

    INSTANCE_NOT_KNOWN = (
        "OMRS-METADATA-STORE-404-001",
        "The {0} with guid {1} is not known to metadata collection {2}",
        "The system is unable to retrieve or update the instance.",
        "Check the guid; the instance may have been deleted or purged.",
    )
    TYPEDEF_NOT_KNOWN = (
        "OMRS-METADATA-STORE-404-002",
        "The {0} type {1} is not registered",
        "The system is unable to process the request.",
        "Register the type definition before creating instances of it.",
    )
    STATUS_NOT_SUPPORTED = (
        "OMRS-METADATA-STORE-400-001",
        "Status {0} is not supported for instance {1} of type {2}",
        "The system is unable to update the instance status.",
        "Use one of the type's valid statuses; use delete to remove an instance.",
    )
    FUNCTION_NOT_SUPPORTED = (
        "OMRS-METADATA-STORE-501-001",
        "Function {0} is not supported for instance {1}: {2}",
        "The instance is unchanged.",
        "Record the capability as unavailable for this type or repository.",
    )
    TYPE_CONFORMANCE = (
        "OMRS-METADATA-STORE-400-002",
        "Properties do not conform to type {0}: {1}",
        "The system is unable to store the properties.",
        "Correct the properties to match the type definition.",
    )
    INVALID_TRANSITION = (
        "OMRS-METADATA-STORE-409-001",
        "Transition {0} is not valid for instance {1} in status {2}",
        "The instance is unchanged.",
        "Retrieve the instance and check its current status before retrying.",
    )
    CONCURRENT_MODIFICATION = (
        "OMRS-METADATA-STORE-409-002",
        "Instance {0} changed from version {1} to {2} during the request",
        "The losing request was not applied.",
        "Retrieve the latest version and retry the request if still required.",
    )
    INVALID_INSTANCE = (
        "OMRS-METADATA-STORE-400-003",
        "Instance {0} was rejected: {1}",
        "The system is unable to store the instance.",
        "Correct the instance before resubmitting it.",
    )

    def __init__(
        self,
        message_id: str,
        message_template: str,
        system_action: str,
        user_action: str,
    ) -> None:
        self.message_id = message_id
        self.message_template = message_template
        self.system_action = system_action
        self.user_action = user_action

    def format(self, *params: Any) -> str:
        """Render the message template with positional parameters."""
        return self.message_template.format(*params)


class RepositoryError(Exception):
    """Base exception for all metadata store errors.

    Attributes:
        message: Error message
        code: Error code catalogue entry
        details: Additional error context (guid, transition, current state)
    """

    def __init__(
        self,
        message: str,
        code: RepositoryErrorCode,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    @property
    def message_id(self) -> str:
        return self.code.message_id

    def __str__(self) -> str:
        return f"{self.code.message_id} {self.message}"


class NotKnownError(RepositoryError):
    """Instance is absent, purged, or soft-deleted for a strict read.

    Attributes:
        guid: GUID the request addressed
        instance_category: "entity", "relationship" or a type category
    """

    def __init__(
        self,
        guid: str,
        instance_category: str,
        metadata_collection_id: Optional[str] = None,
        code: RepositoryErrorCode = RepositoryErrorCode.INSTANCE_NOT_KNOWN,
        message: Optional[str] = None,
    ) -> None:
        super().__init__(
            message or code.format(instance_category, guid, metadata_collection_id),
            code=code,
            details={
                "guid": guid,
                "instance_category": instance_category,
                "metadata_collection_id": metadata_collection_id,
            },
        )
        self.guid = guid
        self.instance_category = instance_category


class TypeDefNotKnownError(NotKnownError):
    """No type definition of the expected category has this GUID or name."""

    def __init__(self, type_guid_or_name: str, category: str) -> None:
        super().__init__(
            type_guid_or_name,
            category,
            code=RepositoryErrorCode.TYPEDEF_NOT_KNOWN,
            message=RepositoryErrorCode.TYPEDEF_NOT_KNOWN.format(category, type_guid_or_name),
        )


class NotSupportedError(RepositoryError):
    """Base for requests the type or the store does not support."""
    pass


class StatusNotSupportedError(NotSupportedError):
    """Requested status is DELETED or outside the type's valid statuses."""

    def __init__(
        self,
        guid: str,
        requested_status: str,
        type_name: str,
        current_status: Optional[str] = None,
    ) -> None:
        code = RepositoryErrorCode.STATUS_NOT_SUPPORTED
        super().__init__(
            code.format(requested_status, guid, type_name),
            code=code,
            details={
                "guid": guid,
                "requested_status": requested_status,
                "current_status": current_status,
                "type_name": type_name,
            },
        )
        self.guid = guid
        self.requested_status = requested_status


class FunctionNotSupportedError(NotSupportedError):
    """Soft delete or undo is not available for this type or store.

    This is an expected, recoverable outcome: callers record it as a
    capability discovery rather than treating it as a failure.

    Attributes:
        function: Name of the unavailable function (e.g. "delete_entity")
        guid: GUID the request addressed
    """

    def __init__(self, function: str, guid: str, reason: str) -> None:
        code = RepositoryErrorCode.FUNCTION_NOT_SUPPORTED
        super().__init__(
            code.format(function, guid, reason),
            code=code,
            details={"function": function, "guid": guid, "reason": reason},
        )
        self.function = function
        self.guid = guid


class TypeConformanceError(RepositoryError):
    """Properties or relationship ends do not conform to their type.

    Attributes:
        type_name: Type the properties were checked against
        errors: Every conformance problem found
    """

    def __init__(
        self,
        type_name: str,
        errors: List[str],
        guid: Optional[str] = None,
    ) -> None:
        code = RepositoryErrorCode.TYPE_CONFORMANCE
        super().__init__(
            code.format(type_name, "; ".join(errors)),
            code=code,
            details={"type_name": type_name, "errors": errors, "guid": guid},
        )
        self.type_name = type_name
        self.errors = errors


class InvalidTransitionError(RepositoryError):
    """Lifecycle transition is not valid from the instance's current state."""

    def __init__(self, guid: str, transition: str, current_status: str, reason: str = "") -> None:
        code = RepositoryErrorCode.INVALID_TRANSITION
        message = code.format(transition, guid, current_status)
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message,
            code=code,
            details={
                "guid": guid,
                "transition": transition,
                "current_status": current_status,
            },
        )
        self.guid = guid
        self.transition = transition
        self.current_status = current_status


class ConcurrentModificationError(RepositoryError):
    """The instance version changed between read and commit.

    Attributes:
        expected_version: Version read at the start of the request
        actual_version: Version found at commit (None if the instance vanished)
    """

    def __init__(
        self,
        guid: str,
        expected_version: int,
        actual_version: Optional[int],
        transition: Optional[str] = None,
    ) -> None:
        code = RepositoryErrorCode.CONCURRENT_MODIFICATION
        super().__init__(
            code.format(guid, expected_version, actual_version),
            code=code,
            details={
                "guid": guid,
                "expected_version": expected_version,
                "actual_version": actual_version,
                "transition": transition,
            },
        )
        self.guid = guid
        self.expected_version = expected_version
        self.actual_version = actual_version


class InvalidInstanceError(RepositoryError):
    """Caller supplied an instance the store cannot accept."""

    def __init__(self, guid: str, reason: str) -> None:
        code = RepositoryErrorCode.INVALID_INSTANCE
        super().__init__(
            code.format(guid, reason),
            code=code,
            details={"guid": guid, "reason": reason},
        )
        self.guid = guid
        self.reason = reason
