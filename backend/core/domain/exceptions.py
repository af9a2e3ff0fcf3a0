"""
core.domain.exceptions — Domain-specific exception hierarchy.

These exceptions represent business-rule violations inside service layers.
They are deliberately **not** DRF exceptions so that the domain layer stays
framework-agnostic.  The global DRF exception handler
(``core.domain.exception_handler``) maps them to HTTP responses.

Mapping cheatsheet
------------------
┌─────────────────────────┬──────┬──────────────────────────┐
│ Domain Exception        │ Code │ ``code`` in response     │
├─────────────────────────┼──────┼──────────────────────────┤
│ DomainError             │ 400  │ domain_error             │
│ ValidationFailed        │ 400  │ validation_failed        │
│ NotFound                │ 404  │ not_found                │
│ Conflict                │ 409  │ conflict                 │
│ IllegalTransition       │ 409  │ illegal_transition       │
│ CaseNotClaimable        │ 409  │ case_not_claimable       │
│ ConcurrentModification  │ 409  │ concurrent_modification  │
└─────────────────────────┴──────┴──────────────────────────┘

Every class carries a stable ``code`` so that clients can decide
whether to retry (``concurrent_modification``), show a validation
message (``validation_failed``) or treat the rejection as final
(``case_not_claimable``).

Recommended usage inside a service::

    from core.domain.exceptions import IllegalTransition

    if command_name not in ALLOWED_COMMANDS[current_status]:
        raise IllegalTransition(
            current=current_status,
            command=command_name,
        )
"""

from __future__ import annotations


class DomainError(Exception):
    """
    Base class for all domain / business-rule errors.

    Catch this at the view boundary and convert to a 400 Bad Request.
    """

    code = "domain_error"

    def __init__(self, message: str = "A business rule was violated.") -> None:
        self.message = message
        super().__init__(self.message)


class ValidationFailed(DomainError):
    """
    The command payload breaks a business validation rule
    (status-update note too short, not enough photos, blank reason).

    Maps to HTTP 400.
    """

    code = "validation_failed"

    def __init__(self, message: str = "The submitted data is invalid.") -> None:
        super().__init__(message)


class NotFound(DomainError):
    """
    The requested resource does not exist.

    Maps to HTTP 404.
    """

    code = "not_found"

    def __init__(self, message: str = "The requested resource was not found.") -> None:
        super().__init__(message)


class Conflict(DomainError):
    """
    The operation conflicts with the current state of the resource.

    Typical usage: duplicate creation attempt.
    Maps to HTTP 409.
    """

    code = "conflict"

    def __init__(self, message: str = "The operation conflicts with the current state.") -> None:
        super().__init__(message)


class IllegalTransition(Conflict):
    """
    A command that is not allowed from the current status, or whose
    guard does not hold (e.g. the actor is not an assigned helper).

    Example::

        raise IllegalTransition(
            current="open",
            command="resolve",
            reason="Only an assigned helper can resolve a case.",
        )
    """

    code = "illegal_transition"

    def __init__(
        self,
        message: str | None = None,
        *,
        current: str | None = None,
        command: str | None = None,
        reason: str | None = None,
    ) -> None:
        if message is None:
            parts = ["Illegal transition"]
            if command:
                parts.append(f"'{command}'")
            if current:
                parts.append(f"from '{current}'")
            message = " ".join(parts) + "."
            if reason:
                message = f"{message} {reason}"
        super().__init__(message)
        self.current = current
        self.command = command
        self.reason = reason


class CaseNotClaimable(Conflict):
    """
    A claim was attempted on a case that is already resolved or closed.
    Final from the caller's point of view.
    """

    code = "case_not_claimable"

    def __init__(self, message: str = "This case can no longer be claimed.") -> None:
        super().__init__(message)


class ConcurrentModification(Conflict):
    """
    The optimistic-concurrency check kept failing until the retry budget
    ran out, or the caller pinned a version that is no longer current.

    The caller should re-fetch the case and resubmit.
    """

    code = "concurrent_modification"

    def __init__(
        self,
        message: str | None = None,
        *,
        expected_version: int | None = None,
        actual_version: int | None = None,
    ) -> None:
        if message is None:
            message = "The case was modified concurrently. Reload it and try again."
            if expected_version is not None and actual_version is not None:
                message = (
                    f"Case version is {actual_version}, expected {expected_version}. "
                    "Reload it and try again."
                )
        super().__init__(message)
        self.expected_version = expected_version
        self.actual_version = actual_version
