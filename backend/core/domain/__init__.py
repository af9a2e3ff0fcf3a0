"""
core.domain — Shared domain utilities for cross-app service layers.

Modules
-------
exceptions         Domain-specific exceptions that map cleanly to HTTP responses.
exception_handler  DRF exception handler for the exceptions above.
notifications      Notification creation helper.
transactions       Version-guarded conditional update (compare-and-swap).

Usage from any app::

    from core.domain.exceptions import DomainError, IllegalTransition
    from core.domain.notifications import NotificationService
    from core.domain.transactions import compare_and_swap
"""
