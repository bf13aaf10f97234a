"""
Error taxonomy for the SecurePay+ sync core.

Local validation problems are raised before any state is touched; remote
failures are raised by store/feed adapters and caught at the session boundary,
where they become user-visible messages instead of propagating.
"""

from __future__ import annotations


class SecurePayError(Exception):
    """Root of every error raised by this package."""


class DraftValidationError(SecurePayError):
    """A user-supplied draft is missing a required field or holds an invalid value."""


class RemoteStoreError(SecurePayError):
    """A query, upsert or delete against the remote store failed."""


class SubscriptionError(SecurePayError):
    """The change feed could not be subscribed to."""


__all__ = [
    "SecurePayError",
    "DraftValidationError",
    "RemoteStoreError",
    "SubscriptionError",
]
