"""Domain error taxonomy for the lease plane.

Every error raised by the orchestrator, allocator, saga engine, and
monitoring scan derives from ``LeasePlaneError`` so adapters can map the
whole family onto transport-level responses in one place.

Precondition errors are raised before any external mutation happens.
``TransactionFailed`` is the only error that implies a (best-effort)
rollback has already run.
"""

from __future__ import annotations


class LeasePlaneError(Exception):
    """Base class for all lease-plane domain errors."""


# ── Allocation / policy ──────────────────────────────────────────────


class NoAccountsAvailable(LeasePlaneError):
    """No sandbox account is currently in the Available container."""

    def __init__(self) -> None:
        super().__init__('No new sandbox accounts are currently available.')


class MaxLeasesExceeded(LeasePlaneError):
    """The user already holds the maximum number of open leases."""

    def __init__(self, user_email: str, limit: int) -> None:
        self.user_email = user_email
        self.limit = limit
        super().__init__(
            f'user {user_email!r} has reached the maximum number of '
            f'active/pending leases ({limit})'
        )


# ── Account state ────────────────────────────────────────────────────


class AccountNotInQuarantine(LeasePlaneError):
    """Cleanup retry requested for an account outside Quarantine/CleanUp."""

    def __init__(self, account_id: str, status: str) -> None:
        self.account_id = account_id
        self.status = status
        super().__init__(
            f'can only retry cleanup on quarantined accounts and those '
            f'already in CleanUp (account {account_id} is {status})'
        )


class AccountNotInActive(LeasePlaneError):
    """Freeze requested for a lease that is not Active."""

    def __init__(self, lease_uuid: str, status: str) -> None:
        self.lease_uuid = lease_uuid
        self.status = status
        super().__init__(
            f'only active leases can be frozen (lease {lease_uuid} is {status})'
        )


class AccountInCleanUp(LeasePlaneError):
    """Ejection requested while the account is being cleaned."""

    def __init__(self, account_id: str) -> None:
        self.account_id = account_id
        super().__init__(
            f'account {account_id} cannot be ejected while in the CleanUp state'
        )


class AccountNotInCleanUp(LeasePlaneError):
    """Cleanup completion reported for an account that is not in CleanUp."""

    def __init__(self, account_id: str, status: str) -> None:
        self.account_id = account_id
        self.status = status
        super().__init__(
            f'cleanup completion raised for account {account_id} '
            f'whose status is not CleanUp ({status})'
        )


class CouldNotFindAccount(LeasePlaneError):
    """The account record or directory entry does not exist."""

    def __init__(self, account_id: str) -> None:
        self.account_id = account_id
        super().__init__(f'unable to retrieve sandbox account {account_id}')


class CouldNotRetrieveUser(LeasePlaneError):
    """The identity provider does not know the lease's user."""

    def __init__(self, user_email: str) -> None:
        self.user_email = user_email
        super().__init__(f'unable to retrieve user information for {user_email!r}')


class AccountMoveConflict(LeasePlaneError):
    """The directory rejected a move because the source container mismatched."""

    def __init__(self, account_id: str, expected: str, actual: str | None) -> None:
        self.account_id = account_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f'account {account_id} is not in container {expected!r} '
            f'(found {actual!r})'
        )


class InvalidContainerMove(LeasePlaneError, ValueError):
    """Raised for container moves the account state machine forbids."""

    def __init__(self, account_id: str, source: str, destination: str) -> None:
        self.account_id = account_id
        self.source = source
        self.destination = destination
        super().__init__(
            f'invalid container move for account {account_id}: '
            f'{source!r} -> {destination!r}'
        )


# ── Lease state ──────────────────────────────────────────────────────


class LeaseNotPending(LeasePlaneError):
    """Approve/deny requested for a lease that is no longer pending."""

    def __init__(self, lease_uuid: str, status: str) -> None:
        self.lease_uuid = lease_uuid
        self.status = status
        super().__init__(f'lease {lease_uuid} is not pending approval ({status})')


class LeaseNotMonitored(LeasePlaneError):
    """Terminate requested for a lease that is not Active or Frozen."""

    def __init__(self, lease_uuid: str, status: str) -> None:
        self.lease_uuid = lease_uuid
        self.status = status
        super().__init__(f'lease {lease_uuid} is not monitored ({status})')


class InvalidLeaseTransition(LeasePlaneError, ValueError):
    """Raised for lease status transitions the state machine forbids."""

    def __init__(self, from_status: str, to_status: str) -> None:
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f'invalid lease transition: {from_status!r} -> {to_status!r}'
        )


class LeaseNotFound(LeasePlaneError):
    """A lifecycle event referenced a lease that does not exist."""

    def __init__(self, user_email: str, lease_uuid: str) -> None:
        self.user_email = user_email
        self.lease_uuid = lease_uuid
        super().__init__(f'lease not found: {user_email}/{lease_uuid}')


class UnexpectedLeaseState(LeasePlaneError):
    """A lifecycle event was raised for a lease in the wrong state."""

    def __init__(self, detail_type: str, lease_uuid: str, status: str) -> None:
        self.detail_type = detail_type
        self.lease_uuid = lease_uuid
        self.status = status
        super().__init__(
            f'{detail_type} incorrectly raised for lease {lease_uuid} '
            f'in status {status}'
        )


# ── Saga ─────────────────────────────────────────────────────────────


class TransactionFailed(LeasePlaneError):
    """A saga step failed; completed steps were compensated.

    ``cause`` is the original failure, never a compensation error.
    """

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(f'Transaction failed: {cause}')


# ── Monitoring / events / config ─────────────────────────────────────


class CostReportUnavailable(LeasePlaneError):
    """The cost meter could not produce a report for the scan batch."""

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(f'cost report unavailable: {cause}')


class UnsupportedEvent(LeasePlaneError):
    """The lifecycle manager received an event type it does not handle."""

    def __init__(self, detail_type: str) -> None:
        self.detail_type = detail_type
        super().__init__(f'unsupported event detail type: {detail_type}')


class ConfigError(LeasePlaneError, ValueError):
    """Raised when settings or the global policy document are invalid."""
