"""Lease and account lifecycle orchestration.

LeaseOrchestrator is a stateless service over injected collaborators. Each
public operation validates its preconditions before touching anything
external, then drives the multi-system changes through a saga so a
mid-way failure is compensated instead of leaving accounts and leases out
of step.

Operation flow:
  register_account  Entry -> CleanUp, Manager/Admin groups, cleanup request
  request_lease     create Pending; auto-approve when the template allows
  approve_lease     lease Active, account Available -> Active, grant user
  freeze_lease      revoke users, account Active -> Frozen, lease Frozen
  terminate_lease   optionally account -> CleanUp, lease terminal, revoke
  eject_account     sweep leases (best-effort), account -> Exit, delete
  quarantine_account sweep leases (must succeed), account -> Quarantine
"""

from __future__ import annotations

import functools
import logging
import uuid
from typing import Any, Awaitable, Callable, TypeVar

from ..data.paging import stream
from ..domain import lease as lease_model
from ..domain.account import Container, SandboxAccount, is_allowed_move
from ..domain.events import (
    AccountQuarantined,
    CleanAccountRequest,
    FreezeReason,
    IsbEvent,
    LeaseApproved,
    LeaseDenied,
    LeaseFrozen,
    LeaseRequested,
    LeaseTerminated,
    lease_id_of,
    terminated_reason_for,
)
from ..domain.global_config import GlobalConfig
from ..domain.lease import (
    AUTO_APPROVED,
    MONITORED_STATUSES,
    OPEN_STATUSES,
    ExpiredLease,
    Lease,
    LeaseStatus,
    MonitoredLease,
    PendingLease,
)
from ..domain.lease_template import LeaseTemplate
from ..domain.user import GroupRole, IsbUser
from ..errors import (
    AccountInCleanUp,
    AccountMoveConflict,
    AccountNotInActive,
    AccountNotInCleanUp,
    AccountNotInQuarantine,
    CouldNotFindAccount,
    CouldNotRetrieveUser,
    InvalidContainerMove,
    LeaseNotMonitored,
    LeaseNotPending,
    MaxLeasesExceeded,
    TransactionFailed,
)
from ..observability.logging import (
    searchable_account_properties,
    searchable_lease_properties,
)
from ..protocols import (
    AccountDirectory,
    AccountStore,
    Clock,
    EventBus,
    IdentityProvider,
    LeaseStore,
)
from ..saga import (
    Transaction,
    assign_group_access_step,
    grant_user_access_step,
    move_account_step,
    update_lease_step,
)
from ..timeutils import SystemClock, hours_between, ttl_epoch_seconds
from .allocator import AccountAllocator

logger = logging.getLogger(__name__)

F = TypeVar('F', bound=Callable[..., Awaitable[Any]])

Approver = IsbUser | str


def log_errors(func: F) -> F:
    """Log any error raised by an operation, then re-raise it unchanged."""

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await func(*args, **kwargs)
        except Exception as exc:
            logger.error(
                'An error occurred performing action (%s): %s',
                func.__name__,
                exc,
                extra={'operation': func.__name__},
            )
            raise

    return wrapper  # type: ignore[return-value]


class LeaseOrchestrator:
    def __init__(
        self,
        *,
        account_directory: AccountDirectory,
        identity_provider: IdentityProvider,
        lease_store: LeaseStore,
        account_store: AccountStore,
        event_bus: EventBus,
        global_config: GlobalConfig,
        allocator: AccountAllocator | None = None,
        clock: Clock | None = None,
        move_conflict_retries: int = 3,
    ) -> None:
        if move_conflict_retries < 1:
            raise ValueError('move_conflict_retries must be >= 1')
        self._directory = account_directory
        self._identity = identity_provider
        self._leases = lease_store
        self._accounts = account_store
        self._events = event_bus
        self._config = global_config
        self._allocator = allocator or AccountAllocator(account_store)
        self._clock = clock or SystemClock()
        self._move_conflict_retries = move_conflict_retries

    # ── Accounts ─────────────────────────────────────────────────────

    @log_errors
    async def register_account(self, account_id: str) -> SandboxAccount:
        described = await self._directory.describe_account(account_id)
        if described is None:
            raise CouldNotFindAccount(account_id)

        new_account = SandboxAccount(
            aws_account_id=account_id,
            status=Container.CLEANUP,
            email=described.email,
            name=described.name,
        )
        await Transaction(
            move_account_step(
                self._directory,
                self._accounts,
                new_account,
                Container.ENTRY,
                Container.CLEANUP,
                restore_record=False,
            ),
            assign_group_access_step(self._identity, account_id, GroupRole.MANAGER),
            assign_group_access_step(self._identity, account_id, GroupRole.ADMIN),
        ).complete()
        logger.info(
            'Registered new SandboxAccount (%s). Awaiting Cleanup...',
            account_id,
            extra=searchable_account_properties(new_account),
        )
        await self._events.publish(
            CleanAccountRequest(account_id=account_id, reason='account onboarding')
        )
        return new_account

    @log_errors
    async def retry_cleanup(self, account: SandboxAccount) -> None:
        if account.status not in (Container.QUARANTINE, Container.CLEANUP):
            raise AccountNotInQuarantine(account.aws_account_id, str(account.status))

        if account.status is not Container.CLEANUP:
            await Transaction(
                move_account_step(
                    self._directory,
                    self._accounts,
                    account,
                    Container.QUARANTINE,
                    Container.CLEANUP,
                )
            ).complete()

        await self._events.publish(
            CleanAccountRequest(
                account_id=account.aws_account_id, reason='Initiated by admin'
            )
        )
        logger.info(
            'Retry cleanup initiated for account (%s)',
            account.aws_account_id,
            extra=searchable_account_properties(account),
        )

    @log_errors
    async def complete_cleanup(self, account_id: str) -> SandboxAccount:
        account = await self._accounts.get(account_id)
        if account is None:
            raise CouldNotFindAccount(account_id)
        if account.status is not Container.CLEANUP:
            raise AccountNotInCleanUp(account_id, str(account.status))

        cleaned = await Transaction(
            move_account_step(
                self._directory,
                self._accounts,
                account,
                Container.CLEANUP,
                Container.AVAILABLE,
            )
        ).complete()
        logger.info(
            'Account (%s) cleaned and returned to the available pool',
            account_id,
            extra=searchable_account_properties(cleaned),
        )
        return cleaned

    @log_errors
    async def eject_account(self, account: SandboxAccount) -> None:
        """Remove the account from the pool without cleaning it.

        Leases on the account are terminated as Ejected; a lease that fails
        to terminate is logged and skipped, and ejection still proceeds.
        """
        account_id = account.aws_account_id
        if account.status is Container.CLEANUP:
            raise AccountInCleanUp(account_id)
        if not is_allowed_move(account.status, Container.EXIT):
            raise InvalidContainerMove(account_id, str(account.status), str(Container.EXIT))

        await self._terminate_leases_on_account(
            account_id, LeaseStatus.EJECTED, best_effort=True,
        )

        await self._directory.move_account(account_id, account.status, Container.EXIT)
        await self._identity.revoke_group_access(account_id, GroupRole.MANAGER)
        await self._identity.revoke_group_access(account_id, GroupRole.ADMIN)
        await self._accounts.delete(account_id)
        logger.info(
            'Account (%s) ejected',
            account_id,
            extra=searchable_account_properties(account),
        )

    @log_errors
    async def quarantine_account(
        self, account_id: str, current_container: Container, reason: str,
    ) -> SandboxAccount:
        """Force the account into Quarantine from ``current_container``.

        Any lease on the account is terminated as AccountQuarantined first;
        the first failure aborts before the account is moved. The move is
        forced from whatever container the caller reports, so an account
        found in Exit can still be quarantined. When it is already in
        Quarantine only the record is updated.
        """
        existing = await self._accounts.get(account_id)
        account = existing
        if account is None:
            account = SandboxAccount(
                aws_account_id=account_id,
                status=Container.QUARANTINE,
                drift_at_last_scan=True,
            )

        await self._terminate_leases_on_account(
            account_id, LeaseStatus.ACCOUNT_QUARANTINED,
        )
        if current_container is Container.QUARANTINE:
            # Already in the Quarantine container; only the record needs fixing.
            quarantined = await self._accounts.put(account.with_status(Container.QUARANTINE))
        else:
            quarantined = await Transaction(
                move_account_step(
                    self._directory,
                    self._accounts,
                    account,
                    current_container,
                    Container.QUARANTINE,
                    restore_record=existing is not None,
                    enforce_moves=False,
                )
            ).complete()

        logger.warning(
            'Account (%s) quarantined: %s',
            account_id,
            reason,
            extra=searchable_account_properties(quarantined),
        )
        await self._events.publish(
            AccountQuarantined(aws_account_id=account_id, reason=reason)
        )
        return quarantined

    # ── Leases ───────────────────────────────────────────────────────

    @log_errors
    async def request_lease(
        self,
        template: LeaseTemplate,
        user: IsbUser,
        comments: str | None = None,
    ) -> Lease:
        limit = self._config.leases.max_leases_per_user
        open_leases = 0
        async for existing in stream(
            lambda page: self._leases.find_by_user_email(user.email, page)
        ):
            if existing.status in OPEN_STATUSES:
                open_leases += 1
        if open_leases >= limit:
            raise MaxLeasesExceeded(user.email, limit)

        pending = await self._leases.create(
            lease_model.new_pending_lease(
                template,
                user_email=user.email,
                uuid=str(uuid.uuid4()),
                comments=comments,
            )
        )

        result: Lease = pending
        if not template.requires_approval:
            try:
                result = await self.approve_lease(pending, AUTO_APPROVED)
            except Exception:
                await self._leases.delete(pending.key)
                raise
        else:
            await self._events.publish(
                LeaseRequested(
                    lease_id=lease_id_of(pending),
                    user_email=pending.user_email,
                    requires_manual_approval=template.requires_approval,
                    comments=pending.comments,
                )
            )

        logger.info(
            'Lease of type (%s) (%s) requested for (%s)',
            template.name,
            template.uuid,
            user.email,
            extra=searchable_lease_properties(result),
        )
        return result

    @log_errors
    async def approve_lease(self, lease: Lease, approver: Approver) -> MonitoredLease:
        if not isinstance(lease, PendingLease):
            raise LeaseNotPending(lease.uuid, str(lease.status))

        user = await self._identity.get_user_by_email(lease.user_email)
        if user is None:
            raise CouldNotRetrieveUser(lease.user_email)
        approved_by = approver if isinstance(approver, str) else approver.email

        # A concurrent approval can claim the same account first; the
        # directory's conditional move reports that as AccountMoveConflict.
        for attempt in range(1, self._move_conflict_retries + 1):
            account = await self._allocator.acquire()
            approved = lease_model.approve(
                lease,
                aws_account_id=account.aws_account_id,
                approved_by=approved_by,
                now=self._clock.now(),
            )
            try:
                await Transaction(
                    update_lease_step(self._leases, approved, lease),
                    move_account_step(
                        self._directory,
                        self._accounts,
                        account,
                        Container.AVAILABLE,
                        Container.ACTIVE,
                    ),
                    grant_user_access_step(
                        self._identity, account.aws_account_id, user,
                    ),
                ).complete()
            except TransactionFailed as exc:
                if (
                    isinstance(exc.cause, AccountMoveConflict)
                    and attempt < self._move_conflict_retries
                ):
                    logger.warning(
                        'Account %s was claimed concurrently, retrying allocation '
                        '(attempt %d of %d)',
                        account.aws_account_id,
                        attempt,
                        self._move_conflict_retries,
                    )
                    continue
                raise
            break

        logger.info(
            '(%s) approved lease for (%s)',
            approved.approved_by,
            approved.user_email,
            extra={
                **searchable_lease_properties(approved),
                **searchable_account_properties(account),
            },
        )
        await self._events.publish(
            LeaseApproved(
                lease_id=approved.uuid,
                user_email=approved.user_email,
                approved_by=approved.approved_by,
            )
        )
        return approved

    @log_errors
    async def deny_lease(self, lease: Lease, denier: IsbUser) -> Lease:
        if not isinstance(lease, PendingLease):
            raise LeaseNotPending(lease.uuid, str(lease.status))

        denied = lease_model.deny(
            lease,
            denied_by=denier.email,
            ttl=ttl_epoch_seconds(self._config.leases.ttl, now=self._clock.now()),
        )
        await self._leases.update(denied)
        logger.info(
            '(%s) denied lease request for (%s)',
            denier.email,
            lease.user_email,
            extra=searchable_lease_properties(denied),
        )
        await self._events.publish(
            LeaseDenied(
                lease_id=lease.uuid, user_email=lease.user_email, denied_by=denier.email,
            )
        )
        return denied

    @log_errors
    async def freeze_lease(self, lease: Lease, reason: FreezeReason) -> MonitoredLease:
        if not isinstance(lease, MonitoredLease) or not lease_model.is_active(lease):
            raise AccountNotInActive(lease.uuid, str(lease.status))

        account = await self._require_account(lease.aws_account_id)
        user = await self._identity.get_user_by_email(lease.user_email)
        if user is None:
            raise CouldNotRetrieveUser(lease.user_email)

        await self._identity.revoke_all_user_access(account.aws_account_id)

        frozen = lease_model.freeze(lease)
        await Transaction(
            move_account_step(
                self._directory,
                self._accounts,
                account,
                Container.ACTIVE,
                Container.FROZEN,
            ),
            update_lease_step(self._leases, frozen, lease),
        ).complete()

        logger.info(
            'Lease of type (%s) for (%s) frozen. Account (%s) Frozen: %s',
            lease.original_lease_template_name,
            user.email,
            account.aws_account_id,
            reason.type,
            extra=searchable_lease_properties(frozen),
        )
        await self._events.publish(
            LeaseFrozen(
                lease_id=lease_id_of(lease),
                account_id=account.aws_account_id,
                reason=reason,
            )
        )
        return frozen

    @log_errors
    async def terminate_lease(
        self,
        lease: Lease,
        expired_status: LeaseStatus,
        auto_cleanup: bool = True,
    ) -> ExpiredLease:
        """End a monitored lease with ``expired_status``.

        With ``auto_cleanup`` the account is moved to CleanUp and a cleanup
        request is published; the lease sweeps in eject/quarantine pass
        False because they move the account themselves.
        """
        if not isinstance(lease, MonitoredLease):
            raise LeaseNotMonitored(lease.uuid, str(lease.status))

        account = await self._require_account(lease.aws_account_id)
        user = await self._identity.get_user_by_email(lease.user_email)
        if user is None:
            raise CouldNotRetrieveUser(lease.user_email)

        now = self._clock.now()
        terminated = lease_model.terminate(
            lease,
            status=expired_status,
            end_date=now,
            ttl=ttl_epoch_seconds(self._config.leases.ttl, now=now),
        )
        reason = terminated_reason_for(expired_status, lease)

        events: list[IsbEvent] = []
        if auto_cleanup:
            await Transaction(
                move_account_step(
                    self._directory,
                    self._accounts,
                    account,
                    account.status,
                    Container.CLEANUP,
                )
            ).complete()
            events.append(
                CleanAccountRequest(
                    account_id=account.aws_account_id,
                    reason=f'Lease {lease.uuid} {expired_status}',
                )
            )

        await self._leases.update(terminated)
        await self._identity.revoke_all_user_access(account.aws_account_id)

        events.append(
            LeaseTerminated(
                lease_id=lease_id_of(lease),
                account_id=account.aws_account_id,
                reason=reason,
            )
        )
        logger.info(
            'Lease of type (%s) for (%s) terminated. Reason: %s.%s',
            lease.original_lease_template_name,
            user.email,
            expired_status,
            f' SandboxAccount ({account.aws_account_id}) sent for cleanup.'
            if auto_cleanup
            else '',
            extra={
                **searchable_account_properties(account),
                **searchable_lease_properties(terminated),
                'actual_duration_hours': hours_between(lease.start_date, now),
            },
        )
        await self._events.publish(*events)
        return terminated

    # ── Helpers ──────────────────────────────────────────────────────

    async def _require_account(self, account_id: str) -> SandboxAccount:
        account = await self._accounts.get(account_id)
        if account is None:
            raise CouldNotFindAccount(account_id)
        return account

    async def _terminate_leases_on_account(
        self, account_id: str, reason: LeaseStatus, *, best_effort: bool = False,
    ) -> None:
        """Terminate every monitored lease on the account.

        The first failure propagates unless ``best_effort`` is set, in which
        case it is logged and the sweep moves on to the next lease.
        """
        for status in (LeaseStatus.ACTIVE, LeaseStatus.FROZEN):
            leases = [
                lease
                async for lease in stream(
                    lambda page, status=status: self._leases.find_by_status_and_account(
                        status, account_id, page,
                    )
                )
            ]
            for lease in leases:
                if lease.status not in MONITORED_STATUSES:
                    logger.warning(
                        'Lease store returned an unmonitored lease (%s) for status %s',
                        lease.uuid,
                        status,
                    )
                    continue
                try:
                    await self.terminate_lease(lease, reason, auto_cleanup=False)
                except Exception:
                    logger.error(
                        'Error while terminating lease (%s) associated with account (%s).',
                        lease.uuid,
                        account_id,
                        extra=searchable_lease_properties(lease),
                    )
                    if best_effort:
                        continue
                    raise
                logger.info(
                    'Lease (%s) associated with account (%s) terminated. Reason: %s',
                    lease.uuid,
                    account_id,
                    reason,
                )
