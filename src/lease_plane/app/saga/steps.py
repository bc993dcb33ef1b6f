"""Saga step factories for the collaborator calls the orchestrator makes."""

from __future__ import annotations

from ..domain.account import Container, SandboxAccount, is_allowed_move
from ..domain.lease import Lease
from ..domain.user import GroupRole, IsbUser
from ..errors import InvalidContainerMove
from ..protocols import AccountDirectory, AccountStore, IdentityProvider, LeaseStore
from .transaction import TransactionStep


def move_account_step(
    directory: AccountDirectory,
    account_store: AccountStore,
    account: SandboxAccount,
    source: Container,
    destination: Container,
    *,
    restore_record: bool = True,
    enforce_moves: bool = True,
) -> TransactionStep[SandboxAccount]:
    """Move the account between containers and persist its new status.

    With ``enforce_moves`` False the container state machine is not
    consulted, for moves forced from wherever the directory reports the
    account to be.

    Compensation moves it back and restores ``account`` as stored, or
    deletes the record when ``restore_record`` is False (the account was
    not stored before this step).
    """
    account_id = account.aws_account_id

    async def perform() -> SandboxAccount:
        if enforce_moves and not is_allowed_move(source, destination):
            raise InvalidContainerMove(account_id, str(source), str(destination))
        await directory.move_account(account_id, source, destination)
        try:
            return await account_store.put(account.with_status(destination))
        except Exception:
            await directory.move_account(account_id, destination, source)
            raise

    async def compensate(_moved: SandboxAccount) -> None:
        await directory.move_account(account_id, destination, source)
        if restore_record:
            await account_store.put(account)
        else:
            await account_store.delete(account_id)

    return TransactionStep(perform, compensate, name=f'move {source}->{destination}')


def grant_user_access_step(
    identity_provider: IdentityProvider, account_id: str, user: IsbUser,
) -> TransactionStep[None]:
    async def perform() -> None:
        await identity_provider.grant_user_access(account_id, user)

    async def compensate(_result: None) -> None:
        await identity_provider.revoke_user_access(account_id, user)

    return TransactionStep(perform, compensate, name='grant user access')


def assign_group_access_step(
    identity_provider: IdentityProvider, account_id: str, role: GroupRole,
) -> TransactionStep[None]:
    async def perform() -> None:
        await identity_provider.assign_group_access(account_id, role)

    async def compensate(_result: None) -> None:
        await identity_provider.revoke_group_access(account_id, role)

    return TransactionStep(perform, compensate, name=f'assign {role} group')


def update_lease_step(
    lease_store: LeaseStore, updated: Lease, previous: Lease,
) -> TransactionStep[Lease]:
    """Persist ``updated``; compensation writes ``previous`` back."""

    async def perform() -> Lease:
        return await lease_store.update(updated)

    async def compensate(_result: Lease) -> None:
        await lease_store.update(previous)

    return TransactionStep(perform, compensate, name=f'update lease to {updated.status}')
