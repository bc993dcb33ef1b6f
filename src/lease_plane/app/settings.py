"""Lease plane configuration settings.

LeasePlaneSettings is a plain frozen dataclass (not env-coupled) so tests
can inject config without touching os.environ. Policy that operators edit
at runtime lives in the GlobalConfig document instead.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from .errors import ConfigError

_ENVIRONMENTS = frozenset({'local', 'dev', 'staging', 'production'})
_LOG_LEVELS = frozenset({'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'})


@dataclass(frozen=True, slots=True)
class LeasePlaneSettings:
    """Process-level configuration for the orchestrator and monitoring scan."""

    # ── Environment ────────────────────────────────────────────────
    environment: str = 'local'
    """One of: local, dev, staging, production."""

    # ── Allocation ─────────────────────────────────────────────────
    allocation_page_size: int = 10
    """Available accounts fetched per allocation before picking one at random."""

    move_conflict_retries: int = 3
    """Attempts at allocate-and-approve when the directory reports a move conflict."""

    # ── Observability ──────────────────────────────────────────────
    log_level: str = 'INFO'

    # ── Policy ─────────────────────────────────────────────────────
    global_config_path: str = ''
    """Path to the GlobalConfig JSON document. Required outside local."""

    @property
    def is_local(self) -> bool:
        return self.environment == 'local'

    def validate(self) -> list[str]:
        """Return a list of configuration errors. Empty means valid."""
        errors: list[str] = []
        if self.environment not in _ENVIRONMENTS:
            errors.append(f'unknown environment {self.environment!r}')
        if self.allocation_page_size < 1:
            errors.append('allocation_page_size must be >= 1')
        if self.move_conflict_retries < 1:
            errors.append('move_conflict_retries must be >= 1')
        if self.log_level.upper() not in _LOG_LEVELS:
            errors.append(f'unknown log_level {self.log_level!r}')
        if not self.is_local and not self.global_config_path:
            errors.append(f'{self.environment}: global_config_path is required')
        return errors

    def require_valid(self) -> LeasePlaneSettings:
        errors = self.validate()
        if errors:
            raise ConfigError('; '.join(errors))
        return self

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> LeasePlaneSettings:
        """Build settings from environment variables.

        Tests should construct LeasePlaneSettings directly.
        """
        if env is None:
            env = dict(os.environ)

        def _int(name: str, default: int) -> int:
            raw = env.get(name, '').strip()
            if not raw:
                return default
            try:
                return int(raw)
            except ValueError as exc:
                raise ConfigError(f'{name} must be an integer, got {raw!r}') from exc

        return cls(
            environment=env.get('ENVIRONMENT', 'local'),
            allocation_page_size=_int('LEASE_ALLOCATION_PAGE_SIZE', 10),
            move_conflict_retries=_int('LEASE_MOVE_CONFLICT_RETRIES', 3),
            log_level=env.get('LOG_LEVEL', 'INFO').upper(),
            global_config_path=env.get('GLOBAL_CONFIG_PATH', ''),
        )
