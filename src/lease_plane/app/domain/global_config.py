"""Read-only global policy document.

The document is stored as camelCase JSON (``maintenanceMode``,
``leases.maxLeasesPerUser``, ...); snake_case keys are accepted too.

The orchestrator reads ``leases.max_leases_per_user`` and ``leases.ttl``.
The remaining fields are pass-through policy for the collaborators that
enforce them: ``maintenance_mode`` and the template limits
(``max_budget``, ``max_duration_hours``, ``require_*``) gate the request
and template-authoring surface, and ``cleanup`` configures the account
cleanup workflow. They are validated here so a bad document fails at load
time rather than in whichever consumer reads it first.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..errors import ConfigError


class _ConfigSection(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class LeasePolicy(_ConfigSection):
    max_leases_per_user: int = Field(ge=1)
    ttl: int = Field(ge=0)
    """Days a terminal lease record is retained."""
    max_budget: float | None = Field(default=None, gt=0)
    max_duration_hours: float | None = Field(default=None, gt=0)
    require_max_budget: bool = False
    require_max_duration: bool = False


class CleanupPolicy(_ConfigSection):
    number_of_failed_attempts_to_cancel_cleanup: int = Field(default=3, ge=1)
    wait_before_retry_failed_attempt_seconds: int = Field(default=5, ge=0)
    number_of_successful_attempts_to_finish_cleanup: int = Field(default=2, ge=1)
    wait_before_rerun_successful_attempt_seconds: int = Field(default=30, ge=0)


class GlobalConfig(_ConfigSection):
    maintenance_mode: bool = False
    leases: LeasePolicy
    cleanup: CleanupPolicy = CleanupPolicy()


def load_global_config(source: str | Path | Mapping[str, Any]) -> GlobalConfig:
    """Load and validate the policy document from a JSON file or a mapping."""
    if isinstance(source, Mapping):
        raw: Any = source
    else:
        path = Path(source)
        try:
            raw = json.loads(path.read_text(encoding='utf-8'))
        except FileNotFoundError as exc:
            raise ConfigError(f'global config not found: {path}') from exc
        except json.JSONDecodeError as exc:
            raise ConfigError(f'global config is not valid JSON: {path}: {exc}') from exc
    try:
        return GlobalConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f'invalid global config: {exc}') from exc
