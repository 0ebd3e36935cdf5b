"""
Pass policy configuration loader.

Loads pass issuance and lifecycle settings from config/pass_policy.yml.
Missing keys (or a missing file) fall back to built-in defaults; any key can
be overridden by an environment variable.

Consumers:
  - PassService: validity window, code format, retry bound, QR template
  - PassExpiryScheduler: sweep interval
  - NotificationDispatcher: worker count and timeout
  - StaffAdminService: page size

Usage:
    from gymaccess.config.pass_policy import get_pass_policy

    policy = get_pass_policy()
    valid_until = now + policy.validity
"""

import logging
import os
from dataclasses import dataclass, fields, replace
from datetime import timedelta
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

# Environment variable -> policy field
_ENV_OVERRIDES = {
    "PASS_VALIDITY_HOURS": "pass_validity_hours",
    "PASS_CODE_MAX_ATTEMPTS": "code_max_attempts",
    "PASS_SWEEP_INTERVAL_SECONDS": "sweep_interval_seconds",
    "PASS_NOTIFICATION_TIMEOUT_SECONDS": "notification_timeout_seconds",
    "PASS_NOTIFICATION_WORKERS": "notification_workers",
    "STAFF_PAGE_SIZE": "page_size",
}


@dataclass(frozen=True)
class PassPolicy:
    """Resolved pass policy values."""
    pass_validity_hours: float = 2.0
    pass_code_prefix: str = "PASS-"
    pass_code_length: int = 12
    code_max_attempts: int = 5
    sweep_interval_seconds: float = 60.0
    notification_timeout_seconds: float = 10.0
    notification_workers: int = 4
    qr_code_url_template: str = (
        "https://api.qrserver.com/v1/create-qr-code/?size=300x300&data={code}"
    )
    page_size: int = 20

    @property
    def validity(self) -> timedelta:
        return timedelta(hours=self.pass_validity_hours)

    @classmethod
    def from_mapping(cls, raw: Dict[str, Any]) -> "PassPolicy":
        """Build a policy from a YAML mapping, ignoring unknown keys."""
        known = {f.name: f for f in fields(cls)}
        values = {}
        for key, value in raw.items():
            if key not in known:
                continue
            values[key] = _coerce(cls, key, value)
        return cls(**values)


def _coerce(cls, key: str, value: Any) -> Any:
    default = getattr(cls, key)
    if isinstance(default, bool):
        return bool(value)
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    return str(value)


class PassPolicyLoader:
    """Thread-safe singleton loader for config/pass_policy.yml."""

    _instance: Optional["PassPolicyLoader"] = None
    _lock = Lock()

    def __new__(cls, config_path: Optional[str] = None):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self, config_path: Optional[str] = None):
        if self._initialized:
            return

        self._config_path = config_path
        self._policy = PassPolicy()
        self._load_lock = Lock()

        self._load()
        self._initialized = True

    # ------------------------------------------------------------------
    # Config resolution
    # ------------------------------------------------------------------

    def _resolve_path(self) -> Optional[Path]:
        if self._config_path:
            return Path(self._config_path)

        candidates = [
            Path(__file__).parent.parent.parent / "config" / "pass_policy.yml",
            Path(os.getcwd()) / "config" / "pass_policy.yml",
        ]

        for p in candidates:
            resolved = p.resolve()
            if resolved.exists():
                return resolved
        return None

    def _load(self) -> None:
        with self._load_lock:
            path = self._resolve_path()
            raw: Dict[str, Any] = {}

            if path is None or not path.exists():
                logger.warning(
                    "pass_policy.yml not found, using built-in defaults",
                    extra={"config_path": str(path) if path else None},
                )
            else:
                logger.info("Loading pass policy from %s", path)
                with open(path, "r") as f:
                    raw = yaml.safe_load(f) or {}

            policy = PassPolicy.from_mapping(raw)
            self._policy = _apply_env_overrides(policy)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def reload(self) -> None:
        """Re-read the YAML from disk (e.g. after a config change)."""
        self._load()

    @property
    def policy(self) -> PassPolicy:
        return self._policy


def _apply_env_overrides(policy: PassPolicy) -> PassPolicy:
    overrides = {}
    for env_name, field_name in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value is None or value == "":
            continue
        try:
            overrides[field_name] = _coerce(PassPolicy, field_name, value)
        except ValueError:
            logger.warning(
                "Ignoring invalid pass policy override",
                extra={"env_var": env_name, "value": value},
            )
    if not overrides:
        return policy
    return replace(policy, **overrides)


# ------------------------------------------------------------------
# Module-level accessors
# ------------------------------------------------------------------

def get_pass_policy_loader(config_path: Optional[str] = None) -> PassPolicyLoader:
    """Return the singleton PassPolicyLoader."""
    return PassPolicyLoader(config_path)


def get_pass_policy() -> PassPolicy:
    """Return the current pass policy."""
    return get_pass_policy_loader().policy


def reset_pass_policy_loader() -> None:
    """Reset singleton (for tests only)."""
    PassPolicyLoader._instance = None
