"""
Persistent State Stores

Explicit, injectable state containers for the small amount of client
state that survives restarts. Each store owns one pydantic record saved
under its own namespace key as:

    {"version": <int>, "state": {...}}

DESIGN DECISION: Stores are plain objects passed to the components that
need them (the binder, the executor) rather than module-level singletons.
Tests build them on InMemoryStorage and never share state.

Loading rules:
- nothing stored -> defaults
- older version -> migrations run in order up to the current version
- undecodable, invalid or newer-than-known record -> defaults, and the
  failure is logged through the audit logger
"""

import re
import time
from typing import Any, Callable, ClassVar, Generic, Optional, TypeVar

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from spendsync.audit import AuditLogger
from spendsync.models.preferences import (
    APP_LOCK_TIMEOUT_MS,
    AccountScope,
    AppLockTimeout,
    Currency,
    DateFormat,
    DayOfWeek,
    NotificationPreferences,
    ReminderTime,
    SecurityPreferences,
    UserPreferences,
)
from spendsync.services.storage import KeyValueStorage, StateStorageError, StateVersionError


S = TypeVar("S", bound=BaseModel)
Migration = Callable[[dict[str, Any]], dict[str, Any]]

logger = structlog.get_logger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _snake_case_keys(state: dict[str, Any]) -> dict[str, Any]:
    """Version 0 records were written by the mobile client with camelCase keys."""
    return {
        _CAMEL_BOUNDARY.sub("_", key).lower(): (
            _snake_case_keys(value) if isinstance(value, dict) else value
        )
        for key, value in state.items()
    }


class PersistentStore(Generic[S]):
    """
    Base class: load on construction, save on every change, notify
    listeners with the new state.
    """

    namespace: ClassVar[str] = ""
    version: ClassVar[int] = 1
    state_model: ClassVar[type[BaseModel]] = BaseModel
    migrations: ClassVar[dict[int, Migration]] = {0: _snake_case_keys}

    def __init__(self, storage: KeyValueStorage, audit_logger: Optional[AuditLogger] = None):
        self._storage = storage
        self._audit = audit_logger or AuditLogger()
        self._listeners: list[Callable[[S], None]] = []
        self._state: S = self._load()

    # -- state --------------------------------------------------------------

    @property
    def state(self) -> S:
        return self._state.model_copy()

    def update(self, **changes: Any) -> S:
        """Validate and persist a partial change."""
        merged = {**self._state.model_dump(), **changes}
        new_state = self.state_model.model_validate(merged)
        self._replace(new_state)
        return self.state

    def reset(self) -> S:
        """Back to defaults."""
        self._replace(self.state_model())
        return self.state

    def subscribe(self, listener: Callable[[S], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -- persistence --------------------------------------------------------

    def _replace(self, new_state: S) -> None:
        self._storage.set_item(self.namespace, {
            "version": self.version,
            "state": new_state.model_dump(mode="json"),
        })
        self._state = new_state
        for listener in list(self._listeners):
            try:
                listener(new_state.model_copy())
            except Exception:
                logger.exception("store_listener_failed", namespace=self.namespace)

    def _migrate(self, stored_version: int, state: dict[str, Any]) -> dict[str, Any]:
        if stored_version > self.version:
            raise StateVersionError(
                f"{self.namespace} has version {stored_version}, newest known is {self.version}"
            )
        while stored_version < self.version:
            migration = self.migrations.get(stored_version)
            if migration is None:
                raise StateVersionError(
                    f"No migration for {self.namespace} from version {stored_version}"
                )
            state = migration(state)
            stored_version += 1
        return state

    def _stored_version(self, raw: dict[str, Any]) -> int:
        version = raw.get("version", 0)
        try:
            return int(version)
        except (TypeError, ValueError) as e:
            raise StateVersionError(f"{self.namespace} has unreadable version {version!r}") from e

    def _load(self) -> S:
        try:
            raw = self._storage.get_item(self.namespace)
            if raw is None:
                return self.state_model()
            if not isinstance(raw, dict):
                raise StateStorageError(f"{self.namespace} record is not an object")
            state = raw.get("state", {})
            if not isinstance(state, dict):
                raise StateStorageError(f"{self.namespace} state is not an object")
            state = self._migrate(self._stored_version(raw), state)
            return self.state_model.model_validate(state)
        except (StateStorageError, PydanticValidationError, ValueError) as e:
            self._audit.log_state_load_failed(self.namespace, e)
            return self.state_model()


# =============================================================================
# STORES
# =============================================================================

class AccountScopeStore(PersistentStore[AccountScope]):
    """The selected account. Changed only by explicit selection."""

    namespace = "account-storage"
    state_model = AccountScope

    @property
    def active_account_id(self) -> Optional[str]:
        return self._state.active_account_id

    def set_active_account(self, account_id: str) -> None:
        if not account_id:
            raise ValueError("Account id cannot be empty")
        self._change(account_id)

    def clear_active_account(self) -> None:
        self._change(None)

    def _change(self, account_id: Optional[str]) -> None:
        previous = self._state.active_account_id
        if previous == account_id:
            return
        self.update(active_account_id=account_id)
        self._audit.log_scope_changed(previous, account_id)


class UserPreferencesStore(PersistentStore[UserPreferences]):
    namespace = "user-preferences-storage"
    state_model = UserPreferences

    def set_currency(self, currency: Currency) -> None:
        self.update(currency=Currency(currency))

    def set_date_format(self, date_format: DateFormat) -> None:
        self.update(date_format=DateFormat(date_format))


class NotificationPreferencesStore(PersistentStore[NotificationPreferences]):
    """
    Notification toggles and schedules.

    Turning the master toggle off turns every individual toggle off too;
    turning it on leaves the individual toggles as they are.
    """

    namespace = "notification-preferences-storage"
    state_model = NotificationPreferences

    def set_notifications_enabled(self, enabled: bool) -> None:
        if enabled:
            self.update(notifications_enabled=True)
            return
        self.update(
            notifications_enabled=False,
            daily_reminder_enabled=False,
            weekly_summary_enabled=False,
            budget_alerts_enabled=False,
            transaction_confirmations_enabled=False,
        )

    def set_daily_reminder_enabled(self, enabled: bool) -> None:
        self.update(daily_reminder_enabled=enabled)

    def set_daily_reminder_time(self, hour: int, minute: int = 0) -> None:
        self.update(daily_reminder_time=ReminderTime(hour=hour, minute=minute).model_dump())

    def set_weekly_summary_enabled(self, enabled: bool) -> None:
        self.update(weekly_summary_enabled=enabled)

    def set_weekly_summary_day(self, day: DayOfWeek) -> None:
        self.update(weekly_summary_day=DayOfWeek(day))

    def set_weekly_summary_time(self, hour: int, minute: int = 0) -> None:
        self.update(weekly_summary_time=ReminderTime(hour=hour, minute=minute).model_dump())

    def set_budget_alerts_enabled(self, enabled: bool) -> None:
        self.update(budget_alerts_enabled=enabled)

    def set_budget_alert_threshold(self, threshold: int) -> None:
        self.update(budget_alert_threshold=threshold)

    def set_transaction_confirmations_enabled(self, enabled: bool) -> None:
        self.update(transaction_confirmations_enabled=enabled)


class SecurityPreferencesStore(PersistentStore[SecurityPreferences]):
    namespace = "security-preferences-storage"
    state_model = SecurityPreferences

    def __init__(
        self,
        storage: KeyValueStorage,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self._clock = clock or (lambda: time.time() * 1000)
        super().__init__(storage, audit_logger)

    def set_biometrics_enabled(self, enabled: bool) -> None:
        self.update(biometrics_enabled=enabled)

    def set_app_lock_enabled(self, enabled: bool) -> None:
        """Disabling the app lock also disables biometrics."""
        if enabled:
            self.update(app_lock_enabled=True)
        else:
            self.update(app_lock_enabled=False, biometrics_enabled=False)

    def set_app_lock_timeout(self, timeout: AppLockTimeout) -> None:
        self.update(app_lock_timeout=AppLockTimeout(timeout))

    def mark_backgrounded(self, timestamp_ms: Optional[float] = None) -> None:
        self.update(last_background_timestamp=self._clock() if timestamp_ms is None else timestamp_ms)

    def clear_background_timestamp(self) -> None:
        self.update(last_background_timestamp=None)

    def should_lock_app(self, now_ms: Optional[float] = None) -> bool:
        """
        Whether returning to the app requires unlocking.

        - lock disabled or timeout "never": no
        - timeout "immediately": yes
        - otherwise: only once the timeout has elapsed since the app
          went to the background
        """
        state = self._state
        if not state.app_lock_enabled or state.app_lock_timeout == AppLockTimeout.NEVER:
            return False
        if state.app_lock_timeout == AppLockTimeout.IMMEDIATELY:
            return True
        if not state.last_background_timestamp:
            return False
        now = self._clock() if now_ms is None else now_ms
        return now - state.last_background_timestamp >= APP_LOCK_TIMEOUT_MS[state.app_lock_timeout]
