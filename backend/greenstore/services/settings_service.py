from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from ..extensions import db
from ..models import Setting
from .audit_service import log_audit


# Known keys and the values written by `flask system init`.
# "0" disables a ceiling.
DEFAULT_SETTINGS = {
    "max_discount": "0",
    "approval_threshold": "0",
    "max_losses": "0",
    "max_stock_adjust": "0",
    # Read by the login flow, which lives outside this service
    "lockout_max_attempts": "5",
    "lockout_minutes": "15",
}

POLICY_KEYS = ("max_discount", "approval_threshold", "max_losses", "max_stock_adjust")


class SettingsError(ValueError):
    pass


def _ceiling(raw: str | None) -> Decimal | None:
    """Parse a threshold; missing, blank, non-numeric or <= 0 means disabled."""
    if raw is None:
        return None
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation:
        return None
    if not value.is_finite() or value <= 0:
        return None
    return value


@dataclass(frozen=True)
class PolicySettings:
    """
    Policy thresholds for one request. None means the ceiling is disabled.

    max_discount / approval_threshold: percent of the line subtotal
    max_losses / max_stock_adjust: money value of the stock change
    """
    max_discount: Decimal | None = None
    approval_threshold: Decimal | None = None
    max_losses: Decimal | None = None
    max_stock_adjust: Decimal | None = None

    @classmethod
    def from_mapping(cls, values: dict) -> "PolicySettings":
        return cls(**{key: _ceiling(values.get(key)) for key in POLICY_KEYS})

    @property
    def any_discount_ceiling(self) -> bool:
        return self.max_discount is not None or self.approval_threshold is not None


def get_settings(keys) -> dict[str, str]:
    """Fetch the named settings in one round-trip. Absent keys are omitted."""
    keys = list(keys)
    if not keys:
        return {}
    rows = db.session.query(Setting).filter(Setting.key.in_(keys)).all()
    return {row.key: row.value for row in rows}


def get_all_settings() -> dict[str, str]:
    rows = db.session.query(Setting).order_by(Setting.key.asc()).all()
    return {row.key: row.value for row in rows}


def load_policy() -> PolicySettings:
    """
    Load every policy threshold at once.

    Routes call this once per request and pass the result down, so a request
    sees one consistent snapshot and pays one query.
    """
    return PolicySettings.from_mapping(get_settings(POLICY_KEYS))


def upsert_settings(values: dict, *, actor_user_id: int | None) -> int:
    """Insert or update each key; values are stored as strings. Caller commits."""
    if not values:
        raise SettingsError("No settings provided")

    for key, value in values.items():
        key = str(key).strip()
        if not key:
            raise SettingsError("Setting key cannot be blank")
        stored = None if value is None else str(value)
        row = db.session.get(Setting, key)
        if row is None:
            db.session.add(Setting(key=key, value=stored))
        else:
            row.value = stored

    log_audit(
        action="settings_updated",
        details={"keys": sorted(str(k) for k in values.keys())},
        performed_by=actor_user_id,
    )
    db.session.flush()
    return len(values)


def ensure_default_settings() -> int:
    """Seed missing catalog keys. Safe to call repeatedly (idempotent)."""
    existing = {row.key for row in db.session.query(Setting.key).all()}
    to_add = [key for key in DEFAULT_SETTINGS if key not in existing]
    for key in to_add:
        db.session.add(Setting(key=key, value=DEFAULT_SETTINGS[key]))
    db.session.flush()
    return len(to_add)
