from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Setting(db.Model):
    """Key/value policy threshold, upserted by administrators."""
    __tablename__ = "settings"

    key = db.Column(db.String(64), primary_key=True)
    value = db.Column(db.Text, nullable=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {"key": self.key, "value": self.value, "updated_at": to_utc_z(self.updated_at)}
