from __future__ import annotations
from datetime import datetime, timezone
from sqlalchemy import Integer, String, DateTime, Text, Boolean
from sqlalchemy.orm import Mapped, mapped_column
from env_configs.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PluginMeta(Base):
    __tablename__ = 'plugin_meta'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False, index=True)
    version: Mapped[str] = mapped_column(String(50), nullable=False, default='0.0.0')
    required_backend: Mapped[str] = mapped_column(String(50), nullable=False, default='>=0')
    status: Mapped[str] = mapped_column(String(30), nullable=False, default='inactive')  # inactive|active|error
    network_wide: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    human_name: Mapped[str | None] = mapped_column(String(150), nullable=True)
    activated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    def as_dict(self) -> dict:
        return {
            'name': self.name,
            'version': self.version,
            'required_backend': self.required_backend,
            'status': self.status,
            'network_wide': self.network_wide,
            'last_error': self.last_error,
            'human_name': self.human_name,
            'activated_at': self.activated_at.isoformat() if self.activated_at else None,
        }
