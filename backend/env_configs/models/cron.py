from __future__ import annotations
from datetime import datetime, timezone
from typing import Any
from sqlalchemy import Integer, String, DateTime, Float, JSON
from sqlalchemy.orm import Mapped, mapped_column
from env_configs.db.session import Base


class ScheduledEvent(Base):
    """One-shot hook invocation waiting for the next cron run."""
    __tablename__ = 'scheduled_events'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    hook: Mapped[str] = mapped_column(String(150), nullable=False, index=True)
    timestamp: Mapped[float] = mapped_column(Float, nullable=False, index=True)
    args: Mapped[Any | None] = mapped_column(JSON(none_as_null=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)

    def as_dict(self) -> dict:
        return {
            'id': self.id,
            'hook': self.hook,
            'timestamp': self.timestamp,
            'args': list(self.args or []),
        }
