from typing import Optional

from sqlalchemy import Boolean, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Process(Base):
    """A worker script instance dispatched on a host."""

    __tablename__ = "processes"

    # The primary key doubles as the pid; pid 0 means "not started".
    id: Mapped[int] = mapped_column(primary_key=True)
    world_id: Mapped[str] = mapped_column(String(36), ForeignKey("worlds.id"))
    host: Mapped[str] = mapped_column(String(64), index=True)
    script: Mapped[str] = mapped_column(String(64))
    threads: Mapped[int] = mapped_column(Integer)
    target: Mapped[str] = mapped_column(String(64))
    additional_delay: Mapped[float] = mapped_column(Float, default=0.0)
    ram: Mapped[float] = mapped_column(Float)
    started_at: Mapped[float] = mapped_column(Float)
    finish_at: Mapped[float] = mapped_column(Float, index=True)
    is_running: Mapped[bool] = mapped_column(Boolean, default=True)
    was_killed: Mapped[bool] = mapped_column(Boolean, default=False)
    # Money stolen, money after growing, or security removed.
    result: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
