import uuid
from datetime import datetime

from sqlalchemy import Boolean, Float, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class World(Base):
    __tablename__ = "worlds"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(128))
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    # Simulated clock in milliseconds.
    now_ms: Mapped[float] = mapped_column(Float, default=0.0)
    hacking_level: Mapped[int] = mapped_column(Integer, default=1)
    player_money: Mapped[float] = mapped_column(Float, default=0.0)
    # Number of port opener programs the player owns (BruteSSH.exe etc.)
    port_openers: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
