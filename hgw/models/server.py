from sqlalchemy import Boolean, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Server(Base):
    __tablename__ = "servers"
    __table_args__ = (UniqueConstraint("world_id", "hostname"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    world_id: Mapped[str] = mapped_column(String(36), ForeignKey("worlds.id"))
    hostname: Mapped[str] = mapped_column(String(64), index=True)
    organization: Mapped[str] = mapped_column(String(128), default="")
    is_home: Mapped[bool] = mapped_column(Boolean, default=False)
    is_purchased: Mapped[bool] = mapped_column(Boolean, default=False)
    has_root: Mapped[bool] = mapped_column(Boolean, default=False)
    ports_required: Mapped[int] = mapped_column(Integer, default=0)
    required_hacking_level: Mapped[int] = mapped_column(Integer, default=1)
    max_ram: Mapped[float] = mapped_column(Float, default=0.0)
    ram_used: Mapped[float] = mapped_column(Float, default=0.0)
    max_money: Mapped[float] = mapped_column(Float, default=0.0)
    money_available: Mapped[float] = mapped_column(Float, default=0.0)
    min_security: Mapped[float] = mapped_column(Float, default=1.0)
    security: Mapped[float] = mapped_column(Float, default=1.0)
    server_growth: Mapped[float] = mapped_column(Float, default=1.0)


class ServerLink(Base):
    """An undirected edge of the network topology."""

    __tablename__ = "server_links"

    id: Mapped[int] = mapped_column(primary_key=True)
    world_id: Mapped[str] = mapped_column(String(36), ForeignKey("worlds.id"))
    source_id: Mapped[int] = mapped_column(ForeignKey("servers.id"))
    dest_id: Mapped[int] = mapped_column(ForeignKey("servers.id"))
