"""SQLAlchemy ORM models — maps to PostgreSQL tables."""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column, relationship

from supportdesk.adapters.persistence.database import Base


class ClientModel(Base):
    __tablename__ = "clients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    queue_position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    in_queue: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    assigned_engineer_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("engineers.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    tickets: Mapped[list["TicketModel"]] = relationship(back_populates="client")

    __table_args__ = (CheckConstraint("queue_position >= 0", name="ck_clients_queue_position"),)


class EngineerModel(Base):
    __tablename__ = "engineers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    current_load: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    specializations: Mapped[list[str]] = mapped_column(
        ARRAY(String(50)), nullable=False, default=list
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    tickets: Mapped[list["TicketModel"]] = relationship(back_populates="assigned_engineer")

    __table_args__ = (
        CheckConstraint("capacity >= 1", name="ck_engineers_capacity"),
        CheckConstraint(
            "current_load >= 0 AND current_load <= capacity", name="ck_engineers_load"
        ),
    )


class TicketModel(Base):
    __tablename__ = "tickets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default="medium")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="open")
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    client_id: Mapped[int] = mapped_column(Integer, ForeignKey("clients.id"), nullable=False)
    assigned_engineer_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("engineers.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    client: Mapped["ClientModel"] = relationship(back_populates="tickets")
    assigned_engineer: Mapped["EngineerModel | None"] = relationship(back_populates="tickets")
    messages: Mapped[list["TicketMessageModel"]] = relationship(
        back_populates="ticket", order_by="TicketMessageModel.id", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_tickets_client", "client_id"),
        Index("idx_tickets_engineer", "assigned_engineer_id"),
        Index("idx_tickets_status", "status"),
    )


class TicketMessageModel(Base):
    __tablename__ = "ticket_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ticket_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False
    )
    sender_id: Mapped[int] = mapped_column(Integer, nullable=False)
    sender_role: Mapped[str] = mapped_column(String(20), nullable=False)
    sender_name: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    ticket: Mapped["TicketModel"] = relationship(back_populates="messages")

    __table_args__ = (Index("idx_ticket_messages_ticket", "ticket_id"),)
