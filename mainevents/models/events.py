import enum
from datetime import datetime

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mainevents.core.utils import utcnow
from mainevents.database.db import Base
from mainevents.models.users import User

DEFAULT_EVENT_IMAGE = "https://via.placeholder.com/800x400?text=Imagen+del+Evento"


class EventType(str, enum.Enum):
    PUBLICO = "publico"
    PRIVADO = "privado"
    CORPORATIVO = "corporativo"
    MUSICAL = "musical"
    DEPORTIVO = "deportivo"
    EDUCATIVO = "educativo"
    CULTURAL = "cultural"


class EventStatus(str, enum.Enum):
    ACTIVO = "activo"
    CANCELADO = "cancelado"
    COMPLETADO = "completado"
    PENDIENTE = "pendiente"


class Visibility(str, enum.Enum):
    PUBLICO = "publico"
    PRIVADO = "privado"


class Event(Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, index=True)
    end_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    location: Mapped[str] = mapped_column(String(200), nullable=False)
    image: Mapped[str] = mapped_column(String(500), nullable=False, default=DEFAULT_EVENT_IMAGE)
    organizer: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False, default=EventType.PUBLICO.value)
    estado: Mapped[str] = mapped_column(String(16), nullable=False, default=EventStatus.ACTIVO.value, index=True)
    capacidad: Mapped[int] = mapped_column(Integer, nullable=False)
    concurrentes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    price: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    visibility: Mapped[str] = mapped_column(String(16), nullable=False, default=Visibility.PUBLICO.value)
    url_streaming: Mapped[str | None] = mapped_column(String(500), nullable=True)
    visitas: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rating_average: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    rating_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    owner: Mapped[User] = relationship()
    attendees: Mapped[list["EventAttendee"]] = relationship(
        back_populates="event", cascade="all, delete-orphan", lazy="selectin", order_by="EventAttendee.id"
    )
    favorites: Mapped[list["EventFavorite"]] = relationship(
        back_populates="event", cascade="all, delete-orphan", lazy="selectin"
    )
    comments: Mapped[list["EventComment"]] = relationship(
        back_populates="event", cascade="all, delete-orphan", lazy="selectin", order_by="EventComment.id"
    )

    @property
    def available(self) -> int:
        return self.capacidad - self.concurrentes

    @property
    def favoritos(self) -> list[int]:
        return [f.user_id for f in self.favorites]

    @property
    def rating(self) -> dict:
        return {"average": self.rating_average, "count": self.rating_count}


class EventAttendee(Base):
    __tablename__ = "event_attendees"
    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_event_attendee"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    event: Mapped["Event"] = relationship(back_populates="attendees")


class EventFavorite(Base):
    __tablename__ = "event_favorites"

    event_id: Mapped[int] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    event: Mapped["Event"] = relationship(back_populates="favorites")


class EventComment(Base):
    __tablename__ = "event_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    text: Mapped[str] = mapped_column(String(500), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    event: Mapped["Event"] = relationship(back_populates="comments")
