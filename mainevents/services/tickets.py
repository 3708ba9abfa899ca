import structlog
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from mainevents.core.errors import (
    InvalidTicketError,
    NotEventOwnerError,
    TicketNotFoundError,
    TicketTransferError,
    UserNotFoundError,
)
from mainevents.core.utils import utcnow
from mainevents.models.tickets import Ticket, TicketStatus, TicketTransfer
from mainevents.models.users import User
from mainevents.services.attendance import event_lock, move_seats

logger = structlog.get_logger(__name__)

_INVALID_REASONS = {
    TicketStatus.CANCELLED.value: "Ticket cancelled",
    TicketStatus.REFUNDED.value: "Ticket refunded",
    TicketStatus.USED.value: "Ticket already used",
}


def get_user_tickets(db: Session, user_id: int) -> list[Ticket]:
    return list(
        db.scalars(select(Ticket).where(Ticket.user_id == user_id).order_by(Ticket.created_at.desc(), Ticket.id.desc())).all()
    )


def get_ticket(db: Session, ticket_code: str, user_id: int) -> Ticket:
    ticket = db.scalar(select(Ticket).where(Ticket.ticket_id == ticket_code, Ticket.user_id == user_id))
    if ticket is None:
        raise TicketNotFoundError()
    return ticket


def _find_ticket(db: Session, ticket_code: str) -> Ticket:
    ticket = db.scalar(select(Ticket).where(Ticket.ticket_id == ticket_code))
    if ticket is None:
        raise TicketNotFoundError()
    return ticket


def _ensure_staff(ticket: Ticket, user: User) -> None:
    if not user.is_admin and ticket.event.user_id != user.id:
        raise NotEventOwnerError("Only the event organizer can validate its tickets")


def validate_ticket(ticket: Ticket) -> dict:
    if ticket.expires_at is not None and utcnow() > ticket.expires_at:
        return {"valid": False, "reason": "Ticket expired"}
    if ticket.status in _INVALID_REASONS:
        return {"valid": False, "reason": _INVALID_REASONS[ticket.status]}
    return {"valid": True, "reason": None}


def check_ticket(db: Session, ticket_code: str, staff: User) -> tuple[Ticket, dict]:
    ticket = _find_ticket(db, ticket_code)
    _ensure_staff(ticket, staff)
    return ticket, validate_ticket(ticket)


def check_in(db: Session, ticket_code: str, staff: User, *, location: str | None = None) -> Ticket:
    ticket = _find_ticket(db, ticket_code)
    _ensure_staff(ticket, staff)

    validation = validate_ticket(ticket)
    if not validation["valid"]:
        raise InvalidTicketError(f"Invalid ticket: {validation['reason']}")
    if ticket.checked_in:
        raise InvalidTicketError("Invalid ticket: Ticket already used")

    ticket.checked_in = True
    ticket.checked_in_at = utcnow()
    ticket.checked_in_by = staff.id
    ticket.check_in_location = location or "Main entrance"
    ticket.status = TicketStatus.USED.value
    db.commit()
    db.refresh(ticket)
    logger.info("Ticket checked in", ticket_id=ticket.ticket_id, user_id=ticket.user_id, checked_in_by=staff.id)
    return ticket


def transfer_ticket(
    db: Session, ticket_code: str, user: User, *, email: str, reason: str | None = None
) -> TicketTransfer:
    """Give a confirmed ticket, and the seats it holds, to another registered user."""
    ticket = get_ticket(db, ticket_code, user.id)

    recipient = db.scalar(select(User).where(func.lower(User.email) == email.lower()))
    if recipient is None:
        raise UserNotFoundError("Recipient user not found")
    if recipient.id == user.id:
        raise TicketTransferError("You cannot transfer a ticket to yourself")
    if recipient.id == ticket.event.user_id:
        raise TicketTransferError("Tickets cannot be transferred to the event organizer")
    if ticket.status != TicketStatus.CONFIRMED.value:
        raise TicketTransferError("Only confirmed tickets can be transferred")

    with event_lock(ticket.event_id):
        try:
            move_seats(db, ticket.event_id, user.id, recipient.id, ticket.quantity)
            transfer = TicketTransfer(
                ticket_id=ticket.id, from_user_id=user.id, to_user_id=recipient.id, reason=reason
            )
            ticket.user_id = recipient.id
            db.add(transfer)
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(transfer)
    logger.info(
        "Ticket transferred", ticket_id=ticket.ticket_id, from_user_id=user.id, to_user_id=recipient.id
    )
    return transfer


def get_ticket_stats(db: Session, user_id: int) -> dict:
    tickets = get_user_tickets(db, user_id)
    transferred = db.scalar(select(func.count(TicketTransfer.id)).where(TicketTransfer.from_user_id == user_id))
    return {
        "total_tickets": len(tickets),
        "total_amount": sum(t.total_amount for t in tickets),
        "confirmed_tickets": sum(1 for t in tickets if t.status == TicketStatus.CONFIRMED.value),
        "used_tickets": sum(1 for t in tickets if t.status == TicketStatus.USED.value),
        "transferred_tickets": int(transferred or 0),
    }
