"""
Test ticket ownership, transfers and check-in.
"""
from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from mainevents.core.errors import (
    InvalidTicketError,
    NotEventOwnerError,
    TicketNotFoundError,
    TicketTransferError,
    UserNotFoundError,
)
from mainevents.models.events import EventAttendee
from mainevents.models.tickets import TicketStatus
from mainevents.services import payments as payment_service
from mainevents.services import tickets as ticket_service


def attendee_quantities(db: Session, event_id: int) -> dict[int, int]:
    db.expire_all()
    rows = db.query(EventAttendee).filter(EventAttendee.event_id == event_id).all()
    return {row.user_id: row.quantity for row in rows}


class TestTransfer:
    def test_transfer_moves_ticket_and_seats(self, db_session: Session, make_user, make_event):
        owner, seller, friend = make_user("Owner"), make_user("Seller"), make_user("Friend")
        event = make_event(owner, capacidad=10)
        payment_service.process_payment(db_session, seller, event_id=event.id, quantity=1)
        _, ticket = payment_service.process_payment(db_session, seller, event_id=event.id, quantity=2)

        transfer = ticket_service.transfer_ticket(
            db_session, ticket.ticket_id, seller, email=friend.email.upper(), reason="Regalo"
        )

        assert (transfer.from_user_id, transfer.to_user_id) == (seller.id, friend.id)
        db_session.refresh(ticket)
        assert ticket.user_id == friend.id
        assert ticket.original_user_id == seller.id
        assert ticket.status == TicketStatus.CONFIRMED.value
        assert attendee_quantities(db_session, event.id) == {seller.id: 1, friend.id: 2}
        db_session.refresh(event)
        assert event.concurrentes == 3

        assert ticket_service.get_ticket_stats(db_session, seller.id)["transferred_tickets"] == 1
        with pytest.raises(TicketNotFoundError):
            ticket_service.get_ticket(db_session, ticket.ticket_id, seller.id)

    def test_transfer_rules(self, db_session: Session, make_user, make_event):
        owner, seller, stranger = make_user("Owner"), make_user("Seller"), make_user("Stranger")
        event = make_event(owner)
        _, ticket = payment_service.process_payment(db_session, seller, event_id=event.id)

        with pytest.raises(TicketNotFoundError):
            ticket_service.transfer_ticket(db_session, ticket.ticket_id, stranger, email=owner.email)
        with pytest.raises(UserNotFoundError):
            ticket_service.transfer_ticket(db_session, ticket.ticket_id, seller, email="nadie@example.com")
        with pytest.raises(TicketTransferError):
            ticket_service.transfer_ticket(db_session, ticket.ticket_id, seller, email=seller.email)
        with pytest.raises(TicketTransferError):
            ticket_service.transfer_ticket(db_session, ticket.ticket_id, seller, email=owner.email)

        assert attendee_quantities(db_session, event.id) == {seller.id: 1}

    def test_used_ticket_cannot_be_transferred(self, db_session: Session, make_user, make_event):
        owner, seller, friend = make_user("Owner"), make_user("Seller"), make_user("Friend")
        _, ticket = payment_service.process_payment(db_session, seller, event_id=make_event(owner).id)
        ticket_service.check_in(db_session, ticket.ticket_id, owner)

        with pytest.raises(TicketTransferError):
            ticket_service.transfer_ticket(db_session, ticket.ticket_id, seller, email=friend.email)


class TestCheckIn:
    def test_check_in_once(self, db_session: Session, make_user, make_event):
        owner, buyer = make_user("Owner"), make_user("Buyer")
        _, ticket = payment_service.process_payment(db_session, buyer, event_id=make_event(owner).id)

        ticket, validation = ticket_service.check_ticket(db_session, ticket.ticket_id, owner)
        assert validation == {"valid": True, "reason": None}

        ticket = ticket_service.check_in(db_session, ticket.ticket_id, owner, location="Puerta 2")
        assert ticket.checked_in is True
        assert ticket.status == TicketStatus.USED.value
        assert ticket.check_in_location == "Puerta 2"

        with pytest.raises(InvalidTicketError):
            ticket_service.check_in(db_session, ticket.ticket_id, owner)
        assert ticket_service.validate_ticket(ticket) == {"valid": False, "reason": "Ticket already used"}

    def test_only_organizer_checks_in(self, db_session: Session, make_user, make_event):
        owner, buyer = make_user("Owner"), make_user("Buyer")
        _, ticket = payment_service.process_payment(db_session, buyer, event_id=make_event(owner).id)

        with pytest.raises(NotEventOwnerError):
            ticket_service.check_in(db_session, ticket.ticket_id, buyer)

    def test_expired_ticket_is_invalid(self, db_session: Session, make_user, make_event):
        owner, buyer = make_user("Owner"), make_user("Buyer")
        _, ticket = payment_service.process_payment(db_session, buyer, event_id=make_event(owner).id)
        ticket.expires_at = ticket.created_at - timedelta(days=1)
        db_session.commit()

        assert ticket_service.validate_ticket(ticket) == {"valid": False, "reason": "Ticket expired"}
        with pytest.raises(InvalidTicketError):
            ticket_service.check_in(db_session, ticket.ticket_id, owner)
