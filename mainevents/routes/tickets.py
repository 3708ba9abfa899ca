from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from mainevents.database.db import get_db
from mainevents.models.users import User
from mainevents.routes.deps import get_current_user
from mainevents.schemas.tickets import (
    CheckInOut,
    CheckInRequest,
    TicketCodeRequest,
    TicketEnvelope,
    TicketListOut,
    TicketStatsOut,
    TicketValidationOut,
    TransferOut,
    TransferRequest,
)
from mainevents.services import tickets as ticket_service
from mainevents.tasks import enqueue, notify_ticket_transferred_task

router = APIRouter(prefix="/api/tickets", tags=["tickets"])


@router.get("/user", response_model=TicketListOut)
def user_tickets(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    tickets = ticket_service.get_user_tickets(db, user.id)
    return {"count": len(tickets), "tickets": tickets}


@router.get("/stats", response_model=TicketStatsOut)
def ticket_stats(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return ticket_service.get_ticket_stats(db, user.id)


@router.post("/transfer", response_model=TransferOut)
def transfer_ticket(payload: TransferRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    transfer = ticket_service.transfer_ticket(db, payload.ticket_id, user, email=payload.email, reason=payload.reason)
    enqueue(notify_ticket_transferred_task, transfer.id)
    return {
        "message": "Ticket transferred successfully",
        "ticket_id": payload.ticket_id,
        "new_owner": db.get(User, transfer.to_user_id).name,
        "transferred_at": transfer.transferred_at,
    }


@router.post("/validate", response_model=TicketValidationOut)
def validate(payload: TicketCodeRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    ticket, validation = ticket_service.check_ticket(db, payload.ticket_id, user)
    return {"ticket": ticket, "validation": validation}


@router.post("/checkin", response_model=CheckInOut)
def checkin(payload: CheckInRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    ticket = ticket_service.check_in(db, payload.ticket_id, user, location=payload.location)
    return {"message": "Check-in completed", "ticket_id": ticket.ticket_id, "checked_in_at": ticket.checked_in_at}


@router.get("/{ticket_id}", response_model=TicketEnvelope)
def get_ticket(ticket_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"ticket": ticket_service.get_ticket(db, ticket_id, user.id)}
