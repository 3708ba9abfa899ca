from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class TransferRequest(BaseModel):
    ticket_id: str = Field(min_length=1, alias="ticketId")
    email: EmailStr
    reason: str | None = Field(default=None, max_length=200)

    class Config:
        populate_by_name = True
        str_strip_whitespace = True


class TicketCodeRequest(BaseModel):
    ticket_id: str = Field(min_length=1, alias="ticketId")

    class Config:
        populate_by_name = True
        str_strip_whitespace = True


class CheckInRequest(TicketCodeRequest):
    location: str | None = Field(default=None, max_length=200)


class TicketOut(BaseModel):
    ticket_id: str
    event_id: int
    user_id: int
    original_user_id: int
    ticket_type: str
    quantity: int
    price: float
    total_amount: float
    status: str
    qr_code: str
    expires_at: datetime | None
    checked_in: bool
    checked_in_at: datetime | None
    created_at: datetime

    class Config:
        from_attributes = True


class TicketListOut(BaseModel):
    success: bool = True
    count: int
    tickets: list[TicketOut]


class TicketEnvelope(BaseModel):
    success: bool = True
    ticket: TicketOut


class TicketValidation(BaseModel):
    valid: bool
    reason: str | None = None


class TicketValidationOut(BaseModel):
    success: bool = True
    ticket: TicketOut
    validation: TicketValidation


class TransferOut(BaseModel):
    success: bool = True
    message: str
    ticket_id: str
    new_owner: str
    transferred_at: datetime


class CheckInOut(BaseModel):
    success: bool = True
    message: str
    ticket_id: str
    checked_in_at: datetime


class TicketStatsOut(BaseModel):
    total_tickets: int
    total_amount: float
    confirmed_tickets: int
    used_tickets: int
    transferred_tickets: int
