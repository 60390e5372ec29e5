"""
Blood Request Desk Models

Pydantic models for blood requests, donation units and the admin form.
Status and urgency are closed enums; SQLite stores their string values.
"""

import sqlite3
from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from config.settings import config


# =============================================================================
# Enums
# =============================================================================

class RequestStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    TRANSFERRED = "transferred"

    @property
    def is_terminal(self) -> bool:
        return self is not RequestStatus.PENDING


class Urgency(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Urgency"]:
        """Case-insensitive lookup; None for blank or unknown values"""
        if value is None:
            return None
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return None


class DonationStatus(str, Enum):
    AVAILABLE = "Available"
    USED = "Used"


# =============================================================================
# Records
# =============================================================================

def _coerce_urgency(v) -> Urgency:
    return Urgency.parse(v) or Urgency.parse(config.DEFAULT_URGENCY) or Urgency.MEDIUM


def _date_part(v):
    # Older rows may hold a full timestamp
    if isinstance(v, str) and len(v) > 10:
        return v[:10]
    return v


class BloodRequest(BaseModel):
    """blood_request row"""
    id: int
    user_id: Optional[int] = None
    hospital_id: int
    blood_type_id: Optional[int] = None
    quantity: int
    status: RequestStatus
    urgency: Urgency = Urgency.MEDIUM
    request_date: Optional[datetime] = None
    required_date: Optional[date] = None
    target_hospital_id: Optional[int] = None
    cancel_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_by: Optional[int] = None

    @field_validator('urgency', mode='before')
    @classmethod
    def normalize_urgency(cls, v):
        return _coerce_urgency(v)

    @field_validator('required_date', mode='before')
    @classmethod
    def parse_required_date(cls, v):
        return _date_part(v)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> 'BloodRequest':
        return cls(**dict(row))


class DonationUnit(BaseModel):
    """One consumable unit of donated blood"""
    donation_id: int
    hospital_id: int
    blood_type_id: int
    donation_date: date
    blood_unit: int = 1
    status: DonationStatus

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> 'DonationUnit':
        return cls(**dict(row))


class FulfillmentRecord(BaseModel):
    """request_fulfillment row, one per consumed unit"""
    id: int
    blood_request_id: int
    donation_unit_id: int
    quantity_used: int = 1
    fulfillment_date: datetime


class RecipientRow(BaseModel):
    """Listing row: request + recipient profile + derived stock annotations"""
    request_id: int
    quantity: int
    status: RequestStatus
    required_date: Optional[date] = None
    request_date: Optional[datetime] = None
    urgency: Urgency = Urgency.MEDIUM
    hospital_id: int
    blood_type_id: Optional[int] = None
    target_hospital_id: Optional[int] = None
    target_hospital_name: Optional[str] = None

    username: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    gender: Optional[str] = None
    date_of_birth: Optional[str] = None
    address: Optional[str] = None

    blood_type: Optional[str] = None
    hospital_name: Optional[str] = None

    can_complete: bool = False
    eligible_target_hospital_ids: List[int] = []

    @field_validator('urgency', mode='before')
    @classmethod
    def normalize_urgency(cls, v):
        return _coerce_urgency(v)

    @field_validator('required_date', mode='before')
    @classmethod
    def parse_required_date(cls, v):
        return _date_part(v)


class RecipientProfile(BaseModel):
    """Mutable profile fields of a recipient identity"""
    name: str
    phone: Optional[str] = None
    date_of_birth: Optional[str] = None
    address: Optional[str] = None
    gender: Optional[str] = None


# =============================================================================
# Admin context & request bodies
# =============================================================================

class AdminContext(BaseModel):
    """Who is acting, passed explicitly into every operation"""
    hospital_id: Optional[int] = None
    admin_user_id: int = 0
    admin_name: str = "Admin"


class AdminBloodRequestForm(BaseModel):
    """新增輸血申請 (Admin) - every field optional so validation can report all of them"""
    # User fields
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    dob: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    gender: Optional[str] = None

    # Request fields
    blood_type_id: Optional[int] = None
    quantity: Optional[int] = None
    urgency: Optional[str] = None
    required_date: Optional[str] = None   # yyyy-MM-dd

    # Context
    hospital_id: Optional[int] = None


class FulfillBody(BaseModel):
    quantity: int


class TransferBody(BaseModel):
    target_hospital_id: int = Field(..., gt=0)


class CancelBody(BaseModel):
    reason: str = Field(..., min_length=1)
    details: Optional[str] = None


# =============================================================================
# Results
# =============================================================================

class FulfillmentResult(BaseModel):
    request_id: int
    hospital_id: int
    requested_units: int
    consumed_donation_ids: List[int] = []
    status: RequestStatus = RequestStatus.COMPLETED

    @property
    def consumed_units(self) -> int:
        return len(self.consumed_donation_ids)

    @property
    def partial(self) -> bool:
        return self.consumed_units < self.requested_units


class TransferResult(BaseModel):
    source_request_id: int
    target_request_id: int
    target_hospital_id: int
    quantity: int


class CancelResult(BaseModel):
    request_id: int
    rows_affected: int
    cancel_reason: Optional[str] = None
    notified: bool = False
