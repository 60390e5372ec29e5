"""
Blood Request Desk Models Package
"""

from .request_models import (
    # Enums
    RequestStatus,
    Urgency,
    DonationStatus,

    # Records
    BloodRequest,
    DonationUnit,
    FulfillmentRecord,
    RecipientRow,
    RecipientProfile,

    # Admin context & bodies
    AdminContext,
    AdminBloodRequestForm,
    FulfillBody,
    TransferBody,
    CancelBody,

    # Results
    FulfillmentResult,
    TransferResult,
    CancelResult,
)

__all__ = [
    'RequestStatus',
    'Urgency',
    'DonationStatus',
    'BloodRequest',
    'DonationUnit',
    'FulfillmentRecord',
    'RecipientRow',
    'RecipientProfile',
    'AdminContext',
    'AdminBloodRequestForm',
    'FulfillBody',
    'TransferBody',
    'CancelBody',
    'FulfillmentResult',
    'TransferResult',
    'CancelResult',
]
