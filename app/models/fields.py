"""
Enumerations shared by the tables, services and templates.

Member names equal their values so SQLAlchemy's Enum type (which persists
names) and the HTML forms (which post values) agree.
"""
from enum import Enum


class PlayerDealStatus(str, Enum):
    free_agent = "free_agent"
    in_negotiation = "in_negotiation"
    signed = "signed"

    @property
    def label(self) -> str:
        return {
            "free_agent": "Free Agent",
            "in_negotiation": "In Negotiation",
            "signed": "Signed",
        }[self.value]


class DealStage(str, Enum):
    ongoing = "ongoing"
    sent = "sent"
    signed = "signed"
    not_signed = "not_signed"

    @property
    def label(self) -> str:
        return {
            "ongoing": "Ongoing",
            "sent": "Offer Sent",
            "signed": "Signed",
            "not_signed": "Not Signed",
        }[self.value]


class PaymentStatus(str, Enum):
    pending = "pending"
    paid = "paid"
    overdue = "overdue"

    @property
    def label(self) -> str:
        return {
            "pending": "Pending",
            "paid": "Paid",
            "overdue": "Overdue",
        }[self.value]


class ReminderTag(str, Enum):
    general = "general"
    deal = "deal"
    contract = "contract"
    payment = "payment"
    player = "player"


class Position(str, Enum):
    PG = "PG"
    SG = "SG"
    SF = "SF"
    PF = "PF"
    C = "C"


CONTACT_ROLES = ("agent", "coach", "director", "scout", "manager", "other")
