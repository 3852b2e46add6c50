from typing import Literal, Optional

from pydantic import BaseModel, Field

TransactionType = Literal["income", "expense"]
CategorySource = Literal["rule", "ai", "manual", "learned"]
Frequency = Literal["weekly", "monthly", "quarterly", "yearly"]
MappingType = Literal["name", "iban", "account", "email", "phone", "address"]


class RawTransaction(BaseModel):
    date: str  # ISO YYYY-MM-DD
    description: str = ""
    amount: float  # signed, negative = outflow
    currency: str = "EUR"
    category: Optional[str] = None
    subcategory: Optional[str] = None
    recipient: Optional[str] = None
    recipient_iban: Optional[str] = None
    reference_account: Optional[str] = None
    reference_account_name: Optional[str] = None
    is_transfer: Optional[bool] = None
    raw_data: dict[str, str] = Field(default_factory=dict)


class Transaction(RawTransaction):
    id: str
    type: TransactionType
    amount: float = Field(ge=0)
    merchant: Optional[str] = None
    is_recurring: bool = False
    recurring_frequency: Optional[Frequency] = None
    is_excluded: bool = False
    category_source: Optional[CategorySource] = None
    double_booking_match: Optional[str] = None


class AnonymizationMapping(BaseModel):
    original: str
    anonymized: str
    type: str


class AnonymizedBatch(BaseModel):
    transactions: list[Transaction]
    mappings: list[AnonymizationMapping] = Field(default_factory=list)


class LearnedMapping(BaseModel):
    merchant: str
    category: str


class CategoryMatch(BaseModel):
    category: str
    source: str  # classifier that produced the match
    category_source: Optional[CategorySource] = "rule"
    merchant: Optional[str] = None
    is_transfer: bool = False


class CategoryOverride(BaseModel):
    id: str
    category: str
    merchant: Optional[str] = None


class TransferPair(BaseModel):
    outgoing: Transaction
    incoming: Transaction
    amount: float
    date: str


class TransferDetection(BaseModel):
    transactions: list[Transaction]
    pairs: list[TransferPair] = Field(default_factory=list)


class RecurringPattern(BaseModel):
    merchant: str
    category: str
    avg_amount: float
    frequency: Frequency
    transactions: list[str]
