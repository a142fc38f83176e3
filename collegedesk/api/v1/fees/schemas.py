"""Fees schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from collegedesk.core.enums import FeePaymentStatus, FeeTransactionKind


# --- Ledger ---
class FeeTransactionWrite(BaseModel):
    """Insert when id is absent, otherwise edit that transaction. kind is fixed once created."""

    id: Optional[UUID] = None
    student_id: UUID = Field(..., description="Identity id of the student")
    kind: FeeTransactionKind = FeeTransactionKind.PAYMENT
    fee_type: Optional[str] = Field(None, max_length=255)
    amount: Decimal = Field(..., allow_inf_nan=False)
    payment_date: Optional[date] = None
    payment_mode: Optional[str] = Field(None, max_length=50, description="e.g. Online, Cash, Cheque")
    academic_year: Optional[str] = Field(None, max_length=20, description="e.g. 2025-26")
    program: Optional[str] = Field(None, max_length=100)
    branch: Optional[str] = Field(None, max_length=100)


class FeeTransactionResponse(BaseModel):
    id: UUID
    student_id: UUID
    kind: FeeTransactionKind
    fee_type: Optional[str] = None
    amount: Decimal
    payment_date: Optional[date] = None
    payment_mode: Optional[str] = None
    academic_year: Optional[str] = None
    program: Optional[str] = None
    branch: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# --- Summary ---
class FeeSummary(BaseModel):
    """Derived per-student totals. Never stored."""

    student_id: UUID
    name: str
    roll: str
    program: Optional[str] = None
    branch: Optional[str] = None
    academic_year: Optional[str] = None
    total_fee: Decimal
    paid: Decimal
    due: Decimal
    status: FeePaymentStatus


class StudentFeeOverview(BaseModel):
    summary: Optional[FeeSummary] = None
    transactions: List[FeeTransactionResponse]
