"""Fees service: ledger writes, per-student summaries, filtering and export. Summaries are recomputed on every read."""

import io
import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional
from uuid import UUID

from openpyxl import Workbook
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from collegedesk.auth.models import Profile, StudentAccount
from collegedesk.core.enums import FeePaymentStatus, FeeSortKey, FeeTransactionKind
from collegedesk.core.exceptions import InvalidReference, StoreError, TransactionNotFound
from collegedesk.core.models import FeeTransaction

from .schemas import FeeSummary, FeeTransactionResponse, FeeTransactionWrite, StudentFeeOverview

logger = logging.getLogger(__name__)

CSV_HEADERS = [
    "Student Name",
    "Roll Number",
    "Program",
    "Branch",
    "Academic Year",
    "Total Fee",
    "Paid",
    "Due",
    "Payment Status",
]

STATUS_RANK = {
    FeePaymentStatus.PAID: 2,
    FeePaymentStatus.PARTIAL: 1,
    FeePaymentStatus.UNPAID: 0,
}

# Editable after creation; kind and student_id are not
MUTABLE_FIELDS = ("fee_type", "amount", "payment_date", "payment_mode", "academic_year", "program", "branch")


def _to_decimal(val) -> Decimal:
    if val is None:
        return Decimal("0")
    return val if isinstance(val, Decimal) else Decimal(str(val))


# --- Pure aggregation ---
def compute_status(total_fee: Decimal, paid: Decimal) -> FeePaymentStatus:
    if total_fee - paid <= 0:
        return FeePaymentStatus.PAID
    if paid == 0:
        return FeePaymentStatus.UNPAID
    return FeePaymentStatus.PARTIAL


def _display_name(student: Any, profile_name: Optional[str] = None) -> str:
    """Profile name, else the students row copy, else the email local part."""
    if profile_name:
        return profile_name
    if student is None:
        return "Student"
    if getattr(student, "full_name", None):
        return student.full_name
    email = getattr(student, "email", None) or ""
    return email.split("@")[0] or "Student"


def aggregate_summaries(
    transactions: Iterable[Any],
    students: Mapping[UUID, Any],
    profile_names: Optional[Mapping[UUID, Optional[str]]] = None,
) -> List[FeeSummary]:
    """
    Fold ledger lines into one summary per student, in first-seen order.
    Program, branch and year are taken from the first transaction seen for the student.
    Amounts are summed as given, negative ones included.
    """
    profile_names = profile_names or {}
    acc: Dict[UUID, Dict[str, Any]] = {}
    for tx in transactions:
        sid = tx.student_id
        if sid not in acc:
            student = students.get(sid)
            acc[sid] = {
                "student_id": sid,
                "name": _display_name(student, profile_names.get(sid)),
                "roll": getattr(student, "roll_number", None) or "N/A",
                "program": tx.program,
                "branch": tx.branch,
                "academic_year": tx.academic_year,
                "total_fee": Decimal("0"),
                "paid": Decimal("0"),
            }
        kind = getattr(tx.kind, "value", tx.kind)
        if kind == FeeTransactionKind.CHARGE.value:
            acc[sid]["total_fee"] += _to_decimal(tx.amount)
        elif kind == FeeTransactionKind.PAYMENT.value:
            acc[sid]["paid"] += _to_decimal(tx.amount)

    summaries = []
    for row in acc.values():
        total_fee, paid = row["total_fee"], row["paid"]
        summaries.append(
            FeeSummary(
                **row,
                due=max(Decimal("0"), total_fee - paid),
                status=compute_status(total_fee, paid),
            )
        )
    return summaries


def filter_and_sort(
    summaries: List[FeeSummary],
    search_text: Optional[str] = None,
    sort_key: FeeSortKey = FeeSortKey.DUE,
) -> List[FeeSummary]:
    """Case-insensitive search on name or roll, then a stable descending sort by due or status."""
    rows = summaries
    if search_text:
        q = search_text.lower()
        rows = [s for s in rows if q in s.name.lower() or q in str(s.roll).lower()]
    if sort_key == FeeSortKey.STATUS:
        return sorted(rows, key=lambda s: STATUS_RANK.get(s.status, 0), reverse=True)
    return sorted(rows, key=lambda s: s.due, reverse=True)


def format_amount(value) -> str:
    """800.00 -> "800", 12.50 -> "12.5"."""
    d = _to_decimal(value)
    if d == 0:
        return "0"
    return format(d.normalize(), "f")


def export_csv(summaries: List[FeeSummary]) -> str:
    # Values are joined as-is, without quoting
    lines = [",".join(CSV_HEADERS)]
    for s in summaries:
        lines.append(
            ",".join(
                [
                    s.name,
                    str(s.roll),
                    s.program or "",
                    s.branch or "",
                    s.academic_year or "",
                    format_amount(s.total_fee),
                    format_amount(s.paid),
                    format_amount(s.due),
                    s.status.value,
                ]
            )
        )
    return "\n".join(lines)


def export_workbook(summaries: List[FeeSummary]) -> bytes:
    """Same columns as the CSV, amounts as numeric cells."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Fee summary"
    ws.append(CSV_HEADERS)
    for s in summaries:
        ws.append(
            [
                s.name,
                s.roll,
                s.program or "",
                s.branch or "",
                s.academic_year or "",
                s.total_fee,
                s.paid,
                s.due,
                s.status.value,
            ]
        )
    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()


# --- Store access ---
async def _load_ledger(
    db: AsyncSession,
    college_id: UUID,
    program: Optional[str] = None,
    branch: Optional[str] = None,
    academic_year: Optional[str] = None,
    student_id: Optional[UUID] = None,
) -> List[FeeSummary]:
    stmt = (
        select(FeeTransaction, StudentAccount, Profile.full_name)
        .join(
            StudentAccount,
            (StudentAccount.user_id == FeeTransaction.student_id) & (StudentAccount.college_id == college_id),
        )
        .outerjoin(Profile, Profile.user_id == FeeTransaction.student_id)
    )
    if program:
        stmt = stmt.where(FeeTransaction.program == program)
    if branch:
        stmt = stmt.where(FeeTransaction.branch == branch)
    if academic_year:
        stmt = stmt.where(FeeTransaction.academic_year == academic_year)
    if student_id is not None:
        stmt = stmt.where(FeeTransaction.student_id == student_id)
    stmt = stmt.order_by(FeeTransaction.created_at, FeeTransaction.id)

    try:
        result = await db.execute(stmt)
        rows = result.all()
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreError("Failed to load fees data") from e

    students = {student.user_id: student for _, student, _ in rows}
    profile_names = {student.user_id: full_name for _, student, full_name in rows}
    return aggregate_summaries([tx for tx, _, _ in rows], students, profile_names)


async def load_summaries(
    db: AsyncSession,
    college_id: UUID,
    program: Optional[str] = None,
    branch: Optional[str] = None,
    academic_year: Optional[str] = None,
) -> List[FeeSummary]:
    """Summaries for students of the college with at least one transaction matching every given filter."""
    return await _load_ledger(db, college_id, program=program, branch=branch, academic_year=academic_year)


async def _student_in_college(db: AsyncSession, college_id: UUID, student_id: UUID) -> bool:
    result = await db.execute(
        select(StudentAccount.id).where(
            StudentAccount.user_id == student_id,
            StudentAccount.college_id == college_id,
        )
    )
    return result.first() is not None


async def _get_transaction(db: AsyncSession, college_id: UUID, transaction_id: UUID) -> FeeTransaction:
    result = await db.execute(
        select(FeeTransaction)
        .join(
            StudentAccount,
            (StudentAccount.user_id == FeeTransaction.student_id) & (StudentAccount.college_id == college_id),
        )
        .where(FeeTransaction.id == transaction_id)
    )
    tx = result.scalar_one_or_none()
    if tx is None:
        raise TransactionNotFound()
    return tx


async def record_transaction(
    db: AsyncSession,
    college_id: UUID,
    payload: FeeTransactionWrite,
) -> FeeTransactionResponse:
    """Insert, or update the mutable fields of an existing transaction in place."""
    try:
        if payload.id is not None:
            tx = await _get_transaction(db, college_id, payload.id)
            if payload.kind.value != tx.kind:
                logger.warning("Ignoring kind change on fee transaction %s", tx.id)
            if payload.student_id != tx.student_id:
                raise InvalidReference("Fee record belongs to a different student")
            for field in MUTABLE_FIELDS:
                setattr(tx, field, getattr(payload, field))
        else:
            if not await _student_in_college(db, college_id, payload.student_id):
                raise InvalidReference("Student not found in this college")
            tx = FeeTransaction(
                student_id=payload.student_id,
                kind=payload.kind.value,
                **{field: getattr(payload, field) for field in MUTABLE_FIELDS},
            )
            db.add(tx)
        await db.commit()
        await db.refresh(tx)
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreError("Failed to save fee record") from e
    logger.info("Saved fee transaction %s (%s %s)", tx.id, tx.kind, tx.amount)
    return FeeTransactionResponse.model_validate(tx)


async def list_transactions(
    db: AsyncSession,
    college_id: UUID,
    student_id: UUID,
) -> List[FeeTransactionResponse]:
    """Ledger lines of one student, newest payment date first."""
    try:
        result = await db.execute(
            select(FeeTransaction)
            .join(
                StudentAccount,
                (StudentAccount.user_id == FeeTransaction.student_id) & (StudentAccount.college_id == college_id),
            )
            .where(FeeTransaction.student_id == student_id)
            .order_by(FeeTransaction.payment_date.desc().nullslast(), FeeTransaction.created_at.desc())
        )
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreError("Failed to load fee records") from e
    return [FeeTransactionResponse.model_validate(t) for t in result.scalars().all()]


async def student_fee_summary(
    db: AsyncSession,
    college_id: UUID,
    student_id: UUID,
) -> StudentFeeOverview:
    summaries = await _load_ledger(db, college_id, student_id=student_id)
    return StudentFeeOverview(
        summary=summaries[0] if summaries else None,
        transactions=await list_transactions(db, college_id, student_id),
    )
