"""Fees router: summaries, export, ledger writes and the student's own view."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from collegedesk.auth.rbac import require_admin_or_staff, require_student
from collegedesk.auth.schemas import CurrentUser
from collegedesk.core.enums import FeeSortKey
from collegedesk.core.exceptions import ServiceError
from collegedesk.db.session import get_db

from .schemas import FeeSummary, FeeTransactionResponse, FeeTransactionWrite, StudentFeeOverview
from . import service

router = APIRouter(prefix="/api/v1/fees", tags=["fees"])


async def _filtered_summaries(
    db: AsyncSession,
    college_id: UUID,
    program: Optional[str],
    branch: Optional[str],
    academic_year: Optional[str],
    search: Optional[str],
    sort: FeeSortKey,
) -> List[FeeSummary]:
    summaries = await service.load_summaries(
        db, college_id, program=program, branch=branch, academic_year=academic_year
    )
    return service.filter_and_sort(summaries, search, sort)


@router.get("/summaries", response_model=List[FeeSummary])
async def list_fee_summaries(
    program: Optional[str] = Query(None, description="Course, e.g. B.Tech"),
    branch: Optional[str] = Query(None),
    academic_year: Optional[str] = Query(None, description="e.g. 2025-26"),
    search: Optional[str] = Query(None, description="Matches student name or roll number"),
    sort: FeeSortKey = Query(FeeSortKey.DUE),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin_or_staff),
) -> List[FeeSummary]:
    try:
        return await _filtered_summaries(
            db, current_user.college_id, program, branch, academic_year, search, sort
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/summaries/export.csv")
async def export_fee_summaries_csv(
    program: Optional[str] = Query(None),
    branch: Optional[str] = Query(None),
    academic_year: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    sort: FeeSortKey = Query(FeeSortKey.DUE),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin_or_staff),
) -> Response:
    try:
        rows = await _filtered_summaries(
            db, current_user.college_id, program, branch, academic_year, search, sort
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return Response(
        content=service.export_csv(rows),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename=fees_{academic_year or 'all'}.csv"},
    )


@router.get("/summaries/export.xlsx")
async def export_fee_summaries_xlsx(
    program: Optional[str] = Query(None),
    branch: Optional[str] = Query(None),
    academic_year: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    sort: FeeSortKey = Query(FeeSortKey.DUE),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin_or_staff),
) -> Response:
    try:
        rows = await _filtered_summaries(
            db, current_user.college_id, program, branch, academic_year, search, sort
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return Response(
        content=service.export_workbook(rows),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename=fees_{academic_year or 'all'}.xlsx"},
    )


@router.post("/transactions", response_model=FeeTransactionResponse)
async def save_fee_transaction(
    payload: FeeTransactionWrite,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin_or_staff),
) -> FeeTransactionResponse:
    """Record a charge or payment; send id to edit an existing one."""
    try:
        return await service.record_transaction(db, current_user.college_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/transactions", response_model=List[FeeTransactionResponse])
async def list_fee_transactions(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin_or_staff),
) -> List[FeeTransactionResponse]:
    try:
        return await service.list_transactions(db, current_user.college_id, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/me", response_model=StudentFeeOverview)
async def my_fees(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_student),
) -> StudentFeeOverview:
    """Signed-in student's own summary and payment history."""
    try:
        return await service.student_fee_summary(db, current_user.college_id, current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
