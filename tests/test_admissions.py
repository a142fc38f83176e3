from uuid import UUID, uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from collegedesk.api.v1.admissions import service as admissions_service
from collegedesk.auth.identity_provider import IdentityProvider
from collegedesk.auth.models import Identity, StudentAccount
from collegedesk.core.enums import UserRole
from collegedesk.core.exceptions import AdmissionNotFound, MissingEmail, ReasonRequired
from collegedesk.core.models import PendingAdmission, RejectedAdmission

APPLICATION = {
    "full_name": "Meera Nair",
    "dob": "2006-04-12",
    "program": "B.Tech",
    "specialization": "CSE",
    "academic": {"twelfth": {"board": "CBSE", "score": "91"}},
    "parents": {"father_name": "R. Nair", "guardian_name": "R. Nair"},
    "documents": {"photo": "https://files.example.com/admissions/photo.jpg"},
}


async def _submit(client: AsyncClient, college, email="meera@example.com", data=None):
    response = await client.post(
        "/api/v1/admissions",
        json={"college_id": str(college.id), "email": email, "data": data if data is not None else APPLICATION},
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture()
async def admin_headers(make_user, auth_headers):
    await make_user("principal@example.com", role=UserRole.ADMIN, full_name="Dr. Principal")
    return await auth_headers("principal@example.com")


async def test_submit_is_public(client: AsyncClient, college) -> None:
    data = await _submit(client, college)

    assert data["applicant_name"] == "Meera Nair"
    assert data["applicant_email"] == "meera@example.com"
    assert data["data"]["documents"]["photo"].startswith("https://")


async def test_submit_unknown_college(client: AsyncClient, college) -> None:
    response = await client.post(
        "/api/v1/admissions",
        json={"college_id": "00000000-0000-0000-0000-000000000000", "email": "a@example.com", "data": {}},
    )
    assert response.status_code == 400


async def test_submit_invalid_email_is_rejected(client: AsyncClient, college) -> None:
    response = await client.post(
        "/api/v1/admissions", json={"college_id": str(college.id), "email": "not-an-email", "data": {}}
    )
    assert response.status_code == 422


async def test_duplicate_submissions_are_separate_rows(client: AsyncClient, college, count_rows) -> None:
    await _submit(client, college)
    await _submit(client, college)

    assert await count_rows(PendingAdmission, PendingAdmission.college_id == college.id) == 2


async def test_list_pending_newest_first(client: AsyncClient, college, admin_headers) -> None:
    await _submit(client, college, email="first@example.com")
    await _submit(client, college, email="second@example.com")

    response = await client.get("/api/v1/admissions/pending", headers=admin_headers)

    assert response.status_code == 200
    assert [a["email"] for a in response.json()] == ["second@example.com", "first@example.com"]


async def test_student_cannot_review(client: AsyncClient, college, make_user, auth_headers) -> None:
    await make_user("learner@example.com", role=UserRole.STUDENT)
    headers = await auth_headers("learner@example.com")

    response = await client.get("/api/v1/admissions/pending", headers=headers)

    assert response.status_code == 403


async def test_approve_creates_student_and_consumes_application(
    client: AsyncClient, college, admin_headers, login, count_rows, session_factory
) -> None:
    pending = await _submit(client, college)

    response = await client.post(f"/api/v1/admissions/{pending['id']}/approve", headers=admin_headers)

    assert response.status_code == 200, response.text
    student = response.json()
    assert student["email"] == "meera@example.com"
    assert student["full_name"] == "Meera Nair"
    assert await count_rows(PendingAdmission, PendingAdmission.id == UUID(pending["id"])) == 0
    assert await count_rows(RejectedAdmission) == 0
    async with session_factory() as s:
        identity = (await s.execute(select(Identity).where(Identity.email == "meera@example.com"))).scalar_one()
        assert identity.email_confirmed_at is not None
        assert identity.user_metadata == {"full_name": "Meera Nair"}

    # New student signs in with the default password
    signed_in = await login("meera@example.com", password="Welcome@123")
    assert signed_in.status_code == 200
    assert signed_in.json()["redirect_to"] == "/student-dashboard"


async def test_staff_can_approve(client: AsyncClient, college, make_user, auth_headers) -> None:
    await make_user("clerk@example.com", role=UserRole.STAFF)
    headers = await auth_headers("clerk@example.com")
    pending = await _submit(client, college)

    response = await client.post(f"/api/v1/admissions/{pending['id']}/approve", headers=headers)

    assert response.status_code == 200


async def test_approve_twice_is_not_found(client: AsyncClient, college, admin_headers) -> None:
    pending = await _submit(client, college)
    await client.post(f"/api/v1/admissions/{pending['id']}/approve", headers=admin_headers)

    response = await client.post(f"/api/v1/admissions/{pending['id']}/approve", headers=admin_headers)

    assert response.status_code == 404


async def test_approve_other_college_application_is_not_found(
    client: AsyncClient, other_college, admin_headers
) -> None:
    pending = await _submit(client, other_college)

    response = await client.post(f"/api/v1/admissions/{pending['id']}/approve", headers=admin_headers)

    assert response.status_code == 404


async def test_approve_reuses_identity_from_interrupted_run(
    db_session: AsyncSession, college, count_rows
) -> None:
    pending = PendingAdmission(college_id=college.id, email="meera@example.com", data=APPLICATION)
    db_session.add(pending)
    await db_session.commit()
    provider = IdentityProvider(db_session)
    # Step 2 already happened before the crash
    await provider.admin_create_identity("meera@example.com", "Welcome@123", user_metadata={"full_name": "Meera Nair"})

    student = await admissions_service.approve(db_session, provider, college.id, pending.id)

    assert await count_rows(Identity, Identity.email == "meera@example.com") == 1
    assert await count_rows(StudentAccount, StudentAccount.user_id == student.user_id) == 1
    assert await count_rows(PendingAdmission) == 0


async def test_approve_email_of_staff_member_conflicts(
    client: AsyncClient, college, admin_headers, make_user, count_rows
) -> None:
    await make_user("clerk@example.com", role=UserRole.STAFF)
    pending = await _submit(client, college, email="clerk@example.com")

    response = await client.post(f"/api/v1/admissions/{pending['id']}/approve", headers=admin_headers)

    assert response.status_code == 409
    assert await count_rows(PendingAdmission) == 1


async def test_approve_without_email_fails(db_session: AsyncSession, college, count_rows) -> None:
    pending = PendingAdmission(college_id=college.id, email=None, data={"full_name": "No Mail"})
    db_session.add(pending)
    await db_session.commit()

    with pytest.raises(MissingEmail):
        await admissions_service.approve(db_session, IdentityProvider(db_session), college.id, pending.id)

    assert await count_rows(Identity) == 0
    assert await count_rows(PendingAdmission) == 1


async def test_approve_unknown_id(db_session: AsyncSession, college) -> None:
    with pytest.raises(AdmissionNotFound):
        await admissions_service.approve(
            db_session, IdentityProvider(db_session), college.id, uuid4()
        )


async def test_reject_archives_application(
    client: AsyncClient, college, admin_headers, count_rows
) -> None:
    pending = await _submit(client, college)

    response = await client.post(
        f"/api/v1/admissions/{pending['id']}/reject",
        json={"reason": "Incomplete documents"},
        headers=admin_headers,
    )

    assert response.status_code == 200, response.text
    rejected = response.json()
    assert rejected["rejected_reason"] == "Incomplete documents"
    assert rejected["rejected_by"] == "Dr. Principal"
    assert rejected["email"] == "meera@example.com"
    assert rejected["pending_admission_id"] == pending["id"]
    assert rejected["application_data"]["data"]["full_name"] == "Meera Nair"
    assert await count_rows(PendingAdmission) == 0
    assert await count_rows(StudentAccount) == 0

    listed = await client.get("/api/v1/admissions/rejected", headers=admin_headers)
    assert [r["id"] for r in listed.json()] == [rejected["id"]]


@pytest.mark.parametrize("reason", ["", "   ", None])
async def test_reject_requires_reason(
    client: AsyncClient, college, admin_headers, count_rows, reason
) -> None:
    pending = await _submit(client, college)

    response = await client.post(
        f"/api/v1/admissions/{pending['id']}/reject", json={"reason": reason}, headers=admin_headers
    )

    assert response.status_code == 400
    assert await count_rows(PendingAdmission) == 1
    assert await count_rows(RejectedAdmission) == 0


async def test_reject_service_blank_reason_raises(db_session: AsyncSession, college) -> None:
    with pytest.raises(ReasonRequired):
        await admissions_service.reject(db_session, college.id, uuid4(), "", "Admin")


async def test_reject_rerun_does_not_archive_twice(db_session: AsyncSession, college, count_rows) -> None:
    pending = PendingAdmission(college_id=college.id, email="meera@example.com", data=APPLICATION)
    db_session.add(pending)
    await db_session.commit()
    # Archive insert happened, pending delete did not
    db_session.add(
        RejectedAdmission(
            college_id=college.id,
            pending_admission_id=pending.id,
            email="meera@example.com",
            rejected_by="Admin",
            rejected_reason="Seats full",
            application_data={},
        )
    )
    await db_session.commit()

    await admissions_service.reject(db_session, college.id, pending.id, "Seats full", "Admin")

    assert await count_rows(RejectedAdmission) == 1
    assert await count_rows(PendingAdmission) == 0
