from uuid import UUID

import pytest
from httpx import AsyncClient

from collegedesk.auth.models import Identity, Profile, StaffAccount, StudentAccount
from collegedesk.core.enums import UserRole


@pytest.fixture()
async def admin_headers(make_user, auth_headers):
    await make_user("principal@example.com", role=UserRole.ADMIN, full_name="Principal")
    return await auth_headers("principal@example.com")


async def test_list_users_groups_by_role(client: AsyncClient, admin_headers, make_user, other_college) -> None:
    await make_user("t1@example.com", role=UserRole.STAFF, full_name="Tara")
    await make_user("s1@example.com", role=UserRole.STUDENT, full_name="Sam")
    await make_user("outsider@example.com", role=UserRole.STUDENT, college_id=other_college.id)

    response = await client.get("/api/v1/users", headers=admin_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["admins"]["total"] == 1
    assert [u["email"] for u in data["staff"]["items"]] == ["t1@example.com"]
    assert [u["email"] for u in data["students"]["items"]] == ["s1@example.com"]
    assert data["students"]["items"][0]["full_name"] == "Sam"
    assert data["students"]["page_size"] == 10


async def test_list_users_search_and_pagination(client: AsyncClient, admin_headers, make_user) -> None:
    for i in range(3):
        await make_user(f"student{i}@example.com", role=UserRole.STUDENT)
    await make_user("someone@example.com", role=UserRole.STUDENT, full_name="Zed Student")

    response = await client.get(
        "/api/v1/users", params={"search": "STUDENT", "page": 2, "page_size": 3}, headers=admin_headers
    )

    students = response.json()["students"]
    assert students["total"] == 4
    assert students["total_pages"] == 2
    assert len(students["items"]) == 1
    assert response.json()["admins"]["total"] == 0


async def test_non_admin_cannot_manage_users(client: AsyncClient, make_user, auth_headers) -> None:
    await make_user("clerk@example.com", role=UserRole.STAFF)
    headers = await auth_headers("clerk@example.com")

    assert (await client.get("/api/v1/users", headers=headers)).status_code == 403


async def test_create_user(client: AsyncClient, admin_headers, login, college) -> None:
    response = await client.post(
        "/api/v1/users",
        json={"email": "newteacher@example.com", "password": "Teach@123", "role": "staff"},
        headers=admin_headers,
    )

    assert response.status_code == 201, response.text
    data = response.json()
    assert data["role"] == "staff"
    assert data["full_name"] == "newteacher"
    assert data["college_name"] == college.name

    signed_in = await login("newteacher@example.com", password="Teach@123")
    assert signed_in.json()["redirect_to"] == "/staff-dashboard"


async def test_create_user_duplicate_email(client: AsyncClient, admin_headers, make_user) -> None:
    await make_user("taken@example.com", role=UserRole.STUDENT)

    response = await client.post(
        "/api/v1/users",
        json={"email": "taken@example.com", "password": "Secret@123", "role": "staff"},
        headers=admin_headers,
    )

    assert response.status_code == 409


async def test_update_role(client: AsyncClient, admin_headers, make_user, count_rows) -> None:
    identity = await make_user("promoted@example.com", role=UserRole.STUDENT, full_name="Pro Moted")

    response = await client.put(
        f"/api/v1/users/{identity.id}/role", json={"role": "staff"}, headers=admin_headers
    )

    assert response.status_code == 200, response.text
    assert response.json()["role"] == "staff"
    assert await count_rows(StudentAccount, StudentAccount.user_id == identity.id) == 0
    assert await count_rows(StaffAccount, StaffAccount.user_id == identity.id) == 1


async def test_update_role_of_non_member_is_not_found(
    client: AsyncClient, admin_headers, make_user, other_college
) -> None:
    identity = await make_user("outsider@example.com", role=UserRole.STUDENT, college_id=other_college.id)

    response = await client.put(
        f"/api/v1/users/{identity.id}/role", json={"role": "admin"}, headers=admin_headers
    )

    assert response.status_code == 404


async def test_delete_user_removes_identity(client: AsyncClient, admin_headers, make_user, count_rows) -> None:
    identity = await make_user("leaver@example.com", role=UserRole.STUDENT)

    response = await client.delete(
        f"/api/v1/users/{identity.id}", params={"role": "student"}, headers=admin_headers
    )

    assert response.status_code == 204
    assert await count_rows(StudentAccount, StudentAccount.user_id == identity.id) == 0
    assert await count_rows(Identity, Identity.id == identity.id) == 0
    assert await count_rows(Profile, Profile.user_id == identity.id) == 0


async def test_delete_user_wrong_role_is_not_found(
    client: AsyncClient, admin_headers, make_user, count_rows
) -> None:
    identity = await make_user("keeper@example.com", role=UserRole.STUDENT)

    response = await client.delete(
        f"/api/v1/users/{identity.id}", params={"role": "staff"}, headers=admin_headers
    )

    assert response.status_code == 404
    assert await count_rows(Identity, Identity.id == identity.id) == 1


async def test_own_profile(client: AsyncClient, make_user, auth_headers) -> None:
    identity = await make_user("learner@example.com", role=UserRole.STUDENT, full_name="Learner")
    headers = await auth_headers("learner@example.com")

    response = await client.get("/api/v1/users/me/profile", headers=headers)
    assert response.status_code == 200
    assert UUID(response.json()["user_id"]) == identity.id
    assert response.json()["full_name"] == "Learner"

    response = await client.patch(
        "/api/v1/users/me/profile", json={"phone": "+91 98765 43210"}, headers=headers
    )
    assert response.status_code == 200
    assert response.json()["phone"] == "+91 98765 43210"
    assert response.json()["full_name"] == "Learner"
