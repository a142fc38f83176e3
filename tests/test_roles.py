import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from collegedesk.auth.models import AdminAccount, Identity, StaffAccount, StudentAccount
from collegedesk.auth.roles import (
    assign_role,
    find_role_by_email,
    list_users_by_college,
    redirect_target,
    resolve_role,
)
from collegedesk.auth.security import hash_password
from collegedesk.core.enums import UserRole
from collegedesk.core.exceptions import ProfileNotFound


async def _role_rows(count_rows, user_id) -> int:
    total = 0
    for model in (AdminAccount, StaffAccount, StudentAccount):
        total += await count_rows(model, model.user_id == user_id)
    return total


def test_redirect_target() -> None:
    assert redirect_target(UserRole.ADMIN) == "/admin-dashboard"
    assert redirect_target(UserRole.STAFF) == "/staff-dashboard"
    assert redirect_target(UserRole.STUDENT) == "/student-dashboard"


async def test_resolve_role_none_when_not_a_member(db_session: AsyncSession, make_user, other_college) -> None:
    identity = await make_user("nomad@example.com", role=UserRole.STAFF)

    assert await resolve_role(db_session, identity.id, other_college.id) is None


async def test_resolve_role_priority_admin_staff_student(db_session: AsyncSession, make_user, college) -> None:
    identity = await make_user("dual@example.com", role=UserRole.STUDENT)
    # Leftover row from an interrupted migration: staff outranks student
    db_session.add(StaffAccount(user_id=identity.id, email="dual@example.com", college_id=college.id))
    await db_session.commit()

    resolved = await resolve_role(db_session, identity.id, college.id)

    assert resolved.role == UserRole.STAFF
    assert resolved.college.name == college.name


async def test_assign_role_leaves_exactly_one_row(db_session: AsyncSession, make_user, college, count_rows) -> None:
    identity = await make_user("mover@example.com", role=UserRole.STUDENT, full_name="Mover")

    for role in (UserRole.ADMIN, UserRole.STUDENT, UserRole.STAFF, UserRole.STAFF):
        await assign_role(db_session, identity.id, role, college.id)
        assert await _role_rows(count_rows, identity.id) == 1

    resolved = await resolve_role(db_session, identity.id, college.id)
    assert resolved.role == UserRole.STAFF
    assert resolved.record.email == "mover@example.com"


async def test_assign_role_student_copies_profile_name(db_session: AsyncSession, make_user, college) -> None:
    identity = await make_user("newbie@example.com", role=UserRole.STAFF, full_name="New Bie")

    record = await assign_role(db_session, identity.id, UserRole.STUDENT, college.id)

    assert isinstance(record, StudentAccount)
    assert record.full_name == "New Bie"


async def test_assign_role_without_profile_leaves_identity_roleless(
    db_session: AsyncSession, college, count_rows
) -> None:
    identity = Identity(email="ghost@example.com", password_hash=hash_password("x"))
    db_session.add(identity)
    await db_session.flush()
    db_session.add(StudentAccount(user_id=identity.id, email="ghost@example.com", college_id=college.id))
    await db_session.commit()

    with pytest.raises(ProfileNotFound):
        await assign_role(db_session, identity.id, UserRole.ADMIN, college.id)

    assert await _role_rows(count_rows, identity.id) == 0


async def test_find_role_by_email_is_case_insensitive(session_factory, make_user, college) -> None:
    identity = await make_user("Teacher@Example.com", role=UserRole.STAFF)

    resolved = await find_role_by_email(session_factory, "teacher@example.COM", college.id)

    assert resolved.role == UserRole.STAFF
    assert resolved.record.user_id == identity.id


async def test_find_role_by_email_scoped_to_college(session_factory, make_user, other_college) -> None:
    await make_user("teacher@example.com", role=UserRole.STAFF)

    assert await find_role_by_email(session_factory, "teacher@example.com", other_college.id) is None


async def test_list_users_by_college_groups_members(session_factory, make_user, college, other_college) -> None:
    await make_user("head@example.com", role=UserRole.ADMIN, full_name="Head")
    await make_user("t1@example.com", role=UserRole.STAFF)
    await make_user("s1@example.com", role=UserRole.STUDENT)
    await make_user("s2@example.com", role=UserRole.STUDENT)
    await make_user("elsewhere@example.com", role=UserRole.STUDENT, college_id=other_college.id)

    groups = await list_users_by_college(session_factory, college.id)

    assert [m.record.email for m in groups[UserRole.ADMIN]] == ["head@example.com"]
    assert groups[UserRole.ADMIN][0].full_name == "Head"
    assert groups[UserRole.ADMIN][0].college_name == college.name
    assert len(groups[UserRole.STAFF]) == 1
    assert {m.record.email for m in groups[UserRole.STUDENT]} == {"s1@example.com", "s2@example.com"}
