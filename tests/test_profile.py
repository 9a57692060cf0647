"""
Tests for bulk access profiles.
"""

from app.features.modules.models import Module
from app.features.permissions.catalog import CATALOG
from app.features.permissions.profile import AccessProfileBuilder


class CountingDirectory:
    """Wraps a directory and counts module lookups."""

    def __init__(self, inner):
        self.inner = inner
        self.list_modules_calls = 0

    async def list_modules(self, *args, **kwargs):
        self.list_modules_calls += 1
        return await self.inner.list_modules(*args, **kwargs)

    def __getattr__(self, name):
        return getattr(self.inner, name)


class TestBuildProfile:
    async def test_unknown_user_gets_empty_profile(self, profiles, seeded):
        profile = await profiles.build_profile("missing")

        assert profile.permissions == []
        assert profile.module_actions == {}
        assert profile.modules == []

    async def test_user_without_roles_gets_empty_profile(self, profiles, make_user):
        user = await make_user()

        assert (await profiles.build_profile(user.id)).permissions == []

    async def test_teacher_profile(self, profiles, make_user, enable):
        teacher = await make_user("TEACHER")
        await enable("students", "projections")

        profile = await profiles.build_profile(teacher.id)

        assert profile.permissions == sorted([
            "projections.create", "projections.delete", "projections.read", "projections.update",
            "students.read", "students.update",
        ])
        assert profile.module_actions == {
            "projections": ["create", "delete", "read", "update"],
            "students": ["read", "update"],
        }
        assert [m.key for m in profile.modules] == ["students", "projections"]
        assert profile.modules[0].actions == ["read", "update"]
        assert profile.modules[0].name == "Students"

    async def test_actions_are_deduplicated_across_roles(self, profiles, make_user, enable):
        user = await make_user("PARENT", "STUDENT")
        await enable("students")

        profile = await profiles.build_profile(user.id)

        assert profile.permissions == ["students.readOwn"]
        assert profile.module_actions == {"students": ["readOwn"]}

    async def test_actions_collapse_within_module(self, profiles, make_user, enable):
        teacher = await make_user("TEACHER")
        await enable("school_admin")

        profile = await profiles.build_profile(teacher.id)

        assert profile.permissions == ["schoolInfo.read", "schoolYear.read"]
        assert profile.module_actions == {"school_admin": ["read"]}

    async def test_global_permissions_ignore_activation(self, profiles, make_user):
        admin = await make_user("SCHOOL_ADMIN")

        profile = await profiles.build_profile(admin.id)

        assert profile.permissions == ["schools.read"]
        assert profile.module_actions == {"schools": ["read"]}

    async def test_superadmin_sees_operator_modules_only(self, profiles, make_user):
        user = await make_user("SUPERADMIN")

        profile = await profiles.build_profile(user.id)

        assert {m.key for m in profile.modules} == {"users", "schools", "configuration"}
        assert "students.read" not in profile.permissions
        assert "configuration.update" in profile.permissions
        assert "users.delete" in profile.permissions

    async def test_matches_check_for_every_permission(self, profiles, access, make_user, make_student, enable):
        student = await make_student()
        await enable("students", "projections", "paces", "teachers", "users", "school_admin")
        users = [
            await make_user("SCHOOL_ADMIN"),
            await make_user("TEACHER"),
            await make_user("PARENT", linked_student_ids=[student.id]),
            await make_user("STUDENT"),
            await make_user("TEACHER", "PARENT"),
        ]

        for user in users:
            profile = await profiles.build_profile(user.id)
            allowed = [key for key in CATALOG.keys() if await access.check(user.id, key)]
            assert profile.permissions == sorted(allowed), user.email

    async def test_module_metadata_is_cached(self, directory, module_cache, make_user, enable):
        teacher = await make_user("TEACHER")
        await enable("students")
        counting = CountingDirectory(directory)
        builder = AccessProfileBuilder(counting, cache=module_cache)

        first = await builder.build_profile(teacher.id)
        second = await builder.build_profile(teacher.id)

        assert first == second
        assert counting.list_modules_calls == 1

    async def test_invalidated_cache_reloads(self, directory, module_cache, make_user, enable, seeded, db):
        teacher = await make_user("TEACHER")
        await enable("students")
        builder = AccessProfileBuilder(directory, cache=module_cache)
        await builder.build_profile(teacher.id)

        seeded.modules["students"].name = "Pupils"
        await db.commit()
        stale = await builder.build_profile(teacher.id)
        module_cache.invalidate("students")
        fresh = await builder.build_profile(teacher.id)

        assert stale.modules[0].name == "Students"
        assert fresh.modules[0].name == "Pupils"

    async def test_reseeded_module_replaces_cached_entry(
        self, directory, module_cache, lifecycle, make_user, enable, seeded, school, db
    ):
        teacher = await make_user("TEACHER")
        await enable("students")
        builder = AccessProfileBuilder(directory, cache=module_cache)
        await builder.build_profile(teacher.id)

        await db.delete(seeded.modules["students"])
        await db.commit()
        reseeded = Module(key="students", name="Students", description="Student records", display_order=1)
        db.add(reseeded)
        await db.commit()
        await lifecycle.enable_module(school.id, reseeded.id)
        await db.commit()

        profile = await builder.build_profile(teacher.id)

        assert [m.id for m in profile.modules] == [reseeded.id]
        assert module_cache.get("students").id == reseeded.id
        assert "students.read" in profile.permissions
