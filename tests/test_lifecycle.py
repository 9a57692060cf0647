"""
Tests for enabling and disabling modules per school.
"""

import pytest
from sqlalchemy import delete, select

from app.core.exceptions import (
    DependencyNotEnabled,
    DependencyNotFound,
    DependentModuleEnabled,
    ModuleNotFound,
)
from app.features.modules.cache import ModuleMetadataCache
from app.features.modules.lifecycle import ModuleLifecycleManager
from app.features.modules.models import Module, SchoolModule
from app.features.permissions.models import Role, RoleModuleGrant


async def _grant_role_names(db, school_id: str, module_id: str) -> set[str]:
    result = await db.execute(
        select(Role.name)
        .join(RoleModuleGrant, RoleModuleGrant.role_id == Role.id)
        .where(RoleModuleGrant.school_id == school_id, RoleModuleGrant.module_id == module_id)
    )
    return set(result.scalars().all())


class RecordingDirectory:
    """Wraps a directory and records the order of its calls."""

    def __init__(self, inner):
        self.inner = inner
        self.calls: list[str] = []

    def __getattr__(self, name):
        method = getattr(self.inner, name)

        async def record(*args, **kwargs):
            self.calls.append(name)
            return await method(*args, **kwargs)

        return record


class TestEnable:
    async def test_enable_without_dependencies(self, lifecycle, directory, seeded, school, db):
        students = seeded.modules["students"]

        await lifecycle.enable_module(school.id, students.id)

        activation = await directory.get_school_module_activation(school.id, students.id)
        assert activation.is_active is True
        assert await _grant_role_names(db, school.id, students.id) == {
            "SCHOOL_ADMIN", "TEACHER", "PARENT", "STUDENT",
        }

    async def test_unknown_module(self, lifecycle, school):
        with pytest.raises(ModuleNotFound):
            await lifecycle.enable_module(school.id, "missing-module")

    async def test_dependency_not_enabled(self, lifecycle, directory, seeded, school):
        monthly = seeded.modules["monthlyAssignments"]

        with pytest.raises(DependencyNotEnabled) as exc_info:
            await lifecycle.enable_module(school.id, monthly.id)

        assert exc_info.value.dependency_key == "projections"
        assert exc_info.value.module_key == "monthlyAssignments"
        # Nothing was written
        assert await directory.get_school_module_activation(school.id, monthly.id) is None

    async def test_dependency_enabled_first(self, lifecycle, directory, seeded, school):
        await lifecycle.enable_module(school.id, seeded.modules["projections"].id)
        await lifecycle.enable_module(school.id, seeded.modules["monthlyAssignments"].id)

        activation = await directory.get_school_module_activation(
            school.id, seeded.modules["monthlyAssignments"].id
        )
        assert activation.is_active is True

    async def test_dependency_enabled_in_other_school_does_not_count(
        self, lifecycle, seeded, school, other_school
    ):
        await lifecycle.enable_module(other_school.id, seeded.modules["projections"].id)

        with pytest.raises(DependencyNotEnabled):
            await lifecycle.enable_module(school.id, seeded.modules["reportCards"].id)

    async def test_dependency_missing_from_catalog(self, lifecycle, seeded, school, db):
        await db.execute(delete(Module).where(Module.key == "projections"))
        await db.commit()

        with pytest.raises(DependencyNotFound) as exc_info:
            await lifecycle.enable_module(school.id, seeded.modules["reportCards"].id)

        assert exc_info.value.dependency_key == "projections"

    async def test_missing_roles_are_skipped(self, lifecycle, seeded, school, db):
        await db.execute(delete(Role).where(Role.name.in_(["PARENT", "STUDENT"])))
        await db.commit()
        students = seeded.modules["students"]

        await lifecycle.enable_module(school.id, students.id)

        assert await _grant_role_names(db, school.id, students.id) == {"SCHOOL_ADMIN", "TEACHER"}

    async def test_unrecognized_module_granted_to_school_admin(self, lifecycle, directory, school, db, seeded):
        library = Module(key="library", name="Library", display_order=99)
        db.add(library)
        await db.commit()

        await lifecycle.enable_module(school.id, library.id)

        assert (await directory.get_school_module_activation(school.id, library.id)).is_active
        assert await _grant_role_names(db, school.id, library.id) == {"SCHOOL_ADMIN"}

    async def test_enable_is_idempotent(self, lifecycle, seeded, school, db):
        students = seeded.modules["students"]

        await lifecycle.enable_module(school.id, students.id)
        await lifecycle.enable_module(school.id, students.id)

        activations = await db.execute(
            select(SchoolModule).where(SchoolModule.school_id == school.id)
        )
        grants = await db.execute(
            select(RoleModuleGrant).where(RoleModuleGrant.school_id == school.id)
        )
        assert len(activations.scalars().all()) == 1
        assert len(grants.scalars().all()) == 4

    async def test_enable_refreshes_cached_metadata(self, directory, seeded, school):
        cache = ModuleMetadataCache(max_size=8, ttl=60)
        manager = ModuleLifecycleManager(directory, cache=cache)

        await manager.enable_module(school.id, seeded.modules["students"].id)

        assert cache.get("students").id == seeded.modules["students"].id


class TestDisable:
    async def test_disable_keeps_grants(self, lifecycle, directory, seeded, school, db):
        students = seeded.modules["students"]
        await lifecycle.enable_module(school.id, students.id)

        await lifecycle.disable_module(school.id, students.id)

        activation = await directory.get_school_module_activation(school.id, students.id)
        assert activation.is_active is False
        assert len(await _grant_role_names(db, school.id, students.id)) == 4

    async def test_reenable_needs_no_reseeding(self, lifecycle, access, make_user, seeded, school, db):
        teacher = await make_user("TEACHER")
        students = seeded.modules["students"]
        await lifecycle.enable_module(school.id, students.id)
        await lifecycle.disable_module(school.id, students.id)
        # Roles disappearing after the first enable must not matter
        await db.execute(delete(Role).where(Role.name == "SCHOOL_ADMIN"))

        await lifecycle.enable_module(school.id, students.id)

        assert await access.check(teacher.id, "students.read") is True

    async def test_unknown_module(self, lifecycle, school):
        with pytest.raises(ModuleNotFound):
            await lifecycle.disable_module(school.id, "missing-module")

    async def test_dependent_still_enabled(self, lifecycle, directory, seeded, school):
        projections = seeded.modules["projections"]
        await lifecycle.enable_module(school.id, projections.id)
        await lifecycle.enable_module(school.id, seeded.modules["monthlyAssignments"].id)

        with pytest.raises(DependentModuleEnabled) as exc_info:
            await lifecycle.disable_module(school.id, projections.id)

        assert exc_info.value.dependent_key == "monthlyAssignments"
        assert (await directory.get_school_module_activation(school.id, projections.id)).is_active

    async def test_disable_after_dependents(self, lifecycle, directory, seeded, school):
        projections = seeded.modules["projections"]
        monthly = seeded.modules["monthlyAssignments"]
        await lifecycle.enable_module(school.id, projections.id)
        await lifecycle.enable_module(school.id, monthly.id)

        await lifecycle.disable_module(school.id, monthly.id)
        await lifecycle.disable_module(school.id, projections.id)

        assert (await directory.get_school_module_activation(school.id, projections.id)).is_active is False

    async def test_inactive_dependent_does_not_block(self, lifecycle, directory, seeded, school):
        projections = seeded.modules["projections"]
        await lifecycle.enable_module(school.id, projections.id)
        await lifecycle.enable_module(school.id, seeded.modules["reportCards"].id)
        await lifecycle.disable_module(school.id, seeded.modules["reportCards"].id)

        await lifecycle.disable_module(school.id, projections.id)

        assert (await directory.get_school_module_activation(school.id, projections.id)).is_active is False

    async def test_disable_is_idempotent(self, lifecycle, directory, seeded, school):
        students = seeded.modules["students"]
        await lifecycle.enable_module(school.id, students.id)

        await lifecycle.disable_module(school.id, students.id)
        await lifecycle.disable_module(school.id, students.id)

        assert (await directory.get_school_module_activation(school.id, students.id)).is_active is False


class TestListSchoolModules:
    async def test_lists_catalog_with_activation(self, lifecycle, seeded, school):
        await lifecycle.enable_module(school.id, seeded.modules["paces"].id)

        modules = await lifecycle.list_school_modules(school.id)

        assert [m.key for m in modules][:3] == ["students", "projections", "paces"]
        assert {m.key for m in modules if m.is_enabled} == {"paces"}

    async def test_hides_inactive_catalog_modules(self, lifecycle, seeded, school, db):
        seeded.modules["billing"].is_active = False
        await db.commit()

        modules = await lifecycle.list_school_modules(school.id)

        assert "billing" not in {m.key for m in modules}


class TestSchoolLock:
    async def test_enable_locks_school_before_checking_dependencies(self, directory, seeded, school, enable):
        await enable("projections")
        recording = RecordingDirectory(directory)
        manager = ModuleLifecycleManager(recording)

        await manager.enable_module(school.id, seeded.modules["monthlyAssignments"].id)

        first_read = recording.calls.index("get_school_module_activation")
        assert recording.calls.count("lock_school") == 1
        assert recording.calls.index("lock_school") < first_read
        assert first_read < recording.calls.index("upsert_school_module_activation")

    async def test_disable_locks_school_before_scanning_dependents(self, directory, seeded, school, enable):
        await enable("projections")
        recording = RecordingDirectory(directory)
        manager = ModuleLifecycleManager(recording)

        await manager.disable_module(school.id, seeded.modules["projections"].id)

        assert recording.calls.count("lock_school") == 1
        assert recording.calls.index("lock_school") < recording.calls.index("list_modules")
        assert recording.calls.index("lock_school") < recording.calls.index("upsert_school_module_activation")

    async def test_lock_on_unknown_school_is_harmless(self, directory, seeded):
        await directory.lock_school("missing")
