"""
Domain errors raised by the access-control core.

check() never raises these; enforce() and the module lifecycle operations do,
so callers can tell "denied" apart from "cannot evaluate" and from a
dependency rule violation.
"""


class AccessControlError(Exception):
    """Base class for access-control errors."""


class PermissionDenied(AccessControlError):
    def __init__(self, permission_key: str):
        self.permission_key = permission_key
        super().__init__(f"Permission denied: {permission_key}")


class ModuleNotFound(AccessControlError):
    def __init__(self, module_ref: str):
        self.module_ref = module_ref
        super().__init__(f"Module not found: {module_ref}")


class DependencyNotFound(AccessControlError):
    """A module names a dependency that has no catalog row."""

    def __init__(self, module_key: str, dependency_key: str):
        self.module_key = module_key
        self.dependency_key = dependency_key
        super().__init__(f"Dependency module '{dependency_key}' of '{module_key}' not found")


class DependencyNotEnabled(AccessControlError):
    def __init__(self, module_key: str, dependency_key: str):
        self.module_key = module_key
        self.dependency_key = dependency_key
        super().__init__(
            f"Module '{module_key}' requires module '{dependency_key}' to be enabled first"
        )


class DependentModuleEnabled(AccessControlError):
    def __init__(self, module_key: str, dependent_key: str):
        self.module_key = module_key
        self.dependent_key = dependent_key
        super().__init__(
            f"Cannot disable module '{module_key}' because module '{dependent_key}' "
            f"is still enabled. Disable '{dependent_key}' first."
        )


class ModuleDependencyCycle(AccessControlError):
    def __init__(self, path: list[str]):
        self.path = path
        super().__init__("Module dependency cycle: " + " -> ".join(path))
