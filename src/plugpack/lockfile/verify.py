"""Consistency checks between a lock descriptor and the workspace manifests."""

from __future__ import annotations

import re

from plugpack.errors import LockMismatchError
from plugpack.lockfile.model import LockDescriptor
from plugpack.workspace import Workspace

CHECKSUM_PATTERN = re.compile(r"^[0-9a-f]{64}$")
GIT_COMMIT_PATTERN = re.compile(r"#[0-9a-f]{40}$")


def verify_lock(lock: LockDescriptor, workspace: Workspace) -> None:
    """Raise :class:`LockMismatchError` unless *lock* pins *workspace* exactly."""
    for member in workspace.members:
        if not any(p.is_local for p in lock.find(member.name, member.version)):
            raise LockMismatchError(
                f"Workspace member `{member.name} {member.version}` is not in Cargo.lock.",
                hint="The lock file is stale; run `cargo update --workspace` and commit it.",
                context={"operation": "verify_lock", "package": member.name},
            )
        missing = sorted(name for name in member.dependencies if name not in lock.names)
        if missing:
            raise LockMismatchError(
                f"Dependencies of `{member.name}` are missing from Cargo.lock.",
                hint="The lock file is stale; run `cargo update --workspace` and commit it.",
                context={
                    "operation": "verify_lock",
                    "package": member.name,
                    "missing": ", ".join(missing),
                },
            )

    for package in lock.third_party():
        if package.is_registry and not (
            package.checksum and CHECKSUM_PATTERN.fullmatch(package.checksum)
        ):
            raise LockMismatchError(
                f"Registry package `{package.name} {package.version}` has no checksum.",
                hint="Every registry dependency must be pinned by checksum.",
                context={"operation": "verify_lock", "package": package.name},
            )
        if package.is_git and not GIT_COMMIT_PATTERN.search(package.source or ""):
            raise LockMismatchError(
                f"Git package `{package.name} {package.version}` is not pinned to a commit.",
                hint="Git sources must resolve to a full commit hash in Cargo.lock.",
                context={
                    "operation": "verify_lock",
                    "package": package.name,
                    "source": package.source or "",
                },
            )

    for package in lock.packages:
        for reference in package.dependencies:
            name, _, rest = reference.partition(" ")
            version = rest.split(" ", 1)[0] or None
            if not lock.find(name, version):
                raise LockMismatchError(
                    f"Cargo.lock entry `{package.name}` references unknown package `{reference}`.",
                    hint="The lock file is corrupt; regenerate it with cargo.",
                    context={"operation": "verify_lock", "package": package.name},
                )
