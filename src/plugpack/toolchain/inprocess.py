"""In-process toolchain for testing and development.

Produces deterministic placeholder artifacts without invoking cargo. Output
names follow cargo's conventions and each workspace member's declared
crate types, so a crate that only emits a ``staticlib`` yields ``libX.a``
and no shared library, exactly like the real toolchain. Suitable for:
- Unit tests that exercise the whole pipeline
- Development machines without a Rust toolchain
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from pathlib import Path

from plugpack.bundle.locate import crate_file_stem, shared_library_name, static_library_name
from plugpack.environment import Environment
from plugpack.errors import PlugpackError
from plugpack.lockfile import read_lock
from plugpack.models import Platform
from plugpack.source import resolve_source_closure
from plugpack.source.closure import SourceClosure
from plugpack.toolchain.base import ToolchainRequest, ToolchainResult
from plugpack.workspace import CrateManifest, load_workspace

ELF_MAGIC = b"\x7fELF"


@dataclass(slots=True)
class InProcessToolchain:
    """Toolchain that writes deterministic artifacts in-process."""

    name: str = "inprocess"
    platform: Platform | None = None
    fail_packages: frozenset[str] = frozenset()
    invocations: list[ToolchainRequest] = field(default_factory=list)

    def check(self, environment: Environment) -> None:
        pass

    def identity(self, environment: Environment) -> str:
        return f"{self.name} {self.platform or 'host'}"

    def build(self, request: ToolchainRequest) -> ToolchainResult:
        self.invocations.append(request)
        argv = ("inprocess", "build", request.profile, request.scope)
        closure = resolve_source_closure(request.source_dir)
        try:
            workspace = load_workspace(closure)
            lock = read_lock(request.source_dir / "Cargo.lock")
        except PlugpackError as exc:
            return ToolchainResult(argv=argv, returncode=101, stderr=f"error: {exc}\n")

        if request.package is None:
            members = workspace.members
        else:
            member = workspace.member(request.package)
            if member is None:
                return ToolchainResult(
                    argv=argv,
                    returncode=101,
                    stderr=(
                        f"error: package ID specification `{request.package}` "
                        "did not match any packages\n"
                    ),
                )
            members = (member,)

        third_party = lock.third_party()
        for name in sorted(self.fail_packages):
            if name in {p.name for p in third_party} or any(m.name == name for m in members):
                return ToolchainResult(
                    argv=argv,
                    returncode=101,
                    stderr=f"error: could not compile `{name}` due to 1 previous error\n",
                )

        out_dir = request.target_dir / request.profile
        deps_dir = out_dir / "deps"
        deps_dir.mkdir(parents=True, exist_ok=True)
        for package in third_party:
            seed = f"{package.name} {package.version} {package.checksum or package.source}"
            suffix = _unit_hash(seed)
            rlib = deps_dir / f"lib{crate_file_stem(package.name)}-{suffix}.rlib"
            rlib.write_bytes(f"rlib {seed}\n".encode())
            _fingerprint(out_dir, package.name, suffix)

        lines: list[str] = []
        for member in members:
            self._emit_member(member, closure, out_dir)
            lines.append(f"   Compiling {member.name} v{member.version}")
        lines.append(f"    Finished `{request.profile}` profile target(s)")
        return ToolchainResult(argv=argv, returncode=0, stderr="\n".join(lines) + "\n")

    def _emit_member(self, member: CrateManifest, closure: SourceClosure, out_dir: Path) -> None:
        prefix = f"{member.directory}/" if member.directory else ""
        digest = hashlib.sha256()
        for item in closure:
            if item.path.startswith(prefix):
                digest.update(f"{item.path} {item.sha256}\n".encode())
        payload = f"{member.name} {member.version} {digest.hexdigest()}\n".encode()
        suffix = _unit_hash(f"{member.name} {member.version}")
        stem = member.lib_name or member.name
        unit = out_dir / "deps" / f"lib{crate_file_stem(stem)}-{suffix}.rlib"
        unit.write_bytes(b"rlib " + payload)
        _fingerprint(out_dir, member.name, suffix)

        for crate_type in member.crate_types:
            if crate_type in ("cdylib", "dylib"):
                path = out_dir / shared_library_name(stem, self.platform)
                path.write_bytes(ELF_MAGIC + b" cdylib " + payload)
                path.chmod(0o755)
            elif crate_type == "staticlib":
                path = out_dir / static_library_name(stem, self.platform)
                path.write_bytes(b"!<arch>\n" + payload)
                path.chmod(0o644)
            else:
                path = out_dir / f"lib{crate_file_stem(stem)}.rlib"
                path.write_bytes(b"rlib " + payload)
                path.chmod(0o644)

        if f"{prefix}src/main.rs" in closure.paths:
            binary = out_dir / member.name
            binary.write_bytes(ELF_MAGIC + b" bin " + payload)
            binary.chmod(0o755)


def _unit_hash(seed: str) -> str:
    return hashlib.sha256(seed.encode()).hexdigest()[:16]


def _fingerprint(out_dir: Path, package: str, suffix: str) -> None:
    directory = out_dir / ".fingerprint" / f"{package}-{suffix}"
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "lib").write_text(suffix + "\n", encoding="utf-8")
