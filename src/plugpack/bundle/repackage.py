"""Copy the built shared library into the host plugin bundle layout."""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

from plugpack.bundle.locate import bundle_path
from plugpack.digest import sha256_file
from plugpack.errors import MissingArtifactError
from plugpack.models import CLAP, PackagedBundle, PluginFormat
from plugpack.observability import StructuredLogger


def repackage(
    build_output_path: str | Path,
    package: str,
    output_root: str | Path,
    *,
    plugin_format: PluginFormat = CLAP,
    logger: StructuredLogger | None = None,
) -> PackagedBundle:
    """Place the library at ``<output_root>/lib/<kind>/<package>.<ext>``.

    The bytes are copied unmodified and permission bits are preserved. The
    new file is renamed over any previous bundle, so readers never observe
    a partial copy. Nothing is written when the library is missing.
    """
    source = Path(build_output_path)
    if not source.is_file():
        raise MissingArtifactError(
            f"Could not find {source}",
            hint=(
                f'Check that `{package}` builds a cdylib (crate-type = ["cdylib"]) '
                f"and that its crate name matches `{package}`."
            ),
            context={
                "operation": "repackage",
                "package": package,
                "expected_path": str(source),
            },
        )

    destination = bundle_path(package, output_root, plugin_format)
    destination.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{destination.name}.", dir=str(destination.parent))
    os.close(fd)
    tmp_path = Path(tmp_name)
    try:
        shutil.copy2(source, tmp_path)
        os.replace(tmp_path, destination)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()

    bundle = PackagedBundle(
        package=package,
        plugin_format=plugin_format,
        path=destination,
        sha256=sha256_file(destination),
        size=destination.stat().st_size,
    )
    if logger is not None:
        logger.log(
            operation="repackage",
            stage="repackage",
            package=package,
            message=f"'{source}' -> '{destination}'",
            extra={"sha256": bundle.sha256, "size": bundle.size},
        )
    return bundle
