"""Lock descriptor APIs."""

from .io import parse_lock, read_lock
from .model import LockDescriptor, LockedPackage
from .verify import verify_lock

__all__ = ["LockDescriptor", "LockedPackage", "parse_lock", "read_lock", "verify_lock"]
