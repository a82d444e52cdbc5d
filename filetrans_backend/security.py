from __future__ import annotations

import errno
import logging
import os
from pathlib import Path, PurePosixPath

from .errors import AccessDenied


log = logging.getLogger(__name__)

_SEPARATORS = "/\\"


def _is_within(candidate: Path, base: Path) -> bool:
    # normcase folds case only where the host filesystem is case-insensitive.
    cand = os.path.normcase(str(candidate))
    base_s = os.path.normcase(str(base))
    if cand == base_s:
        return True
    return cand.startswith(base_s.rstrip(os.sep) + os.sep)


def _canonical(path: Path) -> Path:
    """path.resolve(), with symlink loops reported as AccessDenied on every Python."""
    try:
        resolved = path.resolve()
    except RuntimeError:
        # Python < 3.13 raises RuntimeError("Symlink loop ...").
        raise AccessDenied("Access denied")
    except OSError as exc:
        raise AccessDenied("Access denied") from exc
    try:
        resolved.stat()
    except OSError as exc:
        if exc.errno == errno.ELOOP:
            raise AccessDenied("Access denied") from exc
    return resolved


def _normalize(relative_path: str | None) -> str:
    if relative_path is not None and not isinstance(relative_path, str):
        raise AccessDenied("Access denied")
    rel = (relative_path or "").replace("\\", "/").lstrip(_SEPARATORS)
    if "\x00" in rel:
        raise AccessDenied("Access denied")
    return rel


def resolve_path(root: Path, relative_path: str | None) -> Path:
    """Resolve an untrusted client path to a canonical path under root.

    Leading separators are stripped so "/docs" means "<root>/docs". The joined
    path is canonicalized (".." and symlinks resolved) *before* the containment
    check; a result outside root raises AccessDenied.
    An empty path resolves to root itself.
    """
    rel = _normalize(relative_path)
    root = root.resolve()
    resolved = _canonical(root / rel)
    if not _is_within(resolved, root):
        log.warning("Rejected path outside storage root: %r", relative_path)
        raise AccessDenied("Access denied")
    return resolved


def resolve_entry(root: Path, relative_path: str | None) -> Path:
    """Like resolve_path, but a symlink in the last segment is not followed.

    The parent folder is canonicalized and checked; the link itself is then
    returned so callers can act on the link rather than its target.
    """
    rel = _normalize(relative_path)
    parts = [p for p in rel.split("/") if p not in ("", ".")]
    if parts and parts[-1] != "..":
        parent = resolve_path(root, "/".join(parts[:-1]))
        candidate = parent / parts[-1]
        if candidate.is_symlink():
            return candidate
    return resolve_path(root, relative_path)


def safe_join(base_dir: Path, *parts: str) -> Path:
    """Join paths and ensure the result stays within base_dir.

    Used for names supplied relative to an already-resolved directory
    (new folder names, upload destinations).
    """
    base_dir = base_dir.resolve()
    candidate = base_dir
    for part in parts:
        candidate = candidate / part
    resolved = _canonical(candidate)
    if not _is_within(resolved, base_dir):
        raise AccessDenied("Access denied")
    return resolved


def sanitize_upload_name(name: str | None) -> str | None:
    """Normalize a declared upload name to a relative posix path.

    Returns None when the name is unusable: empty after normalization, or
    containing a ".." segment. This is only a pre-filter; callers must still
    check the joined destination with safe_join.
    """
    if not isinstance(name, str):
        return None
    normalized = name.replace("\\", "/").lstrip("/")
    if "\x00" in normalized:
        return None
    parts = [p for p in normalized.split("/") if p not in ("", ".")]
    if not parts or ".." in parts:
        return None
    return str(PurePosixPath(*parts))


def relative_display(root: Path, path: Path) -> str:
    """Path relative to root in posix form, for logs and archive prefixes."""
    try:
        rel = path.resolve().relative_to(root.resolve())
    except ValueError:
        return "?"
    s = rel.as_posix()
    return "" if s == "." else s


def is_portable_name(name: str) -> bool:
    """False for names holding undecodable filesystem bytes (surrogate escapes).

    Such names cannot be written into JSON or a ZIP entry as UTF-8.
    """
    try:
        name.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True
