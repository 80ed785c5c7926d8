import os
import re
from typing import NamedTuple, Optional


_DRIVE_RE = re.compile(r"^[a-zA-Z]:")


class ResolvedPath(NamedTuple):
	virtual_path: str
	fs_path: str


def to_api_path(relative_path: str, root_name: str) -> str:
	"""Build the public "/<root_name>/a/b" form of a root-relative path."""
	segments = [s for s in relative_path.replace("\\", "/").split("/") if s and s != "."]
	if not segments:
		return f"/{root_name}"
	return f"/{root_name}/" + "/".join(segments)


def virtual_path_for(fs_path: str, storage_root: str, root_name: str) -> str:
	"""Virtual path of a filesystem path already known to be inside the root."""
	return to_api_path(os.path.relpath(fs_path, storage_root), root_name)


def prepare_path(raw_path) -> Optional[str]:
	"""Normalize slashes and rebuild the path from its non-empty segments.

	Returns None for anything that is not a usable path string. A bare "/"
	comes back as the OS separator. A first segment carrying a drive letter
	("C:") is joined without a leading separator so it stays OS-rooted.
	"""
	if not isinstance(raw_path, str):
		return None
	trimmed = raw_path.strip()
	if not trimmed or "\x00" in trimmed:
		return None
	cleaned = re.sub(r"/+", "/", trimmed.replace("\\", "/"))
	if cleaned != "/" and cleaned.endswith("/"):
		cleaned = cleaned[:-1]
	if cleaned == "/":
		return os.sep
	segments = [s for s in cleaned.split("/") if s]
	if not segments:
		return None
	if cleaned.startswith("/") and not _DRIVE_RE.match(segments[0]):
		return os.path.join(os.sep, *segments)
	return os.path.join(*segments)


def is_within_root(abs_path: str, storage_root: str) -> bool:
	"""True if abs_path is the root itself or below it, by whole components."""
	path_norm = os.path.normcase(os.path.normpath(abs_path))
	root_norm = os.path.normcase(os.path.normpath(storage_root))
	try:
		common = os.path.commonpath([path_norm, root_norm])
	except ValueError:
		# Different drives, or one side relative
		return False
	return common == root_norm


def _locate(path: str) -> str:
	"""Collapse ".." and resolve symlinks in every component but the last.

	A link named by the caller is therefore addressed as the link itself.
	"""
	absolute = os.path.normpath(path)
	parent, name = os.path.split(absolute)
	if not name:
		return os.path.realpath(absolute)
	return os.path.join(os.path.realpath(parent), name)


def _is_contained(fs_path: str, root: str) -> bool:
	# Both the entry and whatever it points at must stay below the root
	return is_within_root(fs_path, root) and is_within_root(os.path.realpath(fs_path), root)


def resolve_path(raw_path, storage_root: str, root_name: str) -> Optional[ResolvedPath]:
	"""Resolve a caller-supplied path to (virtual path, filesystem path).

	Accepted forms, in order of precedence:
	  "/<root_name>"           the storage root itself
	  "/<root_name>/a/b"       a/b below the storage root
	  an absolute path inside the storage root, used as-is
	  any other absolute path  re-rooted under the storage root
	  a relative path          relative to the storage root

	Returns None when the input is malformed or the result would fall
	outside the storage root. Symlinked parents are resolved before the
	check; a symlink in the last position is kept, and rejected if it
	points outside the root.
	"""
	prepared = prepare_path(raw_path)
	if prepared is None:
		return None
	root = os.path.realpath(storage_root)
	normalized = prepared.replace("\\", "/")
	api_prefix = f"/{root_name}"

	if normalized == api_prefix:
		relative = ""
	elif normalized.startswith(api_prefix + "/"):
		relative = normalized[len(api_prefix) + 1:]
	elif os.path.isabs(prepared):
		candidate = _locate(prepared)
		if _is_contained(candidate, root):
			return ResolvedPath(virtual_path_for(candidate, root, root_name), candidate)
		relative = normalized[1:] if normalized.startswith("/") else normalized
	else:
		relative = normalized

	fs_path = _locate(os.path.join(root, relative))
	if not _is_contained(fs_path, root):
		return None
	return ResolvedPath(virtual_path_for(fs_path, root, root_name), fs_path)
