"""The document store: every filesystem mutation goes through here.

Each operation resolves its virtual path(s) first, checks preconditions,
performs the filesystem work and, on success only, publishes exactly one
ChangeEvent. Failures are raised as ``notestore.errors`` types.
"""

import contextlib
import logging
import os
import shutil
import tempfile
from datetime import datetime, timezone
from typing import Iterator, List, Optional, Union

from . import tree
from .errors import (
    Conflict,
    Forbidden,
    InternalFailure,
    InvalidPath,
    NotADirectory,
    NotAFile,
    NotEmpty,
    NotFound,
    StoreError,
)
from .notifier import ObserverRegistry
from .path_utils import ResolvedPath, is_within_root, resolve_path, to_api_path
from .schemas import ChangeEvent, ChangeType, FileContent, TreeNode, WriteResult

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def _fs_errors(action: str) -> Iterator[None]:
    """Translate OSErrors raised inside the block into store errors."""
    try:
        yield
    except StoreError:
        raise
    except FileNotFoundError as e:
        raise NotFound(f"Failed to {action}: path not found", str(e)) from e
    except NotADirectoryError as e:
        raise NotADirectory(f"Failed to {action}: a path component is a file", str(e)) from e
    except IsADirectoryError as e:
        raise NotAFile(f"Failed to {action}: path points to a directory", str(e)) from e
    except FileExistsError as e:
        raise Conflict(f"Failed to {action}: path already exists", Conflict.FILE_EXISTS, str(e)) from e
    except OSError as e:
        logger.exception("Unexpected filesystem error while trying to %s", action)
        raise InternalFailure(f"Failed to {action}", str(e)) from e


def _atomic_write(fs_path: str, content: str) -> None:
    """Replace ``fs_path`` with ``content`` so readers never see a partial file."""
    directory, name = os.path.split(fs_path)
    # Hidden temp name keeps it out of listings while it exists
    fd, tmp_path = tempfile.mkstemp(prefix=f".{name}.", suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        if os.path.exists(fs_path):
            shutil.copymode(fs_path, tmp_path)
        else:
            os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, fs_path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise


def _make_dirs(path: str, exist_ok: bool) -> None:
    """os.makedirs, reporting a file in the way as a Conflict."""
    try:
        os.makedirs(path, exist_ok=exist_ok)
    except (FileExistsError, NotADirectoryError) as e:
        if os.path.isdir(path):
            raise Conflict("Folder already exists", Conflict.DIRECTORY_EXISTS, str(e)) from e
        raise Conflict("A file already exists at this path or one of its parents", Conflict.FILE_EXISTS, str(e)) from e


def _timestamp(epoch: float) -> datetime:
    return datetime.fromtimestamp(epoch, tz=timezone.utc)


class DocumentStore:
    """CRUD over a single storage root exposed as ``/<root_name>/...``."""

    def __init__(self, storage_root: str, root_name: str, registry: Optional[ObserverRegistry] = None) -> None:
        self.storage_root = os.path.realpath(storage_root)
        self.root_name = root_name
        self.registry = registry

    @classmethod
    def open(cls, storage_root: str, root_name: str, registry: Optional[ObserverRegistry] = None) -> "DocumentStore":
        """Create the storage root if needed and return a store over it."""
        os.makedirs(storage_root, exist_ok=True)
        store = cls(storage_root, root_name, registry)
        logger.info("Document store ready at %s (collection %s)", store.storage_root, root_name)
        return store

    # --- helpers ---

    def _resolve(self, raw_path) -> ResolvedPath:
        resolved = resolve_path(raw_path, self.storage_root, self.root_name)
        if resolved is None:
            raise InvalidPath("Invalid path", f"Cannot resolve {raw_path!r} inside the storage root")
        return resolved

    def _resolve_or_root(self, raw_path) -> ResolvedPath:
        if not raw_path:
            return ResolvedPath(to_api_path("", self.root_name), self.storage_root)
        return self._resolve(raw_path)

    def _is_root(self, fs_path: str) -> bool:
        return os.path.normcase(fs_path) == os.path.normcase(self.storage_root)

    def _relative(self, fs_path: str) -> str:
        relative = os.path.relpath(fs_path, self.storage_root)
        return "" if relative == os.curdir else relative

    def _emit(self, change_type: ChangeType, path: str, **extra) -> ChangeEvent:
        event = ChangeEvent(collection=self.root_name, change_type=change_type, path=path, **extra)
        if self.registry is not None:
            self.registry.publish(event)
        return event

    # --- reads ---

    def read(self, path: Optional[str] = None) -> Union[List[TreeNode], FileContent]:
        """Tree snapshot for a directory, content and metadata for a file."""
        resolved = self._resolve_or_root(path)
        with _fs_errors("read path"):
            if not os.path.exists(resolved.fs_path):
                raise NotFound("Path not found", "The requested file or directory does not exist")
            if os.path.isdir(resolved.fs_path):
                return tree.build_tree(resolved.fs_path, self.root_name, self._relative(resolved.fs_path))
            return self._file_content(resolved)

    def read_content(self, path: str) -> FileContent:
        resolved = self._resolve(path)
        with _fs_errors("read file"):
            if not os.path.exists(resolved.fs_path):
                raise NotFound("File not found", "The requested file does not exist")
            if os.path.isdir(resolved.fs_path):
                raise NotAFile("Path points to a directory, not a file")
            return self._file_content(resolved)

    def _file_content(self, resolved: ResolvedPath) -> FileContent:
        with open(resolved.fs_path, "r", encoding="utf-8", errors="replace", newline="") as f:
            content = f.read()
        st = os.stat(resolved.fs_path)
        return FileContent(
            path=resolved.virtual_path,
            name=os.path.basename(resolved.fs_path),
            content=content,
            size=st.st_size,
            last_modified=_timestamp(st.st_mtime),
            created=_timestamp(getattr(st, "st_birthtime", st.st_ctime)),
        )

    def list_names(self, path: Optional[str] = None) -> List[str]:
        resolved = self._resolve_or_root(path)
        with _fs_errors("list directory"):
            return tree.list_names(resolved.fs_path)

    # --- mutations ---

    def write(self, path: str, content: str) -> WriteResult:
        """Create or replace a file, creating missing parent directories."""
        return self._write(path, content, must_exist=False)

    def update(self, path: str, content: str) -> WriteResult:
        """Replace an existing file; NotFound instead of creating it."""
        return self._write(path, content, must_exist=True)

    def _write(self, path: str, content: str, must_exist: bool) -> WriteResult:
        resolved = self._resolve(path)
        fs_path = resolved.fs_path
        with _fs_errors("write file"):
            existed = os.path.exists(fs_path)
            if must_exist and not existed:
                raise NotFound("File not found", "Only existing files can be updated")
            if os.path.isdir(fs_path):
                raise NotAFile("Path points to a directory, not a file")
            _make_dirs(os.path.dirname(fs_path), exist_ok=True)
            _atomic_write(fs_path, content)
        logger.info("Markdown file %s: %s", "updated" if existed else "created", fs_path)
        self._emit(ChangeType.UPDATED if existed else ChangeType.CREATED, resolved.virtual_path, is_directory=False)
        return WriteResult(path=resolved.virtual_path, full_path=fs_path, created=not existed)

    def create_folder(self, path: str) -> ChangeEvent:
        resolved = self._resolve(path)
        fs_path = resolved.fs_path
        if os.path.isdir(fs_path):
            raise Conflict("Folder already exists", Conflict.DIRECTORY_EXISTS)
        if os.path.lexists(fs_path):
            raise Conflict("A file already exists at this path", Conflict.FILE_EXISTS)
        with _fs_errors("create folder"):
            # No exist_ok: a concurrent creator surfaces as a Conflict
            _make_dirs(fs_path, exist_ok=False)
        logger.info("Folder created: %s", fs_path)
        return self._emit(ChangeType.CREATED, resolved.virtual_path, is_directory=True)

    def delete(self, path: str, recursive: bool = False) -> ChangeEvent:
        resolved = self._resolve(path)
        fs_path = resolved.fs_path
        if not os.path.lexists(fs_path):
            raise NotFound("Path not found", "The requested file or directory does not exist")
        if self._is_root(fs_path):
            raise Forbidden("The storage root cannot be deleted")
        is_dir = os.path.isdir(fs_path) and not os.path.islink(fs_path)
        with _fs_errors("delete path"):
            if is_dir and recursive:
                shutil.rmtree(fs_path)
            elif is_dir:
                if os.listdir(fs_path):
                    raise NotEmpty("Directory is not empty", "Pass recursive=true to delete it with its contents")
                os.rmdir(fs_path)
            else:
                os.remove(fs_path)
        logger.info("%s deleted: %s", "Folder" if is_dir else "File", fs_path)
        return self._emit(ChangeType.DELETED, resolved.virtual_path, is_directory=is_dir)

    def move(self, source: str, target: str) -> ChangeEvent:
        """Rename a file or a whole directory subtree in one step.

        Never overwrites: an existing target is a name conflict.
        """
        src = self._resolve(source)
        dst = self._resolve(target)
        if not os.path.lexists(src.fs_path):
            raise NotFound("Source not found", "The file or directory to move does not exist")
        if self._is_root(src.fs_path):
            raise Forbidden("The storage root cannot be moved")
        is_dir = os.path.isdir(src.fs_path) and not os.path.islink(src.fs_path)
        if is_dir and is_within_root(dst.fs_path, src.fs_path):
            raise InvalidPath("Cannot move a directory into itself")
        if os.path.lexists(dst.fs_path):
            raise Conflict("Name conflict", Conflict.NAME_CONFLICT, f"{dst.virtual_path} already exists")
        with _fs_errors("move path"):
            _make_dirs(os.path.dirname(dst.fs_path), exist_ok=True)
            os.rename(src.fs_path, dst.fs_path)
        logger.info("Moved %s -> %s", src.fs_path, dst.fs_path)
        return self._emit(ChangeType.UPDATED, dst.virtual_path, old_path=src.virtual_path, is_directory=is_dir)

    def rename(self, path: str, new_name: str) -> ChangeEvent:
        """Move within the same parent directory."""
        if not new_name or new_name in (".", "..") or "/" in new_name or "\\" in new_name:
            raise InvalidPath("Invalid name", "A name must be a single path segment")
        src = self._resolve(path)
        if self._is_root(src.fs_path):
            raise Forbidden("The storage root cannot be renamed")
        parent = self._relative(os.path.dirname(src.fs_path))
        return self.move(src.virtual_path, to_api_path(os.path.join(parent, new_name), self.root_name))
