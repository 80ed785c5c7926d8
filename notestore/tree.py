"""Directory snapshots: the nested tree and the flat name listing."""

import locale
import os
import unicodedata
from typing import Iterable, List

from .errors import NotADirectory, NotFound
from .path_utils import to_api_path
from .schemas import TreeNode


def _is_hidden(name: str) -> bool:
    return name.startswith('.')


def _base_letters(name: str) -> str:
    # "Éclair" -> "eclair": case and accents only break ties
    decomposed = unicodedata.normalize('NFKD', name.casefold())
    return ''.join(c for c in decomposed if not unicodedata.combining(c))


def _collation_key(name: str):
    return (locale.strxfrm(_base_letters(name)), name.casefold(), name)


def sort_names(names: Iterable[str]) -> List[str]:
    return sorted(names, key=_collation_key)


def build_tree(directory: str, root_name: str, relative_dir: str = '') -> List[TreeNode]:
    """Recursively describe ``directory`` as an ordered list of TreeNodes.

    ``relative_dir`` is the directory's path below the storage root and is
    used to build each node's virtual path. Any OSError aborts the whole
    walk; a partial tree is never returned.
    """
    with os.scandir(directory) as it:
        entries = [entry for entry in it if not _is_hidden(entry.name)]
    entries.sort(key=lambda entry: _collation_key(entry.name))

    nodes: List[TreeNode] = []
    for entry in entries:
        relative_path = os.path.join(relative_dir, entry.name) if relative_dir else entry.name
        api_path = to_api_path(relative_path, root_name)
        if entry.is_dir(follow_symlinks=False):
            children = build_tree(entry.path, root_name, relative_path)
            nodes.append(TreeNode(path=api_path, name=entry.name, children=tuple(children)))
        else:
            nodes.append(TreeNode(path=api_path, name=entry.name))
    return nodes


def list_names(directory: str) -> List[str]:
    try:
        names = os.listdir(directory)
    except FileNotFoundError as e:
        raise NotFound('Directory not found', str(e)) from e
    except NotADirectoryError as e:
        raise NotADirectory('Path points to a file, not a directory', str(e)) from e
    return sort_names(name for name in names if not _is_hidden(name))
