"""Virtual file stores for isolated tool stages.

Each toolchain stage runs against its own store: the pipeline creates one,
writes the stage inputs, invokes the tool, reads the outputs back and discards
the store. Two implementations are provided:

- MemoryFileStore: a dictionary of path -> content, used by tests and stub
  stage runners
- DirectoryFileStore: a real directory on disk, required by tools that run as
  subprocesses, and used as the local "user files" store over a project
"""

import posixpath
import shutil
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Set, Union

Content = Union[str, bytes]


class FileStoreError(Exception):
    """Raised when a virtual file store operation fails."""
    pass


def normalize_path(path: str) -> str:
    """Normalize a store path to a relative POSIX key.

    Args:
        path: Path as given by the caller (leading '/' is ignored)

    Returns:
        Normalized relative key ('' for the store root)

    Raises:
        FileStoreError: If the path escapes the store root
    """
    relative = path.replace('\\', '/').lstrip('/')
    key = posixpath.normpath(relative) if relative else ''
    if key == '.':
        return ''
    if key == '..' or key.startswith('../'):
        raise FileStoreError(f"Path escapes store root: {path}")
    return key


class VirtualFileStore(ABC):
    """Key -> content store used to stage tool inputs and outputs."""

    @abstractmethod
    def mkdir(self, path: str) -> None:
        """Create a single directory. The parent must already exist."""
        pass

    @abstractmethod
    def mkdir_tree(self, path: str) -> None:
        """Create a directory and every missing parent."""
        pass

    @abstractmethod
    def write_file(self, path: str, content: Content) -> None:
        """Write text or bytes to a file. The parent must already exist."""
        pass

    @abstractmethod
    def read_file(self, path: str, encoding: Optional[str] = None) -> Content:
        """Read a file as bytes, or as text when an encoding is given."""
        pass

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Return True if a file or directory exists at path."""
        pass

    def close(self) -> None:
        """Release the store. Contents are not readable afterwards."""
        pass

    def __enter__(self) -> 'VirtualFileStore':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class MemoryFileStore(VirtualFileStore):
    """In-memory store.

    Mirrors the semantics of an Emscripten MEMFS: writing into a directory
    that was never created is an error.
    """

    def __init__(self, files: Optional[Dict[str, Content]] = None):
        self._files: Dict[str, Content] = {}
        self._dirs: Set[str] = {''}
        for path, content in (files or {}).items():
            key = normalize_path(path)
            self.mkdir_tree(posixpath.dirname(key))
            self._files[key] = content

    @property
    def files(self) -> Dict[str, Content]:
        """Snapshot of all stored files keyed by normalized path."""
        return dict(self._files)

    def mkdir(self, path: str) -> None:
        key = normalize_path(path)
        if key in self._dirs:
            raise FileStoreError(f"Directory already exists: {path}")
        if posixpath.dirname(key) not in self._dirs:
            raise FileStoreError(f"Parent directory does not exist: {path}")
        self._dirs.add(key)

    def mkdir_tree(self, path: str) -> None:
        key = normalize_path(path)
        while key and key not in self._dirs:
            self._dirs.add(key)
            key = posixpath.dirname(key)

    def write_file(self, path: str, content: Content) -> None:
        key = normalize_path(path)
        if posixpath.dirname(key) not in self._dirs:
            raise FileStoreError(f"No such directory for file: {path}")
        self._files[key] = content

    def read_file(self, path: str, encoding: Optional[str] = None) -> Content:
        key = normalize_path(path)
        if key not in self._files:
            raise FileStoreError(f"File not found: {path}")
        content = self._files[key]
        if encoding is None:
            return content.encode('utf-8') if isinstance(content, str) else content
        return content.decode(encoding) if isinstance(content, bytes) else content

    def exists(self, path: str) -> bool:
        key = normalize_path(path)
        return key in self._files or key in self._dirs

    def close(self) -> None:
        self._files.clear()
        self._dirs = {''}


class DirectoryFileStore(VirtualFileStore):
    """Store backed by a directory on disk.

    Example usage:
        with DirectoryFileStore.temporary() as store:
            store.mkdir("src")
            store.write_file("src/main.asm", "nop\\n")
            runner.run(["src/main.asm"], store, print)
    """

    def __init__(self, root: Path, remove_on_close: bool = False):
        """
        Initialize directory store.

        Args:
            root: Root directory of the store (must exist)
            remove_on_close: Delete the whole root directory on close()
        """
        self.root = Path(root)
        self.remove_on_close = remove_on_close

        if not self.root.is_dir():
            raise FileStoreError(f"Store root is not a directory: {self.root}")

    @classmethod
    def temporary(cls, prefix: str = "zealbuild-") -> 'DirectoryFileStore':
        """Create a store over a fresh private temporary directory."""
        return cls(Path(tempfile.mkdtemp(prefix=prefix)), remove_on_close=True)

    def _resolve(self, path: str) -> Path:
        key = normalize_path(path)
        return self.root / key if key else self.root

    def mkdir(self, path: str) -> None:
        try:
            self._resolve(path).mkdir()
        except OSError as e:
            raise FileStoreError(f"Failed to create directory {path}: {e}") from e

    def mkdir_tree(self, path: str) -> None:
        try:
            self._resolve(path).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileStoreError(f"Failed to create directory {path}: {e}") from e

    def write_file(self, path: str, content: Content) -> None:
        target = self._resolve(path)
        if not target.parent.is_dir():
            raise FileStoreError(f"No such directory for file: {path}")
        try:
            if isinstance(content, str):
                target.write_text(content, encoding='utf-8')
            else:
                target.write_bytes(bytes(content))
        except OSError as e:
            raise FileStoreError(f"Failed to write {path}: {e}") from e

    def read_file(self, path: str, encoding: Optional[str] = None) -> Content:
        target = self._resolve(path)
        try:
            if encoding is None:
                return target.read_bytes()
            return target.read_text(encoding=encoding)
        except OSError as e:
            raise FileStoreError(f"Failed to read {path}: {e}") from e

    def exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    def close(self) -> None:
        if self.remove_on_close and self.root.exists():
            shutil.rmtree(self.root, ignore_errors=True)
