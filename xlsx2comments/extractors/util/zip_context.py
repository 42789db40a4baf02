import io
import logging
import zipfile
from typing import Callable

from xlsx2comments.extractors.util.zip_bomb import (
    DEFAULT_ZIP_BOMB_LIMITS,
    ZipBombLimits,
    open_zipfile,
)

logger = logging.getLogger(__name__)


class ZipContext:
    """Read-only view over an in-memory OOXML container.

    Lookups by part name never raise for missing parts; they return ``None``.
    """

    def __init__(
        self,
        file_like: io.BytesIO,
        *,
        limits: ZipBombLimits = DEFAULT_ZIP_BOMB_LIMITS,
    ):
        self.file_like = file_like
        self.file_like.seek(0)
        self._zip = open_zipfile(self.file_like, limits=limits, source=type(self).__name__)
        # archive order, directories dropped
        self._names = [name for name in self._zip.namelist() if not name.endswith("/")]
        self._name_set = set(self._names)

    @classmethod
    def from_bytes(
        cls, data: bytes, *, limits: ZipBombLimits = DEFAULT_ZIP_BOMB_LIMITS
    ) -> "ZipContext":
        return cls(io.BytesIO(data), limits=limits)

    @property
    def namelist(self) -> list[str]:
        return list(self._names)

    def exists(self, path: str) -> bool:
        return path in self._name_set

    def entry(self, path: str) -> bytes | None:
        """Raw bytes of a part, or ``None`` if the part is absent or unreadable."""
        if path not in self._name_set:
            return None
        try:
            return self._zip.read(path)
        except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, EOFError) as exc:
            logger.warning(f"Could not decompress part [{path}]: {exc}")
            return None

    def entries_matching(self, predicate: Callable[[str], bool]) -> list[str]:
        """Part names accepted by `predicate`, in archive enumeration order."""
        return [name for name in self._names if predicate(name)]

    def close(self) -> None:
        self._zip.close()

    def __enter__(self) -> "ZipContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
