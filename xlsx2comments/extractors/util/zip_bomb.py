from __future__ import annotations

import io
import zipfile
from dataclasses import dataclass

from xlsx2comments.exceptions import ContainerError, ExtractionZipBombError


@dataclass(frozen=True)
class ZipBombLimits:
    """
    Upper bounds applied to a workbook container before any part is read.

    Office workbooks are small compared to these numbers; the limits only exist
    to stop a crafted archive from expanding into gigabytes in memory.
    """

    max_entries: int = 10_000
    max_total_uncompressed_bytes: int = 1 * 1024 * 1024 * 1024  # 1 GiB
    max_single_uncompressed_bytes: int = 512 * 1024 * 1024  # 512 MiB
    max_total_compression_ratio: float = 200.0
    max_entry_compression_ratio: float = 500.0


DEFAULT_ZIP_BOMB_LIMITS = ZipBombLimits()


def _suffix(source: str | None) -> str:
    return f" [{source}]" if source else ""


def check_zip_limits(
    zf: zipfile.ZipFile,
    *,
    limits: ZipBombLimits = DEFAULT_ZIP_BOMB_LIMITS,
    source: str | None = None,
) -> None:
    """
    Reject a container whose entry table points at a probable ZIP bomb.

    Only the central directory is inspected; no entry is decompressed.
    """
    infos = [info for info in zf.infolist() if not info.is_dir()]

    if len(infos) > limits.max_entries:
        raise ExtractionZipBombError(
            f"Workbook container has too many parts ({len(infos)} > {limits.max_entries})"
            + _suffix(source)
        )

    total_uncompressed = 0
    total_compressed = 0
    for info in infos:
        size = info.file_size or 0
        packed = info.compress_size or 0

        if size > limits.max_single_uncompressed_bytes:
            raise ExtractionZipBombError(
                f"Part {info.filename} is too large ({size} bytes)" + _suffix(source)
            )
        if size > 0:
            if packed <= 0:
                raise ExtractionZipBombError(
                    f"Part {info.filename} has no compressed size" + _suffix(source)
                )
            ratio = size / packed
            if ratio > limits.max_entry_compression_ratio:
                raise ExtractionZipBombError(
                    f"Part {info.filename} compression ratio too high ({ratio:.1f})"
                    + _suffix(source)
                )

        total_uncompressed += size
        total_compressed += packed
        if total_uncompressed > limits.max_total_uncompressed_bytes:
            raise ExtractionZipBombError(
                f"Workbook container expands past {limits.max_total_uncompressed_bytes} bytes"
                + _suffix(source)
            )

    if total_uncompressed and total_compressed:
        ratio = total_uncompressed / total_compressed
        if ratio > limits.max_total_compression_ratio:
            raise ExtractionZipBombError(
                f"Workbook container compression ratio too high ({ratio:.1f})"
                + _suffix(source)
            )


def open_zipfile(
    file_like: io.BytesIO,
    *,
    limits: ZipBombLimits = DEFAULT_ZIP_BOMB_LIMITS,
    source: str | None = None,
) -> zipfile.ZipFile:
    """
    Open an in-memory ZIP container and check it against `limits`.

    Caller owns the returned ZipFile and must close it.
    """
    file_like.seek(0)
    try:
        zf = zipfile.ZipFile(file_like, "r")
    except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError) as exc:
        raise ContainerError(
            "Input is not a readable workbook container" + _suffix(source),
            cause=exc,
        ) from exc
    try:
        check_zip_limits(zf, limits=limits, source=source)
    except Exception:
        zf.close()
        raise
    return zf
