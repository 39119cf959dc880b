"""Zip assembly shared by both package layouts."""

from __future__ import annotations

import io
import logging
import shutil
import tempfile
import zipfile
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

COMPRESSION_LEVEL = 9
# Fixed entry timestamp so identical inputs give identical archives
ENTRY_DATE_TIME = (1980, 1, 1, 0, 0, 0)

CONTENT_TYPES_XML = """\
<?xml version="1.0" encoding="utf-8"?>
<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">
  <Default Extension="xml" ContentType="application/xml" />
  <Default Extension="json" ContentType="application/json" />
</Types>
"""


def _write_entry(archive: zipfile.ZipFile, name: str, data: bytes) -> None:
    info = zipfile.ZipInfo(name, date_time=ENTRY_DATE_TIME)
    info.external_attr = 0o644 << 16
    archive.writestr(info, data, compress_type=zipfile.ZIP_DEFLATED, compresslevel=COMPRESSION_LEVEL)


def zip_entries(entries: Mapping[str, bytes]) -> bytes:
    """Compress {archive path: content} into zip bytes, in insertion order."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, data in entries.items():
            _write_entry(archive, name, data)
    return buffer.getvalue()


@contextmanager
def staging_directory(output_dir: Path) -> Iterator[Path]:
    """A scratch directory inside output_dir, removed on every exit path."""
    output_dir.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=".flowpack-", dir=output_dir))
    try:
        yield staging
    finally:
        shutil.rmtree(staging, ignore_errors=True)
        logger.debug("Removed staging directory %s", staging)


def stage_entries(staging: Path, entries: Mapping[str, bytes]) -> None:
    for name, data in entries.items():
        path = staging.joinpath(*name.split("/"))
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.debug("  -> Wrote %s", name)


def export_entries(entries: Mapping[str, bytes], output_dir: Path, archive_name: str) -> Path:
    """Write entries as loose files, zip them, and keep only the zip.

    The zip is assembled inside the staging directory and moved into place
    once complete, so a failed build never leaves a partial archive behind.
    """
    output_dir = Path(output_dir)
    zip_path = output_dir / archive_name
    with staging_directory(output_dir) as staging:
        loose = staging / "package"
        stage_entries(loose, entries)

        partial = staging / archive_name
        with zipfile.ZipFile(partial, "w") as archive:
            for name in entries:
                _write_entry(archive, name, loose.joinpath(*name.split("/")).read_bytes())
        partial.replace(zip_path)

    logger.info("Created archive %s (%d bytes)", zip_path, zip_path.stat().st_size)
    return zip_path
