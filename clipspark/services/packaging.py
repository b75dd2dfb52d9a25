"""Zip packaging of rendered clips and captions."""
import asyncio
import logging
import zipfile
from pathlib import Path
from typing import Sequence, Tuple

logger = logging.getLogger(__name__)

ARCHIVE_NAME = "clipspark_output.zip"


def write_zip(files: Sequence[Tuple[Path, str]], archive_path: Path) -> Path:
    archive_path = Path(archive_path)
    with zipfile.ZipFile(archive_path, "w", zipfile.ZIP_DEFLATED, compresslevel=9) as archive:
        for path, name in files:
            archive.write(path, name)
    return archive_path


class ZipPackager:
    """Archive packager writing a deflated zip."""

    async def package(self, files: Sequence[Tuple[Path, str]], archive_path: Path) -> Path:
        """Write (path, name) pairs to archive_path; returns once the file is closed."""
        path = await asyncio.to_thread(write_zip, files, archive_path)
        logger.info(f"Packaged {len(files)} files into {path.name}")
        return path
