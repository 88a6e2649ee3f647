"""
Scoped temporary files for uploaded images.

The temp file is removed on every exit path, including exceptions raised
while the image is being analyzed.
"""

import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator, Optional

from .config import UPLOAD_DIR, MAX_FILE_SIZE_BYTES, MAX_IMAGE_SIZE_MB
from .logger import log


class UploadTooLarge(Exception):
    pass


@contextmanager
def temporary_upload(source: BinaryIO, suffix: str = "", upload_dir: Optional[Path] = None) -> Iterator[Path]:
    """
    Copy an upload stream to a temp file and yield its path.

    Raises:
        UploadTooLarge: file exceeds MAX_IMAGE_SIZE_MB
    """
    upload_dir = Path(upload_dir or UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)

    fd, name = tempfile.mkstemp(prefix='upload_', suffix=suffix, dir=upload_dir)
    path = Path(name)

    try:
        with os.fdopen(fd, 'wb') as out:
            shutil.copyfileobj(source, out)

        size = path.stat().st_size
        if size > MAX_FILE_SIZE_BYTES:
            raise UploadTooLarge(f'Image exceeds {MAX_IMAGE_SIZE_MB}MB limit ({size} bytes)')

        yield path

    finally:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            log.error('upload', 'File cleanup error', path=str(path), error=str(e))
