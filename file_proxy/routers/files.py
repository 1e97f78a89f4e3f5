"""Routes serving files from the local files root."""

import logging
import os
import sys
from pathlib import Path

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import FileResponse

from file_proxy.config import settings
from file_proxy.utils.sanitization import sanitize_for_log

router = APIRouter(prefix="/files", tags=["files"])
logger = logging.getLogger(__name__)


def is_safe_path(base_path: str, target_path: str) -> bool:
    """
    Check if target_path is safely inside base_path using os.path.commonpath.

    Symlinks are resolved first, so a link pointing outside the base path is
    rejected as well.
    """
    base_real = os.path.realpath(base_path)
    target_real = os.path.realpath(target_path)

    if sys.platform == "win32":
        base_real = base_real.lower()
        target_real = target_real.lower()

    try:
        # commonpath raises ValueError if paths are on different drives
        return os.path.commonpath([base_real, target_real]) == base_real
    except ValueError:
        return False


@router.api_route("/{file_path:path}", methods=["GET", "HEAD"])
def get_file(file_path: str):
    """Serve a file; requests only reach here after passing the pre-signed URL filter."""
    root = Path(settings.local_files_root)
    target = root / file_path

    if not is_safe_path(str(root), str(target)):
        logger.warning(f"Blocked path outside files root: {sanitize_for_log(file_path)}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    if not target.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")

    return FileResponse(target, filename=target.name)
