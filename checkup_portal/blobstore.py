"""
Local-disk blob store for result images.

The rest of the application only sees the references returned by put();
image bytes are never inspected.
"""

import os
import shutil
import time
from typing import BinaryIO
from uuid import uuid4

from werkzeug.utils import secure_filename

from checkup_portal.config import UPLOAD_DIR, UPLOAD_URL_PREFIX


class LocalBlobStore:
    """Stores named byte streams under *root* and hands back URL-style references."""

    def __init__(self, root: str = UPLOAD_DIR, url_prefix: str = UPLOAD_URL_PREFIX):
        self.root = os.path.abspath(root)
        self.url_prefix = url_prefix.rstrip("/")
        os.makedirs(self.root, exist_ok=True)

    def put(self, name: str, stream: BinaryIO) -> str:
        """Write *stream* to disk and return its stable reference, e.g. /uploads/<file>."""
        safe = secure_filename(name or "") or "upload"
        stored = f"{int(time.time() * 1000)}-{uuid4().hex[:8]}-{safe}"
        path = os.path.join(self.root, stored)
        try:
            with open(path, "wb") as out:
                shutil.copyfileobj(stream, out)
        except BaseException:
            # no reference is handed out for a partial write
            if os.path.exists(path):
                os.remove(path)
            raise
        return f"{self.url_prefix}/{stored}"

    def delete(self, ref: str) -> None:
        """Remove the blob behind *ref*; missing blobs are ignored."""
        path = self.path_for(ref)
        if path and os.path.exists(path):
            os.remove(path)

    def stored_name(self, ref: str) -> str:
        return os.path.basename(ref)

    def path_for(self, ref: str) -> str:
        name = secure_filename(self.stored_name(ref))
        if not name:
            return ""
        return os.path.join(self.root, name)

    def exists(self, ref: str) -> bool:
        path = self.path_for(ref)
        return bool(path) and os.path.exists(path)
