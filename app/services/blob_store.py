import os
import logging
from pathlib import Path
from typing import Optional

from werkzeug.utils import secure_filename

from app.exceptions import BlobStoreError

logger = logging.getLogger(__name__)


class BlobStore:
    """Stores raw upload payloads on disk, one file per key."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        name = secure_filename(key)
        if not name:
            raise BlobStoreError(f"Invalid blob key: {key!r}")
        return self.root / f"{name}.blob"

    def put(self, key: str, data: bytes) -> None:
        path = self.path_for(key)
        tmp_path = path.with_suffix('.part')
        try:
            os.makedirs(self.root, exist_ok=True)
            with open(tmp_path, 'wb') as f:
                f.write(data)
            os.replace(tmp_path, path)
        except OSError as e:
            raise BlobStoreError(f"Failed to save blob {key}: {e}") from e

    def get(self, key: str) -> Optional[bytes]:
        path = self.path_for(key)
        try:
            with open(path, 'rb') as f:
                return f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.error("Failed to read blob %s: %s", key, e)
            return None

    def delete(self, key: str) -> None:
        try:
            os.remove(self.path_for(key))
        except FileNotFoundError:
            pass
        except OSError as e:
            raise BlobStoreError(f"Failed to delete blob {key}: {e}") from e

    def __contains__(self, key: str) -> bool:
        return self.path_for(key).exists()

    def __repr__(self) -> str:
        return f"BlobStore({self.root})"
