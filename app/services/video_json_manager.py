import os
import json
import jsonpatch
from pathlib import Path

from app.exceptions import MetadataStoreError
from app.schemas.video_record import VideoRecord


class VideoJSONManager:
    """Whole-table JSON persistence for video records.

    The document is a single object holding the record list under
    ``videos_key``. Every save replaces the full document.
    """

    def __init__(self, json_path: str, videos_key: str = 'vg_videos_metadata'):
        self.json_path = Path(json_path)
        self.videos_key = videos_key

    def load_all(self) -> list[VideoRecord]:
        document = self.load_json()
        if document is None:
            return []
        try:
            return [VideoRecord.from_dict(entry) for entry in document.get(self.videos_key, [])]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise MetadataStoreError(f"Malformed video record in {self.json_path}: {e}") from e

    def save_all(self, records: list[VideoRecord]) -> None:
        self.save_json({self.videos_key: [record.to_dict() for record in records]})

    def create_patch(self, old_json, new_json) -> jsonpatch.JsonPatch:
        return jsonpatch.JsonPatch.from_diff(old_json, new_json)

    def load_json(self, json_path: str = None):
        if json_path is None:
            json_path = self.json_path
        try:
            with open(json_path, 'r') as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            raise MetadataStoreError(f"Could not read {json_path}: {e}") from e

    def save_json(self, document: dict, json_path: str = None) -> None:
        if json_path is None:
            json_path = self.json_path
        json_path = Path(json_path)
        tmp_path = json_path.with_name(json_path.name + '.tmp')
        try:
            os.makedirs(json_path.parent, exist_ok=True)
            with open(tmp_path, 'w') as f:
                json.dump(document, f)
            os.replace(tmp_path, json_path)
        except OSError as e:
            raise MetadataStoreError(f"Could not write {json_path}: {e}") from e

    def __repr__(self) -> str:
        return f"VideoJSONManager({self.json_path}, {self.videos_key})"
