import os
from pathlib import Path


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    UPLOAD_FOLDER = Path(os.getenv('UPLOAD_FOLDER', 'uploads'))
    MAX_CONTENT_LENGTH = 512 * 1024 * 1024
    ALLOWED_EXTENSIONS = ('.mp4', '.mov', '.avi', '.webm', '.mkv')

    VIDEO_JSON_PATH = Path(os.getenv('VIDEO_JSON_PATH', 'video_json.json'))
    VIDEOS_METADATA_KEY = 'vg_videos_metadata'
    THUMBNAIL_URL_TEMPLATE = 'https://picsum.photos/seed/{id}/400/225'

    # 'complete' or 'fail' for records whose pipeline was interrupted by a restart
    ORPHAN_POLICY = os.getenv('ORPHAN_POLICY', 'complete')
    PLAYBACK_TTL = float(os.getenv('PLAYBACK_TTL', '3600'))

    OPENAI_API_KEY = os.getenv('OPENAI_API_KEY')
    OPENAI_MODEL = os.getenv('OPENAI_MODEL', 'gpt-4o-mini')
    OPENAI_TIMEOUT = float(os.getenv('OPENAI_TIMEOUT', '30'))
    CLASSIFIER_FAIL_OPEN = _env_flag('CLASSIFIER_FAIL_OPEN', True)

    PIPELINE_TRANSFER_CHECKPOINTS = (0, 10, 20, 30)
    PIPELINE_ANALYSIS_CHECKPOINTS = (40, 55, 70)
    PIPELINE_FINALIZE_CHECKPOINTS = (75, 87, 100)
    PIPELINE_TRANSFER_DELAY = 0.15
    PIPELINE_ANALYSIS_DELAY = 0.3
    PIPELINE_FINALIZE_DELAY = 0.15
    PIPELINE_DELAY_SCALE = float(os.getenv('PIPELINE_DELAY_SCALE', '1.0'))

    SOCKETIO_ASYNC_MODE = os.getenv('SOCKETIO_ASYNC_MODE', 'gevent')

    SECRET_KEY = os.getenv('SECRET_KEY', 'secret')


class TestConfig(Config):
    TESTING = True
    OPENAI_API_KEY = None
    PIPELINE_DELAY_SCALE = 0.0
    SOCKETIO_ASYNC_MODE = 'threading'
