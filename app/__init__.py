import logging
from flask_cors import CORS
from flask import Flask
from flask_socketio import SocketIO

from app.routes.video_routes import video_routes
from app.services.blob_store import BlobStore
from app.services.progress import SimulatedProgress
from app.services.sensitivity_classifier import SensitivityClassifier
from app.services.users import UserDirectory
from app.services.video_catalog import VideoCatalog
from app.services.video_json_manager import VideoJSONManager
from app.services.video_pipeline import PipelineEngine

logger = logging.getLogger(__name__)


def create_app(config_object='app.config.Config') -> tuple[SocketIO, Flask]:
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.register_blueprint(video_routes)

    CORS(app)

    socketio = SocketIO(app, cors_allowed_origins='*', async_mode=app.config['SOCKETIO_ASYNC_MODE'])
    app.extensions['socketio'] = socketio

    classifier = SensitivityClassifier(
        api_key=app.config['OPENAI_API_KEY'],
        model=app.config['OPENAI_MODEL'],
        fail_open=app.config['CLASSIFIER_FAIL_OPEN'],
        timeout=app.config['OPENAI_TIMEOUT'],
    )
    progress = SimulatedProgress(
        sleep=socketio.sleep,
        transfer=app.config['PIPELINE_TRANSFER_CHECKPOINTS'],
        analysis=app.config['PIPELINE_ANALYSIS_CHECKPOINTS'],
        finalize=app.config['PIPELINE_FINALIZE_CHECKPOINTS'],
        transfer_delay=app.config['PIPELINE_TRANSFER_DELAY'],
        analysis_delay=app.config['PIPELINE_ANALYSIS_DELAY'],
        finalize_delay=app.config['PIPELINE_FINALIZE_DELAY'],
        delay_scale=app.config['PIPELINE_DELAY_SCALE'],
    )
    blob_store = BlobStore(app.config['UPLOAD_FOLDER'])
    pipeline = PipelineEngine(blob_store, classifier, progress, spawn=socketio.start_background_task)
    catalog = VideoCatalog(
        VideoJSONManager(app.config['VIDEO_JSON_PATH'], app.config['VIDEOS_METADATA_KEY']),
        blob_store,
        pipeline,
        thumbnail_url_template=app.config['THUMBNAIL_URL_TEMPLATE'],
        orphan_policy=app.config['ORPHAN_POLICY'],
        playback_ttl=app.config['PLAYBACK_TTL'],
    )
    app.extensions['catalog'] = catalog
    app.extensions['users'] = UserDirectory()
    logger.info("Loaded %d video(s) from %s", len(catalog), app.config['VIDEO_JSON_PATH'])

    # Import socket events to register them
    from app.routes import socket_events
    socket_events.init_socketio(socketio, catalog, app.extensions['users'])

    return socketio, app
