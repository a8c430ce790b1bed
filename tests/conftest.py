import pytest

from app.exceptions import BlobStoreError
from app.schemas.video_record import Sensitivity, User, UserRole
from app.services.blob_store import BlobStore
from app.services.progress import SimulatedProgress
from app.services.users import MOCK_USERS
from app.services.video_catalog import VideoCatalog
from app.services.video_json_manager import VideoJSONManager
from app.services.video_pipeline import PipelineEngine


class StubClassifier:
    def __init__(self, verdict=Sensitivity.SAFE, side_effect=None):
        self.verdict = verdict
        self.side_effect = side_effect
        self.calls = []

    def classify(self, title, description):
        self.calls.append((title, description))
        if self.side_effect is not None:
            self.side_effect(title, description)
        return self.verdict


class FailingBlobStore(BlobStore):
    def __init__(self, root, fail_put=True, fail_delete=False):
        super().__init__(root)
        self.fail_put = fail_put
        self.fail_delete = fail_delete

    def put(self, key, data):
        if self.fail_put:
            raise BlobStoreError(f"disk full while saving {key}")
        super().put(key, data)

    def delete(self, key):
        if self.fail_delete:
            raise BlobStoreError(f"cannot delete {key}")
        super().delete(key)


class DeferredTask:
    def __init__(self, target, args):
        self.target = target
        self.args = args
        self.done = False

    def run(self):
        if not self.done:
            self.done = True
            self.target(*self.args)

    def join(self, timeout=None):
        self.run()


class DeferredSpawner:
    """Queues background jobs until the test runs them."""

    def __init__(self):
        self.pending = []

    def __call__(self, target, *args):
        task = DeferredTask(target, args)
        self.pending.append(task)
        return task

    def run_all(self):
        while self.pending:
            self.pending.pop(0).run()


@pytest.fixture
def admin():
    return MOCK_USERS[0]


@pytest.fixture
def editor():
    return MOCK_USERS[1]


@pytest.fixture
def viewer():
    return MOCK_USERS[2]


@pytest.fixture
def outsider():
    return User(id='u9', name='Other Org Editor', email='editor@other.example', org_id='org2', role=UserRole.EDITOR)


@pytest.fixture
def blob_store(tmp_path):
    return BlobStore(tmp_path / 'uploads')


@pytest.fixture
def metadata_store(tmp_path):
    return VideoJSONManager(tmp_path / 'video_json.json')


@pytest.fixture
def classifier():
    return StubClassifier()


@pytest.fixture
def spawner():
    return DeferredSpawner()


@pytest.fixture
def make_catalog(metadata_store, blob_store, classifier, spawner):
    def factory(classifier=classifier, blob_store=blob_store, orphan_policy='complete'):
        pipeline = PipelineEngine(blob_store, classifier, SimulatedProgress(delay_scale=0), spawn=spawner)
        return VideoCatalog(metadata_store, blob_store, pipeline, orphan_policy=orphan_policy)
    return factory


@pytest.fixture
def catalog(make_catalog):
    return make_catalog()
