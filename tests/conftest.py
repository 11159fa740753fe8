# =============================================================================
# tests/conftest.py
# Pytest Configuration and Fixtures
# =============================================================================

import copy
import json
import threading
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest
import pandas as pd
from postgrest.exceptions import APIError

from skill_core.config import Settings
from skill_core.data.models import (
    Assessment,
    ChatMessage,
    ChecklistCategory,
    ChecklistItem,
    ChecklistTemplate,
    Dataset,
    Department,
    FileReference,
    Hospital,
    MonthlyTraining,
    NewsBanner,
    Patient,
    SkillCategory,
    SkillItem,
    StaffMember,
    TrainingMaterial,
)
from skill_core.offline import LocalDatabase, create_sync_engine


# =============================================================================
# FAKE SUPABASE CLIENT
# =============================================================================

class FakeResponse:
    def __init__(self, data: Any = None):
        self.data = data


class FakeQuery:
    """Chainable subset of the PostgREST query builder."""

    def __init__(self, client: "FakeSupabaseClient", table: str):
        self.client = client
        self.table = table
        self._filters: Dict[str, Any] = {}
        self._single = False
        self._payload = None

    def select(self, *columns):
        return self

    def eq(self, column, value):
        self._filters[column] = value
        return self

    def single(self):
        self._single = True
        return self

    def upsert(self, payload, on_conflict: Optional[str] = None):
        self._payload = payload
        return self

    def execute(self):
        if self._payload is not None:
            return self.client._write(self.table, self._payload)
        return self.client._read(self.table, self._filters, self._single)


class FakeBucket:
    def __init__(self, storage: "FakeStorage", name: str):
        self.storage = storage
        self.name = name

    def upload(self, path, file, file_options=None):
        if self.storage.upload_error is not None:
            raise self.storage.upload_error
        files = self.storage.files
        if path in files:
            raise Exception("The resource already exists")
        files[path] = bytes(file)
        self.storage.upload_options.append(file_options)
        return FakeResponse({"Key": f"{self.name}/{path}"})

    def remove(self, paths):
        with self.storage.lock:
            self.storage.remove_calls.append(list(paths))
            if self.storage.remove_error is not None:
                raise self.storage.remove_error
            for path in paths:
                self.storage.files.pop(path, None)
        return [{"name": p} for p in paths]

    def get_public_url(self, path):
        return f"https://fake.supabase.co/storage/v1/object/public/{self.name}/{path}"

    def download(self, path):
        if path not in self.storage.files:
            raise Exception("Object not found")
        return self.storage.files[path]


class FakeStorage:
    def __init__(self):
        self.files: Dict[str, bytes] = {}
        self.upload_error: Optional[Exception] = None
        self.remove_error: Optional[Exception] = None
        self.upload_options: List[Any] = []
        self.remove_calls: List[List[str]] = []
        self.lock = threading.Lock()

    def from_(self, bucket: str) -> FakeBucket:
        return FakeBucket(self, bucket)


class FakeChannel:
    def __init__(self, name: str):
        self.name = name
        self.callbacks = []
        self.subscribed = False

    def on_postgres_changes(self, event, schema=None, table=None, callback=None, **kwargs):
        self.callbacks.append(callback)
        return self

    def subscribe(self, *args, **kwargs):
        self.subscribed = True
        return self

    def emit(self, payload=None):
        for callback in self.callbacks:
            callback(payload or {"eventType": "UPDATE"})


class FakeSupabaseClient:
    """
    In-memory stand-in for ``supabase.Client``.

    Knobs:
        read_error: raised by every select
        write_error: raised by every upsert
        ignore_writes: upserts report success but change nothing
            (how a row level security policy without UPDATE behaves)
    """

    def __init__(self):
        self.rows: Dict[str, Dict[Any, Dict[str, Any]]] = {}
        self.storage = FakeStorage()
        self.read_error: Optional[Exception] = None
        self.write_error: Optional[Exception] = None
        self.ignore_writes = False
        self.writes = 0
        self.reads = 0
        self.channels: List[FakeChannel] = []
        self.removed_channels: List[FakeChannel] = []

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def channel(self, name: str) -> FakeChannel:
        channel = FakeChannel(name)
        self.channels.append(channel)
        return channel

    def remove_channel(self, channel: FakeChannel):
        self.removed_channels.append(channel)
        channel.subscribed = False

    # -- backing store ------------------------------------------------------

    def seed(self, document: List[Dict[str, Any]], table: str = "hospitals_json", row_id: int = 1):
        self.rows.setdefault(table, {})[row_id] = {"id": row_id, "data": copy.deepcopy(document)}

    def document(self, table: str = "hospitals_json", row_id: int = 1):
        row = self.rows.get(table, {}).get(row_id)
        return None if row is None else row["data"]

    def _read(self, table, filters, single):
        self.reads += 1
        if self.read_error is not None:
            raise self.read_error
        rows = [
            {"data": copy.deepcopy(r["data"])}
            for r in self.rows.get(table, {}).values()
            if all(r.get(k) == v for k, v in filters.items())
        ]
        if single:
            if len(rows) != 1:
                raise APIError({
                    "message": "JSON object requested, multiple (or no) rows returned",
                    "code": "PGRST116",
                    "hint": None,
                    "details": "The result contains 0 rows",
                })
            return FakeResponse(rows[0])
        return FakeResponse(rows)

    def _write(self, table, payload):
        if self.write_error is not None:
            raise self.write_error
        self.writes += 1
        if not self.ignore_writes:
            # Round trip through JSON like the real wire format
            stored = json.loads(json.dumps(payload))
            self.rows.setdefault(table, {})[stored["id"]] = stored
        return FakeResponse([payload])


@pytest.fixture
def policy_error() -> APIError:
    """Row level security rejection of an upsert."""
    return APIError({
        "message": 'new row violates row-level security policy for table "hospitals_json"',
        "code": "42501",
        "hint": None,
        "details": None,
    })


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================

def build_sample_dataset() -> Dataset:
    """Two hospitals; H1/D1 owns files in every place a file can live."""
    chat_file = FileReference(id="file-1", name="scan.png", type="image/png", storage_path="public/1-scan.png")
    patient = Patient(
        id="P1",
        name="Patient One",
        national_id="3000",
        password="pp",
        chat_history=[
            ChatMessage(id="m1", sender="patient", timestamp="2024-04-01T10:00:00Z", text="hello"),
            ChatMessage(id="m2", sender="patient", timestamp="2024-04-01T10:01:00Z", file=chat_file),
        ],
    )
    staff = StaffMember(
        id="S1",
        name="Sara",
        title="Nurse",
        national_id="2000",
        password="ss",
        assessments=[
            Assessment(
                id="A1",
                month="فروردین",
                year=1403,
                skill_categories=[
                    SkillCategory(name="Care", items=[SkillItem("IV line", 3), SkillItem("Hygiene", 4)]),
                ],
                min_score=0,
                max_score=4,
            ),
        ],
    )
    department = Department(
        id="D1",
        name="ICU",
        manager_name="Mina",
        manager_national_id="1000",
        manager_password="mm",
        staff_count=1,
        bed_count=10,
        staff=[staff],
        patients=[patient],
        training_materials=[
            MonthlyTraining(month="مهر", materials=[
                TrainingMaterial(id="T1", name="cpr.pdf", type="application/pdf", storage_path="public/2-cpr.pdf"),
            ]),
        ],
        patient_education_materials=[
            TrainingMaterial(id="E1", name="diet.pdf", type="application/pdf", storage_path="public/3-diet.pdf"),
        ],
    )
    hospital_1 = Hospital(
        id="H1",
        name="Imam",
        province="Tehran",
        city="Tehran",
        supervisor_name="Reza",
        supervisor_national_id="9000",
        supervisor_password="sup",
        departments=[department],
        accreditation_materials=[
            TrainingMaterial(id="AC1", name="acc.pdf", type="application/pdf", storage_path="public/4-acc.pdf"),
        ],
        news_banners=[NewsBanner(id="N1", title="Welcome", image_storage_path="public/5-banner.png")],
        checklist_templates=[
            ChecklistTemplate(
                id="CT1",
                name="Nursing",
                categories=[ChecklistCategory(name="Care", items=[ChecklistItem("IV line"), ChecklistItem("Hygiene")])],
                min_score=0,
                max_score=4,
            ),
        ],
    )
    hospital_2 = Hospital(
        id="H2",
        name="Sina",
        province="Fars",
        city="Shiraz",
        supervisor_name="Ali",
        supervisor_national_id="9100",
        supervisor_password="sup2",
        departments=[Department(id="D2", name="ER", manager_national_id="1100", manager_password="m2")],
    )
    return Dataset(hospitals=[hospital_1, hospital_2])


SAMPLE_FILE_PATHS = [
    "public/1-scan.png",
    "public/2-cpr.pdf",
    "public/3-diet.pdf",
    "public/4-acc.pdf",
    "public/5-banner.png",
]


@pytest.fixture
def sample_dataset() -> Dataset:
    return build_sample_dataset()


@pytest.fixture
def sample_file_paths():
    """Storage paths referenced by hospital H1 of the sample dataset."""
    return list(SAMPLE_FILE_PATHS)


@pytest.fixture
def fake_client() -> FakeSupabaseClient:
    return FakeSupabaseClient()


@pytest.fixture
def seeded_client(fake_client, sample_dataset) -> FakeSupabaseClient:
    """Fake client whose row and bucket hold the sample dataset and its files."""
    fake_client.seed(sample_dataset.to_document())
    for path in SAMPLE_FILE_PATHS:
        fake_client.storage.files[path] = b"file:" + path.encode()
    return fake_client


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(local_db_path=tmp_path / "skill_tracker.db")


@pytest.fixture
def local_db(tmp_path) -> LocalDatabase:
    db = LocalDatabase(tmp_path / "cache.db")
    yield db
    db.close()


@pytest.fixture
def engine(settings, seeded_client):
    """SyncEngine over the seeded fake client and a temporary SQLite cache."""
    engine = create_sync_engine(settings, client=seeded_client)
    yield engine
    engine.wait_for_cleanups(timeout=5)
    engine.local_db.close()


@pytest.fixture
def empty_engine(settings, fake_client):
    engine = create_sync_engine(settings, client=fake_client)
    yield engine
    engine.wait_for_cleanups(timeout=5)
    engine.local_db.close()


# =============================================================================
# MOCK FIXTURES
# =============================================================================

class FakeSessionState(dict):
    """dict with attribute access, like st.session_state."""

    def __getattr__(self, name):
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name)

    def __setattr__(self, name, value):
        self[name] = value

    def __delattr__(self, name):
        del self[name]


@pytest.fixture
def mock_streamlit(monkeypatch):
    """Mock Streamlit in the modules that use it"""
    mock_st = MagicMock()
    mock_st.session_state = FakeSessionState()
    mock_st.cache_data = lambda f: f
    mock_st.cache_resource = lambda f: f

    for module in (
        "skill_core.auth.authentication",
        "skill_core.state.session",
        "skill_core.errors.handlers",
    ):
        monkeypatch.setattr(f"{module}.st", mock_st)

    return mock_st


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def assert_dataframe_equal(df1, df2, check_dtype=False):
    """Assert two DataFrames are equal"""
    pd.testing.assert_frame_equal(df1, df2, check_dtype=check_dtype)
