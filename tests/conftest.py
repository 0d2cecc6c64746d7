"""
AlumniTrack - Test Configuration and Fixtures
"""
import pytest
from faker import Faker

from alumnitrack.auth import SessionInfo
from alumnitrack.config import ClientConfig
from alumnitrack.storage import MemoryStore, PromptHistory

fake = Faker()


@pytest.fixture
def client_config(tmp_path) -> ClientConfig:
    """Config whose files all live in a temp directory"""
    return ClientConfig(config_dir=str(tmp_path / "alumnitrack"))


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def history(memory_store: MemoryStore) -> PromptHistory:
    return PromptHistory(memory_store)


@pytest.fixture
def student_session() -> SessionInfo:
    return SessionInfo(is_authenticated=True, role="student")


@pytest.fixture
def fake_user() -> dict:
    return {
        "_id": fake.uuid4(),
        "name": fake.name(),
        "email": fake.email(),
        "role": "alumni",
    }


@pytest.fixture
def survey_data() -> dict:
    """A survey as the API returns it, with one question of every kind"""
    return {
        "_id": "s1",
        "title": "Graduate Outcomes 2024",
        "description": "Tell us where you landed.",
        "audience": "alumni",
        "status": "active",
        "questions": [
            {"_id": "q-employer", "text": "Current employer", "type": "short_text", "required": True, "order": 1},
            {"_id": "q-story", "text": "Describe your role", "type": "long_text", "order": 2},
            {"_id": "q-sector", "text": "Sector", "type": "multiple_choice",
             "options": ["Industry", "Academia", "Government"], "required": True, "order": 3},
            {"_id": "q-skills", "text": "Skills used", "type": "checkbox",
             "options": ["Python", "SQL", "Excel"], "order": 4},
            {"_id": "q-prep", "text": "How well did college prepare you?", "type": "rating",
             "scaleMax": 5, "required": True, "order": 5},
        ],
    }
