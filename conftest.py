import shutil
from pathlib import Path

import pytest

from backend import storage
from hengdian import RunEngine, load_content

TEST_DATA_DIR = Path("data-tests")
PRESETS_DIR = Path(__file__).parent / "presets"


@pytest.fixture(autouse=True)
def clean_test_data():
    """Wipe and re-init data-tests/ before every test."""
    if TEST_DATA_DIR.exists():
        shutil.rmtree(TEST_DATA_DIR)
    storage.init_storage(TEST_DATA_DIR, presets_dir=PRESETS_DIR)
    yield
    # leave data-tests around after tests for inspection; CI can ignore it


@pytest.fixture(scope="session")
def content():
    """The shipped catalogs, loaded once."""
    return load_content(PRESETS_DIR / "content")


@pytest.fixture
def engine(content):
    return RunEngine.from_content(content)
