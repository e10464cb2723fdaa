"""Test configuration and fixtures for dryql."""

import warnings
# Silence Strawberry's LazyType deprecation warnings to keep test output clean
warnings.filterwarnings("ignore", category=DeprecationWarning, message=r"LazyType is deprecated.*")

import os

import pytest
from dotenv import load_dotenv

from dryql.store import SQLAlchemyDocumentStore
from tests.schema import HOOK_EVENTS, build_api

# Try to load environment variables from .env file
load_dotenv()


@pytest.fixture(scope="function")
async def store():
    """Document store on DRYQL_TEST_DATABASE_URL, or in-memory SQLite."""
    test_db_url = os.getenv('DRYQL_TEST_DATABASE_URL')
    store = SQLAlchemyDocumentStore.from_url(test_db_url or "sqlite+aiosqlite:///:memory:", echo=False)
    if test_db_url:
        # clean slate on external databases
        await store.drop_all()
    await store.create_all()
    yield store
    if test_db_url:
        await store.drop_all()
    await store.dispose()


@pytest.fixture(scope="function")
def api(store):
    HOOK_EVENTS.clear()
    return build_api(store)


@pytest.fixture(scope="function")
def schema(api):
    return api.to_strawberry()


# Import fixtures from fixtures module
from tests.fixtures import sample_tags, sample_store  # noqa: E402,F401
