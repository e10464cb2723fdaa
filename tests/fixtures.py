"""Data fixtures for dryql tests (shared)."""

import pytest

from dryql import DryQLSchema


async def create_sample_tags(api: DryQLSchema):
    """Create the three decade tags in order."""
    tags = []
    for name in ("70s", "80s", "90s"):
        tags.append(await api.execute_operation('createTag', {}, input={'name': name}))
    return tags


@pytest.fixture(scope="function")
async def sample_tags(api):
    return await create_sample_tags(api)


@pytest.fixture(scope="function")
async def sample_store(api):
    return await api.execute_operation(
        'createStore',
        {},
        input={
            'name': 'Corner Books',
            'books': [
                {'title': 'Dune', 'year': 1965},
                {'title': 'Solaris', 'year': 1961},
            ],
        },
    )
