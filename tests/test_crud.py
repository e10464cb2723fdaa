import pytest

from dryql import InvalidArgumentError, NotFoundError
from dryql.core.utils import ZERO_ID

CREATE_TAG = "mutation($input: CreateTagInput!) { createTag(input: $input) { id name } }"
UPDATE_TAG = "mutation($input: UpdateTagInput!) { updateTag(input: $input) { id name } }"
REMOVE_TAG = "mutation($id: ID!) { removeTag(id: $id) { success } }"
GET_TAG = "query($id: ID!) { tag(id: $id) { id name } }"
ALL_TAGS = "{ allTags { id name } }"
PAGINATE_TAGS = (
    "{ paginateTags { docs { id name } totalDocs page limit totalPages hasPrevPage hasNextPage } }"
)


@pytest.mark.asyncio
async def test_tag_scenario(schema):
    ids = []
    for name in ("70s", "80s", "90s"):
        res = await schema.execute(CREATE_TAG, variable_values={"input": {"name": name}}, context_value={})
        assert res.errors is None, res.errors
        assert res.data["createTag"]["name"] == name
        ids.append(res.data["createTag"]["id"])
    assert len(set(ids)) == 3

    res = await schema.execute(ALL_TAGS, context_value={})
    assert res.errors is None, res.errors
    assert [t["name"] for t in res.data["allTags"]] == ["70s", "80s", "90s"]
    assert [t["id"] for t in res.data["allTags"]] == ids

    res = await schema.execute(PAGINATE_TAGS, context_value={})
    assert res.errors is None, res.errors
    page = res.data["paginateTags"]
    assert page["totalDocs"] == 3
    assert page["page"] == 1
    assert page["limit"] == 10
    assert page["totalPages"] == 1
    assert page["hasPrevPage"] is False and page["hasNextPage"] is False
    assert len(page["docs"]) == 3

    res = await schema.execute(UPDATE_TAG, variable_values={"input": {"id": ids[0], "name": "60s"}}, context_value={})
    assert res.errors is None, res.errors
    assert res.data["updateTag"] == {"id": ids[0], "name": "60s"}
    res = await schema.execute(ALL_TAGS, context_value={})
    assert [t["name"] for t in res.data["allTags"]] == ["60s", "80s", "90s"]

    res = await schema.execute(REMOVE_TAG, variable_values={"id": ids[0]}, context_value={})
    assert res.errors is None, res.errors
    assert res.data["removeTag"] == {"success": True}

    res = await schema.execute(GET_TAG, variable_values={"id": ids[0]}, context_value={})
    assert res.errors is not None
    assert res.errors[0].message == f"No Tag found with ID: {ids[0]}"
    assert res.errors[0].extensions["code"] == "NOT_FOUND"

    res = await schema.execute(GET_TAG, variable_values={"id": ids[1]}, context_value={})
    assert res.errors is None, res.errors
    assert res.data["tag"] == {"id": ids[1], "name": "80s"}


@pytest.mark.asyncio
async def test_missing_ids_fail_with_not_found(schema, sample_tags):
    res = await schema.execute(REMOVE_TAG, variable_values={"id": ZERO_ID}, context_value={})
    assert res.errors[0].message == f"No Tag found with ID: {ZERO_ID}"

    res = await schema.execute(
        UPDATE_TAG, variable_values={"input": {"id": ZERO_ID, "name": "x"}}, context_value={},
    )
    assert res.errors[0].message == f"No Tag found with ID: {ZERO_ID}"
    assert res.errors[0].extensions["code"] == "NOT_FOUND"

    # nothing was touched
    res = await schema.execute(ALL_TAGS, context_value={})
    assert [t["name"] for t in res.data["allTags"]] == ["70s", "80s", "90s"]


@pytest.mark.asyncio
async def test_update_requires_id(api):
    with pytest.raises(InvalidArgumentError):
        await api.execute_operation('updateTag', {}, input={'name': 'no id'})


@pytest.mark.asyncio
async def test_update_touches_only_supplied_fields(api):
    created = await api.execute_operation(
        'createCustomer', {}, input={'name': 'Ada', 'email': 'ada@example.com', 'numberOfOrders': 2},
    )
    updated = await api.execute_operation('updateCustomer', {}, input={'id': created.id, 'numberOfOrders': 3})
    assert updated.name == 'Ada'
    assert updated.email == 'ada@example.com'
    assert updated.numberOfOrders == 3
    # explicit null clears a nullable field
    cleared = await api.execute_operation('updateCustomer', {}, input={'id': created.id, 'email': None})
    assert cleared.email is None
    assert cleared.numberOfOrders == 3


@pytest.mark.asyncio
async def test_enum_round_trip_and_filters(schema):
    create = (
        "mutation($input: CreateCustomerInput!) { createCustomer(input: $input) "
        "{ id name favoriteColor numberOfOrders vip } }"
    )
    customers = [
        {"name": "Ada", "favoriteColor": "RED", "numberOfOrders": 5, "vip": True},
        {"name": "Bob", "favoriteColor": "BLUE", "numberOfOrders": 1},
        {"name": "Cyd", "favoriteColor": "RED", "numberOfOrders": 9, "vip": False},
    ]
    for c in customers:
        res = await schema.execute(create, variable_values={"input": c}, context_value={})
        assert res.errors is None, res.errors
    assert res.data["createCustomer"]["favoriteColor"] == "RED"
    assert res.data["createCustomer"]["numberOfOrders"] == 9

    res = await schema.execute(
        "{ allCustomers(filter: {favoriteColor: {eq: RED}}, sort: {numberOfOrders: DESC}) { name } }",
        context_value={},
    )
    assert res.errors is None, res.errors
    assert [c["name"] for c in res.data["allCustomers"]] == ["Cyd", "Ada"]

    res = await schema.execute("{ allCustomers(filter: {vip: {eq: true}}) { name } }", context_value={})
    assert [c["name"] for c in res.data["allCustomers"]] == ["Ada"]

    res = await schema.execute("{ allCustomers(sort: {name: DESC}) { name } }", context_value={})
    assert [c["name"] for c in res.data["allCustomers"]] == ["Cyd", "Bob", "Ada"]

    res = await schema.execute('{ allCustomers(search: "bo") { name } }', context_value={})
    assert [c["name"] for c in res.data["allCustomers"]] == ["Bob"]


@pytest.mark.asyncio
async def test_paginate_arguments(schema, api):
    for i in range(12):
        await api.execute_operation('createTag', {}, input={'name': f"tag-{i:02d}"})

    res = await schema.execute(
        "{ paginateTags(page: 2, limit: 5) { docs { name } totalDocs page limit totalPages hasPrevPage hasNextPage } }",
        context_value={},
    )
    assert res.errors is None, res.errors
    page = res.data["paginateTags"]
    assert [d["name"] for d in page["docs"]] == [f"tag-{i:02d}" for i in range(5, 10)]
    assert page["totalDocs"] == 12
    assert page["totalPages"] == 3
    assert page["hasPrevPage"] is True and page["hasNextPage"] is True

    res = await schema.execute(
        "{ paginateTags(limit: 3, sort: {name: DESC}) { docs { name } } }", context_value={},
    )
    assert [d["name"] for d in res.data["paginateTags"]["docs"]] == ["tag-11", "tag-10", "tag-09"]

    res = await schema.execute("{ paginateTags(page: 0) { totalDocs } }", context_value={})
    assert res.errors[0].extensions["code"] == "INVALID_ARGUMENT"
    with pytest.raises(InvalidArgumentError):
        await api.execute_operation('paginateTags', {}, limit=0)


@pytest.mark.asyncio
async def test_execute_operation_validates_names_and_arguments(api):
    with pytest.raises(InvalidArgumentError):
        await api.execute_operation('createBook', {}, input={})
    with pytest.raises(InvalidArgumentError):
        await api.execute_operation('tag', {})
    with pytest.raises(InvalidArgumentError):
        await api.execute_operation('allTags', {}, bogus=1)
    with pytest.raises(NotFoundError):
        await api.execute_operation('tag', {}, id=ZERO_ID)


@pytest.mark.asyncio
async def test_read_only_model_exposes_queries_only(schema, api):
    res = await schema.execute('mutation { createCountry(input: {name: "x"}) { id } }', context_value={})
    assert res.errors is not None
    doc = await api.store.insert('Country', {'name': 'Italy', 'flagColor': 'green'})
    res = await schema.execute(
        "query($id: ID!) { country(id: $id) { name flagColor } }", variable_values={"id": doc["id"]}, context_value={},
    )
    assert res.errors is None, res.errors
    assert res.data["country"] == {"name": "Italy", "flagColor": "GREEN"}


@pytest.mark.asyncio
async def test_filter_operators(schema, api):
    for customer in (
        {'name': 'Ada', 'favoriteColor': 'red', 'numberOfOrders': 5, 'vip': True},
        {'name': 'Bob', 'favoriteColor': 'blue', 'numberOfOrders': 1},
        {'name': 'Cyd', 'favoriteColor': 'red', 'numberOfOrders': 9, 'vip': False},
        {'name': 'Dee', 'favoriteColor': 'green'},
    ):
        await api.execute_operation('createCustomer', {}, input=customer)
    seen = []
    api.hooks.register('Customer', 'before_find_many', lambda ctx, filter, sort: seen.append(filter))

    async def names(flt):
        res = await schema.execute(f"{{ allCustomers(filter: {flt}) {{ name }} }}", context_value={})
        assert res.errors is None, res.errors
        return [c["name"] for c in res.data["allCustomers"]]

    assert await names("{numberOfOrders: {gte: 5}}") == ["Ada", "Cyd"]
    assert await names("{numberOfOrders: {gt: 1, lt: 9}}") == ["Ada"]
    assert await names("{numberOfOrders: {eq: null}}") == ["Dee"]
    assert await names('{name: {in: ["Bob", "Dee"]}}') == ["Bob", "Dee"]
    assert await names('{name: {notIn: ["Bob"]}, favoriteColor: {eq: RED}}') == ["Ada", "Cyd"]
    assert await names("{favoriteColor: {in: [RED, GREEN]}}") == ["Ada", "Cyd", "Dee"]
    assert await names('{name: {contains: "A"}}') == ["Ada"]
    assert await names("{vip: {ne: true}}") == ["Bob", "Cyd", "Dee"]
    # hooks see GraphQL operator names and stored enum values
    assert {'name': {'in': ['Bob', 'Dee']}} in seen
    assert {'favoriteColor': {'in': ['red', 'green']}} in seen

    res = await schema.execute(
        "{ paginateCustomers(filter: {numberOfOrders: {gte: 1}}, limit: 2) { docs { name } totalDocs totalPages } }",
        context_value={},
    )
    assert res.errors is None, res.errors
    page = res.data["paginateCustomers"]
    assert [d["name"] for d in page["docs"]] == ["Ada", "Bob"]
    assert page["totalDocs"] == 3 and page["totalPages"] == 2


@pytest.mark.asyncio
async def test_search_treats_wildcards_literally(schema, api):
    for name in ("axb", "a_b", "50% off"):
        await api.execute_operation('createCustomer', {}, input={'name': name})

    async def found(text):
        res = await schema.execute(
            "query($q: String) { allCustomers(search: $q) { name } }", variable_values={"q": text}, context_value={},
        )
        assert res.errors is None, res.errors
        return [c["name"] for c in res.data["allCustomers"]]

    assert await found("a_b") == ["a_b"]
    assert await found("%") == ["50% off"]
    assert await found("A") == ["axb", "a_b"]
