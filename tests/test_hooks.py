import pytest

from dryql import ALL_MODELS, HookFailure, HookPhase
from dryql.hooks import HookDispatcher, PHASE_PAYLOAD
from tests.schema import HOOK_EVENTS, RecordingHooks, register_audit


@pytest.mark.asyncio
async def test_dispatch_runs_in_registration_order_with_wildcards():
    dispatcher = HookDispatcher()
    calls = []
    dispatcher.register('Tag', 'before_create', lambda ctx, input: calls.append('tag-1'))
    dispatcher.register(ALL_MODELS, 'before_create', lambda ctx, input: calls.append('all'))

    async def tag_two(ctx, input):
        calls.append('tag-2')
    dispatcher.register('Tag', HookPhase.BEFORE_CREATE, tag_two)
    dispatcher.register('Customer', 'before_create', lambda ctx, input: calls.append('customer'))

    await dispatcher.dispatch('Tag', 'before_create', ctx={}, input={'name': 'x'})
    assert calls == ['tag-1', 'all', 'tag-2']

    calls.clear()
    await dispatcher.dispatch('Customer', 'before_create', ctx={}, input={})
    assert calls == ['all', 'customer']


@pytest.mark.asyncio
async def test_return_values_are_ignored_and_exceptions_propagate():
    dispatcher = HookDispatcher()
    seen = []
    dispatcher.register('Tag', 'after_remove', lambda ctx, removed: 'ignored')

    class Boom(HookFailure):
        pass

    def fail(ctx, removed):
        raise Boom("blocked")
    dispatcher.register('Tag', 'after_remove', fail)
    dispatcher.register('Tag', 'after_remove', lambda ctx, removed: seen.append('late'))

    with pytest.raises(Boom) as exc:
        await dispatcher.dispatch('Tag', 'after_remove', ctx=None, removed=object())
    assert exc.value.kind == 'HOOK_FAILURE'
    # later handlers never ran
    assert seen == []


def test_registration_validation():
    dispatcher = HookDispatcher()
    with pytest.raises(ValueError):
        dispatcher.register('Tag', 'before_explode', lambda **kw: None)
    with pytest.raises(TypeError):
        dispatcher.register('Tag', 'before_create', 'not callable')
    with pytest.raises(TypeError):
        dispatcher.register(42, 'before_create', lambda ctx, input: None)


@pytest.mark.asyncio
async def test_payload_keys_are_checked():
    dispatcher = HookDispatcher()
    with pytest.raises(TypeError):
        await dispatcher.dispatch('Tag', 'before_create', ctx={})


def test_register_hooks_picks_up_phase_methods():
    dispatcher = HookDispatcher()
    assert dispatcher.register_hooks('Tag', RecordingHooks()) == len(HookPhase)
    assert len(dispatcher.handlers_for('Tag', 'after_update')) == 1
    assert dispatcher.handlers_for('Customer', 'after_update') == []

    class OnlyCreate:
        def before_create(self, ctx, input):
            pass
    assert dispatcher.register_hooks('Customer', OnlyCreate()) == 1
    assert dispatcher.register_hooks('Customer', object()) == 0
    assert set(PHASE_PAYLOAD) == set(HookPhase)


def test_decorator_registration_accepts_definitions():
    dispatcher = HookDispatcher()
    from tests.models import tag_model

    @dispatcher.on(tag_model(), 'after_create')
    def noted(ctx, input, created):
        pass

    assert dispatcher.handlers_for('Tag', 'after_create') == [noted]


@pytest.mark.asyncio
async def test_crud_payloads_reach_hooks(api):
    api.register_hooks('Tag', RecordingHooks('tag'))
    register_audit(api)
    ctx = {'user': 'tester'}

    created = await api.execute_operation('createTag', ctx, input={'name': '70s'})
    await api.execute_operation('tag', ctx, id=created.id)
    items = await api.execute_operation('allTags', ctx)
    updated = await api.execute_operation('updateTag', ctx, input={'id': created.id, 'name': '60s'})
    await api.execute_operation('removeTag', ctx, id=created.id)

    phases = [(e['label'], e['phase']) for e in HOOK_EVENTS]
    assert phases == [
        ('tag', 'before_create'),
        ('tag', 'after_create'),
        ('audit', 'after_create'),
        ('tag', 'before_find_one'),
        ('tag', 'after_find_one'),
        ('tag', 'before_find_many'),
        ('tag', 'after_find_many'),
        ('tag', 'before_update'),
        ('tag', 'after_update'),
        ('tag', 'before_remove'),
        ('tag', 'after_remove'),
    ]
    by_phase = {e['phase']: e for e in HOOK_EVENTS if e['label'] == 'tag'}
    assert by_phase['before_create']['ctx'] is ctx
    assert by_phase['before_create']['input'] == {'name': '70s'}
    # the after-hook sees exactly what the caller got back
    assert by_phase['after_create']['created'] is created
    assert by_phase['before_find_one']['filter'] == {'id': created.id}
    assert by_phase['before_find_many']['filter'] == {}
    assert by_phase['before_find_many']['sort'] == {}
    assert by_phase['after_find_many']['items'] == items
    assert by_phase['before_update']['before_updated'].name == '70s'
    assert by_phase['after_update']['updated'] is updated
    assert by_phase['after_update']['before_updated'].name == '70s'
    assert by_phase['before_remove']['before_removed'].name == '60s'
    assert by_phase['after_remove']['removed'].id == created.id


@pytest.mark.asyncio
async def test_hook_error_aborts_operation_without_rollback(api):
    def reject(ctx, input, created):
        raise HookFailure("audit log unavailable")
    api.hooks.register('Tag', 'after_create', reject)

    with pytest.raises(HookFailure):
        await api.execute_operation('createTag', {}, input={'name': 'orphan'})
    # the document was written before the after-hook failed
    remaining = await api.execute_operation('allTags', {})
    assert [t.name for t in remaining] == ['orphan']


@pytest.mark.asyncio
async def test_hook_error_keeps_cascaded_relation_documents(api):
    def reject(ctx, input, created):
        raise HookFailure("store audit failed")
    api.hooks.register('Store', 'after_create', reject)

    with pytest.raises(HookFailure):
        await api.execute_operation(
            'createStore', {}, input={'name': 'Kept', 'tags': [{'name': '70s'}, {'name': '80s'}]},
        )
    # neither the parent nor the cascaded tags are rolled back
    tags = await api.execute_operation('allTags', {})
    assert [t.name for t in tags] == ['70s', '80s']
    stores = await api.execute_operation('allStores', {})
    assert [s.name for s in stores] == ['Kept']
    assert stores[0].tagIds == [t.id for t in tags]


@pytest.mark.asyncio
async def test_before_hook_error_surfaces_through_graphql(api):
    def deny(ctx, input):
        raise HookFailure("creation disabled")
    api.hooks.register('Tag', 'before_create', deny)
    schema = api.to_strawberry()

    res = await schema.execute('mutation { createTag(input: {name: "x"}) { id } }', context_value={})
    assert res.errors is not None
    assert res.errors[0].message == "creation disabled"
    assert res.errors[0].extensions["code"] == "HOOK_FAILURE"
    listed = await schema.execute('{ allTags { id } }', context_value={})
    assert listed.errors is None, listed.errors
    assert listed.data["allTags"] == []
