import pytest

from dryql import FieldDescriptor, ModelDefinition, SchemaDefinitionError, field
from dryql.core.registry import MetadataRegistry
from dryql.typer import TypeSynthesizer
from tests.models import store_model, tag_model


def test_id_field_is_prepended():
    registry = MetadataRegistry()
    registry.register_model(tag_model())
    names = [f.name for f in registry.get_fields('Tag')]
    assert names == ['id', 'name']
    id_desc = registry.get_field('Tag', 'id')
    assert id_desc.excluded_on_create is True


def test_embedded_models_are_registered_with_parent():
    registry = MetadataRegistry()
    registry.register_model(store_model())
    assert registry.has_model('Book')
    assert registry.get_model('Book').embedded is True
    assert [m.name for m in registry.top_level_models()] == ['Store']
    assert [f.name for f in registry.get_fields('Book')] == ['id', 'title', 'year']


def test_duplicate_field_and_model_are_rejected():
    registry = MetadataRegistry()
    registry.register_model(tag_model())
    with pytest.raises(SchemaDefinitionError):
        registry.register_field('Tag', field('name'))
    with pytest.raises(SchemaDefinitionError):
        registry.register_model(tag_model())


def test_invalid_names_are_rejected():
    registry = MetadataRegistry()
    with pytest.raises(SchemaDefinitionError):
        registry.register_model(ModelDefinition('Bad Name', [field('x')]))
    with pytest.raises(SchemaDefinitionError):
        registry.register_model(ModelDefinition('Thing', [field('not-valid')]))


def test_unknown_api_is_rejected():
    with pytest.raises(ValueError):
        ModelDefinition('Tag', [field('name')], allowed_apis=('create', 'explode'))


def test_definition_from_dict():
    definition = ModelDefinition.from_dict({
        'name': 'Customer',
        'enableTextSearch': True,
        'allowedApis': ['findOne', 'findAll'],
        'fields': [
            {'name': 'name', 'filterable': True, 'sortable': True},
            {'name': 'numberOfOrders', 'storageType': 'number', 'requiredOnCreate': False, 'nullableOnOutput': True},
            {'name': 'color', 'enumSpec': {'name': 'Color', 'valueMap': {'RED': 'red'}}},
            {'name': 'tags', 'storageType': 'array',
             'relationSpec': {'kind': 'referencesMany', 'targetModel': 'Tag', 'linkField': 'tagIds'}},
        ],
    })
    assert definition.enable_text_search is True
    assert definition.allows('findOne') and not definition.allows('create')
    name, orders, color, tags = definition.fields
    assert isinstance(name, FieldDescriptor)
    assert name.filterable and name.sortable and name.required_on_create
    assert orders.storage_type == 'number' and orders.nullable_on_output and not orders.required_on_create
    assert color.enum_spec.name == 'Color' and dict(color.enum_spec.value_map) == {'RED': 'red'}
    assert tags.is_relation and tags.relation.link_field == 'tagIds'


def test_definition_from_dict_infers_embedded_storage():
    registry = MetadataRegistry()
    registry.register_model(ModelDefinition.from_dict({
        'name': 'Line', 'embedded': True, 'fields': [{'name': 'sku'}],
    }))
    registry.register_model(ModelDefinition.from_dict({
        'name': 'Order',
        'fields': [
            {'name': 'lines', 'embeddedModel': 'Line'},
            {'name': 'primary', 'embeddedModel': 'Line', 'many': False, 'nullableOnOutput': True,
             'requiredOnCreate': False},
        ],
    }))
    lines = registry.get_field('Order', 'lines')
    assert lines.storage_type == 'array' and lines.many and lines.is_embedded_collection
    assert lines.required_on_create is False
    primary = registry.get_field('Order', 'primary')
    assert primary.storage_type == 'object' and not primary.many

    typer = TypeSynthesizer(registry)
    out = typer.to_output('Order', {'id': 'o1', 'lines': [{'id': 'l1', 'sku': 'A-1'}]})
    assert [line.sku for line in out.lines] == ['A-1']
    assert type(out.lines[0]) is typer.output('Line')
