"""Tests for the resources getter.

Most tests replace the backing collection with mocks and inspect the
``QueryOptions`` handed to ``count`` and ``find_all``. The end-to-end tests
run against the aiosqlite database of ``conftest.py``.
"""

import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from blog_models import ALL_MODELS, Article, Enrollment
from panel_adapter.adapters.collection import Collection, UnknownScopeError
from panel_adapter.config.models import AdapterConfig, CollectionConfig, PaginationConfig
from panel_adapter.query.operators import OperatorValueError
from panel_adapter.query.params import ResourceQuery
from panel_adapter.schema.models import (
    COMPOSITE_PRIMARY_FIELD,
    DynamicCondition,
    FieldSchema,
    Segment,
    StaticCondition,
)
from panel_adapter.schema.registry import SchemaNotFoundError, build_registry
from panel_adapter.services.resources_getter import ResourcesGetter


def _mock_collection(model, count=0, records=None):
    """Collection mock whose scoped and unscoped copies share one query mock."""
    queries = MagicMock()
    queries.count = AsyncMock(return_value=count)
    queries.find_all = AsyncMock(return_value=records or [])

    collection = MagicMock()
    collection.model = model
    collection.name = model.__name__
    collection.unscoped.return_value = queries
    collection.scope.return_value = queries
    return collection, queries


def _registry(**customization):
    config = AdapterConfig(collections={"Article": CollectionConfig(**customization)})
    return build_registry(ALL_MODELS, config=config)


def _params(**params) -> ResourceQuery:
    return ResourceQuery.model_validate(params)


async def _perform(registry, params, model=Article, **kwargs):
    """Run the getter on a mock collection; return (count options, list options)."""
    collection, queries = _mock_collection(model)
    await ResourcesGetter(collection, registry, params, **kwargs).perform()
    count_options = queries.count.call_args.args[0]
    list_options = queries.find_all.call_args.args[0]
    return count_options, list_options


# ------------------------------------------------------------------
# Field selection
# ------------------------------------------------------------------


class TestFieldSelection:
    """Verify the requested field set."""

    def test_unrestricted(self, registry):
        collection, _ = _mock_collection(Article)
        getter = ResourcesGetter(collection, registry, _params())
        assert getter.field_names_requested is None

    def test_primary_key_always_included(self, registry):
        collection, _ = _mock_collection(Article)
        getter = ResourcesGetter(collection, registry, _params(fields={"Article": "title"}))
        assert getter.field_names_requested == ["id", "title"]

    def test_other_model_fields_ignored(self, registry):
        collection, _ = _mock_collection(Article)
        getter = ResourcesGetter(collection, registry, _params(fields={"Author": "name"}))
        assert getter.field_names_requested is None

    def test_filter_and_sort_associations_added(self, registry):
        collection, _ = _mock_collection(Article)
        params = _params(
            fields={"Article": "title,id"},
            filter={"author:name": "Ann", "title": "x"},
            sort="-comments.body",
        )
        getter = ResourcesGetter(collection, registry, params)
        assert getter.field_names_requested == ["id", "title", "author", "comments"]

    def test_all_composite_keys_included(self, registry):
        collection, _ = _mock_collection(Enrollment)
        getter = ResourcesGetter(collection, registry, _params(fields={"Enrollment": "grade"}))
        assert getter.field_names_requested == ["student_id", "course_code", "grade"]

    async def test_filter_association_included(self, registry):
        params = _params(fields={"Article": "title"}, filter={"author:name": "Ann"})
        count_options, list_options = await _perform(registry, params)
        assert list_options.include == ["author"]
        assert count_options.include == ["author"]

    async def test_unrequested_association_not_included(self, registry):
        _, list_options = await _perform(registry, _params(fields={"Article": "title"}))
        assert list_options.include == []


# ------------------------------------------------------------------
# Where
# ------------------------------------------------------------------


class TestWhere:
    """Verify the where condition built from search, filters and segment."""

    async def test_empty(self, registry):
        count_options, _ = await _perform(registry, _params())
        assert count_options.where == {"$and": []}

    async def test_filter_values_under_any_of(self, registry):
        params = _params(filter={"rating": "1,4"}, filterType="or")
        count_options, _ = await _perform(registry, params)
        assert count_options.where == {"$and": [{"$or": [{"rating": 1.0}, {"rating": 4.0}]}]}

    async def test_filter_values_under_all_of(self, registry):
        params = _params(filter={"id": ">1", "title": "*Hello*"}, filterType="and")
        count_options, _ = await _perform(registry, params)
        assert count_options.where == {
            "$and": [{"$and": [{"id": {"$gt": 1}}, {"title": {"$like": "%Hello%"}}]}]
        }

    async def test_filter_without_type_is_plain_list(self, registry):
        count_options, _ = await _perform(registry, _params(filter={"id": "1,2"}))
        assert count_options.where == {"$and": [[{"id": 1}, {"id": 2}]]}

    async def test_association_filter_key_rewritten(self, registry):
        count_options, _ = await _perform(registry, _params(filter={"author:name": "Ann"}))
        assert count_options.where == {"$and": [[{"$author.name$": "Ann"}]]}

    async def test_parser_receives_model_key_value_timezone(self, registry):
        parser = MagicMock()
        parser.perform.return_value = "parsed"
        params = _params(filter={"author:name": "Ann,Bob"}, timezone="Europe/Paris")

        count_options, _ = await _perform(registry, params, operator_value_parser=parser)

        assert parser.perform.call_args_list[0].args == (
            Article,
            "$author.name$",
            "Ann",
            "Europe/Paris",
        )
        assert parser.perform.call_args_list[1].args[2] == "Bob"
        assert count_options.where == {
            "$and": [[{"$author.name$": "parsed"}, {"$author.name$": "parsed"}]]
        }

    async def test_search_condition_first(self, registry):
        search_builder = MagicMock()
        search_builder.perform.return_value = {"$or": ["search"]}
        params = _params(search="hello", filter={"id": "1"})

        count_options, _ = await _perform(registry, params, search_builder=search_builder)

        assert count_options.where == {"$and": [{"$or": ["search"]}, [{"id": 1}]]}
        model, opts, passed_params, field_names = search_builder.perform.call_args.args
        assert model is Article
        assert passed_params is params
        assert field_names is None
        assert "author" in opts.associations

    async def test_blank_search_ignored(self, registry):
        search_builder = MagicMock()
        count_options, list_options = await _perform(
            registry, _params(search="   "), search_builder=search_builder
        )

        search_builder.perform.assert_not_called()
        assert count_options.where == {"$and": []}
        assert list_options.where == {"$and": []}

    async def test_malformed_filter_propagates(self, registry):
        collection, queries = _mock_collection(Article)
        getter = ResourcesGetter(collection, registry, _params(filter={"id": "abc"}))
        with pytest.raises(OperatorValueError):
            await getter.perform()
        queries.count.assert_not_called()

    async def test_count_and_list_share_where_and_include(self, registry):
        params = _params(search="hello", filter={"id": "1,2"}, filterType="or")
        count_options, list_options = await _perform(registry, params)

        assert count_options.where == list_options.where
        assert count_options.include == list_options.include
        assert count_options.where is not list_options.where
        assert count_options.order is None
        assert count_options.offset is None
        assert count_options.limit is None

    async def test_list_pagination_and_order(self, registry):
        params = _params(sort="-title", page={"number": 2, "size": 5})
        _, list_options = await _perform(registry, params)
        assert list_options.order == [("title", "DESC")]
        assert list_options.offset == 5
        assert list_options.limit == 5

    async def test_sort_through_to_many_association_rejected(self, registry):
        collection, queries = _mock_collection(Article)
        getter = ResourcesGetter(collection, registry, _params(sort="-tags.label"))
        with pytest.raises(ValueError, match="'tags' is a to-many association"):
            await getter.perform()
        queries.count.assert_not_called()
        queries.find_all.assert_not_called()

    async def test_configured_pagination(self, registry):
        config = AdapterConfig(pagination=PaginationConfig(default_size=7, max_size=10))
        _, list_options = await _perform(registry, _params(), config=config)
        assert list_options.limit == 7


# ------------------------------------------------------------------
# Search fields
# ------------------------------------------------------------------


class TestSearchFields:
    """Verify narrowing to declared search fields."""

    async def test_narrowed_fields_and_associations(self):
        registry = _registry(search_fields=["title", "author.name"])
        search_builder = MagicMock()
        search_builder.perform.return_value = {"$or": []}

        await _perform(registry, _params(search="x"), search_builder=search_builder)

        opts = search_builder.perform.call_args.args[1]
        assert [field.field for field in opts.fields] == ["title"]
        assert opts.associations == ["author"]
        assert opts.search_fields == ("title", "author.name")

    async def test_warnings_for_unknown_fields(self, caplog):
        registry = _registry(search_fields=["title", "missing", "author.name", "ghost.name"])

        with caplog.at_level(logging.WARNING):
            await _perform(registry, _params(search="x"))

        assert (
            "Cannot find the fields [missing] while searching records in model Article."
            in caplog.text
        )
        assert (
            "Cannot find the associations [ghost] while searching records in model Article."
            in caplog.text
        )

    async def test_no_warning_when_all_found(self, caplog):
        registry = _registry(search_fields=["title", "author.name"])
        with caplog.at_level(logging.WARNING):
            await _perform(registry, _params(search="x"))
        assert "Cannot find" not in caplog.text


# ------------------------------------------------------------------
# Segments
# ------------------------------------------------------------------


class TestSegments:
    """Verify segment scopes and conditions."""

    async def test_static_condition_last(self):
        registry = _registry(
            segments=[Segment(name="published", where=StaticCondition(value={"published": True}))]
        )
        params = _params(segment="published", filter={"id": "1"})
        count_options, _ = await _perform(registry, params)
        assert count_options.where == {"$and": [[{"id": 1}], {"published": True}]}

    async def test_dynamic_condition_resolved_before_queries(self):
        calls = []

        async def mine(params):
            calls.append(params.timezone)
            return {"author_id": 1}

        registry = _registry(segments=[Segment(name="mine", where=DynamicCondition(fn=mine))])
        params = _params(segment="mine", timezone="UTC")

        count_options, list_options = await _perform(registry, params)

        assert calls == ["UTC"]
        assert count_options.where == {"$and": [{"author_id": 1}]}
        assert list_options.where == {"$and": [{"author_id": 1}]}

    async def test_dynamic_condition_failure_propagates(self):
        async def broken(params):
            raise RuntimeError("lookup failed")

        registry = _registry(segments=[Segment(name="mine", where=DynamicCondition(fn=broken))])
        collection, queries = _mock_collection(Article)

        with pytest.raises(RuntimeError, match="lookup failed"):
            await ResourcesGetter(collection, registry, _params(segment="mine")).perform()
        queries.count.assert_not_called()

    async def test_segment_scope(self):
        registry = _registry(segments=[Segment(name="published", scope="published")])
        collection, _ = _mock_collection(Article)

        await ResourcesGetter(collection, registry, _params(segment="published")).perform()

        collection.scope.assert_called_once_with("published")
        collection.unscoped.assert_not_called()

    async def test_unscoped_without_segment(self, registry):
        collection, _ = _mock_collection(Article)
        await ResourcesGetter(collection, registry, _params()).perform()
        collection.unscoped.assert_called_once_with()
        collection.scope.assert_not_called()

    async def test_unknown_segment_ignored(self, registry):
        collection, queries = _mock_collection(Article)
        await ResourcesGetter(collection, registry, _params(segment="nope")).perform()
        collection.unscoped.assert_called_once_with()
        assert queries.count.call_args.args[0].where == {"$and": []}


# ------------------------------------------------------------------
# Search hooks
# ------------------------------------------------------------------


class TestSearchHooks:
    """Verify smart field search hooks."""

    async def test_hook_called_on_both_options(self):
        def search_excerpt(options, term):
            options.where["$and"].append({"body": {"$ilike": f"%{term}%"}})

        hook = MagicMock(side_effect=search_excerpt)
        registry = _registry(
            smart_fields=[FieldSchema(field="excerpt", type="String", is_virtual=True, search=hook)]
        )

        count_options, list_options = await _perform(registry, _params(search="hi"))

        assert hook.call_count == 2
        assert hook.call_args_list[0].args == (count_options, "hi")
        assert hook.call_args_list[1].args == (list_options, "hi")
        assert count_options.where["$and"][-1] == {"body": {"$ilike": "%hi%"}}
        assert list_options.where["$and"][-1] == {"body": {"$ilike": "%hi%"}}

    async def test_hook_not_called_without_search(self):
        hook = MagicMock()
        registry = _registry(smart_fields=[FieldSchema(field="excerpt", search=hook)])
        await _perform(registry, _params())
        await _perform(registry, _params(search=" "))
        hook.assert_not_called()

    async def test_hook_failure_logged(self, caplog):
        hook = MagicMock(side_effect=RuntimeError("bad hook"))
        registry = _registry(smart_fields=[FieldSchema(field="excerpt", search=hook)])
        collection, queries = _mock_collection(Article, count=3)

        count, _ = await ResourcesGetter(collection, registry, _params(search="x")).perform()

        assert count == 3
        assert "Cannot search properly on Smart Field excerpt" in caplog.text
        assert "bad hook" in caplog.text


# ------------------------------------------------------------------
# Result
# ------------------------------------------------------------------


class TestResult:
    """Verify the (count, records) result."""

    async def test_count_and_records(self, registry):
        records = [SimpleNamespace(id=1), SimpleNamespace(id=2)]
        collection, _ = _mock_collection(Article, count=12, records=records)

        count, result = await ResourcesGetter(collection, registry, _params()).perform()

        assert count == 12
        assert result == records

    async def test_single_key_records_have_no_composite_value(self, registry):
        records = [SimpleNamespace(id=1)]
        collection, _ = _mock_collection(Article, count=1, records=records)
        _, result = await ResourcesGetter(collection, registry, _params()).perform()
        assert not hasattr(result[0], COMPOSITE_PRIMARY_FIELD)

    async def test_composite_value_attached(self, registry):
        records = [
            SimpleNamespace(student_id=1, course_code="MATH"),
            SimpleNamespace(student_id=2, course_code=None),
        ]
        collection, _ = _mock_collection(Enrollment, count=2, records=records)

        _, result = await ResourcesGetter(collection, registry, _params()).perform()

        assert [getattr(r, COMPOSITE_PRIMARY_FIELD) for r in result] == ["1|MATH", "2|null"]

    async def test_custom_composite_keys_manager(self, registry):
        manager = MagicMock()
        manager.create_composite_primary.return_value = "key"
        records = [SimpleNamespace(student_id=1, course_code="MATH")]
        collection, _ = _mock_collection(Enrollment, records=records)

        await ResourcesGetter(
            collection, registry, _params(), composite_keys_manager=manager
        ).perform()

        model, schema, record = manager.create_composite_primary.call_args.args
        assert model is Enrollment
        assert schema.name == "Enrollment"
        assert record is records[0]

    def test_unregistered_model(self):
        registry = build_registry([Enrollment])
        collection, _ = _mock_collection(Article)
        with pytest.raises(SchemaNotFoundError):
            ResourcesGetter(collection, registry, _params())


# ------------------------------------------------------------------
# End to end (aiosqlite)
# ------------------------------------------------------------------


class TestEndToEnd:
    """Run the getter on a real collection."""

    async def test_search_on_declared_search_field(self, session_factory):
        registry = _registry(search_fields=["title"])
        params = _params(search="hello", fields={"Article": "title"})
        collection = Collection(Article, session_factory)

        getter = ResourcesGetter(collection, registry, params)
        count, records = await getter.perform()

        assert getter.field_names_requested == ["id", "title"]
        assert count == 2
        assert sorted((r.id, r.title) for r in records) == [(1, "Hello world"), (2, "Hello again")]

    async def test_filter_through_association_sorted(self, session_factory, registry):
        params = _params(filter={"author:name": "Ann"}, sort="-id")
        count, records = await ResourcesGetter(
            Collection(Article, session_factory), registry, params
        ).perform()

        assert count == 2
        assert [r.id for r in records] == [3, 1]
        assert [r.author.name for r in records] == ["Ann", "Ann"]

    async def test_or_filters_with_pagination(self, session_factory, registry):
        params = _params(filter={"id": "1,2,3"}, filterType="or", page={"number": 2, "size": 2})
        count, records = await ResourcesGetter(
            Collection(Article, session_factory), registry, params
        ).perform()

        assert count == 3
        assert [r.id for r in records] == [1]

    async def test_blank_search_matches_everything(self, session_factory, registry):
        count, records = await ResourcesGetter(
            Collection(Article, session_factory), registry, _params(search="  ")
        ).perform()

        assert count == 3
        assert [r.id for r in records] == [3, 2, 1]

    async def test_segment_scope_on_collection(self, session_factory):
        registry = _registry(segments=[Segment(name="published", scope="published")])
        collection = Collection(
            Article,
            session_factory,
            scopes={"published": lambda stmt: stmt.where(Article.published.is_(True))},
        )

        count, _ = await ResourcesGetter(
            collection, registry, _params(segment="published")
        ).perform()

        assert count == 2

    async def test_unknown_collection_scope(self, session_factory):
        registry = _registry(segments=[Segment(name="archived", scope="archived")])
        getter = ResourcesGetter(
            Collection(Article, session_factory), registry, _params(segment="archived")
        )
        with pytest.raises(UnknownScopeError):
            await getter.perform()

    async def test_default_scope_bypassed(self, session_factory, registry):
        collection = Collection(
            Article, session_factory, default_scope=lambda stmt: stmt.where(Article.id == 1)
        )
        count, _ = await ResourcesGetter(collection, registry, _params()).perform()
        assert count == 3

    async def test_composite_records(self, session_factory, registry):
        count, records = await ResourcesGetter(
            Collection(Enrollment, session_factory), registry, _params()
        ).perform()

        assert count == 2
        assert [getattr(r, COMPOSITE_PRIMARY_FIELD) for r in records] == ["2|MATH", "1|MATH"]
