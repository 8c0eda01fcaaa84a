"""Tests for ResultList: query narrowing, projection, pagination and read-only access."""

from unittest.mock import MagicMock, patch

import pytest
from elasticsearch import ConnectionError as EsConnectionError

from elastisync.exceptions import PostFilterError, ReadOnlyResultError, SearchEngineError
from elastisync.records import Record
from elastisync.results import ResultList, add_published_filter, build_query, record_id_of


def hit(document_id, type_name, **highlight):
    result = {"_id": document_id, "fields": {"type": [type_name]}}
    if highlight:
        result["highlight"] = highlight
    return result


def response(*hits, total=None):
    return {"hits": {"total": {"value": len(hits) if total is None else total}, "hits": list(hits)}}


@pytest.fixture
def populated(store):
    store.save(Record("Article", id=1, fields={"title": "Hello"}))
    store.save(Record("Article", id=2, fields={"title": "World"}))
    store.save(Record("cms.Page", id=4, fields={"title": "About"}, published=True))
    return store


class TestQuery:
    def test_string_query(self):
        assert build_query("quantum") == {"query": {"query_string": {"query": "quantum"}}}

    def test_empty_query_matches_all(self):
        assert build_query(None) == {"query": {"match_all": {}}}

    def test_query_body_is_copied(self):
        query = {"query": {"match": {"title": "x"}}}
        build_query(query)["size"] = 3
        assert "size" not in query

    def test_narrowed_to_ids_and_type(self, index, store):
        results = ResultList(index, {"query": {"match": {"title": "x"}}}, store)
        assert results.query["_source"] is False
        assert results.query["stored_fields"] == ["type"]
        assert "post_filter" not in results.query

    def test_live_adds_published_filter(self, index, store):
        results = ResultList(index, "x", store, live=True)
        assert results.query["post_filter"] == {"bool": {"must": [{"term": {"is_published": True}}]}}

    def test_published_filter_merges_into_bool(self):
        body = {"post_filter": {"bool": {"must": {"term": {"lang": "en"}}, "must_not": [{"term": {"x": 1}}]}}}
        add_published_filter(body)
        assert body["post_filter"]["bool"]["must"] == [
            {"term": {"lang": "en"}},
            {"term": {"is_published": True}},
        ]
        assert body["post_filter"]["bool"]["must_not"] == [{"term": {"x": 1}}]

    def test_non_bool_post_filter_is_rejected(self, index, store):
        with pytest.raises(PostFilterError):
            ResultList(index, {"post_filter": {"term": {"lang": "en"}}}, store, live=True)

    def test_record_id_of(self):
        assert record_id_of("cms_Page_12") == 12


class TestProjection:
    def test_hits_become_records_in_order(self, index, client, populated):
        client.search.return_value = response(
            hit("Article_2", "Article"),
            hit("cms_Page_4", "cms.Page"),
            hit("Article_1", "Article"),
        )

        results = ResultList(index, "x", populated)

        assert [(r.type_name, r.id) for r in results] == [("Article", 2), ("cms.Page", 4), ("Article", 1)]
        client.search.assert_called_once()

    def test_one_lookup_per_type(self, index, client, populated):
        client.search.return_value = response(
            hit("Article_1", "Article"),
            hit("cms_Page_4", "cms.Page"),
            hit("Article_2", "Article"),
        )

        with patch.object(populated, "get_by_ids", wraps=populated.get_by_ids) as lookup:
            ResultList(index, "x", populated).to_list()

        assert sorted((c.args[0], list(c.args[1])) for c in lookup.call_args_list) == [
            ("Article", [1, 2]),
            ("cms.Page", [4]),
        ]

    def test_stale_and_untyped_hits_are_skipped(self, index, client, populated):
        client.search.return_value = response(
            hit("Article_1", "Article"),
            hit("Article_99", "Article"),
            {"_id": "Article_2", "fields": {}},
        )

        assert [r.id for r in ResultList(index, "x", populated)] == [1]

    def test_highlights_are_joined(self, index, client, populated):
        client.search.return_value = response(hit("Article_1", "Article", title=["<em>Hel</em>", "lo"]))

        record = ResultList(index, "x", populated).first()

        assert record.highlights == {"title": "<em>Hel</em>lo"}

    def test_highlights_stay_with_their_result_list(self, index, client, populated):
        client.search.side_effect = [
            response(hit("Article_1", "Article", title=["<em>Hello</em>"])),
            response(hit("Article_1", "Article", title=["<em>Hel</em>"])),
        ]

        first = ResultList(index, "hello", populated).first()
        second = ResultList(index, "hel", populated).first()

        assert first.highlights == {"title": "<em>Hello</em>"}
        assert second.highlights == {"title": "<em>Hel</em>"}
        assert populated.get_by_id("Article", 1).highlights == {}

    def test_live_search_returns_only_published(self, index, client, store):
        store.save(Record("cms.Page", id=1, fields={"title": "Live"}, published=True))
        store.save(Record("cms.Page", id=2, fields={"title": "Draft"}, published=False))
        indexed = {"cms_Page_1": True, "cms_Page_2": False}

        def search(index, body):
            published_only = "post_filter" in body
            hits = [
                hit(doc_id, "cms.Page")
                for doc_id, published in indexed.items()
                if published or not published_only
            ]
            return response(*hits)

        client.search.side_effect = search

        assert [r.title for r in ResultList(index, "page", store, live=True)] == ["Live"]
        assert [r.title for r in ResultList(index, "page", store)] == ["Live", "Draft"]

    def test_results_are_fetched_once(self, index, client, populated):
        client.search.return_value = response(hit("Article_1", "Article"))
        results = ResultList(index, "x", populated)
        len(results)
        list(results)
        assert client.search.call_count == 1


class TestPagination:
    def test_limit_and_page_return_new_lists(self, index, store):
        results = ResultList(index, "x", store)
        limited = results.limit(5, offset=10)
        paged = results.page(3, per_page=20)

        assert "size" not in results.query
        assert (limited.query["size"], limited.query["from"]) == (5, 10)
        assert (paged.query["size"], paged.query["from"]) == (20, 40)

    def test_sort(self, index, store):
        assert ResultList(index, "x", store).sort([{"title": "asc"}]).query["sort"] == [{"title": "asc"}]

    def test_item_positions(self, index, client, populated):
        client.search.return_value = response(hit("Article_1", "Article"), total=25)
        page = ResultList(index, "x", populated).page(3)

        assert page.total_items == 25
        assert page.first_item == 21
        assert page.last_item == 25

    def test_empty_positions(self, index, client, store):
        client.search.return_value = response()
        results = ResultList(index, "x", store)
        assert results.total_items == 0
        assert results.first_item == 0
        assert results.last_item == 0

    def test_legacy_integer_total(self, index, client, store):
        client.search.return_value = {"hits": {"total": 7, "hits": []}}
        assert ResultList(index, "x", store).total_items == 7


class TestAccess:
    @pytest.fixture
    def results(self, index, client, populated):
        client.search.return_value = response(hit("Article_1", "Article"), hit("Article_2", "Article"))
        return ResultList(index, "x", populated)

    def test_sequence_protocol(self, results, populated):
        assert len(results) == 2
        assert results[1].id == 2
        assert [r.id for r in results[:1]] == [1]
        assert populated.get_by_id("Article", 1) in results
        assert Record("Article", id=9) not in results

    def test_helpers(self, results):
        assert results.ids() == ["Article_1", "Article_2"]
        assert results.first().id == 1
        assert results.last().id == 2
        assert results.map() == {1: "Hello", 2: "World"}
        assert results.column("title") == ["Hello", "World"]
        assert results.find("title", "World").id == 2
        assert results.find("title", "Nope") is None

    def test_each(self, results):
        seen = []
        assert results.each(lambda r: seen.append(r.id)) is results
        assert seen == [1, 2]

    @pytest.mark.parametrize("mutate", [
        lambda r: r.__setitem__(0, None),
        lambda r: r.__delitem__(0),
        lambda r: r.add(None),
        lambda r: r.remove(None),
        lambda r: r.append(None),
        lambda r: r.insert(0, None),
    ])
    def test_read_only(self, results, mutate):
        with pytest.raises(ReadOnlyResultError):
            mutate(results)


class TestSearchErrors:
    def test_error_without_logger_propagates(self, index, client, store):
        client.search.side_effect = EsConnectionError("down")
        with pytest.raises(SearchEngineError):
            list(ResultList(index, "x", store))

    def test_error_with_logger_gives_empty_results(self, index, client, store):
        client.search.side_effect = EsConnectionError("down")
        logger = MagicMock()
        results = ResultList(index, "x", store, logger=logger)

        assert list(results) == []
        assert results.total_items == 0
        logger.warning.assert_called_once()
