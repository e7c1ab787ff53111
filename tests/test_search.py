"""Tests for lexical, semantic and fused hybrid search."""

from datetime import datetime, timedelta, timezone

import pytest

from thoughtgraph.models.core import SearchFilters, Thought
from thoughtgraph.services.search import HybridSearch, SearchError, reciprocal_rank_fusion


def _row(thought_id, **document):
    document.setdefault('cleaned_text', f'text of {thought_id}')
    return {'id': thought_id, 'score': 1.0, 'document': document}


# -- reciprocal_rank_fusion --------------------------------------------------


def test_thought_in_both_lists_outranks_single_list() -> None:
    results = reciprocal_rank_fusion([_row('x'), _row('y')], [_row('x')], limit=10)

    assert [r.id for r in results] == ['x', 'y']
    assert results[0].score == pytest.approx(2 / 61)
    assert results[0].semantic_rank == 1
    assert results[0].text_rank == 1
    assert results[1].score == pytest.approx(1 / 62)
    assert results[1].text_rank is None


def test_equal_scores_are_ordered_by_id() -> None:
    results = reciprocal_rank_fusion([_row('b')], [_row('a')], limit=10)

    assert [r.id for r in results] == ['a', 'b']
    assert results[0].score == results[1].score == pytest.approx(1 / 61)


def test_fusion_respects_limit_and_k() -> None:
    results = reciprocal_rank_fusion([_row('a'), _row('b'), _row('c')], [], limit=2, k=10)

    assert [r.id for r in results] == ['a', 'b']
    assert results[0].score == pytest.approx(1 / 11)


def test_fusion_of_empty_lists() -> None:
    assert reciprocal_rank_fusion([], [], limit=10) == []


def test_result_carries_document_attributes() -> None:
    row = _row('a', summary='Buy milk', type='task', priority=4, categories=['home'],
               deadline='2026-10-20T09:00:00+00:00')
    result = reciprocal_rank_fusion([], [row], limit=5)[0]

    assert result.summary == 'Buy milk'
    assert result.type == 'task'
    assert result.priority == 4
    assert result.categories == ['home']
    assert result.deadline == datetime(2026, 10, 20, 9, 0, tzinfo=timezone.utc)


# -- HybridSearch ------------------------------------------------------------

MILK = [1.0, 0.0, 0.0]
GARDEN = [0.0, 1.0, 0.0]


@pytest.fixture
def seeded(store):
    store.add(Thought(user_id='u1', raw_transcript='buy milk tomorrow', id='milk', type='task', embedding=MILK))
    store.add(Thought(user_id='u1', raw_transcript='plant tomatoes in the garden', id='garden', embedding=GARDEN))
    store.add(Thought(user_id='u1', raw_transcript='milk the idea for the blog', id='blog', type='idea'))
    store.add(Thought(user_id='u2', raw_transcript='buy milk and bread', id='other-user', embedding=MILK))
    store.add(Thought(user_id='u1', raw_transcript='milk went sour', id='archived', status='archived',
                      embedding=MILK))
    return store


def test_hybrid_search_fuses_both_modes(seeded, make_embedder, search_config) -> None:
    search = HybridSearch(seeded, make_embedder(vectors={'milk': MILK}), search_config)

    results = search.search('u1', 'milk')

    ids = [r.id for r in results]
    assert ids[0] == 'milk'
    assert results[0].semantic_rank == 1
    assert results[0].text_rank is not None
    assert 'other-user' not in ids
    assert 'archived' not in ids
    assert 'blog' in ids


def test_lexical_fallback_without_query_embedding(seeded, make_embedder, search_config) -> None:
    search = HybridSearch(seeded, make_embedder(fail=True), search_config)

    results = search.search('u1', 'milk')

    assert {r.id for r in results} == {'milk', 'blog'}
    assert all(r.semantic_rank is None for r in results)
    assert all(r.text_rank is not None for r in results)


def test_filters_apply_to_both_searches(seeded, make_embedder, search_config) -> None:
    search = HybridSearch(seeded, make_embedder(vectors={'milk': MILK}), search_config)

    results = search.search('u1', 'milk', filters=SearchFilters(type='idea'))

    assert [r.id for r in results] == ['blog']


def test_date_range_filter(seeded, make_embedder, search_config) -> None:
    search = HybridSearch(seeded, make_embedder(fail=True), search_config)
    future = datetime.now(timezone.utc) + timedelta(days=1)

    assert search.search('u1', 'milk', filters=SearchFilters(date_from=future)) == []


def test_blank_query_returns_nothing(seeded, make_embedder, search_config) -> None:
    embedder = make_embedder(default=MILK)
    search = HybridSearch(seeded, embedder, search_config)

    assert search.search('u1', '   ') == []
    assert embedder.embed_client.calls == []


def test_no_matches_returns_empty(seeded, make_embedder, search_config) -> None:
    search = HybridSearch(seeded, make_embedder(fail=True), search_config)

    assert search.search('u1', 'zebra') == []


def test_limit_bounds_results(seeded, make_embedder, search_config) -> None:
    search = HybridSearch(seeded, make_embedder(vectors={'milk': MILK}), search_config)

    assert len(search.search('u1', 'milk', limit=1)) == 1


def test_store_failure_raises_search_error(seeded, make_embedder, search_config) -> None:
    seeded.fail_on.add('vector_search')
    search = HybridSearch(seeded, make_embedder(vectors={'milk': MILK}), search_config)

    with pytest.raises(SearchError):
        search.search('u1', 'milk')
