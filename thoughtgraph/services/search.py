"""
Hybrid retrieval over a user's thoughts: full-text and k-NN search fused with Reciprocal Rank Fusion.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Sequence

from ..models.core import SearchFilters, SearchResult
from ..utils.config import SearchConfig, config
from ..utils.logging_config import get_logger
from ..utils.opensearch_client import OpenSearchClient, OpenSearchError
from .embedder import Embedder

logger = get_logger(__name__)

RRF_K = 60


class SearchError(Exception):
    """Custom exception for search errors."""
    pass


def reciprocal_rank_fusion(semantic_rows: Sequence[Dict[str, Any]],
                           text_rows: Sequence[Dict[str, Any]],
                           limit: int,
                           k: int = RRF_K) -> List[SearchResult]:
    """Fuse two ranked lists.

    Each row at 1-based rank r contributes 1 / (k + r); a thought in both lists
    sums both contributions. Equal scores are ordered by thought id.
    """
    fused: Dict[str, Dict[str, Any]] = {}

    for rank, row in enumerate(semantic_rows, start=1):
        entry = fused.setdefault(row['id'], {'row': row, 'score': 0.0, 'semantic_rank': None, 'text_rank': None})
        entry['score'] += 1.0 / (k + rank)
        entry['semantic_rank'] = rank

    for rank, row in enumerate(text_rows, start=1):
        entry = fused.setdefault(row['id'], {'row': row, 'score': 0.0, 'semantic_rank': None, 'text_rank': None})
        entry['score'] += 1.0 / (k + rank)
        entry['text_rank'] = rank

    ranked = sorted(fused.items(), key=lambda item: (-item[1]['score'], item[0]))
    return [
        SearchResult.from_row(entry['row'], entry['score'], entry['semantic_rank'], entry['text_rank'])
        for _, entry in ranked[:limit]
    ]


class LexicalSearch:
    """Ranked full-text search, best text-relevance score first."""

    def __init__(self, store: OpenSearchClient):
        self.store = store

    def search(self, user_id: str, query: str, filters: Optional[SearchFilters] = None, limit: int = 20) -> List[Dict]:
        return self.store.keyword_search(user_id=user_id, query_text=query, filters=filters, top_k=limit)


class SemanticSearch:
    """Ranked nearest-neighbour search, smallest vector distance first."""

    def __init__(self, store: OpenSearchClient):
        self.store = store

    def search(self,
               user_id: str,
               query_embedding: List[float],
               filters: Optional[SearchFilters] = None,
               limit: int = 20) -> List[Dict]:
        return self.store.vector_search(user_id=user_id, query_vector=query_embedding, filters=filters, top_k=limit)


class HybridSearch:
    """Run lexical and semantic search side by side and fuse their rankings."""

    def __init__(self,
                 store: OpenSearchClient,
                 embedder: Optional[Embedder] = None,
                 search_config: Optional[SearchConfig] = None):
        self.search_config = search_config or config.search
        self.embedder = embedder or Embedder()
        self.lexical = LexicalSearch(store)
        self.semantic = SemanticSearch(store)

    def search(self,
               user_id: str,
               query: str,
               filters: Optional[SearchFilters] = None,
               limit: Optional[int] = None) -> List[SearchResult]:
        """
        Search a user's thoughts.

        Args:
            user_id: Owner of the thoughts
            query: Non-empty query text
            filters: Optional filters applied to both searches
            limit: Maximum results per list and overall (config default if None)

        Returns:
            Fused results, best first, annotated with their per-list ranks

        Raises:
            SearchError: If the store query fails
        """
        if not query or not query.strip():
            return []
        limit = limit or self.search_config.default_limit

        query_embedding = self.embedder.embed_query(query)

        try:
            if query_embedding is not None:
                with ThreadPoolExecutor(max_workers=2, thread_name_prefix='hybrid-search') as pool:
                    semantic_future = pool.submit(self.semantic.search, user_id, query_embedding, filters, limit)
                    text_future = pool.submit(self.lexical.search, user_id, query, filters, limit)
                    semantic_rows = semantic_future.result()
                    text_rows = text_future.result()
            else:
                logger.info('Query embedding unavailable, falling back to lexical search')
                semantic_rows = []
                text_rows = self.lexical.search(user_id, query, filters, limit)
        except OpenSearchError as e:
            logger.error(f'Search failed for user {user_id}: {e}')
            raise SearchError(f'Thought search failed: {e}')

        results = reciprocal_rank_fusion(semantic_rows, text_rows, limit, self.search_config.rrf_k)
        logger.debug(f'Hybrid search returned {len(results)} results '
                     f'({len(semantic_rows)} semantic, {len(text_rows)} lexical) for user {user_id}')
        return results
