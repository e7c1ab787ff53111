"""Shared test fixtures: an in-memory thought store and stub Bedrock clients."""

import json
import math
import threading
from unittest.mock import MagicMock

import pytest

from thoughtgraph.models.core import Connection, Thought
from thoughtgraph.services.embedder import Embedder
from thoughtgraph.utils.config import BedrockEmbedConfig, BedrockLLMConfig, PipelineConfig, SearchConfig
from thoughtgraph.utils.opensearch_client import OpenSearchError
from thoughtgraph.utils.timestamp_utils import parse_datetime

DIMENSION = 3


def _cosine(a, b):
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class FakeStore:
    """In-memory stand-in for OpenSearchClient with the same method surface."""

    def __init__(self):
        self.thoughts = {}
        self.connections = {}
        self.fail_on = set()
        self._lock = threading.Lock()

    def _check(self, operation):
        if operation in self.fail_on:
            raise OpenSearchError(f'{operation} rejected')

    def add(self, thought: Thought) -> Thought:
        self.thoughts[thought.id] = thought.to_document()
        return thought

    def insert_thought(self, thought):
        self._check('insert_thought')
        self.thoughts[thought.id] = thought.to_document()

    def update_thought(self, thought_id, fields):
        self._check('update_thought')
        if thought_id not in self.thoughts:
            raise OpenSearchError(f'Thought not found for update: {thought_id}')
        self.thoughts[thought_id].update(fields)

    def get_thought(self, thought_id):
        self._check('get_thought')
        doc = self.thoughts.get(thought_id)
        return Thought.from_document(dict(doc)) if doc else None

    def _matches(self, doc, user_id, filters, include_archived=False):
        if doc['user_id'] != user_id or (doc['status'] == 'archived' and not include_archived):
            return False
        if filters is None:
            return True
        if filters.type and doc['type'] != filters.type:
            return False
        if filters.priority is not None and doc['priority'] != filters.priority:
            return False
        if filters.category and filters.category not in doc['categories']:
            return False
        if filters.status and doc['status'] != filters.status:
            return False
        created = parse_datetime(doc['created_at'])
        if filters.date_from and created < filters.date_from:
            return False
        if filters.date_to and created > filters.date_to:
            return False
        return True

    def vector_search(self, user_id, query_vector, filters=None, top_k=20, exclude_id=None, include_embedding=False):
        self._check('vector_search')
        rows = []
        for thought_id, doc in self.thoughts.items():
            if thought_id == exclude_id or not doc.get('embedding') or not self._matches(doc, user_id, filters):
                continue
            document = dict(doc)
            if not include_embedding:
                document.pop('embedding')
            rows.append({'id': thought_id, 'score': _cosine(query_vector, doc['embedding']), 'document': document})
        rows.sort(key=lambda row: row['score'], reverse=True)
        return rows[:top_k]

    def keyword_search(self, user_id, query_text, filters=None, top_k=20):
        self._check('keyword_search')
        terms = query_text.lower().split()
        rows = []
        for thought_id, doc in self.thoughts.items():
            if not self._matches(doc, user_id, filters):
                continue
            text = ' '.join(doc.get(f) or '' for f in ('summary', 'cleaned_text', 'raw_transcript')).lower()
            score = sum(text.count(term) for term in terms)
            if score:
                document = {k: v for k, v in doc.items() if k != 'embedding'}
                rows.append({'id': thought_id, 'score': float(score), 'document': document})
        rows.sort(key=lambda row: row['score'], reverse=True)
        return rows[:top_k]

    def list_thoughts(self, user_id, filters=None, limit=1000):
        self._check('list_thoughts')
        docs = [doc for doc in self.thoughts.values() if self._matches(doc, user_id, filters, include_archived=True)]
        docs.sort(key=lambda doc: doc['created_at'], reverse=True)
        return [Thought.from_document({k: v for k, v in doc.items() if k != 'embedding'}) for doc in docs[:limit]]

    def upsert_connection(self, connection):
        self._check('upsert_connection')
        with self._lock:
            existing = self.connections.get(connection.key)
            if existing is None:
                self.connections[connection.key] = connection.to_document()
                return 'created'
            if existing['similarity'] == connection.similarity:
                return 'noop'
            existing['similarity'] = connection.similarity
            return 'updated'

    def get_connections(self, user_id, thought_id, limit=50):
        docs = [
            doc for doc in self.connections.values()
            if doc['user_id'] == user_id and thought_id in (doc['thought_a_id'], doc['thought_b_id'])
        ]
        docs.sort(key=lambda doc: doc['similarity'], reverse=True)
        return [Connection.from_document(doc) for doc in docs[:limit]]


class StubEmbed:
    """BedrockEmbed stand-in returning vectors from a lookup table."""

    def __init__(self, vectors=None, default=None, fail=False):
        self.vectors = vectors or {}
        self.default = default
        self.fail = fail
        self.calls = []

    def _lookup(self, text):
        from thoughtgraph.utils.bedrock_embed import BedrockEmbedError

        self.calls.append(text)
        if self.fail:
            raise BedrockEmbedError('service down')
        for key, vector in self.vectors.items():
            if key in text:
                return vector
        if self.default is None:
            raise BedrockEmbedError('no vector for text')
        return self.default

    def embed_document(self, text):
        return self._lookup(text)

    def embed_query(self, text):
        return self._lookup(text)


def llm_returning(*responses):
    """MagicMock BedrockLLM whose generate_response yields the given texts in order."""
    llm = MagicMock()
    llm.generate_response.side_effect = [(r if isinstance(r, str) else json.dumps(r), None) for r in responses]
    return llm


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def make_llm():
    return llm_returning


@pytest.fixture
def llm_config():
    return BedrockLLMConfig(region='us-east-1',
                            model_id='extraction-model',
                            relevance_model_id='relevance-model',
                            max_tokens=1024,
                            temperature=0.0,
                            timeout=5.0,
                            retry_attempts=1,
                            retry_delay=0.0)


@pytest.fixture
def embed_config():
    return BedrockEmbedConfig(region='us-east-1',
                              model_id='amazon.titan-embed-text-v2:0',
                              dimension=DIMENSION,
                              timeout=5.0,
                              retry_attempts=1,
                              retry_delay=0.0)


@pytest.fixture
def pipeline_config():
    return PipelineConfig(relevance_threshold=0.70,
                          connection_threshold=0.82,
                          connection_top_k=5,
                          max_workers=2,
                          default_language='cs')


@pytest.fixture
def search_config():
    return SearchConfig(rrf_k=60, default_limit=20)


@pytest.fixture
def make_embedder(embed_config):

    def _make(**kwargs):
        return Embedder(embed=StubEmbed(**kwargs), embed_config=embed_config)

    return _make
