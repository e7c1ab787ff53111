"""
OpenSearch client wrapper for the thought store: keyed writes, k-NN and full-text search,
and atomic connection upserts.
"""

import time
from typing import Any, Dict, List, Optional

import boto3
from opensearchpy import OpenSearch, RequestsHttpConnection
from opensearchpy.exceptions import NotFoundError, OpenSearchException
from requests_aws4auth import AWS4Auth

from ..models.core import Connection, SearchFilters, Thought
from .config import OpenSearchConfig
from .logging_config import get_logger
from .timestamp_utils import to_iso

logger = get_logger(__name__)

TEXT_FIELDS = ['summary', 'cleaned_text', 'raw_transcript']


class OpenSearchError(Exception):
    """Custom exception for OpenSearch errors."""
    pass


def build_filter_clauses(user_id: str,
                         filters: Optional[SearchFilters] = None,
                         include_archived: bool = False) -> Dict[str, List[Dict[str, Any]]]:
    """Build the bool-query clauses shared by keyword search, vector search and listing.

    Every query is scoped to the user and, unless ``include_archived`` is set,
    excludes archived thoughts; the optional filters add equality terms and a
    creation-time range.

    Returns:
        Dict with 'filter' and 'must_not' clause lists
    """
    clauses: List[Dict[str, Any]] = [{'term': {'user_id': user_id}}]
    must_not: List[Dict[str, Any]] = [] if include_archived else [{'term': {'status': 'archived'}}]

    if filters is not None:
        if filters.type:
            clauses.append({'term': {'type': filters.type}})
        if filters.priority is not None:
            clauses.append({'term': {'priority': filters.priority}})
        if filters.category:
            clauses.append({'term': {'categories': filters.category}})
        if filters.status:
            clauses.append({'term': {'status': filters.status}})

        created_range = {}
        if filters.date_from is not None:
            created_range['gte'] = to_iso(filters.date_from)
        if filters.date_to is not None:
            created_range['lte'] = to_iso(filters.date_to)
        if created_range:
            clauses.append({'range': {'created_at': created_range}})

    return {'filter': clauses, 'must_not': must_not}


def _hits(response: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [{'id': hit['_id'], 'score': hit['_score'], 'document': hit['_source']} for hit in response['hits']['hits']]


class OpenSearchClient:
    """OpenSearch client with AWS authentication and error handling."""

    def __init__(self, config: OpenSearchConfig, client: Optional[Any] = None):
        """
        Initialize OpenSearch client.

        Args:
            config: OpenSearchConfig instance with connection parameters
            client: Pre-built OpenSearch client (tests inject a stub)
        """
        self.config = config
        self.thought_index = config.index_name
        self.connection_index = f'{config.index_name}_connections'

        if client is not None:
            self.client = client
        else:
            credentials = boto3.Session().get_credentials()
            auth = AWS4Auth(region=config.region, service=config.service, refreshable_credentials=credentials)
            endpoint = config.endpoint
            if '://' in endpoint:
                # Remove protocol if present
                endpoint = endpoint.split('://', 1)[1]

            self.client = OpenSearch(hosts=[{
                'host': endpoint,
                'port': config.port
            }],
                                     http_auth=auth,
                                     use_ssl=True,
                                     verify_certs=True,
                                     timeout=config.timeout,
                                     connection_class=RequestsHttpConnection)

        logger.info(f'Initialized OpenSearch client for endpoint: {config.endpoint}')

    def _index_body(self, index_type: str) -> Dict[str, Any]:
        if index_type == 'thought':
            text = {'type': 'text', 'analyzer': self.config.text_analyzer}
            return {
                'mappings': {
                    'properties': {
                        'id': {'type': 'keyword'},
                        'user_id': {'type': 'keyword'},
                        'raw_transcript': text,
                        'cleaned_text': text,
                        'summary': text,
                        'type': {'type': 'keyword'},
                        'priority': {'type': 'integer'},
                        'categories': {'type': 'keyword'},
                        'sentiment': {'type': 'float'},
                        'entities': {'type': 'object', 'enabled': False},
                        'action_items': {'type': 'text'},
                        'deadline': {'type': 'date'},
                        'status': {'type': 'keyword'},
                        'language': {'type': 'keyword'},
                        'source': {'type': 'keyword'},
                        'embedding': {
                            'type': 'knn_vector',
                            'dimension': self.config.dimension,
                            'method': {
                                'name': 'hnsw',
                                'space_type': 'cosinesimil',
                                'engine': 'lucene'
                            }
                        },
                        'created_at': {'type': 'date'},
                        'updated_at': {'type': 'date'}
                    }
                },
                'settings': {
                    'index': {
                        'knn': True
                    }
                }
            }

        return {
            'mappings': {
                'properties': {
                    'thought_a_id': {'type': 'keyword'},
                    'thought_b_id': {'type': 'keyword'},
                    'user_id': {'type': 'keyword'},
                    'similarity': {'type': 'float'},
                    'connection_type': {'type': 'keyword'},
                    'created_at': {'type': 'date'},
                    'updated_at': {'type': 'date'}
                }
            }
        }

    def create_index_if_not_exists(self, index_type: str = 'thought') -> str:
        """
        Create index if it doesn't exist.

        Args:
            index_type: 'thought' or 'connection'

        Returns:
            'exists', 'created' or 'failed'
        """
        index_name = self.thought_index if index_type == 'thought' else self.connection_index

        try:
            if self.client.indices.exists(index=index_name):
                logger.debug(f'Index {index_name} already exists')
                return 'exists'

            response = self.client.indices.create(index=index_name, body=self._index_body(index_type))
            if response.get('acknowledged', False):
                logger.info(f'Created index {index_name}')
                if self.config.index_sync_wait > 0:
                    logger.info(f'Waiting {self.config.index_sync_wait}s for index {index_name} sync-up...')
                    time.sleep(self.config.index_sync_wait)
                return 'created'
            return 'failed'

        except OpenSearchException as e:
            logger.error(f'Error creating index {index_name}: {e}')
            raise OpenSearchError(f'Failed to create index: {e}')

    def create_indexes(self) -> None:
        self.create_index_if_not_exists('thought')
        self.create_index_if_not_exists('connection')

    def insert_thought(self, thought: Thought) -> None:
        """
        Index a new thought keyed by its id.

        Raises:
            OpenSearchError: If the store rejects the write
        """
        try:
            response = self.client.index(index=self.thought_index, id=thought.id, body=thought.to_document())
        except OpenSearchException as e:
            logger.error(f'Error indexing thought {thought.id}: {e}')
            raise OpenSearchError(f'Failed to index thought: {e}')

        if response.get('result') not in ('created', 'updated'):
            raise OpenSearchError(f'Unexpected result indexing thought {thought.id}: {response}')
        logger.debug(f'Indexed thought {thought.id}')

    def update_thought(self, thought_id: str, fields: Dict[str, Any]) -> None:
        """
        Partially update an existing thought; fields not given are untouched.

        Raises:
            OpenSearchError: If the thought is missing or the store rejects the write
        """
        try:
            self.client.update(index=self.thought_index, id=thought_id, body={'doc': fields})
            logger.debug(f'Updated thought {thought_id} fields: {sorted(fields)}')
        except NotFoundError as e:
            logger.error(f'Thought {thought_id} not found for update')
            raise OpenSearchError(f'Thought not found for update: {e}')
        except OpenSearchException as e:
            logger.error(f'Error updating thought {thought_id}: {e}')
            raise OpenSearchError(f'Failed to update thought: {e}')

    def get_thought(self, thought_id: str) -> Optional[Thought]:
        """
        Load a thought by id, embedding included.

        Returns:
            Thought if found, None otherwise
        """
        try:
            response = self.client.get(index=self.thought_index, id=thought_id)
        except NotFoundError:
            return None
        except OpenSearchException as e:
            logger.error(f'Error getting thought {thought_id}: {e}')
            raise OpenSearchError(f'Failed to get thought: {e}')

        if not response.get('found', False):
            return None
        document = dict(response['_source'])
        document.setdefault('id', response['_id'])
        return Thought.from_document(document)

    def vector_search(self,
                      user_id: str,
                      query_vector: List[float],
                      filters: Optional[SearchFilters] = None,
                      top_k: int = 20,
                      exclude_id: Optional[str] = None,
                      include_embedding: bool = False) -> List[Dict[str, Any]]:
        """
        Perform k-NN search ordered by ascending vector distance.

        Args:
            user_id: User ID to scope results
            query_vector: Query vector for similarity search
            filters: Optional equality/date filters
            top_k: Number of results to return
            exclude_id: Thought id to leave out (the query thought itself)
            include_embedding: Return stored vectors in the documents

        Returns:
            List of {'id', 'score', 'document'} dicts, best match first
        """
        clauses = build_filter_clauses(user_id, filters)
        if exclude_id:
            clauses['must_not'].append({'ids': {'values': [exclude_id]}})

        search_body = {
            'size': top_k,
            'query': {
                'knn': {
                    'embedding': {
                        'vector': query_vector,
                        'k': top_k,
                        'filter': {
                            'bool': clauses
                        }
                    }
                }
            }
        }
        if not include_embedding:
            search_body['_source'] = {'excludes': ['embedding']}

        try:
            response = self.client.search(index=self.thought_index, body=search_body)
        except OpenSearchException as e:
            logger.error(f'Error performing vector search: {e}')
            raise OpenSearchError(f'Vector search failed: {e}')

        results = _hits(response)
        logger.debug(f'Vector search returned {len(results)} results for user {user_id}')
        return results

    def keyword_search(self,
                       user_id: str,
                       query_text: str,
                       filters: Optional[SearchFilters] = None,
                       top_k: int = 20) -> List[Dict[str, Any]]:
        """Perform ranked full-text search over the thought's text fields.

        Returns:
            List of {'id', 'score', 'document'} dicts, highest relevance first
        """
        clauses = build_filter_clauses(user_id, filters)
        search_body = {
            'size': top_k,
            'query': {
                'bool': {
                    'must': [{
                        'multi_match': {
                            'query': query_text,
                            'fields': TEXT_FIELDS
                        }
                    }],
                    **clauses
                }
            },
            '_source': {
                'excludes': ['embedding']
            }
        }

        try:
            response = self.client.search(index=self.thought_index, body=search_body)
        except OpenSearchException as e:
            logger.error(f'Error performing keyword search: {e}')
            raise OpenSearchError(f'Keyword search failed: {e}')

        results = _hits(response)
        logger.debug(f'Keyword search returned {len(results)} results for user {user_id}')
        return results

    def list_thoughts(self,
                      user_id: str,
                      filters: Optional[SearchFilters] = None,
                      limit: int = 1000) -> List[Thought]:
        """
        List a user's thoughts, newest first, archived ones included.

        Embeddings are not returned.
        """
        search_body = {
            'size': limit,
            'query': {
                'bool': build_filter_clauses(user_id, filters, include_archived=True)
            },
            'sort': [{
                'created_at': {
                    'order': 'desc'
                }
            }],
            '_source': {
                'excludes': ['embedding']
            }
        }
        try:
            response = self.client.search(index=self.thought_index, body=search_body)
        except OpenSearchException as e:
            logger.error(f'Error listing thoughts for user {user_id}: {e}')
            raise OpenSearchError(f'Failed to list thoughts: {e}')

        return [Thought.from_document({'id': row['id'], **row['document']}) for row in _hits(response)]

    def upsert_connection(self, connection: Connection) -> str:
        """
        Insert a connection or refresh the similarity of the existing one.

        The document id is the canonical pair key, so the single-document
        update is the conflict-resolution point for concurrent discoveries.

        Returns:
            The store's result ('created', 'updated' or 'noop')
        """
        body = {
            'doc': {
                'similarity': connection.similarity,
                'updated_at': to_iso(connection.updated_at)
            },
            'upsert': connection.to_document()
        }
        try:
            response = self.client.update(index=self.connection_index, id=connection.key, body=body, retry_on_conflict=3)
        except OpenSearchException as e:
            logger.error(f'Error upserting connection {connection.key}: {e}')
            raise OpenSearchError(f'Failed to upsert connection: {e}')

        return response.get('result', '')

    def get_connections(self, user_id: str, thought_id: str, limit: int = 50) -> List[Connection]:
        """List connections touching a thought, strongest first."""
        search_body = {
            'size': limit,
            'query': {
                'bool': {
                    'filter': [{'term': {'user_id': user_id}}],
                    'should': [{'term': {'thought_a_id': thought_id}}, {'term': {'thought_b_id': thought_id}}],
                    'minimum_should_match': 1
                }
            },
            'sort': [{'similarity': {'order': 'desc'}}]
        }
        try:
            response = self.client.search(index=self.connection_index, body=search_body)
        except OpenSearchException as e:
            logger.error(f'Error listing connections for {thought_id}: {e}')
            raise OpenSearchError(f'Failed to list connections: {e}')

        return [Connection.from_document(hit['_source']) for hit in response['hits']['hits']]

    def health_check(self) -> bool:
        """
        Perform a health check on the OpenSearch service.

        Returns:
            True if service is healthy, False otherwise
        """
        try:
            response = self.client.indices.exists(index=self.thought_index)
            return response in [True, False]

        except Exception as e:
            logger.error(f'OpenSearch health check failed: {e}')
            return False
