"""
Core data models for thought capture and retrieval.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..utils.timestamp_utils import parse_datetime, to_iso, utc_now

THOUGHT_TYPES = ('task', 'idea', 'note', 'reminder', 'journal')
THOUGHT_STATUSES = ('active', 'done', 'snoozed', 'archived')
ENTITY_KINDS = ('people', 'places', 'projects')

DEFAULT_TYPE = 'note'
DEFAULT_PRIORITY = 3
MIN_PRIORITY = 1
MAX_PRIORITY = 5
SUMMARY_FALLBACK_LENGTH = 200


def empty_entities() -> Dict[str, List[str]]:
    return {kind: [] for kind in ENTITY_KINDS}


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Extraction:
    """Structured attributes extracted from a transcript by the language model."""
    type: str = DEFAULT_TYPE
    priority: int = DEFAULT_PRIORITY
    categories: List[str] = field(default_factory=list)
    entities: Dict[str, List[str]] = field(default_factory=empty_entities)
    deadline: Optional[datetime] = None
    sentiment: float = 0.0
    action_items: List[str] = field(default_factory=list)
    summary: str = ''

    @classmethod
    def defaults(cls, transcript: str) -> 'Extraction':
        """Safe defaults used when the model output cannot be trusted."""
        return cls(summary=transcript[:SUMMARY_FALLBACK_LENGTH])


@dataclass
class Classification:
    """Outcome of the relevance filter plus optional extraction."""
    relevant: bool
    confidence: float
    extraction: Optional[Extraction] = None


@dataclass
class Thought:
    """A captured unit of user input.

    Only the enrichable fields (see ``ENRICHABLE_FIELDS``) are ever written by
    the pipeline on an existing record; status, transcript, id and creation
    time belong to whoever created the thought.
    """
    user_id: str
    raw_transcript: str
    id: str = field(default_factory=new_id)
    cleaned_text: str = ''
    summary: Optional[str] = None
    type: str = DEFAULT_TYPE
    priority: int = DEFAULT_PRIORITY
    categories: List[str] = field(default_factory=list)
    sentiment: Optional[float] = None
    entities: Dict[str, List[str]] = field(default_factory=empty_entities)
    action_items: List[str] = field(default_factory=list)
    deadline: Optional[datetime] = None
    status: str = 'active'
    embedding: Optional[List[float]] = None
    language: str = 'cs'
    source: str = 'voice'
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    ENRICHABLE_FIELDS = ('cleaned_text', 'summary', 'type', 'priority', 'categories', 'sentiment', 'entities',
                         'action_items', 'deadline')

    def __post_init__(self):
        if not self.cleaned_text:
            self.cleaned_text = self.raw_transcript
        if not (self.raw_transcript or '').strip() and not (self.cleaned_text or '').strip():
            raise ValueError('A thought needs a non-empty transcript or cleaned text')

    def apply_extraction(self, extraction: Extraction) -> None:
        """Merge extracted attributes into the enrichable fields."""
        self.summary = extraction.summary or None
        self.cleaned_text = extraction.summary or self.raw_transcript
        self.type = extraction.type
        self.priority = extraction.priority
        self.categories = list(extraction.categories)
        self.sentiment = extraction.sentiment
        self.entities = {kind: list(names) for kind, names in extraction.entities.items()}
        self.action_items = list(extraction.action_items)
        self.deadline = extraction.deadline
        self.updated_at = utc_now()

    def enrichment_document(self) -> Dict[str, Any]:
        """Partial document holding just the enrichable fields."""
        document = self.to_document()
        partial = {name: document[name] for name in self.ENRICHABLE_FIELDS}
        partial['updated_at'] = document['updated_at']
        return partial

    def to_document(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'raw_transcript': self.raw_transcript,
            'cleaned_text': self.cleaned_text,
            'summary': self.summary,
            'type': self.type,
            'priority': self.priority,
            'categories': self.categories,
            'sentiment': self.sentiment,
            'entities': self.entities,
            'action_items': self.action_items,
            'deadline': to_iso(self.deadline),
            'status': self.status,
            'embedding': self.embedding,
            'language': self.language,
            'source': self.source,
            'created_at': to_iso(self.created_at),
            'updated_at': to_iso(self.updated_at),
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> 'Thought':
        entities = empty_entities()
        entities.update({k: list(v) for k, v in (doc.get('entities') or {}).items() if k in entities})
        return cls(id=doc['id'],
                   user_id=doc.get('user_id', ''),
                   raw_transcript=doc.get('raw_transcript', ''),
                   cleaned_text=doc.get('cleaned_text', ''),
                   summary=doc.get('summary'),
                   type=doc.get('type', DEFAULT_TYPE),
                   priority=int(doc.get('priority', DEFAULT_PRIORITY)),
                   categories=list(doc.get('categories') or []),
                   sentiment=doc.get('sentiment'),
                   entities=entities,
                   action_items=list(doc.get('action_items') or []),
                   deadline=parse_datetime(doc.get('deadline')),
                   status=doc.get('status', 'active'),
                   embedding=doc.get('embedding'),
                   language=doc.get('language', 'cs'),
                   source=doc.get('source', 'voice'),
                   created_at=parse_datetime(doc.get('created_at')) or utc_now(),
                   updated_at=parse_datetime(doc.get('updated_at')) or utc_now())


@dataclass
class Connection:
    """Undirected similarity edge between two thoughts of the same user.

    Endpoints are stored in canonical order so ``(a, b)`` and ``(b, a)``
    address the same edge.
    """
    thought_a_id: str
    thought_b_id: str
    user_id: str
    similarity: float
    connection_type: str = 'semantic'
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @classmethod
    def between(cls, first_id: str, second_id: str, user_id: str, similarity: float) -> 'Connection':
        a, b = canonical_pair(first_id, second_id)
        return cls(thought_a_id=a, thought_b_id=b, user_id=user_id, similarity=similarity)

    @property
    def key(self) -> str:
        return f'{self.thought_a_id}:{self.thought_b_id}'

    def other(self, thought_id: str) -> str:
        return self.thought_b_id if thought_id == self.thought_a_id else self.thought_a_id

    def to_document(self) -> Dict[str, Any]:
        return {
            'thought_a_id': self.thought_a_id,
            'thought_b_id': self.thought_b_id,
            'user_id': self.user_id,
            'similarity': self.similarity,
            'connection_type': self.connection_type,
            'created_at': to_iso(self.created_at),
            'updated_at': to_iso(self.updated_at),
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> 'Connection':
        return cls(thought_a_id=doc['thought_a_id'],
                   thought_b_id=doc['thought_b_id'],
                   user_id=doc.get('user_id', ''),
                   similarity=float(doc.get('similarity', 0.0)),
                   connection_type=doc.get('connection_type', 'semantic'),
                   created_at=parse_datetime(doc.get('created_at')) or utc_now(),
                   updated_at=parse_datetime(doc.get('updated_at')) or utc_now())


def canonical_pair(first_id: str, second_id: str):
    """Order two thought ids so the lower id comes first."""
    return (first_id, second_id) if first_id < second_id else (second_id, first_id)


@dataclass
class SearchFilters:
    """Optional equality and date-range filters shared by both search modes."""
    type: Optional[str] = None
    priority: Optional[int] = None
    category: Optional[str] = None
    status: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None


@dataclass
class SearchResult:
    """A fused hybrid search hit."""
    id: str
    summary: Optional[str]
    cleaned_text: str
    type: str
    priority: int
    categories: List[str]
    status: str
    deadline: Optional[datetime]
    created_at: Optional[datetime]
    score: float
    semantic_rank: Optional[int] = None
    text_rank: Optional[int] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any], score: float, semantic_rank: Optional[int],
                 text_rank: Optional[int]) -> 'SearchResult':
        doc = row['document']
        return cls(id=row['id'],
                   summary=doc.get('summary'),
                   cleaned_text=doc.get('cleaned_text', ''),
                   type=doc.get('type', DEFAULT_TYPE),
                   priority=int(doc.get('priority', DEFAULT_PRIORITY)),
                   categories=list(doc.get('categories') or []),
                   status=doc.get('status', 'active'),
                   deadline=parse_datetime(doc.get('deadline')),
                   created_at=parse_datetime(doc.get('created_at')),
                   score=score,
                   semantic_rank=semantic_rank,
                   text_rank=text_rank)


@dataclass
class ProcessResult:
    """Summary of one pipeline run, returned to capture and notification callers."""
    thought_id: str
    relevant: bool
    confidence: float
    extraction: Optional[Extraction]
    embedding_generated: bool
    connections_found: int
