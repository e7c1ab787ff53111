"""
Bulk import of thoughts from JSON or CSV exports.
"""

import csv
import io
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..models.core import ENTITY_KINDS, MAX_PRIORITY, MIN_PRIORITY, THOUGHT_TYPES, Thought, empty_entities
from ..utils.logging_config import get_logger
from ..utils.opensearch_client import OpenSearchError
from ..utils.timestamp_utils import parse_datetime
from .ingestion_pipeline import IngestionError, IngestionPipeline

logger = get_logger(__name__)

LIST_SEPARATOR = ';'


class ImportFormatError(Exception):
    """Raised when an import file is neither valid JSON nor CSV."""
    pass


@dataclass
class ThoughtImport:
    """One row of an import file before validation.

    ``problems`` holds shape errors found while parsing (wrong value types,
    stray columns); validation reports them alongside its own checks.
    """
    raw_transcript: str
    cleaned_text: Optional[str] = None
    summary: Optional[str] = None
    type: Optional[str] = None
    priority: Optional[float] = None
    categories: Optional[List[str]] = None
    sentiment: Optional[float] = None
    entities: Optional[Dict[str, List[str]]] = None
    action_items: Optional[List[str]] = None
    deadline: Optional[str] = None
    language: Optional[str] = None
    source: Optional[str] = None
    problems: List[str] = field(default_factory=list)


@dataclass
class ImportResult:
    imported: int = 0
    errors: List[str] = field(default_factory=list)
    thought_ids: List[str] = field(default_factory=list)


def _optional_number(value: Any) -> Optional[float]:
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        return float('nan')
    try:
        return float(value)
    except (TypeError, ValueError):
        return float('nan')


def _split(value: str) -> Optional[List[str]]:
    if not value:
        return None
    return [part.strip() for part in value.split(LIST_SEPARATOR) if part.strip()]


def _text(item: Dict[str, Any], key: str, problems: List[str]) -> Optional[str]:
    value = item.get(key)
    if value is None or isinstance(value, str):
        return value
    problems.append(f'Field "{key}" must be a string')
    return None


def _string_list(item: Dict[str, Any], key: str, problems: List[str]) -> Optional[List[str]]:
    value = item.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        problems.append(f'Field "{key}" must be a list of strings')
        return None
    return value


def _json_row(item: Any) -> ThoughtImport:
    problems: List[str] = []
    if not isinstance(item, dict):
        return ThoughtImport(raw_transcript='', problems=['Row must be a JSON object'])

    raw = _text(item, 'rawTranscript', problems)
    cleaned = _text(item, 'cleanedText', problems)
    text = _text(item, 'text', problems)

    entities = item.get('entities')
    if entities is not None and not isinstance(entities, dict):
        problems.append('Field "entities" must be an object')
        entities = None

    return ThoughtImport(raw_transcript=raw or cleaned or text or '',
                         cleaned_text=cleaned,
                         summary=_text(item, 'summary', problems),
                         type=_text(item, 'type', problems),
                         priority=_optional_number(item.get('priority')),
                         categories=_string_list(item, 'categories', problems),
                         sentiment=_optional_number(item.get('sentiment')),
                         entities=entities,
                         action_items=_string_list(item, 'actionItems', problems),
                         deadline=_text(item, 'deadline', problems),
                         language=_text(item, 'language', problems),
                         source=_text(item, 'source', problems),
                         problems=problems)


def parse_json_import(content: str) -> List[ThoughtImport]:
    """Parse a JSON object or array of objects (camelCase export keys)."""
    parsed = json.loads(content)
    items = parsed if isinstance(parsed, list) else [parsed]
    return [_json_row(item) for item in items]


def parse_csv_import(content: str) -> List[ThoughtImport]:
    """Parse CSV with a header row; list columns are ';'-separated, entities is JSON."""
    reader = csv.DictReader(io.StringIO(content.strip()))
    rows = []
    for record in reader:
        # DictReader files surplus cells under the None key
        extra = [cell for cell in record.pop(None, None) or [] if cell and cell.strip()]
        row = {(k or '').strip(): (v or '').strip() for k, v in record.items()}
        if not any(row.values()) and not extra:
            continue

        problems = []
        if extra:
            problems.append(f'Row has {len(extra)} more values than the header has columns')

        entities = None
        if row.get('entities'):
            try:
                entities = json.loads(row['entities'])
            except json.JSONDecodeError:
                entities = None
            if not isinstance(entities, dict):
                problems.append('Column "entities" must hold a JSON object')
                entities = None

        rows.append(
            ThoughtImport(raw_transcript=row.get('rawTranscript') or row.get('cleanedText') or row.get('text') or '',
                          cleaned_text=row.get('cleanedText') or None,
                          summary=row.get('summary') or None,
                          type=row.get('type') or None,
                          priority=_optional_number(row.get('priority')),
                          categories=_split(row.get('categories', '')),
                          sentiment=_optional_number(row.get('sentiment')),
                          entities=entities,
                          action_items=_split(row.get('actionItems', '')),
                          deadline=row.get('deadline') or None,
                          language=row.get('language') or None,
                          source=row.get('source') or None,
                          problems=problems))
    return rows


def parse_import(content: str, filename: str = '') -> List[ThoughtImport]:
    """Pick the parser by extension; unknown extensions try JSON, then CSV."""
    name = filename.lower()
    try:
        if name.endswith('.json'):
            return parse_json_import(content)
        if name.endswith('.csv'):
            return parse_csv_import(content)
        try:
            return parse_json_import(content)
        except json.JSONDecodeError:
            return parse_csv_import(content)
    except (json.JSONDecodeError, csv.Error) as e:
        raise ImportFormatError(f'Failed to parse import file: {e}')


def validate_import(items: List[ThoughtImport]) -> Tuple[List[ThoughtImport], List[str]]:
    """Split rows into valid ones and human-readable errors (1-based row numbers)."""
    valid: List[ThoughtImport] = []
    errors: List[str] = []

    for index, item in enumerate(items, start=1):
        row_errors = [f'Row {index}: {problem}' for problem in item.problems]
        if not item.raw_transcript.strip() and not (item.cleaned_text or '').strip():
            row_errors.append(f'Row {index}: Missing text content (rawTranscript or cleanedText)')
        if item.type and item.type not in THOUGHT_TYPES:
            row_errors.append(f'Row {index}: Invalid type "{item.type}" (must be one of: {", ".join(THOUGHT_TYPES)})')
        if item.priority is not None and not (MIN_PRIORITY <= item.priority <= MAX_PRIORITY):
            row_errors.append(f'Row {index}: Priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}')
        if item.sentiment is not None and not (-1.0 <= item.sentiment <= 1.0):
            row_errors.append(f'Row {index}: Sentiment must be between -1 and 1')
        if item.deadline and parse_datetime(item.deadline) is None:
            row_errors.append(f'Row {index}: Invalid deadline date "{item.deadline}"')

        if row_errors:
            errors.extend(row_errors)
        else:
            valid.append(item)

    return valid, errors


def to_thought(user_id: str, item: ThoughtImport, default_language: str) -> Thought:
    entities = empty_entities()
    for kind in ENTITY_KINDS:
        names = (item.entities or {}).get(kind)
        if isinstance(names, list):
            entities[kind] = [str(name) for name in names]

    return Thought(user_id=user_id,
                   raw_transcript=item.raw_transcript or item.cleaned_text or '',
                   cleaned_text=item.cleaned_text or item.raw_transcript,
                   summary=item.summary,
                   type=item.type or 'note',
                   priority=int(item.priority) if item.priority is not None else 3,
                   categories=list(item.categories or []),
                   sentiment=item.sentiment,
                   entities=entities,
                   action_items=list(item.action_items or []),
                   deadline=parse_datetime(item.deadline),
                   language=item.language or default_language,
                   source=item.source or 'import')


class ThoughtImporter:
    """Store imported thoughts and optionally queue them for enrichment."""

    def __init__(self, pipeline: IngestionPipeline):
        self.pipeline = pipeline
        self.store = pipeline.store

    def import_thoughts(self, user_id: str, content: str, filename: str = '', process: bool = False) -> ImportResult:
        """
        Parse, validate and insert thoughts from an export file.

        Args:
            user_id: Owner of the imported thoughts
            content: File content
            filename: Used to choose between JSON and CSV
            process: Queue each imported thought for background reprocessing

        Raises:
            ImportFormatError: If the file cannot be parsed
            IngestionError: If the store rejects an insert
        """
        valid, errors = validate_import(parse_import(content, filename))
        result = ImportResult(errors=errors)

        for item in valid:
            thought = to_thought(user_id, item, self.pipeline.pipeline_config.default_language)
            try:
                self.store.insert_thought(thought)
            except OpenSearchError as e:
                logger.error(f'Import stopped after {result.imported} thoughts: {e}')
                raise IngestionError(f'Failed to import thought: {e}')
            result.imported += 1
            result.thought_ids.append(thought.id)
            if process:
                self.pipeline.submit_reprocess(thought.id)

        logger.info(f'Imported {result.imported} thoughts for user {user_id} ({len(errors)} rejected rows)')
        return result
