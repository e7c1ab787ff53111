"""
Export of stored thoughts as JSON, CSV or Markdown.

JSON and CSV use the same camelCase columns the importer reads, so an export
can be imported again.
"""

import csv
import io
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..models.core import SearchFilters, Thought
from ..utils.logging_config import get_logger
from ..utils.opensearch_client import OpenSearchClient, OpenSearchError
from ..utils.timestamp_utils import to_iso, utc_now
from .thought_import import LIST_SEPARATOR

logger = get_logger(__name__)

CSV_COLUMNS = ('id', 'type', 'priority', 'summary', 'cleanedText', 'rawTranscript', 'status', 'categories', 'sentiment',
               'entities', 'actionItems', 'deadline', 'language', 'source', 'createdAt', 'updatedAt')


class ExportError(Exception):
    """Custom exception for export errors."""
    pass


@dataclass
class ExportFile:
    content: str
    content_type: str
    filename: str


def thought_to_export(thought: Thought) -> Dict[str, Any]:
    """Flatten a thought into the camelCase export record."""
    return {
        'id': thought.id,
        'type': thought.type,
        'priority': thought.priority,
        'summary': thought.summary,
        'cleanedText': thought.cleaned_text,
        'rawTranscript': thought.raw_transcript,
        'status': thought.status,
        'categories': list(thought.categories),
        'sentiment': thought.sentiment,
        'entities': {kind: list(names) for kind, names in thought.entities.items()},
        'actionItems': list(thought.action_items),
        'deadline': to_iso(thought.deadline),
        'language': thought.language,
        'source': thought.source,
        'createdAt': to_iso(thought.created_at),
        'updatedAt': to_iso(thought.updated_at),
    }


def thoughts_to_json(records: List[Dict[str, Any]]) -> str:
    return json.dumps(records, indent=2, ensure_ascii=False)


def thoughts_to_csv(records: List[Dict[str, Any]]) -> str:
    """One row per thought; lists are '; '-joined and entities are a JSON cell."""
    out = io.StringIO()
    writer = csv.writer(out, lineterminator='\n')
    writer.writerow(CSV_COLUMNS)
    for record in records:
        cells = dict(record)
        cells['categories'] = f'{LIST_SEPARATOR} '.join(record['categories'])
        cells['actionItems'] = f'{LIST_SEPARATOR} '.join(record['actionItems'])
        cells['entities'] = json.dumps(record['entities'], ensure_ascii=False)
        writer.writerow(['' if cells[column] is None else cells[column] for column in CSV_COLUMNS])
    return out.getvalue()


def thoughts_to_markdown(records: List[Dict[str, Any]]) -> str:
    lines = ['# Thought Export', '']

    for record in records:
        lines += [f"## {record['summary'] or record['cleanedText']}", '']
        lines.append(f"- **Type:** {record['type']}")
        lines.append(f"- **Priority:** {record['priority']}/5")
        lines.append(f"- **Status:** {record['status']}")
        if record['categories']:
            lines.append(f"- **Categories:** {', '.join(record['categories'])}")
        if record['deadline']:
            lines.append(f"- **Deadline:** {record['deadline']}")
        if record['sentiment'] is not None:
            lines.append(f"- **Sentiment:** {record['sentiment']}")
        lines.append(f"- **Language:** {record['language']}")
        lines.append(f"- **Source:** {record['source']}")
        lines.append(f"- **Created:** {record['createdAt']}")
        lines.append('')

        if record['cleanedText'] != record['rawTranscript']:
            lines += ['### Transcript', '', f"> {record['rawTranscript']}", '']

        if record['actionItems']:
            lines += ['### Action Items', '']
            lines += [f'- [ ] {item}' for item in record['actionItems']]
            lines.append('')

        entities = {kind: names for kind, names in record['entities'].items() if names}
        if entities:
            lines += ['### Entities', '']
            lines += [f"- **{kind}:** {', '.join(names)}" for kind, names in entities.items()]
            lines.append('')

        lines += ['---', '']

    return '\n'.join(lines)


# format -> (renderer, content type, file extension)
EXPORT_FORMATS = {
    'json': (thoughts_to_json, 'application/json; charset=utf-8', 'json'),
    'csv': (thoughts_to_csv, 'text/csv; charset=utf-8', 'csv'),
    'md': (thoughts_to_markdown, 'text/markdown; charset=utf-8', 'md'),
}


class ThoughtExporter:
    """Render a user's stored thoughts into a downloadable file."""

    def __init__(self, store: OpenSearchClient):
        self.store = store

    def export(self, user_id: str, export_format: str = 'json', filters: Optional[SearchFilters] = None) -> ExportFile:
        """
        Export a user's thoughts, newest first, archived ones included.

        Args:
            user_id: Owner of the thoughts
            export_format: 'json', 'csv' or 'md'
            filters: Optional type/status/date filters

        Raises:
            ExportError: On an unknown format or a store failure
        """
        if export_format not in EXPORT_FORMATS:
            raise ExportError(f'Unknown export format: {export_format} (must be one of: {", ".join(EXPORT_FORMATS)})')
        render, content_type, extension = EXPORT_FORMATS[export_format]

        try:
            thoughts = self.store.list_thoughts(user_id=user_id, filters=filters)
        except OpenSearchError as e:
            logger.error(f'Export failed for user {user_id}: {e}')
            raise ExportError(f'Failed to export thoughts: {e}')

        content = render([thought_to_export(thought) for thought in thoughts])
        logger.info(f'Exported {len(thoughts)} thoughts for user {user_id} as {export_format}')
        return ExportFile(content=content,
                          content_type=content_type,
                          filename=f'thoughts-export-{utc_now().date().isoformat()}.{extension}')
