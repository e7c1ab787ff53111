"""Tests for bulk thought import."""

import json

import pytest

from thoughtgraph.services.classifier import Classifier
from thoughtgraph.services.ingestion_pipeline import IngestionError, IngestionPipeline
from thoughtgraph.services.thought_import import (ImportFormatError, ThoughtImporter, parse_csv_import, parse_import,
                                                  parse_json_import, validate_import)


@pytest.fixture
def importer(store, make_embedder, llm_config, pipeline_config):
    llm_config.model_id = ''
    pipeline = IngestionPipeline(store,
                                 classifier=Classifier(llm_config=llm_config, pipeline_config=pipeline_config),
                                 embedder=make_embedder(default=[1.0, 0.0, 0.0]),
                                 pipeline_config=pipeline_config)
    yield ThoughtImporter(pipeline)
    pipeline.shutdown()


def test_parse_json_array() -> None:
    content = json.dumps([{
        'rawTranscript': 'buy milk',
        'type': 'task',
        'priority': 4,
        'categories': ['home'],
        'actionItems': ['go to shop'],
        'entities': {'places': ['Tesco']}
    }, {
        'cleanedText': 'A tidy note'
    }])

    rows = parse_json_import(content)

    assert len(rows) == 2
    assert rows[0].raw_transcript == 'buy milk'
    assert rows[0].priority == 4
    assert rows[0].action_items == ['go to shop']
    assert rows[0].entities == {'places': ['Tesco']}
    assert rows[1].raw_transcript == 'A tidy note'


def test_parse_json_single_object() -> None:
    assert [r.raw_transcript for r in parse_json_import('{"text": "hello"}')] == ['hello']


def test_parse_csv_with_lists_and_entities() -> None:
    content = ('rawTranscript,type,priority,categories,entities\n'
               'call Eva,task,5,work; phone,"{""people"": [""Eva""]}"\n'
               ',,,,\n'
               'walk the dog,,,,\n')

    rows = parse_csv_import(content)

    assert len(rows) == 2
    assert rows[0].categories == ['work', 'phone']
    assert rows[0].entities == {'people': ['Eva']}
    assert rows[0].priority == 5
    assert rows[1].type is None
    assert rows[1].priority is None


def test_parse_import_by_extension_and_sniffing() -> None:
    assert parse_import('rawTranscript\nhello\n', 'thoughts.csv')[0].raw_transcript == 'hello'
    assert parse_import('[{"rawTranscript": "hi"}]')[0].raw_transcript == 'hi'
    assert parse_import('rawTranscript\nhey\n')[0].raw_transcript == 'hey'


def test_parse_invalid_json_file_raises() -> None:
    with pytest.raises(ImportFormatError):
        parse_import('{broken', 'thoughts.json')


def test_validate_reports_row_errors() -> None:
    rows = parse_json_import(
        json.dumps([
            {'rawTranscript': 'fine'},
            {'rawTranscript': ''},
            {'rawTranscript': 'x', 'type': 'shopping', 'priority': 9},
            {'rawTranscript': 'y', 'sentiment': 3, 'deadline': 'soon'},
            {'rawTranscript': 'z', 'priority': 'high'},
        ]))

    valid, errors = validate_import(rows)

    assert [r.raw_transcript for r in valid] == ['fine']
    assert 'Row 2: Missing text content (rawTranscript or cleanedText)' in errors
    assert any(e.startswith('Row 3: Invalid type "shopping"') for e in errors)
    assert 'Row 3: Priority must be between 1 and 5' in errors
    assert 'Row 4: Sentiment must be between -1 and 1' in errors
    assert 'Row 4: Invalid deadline date "soon"' in errors
    assert 'Row 5: Priority must be between 1 and 5' in errors


def test_import_stores_valid_rows(store, importer) -> None:
    content = json.dumps([{
        'rawTranscript': 'buy milk',
        'type': 'task',
        'priority': 2,
        'deadline': '2026-11-01'
    }, {
        'rawTranscript': ''
    }])

    result = importer.import_thoughts('u1', content, 'export.json')

    assert result.imported == 1
    assert len(result.errors) == 1
    stored = store.get_thought(result.thought_ids[0])
    assert stored.type == 'task'
    assert stored.priority == 2
    assert stored.source == 'import'
    assert stored.language == 'cs'
    assert stored.deadline.year == 2026
    assert stored.embedding is None


def test_import_with_processing_embeds_in_background(store, importer) -> None:
    result = importer.import_thoughts('u1', '[{"rawTranscript": "plant tomatoes"}]', 'export.json', process=True)

    importer.pipeline.shutdown(wait=True)

    assert store.get_thought(result.thought_ids[0]).embedding == [1.0, 0.0, 0.0]


def test_import_store_failure_raises(store, importer) -> None:
    store.fail_on.add('insert_thought')

    with pytest.raises(IngestionError):
        importer.import_thoughts('u1', '[{"rawTranscript": "plant tomatoes"}]', 'export.json')


def test_csv_row_with_surplus_cells_is_a_row_error() -> None:
    rows = parse_import('rawTranscript,type\nbuy milk, eggs,task\nwalk the dog,note\n', 'thoughts.csv')

    valid, errors = validate_import(rows)

    assert [r.raw_transcript for r in valid] == ['walk the dog']
    assert 'Row 1: Row has 1 more values than the header has columns' in errors
    assert all(e.startswith('Row 1: ') for e in errors)


def test_csv_entities_column_must_be_an_object() -> None:
    valid, errors = validate_import(parse_csv_import('rawTranscript,entities\ncall Eva,[1]\n'))

    assert valid == []
    assert errors == ['Row 1: Column "entities" must hold a JSON object']


def test_json_fields_of_the_wrong_type_are_row_errors() -> None:
    rows = parse_json_import(
        json.dumps([
            {'rawTranscript': 42},
            {'rawTranscript': 'ok', 'type': ['task'], 'categories': 'home'},
            {'rawTranscript': 'ok', 'entities': ['Eva'], 'priority': True},
            'just a string',
        ]))

    valid, errors = validate_import(rows)

    assert valid == []
    assert 'Row 1: Field "rawTranscript" must be a string' in errors
    assert 'Row 1: Missing text content (rawTranscript or cleanedText)' in errors
    assert 'Row 2: Field "type" must be a string' in errors
    assert 'Row 2: Field "categories" must be a list of strings' in errors
    assert 'Row 3: Field "entities" must be an object' in errors
    assert 'Row 3: Priority must be between 1 and 5' in errors
    assert 'Row 4: Row must be a JSON object' in errors


def test_import_reports_malformed_rows_without_failing(store, importer) -> None:
    content = json.dumps([{'rawTranscript': 42}, {'rawTranscript': 'buy milk', 'actionItems': [1, 2]}, {
        'text': 'fine'
    }])

    result = importer.import_thoughts('u1', content, 'export.json')

    assert result.imported == 1
    assert result.errors == ['Row 1: Field "rawTranscript" must be a string',
                             'Row 1: Missing text content (rawTranscript or cleanedText)',
                             'Row 2: Field "actionItems" must be a list of strings']
    assert store.get_thought(result.thought_ids[0]).raw_transcript == 'fine'
