"""Unit tests for the schema guards and health latches."""
import json

import pytest

from processor.errors import FormSchemaMismatchError, StoreSchemaMismatchError
from schema_guard.guard import (
    PipelineHealth,
    diff_headers,
    diff_properties,
    load_snapshot,
    normalize_notion_properties,
)


class TestSnapshot:
    """Test cases for the bundled snapshots."""

    def test_load_snapshot(self, snapshot):
        """Test both snapshots load with versions."""
        assert snapshot.form_headers[0] == 'Timestamp'
        assert 'Event name' in snapshot.form_headers
        assert snapshot.store_properties['Name'] == {'type': 'title'}
        assert snapshot.form_version is not None
        assert snapshot.store_version is not None

    def test_load_custom_paths(self, tmp_path):
        """Test snapshots can be loaded from other files."""
        form_path = tmp_path / 'form.json'
        store_path = tmp_path / 'store.json'
        form_path.write_text(json.dumps({'version': 1, 'headers': ['A', 'B']}))
        store_path.write_text(json.dumps({'properties': {'Name': {'type': 'title'}}}))

        snapshot = load_snapshot(form_path, store_path)

        assert snapshot.form_headers == ('A', 'B')
        assert snapshot.form_version == 1
        assert snapshot.store_version is None


class TestNormalizeNotionProperties:
    """Test cases for normalize_notion_properties."""

    def test_keeps_type_and_option_names(self):
        """Test IDs and colours are dropped."""
        properties = {
            'Type': {
                'id': 'abc',
                'type': 'select',
                'select': {'options': [{'id': '1', 'name': 'Workshop', 'color': 'red'}]}
            },
            'Date': {'id': 'def', 'type': 'date', 'date': {}},
        }

        assert normalize_notion_properties(properties) == {
            'Type': {'type': 'select', 'options': ['Workshop']},
            'Date': {'type': 'date'},
        }


class TestDiffHeaders:
    """Test cases for diff_headers."""

    def test_identical(self):
        """Test identical headers produce an empty diff."""
        assert not diff_headers(['A', 'B', 'C'], ['A', 'B', 'C'])

    def test_added_and_removed(self):
        """Test added and removed headers are listed."""
        diff = diff_headers(['A', 'B', 'C'], ['A', 'C', 'D'])

        assert diff.added == ['D']
        assert diff.removed == ['B']
        assert diff.changed == {}

    def test_reordered(self):
        """Test swapped columns are reported as changed."""
        diff = diff_headers(['A', 'B', 'C'], ['A', 'C', 'B'])

        assert diff.added == []
        assert diff.removed == []
        assert diff.changed == {
            'B': {'expected': 1, 'actual': 2},
            'C': {'expected': 2, 'actual': 1},
        }

    def test_repeated_header(self):
        """Test a header repeated at the end of the row is reported as changed."""
        diff = diff_headers(['A', 'B', 'C'], ['A', 'B', 'C', 'B'])

        assert diff.added == []
        assert diff.removed == []
        assert diff.changed == {'B': {'expected_count': 1, 'actual_count': 2}}

    def test_repeated_new_header(self):
        """Test a repeated unknown header is listed once as added and as changed."""
        diff = diff_headers(['A'], ['A', 'Z', 'Z'])

        assert diff.added == ['Z']
        assert diff.changed == {'Z': {'expected_count': 1, 'actual_count': 2}}


class TestDiffProperties:
    """Test cases for diff_properties."""

    def test_option_order_ignored(self):
        """Test reordered select options are not a change."""
        expected = {'Type': {'type': 'select', 'options': ['A', 'B']}}
        live = {'Type': {'type': 'select', 'options': ['B', 'A']}}

        assert not diff_properties(expected, live)

    def test_changed_options(self):
        """Test a new select option is a change."""
        expected = {'Type': {'type': 'select', 'options': ['A']}}
        live = {'Type': {'type': 'select', 'options': ['A', 'B']}}

        diff = diff_properties(expected, live)

        assert diff.changed == {'Type': {'expected': expected['Type'], 'actual': live['Type']}}

    def test_changed_type(self):
        """Test a property type change is reported."""
        diff = diff_properties({'Date': {'type': 'date'}}, {'Date': {'type': 'rich_text'}})

        assert list(diff.changed) == ['Date']


class TestFormSchemaGuard:
    """Test cases for FormSchemaGuard."""

    def test_matching_headers(self, form_guard, snapshot):
        """Test the published headers pass."""
        form_guard.validate(list(snapshot.form_headers))

    def test_renamed_column(self, form_guard, snapshot):
        """Test a renamed question raises with the diff."""
        live = ['Event title' if h == 'Event name' else h for h in snapshot.form_headers]

        with pytest.raises(FormSchemaMismatchError) as exc_info:
            form_guard.validate(live)

        assert exc_info.value.source == 'form'
        assert exc_info.value.diff.added == ['Event title']
        assert exc_info.value.diff.removed == ['Event name']

    def test_duplicated_column(self, form_guard, snapshot):
        """Test a question re-added under an existing title raises."""
        live = list(snapshot.form_headers) + ['Event name']

        with pytest.raises(FormSchemaMismatchError) as exc_info:
            form_guard.validate(live)

        assert exc_info.value.diff.changed == {
            'Event name': {'expected_count': 1, 'actual_count': 2}
        }


class TestStoreSchemaGuard:
    """Test cases for StoreSchemaGuard."""

    def test_matching_properties(self, store_guard, live_store_properties):
        """Test the live database matching the snapshot passes."""
        store_guard.validate(live_store_properties)

    def test_added_property(self, store_guard, live_store_properties):
        """Test an added property is the only entry in the diff."""
        live = {
            **live_store_properties,
            'Livestream Link': {'id': 'zz', 'type': 'url', 'url': {}},
        }

        with pytest.raises(StoreSchemaMismatchError) as exc_info:
            store_guard.validate(live)

        assert exc_info.value.diff.to_dict() == {
            'added': ['Livestream Link'],
            'removed': [],
            'changed': {},
        }

    def test_removed_option(self, store_guard, live_store_properties):
        """Test a deleted select option is reported as a change."""
        live = dict(live_store_properties)
        options = live['TAP Status']['select']['options']
        live['TAP Status'] = {
            'type': 'select',
            'select': {'options': [o for o in options if o['name'] != 'TAP TODO']}
        }

        with pytest.raises(StoreSchemaMismatchError) as exc_info:
            store_guard.validate(live)

        assert list(exc_info.value.diff.changed) == ['TAP Status']


class TestPipelineHealth:
    """Test cases for the health latches."""

    def test_first_trip_reports(self):
        """Test only the first trip of a source asks for a report."""
        health = PipelineHealth()

        assert health.trip('store') is True
        assert health.trip('store') is False
        assert health.store_schema_ok is False
        assert health.form_schema_ok is True

    def test_mark_healthy_rearms(self):
        """Test a healthy run re-arms the latch."""
        health = PipelineHealth()
        health.trip('form')

        health.mark_healthy('form', 'store')

        assert health.form_schema_ok is True
        assert health.trip('form') is True

    def test_independent_instances(self):
        """Test health states do not leak between instances."""
        first = PipelineHealth()
        first.trip('form')

        assert PipelineHealth().form_schema_ok is True
