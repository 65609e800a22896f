import json

import pytest

from mentor.application.websocket.schema.events import (
    ErrorEvent, JsonEventCodec, RestoreEvent, ResultEvent, TextEventCodec,
    get_codec, parse_snapshot
)


class TestParseSnapshot:

    def test_raw_text_is_the_snapshot(self):
        assert parse_snapshot("let x = 1;") == "let x = 1;"

    def test_envelope_yields_content(self):
        frame = json.dumps({"type": "snapshot", "content": "let x = 1;"})
        assert parse_snapshot(frame) == "let x = 1;"

    def test_other_json_documents_stay_raw(self):
        document = '{"name": "package", "version": "1.0.0"}'
        assert parse_snapshot(document) == document

    def test_content_without_type_stays_raw(self):
        assert parse_snapshot('{"content": "x"}') == '{"content": "x"}'

    def test_untyped_event_shaped_document_stays_raw(self):
        document = '{"content":"x","session_id":"abc","timestamp":"2024-01-01T00:00:00"}'
        assert parse_snapshot(document) == document

    def test_other_type_tags_stay_raw(self):
        document = json.dumps({"type": "result", "content": "x"})
        assert parse_snapshot(document) == document

    def test_empty_frame(self):
        assert parse_snapshot("") == ""


class TestJsonEventCodec:

    def test_result(self):
        frames = JsonEventCodec().encode(ResultEvent(result="use const", magnitude=60, session_id="s1"))
        payload = json.loads(frames[0])
        assert len(frames) == 1
        assert payload["type"] == "result"
        assert payload["result"] == "use const"
        assert payload["magnitude"] == 60
        assert payload["session_id"] == "s1"

    def test_restore(self):
        frames = JsonEventCodec().encode(RestoreEvent(baseline_text="let x=1;", last_result="add a type"))
        payload = json.loads(frames[0])
        assert payload["type"] == "restore"
        assert payload["baseline_text"] == "let x=1;"
        assert payload["last_result"] == "add a type"

    def test_error(self):
        payload = json.loads(JsonEventCodec().encode(ErrorEvent(message="boom", error_code="gateway"))[0])
        assert payload["type"] == "error"
        assert payload["error_code"] == "gateway"


class TestTextEventCodec:

    def test_result_prefix(self):
        assert TextEventCodec().encode(ResultEvent(result="use const")) == ["AI TIP: use const"]

    def test_restore_sends_code_then_tip(self):
        frames = TextEventCodec().encode(RestoreEvent(baseline_text="let x=1;", last_result="add a type"))
        assert frames == ["RESTORE_CODE:let x=1;", "AI TIP:add a type"]

    def test_restore_skips_empty_parts(self):
        frames = TextEventCodec().encode(RestoreEvent(baseline_text="let x=1;", last_result=""))
        assert frames == ["RESTORE_CODE:let x=1;"]

    def test_error_is_generic_tip(self):
        frames = TextEventCodec().encode(ErrorEvent(message="HTTP 500"))
        assert frames == ["AI TIP: Error generating tip."]


def test_get_codec():
    assert isinstance(get_codec("json"), JsonEventCodec)
    assert isinstance(get_codec("text"), TextEventCodec)
    with pytest.raises(ValueError):
        get_codec("xml")
