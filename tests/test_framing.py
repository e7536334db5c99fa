"""
Tests for clogwench.framing - cutting JSON documents out of a byte stream.
"""

import json

import pytest

from clogwench.framing import Framing, LineFramer, StreamFramer, make_framer


class TestStreamFramer:
    def test_single_document(self):
        framer = StreamFramer()
        assert framer.feed(b'{"a":1}') == [b'{"a":1}']
        assert framer.pending == 0

    def test_back_to_back_documents(self):
        framer = StreamFramer()
        docs = framer.feed(b'{"a":1}{"b":2} {"c":[3]}')
        assert [json.loads(d) for d in docs] == [{"a": 1}, {"b": 2}, {"c": [3]}]

    def test_split_across_reads(self):
        framer = StreamFramer()
        assert framer.feed(b'{"MouseDown":{"x"') == []
        assert framer.pending > 0
        assert framer.feed(b':10,"y":20}') == []
        assert framer.feed(b'}{"Key') == [b'{"MouseDown":{"x":10,"y":20}}']
        assert framer.feed(b'Down":{}}') == [b'{"KeyDown":{}}']

    def test_byte_at_a_time(self):
        payload = b'{"a":{"b":[1,2,{"c":"}"}]}}'
        framer = StreamFramer()
        docs = []
        for i in range(len(payload)):
            docs.extend(framer.feed(payload[i:i + 1]))
        assert docs == [payload]

    def test_braces_inside_strings(self):
        framer = StreamFramer()
        doc = b'{"title":"a } b { c","esc":"q\\"}"}'
        assert framer.feed(doc) == [doc]
        assert json.loads(doc)["esc"] == 'q"}'

    def test_escaped_backslash_before_quote(self):
        framer = StreamFramer()
        doc = b'{"path":"C:\\\\"}'
        assert framer.feed(doc + b'{"n":1}') == [doc, b'{"n":1}']

    def test_top_level_array(self):
        framer = StreamFramer()
        assert framer.feed(b"[1,2]") == [b"[1,2]"]

    def test_garbage_between_documents_dropped(self):
        framer = StreamFramer()
        docs = framer.feed(b'xx{"a":1}\n42{"b":2}')
        assert docs == [b'{"a":1}', b'{"b":2}']
        assert framer.dropped_bytes == 4

    def test_oversized_document_dropped(self):
        framer = StreamFramer(max_document=16)
        assert framer.feed(b'{"data":"' + b"x" * 32) == []
        assert framer.pending == 0
        assert framer.dropped_bytes > 0
        # framer recovers once the dropped document ends
        assert framer.feed(b'"}{"a":1}') == [b'{"a":1}']

    def test_oversized_document_tail_not_framed(self):
        framer = StreamFramer(max_document=32)
        assert framer.feed(b'{"DBQueryResponse":{"pad":"' + b"x" * 40 + b'"') == []
        tail = b',"inner":{"AppConnectResponse":{"app_id":"evil"}}}}'
        assert framer.feed(tail) == []
        assert framer.pending == 0
        assert framer.feed(b' {"b":2}') == [b'{"b":2}']

    def test_oversized_document_tail_with_braces_in_string(self):
        framer = StreamFramer(max_document=8)
        framer.feed(b'{"k":"' + b"y" * 16)
        assert framer.feed(b'}{\\"x\\":{}"}[1]') == [b"[1]"]

    def test_reset(self):
        framer = StreamFramer()
        framer.feed(b'{"a":')
        framer.reset()
        assert framer.pending == 0
        assert framer.feed(b'{"b":1}') == [b'{"b":1}']

    def test_unicode_payload(self):
        framer = StreamFramer()
        doc = json.dumps({"name": "çay {"}, ensure_ascii=False).encode("utf-8")
        assert framer.feed(doc[:5]) == []
        assert framer.feed(doc[5:]) == [doc]


class TestLineFramer:
    def test_lines(self):
        framer = LineFramer()
        assert framer.feed(b'{"a":1}\n{"b":') == [b'{"a":1}']
        assert framer.pending == len(b'{"b":')
        assert framer.feed(b'2}\n\n') == [b'{"b":2}']

    def test_oversized_line_dropped(self):
        framer = LineFramer(max_document=8)
        assert framer.feed(b"x" * 20) == []
        assert framer.pending == 0
        assert framer.dropped_bytes == 20

    def test_oversized_line_tail_not_framed(self):
        framer = LineFramer(max_document=8)
        assert framer.feed(b"x" * 20) == []
        assert framer.feed(b'{"a":1}\n{"b":2}\n') == [b'{"b":2}']
        assert framer.dropped_bytes == 27


class TestMakeFramer:
    def test_modes(self):
        assert isinstance(make_framer("stream"), StreamFramer)
        assert isinstance(make_framer(Framing.JSONL), LineFramer)

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            make_framer("xml")
