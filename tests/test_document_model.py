"""Tests for text buffers and anchors."""

from __future__ import annotations

import pytest

from llmblock.editor.document_model import AnchorGravity, BufferKilledError, TextBuffer


def test_insert_returns_end_offset_and_bumps_version() -> None:
    buffer = TextBuffer("hello world")
    end = buffer.insert(5, ",")
    assert end == 6
    assert buffer.text == "hello, world"
    assert buffer.version_id == 2


def test_insert_clamps_out_of_range_positions() -> None:
    buffer = TextBuffer("abc")
    assert buffer.insert(99, "!") == 4
    assert buffer.text == "abc!"
    assert buffer.insert(-3, ">") == 1
    assert buffer.text == ">abc!"


def test_anchor_gravity_decides_movement_at_insert_point() -> None:
    buffer = TextBuffer("abcdef")
    stay = buffer.anchor(3)
    after = buffer.anchor(3, gravity=AnchorGravity.AFTER)
    before = buffer.anchor(1)
    later = buffer.anchor(5)

    buffer.insert(3, "XYZ")

    assert stay.position == 3
    assert after.position == 6
    assert before.position == 1
    assert later.position == 8


def test_delete_collapses_anchors_inside_range() -> None:
    buffer = TextBuffer("0123456789")
    inside = buffer.anchor(4)
    tail = buffer.anchor(8)

    removed = buffer.delete(2, 6)

    assert removed == "2345"
    assert buffer.text == "016789"
    assert inside.position == 2
    assert tail.position == 4


def test_delete_between_accepts_reversed_anchors() -> None:
    buffer = TextBuffer("keep[drop]keep")
    start = buffer.anchor(4)
    end = buffer.anchor(10)
    assert buffer.delete_between(end, start) == "[drop]"
    assert buffer.text == "keepkeep"
    assert start.position == end.position == 4


def test_anchor_copies_are_independent() -> None:
    buffer = TextBuffer("abc")
    original = buffer.anchor(1, gravity=AnchorGravity.AFTER)
    copy = original.copy(gravity=AnchorGravity.STAY)

    original.move_to(3)
    assert copy.position == 1

    buffer.insert(1, "__")
    assert copy.position == 1
    assert copy.gravity is AnchorGravity.STAY


def test_insert_at_rejects_foreign_anchor() -> None:
    first = TextBuffer("a")
    second = TextBuffer("b")
    with pytest.raises(ValueError):
        first.insert_at(second.anchor(0), "x")


def test_killed_buffer_rejects_edits_and_kills_anchor_liveness() -> None:
    buffer = TextBuffer("text", name="scratch")
    marker = buffer.anchor(2)
    buffer.kill()

    assert not buffer.is_alive
    assert not marker.is_live
    with pytest.raises(BufferKilledError) as excinfo:
        buffer.insert(0, "x")
    assert excinfo.value.buffer_name == "scratch"
    with pytest.raises(BufferKilledError):
        buffer.delete(0, 1)


def test_detached_anchor_stops_tracking_edits() -> None:
    buffer = TextBuffer("abc")
    marker = buffer.anchor(2)
    marker.detach()
    buffer.insert(0, "zz")
    assert marker.position == 2
    assert marker.buffer is None
    assert not marker.is_live
    with pytest.raises(ValueError):
        marker.move_to(0)


def test_snapshot_reports_hash_and_language() -> None:
    buffer = TextBuffer("hello", name="doc.org")
    snapshot = buffer.snapshot()
    assert snapshot["name"] == "doc.org"
    assert snapshot["text"] == "hello"
    assert snapshot["language"] == "org"
    assert snapshot["content_hash"] == buffer.content_hash
    assert snapshot["alive"] is True
