"""Tests for the request registry."""

from __future__ import annotations

import os
import signal

import pytest

from llmblock.editor.document_model import TextBuffer
from llmblock.llm import registry as registry_module
from llmblock.llm.errors import ErrorCode, LLMBlockError
from llmblock.llm.registry import RequestRegistry, terminate_request

from tests.helpers import make_request


class _FakeProcess:
    def __init__(self, pid: int, returncode: int | None = None) -> None:
        self.pid = pid
        self.returncode = returncode
        self.terminated = False

    def terminate(self) -> None:
        self.terminated = True


@pytest.fixture
def signals(monkeypatch: pytest.MonkeyPatch) -> list[tuple[int, int]]:
    sent: list[tuple[int, int]] = []
    monkeypatch.setattr(registry_module.os, "killpg", lambda pid, sig: sent.append((pid, sig)), raising=False)
    return sent


def _request(pid: int | None = None, returncode: int | None = None):
    request = make_request(TextBuffer("doc"), 3)
    if pid is not None:
        request.process = _FakeProcess(pid, returncode)  # type: ignore[assignment]
    return request


def test_empty_registry_is_still_truthy() -> None:
    registry = RequestRegistry()
    assert registry
    assert registry.is_empty
    assert len(registry) == 0


def test_add_discard_and_lookup() -> None:
    registry = RequestRegistry()
    request = _request(pid=10)
    registry.add(request)

    assert request in registry
    assert registry.get(request.request_id) is request
    assert registry.snapshot() == [request]
    assert registry.discard(request)
    assert not registry.discard(request)
    assert registry.is_empty


def test_duplicate_request_is_rejected() -> None:
    registry = RequestRegistry()
    first = _request(pid=10)
    registry.add(first)
    with pytest.raises(LLMBlockError) as excinfo:
        registry.add(first)
    assert excinfo.value.error_code == ErrorCode.DUPLICATE_REQUEST
    assert len(registry) == 1


def test_cancel_signals_process_group_and_keeps_entry(signals) -> None:
    registry = RequestRegistry()
    request = _request(pid=4242)
    registry.add(request)

    assert registry.cancel(request)

    assert signals == [(4242, signal.SIGTERM)]
    assert request.cancel_requested
    assert request in registry


def test_cancel_ignores_unknown_request(signals) -> None:
    registry = RequestRegistry()
    assert not registry.cancel(_request(pid=1))
    assert signals == []


def test_cancel_all_terminates_everything_and_clears(signals) -> None:
    registry = RequestRegistry()
    requests = [_request(pid=100 + i) for i in range(3)]
    for request in requests:
        registry.add(request)

    assert registry.cancel_all() == 3

    assert sorted(pid for pid, _ in signals) == [100, 101, 102]
    assert registry.is_empty
    assert all(request.cancel_requested for request in requests)


def test_cancel_all_on_empty_registry() -> None:
    assert RequestRegistry().cancel_all() == 0


def test_terminate_request_before_process_exists_flags_request(signals) -> None:
    request = _request()
    assert not terminate_request(request)
    assert request.cancel_requested
    assert signals == []


def test_terminate_request_skips_exited_process(signals) -> None:
    request = _request(pid=7, returncode=0)
    assert not terminate_request(request)
    assert signals == []


def test_terminate_request_tolerates_vanished_process(monkeypatch: pytest.MonkeyPatch) -> None:
    def _gone(pid, sig):
        raise ProcessLookupError(pid)

    monkeypatch.setattr(registry_module.os, "killpg", _gone, raising=False)
    request = _request(pid=os.getpid() + 100000)
    assert not terminate_request(request)
    assert request.cancel_requested
