"""Tests for the UI worker thread and clipboard that need no display."""

import asyncio

from src.ui.clipboard import SystemClipboard
from src.ui.main_window import OperationWorker


class TestOperationWorker:
    """Tests for OperationWorker, run synchronously via run()."""

    def test_reports_result(self, engine):
        worker = OperationWorker(engine.load_structure("1ABC"))
        results = []
        worker.finished.connect(results.append)

        worker.run()

        assert len(results) == 1
        assert results[0].success
        assert engine.get_available_chains() == ["A", "B", "C", "D"]

    def test_operation_result_failure_is_a_result(self, engine):
        """Test that a failed engine operation still arrives on finished."""
        worker = OperationWorker(engine.hide_chain("A"))
        results, errors = [], []
        worker.finished.connect(results.append)
        worker.error.connect(errors.append)

        worker.run()

        assert results[0].reason == "not-initialized"
        assert errors == []

    def test_reports_error(self):
        async def broken():
            raise RuntimeError("boom")

        worker = OperationWorker(broken())
        results, errors = [], []
        worker.finished.connect(results.append)
        worker.error.connect(errors.append)

        worker.run()

        assert results == []
        assert errors == ["boom"]


class TestSystemClipboard:
    """Tests for SystemClipboard without a Qt application."""

    def test_falls_back_to_memory(self):
        clipboard = SystemClipboard()
        asyncio.run(clipboard.write_text("AGSKL"))
        assert clipboard.fallback_text == "AGSKL"
