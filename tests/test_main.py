"""Tests for the operator entry point."""

from __future__ import annotations

import json
import logging
import os
import sys
from unittest.mock import patch

import pytest

from secgroup_operator.main import JsonFormatter, main


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def _record(self, **extra: object) -> logging.LogRecord:
        record = logging.LogRecord(
            name="secgroup_operator.reconciler",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="Reconciled %s",
            args=("demo",),
            exc_info=None,
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_basic_fields(self) -> None:
        data = json.loads(JsonFormatter().format(self._record()))

        assert data["level"] == "INFO"
        assert data["message"] == "Reconciled demo"
        assert data["logger"] == "secgroup_operator.reconciler"
        assert data["timestamp"].endswith("Z")
        assert "args" not in data

    def test_extra_fields_included(self) -> None:
        data = json.loads(JsonFormatter().format(self._record(cluster="demo", rules_created=3)))

        assert data["cluster"] == "demo"
        assert data["rules_created"] == 3

    def test_exception_included(self) -> None:
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = self._record()
            record.exc_info = sys.exc_info()

        data = json.loads(JsonFormatter().format(record))
        assert "RuntimeError: boom" in data["exception"]


class TestMain:
    """Tests for main()."""

    @pytest.mark.asyncio
    async def test_invalid_configuration_exits_non_zero(self) -> None:
        with patch.dict(os.environ, {}, clear=True), patch("secgroup_operator.main.setup_logging"):
            assert await main() == 1
