"""
wchartag Report Generator
==========================

JSON serialisation of wchartag reports, for CI logs and for diffing the
state of a toolchain tree before and after a strip run.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import wchartag
from wchartag.core.models import BatchReport, FileReport


class WcharTagReportGenerator:
    """Render :class:`FileReport` / :class:`BatchReport` objects as JSON.

    Usage::

        gen = WcharTagReportGenerator()
        gen.generate_json(batch, "strip-report.json")
    """

    def build(self, report: FileReport | BatchReport) -> dict[str, Any]:
        """Wrap *report* in a document with generator metadata."""
        kind = "batch" if isinstance(report, BatchReport) else "file"
        return {
            "generator": {
                "tool": "wchartag",
                "version": wchartag.__version__,
                "generated_at": datetime.now(timezone.utc).isoformat(),
            },
            "kind": kind,
            "report": report.model_dump(mode="json"),
        }

    def to_json(self, report: FileReport | BatchReport, indent: int = 2) -> str:
        return json.dumps(self.build(report), indent=indent, default=str)

    def generate_json(
        self, report: FileReport | BatchReport, output_path: str | Path
    ) -> Path:
        """Write the JSON document to *output_path* and return the path."""
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json(report), encoding="utf-8")
        return path
