#!/usr/bin/env python3
# This file checks the API OpenAPI contract against the committed snapshot.
# It exists so removed resource routes or envelope fields are caught before release.
# The script writes both an updated snapshot and a human-readable diff report.
# ruff: noqa: E402

from __future__ import annotations

import argparse
import json
import sys
from datetime import UTC, datetime
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from fleetops.api.app import app
from fleetops.api.schema_versions import detect_breaking_schema_changes

DEFAULT_SNAPSHOT_PATH = Path("reports/api/contract_checks/latest_contract_snapshot.json")
DEFAULT_REPORT_PATH = Path("reports/api/contract_checks/contract_diff_report.md")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Compare the API contract with the last snapshot")
    parser.add_argument("--snapshot", type=Path, default=DEFAULT_SNAPSHOT_PATH)
    parser.add_argument("--report", type=Path, default=DEFAULT_REPORT_PATH)
    parser.add_argument(
        "--no-write",
        action="store_true",
        help="Report findings without replacing the stored snapshot.",
    )
    return parser.parse_args()


def build_snapshot() -> dict[str, object]:
    config = app.state.config
    openapi_schema = app.openapi()
    return {
        "api_version_path": config.api_version_path,
        "schema_version": config.schema_version,
        "generated_at": datetime.now(tz=UTC).isoformat(),
        "paths": openapi_schema.get("paths", {}),
        "components": openapi_schema.get("components", {}),
    }


def build_report(
    *,
    previous: dict[str, object] | None,
    current: dict[str, object],
    findings: list[str],
) -> str:
    lines: list[str] = [
        "# API Contract Diff Report",
        "",
        f"Generated at: {current.get('generated_at')}",
        "",
        f"Current API version path: `{current.get('api_version_path')}`",
        f"Current schema version: `{current.get('schema_version')}`",
        f"Documented paths: {len(current.get('paths', {}))}",  # type: ignore[arg-type]
        "",
    ]

    if previous is None:
        lines.extend(["## Status", "", "No previous snapshot existed. This run created the baseline."])
        return "\n".join(lines) + "\n"

    lines.extend(["## Breaking Change Findings", ""])
    if findings:
        lines.extend(f"- {item}" for item in findings)
    else:
        lines.append("No breaking differences were detected.")
    return "\n".join(lines) + "\n"


def main() -> int:
    args = parse_args()
    current = build_snapshot()

    previous: dict[str, object] | None = None
    if args.snapshot.exists():
        previous = json.loads(args.snapshot.read_text(encoding="utf-8"))

    findings: list[str] = []
    if previous is not None:
        findings = detect_breaking_schema_changes(previous_snapshot=previous, current_snapshot=current)

    args.report.parent.mkdir(parents=True, exist_ok=True)
    args.report.write_text(
        build_report(previous=previous, current=current, findings=findings),
        encoding="utf-8",
    )
    if not args.no_write:
        args.snapshot.parent.mkdir(parents=True, exist_ok=True)
        args.snapshot.write_text(json.dumps(current, indent=2, sort_keys=True), encoding="utf-8")

    if previous is None:
        print("No previous API snapshot found. A new baseline snapshot was created.")
        return 0

    if findings and previous.get("api_version_path") == current.get("api_version_path"):
        print("Breaking contract changes detected without API path version bump:", file=sys.stderr)
        for item in findings:
            print(f"- {item}", file=sys.stderr)
        return 1

    if findings:
        print("Breaking changes detected but API version path changed. Review the report.")
    else:
        print("No breaking API contract changes detected.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
