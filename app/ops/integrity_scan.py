"""Command-line integrity scan over transfer requests and stock entries.

Exit codes: 0 scan ran, 1 critical findings with ``--fail-on-critical``,
2 scan disabled through OPS_ENABLE_INTEGRITY_SCAN.
"""

from __future__ import annotations

import argparse
import json
import sys
from collections import Counter
from dataclasses import asdict, dataclass

from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from app.branchlink.core.clock import utcnow
from app.branchlink.core.config import settings
from app.ops.integrity_checks import SEVERITY_CRITICAL, IntegrityFinding, resolve_branches, run_integrity_checks

EXIT_OK = 0
EXIT_CRITICAL = 1
EXIT_DISABLED = 2


@dataclass
class ScanReport:
    branch: str
    findings: list[IntegrityFinding]

    @property
    def critical(self) -> int:
        return sum(1 for finding in self.findings if finding.severity == SEVERITY_CRITICAL)

    def summary(self) -> dict:
        return {
            "branch": self.branch,
            "total": len(self.findings),
            "critical": self.critical,
            "warn": len(self.findings) - self.critical,
            "by_check": dict(sorted(Counter(finding.check_id for finding in self.findings).items())),
        }

    def as_json(self) -> str:
        body = {"summary": self.summary(), "findings": [asdict(finding) for finding in self.findings]}
        return json.dumps(body, indent=2, default=str)

    def as_text(self) -> str:
        summary = self.summary()
        out = [
            f"BranchLink integrity scan ({summary['branch']})",
            f"findings={summary['total']} CRITICAL: {summary['critical']} WARN: {summary['warn']}",
        ]
        for finding in self.findings:
            subject = f"{finding.entity}/{finding.entity_id or '-'}"
            out.append(f"  {finding.severity:<8} {finding.check_id:<26} {subject} {finding.message}")
            if finding.details:
                out.append(f"           {json.dumps(finding.details, default=str, sort_keys=True)}")
        return "\n".join(out)


def scan(branch: str, database_url: str) -> ScanReport:
    engine = create_engine(database_url, future=True)
    try:
        with Session(engine) as db:
            findings = run_integrity_checks(db, resolve_branches(branch), now=utcnow())
    finally:
        engine.dispose()
    return ScanReport(branch=branch, findings=findings)


def run_scan(branch: str, output_format: str, fail_on_critical: bool, *, database_url: str | None = None) -> int:
    if not settings.OPS_ENABLE_INTEGRITY_SCAN:
        print("integrity scan is disabled (OPS_ENABLE_INTEGRITY_SCAN=false)", file=sys.stderr)
        return EXIT_DISABLED
    report = scan(branch, database_url or settings.DATABASE_URL)
    print(report.as_json() if output_format == "json" else report.as_text())
    if fail_on_critical and report.critical:
        return EXIT_CRITICAL
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="branchlink-integrity", description="BranchLink integrity scan")
    parser.add_argument("--branch", default="all", help="branch id, or 'all'")
    parser.add_argument("--format", choices=["json", "text"], default="text")
    parser.add_argument("--fail-on-critical", action="store_true")
    parser.add_argument("--database-url", default=None, help="defaults to DATABASE_URL")
    args = parser.parse_args(argv)
    return run_scan(args.branch, args.format, args.fail_on_critical, database_url=args.database_url)


if __name__ == "__main__":
    sys.exit(main())
