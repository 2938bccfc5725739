"""
Validation Engine - Structural checks for a project configuration document.

Every check runs, in a fixed order, and every finding is collected as an
Issue; validation never raises for a structural problem. The aggregate
result maps to the exit codes used by the CLI (0 pass, 1 warn, 2 fail).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from roster.catalog.catalog import Catalog
from roster.core.models import ActivationState, Issue, Severity
from roster.document.parser import ACTIVE_SECTION_TITLE, ConfigDocument

logger = logging.getLogger(__name__)

REQUIRED_SECTIONS = ("Project Overview", "Tech Stack", ACTIVE_SECTION_TITLE)

# Old mode names -> current names
OUTDATED_NAMES = {
    "GENTLEMAN MODE": "MAESTRO MODE",
    "WRAPUP MODE": "COMMIT MODE",
}

EXIT_CODES = {
    Severity.PASS: 0,
    Severity.WARN: 1,
    Severity.FAIL: 2,
}


@dataclass
class ValidationReport:
    """All issues from one validation run."""
    issues: List[Issue] = field(default_factory=list)

    @property
    def result(self) -> Severity:
        """FAIL if any fail, WARN if any warn, else PASS. INFO never counts."""
        severities = {issue.severity for issue in self.issues}
        if Severity.FAIL in severities:
            return Severity.FAIL
        if Severity.WARN in severities:
            return Severity.WARN
        return Severity.PASS

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.result]

    @property
    def counts(self) -> Dict[Severity, int]:
        counts = {severity: 0 for severity in Severity}
        for issue in self.issues:
            counts[issue.severity] += 1
        return counts

    def by_severity(self, severity: Severity) -> List[Issue]:
        return [i for i in self.issues if i.severity is severity]

    def to_dict(self) -> dict:
        return {
            "result": self.result.value,
            "exit_code": self.exit_code,
            "counts": {s.value: n for s, n in self.counts.items()},
            "issues": [i.model_dump(mode="json") for i in self.issues],
        }


class ValidationEngine:
    """
    Run the validation checklist against a parsed document.

    Usage:
        report = ValidationEngine(catalog).validate(document)
        sys.exit(report.exit_code)
    """

    def __init__(self, catalog: Catalog):
        self.catalog = catalog

    def validate(
        self,
        document: ConfigDocument,
        active: Optional[ActivationState] = None,
        strict: bool = False,
    ) -> ValidationReport:
        """
        Validate a document.

        Args:
            document: Parsed configuration document
            active: Active set to judge (default: the document's own)
            strict: Also run the formatting and content lint checks

        Returns:
            ValidationReport with issues in check order
        """
        if active is None:
            active = ActivationState.of(document.active_ids())

        report = ValidationReport()
        self._check_required_sections(document, report)
        self._check_duplicate_headings(document, report)
        self._check_active_section(document, report)
        self._check_unknown_ids(active, report)
        self._check_baseline(active, report)

        if strict:
            self._check_heading_levels(document, report)
            self._check_outdated_naming(document, report)
            self._check_tech_stack_content(document, report)

        logger.info(
            f"Validation {report.result.value}: "
            + ", ".join(f"{n} {s.value}" for s, n in report.counts.items() if n)
        )
        return report

    # ==================== Checks ====================

    def _check_required_sections(self, document: ConfigDocument, report: ValidationReport):
        for title in REQUIRED_SECTIONS:
            if title == ACTIVE_SECTION_TITLE:
                present = document.active_section() is not None
            else:
                present = document.has_section(title)

            if present:
                report.issues.append(Issue(
                    severity=Severity.PASS, check="required-sections",
                    message=f"Section found: {title}",
                ))
            else:
                report.issues.append(Issue(
                    severity=Severity.FAIL, check="required-sections",
                    message=f"Missing required section: {title}",
                ))

    def _check_duplicate_headings(self, document: ConfigDocument, report: ValidationReport):
        duplicates = document.duplicate_headings()
        if not duplicates:
            report.issues.append(Issue(
                severity=Severity.PASS, check="duplicate-headings",
                message="No duplicate headings",
            ))
        for section in duplicates:
            report.issues.append(Issue(
                severity=Severity.FAIL, check="duplicate-headings",
                message=f"Duplicate heading: {'#' * section.level} {section.title}",
            ))

    def _check_active_section(self, document: ConfigDocument, report: ValidationReport):
        section = document.active_section()
        if section is None:
            report.issues.append(Issue(
                severity=Severity.WARN, check="active-section",
                message=f"No '{ACTIVE_SECTION_TITLE}' section; nothing can be activated",
            ))
            return

        malformed = document.malformed_entries()
        for entry in malformed:
            report.issues.append(Issue(
                severity=Severity.WARN, check="active-section",
                message=f"Malformed entry ignored: {entry}",
            ))
        if not malformed:
            report.issues.append(Issue(
                severity=Severity.PASS, check="active-section",
                message=f"Active section lists {len(document.active_ids())} entries",
            ))

    def _check_unknown_ids(self, active: ActivationState, report: ValidationReport):
        unknown = active.unknown(self.catalog)
        for capability_id in unknown:
            report.issues.append(Issue(
                severity=Severity.WARN, check="unknown-ids",
                message=f"Unknown capability: {capability_id}",
            ))
        if not unknown:
            report.issues.append(Issue(
                severity=Severity.PASS, check="unknown-ids",
                message="All active capabilities are in the catalog",
            ))

    def _check_baseline(self, active: ActivationState, report: ValidationReport):
        baseline = self.catalog.baseline_ids()
        missing = sorted(baseline - active.ids)

        if not missing:
            report.issues.append(Issue(
                severity=Severity.PASS, check="baseline",
                message=f"All {len(baseline)} baseline capabilities active",
            ))
        elif len(missing) == len(baseline):
            # Nothing selected yet: report, do not judge
            report.issues.append(Issue(
                severity=Severity.INFO, check="baseline",
                message="No baseline capabilities active",
            ))
        else:
            report.issues.append(Issue(
                severity=Severity.WARN, check="baseline",
                message=f"Missing baseline capabilities: {', '.join(missing)}",
            ))

    # ==================== Strict lints ====================

    def _check_heading_levels(self, document: ConfigDocument, report: ValidationReport):
        jumps = []
        previous = 0
        for section in document.sections:
            if previous and section.level > previous + 1:
                jumps.append(section)
            previous = section.level

        for section in jumps:
            report.issues.append(Issue(
                severity=Severity.WARN, check="heading-levels",
                message=f"Heading level jump: {section.heading.rstrip()}",
            ))
        if not jumps:
            report.issues.append(Issue(
                severity=Severity.PASS, check="heading-levels",
                message="Heading hierarchy is consistent",
            ))

    def _check_outdated_naming(self, document: ConfigDocument, report: ValidationReport):
        text = document.serialize()
        found = False
        for old, new in OUTDATED_NAMES.items():
            if re.search(re.escape(old), text, re.IGNORECASE):
                found = True
                report.issues.append(Issue(
                    severity=Severity.WARN, check="outdated-naming",
                    message=f"Outdated naming '{old}'; use '{new}'",
                ))
        if not found:
            report.issues.append(Issue(
                severity=Severity.PASS, check="outdated-naming",
                message="No outdated naming",
            ))

    def _check_tech_stack_content(self, document: ConfigDocument, report: ValidationReport):
        if not document.has_section("Tech Stack"):
            # Already failed as a required section
            return

        stack = document.section_text("Tech Stack").lower()
        for keyword in ("framework", "language"):
            if keyword in stack:
                report.issues.append(Issue(
                    severity=Severity.PASS, check="tech-stack",
                    message=f"Tech Stack documents a {keyword}",
                ))
            else:
                report.issues.append(Issue(
                    severity=Severity.WARN, check="tech-stack",
                    message=f"No {keyword} mentioned in Tech Stack",
                ))
