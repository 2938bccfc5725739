"""Tests for ValidationEngine."""

import pytest

from roster.core.models import ActivationState, Severity
from roster.document.parser import parse
from roster.engine.validation import ValidationEngine

from conftest import CORE_IDS, make_rulebook


def issues_of(report, severity, check=None):
    return [
        i for i in report.issues
        if i.severity is severity and (check is None or i.check == check)
    ]


class TestValidationEngine:
    """Tests for the validation checklist."""

    @pytest.fixture
    def engine(self, catalog):
        return ValidationEngine(catalog)

    def test_valid_document_passes(self, engine):
        """Test a complete document has no warnings or failures."""
        report = engine.validate(parse(make_rulebook(CORE_IDS)))

        assert report.result is Severity.PASS
        assert report.exit_code == 0
        assert not issues_of(report, Severity.WARN)
        assert not issues_of(report, Severity.FAIL)
        assert issues_of(report, Severity.PASS)

    def test_missing_tech_stack_single_fail(self, engine):
        """Test a missing Tech Stack produces exactly one fail."""
        text = make_rulebook(CORE_IDS).replace("## Tech Stack\n", "## Stack Notes\n")
        report = engine.validate(parse(text))

        fails = issues_of(report, Severity.FAIL)
        assert len(fails) == 1
        assert "Tech Stack" in fails[0].message
        assert report.result is Severity.FAIL
        assert report.exit_code == 2

    def test_one_unknown_id_single_warn(self, engine):
        """Test one unknown id produces exactly one warn."""
        report = engine.validate(parse(make_rulebook(CORE_IDS + ["legacy-agent"])))

        warns = issues_of(report, Severity.WARN)
        assert len(warns) == 1
        assert warns[0].check == "unknown-ids"
        assert "legacy-agent" in warns[0].message
        assert report.exit_code == 1

    def test_duplicate_heading_fails(self, engine):
        """Test a repeated heading at the same level fails."""
        text = make_rulebook(CORE_IDS) + "\n## Tech Stack\n\nmore\n"
        report = engine.validate(parse(text))

        assert len(issues_of(report, Severity.FAIL, "duplicate-headings")) == 1

    def test_missing_active_section(self, engine):
        """Test a missing Active section fails as required and warns."""
        text = "## Project Overview\n\nx\n\n## Tech Stack\n\ny\n"
        report = engine.validate(parse(text))

        assert len(issues_of(report, Severity.FAIL, "required-sections")) == 1
        assert len(issues_of(report, Severity.WARN, "active-section")) == 1

    def test_legacy_active_heading_accepted(self, engine):
        """Test '## Active Agents' satisfies the required section."""
        text = make_rulebook(CORE_IDS).replace("## Active Capabilities", "## Active Agents")
        report = engine.validate(parse(text))

        assert report.result is Severity.PASS

    def test_malformed_bullets_warn(self, engine):
        """Test each malformed bullet warns."""
        text = make_rulebook(CORE_IDS) + "- (todo)\n- [x]\n"
        report = engine.validate(parse(text))

        assert len(issues_of(report, Severity.WARN, "active-section")) == 2

    def test_partial_baseline_warns(self, engine):
        """Test missing baseline ids are listed in one warning."""
        report = engine.validate(parse(make_rulebook(CORE_IDS[1:])))

        warns = issues_of(report, Severity.WARN, "baseline")
        assert len(warns) == 1
        assert CORE_IDS[0] in warns[0].message

    def test_zero_baseline_is_info_only(self, engine):
        """Test an empty baseline is reported without affecting the result."""
        report = engine.validate(parse(make_rulebook(["react-specialist"])))

        assert len(issues_of(report, Severity.INFO, "baseline")) == 1
        assert report.result is Severity.PASS

    def test_explicit_active_set(self, engine):
        """Test the active set can be supplied instead of read from the document."""
        document = parse(make_rulebook(CORE_IDS))
        report = engine.validate(document, active=ActivationState.of(CORE_IDS + ["ghost"]))

        assert len(issues_of(report, Severity.WARN, "unknown-ids")) == 1

    def test_all_checks_run(self, engine):
        """Test failures do not stop later checks."""
        text = "## Tech Stack\n\n## Tech Stack\n\n## Active Capabilities\n\n- ghost\n"
        report = engine.validate(parse(text))

        checks = {i.check for i in report.issues}
        assert {"required-sections", "duplicate-headings", "active-section", "unknown-ids", "baseline"} <= checks

    def test_counts(self, engine):
        """Test counts per severity."""
        report = engine.validate(parse(make_rulebook(CORE_IDS + ["legacy-agent"])))
        assert report.counts[Severity.WARN] == 1
        assert report.counts[Severity.FAIL] == 0


class TestStrictValidation:
    """Tests for strict-mode lints."""

    @pytest.fixture
    def engine(self, catalog):
        return ValidationEngine(catalog)

    def test_strict_clean_document(self, engine):
        """Test the fixture document passes the lints."""
        report = engine.validate(parse(make_rulebook(CORE_IDS)), strict=True)
        assert report.result is Severity.PASS

    def test_heading_level_jump(self, engine):
        """Test skipping a heading level warns."""
        text = make_rulebook(CORE_IDS).replace("## Project Overview\n\nA demo project.\n",
                                               "## Project Overview\n\n#### Too Deep\n\nA demo project.\n")
        report = engine.validate(parse(text), strict=True)

        assert len(issues_of(report, Severity.WARN, "heading-levels")) == 1

    def test_outdated_naming(self, engine):
        """Test old mode names warn."""
        text = make_rulebook(CORE_IDS).replace("A demo project.", "Use GENTLEMAN MODE and wrapup mode.")
        report = engine.validate(parse(text), strict=True)

        assert len(issues_of(report, Severity.WARN, "outdated-naming")) == 2

    def test_tech_stack_without_framework(self, engine):
        """Test a Tech Stack missing framework and language warns twice."""
        report = engine.validate(parse(make_rulebook(CORE_IDS, tech_stack="- Next.js\n")), strict=True)

        assert len(issues_of(report, Severity.WARN, "tech-stack")) == 2

    def test_lints_off_by_default(self, engine):
        """Test lints only run in strict mode."""
        text = make_rulebook(CORE_IDS).replace("A demo project.", "GENTLEMAN MODE")
        report = engine.validate(parse(text))

        assert report.result is Severity.PASS
