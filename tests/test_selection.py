"""Tests for SelectionSession."""

import pytest

from roster.core.errors import ConfirmationRequiredError, SessionClosedError
from roster.core.models import ActivationState, Category
from roster.document.parser import parse
from roster.document.writer import read_document
from roster.engine.selection import SelectionSession, SessionState
from roster.install.snapshot import SnapshotManager

from conftest import CORE_IDS, make_rulebook


class TestActivationState:
    """Tests for the immutable active set."""

    def test_toggle_returns_new_state(self):
        """Test toggle never mutates."""
        state = ActivationState.of(["a"])
        toggled = state.toggle("b")

        assert "b" in toggled
        assert "b" not in state

    def test_toggle_twice_is_identity(self):
        """Test toggle is its own inverse."""
        state = ActivationState.of(["a", "b"])
        assert state.toggle("c").toggle("c") == state
        assert state.toggle("a").toggle("a") == state

    def test_known_and_unknown(self, catalog):
        """Test splitting by catalog membership."""
        state = ActivationState.of(["code-reviewer", "legacy-agent"])
        assert state.known(catalog) == {"code-reviewer"}
        assert state.unknown(catalog) == ["legacy-agent"]


class TestSelectionCommands:
    """Tests for in-memory commands."""

    @pytest.fixture
    def session(self, catalog):
        """Session over a document with the baseline and react active."""
        document = parse(make_rulebook(CORE_IDS + ["react-specialist"]))
        return SelectionSession(catalog, document)

    def test_toggle_idempotent_pair(self, session):
        """Test toggling twice restores the original set."""
        before = session.active
        session.toggle("vue-specialist")
        session.toggle("vue-specialist")

        assert session.active == before
        assert session.changes().empty

    def test_toggle_reports_new_state(self, session):
        """Test toggle returns whether the id is now active."""
        assert session.toggle("vue-specialist") is True
        assert session.toggle("react-specialist") is False

    def test_toggle_normalizes_id(self, session):
        """Test ids are normalized to slugs."""
        session.toggle("Vue_Specialist")
        assert session.is_active("vue-specialist")

    def test_toggle_unknown_id_warns_and_toggles(self, session):
        """Test unknown ids are recorded as warnings but still toggled."""
        assert session.toggle("legacy-agent") is True

        assert len(session.warnings) == 1
        assert session.warnings[0].capability_id == "legacy-agent"
        assert "legacy-agent" in session.active

    def test_activate_and_deactivate(self, session):
        """Test explicit activation."""
        session.activate("vue-specialist", "svelte-specialist")
        session.deactivate("react-specialist")

        changes = session.changes()
        assert changes.added == ["svelte-specialist", "vue-specialist"]
        assert changes.removed == ["react-specialist"]

    def test_activate_category(self, session, catalog):
        """Test a whole category can be activated."""
        session.activate_category(Category.FRONTEND)
        assert catalog.ids_in(Category.FRONTEND) <= session.active.ids

    def test_activate_category_by_name(self, session, catalog):
        """Test categories can be named by string."""
        session.activate_category("frontend")
        assert catalog.ids_in(Category.FRONTEND) <= session.active.ids

    def test_deactivate_category(self, session):
        """Test a whole category can be deactivated."""
        session.deactivate_category(Category.FRONTEND)
        assert "react-specialist" not in session.active
        assert not session.destructive

    def test_deactivate_baseline_category_is_destructive(self, session):
        """Test dropping the baseline marks the session destructive."""
        session.deactivate_category(Category.CORE)
        assert session.destructive
        assert len(session.active) == 1

    def test_activate_all(self, session, catalog):
        """Test every catalog id becomes active."""
        session.activate_all()
        assert session.active.ids == catalog.all_ids()

    def test_deactivate_all_keeps_baseline_and_unknown(self, catalog):
        """Test deactivate_all keeps the baseline and unknown ids."""
        document = parse(make_rulebook(CORE_IDS + ["react-specialist", "legacy-agent"]))
        session = SelectionSession(catalog, document)
        session.deactivate_all()

        assert session.active.ids == set(CORE_IDS) | {"legacy-agent"}
        assert session.destructive

    def test_reset_requires_confirmation(self, session):
        """Test reset without confirm raises with the dropped ids."""
        with pytest.raises(ConfirmationRequiredError) as exc_info:
            session.reset_to_baseline()

        assert exc_info.value.dropped == ["react-specialist"]
        assert "react-specialist" in session.active

    def test_reset_with_confirmation(self, session):
        """Test reset replaces the set with exactly the baseline."""
        assert session.preview_reset() == ["react-specialist"]
        session.reset_to_baseline(confirm=True)
        assert session.active.ids == set(CORE_IDS)

    def test_reset_when_already_baseline(self, catalog):
        """Test reset needs no confirmation when nothing is dropped."""
        session = SelectionSession(catalog, parse(make_rulebook(CORE_IDS)))
        session.reset_to_baseline()
        assert not session.destructive


class TestSelectionLifecycle:
    """Tests for commit and cancel."""

    def test_nothing_written_before_commit(self, project, catalog):
        """Test commands stay in memory until commit."""
        before = project.rulebook.read_bytes()
        session = SelectionSession.open(catalog, project.rulebook)
        session.toggle("vue-specialist")

        assert project.rulebook.read_bytes() == before

    def test_commit_writes_once(self, project, catalog):
        """Test commit rewrites the Active block."""
        session = SelectionSession.open(catalog, project.rulebook)
        session.toggle("vue-specialist")
        committed = session.commit()

        assert session.state is SessionState.COMMITTED
        assert "vue-specialist" in committed
        assert "vue-specialist" in read_document(project.rulebook).active_ids()

    def test_commit_without_changes_skips_write(self, project, catalog):
        """Test an unchanged set leaves the file untouched."""
        before = project.rulebook.read_bytes()
        session = SelectionSession.open(catalog, project.rulebook)
        session.toggle("vue-specialist")
        session.toggle("vue-specialist")
        session.commit()

        assert project.rulebook.read_bytes() == before

    def test_destructive_commit_snapshots(self, project, catalog):
        """Test a destructive commit takes a snapshot first."""
        snapshots = SnapshotManager(project.config_dir)
        session = SelectionSession.open(catalog, project.rulebook, snapshots=snapshots)
        session.reset_to_baseline(confirm=True)
        session.commit()

        assert session.snapshot is not None
        assert len(snapshots.list()) == 1
        restored = (session.snapshot.snapshot_path / project.rulebook.name).read_text(encoding="utf-8")
        assert "react-specialist" in restored

    def test_non_destructive_commit_no_snapshot(self, project, catalog):
        """Test plain toggles do not snapshot."""
        snapshots = SnapshotManager(project.config_dir)
        session = SelectionSession.open(catalog, project.rulebook, snapshots=snapshots)
        session.toggle("react-specialist")
        session.commit()

        assert session.snapshot is None
        assert snapshots.list() == []

    def test_cancel_discards(self, project, catalog):
        """Test cancel drops pending changes."""
        session = SelectionSession.open(catalog, project.rulebook)
        session.toggle("vue-specialist")
        session.cancel()

        assert session.state is SessionState.CANCELLED
        assert "vue-specialist" not in session.active

    def test_commands_after_commit_raise(self, project, catalog):
        """Test a closed session rejects commands."""
        session = SelectionSession.open(catalog, project.rulebook)
        session.commit()

        with pytest.raises(SessionClosedError):
            session.toggle("vue-specialist")
        with pytest.raises(SessionClosedError):
            session.commit()

    def test_commit_creates_missing_section(self, tmp_path, catalog):
        """Test committing to a document without the section appends it."""
        path = tmp_path / "RULEBOOK.md"
        path.write_text("# RULEBOOK\n\n## Project Overview\n\nx\n", encoding="utf-8")

        session = SelectionSession.open(catalog, path)
        session.activate("code-reviewer")
        session.commit()

        text = path.read_text(encoding="utf-8")
        assert text.startswith("# RULEBOOK\n\n## Project Overview\n\nx\n")
        assert text.endswith("## Active Capabilities\n\n- code-reviewer\n")
