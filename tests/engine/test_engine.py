"""Tests for the fixed-point auto-correction loop."""

import dataclasses
import io
from pathlib import Path
from unittest.mock import Mock, patch

import pytest
from rich.console import Console

from histfix.backup import BACKUP_PREFIX, Backup
from histfix.core.config import EngineConfig
from histfix.core.exceptions import (
    BackupError,
    HighlightError,
    PersistError,
    SpanError,
    VcsError,
)
from histfix.engine import AutoCorrector, auto_correct
from histfix.highlight.model import Highlight
from histfix.report import Reporter
from histfix.rewrite.extractor import RewriteSet
from histfix.rewrite.model import Rewrite
from histfix.rewriter import FileRewriter
from histfix.types import RunOutcome, UnresolvedReason

COMMIT = "0123456789abcdef0123456789abcdef01234567"

UNWRAP_LINE = "    let v = a.unwrap();"
UNWRAP_SOURCE = f"fn main() {{\n{UNWRAP_LINE}\n}}\n"

CHAIN_LINE = "    let y = x.unwrap().get(k).unwrap();"
CHAIN_FIXED = "    let y = x.and_then(|v| v.get(k)).unwrap();"
CHAIN_SOURCE = f"fn main() {{\n{CHAIN_LINE}\n}}\n"


class ScriptedProvider:
    """Returns one scripted highlight list per call, then nothing."""

    def __init__(self, *responses: list[Highlight]) -> None:
        self.responses = list(responses)
        self.calls = 0

    def collect_highlights(self, root: Path) -> list[Highlight]:
        self.calls += 1
        if not self.responses:
            return []
        return self.responses.pop(0)


def _rewrite(old: str, new: str) -> Rewrite:
    rewrite = Rewrite.try_new([old], [new])
    assert rewrite is not None
    return rewrite


def _unwrap_highlight(is_primary: bool = True, line: int = 2) -> Highlight:
    # "unwrap()" in UNWRAP_LINE
    return Highlight.from_lines(
        message="use of unwrap",
        file_name="foo.rs",
        line_start=line,
        lines=[UNWRAP_LINE],
        column_start=15,
        column_end=23,
        is_primary=is_primary,
    )


def _chain_highlight() -> Highlight:
    # "x.unwrap().get(k).unwrap()" in CHAIN_LINE
    return Highlight.from_lines(
        message="mismatched types",
        file_name="foo.rs",
        line_start=2,
        lines=[CHAIN_LINE],
        column_start=13,
        column_end=39,
        is_primary=True,
    )


def _chain_rewrites() -> RewriteSet:
    return RewriteSet(
        {_rewrite("x.unwrap().get(k).unwrap()", "x.and_then(|v| v.get(k)).unwrap()"): COMMIT}
    )


@pytest.fixture
def report_output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def reporter(report_output: io.StringIO) -> Reporter:
    return Reporter(console=Console(file=report_output, width=400))


def _backups_on_disk(directory: Path) -> list[Path]:
    return [p for p in directory.iterdir() if p.name.startswith(BACKUP_PREFIX)]


class TestAmbiguousHighlight:
    """Two different replacements tie for the best score."""

    def test_file_is_left_untouched(
        self, tmp_path: Path, reporter: Reporter, report_output: io.StringIO
    ) -> None:
        source = tmp_path / "foo.rs"
        source.write_text(UNWRAP_SOURCE)
        rewrites = RewriteSet(
            {
                _rewrite("a.unwrap()", "a.expect(m)"): COMMIT,
                _rewrite("a.unwrap()", "a.expect(n)"): "f" * 40,
            }
        )
        provider = ScriptedProvider([_unwrap_highlight()])

        result = AutoCorrector(tmp_path, provider, rewrites, reporter=reporter).run()

        assert result.outcome is RunOutcome.PARTIALLY_RESOLVED
        assert source.read_text() == UNWRAP_SOURCE
        assert result.applied == []
        (unresolved,) = result.unresolved
        assert unresolved.reason is UnresolvedReason.MULTIPLE_TIED_REWRITES
        assert unresolved.score == 4
        assert list(unresolved.candidates) == ["expect(m", "expect(n"]
        assert "Found multiple rewrites with score 4" in report_output.getvalue()
        # Backups are kept for a run that did not converge
        assert "foo.rs" in result.backups
        assert len(_backups_on_disk(tmp_path)) == 1

    def test_no_applicable_rewrite_is_reported(
        self, tmp_path: Path, reporter: Reporter, report_output: io.StringIO
    ) -> None:
        (tmp_path / "foo.rs").write_text(UNWRAP_SOURCE)
        rewrites = RewriteSet({_rewrite("a.clone()", "a.to_owned()"): COMMIT})
        provider = ScriptedProvider([_unwrap_highlight()])

        result = AutoCorrector(tmp_path, provider, rewrites, reporter=reporter).run()

        assert result.outcome is RunOutcome.PARTIALLY_RESOLVED
        assert result.unresolved[0].reason is UnresolvedReason.NO_APPLICABLE_REWRITE
        assert "Found no applicable rewrites" in report_output.getvalue()


class TestUniqueRewrite:
    """A single best rewrite is applied and the loop converges."""

    def test_rewrite_is_applied(
        self, tmp_path: Path, reporter: Reporter, report_output: io.StringIO
    ) -> None:
        source = tmp_path / "foo.rs"
        source.write_text(CHAIN_SOURCE)
        provider = ScriptedProvider([_chain_highlight()])

        result = AutoCorrector(tmp_path, provider, _chain_rewrites(), reporter=reporter).run()

        assert result.outcome is RunOutcome.CONVERGED
        assert result.succeeded
        assert source.read_text() == f"fn main() {{\n{CHAIN_FIXED}\n}}\n"
        (applied,) = result.applied
        assert applied.source.score == 7
        assert applied.replaced == "unwrap().get(k"
        assert applied.replacement == "and_then(|v| v.get(k)"
        assert result.passes == 1
        assert result.files_written == {"foo.rs"}
        assert provider.calls == 2
        assert "Rewriting with score 7 rewrite from 0123456" in report_output.getvalue()

    def test_backups_are_disabled_on_convergence(self, tmp_path: Path, reporter: Reporter) -> None:
        (tmp_path / "foo.rs").write_text(CHAIN_SOURCE)
        provider = ScriptedProvider([_chain_highlight()])

        result = AutoCorrector(tmp_path, provider, _chain_rewrites(), reporter=reporter).run()

        assert result.backups == {}
        assert _backups_on_disk(tmp_path) == []

    def test_second_run_is_a_no_op(self, tmp_path: Path, reporter: Reporter) -> None:
        """Once converged, a rerun changes nothing and never mines history."""
        source = tmp_path / "foo.rs"
        source.write_text(CHAIN_SOURCE)
        AutoCorrector(
            tmp_path, ScriptedProvider([_chain_highlight()]), _chain_rewrites(), reporter=reporter
        ).run()
        fixed = source.read_text()
        load_rewrites = Mock(return_value=_chain_rewrites())

        result = AutoCorrector(tmp_path, ScriptedProvider(), load_rewrites, reporter=reporter).run()

        assert result.outcome is RunOutcome.CONVERGED
        assert result.passes == 0
        assert source.read_text() == fixed
        load_rewrites.assert_not_called()

    def test_rewrites_are_loaded_once(self, tmp_path: Path, reporter: Reporter) -> None:
        (tmp_path / "foo.rs").write_text(CHAIN_SOURCE + UNWRAP_SOURCE)
        load_rewrites = Mock(return_value=_chain_rewrites())
        provider = ScriptedProvider([_chain_highlight()], [_unwrap_highlight(is_primary=False, line=5)])

        result = AutoCorrector(tmp_path, provider, load_rewrites, reporter=reporter).run()

        load_rewrites.assert_called_once_with()
        assert result.passes == 2

    def test_multiline_replacement_keeps_crlf(self, tmp_path: Path, reporter: Reporter) -> None:
        source = tmp_path / "foo.rs"
        source.write_bytes(b"fn main() {\r\n    f(a);\r\n}\r\n")
        rewrite = Rewrite.try_new(["f(a)"], ["g(a,", "  b)"])
        assert rewrite is not None
        highlight = Highlight.from_lines(
            message="wrong arity",
            file_name="foo.rs",
            line_start=2,
            lines=["    f(a);"],
            column_start=5,
            column_end=9,
            is_primary=True,
        )

        provider = ScriptedProvider([highlight])

        result = AutoCorrector(
            tmp_path, provider, RewriteSet({rewrite: COMMIT}), reporter=reporter
        ).run()

        assert result.outcome is RunOutcome.CONVERGED
        assert source.read_bytes() == b"fn main() {\r\n    g(a,\r\n  b);\r\n}\r\n"

    def test_backups_failing_to_disable_are_kept(
        self, tmp_path: Path, reporter: Reporter, report_output: io.StringIO
    ) -> None:
        (tmp_path / "bar.rs").write_text(CHAIN_SOURCE)
        (tmp_path / "foo.rs").write_text(CHAIN_SOURCE)
        bar_highlight = dataclasses.replace(_chain_highlight(), file_name="bar.rs")
        highlights = [bar_highlight, _chain_highlight()]
        real_disable = Backup.disable

        def disable_except_foo(backup: Backup) -> None:
            if backup.path.name == "foo.rs":
                raise BackupError("cannot remove backup", backup.path)
            real_disable(backup)

        with patch.object(Backup, "disable", autospec=True, side_effect=disable_except_foo):
            result = AutoCorrector(
                tmp_path, ScriptedProvider(highlights), _chain_rewrites(), reporter=reporter
            ).run()

        assert result.outcome is RunOutcome.ABORTED
        assert list(result.backups) == ["foo.rs"]
        assert result.backups["foo.rs"].active
        assert "-> None" not in report_output.getvalue()
        assert len(_backups_on_disk(tmp_path)) == 1


class TestPassOrdering:
    """Highlights are processed by file and ascending line within a pass."""

    def test_second_highlight_on_same_line_is_deferred(
        self, tmp_path: Path, reporter: Reporter
    ) -> None:
        (tmp_path / "foo.rs").write_text(CHAIN_SOURCE)
        duplicate = Highlight.from_lines(
            message="another diagnostic",
            file_name="foo.rs",
            line_start=2,
            lines=[CHAIN_LINE],
            column_start=13,
            column_end=39,
            is_primary=True,
        )
        provider = ScriptedProvider([_chain_highlight(), duplicate])

        result = AutoCorrector(tmp_path, provider, _chain_rewrites(), reporter=reporter).run()

        assert result.outcome is RunOutcome.CONVERGED
        assert len(result.applied) == 1
        assert (tmp_path / "foo.rs").read_text() == f"fn main() {{\n{CHAIN_FIXED}\n}}\n"

    def test_unresolved_secondary_highlight_is_ignored(
        self, tmp_path: Path, reporter: Reporter
    ) -> None:
        (tmp_path / "foo.rs").write_text(CHAIN_SOURCE)
        secondary = Highlight.from_lines(
            message="note",
            file_name="foo.rs",
            line_start=1,
            lines=["fn main() {"],
            column_start=1,
            column_end=3,
            is_primary=False,
        )
        provider = ScriptedProvider([secondary, _chain_highlight()])

        result = AutoCorrector(tmp_path, provider, _chain_rewrites(), reporter=reporter).run()

        assert result.outcome is RunOutcome.CONVERGED
        assert result.unresolved == []
        assert len(result.applied) == 1

    def test_pass_without_edits_stops(self, tmp_path: Path, reporter: Reporter) -> None:
        """Only unrewritable secondary highlights left: stop rather than spin."""
        (tmp_path / "foo.rs").write_text(UNWRAP_SOURCE)
        secondary = _unwrap_highlight(is_primary=False)
        provider = ScriptedProvider([secondary], [secondary], [secondary])
        rewrites = RewriteSet({_rewrite("a.clone()", "a.to_owned()"): COMMIT})

        result = AutoCorrector(tmp_path, provider, rewrites, reporter=reporter).run()

        assert result.outcome is RunOutcome.PARTIALLY_RESOLVED
        assert result.passes == 1
        assert provider.calls == 1


class TestPassLimit:
    def test_pass_limit_stops_the_loop(self, tmp_path: Path, reporter: Reporter) -> None:
        source = tmp_path / "foo.rs"
        source.write_text(CHAIN_SOURCE + UNWRAP_SOURCE)
        provider = ScriptedProvider([_chain_highlight()], [_unwrap_highlight(line=5)])

        result = AutoCorrector(
            tmp_path,
            provider,
            _chain_rewrites(),
            config=EngineConfig(max_passes=1),
            reporter=reporter,
        ).run()

        assert result.outcome is RunOutcome.PASS_LIMIT
        assert result.passes == 1
        assert "foo.rs" in result.backups

    def test_backups_restore_original_content(self, tmp_path: Path, reporter: Reporter) -> None:
        source = tmp_path / "foo.rs"
        source.write_text(CHAIN_SOURCE + UNWRAP_SOURCE)
        provider = ScriptedProvider([_chain_highlight()], [_unwrap_highlight(line=5)])
        result = AutoCorrector(
            tmp_path,
            provider,
            _chain_rewrites(),
            config=EngineConfig(max_passes=1),
            reporter=reporter,
        ).run()
        assert source.read_text() != CHAIN_SOURCE + UNWRAP_SOURCE

        result.restore_backups()

        assert source.read_text() == CHAIN_SOURCE + UNWRAP_SOURCE
        assert _backups_on_disk(tmp_path) == []


class TestAbort:
    """Errors end the run as ABORTED with the error recorded."""

    def test_provider_failure(self, tmp_path: Path, reporter: Reporter) -> None:
        provider = Mock()
        provider.collect_highlights.side_effect = HighlightError("cargo not found")

        result = AutoCorrector(tmp_path, provider, _chain_rewrites(), reporter=reporter).run()

        assert result.outcome is RunOutcome.ABORTED
        assert isinstance(result.error, HighlightError)

    def test_mining_failure_touches_nothing(self, tmp_path: Path, reporter: Reporter) -> None:
        source = tmp_path / "foo.rs"
        source.write_text(CHAIN_SOURCE)
        load_rewrites = Mock(side_effect=VcsError("bad ref"))

        result = AutoCorrector(
            tmp_path, ScriptedProvider([_chain_highlight()]), load_rewrites, reporter=reporter
        ).run()

        assert result.outcome is RunOutcome.ABORTED
        assert isinstance(result.error, VcsError)
        assert result.backups == {}
        assert source.read_text() == CHAIN_SOURCE
        assert _backups_on_disk(tmp_path) == []

    def test_persist_failure_keeps_backups(self, tmp_path: Path, reporter: Reporter) -> None:
        (tmp_path / "foo.rs").write_text(CHAIN_SOURCE)
        provider = ScriptedProvider([_chain_highlight()])

        with patch.object(
            FileRewriter, "persist", side_effect=PersistError("disk full", tmp_path / "foo.rs")
        ):
            result = AutoCorrector(tmp_path, provider, _chain_rewrites(), reporter=reporter).run()

        assert result.outcome is RunOutcome.ABORTED
        assert isinstance(result.error, PersistError)
        assert "foo.rs" in result.backups
        assert len(_backups_on_disk(tmp_path)) == 1

    def test_highlight_past_end_of_file(self, tmp_path: Path, reporter: Reporter) -> None:
        """Stale analysis output pointing beyond the file aborts the run."""
        source = tmp_path / "foo.rs"
        source.write_text("fn main() {}\n")
        rewrites = RewriteSet({_rewrite("a.unwrap()", "a.expect(m)"): COMMIT})
        provider = ScriptedProvider([_unwrap_highlight(line=9)])

        result = AutoCorrector(tmp_path, provider, rewrites, reporter=reporter).run()

        assert result.outcome is RunOutcome.ABORTED
        assert isinstance(result.error, SpanError)
        assert "foo.rs" in result.backups
        assert source.read_text() == "fn main() {}\n"
        assert len(_backups_on_disk(tmp_path)) == 1

    def test_missing_file(self, tmp_path: Path, reporter: Reporter) -> None:
        provider = ScriptedProvider([_chain_highlight()])

        result = AutoCorrector(tmp_path, provider, _chain_rewrites(), reporter=reporter).run()

        assert result.outcome is RunOutcome.ABORTED


class TestAutoCorrect:
    """End to end: mine a real repository, fix a file in it."""

    def test_mined_rewrite_fixes_file(self, git_repo, reporter: Reporter) -> None:
        git_repo.commit({"src/old.rs": "    let z = x.unwrap().get(k).unwrap();\n"}, "base")
        base = git_repo.head()
        git_repo.commit(
            {"src/old.rs": "    let z = x.and_then(|v| v.get(k)).unwrap();\n"}, "fix chain"
        )
        (git_repo.root / "foo.rs").write_text(CHAIN_SOURCE)
        provider = ScriptedProvider([_chain_highlight()])

        result = auto_correct(
            git_repo.root, base, "HEAD", provider=provider, reporter=reporter
        )

        assert result.outcome is RunOutcome.CONVERGED
        assert (git_repo.root / "foo.rs").read_text() == f"fn main() {{\n{CHAIN_FIXED}\n}}\n"

    def test_bad_ref_aborts(self, git_repo, reporter: Reporter) -> None:
        (git_repo.root / "foo.rs").write_text(CHAIN_SOURCE)

        result = auto_correct(
            git_repo.root,
            "no-such-ref",
            "HEAD",
            provider=ScriptedProvider([_chain_highlight()]),
            reporter=reporter,
        )

        assert result.outcome is RunOutcome.ABORTED
        assert isinstance(result.error, VcsError)
        assert (git_repo.root / "foo.rs").read_text() == CHAIN_SOURCE
