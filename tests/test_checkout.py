from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path

import pytest

from git_externals.checkout import (
    build_checkout_command,
    checkout_externals,
    clean_up_externals,
)
from git_externals.core.types import ExternalEntry, SvnCoordinate
from git_externals.result import Failure, Success

C1 = SvnCoordinate("svn://svn.example.com/repos/one", 5)
C2 = SvnCoordinate("svn://svn.example.com/repos/two")


class _FakeCheckout:
    """Stands in for ``svn checkout``: creates the target unless told to fail."""

    def __init__(self, fail_urls: dict[str, int] | None = None) -> None:
        self.fail_urls = fail_urls or {}
        self.calls: list[list[str]] = []
        self.cwds: list[Path] = []

    def __call__(self, cmd, **kwargs):  # type: ignore[no-untyped-def]
        self.calls.append(list(cmd))
        self.cwds.append(kwargs.get("cwd"))
        url, target = cmd[-2], Path(cmd[-1])
        target.mkdir(parents=True)
        (target / "file.txt").write_text(url, encoding="utf-8")
        return subprocess.CompletedProcess(cmd, self.fail_urls.get(url, 0))


@pytest.fixture(autouse=True)
def _svn_executable(monkeypatch) -> None:
    monkeypatch.delenv("GIT_EXTERNALS_SVN", raising=False)


def _example() -> list[ExternalEntry]:
    return [
        ExternalEntry(Path("a"), C1),
        ExternalEntry(Path("b"), C1),
        ExternalEntry(Path("c"), C2),
    ]


def test_build_checkout_command_pins_revision_only_when_given() -> None:
    assert build_checkout_command(C1, Path("/w/a")) == [
        "svn",
        "checkout",
        "-r5",
        "svn://svn.example.com/repos/one",
        "/w/a",
    ]
    assert build_checkout_command(C2, Path("/w/c")) == [
        "svn",
        "checkout",
        "svn://svn.example.com/repos/two",
        "/w/c",
    ]


def test_build_checkout_command_passes_pegged_urls_through() -> None:
    source = SvnCoordinate("svn://svn.example.com/repos/one@10", 5)

    assert build_checkout_command(source, Path("/w/a")) == [
        "svn",
        "checkout",
        "-r5",
        "svn://svn.example.com/repos/one@10",
        "/w/a",
    ]


def test_checks_out_each_source_once_and_links_the_rest(monkeypatch, tmp_path) -> None:
    fake = _FakeCheckout()
    monkeypatch.setattr(subprocess, "run", fake)

    result = checkout_externals(tmp_path, _example())

    assert result == Success({C1: [tmp_path / "a", tmp_path / "b"], C2: [tmp_path / "c"]})
    assert [call[-1] for call in fake.calls] == [str(tmp_path / "a"), str(tmp_path / "c")]
    assert fake.cwds == [tmp_path, tmp_path]
    assert (tmp_path / "b").is_symlink()
    assert (tmp_path / "b").resolve() == (tmp_path / "a").resolve()
    assert (tmp_path / "b" / "file.txt").read_text(encoding="utf-8") == C1.repository_url


def test_links_are_relative(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(subprocess, "run", _FakeCheckout())
    externals = [
        ExternalEntry(Path("libs/one"), C1),
        ExternalEntry(Path("apps/x/one"), C1),
    ]

    result = checkout_externals(tmp_path, externals)

    assert isinstance(result, Success)
    assert os.readlink(tmp_path / "apps" / "x" / "one") == os.path.join("..", "..", "libs", "one")


def test_many_targets_share_one_checkout(monkeypatch, tmp_path) -> None:
    fake = _FakeCheckout()
    monkeypatch.setattr(subprocess, "run", fake)
    externals = [ExternalEntry(Path(f"t{i}"), C1) for i in range(5)]

    result = checkout_externals(tmp_path, externals)

    assert len(fake.calls) == 1
    assert result == Success({C1: [tmp_path / f"t{i}" for i in range(5)]})


def test_no_externals_writes_nothing(monkeypatch, tmp_path) -> None:
    fake = _FakeCheckout()
    monkeypatch.setattr(subprocess, "run", fake)

    assert checkout_externals(tmp_path, []) == Success({})
    assert fake.calls == []
    assert list(tmp_path.iterdir()) == []


def test_existing_primary_target_is_never_cleaned(monkeypatch, tmp_path) -> None:
    fake = _FakeCheckout()
    monkeypatch.setattr(subprocess, "run", fake)
    (tmp_path / "a").mkdir()
    (tmp_path / "a" / "mine.txt").write_text("user data", encoding="utf-8")

    result = checkout_externals(tmp_path, _example())

    assert isinstance(result, Failure)
    assert result.error.paths == frozenset()
    assert "already exists" in result.error.message
    assert fake.calls == []
    assert (tmp_path / "a" / "mine.txt").exists()


def test_existing_link_target_is_excluded_from_cleanup(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(subprocess, "run", _FakeCheckout())
    (tmp_path / "b").mkdir()

    result = checkout_externals(tmp_path, _example())

    assert isinstance(result, Failure)
    assert result.error.paths == frozenset({tmp_path / "a", tmp_path / "c"})
    assert (tmp_path / "b").is_dir()
    assert not (tmp_path / "b").is_symlink()


def test_failed_checkout_is_cleaned_with_earlier_groups(monkeypatch, tmp_path) -> None:
    fake = _FakeCheckout(fail_urls={C2.repository_url: 1})
    monkeypatch.setattr(subprocess, "run", fake)

    result = checkout_externals(tmp_path, _example())

    assert isinstance(result, Failure)
    assert result.error.paths == frozenset({tmp_path / "a", tmp_path / "c"})
    assert "process returned [1]" in result.error.message
    assert not (tmp_path / "b").exists()


def test_first_failure_stops_remaining_groups(monkeypatch, tmp_path) -> None:
    fake = _FakeCheckout(fail_urls={C1.repository_url: 2})
    monkeypatch.setattr(subprocess, "run", fake)

    result = checkout_externals(tmp_path, _example())

    assert isinstance(result, Failure)
    assert result.error.paths == frozenset({tmp_path / "a"})
    assert len(fake.calls) == 1


def test_exception_while_running_checkout_is_cleaned(monkeypatch, tmp_path) -> None:
    def _missing(cmd, **kwargs):  # type: ignore[no-untyped-def]
        raise FileNotFoundError(2, "No such file or directory", "svn")

    monkeypatch.setattr(subprocess, "run", _missing)

    result = checkout_externals(tmp_path, [ExternalEntry(Path("a"), C1)])

    assert isinstance(result, Failure)
    assert result.error.paths == frozenset({tmp_path / "a"})


def test_other_link_failures_are_cleaned(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(subprocess, "run", _FakeCheckout())

    def _denied(*args, **kwargs):  # type: ignore[no-untyped-def]
        raise PermissionError(13, "Permission denied")

    monkeypatch.setattr(os, "symlink", _denied)

    result = checkout_externals(tmp_path, _example())

    assert isinstance(result, Failure)
    assert result.error.paths == frozenset(
        {tmp_path / "a", tmp_path / "b", tmp_path / "c"}
    )


def test_absolute_targets_are_kept(monkeypatch, tmp_path) -> None:
    fake = _FakeCheckout()
    monkeypatch.setattr(subprocess, "run", fake)
    target = tmp_path / "elsewhere"

    result = checkout_externals(tmp_path / "root", [ExternalEntry(target, C2)])

    assert result == Success({C2: [target]})


def test_clean_up_removes_directories_files_and_links(tmp_path) -> None:
    tree = tmp_path / "tree"
    (tree / "nested").mkdir(parents=True)
    (tree / "nested" / "f").write_text("x", encoding="utf-8")
    single = tmp_path / "single.txt"
    single.write_text("x", encoding="utf-8")
    link = tmp_path / "link"
    link.symlink_to(tree, target_is_directory=True)

    result = clean_up_externals([link, tree, single, tmp_path / "missing"])

    assert result == Success(None)
    assert list(tmp_path.iterdir()) == []


def test_clean_up_removes_link_but_not_its_target(tmp_path) -> None:
    keep = tmp_path / "keep"
    keep.mkdir()
    link = tmp_path / "link"
    link.symlink_to(keep, target_is_directory=True)

    assert clean_up_externals([link]) == Success(None)
    assert keep.is_dir()
    assert not link.exists()


def test_clean_up_reports_exactly_the_failed_paths(monkeypatch, tmp_path) -> None:
    good, bad = tmp_path / "good", tmp_path / "bad"
    good.mkdir()
    bad.mkdir()
    real_rmtree = shutil.rmtree

    def _rmtree(path, *args, **kwargs):  # type: ignore[no-untyped-def]
        if Path(path) == bad:
            raise PermissionError(13, "Permission denied", str(path))
        return real_rmtree(path, *args, **kwargs)

    monkeypatch.setattr(shutil, "rmtree", _rmtree)

    result = clean_up_externals({good, bad})

    assert result == Failure(frozenset({bad}))
    assert not good.exists()
    assert bad.exists()


def test_rollback_removes_parent_directories_the_run_created(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(subprocess, "run", _FakeCheckout())
    (tmp_path / "c").mkdir()
    externals = [
        ExternalEntry(Path("a"), C1),
        ExternalEntry(Path("apps/x/b"), C1),
        ExternalEntry(Path("c"), C1),
    ]

    result = checkout_externals(tmp_path, externals)

    assert isinstance(result, Failure)
    assert tmp_path / "apps" in result.error.paths
    assert tmp_path / "apps" / "x" in result.error.paths
    assert tmp_path / "c" not in result.error.paths

    assert clean_up_externals(result.error.paths) == Success(None)
    assert sorted(p.name for p in tmp_path.iterdir()) == ["c"]


def test_rollback_records_parents_of_a_failed_nested_checkout(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(subprocess, "run", _FakeCheckout(fail_urls={C2.repository_url: 1}))
    externals = [ExternalEntry(Path("vendor/deep/two"), C2)]

    result = checkout_externals(tmp_path, externals)

    assert isinstance(result, Failure)
    assert result.error.paths == frozenset(
        {
            tmp_path / "vendor",
            tmp_path / "vendor" / "deep",
            tmp_path / "vendor" / "deep" / "two",
        }
    )
    assert clean_up_externals(result.error.paths) == Success(None)
    assert list(tmp_path.iterdir()) == []
