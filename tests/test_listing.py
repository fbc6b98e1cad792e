import os
import re

import pytest

from services.errors import NotADirectory, NotFound, ReadFailure
from services.listing import Entry, collation_key, sort_entries

ISO_RE = re.compile(r"^\d{4}-\d\d-\d\dT\d\d:\d\d:\d\d\.\d{3}Z$")


def test_lists_static_files_scenario(lister):
    entries = lister.list("/static-files")
    assert [e.name for e in entries] == ["data", "docs"]
    assert all(e.is_directory for e in entries)
    assert all(e.size == 0 for e in entries)

    d = entries[0].to_dict()
    assert d["name"] == "data"
    assert d["path"] == "/static-files/data"
    assert d["isFolder"] is True
    assert d["size"] == 0
    assert ISO_RE.match(d["modified"])


def test_file_entries_carry_size_and_path(lister):
    entries = lister.list("/static-files/data")
    assert len(entries) == 1
    e = entries[0]
    assert e.to_dict() == {
        "name": "metrics.csv",
        "path": "/static-files/data/metrics.csv",
        "isFolder": False,
        "size": 10,
        "modified": e.modified,
    }


def test_root_listing_paths_have_leading_slash(lister):
    for logical in (None, "", "/"):
        entries = lister.list(logical)
        assert [e.logical_path for e in entries] == ["/static-files"]


def test_directories_first_then_locale_order(root, lister):
    d = root / "mixed"
    d.mkdir()
    for name in ("zeta", "Beta"):
        (d / name).mkdir()
    for name in ("cherry.txt", "Banana.txt", "Éclair.txt", "apple.txt"):
        (d / name).write_text(name)

    names = [e.name for e in lister.list("/mixed")]
    assert names == ["Beta", "zeta", "apple.txt", "Banana.txt", "cherry.txt", "Éclair.txt"]


def test_listing_order_is_stable(root, lister):
    d = root / "many"
    d.mkdir()
    for i in range(30):
        (d / f"file-{i:02d}.txt").write_text("x")
        if i % 3 == 0:
            (d / f"dir-{i:02d}").mkdir()
    first = lister.list("/many")
    second = lister.list("/many")
    assert first == second
    kinds = [e.is_directory for e in first]
    assert kinds == sorted(kinds, reverse=True)


def test_collation_key_ties():
    assert sorted(["B", "a", "A", "b"], key=collation_key) == ["a", "A", "b", "B"]
    assert sorted(["é", "f", "e"], key=collation_key) == ["e", "é", "f"]


def test_sort_entries_puts_folders_first():
    f = Entry("a.txt", "/a.txt", False, 1, "")
    d = Entry("z", "/z", True, 0, "")
    assert sort_entries([f, d]) == [d, f]


def test_missing_directory_is_not_found(lister):
    with pytest.raises(NotFound):
        lister.list("/nonexistent")


def test_traversal_is_reported_as_not_found(lister):
    with pytest.raises(NotFound):
        lister.list("/../../etc")


def test_file_is_not_a_directory(lister):
    with pytest.raises(NotADirectory):
        lister.list("/static-files/data/metrics.csv")


def test_symlinked_directory_is_reported_as_folder(root, lister):
    os.symlink(str(root / "static-files" / "docs"), str(root / "static-files" / "docs-link"))
    entries = {e.name: e for e in lister.list("/static-files")}
    assert entries["docs-link"].is_directory
    assert entries["docs-link"].size == 0


def test_one_failing_child_fails_the_whole_listing(root, lister):
    os.symlink(str(root / "gone"), str(root / "static-files" / "dangling"))
    with pytest.raises(ReadFailure):
        lister.list("/static-files")


def test_symbols_sort_before_digits_and_letters():
    names = ["zeta", "~notes", "apple", "1st", "_draft", "a.txt", "ab.txt"]
    assert sorted(names, key=collation_key) == ["_draft", "~notes", "1st", "a.txt", "ab.txt", "apple", "zeta"]
