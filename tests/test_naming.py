"""File naming: sanitization, title/no-title names and alternate detection."""

from __future__ import annotations

import os

from dailybing.naming import FilenamePlanner, filename_for, sanitize_title


def test_sanitize_replaces_illegal_characters():
    assert sanitize_title('a\\b"c<d>e|f') == "a-b-c-d-e-f"
    assert sanitize_title("A/B:C*D?") == "A-B-C-D"
    assert sanitize_title("???") == ""
    assert sanitize_title(None) == ""


def test_plan_with_title(tmp_path):
    plan = FilenamePlanner().plan("20260101", "A/B:C*D?", str(tmp_path))
    assert plan.filename == "20260101@A-B-C-D.jpg"
    assert plan.final_path == os.path.join(str(tmp_path), "20260101@A-B-C-D.jpg")
    assert plan.staging_path == plan.final_path + ".tmp"
    assert plan.existing_alternate_paths == ()


def test_plan_without_title(tmp_path):
    plan = FilenamePlanner().plan("20260101", "", str(tmp_path))
    assert plan.filename == "20260101.jpg"
    assert filename_for("20260101", "?*") == "20260101.jpg"


def test_alternates_exclude_canonical_and_other_dates(tmp_path):
    for name in (
        "20260101.jpg",
        "20260101@Old title.jpg",
        "20260101@New.jpg",
        "20260101@New.jpg.tmp",
        "20260102.jpg",
        "x20260101.jpg",
    ):
        (tmp_path / name).write_bytes(b"x")
    (tmp_path / "20260101@dir.jpg").mkdir()

    plan = FilenamePlanner().plan("20260101", "New", str(tmp_path))
    names = [os.path.basename(p) for p in plan.existing_alternate_paths]
    assert names == ["20260101.jpg", "20260101@Old title.jpg"]


def test_plan_does_not_touch_filesystem(tmp_path):
    (tmp_path / "20260101.jpg").write_bytes(b"old")
    before = sorted(os.listdir(tmp_path))
    FilenamePlanner().plan("20260101", "Title", str(tmp_path))
    assert sorted(os.listdir(tmp_path)) == before


def test_stale_staging_excludes_current_staging(tmp_path):
    for name in ("20260101.jpg.tmp", "20260101@Old.jpg.tmp", "20260101@New.jpg.tmp", "20260102.jpg.tmp"):
        (tmp_path / name).write_bytes(b"x")

    plan = FilenamePlanner().plan("20260101", "New", str(tmp_path))
    names = [os.path.basename(p) for p in plan.stale_staging_paths]
    assert names == ["20260101.jpg.tmp", "20260101@Old.jpg.tmp"]
    assert plan.existing_alternate_paths == ()
