"""Tests for the EduPortal CLI subcommands."""

import pytest

from cli.commands import build_parser, main
from eduportal.seed import INITIAL_USERS, INITIAL_VIDEOS


def test_build_parser_requires_subcommand():
    parser = build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args([])


def test_build_parser_data_dir_before_subcommand():
    args = build_parser().parse_args(["--data-dir", "/tmp/x", "videos", "reset", "--yes"])
    assert args.data_dir == "/tmp/x"
    assert args.videos_action == "reset"
    assert args.yes is True


@pytest.mark.asyncio
async def test_init_reports_seeded_state(tmp_path, capsys):
    await main(["--data-dir", str(tmp_path), "init"])
    out = capsys.readouterr().out

    assert "Migration state: seeded" in out
    assert f"Videos: {len(INITIAL_VIDEOS)}" in out
    assert f"Users:  {len(INITIAL_USERS)}" in out


@pytest.mark.asyncio
async def test_init_twice_keeps_catalog(tmp_path, capsys):
    await main(["--data-dir", str(tmp_path), "init"])
    await main(["--data-dir", str(tmp_path), "init"])
    out = capsys.readouterr().out

    assert out.count(f"Videos: {len(INITIAL_VIDEOS)}") == 2


@pytest.mark.asyncio
async def test_videos_list(tmp_path, capsys):
    await main(["--data-dir", str(tmp_path), "videos", "list"])
    out = capsys.readouterr().out

    assert "video_seed_1" in out
    assert "Introduction to Algebra" in out


@pytest.mark.asyncio
async def test_videos_reset_cancelled(tmp_path, capsys, monkeypatch):
    monkeypatch.setattr("builtins.input", lambda _: "n")
    await main(["--data-dir", str(tmp_path), "videos", "reset"])
    assert "Cancelled." in capsys.readouterr().out


@pytest.mark.asyncio
async def test_videos_reset_with_yes(tmp_path, capsys):
    await main(["--data-dir", str(tmp_path), "videos", "reset", "--yes"])
    assert f"✓ Catalog reset ({len(INITIAL_VIDEOS)} videos)." in capsys.readouterr().out


@pytest.mark.asyncio
async def test_users_list_never_prints_passwords(tmp_path, capsys):
    await main(["--data-dir", str(tmp_path), "users", "list"])
    out = capsys.readouterr().out

    assert "admin@eduportal.com" in out
    assert "admin123" not in out
    assert "student123" not in out


@pytest.mark.asyncio
async def test_progress_show_unknown_user_exits(tmp_path, capsys):
    with pytest.raises(SystemExit) as excinfo:
        await main(["--data-dir", str(tmp_path), "progress", "show", "ghost"])
    assert excinfo.value.code == 1
    assert "User ghost not found." in capsys.readouterr().out


@pytest.mark.asyncio
async def test_progress_show_empty(tmp_path, capsys):
    await main(["--data-dir", str(tmp_path), "progress", "show", "user_student_8"])
    out = capsys.readouterr().out

    assert "Progress for user_student_8 (0 video(s))" in out
    assert "Completed (0):" in out
