import logging

import pytest

import share_image
from conftest import FakeShare, image_bytes

SHARE_ARGS = ["--host", "nas", "--share", "art"]


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def fake_share(monkeypatch):
    share = FakeShare(dirs=["Conversion", "Converted", "to_be_renamed"])
    monkeypatch.setattr(share_image, "SmbShare", lambda config: share)
    return share


def run_cli(argv):
    with pytest.raises(SystemExit) as exc:
        share_image.main(argv)
    return exc.value.code


def test_convert_runs_without_prompts(fake_share, staging_dir):
    fake_share.add_file("Conversion/input_a.psd", image_bytes())

    code = run_cli(["convert", "-f", "png", "-q", "90", "-y", "--no-progress",
                    "--staging-dir", staging_dir] + SHARE_ARGS)

    assert code == 0
    assert "Converted/_a.png" in fake_share.files


def test_convert_prompts_for_missing_options(fake_share, staging_dir, monkeypatch):
    fake_share.add_file("Conversion/a.psd", image_bytes())
    answers = iter(["2", "75", "yes"])
    monkeypatch.setattr("builtins.input", lambda prompt="": next(answers))

    code = run_cli(["convert", "--no-progress", "--staging-dir", staging_dir] + SHARE_ARGS)

    assert code == 0
    assert "Converted/a.gif" in fake_share.files


def test_convert_declined_confirmation_touches_nothing(fake_share, staging_dir, monkeypatch):
    fake_share.add_file("Conversion/a.psd", image_bytes())
    monkeypatch.setattr("builtins.input", lambda prompt="": "no")

    code = run_cli(["convert", "-f", "jpg", "-q", "50", "--staging-dir", staging_dir] + SHARE_ARGS)

    assert code == 0
    assert fake_share.calls == []


def test_convert_invalid_quality_exits_before_share_access(fake_share, staging_dir):
    code = run_cli(["convert", "-f", "jpg", "-q", "abc", "-y", "--staging-dir", staging_dir] + SHARE_ARGS)

    assert code == 2
    assert fake_share.calls == []


def test_convert_with_failures_exits_one(fake_share, staging_dir):
    fake_share.add_file("Conversion/bad.psd", b"not an image")
    fake_share.add_file("Conversion/good.psd", image_bytes())

    code = run_cli(["convert", "-f", "png", "-q", "90", "-y", "--no-progress",
                    "--staging-dir", staging_dir] + SHARE_ARGS)

    assert code == 1
    assert "Converted/good.png" in fake_share.files


def test_rename_unavailable_root_exits_two(fake_share, staging_dir):
    fake_share.fail_list.add("to_be_renamed")

    code = run_cli(["rename", "-y", "--no-progress", "--staging-dir", staging_dir] + SHARE_ARGS)

    assert code == 2


def test_rename_missing_staging_directory_exits_two(fake_share, tmp_path):
    code = run_cli(["rename", "-y", "--staging-dir", str(tmp_path / "nope")] + SHARE_ARGS)

    assert code == 2
    assert fake_share.calls == []


def test_rename_with_custom_exclusions(fake_share, staging_dir):
    fake_share.add_file("to_be_renamed/A/draft_a.png", image_bytes())
    fake_share.add_file("to_be_renamed/A/final.png", image_bytes())

    code = run_cli(["rename", "-y", "--no-progress", "--exclude", "DRAFT",
                    "--staging-dir", staging_dir] + SHARE_ARGS)

    assert code == 0
    assert "to_be_renamed/A/draft_a.png" in fake_share.files
    assert "to_be_renamed/A/final_8x6.png" in fake_share.files
