import logging

from modules.errors import DecodeError
from modules.report import BatchReport, EntryResult, Outcome, print_summary


def test_failed_result_carries_error_kind():
    result = EntryResult.failed("Conversion/a.psd", DecodeError("not an image"))
    assert result.error_kind == "decode"
    assert result.as_event() == {
        "level": "ERROR",
        "entryPath": "Conversion/a.psd",
        "outcome": "failed",
        "detail": "not an image",
    }


def test_unexpected_errors_are_classified():
    assert EntryResult.failed("a", RuntimeError("boom")).error_kind == "unexpected"


def test_warning_raises_event_level_but_keeps_outcome():
    result = EntryResult.success("a", "ok").with_warning("temp file left behind")
    assert result.outcome is Outcome.SUCCESS
    assert result.level == logging.WARNING
    assert result.as_event()["detail"] == "ok; temp file left behind"


def test_batch_report_counts_and_logs(caplog):
    report = BatchReport("Conversion")
    with caplog.at_level(logging.INFO, logger="modules.report"):
        report.record(EntryResult.success("a", "ok"))
        report.record(EntryResult.skipped("b", "Skipping b"))
        report.record(EntryResult.failed("c", DecodeError("bad")))

    assert (report.visited, report.succeeded, report.skipped, report.failed) == (3, 1, 1, 1)
    assert [r.entry_path for r in report.failures()] == ["c"]
    assert any(rec.levelno == logging.ERROR and "c" in rec.getMessage() for rec in caplog.records)


def test_print_summary_lists_failures(capsys):
    report = BatchReport("Rename")
    report.record(EntryResult.failed("to_be_renamed/x.psd", DecodeError("bad header")))
    print_summary(report)
    out = capsys.readouterr().out
    assert "Failed: 1" in out
    assert "'to_be_renamed/x.psd' (decode): bad header" in out
