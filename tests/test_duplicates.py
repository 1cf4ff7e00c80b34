import logging

from app.schemas.scan import DuplicateCheckConfig, DuplicateReason, ScanKind
from app.services.scanning.duplicates import (
    check_duplicate,
    check_duplicate_across_sessions,
    check_duplicate_across_sessions_guarded,
    check_duplicate_guarded,
    summarize_session_scans,
    validate_scan_sequence,
)

from tests.conftest import at

CFG = DuplicateCheckConfig()


def _check(scan_type, history, now, config=CFG):
    return check_duplicate("st1", "s1", ScanKind(scan_type), history, config, now)


def test_first_time_in_is_accepted():
    r = _check("time_in", [], at(9, 15))
    assert not r.is_duplicate
    assert r.reason == DuplicateReason.no_duplicate
    assert r.total_scans == 0
    assert r.last_scan is None


def test_max_scans_wins(make_record):
    history = [make_record("time_in", at(9)), make_record("time_out", at(11))]
    r = _check("time_out", history, at(11, 30))
    assert r.is_duplicate
    assert r.reason == DuplicateReason.max_scans_reached
    assert r.total_scans == 2
    assert r.last_scan.scan_type == ScanKind.time_out


def test_too_soon(make_record):
    history = [make_record("time_in", at(9, 14, 30))]
    r = _check("time_in", history, at(9, 15))
    assert r.reason == DuplicateReason.too_soon
    assert r.time_since_last_scan_minutes == 0


def test_second_time_in_rejected_regardless_of_elapsed_time(make_record):
    history = [make_record("time_in", at(9, 5))]
    for now in (at(9, 15), at(11), at(11, 59)):
        r = _check("time_in", history, now)
        assert r.reason == DuplicateReason.multiple_time_in_not_allowed
        assert r.last_scan.id == history[0].id


def test_multiple_time_out_not_allowed(make_record):
    cfg = DuplicateCheckConfig(max_scans_per_session=5)
    history = [make_record("time_in", at(9)), make_record("time_out", at(11))]
    r = _check("time_out", history, at(11, 20), cfg)
    assert r.reason == DuplicateReason.multiple_time_out_not_allowed


def test_duplicate_window_applies_to_any_type(make_record):
    cfg = DuplicateCheckConfig(allow_multiple_time_in=True)
    history = [make_record("time_in", at(9, 12))]
    r = _check("time_in", history, at(9, 15), cfg)
    assert r.reason == DuplicateReason.within_duplicate_window
    assert r.time_since_last_scan_minutes == 3


def test_time_out_without_time_in():
    r = _check("time_out", [], at(11))
    assert r.is_duplicate
    assert r.reason == DuplicateReason.time_out_without_time_in


def test_time_out_just_after_duplicate_window(make_record):
    history = [make_record("time_in", at(9, 10))]
    r = _check("time_out", history, at(9, 16))
    assert not r.is_duplicate
    assert r.reason == DuplicateReason.no_duplicate
    assert r.total_scans == 1
    assert r.time_since_last_scan_minutes == 6

    # no limite da janela (5 min) ainda é duplicado
    r = _check("time_out", history, at(9, 15))
    assert r.reason == DuplicateReason.within_duplicate_window


def test_history_is_filtered_and_sorted(make_record):
    history = [
        make_record("time_in", at(9, 1), student_id="other"),
        make_record("time_in", at(9, 2), session_id="s2"),
        make_record("time_in", at(8, 50)),
    ]
    r = _check("time_out", list(reversed(history)), at(9, 30))
    assert r.reason == DuplicateReason.no_duplicate
    assert r.total_scans == 1
    assert r.last_scan.timestamp == at(8, 50)


def test_cross_session_duplicate(make_record):
    history = [
        make_record("time_in", at(9, 13), session_id="s2"),
        make_record("time_in", at(8), session_id="s0"),
    ]
    r = check_duplicate_across_sessions("st1", "e1", history, CFG, at(9, 15))
    assert r.is_duplicate
    assert r.reason == DuplicateReason.cross_session_duplicate
    assert r.last_scan.session_id == "s2"
    assert r.total_scans == 2
    assert "s2" in r.message


def test_cross_session_ignores_old_and_foreign_records(make_record):
    history = [
        make_record("time_in", at(9), session_id="s2"),
        make_record("time_in", at(9, 14), session_id="s9", event_id="e2"),
    ]
    r = check_duplicate_across_sessions("st1", "e1", history, CFG, at(9, 15))
    assert not r.is_duplicate
    assert r.total_scans == 1


def test_guarded_fails_open_and_logs(caplog):
    def broken(student_id, key):
        raise RuntimeError("db down")

    with caplog.at_level(logging.WARNING, logger="app.services.scanning.duplicates"):
        r = check_duplicate_guarded(broken, "st1", "s1", ScanKind.time_in, CFG, at(9, 15))
    assert not r.is_duplicate
    assert r.reason == DuplicateReason.error
    assert r.error == "db down"
    assert "lookup failed" in caplog.text

    r = check_duplicate_across_sessions_guarded(broken, "st1", "e1", CFG, at(9, 15))
    assert not r.is_duplicate
    assert r.reason == DuplicateReason.error


def test_guarded_passes_keys_to_lookup(make_record):
    calls = []

    def lookup(student_id, key):
        calls.append((student_id, key))
        return [make_record("time_in", at(9, 5))]

    r = check_duplicate_guarded(lookup, "st1", "s1", ScanKind.time_in, CFG, at(9, 15))
    assert calls == [("st1", "s1")]
    assert r.reason == DuplicateReason.multiple_time_in_not_allowed


def test_validate_scan_sequence(make_record):
    time_in = make_record("time_in", at(9))
    time_out = make_record("time_out", at(11))

    assert validate_scan_sequence("st1", "s1", ScanKind.time_out, []).reason == "no_time_in"
    assert validate_scan_sequence("st1", "s1", ScanKind.time_in, [time_in]).reason == "already_time_in"
    assert validate_scan_sequence("st1", "s1", ScanKind.time_out, [time_in, time_out]).reason == "already_time_out"
    ok = validate_scan_sequence("st1", "s1", ScanKind.time_out, [time_in])
    assert ok.is_valid and ok.reason == "valid_sequence"


def test_summarize_session_scans(make_record):
    records = [
        make_record("time_in", at(9), student_id="a"),
        make_record("time_out", at(11), student_id="a"),
        make_record("time_in", at(9, 5), student_id="b"),
        make_record("time_in", at(9, 6), student_id="c", session_id="s2"),
    ]
    stats = summarize_session_scans(records, "s1")
    assert stats.total_scans == 3
    assert stats.time_in_scans == 2
    assert stats.time_out_scans == 1
    assert stats.unique_students == 2
    assert stats.incomplete_students == 1
