# app/services/scanning/__init__.py
from app.services.scanning.decider import (  # noqa: F401
    decide_scan_type,
    describe_scan_type,
    determine_time_in_or_out,
    is_within_acceptable_time_range,
)
from app.services.scanning.duplicates import (  # noqa: F401
    check_duplicate,
    check_duplicate_across_sessions,
    check_duplicate_across_sessions_guarded,
    check_duplicate_guarded,
    summarize_session_scans,
    validate_scan_sequence,
)
from app.services.scanning.processor import build_rejection, extract_identity, process  # noqa: F401
from app.services.scanning.windows import minutes_between, resolve_windows, session_status  # noqa: F401
