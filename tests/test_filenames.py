from datetime import date, datetime

from lifemarks.utils.filenames import artifact_filename, offset_token, sanitize_component


def test_sanitize_strips_everything_but_alphanumerics():
    assert sanitize_component("Jane O'Neil-Smith", "user") == "janeoneilsmith"
    assert sanitize_component("10,000 Days!", "milestone") == "10000days"
    assert sanitize_component("  ", "user") == "user"
    assert sanitize_component("✨✨", "milestone") == "milestone"


def test_offset_tokens():
    now = datetime(2024, 5, 1, 9, 30)
    assert offset_token(date(2024, 5, 13), now) == "12days_left"
    assert offset_token(date(2024, 4, 28), now) == "3days_ago"
    assert offset_token(datetime(2024, 5, 1, 23, 0), now) == "today"


def test_artifact_filename_layout():
    now = datetime(2024, 5, 1)
    name = artifact_filename("Ada Lovelace", "10,000 Days", date(2024, 5, 13), now, ".PNG")
    assert name == "adalovelace_10000days_12days_left.png"


def test_artifact_filename_is_deterministic():
    now = datetime(2030, 1, 1, 12)
    a = artifact_filename("X", "Y", date(2029, 12, 31), now, "webm")
    b = artifact_filename("X", "Y", date(2029, 12, 31), now, "webm")
    assert a == b == "x_y_1days_ago.webm"
