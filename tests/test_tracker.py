import pytest

from attendance.windows import EventSchedule
from detection.state import DetectionState
from detection.tracker import BoxStatus, FaceMatch, LiveMatchTracker

EVENT_ID = 7
ANA = FaceMatch(student_id=1, label="Ana Cruz", distance=0.25, bbox=(10, 60, 60, 10))
BEN = FaceMatch(student_id=2, label="Ben Reyes", distance=0.31, bbox=(10, 160, 60, 110))
STRANGER = FaceMatch(student_id=None, label="unknown", distance=0.62)


class ManualClock:
    def __init__(self):
        self.ms = 0.0

    def __call__(self):
        return self.ms


class Recorder:
    """Stands in for the background write queue."""

    def __init__(self):
        self.calls = []

    def __call__(self, student_id, event_id, session, check_type):
        self.calls.append((student_id, event_id, session, check_type))


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def submitted():
    return Recorder()


@pytest.fixture
def state():
    return DetectionState()


def make_tracker(state, submitted, clock, now="08:10", windows=None, **options):
    schedule = EventSchedule.from_event(
        windows if windows is not None else {"am_in_start_time": "08:00", "am_in_end_time": "08:30"}
    )
    time_of_day = now if callable(now) else (lambda: now)
    return LiveMatchTracker(state, EVENT_ID, schedule, submitted,
                            clock=clock, time_of_day=time_of_day, **options)


def run_frames(tracker, clock, matches, start, end, step=100):
    outcomes = []
    for ms in range(start, end + 1, step):
        clock.ms = ms
        outcomes.append(tracker.process(matches))
    return outcomes


def test_continuous_presence_triggers_one_write(state, submitted, clock):
    tracker = make_tracker(state, submitted, clock)

    frames = run_frames(tracker, clock, [ANA], 0, 3000)

    assert submitted.calls == [(1, EVENT_ID, "AM", "IN")]
    assert frames[0][0].status is BoxStatus.TRACKING
    assert frames[0][0].caption == "Ana Cruz (75%)"
    assert frames[-1][0].status is BoxStatus.SUBMITTED
    assert state.pending == {1}
    assert 1 not in state.detection_timers


def test_no_write_before_dwell_time(state, submitted, clock):
    tracker = make_tracker(state, submitted, clock)

    run_frames(tracker, clock, [ANA], 0, 2900)

    assert submitted.calls == []


def test_pending_and_attended_students_are_never_written_again(state, submitted, clock):
    tracker = make_tracker(state, submitted, clock)
    run_frames(tracker, clock, [ANA], 0, 3000)

    frames = run_frames(tracker, clock, [ANA], 3100, 6000)
    assert frames[0][0].status is BoxStatus.ATTENDED
    assert frames[0][0].caption == "Ana Cruz - Recorded"

    tracker.complete_write(1, True, label="Ana Cruz", session="AM", check_type="IN")
    run_frames(tracker, clock, [ANA], 6100, 20000)

    assert submitted.calls == [(1, EVENT_ID, "AM", "IN")]
    assert state.attended == {1}
    assert state.pending == set()


def test_successful_write_shows_confirmation(state, submitted, clock):
    tracker = make_tracker(state, submitted, clock)
    run_frames(tracker, clock, [ANA], 0, 3000)

    tracker.complete_write(1, True, label="Ana Cruz", session="AM", check_type="IN")

    notices = state.active_notices(3000)
    assert [n.kind for n in notices] == ["success"]
    assert notices[0].text == "Ana Cruz - Attendance recorded (AM IN)"
    assert state.active_notices(3000 + 3000) == []


def test_failed_write_releases_student_without_retry(state, submitted, clock):
    tracker = make_tracker(state, submitted, clock)
    run_frames(tracker, clock, [ANA], 0, 3000)

    tracker.complete_write(1, False, error="HTTP 500")

    assert state.pending == set()
    assert state.attended == set()
    assert len(submitted.calls) == 1


def test_debounce_blocks_second_check_within_window(state, submitted, clock):
    tracker = make_tracker(state, submitted, clock, dwell_ms=0)

    clock.ms = 0
    tracker.process([ANA])
    tracker.complete_write(1, False, error="timeout")

    clock.ms = 1500
    outcome = tracker.process([ANA])[0]
    assert outcome.status is BoxStatus.TRACKING
    assert len(submitted.calls) == 1

    clock.ms = 2000
    tracker.process([ANA])
    assert len(submitted.calls) == 2


def test_gap_in_presence_restarts_the_dwell_timer(state, submitted, clock):
    tracker = make_tracker(state, submitted, clock)

    run_frames(tracker, clock, [ANA], 0, 2000)
    run_frames(tracker, clock, [], 2100, 3400)
    run_frames(tracker, clock, [ANA], 3500, 6400)
    assert submitted.calls == []

    run_frames(tracker, clock, [ANA], 6500, 6500)
    assert submitted.calls == [(1, EVENT_ID, "AM", "IN")]


def test_slow_frames_still_complete_the_dwell(state, submitted, clock):
    tracker = make_tracker(state, submitted, clock, windows={})

    run_frames(tracker, clock, [ANA], 0, 22000, step=1100)

    assert submitted.calls == [(1, EVENT_ID, "AM", "IN")]


def test_short_dropout_keeps_the_dwell_timer(state, submitted, clock):
    tracker = make_tracker(state, submitted, clock)

    run_frames(tracker, clock, [ANA], 0, 1500)
    run_frames(tracker, clock, [], 1600, 1700)
    run_frames(tracker, clock, [ANA], 1800, 3000)

    assert submitted.calls == [(1, EVENT_ID, "AM", "IN")]


def test_dropout_longer_than_allowed_restarts_the_dwell_timer(state, submitted, clock):
    tracker = make_tracker(state, submitted, clock, max_missed_frames=0)

    run_frames(tracker, clock, [ANA], 0, 1500)
    run_frames(tracker, clock, [], 1600, 1600)
    run_frames(tracker, clock, [ANA], 1700, 4600)
    assert submitted.calls == []

    run_frames(tracker, clock, [ANA], 4700, 4700)
    assert submitted.calls == [(1, EVENT_ID, "AM", "IN")]


def test_outside_all_windows_shows_error_and_resets_timer(state, submitted, clock):
    tracker = make_tracker(state, submitted, clock, now="10:00")

    frames = run_frames(tracker, clock, [ANA], 0, 3000)

    assert submitted.calls == []
    assert frames[-1][0].status is BoxStatus.OUTSIDE_HOURS
    assert frames[-1][0].caption == "Ana Cruz - Outside Hours"
    assert 1 not in state.detection_timers

    notices = state.active_notices(3000)
    assert [n.kind for n in notices] == ["error"]
    assert "Current time 10:00 is outside all valid session windows" in notices[0].text
    assert state.active_notices(3000 + 4000) == []


def test_window_reopening_allows_write_after_new_dwell(state, submitted, clock):
    times = iter(["10:00", "08:20"])
    tracker = make_tracker(state, submitted, clock, now=lambda: next(times))

    run_frames(tracker, clock, [ANA], 0, 3000)
    assert submitted.calls == []

    run_frames(tracker, clock, [ANA], 3100, 6100)
    assert submitted.calls == [(1, EVENT_ID, "AM", "IN")]


def test_no_configured_windows_records_am_in(state, submitted, clock):
    tracker = make_tracker(state, submitted, clock, now="22:15", windows={})

    run_frames(tracker, clock, [BEN], 0, 3000)

    assert submitted.calls == [(2, EVENT_ID, "AM", "IN")]


def test_session_window_decides_session_and_type(state, submitted, clock):
    tracker = make_tracker(state, submitted, clock, now="16:45", windows={
        "pm_out_start_time": "16:30",
        "pm_out_end_time": "17:30",
    })

    run_frames(tracker, clock, [ANA], 0, 3000)

    assert submitted.calls == [(1, EVENT_ID, "PM", "OUT")]


def test_students_are_tracked_independently(state, submitted, clock):
    tracker = make_tracker(state, submitted, clock)

    run_frames(tracker, clock, [ANA], 0, 1000)
    run_frames(tracker, clock, [ANA, BEN], 1100, 4200)

    assert [call[0] for call in submitted.calls] == [1, 2]


def test_unregistered_faces_are_debounced_and_never_written(state, submitted, clock):
    tracker = make_tracker(state, submitted, clock)

    frames = run_frames(tracker, clock, [STRANGER], 0, 5000)

    assert submitted.calls == []
    assert frames[0][0].status is BoxStatus.UNREGISTERED
    assert frames[0][0].caption == "Not Registered (38%)"
    warnings = [n for n in state.notices if n.kind == "warning"]
    assert [n.expires_at - 4000 for n in warnings] == [0, 2000, 4000]
    assert all(n.text == "Not Registered" for n in warnings)


def test_weak_match_counts_as_unregistered(state, submitted, clock):
    tracker = make_tracker(state, submitted, clock, threshold=0.4)
    weak = FaceMatch(student_id=1, label="Ana Cruz", distance=0.4)

    frames = run_frames(tracker, clock, [weak], 0, 4000)

    assert submitted.calls == []
    assert all(f[0].status is BoxStatus.UNREGISTERED for f in frames)
    assert state.detection_timers == {}


def test_clear_resets_every_map(state, submitted, clock):
    tracker = make_tracker(state, submitted, clock)
    run_frames(tracker, clock, [ANA, STRANGER], 0, 3000)

    state.clear()

    assert not (state.attended or state.pending or state.detection_timers or state.last_check
                or state.last_seen or state.unregistered_checks or state.notices)
    assert state.frame == 0
