"""
SLA policy and calculator tests.
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from src.config import SubmissionStatus, SLAStanding
from src.core import UnknownStatusError
from src.workflow.domain import SLACalculator, SLAPolicy, DEFAULT_SLA_DAYS

S = SubmissionStatus


@pytest.fixture
def calculator() -> SLACalculator:
    return SLACalculator()


class TestComputeDeadline:

    @pytest.mark.parametrize(
        "status,days",
        [
            (S.NEW, 7),
            (S.UNDER_REVIEW, 21),
            (S.REVISION, 14),
            (S.ACCEPTED, 7),
            (S.IN_PRODUCTION, 14),
        ],
    )
    def test_tracked_statuses(self, calculator, t0, status, days):
        assert calculator.compute_deadline(status, t0) == t0 + timedelta(days=days)

    @pytest.mark.parametrize("status", [S.DESK_REJECT, S.REJECTED, S.PUBLISHED])
    def test_terminal_statuses_have_no_deadline(self, calculator, t0, status):
        assert calculator.compute_deadline(status, t0) is None

    def test_accepts_raw_status_value(self, calculator, t0):
        assert calculator.compute_deadline("UNDER_REVIEW", t0) == t0 + timedelta(days=21)

    def test_unknown_status_raises(self, calculator, t0):
        with pytest.raises(UnknownStatusError):
            calculator.compute_deadline("ON_HOLD", t0)

    def test_custom_policy(self, t0):
        sla_days = dict(DEFAULT_SLA_DAYS)
        sla_days[S.NEW] = 2
        calculator = SLACalculator(SLAPolicy(sla_days=sla_days))
        assert calculator.compute_deadline(S.NEW, t0) == t0 + timedelta(days=2)


class TestClassify:

    @pytest.mark.parametrize(
        "days_remaining,expected",
        [
            (10, SLAStanding.ON_TIME),
            (4, SLAStanding.ON_TIME),
            (3, SLAStanding.WARNING),
            (1, SLAStanding.WARNING),
            (0, SLAStanding.WARNING),
            (-1, SLAStanding.OVERDUE),
            (-30, SLAStanding.OVERDUE),
        ],
    )
    def test_boundaries(self, calculator, t0, days_remaining, expected):
        deadline = t0 + timedelta(days=days_remaining)
        assert calculator.classify(deadline, t0) == expected

    def test_partial_days_are_floored(self, calculator, t0):
        # 3 days and 23 hours left is still "3 days"
        deadline = t0 + timedelta(days=3, hours=23)
        assert calculator.days_until_deadline(deadline, t0) == 3
        assert calculator.classify(deadline, t0) == SLAStanding.WARNING

        # One hour past the deadline is overdue
        assert calculator.classify(t0 - timedelta(hours=1), t0) == SLAStanding.OVERDUE

    def test_no_deadline_is_on_time(self, calculator, t0):
        assert calculator.classify(None, t0) == SLAStanding.ON_TIME

    def test_standing_never_improves_as_time_passes(self, calculator, t0):
        severity = {SLAStanding.ON_TIME: 0, SLAStanding.WARNING: 1, SLAStanding.OVERDUE: 2}
        deadline = t0 + timedelta(days=21)
        previous = severity[SLAStanding.ON_TIME]
        for hours in range(0, 30 * 24, 7):
            current = severity[calculator.classify(deadline, t0 + timedelta(hours=hours))]
            assert current >= previous
            previous = current
        assert previous == severity[SLAStanding.OVERDUE]

    def test_warning_window_follows_policy(self, t0):
        calculator = SLACalculator(SLAPolicy(warning_days=5))
        assert calculator.classify(t0 + timedelta(days=5), t0) == SLAStanding.WARNING
        assert calculator.classify(t0 + timedelta(days=6), t0) == SLAStanding.ON_TIME

    def test_badge_colors(self, calculator):
        assert calculator.badge_color(SLAStanding.ON_TIME) == "green"
        assert calculator.badge_color(SLAStanding.WARNING) == "yellow"
        assert calculator.badge_color(SLAStanding.OVERDUE) == "red"


class TestDaysInStatus:

    def test_whole_days(self, calculator, t0):
        assert calculator.days_in_status(t0, t0) == 0
        assert calculator.days_in_status(t0, t0 + timedelta(days=4, hours=23)) == 4
        assert calculator.days_in_status(t0, t0 + timedelta(days=30)) == 30


class TestShouldSendReminder:

    def test_fires_on_each_cadence_day(self, calculator, t0):
        deadline = t0 + timedelta(days=21)
        assert calculator.should_send_reminder(deadline, 0, deadline - timedelta(days=7))
        assert calculator.should_send_reminder(deadline, 1, deadline - timedelta(days=3))
        assert calculator.should_send_reminder(deadline, 2, deadline - timedelta(days=1))

    def test_not_before_the_first_cadence_day(self, calculator, t0):
        deadline = t0 + timedelta(days=21)
        assert not calculator.should_send_reminder(deadline, 0, t0)
        assert not calculator.should_send_reminder(deadline, 0, deadline - timedelta(days=8))

    def test_once_per_bucket(self, calculator, t0):
        deadline = t0 + timedelta(days=21)
        seven_days_out = deadline - timedelta(days=7)
        assert calculator.should_send_reminder(deadline, 0, seven_days_out)
        # Same day, reminder already recorded
        assert not calculator.should_send_reminder(deadline, 1, seven_days_out)
        assert not calculator.should_send_reminder(deadline, 1, seven_days_out + timedelta(hours=6))

    def test_at_most_three_reminders(self, calculator, t0):
        deadline = t0 + timedelta(days=21)
        for day in range(-5, 25):
            now = deadline - timedelta(days=day)
            assert not calculator.should_send_reminder(deadline, 3, now)

    def test_explicit_cap_overrides_policy(self, calculator, t0):
        deadline = t0 + timedelta(days=21)
        assert not calculator.should_send_reminder(
            deadline, 1, deadline - timedelta(days=3), max_reminders=1
        )

    def test_no_deadline_no_reminder(self, calculator, t0):
        assert not calculator.should_send_reminder(None, 0, t0)

    def test_missed_day_loses_the_reminder(self, calculator, t0):
        """A run that skips the 7-day mark never sends the first reminder."""
        deadline = t0 + timedelta(days=21)
        for days_left in (6, 5, 4, 3, 2, 1, 0):
            assert not calculator.should_send_reminder(
                deadline, 0, deadline - timedelta(days=days_left)
            )

    def test_catch_up_sends_missed_reminder_on_a_later_run(self, t0):
        calculator = SLACalculator(SLAPolicy(reminder_catch_up=True))
        deadline = t0 + timedelta(days=21)

        assert not calculator.should_send_reminder(deadline, 0, deadline - timedelta(days=8))
        assert calculator.should_send_reminder(deadline, 0, deadline - timedelta(days=5))
        # Second reminder waits for the 3-day mark
        assert not calculator.should_send_reminder(deadline, 1, deadline - timedelta(days=5))
        assert calculator.should_send_reminder(deadline, 1, deadline - timedelta(days=2))
        # Nothing once the deadline has passed
        assert not calculator.should_send_reminder(deadline, 2, deadline + timedelta(days=1))


class TestSLAPolicy:

    def test_defaults(self):
        policy = SLAPolicy()
        assert dict(policy.sla_days) == DEFAULT_SLA_DAYS
        assert policy.warning_days == 3
        assert policy.reminder_days == (7, 3, 1)
        assert policy.max_reminders == 3
        assert policy.reminder_catch_up is False

    def test_is_frozen(self):
        policy = SLAPolicy()
        with pytest.raises(ValidationError):
            policy.warning_days = 10

    def test_string_keys_are_coerced(self):
        policy = SLAPolicy(sla_days={s.value: d for s, d in DEFAULT_SLA_DAYS.items()})
        assert policy.days_for(S.UNDER_REVIEW) == 21

    def test_nested_tables_are_read_only(self):
        policy = SLAPolicy()
        with pytest.raises(TypeError):
            policy.sla_days[S.NEW] = 30
        with pytest.raises((TypeError, AttributeError)):
            policy.reminder_days.append(0)

    @pytest.mark.parametrize("status", [S.DESK_REJECT, S.REJECTED, S.PUBLISHED])
    def test_terminal_status_cannot_get_a_deadline(self, status):
        sla_days = dict(DEFAULT_SLA_DAYS)
        sla_days[status] = 5
        with pytest.raises(ValidationError, match="terminal statuses"):
            SLAPolicy(sla_days=sla_days)

    def test_missing_status_rejected(self):
        sla_days = dict(DEFAULT_SLA_DAYS)
        del sla_days[S.REVISION]
        with pytest.raises(ValidationError, match="REVISION"):
            SLAPolicy(sla_days=sla_days)

    def test_negative_days_rejected(self):
        sla_days = dict(DEFAULT_SLA_DAYS)
        sla_days[S.NEW] = -1
        with pytest.raises(ValidationError):
            SLAPolicy(sla_days=sla_days)

    @pytest.mark.parametrize("cadence", [[3, 7, 1], [7, 7, 1], [7, 3, -1]])
    def test_bad_cadence_rejected(self, cadence):
        with pytest.raises(ValidationError):
            SLAPolicy(reminder_days=cadence)

    def test_cap_cannot_exceed_cadence(self):
        with pytest.raises(ValidationError):
            SLAPolicy(reminder_days=[7, 3], max_reminders=3)
