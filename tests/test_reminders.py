"""
Deadline reminder dispatcher tests.
"""

from datetime import timedelta

import pytest

from src.config import SubmissionStatus
from src.core import NotificationException
from src.workflow.application import (
    ReminderService, StaticPolicyProvider, SubmissionWorkflowService
)
from src.workflow.domain import SLAPolicy
from src.workflow.infrastructure import SQLAlchemySubmissionRepository

from tests.conftest import RecordingNotifier

S = SubmissionStatus


class FailingNotifier(RecordingNotifier):
    async def send_reminder(self, notice):
        self.notices.append(notice)
        raise NotificationException("webhook unreachable")


@pytest.fixture
def repo(session) -> SQLAlchemySubmissionRepository:
    return SQLAlchemySubmissionRepository(session)


@pytest.fixture
def workflow(repo, policy_provider, clock) -> SubmissionWorkflowService:
    return SubmissionWorkflowService(repo, policy_provider, clock=clock)


@pytest.fixture
def reminders(repo, policy_provider, notifier, clock) -> ReminderService:
    return ReminderService(repo, policy_provider, notifier, clock=clock)


class TestDispatchDueReminders:

    async def test_reminder_cadence_over_a_review_window(self, workflow, reminders, notifier, clock, t0):
        submission = await workflow.create_submission("Review window", author_id="author-9")
        await workflow.record_transition(submission.id, S.UNDER_REVIEW)
        deadline = t0 + timedelta(days=21)

        sent_on = []
        for day in range(0, 23):
            clock.now = t0 + timedelta(days=day)
            summary = await reminders.dispatch_due_reminders()
            if summary["reminders_sent"]:
                sent_on.append((deadline - clock.now).days)

        assert sent_on == [7, 3, 1]
        assert [n.sequence for n in notifier.notices] == [1, 2, 3]
        assert notifier.notices[0].recipient_id == "author-9"
        assert notifier.notices[0].days_until_deadline == 7

        stored = await workflow.get_submission(submission.id)
        assert stored.reminders_sent == 3

    async def test_same_day_rerun_sends_nothing(self, workflow, reminders, notifier, clock, t0):
        await workflow.create_submission("Rerun")
        # NEW has a 7 day window, so the first reminder is due immediately
        first = await reminders.dispatch_due_reminders()
        clock.advance(hours=3)
        second = await reminders.dispatch_due_reminders()

        assert first["reminders_sent"] == 1
        assert second["reminders_sent"] == 0
        assert len(notifier.notices) == 1

    async def test_transition_resets_the_count(self, workflow, reminders, clock, t0):
        submission = await workflow.create_submission("Reset")
        await reminders.dispatch_due_reminders()
        assert (await workflow.get_submission(submission.id)).reminders_sent == 1

        clock.advance(days=1)
        moved = await workflow.record_transition(submission.id, S.UNDER_REVIEW)
        assert moved.reminders_sent == 0

    async def test_terminal_submissions_are_skipped(self, workflow, reminders, notifier, clock):
        submission = await workflow.create_submission("Desk rejected")
        clock.advance(minutes=5)
        await workflow.record_transition(submission.id, S.DESK_REJECT)

        summary = await reminders.dispatch_due_reminders()

        assert summary["evaluated"] == 0
        assert notifier.notices == []

    async def test_missed_run_day_skips_the_reminder(self, workflow, reminders, notifier, clock, t0):
        await workflow.create_submission("Missed day")
        # No run on day 0 (7 days left); the next run finds 6 days left
        clock.advance(days=1)
        summary = await reminders.dispatch_due_reminders()

        assert summary["evaluated"] == 1
        assert summary["reminders_sent"] == 0

    async def test_catch_up_policy_sends_the_missed_reminder(self, repo, workflow, notifier, clock):
        reminders = ReminderService(
            repo, StaticPolicyProvider(SLAPolicy(reminder_catch_up=True)), notifier, clock=clock
        )
        await workflow.create_submission("Caught up")
        clock.advance(days=1)

        summary = await reminders.dispatch_due_reminders()

        assert summary["reminders_sent"] == 1
        assert notifier.notices[0].days_until_deadline == 6

    async def test_rejected_delivery_is_not_recorded(self, workflow, repo, policy_provider, clock):
        notifier = RecordingNotifier(accept=False)
        reminders = ReminderService(repo, policy_provider, notifier, clock=clock)
        submission = await workflow.create_submission("Rejected delivery")

        summary = await reminders.dispatch_due_reminders()

        assert summary == {"evaluated": 1, "reminders_sent": 0, "failed": 1}
        assert (await workflow.get_submission(submission.id)).reminders_sent == 0

    async def test_notifier_error_is_counted_and_run_continues(self, workflow, repo, policy_provider, clock):
        notifier = FailingNotifier()
        reminders = ReminderService(repo, policy_provider, notifier, clock=clock)
        await workflow.create_submission("First")
        await workflow.create_submission("Second")

        summary = await reminders.dispatch_due_reminders()

        assert summary["failed"] == 2
        assert len(notifier.notices) == 2


class TestIncrementReminders:

    async def test_guarded_on_count(self, workflow, repo):
        submission = await workflow.create_submission("Guard")

        assert await repo.increment_reminders(submission.id, S.NEW, 0, submission.deadline)
        # A second dispatcher that read the old count loses
        assert not await repo.increment_reminders(submission.id, S.NEW, 0, submission.deadline)
        assert (await repo.get_by_id(submission.id)).reminders_sent == 1

    async def test_guarded_on_deadline(self, workflow, repo, clock):
        submission = await workflow.create_submission("Round trip")
        clock.advance(days=1)
        await workflow.record_transition(submission.id, S.UNDER_REVIEW)
        read = await repo.get_by_id(submission.id)

        # Back to the same status with a fresh deadline before the increment lands
        clock.advance(days=1)
        await workflow.record_transition(submission.id, S.REVISION)
        clock.advance(days=1)
        await workflow.record_transition(submission.id, S.UNDER_REVIEW)

        assert not await repo.increment_reminders(
            submission.id, read.status, read.reminders_sent, read.deadline
        )
        assert (await repo.get_by_id(submission.id)).reminders_sent == 0

    async def test_guarded_on_status(self, workflow, repo, clock):
        submission = await workflow.create_submission("Moved on")
        clock.advance(days=1)
        await workflow.record_transition(submission.id, S.UNDER_REVIEW)

        assert not await repo.increment_reminders(submission.id, S.NEW, 0, submission.deadline)
        assert (await repo.get_by_id(submission.id)).reminders_sent == 0


class CrashingNotifier(RecordingNotifier):
    """Accepts the first notice, then fails with an unexpected error."""

    async def send_reminder(self, notice):
        self.notices.append(notice)
        if len(self.notices) > 1:
            raise RuntimeError("worker killed")
        return True


class TestDeliveredRemindersSurviveFailures:

    async def test_earlier_deliveries_stay_recorded(self, session_maker, policy_provider, clock):
        async with session_maker() as setup_session:
            workflow = SubmissionWorkflowService(
                SQLAlchemySubmissionRepository(setup_session), policy_provider, clock=clock
            )
            first = await workflow.create_submission("First")
            second = await workflow.create_submission("Second")
            await setup_session.commit()

        notifier = CrashingNotifier()
        async with session_maker() as run_session:
            reminders = ReminderService(
                SQLAlchemySubmissionRepository(run_session), policy_provider, notifier, clock=clock
            )
            with pytest.raises(RuntimeError):
                await reminders.dispatch_due_reminders()
            await run_session.rollback()

        async with session_maker() as check_session:
            repo = SQLAlchemySubmissionRepository(check_session)
            delivered_id = notifier.notices[0].submission_id
            counts = {
                sub_id: (await repo.get_by_id(sub_id)).reminders_sent
                for sub_id in (first.id, second.id)
            }

        assert counts[delivered_id] == 1
        assert sorted(counts.values()) == [0, 1]
