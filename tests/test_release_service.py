from datetime import timedelta

import pytest

from exam_engine.core.errors import InvalidStateError
from exam_engine.schemas.submission import SubmissionDetail, SubmissionPublic
from exam_engine.services import release_service, session_service

from tests.conftest import T0, qid


def take_exam(db, user, exam, answers=None, now=T0 + timedelta(minutes=5)):
    start = session_service.start_or_resume(db, user=user, exam_id=exam.id, now=T0)
    return session_service.submit(
        db, user=user, submission_id=start.submission.id, answers=answers or {}, now=now
    )


class TestReleaseOnSubmit:
    def test_scheduled_exam_before_due_stays_hidden(self, db_session, candidate, make_exam):
        exam = make_exam(release_mode="SCHEDULED", scheduled_release_at=T0 + timedelta(days=1))
        sub = take_exam(db_session, candidate, exam)
        assert sub.results_released is False

    def test_scheduled_exam_after_due_is_released(self, db_session, candidate, make_exam):
        exam = make_exam(release_mode="SCHEDULED", scheduled_release_at=T0)
        sub = take_exam(db_session, candidate, exam)
        assert sub.results_released is True

    def test_delayed_exam_waits_for_bulk_release(self, db_session, candidate, make_exam):
        exam = make_exam(release_mode="DELAYED")
        sub = take_exam(db_session, candidate, exam)
        assert sub.results_released is False

        assert release_service.release_delayed(db_session) == 1
        db_session.refresh(sub)
        assert sub.results_released is True


class TestReleaseSweep:
    def test_sweep_releases_only_due_scheduled_exams(self, db_session, candidate, make_exam):
        due = make_exam(release_mode="SCHEDULED", scheduled_release_at=T0 + timedelta(hours=1))
        not_due = make_exam(release_mode="SCHEDULED", scheduled_release_at=T0 + timedelta(days=2))
        manual = make_exam(release_mode="MANUAL")
        subs = [take_exam(db_session, candidate, exam) for exam in (due, not_due, manual)]

        released = release_service.release_due_sweep(db_session, now=T0 + timedelta(hours=2))

        assert released == 1
        for sub in subs:
            db_session.refresh(sub)
        assert [s.results_released for s in subs] == [True, False, False]

    def test_sweep_is_idempotent(self, db_session, candidate, make_exam):
        exam = make_exam(release_mode="SCHEDULED", scheduled_release_at=T0 + timedelta(hours=1))
        take_exam(db_session, candidate, exam)
        later = T0 + timedelta(hours=2)

        assert release_service.release_due_sweep(db_session, now=later) == 1
        assert release_service.release_due_sweep(db_session, now=later) == 0

    def test_sweep_never_hides_released_results(self, db_session, candidate, make_exam):
        exam = make_exam(release_mode="SCHEDULED", scheduled_release_at=T0)
        sub = take_exam(db_session, candidate, exam)
        assert sub.results_released is True

        release_service.release_due_sweep(db_session, now=T0 + timedelta(days=1))

        db_session.refresh(sub)
        assert sub.results_released is True

    def test_sweep_leaves_in_progress_attempts_alone(self, db_session, candidate, make_exam):
        exam = make_exam(release_mode="SCHEDULED", scheduled_release_at=T0 + timedelta(hours=1))
        start = session_service.start_or_resume(db_session, user=candidate, exam_id=exam.id, now=T0)

        assert release_service.release_due_sweep(db_session, now=T0 + timedelta(hours=2)) == 0
        db_session.refresh(start.submission)
        assert start.submission.results_released is False


class TestManualRelease:
    def test_release_exam(self, db_session, candidate, other_candidate, make_exam):
        exam = make_exam(release_mode="MANUAL")
        take_exam(db_session, candidate, exam)
        take_exam(db_session, other_candidate, exam)

        assert release_service.release_exam(db_session, exam_id=exam.id) == 2
        assert release_service.release_exam(db_session, exam_id=exam.id) == 0

    def test_toggle_can_hide_again(self, db_session, candidate, make_exam):
        exam = make_exam(release_mode="MANUAL")
        sub = take_exam(db_session, candidate, exam)

        assert release_service.release_submission(db_session, submission_id=sub.id).results_released is True
        hidden = release_service.release_submission(db_session, submission_id=sub.id, release=False)
        assert hidden.results_released is False

    def test_unsubmitted_attempt_cannot_be_released(self, db_session, candidate, make_exam):
        exam = make_exam(release_mode="MANUAL")
        start = session_service.start_or_resume(db_session, user=candidate, exam_id=exam.id, now=T0)

        with pytest.raises(InvalidStateError):
            release_service.release_submission(db_session, submission_id=start.submission.id)

        again = session_service.start_or_resume(
            db_session, user=candidate, exam_id=exam.id, now=T0 + timedelta(minutes=1)
        )
        assert again.resumed is True
        assert again.submission.id == start.submission.id
        assert again.submission.results_released is False


class TestSubmissionView:
    def test_candidate_sees_redacted_view_before_release(self, db_session, candidate, make_exam):
        exam = make_exam(release_mode="MANUAL")
        sub = take_exam(db_session, candidate, exam, {qid(exam, 0): "B"})

        view = release_service.submission_view(sub, candidate)

        assert type(view) is SubmissionPublic
        assert not hasattr(view, "score")
        assert all(not hasattr(q, "correct_answer") for q in view.questions)

    def test_admin_sees_everything(self, db_session, candidate, admin, make_exam):
        exam = make_exam(release_mode="MANUAL")
        sub = take_exam(db_session, candidate, exam, {qid(exam, 0): "B"})

        view = release_service.submission_view(sub, admin)

        assert isinstance(view, SubmissionDetail)
        assert view.score == 1
        assert view.questions[0].correct_answer == "B"

    def test_released_view_reports_pass_mark(self, db_session, candidate, make_exam):
        exam = make_exam(
            questions=[{"type": "OBJECTIVE_SINGLE", "text": "Q", "correct_answer": "A", "points": 4},
                       {"type": "OBJECTIVE_SINGLE", "text": "Q", "correct_answer": "B", "points": 6}],
            pass_mark=40,
        )
        sub = take_exam(db_session, candidate, exam, {qid(exam, 0): "A"})

        view = release_service.submission_view(sub, candidate)

        assert isinstance(view, SubmissionDetail)
        assert view.score == 4
        assert view.passed is True
