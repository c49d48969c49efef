"""
Review workflow tests: requests, decisions, resends, history and summary.
"""

import pytest

from dealdesk.extensions import db
from dealdesk.models import Offer, Review, ReviewDocument, ReviewHistoryEntry, ReviewRequest
from dealdesk.services import lifecycle_service, review_service
from dealdesk.services.lifecycle_service import LifecycleError
from dealdesk.services.review_service import ReviewPermissionError
from dealdesk.validation import NotFoundError, ValidationError

from conftest import make_user


@pytest.fixture
def second_tech(db_session):
    return make_user("Tom Tech", "tom@dealdesk.test", "Back End Developer")


@pytest.fixture
def review_request(draft_offer, sales_user, tech_reviewer, commercial_reviewer):
    return review_service.create_review_request(
        draft_offer.id,
        actor_id=sales_user.id,
        request_details="<p>Please check sizing</p>",
        technical_reviewer_ids=[tech_reviewer.id],
        commercial_reviewer_ids=[commercial_reviewer.id],
    )


def _review_for(request, reviewer):
    return next(r for r in request.reviews if r.reviewer_id == reviewer.id)


class TestCreateReviewRequest:
    def test_one_pending_review_per_reviewer(
        self, draft_offer, sales_user, tech_reviewer, second_tech, commercial_reviewer
    ):
        request = review_service.create_review_request(
            draft_offer.id,
            actor_id=sales_user.id,
            request_details="<p>Ready</p>",
            technical_reviewer_ids=[tech_reviewer.id, second_tech.id],
            commercial_reviewer_ids=[commercial_reviewer.id],
            documents=[{"name": "sizing.pdf", "path": "reviews/1/1-sizing.pdf", "type": "application/pdf", "size": 10}],
        )

        reviews = db.session.query(Review).filter_by(request_id=request.id).all()
        assert len(reviews) == 3
        assert all(r.status == "pending" for r in reviews)
        by_type = sorted((r.review_type, r.reviewer_id) for r in reviews)
        assert by_type == sorted([
            ("technical", tech_reviewer.id),
            ("technical", second_tech.id),
            ("commercial", commercial_reviewer.id),
        ])
        assert db.session.query(ReviewDocument).filter_by(request_id=request.id).count() == 1
        assert db.session.get(Offer, draft_offer.id).status == "In Review"

    def test_duplicate_reviewer_ids_collapse(self, draft_offer, sales_user, tech_reviewer, commercial_reviewer):
        request = review_service.create_review_request(
            draft_offer.id,
            actor_id=sales_user.id,
            request_details="<p>Ready</p>",
            technical_reviewer_ids=[tech_reviewer.id, tech_reviewer.id],
            commercial_reviewer_ids=[commercial_reviewer.id],
        )
        assert len(request.reviews) == 2

    @pytest.mark.parametrize("technical,commercial,message", [
        ([], [1], "at least one technical reviewer"),
        ([1], [], "at least one commercial reviewer"),
        (None, None, "at least one technical reviewer"),
    ])
    def test_each_track_needs_a_reviewer(self, draft_offer, sales_user, technical, commercial, message):
        with pytest.raises(ValidationError, match=message):
            review_service.create_review_request(
                draft_offer.id,
                actor_id=sales_user.id,
                request_details="<p>Ready</p>",
                technical_reviewer_ids=technical,
                commercial_reviewer_ids=commercial,
            )
        assert db.session.query(ReviewRequest).count() == 0

    def test_blank_details_rejected(self, draft_offer, sales_user, tech_reviewer, commercial_reviewer):
        with pytest.raises(ValidationError, match="Request details is required"):
            review_service.create_review_request(
                draft_offer.id,
                actor_id=sales_user.id,
                request_details="<p><br></p>",
                technical_reviewer_ids=[tech_reviewer.id],
                commercial_reviewer_ids=[commercial_reviewer.id],
            )
        assert db.session.query(ReviewRequest).count() == 0
        assert db.session.get(Offer, draft_offer.id).status == "Draft"

    def test_only_draft_offers(self, draft_offer, sales_user, tech_reviewer, commercial_reviewer):
        draft_offer.status = "Approved"
        db.session.commit()
        with pytest.raises(LifecycleError, match="Only Draft offers"):
            review_service.create_review_request(
                draft_offer.id,
                actor_id=sales_user.id,
                request_details="<p>Again</p>",
                technical_reviewer_ids=[tech_reviewer.id],
                commercial_reviewer_ids=[commercial_reviewer.id],
            )
        assert db.session.query(Review).count() == 0

    def test_inactive_reviewer_rejected(self, draft_offer, sales_user, tech_reviewer, commercial_reviewer):
        commercial_reviewer.is_active = False
        db.session.commit()
        with pytest.raises(ValidationError, match="inactive reviewer"):
            review_service.create_review_request(
                draft_offer.id,
                actor_id=sales_user.id,
                request_details="<p>Ready</p>",
                technical_reviewer_ids=[tech_reviewer.id],
                commercial_reviewer_ids=[commercial_reviewer.id],
            )
        assert db.session.query(ReviewRequest).count() == 0

    def test_rejects_executable_attachment(self, draft_offer, sales_user, tech_reviewer, commercial_reviewer):
        with pytest.raises(ValidationError, match="unsupported type"):
            review_service.create_review_request(
                draft_offer.id,
                actor_id=sales_user.id,
                request_details="<p>Ready</p>",
                technical_reviewer_ids=[tech_reviewer.id],
                commercial_reviewer_ids=[commercial_reviewer.id],
                documents=[{"name": "setup.exe", "path": "reviews/1/1-setup.exe", "size": 10}],
            )
        assert db.session.query(ReviewRequest).count() == 0
        assert db.session.query(ReviewDocument).count() == 0
        assert db.session.get(Offer, draft_offer.id).status == "Draft"

    @pytest.mark.parametrize("target", ["create_document_rows", "move_to_review"])
    def test_late_failure_writes_nothing(
        self, draft_offer, sales_user, tech_reviewer, commercial_reviewer, monkeypatch, target
    ):
        def fail(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(review_service, target, fail)

        with pytest.raises(RuntimeError):
            review_service.create_review_request(
                draft_offer.id,
                actor_id=sales_user.id,
                request_details="<p>Ready</p>",
                technical_reviewer_ids=[tech_reviewer.id],
                commercial_reviewer_ids=[commercial_reviewer.id],
                documents=[{"name": "sizing.pdf", "path": "reviews/1/1-sizing.pdf"}],
            )
        for model in (ReviewRequest, Review, ReviewDocument, ReviewHistoryEntry):
            assert db.session.query(model).count() == 0
        assert db.session.get(Offer, draft_offer.id).status == "Draft"

    def test_missing_offer(self, db_session, sales_user, tech_reviewer, commercial_reviewer):
        with pytest.raises(NotFoundError):
            review_service.create_review_request(
                404,
                actor_id=sales_user.id,
                request_details="<p>Ready</p>",
                technical_reviewer_ids=[tech_reviewer.id],
                commercial_reviewer_ids=[commercial_reviewer.id],
            )


class TestSubmitReview:
    def test_approve(self, review_request, tech_reviewer):
        review = _review_for(review_request, tech_reviewer)

        review_service.submit_review(
            review.id, actor=tech_reviewer, decision="approved", comments="<p>Looks good</p>"
        )

        assert review.status == "approved"
        assert review.comments == "<p>Looks good</p>"
        entries = db.session.query(ReviewHistoryEntry).filter_by(review_id=review.id).all()
        assert len(entries) == 1
        assert (entries[0].previous_status, entries[0].new_status) == ("pending", "approved")
        assert entries[0].changed_by == tech_reviewer.id

    @pytest.mark.parametrize("comments", ["", "   ", "<p> </p>", None])
    def test_blank_comments_write_nothing(self, review_request, tech_reviewer, comments):
        review = _review_for(review_request, tech_reviewer)

        with pytest.raises(ValidationError, match="Comments is required"):
            review_service.submit_review(
                review.id, actor=tech_reviewer, decision="approved", comments=comments
            )

        db.session.expire_all()
        assert db.session.get(Review, review.id).status == "pending"
        assert db.session.query(ReviewHistoryEntry).count() == 0

    def test_unknown_decision(self, review_request, tech_reviewer):
        review = _review_for(review_request, tech_reviewer)
        with pytest.raises(ValidationError, match="Invalid decision"):
            review_service.submit_review(
                review.id, actor=tech_reviewer, decision="pending", comments="<p>x</p>"
            )

    def test_other_reviewer_forbidden(self, review_request, tech_reviewer, commercial_reviewer):
        review = _review_for(review_request, tech_reviewer)
        with pytest.raises(ReviewPermissionError):
            review_service.submit_review(
                review.id, actor=commercial_reviewer, decision="approved", comments="<p>x</p>"
            )

    def test_admin_may_submit(self, review_request, tech_reviewer, admin_user):
        review = _review_for(review_request, tech_reviewer)
        review_service.submit_review(
            review.id, actor=admin_user, decision="needs_improvement", comments="<p>Fix it</p>"
        )
        assert review.status == "needs_improvement"

    def test_decided_review_cannot_be_resubmitted(self, review_request, tech_reviewer):
        review = _review_for(review_request, tech_reviewer)
        review_service.submit_review(
            review.id, actor=tech_reviewer, decision="approved", comments="<p>ok</p>"
        )
        with pytest.raises(LifecycleError, match="already been submitted"):
            review_service.submit_review(
                review.id, actor=tech_reviewer, decision="needs_improvement", comments="<p>no</p>"
            )

    def test_offer_untouched_by_approvals(self, review_request, tech_reviewer, commercial_reviewer):
        for reviewer in (tech_reviewer, commercial_reviewer):
            review = _review_for(review_request, reviewer)
            review_service.submit_review(
                review.id, actor=reviewer, decision="approved", comments="<p>ok</p>"
            )

        summary = review_service.review_summary(review_request.offer_id)
        assert summary["all_approved"] is True
        assert db.session.get(Offer, review_request.offer_id).status == "In Review"


class TestResendReview:
    def test_resend_resets_and_records_history(self, review_request, tech_reviewer, sales_user):
        review = _review_for(review_request, tech_reviewer)
        review_service.submit_review(
            review.id, actor=tech_reviewer, decision="needs_improvement", comments="<p>Resize DB</p>"
        )
        offer = db.session.get(Offer, review_request.offer_id)
        lifecycle_service.change_offer_status(offer.id, "Draft")

        review_service.resend_review(review.id, actor=sales_user, message="<p>Resized</p>")

        assert review.status == "pending"
        assert review.comments is None
        assert offer.status == "In Review"

        entries = review_service.list_review_history(review_ids=[review.id])
        assert len(entries) == 2
        latest = entries[0]
        assert latest.previous_status == "needs_improvement"
        assert latest.new_status == "pending"
        assert latest.comments == "<p>Resized</p>"
        assert latest.changed_by == sales_user.id

    def test_resend_attaches_documents_to_request(self, review_request, tech_reviewer, sales_user):
        review = _review_for(review_request, tech_reviewer)
        review_service.submit_review(
            review.id, actor=tech_reviewer, decision="approved", comments="<p>ok</p>"
        )
        review_service.resend_review(
            review.id,
            actor=sales_user,
            message="<p>New pricing</p>",
            documents=[{"name": "v2.pdf", "path": "reviews/1/2-v2.pdf"}],
        )
        names = [d.name for d in review_request.documents]
        assert names == ["v2.pdf"]

    def test_pending_review_cannot_be_resent(self, review_request, tech_reviewer, sales_user):
        review = _review_for(review_request, tech_reviewer)
        with pytest.raises(LifecycleError, match="still pending"):
            review_service.resend_review(review.id, actor=sales_user, message="<p>ping</p>")

    def test_blank_message(self, review_request, tech_reviewer, sales_user):
        review = _review_for(review_request, tech_reviewer)
        review_service.submit_review(
            review.id, actor=tech_reviewer, decision="approved", comments="<p>ok</p>"
        )
        with pytest.raises(ValidationError):
            review_service.resend_review(review.id, actor=sales_user, message="<p></p>")
        assert db.session.get(Review, review.id).status == "approved"

    def test_resend_comments_only_lists_resends(self, review_request, tech_reviewer, sales_user):
        review = _review_for(review_request, tech_reviewer)
        review_service.submit_review(
            review.id, actor=tech_reviewer, decision="needs_improvement", comments="<p>no</p>"
        )
        review_service.resend_review(review.id, actor=sales_user, message="<p>first</p>")
        review_service.submit_review(
            review.id, actor=tech_reviewer, decision="needs_improvement", comments="<p>still no</p>"
        )
        review_service.resend_review(review.id, actor=sales_user, message="<p>second</p>")

        comments = review_service.list_resend_comments(review.id)
        assert [c.comments for c in comments] == ["<p>second</p>", "<p>first</p>"]


    def test_outsider_cannot_resend(self, review_request, tech_reviewer):
        review = _review_for(review_request, tech_reviewer)
        review_service.submit_review(
            review.id, actor=tech_reviewer, decision="needs_improvement", comments="<p>no</p>"
        )
        outsider = make_user("Olga Outsider", "outsider@dealdesk.test", "Sales Rep")

        with pytest.raises(ReviewPermissionError, match="requester, the offer owner or an admin"):
            review_service.resend_review(review.id, actor=outsider, message="<p>again</p>")
        assert db.session.get(Review, review.id).status == "needs_improvement"

    def test_reviewer_cannot_resend_own_review(self, review_request, tech_reviewer):
        review = _review_for(review_request, tech_reviewer)
        review_service.submit_review(
            review.id, actor=tech_reviewer, decision="approved", comments="<p>ok</p>"
        )
        with pytest.raises(ReviewPermissionError):
            review_service.resend_review(review.id, actor=tech_reviewer, message="<p>again</p>")

    def test_admin_may_resend(self, review_request, tech_reviewer, admin_user):
        review = _review_for(review_request, tech_reviewer)
        review_service.submit_review(
            review.id, actor=tech_reviewer, decision="approved", comments="<p>ok</p>"
        )
        review_service.resend_review(review.id, actor=admin_user, message="<p>again</p>")
        assert review.status == "pending"

    def test_rejects_executable_attachment(self, review_request, tech_reviewer, sales_user):
        review = _review_for(review_request, tech_reviewer)
        review_service.submit_review(
            review.id, actor=tech_reviewer, decision="approved", comments="<p>ok</p>"
        )
        with pytest.raises(ValidationError, match="unsupported type"):
            review_service.resend_review(
                review.id, actor=sales_user, message="<p>again</p>",
                documents=[{"name": "setup.exe", "path": "reviews/1/2-setup.exe"}],
            )
        assert db.session.get(Review, review.id).status == "approved"
        assert db.session.query(ReviewDocument).count() == 0

    def test_failure_while_recording_documents_changes_nothing(
        self, review_request, tech_reviewer, sales_user, monkeypatch
    ):
        review = _review_for(review_request, tech_reviewer)
        review_service.submit_review(
            review.id, actor=tech_reviewer, decision="needs_improvement", comments="<p>no</p>"
        )
        lifecycle_service.change_offer_status(review_request.offer_id, "Draft")

        def fail(*args, **kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr(review_service, "create_document_rows", fail)

        with pytest.raises(RuntimeError):
            review_service.resend_review(
                review.id, actor=sales_user, message="<p>again</p>",
                documents=[{"name": "v2.pdf", "path": "reviews/1/2-v2.pdf"}],
            )

        saved = db.session.get(Review, review.id)
        assert (saved.status, saved.comments) == ("needs_improvement", "<p>no</p>")
        assert db.session.query(ReviewHistoryEntry).filter_by(review_id=review.id).count() == 1
        assert db.session.get(Offer, review_request.offer_id).status == "Draft"


class TestReviewAccess:
    def test_reviewer_requester_and_admin_may_view(
        self, review_request, tech_reviewer, sales_user, admin_user
    ):
        review = _review_for(review_request, tech_reviewer)
        for actor in (tech_reviewer, sales_user, admin_user):
            review_service.check_can_view(review, actor)

    def test_other_reviewer_and_outsider_may_not(self, review_request, tech_reviewer, commercial_reviewer):
        review = _review_for(review_request, tech_reviewer)
        outsider = make_user("Olga Outsider", "outsider@dealdesk.test", "Sales Rep")
        for actor in (commercial_reviewer, outsider):
            with pytest.raises(ReviewPermissionError, match="do not have access"):
                review_service.check_can_view(review, actor)

    def test_permission_error_is_a_value_error(self):
        assert issubclass(ReviewPermissionError, ValueError)


class TestHistoryAndSummary:
    def test_offer_history_newest_first(self, review_request, tech_reviewer, commercial_reviewer):
        tech = _review_for(review_request, tech_reviewer)
        commercial = _review_for(review_request, commercial_reviewer)
        review_service.submit_review(tech.id, actor=tech_reviewer, decision="approved", comments="<p>a</p>")
        review_service.submit_review(
            commercial.id, actor=commercial_reviewer, decision="needs_improvement", comments="<p>b</p>"
        )

        entries = review_service.list_review_history(offer_id=review_request.offer_id)
        assert [e.review_id for e in entries] == [commercial.id, tech.id]
        data = entries[0].to_dict()
        assert data["offer_id"] == review_request.offer_id
        assert data["reviewer_name"] == commercial_reviewer.name
        assert data["changed_by_role"] == "CFO"

    def test_history_requires_a_filter(self, db_session):
        with pytest.raises(ValidationError):
            review_service.list_review_history()

    def test_summary_counts_tracks(self, review_request, tech_reviewer):
        review = _review_for(review_request, tech_reviewer)
        review_service.submit_review(review.id, actor=tech_reviewer, decision="approved", comments="<p>a</p>")

        summary = review_service.review_summary(review_request.offer_id)

        assert summary["request_id"] == review_request.id
        assert summary["tracks"]["technical"]["approved"] == 1
        assert summary["tracks"]["commercial"]["pending"] == 1
        assert summary["all_approved"] is False

    def test_summary_without_requests(self, draft_offer):
        summary = review_service.review_summary(draft_offer.id)
        assert summary["request_id"] is None
        assert summary["all_approved"] is False


class TestInbox:
    def test_reviewer_sees_own_reviews(self, review_request, tech_reviewer, admin_user):
        mine = review_service.list_reviews_for_user(tech_reviewer)
        assert [r.reviewer_id for r in mine] == [tech_reviewer.id]
        assert len(review_service.list_reviews_for_user(admin_user)) == 2

    def test_inbox_entry_shape(self, review_request, tech_reviewer, sales_user):
        review = _review_for(review_request, tech_reviewer)
        entry = review_service.review_inbox_entry(review)
        assert entry["offer_status"] == "In Review"
        assert entry["requested_by_name"] == sales_user.name
        assert entry["request_details"] == "<p>Please check sizing</p>"
        assert entry["documents"] == []

    def test_status_filter(self, review_request, tech_reviewer):
        review = _review_for(review_request, tech_reviewer)
        review_service.submit_review(review.id, actor=tech_reviewer, decision="approved", comments="<p>a</p>")
        assert review_service.list_reviews_for_user(tech_reviewer, status="pending") == []
