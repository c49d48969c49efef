"""
Entity CRUD tests: master data, opportunities, offers, users and projects.
"""

import pytest

from dealdesk.extensions import db
from dealdesk.models import CatalogService, Offer, Opportunity, Partner, ProjectTask
from dealdesk.services import (
    masterdata_service,
    offer_service,
    opportunity_service,
    project_service,
    review_service,
    session_service,
    user_service,
    auth_service,
)
from dealdesk.services.lifecycle_service import LifecycleError
from dealdesk.validation import ConflictError, NotFoundError, ValidationError

from conftest import PASSWORD


class TestPayloadPolicy:
    def test_unknown_field_rejected(self, db_session):
        with pytest.raises(ValidationError, match="Field not allowed: partner_human_id"):
            masterdata_service.create_partner({"name": "Acme", "partner_type": "Reseller", "partner_human_id": "X"})

    def test_required_fields(self, db_session):
        with pytest.raises(ValidationError, match="Missing required fields: partner_type"):
            masterdata_service.create_partner({"name": "Acme"})

    def test_closed_choices(self, db_session):
        with pytest.raises(ValidationError, match="Invalid partner_type"):
            masterdata_service.create_partner({"name": "Acme", "partner_type": "Friend"})


class TestMasterData:
    def test_partner_in_use_cannot_be_deleted(self, db_session, sales_user):
        partner = masterdata_service.create_partner({"name": "Acme", "partner_type": "Reseller"})
        opportunity_service.create_opportunity(
            {"name": "Deal", "partner_id": partner.id}, actor_id=sales_user.id
        )
        with pytest.raises(ConflictError):
            masterdata_service.delete_partner(partner.id)
        assert db.session.get(Partner, partner.id) is not None

    def test_customer_search(self, db_session):
        masterdata_service.create_customer({"name": "Northwind", "industry": "Retail"})
        masterdata_service.create_customer({"name": "Contoso", "industry": "Banking"})
        assert [c.name for c in masterdata_service.list_customers(search="bank")] == ["Contoso"]

    def test_pricing_used_by_offer(self, opportunity, sales_user):
        pricing = masterdata_service.create_pricing(
            {"pretty_name": "Node S", "type": "node", "size": "S", "hourly_price": 0}
        )
        offer_service.create_offer(
            {
                "opportunity_id": opportunity.id,
                "environments": [{
                    "name": "Prod",
                    "components": [{
                        "name": "Node", "license_pricing_id": pricing.id, "monthly_price": 10, "quantity": 1,
                    }],
                }],
            },
            actor_id=sales_user.id,
        )
        with pytest.raises(ConflictError):
            masterdata_service.delete_pricing(pricing.id)

    def test_pricing_type_filter(self, db_session):
        masterdata_service.create_pricing({"pretty_name": "Node S", "type": "node", "size": "S", "hourly_price": 1})
        masterdata_service.create_pricing({"pretty_name": "Disk", "type": "storage", "size": "1TB", "hourly_price": 2})
        assert [p.pretty_name for p in masterdata_service.list_pricing(type_="storage")] == ["Disk"]


class TestOpportunitiesAndOffers:
    def test_owner_defaults_to_actor(self, opportunity, sales_user):
        assert opportunity.owner_id == sales_user.id
        assert opportunity.opportunity_human_id.startswith("OPP")

    def test_unknown_reference(self, db_session, sales_user):
        with pytest.raises(ValidationError, match="customer_id 42 does not exist"):
            opportunity_service.create_opportunity({"name": "Deal", "customer_id": 42}, actor_id=sales_user.id)

    def test_opportunity_with_offers_kept(self, draft_offer, opportunity):
        with pytest.raises(ConflictError):
            opportunity_service.delete_opportunity(opportunity.id)
        assert db.session.get(Opportunity, opportunity.id) is not None

    def test_offer_rollups(self, draft_offer):
        assert draft_offer.offer_human_id.startswith("OFR")
        assert draft_offer.total_mrr == 2000
        assert draft_offer.total_services_revenue == 300

    def test_profit_percentage(self, opportunity, sales_user):
        offer = offer_service.create_offer(
            {
                "opportunity_id": opportunity.id,
                "service_sets": [{
                    "name": "Build",
                    "services": [{"name": "Dev", "manday_rate": 500, "number_of_mandays": 10, "profit_percentage": 20}],
                }],
            },
            actor_id=sales_user.id,
        )
        assert offer.total_services_revenue == 6000

    def test_negative_quantity_rejected(self, opportunity, sales_user):
        with pytest.raises(ValidationError, match="quantity cannot be negative"):
            offer_service.create_offer(
                {
                    "opportunity_id": opportunity.id,
                    "environments": [{"name": "Prod", "components": [{"name": "N", "monthly_price": 1, "quantity": -1}]}],
                },
                actor_id=sales_user.id,
            )
        assert db.session.query(Offer).count() == 0

    def test_status_not_writable(self, draft_offer):
        with pytest.raises(ValidationError, match="Field not allowed: status"):
            offer_service.update_offer(draft_offer.id, {"status": "Won"})

    def test_update_replaces_environments(self, draft_offer):
        offer_service.update_offer(draft_offer.id, {
            "environments": [{"name": "DR", "components": [{"name": "Node", "monthly_price": 50, "quantity": 1}]}],
        })
        assert [e.name for e in draft_offer.environments] == ["DR"]
        assert draft_offer.total_mrr == 50

    def test_delete_only_untouched_drafts(self, draft_offer, sales_user, tech_reviewer, commercial_reviewer):
        review_service.create_review_request(
            draft_offer.id,
            actor_id=sales_user.id,
            request_details="<p>Check</p>",
            technical_reviewer_ids=[tech_reviewer.id],
            commercial_reviewer_ids=[commercial_reviewer.id],
        )
        with pytest.raises(LifecycleError):
            offer_service.delete_offer(draft_offer.id)

    def test_delete_draft(self, draft_offer):
        offer_service.delete_offer(draft_offer.id)
        with pytest.raises(NotFoundError):
            offer_service.delete_offer(draft_offer.id)


class TestUserService:
    def test_options_sorted_and_limited(self, admin_user, sales_user, tech_reviewer):
        options = user_service.user_options(limit=2)
        assert [o["name"] for o in options] == ["Ada Admin", "Sam Sales"]
        assert set(options[0]) == {"id", "name", "role"}

    def test_options_match_role(self, sales_user, tech_reviewer):
        assert [o["name"] for o in user_service.user_options("architect")] == ["Tara Tech"]

    def test_deactivation_revokes_sessions(self, admin_user, sales_user):
        _, _, token = auth_service.login(sales_user.email, PASSWORD)
        user_service.deactivate_user(sales_user.id, actor_id=admin_user.id)
        assert sales_user.is_active is False
        assert session_service.validate_session(token) is None

    def test_cannot_deactivate_self(self, admin_user):
        with pytest.raises(ValidationError):
            user_service.deactivate_user(admin_user.id, actor_id=admin_user.id)

    def test_email_clash_on_update(self, sales_user, tech_reviewer):
        with pytest.raises(ConflictError):
            user_service.update_user(tech_reviewer.id, {"email": sales_user.email})


class TestProjects:
    @pytest.fixture
    def project(self, db_session, sales_user):
        return project_service.create_project({
            "name": "Rollout",
            "project_manager_id": sales_user.id,
            "start_date": "2024-02-01",
            "end_date": "2024-06-30",
        })

    def test_dates_checked(self, db_session):
        with pytest.raises(ValidationError, match="end_date cannot be before start_date"):
            project_service.create_project({"name": "Oops", "start_date": "2024-02-01", "end_date": "2024-01-01"})

    def test_unknown_contract(self, db_session):
        with pytest.raises(NotFoundError):
            project_service.create_project({"name": "Orphan", "contract_id": 77})

    def test_milestone_totals(self, project):
        project_service.add_milestone(project.id, {"name": "Kickoff", "amount": 1000, "status": "Paid"})
        project_service.add_milestone(project.id, {"name": "Go-live", "amount": 2500})

        totals = project_service.milestone_totals(project)

        assert totals["total"] == 3500
        assert totals["by_status"]["Paid"] == 1000
        assert totals["by_status"]["Pending"] == 2500

    def test_milestone_belongs_to_project(self, project):
        other = project_service.create_project({"name": "Other"})
        milestone = project_service.add_milestone(project.id, {"name": "Kickoff", "amount": 10})
        with pytest.raises(ValidationError):
            project_service.update_milestone(other.id, milestone.id, {"status": "Invoiced"})

    def test_negative_amount(self, project):
        with pytest.raises(ValidationError):
            project_service.add_milestone(project.id, {"name": "Refund", "amount": -5})


class TestServiceCatalog:
    @pytest.fixture
    def setup_service(self, db_session):
        return masterdata_service.create_service({"name": "Implementation", "category": "Core Services"})

    def test_default_rate(self, setup_service):
        assert setup_service.manday_rate == 300

    def test_category_must_be_known(self, db_session):
        with pytest.raises(ValidationError, match="Invalid category"):
            masterdata_service.create_service({"name": "Travel", "category": "Misc"})

    def test_negative_rate(self, db_session):
        with pytest.raises(ValidationError, match="manday_rate cannot be negative"):
            masterdata_service.create_service(
                {"name": "Travel", "category": "Additional Costs", "manday_rate": -1}
            )
        assert db.session.query(CatalogService).count() == 0

    def test_list_filters(self, setup_service):
        masterdata_service.create_service({"name": "Training", "category": "Supporting Services", "manday_rate": 250})
        assert [s.name for s in masterdata_service.list_services()] == ["Implementation", "Training"]
        assert [s.name for s in masterdata_service.list_services(category="Supporting Services")] == ["Training"]
        assert [s.name for s in masterdata_service.list_services(search="impl")] == ["Implementation"]

    def test_offer_line_takes_catalog_rate(self, setup_service, opportunity, sales_user):
        offer = offer_service.create_offer(
            {
                "opportunity_id": opportunity.id,
                "service_sets": [{
                    "name": "Delivery",
                    "services": [
                        {"name": "Implementation", "service_id": setup_service.id, "number_of_mandays": 2},
                        {"name": "Implementation", "service_id": setup_service.id, "manday_rate": 100,
                         "number_of_mandays": 1},
                    ],
                }],
            },
            actor_id=sales_user.id,
        )
        rates = [s.manday_rate for s in offer.service_sets[0].services]
        assert rates == [300, 100]
        assert offer.total_services_revenue == 700

    def test_offer_line_without_rate_or_catalog_entry(self, opportunity, sales_user):
        with pytest.raises(ValidationError, match="Missing required fields: manday_rate"):
            offer_service.create_offer(
                {
                    "opportunity_id": opportunity.id,
                    "service_sets": [{"name": "Delivery", "services": [{"name": "Dev", "number_of_mandays": 1}]}],
                },
                actor_id=sales_user.id,
            )

    def test_unknown_catalog_entry(self, opportunity, sales_user):
        with pytest.raises(NotFoundError):
            offer_service.create_offer(
                {
                    "opportunity_id": opportunity.id,
                    "service_sets": [{"name": "Delivery", "services": [
                        {"name": "Dev", "service_id": 999, "number_of_mandays": 1},
                    ]}],
                },
                actor_id=sales_user.id,
            )

    def test_service_in_use_cannot_be_deleted(self, setup_service, opportunity, sales_user):
        offer_service.create_offer(
            {
                "opportunity_id": opportunity.id,
                "service_sets": [{"name": "Delivery", "services": [
                    {"name": "Implementation", "service_id": setup_service.id, "number_of_mandays": 1},
                ]}],
            },
            actor_id=sales_user.id,
        )
        with pytest.raises(ConflictError, match="used by offers"):
            masterdata_service.delete_service(setup_service.id)

    def test_delete_unused(self, setup_service):
        masterdata_service.delete_service(setup_service.id)
        assert db.session.query(CatalogService).count() == 0


class TestProjectTeamAndTasks:
    @pytest.fixture
    def project(self, db_session):
        return project_service.create_project({"name": "Rollout"})

    @pytest.fixture
    def member(self, project):
        return project_service.add_team_member(project.id, {
            "name": "Nina Dev",
            "role": "Developer",
            "email": "nina@example.com",
            "allocation_percentage": 50,
            "start_date": "2024-02-01",
            "end_date": "2024-06-30",
        })

    def _task(self, project, actor=None, **extra):
        payload = {"title": "Install", "start_date": "2024-02-01", "due_date": "2024-02-10", **extra}
        return project_service.add_task(project.id, payload, actor_id=actor.id if actor else None)

    @pytest.mark.parametrize("field,value,message", [
        ("allocation_percentage", 120, "between 0 and 100"),
        ("email", "not-an-email", "Invalid email"),
        ("end_date", "2024-01-01", "end_date cannot be before start_date"),
    ])
    def test_member_checks(self, project, field, value, message):
        payload = {
            "name": "Nina Dev", "role": "Developer", "allocation_percentage": 50,
            "start_date": "2024-02-01", "end_date": "2024-06-30", field: value,
        }
        with pytest.raises(ValidationError, match=message):
            project_service.add_team_member(project.id, payload)

    def test_task_records_actor(self, project, member, sales_user):
        task = self._task(project, sales_user, assigned_to=member.id)
        assert (task.status, task.priority) == ("Not Started", "Low")
        assert task.created_by == task.updated_by == sales_user.id
        assert task.to_dict()["assignee_name"] == "Nina Dev"

    def test_due_before_start(self, project):
        with pytest.raises(ValidationError, match="due_date cannot be before start_date"):
            self._task(project, due_date="2024-01-15")

    def test_assignee_from_other_project(self, project):
        other = project_service.create_project({"name": "Other"})
        stranger = project_service.add_team_member(other.id, {
            "name": "Omar Ops", "role": "Ops", "allocation_percentage": 100,
            "start_date": "2024-01-01", "end_date": "2024-12-31",
        })
        with pytest.raises(ValidationError, match="not a member of this project"):
            self._task(project, assigned_to=stranger.id)

    def test_completed_date_follows_status(self, project, admin_user):
        task = self._task(project)
        assert task.completed_date is None

        project_service.update_task(project.id, task.id, {"status": "Completed"}, actor_id=admin_user.id)
        assert task.completed_date is not None
        assert task.updated_by == admin_user.id

        project_service.update_task(project.id, task.id, {"status": "In Progress"})
        assert task.completed_date is None

    def test_subtasks_listed_under_parent(self, project):
        root = self._task(project, title="Build")
        child = self._task(project, title="Backend", parent_task_id=root.id)
        self._task(project, title="API", parent_task_id=child.id)
        self._task(project, title="Docs")

        listed = [(t["title"], t["level"]) for t in project_service.list_tasks(project.id)]

        assert listed == [("Build", 0), ("Backend", 1), ("API", 2), ("Docs", 0)]

    def test_task_cannot_nest_under_its_subtask(self, project):
        root = self._task(project, title="Build")
        child = self._task(project, title="Backend", parent_task_id=root.id)
        with pytest.raises(ValidationError, match="under itself or one of its subtasks"):
            project_service.update_task(project.id, root.id, {"parent_task_id": child.id})
        with pytest.raises(ValidationError):
            project_service.update_task(project.id, root.id, {"parent_task_id": root.id})

    def test_delete_removes_subtree(self, project):
        root = self._task(project, title="Build")
        child = self._task(project, title="Backend", parent_task_id=root.id)
        self._task(project, title="API", parent_task_id=child.id)
        keep = self._task(project, title="Docs")

        assert project_service.delete_task(project.id, root.id) == 3
        assert [t.id for t in db.session.query(ProjectTask).all()] == [keep.id]

    def test_removing_member_unassigns_tasks(self, project, member):
        task = self._task(project, assigned_to=member.id)

        project_service.remove_team_member(project.id, member.id)

        db.session.expire_all()
        assert db.session.get(ProjectTask, task.id).assigned_to is None
        assert project_service.list_team_members(project.id) == []

    def test_member_belongs_to_project(self, project, member):
        other = project_service.create_project({"name": "Other"})
        with pytest.raises(ValidationError, match="does not belong to this project"):
            project_service.update_team_member(other.id, member.id, {"role": "Lead"})
