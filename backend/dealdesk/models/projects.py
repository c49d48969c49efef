from __future__ import annotations

from ..extensions import db
from dealdesk.time_utils import to_iso_date, to_utc_z, utcnow


class Project(db.Model):
    """Delivery project spun up from a contract."""
    __tablename__ = "projects"
    __table_args__ = (
        db.UniqueConstraint("project_human_id", name="uq_projects_human_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    project_human_id = db.Column(db.String(16), nullable=False)
    contract_id = db.Column(db.Integer, db.ForeignKey("contracts.id"), nullable=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(32), nullable=False, default="Planned")
    project_manager_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    contract = db.relationship("Contract", backref=db.backref("projects", lazy=True))
    milestones = db.relationship(
        "PaymentMilestone", backref="project", lazy=True, cascade="all, delete-orphan",
        order_by="PaymentMilestone.due_date",
    )
    team_members = db.relationship(
        "ProjectTeamMember", backref="project", lazy=True, cascade="all, delete-orphan",
        order_by="ProjectTeamMember.name",
    )
    tasks = db.relationship(
        "ProjectTask", backref="project", lazy=True, cascade="all, delete-orphan",
        order_by="ProjectTask.id",
    )

    def to_dict(self, include_milestones: bool = False) -> dict:
        data = {
            "id": self.id,
            "project_human_id": self.project_human_id,
            "contract_id": self.contract_id,
            "name": self.name,
            "status": self.status,
            "project_manager_id": self.project_manager_id,
            "start_date": to_iso_date(self.start_date),
            "end_date": to_iso_date(self.end_date),
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_milestones:
            data["milestones"] = [m.to_dict() for m in self.milestones]
        return data


class PaymentMilestone(db.Model):
    __tablename__ = "payment_milestones"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    amount = db.Column(db.Float, nullable=False, default=0)
    due_date = db.Column(db.Date, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="Pending")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "amount": self.amount,
            "due_date": to_iso_date(self.due_date),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProjectTeamMember(db.Model):
    """Person staffed on a project, with a share of their time."""
    __tablename__ = "project_team_members"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(128), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    allocation_percentage = db.Column(db.Integer, nullable=False, default=100)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "role": self.role,
            "email": self.email,
            "phone": self.phone,
            "allocation_percentage": self.allocation_percentage,
            "start_date": to_iso_date(self.start_date),
            "end_date": to_iso_date(self.end_date),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProjectTask(db.Model):
    """
    Project task; tasks nest through parent_task_id.

    completed_date is stamped when the task reaches Completed and cleared when
    it leaves that status.
    """
    __tablename__ = "project_tasks"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True)
    parent_task_id = db.Column(db.Integer, db.ForeignKey("project_tasks.id"), nullable=True, index=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="Not Started")
    priority = db.Column(db.String(16), nullable=False, default="Low")
    assigned_to = db.Column(db.Integer, db.ForeignKey("project_team_members.id"), nullable=True)
    start_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=False)
    completed_date = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    assignee = db.relationship("ProjectTeamMember", foreign_keys=[assigned_to])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "parent_task_id": self.parent_task_id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "assigned_to": self.assigned_to,
            "assignee_name": self.assignee.name if self.assignee else None,
            "start_date": to_iso_date(self.start_date),
            "due_date": to_iso_date(self.due_date),
            "completed_date": to_utc_z(self.completed_date),
            "created_by": self.created_by,
            "updated_by": self.updated_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
