# Overview: Service-layer operations for delivery projects: milestones, team members and tasks.

from __future__ import annotations

from ..constants import (
    CODE_PREFIX_PROJECT,
    MILESTONE_STATUSES,
    PROJECT_STATUSES,
    TASK_PRIORITIES,
    TASK_STATUSES,
)
from ..extensions import db
from ..models import Contract, PaymentMilestone, Project, ProjectTask, ProjectTeamMember, User
from ..validation import ModelValidationPolicy, ValidationError, is_valid_email, validate_payload
from .auth_service import generate_human_id
from .gateway import commit_or_rollback, delete_row, get_row, insert_row, list_rows, update_row
from dealdesk.time_utils import utcnow


PROJECT_POLICY = ModelValidationPolicy(
    writable_fields={
        "contract_id", "name", "status", "project_manager_id",
        "start_date", "end_date", "description",
    },
    required_on_create={"name"},
    choices={"status": PROJECT_STATUSES},
)

MILESTONE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "amount", "due_date", "status"},
    required_on_create={"name", "amount"},
    choices={"status": MILESTONE_STATUSES},
)

TEAM_MEMBER_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "role", "email", "phone",
        "allocation_percentage", "start_date", "end_date",
    },
    required_on_create={"name", "role", "start_date", "end_date"},
)

TASK_POLICY = ModelValidationPolicy(
    writable_fields={
        "parent_task_id", "title", "description", "status", "priority",
        "assigned_to", "start_date", "due_date",
    },
    required_on_create={"title", "start_date", "due_date"},
    choices={"status": TASK_STATUSES, "priority": TASK_PRIORITIES},
)


def _check_project(data: dict, project: Project | None = None) -> None:
    if data.get("contract_id") is not None:
        get_row(Contract, data["contract_id"], label="Contract")
    if data.get("project_manager_id") is not None:
        get_row(User, data["project_manager_id"], label="User")

    start = data.get("start_date", project.start_date if project else None)
    end = data.get("end_date", project.end_date if project else None)
    if start and end and end < start:
        raise ValidationError("end_date cannot be before start_date")


def list_projects(*, search: str | None = None, status: str | None = None, contract_id: int | None = None):
    return list_rows(
        Project,
        filters={"status": status, "contract_id": contract_id},
        search=search,
        search_fields=("name", "project_human_id"),
        order_by=(Project.created_at.desc(), Project.id.desc()),
    )


def create_project(payload: dict) -> Project:
    data = validate_payload(model=Project, payload=payload, policy=PROJECT_POLICY, partial=False)
    _check_project(data)
    data["project_human_id"] = generate_human_id(CODE_PREFIX_PROJECT)
    return insert_row(Project, data)


def update_project(project_id: int, payload: dict) -> Project:
    project = get_row(Project, project_id, label="Project")
    data = validate_payload(model=Project, payload=payload, policy=PROJECT_POLICY, partial=True)
    _check_project(data, project)
    return update_row(project, data)


def delete_project(project_id: int) -> None:
    delete_row(get_row(Project, project_id, label="Project"))


def add_milestone(project_id: int, payload: dict) -> PaymentMilestone:
    project = get_row(Project, project_id, label="Project")
    data = validate_payload(model=PaymentMilestone, payload=payload, policy=MILESTONE_POLICY, partial=False)
    if data["amount"] < 0:
        raise ValidationError("amount cannot be negative")
    data["project_id"] = project.id
    return insert_row(PaymentMilestone, data)


def _milestone(project_id: int, milestone_id: int) -> PaymentMilestone:
    milestone = get_row(PaymentMilestone, milestone_id, label="Milestone")
    if milestone.project_id != project_id:
        raise ValidationError("Milestone does not belong to this project")
    return milestone


def update_milestone(project_id: int, milestone_id: int, payload: dict) -> PaymentMilestone:
    milestone = _milestone(project_id, milestone_id)
    data = validate_payload(model=PaymentMilestone, payload=payload, policy=MILESTONE_POLICY, partial=True)
    if data.get("amount") is not None and data["amount"] < 0:
        raise ValidationError("amount cannot be negative")
    return update_row(milestone, data)


def delete_milestone(project_id: int, milestone_id: int) -> None:
    delete_row(_milestone(project_id, milestone_id))


def milestone_totals(project: Project) -> dict:
    totals = {status: 0.0 for status in MILESTONE_STATUSES}
    for m in project.milestones:
        totals[m.status] = totals.get(m.status, 0.0) + (m.amount or 0)
    return {"by_status": totals, "total": sum(totals.values())}


def _check_member(data: dict, member: ProjectTeamMember | None = None) -> None:
    allocation = data.get("allocation_percentage")
    if allocation is not None and not 0 <= allocation <= 100:
        raise ValidationError("allocation_percentage must be between 0 and 100")
    if data.get("email") and not is_valid_email(data["email"]):
        raise ValidationError("Invalid email")

    start = data.get("start_date", member.start_date if member else None)
    end = data.get("end_date", member.end_date if member else None)
    if start and end and end < start:
        raise ValidationError("end_date cannot be before start_date")


def list_team_members(project_id: int) -> list[ProjectTeamMember]:
    return get_row(Project, project_id, label="Project").team_members


def add_team_member(project_id: int, payload: dict) -> ProjectTeamMember:
    project = get_row(Project, project_id, label="Project")
    data = validate_payload(model=ProjectTeamMember, payload=payload, policy=TEAM_MEMBER_POLICY, partial=False)
    _check_member(data)
    data["project_id"] = project.id
    return insert_row(ProjectTeamMember, data)


def _member(project_id: int, member_id: int) -> ProjectTeamMember:
    member = get_row(ProjectTeamMember, member_id, label="Team member")
    if member.project_id != project_id:
        raise ValidationError("Team member does not belong to this project")
    return member


def update_team_member(project_id: int, member_id: int, payload: dict) -> ProjectTeamMember:
    member = _member(project_id, member_id)
    data = validate_payload(model=ProjectTeamMember, payload=payload, policy=TEAM_MEMBER_POLICY, partial=True)
    _check_member(data, member)
    return update_row(member, data)


def remove_team_member(project_id: int, member_id: int) -> None:
    """Remove a member; their tasks stay on the project, unassigned."""
    member = _member(project_id, member_id)
    db.session.query(ProjectTask).filter(ProjectTask.assigned_to == member.id).update(
        {"assigned_to": None}, synchronize_session="fetch"
    )
    delete_row(member, commit=False)
    commit_or_rollback()


def _task(project_id: int, task_id: int) -> ProjectTask:
    task = get_row(ProjectTask, task_id, label="Task")
    if task.project_id != project_id:
        raise ValidationError("Task does not belong to this project")
    return task


def _subtree_ids(project_id: int, task_id: int) -> list[int]:
    """Ids of a task and all its descendants, parents before children."""
    children: dict[int, list[int]] = {}
    for tid, parent_id in db.session.query(ProjectTask.id, ProjectTask.parent_task_id).filter(
        ProjectTask.project_id == project_id
    ):
        children.setdefault(parent_id, []).append(tid)

    ids, stack = [], [task_id]
    while stack:
        current = stack.pop()
        ids.append(current)
        stack.extend(children.get(current, []))
    return ids


def _check_task(project_id: int, data: dict, task: ProjectTask | None = None) -> None:
    start = data.get("start_date", task.start_date if task else None)
    due = data.get("due_date", task.due_date if task else None)
    if start and due and due < start:
        raise ValidationError("due_date cannot be before start_date")

    if data.get("assigned_to") is not None:
        member = get_row(ProjectTeamMember, data["assigned_to"], label="Team member")
        if member.project_id != project_id:
            raise ValidationError("Assignee is not a member of this project")

    if data.get("parent_task_id") is not None:
        parent = _task(project_id, data["parent_task_id"])
        if task is not None and parent.id in _subtree_ids(project_id, task.id):
            raise ValidationError("A task cannot be nested under itself or one of its subtasks")


def _stamp_completion(task: ProjectTask, status: str | None) -> None:
    if status is None:
        return
    if status == "Completed":
        if task.completed_date is None:
            task.completed_date = utcnow()
    else:
        task.completed_date = None


def list_tasks(project_id: int) -> list[dict]:
    """Tasks of a project depth-first (parents before their subtasks), with a nesting level."""
    project = get_row(Project, project_id, label="Project")
    children: dict[int | None, list[ProjectTask]] = {}
    for task in project.tasks:
        children.setdefault(task.parent_task_id, []).append(task)

    out = []

    def walk(parent_id, level):
        for task in children.get(parent_id, []):
            out.append({**task.to_dict(), "level": level})
            walk(task.id, level + 1)

    walk(None, 0)
    return out


def add_task(project_id: int, payload: dict, *, actor_id: int | None = None) -> ProjectTask:
    project = get_row(Project, project_id, label="Project")
    data = validate_payload(model=ProjectTask, payload=payload, policy=TASK_POLICY, partial=False)
    _check_task(project.id, data)

    task = ProjectTask(**data, project_id=project.id, created_by=actor_id, updated_by=actor_id)
    _stamp_completion(task, task.status)
    db.session.add(task)
    commit_or_rollback()
    return task


def update_task(project_id: int, task_id: int, payload: dict, *, actor_id: int | None = None) -> ProjectTask:
    task = _task(project_id, task_id)
    data = validate_payload(model=ProjectTask, payload=payload, policy=TASK_POLICY, partial=True)
    _check_task(project_id, data, task)

    for key, value in data.items():
        setattr(task, key, value)
    _stamp_completion(task, data.get("status"))
    task.updated_by = actor_id
    commit_or_rollback()
    return task


def delete_task(project_id: int, task_id: int) -> int:
    """Delete a task with all its subtasks. Returns the number of rows removed."""
    task = _task(project_id, task_id)
    ids = _subtree_ids(project_id, task.id)
    try:
        # children first so the parent FK never dangles
        for tid in reversed(ids):
            db.session.delete(db.session.get(ProjectTask, tid))
            db.session.flush()
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return len(ids)
