"""
Analytics Service - Workspace metrics and health

Computes task, team, budget and trend metrics for a workspace and derives a
health score from them. The compute_* helpers are pure functions over model
rows so they can be exercised without a database.
"""
import logging
from collections import Counter
from datetime import datetime, timedelta
from sqlalchemy.orm import Session
from typing import Any, Dict, Iterable, List, Optional

from constants import ExpenseStatus, HealthThresholds, MemberStatus
from domain.value_objects import TaskStatus
from models import Expense, TeamMember, Workspace, WorkspaceTask
from repositories import ExpenseRepository, TaskRepository, TeamMemberRepository
from repositories.task_specifications import TasksByWorkspaceSpec

logger = logging.getLogger(__name__)

LEVEL_SCORES = {"good": 100, "warning": 60, "critical": 20}


def is_overdue(task: WorkspaceTask, now: datetime) -> bool:
    return bool(task.due_date and task.due_date < now and task.status != TaskStatus.COMPLETED.value)


def compute_task_metrics(tasks: List[WorkspaceTask], now: datetime) -> Dict[str, Any]:
    """
    Counts by status plus completion rate and average completion time.

    Returns:
        Dictionary matching the TaskMetrics schema
    """
    by_status = Counter(task.status for task in tasks)
    total = len(tasks)
    completed = by_status[TaskStatus.COMPLETED.value]

    durations = [
        (task.completed_at - task.created_at).total_seconds() / 3600
        for task in tasks
        if task.status == TaskStatus.COMPLETED.value and task.completed_at and task.created_at
    ]

    return {
        "total": total,
        "completed": completed,
        "in_progress": by_status[TaskStatus.IN_PROGRESS.value],
        "review": by_status[TaskStatus.REVIEW.value],
        "todo": by_status[TaskStatus.NOT_STARTED.value],
        "blocked": by_status[TaskStatus.BLOCKED.value],
        "overdue": sum(1 for task in tasks if is_overdue(task, now)),
        "completion_rate": round(completed / total, 4) if total else 0.0,
        "avg_completion_time_hours": round(sum(durations) / len(durations), 1) if durations else None,
    }


def compute_team_metrics(members: List[TeamMember], tasks: List[WorkspaceTask]) -> Dict[str, Any]:
    active = [m for m in members if m.status == MemberStatus.ACTIVE.value]
    completed_by = Counter(
        task.assignee_id for task in tasks
        if task.assignee_id and task.status == TaskStatus.COMPLETED.value
    )
    return {
        "total_members": len(members),
        "active_members": len(active),
        "tasks_per_member": round(len(tasks) / len(active), 2) if active else 0.0,
        "top_performers": [
            {"user_id": user_id, "completed_tasks": count}
            for user_id, count in completed_by.most_common(5)
        ],
    }


def compute_budget_metrics(workspace: Workspace, expenses: Iterable[Expense]) -> Dict[str, Any]:
    """
    Budget usage. The allocation lives in workspace settings under
    budget_allocated; approved and reimbursed expenses count as spent.
    """
    allocated = float((workspace.settings or {}).get("budget_allocated") or 0)
    spent = 0.0
    pending = 0
    for expense in expenses:
        if expense.status in (ExpenseStatus.APPROVED.value, ExpenseStatus.REIMBURSED.value):
            spent += expense.amount
        elif expense.status == ExpenseStatus.PENDING.value:
            pending += 1
    return {
        "total_allocated": allocated,
        "total_spent": round(spent, 2),
        "pending_requests": pending,
        "utilization_rate": round(spent / allocated, 4) if allocated else 0.0,
    }


def compute_trends(tasks: List[WorkspaceTask], now: datetime) -> Dict[str, Any]:
    this_week_start = now - timedelta(days=7)
    last_week_start = now - timedelta(days=14)
    this_week = last_week = 0
    for task in tasks:
        if task.status != TaskStatus.COMPLETED.value or not task.completed_at:
            continue
        if this_week_start <= task.completed_at <= now:
            this_week += 1
        elif last_week_start <= task.completed_at < this_week_start:
            last_week += 1

    if last_week:
        change = round((this_week - last_week) / last_week * 100, 1)
    else:
        change = 100.0 if this_week else 0.0

    return {
        "tasks_completed_last_week": last_week,
        "tasks_completed_this_week": this_week,
        "week_over_week_change": change,
    }


def _level(value: float, good: float, warning: float, higher_is_better: bool = True) -> str:
    if higher_is_better:
        if value >= good:
            return "good"
        return "warning" if value >= warning else "critical"
    if value < good:
        return "good"
    return "warning" if value < warning else "critical"


def compute_health(task_metrics: Dict[str, Any], members: List[TeamMember],
                   tasks: List[WorkspaceTask], budget: Dict[str, Any]) -> Dict[str, Any]:
    """
    Health indicators (good / warning / critical) and the overall score.

    The score is the mean of the indicator scores (good=100, warning=60,
    critical=20). A workspace without tasks or budget counts as healthy on
    those indicators.
    """
    total = task_metrics["total"]

    velocity = "good" if not total else _level(
        task_metrics["completion_rate"],
        HealthThresholds.COMPLETION_RATE_GOOD, HealthThresholds.COMPLETION_RATE_WARNING,
    )

    active_ids = {m.user_id for m in members if m.status == MemberStatus.ACTIVE.value}
    engaged = {t.assignee_id for t in tasks if t.assignee_id in active_ids}
    engagement = "good" if not total or not active_ids else _level(
        len(engaged) / len(active_ids),
        HealthThresholds.ENGAGEMENT_GOOD, HealthThresholds.ENGAGEMENT_WARNING,
    )

    if not budget["total_allocated"]:
        budget_health = "good"
    elif budget["utilization_rate"] > HealthThresholds.BUDGET_UTILIZATION_CRITICAL:
        budget_health = "critical"
    elif budget["utilization_rate"] >= HealthThresholds.BUDGET_UTILIZATION_WARNING:
        budget_health = "warning"
    else:
        budget_health = "good"

    overdue_risk = "good" if not total else _level(
        task_metrics["overdue"] / total,
        HealthThresholds.OVERDUE_RATIO_WARNING, HealthThresholds.OVERDUE_RATIO_CRITICAL,
        higher_is_better=False,
    )

    indicators = {
        "task_velocity": velocity,
        "team_engagement": engagement,
        "budget_health": budget_health,
        "overdue_risk": overdue_risk,
    }
    score = round(sum(LEVEL_SCORES[level] for level in indicators.values()) / len(indicators))
    return {"score": score, "indicators": indicators}


class AnalyticsService:
    """
    Service that loads a workspace's rows and computes its analytics.
    """

    def __init__(self, db: Session):
        self.db = db
        self.task_repo = TaskRepository(db)
        self.member_repo = TeamMemberRepository(db)
        self.expense_repo = ExpenseRepository(db)

    def _load(self, workspace: Workspace):
        tasks = self.task_repo.find(TasksByWorkspaceSpec(workspace.id))
        members = self.member_repo.list_members(workspace.id)
        expenses = self.expense_repo.list_for_workspace(workspace.id)
        return tasks, members, expenses

    def workspace_analytics(self, workspace: Workspace, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Full analytics for a workspace.

        Args:
            workspace: Workspace model instance
            now: Reference time (defaults to utcnow)

        Returns:
            Dictionary matching the WorkspaceAnalytics schema
        """
        now = now or datetime.utcnow()
        tasks, members, expenses = self._load(workspace)

        task_metrics = compute_task_metrics(tasks, now)
        budget = compute_budget_metrics(workspace, expenses)
        result = {
            "workspace": {"id": workspace.id, "name": workspace.name, "status": workspace.status},
            "tasks": task_metrics,
            "team": compute_team_metrics(members, tasks),
            "budget": budget,
            "health": compute_health(task_metrics, members, tasks, budget),
            "trends": compute_trends(tasks, now),
        }
        logger.debug(f"Analytics for workspace {workspace.id}: {task_metrics['total']} tasks, "
                     f"health {result['health']['score']}")
        return result

    def workspace_health(self, workspace: Workspace, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.utcnow()
        tasks, members, expenses = self._load(workspace)
        task_metrics = compute_task_metrics(tasks, now)
        return compute_health(task_metrics, members, tasks, compute_budget_metrics(workspace, expenses))

    def task_summary(self, workspace_id: str, now: Optional[datetime] = None) -> Dict[str, int]:
        """Counts shown on the workspace detail view"""
        now = now or datetime.utcnow()
        tasks = self.task_repo.find(TasksByWorkspaceSpec(workspace_id))
        metrics = compute_task_metrics(tasks, now)
        return {
            "total": metrics["total"],
            "completed": metrics["completed"],
            "in_progress": metrics["in_progress"],
            "overdue": metrics["overdue"],
        }
