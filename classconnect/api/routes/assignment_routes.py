from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter

from ..access import require_principal
from ..api_models import (
    AssignmentRequest,
    GradeSubmissionRequest,
    SubmitAssignmentRequest,
    UpdateAssignmentRequest,
)
from ..assignment_service import assignment_to_dict
from ..submission_service import submission_to_dict

_UPDATE_FIELDS = {
    "title": "title",
    "description": "description",
    "due_date": "due_date",
    "points_possible": "points_possible",
    "is_published": "is_published",
    "allow_late_submit": "allow_late_submissions",
}


def build_router(core: Any) -> APIRouter:
    router = APIRouter(prefix="/api/classes/{class_id}/assignments", tags=["assignments"])

    @router.get("")
    def list_assignments(class_id: int) -> Any:
        principal = require_principal()
        assignments = core.assignments.list_assignments(class_id, user_id=principal.user_id, role=principal.role)
        if principal.role != "student":
            return {"assignments": [assignment_to_dict(a) for a in assignments]}
        statuses = core.submissions.status_for_student(principal.user_id, [a.id for a in assignments])
        return {"assignments": [assignment_to_dict(a, submission=statuses.get(a.id)) for a in assignments]}

    @router.post("", status_code=201)
    def create_assignment(class_id: int, req: AssignmentRequest) -> Any:
        principal = require_principal(roles=("teacher",))
        assignment = core.assignments.create_assignment(
            class_id,
            principal.user_id,
            title=req.title,
            description=req.description or "",
            due_date=req.due_date,
            points_possible=req.points_possible,
            is_published=True if req.is_published is None else req.is_published,
            allow_late_submissions=True if req.allow_late_submit is None else req.allow_late_submit,
        )
        return assignment_to_dict(assignment)

    @router.get("/{assignment_id}")
    def get_assignment(class_id: int, assignment_id: int) -> Any:
        principal = require_principal()
        assignment = core.assignments.get_assignment(
            class_id, assignment_id, user_id=principal.user_id, role=principal.role
        )
        if principal.role != "student":
            return assignment_to_dict(assignment)
        view = core.submissions.get_submission(assignment_id, principal.user_id, class_id=class_id)
        return assignment_to_dict(assignment, submission=view)

    @router.put("/{assignment_id}")
    def update_assignment(class_id: int, assignment_id: int, req: UpdateAssignmentRequest) -> Any:
        principal = require_principal(roles=("teacher",))
        changes: Dict[str, Any] = {}
        for field_name in req.model_fields_set:
            target = _UPDATE_FIELDS.get(field_name)
            if target:
                changes[target] = getattr(req, field_name)
        assignment = core.assignments.update_assignment(class_id, assignment_id, principal.user_id, **changes)
        return assignment_to_dict(assignment)

    @router.delete("/{assignment_id}")
    def delete_assignment(class_id: int, assignment_id: int) -> Any:
        principal = require_principal(roles=("teacher",))
        core.assignments.delete_assignment(class_id, assignment_id, principal.user_id)
        return {"message": "Assignment deleted successfully"}

    # submissions

    @router.post("/{assignment_id}/submit")
    def submit_assignment(class_id: int, assignment_id: int, req: SubmitAssignmentRequest) -> Any:
        principal = require_principal(roles=("student",))
        view = core.submissions.submit(
            assignment_id,
            principal.user_id,
            content=req.content or "",
            file_url=req.file_url or "",
            class_id=class_id,
        )
        return {"message": "Assignment submitted successfully", "submission": submission_to_dict(view)}

    @router.get("/{assignment_id}/submission")
    def my_submission(class_id: int, assignment_id: int) -> Any:
        principal = require_principal(roles=("student",))
        view = core.submissions.get_submission(assignment_id, principal.user_id, class_id=class_id)
        return submission_to_dict(view)

    @router.get("/{assignment_id}/submissions")
    def list_submissions(class_id: int, assignment_id: int) -> Any:
        principal = require_principal(roles=("teacher",))
        views = core.submissions.list_with_roster(assignment_id, principal.user_id, class_id=class_id)
        return {"submissions": [submission_to_dict(v) for v in views]}

    @router.get("/{assignment_id}/submissions/{student_id}")
    def get_submission(class_id: int, assignment_id: int, student_id: int) -> Any:
        principal = require_principal()
        view = core.submissions.get_submission(
            assignment_id,
            student_id,
            viewer_id=principal.user_id,
            viewer_role=principal.role,
            class_id=class_id,
        )
        return submission_to_dict(view)

    @router.put("/{assignment_id}/submissions/{student_id}")
    def grade_submission(class_id: int, assignment_id: int, student_id: int, req: GradeSubmissionRequest) -> Any:
        principal = require_principal(roles=("teacher",))
        view = core.submissions.grade(
            assignment_id,
            student_id,
            principal.user_id,
            req.grade,
            req.feedback or "",
            class_id=class_id,
        )
        return {"message": "Submission graded successfully", "submission": submission_to_dict(view)}

    return router
