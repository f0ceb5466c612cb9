from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from ..access import require_principal
from ..api_models import AddTeacherRequest, CreateClassRequest, JoinClassRequest, UpdateClassRequest
from ..class_service import class_to_dict

_WRITE_ROLES = ("teacher",)


def build_router(core: Any) -> APIRouter:
    router = APIRouter(prefix="/api/classes", tags=["classes"])

    @router.post("", status_code=201)
    def create_class(req: CreateClassRequest) -> Any:
        principal = require_principal(roles=_WRITE_ROLES)
        classroom = core.classes.create_class(
            principal.user_id,
            req.class_name,
            description=req.description or "",
            subject=req.subject or "",
            theme_color=req.theme_color or "",
        )
        return {"message": "Class created successfully", "class": class_to_dict(classroom)}

    @router.get("")
    def list_classes() -> Any:
        principal = require_principal()
        classes = core.classes.list_classes(principal.user_id, principal.role)
        return {"classes": [class_to_dict(c) for c in classes]}

    @router.post("/join")
    def join_class(req: JoinClassRequest) -> Any:
        principal = require_principal(roles=("student",))
        classroom = core.classes.join_class(principal.user_id, req.class_code)
        return {"message": "Successfully joined class", "class": class_to_dict(classroom)}

    @router.get("/{class_id}")
    def get_class(class_id: int) -> Any:
        principal = require_principal()
        classroom = core.classes.get_class(class_id, user_id=principal.user_id, role=principal.role)
        return class_to_dict(classroom)

    @router.put("/{class_id}")
    def update_class(class_id: int, req: UpdateClassRequest) -> Any:
        principal = require_principal(roles=_WRITE_ROLES)
        classroom = core.classes.update_class(
            class_id,
            principal.user_id,
            name=req.class_name,
            description=req.description,
            subject=req.subject,
            theme_color=req.theme_color,
        )
        return {"message": "Class updated successfully", "class": class_to_dict(classroom)}

    @router.post("/{class_id}/archive")
    def archive_class(class_id: int) -> Any:
        principal = require_principal(roles=_WRITE_ROLES)
        classroom = core.classes.archive_class(class_id, principal.user_id)
        return {"message": "Class archived successfully", "class": class_to_dict(classroom)}

    @router.delete("/{class_id}")
    def delete_class(class_id: int) -> Any:
        principal = require_principal(roles=_WRITE_ROLES)
        core.classes.delete_class(class_id, principal.user_id)
        return {"message": "Class deleted successfully"}

    @router.get("/{class_id}/students")
    def list_students(class_id: int) -> Any:
        principal = require_principal()
        students = core.classes.list_students(class_id, user_id=principal.user_id, role=principal.role)
        return {"students": students}

    @router.delete("/{class_id}/students/{student_id}")
    def remove_student(class_id: int, student_id: int) -> Any:
        principal = require_principal()
        core.classes.remove_student(class_id, principal.user_id, student_id)
        return {"message": "Student removed from class"}

    @router.post("/{class_id}/teachers", status_code=201)
    def add_teacher(class_id: int, req: AddTeacherRequest) -> Any:
        principal = require_principal(roles=_WRITE_ROLES)
        core.classes.add_teacher(class_id, principal.user_id, req.teacher_id)
        return {"message": "Teacher added to class"}

    @router.delete("/{class_id}/teachers/{teacher_id}")
    def remove_teacher(class_id: int, teacher_id: int) -> Any:
        principal = require_principal(roles=_WRITE_ROLES)
        core.classes.remove_teacher(class_id, principal.user_id, teacher_id)
        return {"message": "Teacher removed from class"}

    return router
