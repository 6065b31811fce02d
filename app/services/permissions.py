"""Permission catalogue CRUD (soft delete, name search, pagination)."""

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.base import active
from app.models.permission import Permission
from app.schemas.common import Pagination, paginate
from app.schemas.permissions import PermissionCreate, PermissionOut, PermissionUpdate


def _get(db: Session, permission_id: int) -> Permission:
    permission = active(db, Permission).filter(Permission.id == permission_id).first()
    if permission is None:
        raise NotFoundError("Permission not found.")
    return permission


def _ensure_name_free(db: Session, name: str, exclude_id: int | None = None) -> None:
    query = db.query(Permission).filter(func.lower(Permission.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Permission.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("A permission with this name already exists.")


def create_permission(db: Session, data: PermissionCreate, actor_id: int | None) -> PermissionOut:
    name = data.name.strip()
    _ensure_name_free(db, name)
    permission = Permission(name=name, description=data.description, created_by=actor_id, updated_by=actor_id)
    db.add(permission)
    db.commit()
    db.refresh(permission)
    return PermissionOut.model_validate(permission)


def list_permissions(
    db: Session, page: int = 1, limit: int = 10, search: str | None = None
) -> tuple[list[PermissionOut], Pagination]:
    query = active(db, Permission)
    if search:
        query = query.filter(Permission.name.ilike(f"%{search.strip()}%"))
    total = query.count()
    rows = query.order_by(Permission.id).offset((page - 1) * limit).limit(limit).all()
    return [PermissionOut.model_validate(p) for p in rows], paginate(total, page, limit)


def get_permission(db: Session, permission_id: int) -> PermissionOut:
    return PermissionOut.model_validate(_get(db, permission_id))


def update_permission(db: Session, permission_id: int, data: PermissionUpdate, actor_id: int | None) -> PermissionOut:
    permission = _get(db, permission_id)
    fields = data.model_dump(exclude_unset=True)
    if not fields:
        raise ValidationError("No fields to update.")
    if fields.get("name"):
        fields["name"] = fields["name"].strip()
        _ensure_name_free(db, fields["name"], exclude_id=permission.id)
        permission.name = fields["name"]
    if "description" in fields:
        permission.description = fields["description"]
    permission.updated_by = actor_id
    db.commit()
    db.refresh(permission)
    return PermissionOut.model_validate(permission)


def delete_permission(db: Session, permission_id: int, actor_id: int | None) -> None:
    permission = _get(db, permission_id)
    permission.is_deleted = True
    permission.updated_by = actor_id
    db.commit()
