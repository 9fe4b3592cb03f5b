from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from gymledger.core.db import get_db, serialized
from gymledger.schemas.deleted_member import DeletedMemberDetail, DeletedMemberOut, RestoreResult
from gymledger.services import archive

router = APIRouter(prefix="/deleted-members", tags=["deleted-members"])


@router.get("", response_model=list[DeletedMemberOut])
def list_deleted_members(
    *,
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=100),
    db: Session = Depends(get_db),
) -> list[DeletedMemberOut]:
    with serialized(db):
        items, _ = archive.list_deleted_members(db, page=page, page_size=page_size)
        return [DeletedMemberOut.model_validate(item) for item in items]


@router.get("/by-member/{member_id}", response_model=DeletedMemberDetail)
def get_deleted_member_by_original_id(member_id: int, db: Session = Depends(get_db)) -> DeletedMemberDetail:
    with serialized(db):
        return DeletedMemberDetail.model_validate(archive.get_deleted_member(db, original_member_id=member_id))


@router.get("/{snapshot_id}", response_model=DeletedMemberDetail)
def get_deleted_member(snapshot_id: int, db: Session = Depends(get_db)) -> DeletedMemberDetail:
    with serialized(db):
        return DeletedMemberDetail.model_validate(archive.get_deleted_member(db, snapshot_id))


@router.post("/{snapshot_id}/restore", response_model=RestoreResult)
def restore_deleted_member(snapshot_id: int, db: Session = Depends(get_db)) -> RestoreResult:
    with serialized(db):
        member, restored = archive.restore_deleted_member(db, snapshot_id)
        return RestoreResult(member_id=member.id, restored_receipts=restored)


@router.delete("/{snapshot_id}", response_model=None, status_code=status.HTTP_204_NO_CONTENT)
def permanently_delete_member(snapshot_id: int, db: Session = Depends(get_db)) -> Response:
    with serialized(db):
        archive.permanently_delete_member(db, snapshot_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
