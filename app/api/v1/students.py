# app/api/v1/students.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Path, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.crud.student import student_crud
from app.models.student import Student as StudentModel
from app.schemas.qr import QRCodeOut
from app.schemas.student import Student, StudentCreate
from app.services.qr import build_student_qr_text, qr_data_uri

router = APIRouter()

@router.get("/", response_model=List[Student])
def list_students(
    q: Optional[str] = Query(None, description="Busca por nome, e-mail ou RA"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
):
    stmt = select(StudentModel)
    if q:
        like = f"%{q.strip()}%"
        stmt = stmt.where(
            (StudentModel.name.ilike(like)) |
            (StudentModel.email.ilike(like)) |
            (StudentModel.ra.ilike(like))
        )
    stmt = stmt.order_by(StudentModel.id).offset((page - 1) * page_size).limit(page_size)
    return db.execute(stmt).scalars().all()

@router.post("/", response_model=Student, status_code=status.HTTP_201_CREATED)
def create_student(body: StudentCreate, db: Session = Depends(get_db)):
    if student_crud.get_by_email(db, body.email):
        raise HTTPException(status_code=409, detail="E-mail already registered")
    return student_crud.create(db, body)

@router.get("/{student_id}", response_model=Student)
def get_student(student_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    s = student_crud.get(db, student_id)
    if not s:
        raise HTTPException(status_code=404, detail="Student not found")
    return s

@router.get("/{student_id}/qr", response_model=QRCodeOut)
def student_qr(student_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    s = student_crud.get(db, student_id)
    if not s:
        raise HTTPException(status_code=404, detail="Student not found")
    text = build_student_qr_text(str(s.id))
    return QRCodeOut(qr_text=text, image_data_uri=qr_data_uri(text))
