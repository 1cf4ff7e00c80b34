from typing import Optional
from sqlalchemy import select
from sqlalchemy.orm import Session
from app.crud.base import CRUDBase, parse_ref
from app.models.student import Student
from app.schemas.student import StudentCreate, StudentUpdate

class CRUDStudent(CRUDBase[Student, StudentCreate, StudentUpdate]):
    def get_by_email(self, db: Session, email: str) -> Optional[Student]:
        return db.scalar(select(Student).where(Student.email == email.lower()))

    def get_by_ref(self, db: Session, ref: str) -> Optional[Student]:
        # ids vêm do QR como texto
        pk = parse_ref(ref)
        return self.get(db, pk) if pk is not None else None

student_crud = CRUDStudent(Student)
