from typing import TypeVar, Generic, Type, Any, Optional, List, Dict
from sqlalchemy import select
from sqlalchemy.orm import Session
from pydantic import BaseModel
from app.db.base_class import Base

ModelType = TypeVar("ModelType", bound=Base)
CreateSchema = TypeVar("CreateSchema", bound=BaseModel)
UpdateSchema = TypeVar("UpdateSchema", bound=BaseModel)


def parse_ref(ref: Any) -> Optional[int]:
    """
    Converte o id textual vindo do QR/request para a PK inteira.
    Só aceita a forma canônica ("1", nunca "01", "+1", " 1" ou "1_0"),
    assim o id devolvido pelo banco é sempre igual ao recebido.
    """
    if isinstance(ref, int) and not isinstance(ref, bool):
        return ref if ref > 0 else None
    if not isinstance(ref, str) or not ref.isascii() or not ref.isdigit():
        return None
    value = int(ref)
    return value if value > 0 and str(value) == ref else None


class CRUDBase(Generic[ModelType, CreateSchema, UpdateSchema]):
    def __init__(self, model: Type[ModelType]): self.model = model

    def get(self, db: Session, id: Any) -> Optional[ModelType]:
        return db.get(self.model, id)

    def get_multi(self, db: Session, skip=0, limit=100) -> List[ModelType]:
        stmt = select(self.model).order_by(self.model.id).offset(skip).limit(limit)
        return list(db.scalars(stmt).all())

    def create(self, db: Session, obj_in: CreateSchema, extra: Dict[str, Any] | None=None) -> ModelType:
        data = obj_in.model_dump()
        if extra: data.update(extra)
        obj = self.model(**data)
        db.add(obj); db.commit(); db.refresh(obj)
        return obj

    def update(self, db: Session, db_obj: ModelType, obj_in: UpdateSchema | Dict[str, Any]) -> ModelType:
        data = obj_in if isinstance(obj_in, dict) else obj_in.model_dump(exclude_unset=True)
        for f,v in data.items(): setattr(db_obj, f, v)
        db.add(db_obj); db.commit(); db.refresh(db_obj)
        return db_obj

    def remove(self, db: Session, id: Any) -> Optional[ModelType]:
        obj = self.get(db, id)
        if not obj: return None
        db.delete(obj); db.commit(); return obj
