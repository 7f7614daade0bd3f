"""
User lookups shared by the report services
"""
from typing import List

from sqlalchemy.orm import Session

from pulse.models.report import User


def get_or_create_user(db: Session, user_id: str) -> User:
    """Users are owned by the auth layer; a bare row is created on first sight"""
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        user = User(id=user_id)
        db.add(user)
        db.flush()
    return user


def list_user_ids(db: Session) -> List[str]:
    return [row.id for row in db.query(User.id).order_by(User.created_at).all()]
