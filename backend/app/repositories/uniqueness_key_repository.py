"""Repository for caller-supplied uniqueness keys."""

from sqlalchemy.orm import Session

from app.models.uniqueness_key import UniquenessKey


class UniquenessKeyRepository:
    def __init__(self, db: Session):
        self.db = db

    def exists(self, key: str) -> bool:
        return self.db.query(UniquenessKey).filter(UniquenessKey.key == key).first() is not None

    def add(self, key: str, commit: bool = True) -> None:
        self.db.merge(UniquenessKey(key=key))
        if commit:
            self.db.commit()
