# app/crud.py
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session
from . import models

LIKE_ESCAPE = "\\"

def escape_like(value: str, escape: str = LIKE_ESCAPE) -> str:
    """Escape karakter wildcard LIKE supaya nama dicocokkan secara literal."""
    value = value.replace(escape, escape + escape)
    value = value.replace("%", escape + "%")
    return value.replace("_", escape + "_")

def _instance_suffix(instance: str) -> str:
    return "%@" + escape_like(instance)

# Tabel instances

def get_instance(db: Session, name: str) -> Optional[models.Instance]:
    return db.query(models.Instance).filter(models.Instance.name == name).first()

def get_instance_names(db: Session) -> List[str]:
    return [name for (name,) in db.query(models.Instance.name)]

def create_instance(db: Session, name: str, timestamp: datetime):
    db_instance = models.Instance(name=name, timestamp=timestamp)
    db.add(db_instance)
    db.commit()
    db.refresh(db_instance)
    return db_instance

def delete_instance(db: Session, name: str) -> int:
    deleted = db.query(models.Instance).filter(models.Instance.name == name).delete(
        synchronize_session=False
    )
    db.commit()
    return deleted

# Tabel users

def get_user(db: Session, federation_id: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.federation_id == federation_id).first()

def get_federation_ids(db: Session) -> List[str]:
    return [federation_id for (federation_id,) in db.query(models.User.federation_id)]

def create_user(db: Session, federation_id: str):
    db_user = models.User(federation_id=federation_id)
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user

def delete_user(db: Session, federation_id: str) -> int:
    deleted = db.query(models.User).filter(models.User.federation_id == federation_id).delete(
        synchronize_session=False
    )
    db.commit()
    return deleted

def _user_ids_for_instance(db: Session, instance: str) -> List[int]:
    # LIKE hanya penyaring awal: di SQLite tidak peka huruf besar/kecil dan
    # '%@x' juga cocok dengan 'a@b@x', jadi bagian setelah '@' pertama dicek ulang
    match = models.User.federation_id.like(_instance_suffix(instance), escape=LIKE_ESCAPE)
    candidates = db.query(models.User.id, models.User.federation_id).filter(match)
    return [
        user_id for user_id, federation_id in candidates
        if federation_id.partition("@")[2] == instance
    ]

def identity_exists_for_instance(db: Session, instance: str) -> bool:
    return bool(_user_ids_for_instance(db, instance))

def delete_users_for_instance(db: Session, instance: str) -> int:
    user_ids = _user_ids_for_instance(db, instance)
    if not user_ids:
        return 0
    deleted = db.query(models.User).filter(models.User.id.in_(user_ids)).delete(
        synchronize_session=False
    )
    db.commit()
    return deleted
