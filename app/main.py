# app/main.py

import logging
import os
from typing import List
from fastapi import FastAPI, Depends, HTTPException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from . import models, crud, database, schemas
from .database import engine
from .instances import InstanceManager, MalformedIdentityError, instance_of

# Membuat tabel database saat aplikasi dijalankan pertama kali
models.Base.metadata.create_all(bind=engine)

# Konfigurasi logging
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

app = FastAPI()

# Dependency untuk mendapatkan sesi database
def get_db():
    db = database.SessionLocal()
    try:
        yield db
    finally:
        db.close()

def get_instance_manager(db: Session = Depends(get_db)) -> InstanceManager:
    return InstanceManager(db)

@app.get("/instances", response_model=List[str])
def list_instances(manager: InstanceManager = Depends(get_instance_manager)):
    try:
        return manager.get_instances_or_sync()
    except SQLAlchemyError as e:
        logger.error(f"Failed to list instances: {e}")
        raise HTTPException(status_code=500, detail="Failed to read instances.")

@app.post("/instances/sync", response_model=List[str])
def sync_instances(manager: InstanceManager = Depends(get_instance_manager)):
    try:
        manager.synchronize()
        return manager.list_instances()
    except SQLAlchemyError as e:
        logger.error(f"Failed to sync instances: {e}")
        raise HTTPException(status_code=500, detail="Failed to sync instances.")

@app.delete("/instances/{name}", status_code=204)
def remove_instance(
    name: str,
    remove_users: bool = False,
    manager: InstanceManager = Depends(get_instance_manager),
):
    try:
        manager.remove_instance(name, also_remove_identities=remove_users)
    except SQLAlchemyError as e:
        logger.error(f"Failed to remove instance '{name}': {e}")
        raise HTTPException(status_code=500, detail="Failed to remove instance.")

@app.post("/users", response_model=schemas.UserResponse, status_code=201)
def create_user(
    user: schemas.UserCreate,
    db: Session = Depends(get_db),
    manager: InstanceManager = Depends(get_instance_manager),
):
    try:
        instance_of(user.federation_id)
    except MalformedIdentityError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if crud.get_user(db, user.federation_id) is not None:
        raise HTTPException(status_code=409, detail="User already exists")

    try:
        db_user = crud.create_user(db, federation_id=user.federation_id)
    except IntegrityError:
        # Request paralel sudah lebih dulu menyimpan user yang sama
        db.rollback()
        raise HTTPException(status_code=409, detail="User already exists")
    except SQLAlchemyError as db_error:
        logger.error(f"Failed to save user '{user.federation_id}': {db_error}")
        raise HTTPException(status_code=500, detail="Failed to save user.")

    try:
        manager.on_identity_added(db_user.federation_id)
        logger.info(f"Saved user '{db_user.federation_id}'.")
    except SQLAlchemyError as db_error:
        logger.error(f"Failed to save user '{user.federation_id}': {db_error}")
        raise HTTPException(status_code=500, detail="Failed to save user.")

    return db_user

@app.delete("/users/{federation_id}", status_code=204)
def delete_user(
    federation_id: str,
    db: Session = Depends(get_db),
    manager: InstanceManager = Depends(get_instance_manager),
):
    try:
        instance_of(federation_id)
    except MalformedIdentityError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        deleted = crud.delete_user(db, federation_id)
        if deleted:
            manager.on_identity_removed(federation_id)
    except SQLAlchemyError as db_error:
        logger.error(f"Failed to delete user '{federation_id}': {db_error}")
        raise HTTPException(status_code=500, detail="Failed to delete user.")

    if not deleted:
        raise HTTPException(status_code=404, detail="User not found")
    logger.info(f"Deleted user '{federation_id}'.")
