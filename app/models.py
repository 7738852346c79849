# app/models.py
from sqlalchemy import Column, DateTime, Integer, String
from .database import Base

class Instance(Base):
    __tablename__ = "instances"

    id = Column(Integer, primary_key=True, index=True)
    name = Column("instance", String(255), unique=True, index=True, nullable=False)
    timestamp = Column(DateTime, nullable=False)

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    federation_id = Column(String(255), unique=True, index=True, nullable=False)
