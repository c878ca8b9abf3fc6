"""
User Model - accounts for every actor on the marketplace

Companies post jobs, ambassadors apply to them, admins moderate. The role
column uses the closed UserRole enum; SYSTEM is never stored here.
"""

from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from marketplace.database import Base
import uuid


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(320), nullable=False, unique=True)
    name = Column(String(200), nullable=False)
    role = Column(String(20), nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now())
