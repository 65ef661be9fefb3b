from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from app.core.database import Base
from app.utils.id_utils import generate_id


class Ingredient(Base):
    __tablename__ = "ingredients"

    id = Column(String, primary_key=True, default=generate_id)
    name = Column(String, unique=True, nullable=False)  # Chinese canonical name, e.g. "五花肉"
    category = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Unit(Base):
    __tablename__ = "units"

    id = Column(String, primary_key=True, default=generate_id)
    name = Column(String, unique=True, nullable=False)  # Short token, e.g. "g", "tbsp"
    name_zh = Column(String, nullable=False)  # Display name, e.g. "克", "大勺"
    created_at = Column(DateTime(timezone=True), server_default=func.now())
