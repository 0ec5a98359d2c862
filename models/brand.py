from pydantic import BaseModel
from sqlalchemy import Integer, Column, String

from models.base import Base


class Brand(Base):
    __tablename__ = 'brands'

    id = Column(Integer, primary_key=True, unique=True)
    name = Column(String, nullable=False, unique=True)
    logo = Column(String, nullable=True)


class BrandDTO(BaseModel):
    id: int | None = None
    name: str | None = None
    logo: str | None = None
