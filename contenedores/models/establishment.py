from sqlmodel import SQLModel, Field


class Establishment(SQLModel, table=True):
    __tablename__ = "establecimiento"

    id: int = Field(default=None, primary_key=True)
    nombre: str = Field(index=True, nullable=False, unique=True, max_length=255)
