from pydantic import BaseModel, Field


class EstablishmentCreate(BaseModel):
    nombre: str = Field(..., min_length=1, max_length=255)


class EstablishmentResponse(BaseModel):
    id: int
    nombre: str

    class Config:
        from_attributes = True
