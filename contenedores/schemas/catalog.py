from typing import List
from pydantic import BaseModel


class FractionResponse(BaseModel):
    id: str
    nombre: str
    capacidades: List[int]


class StatusResponse(BaseModel):
    id: str
    nombre: str
