from contextlib import asynccontextmanager
from fastapi import FastAPI
from contenedores.models.database import create_db_and_tables
from contenedores.routers import (
    catalog,
    establishments,
    inventory,
    requests,
)
from fastapi.middleware.cors import CORSMiddleware  # CORS
from contenedores.routers.websocket import router as websocket_router
from contenedores.utils.getenv import get_list_env
from contenedores.utils.logger import setup_logging


# Configurar el logging y crear las tablas al iniciar la aplicación
@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    create_db_and_tables()
    yield


app = FastAPI(title="Gestión de contenedores", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_list_env("CORS_ORIGINS", ["http://localhost:5173"]),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Incluir routers
app.include_router(establishments.router)
app.include_router(requests.router)
app.include_router(inventory.router)
app.include_router(catalog.router)
# Websocket
app.include_router(websocket_router)


@app.get("/")
def read_root():
    return {"message": "API funcionando correctamente"}
