from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
import uvicorn

import settings
from api import grade_base, disponibilidades, preferencias, modulacao, grade, cargas_horarias, horarios, turnos
from database import init_db
from logger import get_logger
from services.errors import GradeError

logger = get_logger(__name__)

app = FastAPI(title="Grade Horaria API")

@app.on_event("startup")
def on_startup():
    init_db()
    logger.info("Banco de dados inicializado.")

@app.exception_handler(GradeError)
async def grade_error_handler(request: Request, exc: GradeError):
    return JSONResponse(status_code=exc.status_code,
                        content={"ok": False, "code": exc.code, "message": exc.message})

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={
        "ok": False,
        "code": "VALIDATION",
        "message": "Payload inválido.",
        "detail": jsonable_encoder(exc.errors()),
    })

@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception(f"Erro de banco em {request.method} {request.url.path}", exc_info=exc)
    return JSONResponse(status_code=500,
                        content={"ok": False, "code": "INTERNAL", "message": "Erro interno ao acessar o banco."})

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(grade_base.router, prefix="/api")
app.include_router(disponibilidades.router, prefix="/api")
app.include_router(preferencias.router, prefix="/api")
app.include_router(modulacao.router, prefix="/api")
app.include_router(grade.router, prefix="/api")
app.include_router(cargas_horarias.router, prefix="/api")
app.include_router(horarios.router, prefix="/api")
app.include_router(turnos.router, prefix="/api")

@app.get("/health")
async def health_check():
    return {"status": "ok", "version": "0.1.0"}

if __name__ == "__main__":
    uvicorn.run("main:app", host="127.0.0.1", port=settings.PORT, reload=True)
