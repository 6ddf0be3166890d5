from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import os
import logging
from dotenv import load_dotenv

from db import init_db
from counsel_request.logic.errors import CounselRequestError
from counsel_request.routes import router as counsel_request_router
from counsel_request.admin_routes import router as admin_router

load_dotenv()

logging.basicConfig(level=logging.INFO)
logging.info("App starting with DATABASE_URL")

app = FastAPI(title="Counsel Request Service")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

init_db()


@app.exception_handler(CounselRequestError)
def counsel_request_error_handler(request: Request, exc: CounselRequestError):
    if exc.status_code >= 500:
        logging.error(f"{exc.error_name} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.error_name},
    )


app.include_router(counsel_request_router)
app.include_router(admin_router)


@app.get("/health", tags=["health"])
def health():
    return {"status": "ok"}
