import logging
from fastapi import FastAPI
from dotenv import load_dotenv
load_dotenv()

from app.config import settings
from app.access.router import router as access_router
from app.audit.router import router as audit_router
from app.feedback.router import router as feedback_router
from app.notifications.router import router as notifications_router, ws_router as notifications_ws_router
from app.sessions.router import router as sessions_router

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = FastAPI(title="Session Lifecycle Service")

app.include_router(sessions_router)
app.include_router(feedback_router)
app.include_router(access_router)
app.include_router(audit_router)
app.include_router(notifications_router)
app.include_router(notifications_ws_router)

@app.get("/health")
def health():
    return {"status": "ok"}
