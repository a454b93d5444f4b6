import logging
from contextlib import asynccontextmanager
from cron_jobs import scheduler

import uvicorn

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware
from routers import shifts, leave_management, timesheets
from config import settings

PROD_MODE = settings.PRODUCTION_MODE

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(levelname)s - %(message)s',  # Log format
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Start cron job scheduler inside the running event loop
    scheduler.start()
    yield
    scheduler.shutdown(wait=False)


app = FastAPI(title=settings.PROJECT_TITLE, lifespan=lifespan)

app.include_router(shifts.router, prefix="/tenants/{tenant_id}/shifts", tags=["shifts"])
app.include_router(leave_management.router, prefix="/tenants/{tenant_id}/leave-requests", tags=["leave_management"])
app.include_router(timesheets.router, prefix="/tenants/{tenant_id}", tags=["timesheets"])

# Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins = [
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        ],
    allow_credentials = True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def index():
    return {"message": "Hello Proxima Timesheets"}


if __name__ == "__main__":
    if PROD_MODE == True:
    # Run Uvicorn without reload in production
        uvicorn.run("main:app", host="0.0.0.0", port=11000, reload=False)

    else:
        # Run Uvicorn with reload=True in development mode
        uvicorn.run("main:app", host="0.0.0.0", port=11000, reload=True)
