#!/usr/bin/env python3
"""
Caption Impostor - backend entry point
"""

import asyncio
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from caption_impostor.core.config import settings
from caption_impostor.api import api_router
from caption_impostor.core.database import SessionLocal, import_models, init_db
from caption_impostor.services.cleanup_service import scheduler_loop

# Relationships resolve across every model module
import_models()

app = FastAPI(
    title=settings.APP_NAME,
    description="Multiplayer caption game where one player secretly captions a different image",
    version=settings.VERSION
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api")

_scheduler_task = None

@app.on_event("startup")
async def startup_event():
    """Initialise the database and start the maintenance scheduler"""
    global _scheduler_task
    print(f"🚀 Starting {settings.APP_NAME} backend...")
    await init_db()
    print("✅ Database ready")

    if settings.SCHEDULER_INTERVAL_SECONDS > 0:
        _scheduler_task = asyncio.create_task(scheduler_loop(SessionLocal))
    else:
        print("⚠️ Maintenance scheduler disabled")

@app.on_event("shutdown")
async def shutdown_event():
    if _scheduler_task is not None:
        _scheduler_task.cancel()

@app.get("/")
async def root():
    """Root health check"""
    return {"message": f"{settings.APP_NAME} backend running", "status": "healthy"}

@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "caption-impostor"}

def run():
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info"
    )

if __name__ == "__main__":
    run()
