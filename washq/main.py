import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from washq.settings import settings
from washq.api.v1.admin import router as admin_router
from washq.api.v1.business import router as business_router
from washq.api.v1.catalog import router as catalog_router
from washq.api.v1.jobs import router as jobs_router
from washq.api.v1.metrics import router as metrics_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

async def bootstrap_dev_business(logger: logging.Logger) -> None:
    from uuid import uuid4
    from sqlalchemy import select
    from sqlalchemy.exc import OperationalError, ProgrammingError

    from washq.db.session import AsyncSessionLocal, Base, engine
    from washq.db.models import Business

    # Database container may still be starting
    for i in range(10):
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

            async with AsyncSessionLocal() as session:
                b = (await session.execute(select(Business).where(Business.id == "local-dev"))).scalar_one_or_none()

                if not b:
                    new_key = f"dev-key-{str(uuid4())[:8]}"
                    b = Business(id="local-dev", name="Local Dev Car Wash", api_key=new_key, whatsapp_templates={})
                    session.add(b)
                    await session.commit()
                    logger.info(f"\n{'='*40}\nBOOTSTRAP: Created 'local-dev' business.\nAPI KEY: {new_key}\n{'='*40}\n")
                else:
                    logger.info(f"\n{'='*40}\nBOOTSTRAP: Found 'local-dev' business.\nAPI KEY: {b.api_key}\n{'='*40}\n")
            return
        except (OperationalError, ProgrammingError, OSError) as e:
            logger.warning(f"Bootstrap: database not ready ({e.__class__.__name__}), retrying in 2s... ({i+1}/10)")
            await asyncio.sleep(2)

    logger.error("Bootstrap: giving up after 10 attempts")

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("uvicorn")

    if settings.BOOTSTRAP_DEV_BUSINESS:
        await bootstrap_dev_business(logger)

    yield

    from washq.db.session import engine
    await engine.dispose()

app = FastAPI(
    title=settings.PROJECT_NAME,
    lifespan=lifespan
)

app.include_router(admin_router, prefix="/api/v1/admin", tags=["admin"])
app.include_router(business_router, prefix="/api/v1/business", tags=["business"])
app.include_router(catalog_router, prefix="/api/v1", tags=["catalog"])
app.include_router(jobs_router, prefix="/api/v1/jobs", tags=["jobs"])
app.include_router(metrics_router, tags=["metrics"])

@app.get("/health")
async def health():
    return {"status": "ok"}
