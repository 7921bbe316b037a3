# storefront/main.py
from contextlib import asynccontextmanager
import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from storefront.config import settings
from storefront.database import init_db
from storefront.exceptions import register_exception_handlers

# Router imports
from storefront.routes.auth import router as auth_router
from storefront.routes.catalog import router as catalog_router
from storefront.routes.cart import router as cart_router
from storefront.routes.orders import router as orders_router
from storefront.routes.payments import router as payments_router
from storefront.routes.feedback import router as feedback_router
from storefront.routes.logs import router as logs_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Tables come straight from the models; there is no migration step
    init_db()
    logger.info("Storefront API started")
    yield


app = FastAPI(title="Storefront API", version="1.0.0", lifespan=lifespan)

# CORS configuration: local dev frontend plus the deployed one, if configured
origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
if settings.FRONTEND_URL:
    origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Router registration
app.include_router(auth_router)
app.include_router(catalog_router)
app.include_router(cart_router)
app.include_router(orders_router)
app.include_router(payments_router)
app.include_router(feedback_router)
app.include_router(logs_router)


@app.get("/")
def read_root():
    return {"message": "Storefront API is running"}
