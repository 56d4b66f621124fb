"""
FastAPI 主应用
"""
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from app.api import imports, orders, settings as settings_api, shipments, webhooks
from app.api.errors import register_exception_handlers
from app.core.config import get_settings

settings = get_settings()

# 配置日志
logger.remove()
logger.add(
    sys.stdout,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    level=settings.LOG_LEVEL,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info(f"🚀 启动应用: {settings.APP_NAME}")
    logger.info(f"📝 环境: {settings.ENV}")
    logger.info(f"🚚 HFD 接口: {settings.HFD_API_BASE_URL}")
    if not settings.DATABASE_URL:
        logger.warning("未设置 DATABASE_URL，订单接口将不可用")
    yield
    logger.info("👋 关闭应用")


# 创建应用
app = FastAPI(
    title=settings.APP_NAME,
    debug=settings.DEBUG,
    lifespan=lifespan
)

# 配置 CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(orders.router)
app.include_router(settings_api.router)
app.include_router(shipments.router)
app.include_router(imports.router)
app.include_router(webhooks.router)


@app.get("/")
async def root():
    """根路径"""
    return {"app": settings.APP_NAME, "env": settings.ENV, "version": "1.0.0", "status": "running"}


@app.get("/health")
async def health():
    """健康检查"""
    return {"status": "healthy", "database_configured": bool(settings.DATABASE_URL)}
