"""
配置管理模块
"""
from functools import lru_cache
from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

# 获取项目根目录
PROJECT_ROOT = Path(__file__).parent.parent.parent


class Settings(BaseSettings):
    """应用配置"""

    # 环境
    ENV: str = "dev"

    # 应用配置
    APP_NAME: str = "Order Desk"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # 数据库配置（可选，测试时不需要）
    DATABASE_URL: Optional[str] = None

    # HFD 承运商配置（账号/token 按用户存放在 hfd_settings 表，这里只放接口参数）
    HFD_API_BASE_URL: str = "https://test.hfd.co.il/RunCom.WebAPI/api/v1"
    HFD_LABEL_URL: str = "https://test.hfd.co.il/RunCom.Server/Request.aspx"
    HFD_REQUEST_TIMEOUT: float = 30.0
    HFD_MAX_ATTEMPTS: int = 3
    HFD_RETRY_BASE_DELAY: float = 2.0

    # 发件人信息（每个运单都带上）
    SENDER_NAME: str = "Order Desk"
    SENDER_ADDRESS: str = ""
    SENDER_CITY: str = "Tel Aviv"
    SENDER_ZIP: str = "0000000"
    SENDER_PHONE: str = ""

    # 导入默认值
    DEFAULT_CURRENCY: str = "ILS"
    DEFAULT_WEIGHT_GRAMS: int = 500

    # 批量操作结果里最多展示几条错误
    BULK_ERROR_MESSAGE_LIMIT: int = 3

    # Shopify 拉单（可选）
    SHOPIFY_STORE_NAME: Optional[str] = None
    SHOPIFY_API_VERSION: str = "2026-01"
    # 方式一：Client Credentials 动态获取 token（推荐，.env 填这两项）
    SHOPIFY_CLIENT_ID: Optional[str] = None
    SHOPIFY_CLIENT_SECRET: Optional[str] = None
    # 方式二：直接使用静态 access token（与方式一二选一）
    SHOPIFY_ACCESS_TOKEN: Optional[str] = None
    # 拉下来的订单归属哪个用户
    SHOPIFY_OWNER_ID: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    @property
    def database_dsn(self) -> Optional[str]:
        """asyncpg 可用的 DSN（去掉 SQLAlchemy 风格的 +asyncpg）"""
        if not self.DATABASE_URL:
            return None
        return self.DATABASE_URL.replace("postgresql+asyncpg://", "postgresql://", 1)

    @property
    def shopify_graphql_url(self) -> str:
        """Shopify Admin GraphQL API URL"""
        return f"https://{self.SHOPIFY_STORE_NAME}.myshopify.com/admin/api/{self.SHOPIFY_API_VERSION}/graphql.json"

    @property
    def shopify_oauth_token_url(self) -> str:
        """OAuth access_token 端点（Client Credentials 用）"""
        return f"https://{self.SHOPIFY_STORE_NAME}.myshopify.com/admin/oauth/access_token"

    def use_client_credentials(self) -> bool:
        """是否使用 client_id + client_secret 动态获取 token"""
        return bool(self.SHOPIFY_CLIENT_ID and self.SHOPIFY_CLIENT_SECRET)


@lru_cache
def get_settings() -> Settings:
    """获取配置单例"""
    return Settings()
