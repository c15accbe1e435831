"""
IssueHub 服务层的全局配置。
"""
from typing import Optional

from pydantic_settings import BaseSettings


class ServiceConfig(BaseSettings):
    """服务层配置。"""

    # 数据库路径（":memory:" 用于测试）
    DB_PATH: str = "data/issuehub.db"

    # JWT
    JWT_SECRET: str = "issuehub-dev-secret-change-in-prod"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_HOURS: int = 24 * 7

    # 上传文件与日志目录
    UPLOAD_DIR: str = "uploads"
    LOG_DIR: str = "logs"

    # 前端地址，用于支付回跳
    CLIENT_URL: str = "http://localhost:5173"

    # 支付 (Stripe Checkout)，金额单位为最小货币单位
    STRIPE_SECRET_KEY: str = ""
    STRIPE_API_BASE: str = "https://api.stripe.com/v1"
    PAYMENT_TIMEOUT_SECONDS: float = 10.0
    BOOST_PRICE: int = 10000
    PREMIUM_PRICE: int = 100000
    CURRENCY: str = "bdt"

    # 免费用户累计最多可提交的问题数
    FREE_ISSUE_LIMIT: int = 3

    # 启动时自动创建的管理员账号
    ADMIN_EMAIL: Optional[str] = None
    ADMIN_PASSWORD: Optional[str] = None
    ADMIN_NAME: str = "Administrator"

    LOGIN_RATE_LIMIT: str = "10/minute"

    class Config:
        env_file = ".env"
        env_prefix = "ISSUEHUB_"
        extra = "ignore"


# 全局配置实例
config = ServiceConfig()
