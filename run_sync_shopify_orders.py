"""
轮询拉取 Shopify 订单，新订单以 pending 状态写入 orders 表（归属 SHOPIFY_OWNER_ID）。
已存在的订单（同一 Shopify 订单 ID）跳过。

运行：python run_sync_shopify_orders.py [-n 天数，默认 1] [--once]
依赖：.env 中配置 DATABASE_URL、SHOPIFY_OWNER_ID、Shopify 认证；数据库已执行 app/schemas/tables.sql
"""
import argparse
import asyncio
import sys
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

load_dotenv(Path(__file__).resolve().parent / ".env")
sys.path.insert(0, str(Path(__file__).resolve().parent))

POLL_INTERVAL_SECONDS = 60


async def run_once(days_back: int = 1):
    from app.core.config import get_settings
    from app.models import OrderStore, get_connection
    from app.services.hfd_service import HfdService
    from app.services.order_service import OrderService
    from app.services.shopify_service import ShopifyService, sync_new_orders
    from app.sync_utils import utcnow

    settings = get_settings()
    if not settings.SHOPIFY_OWNER_ID:
        raise ValueError("请在 .env 中配置 SHOPIFY_OWNER_ID")

    now = utcnow()
    created_at_min = (now - timedelta(days=days_back)).strftime("%Y-%m-%dT%H:%M:%SZ")
    logger.info(f"[轮询] 拉取 {created_at_min} 之后创建的 Shopify 订单")

    orders = await ShopifyService(settings).get_orders(limit=250, created_at_min=created_at_min)
    if not orders:
        return

    conn = await get_connection()
    try:
        order_service = OrderService(OrderStore(conn), HfdService(settings), settings)
        result = await sync_new_orders(order_service, settings.SHOPIFY_OWNER_ID, orders)
    finally:
        await conn.close()
    logger.info(
        f"[轮询] 本轮完成: 拉取 {result.fetched} 条，新增 {result.created} 条，"
        f"已存在 {result.skipped} 条，失败 {result.failed} 条"
    )


async def main(days_back: int = 1, once: bool = False):
    if once:
        await run_once(days_back=days_back)
        return
    logger.info(
        "启动 Shopify 订单轮询，每 {} 秒执行一次，拉取前 {} 天数据",
        POLL_INTERVAL_SECONDS,
        days_back,
    )
    while True:
        try:
            await run_once(days_back=days_back)
        except Exception:
            logger.exception("本轮同步异常")
        await asyncio.sleep(POLL_INTERVAL_SECONDS)


def parse_args():
    p = argparse.ArgumentParser(description="轮询拉取 Shopify 订单到 orders 表")
    p.add_argument("-n", type=int, default=1, metavar="DAYS", help="拉取前多少天创建的订单，默认 1")
    p.add_argument("--once", action="store_true", help="只执行一轮")
    return p.parse_args()


if __name__ == "__main__":
    args = parse_args()
    asyncio.run(main(days_back=args.n, once=args.once))
