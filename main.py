#!/usr/bin/env python3
"""
Blood Request Desk - 後端 API
版本: v1.0.0

輸血申請管理 (醫院管理端):
- 申請列表、代病患新增申請
- 發血完成 (FIFO 扣庫)
- 轉院 (樂觀併發 + 補償)
- 取消 (含通知)
"""

import logging
import sys

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from config.settings import config
from database.connection import init_database
from routes import recipients_router


# ============================================================================
# 日誌配置
# ============================================================================

def setup_logging():
    """設定日誌系統"""
    handlers = [logging.StreamHandler(sys.stdout)]

    if config.LOG_FILE:
        try:
            handlers.append(logging.FileHandler(config.LOG_FILE, encoding='utf-8'))
        except OSError:
            pass  # Skip file logging if not writable

    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )
    return logging.getLogger(__name__)

logger = setup_logging()


# ============================================================================
# App
# ============================================================================

app = FastAPI(
    title=config.APP_TITLE,
    version=config.VERSION,
    description="輸血申請、發血、轉院與取消管理"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(recipients_router)


@app.on_event("startup")
async def startup_event():
    """應用啟動時執行資料庫遷移"""
    applied = init_database()
    logger.info(f"✓ Database ready at {config.DATABASE_PATH} ({applied} migration(s) applied)")


@app.get("/api/info")
async def api_info():
    return {
        "name": config.APP_TITLE,
        "version": config.VERSION,
    }


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
