"""FeedGuard API - shared dedup store for concurrently running pollers.

Run with: uvicorn api:app
"""

import logging
from pathlib import Path
from threading import Lock
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from feedguard.config import DedupConfig, load_config
from feedguard.core import Clock
from feedguard.dedup import StateStore, admit_batch, commit, load_store, release, save_store
from feedguard.models import Article

# ─────────────────────────────────────────────────────────────
# 日志配置
# ─────────────────────────────────────────────────────────────

def setup_api_logging():
    """Configure logging for API process."""
    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)

    log_file = log_dir / "api.log"

    # File handler
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    ))

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    root_logger.addHandler(file_handler)

    return log_file


logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# 请求/响应模型
# ─────────────────────────────────────────────────────────────

class AdmitRequest(BaseModel):
    """待准入的文章批次"""
    articles: list[Article] = Field(default_factory=list)


class KeysRequest(BaseModel):
    """dedupe key 列表 (commit / release)"""
    keys: list[str] = Field(default_factory=list)


class RejectedItem(BaseModel):
    """被拒绝的文章"""
    key: str
    reason: str
    title: Optional[str] = None


# ─────────────────────────────────────────────────────────────
# 应用
# ─────────────────────────────────────────────────────────────

class EngineState:
    """Store plus persistence, shared by all requests of one app."""

    def __init__(self, config: DedupConfig, store: StateStore, state_file: Path):
        self.config = config
        self.store = store
        self.state_file = state_file
        self._save_lock = Lock()

    def persist(self) -> bool:
        # Snapshot and write under one lock so an older snapshot never lands last
        with self._save_lock:
            return save_store(self.store, self.state_file)


def create_app(
    config: Optional[DedupConfig] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    """
    Build the API around one long-lived store.

    Args:
        config: Engine settings, defaults to load_config()
        clock: Time source for the store (tests pass a ManualClock)
    """
    config = config or load_config()
    store = load_store(config.state_file, config, clock=clock)

    app = FastAPI(
        title="FeedGuard API",
        description="RSS 文章去重准入接口",
        version="0.1.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.engine = EngineState(config, store, config.state_file)

    # ─────────────────────────────────────────────────────────
    # API 端点
    # ─────────────────────────────────────────────────────────

    @app.get("/api/health")
    async def health_check():
        """健康检查"""
        return {
            "service": "FeedGuard API",
            "version": "0.1.0",
            "status": "ok",
        }

    @app.get("/api/stats")
    def get_stats(request: Request):
        """当前存活的 posted / pending 数量"""
        engine: EngineState = request.app.state.engine
        return engine.store.stats().as_dict()

    @app.post("/api/admit")
    def admit_articles(body: AdmitRequest, request: Request):
        """
        准入一批文章

        Returns:
            accepted: 带 dedupeKey 的文章 (原字段保持不变)
            rejected: 被拒绝的 key 与原因
        """
        engine: EngineState = request.app.state.engine
        accepted, results = admit_batch(
            engine.store,
            body.articles,
            tracking_params=engine.config.tracking_params,
        )
        if accepted:
            engine.persist()

        rejected = [
            RejectedItem(key=r.key, reason=r.reason.value, title=r.article.title if r.article else None)
            for r in results if not r.accepted
        ]
        return {
            "accepted": [a.to_dict() for a in accepted],
            "rejected": [r.model_dump() for r in rejected],
            "stats": engine.store.stats().as_dict(),
        }

    @app.post("/api/commit")
    def commit_keys(body: KeysRequest, request: Request):
        """下游投递完成后提交 key"""
        engine: EngineState = request.app.state.engine
        count = commit(engine.store, body.keys)
        engine.persist()
        return {
            "committed": count,
            "stats": engine.store.stats().as_dict(),
        }

    @app.post("/api/release")
    def release_keys(body: KeysRequest, request: Request):
        """放弃租约，允许立即重试"""
        engine: EngineState = request.app.state.engine
        count = release(engine.store, body.keys)
        if count:
            engine.persist()
        return {
            "released": count,
            "stats": engine.store.stats().as_dict(),
        }

    @app.post("/api/gc")
    def garbage_collect(request: Request):
        """清理过期记录并执行容量上限"""
        engine: EngineState = request.app.state.engine
        with engine.store.transaction():
            now = engine.store.now()
            removed = engine.store.collect_garbage(now)
            evicted = engine.store.enforce_capacity(now)
        engine.persist()
        return {
            "removed": removed,
            "evicted": evicted,
            "stats": engine.store.stats().as_dict(),
        }

    return app


def _build_default_app() -> FastAPI:
    setup_api_logging()
    return create_app()


app = _build_default_app()
