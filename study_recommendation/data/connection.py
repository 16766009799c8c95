from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from dotenv import load_dotenv
from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase

if TYPE_CHECKING:
    from sshtunnel import SSHTunnelForwarder

logger = logging.getLogger(__name__)


# -----------------------------------------
#  환경변수 로드 (.env)
# -----------------------------------------
_CURRENT_DIR = Path(__file__).resolve().parent
# data -> study_recommendation -> project root
_PROJECT_ROOT = _CURRENT_DIR.parent.parent
_ENV_PATH = Path(os.getenv("STUDY_REC_ENV_FILE", _PROJECT_ROOT / ".env"))
load_dotenv(_ENV_PATH)

# MongoDB 서버 정보
MONGODB_HOST = os.getenv("MONGO_HOST", "127.0.0.1")
MONGODB_PORT = int(os.getenv("MONGO_PORT", "27017"))
MONGODB_USERNAME = os.getenv("MONGO_USER")
MONGODB_PASSWORD = os.getenv("MONGO_PASSWORD")
MONGODB_DB_NAME = os.getenv("MONGO_DB", "study_platform")
MONGODB_AUTH_SOURCE = os.getenv("MONGO_AUTH_SOURCE", "admin")

# SSH 터널 (MONGO_SSH_HOST 가 설정된 경우에만 사용)
SSH_HOST = os.getenv("MONGO_SSH_HOST")
SSH_PORT = int(os.getenv("MONGO_SSH_PORT", "22"))
SSH_USERNAME = os.getenv("MONGO_SSH_USER", "ubuntu")
SSH_PEM_KEY_PATH = os.getenv("MONGO_SSH_PEM_PATH")

# 엔진 설정
HISTORY_DAYS = int(os.getenv("RECOMMENDATION_HISTORY_DAYS", "30"))
ENABLE_MOTIVATION = os.getenv("ENABLE_MOTIVATION_RECOMMENDATIONS", "false").lower() == "true"

# 전역 SSH 터널 (싱글톤)
_ssh_tunnel: Optional["SSHTunnelForwarder"] = None


def get_ssh_tunnel() -> "SSHTunnelForwarder":
    """SSH 터널을 싱글톤으로 가져오거나 생성합니다."""
    import paramiko
    from sshtunnel import SSHTunnelForwarder

    global _ssh_tunnel
    if _ssh_tunnel is None or not _ssh_tunnel.is_active:
        if not SSH_PEM_KEY_PATH:
            raise RuntimeError("MONGO_SSH_PEM_PATH must be set when MONGO_SSH_HOST is configured")

        pkey = paramiko.RSAKey.from_private_key_file(SSH_PEM_KEY_PATH)
        _ssh_tunnel = SSHTunnelForwarder(
            (SSH_HOST, SSH_PORT),
            ssh_username=SSH_USERNAME,
            ssh_pkey=pkey,
            remote_bind_address=(MONGODB_HOST, MONGODB_PORT),
            local_bind_address=("127.0.0.1", 0),  # 사용 가능한 포트 자동 할당
            allow_agent=False,
            host_pkey_directories=[],
        )
        _ssh_tunnel.start()
        logger.info(f"[Mongo] SSH tunnel open: {SSH_HOST} -> 127.0.0.1:{_ssh_tunnel.local_bind_port}")
    return _ssh_tunnel


def build_mongo_uri() -> str:
    host, port = MONGODB_HOST, MONGODB_PORT
    if SSH_HOST:
        host, port = "127.0.0.1", get_ssh_tunnel().local_bind_port

    if MONGODB_USERNAME:
        return (
            f"mongodb://{MONGODB_USERNAME}:{MONGODB_PASSWORD}"
            f"@{host}:{port}/?authSource={MONGODB_AUTH_SOURCE}&directConnection=true"
        )
    return f"mongodb://{host}:{port}/?directConnection=true"


def create_mongo_client(uri: Optional[str] = None) -> AsyncMongoClient:
    # tz_aware: 저장된 datetime 을 UTC aware 로 돌려받는다
    return AsyncMongoClient(
        uri or build_mongo_uri(),
        tz_aware=True,
        serverSelectionTimeoutMS=30000,
        connectTimeoutMS=30000,
        socketTimeoutMS=30000,
    )


def get_database(client: Optional[AsyncMongoClient] = None, db_name: Optional[str] = None) -> AsyncDatabase:
    client = client or create_mongo_client()
    return client[db_name or MONGODB_DB_NAME]
