# scripts/migrate.py
"""
迁移脚本：创建 users / roles / permissions / role_permissions 表（若不存在）。
安全：create_all 只建缺失的表，不修改已有表结构与数据。
"""

import os
import sys

# 确保脚本在控制台有输出；不影响主服务的日志设置
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("PYTHONUNBUFFERED", "1")

from authcore.infra.db import init_db  # noqa: E402
from authcore.infra.logger import emit  # noqa: E402


def run():
    emit("migrate_begin", database_url=os.getenv("DATABASE_URL"))
    print("[migrate] creating tables if not exists ...", flush=True)
    init_db()
    emit("migrate_done", status="ok")
    print("[migrate] done.", flush=True)


if __name__ == "__main__":
    print(f"[migrate] DATABASE_URL={os.getenv('DATABASE_URL')}", flush=True)
    try:
        run()
        sys.exit(0)
    except Exception as e:
        emit("migrate_error", error=str(e))
        print(f"[migrate] ERROR: {e}", file=sys.stderr, flush=True)
        sys.exit(1)
