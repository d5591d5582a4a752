""""根据 .env 或默认值写入基础数据（可重复执行）：

- 角色 ADMIN / USER
- 用户 admin（ADMIN）与 demo（USER），口令以 passlib 哈希存储
- 一棵起步用的权限树；ADMIN 拥有全部，USER 只拥有只读部分

可作为脚本执行，也可被测试直接导入调用（提供 run() 函数）"""
# scripts/seed.py
import os
import sys

# 确保脚本在控制台有输出；不影响主服务的日志设置
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("PYTHONUNBUFFERED", "1")

from sqlalchemy.orm import Session  # noqa: E402

from authcore.core.models import Permission, Role  # noqa: E402
from authcore.core.models_user import User  # noqa: E402
from authcore.core.security import hash_password  # noqa: E402
from authcore.infra.db import SessionLocal  # noqa: E402
from authcore.infra.logger import emit  # noqa: E402
from authcore.services.permissions import PermissionGraph  # noqa: E402

# (code, name, kind, parent_code, path, sort, user 可见)
STARTER_PERMISSIONS = [
    ("SYSTEM", "System", "MENU", None, "/system", 1, True),
    ("SYSTEM:USER", "Users", "MENU", "SYSTEM", "/system/users", 1, True),
    ("SYSTEM:USER:CREATE", "Create user", "BUTTON", "SYSTEM:USER", None, 1, False),
    ("SYSTEM:USER:DELETE", "Delete user", "BUTTON", "SYSTEM:USER", None, 2, False),
    ("SYSTEM:ROLE", "Roles", "MENU", "SYSTEM", "/system/roles", 2, True),
    ("SYSTEM:PERMISSION", "Permissions", "MENU", "SYSTEM", "/system/permissions", 3, False),
    ("API:PERMISSION:WRITE", "Permission write API", "API", "SYSTEM:PERMISSION", "/api/v1/permissions", 1, False),
    ("DB", "Databases", "MENU", None, "/db", 2, True),
    ("DB:CONNECTION", "Connections", "MENU", "DB", "/db/connections", 1, True),
]


def _get_env(k: str, default: str) -> str:
    v = os.getenv(k)
    return v if v is not None and v != "" else default


def upsert_role(db: Session, code: str, name: str, sort: int) -> Role:
    r = db.query(Role).filter(Role.code == code).first()
    if r is None:
        r = Role(code=code, name=name, sort_order=sort, enabled=True, deleted=False)
        db.add(r); db.commit(); db.refresh(r)
        emit("seed_role_upsert", code=code, action="created")
    return r


def upsert_user(db: Session, username: str, password: str, role: str):
    u = db.query(User).filter(User.username == username).first()
    if u:
        action = "updated"
        u.role = role
        if password:
            u.password_hash = hash_password(password)
    else:
        action = "created"
        u = User(username=username, password_hash=hash_password(password), role=role, is_active=True)
        db.add(u)
    db.commit()
    emit("seed_user_upsert", username=username, role=role, action=action)
    print(f"[seed] {action} user: {username} ({role})", flush=True)


def seed_permissions(db: Session):
    by_code = {p.code: p for p in db.query(Permission).all()}
    for code, name, kind, parent_code, path, sort, _ in STARTER_PERMISSIONS:
        if code in by_code:
            continue
        parent_id = by_code[parent_code].id if parent_code else 0
        p = Permission(code=code, name=name, kind=kind, parent_id=parent_id, path=path,
                       sort_order=sort, enabled=True, deleted=False)
        db.add(p); db.commit(); db.refresh(p)
        by_code[code] = p
    return by_code


def run():
    emit("seed_begin", database_url=os.getenv("DATABASE_URL"))
    print("[seed] seeding roles, users and permissions ...", flush=True)

    admin_code = _get_env("ADMIN_ROLE_CODE", "ADMIN")
    admin_username = _get_env("ADMIN_USERNAME", "admin")
    admin_password = _get_env("ADMIN_PASSWORD", "admin")
    demo_username = _get_env("DEMO_USERNAME", "demo")
    demo_password = _get_env("DEMO_PASSWORD", "demo")

    with SessionLocal() as db:
        admin_role = upsert_role(db, admin_code, "Administrator", 1)
        user_role = upsert_role(db, "USER", "User", 2)
        upsert_user(db, admin_username, admin_password, admin_code)
        upsert_user(db, demo_username, demo_password, "USER")

        by_code = seed_permissions(db)
        graph = PermissionGraph(db)
        graph.assign_to_role(admin_role.id, [p.id for p in by_code.values() if not p.deleted])
        graph.assign_to_role(user_role.id, [by_code[c].id for c, *_, visible in STARTER_PERMISSIONS if visible])

    emit("seed_done", status="ok")
    print("[seed] done.", flush=True)


if __name__ == "__main__":
    try:
        run()
        sys.exit(0)
    except Exception as e:
        emit("seed_error", error=str(e))
        print(f"[seed] ERROR: {e}", file=sys.stderr, flush=True)
        sys.exit(1)
