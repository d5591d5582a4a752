"""
模块职能：
- 权限节点的增改查与逻辑删除；角色-权限关联的整体替换；把扁平列表组装成树。

规则：
- 所有读路径都排除 deleted=True；排序 (sort_order ASC, created_at DESC, id DESC)。
- code / kind 创建后不可改：update() 里传了也忽略，不报错。
- code 全局唯一，逻辑删除的节点仍占用（与表上的唯一索引一致）。
- assign_to_role()：同一事务内先删后插，失败回滚，旧关联保持可见。
- build_tree()：先按 parent_id 分组一次，再用显式栈遍历；visited 集合 + 深度上限，
  脏数据（成环）只返回部分树，不会死循环。

日志：
- perm_create / perm_update / perm_enabled / perm_delete / perm_delete_batch / perm_assign
- perm_tree_cycle（遍历中遇到已访问节点）
"""
from __future__ import annotations

import re
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy import delete, insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from authcore.core.errors import CodeConflict, NotFound, ValidationError
from authcore.core.models import ROOT_PARENT_ID, Permission, PermissionKind, Role, RolePermission
from authcore.infra.logger import emit

CODE_RE = re.compile(r"^[A-Z][A-Z0-9_:]*$")
MAX_TREE_DEPTH = 32
NULLABLE_FIELDS = {"path", "icon"}


class PermissionIn(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    code: str
    name: str
    kind: str = Field(validation_alias=AliasChoices("type", "kind"))
    parent_id: Optional[int] = None
    path: Optional[str] = None
    icon: Optional[str] = None
    sort_order: Optional[int] = None
    enabled: Optional[bool] = None


class PermissionPatch(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    name: Optional[str] = None
    parent_id: Optional[int] = None
    path: Optional[str] = None
    icon: Optional[str] = None
    sort_order: Optional[int] = None
    enabled: Optional[bool] = None


class PermissionView(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    code: str
    name: str
    kind: str = Field(serialization_alias="type")
    parent_id: int
    path: Optional[str] = None
    icon: Optional[str] = None
    sort_order: int
    enabled: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def to_view(p: Permission) -> dict:
    return PermissionView.model_validate(p).model_dump(by_alias=True, mode="json")


def _check_len(value: Optional[str], field: str, lo: int, hi: int):
    if value is None:
        return
    if not (lo <= len(value) <= hi):
        raise ValidationError(f"{field} length must be between {lo} and {hi}")


def build_tree(nodes: Sequence[dict], root_parent_id: int = ROOT_PARENT_ID,
               max_depth: int = MAX_TREE_DEPTH) -> List[dict]:
    """
    把扁平节点（至少含 id / parentId）组装成森林。

    - 同一父节点下保持输入顺序（读路径已排好序）
    - 叶子不带 children 字段
    - 每个 id 只挂一次；遇到环或超过 max_depth 时截断该分支
    """
    children_of: Dict[int, List[int]] = defaultdict(list)
    arena: List[dict] = []
    for n in nodes:
        pid = n.get("parentId")
        children_of[ROOT_PARENT_ID if pid is None else pid].append(len(arena))
        arena.append(dict(n))

    visited = set()
    forest: List[dict] = []
    # 栈元素：(节点下标, 深度, 挂载到的父列表)
    stack = [(i, 1, forest) for i in reversed(children_of.get(root_parent_id, []))]
    while stack:
        idx, depth, siblings = stack.pop()
        node = arena[idx]
        if node["id"] in visited:
            emit("perm_tree_cycle", id=node["id"])
            continue
        visited.add(node["id"])
        node.pop("children", None)
        siblings.append(node)
        kids = children_of.get(node["id"], [])
        if not kids or depth >= max_depth:
            continue
        node["children"] = []
        for k in reversed(kids):
            stack.append((k, depth + 1, node["children"]))

    _prune_empty(forest)
    return forest


def _prune_empty(forest: List[dict]):
    # 子节点全部因成环被跳过时，去掉空 children
    stack = list(forest)
    while stack:
        n = stack.pop()
        kids = n.get("children")
        if kids is None:
            continue
        if not kids:
            del n["children"]
        else:
            stack.extend(kids)


class PermissionGraph:
    def __init__(self, db: Session):
        self.db = db

    # ---------- 读路径 ----------

    def _live(self):
        return self.db.query(Permission).filter(Permission.deleted.is_(False))

    @staticmethod
    def _ordered(q):
        return q.order_by(Permission.sort_order.asc(), Permission.created_at.desc(), Permission.id.desc())

    def list_all(self) -> List[Permission]:
        return self._ordered(self._live()).all()

    def list_by_type(self, kind: str) -> List[Permission]:
        return self._ordered(self._live().filter(Permission.kind == kind.upper())).all()

    def list_enabled(self) -> List[Permission]:
        return self._ordered(self._live().filter(Permission.enabled.is_(True))).all()

    def list_by_parent(self, parent_id: int) -> List[Permission]:
        return self._ordered(self._live().filter(Permission.parent_id == parent_id)).all()

    def find_by_id(self, perm_id: int) -> Optional[Permission]:
        return self._live().filter(Permission.id == perm_id).first()

    def find_by_code(self, code: str) -> Optional[Permission]:
        return self._live().filter(Permission.code == code).first()

    def code_available(self, code: str) -> bool:
        # 含已删除节点
        return self.db.query(Permission.id).filter(Permission.code == code).first() is None

    def tree(self) -> List[dict]:
        return build_tree([to_view(p) for p in self.list_all()])

    def _require(self, perm_id: int) -> Permission:
        p = self.find_by_id(perm_id)
        if p is None:
            raise NotFound(f"permission {perm_id} not found")
        return p

    # ---------- 写路径 ----------

    def _check_parent(self, parent_id: int, self_id: Optional[int] = None):
        if parent_id == ROOT_PARENT_ID:
            return
        if self_id is not None and parent_id == self_id:
            raise ValidationError("a permission cannot be its own parent")
        if self.find_by_id(parent_id) is None:
            raise NotFound(f"parent permission {parent_id} not found")
        if self_id is not None and parent_id in self._descendant_ids(self_id):
            raise ValidationError("a permission cannot be moved under its own descendant")

    def _descendant_ids(self, perm_id: int) -> set:
        children_of: Dict[int, List[int]] = defaultdict(list)
        for pid, cid in self.db.query(Permission.parent_id, Permission.id).filter(Permission.deleted.is_(False)):
            children_of[pid].append(cid)
        seen, stack = set(), list(children_of.get(perm_id, []))
        while stack:
            cid = stack.pop()
            if cid in seen:
                continue
            seen.add(cid)
            stack.extend(children_of.get(cid, []))
        return seen

    def create(self, data: PermissionIn) -> Permission:
        if not data.code or not CODE_RE.match(data.code):
            raise ValidationError("code must start with an uppercase letter and contain only A-Z, 0-9, _ and :")
        _check_len(data.code, "code", 2, 50)
        _check_len(data.name, "name", 2, 50)
        _check_len(data.path, "path", 0, 200)
        _check_len(data.icon, "icon", 0, 50)
        kind = (data.kind or "").upper()
        if kind not in PermissionKind.__members__:
            raise ValidationError("type must be one of MENU, BUTTON, API")
        if not self.code_available(data.code):
            raise CodeConflict(f"permission code already exists: {data.code}")

        parent_id = data.parent_id if data.parent_id is not None else ROOT_PARENT_ID
        self._check_parent(parent_id)

        p = Permission(
            code=data.code, name=data.name, kind=kind, parent_id=parent_id,
            path=data.path, icon=data.icon,
            sort_order=data.sort_order if data.sort_order is not None else 0,
            enabled=data.enabled if data.enabled is not None else True,
            deleted=False,
        )
        self.db.add(p)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            # 并发创建同 code 时唯一索引兜底
            if not self.code_available(data.code):
                raise CodeConflict(f"permission code already exists: {data.code}")
            raise
        self.db.refresh(p)
        emit("perm_create", id=p.id, code=p.code, kind=p.kind, parent_id=p.parent_id)
        return p

    def update(self, perm_id: int, patch: PermissionPatch) -> Permission:
        p = self._require(perm_id)
        fields = patch.model_dump(exclude_unset=True)
        # 只有 path / icon 可以显式置空
        for k in [k for k, v in fields.items() if v is None and k not in NULLABLE_FIELDS]:
            del fields[k]
        _check_len(fields.get("name"), "name", 2, 50)
        _check_len(fields.get("path"), "path", 0, 200)
        _check_len(fields.get("icon"), "icon", 0, 50)
        if "parent_id" in fields:
            self._check_parent(fields["parent_id"], self_id=p.id)
        for k, v in fields.items():
            setattr(p, k, v)
        self.db.add(p); self.db.commit(); self.db.refresh(p)
        emit("perm_update", id=p.id, fields=sorted(fields))
        return p

    def set_enabled(self, perm_id: int, enabled: bool) -> Permission:
        p = self._require(perm_id)
        p.enabled = bool(enabled)
        self.db.add(p); self.db.commit(); self.db.refresh(p)
        emit("perm_enabled", id=p.id, enabled=p.enabled)
        return p

    def delete(self, perm_id: int) -> None:
        p = self._require(perm_id)
        p.deleted = True
        self.db.add(p); self.db.commit()
        emit("perm_delete", id=perm_id)

    def delete_many(self, ids: Iterable[int]) -> int:
        ids = list(dict.fromkeys(ids))
        if not ids:
            return 0
        rows = self._live().filter(Permission.id.in_(ids)).all()
        for p in rows:
            p.deleted = True
        self.db.commit()
        emit("perm_delete_batch", requested=len(ids), deleted=len(rows))
        return len(rows)

    # ---------- 角色关联 ----------

    def assign_to_role(self, role_id: int, permission_ids: Iterable[int]) -> List[int]:
        wanted = list(dict.fromkeys(permission_ids or []))
        if self.db.query(Role.id).filter(Role.id == role_id, Role.deleted.is_(False)).first() is None:
            raise NotFound(f"role {role_id} not found")
        if wanted:
            found = {pid for (pid,) in self.db.query(Permission.id)
                     .filter(Permission.id.in_(wanted), Permission.deleted.is_(False))}
            missing = [pid for pid in wanted if pid not in found]
            if missing:
                raise NotFound(f"permissions not found: {missing}")
        try:
            self.db.execute(delete(RolePermission).where(RolePermission.role_id == role_id))
            if wanted:
                # 批量插入不经过 identity map，避免与刚删除的同主键对象冲突
                self.db.execute(insert(RolePermission),
                                [{"role_id": role_id, "permission_id": pid} for pid in wanted])
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        emit("perm_assign", role_id=role_id, count=len(wanted))
        return wanted

    def permission_ids_for_role(self, role_id: int) -> List[int]:
        rows = (self.db.query(RolePermission.permission_id)
                .join(Permission, Permission.id == RolePermission.permission_id)
                .filter(RolePermission.role_id == role_id, Permission.deleted.is_(False))
                .order_by(RolePermission.permission_id.asc()))
        return [pid for (pid,) in rows]

    def permissions_for_roles(self, role_ids: Sequence[int]) -> List[Permission]:
        if not role_ids:
            return []
        q = (self._live()
             .join(RolePermission, RolePermission.permission_id == Permission.id)
             .filter(RolePermission.role_id.in_(list(role_ids)))
             .distinct())
        return self._ordered(q).all()

    def permissions_for_role(self, role_id: int) -> List[Permission]:
        return self.permissions_for_roles([role_id])

    def permissions_for_role_code(self, role_code: str, enabled_only: bool = True) -> List[Permission]:
        role = (self.db.query(Role)
                .filter(Role.code == role_code, Role.deleted.is_(False), Role.enabled.is_(True))
                .first())
        if role is None:
            return []
        perms = self.permissions_for_role(role.id)
        return [p for p in perms if p.enabled] if enabled_only else perms
