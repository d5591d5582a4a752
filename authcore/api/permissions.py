# authcore/api/permissions.py
# -*- coding: utf-8 -*-
"""
权限节点 API
------------------------------------
职能：
- 读：列表（可按 type 过滤）、树、启用列表、按 id / code 查询、code 可用性检查（需登录）
- 写：创建、更新、启停、删除、批量删除（仅管理员）

引用库说明：
- FastAPI: APIRouter / Depends / Query / Body
- 项目内模块：
  - authcore.api.deps.auth: get_permission_graph（按请求构造 PermissionGraph）/ require_admin
  - authcore.core.context: get_context（Bearer token → 会话）
  - authcore.services.permissions: 业务规则（逻辑删除、code 不可改、树组装）

返回：统一信封 {code, message, data}；节点字段为驼峰（parentId / sortOrder / type ...）。
"""
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query

from authcore.api.deps.auth import get_permission_graph, require_admin
from authcore.core.context import Context, get_context
from authcore.core.errors import NotFound
from authcore.core.result import ok
from authcore.services.permissions import PermissionGraph, PermissionIn, PermissionPatch, to_view

router = APIRouter(prefix="/permissions", tags=["permissions"])


@router.get("")
def list_permissions(
    type: Optional[str] = Query(default=None),
    graph: PermissionGraph = Depends(get_permission_graph),
    ctx: Context = Depends(get_context),
):
    rows = graph.list_by_type(type) if type else graph.list_all()
    return ok([to_view(p) for p in rows])


@router.get("/tree")
def permission_tree(graph: PermissionGraph = Depends(get_permission_graph),
                    ctx: Context = Depends(get_context)):
    return ok(graph.tree())


@router.get("/enabled")
def list_enabled(graph: PermissionGraph = Depends(get_permission_graph),
                 ctx: Context = Depends(get_context)):
    return ok([to_view(p) for p in graph.list_enabled()])


@router.get("/check-code")
def check_code(code: str = Query(min_length=1),
               graph: PermissionGraph = Depends(get_permission_graph),
               ctx: Context = Depends(get_context)):
    """data=true 表示 code 可用（含已删除节点在内都没有占用）。"""
    return ok(graph.code_available(code))


@router.get("/code/{code}")
def get_by_code(code: str, graph: PermissionGraph = Depends(get_permission_graph),
                ctx: Context = Depends(get_context)):
    p = graph.find_by_code(code)
    if p is None:
        raise NotFound("permission not found")
    return ok(to_view(p))


@router.get("/{perm_id}")
def get_by_id(perm_id: int, graph: PermissionGraph = Depends(get_permission_graph),
              ctx: Context = Depends(get_context)):
    p = graph.find_by_id(perm_id)
    if p is None:
        raise NotFound("permission not found")
    return ok(to_view(p))


@router.post("")
def create_permission(body: PermissionIn, graph: PermissionGraph = Depends(get_permission_graph),
                      ctx: Context = Depends(require_admin)):
    return ok(to_view(graph.create(body)), "permission created")


@router.put("/{perm_id}")
def update_permission(perm_id: int, body: PermissionPatch,
                      graph: PermissionGraph = Depends(get_permission_graph),
                      ctx: Context = Depends(require_admin)):
    return ok(to_view(graph.update(perm_id, body)), "permission updated")


@router.patch("/{perm_id}/enabled")
def set_enabled(perm_id: int, enabled: bool = Query(...),
                graph: PermissionGraph = Depends(get_permission_graph),
                ctx: Context = Depends(require_admin)):
    graph.set_enabled(perm_id, enabled)
    return ok(None)


@router.delete("/batch")
def batch_delete(ids: List[int] = Body(..., min_length=1),
                 graph: PermissionGraph = Depends(get_permission_graph),
                 ctx: Context = Depends(require_admin)):
    return ok({"deleted": graph.delete_many(ids)}, "batch delete succeeded")


@router.delete("/{perm_id}")
def delete_permission(perm_id: int, graph: PermissionGraph = Depends(get_permission_graph),
                      ctx: Context = Depends(require_admin)):
    graph.delete(perm_id)
    return ok(None, "permission deleted")
