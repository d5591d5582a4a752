# authcore/api/role_permissions.py
"""
角色-权限关联 API：
- GET  /role-permissions/{role_id}      角色下的权限（已删除节点不返回）
- GET  /role-permissions/{role_id}/ids  角色下的权限 id
- POST /role-permissions/{role_id}      body 为权限 id 列表；整体替换（空列表 = 清空），仅管理员
"""
from typing import List

from fastapi import APIRouter, Body, Depends, Path

from authcore.api.deps.auth import get_permission_graph, require_admin
from authcore.core.context import Context, get_context
from authcore.core.result import ok
from authcore.services.permissions import PermissionGraph, to_view

router = APIRouter(prefix="/role-permissions", tags=["role-permissions"])


@router.get("/{role_id}")
def permissions_of_role(role_id: int = Path(ge=1),
                        graph: PermissionGraph = Depends(get_permission_graph),
                        ctx: Context = Depends(get_context)):
    return ok([to_view(p) for p in graph.permissions_for_role(role_id)])


@router.get("/{role_id}/ids")
def permission_ids_of_role(role_id: int = Path(ge=1),
                           graph: PermissionGraph = Depends(get_permission_graph),
                           ctx: Context = Depends(get_context)):
    return ok(graph.permission_ids_for_role(role_id))


@router.post("/{role_id}")
def assign(role_id: int = Path(ge=1), permission_ids: List[int] = Body(...),
           graph: PermissionGraph = Depends(get_permission_graph),
           ctx: Context = Depends(require_admin)):
    graph.assign_to_role(role_id, permission_ids)
    return ok(None, "permissions assigned")
