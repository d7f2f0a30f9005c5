"""
用户角色管理路由（用户注册/登录由外部认证服务负责）
"""
from fastapi import APIRouter, Depends

from api.dependencies import get_identity, get_role_service
from application.dtos.identity import ProfileOut, RoleChangeIn
from application.services.role_service import RoleService
from core.i18n import t
from core.response import Response as ApiResponse, success_response
from domain.identity import Identity


router = APIRouter(prefix="/users", tags=["Users"])


@router.put("/{user_id}/role", summary="修改用户角色", response_model=ApiResponse[ProfileOut])
async def change_role(
    user_id: str,
    payload: RoleChangeIn,
    identity: Identity = Depends(get_identity),
    service: RoleService = Depends(get_role_service),
):
    """仅 super_admin 可调用"""
    profile = await service.change_role(identity, user_id, payload.role)
    return success_response(data=ProfileOut.model_validate(profile), message=t("users.role.changed"))
