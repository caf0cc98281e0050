# src/llm_chat/backend/api/schemas_http/users.py

"""
[职责] HTTP Users Schema：用户注册请求、用户视图与偏好读写合同。
[边界] 偏好更新为部分更新（仅显式给出的字段生效）。
[上游关系] routers/users.py。
[下游关系] user_service / preference_service。
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from ._common import OrmSchema, UserId


class UserCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    username: str = Field(..., min_length=1, max_length=64)
    email: Optional[str] = Field(default=None, max_length=255)
    display_name: Optional[str] = Field(default=None, max_length=128)


class UserView(OrmSchema):
    id: UserId
    username: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None


class PreferencesView(BaseModel):
    """有效偏好（存储值 + settings 默认值合并）；is_default 表示尚无存储行。"""

    user_id: UserId
    model_provider: Optional[str] = None
    model_name: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    system_prompt: Optional[str] = None
    history_window: Optional[int] = None
    use_documents: bool = False
    extra: Dict[str, Any] = Field(default_factory=dict)
    is_default: bool = False


class PreferencesUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")  # docstring: 未知字段直接 400

    model_provider: Optional[str] = Field(default=None, max_length=64)
    model_name: Optional[str] = Field(default=None, max_length=128)
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, gt=0)
    system_prompt: Optional[str] = Field(default=None)
    history_window: Optional[int] = Field(default=None, gt=0)
    use_documents: Optional[bool] = Field(default=None)
    extra: Optional[Dict[str, Any]] = Field(default=None)
