# src/llm_chat/backend/db/repo/__init__.py

"""
[职责] db.repo 聚合导出：集中暴露仓储（Repo）对象，供 service 层调用。
[边界] 仅做导入与 __all__ 暴露；repo 只 flush 不 commit，事务边界由 service 控制。
[上游关系] 依赖各 repo 模块（user/conversation/message/preference/metrics/document）。
[下游关系] services 层通过本模块统一导入仓储能力；gate tests 可直接引用。
"""

from __future__ import annotations

from .user_repo import UserRepo
from .conversation_repo import ConversationRepo
from .message_repo import MessageRepo
from .preference_repo import PreferenceRepo
from .metrics_repo import MetricsRepo
from .document_repo import DocumentRepo

__all__ = [
    "UserRepo",
    "ConversationRepo",
    "MessageRepo",
    "PreferenceRepo",
    "MetricsRepo",
    "DocumentRepo",
]
