# src/llm_chat/backend/scripts/init_db.py

"""
[职责] 初始化数据库结构（create_all / 可选 drop），提供可复现、可幂等的 CLI 入口。
[边界] 仅在 --seed 显式开启时插入最小可用数据（dev-user + 默认偏好）。
[上游关系] 本地开发/CI/部署脚本调用；依赖 db.engine 的 init_db/drop_db。
[下游关系] DB schema 准备完成后供 services/api 使用。
"""

from __future__ import annotations

import argparse
import asyncio
import json
import time
from typing import Any, Dict, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncEngine

from llm_chat.backend.db.engine import create_engine, drop_db, init_db, session_scope
from llm_chat.backend.db.repo import PreferenceRepo, UserRepo
from llm_chat.backend.services.preference_service import default_preferences


DEV_USERNAME = "dev-user"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Initialize database schema (create_all).")
    parser.add_argument("--db-url", dest="db_url", default=None)  # docstring: 显式 DB 连接串
    parser.add_argument("--drop", action="store_true")  # docstring: 先 drop 再 create
    parser.add_argument("--seed", action="store_true")  # docstring: 显式种子数据入口
    # docstring: SQL echo 三态开关：默认 None（由环境决定）；--echo 强制 True；--no-echo 强制 False
    echo_group = parser.add_mutually_exclusive_group()
    echo_group.add_argument("--echo", dest="echo", action="store_true", default=None)
    echo_group.add_argument("--no-echo", dest="echo", action="store_false")
    parser.add_argument("--json", action="store_true")  # docstring: 仅输出 JSON 结果
    return parser


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    return _build_parser().parse_args(list(argv) if argv is not None else None)


async def _maybe_seed(*, engine: AsyncEngine, enabled: bool) -> Dict[str, Any]:
    """
    [职责] 幂等确保存在 dev-user 与其默认偏好行。
    [边界] 已存在的偏好行不覆盖。
    """
    if not enabled:
        return {"seeded": False, "seed_status": "skipped"}
    async with session_scope(engine=engine) as session:
        users = UserRepo(session)
        user = await users.get_by_username(DEV_USERNAME)
        created = user is None
        if user is None:
            user = await users.create(username=DEV_USERNAME, display_name="Dev User")

        prefs = PreferenceRepo(session)
        if await prefs.get(user.id) is None:
            await prefs.upsert(user.id, **default_preferences())
        await session.commit()
        user_id = user.id
    return {
        "seeded": True,
        "seed_status": "created" if created else "exists",
        "seed": {"user_id": user_id, "username": DEV_USERNAME},
    }


async def _run_async(
    *,
    db_url: Optional[str],
    drop: bool,
    seed: bool,
    echo: Optional[bool],
) -> Dict[str, Any]:
    """
    [职责] 执行 init_db 的主流程（可选 drop/seed），输出 JSON-safe 结果。
    [边界] 异常写入 result.error，不向上抛出。
    """
    start_ms = time.perf_counter() * 1000.0
    engine = create_engine(url=db_url, echo=echo)
    result: Dict[str, Any] = {
        "ok": True,
        "db_url": str(engine.url),
        "echo": engine.echo,
        "dropped": False,
        "created": False,
        "seeded": False,
        "seed_status": "skipped",
        "duration_ms": 0.0,
        "error": None,
    }
    try:
        if drop:
            await drop_db(engine=engine)
            result["dropped"] = True
        await init_db(engine=engine)
        result["created"] = True
        result.update(await _maybe_seed(engine=engine, enabled=seed))
    except Exception as exc:
        result["ok"] = False
        result["error"] = f"{exc.__class__.__name__}: {exc}"
    finally:
        await engine.dispose()
        result["duration_ms"] = round(time.perf_counter() * 1000.0 - start_ms, 2)
    return result


def _print_summary(*, result: Dict[str, Any], as_json: bool) -> None:
    if as_json:
        print(json.dumps(result, ensure_ascii=True, default=str))
        return
    status = "ok" if result.get("ok") else "failed"
    print(f"[init_db] status={status}")
    print(f"[init_db] db_url={result.get('db_url')} echo={result.get('echo')}")
    print(
        f"[init_db] dropped={result.get('dropped')} created={result.get('created')} "
        f"seeded={result.get('seeded')} seed_status={result.get('seed_status')}"
    )
    if result.get("seed"):
        print(f"[init_db] seed={result.get('seed')}")
    if result.get("error"):
        print(f"[init_db] error={result.get('error')}")
    print(f"[init_db] duration_ms={result.get('duration_ms')}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI 入口：返回 0 表示成功，1 表示失败。"""
    args = _parse_args(argv)
    result = asyncio.run(
        _run_async(
            db_url=args.db_url,
            drop=bool(args.drop),
            seed=bool(args.seed),
            echo=args.echo,
        )
    )
    _print_summary(result=result, as_json=bool(args.json))
    return 0 if result.get("ok") else 1


if __name__ == "__main__":
    raise SystemExit(main())
