# playground/sql_gate/test_init_db_script_gate.py

"""
[职责] init_db script gate：确保 CLI 建表 + --seed 幂等（dev-user 仅创建一次）。
[边界] 使用临时 sqlite 文件；不启动 API。
[上游关系] scripts/init_db.py。
[下游关系] 本地 dev-loop：init_db --seed 后即可用 x-user-id 调用 API。
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path

import pytest

from llm_chat.backend.scripts import init_db as init_db_mod


pytestmark = pytest.mark.sql_gate


def test_init_db_seed_is_idempotent(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    db_path = tmp_path / "init_gate.db"
    db_url = f"sqlite+aiosqlite:///{db_path.as_posix()}"

    assert init_db_mod.main(["--db-url", db_url, "--seed", "--json", "--no-echo"]) == 0
    first = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert first["ok"] is True
    assert first["created"] is True
    assert first["seed_status"] == "created"
    user_id = first["seed"]["user_id"]

    assert init_db_mod.main(["--db-url", db_url, "--seed", "--json", "--no-echo"]) == 0
    second = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert second["seed_status"] == "exists"
    assert second["seed"]["user_id"] == user_id

    with sqlite3.connect(db_path) as conn:
        users = conn.execute('SELECT id FROM "user" WHERE username = ?', ("dev-user",)).fetchall()
        prefs = conn.execute("SELECT COUNT(*) FROM user_preferences WHERE user_id = ?", (user_id,)).fetchone()
    assert [row[0] for row in users] == [user_id]
    assert prefs[0] == 1


def test_init_db_without_seed(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    db_url = f"sqlite+aiosqlite:///{(tmp_path / 'plain.db').as_posix()}"
    assert init_db_mod.main(["--db-url", db_url, "--drop"]) == 0
    out = capsys.readouterr().out
    assert "[init_db] status=ok" in out
    assert "seed_status=skipped" in out
