"""
Unit tests for the operator CLI
"""

import json
from unittest.mock import AsyncMock, patch
from uuid import uuid4

from cli import build_parser, main
from cricfantasy.core.exceptions import ContestNotFoundError


async def test_preview_prints_table(capsys):
    ok = await main(["preview", "--total", "900", "--winners", "2", "--first", "600", "--entry-fee", "500"])

    assert ok is True
    rows = json.loads(capsys.readouterr().out)
    assert [row["rank"] for row in rows] == [1, 2]
    assert [row["amount"] for row in rows] == ["600", "300"]


async def test_domain_error_fails_command():
    contest_id = uuid4()
    with patch("cli.finalize_contest", AsyncMock(side_effect=ContestNotFoundError("missing"))):
        ok = await main(["finalize", str(contest_id)])

    assert ok is False


def test_reconcile_flags():
    args = build_parser().parse_args(["reconcile", "--dry-run", "--no-lock"])

    assert args.dry_run is True
    assert args.no_lock is True
