from __future__ import annotations

from pathlib import Path

import pytest

from hecate.tools.args import AskUserArgs, CwdArgs, GetEnvArgs, RunCommandArgs
from hecate.tools.catalog import ToolError
from hecate.tools.system import cwd, get_env, is_sensitive_env, make_ask_user, run_command


@pytest.mark.asyncio
async def test_run_command_reports_output_and_exit_code(tmp_path: Path) -> None:
    result = await run_command(RunCommandArgs(command="echo hello; echo oops >&2; exit 3", working_dir=str(tmp_path)))

    assert result.startswith("$ echo hello")
    assert f"Working directory: {tmp_path}" in result
    assert "STDOUT:\nhello" in result
    assert "STDERR:\noops" in result
    assert result.endswith("Exit code: 3")


@pytest.mark.asyncio
async def test_run_command_times_out() -> None:
    result = await run_command(RunCommandArgs(command="sleep 5", timeout=1))

    assert result.endswith("Command timed out after 1 seconds")


@pytest.mark.asyncio
async def test_run_command_missing_working_dir(tmp_path: Path) -> None:
    with pytest.raises(ToolError, match="working directory not found"):
        await run_command(RunCommandArgs(command="true", working_dir=str(tmp_path / "nope")))


@pytest.mark.parametrize(
    ("name", "sensitive"),
    [
        ("OPENAI_API_KEY", True),
        ("my_service_token", True),
        ("DB_PASSWORD", True),
        ("HOME", False),
        ("PATH", False),
    ],
)
def test_sensitive_env_names(name: str, sensitive: bool) -> None:
    assert is_sensitive_env(name) is sensitive


@pytest.mark.asyncio
async def test_get_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HECATE_TEST_VALUE", "42")
    monkeypatch.delenv("HECATE_TEST_MISSING", raising=False)

    assert await get_env(GetEnvArgs(name="HECATE_TEST_VALUE")) == "HECATE_TEST_VALUE=42"
    missing = await get_env(GetEnvArgs(name="HECATE_TEST_MISSING"))
    assert missing == "Environment variable 'HECATE_TEST_MISSING' is not set"
    with pytest.raises(ToolError, match="sensitive"):
        await get_env(GetEnvArgs(name="GITHUB_TOKEN"))


@pytest.mark.asyncio
async def test_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    assert await cwd(CwdArgs()) == str(tmp_path)


@pytest.mark.asyncio
async def test_ask_user_uses_the_handler() -> None:
    seen: list[tuple[str, object]] = []

    async def _handler(question: str, options):
        seen.append((question, options))
        return "blue"

    ask = make_ask_user(_handler)

    assert await ask(AskUserArgs(question="Favourite colour?", options=["red", "blue"])) == "User answered: blue"
    assert seen == [("Favourite colour?", ["red", "blue"])]


@pytest.mark.asyncio
async def test_ask_user_without_handler_fails() -> None:
    with pytest.raises(ToolError, match="not configured"):
        await make_ask_user(None)(AskUserArgs(question="Anyone there?"))
