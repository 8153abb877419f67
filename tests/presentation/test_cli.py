"""Tests for CLI module."""

import os

import pytest
from unittest.mock import patch

from stratus.presentation.cli.cli import async_main, build_parser


@pytest.fixture(autouse=True)
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    env = {k: v for k, v in os.environ.items() if not k.startswith("STRATUS_")}
    env.update({
        "STRATUS_POLLING_NODE_POLL_PERIOD": "0.01",
        "STRATUS_POLLING_NODE_RUNNING_TIMEOUT": "5",
    })
    with patch.dict(os.environ, env, clear=True):
        yield tmp_path


def _argv(*args, provider="aws"):
    return [
        "stratus", "--provider", provider,
        "--identity", "cli-user", "--credential", "cli-secret",
        "--state", "state.json", *args,
    ]


async def _run(argv):
    with patch("sys.argv", argv):
        await async_main()


class TestCLIHelp:
    @pytest.mark.asyncio
    async def test_no_command_prints_help(self, capsys):
        await _run(["stratus"])
        captured = capsys.readouterr()
        assert "Stratus: provision" in captured.out

    @pytest.mark.asyncio
    async def test_help_flag(self):
        with pytest.raises(SystemExit, match="0"):
            await _run(["stratus", "--help"])

    @pytest.mark.asyncio
    async def test_create_help(self, capsys):
        with pytest.raises(SystemExit, match="0"):
            await _run(["stratus", "create", "--help"])
        assert "--os-family" in capsys.readouterr().out

    def test_parser_defaults(self):
        args = build_parser().parse_args(["create", "web"])
        assert args.count == 1
        assert args.state == ".stratus-state.json"
        assert not args.biggest


class TestCatalogCommands:
    @pytest.mark.asyncio
    async def test_images(self, capsys, workdir):
        await _run(_argv("images"))
        out = capsys.readouterr().out
        assert "ami-0aa1b2c3d4e5f6002" in out
        assert (workdir / "state.json").exists()

    @pytest.mark.asyncio
    async def test_locations(self, capsys):
        await _run(_argv("locations", provider="vps"))
        out = capsys.readouterr().out
        assert "host:ams1-h01" in out
        assert "parent=ams1" in out

    @pytest.mark.asyncio
    async def test_sizes(self, capsys):
        await _run(_argv("sizes"))
        assert "t3.micro" in capsys.readouterr().out


class TestNodeCommands:
    @pytest.mark.asyncio
    async def test_create_list_destroy(self, capsys):
        await _run(_argv("create", "web", "--count", "2", "--os-family", "ubuntu"))
        out = capsys.readouterr().out
        assert "[+] 2 node(s) running." in out

        # state carries over to the next invocation
        await _run(_argv("nodes", "--tag", "web"))
        out = capsys.readouterr().out
        assert out.count("RUNNING") == 2

        await _run(_argv("destroy", "web"))
        assert "[+] 2 node(s) done." in capsys.readouterr().out

        await _run(_argv("nodes", "--tag", "web"))
        out = capsys.readouterr().out
        assert "RUNNING" not in out
        assert out.count("TERMINATED") == 2

    @pytest.mark.asyncio
    async def test_no_nodes(self, capsys):
        await _run(_argv("nodes"))
        assert "[*] No nodes." in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_invalid_tag(self, capsys):
        with pytest.raises(SystemExit, match="1"):
            await _run(_argv("create", ""))
        assert "Invalid tag" in capsys.readouterr().out


class TestCLIErrors:
    @pytest.mark.asyncio
    async def test_missing_credential(self, capsys):
        argv = ["stratus", "--provider", "aws", "--identity", "x", "--state", "state.json", "nodes"]
        with pytest.raises(SystemExit, match="1"):
            await _run(argv)
        assert "no credential configured" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_wrong_credential_for_known_account(self, capsys):
        await _run(_argv("nodes"))
        argv = _argv("nodes")
        argv[argv.index("cli-secret")] = "guess"
        with pytest.raises(SystemExit, match="1"):
            await _run(argv)
        assert "credentials rejected" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_exec_user_needs_key(self, capsys, workdir):
        (workdir / "script.sh").write_text("uptime\n")
        with pytest.raises(SystemExit, match="1"):
            await _run(_argv("exec", "web", "script.sh", "--user", "deploy"))
        assert "needs a --key-file" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_config_file_provider(self, capsys, workdir):
        (workdir / "stratus.json").write_text(
            '{"provider": {"name": "vps", "identity": "cfg", "credential": "pw"}}'
        )
        await _run(["stratus", "--state", "state.json", "images"])
        assert "debian-12" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_malformed_config_section(self, capsys, workdir):
        (workdir / "stratus.json").write_text('{"provider": "vps"}')
        with pytest.raises(SystemExit, match="1"):
            await _run(["stratus", "--state", "state.json", "images"])
        assert "must be an object" in capsys.readouterr().out
