import pytest
from click.testing import CliRunner

from pyrightbridge import cli


@pytest.fixture
def runner():
    return CliRunner()


class FakeBridgeServer:
    instances = []

    def __init__(self, config):
        self.config = config
        self.calls = []
        FakeBridgeServer.instances.append(self)

    @property
    def url(self):
        return f"ws://{self.config.host}:{self.config.port}{self.config.path}"

    def start(self):
        self.calls.append("start")

    def serve_forever(self):
        self.calls.append("serve_forever")
        raise KeyboardInterrupt

    def shutdown(self):
        self.calls.append("shutdown")


@pytest.fixture
def fake_server(monkeypatch):
    FakeBridgeServer.instances = []
    monkeypatch.setattr(cli, "BridgeServer", FakeBridgeServer)
    return FakeBridgeServer


class TestMain:
    @pytest.mark.parametrize("args", [
        ["--bot-root", "/tmp", "--jesse-root", "/tmp"],
        ["--port", "9011", "--jesse-root", "/tmp"],
        ["--port", "9011", "--bot-root", "/tmp"],
    ])
    def test_missing_required_configuration_exits(self, runner, fake_server, args):
        result = runner.invoke(cli.main, args, env={})
        assert result.exit_code != 0
        assert fake_server.instances == []

    def test_invalid_execution_root_exits(self, runner, fake_server, tmp_path):
        result = runner.invoke(cli.main, [
            "--port", "9011", "--bot-root", str(tmp_path / "missing"), "--jesse-root", "/tmp",
        ])
        assert result.exit_code != 0
        assert "Invalid configuration" in result.output
        assert fake_server.instances == []

    def test_runs_until_interrupted(self, runner, fake_server, execution_root, formatter_path):
        result = runner.invoke(cli.main, [
            "--port", "9011",
            "--bot-root", execution_root,
            "--jesse-root", "/opt/jesse",
            "--ruff-path", formatter_path,
            "--backend-command", "node /opt/pyright/langserver.index.js --stdio",
        ])

        assert result.exit_code == 0, result.output
        server = fake_server.instances[0]
        assert server.calls == ["start", "serve_forever", "shutdown"]
        assert server.config.execution_root == execution_root
        assert server.config.formatter_path == formatter_path
        assert server.config.backend_command == ["node", "/opt/pyright/langserver.index.js", "--stdio"]
        assert "ws://localhost:9011/lsp" in result.output

    def test_reads_environment(self, runner, fake_server, execution_root):
        result = runner.invoke(cli.main, [], env={
            "PYRIGHT_BRIDGE_PORT": "9012",
            "PYRIGHT_BRIDGE_BOT_ROOT": execution_root,
            "PYRIGHT_BRIDGE_JESSE_ROOT": "/opt/jesse",
        })

        assert result.exit_code == 0, result.output
        assert fake_server.instances[0].config.port == 9012

    def test_formatter_defaults_to_ruff_on_path(self, runner, fake_server, execution_root, monkeypatch):
        monkeypatch.setattr(cli.shutil, "which", lambda name: "/usr/local/bin/ruff" if name == "ruff" else None)

        result = runner.invoke(cli.main, ["--port", "9011", "--bot-root", execution_root, "--jesse-root", "/opt/jesse"], env={})

        assert result.exit_code == 0, result.output
        assert fake_server.instances[0].config.formatter_path == "/usr/local/bin/ruff"


class TestResolveFormatter:
    def test_paths_are_kept(self):
        assert cli.resolve_formatter("/opt/ruff/bin/ruff") == "/opt/ruff/bin/ruff"

    def test_missing_names_are_kept(self):
        assert cli.resolve_formatter("definitely-not-a-ruff-binary") == "definitely-not-a-ruff-binary"

    def test_defaults_to_ruff_on_path(self, monkeypatch):
        monkeypatch.setattr(cli.shutil, "which", lambda name: f"/usr/local/bin/{name}")
        assert cli.resolve_formatter(None) == "/usr/local/bin/ruff"

    def test_default_without_ruff_on_path(self, monkeypatch):
        monkeypatch.setattr(cli.shutil, "which", lambda name: None)
        assert cli.resolve_formatter(None) is None

    def test_empty_value_disables_formatting(self):
        assert cli.resolve_formatter("") is None
