from pathlib import Path

import pytest

from larago.docker import DockerClient
from larago.errors import CommandError, PreconditionError, RouteMergeError, UsageError
from larago.node import NodeManager
from larago.project import ProjectConfig
from larago.routes import BREEZE_MARKER, CUSTOM_MARKER
from larago.vite import render_vite_config

VITE_PATH = "/app/vite.config.js"

CUSTOM_ROUTES = "<?php\n\nuse Illuminate\\Support\\Facades\\Route;\n\nRoute::get('/shop', fn () => 'shop');\n"
BREEZE_ROUTES = (
  "<?php\n\n"
  "use App\\Http\\Controllers\\ProfileController;\n"
  "use Illuminate\\Support\\Facades\\Route;\n\n"
  "Route::get('/', fn () => view('welcome'));\n"
  "require __DIR__.'/auth.php';\n"
)


@pytest.fixture
def vite_running(monkeypatch) -> list[bool]:
  state = [True]
  monkeypatch.setattr(DockerClient, "host_port_listening", lambda self, port: state[0])
  return state


@pytest.fixture
def node(fake_run, project_dir: Path, vite_running) -> NodeManager:
  project = ProjectConfig(project_dir)
  manager = NodeManager(project, DockerClient(project.compose_file))
  manager.settings = project.load_settings(node=True)
  return manager


def answers(monkeypatch, *replies: str) -> None:
  it = iter(replies)
  monkeypatch.setattr("builtins.input", lambda _: next(it))


def test_node_settings_use_suffixed_container(node) -> None:
  assert node.settings.container_name == "blog_app_node"


def test_vite_config_created_when_missing(node, fake_run) -> None:
  fake_run.on("node", "test", "-f", VITE_PATH, returncode=1)

  node.ensure_vite_config()

  written = fake_run.kwargs_for("sh", "-c", f"cat > {VITE_PATH}")["input"]
  assert written == render_vite_config(5173)
  assert not fake_run.matching("cp", VITE_PATH)
  assert fake_run.matching("compose", "-f", str(node.project.node_compose_file), "exec", "-T", "node")


def test_vite_config_already_patched_is_left_alone(node, fake_run) -> None:
  fake_run.on("node", "cat", VITE_PATH, stdout=render_vite_config())

  node.ensure_vite_config()

  assert not fake_run.matching("sh", "-c")
  assert not fake_run.matching("cp")


def test_stale_vite_config_is_backed_up_then_replaced(node, fake_run) -> None:
  fake_run.on("node", "cat", VITE_PATH, stdout="export default defineConfig({});\n")

  node.ensure_vite_config()

  commands = fake_run.commands
  backup = commands.index(fake_run.matching("cp", VITE_PATH, f"{VITE_PATH}.bak")[0])
  write = commands.index(fake_run.matching("sh", "-c", f"cat > {VITE_PATH}")[0])
  assert backup < write


def test_start_brings_container_up_then_follows_logs(node, fake_run) -> None:
  fake_run.on("node", "cat", VITE_PATH, stdout=render_vite_config())

  node.run(["start"])

  assert fake_run.matching("up", "-d")
  assert fake_run.matching("exec", "-T", "node", "true")
  assert fake_run.commands[-1][-3:] == ["logs", "-f", "node"]


def test_npm_forwards_arguments(node, fake_run) -> None:
  node.run(["npm", "run", "lint"])
  assert fake_run.matching("compose", "-f", str(node.compose_file), "exec", "node", "npm", "run", "lint")


def test_npm_without_command_is_usage_error(node, fake_run) -> None:
  with pytest.raises(UsageError) as exc:
    node.run(["npm"])
  assert "larago --node npm run dev" in exc.value.hints
  assert not fake_run.matching("npm")


def test_npm_requires_running_container(node, fake_run, vite_running) -> None:
  vite_running[0] = False
  with pytest.raises(PreconditionError):
    node.run(["npm", "install"])


def test_extra_arguments_are_rejected(node) -> None:
  with pytest.raises(UsageError):
    node.run(["stop", "now"])


def test_unknown_command_shows_help(node, fake_run, capsys) -> None:
  node.run(["bogus"])
  out = capsys.readouterr().out
  assert "Unknown node command: bogus" in out
  assert "NODE.JS DEVELOPMENT" in out
  assert fake_run.commands == []


def test_status_reports_stopped(node, vite_running, capsys) -> None:
  vite_running[0] = False
  node.run(["status"])
  out = capsys.readouterr().out
  assert "STOPPED" in out
  assert "blog_app_node" in out


def test_clean_declined(node, fake_run, monkeypatch) -> None:
  answers(monkeypatch, "n")
  node.run(["clean"])
  assert not fake_run.matching("down", "-v")


def test_install_prefers_exec_when_node_modules_exist(node, fake_run) -> None:
  fake_run.on("node", "cat", VITE_PATH, stdout=render_vite_config())
  node.run(["install"])
  assert fake_run.matching("exec", "-T", "node", "npm", "install", "--quiet")
  assert not fake_run.matching("run", "--rm")


def test_install_falls_back_to_run(node, fake_run) -> None:
  fake_run.on("node", "test", "-d", "/app/node_modules", returncode=1)
  fake_run.on("node", "cat", VITE_PATH, stdout=render_vite_config())
  node.run(["install"])
  assert fake_run.matching("run", "--rm", "node", "npm", "install", "--quiet")


def test_breeze_install_merges_routes(node, fake_run, monkeypatch) -> None:
  answers(monkeypatch, "2", "y")
  fake_run.on("laravel", "cat", "routes/web.php", stdout=[CUSTOM_ROUTES, BREEZE_ROUTES])

  node.install_breeze()

  main_compose = str(node.project.compose_file)
  assert fake_run.matching(main_compose, "exec", "-T", "-w", "/var/www/html/blog", "laravel",
                           "composer", "require", "laravel/breeze", "--dev")
  assert fake_run.matching("php", "artisan", "breeze:install", "react", "--dark", "--pest", "--no-interaction")

  merged = fake_run.kwargs_for("laravel", "sh", "-c", "cat > routes/web.php")["input"]
  assert merged.index(CUSTOM_MARKER) < merged.index("/shop") < merged.index(BREEZE_MARKER)
  assert "require __DIR__.'/auth.php';" in merged
  assert fake_run.matching("rm", "-f", "routes/web.php.MY_CUSTOM")
  assert fake_run.matching("exec", "-T", "node", "npm", "run", "build")


def test_breeze_install_defaults_to_blade(node, fake_run, monkeypatch) -> None:
  answers(monkeypatch, "", "n")
  fake_run.on("laravel", "cat", "routes/web.php", stdout=[CUSTOM_ROUTES, BREEZE_ROUTES])

  node.install_breeze()

  install = fake_run.matching("breeze:install")[0]
  assert install[-3:] == ["blade", "--pest", "--no-interaction"]


def test_breeze_install_keeps_backup_when_merge_fails(node, fake_run, monkeypatch) -> None:
  answers(monkeypatch, "1", "n")
  fake_run.on("laravel", "cat", "routes/web.php", stdout=[CUSTOM_ROUTES, "<?php\n"])

  with pytest.raises(RouteMergeError) as exc:
    node.install_breeze()

  assert any("web.php.MY_CUSTOM" in hint for hint in exc.value.hints)
  assert not fake_run.matching("rm", "-f")


def test_stop(node, fake_run) -> None:
  node.run(["down"])
  assert fake_run.commands[-1] == ["docker", "compose", "-f", str(node.compose_file), "down"]


def test_restart(node, fake_run) -> None:
  node.run(["restart"])
  assert fake_run.matching(str(node.compose_file), "restart", "node")


def test_build(node, fake_run) -> None:
  node.run(["build"])
  assert fake_run.matching(str(node.compose_file), "run", "--rm", "node", "npm", "run", "build")


def test_build_failure_points_at_logs(node, fake_run) -> None:
  fake_run.on("npm", "run", "build", returncode=1)
  with pytest.raises(CommandError) as exc:
    node.run(["build"])
  assert "larago --node logs" in exc.value.hints[0]


def test_logs_follow_node_service(node, fake_run) -> None:
  node.run(["logs"])
  assert fake_run.matching(str(node.compose_file), "logs", "-f", "node")


def test_logs_require_running_container(node, fake_run, vite_running) -> None:
  vite_running[0] = False
  with pytest.raises(PreconditionError):
    node.run(["logs"])
  assert fake_run.commands == []


def test_shell_opens_sh(node, fake_run) -> None:
  node.run(["sh"])
  assert fake_run.matching(str(node.compose_file), "exec", "node", "sh")
  assert fake_run.kwargs_for("exec", "node", "sh")["capture_output"] is False


def test_config_appends_node_suffix_and_reloads(node, project_dir: Path, monkeypatch) -> None:
  answers(monkeypatch, "", "web")

  node.run(["config"])

  env = (project_dir / "build" / "NODE.JS" / ".env").read_text()
  assert "CONTAINER_NAME=web_node\n" in env
  assert node.settings.container_name == "web_node"


def test_setup_with_breeze_runs_in_order(node, fake_run, monkeypatch) -> None:
  # project, container base, existing Breeze project, stack, dark mode
  answers(monkeypatch, "", "", "y", "1", "n")
  fake_run.on("node", "cat", VITE_PATH, stdout=render_vite_config())
  fake_run.on("laravel", "cat", "routes/web.php", stdout=[CUSTOM_ROUTES, BREEZE_ROUTES])

  node.run(["setup"])

  commands = fake_run.commands
  compose = ["docker", "compose", "-f", str(node.compose_file)]
  install = commands.index(compose + ["up", "-d", "--no-deps", "node"])
  start = commands.index(compose + ["up", "-d"])
  breeze = commands.index(fake_run.matching("breeze:install", "blade")[0])
  assert install < start < breeze
  assert not fake_run.matching("logs", "-f")


def test_setup_without_breeze(node, fake_run, monkeypatch, capsys) -> None:
  answers(monkeypatch, "", "", "n")
  fake_run.on("node", "cat", VITE_PATH, stdout=render_vite_config())

  node.run(["setup"])

  assert fake_run.matching("up", "-d", "--no-deps", "node")
  assert not fake_run.matching("breeze:install")
  assert "Ready for development!" in capsys.readouterr().out
