"""Unit tests for profhook.cli.main — profiling options, hook wiring and
the run/version commands.
"""
from __future__ import annotations

import json
import logging
import cProfile
import pstats
import tracemalloc

import pytest
from click.testing import CliRunner
from rich.logging import RichHandler

from profhook.cli.main import cli


def _make_runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def script(tmp_path):
    path = tmp_path / "work.py"
    path.write_text(
        "import sys\n"
        "def crunch(n):\n"
        "    return sum(i * i for i in range(n))\n"
        "crunch(5000)\n"
        "print('ran', sys.argv[1:])\n",
        encoding="utf-8",
    )
    return path


# ===========================================================================
# Help and version
# ===========================================================================


class TestCLIBasics:
    def setup_method(self) -> None:
        self.runner = _make_runner()

    def test_help_lists_profiling_options(self) -> None:
        result = self.runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for flag in ("--expvar", "--cpuprofile", "--memprofile", "--traceprofile"):
            assert flag in result.output

    def test_help_lists_commands(self) -> None:
        result = self.runner.invoke(cli, ["--help"])
        assert "run" in result.output
        assert "version" in result.output

    def test_version_command(self, expected_version: str) -> None:
        result = self.runner.invoke(cli, ["version"])
        assert result.exit_code == 0
        assert expected_version in result.output

    def test_run_help(self) -> None:
        result = self.runner.invoke(cli, ["run", "--help"])
        assert result.exit_code == 0
        assert "TARGET" in result.output


# ===========================================================================
# run command under profiling
# ===========================================================================


class TestCLIRunProfiled:
    def setup_method(self) -> None:
        self.runner = _make_runner()

    def test_run_without_profiling(self, script, tmp_path) -> None:
        result = self.runner.invoke(cli, ["run", str(script), "a", "b"])
        assert result.exit_code == 0, result.output
        assert "ran ['a', 'b']" in result.output

    def test_script_options_are_passed_through(self, script) -> None:
        result = self.runner.invoke(cli, ["run", str(script), "--port", "8000"])
        assert result.exit_code == 0, result.output
        assert "ran ['--port', '8000']" in result.output

    def test_cpu_and_heap_profiles_written(self, script, tmp_path) -> None:
        cpu = tmp_path / "cpu.out"
        mem = tmp_path / "mem.out"
        result = self.runner.invoke(
            cli, ["--cpuprofile", str(cpu), "--memprofile", str(mem), "run", str(script)]
        )
        assert result.exit_code == 0, result.output
        stats = pstats.Stats(str(cpu))
        assert "crunch" in {func[2] for func in stats.stats}
        assert isinstance(tracemalloc.Snapshot.load(str(mem)), tracemalloc.Snapshot)

    def test_trace_written(self, script, tmp_path) -> None:
        trace = tmp_path / "trace.json"
        result = self.runner.invoke(cli, ["--traceprofile", str(trace), "run", str(script)])
        assert result.exit_code == 0, result.output
        events = json.loads(trace.read_text(encoding="utf-8"))
        assert any(e.get("name", "").endswith("crunch") for e in events)

    def test_options_from_environment(self, script, tmp_path) -> None:
        mem = tmp_path / "env-mem.out"
        result = self.runner.invoke(cli, ["run", str(script)], env={"PROFHOOK_MEMPROFILE": str(mem)})
        assert result.exit_code == 0, result.output
        assert mem.stat().st_size > 0

    def test_run_module(self, tmp_path, monkeypatch) -> None:
        (tmp_path / "profhook_demo_mod.py").write_text(
            "import sys\nprint('module ran', sys.argv[1:])\n", encoding="utf-8"
        )
        monkeypatch.syspath_prepend(str(tmp_path))
        result = self.runner.invoke(cli, ["run", "-m", "profhook_demo_mod", "x"])
        assert result.exit_code == 0, result.output
        assert "module ran ['x']" in result.output

    def test_script_exit_zero_counts_as_success(self, tmp_path) -> None:
        path = tmp_path / "exit0.py"
        path.write_text("import sys\nsys.exit(0)\n", encoding="utf-8")
        mem = tmp_path / "mem.out"
        result = self.runner.invoke(cli, ["--memprofile", str(mem), "run", str(path)])
        assert result.exit_code == 0, result.output
        assert mem.exists()


# ===========================================================================
# Failure paths
# ===========================================================================


class TestCLIFailures:
    def setup_method(self) -> None:
        self.runner = _make_runner()

    def test_unwritable_cpuprofile_exits_nonzero(self, script, missing_dir_path) -> None:
        result = self.runner.invoke(cli, ["--cpuprofile", missing_dir_path, "run", str(script)])
        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "ran" not in result.output

    def test_unwritable_memprofile_fails_after_command(self, script, missing_dir_path) -> None:
        result = self.runner.invoke(cli, ["--memprofile", missing_dir_path, "run", str(script)])
        assert result.exit_code == 1
        assert "ran" in result.output
        assert "Error:" in result.output

    def test_failing_command_skips_stop(self, tmp_path) -> None:
        path = tmp_path / "fail.py"
        path.write_text("raise SystemExit(3)\n", encoding="utf-8")
        mem = tmp_path / "mem.out"
        result = self.runner.invoke(cli, ["--memprofile", str(mem), "run", str(path)])
        assert result.exit_code == 3
        assert not mem.exists()

    def test_missing_script(self, tmp_path) -> None:
        result = self.runner.invoke(cli, ["run", str(tmp_path / "nope.py")])
        assert result.exit_code == 1
        assert "Cannot run" in result.output

    def test_missing_module(self) -> None:
        result = self.runner.invoke(cli, ["run", "-m", "profhook_no_such_module"])
        assert result.exit_code == 1
        assert "Cannot run" in result.output

    def test_script_os_error_is_not_reported_as_launch_failure(self, tmp_path) -> None:
        path = tmp_path / "reads.py"
        path.write_text(f"open({str(tmp_path / 'missing-input.txt')!r})\n", encoding="utf-8")
        mem = tmp_path / "mem.out"
        result = self.runner.invoke(cli, ["--memprofile", str(mem), "run", str(path)])
        assert result.exit_code == 1
        assert isinstance(result.exception, FileNotFoundError)
        assert "Cannot run" not in result.output
        assert not mem.exists()

    def test_profiler_installed_elsewhere_exits_nonzero(self, script, tmp_path) -> None:
        foreign = cProfile.Profile()
        foreign.enable()
        try:
            result = self.runner.invoke(cli, ["--cpuprofile", str(tmp_path / "cpu.out"), "run", str(script)])
        finally:
            foreign.disable()
        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "ran" not in result.output


# ===========================================================================
# Logging
# ===========================================================================


class TestCLIVerbose:
    def test_verbose_installs_rich_handler(self, script, tmp_path) -> None:
        package_logger = logging.getLogger("profhook")
        before = list(package_logger.handlers)
        level = package_logger.level
        try:
            result = _make_runner().invoke(
                cli, ["-v", "--memprofile", str(tmp_path / "mem.out"), "run", str(script)]
            )
            assert result.exit_code == 0, result.output
            assert any(isinstance(h, RichHandler) for h in package_logger.handlers)
        finally:
            package_logger.handlers[:] = before
            package_logger.setLevel(level)
