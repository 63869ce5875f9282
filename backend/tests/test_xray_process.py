import asyncio
import sys

import pytest

from xpanel.models import XrayState
from xpanel.services.xray import XrayProcess, XrayProcessError, binary_name

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="requires a POSIX shell")

FAKE_XRAY = """#!/bin/sh
if [ "$1" = "-version" ]; then
  echo "Xray 1.8.4 (Xray, Penetrates Everything.) Custom (go1.21.4 linux/amd64)"
  exit 0
fi
echo "xray started with $3"
exec sleep 30
"""

CRASHING_XRAY = """#!/bin/sh
if [ "$1" = "-version" ]; then
  echo "Xray 1.8.4"
  exit 0
fi
echo "Failed to start: invalid config"
exit 23
"""


def _install_script(tmp_path, body):
    binary = tmp_path / "xray-linux-amd64"
    binary.write_text(body, encoding="utf-8")
    binary.chmod(0o755)
    config_path = tmp_path / "config.json"
    config_path.write_text("{}", encoding="utf-8")
    return binary, config_path


def test_binary_name_maps_machine():
    assert binary_name("x86_64") == "xray-linux-amd64"
    assert binary_name("aarch64") == "xray-linux-arm64"


def test_start_stop_restart(tmp_path):
    binary, config_path = _install_script(tmp_path, FAKE_XRAY)
    log_path = tmp_path / "logs" / "xray.log"
    process = XrayProcess(binary, config_path, log_path, start_grace_seconds=0.2, stop_timeout_seconds=2)

    async def scenario():
        await process.start()
        running = process.info()
        await process.restart()
        restarted = process.is_running()
        await process.stop()
        return running, restarted

    running, restarted = asyncio.run(scenario())

    assert running.state == XrayState.RUNNING
    assert running.version == "1.8.4"
    assert restarted is True
    assert process.state() == XrayState.STOP
    assert "xray started with" in log_path.read_text(encoding="utf-8")


def test_stop_when_not_running_is_noop(tmp_path):
    binary, config_path = _install_script(tmp_path, FAKE_XRAY)
    process = XrayProcess(binary, config_path, tmp_path / "xray.log")

    asyncio.run(process.stop())

    assert process.state() == XrayState.STOP


def test_missing_binary_reports_error(tmp_path):
    process = XrayProcess(tmp_path / "absent", tmp_path / "config.json", tmp_path / "xray.log")

    with pytest.raises(XrayProcessError, match="binary not found"):
        asyncio.run(process.restart())
    assert process.state() == XrayState.ERROR
    assert "binary not found" in process.info().error_msg


def test_immediate_exit_reports_error(tmp_path):
    binary, config_path = _install_script(tmp_path, CRASHING_XRAY)
    process = XrayProcess(binary, config_path, tmp_path / "xray.log", start_grace_seconds=2)

    with pytest.raises(XrayProcessError, match="code 23"):
        asyncio.run(process.start())
    assert process.state() == XrayState.ERROR


LATE_CRASHING_XRAY = """#!/bin/sh
if [ "$1" = "-version" ]; then
  echo "Xray 1.8.4"
  exit 0
fi
sleep 0.3
exit 2
"""


def test_exit_after_start_reports_error(tmp_path):
    binary, config_path = _install_script(tmp_path, LATE_CRASHING_XRAY)
    process = XrayProcess(binary, config_path, tmp_path / "xray.log", start_grace_seconds=0.1)

    async def scenario():
        await process.start()
        started = process.info()
        for _ in range(100):
            await asyncio.sleep(0.05)
            if not process.is_running():
                break
        return started, process.info()

    started, crashed = asyncio.run(scenario())

    assert started.state == XrayState.RUNNING
    assert crashed.state == XrayState.ERROR
    assert crashed.error_msg == "xray exited unexpectedly with code 2"


def test_stop_after_crash_clears_error(tmp_path):
    binary, config_path = _install_script(tmp_path, LATE_CRASHING_XRAY)
    process = XrayProcess(binary, config_path, tmp_path / "xray.log", start_grace_seconds=0.1)

    async def scenario():
        await process.start()
        for _ in range(100):
            await asyncio.sleep(0.05)
            if not process.is_running():
                break
        await process.stop()

    asyncio.run(scenario())

    assert process.state() == XrayState.STOP
    assert process.info().error_msg == ""
