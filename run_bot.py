#!/usr/bin/env python3
"""
Production runner for the Messenger bot.

Keeps a single server process per host (PID file), then replaces itself with
uvicorn serving `webhook_server:create_app`.
"""
import os
import signal
import sys
import time

from messenger_bot.config import Config

PID_FILE = os.getenv("BOT_PID_FILE", "/tmp/usos_messenger_bot.pid")
STOP_TIMEOUT_SECONDS = 5


def _alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except OSError:
        return False
    return True


def stop_previous_instance(pid_file: str = PID_FILE) -> None:
    """Terminate the process recorded in the PID file, if it is still running."""
    try:
        with open(pid_file) as f:
            old_pid = int(f.read().strip())
    except (OSError, ValueError):
        return

    if old_pid != os.getpid() and _alive(old_pid):
        print(f"Another instance is running (PID: {old_pid}). Stopping it...")
        os.kill(old_pid, signal.SIGTERM)
        deadline = time.monotonic() + STOP_TIMEOUT_SECONDS
        while _alive(old_pid) and time.monotonic() < deadline:
            time.sleep(0.2)
        if _alive(old_pid):
            os.kill(old_pid, signal.SIGKILL)

    try:
        os.remove(pid_file)
    except OSError:
        pass


def write_pid_file(pid_file: str = PID_FILE) -> None:
    with open(pid_file, "w") as f:
        f.write(str(os.getpid()))


def uvicorn_args(config: Config) -> list:
    args = [
        sys.executable,
        "-m", "uvicorn",
        "webhook_server:create_app",
        "--factory",
        "--host", "0.0.0.0",
        "--port", str(config.port),
        "--log-level", "warning",
        "--no-access-log",
        "--no-use-colors",
    ]
    if config.ssl_enabled:
        args += ["--ssl-keyfile", config.ssl_cert_key, "--ssl-certfile", config.ssl_cert_cert]
        if config.ssl_cert_pass:
            args += ["--ssl-keyfile-password", config.ssl_cert_pass]
    return args


def main():
    config = Config.from_env()

    stop_previous_instance()
    # exec keeps the PID, so the file stays valid for the uvicorn process
    write_pid_file()

    # Single worker, no reload: per-sender locks and broadcast tasks live in this process
    args = uvicorn_args(config)
    os.execvp(args[0], args)


if __name__ == "__main__":
    main()
