"""Shared pytest fixtures for integration and unit tests."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING, Generator, TypedDict

import pytest

from tests.utils.http import reserve_port, wait_for_port
from tests.utils.server import PROJECT_ROOT, server_command

if TYPE_CHECKING:
    from _pytest.tmpdir import TempPathFactory


def _launch_server(
    host: str,
    port: int,
    extra_args: list[str] | None = None,
    log_file: Path | None = None,
) -> Generator[ServerProcessInfo, None, None]:
    args = list(extra_args or [])
    if log_file:
        args.extend(["--log-destination", str(log_file)])

    with subprocess.Popen(
        server_command(host, port, args),
        cwd=PROJECT_ROOT,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    ) as process:
        try:
            wait_for_port(host, port)
        except Exception:
            # If startup failed, print stdout/stderr to help debug
            process.terminate()
            stdout, stderr = process.communicate(timeout=5)
            print(f"\nServer stdout:\n{stdout}")
            print(f"\nServer stderr:\n{stderr}")
            raise

        scheme = "https" if "--tls-certificate" in args else "http"
        yield {
            "base_url": f"{scheme}://{host}:{port}",
            "host": host,
            "port": port,
            "process": process,
            "log_file": log_file,
        }

        process.terminate()
        try:
            process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            process.kill()


class ServerProcessInfo(TypedDict):
    """Metadata describing a running server fixture instance."""

    base_url: str
    host: str
    port: int
    process: subprocess.Popen[str]
    log_file: Path | None


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Expose the repository root path to tests."""

    return PROJECT_ROOT


@pytest.fixture(name="server_process")
def _server_process(
    tmp_path_factory: "TempPathFactory",
) -> Generator[ServerProcessInfo, None, None]:
    """Launch the API server in a background process for integration tests."""

    host = "127.0.0.1"
    port = reserve_port(host)
    log_file = tmp_path_factory.mktemp("server-logs") / "server.log"
    yield from _launch_server(host, port, ["--log-format", "json"], log_file=log_file)


@pytest.fixture(name="metrics_server_process")
def _metrics_server_process(
    tmp_path_factory: "TempPathFactory",
) -> Generator[ServerProcessInfo, None, None]:
    """Launch the API server with Prometheus metrics enabled."""

    host = "127.0.0.1"
    port = reserve_port(host)
    log_file = tmp_path_factory.mktemp("metrics-logs") / "server.log"
    yield from _launch_server(host, port, ["--metrics"], log_file=log_file)


@pytest.fixture(scope="session", name="self_signed_pair")
def _self_signed_pair(tmp_path_factory: "TempPathFactory") -> tuple[Path, Path]:
    """Generate a throwaway certificate and key with the openssl CLI."""

    if shutil.which("openssl") is None:
        pytest.skip("openssl not available, skipping HTTPS tests")
    directory = tmp_path_factory.mktemp("certs")
    cert, key = directory / "cert.pem", directory / "key.pem"
    subprocess.run(
        [
            "openssl",
            "req",
            "-x509",
            "-newkey",
            "rsa:2048",
            "-nodes",
            "-keyout",
            str(key),
            "-out",
            str(cert),
            "-days",
            "1",
            "-subj",
            "/CN=localhost",
        ],
        check=True,
        capture_output=True,
    )
    return cert, key


@pytest.fixture(name="https_server_process")
def _https_server_process(
    tmp_path_factory: "TempPathFactory", self_signed_pair: tuple[Path, Path]
) -> Generator[ServerProcessInfo, None, None]:
    """Launch the API server with a custom certificate pair."""

    host = "127.0.0.1"
    port = reserve_port(host)
    cert, key = self_signed_pair
    log_file = tmp_path_factory.mktemp("https-logs") / "server.log"
    tls_args = ["--tls-certificate", str(cert), "--tls-key", str(key)]
    yield from _launch_server(host, port, tls_args, log_file=log_file)


@pytest.fixture()
def base_url(server_process: ServerProcessInfo) -> str:
    """Expose the running server base URL to integration tests."""

    return server_process["base_url"]
