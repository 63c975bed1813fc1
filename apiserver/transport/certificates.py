"""Certificate issuance for automatic TLS, delegated to the certbot ACME client."""

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Protocol, Sequence

from apiserver.domain.correlation_id import CorrelationLoggerAdapter
from apiserver.domain.errors import TransportError

CERT_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("apiserver.transport.certificates"), {}
)

LETSENCRYPT_LIVE_DIR = "/etc/letsencrypt/live"


@dataclass(frozen=True)
class CertificatePaths:
    """Location of an issued certificate chain and its private key."""

    fullchain: str
    privkey: str


class CertificateManager(Protocol):
    """What automatic TLS needs from a certificate authority client."""

    def obtain(self, domains: Sequence[str]) -> CertificatePaths: ...

    def renew(self) -> bool: ...


class CertbotManager:
    """Obtains and renews certificates with ``certbot certonly --webroot``.

    Challenge files are written below ``webroot`` and served by the port 80
    listener, so certbot never binds a port of its own.
    """

    def __init__(
        self,
        webroot: str,
        email: str = "",
        live_dir: str = LETSENCRYPT_LIVE_DIR,
        certbot: str = "certbot",
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ) -> None:
        self.webroot = webroot
        self.email = email
        self.live_dir = live_dir
        self.certbot = certbot
        self._run = runner

    def certonly_command(self, domains: Sequence[str]) -> list[str]:
        command = [
            self.certbot,
            "certonly",
            "--webroot",
            "-w",
            self.webroot,
            "--non-interactive",
            "--agree-tos",
            "--keep-until-expiring",
            "--cert-name",
            domains[0],
        ]
        if self.email:
            command += ["-m", self.email, "--no-eff-email"]
        else:
            command.append("--register-unsafely-without-email")
        for domain in domains:
            command += ["-d", domain]
        return command

    def obtain(self, domains: Sequence[str]) -> CertificatePaths:
        """Issue (or reuse) a certificate covering every domain."""
        if not domains:
            raise TransportError("automatic TLS needs at least one domain")
        if shutil.which(self.certbot) is None:
            raise TransportError(f"{self.certbot!r} not found in PATH")

        try:
            Path(self.webroot).mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise TransportError(
                f"cannot create ACME webroot {self.webroot!r}: {error}"
            ) from error
        CERT_LOGGER.info(
            "Requesting certificate",
            extra={"event": "certificate_requested", "domains": list(domains)},
        )
        self._invoke(self.certonly_command(domains))

        live = Path(self.live_dir) / domains[0]
        paths = CertificatePaths(
            str(live / "fullchain.pem"), str(live / "privkey.pem")
        )
        if not (Path(paths.fullchain).exists() and Path(paths.privkey).exists()):
            raise TransportError(f"certbot did not produce a certificate in {live}")
        CERT_LOGGER.info(
            "Certificate ready",
            extra={"event": "certificate_ready", "domains": list(domains)},
        )
        return paths

    def renew(self) -> bool:
        """Renew certificates close to expiry; True when certbot succeeded."""
        try:
            self._invoke([self.certbot, "renew", "--non-interactive"])
        except TransportError:
            return False
        return True

    def _invoke(self, command: list[str]) -> None:
        try:
            self._run(command, check=True, capture_output=True, text=True)
        except FileNotFoundError as error:
            raise TransportError(f"{self.certbot!r} not found in PATH") from error
        except subprocess.CalledProcessError as error:
            CERT_LOGGER.error(
                "certbot failed",
                extra={
                    "event": "certbot_failed",
                    "error": (error.stderr or error.stdout or "").strip(),
                },
            )
            raise TransportError(
                f"certificate acquisition failed (exit status {error.returncode})"
            ) from error
