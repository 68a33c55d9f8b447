"""Configuration for the MJPEG digest proxy.

Provides an immutable, strongly-typed ``ProxyConfig`` using Pydantic and a
loader that builds it from command-line arguments, with credentials falling
back to environment variables.
"""

from __future__ import annotations

import argparse
import os
from typing import Mapping, Optional, Sequence

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator

from mjpeg_digest_proxy import __version__

DEFAULT_BINDING = "127.0.0.1:11111"
DEFAULT_LOG_DIR = "logs"
USERNAME_ENV = "MDAP_USERNAME"
PASSWORD_ENV = "MDAP_PASSWORD"


def split_binding(binding: str) -> tuple[str, int]:
    """Split ``host:port`` (or ``[v6]:port``) into its parts."""
    host, sep, port = binding.rpartition(":")
    if not sep or not host:
        raise ValueError(f"binding must look like host:port, got {binding!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port_num = int(port)
    except ValueError:
        raise ValueError(f"invalid port in binding {binding!r}") from None
    if not 0 <= port_num <= 65535:
        raise ValueError(f"port out of range in binding {binding!r}")
    return host, port_num


class ProxyConfig(BaseModel):
    """Process-wide proxy settings, fixed at startup."""

    model_config = ConfigDict(frozen=True)

    url: AnyHttpUrl
    username: str = "username"
    password: SecretStr = SecretStr("password")
    bind: str = DEFAULT_BINDING
    insecure: bool = False
    log_dir: Optional[str] = None
    # None disables the transport timeout; MJPEG streams never end on their own
    request_timeout_s: Optional[float] = Field(default=None, gt=0)
    shutdown_timeout_s: Optional[float] = Field(default=None, ge=0)
    metrics_port: Optional[int] = Field(default=None, ge=1, le=65535)

    @field_validator("bind")
    @classmethod
    def _check_bind(cls, value: str) -> str:
        split_binding(value)
        return value

    @property
    def host(self) -> str:
        return split_binding(self.bind)[0]

    @property
    def port(self) -> int:
        return split_binding(self.bind)[1]


def build_parser(environ: Mapping[str, str] | None = None) -> argparse.ArgumentParser:
    env = os.environ if environ is None else environ
    parser = argparse.ArgumentParser(
        prog="mjpeg-digest-proxy",
        description="Proxy an MJPEG stream from a Digest-authenticated upstream.",
    )
    parser.add_argument("url", help="upstream mjpeg url")
    parser.add_argument("-b", "--binding", default=DEFAULT_BINDING, help="listen address (default: %(default)s)")
    parser.add_argument(
        "-u", "--username",
        default=env.get(USERNAME_ENV, "username"),
        help=f"upstream mjpeg server username [env: {USERNAME_ENV}]",
    )
    parser.add_argument(
        "-p", "--password",
        default=env.get(PASSWORD_ENV, "password"),
        help=f"upstream mjpeg server password [env: {PASSWORD_ENV}]",
    )
    parser.add_argument("-i", "--insecure", action="store_true", help="allow insecure upstream server connections")
    parser.add_argument(
        "-l", "--log-dir",
        nargs="?", const=DEFAULT_LOG_DIR, default=None, metavar="DIR",
        help=f"enable logging to daily file; use --log-dir=DIR to override the directory [default: {DEFAULT_LOG_DIR}]",
    )
    parser.add_argument("--timeout", type=float, default=None, metavar="SECONDS", help="upstream transport timeout")
    parser.add_argument(
        "--shutdown-timeout", type=float, default=None, metavar="SECONDS",
        help="stop waiting for open streams after this long on shutdown",
    )
    parser.add_argument("--metrics-port", type=int, default=None, help="serve Prometheus metrics on this port")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def load_config(argv: Sequence[str] | None = None, environ: Mapping[str, str] | None = None) -> ProxyConfig:
    """Parse ``argv`` into a ProxyConfig; invalid input exits through argparse."""
    parser = build_parser(environ)
    args = parser.parse_args(argv)
    try:
        return ProxyConfig(
            url=args.url,
            username=args.username,
            password=args.password,
            bind=args.binding,
            insecure=args.insecure,
            log_dir=args.log_dir,
            request_timeout_s=args.timeout,
            shutdown_timeout_s=args.shutdown_timeout,
            metrics_port=args.metrics_port,
        )
    except ValidationError as e:
        parser.error(f"Invalid configuration: {e}")
