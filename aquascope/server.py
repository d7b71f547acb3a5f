"""HTTP server that runs Aquascope on single files sent by clients."""

from __future__ import annotations

import ipaddress
import json
import logging
import os
import re
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from aiohttp import web

from .container import Container, ContainerError, ServerResponse, SingleFileRequest

log = logging.getLogger(__name__)

DEFAULT_ADDRESS = "127.0.0.1"
DEFAULT_PORT = 8008

_PORT = re.compile(r"\+?[0-9]+")

ContainerFactory = Callable[[], Awaitable[Container]]


@dataclass
class Config:
    """Where the server listens and whether it runs outside a sandbox."""

    address: str = DEFAULT_ADDRESS
    port: int = DEFAULT_PORT
    no_docker: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Config:
        """Read the configuration from ``environ`` (the process environment by default)."""
        env = os.environ if environ is None else environ
        address = env.get("AQUASCOPE_SERVER_ADDRESS", DEFAULT_ADDRESS)
        port = DEFAULT_PORT
        raw_port = env.get("AQUASCOPE_SERVER_PORT")
        if raw_port is not None and _PORT.fullmatch(raw_port):
            value = int(raw_port)
            if value <= 0xFFFF:
                port = value
        return cls(
            address=address,
            port=port,
            no_docker="AQUASCOPE_NO_DOCKER" in env,
        )

    def socket_address(self) -> tuple[str, int]:
        """The ``(ip, port)`` pair to bind; raises ValueError for a bad address."""
        try:
            ip = ipaddress.ip_address(self.address)
        except ValueError as exc:
            raise ValueError("Invalid address") from exc
        return str(ip), self.port


class ErrorKind(Enum):
    """What the server was doing when it failed, with its message template."""

    CONTAINER_CREATION = "Creating the container failed {}"
    PERMISSIONS = "Running permissions analysis failed  {}"
    INTERPRETER = "Running interpreter failed {}"
    UNKNOWN = "An Unknown error occurred: {}"


class ServeError(Exception):
    """A request failed; reported to the client as an internal server error."""

    def __init__(self, kind: ErrorKind, detail: object) -> None:
        super().__init__(kind.value.format(detail))
        self.kind = kind
        self.detail = detail


def _is_json_content(request: web.Request) -> bool:
    content_type = request.content_type
    if content_type == "application/json":
        return True
    main, _, sub = content_type.partition("/")
    return main == "application" and sub.endswith("+json")


def _rejection(reason: str) -> web.Response:
    return web.json_response({"error": f"Unable to deserialize request: {reason}"})


async def _read_request(request: web.Request) -> SingleFileRequest | web.Response:
    if not _is_json_content(request):
        return _rejection("Expected request with `Content-Type: application/json`")
    body = await request.text()
    try:
        data = json.loads(body)
    except json.JSONDecodeError as exc:
        return _rejection(str(exc))
    try:
        return SingleFileRequest.from_json(data)
    except ValueError as exc:
        return _rejection(str(exc))


async def _with_container(
    factory: ContainerFactory,
    request: SingleFileRequest,
    operation: str,
    kind: ErrorKind,
) -> ServerResponse:
    try:
        container = await factory()
    except ContainerError as exc:
        raise ServeError(ErrorKind.CONTAINER_CREATION, exc) from exc
    try:
        return await getattr(container, operation)(request)
    except ContainerError as exc:
        raise ServeError(kind, exc) from exc
    finally:
        try:
            await container.cleanup()
        except ContainerError as exc:
            log.warning("Error cleaning up container: %r", exc)


def _endpoint(factory: ContainerFactory, operation: str, kind: ErrorKind):
    async def handler(request: web.Request) -> web.Response:
        log.debug("Received request for %s", operation)
        parsed = await _read_request(request)
        if isinstance(parsed, web.Response):
            return parsed
        result = await _with_container(factory, parsed, operation, kind)
        payload: dict[str, Any] = result.to_json()
        log.debug("returning JSON %r", payload)
        return web.json_response(payload)

    return handler


@web.middleware
async def _cors_and_errors(request: web.Request, handler) -> web.StreamResponse:
    if request.method == "OPTIONS" and "Access-Control-Request-Method" in request.headers:
        response: web.StreamResponse = web.Response()
        response.headers["Access-Control-Allow-Methods"] = "GET,POST"
        response.headers["Access-Control-Allow-Headers"] = "content-type"
    else:
        try:
            response = await handler(request)
        except web.HTTPNotFound:
            response = web.Response(status=404, text=f"No route {request.rel_url}")
        except web.HTTPException as exc:
            exc.headers["Access-Control-Allow-Origin"] = "*"
            raise
        except ServeError as exc:
            response = web.Response(status=500, text=str(exc))
    response.headers["Access-Control-Allow-Origin"] = "*"
    return response


async def _hi(_request: web.Request) -> web.Response:
    log.info("Received Message")
    return web.Response(text="HELLO!")


def create_app(container_factory: ContainerFactory | None = None) -> web.Application:
    """Build the application; containers come from ``container_factory``."""
    factory = container_factory if container_factory is not None else Container.create
    app = web.Application(middlewares=[_cors_and_errors])
    app.router.add_get("/hi", _hi)
    app.router.add_post(
        "/permissions", _endpoint(factory, "permissions", ErrorKind.PERMISSIONS)
    )
    app.router.add_post(
        "/interpreter", _endpoint(factory, "interpreter", ErrorKind.INTERPRETER)
    )
    return app


def serve(config: Config) -> None:
    """Serve requests until interrupted."""
    host, port = config.socket_address()
    if config.no_docker:
        log.warning("Requests will be processed outside of docker")
    log.info("Serving requests on %s:%s", config.address, config.port)
    web.run_app(create_app(), host=host, port=port, print=None)


def main(argv: list[str] | None = None) -> int:
    """Start the server configured from the environment."""
    logging.basicConfig(level=logging.INFO)
    serve(Config.from_env())
    return 0