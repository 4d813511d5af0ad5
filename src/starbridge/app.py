# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/starbridge-python/LICENSE
# ==============================================================================

"""Controllers, routes and the application object.

Endpoints are plain methods on a :class:`Controller` subclass, marked with
:func:`route` (or one of the verb shortcuts).  :class:`Application` walks the
controllers once at :meth:`Application.init` and registers each endpoint
through an :class:`~starbridge.adapters.AbstractHttpAdapter`.

Example::

    class CatsController(Controller):
        prefix = "/cats"

        @get("/:id", params=CatParams)
        async def find_one(self, call: RouteCall) -> dict[str, int]:
            return {"id": call.params.id}

    app = StarbridgeFactory.create(CatsController())
    await app.listen(3000)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import inspect
from typing import TYPE_CHECKING, Any, ClassVar, Final, TypeVar

from pydantic import BaseModel, ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .adapters import AbstractHttpAdapter, RequestMethod, StarletteAdapter
from .config import ApplicationOptions
from .exceptions import BadRequestException, HttpException
from .utils import get_logger, maybe_await_with_args


if TYPE_CHECKING:  # pragma: no cover - typing only
    from starlette.requests import Request

    from .adapters.base import RegistrationFunction, RequestHandler


EndpointFn = Callable[..., Any]
F = TypeVar("F", bound=EndpointFn)

_ROUTE_ATTR: Final[str] = "__starbridge_route__"
INTERNAL_ERROR_PAYLOAD: Final[dict[str, Any]] = {"statusCode": 500, "message": "Internal server error"}


# ---------------------------------------------------------------------------
# Route declarations
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class RouteSpec:
    """Declarative description of one endpoint."""

    method: RequestMethod
    path: str = ""
    params: type[BaseModel] | None = None
    query: type[BaseModel] | None = None
    body: type[BaseModel] | None = None
    response: type[BaseModel] | None = None
    status_code: int | None = None

    @property
    def default_status(self) -> int:
        if self.status_code is not None:
            return self.status_code
        return 201 if self.method is RequestMethod.POST else 200


def route(
    method: RequestMethod,
    path: str = "",
    *,
    params: type[BaseModel] | None = None,
    query: type[BaseModel] | None = None,
    body: type[BaseModel] | None = None,
    response: type[BaseModel] | None = None,
    status_code: int | None = None,
) -> Callable[[F], F]:
    """Mark a controller method as an endpoint.

    ``params``, ``query`` and ``body`` are pydantic models used to validate
    (and coerce) the matching request parts; a failure answers 400.
    ``response`` validates the return value before it is sent.
    """

    spec = RouteSpec(
        method=method, path=path, params=params, query=query, body=body, response=response, status_code=status_code
    )

    def decorator(fn: F) -> F:
        setattr(fn, _ROUTE_ATTR, spec)
        return fn

    return decorator


def _verb(method: RequestMethod) -> Callable[..., Callable[[F], F]]:
    def shortcut(path: str = "", **options: Any) -> Callable[[F], F]:
        return route(method, path, **options)

    shortcut.__name__ = method.value.lower()
    shortcut.__doc__ = f"Shortcut for ``route(RequestMethod.{method.name}, ...)``."
    return shortcut


get = _verb(RequestMethod.GET)
post = _verb(RequestMethod.POST)
put = _verb(RequestMethod.PUT)
patch = _verb(RequestMethod.PATCH)
delete = _verb(RequestMethod.DELETE)
head = _verb(RequestMethod.HEAD)
options = _verb(RequestMethod.OPTIONS)


@dataclass(slots=True)
class RouteCall:
    """Everything an endpoint may need from the request.

    ``params``/``query``/``body`` are model instances when the route declared
    a model for them, raw dicts (``None`` for the body) otherwise.
    """

    request: Request
    params: Any
    query: Any
    headers: dict[str, str]
    ip: str | None = None
    body: Any = None


class Controller:
    """Base class for groups of endpoints sharing a path prefix."""

    prefix: ClassVar[str] = ""

    @classmethod
    def route_specs(cls) -> list[tuple[str, RouteSpec]]:
        """Return ``(attribute name, spec)`` pairs in definition order."""
        specs: list[tuple[str, RouteSpec]] = []
        for klass in reversed(cls.__mro__):
            for name, member in vars(klass).items():
                spec = getattr(member, _ROUTE_ATTR, None)
                if isinstance(spec, RouteSpec):
                    specs = [(existing, s) for existing, s in specs if existing != name]
                    specs.append((name, spec))
        return specs


def join_paths(*parts: str) -> str:
    segments = [part.strip("/") for part in parts if part and part.strip("/")]
    return "/" + "/".join(segments)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


class Application:
    """Hosts controllers on an HTTP adapter."""

    def __init__(self, adapter: AbstractHttpAdapter[Any, Any, Any], options: ApplicationOptions | None = None) -> None:
        self._adapter = adapter
        self._options = options or ApplicationOptions()
        self._controllers: list[Controller] = []
        self._global_prefix = ""
        self._initialized = False
        self._logger = get_logger("starbridge.app")

        adapter.init_http_server(self._options)

    @property
    def http_adapter(self) -> AbstractHttpAdapter[Any, Any, Any]:
        return self._adapter

    @property
    def asgi(self) -> Any:
        """The adapter's dispatch engine, callable as an ASGI app."""
        return self._adapter.get_instance()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def register_controller(self, controller: Controller | type[Controller]) -> Application:
        if inspect.isclass(controller):
            controller = controller()
        self._controllers.append(controller)
        return self

    def set_global_prefix(self, prefix: str) -> Application:
        self._global_prefix = prefix
        return self

    def use(self, path_or_handler: str | RequestHandler, handler: RequestHandler | None = None) -> Application:
        self._adapter.use(path_or_handler, handler)
        return self

    def apply_middleware(
        self, handler: RequestHandler, *, path: str = "", method: RequestMethod = RequestMethod.ALL
    ) -> Application:
        """Register *handler* as middleware limited to *method* and *path*."""
        register = self._adapter.create_middleware_factory(method)
        register(path, handler)
        return self

    def enable_cors(self, options: dict[str, Any] | None = None) -> Application:
        self._adapter.enable_cors(options)
        return self

    def use_static_assets(self, path: str, options: dict[str, Any]) -> Application:
        self._adapter.use_static_assets(path, options)
        return self

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def init(self) -> Application:
        """Register middleware, routes and hooks on the adapter (once)."""
        if self._initialized:
            return self

        await self._adapter.init()
        self._adapter.register_parser_middleware()
        if self._options.cors is not None:
            self._adapter.enable_cors(self._options.cors)
        for controller in self._controllers:
            self._register_controller_routes(controller)
        self._adapter.set_not_found_handler(self._handle_not_found)
        self._adapter.set_error_handler(self._handle_error)

        self._initialized = True
        self._logger.debug("application initialised with %d controller(s)", len(self._controllers))
        return self

    async def listen(self, port: int, host: str | None = None) -> Any:
        await self.init()
        return await self._adapter.listen(port, host=host or self._options.host)

    async def close(self) -> None:
        await self._adapter.close()

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def _register_controller_routes(self, controller: Controller) -> None:
        for name, spec in type(controller).route_specs():
            path = join_paths(self._global_prefix, controller.prefix, spec.path)
            register = self._registration_for(spec.method)
            register(path, self._create_route_handler(getattr(controller, name), spec))
            self._logger.debug("mapped {%s, %s} to %s.%s", path, spec.method.value, type(controller).__name__, name)

    def _registration_for(self, method: RequestMethod) -> RegistrationFunction:
        adapter = self._adapter
        table: dict[RequestMethod, RegistrationFunction] = {
            RequestMethod.GET: adapter.get,
            RequestMethod.POST: adapter.post,
            RequestMethod.PUT: adapter.put,
            RequestMethod.DELETE: adapter.delete,
            RequestMethod.PATCH: adapter.patch,
            RequestMethod.OPTIONS: adapter.options,
            RequestMethod.HEAD: adapter.head,
            RequestMethod.ALL: adapter.all,
            RequestMethod.SEARCH: adapter.search,
        }
        return table[method]

    def _create_route_handler(self, endpoint: EndpointFn, spec: RouteSpec) -> RequestHandler:
        adapter = self._adapter

        async def handler(request: Any, ctx: Any, next_: Any) -> None:
            try:
                call = await _build_call(request, spec)
                result = await maybe_await_with_args(endpoint, call)
                if spec.response is not None:
                    result = spec.response.model_validate(result).model_dump(mode="json", exclude_none=True)
            except StarletteHTTPException:
                raise
            except Exception as exc:
                status_code, payload = self._error_response(exc, request)
                adapter.reply(ctx, payload, status_code)
                return
            adapter.reply(ctx, result, spec.default_status)

        handler.__name__ = getattr(endpoint, "__name__", handler.__name__)
        return handler

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def _handle_not_found(self, request: Any, ctx: Any) -> None:
        method = self._adapter.get_request_method(request)
        message = f"Cannot {method} {request.url.path}"
        self._adapter.reply(ctx, {"statusCode": 404, "message": message, "error": "Not Found"}, 404)

    def _handle_error(self, exc: BaseException, request: Any, ctx: Any) -> None:
        status_code, payload = self._error_response(exc, request)
        self._adapter.reply(ctx, payload, status_code)

    def _error_response(self, exc: BaseException, request: Any) -> tuple[int, Any]:
        if isinstance(exc, HttpException):
            return exc.status_code, exc.to_payload()
        self._logger.error(
            "unhandled error while serving %s %s",
            self._adapter.get_request_method(request),
            self._adapter.get_request_url(request),
            exc_info=exc,
        )
        return 500, dict(INTERNAL_ERROR_PAYLOAD)


async def _build_call(request: Request, spec: RouteSpec) -> RouteCall:
    body: Any = None
    if spec.body is not None:
        raw = await request.body()
        try:
            body = await request.json() if raw else {}
        except ValueError as exc:
            raise BadRequestException("Request body is not valid JSON") from exc

    client = request.client
    return RouteCall(
        request=request,
        params=_validate(spec.params, request.params),  # type: ignore[attr-defined]
        query=_validate(spec.query, request.query),  # type: ignore[attr-defined]
        headers=request.header_map,  # type: ignore[attr-defined]
        ip=client.host if client is not None else None,
        body=_validate(spec.body, body),
    )


def _validate(model: type[BaseModel] | None, data: Any) -> Any:
    if model is None:
        return data
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise BadRequestException(exc.errors(include_url=False, include_context=False)) from exc


class StarbridgeFactory:
    """Builds applications with the default Starlette adapter."""

    @staticmethod
    def create(
        *controllers: Controller | type[Controller],
        adapter: AbstractHttpAdapter[Any, Any, Any] | None = None,
        options: ApplicationOptions | None = None,
    ) -> Application:
        options = options or ApplicationOptions.from_env()
        app = Application(adapter or StarletteAdapter(body_limit=options.body_limit), options)
        for controller in controllers:
            app.register_controller(controller)
        return app


__all__ = [
    "Application",
    "Controller",
    "RouteCall",
    "RouteSpec",
    "StarbridgeFactory",
    "delete",
    "get",
    "head",
    "join_paths",
    "options",
    "patch",
    "post",
    "put",
    "route",
]
