from typing import Any

from litestar import Request, delete, get, patch, post, put
from litestar.exceptions import NotAuthorizedException, NotFoundException, ValidationException
from litestar.middleware.session.server_side import ServerSideSessionConfig
from litestar.response import Response
from litestar.stores.memory import MemoryStore
from litestar.template.config import TemplateConfig
from litestar.testing import create_test_client  # pyright: ignore[reportUnknownVariableType]

from litestar_inertia import (
    InertiaConfig,
    InertiaExternalRedirect,
    InertiaHeaders,
    InertiaPlugin,
    InertiaResponse,
    VersionMismatch,
    always,
    assemble,
    back,
    defer,
    lazy,
    merge,
    once,
    redirect,
)
from litestar_inertia.request import RequestIntent


def _client_kwargs(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> "dict[str, Any]":
    return {
        "plugins": [inertia_plugin],
        "template_config": template_config,
        "middleware": [ServerSideSessionConfig().middleware],
        "stores": {"sessions": MemoryStore()},
    }


async def test_component_enabled(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    @get("/", component="Home")
    async def handler(request: Request[Any, Any, Any]) -> dict[str, Any]:
        return {"thing": "value"}

    with create_test_client(route_handlers=[handler], **_client_kwargs(inertia_plugin, template_config)) as client:
        response = client.get("/")
        assert response.text.startswith("<!DOCTYPE html>")
        assert response.headers["content-type"].startswith("text/html")
        assert '<div id="app" data-page="{&#34;component&#34;:&#34;Home&#34;' in response.text
        assert "&#34;thing&#34;:&#34;value&#34;" in response.text


async def test_component_inertia_header_enabled(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    @get("/", component="Home")
    async def handler(request: Request[Any, Any, Any]) -> dict[str, Any]:
        return {"thing": "value"}

    with create_test_client(route_handlers=[handler], **_client_kwargs(inertia_plugin, template_config)) as client:
        response = client.get("/", headers={InertiaHeaders.ENABLED.value: "true"})
        assert response.headers[InertiaHeaders.ENABLED.value] == "true"
        assert response.headers["vary"] == InertiaHeaders.ENABLED.value
        assert response.json() == {
            "component": "Home",
            "url": "/",
            "version": "1.0",
            "props": {"errors": {}, "flash": {}, "auth": {"user": None}, "thing": "value"},
            "encryptHistory": False,
            "clearHistory": False,
        }


async def test_page_option_and_query_string(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    @get("/reports", page="Reports/Index")
    async def handler(request: Request[Any, Any, Any]) -> dict[str, Any]:
        return {"page": request.query_params.get("page")}

    with create_test_client(route_handlers=[handler], **_client_kwargs(inertia_plugin, template_config)) as client:
        data = client.get("/reports?page=2", headers={InertiaHeaders.ENABLED.value: "true"}).json()
        assert data["component"] == "Reports/Index"
        assert data["url"] == "/reports?page=2"
        assert data["props"]["page"] == "2"


async def test_non_mapping_content(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    @get("/", component="Home")
    async def handler(request: Request[Any, Any, Any]) -> list[str]:
        return ["a", "b"]

    with create_test_client(route_handlers=[handler], **_client_kwargs(inertia_plugin, template_config)) as client:
        data = client.get("/", headers={InertiaHeaders.ENABLED.value: "true"}).json()
        assert data["props"]["content"] == ["a", "b"]


async def test_route_without_component_is_plain(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    @get("/api")
    async def handler(request: Request[Any, Any, Any]) -> dict[str, Any]:
        return {"thing": "value", "later": lazy(lambda: "resolved")}

    with create_test_client(route_handlers=[handler], **_client_kwargs(inertia_plugin, template_config)) as client:
        response = client.get("/api", headers={InertiaHeaders.ENABLED.value: "true"})
        assert response.json() == {"thing": "value", "later": "resolved"}


async def test_shared_props_and_precedence(
    inertia_config: InertiaConfig,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    inertia_config.extra_static_page_props = {"app_name": "Acme", "title": "Static"}
    inertia_plugin = InertiaPlugin(inertia_config)
    inertia_plugin.shared.share({"locale": "en", "title": "Shared"})

    @get("/", component="Home")
    async def handler(request: Request[Any, Any, Any]) -> dict[str, Any]:
        return {"title": "Home"}

    with create_test_client(route_handlers=[handler], **_client_kwargs(inertia_plugin, template_config)) as client:
        props = client.get("/", headers={InertiaHeaders.ENABLED.value: "true"}).json()["props"]
        assert list(props) == ["errors", "flash", "auth", "app_name", "title", "locale"]
        assert props["title"] == "Home"
        assert props["app_name"] == "Acme"
        assert props["locale"] == "en"


async def test_extra_session_page_props(
    inertia_config: InertiaConfig,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    inertia_config.extra_session_page_props = {"team_id"}
    inertia_plugin = InertiaPlugin(inertia_config)

    @post("/teams/switch")
    async def switch(request: Request[Any, Any, Any]) -> None:
        request.session["team_id"] = 7

    @get("/", component="Home")
    async def handler(request: Request[Any, Any, Any]) -> dict[str, Any]:
        return {}

    with create_test_client(
        route_handlers=[switch, handler], **_client_kwargs(inertia_plugin, template_config)
    ) as client:
        client.post("/teams/switch")
        props = client.get("/", headers={InertiaHeaders.ENABLED.value: "true"}).json()["props"]
        assert props["team_id"] == 7


async def test_composers(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    inertia_plugin.shared.composer("Users/Index", lambda connection: {"path": connection.url.path, "count": 1})
    inertia_plugin.shared.composer("*", lambda connection: {"count": 2, "permissions": defer(lambda: ["edit"])})

    @get("/users", component="Users/Index")
    async def users(request: Request[Any, Any, Any]) -> dict[str, Any]:
        return {"users": ["alice"]}

    @get("/", component="Home")
    async def home(request: Request[Any, Any, Any]) -> dict[str, Any]:
        return {}

    with create_test_client(
        route_handlers=[users, home], **_client_kwargs(inertia_plugin, template_config)
    ) as client:
        data = client.get("/users", headers={InertiaHeaders.ENABLED.value: "true"}).json()
        assert data["props"]["path"] == "/users"
        assert data["props"]["count"] == 2
        assert data["props"]["users"] == ["alice"]
        assert "permissions" not in data["props"]
        assert data["deferredProps"] == {"default": ["permissions"]}

        data = client.get("/", headers={InertiaHeaders.ENABLED.value: "true"}).json()
        assert "path" not in data["props"]
        assert data["props"]["count"] == 2


async def test_scenario_a_initial_load_with_deferred(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    calls: list[str] = []

    def load_stats() -> dict[str, int]:
        calls.append("stats")
        return {"visits": 3}

    @get("/", component="Dashboard")
    async def handler(request: Request[Any, Any, Any]) -> dict[str, Any]:
        return {"user": "alice", "stats": defer(load_stats, group="default")}

    with create_test_client(route_handlers=[handler], **_client_kwargs(inertia_plugin, template_config)) as client:
        html = client.get("/").text
        assert "&#34;user&#34;:&#34;alice&#34;" in html
        assert "&#34;deferredProps&#34;:{&#34;default&#34;:[&#34;stats&#34;]}" in html
        assert "visits" not in html

        data = client.get("/", headers={InertiaHeaders.ENABLED.value: "true"}).json()
        assert "stats" not in data["props"]
        assert data["deferredProps"] == {"default": ["stats"]}
        assert calls == []


async def test_scenario_b_partial_reload(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    @get("/", component="Dashboard")
    async def handler(request: Request[Any, Any, Any]) -> dict[str, Any]:
        return {"user": "alice", "stats": defer(lambda: {"visits": 3}, group="default"), "nav": always(["home"])}

    with create_test_client(route_handlers=[handler], **_client_kwargs(inertia_plugin, template_config)) as client:
        data = client.get(
            "/",
            headers={
                InertiaHeaders.ENABLED.value: "true",
                InertiaHeaders.PARTIAL_COMPONENT.value: "Dashboard",
                InertiaHeaders.PARTIAL_DATA.value: "stats",
            },
        ).json()
        assert data["props"] == {"errors": {}, "flash": {}, "stats": {"visits": 3}, "nav": ["home"]}


async def test_partial_except(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    @get("/", component="Dashboard")
    async def handler(request: Request[Any, Any, Any]) -> dict[str, Any]:
        return {"user": "alice", "stats": defer(lambda: {"visits": 3}), "filters": lazy(lambda: {"q": ""})}

    with create_test_client(route_handlers=[handler], **_client_kwargs(inertia_plugin, template_config)) as client:
        data = client.get(
            "/",
            headers={
                InertiaHeaders.ENABLED.value: "true",
                InertiaHeaders.PARTIAL_COMPONENT.value: "Dashboard",
                InertiaHeaders.PARTIAL_EXCEPT.value: "stats,auth",
            },
        ).json()
        assert data["props"] == {"errors": {}, "flash": {}, "user": "alice", "filters": {"q": ""}}


async def test_async_resolvers(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    async def load_stats() -> dict[str, int]:
        return {"visits": 3}

    async def load_count() -> int:
        return 5

    @get("/", component="Dashboard")
    async def handler(request: Request[Any, Any, Any]) -> dict[str, Any]:
        return {"stats": defer(load_stats), "count": load_count}

    with create_test_client(route_handlers=[handler], **_client_kwargs(inertia_plugin, template_config)) as client:
        data = client.get(
            "/",
            headers={InertiaHeaders.ENABLED.value: "true", InertiaHeaders.PARTIAL_COMPONENT.value: "Dashboard"},
        ).json()
        assert data["props"]["stats"] == {"visits": 3}
        assert data["props"]["count"] == 5


async def test_merge_and_once_metadata(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    @get("/feed", component="Feed")
    async def handler(request: Request[Any, Any, Any]) -> dict[str, Any]:
        return {
            "posts": merge(lambda: [{"id": 1}], match_on="id"),
            "roles": once(lambda: ["admin"], key="roles", expires_at=1700000000000),
        }

    with create_test_client(route_handlers=[handler], **_client_kwargs(inertia_plugin, template_config)) as client:
        data = client.get("/feed", headers={InertiaHeaders.ENABLED.value: "true"}).json()
        assert data["props"]["posts"] == [{"id": 1}]
        assert data["props"]["roles"] == ["admin"]
        assert data["mergeProps"] == ["posts"]
        assert data["matchPropsOn"] == ["posts.id"]
        assert data["onceProps"] == {"roles": {"prop": "roles", "expiresAt": 1700000000000}}
        assert "prependProps" not in data
        assert "deepMergeProps" not in data
        assert "deferredProps" not in data


async def test_scenario_e_once_prop_shared_across_components(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    calls: list[str] = []

    def load_roles() -> list[str]:
        calls.append("roles")
        return ["admin"]

    inertia_plugin.shared.share_once("roles", load_roles).as_("roles")

    @get("/users", component="Users/Index")
    async def users(request: Request[Any, Any, Any]) -> dict[str, Any]:
        return {}

    @get("/teams", component="Teams/Index")
    async def teams(request: Request[Any, Any, Any]) -> dict[str, Any]:
        return {}

    with create_test_client(
        route_handlers=[users, teams], **_client_kwargs(inertia_plugin, template_config)
    ) as client:
        data = client.get("/users", headers={InertiaHeaders.ENABLED.value: "true"}).json()
        assert data["props"]["roles"] == ["admin"]

        data = client.get(
            "/teams",
            headers={InertiaHeaders.ENABLED.value: "true", InertiaHeaders.EXCEPT_ONCE_PROPS.value: "roles"},
        ).json()
        assert "roles" not in data["props"]
        assert data["onceProps"] == {"roles": {"prop": "roles", "expiresAt": None}}
        assert calls == ["roles"]


async def test_scenario_f_partial_for_other_component(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    @get("/", component="Dashboard")
    async def handler(request: Request[Any, Any, Any]) -> dict[str, Any]:
        return {
            "user": "alice",
            "stats": defer(lambda: 1),
            "filters": lazy(lambda: 2),
            "feed": merge(lambda: [3]),
            "roles": once(lambda: ["admin"]),
        }

    with create_test_client(route_handlers=[handler], **_client_kwargs(inertia_plugin, template_config)) as client:
        data = client.get(
            "/",
            headers={
                InertiaHeaders.ENABLED.value: "true",
                InertiaHeaders.PARTIAL_COMPONENT.value: "Settings",
                InertiaHeaders.PARTIAL_DATA.value: "stats",
            },
        ).json()
        assert data["props"] == {
            "errors": {},
            "flash": {},
            "auth": {"user": None},
            "user": "alice",
            "feed": [3],
            "roles": ["admin"],
        }


async def test_encrypt_history(
    inertia_config: InertiaConfig,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    inertia_config.encrypt_history = True
    inertia_plugin = InertiaPlugin(inertia_config)

    @get("/", component="Home")
    async def handler(request: Request[Any, Any, Any]) -> dict[str, Any]:
        return {}

    @get("/public", component="Public")
    async def public(request: Request[Any, Any, Any]) -> InertiaResponse[dict[str, Any]]:
        return InertiaResponse({}, encrypt_history=False, clear_history=True)

    with create_test_client(
        route_handlers=[handler, public], **_client_kwargs(inertia_plugin, template_config)
    ) as client:
        data = client.get("/", headers={InertiaHeaders.ENABLED.value: "true"}).json()
        assert data["encryptHistory"] is True
        assert data["clearHistory"] is False

        data = client.get("/public", headers={InertiaHeaders.ENABLED.value: "true"}).json()
        assert data["encryptHistory"] is False
        assert data["clearHistory"] is True


def test_assemble_signals_version_mismatch() -> None:
    intent = RequestIntent(is_ajax=True)
    calls: list[str] = []
    props = {"user": lambda: calls.append("user")}

    result = assemble("Home", props, intent, url="/", version="v2", client_version="v1")
    assert result == VersionMismatch(location="/")
    assert calls == []

    result = assemble("Home", props, intent, url="/", version="v2", method="POST", client_version="v1")
    assert not isinstance(result, VersionMismatch)
    assert result.component == "Home"
    assert calls == ["user"]


async def test_scenario_d_redirect_upgrades_to_see_other(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    @patch("/users/{user_id:int}")
    async def update(request: Request[Any, Any, Any], user_id: int) -> Response[Any]:
        return redirect(request, f"/users/{user_id}")

    @put("/users/{user_id:int}/avatar")
    async def upload(request: Request[Any, Any, Any], user_id: int) -> Response[Any]:
        return redirect(request, "/users", status_code=301)

    @delete("/users/{user_id:int}", status_code=302)
    async def destroy(request: Request[Any, Any, Any], user_id: int) -> Response[Any]:
        return redirect(request, "/users")

    @post("/users")
    async def store(request: Request[Any, Any, Any]) -> Response[Any]:
        return redirect(request, "/users/1")

    with create_test_client(
        route_handlers=[update, upload, destroy, store], **_client_kwargs(inertia_plugin, template_config)
    ) as client:
        headers = {InertiaHeaders.ENABLED.value: "true"}
        response = client.patch("/users/1", headers=headers, follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == "/users/1"

        assert client.put("/users/1/avatar", headers=headers, follow_redirects=False).status_code == 301
        assert client.delete("/users/1", headers=headers, follow_redirects=False).status_code == 303
        assert client.post("/users", headers=headers, follow_redirects=False).status_code == 302


async def test_external_redirect_under_inertia(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    @get("/login/github")
    async def handler(request: Request[Any, Any, Any]) -> Response[Any]:
        return redirect(request, "https://github.com/login/oauth/authorize?client_id=abc")

    @get("/local")
    async def local(request: Request[Any, Any, Any]) -> Response[Any]:
        return redirect(request, "http://testserver.local/home")

    with create_test_client(
        route_handlers=[handler, local], **_client_kwargs(inertia_plugin, template_config)
    ) as client:
        response = client.get("/login/github", headers={InertiaHeaders.ENABLED.value: "true"}, follow_redirects=False)
        assert response.status_code == 409
        assert (
            response.headers[InertiaHeaders.LOCATION.value] == "https://github.com/login/oauth/authorize?client_id=abc"
        )

        response = client.get("/login/github", follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "https://github.com/login/oauth/authorize?client_id=abc"

        response = client.get("/local", headers={InertiaHeaders.ENABLED.value: "true"}, follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "http://testserver.local/home"


async def test_inertia_external_redirect(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    @get("/external", component="External")
    async def handler(request: Request[Any, Any, Any]) -> InertiaExternalRedirect:
        return InertiaExternalRedirect(request, "/external")

    with create_test_client(route_handlers=[handler], **_client_kwargs(inertia_plugin, template_config)) as client:
        response = client.get("/external", headers={InertiaHeaders.ENABLED.value: "true"}, follow_redirects=False)
        assert response.status_code == 409
        assert response.headers.get("X-Inertia-Location") == "/external"


async def test_inertia_back(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    @get("/back", component="Back")
    async def handler(request: Request[Any, Any, Any]) -> Response[Any]:
        return back(request)

    with create_test_client(route_handlers=[handler], **_client_kwargs(inertia_plugin, template_config)) as client:
        response = client.get(
            "/back", headers={InertiaHeaders.ENABLED.value: "true", "Referer": "/previous"}, follow_redirects=False
        )
        assert response.status_code == 302
        assert response.headers.get("location") == "/previous"

        response = client.get("/back", headers={InertiaHeaders.ENABLED.value: "true"}, follow_redirects=False)
        assert response.headers.get("location") == "/"

        response = client.get(
            "/back", headers={"Referer": "https://accounts.example.com/login"}, follow_redirects=False
        )
        assert response.status_code == 302
        assert response.headers.get("location") == "https://accounts.example.com/login"

        response = client.get(
            "/back",
            headers={InertiaHeaders.ENABLED.value: "true", "Referer": "https://accounts.example.com/login"},
            follow_redirects=False,
        )
        assert response.status_code == 409
        assert response.headers[InertiaHeaders.LOCATION.value] == "https://accounts.example.com/login"

        response = client.get(
            "/back", headers={"Referer": "http://testserver.local/users?page=2"}, follow_redirects=False
        )
        assert response.headers.get("location") == "http://testserver.local/users?page=2"


async def test_validation_error_redirects_back_with_errors(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    @post("/users", component="Users/Create")
    async def store(request: Request[Any, Any, Any]) -> dict[str, Any]:
        raise ValidationException(
            detail="Validation failed", extra=[{"key": "email", "message": "Invalid email for field `email`"}]
        )

    @get("/users/create", component="Users/Create")
    async def create(request: Request[Any, Any, Any]) -> dict[str, Any]:
        return {}

    with create_test_client(
        route_handlers=[store, create], **_client_kwargs(inertia_plugin, template_config)
    ) as client:
        response = client.post(
            "/users",
            headers={InertiaHeaders.ENABLED.value: "true", "Referer": "/users/create"},
            follow_redirects=False,
        )
        assert response.status_code == 302
        assert response.headers["location"] == "/users/create"

        props = client.get("/users/create", headers={InertiaHeaders.ENABLED.value: "true"}).json()["props"]
        assert props["errors"] == {"email": "Invalid email for field `email`"}
        assert props["flash"] == {"error": ["Validation failed"]}


async def test_unauthorized_redirects_to_login(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    inertia_plugin.config.redirect_unauthorized_to = "/login"

    @get("/protected", component="Protected")
    async def protected_handler(request: Request[Any, Any, Any]) -> dict[str, Any]:
        raise NotAuthorizedException(detail="Authentication required")

    with create_test_client(
        route_handlers=[protected_handler], **_client_kwargs(inertia_plugin, template_config)
    ) as client:
        response = client.get("/protected", headers={InertiaHeaders.ENABLED.value: "true"}, follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "/login"


async def test_not_found_redirect(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    inertia_plugin.config.redirect_404 = "/"

    @get("/users/{user_id:int}", component="Users/Show")
    async def show(request: Request[Any, Any, Any], user_id: int) -> dict[str, Any]:
        raise NotFoundException(detail="User not found")

    with create_test_client(route_handlers=[show], **_client_kwargs(inertia_plugin, template_config)) as client:
        response = client.get("/users/9", headers={InertiaHeaders.ENABLED.value: "true"}, follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "/"


async def test_resolver_error_is_server_error(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    def broken() -> None:
        raise RuntimeError("database is down")

    @get("/api/broken")
    async def handler(request: Request[Any, Any, Any]) -> dict[str, Any]:
        return {"value": always(broken)}

    with create_test_client(route_handlers=[handler], **_client_kwargs(inertia_plugin, template_config)) as client:
        response = client.get("/api/broken")
        assert response.status_code == 500


async def test_unhandled_error_text_is_not_exposed(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    @get("/reports", component="Reports/Index")
    async def handler(request: Request[Any, Any, Any]) -> dict[str, Any]:
        raise RuntimeError("connection to db-primary:5432 refused")

    with create_test_client(
        route_handlers=[handler], debug=False, **_client_kwargs(inertia_plugin, template_config)
    ) as client:
        response = client.get("/reports", headers={InertiaHeaders.ENABLED.value: "true"})
        assert response.status_code == 500
        props = response.json()["props"]
        assert props["status_code"] == 500
        assert props["message"] == "Internal Server Error"
        assert props["flash"] == {}
        assert "db-primary" not in response.text


async def test_unhandled_error_is_not_flashed_in_debug(
    inertia_plugin: InertiaPlugin,
    template_config: TemplateConfig,  # pyright: ignore[reportUnknownParameterType,reportMissingTypeArgument]
) -> None:
    @get("/reports", component="Reports/Index")
    async def handler(request: Request[Any, Any, Any]) -> dict[str, Any]:
        raise RuntimeError("connection refused")

    with create_test_client(
        route_handlers=[handler], debug=True, **_client_kwargs(inertia_plugin, template_config)
    ) as client:
        props = client.get("/reports", headers={InertiaHeaders.ENABLED.value: "true"}).json()["props"]
        assert props["message"] == "connection refused"
        assert props["flash"] == {}
