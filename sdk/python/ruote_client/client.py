"""ruote-kit client implementation using httpx."""

from __future__ import annotations

import json
import logging
import threading
import weakref
from collections.abc import Callable, Iterable, Mapping
from typing import Any, TypeVar
from urllib.parse import quote, urlparse

import httpx

from ruote_client.config import ClientSettings
from ruote_client.errors import ConflictError, ProtocolError, ValidationError
from ruote_client.transport import HttpTransport
from ruote_client.types import (
    Expression,
    Fields,
    FlowExpressionId,
    JSONValue,
    LaunchItem,
    Process,
    Workitem,
)

logger = logging.getLogger(__name__)

_INVALID_RESPONSE = "Invalid response from server"

_Entity = TypeVar("_Entity", Process, Workitem, Expression)


class Agent:
    """Client for driving a ruote-kit workflow engine.

    Args:
        url: Base URL of ruote-kit, including its mount path
            (e.g., "http://localhost:8080/_ruote").
        timeout: Request timeout in seconds (default: 30).
        api_key: Optional API key sent as a bearer token.
        client: Optional ``httpx.Client`` to send requests through; the
            caller keeps ownership of it.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 30.0,
        api_key: str | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        parsed = urlparse(url)
        self.url = url
        self.path = parsed.path[:-1] if parsed.path.endswith("/") else parsed.path
        self._origin = f"{parsed.scheme}://{parsed.netloc}"
        self._timeout = timeout
        self._api_key = api_key
        self._client = client
        self._transport: HttpTransport | None = None
        self._transport_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: ClientSettings | None = None) -> Agent:
        """Build an agent from ``RUOTE_*`` environment settings."""
        settings = settings or ClientSettings()
        return cls(settings.url, timeout=settings.timeout, api_key=settings.api_key)

    @property
    def transport(self) -> HttpTransport:
        """The HTTP transport, created on first use and reused afterwards."""
        if self._transport is None:
            with self._transport_lock:
                if self._transport is None:
                    self._transport = HttpTransport(
                        self._origin,
                        timeout=self._timeout,
                        api_key=self._api_key,
                        client=self._client,
                    )
        return self._transport

    def close(self) -> None:
        """Close the underlying HTTP client if the agent created it.

        The agent stays usable: the next call builds a fresh transport, on the
        injected ``client`` if one was given, so that client must still be open.
        """
        with self._transport_lock:
            if self._transport is not None:
                self._transport.close()
                self._transport = None

    def __enter__(self) -> Agent:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Agent({self.url!r})"

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Mapping[str, str] | None = None,
    ) -> Any:
        return self.transport.request(
            method, self.path + path, json=json, params=params
        )

    # ---- Processes ----

    def launch_process(
        self,
        item: LaunchItem | str | list[Any],
        fields: Fields | None = None,
        *,
        variables: Fields | None = None,
    ) -> Process:
        """Launch a process and return it as freshly fetched from the server.

        ``item`` is either a ready :class:`LaunchItem` or a raw definition
        (source text, tree, or URL), in which case ``fields`` and
        ``variables`` seed the launch item built from it.
        """
        if isinstance(item, LaunchItem):
            launch_item = item
        else:
            launch_item = LaunchItem.from_source(item, fields, variables)

        if not launch_item.valid:
            raise ValidationError("Launch item not valid")

        data = self._request("POST", "/processes", json=launch_item.to_dict())
        wfid = _require(data, "launched")
        logger.debug("launched process %s", wfid)
        return self.find_process(wfid)

    def processes(self) -> list[Process]:
        """List all processes, in server order."""
        data = self._request("GET", "/processes")
        return [
            _parse(_parse_process, p, self)
            for p in _require_list(data, "processes")
        ]

    def find_process(self, wfid: str) -> Process:
        """Get a single process by wfid."""
        data = self._request("GET", f"/processes/{wfid}")
        return _parse(_parse_process, _require(data, "process"), self)

    def cancel_process(self, wfid: str) -> Any:
        """Request graceful termination of a process.

        The server's response is returned as-is, without validation.
        """
        return self._request("DELETE", f"/processes/{wfid}")

    def kill_process(self, wfid: str) -> Any:
        """Request immediate termination of a process.

        The server's response is returned as-is, without validation.
        """
        return self._request("DELETE", f"/processes/{wfid}", params={"_kill": "1"})

    # ---- Workitems ----

    def workitems(
        self,
        *,
        process: Process | None = None,
        wfid: str | None = None,
        participant: str | Iterable[Any] | None = None,
        fields: Mapping[str, JSONValue] | None = None,
    ) -> list[Workitem]:
        """List workitems, optionally narrowed to one process.

        Args:
            process: Only list workitems of this process. Takes precedence
                over ``wfid``.
            wfid: Only list workitems of the process with this id.
            participant: A participant name, or several, to filter on.
            fields: Field values to filter on; non-string values are
                matched on their JSON encoding.
        """
        path = "/workitems"
        if process is not None:
            if wfid is not None:
                logger.warning(
                    "both process %s and wfid %s given, using the process",
                    process.wfid,
                    wfid,
                )
            path += f"/{process.wfid}"
        elif wfid is not None:
            path += f"/{wfid}"

        params: dict[str, str] = {}
        if participant is not None:
            names = _flatten([participant])
            params["participant"] = quote(",".join(names), safe=",")
        if fields:
            for key, value in fields.items():
                params[quote(str(key), safe="")] = _encode_field_param(value)

        data = self._request("GET", path, params=params)
        return [
            _parse(_parse_workitem, w, self)
            for w in _require_list(data, "workitems")
        ]

    def find_workitem(self, wfid: str, expid: str) -> Workitem:
        """Get a single workitem by wfid and expid."""
        data = self._request("GET", f"/workitems/{wfid}/{expid}")
        return _parse(_parse_workitem, _require(data, "workitem"), self)

    def update_workitem_strict(self, workitem: Workitem) -> bool:
        """Save a workitem's fields, raising ``ConflictError`` if not applied."""
        return self._put_workitem(workitem, {"fields": workitem.fields})

    def update_workitem(self, workitem: Workitem) -> bool:
        """Save a workitem's fields; return False on any failure."""
        try:
            return self.update_workitem_strict(workitem)
        except Exception as exc:
            logger.debug(
                "update of workitem %r failed: %r", workitem, exc
            )
            return False

    def proceed_workitem_strict(self, workitem: Workitem) -> bool:
        """Save a workitem's fields and let its process move on.

        Raises ``ConflictError`` if the server did not apply the fields.
        """
        return self._put_workitem(
            workitem, {"fields": workitem.fields, "_proceed": "1"}
        )

    def proceed_workitem(self, workitem: Workitem) -> bool:
        """Proceed a workitem; return False on any failure."""
        try:
            return self.proceed_workitem_strict(workitem)
        except Exception as exc:
            logger.debug(
                "proceed of workitem %r failed: %r", workitem, exc
            )
            return False

    def _put_workitem(self, workitem: Workitem, body: dict[str, Any]) -> bool:
        data = self._request(
            "PUT", f"/workitems/{workitem.wfid}/{workitem.expid}", json=body
        )
        echoed = data.get("workitem") if isinstance(data, dict) else None
        if isinstance(echoed, dict) and _same_json(
            echoed.get("fields"), body["fields"]
        ):
            return True
        raise ConflictError(
            f"Workitem {workitem.wfid}/{workitem.expid} was not updated"
        )

    # ---- Expressions ----

    def expressions(self, process: Process | str) -> list[Expression]:
        """List the expressions of a process."""
        wfid = process if isinstance(process, str) else process.wfid
        data = self._request("GET", f"/expressions/{wfid}")
        return [
            _parse(_parse_expression, e, self)
            for e in _require_list(data, "expressions")
        ]

    def find_expression(self, wfid: str, expid: str) -> Expression:
        """Get a single expression by wfid and expid."""
        data = self._request("GET", f"/expressions/{wfid}/{expid}")
        return _parse(_parse_expression, _require(data, "expression"), self)

    def cancel_expression(self, expression: Expression) -> bool:
        """Cancel an expression (and the branch below it)."""
        return self._delete_expression(expression)

    def kill_expression(self, expression: Expression) -> bool:
        """Kill an expression, skipping its on_cancel handlers."""
        return self._delete_expression(expression, {"_kill": "1"})

    def _delete_expression(
        self, expression: Expression, params: dict[str, str] | None = None
    ) -> bool:
        data = self._request(
            "DELETE",
            f"/expressions/{expression.wfid}/{expression.expid}",
            params=params,
        )
        if isinstance(data, dict) and data.get("status") == "ok":
            return True
        raise ProtocolError(
            f"Expression {expression.wfid}/{expression.expid} was not deleted"
        )


# ---- Validation and encoding helpers ----


def _require(data: Any, key: str) -> Any:
    if not isinstance(data, dict) or data.get(key) is None:
        raise ProtocolError(_INVALID_RESPONSE)
    return data[key]


def _require_list(data: Any, key: str) -> list[Any]:
    value = _require(data, key)
    if not isinstance(value, list):
        raise ProtocolError(_INVALID_RESPONSE)
    return value


def _flatten(values: Iterable[Any]) -> list[str]:
    names: list[str] = []
    for value in values:
        if isinstance(value, str):
            names.append(value)
        elif isinstance(value, Iterable):
            names.extend(_flatten(value))
        else:
            names.append(str(value))
    return names


def _encode_field_param(value: JSONValue) -> str:
    if not isinstance(value, str):
        value = json.dumps({"value": value}, separators=(",", ":"))
    return quote(value, safe="")


def _same_json(a: Any, b: Any) -> bool:
    """Deep equality that keeps JSON types apart (``true`` is not ``1``)."""
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(_same_json(a[k], b[k]) for k in a)
    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(_same_json(x, y) for x, y in zip(a, b))
    if isinstance(a, (dict, list)) or isinstance(b, (dict, list)):
        return False
    return a == b


# ---- Parsing helpers ----


def _parse(
    parser: Callable[[dict[str, Any], Agent], _Entity], data: Any, agent: Agent
) -> _Entity:
    if not isinstance(data, dict):
        raise ProtocolError(_INVALID_RESPONSE)
    try:
        return parser(data, agent)
    except (KeyError, TypeError, AttributeError) as exc:
        raise ProtocolError(_INVALID_RESPONSE) from exc


def _parse_process(data: dict[str, Any], agent: Agent) -> Process:
    return Process(
        wfid=data["wfid"],
        definition_name=data.get("definition_name"),
        definition_revision=data.get("definition_revision"),
        launched_time=data.get("launched_time"),
        last_active=data.get("last_active"),
        tags=data.get("tags") or {},
        variables=data.get("variables") or {},
        errors=data.get("errors") or [],
        original_tree=data.get("original_tree"),
        current_tree=data.get("current_tree"),
        raw=data,
        _agent=weakref.ref(agent),
    )


def _parse_workitem(data: dict[str, Any], agent: Agent) -> Workitem:
    return Workitem(
        fei=FlowExpressionId.from_dict(data["fei"]),
        fields=data.get("fields") or {},
        participant_name=data.get("participant_name"),
        raw=data,
        _agent=weakref.ref(agent),
    )


def _parse_expression(data: dict[str, Any], agent: Agent) -> Expression:
    parent = data.get("parent_id")
    return Expression(
        fei=FlowExpressionId.from_dict(data["fei"]),
        name=data.get("name"),
        parent_id=FlowExpressionId.from_dict(parent) if parent else None,
        original_tree=data.get("original_tree"),
        variables=data.get("variables"),
        applied_workitem=data.get("applied_workitem"),
        raw=data,
        _agent=weakref.ref(agent),
    )
