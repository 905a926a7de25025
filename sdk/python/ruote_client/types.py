"""Type definitions for the ruote-kit client.

Entities are snapshots of server state. They are never updated in place;
fetch them again (``reload()``) to observe server-side changes. Each entity
keeps a weak reference to the :class:`~ruote_client.client.Agent` that
fetched it so follow-up calls do not need the agent passed around.

Entities hash on their identifying fields only; JSON payload fields
(workitem fields, variables, trees) take part in equality but not in the hash.
"""

from __future__ import annotations

import json
import weakref
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Union
from urllib.parse import urlparse

from ruote_client.errors import RuoteError

if TYPE_CHECKING:
    from ruote_client.client import Agent

JSONValue = Union[
    str, int, float, bool, None, list["JSONValue"], dict[str, "JSONValue"]
]
Fields = dict[str, JSONValue]

_URL_SCHEMES = ("http", "https", "file")


def is_definition_url(value: str) -> bool:
    """Return True if ``value`` reads as a URL pointing at a definition."""
    if not value or any(c.isspace() for c in value):
        return False
    parsed = urlparse(value)
    if parsed.scheme not in _URL_SCHEMES:
        return False
    return bool(parsed.netloc or parsed.path)


@dataclass
class LaunchItem:
    """What to launch: a process definition plus initial workitem fields.

    Exactly one of ``definition`` (inline source or a tree) and
    ``definition_url`` must be set for the item to be valid.
    """

    definition: str | list[Any] | None = None
    definition_url: str | None = None
    fields: Fields = field(default_factory=dict)
    variables: Fields = field(default_factory=dict)

    @classmethod
    def from_source(
        cls,
        source: Any,
        fields: Fields | None = None,
        variables: Fields | None = None,
    ) -> LaunchItem:
        """Build a launch item from a raw definition or a definition URL."""
        fields = dict(fields or {})
        variables = dict(variables or {})
        if isinstance(source, str) and is_definition_url(source.strip()):
            return cls(
                definition_url=source.strip(), fields=fields, variables=variables
            )
        if isinstance(source, (str, list)):
            return cls(definition=source, fields=fields, variables=variables)
        return cls(fields=fields, variables=variables)

    @property
    def has_definition(self) -> bool:
        if isinstance(self.definition, str):
            return bool(self.definition.strip())
        return bool(self.definition)

    @property
    def has_definition_url(self) -> bool:
        return self.definition_url is not None and is_definition_url(
            self.definition_url
        )

    @property
    def valid(self) -> bool:
        # Both set is ambiguous.
        return self.has_definition != self.has_definition_url

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "definition": self.definition
            if self.has_definition
            else self.definition_url,
            "fields": self.fields,
        }
        if self.variables:
            body["variables"] = self.variables
        return body

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass(frozen=True)
class FlowExpressionId:
    """Address of one step in a process: process id plus expression id."""

    wfid: str
    expid: str
    engine_id: str = "engine"
    sub_wfid: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FlowExpressionId:
        return cls(
            wfid=data["wfid"],
            expid=data["expid"],
            engine_id=data.get("engine_id", "engine"),
            sub_wfid=data.get("sub_wfid", data.get("subid")),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "wfid": self.wfid,
            "expid": self.expid,
            "engine_id": self.engine_id,
        }
        if self.sub_wfid is not None:
            data["sub_wfid"] = self.sub_wfid
        return data


class _AgentBound:
    """Mixin giving entities access to the agent that produced them."""

    _agent: weakref.ReferenceType[Agent] | None

    @property
    def agent(self) -> Agent | None:
        if self._agent is None:
            return None
        return self._agent()

    def _require_agent(self) -> Agent:
        agent = self.agent
        if agent is None:
            raise RuoteError("agent is no longer available")
        return agent


@dataclass(frozen=True)
class Process(_AgentBound):
    """Represents one process instance as currently known to the server."""

    wfid: str
    definition_name: str | None = None
    definition_revision: str | None = None
    launched_time: str | None = None
    last_active: str | None = None
    tags: dict[str, Any] = field(default_factory=dict, hash=False)
    variables: Fields = field(default_factory=dict, hash=False)
    errors: list[Any] = field(default_factory=list, hash=False)
    original_tree: list[Any] | None = field(default=None, hash=False)
    current_tree: list[Any] | None = field(default=None, hash=False)
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)
    _agent: weakref.ReferenceType[Agent] | None = field(
        default=None, repr=False, compare=False
    )

    def reload(self) -> Process:
        return self._require_agent().find_process(self.wfid)

    def cancel(self) -> Any:
        return self._require_agent().cancel_process(self.wfid)

    def kill(self) -> Any:
        return self._require_agent().kill_process(self.wfid)

    def workitems(self, **options: Any) -> list[Workitem]:
        return self._require_agent().workitems(process=self, **options)

    def expressions(self) -> list[Expression]:
        return self._require_agent().expressions(self)


@dataclass(frozen=True)
class Workitem(_AgentBound):
    """Application data attached to one waiting step of a process."""

    fei: FlowExpressionId
    fields: Fields = field(default_factory=dict, hash=False)
    participant_name: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)
    _agent: weakref.ReferenceType[Agent] | None = field(
        default=None, repr=False, compare=False
    )

    @property
    def wfid(self) -> str:
        return self.fei.wfid

    @property
    def expid(self) -> str:
        return self.fei.expid

    def with_fields(self, **changes: JSONValue) -> Workitem:
        """Return a copy whose fields are merged with ``changes``."""
        return replace(self, fields={**self.fields, **changes})

    def reload(self) -> Workitem:
        return self._require_agent().find_workitem(self.wfid, self.expid)

    def process(self) -> Process:
        return self._require_agent().find_process(self.wfid)

    def update(self) -> bool:
        return self._require_agent().update_workitem(self)

    def update_strict(self) -> bool:
        return self._require_agent().update_workitem_strict(self)

    def proceed(self) -> bool:
        return self._require_agent().proceed_workitem(self)

    def proceed_strict(self) -> bool:
        return self._require_agent().proceed_workitem_strict(self)


@dataclass(frozen=True)
class Expression(_AgentBound):
    """One node of a process's execution tree."""

    fei: FlowExpressionId
    name: str | None = None
    parent_id: FlowExpressionId | None = None
    original_tree: list[Any] | None = field(default=None, hash=False)
    variables: Fields | None = field(default=None, hash=False)
    applied_workitem: dict[str, Any] | None = field(default=None, hash=False)
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)
    _agent: weakref.ReferenceType[Agent] | None = field(
        default=None, repr=False, compare=False
    )

    @property
    def wfid(self) -> str:
        return self.fei.wfid

    @property
    def expid(self) -> str:
        return self.fei.expid

    def reload(self) -> Expression:
        return self._require_agent().find_expression(self.wfid, self.expid)

    def cancel(self) -> bool:
        return self._require_agent().cancel_expression(self)

    def kill(self) -> bool:
        return self._require_agent().kill_expression(self)
