"""
ruote-client: Python client SDK for the ruote-kit workflow engine.

Example usage::

    from ruote_client import Agent

    agent = Agent("http://localhost:8080/_ruote")

    # Launch a process
    process = agent.launch_process(
        "http://example.com/defs/review.rb", {"document": "report.pdf"}
    )

    # Work on the items waiting for alice
    for workitem in agent.workitems(participant="alice"):
        agent.proceed_workitem(workitem.with_fields(approved=True))
"""

from ruote_client.client import Agent
from ruote_client.config import ClientSettings
from ruote_client.errors import (
    ConflictError,
    ProtocolError,
    RuoteError,
    TransportError,
    ValidationError,
)
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

__all__ = [
    "Agent",
    "ClientSettings",
    "ConflictError",
    "Expression",
    "Fields",
    "FlowExpressionId",
    "HttpTransport",
    "JSONValue",
    "LaunchItem",
    "Process",
    "ProtocolError",
    "RuoteError",
    "TransportError",
    "ValidationError",
    "Workitem",
]

__version__ = "0.1.0"
