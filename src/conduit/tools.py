"""Tool declarations: caller function tools and server-hosted built-in tools.

Built-in tools are a closed sum type. Each variant is a frozen dataclass with
a ``kind`` discriminator matching its wire ``type``; a variant only carries
the fields that make sense for it, so nothing from one tag can leak into
another tag's payload.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Literal

from conduit.errors import ConfigurationError

ApprovalMode = Literal["always", "never"]

# Connector ids for RemoteToolServer.connector().
CONNECTOR_DROPBOX = "connector_dropbox"
CONNECTOR_GMAIL = "connector_gmail"
CONNECTOR_GOOGLE_CALENDAR = "connector_googlecalendar"
CONNECTOR_GOOGLE_DRIVE = "connector_googledrive"
CONNECTOR_MICROSOFT_TEAMS = "connector_microsoftteams"
CONNECTOR_OUTLOOK_CALENDAR = "connector_outlookcalendar"
CONNECTOR_OUTLOOK_EMAIL = "connector_outlookemail"
CONNECTOR_SHAREPOINT = "connector_sharepoint"


@dataclass(frozen=True)
class FunctionTool:
    """A caller-implemented function the model may call."""

    name: str
    description: str | None = None
    #: JSON Schema for the arguments object.
    parameters: dict[str, Any] | None = None
    strict: bool = False

    def __post_init__(self) -> None:
        """Reject nameless tools early."""
        if not isinstance(self.name, str) or not self.name.strip():
            raise ConfigurationError(
                "FunctionTool.name must be a non-empty string",
                hint="Pass FunctionTool(name='get_weather', parameters={...}).",
            )


@dataclass(frozen=True)
class UserLocation:
    """Approximate location for geo-targeted web search."""

    country: str | None = None
    city: str | None = None
    region: str | None = None
    timezone: str | None = None


@dataclass(frozen=True)
class WebSearch:
    """Hosted web search."""

    kind: ClassVar[str] = "web_search"

    user_location: UserLocation | None = None
    allowed_domains: tuple[str, ...] = ()


@dataclass(frozen=True)
class FileSearch:
    """Hosted search over vector stores."""

    kind: ClassVar[str] = "file_search"

    vector_store_ids: tuple[str, ...] = ()
    #: Backend default when None (10; at most 50).
    max_num_results: int | None = None
    #: Attribute filter object, passed through as-is.
    filters: dict[str, Any] | None = None


@dataclass(frozen=True)
class CodeInterpreter:
    """Sandboxed code execution.

    With ``container_id`` an existing container is reused; otherwise an
    ``auto`` container is requested with the optional memory limit and files.
    """

    kind: ClassVar[str] = "code_interpreter"

    container_id: str | None = None
    #: "1g", "4g", "16g" or "64g".
    memory_limit: str | None = None
    file_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class RemoteToolServer:
    """A remote MCP server or a vendor-hosted connector."""

    kind: ClassVar[str] = "mcp"

    server_label: str
    server_url: str | None = None
    server_description: str | None = None
    connector_id: str | None = None
    authorization: str | None = field(default=None, repr=False)
    #: "always", "never", or a structured approval filter.
    require_approval: ApprovalMode | dict[str, Any] | None = "never"
    allowed_tools: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Require a label and exactly one way to reach the server."""
        if not self.server_label:
            raise ConfigurationError(
                "RemoteToolServer.server_label must be non-empty",
                hint="Labels identify the server in tool-call results.",
            )
        if not self.server_url and not self.connector_id:
            raise ConfigurationError(
                "RemoteToolServer needs server_url or connector_id",
                hint="Use RemoteToolServer(label, server_url=...) or "
                "RemoteToolServer.connector(label, connector_id, token).",
            )

    @classmethod
    def connector(
        cls, label: str, connector_id: str, authorization: str
    ) -> RemoteToolServer:
        """Build a tool server backed by a hosted connector (Gmail, Drive, ...)."""
        return cls(
            server_label=label,
            connector_id=connector_id,
            authorization=authorization,
        )


@dataclass(frozen=True)
class ImageGeneration:
    """Hosted image generation."""

    kind: ClassVar[str] = "image_generation"

    #: "1024x1024", "1024x1536", "auto", ...
    size: str | None = None
    #: "low", "medium", "high" or "auto".
    quality: str | None = None
    #: "png", "jpeg" or "webp".
    output_format: str | None = None
    #: 1-100, JPEG/WebP only. 0 counts as unset and is left off the wire.
    compression: int | None = None
    #: "transparent", "opaque" or "auto".
    background: str | None = None
    #: 1-3, streaming only.
    partial_images: int | None = None


@dataclass(frozen=True)
class ComputerUse:
    """Computer-control action loop; the caller executes the actions."""

    kind: ClassVar[str] = "computer_use_preview"

    display_width: int | None = None
    display_height: int | None = None
    #: "browser", "mac", "windows" or "ubuntu".
    environment: str | None = None


@dataclass(frozen=True)
class Shell:
    """Shell command execution; the caller runs the commands."""

    kind: ClassVar[str] = "shell"


@dataclass(frozen=True)
class ApplyPatch:
    """Structured file patching; the caller applies the operations."""

    kind: ClassVar[str] = "apply_patch"


BuiltinTool = (
    WebSearch
    | FileSearch
    | CodeInterpreter
    | RemoteToolServer
    | ImageGeneration
    | ComputerUse
    | Shell
    | ApplyPatch
)

BUILTIN_TOOL_TYPES: tuple[type, ...] = (
    WebSearch,
    FileSearch,
    CodeInterpreter,
    RemoteToolServer,
    ImageGeneration,
    ComputerUse,
    Shell,
    ApplyPatch,
)
