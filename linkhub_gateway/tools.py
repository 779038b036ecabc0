"""Tool catalog and execution engine.

Read tools (``get_profile``, ``list_links``, ``list_services``) are public.
Transactional tools (``send_message``, ``request_quote``) need a credential
carrying the ``inquire`` permission; the dispatcher enforces that before the
engine runs.

Domain failures (bad arguments, unknown service, missing profile) are
returned as tool results with ``isError: true``. Anything unexpected
propagates to the dispatcher.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import jsonschema
from jsonschema.exceptions import best_match

from . import metrics
from .auth import AuthResult
from .demo import is_demo
from .ops_stats import OPS_STATS
from .profiles import ProfileReader, link_views, service_views
from .store import ProfileStore

logger = logging.getLogger("linkhub_gateway.tools")

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
INQUIRY_SOURCE = "agent"


@dataclass
class ToolContext:
    username: str
    auth: Optional[AuthResult]
    reader: ProfileReader
    store: ProfileStore


ToolHandler = Callable[[ToolContext, Dict[str, Any]], Dict[str, Any]]


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    input_schema: Dict[str, Any]
    handler: ToolHandler
    auth_required: bool = False
    permission: Optional[str] = None

    def listing(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description, "inputSchema": self.input_schema}


# ---------------------------
# Result helpers
# ---------------------------

def text_result(text: str, structured: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    result: Dict[str, Any] = {"content": [{"type": "text", "text": text}]}
    if structured is not None:
        result["structuredContent"] = structured
    return result


def tool_error(text: str) -> Dict[str, Any]:
    return {"content": [{"type": "text", "text": text}], "isError": True}


def _profile_not_found(username: str) -> Dict[str, Any]:
    return tool_error(f'Profile "{username}" not found.')


# ---------------------------
# Read tools
# ---------------------------

def _get_profile(ctx: ToolContext, args: Dict[str, Any]) -> Dict[str, Any]:
    snap = ctx.reader.load(ctx.username)
    if snap is None:
        return _profile_not_found(ctx.username)

    summary = snap.summary()
    stats = summary["stats"]
    text = "\n".join([
        f"# {summary['display_name']}",
        "",
        snap.profile.bio or "",
        "",
        f"**Username:** @{snap.profile.username}",
        f"**Avatar:** {summary['avatar_url'] or 'None'}",
        f"**Verified:** {'Yes' if summary['verified'] else 'No'}",
        "",
        "## Stats",
        f"- Links: {stats['links']}",
        f"- Social accounts: {stats['social_accounts']}",
        f"- Services: {stats['services']}",
        "",
        "## Web Profile",
        snap.web_url,
    ])
    return text_result(text, summary)


def format_links_text(username: str, links: List[Dict[str, Any]], markdown: bool = True) -> str:
    if not links:
        return "No active links."
    title = "**{}**" if markdown else "{}"
    lines = [
        f"{i}. {l['icon']} {title.format(l['title'])}\n   {l['url']}\n   Clicks: {l['click_count']}"
        for i, l in enumerate(links, start=1)
    ]
    header = f"# Links for @{username}" if markdown else f"Links for @{username}"
    return header + "\n\n" + "\n\n".join(lines)


def format_services_text(username: str, services: List[Dict[str, Any]], markdown: bool = True) -> str:
    if not services:
        return "No active services."
    title = "**{}**" if markdown else "{}"
    blocks = []
    for i, s in enumerate(services, start=1):
        blocks.append("\n".join([
            f"{i}. {title.format(s['title'])} ({s['category']})",
            f"   {s['description'] or 'No description'}",
            f"   Price: {s['price']}",
            f"   Action: {s['action_type']}",
            f"   ID: {s['id']}",
        ]))
    header = f"# Services offered by @{username}" if markdown else f"Services offered by @{username}"
    return header + "\n\n" + "\n\n".join(blocks)


def _list_links(ctx: ToolContext, args: Dict[str, Any]) -> Dict[str, Any]:
    snap = ctx.reader.load(ctx.username)
    if snap is None:
        return _profile_not_found(ctx.username)
    links = link_views(snap.profile)
    return text_result(format_links_text(ctx.username, links), {"links": links})


def _list_services(ctx: ToolContext, args: Dict[str, Any]) -> Dict[str, Any]:
    snap = ctx.reader.load(ctx.username)
    if snap is None:
        return _profile_not_found(ctx.username)
    services = service_views(snap.services)
    return text_result(format_services_text(ctx.username, services), {"services": services})


# ---------------------------
# Transactional tools
# ---------------------------

def _missing_fields(args: Dict[str, Any], required: List[str]) -> bool:
    return any(not isinstance(args.get(k), str) or not args.get(k).strip() for k in required)


def _submit_inquiry(ctx: ToolContext, service_id: str, args: Dict[str, Any], message: str, label: str) -> Dict[str, Any]:
    profile_id = ctx.store.get_profile_id(ctx.username)
    if profile_id is None:
        return _profile_not_found(ctx.username)

    service = ctx.store.get_service(service_id)
    if service is None or service.profile_id != profile_id:
        return tool_error(f"Service not found: {service_id}")
    if not service.is_active:
        return tool_error("This service is not currently available.")

    key_id = ctx.auth.key_id if ctx.auth is not None else None
    inquiry = ctx.store.insert_inquiry(
        service_id=service.id,
        profile_id=profile_id,
        sender_name=args["sender_name"].strip(),
        sender_email=args["sender_email"].strip(),
        message=message,
        source=INQUIRY_SOURCE,
        agent_identifier=f"mcp-api:{key_id}" if key_id else "mcp-api",
    )
    OPS_STATS.record_inquiry()
    logger.info("inquiry %s stored for service_id=%s key_id=%s", inquiry.id, service.id, key_id)
    return text_result(
        f"{label} successfully.\nInquiry ID: {inquiry.id}\nCreated: {inquiry.created_at}",
        {"inquiry_id": inquiry.id, "created_at": inquiry.created_at},
    )


def _validate_contact(args: Dict[str, Any], required: List[str]) -> Optional[Dict[str, Any]]:
    if _missing_fields(args, required):
        return tool_error("Missing required fields: " + ", ".join(required))
    if not EMAIL_RE.match(args["sender_email"].strip()):
        return tool_error("Invalid email format.")
    return None


def _send_message(ctx: ToolContext, args: Dict[str, Any]) -> Dict[str, Any]:
    err = _validate_contact(args, ["service_id", "sender_name", "sender_email", "message"])
    if err is not None:
        return err
    if is_demo(ctx.username):
        return text_result(
            "Message received (demo mode). In production, this would be delivered to the user's inbox.",
            {"demo": True},
        )
    return _submit_inquiry(ctx, args["service_id"].strip(), args, args["message"], "Message sent")


def build_quote_message(project_description: str, budget_range: str = "", timeline: str = "") -> str:
    parts = ["[Quote Request]", "", f"**Project:** {project_description}"]
    if budget_range:
        parts.append(f"**Budget:** {budget_range}")
    if timeline:
        parts.append(f"**Timeline:** {timeline}")
    return "\n".join(parts)


def _request_quote(ctx: ToolContext, args: Dict[str, Any]) -> Dict[str, Any]:
    err = _validate_contact(args, ["service_id", "sender_name", "sender_email", "project_description"])
    if err is not None:
        return err
    if is_demo(ctx.username):
        return text_result(
            "Quote request received (demo mode). In production, this would be delivered to the user's inbox.",
            {"demo": True},
        )
    message = build_quote_message(
        args["project_description"],
        str(args.get("budget_range") or ""),
        str(args.get("timeline") or ""),
    )
    return _submit_inquiry(ctx, args["service_id"].strip(), args, message, "Quote request submitted")


# ---------------------------
# Catalog
# ---------------------------

_NO_ARGS = {"type": "object", "properties": {}, "required": []}

_CONTACT_PROPS = {
    "service_id": {"type": "string", "description": "The ID of the service to contact about"},
    "sender_name": {"type": "string", "description": "Name of the person or agent sending the inquiry"},
    "sender_email": {"type": "string", "format": "email", "description": "Contact email for the reply"},
}


def _catalog() -> Dict[str, ToolDefinition]:
    tools = [
        ToolDefinition(
            name="get_profile",
            description=(
                "Get the full profile of this LinkHub user, including display name, bio, avatar "
                "and summary stats. This is the best starting point for understanding who this person is."
            ),
            input_schema=_NO_ARGS,
            handler=_get_profile,
        ),
        ToolDefinition(
            name="list_links",
            description=(
                "List all active links on this profile. Returns title, URL, icon and click count "
                "for each link, sorted by position."
            ),
            input_schema=_NO_ARGS,
            handler=_list_links,
        ),
        ToolDefinition(
            name="list_services",
            description=(
                "List all active services offered by this user. Returns title, description, category, "
                "pricing info and available actions for each service."
            ),
            input_schema=_NO_ARGS,
            handler=_list_services,
        ),
        ToolDefinition(
            name="send_message",
            description=(
                'Send an inquiry message to a specific service offered by this user. Requires "inquire" '
                "permission on the API key. The user will receive the message in their dashboard."
            ),
            input_schema={
                "type": "object",
                "properties": {
                    **_CONTACT_PROPS,
                    "message": {"type": "string", "description": "The inquiry message content"},
                },
                "required": ["service_id", "sender_name", "sender_email", "message"],
            },
            handler=_send_message,
            auth_required=True,
            permission="inquire",
        ),
        ToolDefinition(
            name="request_quote",
            description=(
                "Request a price quote for a specific service. Similar to send_message but specifically "
                'for pricing inquiries. Requires "inquire" permission on the API key.'
            ),
            input_schema={
                "type": "object",
                "properties": {
                    **_CONTACT_PROPS,
                    "project_description": {
                        "type": "string",
                        "description": "Description of the project or requirements for accurate quoting",
                    },
                    "budget_range": {
                        "type": "string",
                        "description": 'Optional budget range (e.g. "$1k-5k", "under $500")',
                    },
                    "timeline": {"type": "string", "description": "Desired timeline or deadline"},
                },
                "required": ["service_id", "sender_name", "sender_email", "project_description"],
            },
            handler=_request_quote,
            auth_required=True,
            permission="inquire",
        ),
    ]
    return {t.name: t for t in tools}


TOOLS: Dict[str, ToolDefinition] = _catalog()
_VALIDATORS = {name: jsonschema.Draft202012Validator(t.input_schema) for name, t in TOOLS.items()}


def list_tools() -> List[Dict[str, Any]]:
    return [t.listing() for t in TOOLS.values()]


def _argument_type_error(tool: ToolDefinition, args: Dict[str, Any]) -> Optional[str]:
    """First schema violation other than a missing field, or None.

    Missing fields are reported by the handlers with their own message.
    """
    validator = _VALIDATORS.get(tool.name) or jsonschema.Draft202012Validator(tool.input_schema)
    errors = [e for e in validator.iter_errors(args) if e.validator != "required"]
    if not errors:
        return None
    err = best_match(errors)
    field_path = ".".join(str(p) for p in err.absolute_path)
    return f"{field_path}: {err.message}" if field_path else err.message


@dataclass
class ToolExecutionEngine:
    store: ProfileStore
    reader: ProfileReader
    tools: Dict[str, ToolDefinition] = field(default_factory=lambda: TOOLS)

    def get(self, name: str) -> Optional[ToolDefinition]:
        return self.tools.get(name)

    def execute(
        self,
        name: str,
        arguments: Optional[Dict[str, Any]],
        auth: Optional[AuthResult],
        username: str,
    ) -> Dict[str, Any]:
        tool = self.tools[name]
        args = dict(arguments or {})
        type_error = _argument_type_error(tool, args)
        if type_error is not None:
            result = tool_error(f"Invalid arguments: {type_error}")
        else:
            ctx = ToolContext(username=username, auth=auth, reader=self.reader, store=self.store)
            result = tool.handler(ctx, args)
        outcome = "tool_error" if result.get("isError") else "ok"
        metrics.record_tool_call(name, outcome)
        OPS_STATS.record_tool_call(name, outcome)
        return result
