"""Named knowledge tools (search, policy lookup, human escalation) callable by name."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from .knowledge.knowledge_store import KnowledgeStore
from .knowledge.router import KnowledgeRouter, format_faq_pairs, format_policy

logger = logging.getLogger("support_bot.tools")

DEFAULT_HANDOFF_MESSAGE = (
    "I've flagged your conversation for our team to review. "
    "A human support agent will be with you shortly."
)
DEFAULT_ESCALATION_REASON = "Customer requested human assistance"

TOOL_DEFINITIONS: List[Dict[str, Any]] = [
    {
        "name": "product_search",
        "description": (
            "Search the product catalogue for products matching a query. Use this when customers "
            "ask about specific products, prices, availability, or product details."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Search query - can be product name, category, or keywords",
                }
            },
            "required": ["query"],
        },
    },
    {
        "name": "faq_search",
        "description": "Search frequently asked questions for answers to common customer questions.",
        "input_schema": {
            "type": "object",
            "properties": {"query": {"type": "string", "description": "Search query for FAQ lookup"}},
            "required": ["query"],
        },
    },
    {
        "name": "policy_lookup",
        "description": "Look up business policies such as returns, shipping, warranty, terms and conditions.",
        "input_schema": {
            "type": "object",
            "properties": {
                "topic": {
                    "type": "string",
                    "description": "Policy topic to look up (e.g., 'returns', 'shipping', 'warranty')",
                }
            },
            "required": ["topic"],
        },
    },
    {
        "name": "escalate_to_human",
        "description": (
            "Flag the conversation for human review. Use this when the customer explicitly asks to "
            "speak to a person, is frustrated, has a complex issue, or you cannot find the answer."
        ),
        "input_schema": {
            "type": "object",
            "properties": {"reason": {"type": "string", "description": "Reason for escalation"}},
            "required": ["reason"],
        },
    },
]


@dataclass
class ToolResult:
    success: bool
    result: Optional[str] = None
    error: Optional[str] = None


def get_tool_definition(name: str) -> Optional[Dict[str, Any]]:
    return next((tool for tool in TOOL_DEFINITIONS if tool["name"] == name), None)


def execute_tool(
    store: KnowledgeStore,
    tool_name: str,
    tool_input: Mapping[str, Optional[str]],
    currency_symbol: str = "£",
) -> ToolResult:
    """Purpose: Run one knowledge tool by name and render its text result.
    Inputs/Outputs: Inputs are the store, tool name, and {query/topic/reason}; output is
        a ToolResult.
    Side Effects / State: escalate_to_human writes a warning log line.
    Dependencies: KnowledgeStore lookups and the router's formatters.
    Failure Modes: Unknown tools and any error while running a tool come back as
        success=False with the error text; nothing is raised.
    If Removed: The tool endpoint and escalation handoff stop working.
    Testing Notes: Cover found/not-found for each tool and an unknown tool name.
    """
    try:
        if tool_name == "product_search":
            products = store.search_products(tool_input.get("query") or "")
            if not products:
                return ToolResult(
                    success=True,
                    result=(
                        "No products found matching that query. "
                        "Try a different search term or browse our categories."
                    ),
                )
            blocks = KnowledgeRouter(store, currency_symbol=currency_symbol).format_product_blocks(products)
            return ToolResult(success=True, result=f"Found {len(products)} product(s):\n\n{blocks}")

        if tool_name == "faq_search":
            faqs = store.search_faqs(tool_input.get("query") or "")
            if not faqs:
                return ToolResult(success=True, result="No FAQs found matching that query.")
            return ToolResult(success=True, result=format_faq_pairs(faqs))

        if tool_name == "policy_lookup":
            topic = tool_input.get("topic") or ""
            policy = store.lookup_policy(topic)
            if not policy:
                return ToolResult(
                    success=True,
                    result=(
                        f'No policy found for "{topic}". Try a different topic like '
                        "'returns', 'shipping', 'warranty', or 'terms'."
                    ),
                )
            return ToolResult(success=True, result=format_policy(policy))

        if tool_name == "escalate_to_human":
            return ToolResult(success=True, result=_escalate(store, tool_input.get("reason")))

        return ToolResult(success=False, error=f"Unknown tool: {tool_name}")
    except Exception as exc:  # noqa: BLE001 - tool failures are reported, not raised
        logger.exception("tool=%s failed", tool_name)
        return ToolResult(success=False, error=str(exc) or "Unknown error")


def _escalate(store: KnowledgeStore, reason: Optional[str]) -> str:
    contact = store.contact_info()
    logger.warning("ESCALATION reason=%s", reason or DEFAULT_ESCALATION_REASON)
    handoff = (contact.handoff_message if contact else "") or DEFAULT_HANDOFF_MESSAGE
    details = ""
    if contact:
        details = f"Business hours: {contact.business_hours}\nEmail: {contact.email}\nPhone: {contact.phone}"
    return f"{handoff}\n\n{details}"
