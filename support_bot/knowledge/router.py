"""Keyword routing from a raw customer message to a formatted knowledge block."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .knowledge_store import FAQEntry, KnowledgeStore, Policy, Product

logger = logging.getLogger("support_bot.knowledge")

PRODUCT_KEYWORDS = [
    "product",
    "buy",
    "price",
    "cost",
    "stock",
    "worktop",
    "flooring",
    "door",
    "stair",
    "oak",
    "walnut",
    "bamboo",
    "quartz",
]
POLICY_KEYWORDS = [
    "return",
    "refund",
    "shipping",
    "delivery",
    "warranty",
    "terms",
    "privacy",
    "policy",
    "discount",
]
FAQ_KEYWORDS = ["how", "what", "can i", "do you", "where", "when", "faq", "help"]

DOMAIN_PRODUCT = "product"
DOMAIN_POLICY = "policy"
DOMAIN_FAQ = "faq"
DOMAIN_COMBINED = "combined"
DOMAIN_NONE = "none"


@dataclass(frozen=True)
class RoutedContext:
    """Knowledge block chosen for one message; domain "none" means nothing relevant."""
    domain: str
    text: str = ""

    @property
    def has_content(self) -> bool:
        return self.domain != DOMAIN_NONE and bool(self.text)


NO_RELEVANT_INFORMATION = RoutedContext(domain=DOMAIN_NONE)


class KnowledgeRouter:
    """Pick product, policy, or FAQ knowledge for a message, in that precedence."""

    def __init__(
        self,
        store: KnowledgeStore,
        currency_symbol: str = "£",
        product_keywords: Optional[Sequence[str]] = None,
        policy_keywords: Optional[Sequence[str]] = None,
        faq_keywords: Optional[Sequence[str]] = None,
    ) -> None:
        self._store = store
        self._currency = currency_symbol
        self._product_keywords = list(product_keywords or PRODUCT_KEYWORDS)
        self._policy_keywords = list(policy_keywords or POLICY_KEYWORDS)
        self._faq_keywords = list(faq_keywords or FAQ_KEYWORDS)

    def route(self, query: str) -> RoutedContext:
        """Purpose: Build the knowledge context to inject for a customer message.
        Inputs/Outputs: Input is the raw utterance; output is a RoutedContext.
        Side Effects / State: None; reads the knowledge store only.
        Dependencies: Uses KnowledgeStore search/lookup and the format helpers below.
        Failure Modes: Never raises for unmatched input; returns NO_RELEVANT_INFORMATION.
        If Removed: The model answers without any catalogue or policy grounding.
        Testing Notes: A message with product and policy words must take the product
            branch; unmatched text must return the sentinel.
        """
        # Ordered checks: the first branch with results wins.
        query_lower = query.lower()

        if _contains_any(query_lower, self._product_keywords):
            products = self._store.search_products(query)
            if products:
                return RoutedContext(DOMAIN_PRODUCT, self.format_product_results(products))

        if _contains_any(query_lower, self._policy_keywords):
            policy = self._store.lookup_policy(query)
            if policy:
                return RoutedContext(DOMAIN_POLICY, "POLICY INFO:\n\n" + format_policy(policy))

        if _contains_any(query_lower, self._faq_keywords):
            faqs = self._store.search_faqs(query)
            if faqs:
                return RoutedContext(DOMAIN_FAQ, "FAQ RESULTS:\n\n" + format_faq_pairs(faqs))

        return self._combined_fallback(query)

    def format_product_results(self, products: List[Product]) -> str:
        return "PRODUCT SEARCH RESULTS:\n\n" + self.format_product_blocks(products)

    def format_product_blocks(self, products: List[Product]) -> str:
        return "\n\n".join(self.format_product(product) for product in products)

    def format_product(self, product: Product) -> str:
        stock = "✓ In Stock" if product.in_stock else "✗ Out of Stock"
        specs = ""
        if product.specs:
            specs = "\n  Specs: " + ", ".join(f"{key}: {value}" for key, value in product.specs.items())
        return (
            f"• {product.name} ({product.category})\n"
            f"  {product.description}\n"
            f"  Price: {self._currency}{product.price:.2f}\n"
            f"  {stock}{specs}"
        )

    def _combined_fallback(self, query: str) -> RoutedContext:
        products = self._store.search_products(query)
        faqs = self._store.search_faqs(query)
        policy = self._store.lookup_policy(query)

        context = ""
        if products:
            context += (
                "PRODUCTS:\n"
                + ", ".join(f"{p.name} - {self._currency}{format_bare_price(p.price)}" for p in products)
                + "\n\n"
            )
        if faqs:
            context += "RELATED FAQs:\n" + "\n".join(faq.question for faq in faqs) + "\n\n"
        if policy:
            context += f"POLICY: {policy.title}\n"

        if not context:
            logger.debug("router no knowledge for query=%s", query)
            return NO_RELEVANT_INFORMATION
        return RoutedContext(DOMAIN_COMBINED, context)


def format_faq_pairs(faqs: List[FAQEntry]) -> str:
    return "\n\n---\n\n".join(f"Q: {faq.question}\nA: {faq.answer}" for faq in faqs)


def format_policy(policy: Policy) -> str:
    return f"{policy.title}\n\n{policy.content}"


def format_bare_price(price: float) -> str:
    """Shortest decimal form: 149.99, 20, 20.5."""
    text = f"{price:f}".rstrip("0").rstrip(".")
    return text or "0"


def _contains_any(text: str, keywords: Sequence[str]) -> bool:
    return any(keyword in text for keyword in keywords)
