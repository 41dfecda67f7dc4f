"""Structured knowledge base (products, FAQs, policies, contact) with keyword search."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

logger = logging.getLogger("support_bot.knowledge")

MAX_PRODUCT_RESULTS = 10
MAX_FAQ_RESULTS = 5
MIN_WORD_LENGTH = 2

PRODUCTS_FILE = "products.json"
FAQS_FILE = "faqs.json"
POLICIES_FILE = "policies.json"
CONTACT_FILE = "contact.json"


@dataclass(frozen=True)
class Product:
    """Catalogue entry; specs are an unordered name→value mapping."""
    id: str
    name: str
    category: str
    description: str
    price: float
    in_stock: bool
    specs: Optional[Dict[str, str]] = None

    def searchable_fields(self) -> List[Optional[str]]:
        return [self.name, self.category, self.description]


@dataclass(frozen=True)
class FAQEntry:
    id: str
    question: str
    answer: str
    keywords: List[str] = field(default_factory=list)

    def searchable_fields(self) -> List[Optional[str]]:
        return [self.question, self.answer, " ".join(self.keywords)]


@dataclass(frozen=True)
class Policy:
    id: str
    topic: str
    title: str
    content: str

    def searchable_fields(self) -> List[Optional[str]]:
        return [self.title, self.content]


@dataclass(frozen=True)
class ContactInfo:
    business_hours: str
    email: str
    phone: str
    escalation_triggers: List[str] = field(default_factory=list)
    handoff_message: str = ""


T = TypeVar("T", Product, FAQEntry, Policy)


def search_by_keyword(items: Iterable[T], query: str) -> List[T]:
    """Purpose: Keep records where any query word appears in their searchable text.
    Inputs/Outputs: Inputs are records exposing searchable_fields() and a query; output
        is the matching records in their original order.
    Side Effects / State: None; pure function.
    Dependencies: Used by KnowledgeStore search and policy lookup fallback.
    Failure Modes: Words shorter than MIN_WORD_LENGTH never match, so a query made only
        of such words returns an empty list.
    If Removed: Every knowledge lookup loses its matching primitive.
    Testing Notes: Single shared word should match; order must follow the input.
    """
    # Lower-case once, then OR the surviving words as substrings.
    words = [word for word in query.lower().split() if len(word) >= MIN_WORD_LENGTH]
    if not words:
        return []
    matches: List[T] = []
    for item in items:
        text = " ".join(value for value in item.searchable_fields() if value).lower()
        if any(word in text for word in words):
            matches.append(item)
    return matches


class KnowledgeStore:
    """Owns the four knowledge collections and answers keyword lookups over them."""

    def __init__(self, knowledge_dir: Optional[Path] = None) -> None:
        self._knowledge_dir = knowledge_dir
        self._products: List[Product] = []
        self._faqs: List[FAQEntry] = []
        self._policies: List[Policy] = []
        self._contact: Optional[ContactInfo] = None

    @classmethod
    def from_records(
        cls,
        products: Sequence[Dict[str, Any]] = (),
        faqs: Sequence[Dict[str, Any]] = (),
        policies: Sequence[Dict[str, Any]] = (),
        contact: Optional[Dict[str, Any]] = None,
    ) -> "KnowledgeStore":
        """Build a store from inline literal records instead of files."""
        store = cls()
        store._products = _parse_records(products, _product_from_dict, "products")
        store._faqs = _parse_records(faqs, _faq_from_dict, "faqs")
        store._policies = _parse_records(policies, _policy_from_dict, "policies")
        store._contact = _contact_from_dict(contact) if contact else None
        return store

    def load(self) -> Dict[str, int]:
        """Purpose: (Re)load every collection from the knowledge directory.
        Inputs/Outputs: No inputs; returns per-collection counts.
        Side Effects / State: Replaces the in-memory collections.
        Dependencies: Uses _read_json and the per-type record parsers.
        Failure Modes: A missing or malformed file degrades only its own collection to
            empty (None for contact) and logs a warning; nothing is raised.
        If Removed: The service starts with no products, FAQs, or policies.
        Testing Notes: Corrupt one file and check the other collections still load.
        """
        # Load each collection independently so one bad file cannot sink the rest.
        if self._knowledge_dir is None:
            return self.counts()

        products = self._read_json(PRODUCTS_FILE)
        self._products = _parse_records(products, _product_from_dict, "products") if isinstance(products, list) else []

        faqs = self._read_json(FAQS_FILE)
        self._faqs = _parse_records(faqs, _faq_from_dict, "faqs") if isinstance(faqs, list) else []

        policies = self._read_json(POLICIES_FILE)
        self._policies = _parse_records(policies, _policy_from_dict, "policies") if isinstance(policies, list) else []

        contact = self._read_json(CONTACT_FILE)
        self._contact = None
        if isinstance(contact, dict):
            try:
                self._contact = _contact_from_dict(contact)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("knowledge file=%s skipped: %s", CONTACT_FILE, exc)

        counts = self.counts()
        logger.info(
            "Loaded knowledge base: %d products, %d FAQs, %d policies",
            counts["products"],
            counts["faqs"],
            counts["policies"],
        )
        return counts

    def counts(self) -> Dict[str, int]:
        return {
            "products": len(self._products),
            "faqs": len(self._faqs),
            "policies": len(self._policies),
            "contact": 1 if self._contact else 0,
        }

    def search_products(self, query: str) -> List[Product]:
        """Return up to 10 products matching the query; blank queries match nothing."""
        if not query.strip():
            return []
        return search_by_keyword(self._products, query)[:MAX_PRODUCT_RESULTS]

    def search_faqs(self, query: str) -> List[FAQEntry]:
        """Return up to 5 FAQ entries matching the query; blank queries match nothing."""
        if not query.strip():
            return []
        return search_by_keyword(self._faqs, query)[:MAX_FAQ_RESULTS]

    def lookup_policy(self, topic: str) -> Optional[Policy]:
        """Purpose: Find the policy for a topic, exact tag/title first, keywords second.
        Inputs/Outputs: Input is a topic or free-text query; output is a Policy or None.
        Side Effects / State: None.
        Dependencies: Falls back to search_by_keyword over title/content.
        Failure Modes: Blank topic returns None; duplicate tags resolve to the first.
        If Removed: Policy questions never reach the policy collection.
        Testing Notes: "returns" hits the tag; "refund" falls through to content search.
        """
        if not topic.strip():
            return None

        topic_lower = topic.lower()
        for policy in self._policies:
            if policy.topic.lower() == topic_lower or topic_lower in policy.title.lower():
                return policy

        results = search_by_keyword(self._policies, topic)
        return results[0] if results else None

    def contact_info(self) -> Optional[ContactInfo]:
        return self._contact

    def all_products(self) -> List[Product]:
        return list(self._products)

    def _read_json(self, file_name: str) -> Any:
        assert self._knowledge_dir is not None
        path = self._knowledge_dir / file_name
        try:
            return json.loads(path.read_text(encoding="utf-8-sig"))
        except FileNotFoundError:
            logger.warning("knowledge file=%s missing", path)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("knowledge file=%s unreadable: %s", path, exc)
        return None


def _parse_records(
    raw_items: Iterable[Any],
    parser: Callable[[Dict[str, Any]], T],
    label: str,
) -> List[T]:
    records: List[T] = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            logger.warning("knowledge collection=%s entry=%d skipped: not an object", label, index)
            continue
        try:
            records.append(parser(raw))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("knowledge collection=%s entry=%d skipped: %s", label, index, exc)
    return records


def _optional_text(raw: Dict[str, Any], *keys: str) -> str:
    """First present, non-null value among keys as text; null or absent yields ""."""
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return str(value)
    return ""


def _parse_in_stock(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    if value is not None:
        logger.warning("knowledge inStock=%r not a boolean, treating as out of stock", value)
    return False


def _text_list(value: Any, label: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        logger.warning("knowledge %s=%r not a list, ignored", label, value)
        return []
    return [str(item) for item in value if item is not None]


def _product_from_dict(raw: Dict[str, Any]) -> Product:
    price = float(raw["price"])
    if price < 0:
        raise ValueError(f"negative price {price}")
    specs = raw.get("specs")
    in_stock = raw["inStock"] if "inStock" in raw else raw.get("in_stock")
    return Product(
        id=str(raw["id"]),
        name=str(raw["name"]),
        category=_optional_text(raw, "category"),
        description=_optional_text(raw, "description"),
        price=price,
        in_stock=_parse_in_stock(in_stock),
        specs={str(k): str(v) for k, v in specs.items() if v is not None} if isinstance(specs, dict) else None,
    )


def _faq_from_dict(raw: Dict[str, Any]) -> FAQEntry:
    return FAQEntry(
        id=str(raw["id"]),
        question=str(raw["question"]),
        answer=str(raw["answer"]),
        keywords=_text_list(raw.get("keywords"), "keywords"),
    )


def _policy_from_dict(raw: Dict[str, Any]) -> Policy:
    return Policy(
        id=str(raw["id"]),
        topic=str(raw["topic"]),
        title=str(raw["title"]),
        content=str(raw["content"]),
    )


def _contact_from_dict(raw: Dict[str, Any]) -> ContactInfo:
    triggers = raw.get("escalationTriggers", raw.get("escalation_triggers"))
    return ContactInfo(
        business_hours=_optional_text(raw, "businessHours", "business_hours"),
        email=_optional_text(raw, "email"),
        phone=_optional_text(raw, "phone"),
        escalation_triggers=_text_list(triggers, "escalationTriggers"),
        handoff_message=_optional_text(raw, "handoffMessage", "handoff_message"),
    )
