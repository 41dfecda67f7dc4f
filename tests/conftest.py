from pathlib import Path
from typing import List, Mapping, Sequence

import pytest

from support_bot.config import Settings
from support_bot.errors import CompletionError
from support_bot.knowledge.knowledge_store import KnowledgeStore

PRODUCTS = [
    {
        "id": "p1",
        "name": "Premium Oak Worktop",
        "category": "Worktops",
        "description": "High-quality solid oak worktop",
        "price": 149.99,
        "inStock": True,
        "specs": {"thickness": "40mm", "length": "3m"},
    },
    {
        "id": "p2",
        "name": "Walnut Flooring",
        "category": "Flooring",
        "description": "Engineered walnut flooring",
        "price": 45.99,
        "inStock": True,
    },
    {
        "id": "p4",
        "name": "Quartz Worktop",
        "category": "Worktops",
        "description": "Engineered quartz surface",
        "price": 299.99,
        "inStock": False,
    },
]

FAQS = [
    {
        "id": "f1",
        "question": "How do I measure for flooring?",
        "answer": "Measure the room length and width. Add 10% for wastage.",
        "keywords": ["measure", "wastage"],
    },
    {
        "id": "f3",
        "question": "Do you offer installation?",
        "answer": "Yes, we can recommend certified installers in your area.",
        "keywords": ["installation", "fitter"],
    },
]

POLICIES = [
    {
        "id": "pol1",
        "topic": "returns",
        "title": "Returns Policy",
        "content": "You can return any unused item within 30 days for a full refund.",
    },
    {
        "id": "pol2",
        "topic": "shipping",
        "title": "Shipping Information",
        "content": "Free delivery on orders over £100. Standard delivery £9.99.",
    },
]

CONTACT = {
    "businessHours": "Mon-Fri 8am-6pm",
    "email": "help@example.co.uk",
    "phone": "0800 000 0000",
    "escalationTriggers": ["Customer asks for a person"],
    "handoffMessage": "A colleague will be in touch shortly.",
}


class StubCompletion:
    """Records every outbound message list and replies with a canned answer."""

    def __init__(self, reply: str = "Happy to help!", error: str = "") -> None:
        self.reply = reply
        self.error = error
        self.calls: List[List[dict]] = []
        self.kwargs: List[dict] = []

    def complete(self, messages: Sequence[Mapping[str, str]], **kwargs) -> str:
        self.calls.append([dict(message) for message in messages])
        self.kwargs.append(kwargs)
        if self.error:
            raise CompletionError(self.error)
        return self.reply


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def store() -> KnowledgeStore:
    return KnowledgeStore.from_records(products=PRODUCTS, faqs=FAQS, policies=POLICIES, contact=CONTACT)


@pytest.fixture
def stub_completion() -> StubCompletion:
    return StubCompletion()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    prompt_path = tmp_path / "system_prompt.md"
    prompt_path.write_text("You are the store assistant.", encoding="utf-8")
    return Settings(
        gemini_api_key="",
        gemini_model="gemini-2.5-flash",
        knowledge_dir=tmp_path / "knowledge",
        system_prompt_path=prompt_path,
        public_dir=tmp_path / "public",
        guard_patterns_path=None,
        session_timeout_sec=1800,
        max_messages_per_session=3,
        max_messages_per_minute=5,
        max_message_length=50,
        cleanup_interval_sec=300,
        completion_timeout_sec=30,
        temperature=0.7,
        max_output_tokens=1024,
        currency_symbol="£",
    )
