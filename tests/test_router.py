import pytest

from support_bot.knowledge.knowledge_store import KnowledgeStore
from support_bot.knowledge.router import (
    DOMAIN_COMBINED,
    DOMAIN_FAQ,
    DOMAIN_NONE,
    DOMAIN_POLICY,
    DOMAIN_PRODUCT,
    KnowledgeRouter,
    format_bare_price,
)


@pytest.fixture
def router(store):
    return KnowledgeRouter(store)


def test_product_branch_formats_full_block(router):
    routed = router.route("Do you have oak worktops in stock?")

    assert routed.domain == DOMAIN_PRODUCT
    assert routed.text.startswith("PRODUCT SEARCH RESULTS:\n\n")
    assert "• Premium Oak Worktop (Worktops)" in routed.text
    assert "  Price: £149.99" in routed.text
    assert "  ✓ In Stock" in routed.text
    assert "  Specs: thickness: 40mm, length: 3m" in routed.text


def test_out_of_stock_glyph(router):
    routed = router.route("quartz price")
    assert "• Quartz Worktop (Worktops)" in routed.text
    assert "✗ Out of Stock" in routed.text


def test_product_branch_wins_over_policy_keywords(router):
    routed = router.route("what's the price of the oak worktop and can I return it")
    assert routed.domain == DOMAIN_PRODUCT
    assert "POLICY INFO" not in routed.text


def test_policy_branch(router):
    routed = router.route("what is your returns policy")
    assert routed.domain == DOMAIN_POLICY
    assert routed.text == (
        "POLICY INFO:\n\nReturns Policy\n\nYou can return any unused item within 30 days for a full refund."
    )


def test_empty_product_search_falls_through_to_policy(router):
    # "product" triggers the product check but nothing in the catalogue matches.
    routed = router.route("product refund")
    assert routed.domain == DOMAIN_POLICY


def test_faq_branch_joins_pairs_with_rule(router):
    routed = router.route("do you offer installation")
    assert routed.domain == DOMAIN_FAQ
    assert routed.text.startswith("FAQ RESULTS:\n\nQ: ")
    assert "Q: Do you offer installation?\nA: Yes, we can recommend certified installers in your area." in routed.text
    assert "\n\n---\n\n" in routed.text


def test_combined_fallback_uses_bare_prices():
    store = KnowledgeStore.from_records(
        products=[{"id": "x", "name": "Pine Plank", "category": "Timber", "description": "", "price": 20}],
        faqs=[{"id": "f", "question": "Is pine sustainable?", "answer": "Yes.", "keywords": []}],
    )
    routed = KnowledgeRouter(store).route("pine")

    assert routed.domain == DOMAIN_COMBINED
    assert routed.text == "PRODUCTS:\nPine Plank - £20\n\nRELATED FAQs:\nIs pine sustainable?\n\n"


def test_no_relevant_information_sentinel(router):
    routed = router.route("zebra xylophone")
    assert routed.domain == DOMAIN_NONE
    assert routed.text == ""
    assert not routed.has_content


def test_custom_keywords_and_currency(store):
    router = KnowledgeRouter(store, currency_symbol="$", product_keywords=["walnut"])
    routed = router.route("walnut")
    assert routed.domain == DOMAIN_PRODUCT
    assert "Price: $45.99" in routed.text


@pytest.mark.parametrize(
    "price,expected",
    [(149.99, "149.99"), (20.0, "20"), (20.5, "20.5"), (0.0, "0")],
)
def test_format_bare_price(price, expected):
    assert format_bare_price(price) == expected
