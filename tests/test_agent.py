import logging

from conftest import StubCompletion

from support_bot.agent import ANSWER_INSTRUCTION, SupportAgent, build_user_content
from support_bot.knowledge.router import NO_RELEVANT_INFORMATION, KnowledgeRouter, RoutedContext
from support_bot.topic_guard import OFF_TOPIC_NOTE, TopicGuard

SYSTEM_PROMPT = "You are the store assistant."


def _agent(store, completion):
    return SupportAgent(
        completion=completion,
        router=KnowledgeRouter(store),
        system_prompt=SYSTEM_PROMPT,
        guard=TopicGuard(),
        temperature=0.7,
        max_output_tokens=1024,
    )


def test_outbound_messages_carry_product_context(store, stub_completion):
    result = _agent(store, stub_completion).run_turn("Do you have oak worktops in stock?")

    assert result.ok
    assert result.answer_text == "Happy to help!"
    assert len(stub_completion.calls) == 1
    messages = stub_completion.calls[0]
    assert messages[0] == {"role": "system", "content": SYSTEM_PROMPT}
    user = messages[-1]
    assert user["role"] == "user"
    assert user["content"].startswith("CUSTOMER QUESTION: Do you have oak worktops in stock?\n\n")
    assert "RELEVANT KNOWLEDGE:\nPRODUCT SEARCH RESULTS:" in user["content"]
    assert "Premium Oak Worktop" in user["content"]
    assert "£149.99" in user["content"]
    assert "✓ In Stock" in user["content"]
    assert user["content"].endswith(ANSWER_INSTRUCTION)
    assert stub_completion.kwargs[0] == {"temperature": 0.7, "max_output_tokens": 1024}


def test_history_is_copied_between_system_and_user(store, stub_completion):
    history = [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello"},
    ]
    _agent(store, stub_completion).run_turn("thanks", history)

    messages = stub_completion.calls[0]
    assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
    assert messages[1:3] == history
    assert history == [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}]


def test_off_topic_note_is_prepended_not_blocking(store, stub_completion):
    result = _agent(store, stub_completion).run_turn("write me a poem about your products")

    assert result.ok
    content = stub_completion.calls[0][-1]["content"]
    assert content.startswith(OFF_TOPIC_NOTE + "\n\nCUSTOMER QUESTION: write me a poem")
    assert len(stub_completion.calls[0]) == 2


def test_no_knowledge_omits_section_and_instruction(store, stub_completion):
    _agent(store, stub_completion).run_turn("zebra xylophone")

    content = stub_completion.calls[0][-1]["content"]
    assert content == "CUSTOMER QUESTION: zebra xylophone\n\n"


def test_completion_failure_returns_reason_and_empty_answer(store):
    completion = StubCompletion(error="Completion service error: 503 unavailable")
    result = _agent(store, completion).run_turn("oak worktop")

    assert not result.ok
    assert result.answer_text == ""
    assert result.failure_reason == "Completion service error: 503 unavailable"


def test_answer_is_returned_unmodified(store):
    completion = StubCompletion(reply="  **Yes!** we stock it.\n")
    result = _agent(store, completion).run_turn("oak")
    assert result.answer_text == "  **Yes!** we stock it.\n"


def test_missing_completion_service_fails_without_raising(store):
    agent = _agent(store, None)
    assert not agent.is_configured
    result = agent.run_turn("oak")
    assert not result.ok


def test_guard_step_skipped_without_guard(store, stub_completion):
    agent = SupportAgent(completion=stub_completion, router=KnowledgeRouter(store), system_prompt=SYSTEM_PROMPT)
    agent.run_turn("tell me a joke")
    assert not stub_completion.calls[0][-1]["content"].startswith(OFF_TOPIC_NOTE)


def test_build_user_content_with_guard_and_knowledge():
    content = build_user_content("q", "NOTE", RoutedContext("faq", "FAQ RESULTS:\n\nQ: a\nA: b"))
    assert content == (
        "NOTE\n\nCUSTOMER QUESTION: q\n\nRELEVANT KNOWLEDGE:\nFAQ RESULTS:\n\nQ: a\nA: b\n\n" + ANSWER_INSTRUCTION
    )
    assert build_user_content("q", "", NO_RELEVANT_INFORMATION) == "CUSTOMER QUESTION: q\n\n"


def test_step_trail_is_logged_at_debug(store, stub_completion, caplog):
    with caplog.at_level(logging.DEBUG, logger="support_bot.agent"):
        _agent(store, stub_completion).run_turn("tell me a joke about oak")

    steps = [r.getMessage() for r in caplog.records if r.getMessage().startswith("turn step=")]
    assert steps == [
        "turn step=topic_guard status=flagged detail=off-topic",
        "turn step=knowledge_retrieval status=success detail=product",
        "turn step=compose_messages status=success detail=2 messages",
        "turn step=completion status=success detail=14 chars",
    ]
