from support_bot.prompt_loader import FALLBACK_SYSTEM_PROMPT, load_system_prompt


def test_persona_file_bom_is_stripped(tmp_path):
    path = tmp_path / "prompt.md"
    path.write_bytes("\ufeffYou help customers.".encode("utf-8"))
    assert load_system_prompt(path) == "You help customers."


def test_persona_file_invalid_bytes_are_dropped(tmp_path):
    path = tmp_path / "prompt.md"
    path.write_bytes(b"Hello \xff world")
    assert load_system_prompt(path) == "Hello  world"


def test_system_prompt_falls_back(tmp_path):
    assert load_system_prompt(None) == FALLBACK_SYSTEM_PROMPT
    assert load_system_prompt(tmp_path / "missing.md") == FALLBACK_SYSTEM_PROMPT

    blank = tmp_path / "blank.md"
    blank.write_text("   \n", encoding="utf-8")
    assert load_system_prompt(blank) == FALLBACK_SYSTEM_PROMPT
