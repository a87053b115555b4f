"""
Tests for prompt builders.
"""
from lunaxcode.llm.prompts import (
    PRD_MAX_CHARS,
    build_enhance_prompt,
    build_prd_prompt,
    build_suggestions_prompt,
    build_tasks_prompt,
    format_question_answers,
)


def test_prd_prompt_includes_service_description_and_answers():
    prompt = build_prd_prompt(
        "Landing Page",
        "Promote a bakery",
        {"target_audience": "local families", "features": ["menu", "contact form"]},
    )

    assert "Service Type: Landing Page" in prompt
    assert "Project Description: Promote a bakery" in prompt
    assert "Client Requirements:" in prompt
    assert "- target audience: local families" in prompt
    assert "- features: menu, contact form" in prompt
    assert "## 10. Assumptions & Constraints" in prompt


def test_prd_prompt_omits_requirements_block_without_answers():
    assert "Client Requirements" not in build_prd_prompt("Website", "A portfolio", None)
    assert "Client Requirements" not in build_prd_prompt("Website", "A portfolio", {})


def test_format_question_answers_replaces_every_underscore():
    assert format_question_answers({"launch_target_date": "June"}) == "- launch target date: June"


def test_tasks_prompt_truncates_prd():
    prd = "x" * (PRD_MAX_CHARS + 500)
    prompt = build_tasks_prompt(prd)

    assert "x" * PRD_MAX_CHARS in prompt
    assert "x" * (PRD_MAX_CHARS + 1) not in prompt
    assert "Return ONLY valid JSON array" in prompt


def test_suggestions_prompt_mentions_draft_only_when_given():
    with_draft = build_suggestions_prompt("E-commerce", "I sell shoes")
    without_draft = build_suggestions_prompt("E-commerce", None)

    assert '"E-commerce"' in with_draft
    assert "Current draft for reference: I sell shoes" in with_draft
    assert "Current draft" not in without_draft
    assert "JSON array of 3" in without_draft


def test_suggestions_prompt_defaults_service_type():
    assert '"web development"' in build_suggestions_prompt(None)


def test_enhance_prompt_quotes_current_description():
    prompt = build_enhance_prompt("Landing Page", "need a site for my cafe")

    assert '"need a site for my cafe"' in prompt
    assert prompt.rstrip().endswith("no quotes, no markdown:")
