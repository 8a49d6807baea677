"""Tests for insight parsing, classification and the offline generator."""

import json

import httpx
import pytest

from lib.firecrawl.client import ResearchPage
from lib.insights import (
    AnthropicInsightGenerator,
    FALLBACK_NOTE,
    Insight,
    InsightContact,
    InsightRequest,
    RuleBasedInsightGenerator,
    classify,
    get_insight_generator,
    render_approval_block,
)
from lib.insights.client import extract_json, parse_insight
from lib.retry import RetryPolicy
from services.errors import ConfigurationError, InsightValidationError


def _request(*pages: ResearchPage) -> InsightRequest:
    return InsightRequest(
        contact=InsightContact(first_name="Ada", last_name="Lovelace", company_name="Acme", company_domain="acme.com"),
        research=list(pages),
    )


# =============================================================================
# Classification
# =============================================================================

@pytest.mark.no_db
def test_classification_priority_retail_beats_ecomm():
    text = "We sell direct to consumers. Built on our ecommerce platform with Shopify Plus."
    assert classify([text]) == "Online Retailer"


@pytest.mark.no_db
def test_classification_each_rule():
    assert classify(["Leading direct mail specialists"]) == "Direct Mail Agency"
    assert classify(["Programmatic and paid media buying"]) == "Ad Agency"
    assert classify(["A Shopify Partner ecommerce agency"]) == "eComm Agency"
    assert classify(["Brand strategy and content"]) == "Marketing Agency"
    assert classify([]) == "Marketing Agency"


# =============================================================================
# Insight contract
# =============================================================================

@pytest.mark.no_db
def test_insight_accepts_camel_case_and_normalizes_label():
    insight = Insight.model_validate({
        "classification": "ecommerce agency",
        "addressLine1": "1 High St",
        "postcode": "LS1 1AA",
        "psLine": "Congrats on the new Leeds office!",
        "psSourceUrl": "https://acme.com/news",
        "addressSourceUrl": "https://acme.com/contact",
        "approvalBlock": "CONTACT: ...",
    })
    assert insight.classification == "eComm Agency"
    assert insight.address_line1 == "1 High St"
    assert insight.note == "Congrats on the new Leeds office!"
    assert not insight.is_fallback_note


@pytest.mark.no_db
def test_long_note_falls_back():
    insight = Insight(
        note=" ".join(["word"] * 21),
        note_source_url="https://acme.com/news",
        approval_block="x",
    )
    assert insight.note == FALLBACK_NOTE
    assert insight.note_source_url is None


@pytest.mark.no_db
def test_note_sharing_address_source_falls_back():
    insight = Insight(
        note="Great launch",
        note_source_url="https://acme.com/contact",
        address_source_url="https://acme.com/contact",
        approval_block="x",
    )
    assert insight.is_fallback_note


@pytest.mark.no_db
def test_note_without_source_falls_back():
    assert Insight(note="Great launch", approval_block="x").is_fallback_note


@pytest.mark.no_db
def test_missing_approval_block_is_validation_error():
    with pytest.raises(InsightValidationError):
        parse_insight({"classification": "Ad Agency"}, _request())


@pytest.mark.no_db
def test_unknown_label_resolved_from_research():
    insight = parse_insight(
        {"classification": "Something else", "approvalBlock": "x"},
        _request(ResearchPage(url="https://acme.com", content="Experts in door drops and direct mail")),
    )
    assert insight.classification == "Direct Mail Agency"


@pytest.mark.no_db
def test_extract_json_tolerates_fences():
    assert extract_json('```json\n{"a": 1}\n```') == {"a": 1}
    assert extract_json('{"a": 2}') == {"a": 2}
    with pytest.raises(InsightValidationError):
        extract_json("not json")
    with pytest.raises(InsightValidationError):
        extract_json("[1, 2]")


@pytest.mark.no_db
def test_render_approval_block_template():
    block = render_approval_block(
        name="Ada Lovelace",
        company=None,
        classification="Ad Agency",
        note=FALLBACK_NOTE,
    )
    assert block.splitlines() == [
        "CONTACT: Ada Lovelace at Unknown",
        "ADDRESS FOUND: Not captured",
        "SOURCE: Not captured",
        "CLASSIFICATION: Ad Agency",
        f"P.S. LINE: {FALLBACK_NOTE}",
        "P.S. SOURCE: Fallback",
        "",
        "Ready to update HubSpot?",
    ]


# =============================================================================
# Generators
# =============================================================================

@pytest.mark.no_db
async def test_rule_based_generator_finds_address_on_contact_page():
    generator = RuleBasedInsightGenerator()
    insight = await generator.generate(_request(
        ResearchPage(url="https://acme.com", content="Shop now - free UK delivery"),
        ResearchPage(url="https://acme.com/contact", content="Visit us\n12 Mill Lane, Leeds LS1 4AP\nCall us"),
    ))
    assert insight.classification == "Online Retailer"
    assert insight.address_line1 == "12 Mill Lane"
    assert insight.city == "Leeds"
    assert insight.postcode == "LS1 4AP"
    assert insight.address_source_url == "https://acme.com/contact"
    assert insight.is_fallback_note
    assert "ADDRESS FOUND: 12 Mill Lane, Leeds, LS1 4AP, United Kingdom" in insight.approval_block


@pytest.mark.no_db
async def test_rule_based_generator_with_no_research():
    insight = await RuleBasedInsightGenerator().generate(_request())
    assert insight.classification == "Marketing Agency"
    assert insight.address_line1 is None


@pytest.mark.no_db
async def test_anthropic_generator_parses_response():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        seen["headers"] = request.headers
        text = json.dumps({
            "classification": "Ad Agency",
            "addressLine1": "1 High St",
            "psLine": "Loved the new campaign",
            "psSourceUrl": "https://acme.com/news",
            "addressSourceUrl": "https://acme.com/contact",
            "approvalBlock": "CONTACT: Ada Lovelace at Acme",
        })
        return httpx.Response(200, json={"content": [{"type": "text", "text": text}]})

    generator = AnthropicInsightGenerator(
        api_key="k",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        retry_policy=RetryPolicy(max_attempts=1, base_delay=0, max_delay=0),
    )
    insight = await generator.generate(_request(ResearchPage(url="https://acme.com", content="x" * 10000)))
    await generator.aclose()

    assert insight.classification == "Ad Agency"
    assert insight.note == "Loved the new campaign"
    assert seen["headers"]["x-api-key"] == "k"
    prompt = seen["body"]["messages"][0]["content"]
    assert "Name: Ada Lovelace" in prompt
    assert "x" * 6001 not in prompt


@pytest.mark.no_db
async def test_anthropic_generator_invalid_json():
    transport = httpx.MockTransport(lambda r: httpx.Response(200, json={"content": [{"type": "text", "text": "Sorry!"}]}))
    generator = AnthropicInsightGenerator(api_key="k", http_client=httpx.AsyncClient(transport=transport))
    with pytest.raises(InsightValidationError):
        await generator.generate(_request())
    await generator.aclose()


@pytest.mark.no_db
async def test_anthropic_generator_requires_key(monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    generator = AnthropicInsightGenerator()
    with pytest.raises(ConfigurationError):
        await generator.generate(_request())


@pytest.mark.no_db
def test_get_insight_generator(monkeypatch):
    monkeypatch.setenv("INSIGHT_GENERATOR", "rules")
    assert isinstance(get_insight_generator(), RuleBasedInsightGenerator)
    assert isinstance(get_insight_generator("llm"), AnthropicInsightGenerator)
