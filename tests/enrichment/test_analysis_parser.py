import json
import logging

from slack_monitor.enrichment.parser import AnalysisDraft, parse_analysis_text


def test_strict_json_returns_directly():
    text = json.dumps(
        {
            "sentiment": {"score": 0.2, "label": "positive", "confidence": 0.7},
            "entities": [{"type": "person", "value": "Sam", "confidence": 0.9}],
            "intent": {"category": "update", "confidence": 0.6},
            "priority": {"level": "medium", "reasons": ["deadline"]},
            "deliverables": [],
            "actionItems": [{"task": "Send files", "confidence": 0.5}],
        }
    )
    outcome = parse_analysis_text(text)
    assert outcome.clean
    assert outcome.draft.source == "strict"
    assert outcome.draft.sentiment["label"] == "positive"
    assert outcome.draft.entities[0]["value"] == "Sam"
    assert outcome.draft.deliverables == []
    assert outcome.draft.action_items == [{"task": "Send files", "confidence": 0.5}]


def test_unquoted_keys_and_single_quotes_recover_sentiment():
    outcome = parse_analysis_text("{sentiment:{score:0.5,label:'positive',confidence:0.8}}")
    assert outcome.draft.source == "recovered"
    assert outcome.draft.sentiment == {"score": 0.5, "label": "positive", "confidence": 0.8}
    assert outcome.draft.deliverables is None


def test_string_valued_array_field_runs_recovery_chain_after_strict_parse():
    text = json.dumps(
        {"deliverables": "[{name: 'Logo v2', status: 'review'}, {name: 'Banner', status: }]"}
    )
    outcome = parse_analysis_text(text)
    assert outcome.draft.source == "strict"
    assert outcome.draft.deliverables == [{"name": "Logo v2", "status": "review"}]
    assert outcome.clean


def test_apostrophe_in_well_formed_deliverable_survives_malformed_sibling():
    text = json.dumps(
        {"deliverables": '[{"name": "Client\'s deck", "status": "review"}, {name: "Banner", status: }]'}
    )
    outcome = parse_analysis_text(text)
    assert outcome.draft.deliverables == [{"name": "Client's deck", "status": "review"}]
    assert outcome.clean


def test_truncated_output_falls_back_to_per_field_extraction():
    text = (
        '{"sentiment": {"score": 0.4, "label": "positive", "confidence": 0.9},\n'
        ' "priority": {"level": "high", "reasons": ["client deadline"]},\n'
        " \"deliverables\": [{name: 'Logo v2', status: 'review'}, {name: 'Banner', status: }],\n"
        ' "actionItems": [{"task": "Export fin'
    )
    outcome = parse_analysis_text(text)
    draft = outcome.draft
    assert draft.source == "extracted"
    assert draft.sentiment["score"] == 0.4
    assert draft.priority == {"level": "high", "reasons": ["client deadline"]}
    assert draft.deliverables == [{"name": "Logo v2", "status": "review"}]
    assert draft.intent is None
    assert draft.action_items == []
    assert [diagnostic.field for diagnostic in outcome.diagnostics] == ["actionItems"]


def test_extraction_skips_key_names_inside_earlier_string_values():
    text = (
        '{"sentiment": {"score": 0.2, "label": "neutral", "confidence": 0.5},\n'
        ' "intent": {"category": "request", "confidence": 0.7, "note": "priority: high"},\n'
        ' "priority": {"level": "urgent", "reasons": ["client escalation"]},\n'
        ' "actionItems": [{"task": "Call cli'
    )
    outcome = parse_analysis_text(text)
    draft = outcome.draft
    assert draft.source == "extracted"
    assert draft.intent["note"] == "priority: high"
    assert draft.priority == {"level": "urgent", "reasons": ["client escalation"]}
    assert [diagnostic.field for diagnostic in outcome.diagnostics] == ["actionItems"]


def test_unrecoverable_field_becomes_empty_and_logs_reasons(caplog):
    text = json.dumps({"entities": "totally broken", "priority": {"level": "low"}})
    with caplog.at_level(logging.WARNING, logger="slack_monitor.enrichment.parser"):
        outcome = parse_analysis_text(text)

    assert outcome.draft.entities == []
    assert outcome.draft.priority == {"level": "low"}
    diagnostic = outcome.diagnostics[0]
    assert diagnostic.field == "entities"
    assert diagnostic.text == "totally broken"
    assert len(diagnostic.reasons) == 3
    assert "totally broken" in caplog.text


def test_prose_without_structure_yields_empty_draft():
    outcome = parse_analysis_text("I could not analyze this message.")
    assert outcome.draft == AnalysisDraft.empty()
    assert outcome.diagnostics[0].field == "*"


def test_missing_text_never_raises():
    for text in (None, "", "   "):
        outcome = parse_analysis_text(text)
        assert outcome.draft.source == "empty"
        assert not outcome.clean


def test_single_object_array_field_is_wrapped():
    text = json.dumps({"deliverables": {"name": "Logo", "status": "review"}})
    outcome = parse_analysis_text(text)
    assert outcome.draft.deliverables == [{"name": "Logo", "status": "review"}]


def test_non_object_items_are_dropped():
    text = json.dumps({"entities": [{"type": "person", "value": "Sam"}, "stray", 5, None]})
    outcome = parse_analysis_text(text)
    assert outcome.draft.entities == [{"type": "person", "value": "Sam"}]
