"""Schemas for every structured payload the model is asked to produce."""

from __future__ import annotations

from solicitation_agent.schemas.validator import compile_schema

_NULLABLE_STRING = {"type": ["string", "null"]}
_STRING_LIST = {"type": "array", "items": {"type": "string"}}

EXTRACT_SCHEMA = {
    "type": "object",
    "properties": {
        "solicitationNumber": {"type": "string"},
        "title": {"type": "string"},
        "agency": _NULLABLE_STRING,
        "naics": _NULLABLE_STRING,
        "psc": _NULLABLE_STRING,
        "setAside": _NULLABLE_STRING,
        "dueDates": {
            "type": "object",
            "properties": {
                "questions": _NULLABLE_STRING,
                "offers": _NULLABLE_STRING,
            },
            "additionalProperties": False,
        },
        "placeOfPerformance": {
            "type": ["object", "null"],
            "properties": {
                "city": _NULLABLE_STRING,
                "state": _NULLABLE_STRING,
            },
            "additionalProperties": False,
        },
        "tradePackages": {
            "type": ["array", "null"],
            "items": {
                "type": "object",
                "properties": {
                    "trade": {"type": "string"},
                    "scopeSummary": _NULLABLE_STRING,
                },
                "required": ["trade"],
                "additionalProperties": False,
            },
        },
        "attachments": {
            "type": ["array", "null"],
            "items": {
                "type": "object",
                "properties": {"filename": {"type": "string"}},
                "required": ["filename"],
                "additionalProperties": False,
            },
        },
        "citations": {
            "type": ["array", "null"],
            "items": {
                "type": "object",
                "properties": {
                    "field": {"type": "string"},
                    "ref": {"type": "string"},
                },
                "required": ["field", "ref"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["solicitationNumber", "title"],
    "additionalProperties": False,
}

SUMMARY_SCHEMA = {
    "type": "object",
    "properties": {
        "overview": {"type": "string"},
        "key_dates": {
            "type": "object",
            "properties": {
                "questions_due": _NULLABLE_STRING,
                "bids_due": _NULLABLE_STRING,
            },
            "additionalProperties": False,
        },
        "scope_summary": {"type": "string"},
        "risk_notes": _STRING_LIST,
        "referenced_files": _STRING_LIST,
    },
    "required": ["overview", "scope_summary"],
    "additionalProperties": False,
}

JUDGE_SCHEMA = {
    "type": "object",
    "properties": {
        "prime_contractor_requirements": _STRING_LIST,
        "subcontractor_packages": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "trade": {"type": "string"},
                    "scope_items": _STRING_LIST,
                },
                "required": ["trade"],
                "additionalProperties": False,
            },
        },
        "confidence": {"type": "number"},
        "rationale": {"type": "string"},
    },
    "required": ["prime_contractor_requirements", "subcontractor_packages", "confidence"],
    "additionalProperties": False,
}

validate_extract = compile_schema(EXTRACT_SCHEMA)
validate_summary = compile_schema(SUMMARY_SCHEMA)
validate_judge = compile_schema(JUDGE_SCHEMA)
