"""Generic parse -> validate -> re-prompt loop for model-generated JSON."""

from __future__ import annotations

import json
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from solicitation_agent.errors import SchemaRepairExhausted
from solicitation_agent.obs.logging import get_logger
from solicitation_agent.schemas.validator import SchemaValidator, ValidationIssue, ValidationVerdict
from solicitation_agent.types import Part, TextPart

GenerateFn = Callable[[list[Part]], Awaitable[str]]

logger = get_logger(__name__)

_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*(?P<body>.*?)\s*```$", re.IGNORECASE | re.DOTALL)


@dataclass(slots=True)
class ValidatedPayload:
    """A model payload that passed ``schema``."""

    data: Any
    schema: dict[str, Any]
    raw: str
    attempts: int


class RepairLoop:
    """Two-attempt correction protocol shared by every structured-output tool.

    The first generation uses the caller's prompt unchanged. When its output
    does not parse or does not validate, each repair round re-sends the
    original prompt parts followed by the previous output, the literal error
    list and the schema, then validates again. The model is never called more
    than ``1 + max_repair_rounds`` times.
    """

    def __init__(self, max_repair_rounds: int = 1) -> None:
        self.max_repair_rounds = max_repair_rounds

    async def attempt(
        self,
        generate: GenerateFn,
        prompt: list[Part],
        schema: dict[str, Any],
        validator: SchemaValidator,
        *,
        max_repair_rounds: int | None = None,
    ) -> ValidatedPayload:
        rounds = self.max_repair_rounds if max_repair_rounds is None else max_repair_rounds

        raw = await generate(prompt)
        parsed, verdict = _check(raw, validator, not_json="not JSON")
        attempts = 1
        while not verdict.valid and attempts <= rounds:
            logger.info(
                "schema_repair_round",
                round=attempts,
                issues=len(verdict.errors),
            )
            raw = await generate(build_repair_prompt(prompt, raw, verdict, schema))
            parsed, verdict = _check(raw, validator, not_json="repair output not JSON")
            attempts += 1

        if not verdict.valid:
            logger.warning("schema_repair_exhausted", attempts=attempts)
            raise SchemaRepairExhausted(
                "Model output still invalid after repair",
                raw=raw,
                errors=verdict.as_dicts(),
            )
        return ValidatedPayload(data=parsed, schema=schema, raw=raw, attempts=attempts)


def strip_code_fence(raw: str) -> str:
    text = raw.strip()
    match = _FENCE_PATTERN.match(text)
    if match:
        return match.group("body").strip()
    return text


def parse_json(raw: str) -> Any:
    return json.loads(strip_code_fence(raw))


def build_repair_prompt(
    prompt: list[Part],
    previous_output: str,
    verdict: ValidationVerdict,
    schema: dict[str, Any],
) -> list[Part]:
    instructions = "\n".join(
        [
            "Your previous JSON did not validate against the schema. Validation errors:",
            json.dumps(verdict.as_dicts(), indent=2),
            "Return corrected JSON ONLY (no prose, no markdown). Schema again:",
            json.dumps(schema),
            "Previous output:",
            previous_output,
            "The original input follows.",
        ]
    )
    return [TextPart(instructions), *prompt]


def _check(raw: str, validator: SchemaValidator, *, not_json: str) -> tuple[Any, ValidationVerdict]:
    try:
        parsed = parse_json(raw)
    except ValueError:
        return None, ValidationVerdict(
            valid=False,
            errors=[ValidationIssue(location="(root)", message=not_json)],
        )
    return parsed, validator(parsed)
