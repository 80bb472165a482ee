"""Built-in solicitation tools exposed to the orchestrating model."""

from __future__ import annotations

import asyncio
import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from solicitation_agent.agent.prompts import (
    EXTRACT_SYSTEM_PROMPT,
    JUDGE_SYSTEM_PROMPT,
    SUMMARY_SYSTEM_PROMPT,
)
from solicitation_agent.agent.registry import ToolContext, ToolRegistry, ToolSpec
from solicitation_agent.agent.repair import GenerateFn, RepairLoop
from solicitation_agent.config import AgentConfig
from solicitation_agent.documents.fetcher import DocumentFetcher
from solicitation_agent.errors import (
    MissingRequiredInput,
    NotFound,
    PersistenceError,
    SchemaRepairExhausted,
    SummarizationFailed,
)
from solicitation_agent.obs.logging import get_logger
from solicitation_agent.schemas.payloads import (
    EXTRACT_SCHEMA,
    JUDGE_SCHEMA,
    SUMMARY_SCHEMA,
    validate_extract,
    validate_judge,
    validate_summary,
)
from solicitation_agent.storage.blobs import DocumentStore, upload_prefix
from solicitation_agent.storage.records import RecordStore
from solicitation_agent.types import InlineData, Part, TextPart

logger = get_logger(__name__)


class SearchToolInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    query: str = Field(min_length=1)
    state: str | None = None
    naics: str | None = None


class ExtractToolInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str
    want_sub_packages: bool | None = Field(default=None, alias="wantSubPackages")

    @field_validator("text")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("text must not be blank")
        return value


class ListDocsToolInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    notice_id: str = Field(default="", alias="noticeId")


class SummarizeToolInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    notice_id: str = Field(default="", alias="noticeId")
    selected: list[str] = Field(default_factory=list)
    contract_description: str | None = Field(default=None, alias="contractDescription")


class JudgeToolInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    analysis_id: str = Field(default="", alias="analysisId")


def register_builtin_tools(
    registry: ToolRegistry,
    *,
    store: RecordStore,
    documents: DocumentStore,
    fetcher: DocumentFetcher,
    config: AgentConfig | None = None,
    repair: RepairLoop | None = None,
) -> None:
    """Register the default tool set used by the orchestrator.

    Tools:
    - `searchContracts`: demo search returning a fixed result set.
    - `extractSolicitation`: structured fields from pasted solicitation text.
    - `listContractDocs`: catalog attachments plus user-uploaded PDFs of a notice.
    - `summarizeDocs`: structured summary of selected PDFs, tracked as an analysis.
    - `judgeBundle`: prime vs subcontractor split of a stored summary.
    """

    config = config or AgentConfig()
    repair = repair or RepairLoop(max_repair_rounds=config.max_repair_rounds)

    async def _search(input_data: SearchToolInput, ctx: ToolContext) -> dict[str, Any]:
        return {
            "idempotencyKey": ctx.idempotency_key,
            "results": [
                {
                    "id": "demo-123",
                    "title": f'Demo contract for "{input_data.query}"',
                    "state": input_data.state or "UT",
                    "naics": input_data.naics or "238990",
                    "url": "https://example.com/demo-contract",
                }
            ],
            "count": 1,
        }

    async def _extract(input_data: ExtractToolInput, ctx: ToolContext) -> dict[str, Any]:
        text = input_data.text[: config.max_extract_chars]
        payload = await repair.attempt(
            _generator(ctx, EXTRACT_SYSTEM_PROMPT),
            [TextPart(text)],
            EXTRACT_SCHEMA,
            validate_extract,
        )
        return {"idempotencyKey": ctx.idempotency_key, "data": payload.data}

    async def _list_docs(input_data: ListDocsToolInput, ctx: ToolContext) -> dict[str, Any]:
        notice_id = input_data.notice_id.strip()
        if not notice_id:
            raise MissingRequiredInput("noticeId required")

        row = await asyncio.to_thread(store.get_contract, notice_id) or {}
        prefix = upload_prefix(notice_id)
        try:
            names = await asyncio.to_thread(documents.list, prefix, limit=config.upload_list_limit)
        except PersistenceError as exc:
            logger.warning("upload_listing_failed", notice_id=notice_id, error=str(exc))
            names = []

        return {
            "noticeId": notice_id,
            "title": row.get("title"),
            "samNoticeUrl": row.get("sam_ui_link"),
            "attachments": row.get("attachments") or [],
            "uploads": [
                {"name": name, "path": prefix + name}
                for name in names
                if name.lower().endswith(".pdf")
            ],
        }

    async def _summarize(input_data: SummarizeToolInput, ctx: ToolContext) -> dict[str, Any]:
        notice_id = input_data.notice_id.strip()
        selected = [ref for ref in input_data.selected if ref.strip()]
        if not notice_id or not selected:
            raise MissingRequiredInput("noticeId and selected[] required")

        record = await asyncio.to_thread(
            store.create_analysis,
            notice_id,
            selected,
            idempotency_key=ctx.idempotency_key,
        )
        try:
            fetched = await fetcher.fetch_all(selected)
            prompt: list[Part] = [InlineData(doc.data, doc.mime_type, doc.filename) for doc in fetched]
            description = (input_data.contract_description or "").strip()
            if description:
                prompt.append(TextPart(f"Contract description:\n{description}"))
            if not prompt:
                raise ValueError("No selected document could be fetched and no description was given")

            referenced_files = [doc.ref for doc in fetched]
            payload = await repair.attempt(
                _generator(ctx, SUMMARY_SYSTEM_PROMPT),
                prompt,
                SUMMARY_SCHEMA,
                validate_summary,
            )
            summary = {**payload.data, "referenced_files": referenced_files}
            await asyncio.to_thread(store.complete_analysis, record.id, summary)
        except Exception as exc:
            await asyncio.to_thread(store.fail_analysis, record.id, str(exc))
            logger.warning("analysis_failed", analysis_id=record.id, error=str(exc))
            details = exc.errors if isinstance(exc, SchemaRepairExhausted) else getattr(exc, "details", None)
            raise SummarizationFailed("summarizeDocs failed", details=details) from exc

        logger.info(
            "analysis_succeeded",
            analysis_id=record.id,
            selected=len(selected),
            fetched=len(referenced_files),
        )
        return {"analysisId": record.id, "summary": summary, "referenced_files": referenced_files}

    async def _judge(input_data: JudgeToolInput, ctx: ToolContext) -> dict[str, Any]:
        analysis_id = input_data.analysis_id.strip()
        if not analysis_id:
            raise MissingRequiredInput("analysisId required")

        record = await asyncio.to_thread(store.get_analysis, analysis_id)
        if record is None or not record.summary:
            raise NotFound("No summary found")

        payload = await repair.attempt(
            _generator(ctx, JUDGE_SYSTEM_PROMPT),
            [TextPart(json.dumps(record.summary, ensure_ascii=False))],
            JUDGE_SCHEMA,
            validate_judge,
        )
        judge = payload.data
        confidence = float(judge["confidence"])
        await asyncio.to_thread(store.attach_judgement, analysis_id, judge, confidence)

        escalated = confidence < config.escalation_threshold
        logger.info("analysis_judged", analysis_id=analysis_id, confidence=confidence, escalated=escalated)
        return {"analysisId": analysis_id, "judge": judge, "escalated": escalated}

    registry.register(
        ToolSpec(
            name="searchContracts",
            description="Mocked search over contracts (no database yet).",
            args_schema=SearchToolInput,
            handler=_search,
            required=["query"],
            tags=["search", "demo"],
        )
    )
    registry.register(
        ToolSpec(
            name="extractSolicitation",
            description=(
                "Extract structured fields from raw solicitation text. "
                "Return strictly valid JSON (no prose)."
            ),
            args_schema=ExtractToolInput,
            handler=_extract,
            required=["text"],
            tags=["extraction", "llm"],
        )
    )
    registry.register(
        ToolSpec(
            name="listContractDocs",
            description=(
                "List PDFs for a given SAM.gov notice id plus any user-uploaded "
                "docs for that contract."
            ),
            args_schema=ListDocsToolInput,
            handler=_list_docs,
            required=["noticeId"],
            tags=["documents"],
        )
    )
    registry.register(
        ToolSpec(
            name="summarizeDocs",
            description=(
                "Summarize selected PDFs and contract description into a "
                "structured JSON summary."
            ),
            args_schema=SummarizeToolInput,
            handler=_summarize,
            required=["noticeId", "selected"],
            tags=["documents", "llm", "analysis"],
        )
    )
    registry.register(
        ToolSpec(
            name="judgeBundle",
            description=(
                "Classify summary into prime vs subcontractor needs; return "
                "confidence and rationale."
            ),
            args_schema=JudgeToolInput,
            handler=_judge,
            required=["analysisId"],
            tags=["analysis", "llm"],
        )
    )


def _generator(ctx: ToolContext, system_prompt: str) -> GenerateFn:
    async def _generate(prompt: list[Part]) -> str:
        return await ctx.gateway.generate_text(prompt, system_instruction=system_prompt)

    return _generate
