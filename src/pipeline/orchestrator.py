# src/pipeline/orchestrator.py - v3
"""Pipeline orchestrator: runs one document through one of two fixed pipelines.

    direct-multimodal   one vision turn, schema attached
    ocr-then-parse      OCR vision turn, then a text parse turn with the schema

Each run is registered in the ledger before the first model call and
finalized exactly once: success, error or cancelled. Model-call failures are
classified, recorded as failed runs and raised as PipelineError. Unparseable
JSON and schema violations are not failures: the run succeeds with
``is_valid=False`` and the findings on its Output.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any, Callable

from visiontester.core.errors import ErrorKind, OrchestratorBusyError, PipelineError
from visiontester.core.models import (
    InputDocument,
    Output,
    PipelineKind,
    RunDraft,
    RunParameters,
    RunRecord,
)
from visiontester.extraction.error_classifier import (
    MESSAGES,
    classify_error,
    classify_step_error,
)
from visiontester.extraction.response_extractor import extract_json
from visiontester.llm import request_builder
from visiontester.llm.models import ChatRequest, ChatResponse
from visiontester.logging.context import clear_context, set_run_context
from visiontester.pipeline.state import RunContext, RunStage
from visiontester.schema.cleaner import clean_schema
from visiontester.schema.validator import SchemaValidator, format_findings
from visiontester.tracking.usage import TurnUsage, UsageLogger
from visiontester.utils.base64 import strip_data_uri_prefix

if TYPE_CHECKING:
    from visiontester.config.settings import Settings
    from visiontester.llm.base_transport import BaseTransport
    from visiontester.storage.base_ledger import BaseRunLedger

logger = logging.getLogger(__name__)

SchemaCleaner = Callable[[dict[str, Any]], dict[str, Any]]

OCR_EMPTY_MESSAGE = "OCR step returned no text; the parse step was not run."


class PipelineOrchestrator:
    """Drives single runs against one transport and one ledger.

    One run at a time per instance: the transport is single-flight, so
    starting a second run while one is active raises OrchestratorBusyError
    instead of silently cancelling the first.

    Args:
        settings: Application settings (model defaults, require_schema,
            ledger_retain_documents).
        transport: Inference transport owned by this orchestrator.
        ledger: Run ledger receiving create/complete/fail/cancel.
        validator: Schema validator for parsed output.
        schema_cleaner: Transform applied to output schemas before use.
        usage_logger: Optional per-turn usage tracking.
    """

    def __init__(
        self,
        settings: Settings,
        transport: BaseTransport,
        ledger: BaseRunLedger,
        validator: SchemaValidator | None = None,
        schema_cleaner: SchemaCleaner = clean_schema,
        usage_logger: UsageLogger | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._ledger = ledger
        self._validator = validator or SchemaValidator()
        self._schema_cleaner = schema_cleaner
        self._usage_logger = usage_logger or UsageLogger()
        self._context: RunContext | None = None

    # --- Public surface ---

    @property
    def is_running(self) -> bool:
        return self._context is not None

    @property
    def stage(self) -> RunStage:
        return self._context.stage if self._context is not None else RunStage.IDLE

    @property
    def usage_logger(self) -> UsageLogger:
        return self._usage_logger

    def cancel(self) -> bool:
        """Abort the active run, if any. Idempotent.

        Once a run has reached its terminal write (stage TERMINAL) its outcome
        is fixed: the request is refused and the run keeps that outcome.

        Returns:
            True if the run is, or already was, marked cancelled.
        """
        ctx = self._context
        if ctx is None:
            return False
        if ctx.cancelled:
            return True
        if ctx.stage is RunStage.TERMINAL:
            logger.info("Run %s is already finalizing; cancel ignored", ctx.run_id)
            return False
        logger.info("Cancelling run %s at stage %s", ctx.run_id, ctx.stage.value)
        ctx.token.cancel()
        self._transport.cancel()
        return True

    async def run_direct(
        self,
        document: InputDocument | None,
        parameters: RunParameters,
        model: str | None = None,
    ) -> RunRecord:
        """Single vision turn with the output schema attached.

        Returns:
            The finalized RunRecord (status success).

        Raises:
            OrchestratorBusyError: If a run is already active.
            PipelineError: MISSING_FILE / MISSING_SCHEMA before any ledger
                call; any model-call failure or cancellation afterwards,
                carrying the finalized record.
        """
        ctx = self._begin("direct-multimodal", document, parameters)
        try:
            return await self._execute_direct(
                ctx, document, parameters, model or self._settings.default_model,  # type: ignore[arg-type]
            )
        finally:
            self._end()

    async def run_ocr_then_parse(
        self,
        document: InputDocument | None,
        parameters: RunParameters,
        ocr_model: str | None = None,
        parse_model: str | None = None,
    ) -> RunRecord:
        """OCR vision turn, then a text-only parse turn.

        Empty or whitespace-only OCR text ends the run as an OCR_EMPTY_RESULT
        error; the parse turn is not called.
        """
        ctx = self._begin("ocr-then-parse", document, parameters)
        try:
            return await self._execute_two_step(
                ctx,
                document,  # type: ignore[arg-type]
                parameters,
                ocr_model or self._settings.ocr_model,
                parse_model or self._settings.parse_model,
            )
        finally:
            self._end()

    # --- Run bracketing ---

    def _begin(
        self,
        pipeline: PipelineKind,
        document: InputDocument | None,
        parameters: RunParameters,
    ) -> RunContext:
        if self._context is not None:
            raise OrchestratorBusyError(
                f"A {self._context.pipeline} run is already in progress"
            )
        if document is None or not strip_data_uri_prefix(document.content):
            raise PipelineError(
                ErrorKind.MISSING_FILE, "No document provided. Select a file to run."
            )
        if self._settings.require_schema and not parameters.output_schema:
            raise PipelineError(
                ErrorKind.MISSING_SCHEMA,
                "An output schema is required but none is configured.",
            )
        ctx = RunContext(pipeline=pipeline)
        self._context = ctx
        set_run_context(None, pipeline)
        return ctx

    def _end(self) -> None:
        self._context = None
        clear_context()

    async def _create_record(
        self,
        ctx: RunContext,
        draft: RunDraft,
        content: str,
    ) -> RunRecord:
        retained = content if self._settings.ledger_retain_documents else None
        record = await self._ledger.create(draft, content=retained)
        ctx.record = record
        set_run_context(record.id, ctx.pipeline)
        logger.info("Run %s started (%s, %s)", record.id, ctx.pipeline, draft.model_name)
        return record

    def _clean(self, schema: dict[str, Any] | None) -> dict[str, Any] | None:
        if not schema:
            return None
        return self._schema_cleaner(schema)

    # --- Pipelines ---

    async def _execute_direct(
        self,
        ctx: RunContext,
        document: InputDocument,
        parameters: RunParameters,
        model: str,
    ) -> RunRecord:
        content = strip_data_uri_prefix(document.content)
        schema = self._clean(parameters.output_schema)

        await self._create_record(ctx, RunDraft(
            pipeline="direct-multimodal",
            model_name=model,
            parameters=parameters,
            input=document,
        ), content)

        ctx.advance(RunStage.BUILDING)
        request = request_builder.build_direct_request(model, parameters, content, schema)

        ctx.advance(RunStage.AWAITING_MODEL)
        response = await self._call(ctx, request, step="direct")
        usage = TurnUsage.from_response(response)

        output = Output(
            raw=response.content,
            thinking=response.thinking,
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
            total_duration=usage.total_duration,
        )
        return await self._complete(ctx, self._evaluate(ctx, output, schema))

    async def _execute_two_step(
        self,
        ctx: RunContext,
        document: InputDocument,
        parameters: RunParameters,
        ocr_model: str,
        parse_model: str,
    ) -> RunRecord:
        content = strip_data_uri_prefix(document.content)
        schema = self._clean(parameters.output_schema)

        await self._create_record(ctx, RunDraft(
            pipeline="ocr-then-parse",
            model_name=parse_model,
            ocr_model=ocr_model,
            parameters=parameters,
            input=document,
        ), content)

        ctx.advance(RunStage.BUILDING_OCR)
        ocr_request = request_builder.build_ocr_request(ocr_model, parameters, content)

        ctx.advance(RunStage.AWAITING_OCR)
        ocr_response = await self._call(ctx, ocr_request, step="ocr")
        ocr_text = ocr_response.content

        ctx.advance(RunStage.VALIDATING_OCR_TEXT)
        if not ocr_text.strip():
            ocr_usage = ctx.usage()
            partial = Output(
                raw=ocr_text,
                ocr_text=ocr_text,
                thinking=ocr_response.thinking,
                prompt_tokens=ocr_usage.prompt_tokens,
                completion_tokens=ocr_usage.completion_tokens,
                total_duration=ocr_usage.total_duration,
            )
            ctx.advance(RunStage.TERMINAL)
            record = await self._ledger.fail(
                ctx.record.id,  # type: ignore[union-attr]
                OCR_EMPTY_MESSAGE,
                duration_ms=ctx.elapsed_ms(),
                output=partial,
            )
            ctx.record = record
            logger.warning("Run %s: OCR returned empty text", record.id)
            raise PipelineError(ErrorKind.OCR_EMPTY_RESULT, OCR_EMPTY_MESSAGE, run=record)

        ctx.advance(RunStage.BUILDING_PARSE)
        parse_request = request_builder.build_parse_request(
            parse_model, parameters, ocr_text, schema,
        )

        ctx.advance(RunStage.AWAITING_PARSE)
        parse_response = await self._call(
            ctx, parse_request, step="parse", partial=Output(ocr_text=ocr_text),
        )
        usage = ctx.usage()

        output = Output(
            raw=parse_response.content,
            ocr_text=ocr_text,
            thinking=parse_response.thinking,
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
            total_duration=usage.total_duration,
        )
        return await self._complete(ctx, self._evaluate(ctx, output, schema))

    # --- Turns and terminal transitions ---

    async def _call(
        self,
        ctx: RunContext,
        request: ChatRequest,
        step: str,
        partial: Output | None = None,
    ) -> ChatResponse:
        """One model turn; any failure finalizes the run and raises."""
        if ctx.cancelled:
            raise await self._cancelled(ctx, partial)

        t0 = time.monotonic()
        try:
            response = await self._transport.call(request)
        except asyncio.CancelledError:
            # Caller cancelled the task: record it, then let cancellation propagate.
            self._usage_logger.record(step, request.model, status="cancelled")
            await self._finalize_cancelled(ctx, partial)
            raise
        except Exception as e:
            latency = round((time.monotonic() - t0) * 1000)
            if step in ("ocr", "parse"):
                error = classify_step_error(e, step)  # type: ignore[arg-type]
            else:
                error = classify_error(e)
            if ctx.cancelled or error.kind == ErrorKind.REQUEST_CANCELLED:
                self._usage_logger.record(
                    step, request.model, latency_ms=latency, status="cancelled",
                )
                raise await self._cancelled(ctx, partial) from e
            self._usage_logger.record(step, request.model, latency_ms=latency, status="error")
            raise await self._failed(ctx, error, partial) from e

        latency = round((time.monotonic() - t0) * 1000)
        self._usage_logger.record(step, request.model, response, latency_ms=latency)
        if ctx.cancelled:
            # Resolved after cancel() was requested: the result is discarded.
            raise await self._cancelled(ctx, partial)
        ctx.turns.append(TurnUsage.from_response(response))
        return response

    def _evaluate(
        self,
        ctx: RunContext,
        output: Output,
        schema: dict[str, Any] | None,
    ) -> Output:
        """Extract JSON and validate it. Problems land on the Output, never raise."""
        ctx.advance(RunStage.EXTRACTING)
        try:
            parsed = extract_json(output.raw)
        except PipelineError as e:
            logger.info("Run %s: response is not JSON", ctx.run_id)
            return output.model_copy(update={
                "is_valid": False, "validation_errors": [], "error": e.message,
            })

        if schema is None:
            return output.model_copy(update={"parsed": parsed, "is_valid": True})

        ctx.advance(RunStage.VALIDATING)
        result = self._validator.validate(parsed, schema)
        if result.valid:
            return output.model_copy(update={"parsed": parsed, "is_valid": True})

        logger.info(
            "Run %s: %d schema validation findings", ctx.run_id, len(result.errors),
        )
        return output.model_copy(update={
            "parsed": parsed,
            "is_valid": False,
            "validation_errors": result.errors,
            "error": "Schema validation failed: " + "; ".join(format_findings(result.errors)),
        })

    async def _complete(self, ctx: RunContext, output: Output) -> RunRecord:
        if ctx.cancelled:
            raise await self._cancelled(ctx, output)
        ctx.advance(RunStage.TERMINAL)
        record = await self._ledger.complete(
            ctx.record.id, output, ctx.elapsed_ms(),  # type: ignore[union-attr]
        )
        ctx.record = record
        logger.info(
            "Run %s succeeded in %dms (valid=%s)", record.id, record.duration_ms, output.is_valid,
        )
        return record

    async def _failed(
        self, ctx: RunContext, error: PipelineError, partial: Output | None,
    ) -> PipelineError:
        ctx.advance(RunStage.TERMINAL)
        output = self._with_usage(ctx, partial)
        record = await self._ledger.fail(
            ctx.record.id,  # type: ignore[union-attr]
            error.message,
            duration_ms=ctx.elapsed_ms(),
            output=output,
        )
        ctx.record = record
        logger.error("Run %s failed: %s", record.id, error)
        return error.with_run(record)

    async def _finalize_cancelled(
        self, ctx: RunContext, partial: Output | None,
    ) -> RunRecord:
        ctx.advance(RunStage.TERMINAL)
        record = await self._ledger.cancel(
            ctx.record.id,  # type: ignore[union-attr]
            duration_ms=ctx.elapsed_ms(),
            output=self._with_usage(ctx, partial),
        )
        ctx.record = record
        logger.info("Run %s cancelled after %dms", record.id, record.duration_ms)
        return record

    async def _cancelled(self, ctx: RunContext, partial: Output | None) -> PipelineError:
        record = await self._finalize_cancelled(ctx, partial)
        return PipelineError(
            ErrorKind.REQUEST_CANCELLED,
            MESSAGES[ErrorKind.REQUEST_CANCELLED],
            run=record,
        )

    @staticmethod
    def _with_usage(ctx: RunContext, partial: Output | None) -> Output | None:
        """Partial output carrying the usage of the turns completed so far."""
        if not ctx.turns:
            return partial
        usage = ctx.usage()
        return (partial or Output()).model_copy(update={
            "prompt_tokens": usage.prompt_tokens,
            "completion_tokens": usage.completion_tokens,
            "total_duration": usage.total_duration,
        })
