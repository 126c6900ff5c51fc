"""Tests for the composed abuse-control pipeline."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest
from pydantic import ValidationError

from guard.app.api.schemas import ReportCreate
from guard.app.exceptions import StoreUnavailableError, UnknownPolicyError
from guard.app.services.pipeline import (
    Proceed,
    RejectedDuplicate,
    RejectedNotFound,
    RejectedRateLimited,
    RejectedSilentSpam,
    RequestContext,
)
from guard.app.services.stores import AuditQuery, RecordType, TargetIdentity

from tests.fakes import create_event

IP = "203.0.113.7"


def report_payload(entity_id, **overrides):
    payload = {
        "entity_type": "Event",
        "entity_id": entity_id,
        "issue_type": "Incorrect information",
        "description": "The start time listed is wrong",
    }
    payload.update(overrides)
    return payload


async def gate_and_write_report(pipeline, ctx):
    decision = await pipeline.gate(
        ctx, "strict", RecordType.REPORT, ReportCreate.model_validate,
        identifier=f"report:{ctx.ip_address}",
    )
    if not decision.proceed:
        return decision, None
    data = decision.subject
    report = await pipeline.complete(
        ctx,
        "report.create",
        lambda: pipeline.entity_store.create(
            RecordType.REPORT,
            {
                "entity_type": data.entity_type,
                "entity_id": data.entity_id,
                "issue_type": data.issue_type,
                "description": data.description,
            },
        ),
        metadata={"entity_type": data.entity_type},
    )
    return decision, report


class TestGate:

    @pytest.mark.asyncio
    async def test_clean_request_proceeds(self, pipeline, entity_store):
        event = await create_event(entity_store)
        ctx = RequestContext(ip_address=IP, payload=report_payload(event.id))

        decision = await pipeline.gate(ctx, "strict", RecordType.REPORT, ReportCreate.model_validate)

        assert isinstance(decision, Proceed)
        assert decision.proceed is True
        assert decision.rate_limit.remaining == 4
        assert isinstance(decision.subject, ReportCreate)

    @pytest.mark.asyncio
    async def test_honeypot_short_circuits_before_rate_limit(self, pipeline):
        ctx = RequestContext(
            ip_address=IP, payload=report_payload("whatever", honeypot="gotcha")
        )
        with patch.object(pipeline.rate_limiter, "check", new=AsyncMock()) as mock_check:
            for _ in range(20):
                decision = await pipeline.gate(
                    ctx, "strict", RecordType.REPORT, ReportCreate.model_validate
                )
                assert isinstance(decision, RejectedSilentSpam)
                assert decision.proceed is False
        mock_check.assert_not_called()

    @pytest.mark.asyncio
    async def test_honeypot_wins_over_invalid_payload(self, pipeline):
        ctx = RequestContext(ip_address=IP, payload={"honeypot": "x", "description": "short"})
        decision = await pipeline.gate(
            ctx, "strict", RecordType.REPORT, ReportCreate.model_validate
        )
        assert isinstance(decision, RejectedSilentSpam)

    @pytest.mark.asyncio
    async def test_spam_carries_fresh_window_quota(self, pipeline, clock):
        ctx = RequestContext(ip_address=IP, payload={"honeypot": "x"})
        decision = await pipeline.gate(ctx, "strict", RecordType.REPORT)

        assert decision.rate_limit.success is True
        assert decision.rate_limit.limit == 5
        assert decision.rate_limit.remaining == 4
        assert decision.rate_limit.reset == clock() + 3600

    @pytest.mark.asyncio
    async def test_spam_does_not_consume_quota(self, pipeline, entity_store):
        event = await create_event(entity_store)
        spam = RequestContext(ip_address=IP, payload=report_payload(event.id, honeypot="x"))
        for _ in range(10):
            await pipeline.gate(spam, "strict", RecordType.REPORT, ReportCreate.model_validate)

        clean = RequestContext(ip_address=IP, payload=report_payload(event.id))
        decision = await pipeline.gate(clean, "strict", RecordType.REPORT, ReportCreate.model_validate)
        assert decision.rate_limit.remaining == 4

    @pytest.mark.asyncio
    async def test_rate_limited_after_ceiling(self, pipeline):
        ctx = RequestContext(ip_address=IP)
        for _ in range(3):
            assert (await pipeline.gate(ctx, "very_strict", RecordType.EVENT)).proceed

        decision = await pipeline.gate(ctx, "very_strict", RecordType.EVENT)
        assert isinstance(decision, RejectedRateLimited)
        assert decision.limit == 3
        assert decision.reset == decision.rate_limit.reset

    @pytest.mark.asyncio
    async def test_default_identifier_uses_record_type_and_address(self, pipeline):
        ctx = RequestContext(ip_address=IP)
        with patch.object(pipeline.rate_limiter, "check", wraps=pipeline.rate_limiter.check) as spy:
            await pipeline.gate(ctx, "strict", RecordType.SUBMISSION)
        spy.assert_awaited_once_with(f"submission:{IP}", "strict")

    @pytest.mark.asyncio
    async def test_invalid_payload_raises_after_rate_limit(self, pipeline):
        ctx = RequestContext(ip_address=IP, payload={"entity_type": "Event"})
        with pytest.raises(ValidationError):
            await pipeline.gate(ctx, "strict", RecordType.REPORT, ReportCreate.model_validate)

        # The rejected attempt still counted against the tier
        decision = await pipeline.gate(ctx, "strict", RecordType.SUBMISSION, identifier=f"report:{IP}")
        assert decision.rate_limit.remaining == 3

    @pytest.mark.asyncio
    async def test_missing_target_is_not_found(self, pipeline):
        ctx = RequestContext(ip_address=IP, payload=report_payload("no-such-event"))
        decision = await pipeline.gate(ctx, "strict", RecordType.REPORT, ReportCreate.model_validate)
        assert isinstance(decision, RejectedNotFound)
        assert decision.entity_type == "Event"
        assert decision.entity_id == "no-such-event"

    @pytest.mark.asyncio
    async def test_existence_check_failure_propagates(self, pipeline):
        ctx = RequestContext(ip_address=IP)
        target = TargetIdentity.for_resource("Event", "event-42")
        with patch.object(
            pipeline.entity_store,
            "find_by_id",
            new=AsyncMock(side_effect=StoreUnavailableError("entity")),
        ):
            with pytest.raises(StoreUnavailableError):
                await pipeline.gate(ctx, "very_strict", RecordType.EVENT, target)

    @pytest.mark.asyncio
    async def test_unknown_policy_raises(self, pipeline):
        with pytest.raises(UnknownPolicyError):
            await pipeline.gate(RequestContext(ip_address=IP), "lenient", RecordType.EVENT)


class TestReportScenario:
    """A report is audited, then refused from the same address and accepted from another."""

    @pytest.mark.asyncio
    async def test_duplicate_report_flow(self, pipeline, entity_store, audit_store):
        event = await create_event(entity_store)
        first_ctx = RequestContext(ip_address=IP, payload=report_payload(event.id))

        decision, report = await gate_and_write_report(pipeline, first_ctx)
        assert decision.proceed
        entries = await audit_store.find_recent(
            AuditQuery(since=datetime(2000, 1, 1, tzinfo=timezone.utc))
        )
        assert len(entries) == 1
        assert entries[0].action == "report.create"
        assert entries[0].resource_id == report.id
        assert entries[0].ip_address == IP
        assert entries[0].metadata == {"entity_type": "Event"}

        decision, _ = await gate_and_write_report(pipeline, first_ctx)
        assert isinstance(decision, RejectedDuplicate)
        assert decision.rate_limit.limit == 5

        other_ctx = RequestContext(ip_address="198.51.100.3", payload=report_payload(event.id))
        decision, second = await gate_and_write_report(pipeline, other_ctx)
        assert decision.proceed
        assert second.id != report.id


class TestComplete:

    @pytest.mark.asyncio
    async def test_failed_write_leaves_no_audit_entry(self, pipeline):
        ctx = RequestContext(ip_address=IP)
        audit_store = AsyncMock()
        pipeline.audit_store = audit_store

        async def failing_write():
            raise RuntimeError("disk full")

        with pytest.raises(RuntimeError):
            await pipeline.complete(ctx, "report.create", failing_write)
        audit_store.append.assert_not_called()

    @pytest.mark.asyncio
    async def test_audit_failure_does_not_fail_write(self, pipeline):
        ctx = RequestContext(ip_address=IP, user_id="admin")
        audit_store = AsyncMock()
        audit_store.append.side_effect = StoreUnavailableError("audit")
        pipeline.audit_store = audit_store

        async def write():
            return {"ok": True}

        with patch("guard.app.services.audit.logger") as mock_logger:
            result = await pipeline.complete(ctx, "event.delete", write, resource_id="event-1")
        assert result == {"ok": True}
        mock_logger.error.assert_called_once()

    @pytest.mark.asyncio
    async def test_resource_id_taken_from_result(self, pipeline):
        ctx = RequestContext(ip_address=IP, user_id="admin")
        audit_store = AsyncMock()
        pipeline.audit_store = audit_store

        class Written:
            id = "event-7"

        async def write():
            return Written()

        await pipeline.complete(ctx, "event.create", write, metadata={"name": "Jazz"})
        entry = audit_store.append.call_args.args[0]
        assert entry.resource_id == "event-7"
        assert entry.user_id == "admin"
        assert entry.ip_address == IP
        assert entry.metadata == {"name": "Jazz"}
