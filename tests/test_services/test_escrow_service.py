"""Tests for the escrow lifecycle against an in-memory database.

Payments run in simulation mode; individual processor calls are patched
where a test needs a specific processor answer.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from factories import ctx, make_hired_project, make_project, make_user
from koihire.domain.auth import AuthContext
from koihire.domain.enums import (
    DisputeOutcome,
    EscrowStatus,
    NotificationType,
    ProjectStatus,
    TransactionType,
    UserRole,
)
from koihire.domain.exceptions import (
    DuplicateOperationError,
    ForbiddenError,
    InvalidStateTransitionError,
    NotFoundError,
    UpstreamFailureError,
    ValidationError,
)
from koihire.infrastructure.database.orm_models import Notification, Transaction
from koihire.infrastructure.database.repositories import EscrowRepository
from koihire.services.escrow_service import (
    ESCROW_PAYMENT_TYPE,
    SERVICE_ORDER_PAYMENT_TYPE,
    EscrowService,
)
from koihire.services.payment_service import PaymentIntentResult
from koihire.services.project_service import ProjectService


async def _fund(svc: EscrowService, project, client):
    outcome = await svc.create_payment_intent(project.id, ctx(client))
    return await svc.fund_escrow(project.id, outcome.payment_intent_id, payer=ctx(client))


async def _transactions(session, escrow_id) -> list[Transaction]:
    result = await session.execute(
        select(Transaction).where(Transaction.escrow_id == escrow_id)
    )
    return list(result.scalars().all())


class TestCreatePaymentIntent:
    @pytest.mark.asyncio
    async def test_breakdown_and_pending_escrow(self, session, simulated_payments) -> None:
        client, freelancer, project = await make_hired_project(session)
        svc = EscrowService(session, simulated_payments)

        outcome = await svc.create_payment_intent(project.id, ctx(client))

        assert outcome.breakdown.agreed_amount == Decimal("1500.00")
        assert outcome.breakdown.buyer_fee == Decimal("37.50")
        assert outcome.breakdown.total_charged == Decimal("1537.50")
        assert outcome.client_secret
        assert outcome.escrow.status == EscrowStatus.PENDING
        assert outcome.escrow.amount == Decimal("1537.50")
        assert outcome.escrow.processor_payment_id == outcome.payment_intent_id

    @pytest.mark.asyncio
    async def test_intent_metadata(self, session, simulated_payments) -> None:
        client, freelancer, project = await make_hired_project(session)
        svc = EscrowService(session, simulated_payments)

        with patch.object(
            simulated_payments,
            "create_payment_intent",
            wraps=simulated_payments.create_payment_intent,
        ) as mock_create:
            await svc.create_payment_intent(project.id, ctx(client))

        amount = mock_create.call_args.args[0]
        metadata = mock_create.call_args.kwargs["metadata"]
        assert amount == Decimal("1537.50")
        assert metadata["projectId"] == str(project.id)
        assert metadata["freelancerId"] == str(freelancer.id)
        assert metadata["type"] == ESCROW_PAYMENT_TYPE
        assert metadata["buyerFee"] == "37.50"

    @pytest.mark.asyncio
    async def test_second_intent_reuses_escrow(self, session, simulated_payments) -> None:
        client, _, project = await make_hired_project(session)
        svc = EscrowService(session, simulated_payments)

        first = await svc.create_payment_intent(project.id, ctx(client))
        second = await svc.create_payment_intent(project.id, ctx(client))

        assert first.escrow.id == second.escrow.id
        assert second.escrow.processor_payment_id == second.payment_intent_id

    @pytest.mark.asyncio
    async def test_only_the_client_can_pay(self, session, simulated_payments) -> None:
        _, freelancer, project = await make_hired_project(session)
        svc = EscrowService(session, simulated_payments)

        with pytest.raises(NotFoundError):
            await svc.create_payment_intent(project.id, ctx(freelancer))

    @pytest.mark.asyncio
    async def test_open_project_cannot_be_funded(self, session, simulated_payments) -> None:
        client = await make_user(session)
        project = await make_project(session, client)
        svc = EscrowService(session, simulated_payments)

        with pytest.raises(InvalidStateTransitionError):
            await svc.create_payment_intent(project.id, ctx(client))

    @pytest.mark.asyncio
    async def test_funded_escrow_rejects_new_intent(self, session, simulated_payments) -> None:
        client, _, project = await make_hired_project(session)
        svc = EscrowService(session, simulated_payments)
        await _fund(svc, project, client)

        with pytest.raises(InvalidStateTransitionError):
            await svc.create_payment_intent(project.id, ctx(client))


class TestFundEscrow:
    @pytest.mark.asyncio
    async def test_funds_and_records_deposit(self, session, simulated_payments) -> None:
        client, freelancer, project = await make_hired_project(session)
        svc = EscrowService(session, simulated_payments)

        escrow = await _fund(svc, project, client)

        assert escrow.status == EscrowStatus.FUNDED
        assert escrow.funded_at is not None
        txs = await _transactions(session, escrow.id)
        assert [(t.type, t.user_id, t.amount) for t in txs] == [
            (TransactionType.DEPOSIT, client.id, Decimal("1537.50"))
        ]
        notes = (await session.execute(select(Notification))).scalars().all()
        assert [(n.user_id, n.type) for n in notes] == [
            (freelancer.id, NotificationType.ESCROW_FUNDED)
        ]

    @pytest.mark.asyncio
    async def test_fund_twice_is_rejected(self, session, simulated_payments) -> None:
        client, _, project = await make_hired_project(session)
        svc = EscrowService(session, simulated_payments)
        escrow = await _fund(svc, project, client)

        with pytest.raises(InvalidStateTransitionError):
            await svc.fund_escrow(project.id, escrow.processor_payment_id, payer=ctx(client))

        assert len(await _transactions(session, escrow.id)) == 1

    @pytest.mark.asyncio
    async def test_uncaptured_payment_is_rejected(self, session, simulated_payments) -> None:
        client, _, project = await make_hired_project(session)
        svc = EscrowService(session, simulated_payments)
        outcome = await svc.create_payment_intent(project.id, ctx(client))

        pending = PaymentIntentResult(
            id=outcome.payment_intent_id,
            client_secret=None,
            status="requires_payment_method",
            amount_cents=153750,
        )
        with patch.object(
            simulated_payments, "retrieve_payment_intent", new_callable=AsyncMock
        ) as mock_retrieve:
            mock_retrieve.return_value = pending
            with pytest.raises(UpstreamFailureError):
                await svc.fund_escrow(project.id, outcome.payment_intent_id, payer=ctx(client))

        assert outcome.escrow.status == EscrowStatus.PENDING

    @pytest.mark.asyncio
    async def test_intent_for_another_project_is_rejected(
        self, session, simulated_payments
    ) -> None:
        client, _, project = await make_hired_project(session)
        svc = EscrowService(session, simulated_payments)

        foreign = PaymentIntentResult(
            id="pi_foreign",
            client_secret=None,
            status="succeeded",
            amount_cents=100,
            metadata={"projectId": str(uuid.uuid4())},
        )
        with patch.object(
            simulated_payments, "retrieve_payment_intent", new_callable=AsyncMock
        ) as mock_retrieve:
            mock_retrieve.return_value = foreign
            with pytest.raises(ValidationError):
                await svc.fund_escrow(project.id, "pi_foreign", payer=ctx(client))

    @pytest.mark.asyncio
    async def test_intent_cannot_fund_two_escrows(self, session, simulated_payments) -> None:
        client, freelancer, first = await make_hired_project(session)
        second = await make_project(
            session, client, freelancer, ProjectStatus.IN_PROGRESS, agreed_amount=Decimal("800")
        )
        svc = EscrowService(session, simulated_payments)
        funded = await _fund(svc, first, client)

        with pytest.raises(DuplicateOperationError):
            await svc.fund_escrow(second.id, funded.processor_payment_id, payer=ctx(client))

    @pytest.mark.asyncio
    async def test_untagged_intent_cannot_fund(self, session, simulated_payments) -> None:
        """A captured $1.00 intent with no metadata must not fund a $1537.50 escrow."""
        client, _, project = await make_hired_project(session)
        svc = EscrowService(session, simulated_payments)
        outcome = await svc.create_payment_intent(project.id, ctx(client))

        stray = PaymentIntentResult(
            id="pi_other", client_secret=None, status="succeeded", amount_cents=100
        )
        with patch.object(
            simulated_payments, "retrieve_payment_intent", new_callable=AsyncMock
        ) as mock_retrieve:
            mock_retrieve.return_value = stray
            with pytest.raises(ValidationError):
                await svc.fund_escrow(project.id, "pi_other", payer=ctx(client))

        assert outcome.escrow.status == EscrowStatus.PENDING
        deposits = (
            await session.execute(
                select(Transaction).where(Transaction.type == TransactionType.DEPOSIT)
            )
        ).scalars().all()
        assert deposits == []

    @pytest.mark.asyncio
    async def test_underpaid_intent_cannot_fund(self, session, simulated_payments) -> None:
        client, _, project = await make_hired_project(session)
        svc = EscrowService(session, simulated_payments)
        outcome = await svc.create_payment_intent(project.id, ctx(client))

        short = PaymentIntentResult(
            id=outcome.payment_intent_id,
            client_secret=None,
            status="succeeded",
            amount_cents=100,
            metadata={"type": ESCROW_PAYMENT_TYPE, "projectId": str(project.id)},
        )
        with patch.object(
            simulated_payments, "retrieve_payment_intent", new_callable=AsyncMock
        ) as mock_retrieve:
            mock_retrieve.return_value = short
            with pytest.raises(ValidationError, match="1537.50"):
                await svc.fund_escrow(project.id, outcome.payment_intent_id, payer=ctx(client))

        assert outcome.escrow.status == EscrowStatus.PENDING
        assert await _transactions(session, outcome.escrow.id) == []

    @pytest.mark.asyncio
    async def test_order_intent_cannot_fund_project(self, session, simulated_payments) -> None:
        client, _, project = await make_hired_project(session)
        svc = EscrowService(session, simulated_payments)

        order_intent = PaymentIntentResult(
            id="pi_order",
            client_secret=None,
            status="succeeded",
            amount_cents=153750,
            metadata={"type": SERVICE_ORDER_PAYMENT_TYPE, "projectId": str(project.id)},
        )
        with patch.object(
            simulated_payments, "retrieve_payment_intent", new_callable=AsyncMock
        ) as mock_retrieve:
            mock_retrieve.return_value = order_intent
            with pytest.raises(ValidationError):
                await svc.fund_escrow(project.id, "pi_order", payer=ctx(client))

    @pytest.mark.asyncio
    async def test_webhook_path_creates_escrow_when_missing(
        self, session, simulated_payments
    ) -> None:
        client, _, project = await make_hired_project(session)
        svc = EscrowService(session, simulated_payments)
        metadata = {"type": ESCROW_PAYMENT_TYPE, "projectId": str(project.id)}
        captured = PaymentIntentResult(
            id="pi_webhook",
            client_secret=None,
            status="succeeded",
            amount_cents=153750,
            metadata=metadata,
        )

        with patch.object(
            simulated_payments, "retrieve_payment_intent", new_callable=AsyncMock
        ) as mock_retrieve:
            mock_retrieve.return_value = captured
            escrow = await svc.handle_payment_succeeded("pi_webhook", metadata)

        assert escrow is not None
        assert escrow.status == EscrowStatus.FUNDED
        assert escrow.processor_payment_id == "pi_webhook"

    @pytest.mark.asyncio
    async def test_webhook_replay_is_a_no_op(self, session, simulated_payments) -> None:
        client, _, project = await make_hired_project(session)
        svc = EscrowService(session, simulated_payments)
        escrow = await _fund(svc, project, client)

        again = await svc.handle_payment_succeeded(
            escrow.processor_payment_id,
            {"type": ESCROW_PAYMENT_TYPE, "projectId": str(project.id)},
        )

        assert again is None
        assert len(await _transactions(session, escrow.id)) == 1

    @pytest.mark.asyncio
    async def test_webhook_ignores_other_payment_types(self, session, simulated_payments) -> None:
        svc = EscrowService(session, simulated_payments)
        assert await svc.handle_payment_succeeded("pi_x", {"type": "subscription"}) is None


class TestReleaseEscrow:
    @pytest.mark.asyncio
    async def test_end_to_end_release(self, session, simulated_payments) -> None:
        """Budget 1000-2000, agreed 1500: fund 1537.50, release pays out 1500."""
        client, freelancer, project = await make_hired_project(session, Decimal("1500"))
        svc = EscrowService(session, simulated_payments)
        escrow = await _fund(svc, project, client)
        assert escrow.amount == Decimal("1537.50")

        released = await svc.release_escrow(escrow.id, ctx(client))

        assert released.status == EscrowStatus.RELEASED
        assert released.released_at is not None
        assert project.status == ProjectStatus.COMPLETED

        txs = await _transactions(session, escrow.id)
        withdrawals = [t for t in txs if t.type == TransactionType.WITHDRAWAL]
        assert len(withdrawals) == 1
        assert withdrawals[0].user_id == freelancer.id
        assert withdrawals[0].amount == Decimal("1500.00")
        fees = [t for t in txs if t.type == TransactionType.FEE]
        assert [(f.user_id, f.amount) for f in fees] == [(client.id, Decimal("37.50"))]

        assert await svc.lifetime_earnings(ctx(freelancer)) == Decimal("1500.00")

    @pytest.mark.asyncio
    async def test_paused_project_can_be_released(self, session, simulated_payments) -> None:
        client, freelancer, project = await make_hired_project(session)
        svc = EscrowService(session, simulated_payments)
        escrow = await _fund(svc, project, client)
        await ProjectService(session).pause(project.id, ctx(client))
        assert project.status == ProjectStatus.PAUSED

        released = await svc.release_escrow(escrow.id, ctx(client))

        assert released.status == EscrowStatus.RELEASED
        assert project.status == ProjectStatus.COMPLETED
        assert await svc.lifetime_earnings(ctx(freelancer)) == Decimal("1500.00")

    @pytest.mark.asyncio
    async def test_double_release_fails(self, session, simulated_payments) -> None:
        client, _, project = await make_hired_project(session)
        svc = EscrowService(session, simulated_payments)
        escrow = await _fund(svc, project, client)
        await svc.release_escrow(escrow.id, ctx(client))

        with pytest.raises(InvalidStateTransitionError):
            await svc.release_escrow(escrow.id, ctx(client))

        txs = await _transactions(session, escrow.id)
        assert sum(1 for t in txs if t.type == TransactionType.WITHDRAWAL) == 1

    @pytest.mark.asyncio
    async def test_release_before_funding_fails(self, session, simulated_payments) -> None:
        client, _, project = await make_hired_project(session)
        svc = EscrowService(session, simulated_payments)
        outcome = await svc.create_payment_intent(project.id, ctx(client))

        with pytest.raises(InvalidStateTransitionError):
            await svc.release_escrow(outcome.escrow.id, ctx(client))

    @pytest.mark.asyncio
    async def test_freelancer_cannot_release(self, session, simulated_payments) -> None:
        client, freelancer, project = await make_hired_project(session)
        svc = EscrowService(session, simulated_payments)
        escrow = await _fund(svc, project, client)

        with pytest.raises(NotFoundError):
            await svc.release_escrow(escrow.id, ctx(freelancer))

    @pytest.mark.asyncio
    async def test_transfer_only_with_payouts_enabled(self, session, simulated_payments) -> None:
        client, freelancer, project = await make_hired_project(session)
        freelancer.stripe_connect_account_id = "acct_123"
        freelancer.stripe_payouts_enabled = True
        svc = EscrowService(session, simulated_payments)
        escrow = await _fund(svc, project, client)

        with patch.object(
            simulated_payments, "transfer_to_freelancer", new_callable=AsyncMock
        ) as mock_transfer:
            mock_transfer.return_value = "tr_123"
            await svc.release_escrow(escrow.id, ctx(client))

        mock_transfer.assert_awaited_once()
        assert mock_transfer.call_args.args[:2] == ("acct_123", Decimal("1500.00"))
        txs = await _transactions(session, escrow.id)
        payout = next(t for t in txs if t.type == TransactionType.WITHDRAWAL)
        assert payout.processor_id == "tr_123"

    @pytest.mark.asyncio
    async def test_payout_deferred_without_connect_account(
        self, session, simulated_payments
    ) -> None:
        client, _, project = await make_hired_project(session)
        svc = EscrowService(session, simulated_payments)
        escrow = await _fund(svc, project, client)

        with patch.object(
            simulated_payments, "transfer_to_freelancer", new_callable=AsyncMock
        ) as mock_transfer:
            await svc.release_escrow(escrow.id, ctx(client))

        mock_transfer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_processor_failure_propagates(self, session, simulated_payments) -> None:
        client, freelancer, project = await make_hired_project(session)
        freelancer.stripe_connect_account_id = "acct_123"
        freelancer.stripe_payouts_enabled = True
        svc = EscrowService(session, simulated_payments)
        escrow = await _fund(svc, project, client)

        with patch.object(
            simulated_payments, "transfer_to_freelancer", new_callable=AsyncMock
        ) as mock_transfer:
            mock_transfer.side_effect = UpstreamFailureError("boom", upstream="stripe")
            with pytest.raises(UpstreamFailureError):
                await svc.release_escrow(escrow.id, ctx(client))

        txs = await _transactions(session, escrow.id)
        assert not any(t.type == TransactionType.WITHDRAWAL for t in txs)


class TestConditionalTransition:
    @pytest.mark.asyncio
    async def test_second_writer_loses(self, session, simulated_payments) -> None:
        client, _, project = await make_hired_project(session)
        escrow = await _fund(EscrowService(session, simulated_payments), project, client)
        repo = EscrowRepository(session)

        first = await repo.transition_status(
            escrow, (EscrowStatus.FUNDED,), EscrowStatus.RELEASED
        )
        second = await repo.transition_status(
            escrow, (EscrowStatus.FUNDED,), EscrowStatus.RELEASED
        )

        assert first is True
        assert second is False
        assert escrow.status == EscrowStatus.RELEASED


class TestRefundEscrow:
    @pytest.mark.asyncio
    async def test_client_refund(self, session, simulated_payments) -> None:
        client, freelancer, project = await make_hired_project(session)
        svc = EscrowService(session, simulated_payments)
        escrow = await _fund(svc, project, client)

        refunded = await svc.refund_escrow(escrow.id, ctx(client), reason="Changed plans")

        assert refunded.status == EscrowStatus.REFUNDED
        assert refunded.refunded_at is not None
        assert project.status == ProjectStatus.CANCELLED
        txs = await _transactions(session, escrow.id)
        refunds = [t for t in txs if t.type == TransactionType.REFUND]
        assert [(r.user_id, r.amount) for r in refunds] == [(client.id, Decimal("1537.50"))]

        types = {
            (n.user_id, n.type)
            for n in (await session.execute(select(Notification))).scalars().all()
        }
        assert (freelancer.id, NotificationType.PROJECT_CANCELLED) in types
        assert (client.id, NotificationType.PAYMENT_REFUNDED) in types

    @pytest.mark.asyncio
    async def test_admin_can_refund(self, session, simulated_payments) -> None:
        client, _, project = await make_hired_project(session)
        svc = EscrowService(session, simulated_payments)
        escrow = await _fund(svc, project, client)
        admin = AuthContext(user_id=uuid.uuid4(), role=UserRole.ADMIN)

        refunded = await svc.refund_escrow(escrow.id, admin)

        assert refunded.status == EscrowStatus.REFUNDED

    @pytest.mark.asyncio
    async def test_freelancer_cannot_refund(self, session, simulated_payments) -> None:
        client, freelancer, project = await make_hired_project(session)
        svc = EscrowService(session, simulated_payments)
        escrow = await _fund(svc, project, client)

        with pytest.raises(NotFoundError):
            await svc.refund_escrow(escrow.id, ctx(freelancer))

    @pytest.mark.asyncio
    async def test_released_escrow_cannot_be_refunded(self, session, simulated_payments) -> None:
        client, _, project = await make_hired_project(session)
        svc = EscrowService(session, simulated_payments)
        escrow = await _fund(svc, project, client)
        await svc.release_escrow(escrow.id, ctx(client))

        with pytest.raises(InvalidStateTransitionError):
            await svc.refund_escrow(escrow.id, ctx(client))


class TestDispute:
    @pytest.mark.asyncio
    async def test_freelancer_disputes_then_client_refunds(
        self, session, simulated_payments
    ) -> None:
        client, freelancer, project = await make_hired_project(session)
        svc = EscrowService(session, simulated_payments)
        escrow = await _fund(svc, project, client)

        disputed = await svc.raise_dispute(escrow.id, ctx(freelancer), "Client unresponsive")

        assert disputed.status == EscrowStatus.DISPUTED
        assert project.status == ProjectStatus.DISPUTED
        with pytest.raises(InvalidStateTransitionError):
            await svc.release_escrow(escrow.id, ctx(client))

        refunded = await svc.refund_escrow(escrow.id, ctx(client))
        assert refunded.status == EscrowStatus.REFUNDED

    @pytest.mark.asyncio
    async def test_reason_required(self, session, simulated_payments) -> None:
        client, _, project = await make_hired_project(session)
        svc = EscrowService(session, simulated_payments)
        escrow = await _fund(svc, project, client)

        with pytest.raises(ValidationError):
            await svc.raise_dispute(escrow.id, ctx(client), "   ")

    @pytest.mark.asyncio
    async def test_outsider_cannot_dispute(self, session, simulated_payments) -> None:
        client, _, project = await make_hired_project(session)
        outsider = await make_user(session, UserRole.FREELANCER)
        svc = EscrowService(session, simulated_payments)
        escrow = await _fund(svc, project, client)

        with pytest.raises(NotFoundError):
            await svc.raise_dispute(escrow.id, ctx(outsider), "Not mine")


ADMIN = AuthContext(user_id=uuid.uuid4(), role=UserRole.ADMIN)


class TestResolveDispute:
    @staticmethod
    async def _disputed(session, payments):
        client, freelancer, project = await make_hired_project(session)
        svc = EscrowService(session, payments)
        escrow = await _fund(svc, project, client)
        await svc.raise_dispute(escrow.id, ctx(client), "Missed the deadline")
        return svc, client, freelancer, project, escrow

    @pytest.mark.asyncio
    async def test_release_pays_freelancer(self, session, simulated_payments) -> None:
        svc, _, freelancer, project, escrow = await self._disputed(session, simulated_payments)

        resolved = await svc.resolve_dispute(escrow.id, ADMIN, DisputeOutcome.RELEASE)

        assert resolved.status == EscrowStatus.RELEASED
        assert project.status == ProjectStatus.COMPLETED
        txs = await _transactions(session, escrow.id)
        payouts = [(t.user_id, t.amount) for t in txs if t.type == TransactionType.WITHDRAWAL]
        assert payouts == [(freelancer.id, Decimal("1500.00"))]

        types = {
            (n.user_id, n.type, n.title)
            for n in (await session.execute(select(Notification))).scalars().all()
        }
        assert (freelancer.id, NotificationType.PAYMENT_RELEASED, "Payment Released") in types
        assert (project.client_id, NotificationType.PROJECT_UPDATE, "Dispute Resolved") in types

    @pytest.mark.asyncio
    async def test_refund_returns_charge(self, session, simulated_payments) -> None:
        svc, client, _, project, escrow = await self._disputed(session, simulated_payments)

        resolved = await svc.resolve_dispute(
            escrow.id, ADMIN, DisputeOutcome.REFUND, note="Work never delivered"
        )

        assert resolved.status == EscrowStatus.REFUNDED
        assert project.status == ProjectStatus.CANCELLED
        txs = await _transactions(session, escrow.id)
        refunds = [(t.user_id, t.amount) for t in txs if t.type == TransactionType.REFUND]
        assert refunds == [(client.id, Decimal("1537.50"))]

    @pytest.mark.asyncio
    async def test_resume_keeps_funds_held(self, session, simulated_payments) -> None:
        svc, client, _, project, escrow = await self._disputed(session, simulated_payments)

        resolved = await svc.resolve_dispute(escrow.id, ADMIN, DisputeOutcome.RESUME)

        assert resolved.status == EscrowStatus.FUNDED
        assert project.status == ProjectStatus.IN_PROGRESS
        assert len(await _transactions(session, escrow.id)) == 1

        released = await svc.release_escrow(escrow.id, ctx(client))
        assert released.status == EscrowStatus.RELEASED

    @pytest.mark.asyncio
    async def test_only_admins_resolve(self, session, simulated_payments) -> None:
        svc, client, freelancer, _, escrow = await self._disputed(session, simulated_payments)

        for actor in (client, freelancer):
            with pytest.raises(ForbiddenError):
                await svc.resolve_dispute(escrow.id, ctx(actor), DisputeOutcome.RELEASE)

        assert escrow.status == EscrowStatus.DISPUTED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("outcome", list(DisputeOutcome))
    async def test_undisputed_escrow_is_rejected(
        self, session, simulated_payments, outcome: DisputeOutcome
    ) -> None:
        client, _, project = await make_hired_project(session)
        svc = EscrowService(session, simulated_payments)
        escrow = await _fund(svc, project, client)

        with pytest.raises(InvalidStateTransitionError):
            await svc.resolve_dispute(escrow.id, ADMIN, outcome)

        assert escrow.status == EscrowStatus.FUNDED


class TestReadHelpers:
    @pytest.mark.asyncio
    async def test_escrow_details_for_participants(self, session, simulated_payments) -> None:
        client, freelancer, project = await make_hired_project(session)
        svc = EscrowService(session, simulated_payments)
        assert await svc.get_escrow_for_project(project.id, ctx(client)) is None

        await _fund(svc, project, client)
        details = await svc.get_escrow_for_project(project.id, ctx(freelancer))

        assert details is not None
        assert details.escrow.status == EscrowStatus.FUNDED
        assert len(details.transactions) == 1
        assert "client_approves" in details.allowed_events

    @pytest.mark.asyncio
    async def test_escrow_hidden_from_outsiders(self, session, simulated_payments) -> None:
        _, _, project = await make_hired_project(session)
        outsider = await make_user(session)
        svc = EscrowService(session, simulated_payments)

        with pytest.raises(NotFoundError):
            await svc.get_escrow_for_project(project.id, ctx(outsider))

    @pytest.mark.asyncio
    async def test_transactions_paginated(self, session, simulated_payments) -> None:
        client, _, project = await make_hired_project(session)
        svc = EscrowService(session, simulated_payments)
        escrow = await _fund(svc, project, client)
        await svc.release_escrow(escrow.id, ctx(client))

        everything = await svc.list_transactions(ctx(client), page=1, limit=1)
        assert everything.total == 2
        assert everything.pages == 2
        assert len(everything.items) == 1

        fees = await svc.list_transactions(ctx(client), tx_type=TransactionType.FEE)
        assert [t.amount for t in fees.items] == [Decimal("37.50")]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("page", "limit"), [(0, 20), (1, 0), (1, 101)])
    async def test_bad_paging_rejected(self, session, page: int, limit: int) -> None:
        user = await make_user(session)
        with pytest.raises(ValidationError):
            await EscrowService(session).list_transactions(ctx(user), page=page, limit=limit)

    @pytest.mark.asyncio
    async def test_escrow_id_for_project_missing(self, session) -> None:
        with pytest.raises(NotFoundError):
            await EscrowService(session).escrow_id_for_project(uuid.uuid4())
