"""HTTP routes.

The router is a thin shell: every route checks its rate limit, delegates to `PaymentService` and
renders the result. Errors propagate as `PaymentError` and are rendered by the app's handlers.
"""

# FastAPI resolves dependency and parameter annotations at runtime, so this module does not use
# `from __future__ import annotations`.

from collections.abc import Awaitable, Callable
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from voicepay.api.models import (
    BalanceResponse,
    BuildRequest,
    BuildResponse,
    ConfirmRequest,
    ConfirmResponse,
    ExecuteBody,
    ExecuteResponse,
    FeeResponse,
    ProcessVoiceRequest,
    ProcessVoiceResponse,
    TransactionList,
    WalletConnectRequest,
    WalletConnectResponse,
)
from voicepay.app import App
from voicepay.execution.router import ExecuteRequest
from voicepay.execution.safety import ExecutionConstraints
from voicepay.ledger.models import TransactionRecord, TransactionStatus
from voicepay.service import TransferParams


def get_container(request: Request) -> App:
    """The application container attached by `create_api`."""

    return request.app.state.container


def client_address(request: Request) -> str:
    """First `x-forwarded-for` hop, else the peer address."""

    forwarded = request.headers.get("x-forwarded-for", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop
    return request.client.host if request.client else "unknown"


def rate_limit(route: str) -> Callable[..., Awaitable[None]]:
    """Dependency enforcing the named route's token bucket."""

    async def _check(request: Request, app: Annotated[App, Depends(get_container)]) -> None:
        await app.limiter.check(client_address(request), route)

    return _check


def _fee(value: int | None) -> str | None:
    return None if value is None else str(value)


def create_router() -> APIRouter:
    router = APIRouter()

    @router.post(
        "/voice/process",
        response_model=ProcessVoiceResponse,
        dependencies=[Depends(rate_limit("voice_process"))],
    )
    async def process_voice(
            body: ProcessVoiceRequest,
            app: Annotated[App, Depends(get_container)],
    ) -> ProcessVoiceResponse:
        """Extract an intent and create pending transactions awaiting confirmation."""

        result = await app.service.process(
            body.user_id,
            text=body.text,
            audio_data=body.audio_data,
            audio_format=body.format,
            language=body.language,
        )
        return ProcessVoiceResponse(
            transaction_ids=result.transaction_ids,
            intent=result.intent.model_dump(mode="json"),
            source=result.source,
            transcript=result.transcript,
            confirmation_prompt_text=result.confirmation_prompt_text,
            confirmation_audio=result.confirmation_audio,
        )

    @router.post(
        "/voice/confirm",
        response_model=ConfirmResponse,
        dependencies=[Depends(rate_limit("voice_confirm"))],
    )
    async def confirm_voice(
            body: ConfirmRequest,
            app: Annotated[App, Depends(get_container)],
    ) -> ConfirmResponse:
        result = await app.service.confirm(
            body.user_id,
            body.transaction_ids,
            text=body.text,
            audio_data=body.audio_data,
            audio_format=body.format,
        )
        return ConfirmResponse(
            status=result.status, transaction_ids=result.transaction_ids, message=result.message
        )

    @router.get(
        "/transactions",
        response_model=TransactionList,
        dependencies=[Depends(rate_limit("transactions_list"))],
    )
    async def list_transactions(
            app: Annotated[App, Depends(get_container)],
            user_id: Annotated[str, Query(min_length=1, max_length=128)],
            status: TransactionStatus | None = None,
            limit: Annotated[int, Query(ge=1, le=100)] = 20,
            offset: Annotated[int, Query(ge=0)] = 0,
    ) -> TransactionList:
        items = await app.service.list_transactions(user_id, status, limit, offset)
        return TransactionList(items=items)

    @router.get(
        "/transactions/xcm/estimate",
        response_model=FeeResponse,
        dependencies=[Depends(rate_limit("xcm_estimate"))],
    )
    async def estimate_xcm(
            app: Annotated[App, Depends(get_container)],
            token: str,
            amount: str,
            recipient: str,
            origin_chain: str,
            destination_chain: str,
            sender: str | None = None,
    ) -> FeeResponse:
        """Advisory XCM fee in smallest units of the origin chain's fee token."""

        fee = await app.service.estimate_xcm_fee(
            TransferParams(
                token=token,
                amount=amount,
                recipient=recipient,
                origin_chain=origin_chain,
                destination_chain=destination_chain,
                sender=sender,
            )
        )
        return FeeResponse(fee=_fee(fee))

    @router.get(
        "/transactions/{transaction_id}",
        response_model=TransactionRecord,
        dependencies=[Depends(rate_limit("transactions_get"))],
    )
    async def get_transaction(
            transaction_id: str,
            app: Annotated[App, Depends(get_container)],
    ) -> TransactionRecord:
        return await app.service.get_transaction(transaction_id)

    @router.post(
        "/transactions/build",
        response_model=BuildResponse,
        dependencies=[Depends(rate_limit("transactions_build"))],
    )
    async def build_transaction(
            body: BuildRequest,
            app: Annotated[App, Depends(get_container)],
    ) -> BuildResponse:
        """Unsigned call for the client wallet to sign."""

        result = await app.service.build(TransferParams(**body.model_dump()))
        return BuildResponse(call_hex=result.call_hex, kind=result.kind, fee=_fee(result.fee))

    @router.post(
        "/transactions/execute",
        response_model=ExecuteResponse,
        dependencies=[Depends(rate_limit("transactions_execute"))],
    )
    async def execute_transaction(
            body: ExecuteBody,
            app: Annotated[App, Depends(get_container)],
    ) -> ExecuteResponse:
        record = await app.service.execute(
            ExecuteRequest(
                transaction_id=body.transaction_id,
                signed_extrinsic=body.signed_extrinsic,
                chain=body.chain,
                constraints=ExecutionConstraints(
                    token=body.token,
                    min_receive=body.min_receive,
                    slippage_bps=body.slippage_bps,
                ),
            )
        )
        return ExecuteResponse(
            transaction_id=record.id,
            transaction_hash=record.transaction_hash or "",
            status=record.status,
        )

    @router.post(
        "/wallet/connect",
        response_model=WalletConnectResponse,
        dependencies=[Depends(rate_limit("wallet_connect"))],
    )
    async def wallet_connect(
            body: WalletConnectRequest,
            app: Annotated[App, Depends(get_container)],
    ) -> WalletConnectResponse:
        user_id = await app.service.connect_wallet(body.wallet_address, body.chain)
        return WalletConnectResponse(user_id=user_id)

    @router.get(
        "/wallet/balance",
        response_model=BalanceResponse,
        dependencies=[Depends(rate_limit("wallet_balance"))],
    )
    async def wallet_balance(
            app: Annotated[App, Depends(get_container)],
            address: Annotated[str, Query(min_length=1)],
            token: str = "DOT",
    ) -> BalanceResponse:
        balance = await app.service.balance(address, token)
        return BalanceResponse(address=address, token=token.upper(), balance=balance)

    return router
