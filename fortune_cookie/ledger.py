"""
RPC access to the fortune cookie program: counting, submitting and reading accounts.
"""
import asyncio
import logging
from typing import Optional, Sequence

import httpx
from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed
from solana.rpc.core import RPCException, TransactionExpiredBlockheightExceededError, UnconfirmedTxError
from solana.rpc.types import DataSliceOpts, MemcmpOpts, TxOpts
from solders.instruction import Instruction
from solders.message import Message
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from .addresses import stats_address
from .config import ClusterConfig
from .errors import (
    AccountNotFoundError,
    ConfirmationTimeoutError,
    LedgerQueryError,
    ProtocolDriftError,
    SubmissionError,
)
from .program import (
    COOKIE_ACCOUNT_SIZE,
    COOKIE_OWNER_OFFSET,
    PROGRAM_ID,
    decode_cookie,
    decode_stats,
    initialize_stats_ix,
    open_cookie_ix,
)
from .types import CookieRecord, StatsRecord, WalletProto

logger = logging.getLogger(__name__)

_RPC_ERRORS = (RPCException, SolanaRpcException, httpx.HTTPError, OSError)


class FortuneLedger:
    """
    Thin client over an RPC node for the ``fortune_cookie`` program.

    Every network failure is wrapped in a FortuneCookieError subclass so
    callers only deal with this package's exception hierarchy.
    """

    def __init__(self, client: AsyncClient, program_id: Pubkey = PROGRAM_ID,
                 commitment: Commitment = Confirmed, confirm_timeout_s: float = 60.0):
        self.client = client
        self.program_id = program_id
        self.commitment = commitment
        self.confirm_timeout_s = confirm_timeout_s
        self.stats_address, self.stats_bump = stats_address(program_id)

    @classmethod
    def from_config(cls, cluster: ClusterConfig) -> "FortuneLedger":
        """Create a ledger client for the configured cluster."""
        commitment = Commitment(cluster.commitment)
        client = AsyncClient(cluster.rpc_url, commitment=commitment)
        logger.info(f"🌐 Using RPC endpoint {cluster.rpc_url}")
        return cls(
            client,
            program_id=Pubkey.from_string(cluster.program_id),
            commitment=commitment,
            confirm_timeout_s=cluster.confirm_timeout_s,
        )

    async def close(self) -> None:
        await self.client.close()

    # Reads

    async def count_cookies(self, owner: Pubkey) -> int:
        """
        Count the cookie accounts owned by ``owner``.

        Uses a server-side memcmp on the owner field and an empty data slice
        so no account bodies are transferred.
        """
        try:
            resp = await self.client.get_program_accounts(
                self.program_id,
                commitment=self.commitment,
                encoding="base64",
                data_slice=DataSliceOpts(offset=0, length=0),
                filters=[COOKIE_ACCOUNT_SIZE, MemcmpOpts(offset=COOKIE_OWNER_OFFSET, bytes=str(owner))],
            )
        except _RPC_ERRORS as e:
            raise LedgerQueryError(f"Failed to count cookies for {owner}: {e}") from e
        return len(resp.value)

    async def _account_data(self, address: Pubkey) -> Optional[bytes]:
        try:
            resp = await self.client.get_account_info(address, commitment=self.commitment)
        except _RPC_ERRORS as e:
            raise LedgerQueryError(f"Failed to read account {address}: {e}") from e
        if resp.value is None:
            return None
        return bytes(resp.value.data)

    async def account_exists(self, address: Pubkey) -> bool:
        return await self._account_data(address) is not None

    async def fetch_cookie(self, address: Pubkey, expected_owner: Optional[Pubkey] = None,
                           expected_bump: Optional[int] = None) -> CookieRecord:
        """
        Read a cookie account and check it against what was derived locally.

        Raises:
            AccountNotFoundError: nothing lives at ``address``
            ProtocolDriftError: the stored owner or bump disagrees with the derivation
        """
        data = await self._account_data(address)
        if data is None:
            raise AccountNotFoundError(f"Cookie account {address} not found")

        record = decode_cookie(data)
        if expected_owner is not None and record.owner != expected_owner:
            raise ProtocolDriftError(f"Cookie {address} belongs to {record.owner}, expected {expected_owner}")
        if expected_bump is not None and record.bump != expected_bump:
            raise ProtocolDriftError(f"Cookie {address} stored bump {record.bump}, derived {expected_bump}")
        return record

    async def fetch_stats(self) -> StatsRecord:
        data = await self._account_data(self.stats_address)
        if data is None:
            raise AccountNotFoundError(f"Stats account {self.stats_address} not found")
        return decode_stats(data)

    # Writes

    async def send(self, wallet: WalletProto, instructions: Sequence[Instruction]) -> str:
        """
        Build, sign, send and confirm one transaction.

        Returns:
            The confirmed transaction signature

        Raises:
            SigningDeclinedError: the wallet refused to sign
            SubmissionError: preflight, send or on-chain execution failed
            ConfirmationTimeoutError: sent but not confirmed in time
        """
        try:
            blockhash_resp = await self.client.get_latest_blockhash(commitment=self.commitment)
        except _RPC_ERRORS as e:
            raise SubmissionError(f"Failed to fetch a recent blockhash: {e}") from e
        blockhash = blockhash_resp.value.blockhash
        last_valid_block_height = blockhash_resp.value.last_valid_block_height

        message = Message.new_with_blockhash(list(instructions), wallet.pubkey, blockhash)
        tx = await wallet.sign_transaction(Transaction.new_unsigned(message))

        try:
            send_resp = await self.client.send_raw_transaction(
                bytes(tx),
                opts=TxOpts(skip_confirmation=True, preflight_commitment=self.commitment),
            )
        except _RPC_ERRORS as e:
            raise SubmissionError(f"Transaction rejected: {e}") from e
        signature = send_resp.value
        logger.info(f"📨 Sent transaction {signature}")

        try:
            status_resp = await asyncio.wait_for(
                self.client.confirm_transaction(
                    signature,
                    commitment=self.commitment,
                    last_valid_block_height=last_valid_block_height,
                ),
                timeout=self.confirm_timeout_s,
            )
        except (asyncio.TimeoutError, UnconfirmedTxError, TransactionExpiredBlockheightExceededError) as e:
            raise ConfirmationTimeoutError(str(signature)) from e
        except _RPC_ERRORS as e:
            raise SubmissionError(f"Failed to confirm {signature}: {e}") from e

        statuses = status_resp.value
        status = statuses[0] if statuses else None
        if status is not None and status.err is not None:
            raise SubmissionError(f"Transaction {signature} failed on chain: {status.err}")

        logger.info(f"✅ Confirmed transaction {signature}")
        return str(signature)

    async def open_cookie(self, wallet: WalletProto, cookie: Pubkey, archetype: int, counter: int) -> str:
        """
        Submit ``open_cookie`` creating ``cookie``, which must be the address
        derived from ``wallet``'s key and ``counter``.

        Returns:
            The confirmed transaction signature
        """
        ix = open_cookie_ix(wallet.pubkey, cookie, self.stats_address, archetype, counter, self.program_id)
        return await self.send(wallet, [ix])

    async def initialize_stats(self, wallet: WalletProto) -> str:
        """Submit ``initialize_stats``. Fails remotely if the account already exists."""
        ix = initialize_stats_ix(wallet.pubkey, self.stats_address, self.program_id)
        return await self.send(wallet, [ix])
