#!/usr/bin/env python3
"""
Turns a Jupiter swap into a relay-ready leg.

Jupiter returns a compiled v0 transaction. The relay requires a tip transfer
inside the same transaction, so the message is decompiled back into plain
instructions (resolving every address lookup table it references), the tip
transfer is appended, and the result is recompiled against the same tables.
"""
import asyncio
import base64
import logging
import random
from typing import Dict, List, Optional, Sequence

from solders.address_lookup_table_account import AddressLookupTableAccount
from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction

from analysis.models import PendingTransaction, Quote
from constants import HELIUS_TIP_ACCOUNTS, LOOKUP_TABLE_META_SIZE, MAX_TRANSACTION_SIZE
from errors import BuildFailed
from services.jupiter_client import JupiterClient
from services.solana_rpc_client import SolanaRpcClient
from services.tip_oracle import TipOracle

logger = logging.getLogger(__name__)


def parse_lookup_table(key: Pubkey, data: bytes) -> AddressLookupTableAccount:
    """Decodes on-chain lookup table data: a fixed header followed by 32-byte addresses."""
    if len(data) < LOOKUP_TABLE_META_SIZE:
        raise BuildFailed(f"lookup table {key} data too short ({len(data)} bytes)")
    body = data[LOOKUP_TABLE_META_SIZE:]
    if len(body) % 32:
        raise BuildFailed(f"lookup table {key} has a truncated address")
    addresses = [Pubkey.from_bytes(body[i:i + 32]) for i in range(0, len(body), 32)]
    return AddressLookupTableAccount(key, addresses)


def decompile_instructions(message, tables: Dict[Pubkey, AddressLookupTableAccount]) -> List[Instruction]:
    """
    Rebuilds plain instructions from a compiled message.

    Account order is static keys, then every table's writable addresses,
    then every table's readonly addresses. Flags come from the header for
    static keys and from the lookup section for loaded ones.
    """
    header = message.header
    static_keys = list(message.account_keys)
    n_static = len(static_keys)
    num_signers = header.num_required_signatures
    writable_signed_end = num_signers - header.num_readonly_signed_accounts
    writable_unsigned_end = n_static - header.num_readonly_unsigned_accounts

    loaded_writable: List[Pubkey] = []
    loaded_readonly: List[Pubkey] = []
    for lookup in getattr(message, 'address_table_lookups', None) or []:
        table = tables.get(lookup.account_key)
        if table is None:
            raise BuildFailed(f"lookup table {lookup.account_key} not resolved")
        addresses = list(table.addresses)
        try:
            loaded_writable.extend(addresses[i] for i in bytes(lookup.writable_indexes))
            loaded_readonly.extend(addresses[i] for i in bytes(lookup.readonly_indexes))
        except IndexError:
            raise BuildFailed(f"lookup table {lookup.account_key} index out of range")

    keys = static_keys + loaded_writable + loaded_readonly
    loaded_writable_end = n_static + len(loaded_writable)

    def is_writable(index: int) -> bool:
        if index < num_signers:
            return index < writable_signed_end
        if index < n_static:
            return index < writable_unsigned_end
        return index < loaded_writable_end

    instructions: List[Instruction] = []
    try:
        for compiled in message.instructions:
            metas = [
                AccountMeta(keys[i], i < num_signers, is_writable(i))
                for i in bytes(compiled.accounts)
            ]
            instructions.append(Instruction(keys[compiled.program_id_index], bytes(compiled.data), metas))
    except IndexError:
        raise BuildFailed("instruction references an account outside the message")
    return instructions


def signed_size(pending: PendingTransaction, blockhash: Hash = Hash.default()) -> int:
    message = pending.compile(blockhash)
    placeholder = VersionedTransaction.populate(
        message, [Signature.default()] * message.header.num_required_signatures,
    )
    return len(bytes(placeholder))


class TransactionBuilder:
    def __init__(
        self,
        quote_client: JupiterClient,
        rpc_client: SolanaRpcClient,
        tip_oracle: TipOracle,
        payer: Pubkey,
        *,
        tip_accounts: Sequence[str] = HELIUS_TIP_ACCOUNTS,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.quote_client = quote_client
        self.rpc_client = rpc_client
        self.tip_oracle = tip_oracle
        self.payer = payer
        self.tip_accounts = [Pubkey.from_string(a) for a in tip_accounts]
        self._rng = rng or random.Random()

    def pick_tip_account(self) -> Pubkey:
        return self._rng.choice(self.tip_accounts)

    async def build(self, quote: Quote, leg: str) -> Optional[PendingTransaction]:
        try:
            return await self.build_or_raise(quote, leg)
        except BuildFailed as exc:
            logger.warning("%s leg build failed: %s", leg, exc)
            return None

    async def build_or_raise(self, quote: Quote, leg: str) -> PendingTransaction:
        encoded = await self.quote_client.get_swap_transaction(quote, str(self.payer))
        if not encoded:
            raise BuildFailed(f"no swap transaction for {quote.input_asset[:6]}->{quote.output_asset[:6]}")

        try:
            swap_tx = VersionedTransaction.from_bytes(base64.b64decode(encoded))
        except Exception as exc:
            raise BuildFailed(f"undecodable swap transaction: {exc}")
        message = swap_tx.message

        tables = await self._resolve_lookup_tables(message)
        instructions = decompile_instructions(message, tables)

        tip_lamports = await self.tip_oracle.get_tip_lamports()
        tip_account = self.pick_tip_account()
        instructions.append(transfer(TransferParams(
            from_pubkey=self.payer, to_pubkey=tip_account, lamports=tip_lamports,
        )))

        pending = PendingTransaction(
            leg=leg,
            payer=self.payer,
            instructions=instructions,
            lookup_tables=list(tables.values()),
            tip_lamports=tip_lamports,
            tip_account=tip_account,
        )
        try:
            size = signed_size(pending)
        except Exception as exc:
            logger.debug("%s leg: compile with lookup tables failed (%s), retrying with raw addresses", leg, exc)
            pending.use_lookup_tables = False
            try:
                size = signed_size(pending)
            except Exception as raw_exc:
                raise BuildFailed(f"recompile failed: {raw_exc}")

        if size > MAX_TRANSACTION_SIZE:
            raise BuildFailed(f"{leg} transaction is {size} bytes (max {MAX_TRANSACTION_SIZE})")
        logger.debug("%s leg built: %d instructions, %d tables, %d bytes", leg, len(instructions), len(tables), size)
        return pending

    async def _resolve_lookup_tables(self, message) -> Dict[Pubkey, AddressLookupTableAccount]:
        keys = [lookup.account_key for lookup in getattr(message, 'address_table_lookups', None) or []]
        if not keys:
            return {}
        results = await asyncio.gather(
            *(self.rpc_client.get_account_data(str(key)) for key in keys),
            return_exceptions=True,
        )
        tables: Dict[Pubkey, AddressLookupTableAccount] = {}
        for key, result in zip(keys, results):
            if isinstance(result, BaseException) or not result:
                raise BuildFailed(f"lookup table {key} could not be fetched: {result}")
            tables[key] = parse_lookup_table(key, base64.b64decode(result))
        return tables
