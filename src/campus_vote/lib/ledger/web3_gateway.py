"""web3.py implementation of the ledger gateway.

Talks to the university voting contract over JSON-RPC with ``AsyncWeb3``.
Writes are simulated with ``eth_call`` first so a revert surfaces its reason
string (which ``classify_ledger_error`` depends on), then signed locally with
``eth_account`` and sent as EIP-1559 transactions.

With a voter mnemonic configured each student signs ballots from an account
derived at index <user id>; the operator tops that account up before a
ballot when its balance cannot cover the gas.
"""

from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount
from loguru import logger
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3RPCError

from campus_vote.core.config import Settings
from campus_vote.lib.ledger.errors import LedgerError, LedgerUnavailableError
from campus_vote.lib.ledger.gateway import (
    ElectionCategory,
    LedgerElection,
    LedgerGateway,
    LedgerReceipt,
    LedgerStatus,
)


def _abi_fn(
    name: str,
    inputs: list[tuple[str, str]],
    outputs: list[tuple[str, str]] | None = None,
    *,
    view: bool = False,
) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "inputs": [{"name": n, "type": t, "internalType": t} for n, t in inputs],
        "outputs": [{"name": n, "type": t, "internalType": t} for n, t in outputs or []],
        "stateMutability": "view" if view else "nonpayable",
    }


def _abi_event(name: str, inputs: list[tuple[str, str, bool]]) -> dict[str, Any]:
    return {
        "type": "event",
        "name": name,
        "anonymous": False,
        "inputs": [{"name": n, "type": t, "internalType": t, "indexed": idx} for n, t, idx in inputs],
    }


_ELECTION_TUPLE = [
    ("id", "uint256"),
    ("electionType", "uint8"),
    ("status", "uint8"),
    ("startTime", "uint256"),
    ("endTime", "uint256"),
    ("totalVotesCast", "uint256"),
    ("resultsFinalized", "bool"),
]

UNIVERSITY_VOTING_ABI: list[dict[str, Any]] = [
    _abi_event(
        "ElectionCreated",
        [
            ("electionId", "uint256", True),
            ("electionType", "uint8", False),
            ("startTime", "uint256", False),
            ("endTime", "uint256", False),
        ],
    ),
    _abi_event("CandidateRegistered", [("candidateId", "uint256", True), ("studentId", "string", False)]),
    _abi_event(
        "TicketCreated",
        [("ticketId", "uint256", True), ("presidentStudentId", "string", False), ("vpStudentId", "string", False)],
    ),
    _abi_fn("getElectionDetails", [("electionId", "uint256")], _ELECTION_TUPLE, view=True),
    _abi_fn("getElectionCandidates", [("electionId", "uint256")], [("", "uint256[]")], view=True),
    _abi_fn("getElectionTickets", [("electionId", "uint256")], [("", "uint256[]")], view=True),
    _abi_fn("getCandidateIdByStudentId", [("studentId", "string")], [("", "uint256")], view=True),
    _abi_fn(
        "getTicketIdByStudentIds",
        [("presidentStudentId", "string"), ("vpStudentId", "string")],
        [("", "uint256")],
        view=True,
    ),
    _abi_fn("getCandidateVoteCount", [("candidateId", "uint256")], [("", "uint256")], view=True),
    _abi_fn("getTicketVoteCount", [("ticketId", "uint256")], [("", "uint256")], view=True),
    _abi_fn("getNextNonce", [], [("", "uint256")], view=True),
    _abi_fn(
        "createElection",
        [("electionType", "uint8"), ("startTime", "uint256"), ("endTime", "uint256")],
        [("", "uint256")],
    ),
    _abi_fn("autoUpdateElectionStatus", [("electionId", "uint256")]),
    _abi_fn("finalizeResults", [("electionId", "uint256")]),
    _abi_fn("registerCandidate", [("studentId", "string")], [("", "uint256")]),
    _abi_fn("addCandidateToElection", [("electionId", "uint256"), ("candidateId", "uint256")]),
    _abi_fn(
        "createTicket",
        [("presidentStudentId", "string"), ("vpStudentId", "string")],
        [("", "uint256")],
    ),
    _abi_fn("addTicketToElection", [("electionId", "uint256"), ("ticketId", "uint256")]),
    _abi_fn(
        "voteForSenator",
        [("electionId", "uint256"), ("candidateId", "uint256"), ("nonce", "uint256")],
        [("", "bool")],
    ),
    _abi_fn(
        "voteForPresidentVP",
        [("electionId", "uint256"), ("ticketId", "uint256"), ("nonce", "uint256")],
        [("", "bool")],
    ),
]


def translate_web3_error(exc: Exception) -> LedgerError:
    """Wrap a web3 or transport exception in a classified ``LedgerError``."""
    if isinstance(exc, LedgerError):
        return exc
    if isinstance(exc, ContractLogicError):
        return LedgerError(exc.message or str(exc))
    if isinstance(exc, TimeExhausted):
        return LedgerError(f"Timed out waiting for transaction receipt: {exc}")
    if isinstance(exc, Web3RPCError):
        error = (exc.rpc_response or {}).get("error") or {}
        return LedgerError(str(error.get("message") or exc.message or exc), code=error.get("code"))
    if isinstance(exc, (OSError, TimeoutError)):
        return LedgerUnavailableError(f"Ledger node unreachable: {exc}")
    return LedgerError(str(exc))


class Web3LedgerGateway(LedgerGateway):
    """Ledger gateway backed by a deployed university voting contract.

    Args:
        rpc_url: JSON-RPC endpoint of the chain.
        contract_address: Checksummed or lowercase contract address.
        private_key: Hex private key of the submitting account.
        chain_id: Chain id; read from the node when omitted.
        gas_limit: Gas limit applied to every write.
        priority_fee_gwei: Base ``maxPriorityFeePerGas``.
        max_fee_gwei: Base ``maxFeePerGas``.
        priority_fee_step_gwei: Added to both fee fields per priority level.
        receipt_timeout: Seconds to wait for a receipt before giving up.
        voter_mnemonic: Mnemonic that per-student voting accounts are derived
            from; without it ballots are signed by the operator account.
        web3: Pre-built client, mainly for tests.
    """

    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        private_key: str,
        *,
        chain_id: int | None = None,
        gas_limit: int = 2_000_000,
        priority_fee_gwei: float = 15,
        max_fee_gwei: float = 35,
        priority_fee_step_gwei: float = 10,
        receipt_timeout: float = 600,
        voter_mnemonic: str | None = None,
        web3: AsyncWeb3 | None = None,
    ) -> None:
        self._w3 = web3 or AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self._signer: LocalAccount = Account.from_key(private_key)
        self._contract = self._w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(contract_address),
            abi=UNIVERSITY_VOTING_ABI,
        )
        self._chain_id = chain_id
        self._gas_limit = gas_limit
        self._priority_fee_gwei = priority_fee_gwei
        self._max_fee_gwei = max_fee_gwei
        self._priority_fee_step_gwei = priority_fee_step_gwei
        self._receipt_timeout = receipt_timeout
        self._voter_mnemonic = voter_mnemonic
        self._voter_signers: dict[int, LocalAccount] = {}
        if voter_mnemonic:
            Account.enable_unaudited_hdwallet_features()

    @classmethod
    def from_settings(cls, settings: Settings) -> "Web3LedgerGateway":
        if not settings.ledger_enabled:
            msg = "Ledger is not configured (rpc url, contract address and private key are required)"
            raise ValueError(msg)
        return cls(
            settings.ledger_rpc_url,  # type: ignore[arg-type]
            settings.ledger_contract_address,  # type: ignore[arg-type]
            settings.ledger_private_key,  # type: ignore[arg-type]
            chain_id=settings.ledger_chain_id,
            gas_limit=settings.ledger_gas_limit,
            priority_fee_gwei=settings.ledger_priority_fee_gwei,
            max_fee_gwei=settings.ledger_max_fee_gwei,
            priority_fee_step_gwei=settings.ledger_priority_fee_step_gwei,
            receipt_timeout=settings.ledger_receipt_timeout_seconds,
            voter_mnemonic=settings.ledger_voter_mnemonic,
        )

    @property
    def account(self) -> str:
        return self._signer.address

    def _voter_signer(self, voter: int) -> LocalAccount | None:
        if not self._voter_mnemonic:
            return None
        if voter not in self._voter_signers:
            self._voter_signers[voter] = Account.from_mnemonic(
                self._voter_mnemonic,
                account_path=f"m/44'/60'/0'/0/{voter}",
            )
        return self._voter_signers[voter]

    def voter_account(self, voter: int) -> str | None:
        signer = self._voter_signer(voter)
        return signer.address if signer is not None else None

    def fee_fields(self, priority: int = 0) -> dict[str, int]:
        """EIP-1559 fee fields for a priority level."""
        bump = max(priority, 0) * self._priority_fee_step_gwei
        return {
            "maxPriorityFeePerGas": AsyncWeb3.to_wei(self._priority_fee_gwei + bump, "gwei"),
            "maxFeePerGas": AsyncWeb3.to_wei(self._max_fee_gwei + bump, "gwei"),
        }

    async def _call(self, fn_name: str, *args: Any) -> Any:
        try:
            return await getattr(self._contract.functions, fn_name)(*args).call()
        except Exception as exc:
            raise translate_web3_error(exc) from exc

    async def _tx_base(self, sender: str, priority: int) -> dict[str, Any]:
        if self._chain_id is None:
            self._chain_id = await self._w3.eth.chain_id
        return {
            "from": sender,
            "nonce": await self._w3.eth.get_transaction_count(sender, "pending"),
            "chainId": self._chain_id,
            "type": 2,
            **self.fee_fields(priority),
        }

    async def _transact(
        self,
        fn_name: str,
        *args: Any,
        priority: int = 0,
        signer: LocalAccount | None = None,
    ) -> dict[str, Any]:
        """Simulate, sign, send and await one contract write; return the raw receipt.

        ``signer`` defaults to the operator account.
        """
        signer = signer or self._signer
        fn = getattr(self._contract.functions, fn_name)(*args)
        try:
            await fn.call({"from": signer.address})
            tx = await fn.build_transaction({**await self._tx_base(signer.address, priority), "gas": self._gas_limit})
            signed = signer.sign_transaction(tx)
            tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
            logger.info("Ledger {} sent tx={} from={} priority={}", fn_name, tx_hash.hex(), signer.address, priority)
            receipt = await self._w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self._receipt_timeout)
        except Exception as exc:
            raise translate_web3_error(exc) from exc
        if receipt.get("status", 1) == 0:
            msg = f"{fn_name} reverted in block {receipt.get('blockNumber')}"
            raise LedgerError(msg)
        return dict(receipt)

    def ballot_cost(self, priority: int = 0) -> int:
        """Upper bound in wei on the gas a ballot at ``priority`` can spend."""
        return self._gas_limit * self.fee_fields(priority)["maxFeePerGas"]

    async def _fund(self, address: str, priority: int) -> None:
        """Top up a voter account from the operator so it can pay for one ballot."""
        needed = self.ballot_cost(priority)
        try:
            balance = await self._w3.eth.get_balance(address)
            if balance >= needed:
                return
            tx = await self._tx_base(self.account, priority)
            tx.pop("from")
            tx.update({"to": address, "value": needed - balance, "gas": 21_000})
            signed = self._signer.sign_transaction(tx)
            tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
            logger.info("Funding voter account {} with {} wei tx={}", address, needed - balance, tx_hash.hex())
            receipt = await self._w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self._receipt_timeout)
        except Exception as exc:
            raise translate_web3_error(exc) from exc
        if receipt.get("status", 1) == 0:
            msg = f"Funding transfer to {address} reverted"
            raise LedgerError(msg)

    @staticmethod
    def _receipt(raw: dict[str, Any]) -> LedgerReceipt:
        tx_hash = raw.get("transactionHash")
        tx_hex = tx_hash.hex() if hasattr(tx_hash, "hex") else str(tx_hash)
        if not tx_hex.startswith("0x"):
            tx_hex = f"0x{tx_hex}"
        return LedgerReceipt(tx_hash=tx_hex, block_number=raw.get("blockNumber"))

    def _event_arg(self, event_name: str, arg: str, receipt: dict[str, Any]) -> int | None:
        events = getattr(self._contract.events, event_name)().process_receipt(receipt)
        for event in events:
            return int(event["args"][arg])
        return None

    async def register_candidate(self, student_id: str) -> int:
        receipt = await self._transact("registerCandidate", student_id)
        handle = self._event_arg("CandidateRegistered", "candidateId", receipt)
        if handle is None:
            logger.warning("CandidateRegistered event missing for {}; reading handle back", student_id)
            return await self.get_candidate_handle(student_id)
        return handle

    async def get_candidate_handle(self, student_id: str) -> int:
        handle = int(await self._call("getCandidateIdByStudentId", student_id))
        if handle == 0:
            msg = f"Candidate not found for student id {student_id}"
            raise LedgerError(msg)
        return handle

    async def create_ticket(self, president_student_id: str, vp_student_id: str) -> int:
        receipt = await self._transact("createTicket", president_student_id, vp_student_id)
        handle = self._event_arg("TicketCreated", "ticketId", receipt)
        if handle is None:
            logger.warning("TicketCreated event missing; reading handle back")
            return await self.get_ticket_handle(president_student_id, vp_student_id)
        return handle

    async def get_ticket_handle(self, president_student_id: str, vp_student_id: str) -> int:
        handle = int(await self._call("getTicketIdByStudentIds", president_student_id, vp_student_id))
        if handle == 0:
            msg = f"Ticket not found for {president_student_id}/{vp_student_id}"
            raise LedgerError(msg)
        return handle

    async def create_election(self, category: ElectionCategory, start: int, end: int) -> int:
        receipt = await self._transact("createElection", int(category), start, end)
        handle = self._event_arg("ElectionCreated", "electionId", receipt)
        if handle is None:
            msg = "ElectionCreated event missing from receipt"
            raise LedgerError(msg)
        return handle

    async def attach_candidate(self, election_handle: int, candidate_handle: int) -> LedgerReceipt:
        return self._receipt(await self._transact("addCandidateToElection", election_handle, candidate_handle))

    async def attach_ticket(self, election_handle: int, ticket_handle: int) -> LedgerReceipt:
        return self._receipt(await self._transact("addTicketToElection", election_handle, ticket_handle))

    async def get_election_details(self, election_handle: int) -> LedgerElection:
        raw = await self._call("getElectionDetails", election_handle)
        if int(raw[0]) == 0:
            msg = f"Election {election_handle} not found"
            raise LedgerError(msg)
        return LedgerElection(
            handle=int(raw[0]),
            category=ElectionCategory(int(raw[1])),
            status=LedgerStatus(int(raw[2])),
            start=int(raw[3]),
            end=int(raw[4]),
            total_votes_cast=int(raw[5]),
            results_finalized=bool(raw[6]),
        )

    async def get_election_candidates(self, election_handle: int) -> list[int]:
        return [int(h) for h in await self._call("getElectionCandidates", election_handle)]

    async def get_election_tickets(self, election_handle: int) -> list[int]:
        return [int(h) for h in await self._call("getElectionTickets", election_handle)]

    async def advance_election_status(self, election_handle: int) -> LedgerReceipt:
        return self._receipt(await self._transact("autoUpdateElectionStatus", election_handle))

    async def submit_vote(
        self,
        election_handle: int,
        target_handle: int,
        *,
        priority: int = 0,
        voter: int | None = None,
    ) -> LedgerReceipt:
        signer = self._voter_signer(voter) if voter is not None else None
        details = await self.get_election_details(election_handle)
        nonce = int(await self._call("getNextNonce"))
        fn_name = "voteForPresidentVP" if details.category is ElectionCategory.PRESIDENT_VP else "voteForSenator"
        if signer is not None:
            await self._fund(signer.address, priority)
        receipt = await self._transact(fn_name, election_handle, target_handle, nonce, priority=priority, signer=signer)
        return self._receipt(receipt)

    async def get_vote_count(self, target_handle: int, *, ticket: bool = False) -> int:
        fn_name = "getTicketVoteCount" if ticket else "getCandidateVoteCount"
        return int(await self._call(fn_name, target_handle))

    async def finalize_results(self, election_handle: int) -> LedgerReceipt:
        return self._receipt(await self._transact("finalizeResults", election_handle))
