"""Tests for the simulated backend — MockApp ledger and MockBackend contract."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import BaseModel, ValidationError

from contractforge.backends.mock import (
    ContractEndpoints,
    MockApp,
    MockBackend,
    instantiate_custom_mock_env,
    instantiate_default_mock_env,
)
from contractforge.core.code_reference import CodeReference
from contractforge.core.state_store import StateStore
from contractforge.errors import (
    BackendOperationError,
    ContractError,
    MismatchedCapabilityError,
)
from contractforge.models.chain import Coin


class CountResponse(BaseModel):
    count: int


def _deploy(chain: MockBackend, counter, count: int = 0, admin: str | None = None) -> str:
    code_id = chain.upload(CodeReference.with_endpoints(counter)).uploaded_code_id()
    resp = chain.instantiate(code_id, {"count": count}, "counter", admin, [])
    return resp.instantiated_contract_address()


class TestMockUpload:
    def test_upload_emits_code_id(self, mock_chain: MockBackend, counter):
        resp = mock_chain.upload(CodeReference.with_endpoints(counter))
        assert resp.uploaded_code_id() == 1

    def test_code_ids_increment(self, mock_chain: MockBackend, counter_factory):
        first = mock_chain.upload(CodeReference.with_endpoints(counter_factory()))
        second = mock_chain.upload(CodeReference.with_endpoints(counter_factory()))
        assert (first.uploaded_code_id(), second.uploaded_code_id()) == (1, 2)

    def test_upload_consumes_endpoints(self, mock_chain: MockBackend, counter):
        ref = CodeReference.with_endpoints(counter)
        mock_chain.upload(ref)
        assert ref.endpoints is None

    def test_second_upload_of_same_reference_fails(self, mock_chain: MockBackend, counter):
        ref = CodeReference.with_endpoints(counter)
        mock_chain.upload(ref)
        with pytest.raises(MismatchedCapabilityError):
            mock_chain.upload(ref)

    def test_wrapper_satisfies_protocol(self, counter):
        assert isinstance(counter, ContractEndpoints)


class TestMockInstantiate:
    def test_instantiate_synthesizes_address(self, mock_chain: MockBackend, counter):
        assert _deploy(mock_chain, counter) == "contract0"

    def test_instantiate_emits_wasm_attributes(self, mock_chain: MockBackend, counter):
        code_id = mock_chain.upload(CodeReference.with_endpoints(counter)).uploaded_code_id()
        resp = mock_chain.instantiate(code_id, {"count": 1}, None, None, [])
        assert resp.event_attr_value("wasm", "method") == "instantiate"
        assert resp.event_attr_value("wasm", "_contract_address") == "contract0"

    def test_default_label(self, mock_chain: MockBackend, mock_app: MockApp, counter):
        code_id = mock_chain.upload(CodeReference.with_endpoints(counter)).uploaded_code_id()
        mock_chain.instantiate(code_id, {"count": 1}, None, None, [])
        assert mock_app.contract_info("contract0").label == "contract_init"

    def test_unknown_code_id(self, mock_chain: MockBackend):
        with pytest.raises(BackendOperationError, match="code id 9"):
            mock_chain.instantiate(9, {"count": 0}, None, None, [])

    def test_failing_instantiate_leaves_no_contract(self, mock_chain: MockBackend, counter):
        code_id = mock_chain.upload(CodeReference.with_endpoints(counter)).uploaded_code_id()
        with pytest.raises(ContractError):
            mock_chain.instantiate(code_id, {"wrong": 0}, None, None, [])
        with pytest.raises(BackendOperationError):
            mock_chain.contract_info("contract0")


class TestMockExecuteAndQuery:
    def test_execute_then_query(self, mock_chain: MockBackend, counter):
        address = _deploy(mock_chain, counter, count=5)
        mock_chain.execute({"increment": {}}, [], address)
        assert mock_chain.query({"get_count": {}}, address) == {"count": 6}

    def test_typed_query(self, mock_chain: MockBackend, counter):
        address = _deploy(mock_chain, counter, count=2)
        assert mock_chain.query({"get_count": {}}, address, CountResponse) == CountResponse(count=2)

    def test_execute_data_is_json(self, mock_chain: MockBackend, counter):
        address = _deploy(mock_chain, counter)
        resp = mock_chain.execute({"reset": {"count": 3}}, [], address)
        assert resp.data == '{"count": 3}'

    def test_failed_execute_rolls_back_storage(self, mock_chain: MockBackend, counter):
        address = _deploy(mock_chain, counter, count=1)
        mock_chain.set_sender("juno1intruder")
        with pytest.raises(ContractError, match="unauthorized"):
            mock_chain.execute({"reset": {"count": 99}}, [], address)
        assert mock_chain.query({"get_count": {}}, address) == {"count": 1}

    def test_unknown_address(self, mock_chain: MockBackend):
        with pytest.raises(BackendOperationError, match="No contract"):
            mock_chain.query({"get_count": {}}, "contract7")


class TestMockFunds:
    def test_funds_move_to_contract(self, mock_chain: MockBackend, mock_app: MockApp, sender, counter):
        mock_chain.init_balance(sender, [Coin(denom="ujuno", amount=100)])
        address = _deploy(mock_chain, counter)
        mock_chain.execute({"increment": {}}, [Coin(denom="ujuno", amount=40)], address)
        assert mock_app.balance(sender, "ujuno") == 60
        assert mock_app.balance(address, "ujuno") == 40

    def test_insufficient_funds(self, mock_chain: MockBackend, mock_app: MockApp, counter):
        address = _deploy(mock_chain, counter)
        with pytest.raises(ContractError, match="Insufficient funds"):
            mock_chain.execute({"increment": {}}, [Coin(denom="ujuno", amount=1)], address)
        assert mock_chain.query({"get_count": {}}, address) == {"count": 0}

    def test_repeated_denom_is_summed(self, mock_chain: MockBackend, mock_app: MockApp, sender, counter):
        mock_chain.init_balance(sender, [Coin(denom="ujuno", amount=100)])
        code_id = mock_chain.upload(CodeReference.with_endpoints(counter)).uploaded_code_id()
        funds = [Coin(denom="ujuno", amount=60), Coin(denom="ujuno", amount=60)]
        with pytest.raises(ContractError, match="needs 120ujuno"):
            mock_chain.instantiate(code_id, {"count": 0}, None, None, funds)
        assert mock_app.balance(sender, "ujuno") == 100

    def test_repeated_denom_within_balance(self, mock_chain: MockBackend, mock_app: MockApp, sender, counter):
        mock_chain.init_balance(sender, [Coin(denom="ujuno", amount=100)])
        address = _deploy(mock_chain, counter)
        funds = [Coin(denom="ujuno", amount=30), Coin(denom="ujuno", amount=20)]
        mock_chain.execute({"increment": {}}, funds, address)
        assert mock_app.balance(sender, "ujuno") == 50
        assert mock_app.balance(address, "ujuno") == 50

    def test_negative_amount_rejected(self):
        with pytest.raises(ValidationError):
            Coin(denom="ujuno", amount=-50)


class TestMockMigrate:
    def test_admin_can_migrate(self, mock_chain: MockBackend, sender, counter_factory):
        address = _deploy(mock_chain, counter_factory(), admin=sender)
        new_code = mock_chain.upload(CodeReference.with_endpoints(counter_factory()))
        mock_chain.migrate({"version": 3}, new_code.uploaded_code_id(), address)
        assert mock_chain.contract_info(address).code_id == 2

    def test_non_admin_cannot_migrate(self, mock_chain: MockBackend, counter_factory):
        address = _deploy(mock_chain, counter_factory(), admin=None)
        mock_chain.upload(CodeReference.with_endpoints(counter_factory()))
        with pytest.raises(ContractError, match="not the admin"):
            mock_chain.migrate({}, 2, address)

    def test_migrate_without_endpoint(self, mock_chain: MockBackend, sender, counter_factory):
        address = _deploy(mock_chain, counter_factory(), admin=sender)
        mock_chain.upload(CodeReference.with_endpoints(counter_factory(with_migrate=False)))
        with pytest.raises(ContractError, match="migrate"):
            mock_chain.migrate({}, 2, address)
        assert mock_chain.contract_info(address).code_id == 1


class TestMockBlocks:
    def test_default_block(self, mock_chain: MockBackend):
        info = mock_chain.block_info()
        assert info.height == 12_345
        assert info.chain_id == "cosmos-testnet-14002"

    def test_next_block(self, mock_chain: MockBackend):
        before = mock_chain.block_info()
        mock_chain.next_block()
        after = mock_chain.current_block_info()
        assert after.height == before.height + 1
        assert after.time - before.time == timedelta(seconds=5)

    def test_wait_blocks(self, mock_chain: MockBackend):
        before = mock_chain.block_info()
        mock_chain.advance_blocks(10)
        after = mock_chain.block_info()
        assert after.height == before.height + 10
        assert after.time - before.time == timedelta(seconds=50)


class TestMockInspection:
    def test_code_id_hash_unsupported(self, mock_chain: MockBackend):
        with pytest.raises(MismatchedCapabilityError):
            mock_chain.code_id_hash(1)

    def test_sender_identity(self, mock_chain: MockBackend, sender):
        assert mock_chain.sender_identity() == sender
        assert mock_chain.set_sender("juno1other").sender == "juno1other"


class TestMockEnvironment:
    def test_default_env_shares_state(self):
        state, chain = instantiate_default_mock_env("juno1me")
        assert chain.state is state
        assert chain.sender == "juno1me"

    def test_custom_env_uses_given_state(self):
        custom = StateStore(code_ids={"ns:counter": 4})
        state, chain = instantiate_custom_mock_env("juno1me", custom)
        assert state is custom
        assert chain.state.get_code_id("ns:counter") == 4

    def test_wasm_path_only_rejected(self, mock_chain: MockBackend, tmp_path: Path):
        ref = CodeReference.with_wasm_path(tmp_path / "counter.wasm")
        with pytest.raises(MismatchedCapabilityError, match="in-process"):
            mock_chain.upload(ref)
