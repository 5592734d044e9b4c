"""
Distribution lifecycle manager tests.
Tests for distributions/manager.py
"""
from datetime import timedelta

import pytest

from core.merkle import MerkleVerifier, build_tree
from core.schemas.allocation import Allocation, VaultType
from core.schemas.distribution import DistributionFilters, DistributionStatus
from core.schemas.errors import (
    AllocationValidationException,
    ErrorCodes,
    IntegrityException,
    InvalidRequestException,
    NotFoundException,
    StateConflictException,
)
from distributions import resolve_status

from fixtures.common import (
    ADDR_A,
    ADDR_B,
    ADDR_C,
    ADDR_UNKNOWN,
    COMMIT_TX,
    make_allocations,
    make_confirmed_distribution,
    make_reference_allocations,
)


class TestCreate:
    def test_reference_distribution(self, manager, reference_allocations):
        result = manager.create_distribution(reference_allocations, VaultType.PLAYER_TASKS, 30)
        d = result.distribution

        expected = build_tree([Allocation(**a) for a in reference_allocations])
        assert result.root == expected.root_hex
        assert result.leaf_count == 3
        assert d.distribution_id == 1
        assert d.total_amount == 350
        assert d.total_recipients == 3
        assert d.status == DistributionStatus.PENDING
        assert not d.confirmed
        assert d.end_time - d.start_time == timedelta(days=30)

    def test_leaves_in_input_order(self, manager, reference_allocations):
        manager.create_distribution(reference_allocations, VaultType.PLAYER_TASKS, 30)
        leaves = manager.store.get_leaves(1)

        assert [leaf.address for leaf in leaves] == [ADDR_A, ADDR_B, ADDR_C]
        assert [leaf.index for leaf in leaves] == [0, 1, 2]

    def test_vault_type_as_string(self, manager, reference_allocations):
        result = manager.create_distribution(reference_allocations, "ECOSYSTEM_FUND", 7)
        assert result.distribution.vault_type == VaultType.ECOSYSTEM_FUND

    def test_metadata(self, manager, reference_allocations):
        result = manager.create_distribution(
            reference_allocations,
            VaultType.PLAYER_TASKS,
            30,
            metadata={"title": "Season 1", "tags": ["s1"]},
        )
        assert result.distribution.metadata.title == "Season 1"

    def test_ids_increase(self, manager, reference_allocations):
        first = manager.create_distribution(reference_allocations, VaultType.PLAYER_TASKS, 30)
        second = manager.create_distribution(reference_allocations, VaultType.PLAYER_TASKS, 30)
        assert second.distribution.distribution_id == first.distribution.distribution_id + 1

    def test_invalid_allocations_persist_nothing(self, manager):
        allocations = make_reference_allocations() + [{"address": ADDR_A, "amount": 5}]

        with pytest.raises(AllocationValidationException) as exc_info:
            manager.create_distribution(allocations, VaultType.PLAYER_TASKS, 30)

        codes = [issue.code for issue in exc_info.value.issues]
        assert ErrorCodes.DUPLICATE_ADDRESS in codes
        assert manager.list_distributions().total == 0

    def test_empty_allocations(self, manager):
        with pytest.raises(AllocationValidationException):
            manager.create_distribution([], VaultType.PLAYER_TASKS, 30)

    def test_unknown_vault(self, manager, reference_allocations):
        with pytest.raises(InvalidRequestException):
            manager.create_distribution(reference_allocations, "treasury", 30)

    @pytest.mark.parametrize("duration", [0, 366, -1, True, "30"])
    def test_bad_duration(self, manager, reference_allocations, duration):
        with pytest.raises(InvalidRequestException):
            manager.create_distribution(reference_allocations, VaultType.PLAYER_TASKS, duration)


class TestEligibility:
    def test_eligible(self, manager):
        make_confirmed_distribution(manager)
        result = manager.check_eligibility(1, ADDR_B)

        assert result.eligible
        assert result.reason == "Eligible to claim"
        assert result.allocation.amount == 200

    def test_unknown_address_is_not_an_error(self, manager):
        make_confirmed_distribution(manager)
        result = manager.check_eligibility(1, ADDR_UNKNOWN)

        assert not result.eligible
        assert result.reason == "Address has no allocation in this distribution"
        assert result.allocation is None

    def test_mixed_case_address(self, manager):
        make_confirmed_distribution(manager)
        result = manager.check_eligibility(1, "0x" + "A" * 40)

        assert result.eligible
        assert result.address == ADDR_A

    def test_pending(self, manager, reference_allocations):
        manager.create_distribution(reference_allocations, VaultType.PLAYER_TASKS, 30)
        result = manager.check_eligibility(1, ADDR_A)

        assert not result.eligible
        assert result.reason == "Distribution is pending"

    def test_confirmed_before_start_is_pending(self, manager):
        d = make_confirmed_distribution(manager, start_offset=timedelta(hours=1))
        assert d.status == DistributionStatus.PENDING

        assert manager.check_eligibility(1, ADDR_A).reason == "Distribution is pending"

    def test_window_opened_without_refresh(self, manager, clock):
        make_confirmed_distribution(manager, start_offset=timedelta(hours=1))
        clock.advance(hours=2)

        assert manager.check_eligibility(1, ADDR_A).eligible
        assert manager.get_distribution(1).status == DistributionStatus.PENDING

    def test_window_ended(self, manager, clock):
        make_confirmed_distribution(manager, duration=timedelta(days=1))
        clock.advance(days=2)

        result = manager.check_eligibility(1, ADDR_A)
        assert not result.eligible
        assert result.reason == "Distribution is completed"

    def test_already_claimed(self, manager, reconciler, chain):
        d = make_confirmed_distribution(manager)
        chain.commit(1, d.merkle_root, d.start_time, d.end_time)
        chain.claim(1, 0)
        reconciler.sync(1)

        result = manager.check_eligibility(1, ADDR_A)
        assert not result.eligible
        assert result.reason == "Allocation already claimed"

    def test_malformed_address(self, manager):
        make_confirmed_distribution(manager)

        with pytest.raises(InvalidRequestException) as exc_info:
            manager.check_eligibility(1, "0x1234")
        assert exc_info.value.code == ErrorCodes.INVALID_ADDRESS

    def test_unknown_distribution(self, manager):
        with pytest.raises(NotFoundException):
            manager.check_eligibility(9, ADDR_A)


class TestProof:
    @pytest.mark.parametrize("address", [ADDR_A, ADDR_B, ADDR_C])
    def test_proof_verifies(self, manager, address):
        d = make_confirmed_distribution(manager)
        proof = manager.get_proof(1, address)

        assert proof.root == d.merkle_root
        assert MerkleVerifier.verify_claim(proof.index, proof.address, proof.amount, proof.proof, proof.root)

    def test_proof_for_larger_tree(self, manager):
        allocations = make_allocations(11)
        result = manager.create_distribution(allocations, VaultType.PLAYER_TASKS, 30)

        for entry in allocations:
            proof = manager.get_proof(1, entry["address"])
            assert proof.amount == entry["amount"]
            assert MerkleVerifier.verify_claim(proof.index, proof.address, proof.amount, proof.proof, result.root)

    def test_single_leaf_has_empty_proof(self, manager):
        result = manager.create_distribution([{"address": ADDR_A, "amount": 10}], VaultType.PLAYER_TASKS, 30)
        proof = manager.get_proof(1, ADDR_A)

        assert proof.proof == []
        assert proof.root == proof.leaf_hash == result.root

    def test_unknown_address(self, manager):
        make_confirmed_distribution(manager)
        assert manager.get_proof(1, ADDR_UNKNOWN) is None

    def test_tampered_leaf(self, manager):
        make_confirmed_distribution(manager)
        leaves = manager.store._leaves[1]
        leaves[1] = leaves[1].model_copy(update={"amount": 201})

        with pytest.raises(IntegrityException) as exc_info:
            manager.get_proof(1, ADDR_A)
        assert exc_info.value.code == ErrorCodes.LEAF_HASH_MISMATCH
        assert exc_info.value.details["index"] == 1


class TestConfirmCommit:
    def test_confirm_activates_when_started(self, manager, clock):
        d = make_confirmed_distribution(manager)

        assert d.confirmed
        assert d.status == DistributionStatus.ACTIVE
        assert d.onchain_ref.tx_hash == COMMIT_TX
        assert d.start_time == clock()

    def test_repeat_is_noop(self, manager):
        d = make_confirmed_distribution(manager)
        again = manager.confirm_commit(1, COMMIT_TX, 100, d.start_time, d.end_time)

        assert again.version == d.version

    def test_different_ref_conflicts(self, manager):
        d = make_confirmed_distribution(manager)

        with pytest.raises(StateConflictException) as exc_info:
            manager.confirm_commit(1, "0x" + "2" * 64, 101, d.start_time, d.end_time)
        assert exc_info.value.code == ErrorCodes.ILLEGAL_TRANSITION

    def test_window_must_be_ordered(self, manager, clock, reference_allocations):
        manager.create_distribution(reference_allocations, VaultType.PLAYER_TASKS, 30)

        with pytest.raises(InvalidRequestException):
            manager.confirm_commit(1, COMMIT_TX, 100, clock(), clock())

    def test_cancelled_cannot_be_confirmed(self, manager, clock, reference_allocations):
        manager.create_distribution(reference_allocations, VaultType.PLAYER_TASKS, 30)
        manager.cancel_distribution(1)

        with pytest.raises(StateConflictException):
            manager.confirm_commit(1, COMMIT_TX, 100, clock(), clock() + timedelta(days=1))


class TestCancel:
    def test_cancel_pending(self, manager, reference_allocations):
        manager.create_distribution(reference_allocations, VaultType.PLAYER_TASKS, 30)
        assert manager.cancel_distribution(1).status == DistributionStatus.CANCELLED

    def test_cancel_active(self, manager):
        make_confirmed_distribution(manager)
        assert manager.cancel_distribution(1).status == DistributionStatus.CANCELLED

    def test_cancel_twice(self, manager, reference_allocations):
        manager.create_distribution(reference_allocations, VaultType.PLAYER_TASKS, 30)
        manager.cancel_distribution(1)

        with pytest.raises(StateConflictException) as exc_info:
            manager.cancel_distribution(1)
        assert exc_info.value.code == ErrorCodes.ILLEGAL_TRANSITION

    def test_cancel_with_claims(self, manager, reconciler, chain):
        d = make_confirmed_distribution(manager)
        chain.commit(1, d.merkle_root, d.start_time, d.end_time)
        chain.claim(1, 2)
        reconciler.sync(1)

        with pytest.raises(StateConflictException) as exc_info:
            manager.cancel_distribution(1)
        assert exc_info.value.details["claimed_count"] == 1
        assert manager.get_distribution(1).status == DistributionStatus.ACTIVE


class TestRefreshStatuses:
    def test_time_driven_transitions(self, manager, clock):
        make_confirmed_distribution(manager, start_offset=timedelta(hours=1), duration=timedelta(days=1))

        assert manager.refresh_statuses() == []

        clock.advance(hours=2)
        [changed] = manager.refresh_statuses()
        assert changed.status == DistributionStatus.ACTIVE

        clock.advance(days=2)
        [changed] = manager.refresh_statuses()
        assert changed.status == DistributionStatus.COMPLETED

    def test_missed_window_goes_straight_to_completed(self, manager, clock):
        make_confirmed_distribution(manager, start_offset=timedelta(hours=1), duration=timedelta(hours=1))
        clock.advance(hours=3)

        [changed] = manager.refresh_statuses()
        assert changed.status == DistributionStatus.COMPLETED

    def test_unconfirmed_stays_pending(self, manager, clock, reference_allocations):
        manager.create_distribution(reference_allocations, VaultType.PLAYER_TASKS, 1)
        clock.advance(days=5)

        assert manager.refresh_statuses() == []
        assert manager.get_distribution(1).status == DistributionStatus.PENDING

    def test_explicit_now(self, manager, clock):
        make_confirmed_distribution(manager, duration=timedelta(days=1))
        [changed] = manager.refresh_statuses(now=clock() + timedelta(days=3))
        assert changed.status == DistributionStatus.COMPLETED

    def test_terminal_untouched(self, manager, clock):
        make_confirmed_distribution(manager)
        manager.cancel_distribution(1)
        clock.advance(days=60)

        assert manager.refresh_statuses() == []


def test_resolve_status_all_claimed(manager):
    d = make_confirmed_distribution(manager)
    all_claimed = d.evolve(claimed_count=3, claimed_amount=350)

    assert resolve_status(all_claimed, manager.clock()) == DistributionStatus.COMPLETED


class TestQueries:
    def test_get_unknown(self, manager):
        with pytest.raises(NotFoundException) as exc_info:
            manager.get_distribution(5)
        assert exc_info.value.code == ErrorCodes.DISTRIBUTION_NOT_FOUND

    def test_list_filters(self, manager, reference_allocations):
        manager.create_distribution(reference_allocations, VaultType.PLAYER_TASKS, 30)
        manager.create_distribution(reference_allocations, VaultType.ECOSYSTEM_FUND, 30)

        page = manager.list_distributions(DistributionFilters(vault_type=VaultType.ECOSYSTEM_FUND))
        assert page.total == 1
        assert page.items[0].distribution_id == 2

    def test_stats(self, manager, reconciler, chain):
        d = make_confirmed_distribution(manager)
        chain.commit(1, d.merkle_root, d.start_time, d.end_time)
        chain.claim(1, 0)
        reconciler.sync(1)

        stats = manager.get_distribution_stats(1)
        assert stats.claimed_amount == 100
        assert stats.unclaimed_amount == 250
        assert stats.claim_rate == 28.57
        assert stats.claimed_count == 1

    def test_user_distributions(self, manager):
        make_confirmed_distribution(manager)
        manager.create_distribution([{"address": ADDR_B, "amount": 7}], VaultType.ECOSYSTEM_FUND, 10)

        found = manager.get_user_distributions(ADDR_B)
        assert [(u.distribution.distribution_id, u.leaf.amount) for u in found] == [(1, 200), (2, 7)]
        assert manager.get_user_distributions(ADDR_UNKNOWN) == []

    def test_list_leaves(self, manager):
        manager.create_distribution(make_allocations(5), VaultType.PLAYER_TASKS, 30)
        page = manager.list_leaves(1, page=2, limit=2)

        assert page.total == 5
        assert page.pages == 3
        assert [leaf.index for leaf in page.items] == [2, 3]

    @pytest.mark.parametrize("page,limit", [(0, 10), (1, 0), (1, 101)])
    def test_list_leaves_bounds(self, manager, reference_allocations, page, limit):
        manager.create_distribution(reference_allocations, VaultType.PLAYER_TASKS, 30)
        with pytest.raises(InvalidRequestException):
            manager.list_leaves(1, page=page, limit=limit)


class TestReferenceScenarios:
    def test_claim_observed_through_sync(self, manager, reconciler, chain):
        d = make_confirmed_distribution(manager)
        assert (d.total_recipients, d.total_amount) == (3, 350)
        assert manager.check_eligibility(1, ADDR_A).eligible

        chain.commit(1, d.merkle_root, d.start_time, d.end_time)
        chain.claim(1, 0)
        synced = reconciler.sync(1)

        assert not manager.check_eligibility(1, ADDR_A).eligible
        assert synced.claimed_count == 1
        assert synced.claimed_amount == 100

    def test_duplicate_address_references_both_indices(self, manager):
        allocations = [
            {"address": ADDR_A, "amount": 100},
            {"address": ADDR_B, "amount": 200},
            {"address": ADDR_A, "amount": 75},
        ]

        with pytest.raises(AllocationValidationException) as exc_info:
            manager.create_distribution(allocations, VaultType.PLAYER_TASKS, 30)

        [issue] = exc_info.value.issues
        assert issue.code == ErrorCodes.DUPLICATE_ADDRESS
        assert (issue.related_index, issue.index) == (0, 2)
        assert manager.store.get(1) is None
