"""
Property-based tests for the parameter sync using Hypothesis.

These check the laws the sync must hold for arbitrary host/linked pairs:

Law 1 (MatchExactness): matched count equals the size of the identity
    intersection, and host elements outside it are never written

Law 2 (NoSentinelCopy): a linked value that is missing or unset is never
    written onto the host

Law 3 (Idempotence): sync(sync(h, l), l) writes nothing

Law 4 (LinkedReadOnly): the linked document is never modified

Run with: pytest -v test_properties.py
Requires: hypothesis>=6.0
"""

import pytest

try:
    from hypothesis import HealthCheck, given, settings

    HYPOTHESIS_AVAILABLE = True
except ImportError:
    HYPOTHESIS_AVAILABLE = False

from ..changeset import build_sync_changeset
from ..json_model import JsonDB
from ..oplog import WriteOutcome
from ..sync import build_snapshots, match_snapshots, run_param_sync
from ..types import NOT_FOUND
from .builders import make_linked_pair, values_of

if HYPOTHESIS_AVAILABLE:
    from .strategies import model_pair_strategy, parameter_selection_strategy


pytestmark = pytest.mark.skipif(
    not HYPOTHESIS_AVAILABLE, reason="hypothesis not installed"
)

if HYPOTHESIS_AVAILABLE:
    sync_settings = settings(
        max_examples=75, suppress_health_check=[HealthCheck.too_slow]
    )
else:  # pragma: no cover

    def sync_settings(f):
        return f


def _linked_value(linked_spec, uid, name):
    spec = linked_spec.get(uid, {}).get(name)
    return None if spec is None else spec.value


# ═══════════════════════════════════════════════════════════════════════════════
# Law 1: Match Exactness
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.mark.skipif(not HYPOTHESIS_AVAILABLE, reason="hypothesis not installed")
class TestMatchExactness:
    """
    Law 1: Only identities present on both sides are matched or written.

    ∀ host, linked:
        matched == |ids(host) ∩ ids(linked)|
    """

    @given(pair=model_pair_strategy(), names=parameter_selection_strategy)
    @sync_settings
    def test_matched_count_is_intersection(self, pair, names):
        host_spec, linked_spec = pair
        host, linked = make_linked_pair(host_spec, linked_spec)

        result = run_param_sync(host, linked, names, JsonDB, dry_run=True)

        assert result.matched_count == len(set(host_spec) & set(linked_spec))

    @given(pair=model_pair_strategy(), names=parameter_selection_strategy)
    @sync_settings
    def test_unmatched_host_elements_untouched(self, pair, names):
        host_spec, linked_spec = pair
        host, linked = make_linked_pair(host_spec, linked_spec)
        before = values_of(host)

        result = run_param_sync(host, linked, names, JsonDB)

        after = values_of(host)
        for uid in set(host_spec) - set(linked_spec):
            assert after[uid] == before[uid]
        written_ids = {o["id"] for o in result.oplog.outcomes()}
        assert written_ids <= set(host_spec) & set(linked_spec)

    @given(pair=model_pair_strategy(), names=parameter_selection_strategy)
    @sync_settings
    def test_every_pair_shares_identity(self, pair, names):
        host_spec, linked_spec = pair
        host, linked = make_linked_pair(host_spec, linked_spec)

        pairs = list(
            match_snapshots(
                build_snapshots(linked, names, JsonDB),
                build_snapshots(host, names, JsonDB),
            )
        )

        assert all(h.stable_id == lk.stable_id for h, lk in pairs)


# ═══════════════════════════════════════════════════════════════════════════════
# Law 2: No Sentinel Copy
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.mark.skipif(not HYPOTHESIS_AVAILABLE, reason="hypothesis not installed")
class TestNoSentinelCopy:
    """
    Law 2: Missing or unset linked values leave the host value alone.
    """

    @given(pair=model_pair_strategy(), names=parameter_selection_strategy)
    @sync_settings
    def test_changeset_never_carries_sentinel(self, pair, names):
        host_spec, linked_spec = pair
        host, linked = make_linked_pair(host_spec, linked_spec)

        changeset = build_sync_changeset(
            match_snapshots(
                build_snapshots(linked, names, JsonDB),
                build_snapshots(host, names, JsonDB),
            )
        )

        assert all(c.new_value != NOT_FOUND for c in changeset.parameter_changes)

    @given(pair=model_pair_strategy(), names=parameter_selection_strategy)
    @sync_settings
    def test_host_keeps_value_when_linked_has_none(self, pair, names):
        host_spec, linked_spec = pair
        host, linked = make_linked_pair(host_spec, linked_spec)
        before = values_of(host)

        run_param_sync(host, linked, names, JsonDB)

        after = values_of(host)
        for uid in set(host_spec) & set(linked_spec):
            for name in names:
                if _linked_value(linked_spec, uid, name) is None and name in before[uid]:
                    assert after[uid][name] == before[uid][name]


# ═══════════════════════════════════════════════════════════════════════════════
# Law 3: Idempotence
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.mark.skipif(not HYPOTHESIS_AVAILABLE, reason="hypothesis not installed")
class TestIdempotence:
    """
    Law 3: Syncing twice with the same linked model equals syncing once.
    """

    @given(pair=model_pair_strategy(), names=parameter_selection_strategy)
    @sync_settings
    def test_second_sync_writes_nothing(self, pair, names):
        host_spec, linked_spec = pair
        host, linked = make_linked_pair(host_spec, linked_spec)

        run_param_sync(host, linked, names, JsonDB)
        after_first = values_of(host)
        second = run_param_sync(host, linked, names, JsonDB)

        # Values that could not land the first time are proposed again and skipped.
        assert all(
            o["outcome"] is not WriteOutcome.WRITTEN for o in second.oplog.outcomes()
        )
        assert second.parameters_written == 0
        assert second.elements_written == 0
        assert values_of(host) == after_first

    @given(pair=model_pair_strategy(), names=parameter_selection_strategy)
    @sync_settings
    def test_written_counts_bounded_by_changeset(self, pair, names):
        host_spec, linked_spec = pair
        host, linked = make_linked_pair(host_spec, linked_spec)

        result = run_param_sync(host, linked, names, JsonDB)

        assert result.parameters_written <= result.changeset.parameter_count
        assert result.elements_written <= len(result.changeset.updated_ids)
        assert result.elements_written <= result.matched_count


# ═══════════════════════════════════════════════════════════════════════════════
# Law 4: Linked Document Read-Only
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.mark.skipif(not HYPOTHESIS_AVAILABLE, reason="hypothesis not installed")
class TestLinkedReadOnly:
    @given(pair=model_pair_strategy(), names=parameter_selection_strategy)
    @sync_settings
    def test_linked_values_unchanged(self, pair, names):
        host_spec, linked_spec = pair
        host, linked = make_linked_pair(host_spec, linked_spec)
        before = values_of(linked)

        run_param_sync(host, linked, names, JsonDB)

        assert values_of(linked) == before
