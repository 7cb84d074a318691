"""Tests for the batch run lock."""

import pytest

from mutation_miner.core.errors import BatchLocked
from mutation_miner.core.lock import CLAIM_SUFFIX, REGISTRY_NAME, batch_token, lock_path, run_lock


def test_batch_token_ignores_order_and_repeats():
    assert batch_token(["3", "1", "2"]) == batch_token(["1", "2", "3", "1"])
    assert batch_token(["1"]) != batch_token(["2"])
    assert batch_token(["1"]).startswith("batch-")


def test_lock_path_is_filesystem_safe(tmp_path):
    assert lock_path(tmp_path, "pending-queue") == tmp_path / "pending-queue.lock"
    assert lock_path(tmp_path, "../a b/c").name == "a-b-c.lock"


def test_second_holder_is_rejected(tmp_path):
    with run_lock(tmp_path, "k") as path:
        assert path.name == "k.lock"
        with pytest.raises(BatchLocked) as excinfo:
            with run_lock(tmp_path, "k"):
                pass
        assert excinfo.value.lock_key == "k"


def test_lock_is_released_after_block(tmp_path):
    with run_lock(tmp_path, "k"):
        pass
    with run_lock(tmp_path, "k"):
        pass


def test_lock_is_released_after_error(tmp_path):
    with pytest.raises(RuntimeError):
        with run_lock(tmp_path, "k"):
            raise RuntimeError("boom")
    with run_lock(tmp_path, "k"):
        pass


def test_different_keys_do_not_conflict(tmp_path):
    with run_lock(tmp_path, "a"):
        with run_lock(tmp_path, "b"):
            pass


def test_overlapping_identifiers_are_rejected_across_keys(tmp_path):
    with run_lock(tmp_path, batch_token(["1", "2"]), ["1", "2"]):
        with pytest.raises(BatchLocked) as excinfo:
            with run_lock(tmp_path, batch_token(["2", "3"]), ["2", "3"]):
                pass
        assert excinfo.value.identifiers == ["2"]

        with run_lock(tmp_path, batch_token(["3", "4"]), ["3", "4"]):
            pass


def test_rejected_run_leaves_no_files_behind(tmp_path):
    with run_lock(tmp_path, "a", ["1"]):
        with pytest.raises(BatchLocked):
            with run_lock(tmp_path, "b", ["1"]):
                pass
        assert not (tmp_path / "b.lock").exists()
        assert not (tmp_path / "b.claim").exists()


def test_lock_and_claim_files_are_removed(tmp_path):
    with run_lock(tmp_path, batch_token(["1"]), ["1"]) as path:
        assert path.exists()
        assert path.with_suffix(CLAIM_SUFFIX).read_text(encoding="utf-8") == "1"
    leftovers = sorted(p.name for p in tmp_path.iterdir())
    assert leftovers in ([], [REGISTRY_NAME])


def test_claim_of_dead_run_is_ignored(tmp_path):
    # A claim file without a held key lock is what a crashed run leaves.
    (tmp_path / "crashed.claim").write_text("1\n2", encoding="utf-8")
    with run_lock(tmp_path, "fresh", ["2"]):
        pass
    assert not (tmp_path / "crashed.claim").exists()
