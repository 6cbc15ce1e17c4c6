"""Tests for holdergate.backup."""

from holdergate.backup import (
    EMPTY_BACKUP,
    HEADER,
    decode_backup,
    encode_backup,
    holder_role_names,
    is_backup_message,
    restore_holders,
    select_backup,
)
from holdergate.models import RESTORED_ADDRESS, VerifiedHolder
from holdergate.store import HolderRegistry


class TestEncode:
    def test_layout(self):
        messages = encode_backup({1: ["Holder", "Rare"], 2: ["Holder"]})
        assert messages == [f"{HEADER}\n<@1>: Holder, Rare\n<@2>: Holder"]

    def test_empty(self):
        assert encode_backup({}) == [EMPTY_BACKUP]
        assert encode_backup({1: []}) == [EMPTY_BACKUP]

    def test_splits_long_backups(self):
        entries = {10**17 + i: ["Holder", "Legendary Whale"] for i in range(120)}
        messages = encode_backup(entries)
        assert len(messages) > 1
        assert all(len(m) <= 2000 for m in messages)
        assert messages[0].startswith(f"{HEADER} (part 1/{len(messages)})")
        assert decode_backup(messages) == entries

    def test_holder_role_names_uses_known_roles_only(self):
        holders = [
            VerifiedHolder(identity=1, address="addr1a", assigned_role_ids={10, 11, 99}),
            VerifiedHolder(identity=2, address="addr1b", assigned_role_ids={99}),
            VerifiedHolder(identity=3, address="addr1c"),
        ]
        names = holder_role_names(holders, {10: "Rare", 11: "Holder"})
        assert names == {1: ["Holder", "Rare"]}


class TestDecode:
    def test_round_trip(self):
        entries = {
            123456789012345678: ["Holder", "Epic"],
            223456789012345678: ["Holder"],
        }
        assert decode_backup(encode_backup(entries)) == entries

    def test_tolerates_spacing_and_nickname_mentions(self):
        text = f"{HEADER}\n<@!42>:Holder ,  Rare \n<@43>:   Holder"
        assert decode_backup([text]) == {42: ["Holder", "Rare"], 43: ["Holder"]}

    def test_empty_backup_has_no_users(self):
        assert decode_backup([EMPTY_BACKUP]) == {}

    def test_role_names_with_n_and_backslash_survive(self):
        text = f"{HEADER}\n<@7>: Nightowl, Gen\\1"
        assert decode_backup([text]) == {7: ["Nightowl", "Gen\\1"]}


class TestSelect:
    def test_newest_backup_wins(self):
        newest_first = [
            "gm",
            f"{HEADER}\n<@2>: Holder",
            f"{HEADER}\n<@1>: Holder",
        ]
        assert select_backup(newest_first) == [f"{HEADER}\n<@2>: Holder"]

    def test_no_backup(self):
        assert select_backup(["gm", "📋 notes", "Wallet Verification Backup soon"]) == []

    def test_markers(self):
        assert is_backup_message(EMPTY_BACKUP)
        assert not is_backup_message("Wallet Verification Backup")

    def test_collects_all_parts_of_newest_dump(self):
        old = encode_backup({i: ["Old"] for i in range(1, 3)})
        new = encode_backup({10**17 + i: ["Holder", "Legendary Whale"] for i in range(120)})
        # Channel history is newest first: the new dump was sent part 1, 2, ...
        newest_first = list(reversed(old + new))
        assert select_backup(newest_first) == new

    def test_parts_from_older_dump_are_not_mixed_in(self):
        part = lambda i, n, body: f"{HEADER} (part {i}/{n})\n{body}"
        newest_first = [
            part(2, 2, "<@2>: New"),
            part(1, 2, "<@1>: New"),
            part(2, 2, "<@2>: Old"),
            part(1, 2, "<@1>: Old"),
        ]
        assert decode_backup(select_backup(newest_first)) == {1: ["New"], 2: ["New"]}


class TestRestore:
    def test_restored_holders_get_placeholder(self, clock):
        holders = HolderRegistry()
        holders.put(VerifiedHolder(identity=1, address="addr1real", assigned_role_ids={5}))

        count = restore_holders(holders, {1: ["Holder"], 2: ["Holder", "Rare"]}, clock=clock)

        assert count == 2
        for identity in (1, 2):
            holder = holders.get(identity)
            assert holder.address == RESTORED_ADDRESS
            assert holder.assigned_role_ids == set()
            assert holder.last_reconciled_at == clock.now
        assert holders.get(2).restored_role_names == ["Holder", "Rare"]

    def test_restored_names_are_written_back(self, clock):
        holders = HolderRegistry()
        restore_holders(holders, {1: ["Holder", "Rare"], 2: ["Holder"]}, clock=clock)
        holders.put(VerifiedHolder(identity=3, address="addr1live", assigned_role_ids={11}))

        names = holder_role_names(holders, {11: "Holder"})
        assert names == {1: ["Holder", "Rare"], 2: ["Holder"], 3: ["Holder"]}

    def test_reverifying_drops_restored_names(self, clock):
        holders = HolderRegistry()
        restore_holders(holders, {1: ["Holder", "Rare"]}, clock=clock)
        holders.put(VerifiedHolder(identity=1, address="addr1live"))

        assert holder_role_names(holders, {11: "Holder"}) == {}
