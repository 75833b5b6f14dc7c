"""Tests for WorklogService — entry management and the roll-up surface."""

from datetime import date

import pytest
from worklog.config import WorklogConfig
from worklog.errors import EntryInUse, Forbidden, InsufficientInputs, InvalidEntry, NotFound
from worklog.records.models import Table
from worklog.rollup.eligibility import Level
from worklog.service import WorklogService, normalize_contents


@pytest.fixture
def service(store, summarizer) -> WorklogService:
    return WorklogService(store, summarizer)


class TestNormalizeContents:
    def test_strips_and_drops_blanks(self):
        assert normalize_contents(["  deploy ", "", "   ", "review"]) == ["deploy", "review"]

    def test_all_blank_rejected(self):
        with pytest.raises(InvalidEntry):
            normalize_contents(["", "  "])


class TestEntries:
    def test_add_entry(self, service, owner):
        entry = service.add_entry(owner, [" fixed login "], date(2025, 3, 3))

        assert entry.contents == ["fixed login"]
        assert entry.consumed_by is None
        assert service.get_entry(owner, entry.id).date == date(2025, 3, 3)

    def test_add_defaults_to_today(self, service, owner):
        assert service.add_entry(owner, ["x"]).date == date.today()

    def test_add_empty_rejected(self, service, owner, store):
        with pytest.raises(InvalidEntry):
            service.add_entry(owner, [])
        assert store.count(Table.ENTRIES, owner) == 0

    def test_update_entry(self, service, owner):
        entry = service.add_entry(owner, ["draft"])
        updated = service.update_entry(owner, entry.id, ["final", ""])
        assert updated.contents == ["final"]

    def test_update_consumed_entry_allowed(self, service, seed, owner):
        analysis = seed.analysis(1)
        entry_id = analysis.source_entry_ids[0]

        updated = service.update_entry(owner, entry_id, ["corrected"])

        assert updated.consumed_by == analysis.id
        assert service.get_analysis(owner, analysis.id).pattern == "pattern from day 1"

    def test_delete_available_entry(self, service, owner):
        entry = service.add_entry(owner, ["oops"])
        service.delete_entry(owner, entry.id)
        with pytest.raises(NotFound):
            service.get_entry(owner, entry.id)

    def test_delete_consumed_entry_rejected(self, service, seed, owner, store):
        analysis = seed.analysis(1)
        entry_id = analysis.source_entry_ids[0]

        with pytest.raises(EntryInUse) as excinfo:
            service.delete_entry(owner, entry_id)

        assert excinfo.value.kind == "entry_in_use"
        assert store.count(Table.ENTRIES, owner) == 5

    def test_other_owner_forbidden(self, service, owner):
        entry = service.add_entry("owner-b", ["theirs"])
        with pytest.raises(Forbidden):
            service.get_entry(owner, entry.id)
        with pytest.raises(Forbidden):
            service.delete_entry(owner, entry.id)
        with pytest.raises(Forbidden):
            service.update_entry(owner, entry.id, ["mine now"])

    def test_list_newest_first(self, service, seed, owner):
        seed.entries([2, 5, 1])
        assert [e.date for e in service.list_entries(owner)] == [
            seed.day(5),
            seed.day(2),
            seed.day(1),
        ]


class TestRollupSurface:
    def test_eligibility_accepts_level_string(self, service, seed, owner):
        seed.entries(range(1, 4))
        status = service.eligibility(owner, "analysis")
        assert status.level == Level.ANALYSIS
        assert status.remaining == 2

    def test_derive_analysis_then_card(self, service, seed, owner):
        seed.entries(range(1, 21))
        for _ in range(4):
            service.derive_analysis(owner)

        result = service.derive_card(owner)

        assert service.list_cards(owner)[0].id == result.artifact.id
        assert len(service.list_analyses(owner)) == 4
        assert service.get_card(owner, result.artifact.id).title == "Checkout revamp"

    def test_derive_card_too_early(self, service, seed, owner):
        seed.analysis(1)
        with pytest.raises(InsufficientInputs) as excinfo:
            service.derive_card(owner)
        assert excinfo.value.to_dict()["need"] == 4

    def test_reconcile_clean(self, service, seed, owner):
        seed.analysis(1)
        assert service.reconcile(owner).is_clean


class TestFromConfig:
    def test_uses_configured_data_dir(self, tmp_path):
        config = WorklogConfig.model_validate({"storage": {"data_dir": str(tmp_path)}})
        service = WorklogService.from_config(config)
        assert service.store.path is not None
        assert service.store.path.parent == tmp_path
