"""Override store: create, update, status changes, delete and listing."""

from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.price_override_history import PriceOverrideHistory
from app.schemas.price_override import PriceOverrideCreate, PriceOverrideFilter, PriceOverrideUpdate
from app.services import override_history
from app.services.price_overrides import (
    create_override,
    delete_override,
    get_override,
    list_overrides,
    list_overrides_by_sku,
    update_override,
    update_override_status,
)


def history_for(db, override_id):
    return db.scalars(
        select(PriceOverrideHistory)
        .where(PriceOverrideHistory.price_override_id == override_id)
        .order_by(PriceOverrideHistory.id.asc())
    ).all()


@pytest.mark.unit
class TestCreateOverride:
    def test_state_override_is_active_with_priority_one(self, db_session, make_override, catalogue):
        override = make_override(state="KA")

        assert override.status == "active"
        assert override.priority == 1
        assert override.sku_code == "S1"
        assert override.product_name == "Cola Can 330ml"
        assert override.original_base_price == 100.0
        assert override.created_by == 7

    @pytest.mark.parametrize(
        "fields, expected",
        [
            ({"state": "KA"}, 1),
            ({"state": "KA", "district": "Bengaluru Urban"}, 2),
            ({"location": {"campus": "North", "tower": "B"}}, 4),
            ({"machine_id": "VM-100", "state": "KA"}, 5),
        ],
    )
    def test_priority_matches_populated_fields(self, make_override, fields, expected):
        assert make_override(**fields).priority == expected

    def test_area_override_denormalizes_area_name(self, make_override, areas):
        override = make_override(area_id=areas["whitefield"].id)

        assert override.priority == 3
        assert override.area_name == "Whitefield Tech Park"

    def test_create_writes_one_history_entry(self, db_session, make_override):
        override = make_override(machine_id="VM-1")

        entries = history_for(db_session, override.id)
        assert len(entries) == 1
        entry = entries[0]
        assert entry.action == "CREATE"
        assert entry.old_data is None
        assert entry.new_data["machine_id"] == "VM-1"
        assert entry.performed_by_email == "ops@example.com"
        assert entry.performed_by_role == "ops_manager"
        assert entry.ip_address == "10.0.0.5"

    def test_unknown_sku_rejected(self, db_session, actor, now):
        payload = PriceOverrideCreate(
            sku_id=999,
            state="KA",
            override_price=10,
            start_date=now,
            end_date=now + timedelta(days=1),
            reason="promo",
        )
        with pytest.raises(ValidationError, match="SKU not found"):
            create_override(db_session, payload, actor)

    def test_inactive_catalogue_entry_does_not_resolve(self, make_override):
        with pytest.raises(ValidationError):
            make_override(sku="RETIRED", state="KA")

    def test_unknown_area_rejected(self, make_override, areas):
        with pytest.raises(ValidationError, match="Area not found"):
            make_override(area_id=4242)

    def test_end_before_start_rejected(self, make_override, now):
        with pytest.raises(ValidationError):
            make_override(state="KA", start_date=now, end_date=now)
        with pytest.raises(ValidationError):
            make_override(state="KA", start_date=now, end_date=now - timedelta(hours=1))

    def test_negative_price_rejected(self, make_override):
        with pytest.raises(ValidationError):
            make_override(state="KA", override_price=-1)

    def test_location_scope_required(self, make_override):
        with pytest.raises(ValidationError, match="location level"):
            make_override(state="  ", machine_id="")

    def test_reason_required(self, make_override):
        with pytest.raises(ValidationError):
            make_override(state="KA", reason="")

    def test_rejected_create_leaves_no_history(self, db_session, make_override):
        with pytest.raises(ValidationError):
            make_override(state="KA", override_price=-5)
        assert db_session.scalars(select(PriceOverrideHistory)).all() == []


@pytest.mark.unit
class TestConflicts:
    def test_overlapping_machine_override_conflicts(self, make_override, now):
        first = make_override(machine_id="VM-1")

        with pytest.raises(ConflictError) as exc_info:
            make_override(
                machine_id="VM-1",
                start_date=now,
                end_date=now + timedelta(days=5),
            )
        assert exc_info.value.conflicting_id == first.id
        assert str(first.id) in exc_info.value.message

    def test_touching_windows_overlap(self, make_override, now):
        make_override(machine_id="VM-1", start_date=now, end_date=now + timedelta(days=1))
        with pytest.raises(ConflictError):
            make_override(machine_id="VM-1", start_date=now + timedelta(days=1), end_date=now + timedelta(days=2))

    def test_disjoint_windows_do_not_conflict(self, make_override, now):
        make_override(machine_id="VM-1", start_date=now, end_date=now + timedelta(days=1))
        later = make_override(machine_id="VM-1", start_date=now + timedelta(days=2), end_date=now + timedelta(days=3))
        assert later.id is not None

    def test_other_machine_or_sku_does_not_conflict(self, make_override):
        make_override(machine_id="VM-1")
        assert make_override(machine_id="VM-2").priority == 5
        assert make_override(sku="S2", machine_id="VM-1").priority == 5

    def test_state_comparison_ignores_case(self, make_override):
        make_override(state="KA")
        with pytest.raises(ConflictError):
            make_override(state="ka")

    def test_inactive_override_does_not_block(self, db_session, make_override, actor):
        first = make_override(state="KA")
        update_override_status(db_session, first.id, "inactive", actor)
        assert make_override(state="KA").status == "active"

    def test_broader_scope_over_narrower_is_accepted(self, make_override):
        make_override(district="Bengaluru Urban")
        state_wide = make_override(state="KA")
        assert state_wide.priority == 1

    def test_reactivation_checks_conflicts(self, db_session, make_override, actor):
        first = make_override(state="KA")
        update_override_status(db_session, first.id, "inactive", actor)
        make_override(state="KA")

        with pytest.raises(ConflictError):
            update_override_status(db_session, first.id, "active", actor)


@pytest.mark.unit
class TestUpdateOverride:
    def test_changes_only_list_differing_fields(self, db_session, make_override, actor):
        override = make_override(state="KA", override_price=80)

        update_override(
            db_session,
            override.id,
            PriceOverrideUpdate(override_price=75, reason="promo", state="KA"),
            actor,
        )

        entry = history_for(db_session, override.id)[-1]
        assert entry.action == "UPDATE"
        assert entry.changes == [{"field": "override_price", "old_value": 80.0, "new_value": 75.0}]
        assert entry.old_data["override_price"] == 80.0
        assert entry.new_data["override_price"] == 75.0

    def test_priority_recomputed_when_location_changes(self, db_session, make_override, actor):
        override = make_override(state="KA")

        updated = update_override(db_session, override.id, PriceOverrideUpdate(machine_id="VM-9"), actor)
        assert updated.priority == 5

        updated = update_override(db_session, override.id, PriceOverrideUpdate(machine_id=None), actor)
        assert updated.priority == 1
        assert updated.machine_id is None

    def test_location_replaced_and_cleared(self, db_session, make_override, actor):
        override = make_override(state="KA", location={"campus": "North", "floor": "3"})
        assert override.priority == 4

        updated = update_override(db_session, override.id, PriceOverrideUpdate(location=None), actor)
        assert updated.priority == 1
        assert updated.location_campus is None

        fields = [change["field"] for change in history_for(db_session, override.id)[-1].changes]
        assert fields == ["location.campus", "location.floor", "priority"]

    def test_area_change_refreshes_name(self, db_session, make_override, actor, areas):
        override = make_override(area_id=areas["whitefield"].id)
        updated = update_override(db_session, override.id, PriceOverrideUpdate(area_id=areas["omr"].id), actor)
        assert updated.area_name == "OMR IT Corridor"

    def test_cannot_clear_every_location_field(self, db_session, make_override, actor):
        override = make_override(state="KA")
        with pytest.raises(ValidationError):
            update_override(db_session, override.id, PriceOverrideUpdate(state=None), actor)

    def test_end_before_start_rejected_on_update(self, db_session, make_override, actor, now):
        override = make_override(state="KA")
        with pytest.raises(ValidationError):
            update_override(db_session, override.id, PriceOverrideUpdate(end_date=now - timedelta(days=2)), actor)
        with pytest.raises(ValidationError):
            update_override(db_session, override.id, PriceOverrideUpdate(start_date=now + timedelta(days=1)), actor)

    def test_negative_price_rejected_on_update(self, db_session, make_override, actor):
        override = make_override(state="KA")
        with pytest.raises(ValidationError):
            update_override(db_session, override.id, PriceOverrideUpdate(override_price=-3), actor)

    def test_update_into_conflict_rejected(self, db_session, make_override, actor):
        make_override(machine_id="VM-1")
        other = make_override(machine_id="VM-2")
        with pytest.raises(ConflictError):
            update_override(db_session, other.id, PriceOverrideUpdate(machine_id="VM-1"), actor)

    def test_broad_rule_stays_editable_beside_narrower_rule(self, db_session, make_override, actor):
        state_wide = make_override(state="KA")
        make_override(state="KA", machine_id="VM-1")

        updated = update_override(db_session, state_wide.id, PriceOverrideUpdate(reason="typo fix"), actor)
        assert updated.reason == "typo fix"
        updated = update_override(db_session, state_wide.id, PriceOverrideUpdate(override_price=75), actor)
        assert updated.override_price == 75

    def test_window_change_rechecks_conflicts(self, db_session, make_override, actor, now):
        make_override(machine_id="VM-1", start_date=now + timedelta(days=5), end_date=now + timedelta(days=6))
        current = make_override(machine_id="VM-1")
        with pytest.raises(ConflictError):
            update_override(db_session, current.id, PriceOverrideUpdate(end_date=now + timedelta(days=5)), actor)

    def test_updated_by_recorded(self, db_session, make_override, actor):
        override = make_override(state="KA")
        other_actor = actor.model_copy(update={"user_id": 11})
        updated = update_override(db_session, override.id, PriceOverrideUpdate(reason="new reason"), other_actor)
        assert updated.updated_by == 11
        assert updated.created_by == 7

    def test_missing_override(self, db_session, actor):
        with pytest.raises(NotFoundError):
            update_override(db_session, 404, PriceOverrideUpdate(reason="x"), actor)


@pytest.mark.unit
class TestStatusChanges:
    def test_deactivate_then_activate(self, db_session, make_override, actor):
        override = make_override(state="KA")

        update_override_status(db_session, override.id, "inactive", actor)
        update_override_status(db_session, override.id, "active", actor)

        actions = [entry.action for entry in history_for(db_session, override.id)]
        assert actions == ["CREATE", "DEACTIVATE", "ACTIVATE"]
        assert history_for(db_session, override.id)[1].changes == [
            {"field": "status", "old_value": "active", "new_value": "inactive"}
        ]

    def test_same_status_patch_logs_status_action(self, db_session, make_override, actor):
        override = make_override(state="KA")
        update_override_status(db_session, override.id, "active", actor)
        update_override_status(db_session, override.id, "inactive", actor)
        update_override_status(db_session, override.id, "inactive", actor)

        entries = history_for(db_session, override.id)
        assert [entry.action for entry in entries] == ["CREATE", "ACTIVATE", "DEACTIVATE", "DEACTIVATE"]
        assert entries[1].changes == []

    def test_status_with_other_changes_is_update(self, db_session, make_override, actor):
        override = make_override(state="KA")
        update_override(db_session, override.id, PriceOverrideUpdate(status="inactive", override_price=60), actor)
        assert history_for(db_session, override.id)[-1].action == "UPDATE"

    def test_invalid_status_rejected(self, db_session, make_override, actor):
        override = make_override(state="KA")
        with pytest.raises(ValidationError):
            update_override_status(db_session, override.id, "expired", actor)
        with pytest.raises(ValidationError):
            update_override_status(db_session, override.id, "paused", actor)

    def test_expired_is_terminal(self, db_session, make_override, actor):
        override = make_override(state="KA")
        override.status = "expired"
        db_session.commit()

        with pytest.raises(ValidationError):
            update_override_status(db_session, override.id, "active", actor)
        assert get_override(db_session, override.id).status == "expired"


@pytest.mark.unit
class TestDeleteOverride:
    def test_delete_keeps_history(self, db_session, make_override, actor):
        override = make_override(machine_id="VM-1")
        override_id = override.id

        snapshot = delete_override(db_session, override_id, actor)

        assert snapshot.machine_id == "VM-1"
        with pytest.raises(NotFoundError):
            get_override(db_session, override_id)
        entries = history_for(db_session, override_id)
        assert [entry.action for entry in entries] == ["CREATE", "DELETE"]
        assert entries[-1].old_data["id"] == override_id
        assert entries[-1].new_data is None
        assert entries[-1].sku_code == "S1"

    def test_delete_missing(self, db_session, actor):
        with pytest.raises(NotFoundError):
            delete_override(db_session, 12345, actor)


@pytest.mark.unit
class TestListing:
    def test_list_by_sku_orders_by_priority_and_skips_expired(self, db_session, make_override):
        state_rule = make_override(state="KA")
        machine_rule = make_override(machine_id="VM-1")
        district_rule = make_override(district="Chennai")
        expired_rule = make_override(state="TN")
        expired_rule.status = "expired"
        db_session.commit()

        rows = list_overrides_by_sku(db_session, state_rule.sku_id)
        assert [row.id for row in rows] == [machine_rule.id, district_rule.id, state_rule.id]

    def test_filtered_listing_paginates(self, db_session, make_override, catalogue):
        for index in range(5):
            make_override(machine_id=f"VM-{index}")
        make_override(sku="S2", state="KA")

        rows, total, page, limit = list_overrides(db_session, PriceOverrideFilter(sku_id=catalogue["S1"].id), page=2, limit=2)
        assert total == 5
        assert (page, limit) == (2, 2)
        assert len(rows) == 2

        rows, total, _, _ = list_overrides(db_session, PriceOverrideFilter(sku_code="s2"))
        assert total == 1 and rows[0].state == "KA"

    def test_filter_by_status_and_start_range(self, db_session, make_override, actor, now):
        early = make_override(state="KA", start_date=now - timedelta(days=10), end_date=now - timedelta(days=5))
        make_override(state="TN")
        update_override_status(db_session, early.id, "inactive", actor)

        rows, total, _, _ = list_overrides(db_session, PriceOverrideFilter(status="inactive"))
        assert [row.id for row in rows] == [early.id]

        rows, total, _, _ = list_overrides(db_session, PriceOverrideFilter(start_date_to=now - timedelta(days=3)))
        assert [row.id for row in rows] == [early.id]

    def test_unknown_status_filter_rejected(self, db_session):
        with pytest.raises(ValidationError):
            list_overrides(db_session, PriceOverrideFilter(status="archived"))


@pytest.mark.unit
class TestHistoryFailure:
    def test_history_failure_does_not_fail_mutation(self, db_session, make_override, monkeypatch):
        def broken(*args, **kwargs):
            raise OperationalError("INSERT INTO price_override_history", {}, Exception("disk full"))

        monkeypatch.setattr(override_history, "_build_entry", broken)

        override = make_override(state="KA")

        assert get_override(db_session, override.id).status == "active"
        assert db_session.scalars(select(PriceOverrideHistory)).all() == []
