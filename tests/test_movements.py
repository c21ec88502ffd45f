import threading
from datetime import date
from decimal import Decimal

import pytest
from unittest.mock import patch

from stockroom.core.errors import (
    IncompatibleUnit,
    InsufficientStock,
    InvalidQuantity,
    InvalidStateTransition,
    InvalidTransfer,
    RestorationMismatch,
    UnknownMenuItem,
    UnknownOutlet,
    UnknownProduct,
)
from stockroom.schemas.inventory import BatchSource, MovementKind, Unit
from stockroom.schemas.order import MenuIngredient, MenuItem, OrderItem
from stockroom.services.units import convert


def snapshot(kitchen):
    return sorted((b.id, b.product_id, b.outlet_id, b.quantity) for b in kitchen.ledger.batches())


class TestUnits:
    def test_grams_to_kilograms(self):
        assert convert(Decimal("120"), Unit.G, Unit.KG) == Decimal("0.12")

    def test_litres_to_millilitres(self):
        assert convert(Decimal("1.5"), Unit.L, Unit.ML) == Decimal("1500")

    def test_weight_to_count_is_rejected(self):
        with pytest.raises(IncompatibleUnit):
            convert(Decimal("1"), Unit.KG, Unit.PIECES, "wraps")


class TestReceive:
    def test_receive_adds_batch_and_records_receipt(self, kitchen):
        receipt = kitchen.movements.receive(
            "paneer", "central", "20", price=Decimal("310"), expiry_date=date(2024, 1, 14),
        )
        assert kitchen.ledger.get_stock("paneer", "central") == Decimal("20")
        batch = kitchen.ledger.store.get(receipt.batch_id)
        assert batch.purchase_price == Decimal("310")
        assert batch.source == BatchSource.RECEIVED
        assert kitchen.journal.receipts[receipt.id] == receipt
        assert kitchen.journal.movements[-1].kind == MovementKind.RECEIPT

    def test_receive_unknown_references(self, kitchen):
        with pytest.raises(UnknownProduct):
            kitchen.movements.receive("saffron", "central", 1)
        with pytest.raises(UnknownOutlet):
            kitchen.movements.receive("paneer", "nowhere", 1)

    def test_receive_non_positive_quantity(self, kitchen):
        with pytest.raises(InvalidQuantity):
            kitchen.movements.receive("paneer", "central", 0)
        assert kitchen.journal.receipts == {}


class TestFulfilOrder:
    def test_requirements_aggregate_and_convert(self, kitchen):
        required = kitchen.movements.requirements([
            OrderItem(menu_item_id="paneer-wrap", quantity=2),
            OrderItem(menu_item_id="paneer-rice", quantity=1),
        ])
        assert required == {
            "paneer": Decimal("0.39"),
            "wraps": Decimal("2"),
            "rice": Decimal("0.2"),
        }

    def test_empty_order_is_rejected(self, kitchen):
        with pytest.raises(InvalidQuantity):
            kitchen.movements.requirements([])

    def test_unknown_menu_item(self, kitchen):
        with pytest.raises(UnknownMenuItem):
            kitchen.movements.requirements([OrderItem(menu_item_id="biryani", quantity=1)])

    def test_deducts_all_ingredients(self, kitchen):
        kitchen.movements.receive("paneer", "central", 1)
        kitchen.movements.receive("wraps", "central", 10)
        plans = kitchen.movements.fulfill_order([OrderItem(menu_item_id="paneer-wrap", quantity=2)], "central")

        assert [p.product_id for p in plans] == ["paneer", "wraps"]
        assert kitchen.ledger.get_stock("paneer", "central") == Decimal("0.76")
        assert kitchen.ledger.get_stock("wraps", "central") == Decimal("8")
        consumed = kitchen.journal.movements_on("central", date(2024, 1, 10), [MovementKind.CONSUMPTION])
        assert sum(m.quantity for m in consumed) == Decimal("2.24")

    def test_short_ingredient_rolls_back_everything(self, kitchen):
        kitchen.movements.receive("paneer", "central", 1)
        kitchen.movements.receive("wraps", "central", 1)
        before = snapshot(kitchen)

        with pytest.raises(InsufficientStock) as exc:
            kitchen.movements.fulfill_order([OrderItem(menu_item_id="paneer-wrap", quantity=2)], "central")

        assert exc.value.product_id == "wraps"
        assert snapshot(kitchen) == before
        assert kitchen.journal.movements_on("central", date(2024, 1, 10), [MovementKind.CONSUMPTION]) == []

    def test_unexpected_error_mid_order_rolls_back_applied_deductions(self, kitchen):
        kitchen.movements.receive("paneer", "central", 1)
        kitchen.movements.receive("wraps", "central", 10)
        before = snapshot(kitchen)
        real_deduct = kitchen.ledger.deduct
        calls = []

        def deduct_then_fail(*args):
            calls.append(args)
            if len(calls) == 2:
                raise RuntimeError("store down")
            return real_deduct(*args)

        with patch.object(kitchen.ledger, "deduct", side_effect=deduct_then_fail):
            with pytest.raises(RuntimeError):
                kitchen.movements.fulfill_order([OrderItem(menu_item_id="paneer-wrap", quantity=2)], "central")

        assert snapshot(kitchen) == before
        assert kitchen.ledger.get_stock("paneer", "central") == Decimal("1")

    def test_incompatible_recipe_unit_is_rejected_before_deducting(self, kitchen):
        kitchen.menu.add(MenuItem(
            id="odd", name="Odd Dish",
            ingredients=[MenuIngredient(product_id="milk", quantity=Decimal("1"), unit=Unit.KG)],
        ))
        kitchen.movements.receive("milk", "central", 5)
        with pytest.raises(IncompatibleUnit):
            kitchen.movements.fulfill_order([OrderItem(menu_item_id="odd", quantity=1)], "central")
        assert kitchen.ledger.get_stock("milk", "central") == Decimal("5")

    def test_reverse_restores_exact_batches(self, kitchen):
        kitchen.movements.receive("paneer", "central", "0.2", expiry_date=date(2024, 1, 11))
        kitchen.movements.receive("paneer", "central", 1, expiry_date=date(2024, 1, 15))
        kitchen.movements.receive("wraps", "central", 5)
        before = snapshot(kitchen)

        plans = kitchen.movements.fulfill_order([OrderItem(menu_item_id="paneer-wrap", quantity=2)], "central")
        kitchen.movements.reverse_order(plans, reference_id="o-1")

        assert snapshot(kitchen) == before
        restored = kitchen.journal.movements_on("central", date(2024, 1, 10), [MovementKind.RESTORATION])
        assert {m.product_id for m in restored} == {"paneer", "wraps"}


class TestTransfer:
    def test_transfer_conserves_total_stock(self, kitchen):
        kitchen.movements.receive("paneer", "central", 4, price=Decimal("100"), expiry_date=date(2024, 1, 12))
        kitchen.movements.receive("paneer", "central", 6, price=Decimal("200"), expiry_date=date(2024, 1, 18))

        record = kitchen.movements.transfer("central", "cafe", "paneer", 6)

        assert kitchen.ledger.get_stock("paneer", "central") == Decimal("4")
        assert kitchen.ledger.get_stock("paneer", "cafe") == Decimal("6")
        incoming = kitchen.ledger.store.get(record.batch_id)
        assert incoming.source == BatchSource.TRANSFER
        assert incoming.expiry_date == date(2024, 1, 12)
        # 4 @ 100 + 2 @ 200 over 6 units
        assert incoming.purchase_price == Decimal("800") / Decimal("6")

    def test_explicit_transfer_price_wins(self, kitchen):
        kitchen.movements.receive("rice", "central", 10, price=Decimal("90"))
        record = kitchen.movements.transfer("central", "cafe", "rice", 3, transfer_price=Decimal("95"))
        assert record.transfer_price == Decimal("95")

    def test_same_outlet_is_rejected(self, kitchen):
        kitchen.movements.receive("rice", "central", 10)
        with pytest.raises(InvalidTransfer):
            kitchen.movements.transfer("central", "central", "rice", 1)

    def test_insufficient_source_changes_neither_side(self, kitchen):
        kitchen.movements.receive("rice", "central", 2)
        before = snapshot(kitchen)
        with pytest.raises(InsufficientStock):
            kitchen.movements.transfer("central", "cafe", "rice", 3)
        assert snapshot(kitchen) == before

    def test_failed_credit_restores_source(self, kitchen):
        kitchen.movements.receive("rice", "central", 5)
        before = snapshot(kitchen)
        with patch.object(kitchen.ledger, "add_batch", side_effect=RuntimeError("store down")):
            with pytest.raises(RuntimeError):
                kitchen.movements.transfer("central", "cafe", "rice", 3)
        assert snapshot(kitchen) == before
        assert kitchen.journal.transfers == {}

    def test_transfer_there_and_back_restores_both_outlets(self, kitchen):
        kitchen.movements.receive("rice", "central", 10, price=Decimal("90"))
        kitchen.movements.receive("rice", "cafe", 2, price=Decimal("95"))

        kitchen.movements.transfer("central", "cafe", "rice", 4)
        kitchen.movements.transfer("cafe", "central", "rice", 4)

        assert kitchen.ledger.get_stock("rice", "central") == Decimal("10")
        assert kitchen.ledger.get_stock("rice", "cafe") == Decimal("2")
        assert len(kitchen.journal.transfers) == 2


class TestWastageAndAudit:
    def test_wastage_deducts_and_is_journalled(self, kitchen):
        kitchen.movements.receive("paneer", "central", 20)
        entry = kitchen.movements.record_wastage("paneer", "central", 5, "spoiled")
        assert kitchen.ledger.get_stock("paneer", "central") == Decimal("15")
        assert kitchen.journal.wastage_on("central", date(2024, 1, 10)) == [entry]

    def test_wastage_beyond_stock_is_rejected(self, kitchen):
        kitchen.movements.receive("paneer", "central", 1)
        with pytest.raises(InsufficientStock):
            kitchen.movements.record_wastage("paneer", "central", 2, "spill")
        assert kitchen.journal.wastage == {}

    def test_audit_records_difference_without_changing_stock(self, kitchen):
        kitchen.movements.receive("rice", "central", 10)
        audit = kitchen.movements.audit("rice", "central", 8, notes="weekly count")
        assert audit.system_quantity == Decimal("10")
        assert audit.difference == Decimal("-2")
        assert kitchen.ledger.get_stock("rice", "central") == Decimal("10")

    def test_audit_rejects_negative_count(self, kitchen):
        with pytest.raises(InvalidQuantity):
            kitchen.movements.audit("rice", "central", -1)

    def test_correction_down_then_cannot_reapply(self, kitchen):
        kitchen.movements.receive("rice", "central", 10)
        audit = kitchen.movements.audit("rice", "central", 8)
        corrected = kitchen.movements.apply_audit_correction(audit.id)

        assert kitchen.ledger.get_stock("rice", "central") == Decimal("8")
        assert corrected.correction_plan.total == Decimal("2")
        assert corrected.corrected_at is not None
        with pytest.raises(InvalidStateTransition):
            kitchen.movements.apply_audit_correction(audit.id)

    def test_correction_up_adds_batch(self, kitchen):
        kitchen.movements.receive("rice", "central", 10, price=Decimal("90"))
        audit = kitchen.movements.audit("rice", "central", 12)
        corrected = kitchen.movements.apply_audit_correction(audit.id)
        batch = kitchen.ledger.store.get(corrected.correction_batch_id)
        assert batch.quantity == Decimal("2")
        assert batch.purchase_price == Decimal("90")
        assert kitchen.ledger.get_stock("rice", "central") == Decimal("12")

    def test_correction_is_relative_to_current_stock(self, kitchen):
        kitchen.movements.receive("rice", "central", 10)
        audit = kitchen.movements.audit("rice", "central", 8)
        kitchen.movements.receive("rice", "central", 5)
        kitchen.movements.apply_audit_correction(audit.id)
        assert kitchen.ledger.get_stock("rice", "central") == Decimal("8")


class TestReverting:
    def test_revert_receipt_drops_batch_and_history(self, kitchen):
        receipt = kitchen.movements.receive("rice", "central", 5)
        kitchen.movements.revert_receipt(receipt)
        assert kitchen.ledger.get_stock("rice", "central") == 0
        assert kitchen.journal.receipts == {}
        assert kitchen.journal.movements_on("central", date(2024, 1, 10)) == []

    def test_revert_receipt_after_the_batch_was_drawn_is_refused(self, kitchen):
        receipt = kitchen.movements.receive("rice", "central", 5)
        kitchen.movements.record_wastage("rice", "central", 1, "spill")
        with pytest.raises(RestorationMismatch):
            kitchen.movements.revert_receipt(receipt)
        assert kitchen.ledger.get_stock("rice", "central") == Decimal("4")

    def test_revert_wastage_and_transfer(self, kitchen):
        kitchen.movements.receive("paneer", "central", 3, expiry_date=date(2024, 1, 12))
        before = snapshot(kitchen)

        entry = kitchen.movements.record_wastage("paneer", "central", 1, "spoiled")
        kitchen.movements.revert_wastage(entry)
        record = kitchen.movements.transfer("central", "cafe", "paneer", 3)
        kitchen.movements.revert_transfer(record)

        assert snapshot(kitchen) == before
        assert kitchen.journal.wastage == {}
        assert kitchen.journal.transfers == {}

    def test_revert_audit_correction_reopens_audit(self, kitchen):
        kitchen.movements.receive("rice", "central", 10)
        audit = kitchen.movements.audit("rice", "central", 13)
        corrected = kitchen.movements.apply_audit_correction(audit.id)

        kitchen.movements.revert_audit_correction(corrected)

        assert kitchen.ledger.get_stock("rice", "central") == Decimal("10")
        assert kitchen.journal.get_audit(audit.id).corrected_at is None
        assert kitchen.journal.movements_on("central", date(2024, 1, 10), [MovementKind.AUDIT_CORRECTION]) == []
        kitchen.movements.apply_audit_correction(audit.id)
        assert kitchen.ledger.get_stock("rice", "central") == Decimal("13")

    def test_revert_and_reapply_order(self, kitchen):
        kitchen.movements.receive("paneer", "central", "0.2", expiry_date=date(2024, 1, 11))
        kitchen.movements.receive("wraps", "central", 5)
        before = snapshot(kitchen)

        plans = kitchen.movements.fulfill_order([OrderItem(menu_item_id="paneer-wrap", quantity=1)], "central", "o-1")
        kitchen.movements.revert_order(plans, "o-1")
        assert snapshot(kitchen) == before
        assert kitchen.journal.movements_on("central", date(2024, 1, 10), [MovementKind.CONSUMPTION]) == []

        plans = kitchen.movements.fulfill_order([OrderItem(menu_item_id="paneer-wrap", quantity=1)], "central", "o-2")
        after = snapshot(kitchen)
        kitchen.movements.reverse_order(plans, "o-2")
        kitchen.movements.reapply_order(plans, "o-2")
        assert snapshot(kitchen) == after
        assert kitchen.journal.movements_on("central", date(2024, 1, 10), [MovementKind.RESTORATION]) == []


class TestConcurrency:
    def test_readers_on_one_outlet_while_another_outlet_writes(self, kitchen):
        kitchen.movements.receive("paneer", "central", 5)
        kitchen.thresholds.set("paneer", "central", 2)
        errors = []
        done = threading.Event()

        def write():
            try:
                for _ in range(300):
                    kitchen.movements.receive("rice", "cafe", 1)
                    kitchen.movements.record_wastage("rice", "cafe", 1, "spill")
            except Exception as e:
                errors.append(e)
            finally:
                done.set()

        def read():
            try:
                while not done.is_set():
                    assert kitchen.ledger.get_stock("paneer", "central") == Decimal("5")
                    kitchen.monitor.check_low_stock("central")
                    kitchen.journal.wastage_on("cafe", date(2024, 1, 10))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=write), threading.Thread(target=write)]
        threads += [threading.Thread(target=read) for _ in range(3)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert kitchen.ledger.get_stock("rice", "cafe") == 0
        assert len(kitchen.journal.wastage) == 600
