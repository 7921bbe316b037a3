"""Order/payment workflow, exercised directly against a session."""

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from storefront.exceptions import (
    ConcurrentModification, InvalidArgument, InvalidStatusTransition, NotFound,
    OrderNotFound, OrderPaymentMismatch, PaymentNotFound, ProductNotFound, StorageFailure,
)
from storefront.models.order import Order
from storefront.models.payment import Payment
from storefront.services import orders as order_service


def _payment(db, order):
    db.expire_all()
    return db.query(Payment).filter(Payment.order_id == order.id).one()


def _place(db, customer, product, quantity=3):
    return order_service.create_order(
        db, customer, product_id=product.id, quantity=quantity,
        payment_method="card", address="1 Main St",
    )


class TestCreateOrder:

    def test_price_is_snapshot_of_product_price_times_quantity(self, db, customer, product):
        order = _place(db, customer, product, quantity=3)

        assert order.id is not None
        assert order.price == 60.00
        assert order.status == "Pending"
        assert order.product_name == "Field Guide"
        assert order.firstname == "Alice"
        assert order.user_id == customer.user_id

    def test_spawns_exactly_one_pending_payment(self, db, customer, product):
        order = _place(db, customer, product, quantity=3)

        payments = db.query(Payment).filter(Payment.order_id == order.id).all()
        assert len(payments) == 1
        payment = payments[0]
        assert payment.amount == 60.00
        assert payment.status == "Pending"
        assert payment.delivery_status == order.status
        assert payment.name == "Alice Smith"
        assert payment.payment_method == "card"

    def test_later_price_change_does_not_touch_existing_order(self, db, customer, product):
        order = _place(db, customer, product, quantity=2)

        product.price = 99.0
        db.commit()
        db.expire_all()

        assert db.query(Order).filter(Order.id == order.id).one().price == 40.00
        assert _payment(db, order).amount == 40.00

    def test_price_rounds_to_cents(self, db, customer, second_product):
        order = _place(db, customer, second_product, quantity=3)
        assert order.price == 37.50

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_non_positive_quantity_is_rejected_without_writes(self, db, customer, product, quantity):
        with pytest.raises(InvalidArgument):
            _place(db, customer, product, quantity=quantity)

        assert db.query(Order).count() == 0
        assert db.query(Payment).count() == 0

    def test_unknown_product_is_not_found_without_writes(self, db, customer):
        with pytest.raises(ProductNotFound) as exc:
            order_service.create_order(db, customer, product_id=999, quantity=1)

        assert isinstance(exc.value, NotFound)
        assert db.query(Order).count() == 0
        assert db.query(Payment).count() == 0

    def test_failed_payment_write_rolls_back_the_order(self, db, customer, product, monkeypatch):
        def broken_payment(order):
            raise SQLAlchemyError("payments table unavailable")

        monkeypatch.setattr(order_service, "_open_payment", broken_payment)

        with pytest.raises(OrderPaymentMismatch):
            _place(db, customer, product)

        assert db.query(Order).count() == 0
        assert db.query(Payment).count() == 0

    def test_commit_failure_is_a_storage_failure(self, db, customer, product, monkeypatch):
        def broken_commit():
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(db, "commit", broken_commit)

        with pytest.raises(StorageFailure):
            _place(db, customer, product)

        assert db.query(Order).count() == 0


class TestSetOrderStatus:

    @pytest.mark.parametrize("status", ["Processing", "InTransit", "Delivered"])
    def test_payment_mirrors_new_status(self, db, customer, product, status):
        order = _place(db, customer, product)

        updated = order_service.set_order_status(db, order.id, status)

        payment = _payment(db, order)
        assert updated.status == status
        assert payment.delivery_status == status
        assert payment.status == ("Success" if status == "Delivered" else "Pending")

    def test_example_scenario_delivered(self, db, customer, product):
        order = _place(db, customer, product, quantity=3)

        updated = order_service.set_order_status(db, order.id, "Delivered")

        payment = _payment(db, order)
        assert updated.status == "Delivered"
        assert payment.status == "Success"
        assert payment.delivery_status == "Delivered"
        assert payment.amount == 60.00

    def test_status_value_is_case_insensitive(self, db, customer, product):
        order = _place(db, customer, product)
        assert order_service.set_order_status(db, order.id, "intransit").status == "InTransit"

    def test_cancelled_via_status_fails_the_payment(self, db, customer, product):
        order = _place(db, customer, product)

        order_service.set_order_status(db, order.id, "Cancelled")

        payment = _payment(db, order)
        assert payment.delivery_status == "Cancelled"
        assert payment.status == "Failed"

    def test_unknown_status_is_invalid(self, db, customer, product):
        order = _place(db, customer, product)

        with pytest.raises(InvalidArgument):
            order_service.set_order_status(db, order.id, "Teleported")

        assert _payment(db, order).delivery_status == "Pending"

    def test_missing_order(self, db):
        with pytest.raises(OrderNotFound):
            order_service.set_order_status(db, 404, "Delivered")

    def test_missing_payment(self, db, customer, product):
        order = _place(db, customer, product)
        db.query(Payment).filter(Payment.order_id == order.id).delete()
        db.commit()

        with pytest.raises(PaymentNotFound):
            order_service.set_order_status(db, order.id, "Processing")

    def test_backwards_move_is_rejected(self, db, customer, product):
        order = _place(db, customer, product)
        order_service.set_order_status(db, order.id, "InTransit")

        with pytest.raises(InvalidStatusTransition):
            order_service.set_order_status(db, order.id, "Processing")

    @pytest.mark.parametrize("terminal", ["Delivered", "Cancelled"])
    def test_terminal_states_are_closed(self, db, customer, product, terminal):
        order = _place(db, customer, product)
        order_service.set_order_status(db, order.id, terminal)

        with pytest.raises(InvalidStatusTransition):
            order_service.set_order_status(db, order.id, "Pending")

        db.expire_all()
        assert db.query(Order).filter(Order.id == order.id).one().status == terminal

    def test_override_reopens_a_terminal_order(self, db, customer, product):
        order = _place(db, customer, product)
        order_service.set_order_status(db, order.id, "Delivered")

        reopened = order_service.set_order_status(db, order.id, "InTransit", override=True)

        payment = _payment(db, order)
        assert reopened.status == "InTransit"
        assert payment.status == "Pending"
        assert payment.delivery_status == "InTransit"

    def test_same_status_is_a_no_op(self, db, customer, product):
        order = _place(db, customer, product)
        assert order_service.set_order_status(db, order.id, "Pending").status == "Pending"

    def test_each_update_bumps_the_version(self, db, customer, product):
        order = _place(db, customer, product)
        first = order.version

        order_service.set_order_status(db, order.id, "Processing")
        db.expire_all()

        assert db.query(Order).filter(Order.id == order.id).one().version == first + 1

    def test_stale_write_is_reported_as_conflict(self, db, customer, product, monkeypatch):
        order = _place(db, customer, product)

        def stale_commit():
            raise StaleDataError("version mismatch")

        monkeypatch.setattr(db, "commit", stale_commit)

        with pytest.raises(ConcurrentModification):
            order_service.set_order_status(db, order.id, "Processing")

    def test_failed_write_leaves_the_pair_untouched(self, db, customer, product, monkeypatch):
        order = _place(db, customer, product)
        order_id = order.id

        def broken_commit():
            raise SQLAlchemyError("connection lost")

        monkeypatch.setattr(db, "commit", broken_commit)
        with pytest.raises(StorageFailure):
            order_service.set_order_status(db, order_id, "Delivered")

        db.expire_all()
        stored = db.query(Order).filter(Order.id == order_id).one()
        payment = db.query(Payment).filter(Payment.order_id == order_id).one()
        assert stored.status == "Pending"
        assert payment.status == "Pending"
        assert payment.delivery_status == "Pending"


class TestCancelOrder:

    def test_cancel_sets_cancelled_and_failed(self, db, customer, product):
        order = _place(db, customer, product)

        cancelled = order_service.cancel_order(db, order.id)

        payment = _payment(db, order)
        assert cancelled.status == "Cancelled"
        assert payment.delivery_status == "Cancelled"
        assert payment.status == "Failed"

    def test_cancel_is_idempotent(self, db, customer, product):
        order = _place(db, customer, product)

        order_service.cancel_order(db, order.id)
        again = order_service.cancel_order(db, order.id)

        payment = _payment(db, order)
        assert again.status == "Cancelled"
        assert payment.status == "Failed"

    def test_delivered_order_cannot_be_cancelled(self, db, customer, product):
        order = _place(db, customer, product)
        order_service.set_order_status(db, order.id, "Delivered")

        with pytest.raises(InvalidStatusTransition):
            order_service.cancel_order(db, order.id)

        assert _payment(db, order).status == "Success"

    def test_override_cancels_a_delivered_order(self, db, customer, product):
        order = _place(db, customer, product)
        order_service.set_order_status(db, order.id, "Delivered")

        cancelled = order_service.cancel_order(db, order.id, override=True)

        assert cancelled.status == "Cancelled"
        assert _payment(db, order).status == "Failed"

    def test_cancel_missing_order(self, db):
        with pytest.raises(OrderNotFound):
            order_service.cancel_order(db, 12345)


class TestQueries:

    def test_list_orders_empty(self, db):
        assert order_service.list_orders(db) == []

    def test_list_orders(self, db, customer, product, second_product):
        first = _place(db, customer, product)
        second = _place(db, customer, second_product)

        ids = {o.id for o in order_service.list_orders(db)}
        assert ids == {first.id, second.id}

    def test_orders_for_user(self, db, customer, product, other_user):
        order = _place(db, customer, product)

        assert [o.id for o in order_service.orders_for_user(db, customer.user_id)] == [order.id]
        with pytest.raises(NotFound):
            order_service.orders_for_user(db, other_user.id)

    def test_get_order_missing(self, db):
        with pytest.raises(OrderNotFound):
            order_service.get_order(db, 1)

    def test_get_payment_for_order(self, db, customer, product):
        order = _place(db, customer, product)
        payment = order_service.get_payment_for_order(db, order.id)

        assert payment.order_id == order.id
        assert order_service.get_payment(db, payment.id).id == payment.id
        with pytest.raises(PaymentNotFound):
            order_service.get_payment(db, payment.id + 100)


class TestConcurrentUpdates:

    @pytest.fixture
    def other_session(self, session_factory):
        session = session_factory()
        yield session
        session.close()

    def _assert_in_sync(self, db, order_id, status):
        db.expire_all()
        stored = db.query(Order).filter(Order.id == order_id).one()
        payment = db.query(Payment).filter(Payment.order_id == order_id).one()
        assert stored.status == status
        order_service.check_pair(stored, payment)

    def test_stale_copy_in_session_does_not_desync_the_pair(self, db, other_session, customer, product):
        order = _place(db, customer, product)
        assert order_service.get_order(db, order.id).status == "Pending"

        order_service.set_order_status(other_session, order.id, "Processing")

        with pytest.raises(InvalidStatusTransition):
            order_service.set_order_status(db, order.id, "Pending")

        self._assert_in_sync(db, order.id, "Processing")

    def test_repeating_the_other_writers_status_is_a_no_op(self, db, other_session, customer, product):
        order = _place(db, customer, product)
        order_service.get_order(db, order.id)

        order_service.set_order_status(other_session, order.id, "Processing")
        updated = order_service.set_order_status(db, order.id, "Processing")

        assert updated.status == "Processing"
        self._assert_in_sync(db, order.id, "Processing")

    def test_write_between_load_and_commit_is_a_conflict(self, db, other_session, customer, product, monkeypatch):
        order = _place(db, customer, product)
        real_check = order_service.check_transition

        def check_after_another_writer(current, target, override=False):
            monkeypatch.setattr(order_service, "check_transition", real_check)
            order_service.set_order_status(other_session, order.id, "Processing")
            return real_check(current, target, override)

        monkeypatch.setattr(order_service, "check_transition", check_after_another_writer)

        with pytest.raises(ConcurrentModification):
            order_service.set_order_status(db, order.id, "Delivered")

        self._assert_in_sync(db, order.id, "Processing")

    def test_no_op_status_still_bumps_the_version(self, db, customer, product):
        order = _place(db, customer, product)
        first = order.version

        order_service.set_order_status(db, order.id, "Pending")
        db.expire_all()

        assert db.query(Order).filter(Order.id == order.id).one().version == first + 1


class TestReadFailures:

    def _break_queries(self, db, monkeypatch):
        def broken_query(*args, **kwargs):
            raise SQLAlchemyError("database is down")

        monkeypatch.setattr(db, "query", broken_query)

    @pytest.mark.parametrize("call", [
        lambda db: order_service.list_orders(db),
        lambda db: order_service.orders_for_user(db, 1),
        lambda db: order_service.get_order(db, 1),
        lambda db: order_service.get_payment_for_order(db, 1),
        lambda db: order_service.list_payments(db),
        lambda db: order_service.get_payment(db, 1),
        lambda db: order_service.set_order_status(db, 1, "Processing"),
        lambda db: order_service.reconcile_order(db, 1),
    ])
    def test_queries_report_storage_failure(self, db, monkeypatch, call):
        self._break_queries(db, monkeypatch)

        with pytest.raises(StorageFailure):
            call(db)

    def test_product_lookup_failure_writes_nothing(self, db, customer, product, monkeypatch):
        def broken_lookup(db, product_id):
            raise SQLAlchemyError("database is down")

        monkeypatch.setattr(order_service, "find_product", broken_lookup)

        with pytest.raises(StorageFailure):
            _place(db, customer, product)

        monkeypatch.undo()
        assert db.query(Order).count() == 0
        assert db.query(Payment).count() == 0
