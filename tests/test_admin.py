import os
import sqlite3
import unittest
from datetime import timedelta
from unittest.mock import patch

from dbcase import DatabaseTestCase
from db import crud, procedures
from db.database import Database, utcnow
from db.models import Availability, OrderStatus, ProductDraft, ProductType, UserStatus
from shop import admin
from shop.catalog import fetch_product_by_id
from shop.errors import ErrorKind
from shop.orders import place_order

ADDRESS = {"recipient": "Anna", "street": "Storgatan 1", "postal_code": "621 00", "city": "Visby"}


class AdminTestCase(DatabaseTestCase):
    async def place_rondo_order(self, user_id: str, qty: int = 1):
        cart = self.make_cart()
        cart.add_item(await fetch_product_by_id(self.db, "prod-rondo"), qty)
        return await place_order(self.db, user_id, cart, ADDRESS)

    # ---------- Example scenario ----------

    async def test_sign_up_approve_order_fulfil(self):
        user = await self.make_customer("u@example.com", approve=False)
        self.assertEqual(user.status, UserStatus.PENDING)

        result = await admin.approve_user(self.db, self.admin.id, user.id)
        self.assertTrue(result.success)
        approved = await crud.get_user(self.db, user.id)
        self.assertEqual(approved.status, UserStatus.APPROVED)
        self.assertEqual(approved.approved_by, self.admin.id)
        self.assertIsNotNone(approved.approved_at)

        order = await self.place_rondo_order(user.id)
        self.assertEqual(order.status, OrderStatus.PLACED)
        self.assertEqual(order.total_amount, 299.0)
        self.assertEqual(order.currency, "SEK")
        _, items = await admin.fetch_order_by_id(self.db, order.id)
        self.assertEqual(len(items), 1)

        result = await admin.fulfill_order(self.db, self.admin.id, order.id)
        self.assertTrue(result.success)
        fulfilled = await crud.get_order(self.db, order.id)
        self.assertEqual(fulfilled.status, OrderStatus.FULFILLED)
        self.assertIsNotNone(fulfilled.fulfilled_at)

        result = await admin.cancel_order(self.db, self.admin.id, order.id, "too late")
        self.assertFalse(result.success)
        self.assertEqual(result.kind, ErrorKind.INVALID_TRANSITION)
        self.assertEqual(result.error, "Cannot cancel an order that is fulfilled")
        self.assertEqual((await crud.get_order(self.db, order.id)).status, OrderStatus.FULFILLED)

    # ---------- Users ----------

    async def test_approve_twice_is_rejected(self):
        user = await self.make_customer("twice@example.com")
        result = await admin.approve_user(self.db, self.admin.id, user.id)
        self.assertFalse(result)
        self.assertEqual(result.kind, ErrorKind.INVALID_TRANSITION)

    async def test_reject_is_final(self):
        user = await self.make_customer("rej@example.com", approve=False)
        self.assertTrue(await admin.reject_user(self.db, self.admin.id, user.id, "underage"))
        self.assertEqual((await crud.get_user(self.db, user.id)).status, UserStatus.REJECTED)

        self.assertFalse(await admin.approve_user(self.db, self.admin.id, user.id))
        self.assertFalse(await admin.unblock_user(self.db, self.admin.id, user.id))

        [entry] = await crud.list_activity(self.db, resource_id=user.id)
        self.assertEqual(entry.action, "reject_user")
        self.assertEqual(entry.metadata["reason"], "underage")

    async def test_block_and_unblock(self):
        pending = await self.make_customer("pend@example.com", approve=False)
        self.assertFalse(await admin.block_user(self.db, self.admin.id, pending.id))

        user = await self.make_customer("blk@example.com")
        self.assertTrue(await admin.block_user(self.db, self.admin.id, user.id, "abuse"))
        self.assertEqual((await crud.get_user(self.db, user.id)).status, UserStatus.BLOCKED)
        self.assertFalse(await admin.block_user(self.db, self.admin.id, user.id))

        self.assertTrue(await admin.unblock_user(self.db, self.admin.id, user.id))
        self.assertEqual((await crud.get_user(self.db, user.id)).status, UserStatus.APPROVED)

    async def test_fetch_all_users_filters_by_status(self):
        await self.make_customer("a@example.com", approve=False)
        await self.make_customer("b@example.com")
        pending = await admin.fetch_all_users(self.db, UserStatus.PENDING)
        self.assertEqual([u.email for u in pending], ["a@example.com"])
        self.assertEqual(len(await admin.fetch_all_users(self.db)), 3)

    async def test_missing_user(self):
        result = await admin.approve_user(self.db, self.admin.id, "no-such-user")
        self.assertFalse(result)
        self.assertEqual(result.kind, ErrorKind.NOT_FOUND)

    # ---------- Authorization ----------

    async def test_non_admin_is_unauthorized(self):
        customer = await self.make_customer("c@example.com")
        target = await self.make_customer("t@example.com", approve=False)

        result = await admin.approve_user(self.db, customer.id, target.id)
        self.assertFalse(result)
        self.assertEqual(result.kind, ErrorKind.UNAUTHORIZED)
        self.assertEqual(result.error, "Unauthorized: Admin access only")
        self.assertEqual((await crud.get_user(self.db, target.id)).status, UserStatus.PENDING)

        result = await admin.delete_product(self.db, customer.id, "prod-rondo")
        self.assertEqual(result.kind, ErrorKind.UNAUTHORIZED)
        self.assertIsNotNone(await crud.get_product(self.db, "prod-rondo"))

    async def test_blocked_admin_is_unauthorized(self):
        second = await self.make_customer("admin2@example.com")
        async with self.db.connect() as conn:
            await conn.execute(
                "UPDATE users SET role = 'admin', status = 'blocked' WHERE id = ?;", (second.id,)
            )
            await conn.commit()
        result = await admin.fulfill_order(self.db, second.id, "whatever")
        self.assertEqual(result.kind, ErrorKind.UNAUTHORIZED)

    # ---------- Orders ----------

    async def test_fulfil_and_cancel_rules(self):
        user = await self.make_customer("o@example.com")
        cancelled = await self.place_rondo_order(user.id)
        self.assertTrue(await admin.cancel_order(self.db, self.admin.id, cancelled.id, "out of grapes"))
        order = await crud.get_order(self.db, cancelled.id)
        self.assertEqual(order.status, OrderStatus.CANCELLED)
        self.assertEqual(order.cancel_reason, "out of grapes")
        self.assertIsNone(order.fulfilled_at)

        result = await admin.fulfill_order(self.db, self.admin.id, cancelled.id)
        self.assertFalse(result)
        self.assertEqual(result.kind, ErrorKind.INVALID_TRANSITION)

        paid = await self.place_rondo_order(user.id)
        self.assertEqual(await procedures.mark_order_paid(self.db, paid.id), OrderStatus.PAID)
        self.assertTrue(await admin.fulfill_order(self.db, self.admin.id, paid.id))

        self.assertEqual(
            (await admin.fulfill_order(self.db, self.admin.id, "nope")).kind, ErrorKind.NOT_FOUND
        )

    async def test_fetch_all_orders(self):
        user = await self.make_customer("f@example.com")
        first = await self.place_rondo_order(user.id)
        second = await self.place_rondo_order(user.id, qty=2)
        await admin.cancel_order(self.db, self.admin.id, first.id)

        everything = await admin.fetch_all_orders(self.db, "all")
        self.assertEqual({s.order.id for s in everything}, {first.id, second.id})
        self.assertEqual(everything[0].user_email, "f@example.com")

        placed = await admin.fetch_all_orders(self.db, "placed")
        self.assertEqual([s.order.id for s in placed], [second.id])
        self.assertEqual(placed[0].item_count, 1)

        order, items = await admin.fetch_order_by_id(self.db, "missing")
        self.assertIsNone(order)
        self.assertEqual(items, [])

    async def test_status_changed_underneath_is_an_invalid_transition(self):
        user = await self.make_customer("race@example.com", approve=False)
        order = await self.place_rondo_order((await self.make_customer("buyer@example.com")).id)

        def other_writer(sql, params, real):
            def side_effect(*args):
                # a second connection commits between the status read and the update
                conn = sqlite3.connect(self.db.path)
                with conn:
                    conn.execute(sql, params)
                conn.close()
                return real(*args)

            return side_effect

        with patch.object(
            procedures,
            "next_user_status",
            side_effect=other_writer(
                "UPDATE users SET status = 'rejected' WHERE id = ?;",
                (user.id,),
                procedures.next_user_status,
            ),
        ):
            result = await admin.approve_user(self.db, self.admin.id, user.id)
        self.assertFalse(result.success)
        self.assertEqual(result.kind, ErrorKind.INVALID_TRANSITION)
        self.assertEqual((await crud.get_user(self.db, user.id)).status, UserStatus.REJECTED)
        self.assertEqual(await crud.list_activity(self.db, resource_id=user.id), [])

        with patch.object(
            procedures,
            "next_order_status",
            side_effect=other_writer(
                "UPDATE orders SET status = 'cancelled' WHERE id = ?;",
                (order.id,),
                procedures.next_order_status,
            ),
        ):
            result = await admin.fulfill_order(self.db, self.admin.id, order.id)
        self.assertEqual(result.kind, ErrorKind.INVALID_TRANSITION)
        self.assertEqual((await crud.get_order(self.db, order.id)).status, OrderStatus.CANCELLED)
        self.assertIsNone((await crud.get_order(self.db, order.id)).fulfilled_at)
        self.assertEqual(await crud.list_activity(self.db, resource_id=order.id), [])

    # ---------- Audit trail ----------

    async def test_actions_are_audited(self):
        user = await self.make_customer("audit@example.com")
        order = await self.place_rondo_order(user.id)
        await admin.cancel_order(self.db, self.admin.id, order.id, "customer asked")

        [approval] = await crud.list_activity(self.db, resource_id=user.id)
        self.assertEqual(approval.action, "approve_user")
        self.assertEqual(approval.admin_id, self.admin.id)
        self.assertEqual(approval.resource_type, "user")
        self.assertEqual(approval.metadata["from_status"], "pending")
        self.assertEqual(approval.metadata["to_status"], "approved")

        [cancel] = await crud.list_activity(self.db, resource_id=order.id)
        self.assertEqual(cancel.action, "cancel_order")
        self.assertEqual(cancel.metadata["reason"], "customer asked")

        recent = await admin.get_recent_activity(self.db, 5)
        self.assertEqual(recent[0].activity.action, "cancel_order")
        self.assertEqual(recent[0].admin_email, self.admin.email)

    async def test_rejected_action_writes_no_audit(self):
        user = await self.make_customer("noaudit@example.com")
        await admin.approve_user(self.db, self.admin.id, user.id)
        self.assertEqual(len(await crud.list_activity(self.db, resource_id=user.id)), 1)

    async def test_audit_failure_keeps_the_change(self):
        user = await self.make_customer("fail@example.com", approve=False)
        with patch.object(
            procedures, "_append_activity", side_effect=sqlite3.OperationalError("disk full")
        ):
            result = await admin.approve_user(self.db, self.admin.id, user.id)

        self.assertTrue(result.success)
        self.assertEqual((await crud.get_user(self.db, user.id)).status, UserStatus.APPROVED)
        self.assertEqual(await crud.list_activity(self.db, resource_id=user.id), [])

    async def test_log_admin_activity(self):
        aid = await procedures.log_admin_activity(
            self.db, self.admin.id, "exported_report", "report", None, {"rows": 3}
        )
        [entry] = await crud.list_activity(self.db)
        self.assertEqual(entry.id, aid)
        self.assertEqual(entry.metadata, {"rows": 3})

    # ---------- Products ----------

    async def test_create_product(self):
        draft = ProductDraft(
            name="Rosé 2024", product_type=ProductType.WINE, supplier_id="sup-mestej", stock_quantity=5
        )
        result, pid = await admin.create_product(self.db, self.admin.id, draft, 189.0)
        self.assertTrue(result.success, result.error)

        product = await fetch_product_by_id(self.db, pid, utcnow() + timedelta(seconds=1))
        self.assertEqual(product.name, "Rosé 2024")
        self.assertEqual(product.price, 189.0)
        self.assertEqual(product.availability, Availability.IN_STOCK)

        [entry] = await crud.list_activity(self.db, resource_id=pid)
        self.assertEqual(entry.action, "created_product")

        on_request, pid2 = await admin.create_product(
            self.db, self.admin.id, ProductDraft(name="Barrel sample", product_type=ProductType.WINE)
        )
        self.assertTrue(on_request)
        self.assertIsNone((await fetch_product_by_id(self.db, pid2)).price)

    async def test_create_product_validation(self):
        result, pid = await admin.create_product(
            self.db, self.admin.id, ProductDraft(name="  ", product_type=ProductType.WINE)
        )
        self.assertEqual(result.kind, ErrorKind.VALIDATION)
        self.assertIsNone(pid)

        result, _ = await admin.create_product(
            self.db, self.admin.id, ProductDraft(name="Neg", product_type=ProductType.WINE), -1.0
        )
        self.assertEqual(result.kind, ErrorKind.VALIDATION)

        result, pid = await admin.create_product(
            self.db,
            self.admin.id,
            ProductDraft(name="Bad stock", product_type=ProductType.WINE, stock_quantity="n/a"),
        )
        self.assertEqual(result.kind, ErrorKind.VALIDATION)
        self.assertIsNone(pid)

    async def test_update_product_keeps_price_history(self):
        result = await admin.update_product(
            self.db, self.admin.id, "prod-solaris", {"stock_quantity": 7}, new_price=249.0
        )
        self.assertTrue(result.success, result.error)

        prices = (await crud.list_prices(self.db, ["prod-solaris"]))["prod-solaris"]
        self.assertEqual(len(prices), 2)
        self.assertEqual(len([p for p in prices if p.valid_to is None]), 1)

        product = await fetch_product_by_id(self.db, "prod-solaris", utcnow() + timedelta(seconds=1))
        self.assertEqual(product.price, 249.0)
        self.assertEqual(product.stock_quantity, 7)

        listed = {p.id: p for p in await admin.fetch_all_products(self.db)}
        self.assertEqual(listed["prod-solaris"].price, 249.0)
        self.assertIn("prod-tote", listed)

    async def test_update_product_errors(self):
        result = await admin.update_product(self.db, self.admin.id, "missing", {"stock_quantity": 1})
        self.assertEqual(result.kind, ErrorKind.NOT_FOUND)

        result = await admin.update_product(self.db, self.admin.id, "prod-rondo", {"colour": "red"})
        self.assertEqual(result.kind, ErrorKind.VALIDATION)

        result = await admin.update_product(
            self.db, self.admin.id, "prod-rondo", {"stock_quantity": -3}
        )
        self.assertEqual(result.kind, ErrorKind.VALIDATION)

        result = await admin.update_product(
            self.db, self.admin.id, "prod-rondo", {"stock_quantity": "lots"}
        )
        self.assertEqual(result.kind, ErrorKind.VALIDATION)
        self.assertEqual(result.error, "Stock quantity must be a whole number")
        self.assertEqual((await crud.get_product(self.db, "prod-rondo")).stock_quantity, 48)

    async def test_soft_and_hard_delete(self):
        self.assertTrue(await admin.delete_product(self.db, self.admin.id, "prod-solaris"))
        product = await crud.get_product(self.db, "prod-solaris")
        self.assertEqual(product.availability, Availability.OUT_OF_STOCK)

        self.assertTrue(
            await admin.delete_product(self.db, self.admin.id, "prod-solaris", hard_delete=True)
        )
        self.assertIsNone(await crud.get_product(self.db, "prod-solaris"))
        self.assertEqual((await crud.list_prices(self.db, ["prod-solaris"]))["prod-solaris"], [])

        actions = [a.action for a in await crud.list_activity(self.db, resource_id="prod-solaris")]
        self.assertEqual(actions, ["deleted_product", "soft_deleted_product"])

        result = await admin.delete_product(self.db, self.admin.id, "prod-solaris")
        self.assertEqual(result.kind, ErrorKind.NOT_FOUND)

    async def test_fetch_suppliers(self):
        names = [s.name for s in await admin.fetch_suppliers(self.db)]
        self.assertEqual(names, sorted(names))
        self.assertIn("Mestej Vingård", names)

    # ---------- Dashboard ----------

    async def test_dashboard_stats(self):
        await self.make_customer("pending@example.com", approve=False)
        user = await self.make_customer("buyer@example.com")
        fulfilled = await self.place_rondo_order(user.id, qty=2)
        await self.place_rondo_order(user.id)
        await admin.fulfill_order(self.db, self.admin.id, fulfilled.id)

        stats = await admin.get_dashboard_stats(self.db)
        self.assertEqual(stats.total_revenue, 598.0)
        self.assertEqual(stats.pending_orders, 1)
        self.assertEqual(stats.pending_users, 1)
        # the admin account counts as approved too
        self.assertEqual(stats.approved_users, 2)
        self.assertEqual(stats.total_products, 5)
        self.assertEqual(stats.recent_orders, 2)

    # ---------- Transport failures ----------

    async def test_unreachable_database_is_a_transport_error(self):
        blocker = os.path.join(self.temp_dir, "not-a-dir")
        with open(blocker, "w") as f:
            f.write("")
        broken = Database(os.path.join(blocker, "db.sqlite"))

        result = await admin.approve_user(broken, self.admin.id, "anyone")
        self.assertFalse(result)
        self.assertEqual(result.kind, ErrorKind.TRANSPORT)


if __name__ == "__main__":
    unittest.main()
