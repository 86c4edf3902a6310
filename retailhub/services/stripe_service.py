"""
Stripe integration: product sync, checkout sessions, payment intents,
invoices and webhook processing.
"""

import logging
import os
import uuid
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

import stripe
from sqlalchemy.orm import Session

from retailhub.audit import AuditAction, log, log_application
from retailhub.db import models
from retailhub.db.repositories import catalog as catalog_repo
from retailhub.db.repositories import wasstrips as wasstrips_repo
from retailhub.services import ok, failure, NOT_FOUND, INVALID, FORBIDDEN, CONFIGURATION, UPSTREAM
from retailhub.services.notification_service import NotificationService
from retailhub.utils import urls

logger = logging.getLogger(__name__)

CURRENCY = "eur"
CHECKOUT_PAYMENT_METHODS = ["card", "ideal"]
INVOICE_DAYS_UNTIL_DUE = 14
WASSTRIPS_PAYMENT_TYPE = "wasstrips_payment"
ORDER_PAYMENT_TYPE = "order_payment"


def to_cents(amount) -> int:
    return int(round(float(amount) * 100))


def stripe_configured() -> bool:
    return bool(os.getenv("STRIPE_SECRET_KEY"))


def publishable_config() -> Dict[str, Any]:
    key = os.getenv("STRIPE_PUBLISHABLE_KEY")
    return {"publishableKey": key, "configured": bool(key) and stripe_configured()}


class StripeService:
    """Thin service around the Stripe SDK bound to the local catalog."""

    def __init__(self, db: Session, notification_service: Optional[NotificationService] = None):
        self.db = db
        self._notification_service = notification_service

    @property
    def notification_service(self) -> NotificationService:
        if self._notification_service is None:
            self._notification_service = NotificationService(self.db)
        return self._notification_service

    def _configure(self) -> bool:
        secret = os.getenv("STRIPE_SECRET_KEY")
        if not secret:
            return False
        stripe.api_key = secret
        return True

    # === Products ===

    def sync_product(self, product_id: Optional[uuid.UUID], *, actor_profile_id=None) -> Dict[str, Any]:
        if not product_id:
            return failure(INVALID, "Product ID is required")
        product = catalog_repo.get_product(self.db, product_id)
        if not product:
            return failure(NOT_FOUND, "Product not found")
        if not self._configure():
            return failure(CONFIGURATION, "Stripe is not configured")

        try:
            product_params: Dict[str, Any] = {
                "name": product.name,
                "metadata": {"product_id": str(product.id)},
            }
            if product.description:
                product_params["description"] = product.description
            if product.image_url:
                product_params["images"] = [product.image_url]
            stripe_product = stripe.Product.create(**product_params)
            stripe_price = stripe.Price.create(
                product=stripe_product.id,
                unit_amount=to_cents(product.price),
                currency=CURRENCY,
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe sync failed for product {product.id}: {e}")
            return failure(CONFIGURATION, "Failed to sync product with Stripe", str(e))

        product.stripe_product_id = stripe_product.id
        product.stripe_price_id = stripe_price.id
        product.stripe_synced_at = datetime.now(timezone.utc)
        self.db.commit()
        log(
            self.db,
            action=AuditAction.PRODUCT_STRIPE_SYNC,
            target_type="product",
            target_id=product.id,
            actor_profile_id=actor_profile_id,
            metadata={"stripe_product_id": stripe_product.id},
        )
        return ok(stripeProductId=stripe_product.id, stripePriceId=stripe_price.id)

    # === Checkout ===

    def _line_items(self, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        line_items = []
        for item in items:
            product_data: Dict[str, Any] = {"name": item["name"]}
            if item.get("description"):
                product_data["description"] = item["description"]
            if item.get("image"):
                product_data["images"] = [item["image"]]
            line_items.append({
                "price_data": {
                    "currency": CURRENCY,
                    "product_data": product_data,
                    "unit_amount": to_cents(item["price"]),
                },
                "quantity": int(item.get("quantity") or 1),
            })
        return line_items

    def _create_session(self, items, metadata: Dict[str, str], customer_email: Optional[str] = None):
        params: Dict[str, Any] = {
            "payment_method_types": CHECKOUT_PAYMENT_METHODS,
            "line_items": self._line_items(items),
            "mode": "payment",
            "success_url": urls.app_url("/payment/success") + "?session_id={CHECKOUT_SESSION_ID}",
            "cancel_url": urls.app_url("/payment/cancelled"),
            "metadata": metadata,
        }
        if customer_email:
            params["customer_email"] = customer_email
        return stripe.checkout.Session.create(**params)

    def create_checkout(
        self,
        items: Optional[List[Dict[str, Any]]],
        *,
        order_id: Optional[str] = None,
        application_id: Optional[str] = None,
        customer_email: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not items:
            return failure(INVALID, "No items provided")
        if not self._configure():
            return failure(CONFIGURATION, "Stripe is not configured")
        metadata = {"type": ORDER_PAYMENT_TYPE}
        if order_id:
            metadata["orderId"] = str(order_id)
        if application_id:
            metadata["applicationId"] = str(application_id)
        try:
            session = self._create_session(items, metadata, customer_email)
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout creation failed: {e}")
            return failure(CONFIGURATION, "Failed to create checkout session", str(e))
        return ok(url=session.url, sessionId=session.id)

    def create_wasstrips_checkout(
        self,
        application_id: Optional[uuid.UUID],
        payment_type: Optional[str],
        owner_id: Optional[uuid.UUID] = None,
    ) -> Dict[str, Any]:
        """Checkout session for a deposit or remaining payment.

        When ``owner_id`` is given the application must belong to that profile.
        """
        if not application_id or not payment_type:
            return failure(INVALID, "applicationId and paymentType are required")
        if payment_type not in ("deposit", "remaining"):
            return failure(INVALID, "paymentType must be 'deposit' or 'remaining'")
        application = wasstrips_repo.get_application(self.db, application_id)
        if not application:
            return failure(NOT_FOUND, "Application not found")
        if owner_id is not None and application.profile_id != owner_id:
            return failure(FORBIDDEN, "You do not have access to this application")
        if not self._configure():
            return failure(CONFIGURATION, "Stripe is not configured")

        if payment_type == "deposit":
            amount, label = application.deposit_amount, "Aanbetaling"
        else:
            amount, label = application.remaining_amount, "Restbetaling"
        items = [{
            "name": f"Wasstrips {label} ({application.order_number})",
            "price": float(amount),
            "quantity": 1,
        }]
        metadata = {
            "type": WASSTRIPS_PAYMENT_TYPE,
            "applicationId": str(application.id),
            "paymentType": payment_type,
        }
        email = application.profile.email if application.profile else None
        try:
            session = self._create_session(items, metadata, email)
        except stripe.StripeError as e:
            logger.error(f"Stripe wasstrips checkout failed for {application.id}: {e}")
            return failure(CONFIGURATION, "Failed to create checkout session", str(e))
        return ok(url=session.url, sessionId=session.id)

    # === Payment intents ===

    def create_payment_intent(self, amount: Optional[float], currency: str = CURRENCY, metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if not amount or amount <= 0:
            return failure(INVALID, "Amount must be greater than 0")
        if not self._configure():
            return failure(CONFIGURATION, "Stripe is not configured")
        try:
            intent = stripe.PaymentIntent.create(
                amount=to_cents(amount),
                currency=(currency or CURRENCY).lower(),
                metadata={k: str(v) for k, v in (metadata or {}).items()},
                automatic_payment_methods={"enabled": True},
            )
        except stripe.StripeError as e:
            logger.error(f"Payment intent creation failed: {e}")
            return failure(CONFIGURATION, "Failed to create payment intent", str(e))
        return ok(clientSecret=intent.client_secret, paymentIntentId=intent.id)

    def get_payment_intent(self, intent_id: Optional[str]) -> Dict[str, Any]:
        if not intent_id:
            return failure(INVALID, "Payment intent ID is required")
        if not self._configure():
            return failure(CONFIGURATION, "Stripe is not configured")
        try:
            intent = stripe.PaymentIntent.retrieve(intent_id)
        except stripe.StripeError as e:
            logger.error(f"Payment intent lookup failed for {intent_id}: {e}")
            return failure(UPSTREAM, "Failed to retrieve payment intent", str(e))
        return ok(
            paymentIntent={
                "id": intent.id,
                "status": intent.status,
                "amount": intent.amount,
                "currency": intent.currency,
                "metadata": dict(intent.metadata or {}),
            }
        )

    # === Invoices ===

    def _customer_for(self, profile: models.Profile):
        existing = stripe.Customer.list(email=profile.email, limit=1)
        if existing.data:
            return existing.data[0]
        return stripe.Customer.create(
            email=profile.email,
            name=profile.company_name or profile.full_name,
            metadata={"profile_id": str(profile.id)},
        )

    def create_invoice(self, profile: models.Profile, amount, description: str, metadata: Dict[str, str]) -> Dict[str, Any]:
        """Create, finalize and send a Stripe invoice for a single amount."""
        if not self._configure():
            return failure(CONFIGURATION, "Stripe is not configured")
        try:
            customer = self._customer_for(profile)
            stripe.InvoiceItem.create(
                customer=customer.id,
                amount=to_cents(amount),
                currency=CURRENCY,
                description=description,
            )
            invoice = stripe.Invoice.create(
                customer=customer.id,
                collection_method="send_invoice",
                days_until_due=INVOICE_DAYS_UNTIL_DUE,
                pending_invoice_items_behavior="include",
                metadata=metadata,
            )
            invoice = stripe.Invoice.finalize_invoice(invoice.id)
            stripe.Invoice.send_invoice(invoice.id)
        except stripe.StripeError as e:
            logger.error(f"Stripe invoice failed for {profile.email}: {e}")
            return failure(CONFIGURATION, "Failed to create invoice", str(e))
        return ok(invoiceId=invoice.id, invoiceUrl=getattr(invoice, "hosted_invoice_url", None))

    # === Webhooks ===

    def handle_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        if not signature:
            return failure(INVALID, "Missing stripe-signature header")
        secret = os.getenv("STRIPE_WEBHOOK_SECRET")
        if not secret:
            return failure(CONFIGURATION, "Stripe webhook secret is not configured")
        try:
            event = stripe.Webhook.construct_event(payload, signature, secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.warning(f"Rejected Stripe webhook: {e}")
            return failure(INVALID, "Invalid webhook signature")

        event_type = event["type"]
        if event_type == "checkout.session.completed":
            self._checkout_completed(event["data"]["object"])
        else:
            logger.info(f"Unhandled Stripe event type {event_type}")
        return ok(received=True)

    def _checkout_completed(self, session: Dict[str, Any]) -> None:
        metadata = session.get("metadata") or {}
        if metadata.get("type") == WASSTRIPS_PAYMENT_TYPE:
            self.record_wasstrips_payment(
                metadata.get("applicationId"),
                metadata.get("paymentType"),
                session_id=session.get("id"),
            )
        elif metadata.get("type") == ORDER_PAYMENT_TYPE or metadata.get("orderId"):
            self._mark_order_paid(metadata.get("orderId"), session)

    def record_wasstrips_payment(self, application_id: Optional[str], payment_type: Optional[str], *, session_id: Optional[str] = None) -> bool:
        try:
            application = wasstrips_repo.get_application(self.db, uuid.UUID(str(application_id)))
        except ValueError:
            application = None
        if not application:
            logger.warning(f"Stripe payment for unknown wasstrips application {application_id}")
            return False

        now = datetime.now(timezone.utc)
        metadata = dict(application.metadata_json or {})
        if payment_type == "deposit":
            updates = {"deposit_status": "paid", "deposit_paid_at": now, "status": "approved"}
            metadata["deposit_session_id"] = session_id
            action = AuditAction.WASSTRIPS_DEPOSIT_PAID
        elif payment_type == "remaining":
            updates = {"remaining_payment_status": "paid", "remaining_paid_at": now}
            metadata["remaining_session_id"] = session_id
            action = AuditAction.WASSTRIPS_REMAINING_PAID
        else:
            logger.warning(f"Unknown wasstrips payment type {payment_type} for {application_id}")
            return False
        updates["metadata_json"] = metadata
        wasstrips_repo.update_application(self.db, application, updates)
        log_application(self.db, actor_profile_id=None, application_id=application.id, action=action, metadata={"session_id": session_id})

        if payment_type == "deposit" and application.profile:
            self.notification_service.notify_deposit_paid(application, application.profile)
        return True

    def _mark_order_paid(self, order_id: Optional[str], session: Dict[str, Any]) -> bool:
        try:
            order = catalog_repo.get_order(self.db, uuid.UUID(str(order_id)))
        except ValueError:
            order = None
        if not order:
            logger.warning(f"Stripe payment for unknown order {order_id}")
            return False
        catalog_repo.update_order(self.db, order, {
            "payment_status": "paid",
            "status": "processing",
            "payment_method": "stripe",
            "stripe_session_id": session.get("id"),
            "stripe_payment_intent_id": session.get("payment_intent"),
        })
        return True
