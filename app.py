import re

import click
import stripe
from flask import Flask, request, jsonify
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from cart import Cart, CartError
from config import settings
from form_validation import (
    CONTACT,
    DISPOSABLE_DOMAINS,
    NEWSLETTER,
    ContactForm,
    NewsletterForm,
    validate_form,
)
from logging_config import get_logger, sanitize_string_for_logging
from models import Base, ContactMessage, Review, Subscriber
from money import from_cents
from reviews import is_valid_review, sort_by_date_desc
from storage import SessionStorage

logger = get_logger(__name__)

stripe.api_key = settings.stripe_secret_key

# Setup DB
engine = create_engine(settings.database_url)
Base.metadata.create_all(engine)
DBSession = sessionmaker(bind=engine)

# Flask app
app = Flask(__name__)
app.secret_key = settings.secret_key

DISPOSABLE = DISPOSABLE_DOMAINS | set(settings.extra_disposable_domains)

# Product catalog
PRODUCTS = {
    "jockblock-100ml": {
        "name": "Jock Block Antifungal Spray",
        "description": "Homeopathic antifungal spray with Sulfur 6X HPUS - 100mL",
        "unit_amount": settings.price_amount,
        "currency": settings.currency,
    },
}
CHECKOUT_PRODUCT = "jockblock-100ml"

INTEGER_PATTERN = re.compile(r"-?[0-9]+")

MIN_CHECKOUT_QUANTITY = 1
MAX_CHECKOUT_QUANTITY = 10

SHIPPING_RATES = [
    # (display name, amount in cents, business days min, max)
    ("Standard Shipping", 499, 5, 7),
    ("Express Shipping", 999, 2, 3),
]


def shipping_options(currency):
    """Stripe shipping options, priced in the same currency as the line items."""
    return [
        {
            "shipping_rate_data": {
                "type": "fixed_amount",
                "fixed_amount": {"amount": amount, "currency": currency},
                "display_name": name,
                "delivery_estimate": {
                    "minimum": {"unit": "business_day", "value": min_days},
                    "maximum": {"unit": "business_day", "value": max_days},
                },
            }
        }
        for name, amount, min_days, max_days in SHIPPING_RATES
    ]


def get_cart():
    """Cart for the current visitor, mirrored into their session cookie."""
    return Cart(SessionStorage(), settings.cart_storage_key)


def _request_data():
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def _quantity_field(data, default=None):
    """Quantity from a JSON or form body; form values arrive as strings."""
    value = data.get("quantity", default)
    if isinstance(value, str) and INTEGER_PATTERN.fullmatch(value.strip()):
        return int(value.strip())
    return value


@app.errorhandler(CartError)
def handle_cart_error(e):
    return jsonify({"error": str(e)}), 400


@app.route("/api/products")
def products():
    return jsonify({"products": PRODUCTS, "presale": settings.is_presale()})


# Cart

@app.route("/api/cart")
def cart_view():
    return jsonify(get_cart().to_dict())


@app.route("/api/cart/items", methods=["POST"])
def cart_add():
    data = _request_data()
    product_id = data.get("id")
    product = PRODUCTS.get(product_id)
    if not product:
        return jsonify({"error": f"Invalid product {product_id}"}), 400

    cart = get_cart()
    cart.add_item(product_id, _quantity_field(data, default=1), from_cents(product["unit_amount"]))
    return jsonify(cart.to_dict())


@app.route("/api/cart/items/<item_id>", methods=["PATCH"])
def cart_update(item_id):
    data = _request_data()
    quantity = _quantity_field(data)
    if quantity is None:
        return jsonify({"error": "Quantity is required"}), 400
    cart = get_cart()
    cart.update_quantity(item_id, quantity)
    return jsonify(cart.to_dict())


@app.route("/api/cart/items/<item_id>", methods=["DELETE"])
def cart_remove(item_id):
    cart = get_cart()
    cart.remove_item(item_id)
    return jsonify(cart.to_dict())


@app.route("/api/cart", methods=["DELETE"])
def cart_clear():
    cart = get_cart()
    cart.clear()
    return jsonify(cart.to_dict())


# Forms

@app.route("/api/contact", methods=["POST"])
def contact():
    result = validate_form(ContactForm.from_mapping(_request_data()), CONTACT, DISPOSABLE)
    if result.is_bot:
        # Looks like success to the sender
        logger.info("Bot contact submission dropped")
        return jsonify({"ok": True})
    if not result.is_valid:
        return jsonify({"ok": False, "errors": result.errors}), 400

    with DBSession() as db:
        db.add(ContactMessage(
            name=result.sanitized["name"],
            email=result.sanitized["email"],
            message=result.sanitized["message"],
        ))
        db.commit()
    logger.info("Contact message received from %s",
                sanitize_string_for_logging(result.sanitized["email"]))
    return jsonify({"ok": True})


@app.route("/api/newsletter", methods=["POST"])
def newsletter():
    result = validate_form(NewsletterForm.from_mapping(_request_data()), NEWSLETTER, DISPOSABLE)
    if result.is_bot:
        logger.info("Bot newsletter submission dropped")
        return jsonify({"ok": True})
    if not result.is_valid:
        return jsonify({"ok": False, "errors": result.errors}), 400

    email = result.sanitized["email"].lower()
    with DBSession() as db:
        existing = db.scalars(select(Subscriber).where(Subscriber.email == email)).first()
        if existing is None:
            db.add(Subscriber(email=email))
            db.commit()
            logger.info("New newsletter subscriber %s", sanitize_string_for_logging(email))
    return jsonify({"ok": True})


# Reviews

@app.route("/api/reviews")
def reviews():
    with DBSession() as db:
        rows = [r.to_dict() for r in db.scalars(select(Review))]
    return jsonify({"reviews": sort_by_date_desc(rows)})


@app.cli.command("add-review")
@click.option("--rating", type=int, required=True)
@click.option("--name", required=True)
@click.option("--review", "text", required=True)
@click.option("--date", "review_date", type=click.DateTime(formats=["%Y-%m-%d"]), default=None)
@click.option("--verified/--unverified", default=False)
def add_review(rating, name, text, review_date, verified):
    """Publish an approved review."""
    candidate = {
        "rating": rating,
        "name": name,
        "review": text,
        "date": review_date.date().isoformat() if review_date else "",
    }
    if not is_valid_review(candidate):
        raise click.BadParameter("rating must be 1-5 and name/review must not be blank")

    with DBSession() as db:
        review = Review(rating=rating, name=name.strip(), review=text.strip(), verified=verified)
        if review_date:
            review.date = review_date.date()
        db.add(review)
        db.commit()
        click.echo(f"Review {review.id} from {review.name} published ({rating}/5)")


# Checkout

def _checkout_quantity(data):
    """Requested quantity, or the cart's item count; clamped to 1..10."""
    raw = data.get("quantity")
    if raw is None:
        count = get_cart().get_item_count()
        if count == 0:
            return None
        raw = count
    try:
        quantity = int(raw)
    except (TypeError, ValueError, OverflowError):
        quantity = MIN_CHECKOUT_QUANTITY
    if quantity < MIN_CHECKOUT_QUANTITY:
        quantity = MIN_CHECKOUT_QUANTITY
    return min(quantity, MAX_CHECKOUT_QUANTITY)


@app.route("/create-checkout-session", methods=["POST"])
def create_checkout_session():
    quantity = _checkout_quantity(_request_data())
    if quantity is None:
        return jsonify({"error": "Cart is empty"}), 400

    product = PRODUCTS[CHECKOUT_PRODUCT]
    try:
        session = stripe.checkout.Session.create(
            payment_method_types=["card"],
            line_items=[{
                "price_data": {
                    "currency": product["currency"],
                    "product_data": {
                        "name": product["name"],
                        "description": product["description"],
                    },
                    "unit_amount": product["unit_amount"],
                },
                "quantity": quantity,
            }],
            mode="payment",
            success_url=f"{settings.domain}/success.html?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{settings.domain}/?canceled=true",
            shipping_address_collection={"allowed_countries": ["US", "CA"]},
            shipping_options=shipping_options(product["currency"]),
            billing_address_collection="required",
            allow_promotion_codes=True,
        )
    except stripe.StripeError:
        logger.exception("Stripe checkout error")
        return jsonify({"error": "Failed to create checkout session"}), 500

    return jsonify({"session_id": session.id, "url": session.url})


if __name__ == "__main__":
    app.run(port=4242, debug=True)
