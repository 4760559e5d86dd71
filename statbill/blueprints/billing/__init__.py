"""Billing blueprint - plan picker and Stripe subscription management."""
from flask import Blueprint

billing_bp = Blueprint('billing', __name__)

from statbill.blueprints.billing import routes  # noqa: F401, E402
