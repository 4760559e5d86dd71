"""
Billing routes - plan picker and Stripe subscription management.
Routes: choose-plan (+ interval/slider updates), checkout, change plan
(preview + apply), portal, webhook, success.
"""
import stripe
from flask import (
    render_template, redirect, url_for, flash, request,
    current_app, abort, session
)
from flask_login import login_required, current_user

from statbill.billing.benefits import business_benefits, enterprise_benefits, growth_benefits
from statbill.billing.eligibility import checkout_state, suggest_tier
from statbill.billing.plans import (
    Interval, PlanKind, LATEST_GENERATION,
    available_plans_for, get_regular_plan, subscription_interval,
)
from statbill.billing.selection import (
    initial_selection, restore, set_interval, slide,
    format_volume, slider_index, slider_labels,
)
from statbill.blueprints.billing import billing_bp
from statbill.blueprints.billing.forms import IntervalForm, SliderForm
from statbill.extensions import csrf, limiter
from statbill.services.quota_service import QuotaService
from statbill.services.subscription_service import SubscriptionService

SELECTION_SESSION_KEY = 'plan_selection'


def _selection_context(subscription):
    """Key of the subscription a saved selection belongs to, None without one."""
    if subscription is None:
        return None
    return f'{subscription.plan_id}:{subscription.status.value}'


def _plan_state(user):
    """Usage, owned plan and offered plans of ``user``, plus the current selection."""
    subscription = user.subscription
    usage = QuotaService.usage(user, with_features=True)
    owned_plan = get_regular_plan(subscription, only_non_expired=True)
    current_interval = subscription_interval(subscription)
    available = available_plans_for(subscription)
    last_30_days_usage = QuotaService.last_30_days_total(user, usage)

    context = _selection_context(subscription)
    default = initial_selection(available, owned_plan, last_30_days_usage, current_interval)
    selection = restore(session.get(SELECTION_SESSION_KEY), available, default, context)

    return {
        'subscription': subscription,
        'usage': usage,
        'last_30_days_usage': last_30_days_usage,
        'owned_plan': owned_plan,
        'current_interval': current_interval,
        'available': available,
        'selection': selection,
        'context': context,
    }


def _plan_box(kind, plan, selected_plan, benefits, state, recommended_tier):
    owned_plan = state['owned_plan']
    owned = owned_plan is not None and owned_plan.kind == kind
    available = selected_plan is not None

    highlight = None
    if owned:
        highlight = 'Current'
    elif recommended_tier == kind:
        highlight = 'Recommended'

    action = None
    if available:
        action = checkout_state(
            state['usage'], plan, state['selection'].interval,
            owned_plan=owned_plan,
            current_interval=state['current_interval'],
            subscription=state['subscription'],
            available=available,
        )

    return {
        'kind': kind.value,
        'plan': plan,
        'available': available,
        'benefits': benefits,
        'highlight': highlight,
        'checkout': action,
        'grandfathered': (
            owned and kind == PlanKind.GROWTH and plan.generation < LATEST_GENERATION
        ),
    }


def _resolve_checkout(user, product_id):
    """Plan, interval and checkout state behind a product id, 404 if not offered."""
    state = _plan_state(user)
    plan = state['available'].find(product_id)
    if plan is None:
        abort(404)

    interval = Interval.YEARLY if product_id == plan.yearly_product_id else Interval.MONTHLY
    action = checkout_state(
        state['usage'], plan, interval,
        owned_plan=state['owned_plan'],
        current_interval=state['current_interval'],
        subscription=state['subscription'],
    )
    return plan, interval, action, state


@billing_bp.route('/choose-plan')
@login_required
def choose_plan():
    """Plan picker: interval toggle, volume slider and the three plan boxes."""
    state = _plan_state(current_user)
    available = state['available']
    selection = state['selection']
    volumes = available.volumes

    growth_to_render = selection.growth_plan or available.growth[-1]
    business_to_render = selection.business_plan or available.business[-1]
    growth_list = growth_benefits(growth_to_render)
    business_list = business_benefits(business_to_render, growth_list)

    recommended_tier = suggest_tier(state['usage'], state['owned_plan'], available.growth)

    boxes = [
        _plan_box(PlanKind.GROWTH, growth_to_render, selection.growth_plan,
                  growth_list, state, recommended_tier),
        _plan_box(PlanKind.BUSINESS, business_to_render, selection.business_plan,
                  business_list, state, recommended_tier),
    ]

    return render_template(
        'billing/choose_plan.html',
        state=state,
        selection=selection,
        boxes=boxes,
        enterprise_benefits=enterprise_benefits(business_list),
        slider_position=slider_index(selection, volumes),
        slider_max=len(volumes),
        slider_labels=slider_labels(volumes),
        selected_volume_label=format_volume(selection.volume, volumes),
        interval_form=IntervalForm(),
        slider_form=SliderForm(),
    )


@billing_bp.route('/choose-plan/interval', methods=['POST'])
@login_required
def set_billing_interval():
    """Switch the picker between monthly and yearly prices."""
    state = _plan_state(current_user)
    form = IntervalForm()

    if form.validate_on_submit():
        selection = set_interval(state['selection'], form.interval.data)
        session[SELECTION_SESSION_KEY] = selection.to_session(state['context'])
    else:
        current_app.logger.debug(f'Rejected interval input: {form.errors}')

    return redirect(url_for('billing.choose_plan'))


@billing_bp.route('/choose-plan/slide', methods=['POST'])
@login_required
def slide_volume():
    """Move the volume slider."""
    state = _plan_state(current_user)
    form = SliderForm()

    if form.validate_on_submit():
        selection = slide(state['selection'], form.slider.data, state['available'])
        session[SELECTION_SESSION_KEY] = selection.to_session(state['context'])
    else:
        current_app.logger.debug(f'Rejected slider input: {form.errors}')

    return redirect(url_for('billing.choose_plan'))


@billing_bp.route('/checkout/<product_id>', methods=['POST'])
@login_required
@limiter.limit('5 per hour')
def checkout(product_id):
    """Create Stripe Checkout Session and redirect to Stripe."""
    plan, interval, action, _ = _resolve_checkout(current_user, product_id)

    if action.disabled:
        flash(action.disabled_message or 'This plan is not available for your account.', 'danger')
        return redirect(url_for('billing.choose_plan'))

    if action.change_plan:
        return redirect(url_for('billing.change_plan_preview', product_id=product_id))

    try:
        checkout_url = SubscriptionService.create_checkout_session(current_user, product_id)
        return redirect(checkout_url)
    except stripe.error.StripeError as e:
        current_app.logger.error(f'Checkout session creation failed: {e}')
        flash('Could not start the checkout. Please try again.', 'danger')
        return redirect(url_for('billing.choose_plan'))


@billing_bp.route('/change-plan/preview/<product_id>')
@login_required
def change_plan_preview(product_id):
    """Confirmation page before switching an existing subscription."""
    plan, interval, action, state = _resolve_checkout(current_user, product_id)

    if not action.change_plan:
        return redirect(url_for('billing.choose_plan'))

    return render_template(
        'billing/change_plan_preview.html',
        plan=plan,
        interval=interval,
        owned_plan=state['owned_plan'],
        current_interval=state['current_interval'],
        checkout=action,
    )


@billing_bp.route('/change-plan/<product_id>', methods=['POST'])
@login_required
@limiter.limit('10 per hour')
def change_plan(product_id):
    """Apply a plan change to the existing subscription."""
    plan, interval, action, _ = _resolve_checkout(current_user, product_id)

    if not action.change_plan:
        abort(403)

    if action.disabled:
        flash(action.disabled_message or 'This plan is not available for your account.', 'danger')
        return redirect(url_for('billing.choose_plan'))

    try:
        SubscriptionService.change_plan(current_user, product_id)
    except (stripe.error.StripeError, ValueError) as e:
        current_app.logger.error(f'Plan change failed: {e}')
        flash('Could not change your plan. Please try again.', 'danger')
        return redirect(url_for('billing.choose_plan'))

    session.pop(SELECTION_SESSION_KEY, None)
    flash(f'Your subscription is now on the {plan.kind.value.capitalize()} '
          f'{plan.volume} {interval.value} plan.', 'success')
    return redirect(url_for('billing.choose_plan'))


@billing_bp.route('/portal', methods=['POST'])
@login_required
@limiter.limit('10 per hour')
def portal():
    """Create Stripe Billing Portal session and redirect."""
    try:
        portal_url = SubscriptionService.create_portal_session(current_user)
        return redirect(portal_url)
    except stripe.error.StripeError as e:
        current_app.logger.error(f'Portal session creation failed: {e}')
        flash('Could not open the billing portal.', 'danger')
        return redirect(url_for('billing.choose_plan'))


@billing_bp.route('/webhook', methods=['POST'])
@csrf.exempt
@limiter.limit('100 per minute')
def webhook():
    """Handle Stripe webhook events.

    CSRF exempt, verified via Stripe signature instead.
    Returns 200 quickly to avoid Stripe retries.
    """
    payload = request.get_data()
    sig_header = request.headers.get('Stripe-Signature', '')

    try:
        result = SubscriptionService.handle_webhook_event(payload, sig_header)
        current_app.logger.info(f'Webhook processed: {result["event_type"]} (handled={result["handled"]})')
        return '', 200
    except ValueError as e:
        current_app.logger.warning(f'Webhook signature verification failed: {e}')
        abort(400)
    except Exception as e:
        current_app.logger.error(f'Webhook processing error: {e}')
        return '', 200  # Return 200 to prevent Stripe retries on app errors


@billing_bp.route('/success')
@login_required
def success():
    """Post-checkout success page."""
    session.pop(SELECTION_SESSION_KEY, None)
    session_id = request.args.get('session_id')
    return render_template('billing/success.html', session_id=session_id)
