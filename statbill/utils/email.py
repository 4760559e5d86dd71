"""
Email utility module for Statbill.
Composes the usage notifications and sends them with Flask-Mailman.
Supports retry with exponential backoff.
"""
import re
import time
import uuid
import logging

from flask import render_template, current_app
from flask_mailman import EmailMultiAlternatives
from markupsafe import Markup

from statbill.billing.plans import ENTERPRISE

logger = logging.getLogger(__name__)

# Retry configuration
MAX_RETRIES = 3
RETRY_BASE_DELAY = 2  # seconds (2, 4, 8 with exponential backoff)

BASE_LAYOUT = 'base_email'
PRIORITY_LAYOUT = 'priority_email'

# Postmark routes messages on this header; priority skips the broadcast stream
MESSAGE_STREAM_HEADER = 'X-PM-Message-Stream'


def render_email(template, layout=BASE_LAYOUT, **context):
    """
    Render an email body, wrapped in a layout unless ``layout`` is None.

    Args:
        template: Template name (without .html extension) in templates/email/
        layout: Layout name in templates/email/layouts/, or None
        **context: Context variables for the template and the layout

    Returns:
        str: HTML body
    """
    html_body = render_template(f'email/{template}.html', **context)
    if layout is None:
        return html_body
    return render_template(
        f'email/layouts/{layout}.html',
        inner_content=Markup(html_body),
        **context,
    )


def build_email(recipient, subject, template, layout=BASE_LAYOUT, **context):
    """
    Build a multipart (text + HTML) message ready for ``send_email``.

    Returns:
        EmailMultiAlternatives
    """
    html_body = render_email(template, layout=layout, **context)

    headers = {}
    if layout == PRIORITY_LAYOUT:
        headers[MESSAGE_STREAM_HEADER] = 'priority'

    msg = EmailMultiAlternatives(
        subject=subject,
        body=_html_to_text(html_body),
        from_email=current_app.config.get('MAIL_DEFAULT_SENDER'),
        to=[recipient],
        headers=headers,
    )
    msg.attach_alternative(html_body, 'text/html')
    return msg


def html_body(msg):
    """HTML alternative of a message built by ``build_email``."""
    for content, mimetype in msg.alternatives:
        if mimetype == 'text/html':
            return content
    return None


def send_email(msg):
    """
    Send a prepared message with retry logic.

    Returns:
        bool: True if email sent successfully, False otherwise
    """
    email_id = str(uuid.uuid4())[:8]
    recipient = ', '.join(msg.to)

    logger.info(f"[EMAIL:{email_id}] Sending to {recipient} - {msg.subject}")
    return _send_with_retry(msg, email_id, recipient)


def _send_with_retry(msg, email_id, recipient):
    """
    Send a prepared message with exponential backoff retry.

    Args:
        msg: EmailMessage object (already built)
        email_id: Tracking ID for logging
        recipient: Recipient email for logging

    Returns:
        bool: True if sent successfully after retries
    """
    last_error = None
    for attempt in range(1, MAX_RETRIES + 1):
        try:
            msg.send()
            logger.info(f"[EMAIL:{email_id}] Sent to {recipient}"
                        + (f" (attempt {attempt})" if attempt > 1 else ""))
            return True
        except Exception as e:
            last_error = e
            if attempt < MAX_RETRIES:
                delay = RETRY_BASE_DELAY * (2 ** (attempt - 1))
                logger.warning(
                    f"[EMAIL:{email_id}] Attempt {attempt}/{MAX_RETRIES} failed "
                    f"for {recipient}: {e}, retrying in {delay}s"
                )
                time.sleep(delay)
            else:
                logger.error(
                    f"[EMAIL:{email_id}] Giving up after {MAX_RETRIES} attempts "
                    f"for {recipient}: {last_error}"
                )
    return False


def _html_to_text(html_content):
    """
    Basic HTML to plain text conversion.
    Strips HTML tags for plain text email version.
    """
    text = re.sub(r'<br\s*/?>|</p>', '\n', html_content)
    text = re.sub(r'<[^>]+>', '', text)
    text = re.sub(r'[ \t]+', ' ', text)
    text = re.sub(r'\n\s*\n+', '\n\n', text)
    return text.strip()


# =============================================================================
# Usage notifications
# =============================================================================

def _usage_context(user, usage, suggested_plan):
    return {
        'user': user,
        'usage': usage,
        'suggested_plan': suggested_plan,
        'enterprise': suggested_plan == ENTERPRISE,
        'app_url': current_app.config['APP_URL'],
    }


def over_limit_email(user, usage, suggested_plan):
    """
    Warn a subscriber that two billing cycles in a row went over the plan.

    Args:
        user: Subscription owner
        usage: dict with 'last_cycle' and 'penultimate_cycle' UsageCycle entries
        suggested_plan: Plan to upgrade to, or ENTERPRISE
    """
    subject = (
        f"[Action required] You have outgrown your "
        f"{current_app.config['APP_NAME']} subscription tier"
    )
    return build_email(
        user.email, subject, 'over_limit', layout=PRIORITY_LAYOUT,
        **_usage_context(user, usage, suggested_plan),
    )


def dashboard_locked(user, usage, suggested_plan):
    """Tell a subscriber whose grace period ended that the dashboard is locked."""
    subject = f"[Action required] Your {current_app.config['APP_NAME']} dashboard is now locked"
    return build_email(
        user.email, subject, 'dashboard_locked', layout=PRIORITY_LAYOUT,
        **_usage_context(user, usage, suggested_plan),
    )


def enterprise_over_limit_internal_email(user, pageview_usage, site_usage, site_allowance):
    """Internal alert: an enterprise customer went over their custom plan."""
    return build_email(
        current_app.config['ENTERPRISE_ALERT_EMAIL'],
        f'{user.email} has outgrown their enterprise plan',
        'enterprise_over_limit_internal',
        layout=None,
        user=user,
        pageview_usage=pageview_usage,
        site_usage=site_usage,
        site_allowance=site_allowance,
    )
