"""Forms for billing blueprint."""
from flask_wtf import FlaskForm
from wtforms import IntegerField, SelectField
from wtforms.validators import DataRequired, InputRequired, NumberRange

from statbill.billing.plans import Interval


class IntervalForm(FlaskForm):
    """Monthly/yearly toggle of the plan picker."""
    interval = SelectField(
        'Billing interval',
        choices=[
            (Interval.MONTHLY.value, 'Monthly'),
            (Interval.YEARLY.value, 'Yearly'),
        ],
        validators=[DataRequired()]
    )


class SliderForm(FlaskForm):
    """Pageview volume slider. The upper bound depends on the offered plans."""
    slider = IntegerField(
        'Monthly pageviews',
        validators=[InputRequired(), NumberRange(min=0)]
    )
