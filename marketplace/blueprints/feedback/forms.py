from wtforms import IntegerField, TextAreaField
from wtforms.validators import DataRequired, NumberRange, Length, Optional as Opt

from ..auth.forms import JsonForm


class FeedbackForm(JsonForm):
    receiverId = IntegerField("Receiver", validators=[DataRequired()])
    rating = IntegerField("Rating", validators=[DataRequired(), NumberRange(min=1, max=5)])
    comment = TextAreaField("Comment", validators=[Opt(), Length(max=2000)])
