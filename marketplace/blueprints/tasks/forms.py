# marketplace/blueprints/tasks/forms.py
from wtforms import StringField, TextAreaField, DecimalField, DateTimeField, SelectField
from wtforms.validators import DataRequired, Length, NumberRange, Optional as Opt, StopValidation, URL

from ...models.task import TITLE_MAX_LENGTH, TaskType
from ..auth.forms import JsonForm

DEADLINE_FORMATS = ["%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M", "%Y-%m-%d"]
TYPE_CHOICES = [(t.value, t.value) for t in TaskType]
PROBLEM_MAX_LENGTH = 10000


class JsonText:
    """JSON values for text fields must be strings (or null)."""

    def __init__(self, message=None):
        self.message = message

    def __call__(self, form, field):
        if field.raw_data and field.raw_data[0] is not None and not isinstance(field.raw_data[0], str):
            raise StopValidation(self.message or field.gettext("Must be a string."))


class JsonDateTimeField(DateTimeField):
    def process_formdata(self, valuelist):
        if valuelist and valuelist[0] is None:
            self.data = None
            return
        if not all(isinstance(v, str) for v in valuelist):
            raise ValueError(self.gettext("Not a valid datetime value."))
        super().process_formdata(valuelist)


class JsonDecimalField(DecimalField):
    def process_formdata(self, valuelist):
        if valuelist and valuelist[0] is None:
            self.data = None
            return
        if valuelist and (isinstance(valuelist[0], bool) or not isinstance(valuelist[0], (str, int, float))):
            raise ValueError(self.gettext("Not a valid decimal value."))
        super().process_formdata(valuelist)


class TaskForm(JsonForm):
    title = StringField("Title", validators=[JsonText(), DataRequired(), Length(max=TITLE_MAX_LENGTH)])
    problem = TextAreaField("Problem", validators=[Opt(), JsonText(), Length(max=PROBLEM_MAX_LENGTH)])
    payment = JsonDecimalField("Payment", places=2, validators=[Opt(), NumberRange(min=0)])
    deadline = JsonDateTimeField("Deadline", format=DEADLINE_FORMATS, validators=[Opt()])
    type = SelectField("Type", choices=TYPE_CHOICES, validators=[Opt()])


class TaskEditForm(JsonForm):
    """Partial update of an unassigned task; absent fields are left alone."""

    title = StringField("Title", validators=[JsonText(), Length(max=TITLE_MAX_LENGTH)])
    problem = TextAreaField("Problem", validators=[JsonText(), Length(max=PROBLEM_MAX_LENGTH)])
    deadline = JsonDateTimeField("Deadline", format=DEADLINE_FORMATS, validators=[Opt()])
    type = SelectField("Type", choices=TYPE_CHOICES, validators=[Opt()])

    def changes(self) -> dict:
        return {name: field.data for name, field in self._fields.items() if field.raw_data}


class SolutionForm(JsonForm):
    link = StringField("Link", validators=[Opt(), JsonText(), URL(require_tld=False), Length(max=512)])
    description = TextAreaField("Description", validators=[Opt(), JsonText(), Length(max=PROBLEM_MAX_LENGTH)])
