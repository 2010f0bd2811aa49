from werkzeug.datastructures import MultiDict

from app.errors import ValidationError


def json_formdata(payload, fields):
    """
    Turn a JSON body into form data WTForms can coerce.

    Args:
        payload: decoded JSON object (or None)
        fields: mapping of JSON key -> form field name
    """
    formdata = MultiDict()
    if not isinstance(payload, dict):
        return formdata

    for json_key, field_name in fields.items():
        value = payload.get(json_key)
        if value is None or value is False:
            continue
        if value is True:
            value = "y"
        formdata[field_name] = str(value)

    return formdata


def form_from_json(form_class, payload):
    """Build and validate a form from a JSON body, raising ValidationError"""
    form = form_class(formdata=json_formdata(payload, form_class.JSON_FIELDS))
    if not form.validate():
        errors = {
            name or "form": messages
            for name, messages in form.errors.items()
            if messages
        }
        first = next(iter(errors.values()), ["Invalid input"])[0]
        raise ValidationError(first, errors=errors)
    return form
