from django import template

from submissions.models import DEFAULT_CONTROL_NAME

register = template.Library()


@register.filter
def control_header(name):
    if isinstance(name, str) and name.strip():
        return name.strip().upper()
    return DEFAULT_CONTROL_NAME


@register.filter
def swatch(color):
    if isinstance(color, str) and color:
        return f'background-color:{color}'
    return ''
