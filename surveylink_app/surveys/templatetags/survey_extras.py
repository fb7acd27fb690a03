from django import template
from django.utils.html import escape
from django.utils.safestring import mark_safe
import markdown as mdlib

register = template.Library()


@register.filter(name="markdownify")
def markdownify(text):
    """Render a survey description written in markdown.

    Raw HTML in the source is escaped before conversion.

    Usage in templates:
        {{ survey.description|markdownify }}
    """
    if not text:
        return ""
    html = mdlib.markdown(escape(text), extensions=["sane_lists", "nl2br"])
    return mark_safe(html)


@register.filter(name="dict_get")
def dict_get(d, key):
    """Look up ``key`` (or its string form) in a mapping; missing keys give ``""``.

    Usage in templates:
        {{ response.answers|dict_get:question_key }}
    """
    if d is None or not hasattr(d, "get"):
        return ""
    value = d.get(key, d.get(str(key), ""))
    return "" if value is None else value


@register.filter(name="answer_display")
def answer_display(value):
    """Show multi-select answers as a comma-separated list."""
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    return "" if value is None else value
