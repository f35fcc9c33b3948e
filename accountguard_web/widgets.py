"""Markup helpers for account security pages."""
from __future__ import annotations

from markupsafe import Markup, escape
from wtforms.widgets import html_params

SHOW_PASSWORD_LABEL = "Show password"
HIDE_PASSWORD_LABEL = "Hide password"

_EYE_ICON = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 24 24" fill="none" stroke="currentColor" '
    'stroke-width="2" class="h-4 w-4" aria-hidden="true">'
    '<path d="M2 12s3.5-7 10-7 10 7 10 7-3.5 7-10 7S2 12 2 12z"/><circle cx="12" cy="12" r="3"/></svg>'
)
_EYE_OFF_ICON = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 24 24" fill="none" stroke="currentColor" '
    'stroke-width="2" class="h-4 w-4" aria-hidden="true">'
    '<path d="M17.94 17.94A10.07 10.07 0 0 1 12 19c-6.5 0-10-7-10-7a18.5 18.5 0 0 1 5.06-5.94"/>'
    '<path d="M9.9 4.24A9.12 9.12 0 0 1 12 4c6.5 0 10 7 10 7a18.5 18.5 0 0 1-2.16 3.19"/>'
    '<line x1="2" y1="2" x2="22" y2="22"/></svg>'
)
_CHEVRON_LEFT_ICON = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 24 24" fill="none" stroke="currentColor" '
    'stroke-width="2" class="h-4 w-4" aria-hidden="true"><polyline points="15 18 9 12 15 6"/></svg>'
)


def _merge_classes(*values: str | None) -> str:
    return " ".join(value for value in values if value)


class RevealablePasswordInput:
    """Password input with an optional show/hide toggle button.

    ``show_password`` and ``toggle`` can be set on the widget or overridden per
    render (``form.password(show_password=True)``). Any other keyword argument
    is passed through to the ``<input>`` element.
    """

    validation_attrs = ["required", "maxlength", "minlength", "pattern"]

    def __init__(self, *, show_password: bool = False, toggle: bool = True, hide_value: bool = True) -> None:
        self.show_password = show_password
        self.toggle = toggle
        self.hide_value = hide_value

    def __call__(self, field, **kwargs) -> Markup:
        show_password = bool(kwargs.pop("show_password", self.show_password))
        toggle = bool(kwargs.pop("toggle", self.toggle))

        kwargs.setdefault("id", field.id)
        kwargs["type"] = "text" if show_password else "password"
        if toggle:
            kwargs["class"] = _merge_classes(kwargs.pop("class", None) or kwargs.pop("class_", None), "pr-10")
        flags = getattr(field, "flags", None)
        for attr in self.validation_attrs:
            if attr not in kwargs and flags is not None and getattr(flags, attr, None):
                kwargs[attr] = getattr(flags, attr)
        value = "" if self.hide_value else (field._value() if hasattr(field, "_value") else "")
        if value:
            kwargs["value"] = value

        parts = [
            '<div class="relative w-full">',
            f"<input {html_params(name=field.name, **kwargs)}>",
        ]
        if toggle:
            parts.append(_toggle_button(kwargs["id"], show_password))
        parts.append("</div>")
        return Markup("".join(parts))


def _toggle_button(input_id: str, show_password: bool) -> str:
    label = HIDE_PASSWORD_LABEL if show_password else SHOW_PASSWORD_LABEL
    params = html_params(
        type="button",
        class_="absolute inset-y-0 right-0 flex items-center px-3 text-muted-foreground hover:text-foreground",
        aria_label=label,
        aria_pressed="true" if show_password else "false",
        aria_controls=input_id,
        data_password_toggle=True,
    )
    icon = _EYE_OFF_ICON if show_password else _EYE_ICON
    return f"<button {params}>{icon}</button>"


def back_button(label: str = "Back", fallback_url: str | None = None) -> Markup:
    """Ghost button that steps back in browser history."""
    params = {
        "type": "button",
        "class_": "inline-flex items-center gap-1 rounded-md px-3 py-2 text-sm font-medium hover:bg-accent hover:text-accent-foreground",
        "onclick": "history.back()",
    }
    if fallback_url:
        params["data_fallback_url"] = fallback_url
    return Markup(f"<button {html_params(**params)}>{_CHEVRON_LEFT_ICON}<span>{escape(label)}</span></button>")
