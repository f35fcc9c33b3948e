"""Markup helper tests for the password input and back button."""
from __future__ import annotations

import pytest
from flask_wtf import FlaskForm
from wtforms import PasswordField

from accountguard_web.widgets import RevealablePasswordInput, back_button


class _Form(FlaskForm):
    password = PasswordField("Password", widget=RevealablePasswordInput())
    plain = PasswordField("Plain", widget=RevealablePasswordInput(toggle=False))


@pytest.fixture()
def form(app):
    with app.test_request_context():
        yield _Form(meta={"csrf": False})


class TestRevealablePasswordInput:
    def test_hidden_by_default(self, form):
        html = str(form.password())

        assert html.startswith('<div class="relative w-full">')
        assert 'type="password"' in html
        assert 'aria-label="Show password"' in html
        assert 'aria-pressed="false"' in html
        assert 'type="button"' in html

    def test_revealed(self, form):
        html = str(form.password(show_password=True))

        assert 'type="text"' in html
        assert 'aria-label="Hide password"' in html
        assert 'aria-pressed="true"' in html

    def test_toggle_adds_padding_class(self, form):
        html = str(form.password(class_="w-full border"))

        assert 'class="w-full border pr-10"' in html

    def test_without_toggle(self, form):
        html = str(form.plain(class_="w-full"))

        assert "<button" not in html
        assert "pr-10" not in html
        assert 'class="w-full"' in html

    def test_value_is_never_rendered(self, app):
        with app.test_request_context(method="POST", data={"password": "s3cretpass"}):
            html = str(_Form(meta={"csrf": False}).password())

        assert "s3cretpass" not in html

    def test_extra_attributes_pass_through(self, form):
        html = str(form.password(autocomplete="current-password", placeholder="Enter password"))

        assert 'autocomplete="current-password"' in html
        assert 'placeholder="Enter password"' in html
        assert 'name="password"' in html


class TestBackButton:
    def test_default_label(self):
        html = str(back_button())

        assert 'type="button"' in html
        assert 'onclick="history.back()"' in html
        assert "<svg" in html
        assert "<span>Back</span>" in html
        assert "data-fallback-url" not in html

    def test_custom_label_is_escaped(self):
        html = str(back_button("<b>Return</b>"))

        assert "&lt;b&gt;Return&lt;/b&gt;" in html

    def test_fallback_url(self):
        html = str(back_button(fallback_url="/account"))

        assert 'data-fallback-url="/account"' in html

    def test_available_in_templates(self, app):
        with app.test_request_context():
            rendered = app.jinja_env.from_string("{{ back_button('Go back') }}").render()

        assert "<span>Go back</span>" in rendered
