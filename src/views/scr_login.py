from textual import on, work
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, Vertical
from textual.events import Key
from textual.widgets import Button, Input, Label, TabbedContent, TabPane

import db.auth
from views.base_screen import BaseScreen, guarded
from views.modal_dialog import QuitDialogModal


class LoginScreen(BaseScreen):
    """
    Sign in or sign up. Dismisses once app.state holds a signed-in session.
    """

    def __init__(self):
        super().__init__()
        self.configure(header_sub_title="Masuk", show_sidebar=False)

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with TabbedContent(id="super-tab-loginscr"):
            with TabPane("Login", id="tab-login"):
                with Vertical(id="div-login"):
                    yield Label("Email")
                    yield Input(placeholder="user@example.com", id="input-login-email")
                    yield Label("Password")
                    yield Input(
                        placeholder="*********", password=True, id="input-login-pwd"
                    )
                    with Horizontal(id="div-login-btns"):
                        yield Button("Quit", id="btn-quit")
                        yield Button("Login", id="btn-login", variant="primary")

            with TabPane("Sign up", id="tab-signup"):
                with Vertical(id="div-reg"):
                    yield Label("Full Name")
                    yield Input(placeholder="Siti Aminah", id="input-reg-name")
                    yield Label("Email")
                    yield Input(placeholder="user@example.com", id="input-reg-email")
                    yield Label("Password")
                    yield Input(
                        placeholder="*********", password=True, id="input-reg-pwd"
                    )
                    with Container(id="div-reg-btns"):
                        yield Button("Register", id="btn-reg", variant="primary")

    def on_mount(self):
        self.query_one("#input-login-email").focus()

    def on_key(self, event: Key) -> None:
        if event.key == "enter" and self.focused == self.query_one("#input-login-pwd"):
            self.handle_login_submit()
        if event.key == "enter" and self.focused == self.query_one("#input-reg-pwd"):
            self.handle_registration_submit()

    @on(Button.Pressed, "#btn-login")
    @work(exclusive=True)
    async def handle_login_submit(self) -> None:
        email = self.query_one("#input-login-email", Input).value.strip()
        pwd = self.query_one("#input-login-pwd", Input).value.strip()

        if not email or not pwd:
            self.notify("Email or password cannot be empty!", severity="error")
            return

        ok, signed_in = await guarded(self, self.app.state.sign_in(email, pwd))
        if not ok:
            return
        if signed_in:
            self.notify(f"Selamat datang, {self.app.state.email}!")
            self.dismiss()
        else:
            self.notify("Invalid email or password.", severity="error")
            input_login_pwd = self.query_one("#input-login-pwd", Input)
            input_login_pwd.value = ""
            input_login_pwd.focus()
            input_login_pwd.add_class("-invalid")

    @on(Button.Pressed, "#btn-reg")
    @work(exclusive=True)
    async def handle_registration_submit(self) -> None:
        name = self.query_one("#input-reg-name", Input).value.strip()
        email = self.query_one("#input-reg-email", Input).value.strip()
        pwd = self.query_one("#input-reg-pwd", Input).value.strip()

        if not name or not email or not pwd:
            self.notify("Make sure all inputs are filled.", severity="error")
            return

        ok, _uid = await guarded(self, db.auth.register(email, pwd, name))
        if not ok:
            return

        self.get_child_by_type(TabbedContent).active = "tab-login"
        self.query_one("#input-login-email", Input).value = email
        input_login_pwd = self.query_one("#input-login-pwd", Input)
        input_login_pwd.value = pwd
        input_login_pwd.focus()
        self.notify("Registration successful.")

    @on(Button.Pressed, "#btn-quit")
    def handle_quit_(self) -> None:
        self.app.push_screen(QuitDialogModal())
