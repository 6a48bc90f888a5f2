import sqlite3
from typing import Any, Awaitable, Tuple

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.dom import DOMNode
from textual.screen import Screen
from textual.widgets import Button, Footer, Header, Label, ListItem, ListView, Markdown

from db.auth import get_profile
from db.errors import StoreError
from utils.logger import get_logger
from utils.messages import ModeSwitchedMessage, UserLogoutMessage
from utils.pure import generate_markdown_table
from views.modal_dialog import DialogModal, QuitDialogModal

_logger = get_logger(__name__)


async def guarded(
    node: DOMNode, awaitable: Awaitable, failure_msg: str = "Operation failed."
) -> Tuple[bool, Any]:
    """
    Await a db call on behalf of a screen. Failures become an error toast and
    the operation is abandoned. Returns (ok, result).
    """
    try:
        return True, await awaitable
    except StoreError as e:
        node.notify(str(e), severity="error")
    except (sqlite3.Error, OSError):
        _logger.exception(failure_msg)
        node.notify(failure_msg, severity="error")
    return False, None


class Sidebar(Container):
    init_mode = ""

    def compose(self) -> ComposeResult:
        yield Label("User Info", id="label-info-1")
        yield Markdown("", id="md-userinfo")
        yield Button("Log out", id="btn-logout", variant="error")
        yield Label("Menu", id="label-info-2")
        yield ListView(id="list-menu")

    async def on_mount(self):
        self.init_mode = self.app.current_mode
        state = self.app.state
        if not state.is_authenticated:
            return

        profile = await get_profile(state)
        table_rows = [
            ["Email", state.email],
            ["Name", (profile.full_name if profile else None) or "-"],
            ["Role", "Admin" if state.is_admin else "Customer"],
        ]
        md_table_str = generate_markdown_table(None, table_rows, ["l", "l"])
        await self.query_one(Markdown).update(md_table_str)

        modes = dict(self.app.CUSTOMER_MODES)
        if state.is_admin:
            modes.update(self.app.ADMIN_MODES)
        list_menu: ListView = self.query_one("#list-menu")
        await list_menu.clear()
        await list_menu.extend(
            [ListItem(Label(v), id="list-menu-item-" + k) for k, v in modes.items()]
        )
        self.highlight_item(self.init_mode)

    async def on_list_view_selected(self, event: ListView.Selected):
        selected_mode = event.item.id.removeprefix("list-menu-item-")
        self.highlight_item(self.init_mode)
        if self.app.current_mode != selected_mode:
            self.app.post_message(
                ModeSwitchedMessage(self.app.current_mode, selected_mode)
            )
            await self.app.switch_mode(selected_mode)

    @on(Button.Pressed, "#btn-logout")
    @work()
    async def handle_logout(self):
        if not await self.app.push_screen_wait(
            DialogModal(
                "Are you sure you want to log out?",
                primary_text="Yes",
                secondary_text="No",
                tone="warning",
            )
        ):
            return

        self.post_message(UserLogoutMessage())

    def highlight_item(self, mode_str: str):
        list_menu = self.query_one("#list-menu")
        for item in list_menu.children:
            item.highlighted = mode_str in item.id


class BaseScreen(Screen):
    """
    Inherited by all screens, contains common elements like
    headers, footers, sidebar, and keybindings.
    """

    BINDINGS = [
        Binding("ctrl+z", "quit", "Quit App", show=True),
    ]

    def __init__(self):
        super().__init__()

        self.configure()

    def configure(
        self,
        header_sub_title: str = "Warung Madura",
        show_sidebar: bool = True,
    ) -> None:
        """
        configure behavior of the base screen
        """
        self.app.title = "Warung Madura - Apotek Online Terpercaya"
        self.sub_title = header_sub_title
        for k, v in self.app.MODES.items():
            if isinstance(self, v):
                self.sub_title = self.app.CUSTOMER_MODES.get(
                    k, self.app.ADMIN_MODES.get(k, header_sub_title)
                )

        self._show_sidebar = show_sidebar

    def compose(self) -> ComposeResult:
        if self._show_sidebar:
            yield Sidebar()
        yield Header()
        yield Footer(show_command_palette=False)

    @work()
    async def action_quit(self):
        await self.app.push_screen_wait(QuitDialogModal())
