from textual.message import Message


class QuitRequestedMessage(Message):
    """
    broadcasted when the app is about to quit
    """

    bubble = True


class UserLogoutMessage(Message):
    """
    broadcasted when the user signs out
    """

    bubble = True


class CartChangedMessage(Message):
    """
    Fired after anything is added to, changed in or removed from the cart.
    Post at App level when fired from a modal.
    """

    bubble = True


class NewOrderMessage(Message):
    """
    Fired when checkout created an order.
    Listened to by order history and the admin order list.
    """

    bubble = True


class ModeSwitchedMessage(Message):
    """
    fired whenever switch_mode is called
    must be fired from app level
    """

    bubble = True

    def __init__(self, old_mode: str, new_mode: str) -> None:
        super().__init__()
        self.old_mode = old_mode
        self.new_mode = new_mode
