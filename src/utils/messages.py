from textual.message import Message


class QuitRequestedMessage(Message):
    """
    broadcasted when the app is about to quit
    """

    bubble = True


class UserLogoutMessage(Message):
    """
    broadcasted when the user signs out; handled by the app
    """

    bubble = True


class CartChangedMessage(Message):
    """
    Fired by a cart line widget after it edited or removed its item,
    so the cart screen re-renders lines and subtotal.
    """

    bubble = True
