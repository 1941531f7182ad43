class SendingNotImplementedError(Exception):
    """Raised when a request asks us to deliver a message through a third-party platform."""

    def __init__(self):
        super().__init__("Sending messages is not implemented yet.")
