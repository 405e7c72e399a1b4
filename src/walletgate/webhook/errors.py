from ..exceptions import WalletGateError


class WebhookError(WalletGateError):
    pass


class WebhookInputError(WebhookError):
    pass


class WebhookTimestampError(WebhookError):
    pass


class WebhookSignatureError(WebhookError):
    pass


class WebhookHandlerError(WebhookError):
    pass
