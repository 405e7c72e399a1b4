import json
from http.server import BaseHTTPRequestHandler, HTTPServer

from walletgate import EventHandlerRegistry, WebhookError, WebhookReceiver

from _settings import load_settings


settings = load_settings()
if not settings.webhook_secret:
    raise RuntimeError("missing WALLETGATE_WEBHOOK_SECRET in environment or .env")

registry = EventHandlerRegistry()


@registry.on_verification_completed
def _on_completed(event):
    print("[verification.completed]", event.session_id, event.data)


@registry.on_outcome
def _on_other_outcome(event):
    print(f"[{event.event}]", event.session_id, event.outcome.value)
    return {"received": True, "cleanup": "scheduled"}


receiver = WebhookReceiver(settings.webhook_secret, registry=registry)


class _Handler(BaseHTTPRequestHandler):
    def do_POST(self) -> None:  # noqa: N802
        if self.path != "/webhooks/walletgate":
            self.send_response(404)
            self.end_headers()
            return
        content_length = int(self.headers.get("Content-Length", "0"))
        body = self.rfile.read(content_length)
        headers = {str(k): str(v) for k, v in self.headers.items()}

        try:
            payload = receiver.handle(headers, body)
            status = 200
        except WebhookError as exc:
            payload = {"error": str(exc)}
            status = 401
        response_body = json.dumps(payload).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(response_body)))
        self.end_headers()
        self.wfile.write(response_body)


def main() -> None:
    server = HTTPServer(("127.0.0.1", 7777), _Handler)
    print("webhook server started at http://127.0.0.1:7777")
    print("endpoint: POST /webhooks/walletgate")
    server.serve_forever()


if __name__ == "__main__":
    main()
