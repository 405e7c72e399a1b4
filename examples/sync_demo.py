import argparse
import time

from walletgate import DEFAULT_BASE_URL, RetryPolicy, WalletGateClient, WalletGateConfig, make_qr_data_url

from _settings import load_settings


def build_client() -> WalletGateClient:
    settings = load_settings()
    config = WalletGateConfig(
        api_key=settings.api_key,
        base_url=settings.base_url or DEFAULT_BASE_URL,
        retry_policy=RetryPolicy(max_retries=2),
        on_rate_limit=lambda info: print(f"rate limited, retry after {info.retry_after_seconds}s"),
    )
    return WalletGateClient(config)


def main() -> None:
    parser = argparse.ArgumentParser(description="walletgate sync example")
    parser.add_argument("--age", type=int, default=18, help="minimum age to verify (default: 18)")
    parser.add_argument("--poll", type=int, default=0, help="poll the result N times, 5s apart")
    parser.add_argument("--qr", action="store_true", help="print the verification URL as a QR data URL")
    args = parser.parse_args()

    with build_client() as client:
        session = client.start_verification({"checks": [{"type": "age_over", "value": args.age}]})
        if session is None:
            print("Empty response from server.")
            return
        print(f"Session {session.id} created, status={session.status.value}")
        if session.verification_url:
            print(f"Open on the holder's device: {session.verification_url}")
            if args.qr:
                print(make_qr_data_url(session.verification_url))

        for _ in range(args.poll):
            time.sleep(5)
            result = client.get_result(session.id)
            if result is None:
                continue
            print(f"status={result.status.value}")
            if result.is_terminal:
                print(f"results={result.results}")
                break


if __name__ == "__main__":
    main()
