import asyncio

from walletgate import AsyncWalletGateClient, WalletGateConfig

from _settings import load_settings


async def async_main() -> None:
    settings = load_settings()
    options = {"api_key": settings.api_key}
    if settings.base_url:
        options["base_url"] = settings.base_url
    client = AsyncWalletGateClient(WalletGateConfig(**options))
    try:
        sessions = await asyncio.gather(
            client.start_verification({"checks": [{"type": "age_over", "value": 18}]}),
            client.start_verification({"checks": [{"type": "residency_eu"}]}),
        )
        for session in sessions:
            if session is not None:
                print(session.id, session.status.value, session.verification_url)
    finally:
        await client.aclose()


if __name__ == "__main__":
    asyncio.run(async_main())
