import asyncio

from nutkeep.config import load_config
from nutkeep.wallet import Wallet


async def main():
    config = load_config()
    async with await Wallet.create(config.mint_url, config.home) as wallet:
        # Finish anything a previous run left half done
        restored = await wallet.recover()
        if restored:
            print(f"Recovered {restored} sats")

        balance = await wallet.get_balance()
        print(f"Balance: {balance} sats")

        # Mint 10 sats
        invoice = await wallet.request_mint(10)
        print(f"\nPay this invoice:\n{invoice.payment_request}")
        input("\nPress enter once paid...")

        await wallet.mint_tokens(invoice.payment_request)
        print("\n✓ Payment received!")

        # Send 5 sats
        token = await wallet.send(5)
        print(f"\nCashu token: {token}")


if __name__ == "__main__":
    asyncio.run(main())
