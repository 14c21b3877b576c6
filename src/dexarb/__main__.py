"""
Entry point for the arbitrage scanner.

Usage:
    python -m dexarb
    dexarb  # if installed via pip
"""

import asyncio
import sys


# Try to use uvloop for better performance
try:
    import uvloop

    UVLOOP_AVAILABLE = True
except ImportError:
    UVLOOP_AVAILABLE = False


def main() -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success).
    """
    from pydantic import ValidationError

    from dexarb import __version__
    from dexarb.config.settings import get_settings
    from dexarb.core.engine import ArbitrageEngine
    from dexarb.core.errors import ConfigurationError, RetryExhaustedError

    print(
        f"""
╔═══════════════════════════════════════════════════════════════╗
║     DEX ARBITRAGE SCANNER v{__version__:<29}      ║
║                                                               ║
║     Cross-pool price monitor for concentrated liquidity       ║
╚═══════════════════════════════════════════════════════════════╝
    """
    )

    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"Configuration error: {e}")
        print("\nCheck the values in your environment or .env file, e.g.:")
        print("  RPC_URL=https://mainnet.base.org")
        print("  PAIR=WETH/USDC")
        return 1

    uvloop_enabled = settings.use_uvloop and UVLOOP_AVAILABLE

    print("Configuration:")
    print(f"  Mode:           {'MONITOR' if settings.monitor else 'SINGLE CYCLE'}")
    print(f"  RPC:            {settings.rpc_url}")
    print(f"  Pair:           {settings.pair}")
    print(f"  Trade size:     {settings.trade_size:g}")
    print(f"  Min diff:       {settings.min_price_diff_percent:.3f}%")
    print(f"  Slippage:       {settings.slippage_percent:.3f}%")
    print(f"  Min profit:     {settings.min_profit_threshold_quote:g}")
    print(f"  Retries:        {settings.max_retries} (base {settings.retry_base_delay_ms}ms)")
    print(f"  uvloop:         {'Enabled' if uvloop_enabled else 'Disabled'}")
    print()

    async def run_engine() -> int:
        engine = ArbitrageEngine(settings, configure_logging=True)

        try:
            await engine.run()
            return 0

        except KeyboardInterrupt:
            print("\nInterrupted by user")
            return 0

        except ConfigurationError as e:
            print(f"\nConfiguration error: {e}")
            return 1

        except RetryExhaustedError as e:
            print(f"\nCycle failed after {e.attempts} attempt(s): {e}")
            return 2

        except Exception as e:
            print(f"\nFatal error: {e}")
            import traceback

            traceback.print_exc()
            return 1

        finally:
            await engine.shutdown()

    if uvloop_enabled:
        return uvloop.run(run_engine())
    return asyncio.run(run_engine())


if __name__ == "__main__":
    sys.exit(main())
