"""
Chain2048 CLI - Command-line interface.

Usage:
    chain2048 play --identity 0xYou      Play in the terminal (w/a/s/d, q to quit)
    chain2048 leaderboard [--refresh]    Print the leaderboard
    chain2048 serve [--host H --port P]  Run the HTTP API

Without CHAIN2048_RPC_URL / CHAIN2048_CONTRACT_ADDRESS every command uses
the in-memory ledger.
"""

import argparse
import sys
import time

from .config import Settings, configure_logging

KEYS = {"w": "up", "a": "left", "s": "down", "d": "right"}
RECONCILE_ATTEMPTS = 5
RECONCILE_DELAY = 5.0


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Chain2048 - 2048 sessions committed to a ledger",
        prog="chain2048",
    )
    parser.add_argument("--log-level", default=None, help="Override CHAIN2048_LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    play_parser = subparsers.add_parser("play", help="Play a session in the terminal")
    play_parser.add_argument("--identity", required=True, help="Wallet address to play as")
    play_parser.add_argument("--seed", type=int, default=None, help="Seed tile spawning")

    leaderboard_parser = subparsers.add_parser("leaderboard", help="Print the leaderboard")
    leaderboard_parser.add_argument("--refresh", action="store_true", help="Ignore the cache")
    leaderboard_parser.add_argument("--limit", type=int, default=20)
    leaderboard_parser.add_argument("--clear-cache", action="store_true", help="Delete the cache file first")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    args = parser.parse_args(argv)
    settings = Settings.from_env()
    if args.log_level:
        settings.log_level = args.log_level.upper()
    configure_logging(settings.log_level)

    if args.command == "play":
        cmd_play(args, settings)
    elif args.command == "leaderboard":
        cmd_leaderboard(args, settings)
    elif args.command == "serve":
        cmd_serve(args, settings)
    else:
        parser.print_help()
        sys.exit(1)


def cmd_play(args, settings: Settings):
    """Interactive terminal session."""
    import random

    from .api.service import build_ledger
    from .errors import Chain2048Error, FinalizationTimeoutError
    from .session import GameLoop, SessionClient

    rng = random.Random(args.seed) if args.seed is not None else None
    client = SessionClient(build_ledger(settings), rng=rng)

    session = client.new_session(args.identity)
    try:
        client.register(session)
    except FinalizationTimeoutError as e:
        print(f"Open not finalized yet ({e.tx_hash}); checking the ledger...")
        try:
            opened = settle_pending(client, session)
        except Chain2048Error as err:
            print(f"Error: could not open session: {err}")
            sys.exit(1)
        if not opened:
            print(f"Error: open outcome still unknown: {e.tx_hash}")
            sys.exit(1)
    except Chain2048Error as e:
        print(f"Error: could not open session: {e}")
        sys.exit(1)

    print(f"Session #{session.session_id} opened ({session.open_tx})")
    loop = GameLoop(client, session)

    while not loop.game_over:
        print()
        print(session.board)
        print(f"Score: {session.score}   Moves: {session.moves}")
        key = input("move [w/a/s/d, q]: ").strip().lower()
        if key == "q":
            print("Quit without committing a final score.")
            return
        if key not in KEYS:
            continue

        turn = loop.move(KEYS[key])
        if turn.won_now:
            print("You reached 2048! Keep going!")

    print()
    print(session.board)
    print(f"Game over. Final score: {session.score}")
    if session.pending_tx:
        print(f"Close not finalized yet ({session.pending_tx}); checking the ledger...")
        try:
            settle_pending(client, session)
        except Chain2048Error as e:
            print(f"Error: close failed: {e}")
    if session.close_receipt:
        print(f"Final score committed: {session.close_receipt.tx_hash}")
    else:
        print("Error: final score was not committed.")
        sys.exit(1)


def settle_pending(client, session, attempts=RECONCILE_ATTEMPTS, delay=RECONCILE_DELAY, sleep=time.sleep):
    """
    Reconcile a timed-out open or close by polling its receipt.

    Returns True once the pending transition completed, False if the outcome
    is still unknown after `attempts` reads. A reverted request raises
    LedgerSubmissionError.
    """
    for attempt in range(attempts):
        if attempt:
            sleep(delay)
        if client.reconcile(session):
            return True
    return False


def cmd_leaderboard(args, settings: Settings):
    """Print ranked best scores."""
    from .api.service import APIService

    service = APIService.from_settings(settings)
    if args.clear_cache:
        service.aggregator.cache.invalidate()
    response = service.refresh_leaderboard() if args.refresh else service.get_leaderboard()

    if not response.entries:
        print("No scores yet.")
        return
    for entry in response.entries[: args.limit]:
        print(f"{entry.rank:>3}. {entry.player}  {entry.score}")


def cmd_serve(args, settings: Settings):
    """Run the API with uvicorn."""
    import uvicorn

    from .api.app import create_app

    uvicorn.run(create_app(settings=settings), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
