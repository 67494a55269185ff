# main.py
"""
Asuna Relay — Console Entry Point

Stand-in messaging transport for local use: each stdin line is one
inbound message from a single local user, replies are printed back.
Optionally starts the control API on a background thread so the remote
app can watch the session.

    asuna-relay                 # console only
    asuna-relay --api           # console + control API
    asuna-relay --user 9477...  # pick the user id the store sees
"""

import argparse
import sys
import threading

from kernel.logger import RelayLogger
from kernel.relay import RelayBot
from system.config import load_config_or_exit

PROMPT = "you> "


def console_send(to: str, message: str, stdout=sys.stdout) -> None:
    """Outbound messages from /command/send land on the terminal."""
    stdout.write(f"\n[to {to}] {message}\n")
    stdout.flush()


def _start_api(relay, logger, config) -> threading.Thread:
    from relay_api import create_app

    app = create_app(
        relay,
        logger,
        config,
        transport_status=lambda: "connected",
        send_message=console_send,
    )
    thread = threading.Thread(
        target=app.run,
        kwargs={"host": config.api_host, "port": config.api_port, "use_reloader": False},
        name="relay-api",
        daemon=True,
    )
    thread.start()
    logger.info("API", f"API server running on http://{config.api_host}:{config.api_port}")
    return thread


def run_console(relay: RelayBot, user_id: str, bot_name: str, stdin=sys.stdin, stdout=sys.stdout) -> None:
    while True:
        stdout.write(PROMPT)
        stdout.flush()
        line = stdin.readline()
        if not line:
            break
        reply = relay.handle_message(user_id, line.rstrip("\n"))
        if reply is None:
            continue
        suffix = f" [voice: {len(reply.audio)} bytes]" if reply.is_voice else ""
        stdout.write(f"{bot_name}> {reply.text}{suffix}\n")
        stdout.flush()


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Chat with the relay from the terminal.")
    parser.add_argument("--user", default="console-user", help="user id for the conversation store")
    parser.add_argument("--api", action="store_true", help="also start the control API")
    args = parser.parse_args(argv)

    config = load_config_or_exit()
    logger = RelayLogger(log_file=config.log_file)

    try:
        relay = RelayBot.from_config(config, logger)
    except Exception as e:
        print(f"[Relay] Startup failed: {e}", file=sys.stderr, flush=True)
        raise SystemExit(1)

    if args.api:
        _start_api(relay, logger, config)

    logger.info("Relay", f"{config.bot_name} is ready. Type /help for commands, Ctrl+D to quit.")
    try:
        run_console(relay, args.user, config.bot_name)
    except KeyboardInterrupt:
        print()
        logger.info("Relay", "Shutting down gracefully...")
    finally:
        relay.close()


if __name__ == "__main__":
    main()
