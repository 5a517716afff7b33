"""
Console application: crack cookies by command or by gesture.
"""
import asyncio
import logging
import os
import sys
import threading
from typing import List, Optional

import cv2
import numpy as np

from .config import Cfg, load_config
from .cracker_mock import MockCracker
from .dispatcher import CrackDispatcher
from .fortunes import FortunePool
from .gesture_engine import GestureEngine
from .landmarks import draw_wrists
from .ledger import FortuneLedger
from .program import ARCHETYPES
from .types import CrackerProto, GestureState, Hand
from .wallet import load_wallet

logger = logging.getLogger(__name__)

HELP_TEXT = """Commands:
  crack               crack a cookie
  archetype <name>    pick one of: {archetypes}
  random              pick a random archetype on every crack
  gesture on|off      toggle two-hand gesture mode
  init                initialize the stats account
  stats               refresh the total opens counter
  status              show the current fortune card
  quit                exit"""


class ConsoleInput:
    """
    Single reader for stdin.

    Lines go to a pending signature prompt if there is one, otherwise to the
    command queue.
    """

    def __init__(self):
        self.commands: "asyncio.Queue[str]" = asyncio.Queue()
        self._answer: Optional[asyncio.Future] = None

    def feed(self, line: str) -> None:
        if self._answer is not None and not self._answer.done():
            self._answer.set_result(line)
        else:
            self.commands.put_nowait(line)

    async def ask(self, prompt: str) -> str:
        print(prompt, end="", flush=True)
        self._answer = asyncio.get_running_loop().create_future()
        try:
            return await self._answer
        finally:
            self._answer = None

    def start_reader(self) -> None:
        """Read stdin on a daemon thread so a pending readline never blocks exit."""
        loop = asyncio.get_running_loop()

        def read_lines() -> None:
            for line in sys.stdin:
                loop.call_soon_threadsafe(self.feed, line.strip())
            loop.call_soon_threadsafe(self.feed, "quit")

        threading.Thread(target=read_lines, name="console-input", daemon=True).start()


class FortuneCookieApp:
    """Main application class for the console front end."""

    def __init__(self, config_path: Optional[str] = None, dry_run: bool = False):
        """Initialize the application with configuration."""
        self.config: Cfg = load_config(config_path)
        self.dry_run = dry_run
        self.console = ConsoleInput()
        self.ledger: Optional[FortuneLedger] = None
        self.dispatcher: Optional[CrackDispatcher] = None

        cracker: CrackerProto
        if dry_run:
            cracker = MockCracker()
            logger.info("🧪 Dry run: gestures are logged, no transactions are sent")
        else:
            self.ledger = FortuneLedger.from_config(self.config.cluster)
            pool = FortunePool.load(self.config.content.fortunes_path)
            wallet = load_wallet(self.config.wallet, ask=self.console.ask)
            self.dispatcher = CrackDispatcher(self.ledger, pool, wallet)
            cracker = self

        frame_callback = self._draw_preview if self.config.display.show_preview else None
        self.gestures = GestureEngine(self.config, cracker, frame_callback=frame_callback)
        self._preview_open = False

    async def crack(self) -> None:
        """Crack through the dispatcher and print the outcome."""
        if self.dispatcher.busy:
            return
        result = await self.dispatcher.crack()
        if result is not None:
            self._print_card()
        elif self.dispatcher.error:
            print(f"❌ {self.dispatcher.error}")

    def _draw_preview(self, frame: np.ndarray, hands: List[Hand]) -> None:
        frame = cv2.flip(draw_wrists(frame, hands), 1)
        cv2.putText(frame, "Hands together, then pull apart", (10, 30),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.7, (255, 255, 255), 2)
        cv2.imshow(self.config.display.window_name, frame)
        cv2.waitKey(1)
        self._preview_open = True

    def _close_preview(self) -> None:
        if self._preview_open:
            cv2.destroyWindow(self.config.display.window_name)
            cv2.waitKey(1)
            self._preview_open = False

    def _print_card(self) -> None:
        if self.dispatcher is None:
            print(f"gesture: {self.gestures.state.value}")
            return
        snap = self.dispatcher.snapshot()
        badges = f"archetype: {snap['archetype']} | rarity: {snap['rarity']} | seed: {snap['seed_label']}"
        if snap['stats_total'] is not None:
            badges += f" | total opens: {snap['stats_total']}"
        print(badges)
        print(f"🥠 {snap['fortune'] or 'No fortune yet. Crack a cookie to reveal one.'}")
        if snap['signature_short']:
            print(f"tx: {snap['signature_short']}")
        if snap['error']:
            print(f"❌ {snap['error']}")
        print(f"gesture: {self.gestures.state.value}")
        if self.gestures.error:
            print(f"⚠️ {self.gestures.error} You can still crack with the 'crack' command.")

    async def handle(self, line: str) -> bool:
        """Run one command. Returns False when the app should exit."""
        parts = line.split()
        if not parts:
            return True
        command, args = parts[0].lower(), parts[1:]

        if command in ("quit", "exit", "q"):
            return False
        if command == "help":
            print(HELP_TEXT.format(archetypes=", ".join(ARCHETYPES)))
        elif command == "gesture":
            enable = not args or args[0].lower() in ("on", "1", "true")
            state = self.gestures.set_enabled(enable)
            if state is GestureState.DISABLED:
                self._close_preview()
            print(f"gesture: {state.value}")
        elif self.dispatcher is None:
            print("Only 'gesture' and 'quit' are available in dry-run mode")
        elif command == "crack":
            await self.crack()
        elif command == "archetype" and args:
            try:
                self.dispatcher.select(args[0].lower())
            except ValueError as e:
                print(f"❌ {e}")
        elif command == "random":
            self.dispatcher.set_random(True)
        elif command == "init":
            await self.dispatcher.initialize_stats()
            self._print_card()
        elif command == "stats":
            total = await self.dispatcher.stats.refresh()
            print(f"total opens: {total if total is not None else 'unknown'}")
        elif command == "status":
            self._print_card()
        else:
            print(f"Unknown command {command!r}. Type 'help'.")
        return True

    async def run(self):
        """Run the main application loop."""
        print(f"Starting {self.config.display.window_name}")
        print(HELP_TEXT.format(archetypes=", ".join(ARCHETYPES)))

        if self.dispatcher is not None:
            await self.dispatcher.start()
            if self.dispatcher.stats.ready is False:
                print("⚠️ Stats account not found. Run 'init' once before cracking.")

        self.console.start_reader()
        try:
            while True:
                line = await self.console.commands.get()
                if not await self.handle(line):
                    break
        finally:
            await self.close()

    async def close(self) -> None:
        """Cleanup resources."""
        await self.gestures.close()
        self._close_preview()
        if self.ledger is not None:
            await self.ledger.close()


async def main():
    """Entry point for the application."""
    logging.basicConfig(level=logging.INFO)

    dry_run = "--dry-run" in sys.argv
    config_path = os.getenv("FORTUNE_CONFIG")

    app = None
    try:
        app = FortuneCookieApp(config_path=config_path, dry_run=dry_run)
        await app.run()
    except KeyboardInterrupt:
        print("\nApplication interrupted by user")
        if app is not None:
            await app.close()


def run_cli():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run_cli()
